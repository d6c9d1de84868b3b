# stockledger/services/transfer_service.py
from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from stockledger.core.config import get_settings
from stockledger.core.tx import unit_of_work
from stockledger.db.base import utcnow
from stockledger.metrics import PARTIAL
from stockledger.models.enums import DocType, MovementLeg, MovementType, RequisitionStatus, Role, TransferStatus
from stockledger.models.delivery import Delivery
from stockledger.models.requisition import Requisition
from stockledger.models.transfer import Transfer, TransferLine
from stockledger.schemas.transfer import TransferCreateIn, TransferLineIn, TransferUpdateIn
from stockledger.services.access_guard import Actor, require_role
from stockledger.services.doc_guards import check_lines, check_not_negative, load_doc, require_status
from stockledger.services.errors import PartialTransfer, StockError, ValidationError
from stockledger.services.master_data import ensure_location, ensure_products, ensure_warehouse
from stockledger.services.numbering_service import NumberingService
from stockledger.services.stock_service import StockService
from stockledger.services.stock_service_apply import MovementResult

log = logging.getLogger("stockledger.transfers")

CREATE_ROLES = (Role.ADMIN, Role.MANAGER)
MOVE_ROLES = (Role.ADMIN, Role.MANAGER, Role.OPERATOR)


class TransferService:
    """
    Transfer workflow, an explicit two-step saga:

    - dispatch: DRAFT -> IN_TRANSIT, TRANSFER movements out of the source
    - receive:  IN_TRANSIT -> DONE, TRANSFER movements into the target

    Each step is its own commit. IN_TRANSIT transfers are what the
    reconciliation read path reports as in flight.
    """

    def __init__(self, stock: Optional[StockService] = None):
        self.stock = stock or StockService()

    @staticmethod
    async def _check(
        session: AsyncSession, source_id: int, target_id: int, lines: Optional[List[TransferLineIn]]
    ) -> None:
        if int(source_id) == int(target_id):
            raise ValidationError("source and target warehouse must differ")
        await ensure_warehouse(session, source_id)
        await ensure_warehouse(session, target_id)
        if lines is None:
            return
        check_lines(lines)
        await ensure_products(session, [ln.product_id for ln in lines])
        for ln in lines:
            await ensure_location(session, ln.source_location_id, source_id)
            await ensure_location(session, ln.target_location_id, target_id)

    @staticmethod
    async def _check_delivery(
        session: AsyncSession, delivery_id: int, source_id: int, target_id: int, requisition_id: Optional[int]
    ) -> None:
        dlv = await load_doc(session, Delivery, delivery_id)
        if (dlv.warehouse_id, dlv.target_warehouse_id) != (int(source_id), int(target_id)):
            raise ValidationError(
                f"delivery {dlv.number} does not run wh {source_id} -> {target_id}",
                details=[{"type": "validation", "path": "delivery_id", "reason": "warehouse_mismatch"}],
            )
        if requisition_id is not None and dlv.requisition_id != int(requisition_id):
            raise ValidationError(
                f"delivery {dlv.number} belongs to another requisition",
                details=[{"type": "validation", "path": "delivery_id", "reason": "requisition_mismatch"}],
            )

    @staticmethod
    def _build_lines(lines: List[TransferLineIn]) -> List[TransferLine]:
        return [
            TransferLine(
                line_no=i,
                product_id=int(ln.product_id),
                source_location_id=ln.source_location_id,
                target_location_id=ln.target_location_id,
                quantity=int(ln.quantity),
            )
            for i, ln in enumerate(lines, start=1)
        ]

    async def create(self, session: AsyncSession, actor: Actor, payload: TransferCreateIn) -> Transfer:
        require_role(actor, CREATE_ROLES, action="create transfers")
        async with unit_of_work(session):
            await self._check(session, payload.source_warehouse_id, payload.target_warehouse_id, payload.lines)
            if payload.requisition_id is not None:
                req = await load_doc(session, Requisition, payload.requisition_id)
                if req.status != RequisitionStatus.APPROVED.value:
                    raise ValidationError(f"requisition {req.number} is not approved (status={req.status})")
            if payload.delivery_id is not None:
                await self._check_delivery(
                    session,
                    payload.delivery_id,
                    payload.source_warehouse_id,
                    payload.target_warehouse_id,
                    payload.requisition_id,
                )

            doc = Transfer(
                number=await NumberingService.next_number(session, DocType.TRANSFER),
                requisition_id=payload.requisition_id,
                delivery_id=payload.delivery_id,
                source_warehouse_id=payload.source_warehouse_id,
                target_warehouse_id=payload.target_warehouse_id,
                status=TransferStatus.DRAFT.value,
                created_by=actor.user_id,
                lines=self._build_lines(payload.lines),
            )
            session.add(doc)
            await session.flush()
        log.info(
            "transfer created: %s wh %s -> %s by user=%s",
            doc.number,
            doc.source_warehouse_id,
            doc.target_warehouse_id,
            actor.user_id,
        )
        return doc

    async def update(
        self, session: AsyncSession, transfer_id: int, actor: Actor, payload: TransferUpdateIn
    ) -> Transfer:
        require_role(actor, CREATE_ROLES, action="edit transfers")
        async with unit_of_work(session):
            doc = await load_doc(session, Transfer, transfer_id, for_update=True)
            require_status(doc, [TransferStatus.DRAFT], action="edit")
            source_id = payload.source_warehouse_id or doc.source_warehouse_id
            target_id = payload.target_warehouse_id or doc.target_warehouse_id
            await self._check(session, source_id, target_id, payload.lines)
            if doc.delivery_id is not None:
                await self._check_delivery(session, doc.delivery_id, source_id, target_id, doc.requisition_id)
            if payload.lines is not None:
                doc.lines = self._build_lines(payload.lines)
            else:
                for ln in doc.lines:
                    await ensure_location(session, ln.source_location_id, source_id)
                    await ensure_location(session, ln.target_location_id, target_id)
            doc.source_warehouse_id = source_id
            doc.target_warehouse_id = target_id
            await session.flush()
        log.info("transfer updated: %s by user=%s", doc.number, actor.user_id)
        return doc

    async def dispatch(
        self, session: AsyncSession, transfer_id: int, actor: Actor, *, trace_id: Optional[str] = None
    ) -> Transfer:
        require_role(actor, MOVE_ROLES, action="dispatch transfers")
        allow_negative = get_settings().STOCK_ALLOW_NEGATIVE

        async with unit_of_work(session):
            doc = await load_doc(session, Transfer, transfer_id, for_update=True)
            require_status(doc, [TransferStatus.DRAFT], action="dispatch")
            check_lines(doc.lines)

            results: List[MovementResult] = []
            for ln in doc.lines:
                results.append(
                    await self.stock.apply_movement(
                        session,
                        product_id=ln.product_id,
                        warehouse_id=doc.source_warehouse_id,
                        location_id=ln.source_location_id,
                        delta=-int(ln.quantity),
                        movement_type=MovementType.TRANSFER,
                        source_doc_type=DocType.TRANSFER.value,
                        source_doc_id=doc.id,
                        source_line_no=ln.line_no,
                        leg=MovementLeg.SOURCE,
                        counterparty_warehouse_id=doc.target_warehouse_id,
                        counterparty_location_id=ln.target_location_id,
                        actor_id=actor.user_id,
                        trace_id=trace_id,
                    )
                )
            try:
                check_not_negative(results, allow_negative=allow_negative)
            except StockError:
                log.warning("transfer %s refused: insufficient stock in wh=%s", doc.number, doc.source_warehouse_id)
                raise

            doc.status = TransferStatus.IN_TRANSIT.value
            doc.dispatched_by = actor.user_id
            doc.dispatched_at = utcnow()
            await session.flush()

        log.info("transfer dispatched: %s from wh=%s by user=%s", doc.number, doc.source_warehouse_id, actor.user_id)
        return doc

    async def receive(
        self, session: AsyncSession, transfer_id: int, actor: Actor, *, trace_id: Optional[str] = None
    ) -> Transfer:
        require_role(actor, MOVE_ROLES, action="receive transfers")
        async with unit_of_work(session):
            doc = await load_doc(session, Transfer, transfer_id, for_update=True)
            require_status(doc, [TransferStatus.IN_TRANSIT], action="receive")

            for ln in doc.lines:
                await self.stock.apply_movement(
                    session,
                    product_id=ln.product_id,
                    warehouse_id=doc.target_warehouse_id,
                    location_id=ln.target_location_id,
                    delta=int(ln.quantity),
                    movement_type=MovementType.TRANSFER,
                    source_doc_type=DocType.TRANSFER.value,
                    source_doc_id=doc.id,
                    source_line_no=ln.line_no,
                    leg=MovementLeg.DESTINATION,
                    counterparty_warehouse_id=doc.source_warehouse_id,
                    counterparty_location_id=ln.source_location_id,
                    actor_id=actor.user_id,
                    trace_id=trace_id,
                )

            doc.status = TransferStatus.DONE.value
            doc.received_by = actor.user_id
            doc.received_at = utcnow()
            await session.flush()

        log.info("transfer received: %s into wh=%s by user=%s", doc.number, doc.target_warehouse_id, actor.user_id)
        return doc

    async def execute(
        self, session: AsyncSession, transfer_id: int, actor: Actor, *, trace_id: Optional[str] = None
    ) -> Transfer:
        """dispatch + receive; a failed receive leaves the transfer IN_TRANSIT (PartialTransfer)."""
        doc = await self.dispatch(session, transfer_id, actor, trace_id=trace_id)
        doc_id, number = doc.id, doc.number
        try:
            return await self.receive(session, doc_id, actor, trace_id=trace_id)
        except (StockError, SQLAlchemyError) as e:
            PARTIAL.labels(doc_type=DocType.TRANSFER.value).inc()
            log.error("transfer %s left IN_TRANSIT: receive failed: %s", number, e)
            raise PartialTransfer(
                f"transfer {number} left the source warehouse but was not received; run receive",
                doc_type=DocType.TRANSFER.value,
                doc_id=doc_id,
            ) from e

    @staticmethod
    async def get(session: AsyncSession, transfer_id: int) -> Transfer:
        return await load_doc(session, Transfer, transfer_id)

    @staticmethod
    async def list(
        session: AsyncSession,
        *,
        status: Optional[TransferStatus] = None,
        warehouse_id: Optional[int] = None,
    ) -> List[Transfer]:
        stmt = select(Transfer).order_by(Transfer.id.desc())
        if status is not None:
            stmt = stmt.where(Transfer.status == TransferStatus(status).value)
        if warehouse_id is not None:
            stmt = stmt.where(
                (Transfer.source_warehouse_id == int(warehouse_id))
                | (Transfer.target_warehouse_id == int(warehouse_id))
            )
        return list((await session.execute(stmt)).scalars().all())
