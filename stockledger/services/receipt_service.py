# stockledger/services/receipt_service.py
from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stockledger.core.tx import unit_of_work
from stockledger.db.base import utcnow
from stockledger.models.enums import DocType, MovementLeg, MovementType, ReceiptStatus, Role
from stockledger.models.receipt import Receipt, ReceiptLine
from stockledger.schemas.receipt import ReceiptCreateIn, ReceiptLineIn, ReceiptUpdateIn
from stockledger.services.access_guard import Actor, require_role
from stockledger.services.doc_guards import check_lines, load_doc, require_status
from stockledger.services.errors import ValidationError
from stockledger.services.master_data import ensure_location, ensure_products, ensure_warehouse
from stockledger.services.numbering_service import NumberingService
from stockledger.services.stock_service import StockService

log = logging.getLogger("stockledger.receipts")

VALIDATE_ROLES = (Role.ADMIN, Role.OPERATOR)


class ReceiptService:
    """
    Receipt workflow: DRAFT -> WAITING -> DONE.

    validate() is the only producer of RECEIPT movements. Lines, status and
    audit fields are committed together; a second validate() fails with
    InvalidState and touches no stock.
    """

    def __init__(self, stock: Optional[StockService] = None):
        self.stock = stock or StockService()

    @staticmethod
    async def _check_lines(session: AsyncSession, warehouse_id: int, lines: List[ReceiptLineIn]) -> None:
        check_lines(lines)
        await ensure_products(session, [ln.product_id for ln in lines])
        for ln in lines:
            await ensure_location(session, ln.location_id, warehouse_id)

    @staticmethod
    def _build_lines(lines: List[ReceiptLineIn]) -> List[ReceiptLine]:
        return [
            ReceiptLine(
                line_no=i,
                product_id=int(ln.product_id),
                location_id=ln.location_id,
                quantity=int(ln.quantity),
            )
            for i, ln in enumerate(lines, start=1)
        ]

    async def create(self, session: AsyncSession, actor: Actor, payload: ReceiptCreateIn) -> Receipt:
        if payload.initial_status not in (ReceiptStatus.DRAFT, ReceiptStatus.WAITING):
            raise ValidationError(f"receipt cannot be created as {payload.initial_status.value}")

        async with unit_of_work(session):
            wh = await ensure_warehouse(session, payload.warehouse_id)
            await self._check_lines(session, wh.id, payload.lines)

            number = await NumberingService.next_number(session, DocType.RECEIPT, warehouse_code=wh.code)
            doc = Receipt(
                number=number,
                warehouse_id=wh.id,
                supplier_name=payload.supplier_name,
                reference=payload.reference,
                notes=payload.notes,
                status=payload.initial_status.value,
                created_by=actor.user_id,
                lines=self._build_lines(payload.lines),
            )
            session.add(doc)
            await session.flush()

        log.info("receipt created: %s (%d lines) by user=%s", doc.number, len(doc.lines), actor.user_id)
        return doc

    async def update(
        self, session: AsyncSession, receipt_id: int, actor: Actor, payload: ReceiptUpdateIn
    ) -> Receipt:
        async with unit_of_work(session):
            doc = await load_doc(session, Receipt, receipt_id, for_update=True)
            require_status(doc, [ReceiptStatus.DRAFT], action="edit")

            warehouse_id = doc.warehouse_id
            if payload.warehouse_id is not None and payload.warehouse_id != doc.warehouse_id:
                warehouse_id = (await ensure_warehouse(session, payload.warehouse_id)).id

            if payload.lines is not None:
                await self._check_lines(session, warehouse_id, payload.lines)
                doc.lines = self._build_lines(payload.lines)
            elif warehouse_id != doc.warehouse_id:
                # kept lines must still fit the new warehouse
                for ln in doc.lines:
                    await ensure_location(session, ln.location_id, warehouse_id)

            doc.warehouse_id = warehouse_id
            for field in ("supplier_name", "reference", "notes"):
                val = getattr(payload, field)
                if val is not None:
                    setattr(doc, field, val)
            await session.flush()

        log.info("receipt updated: %s by user=%s", doc.number, actor.user_id)
        return doc

    async def mark_waiting(self, session: AsyncSession, receipt_id: int, actor: Actor) -> Receipt:
        async with unit_of_work(session):
            doc = await load_doc(session, Receipt, receipt_id, for_update=True)
            require_status(doc, [ReceiptStatus.DRAFT], action="mark waiting")
            check_lines(doc.lines)
            doc.status = ReceiptStatus.WAITING.value
            await session.flush()
        log.info("receipt %s -> WAITING by user=%s", doc.number, actor.user_id)
        return doc

    async def validate(
        self, session: AsyncSession, receipt_id: int, actor: Actor, *, trace_id: Optional[str] = None
    ) -> Receipt:
        require_role(actor, VALIDATE_ROLES, action="validate receipts")

        async with unit_of_work(session):
            doc = await load_doc(session, Receipt, receipt_id, for_update=True)
            require_status(doc, [ReceiptStatus.DRAFT, ReceiptStatus.WAITING], action="validate")
            check_lines(doc.lines)

            for ln in doc.lines:
                await self.stock.apply_movement(
                    session,
                    product_id=ln.product_id,
                    warehouse_id=doc.warehouse_id,
                    location_id=ln.location_id,
                    delta=int(ln.quantity),
                    movement_type=MovementType.RECEIPT,
                    source_doc_type=DocType.RECEIPT.value,
                    source_doc_id=doc.id,
                    source_line_no=ln.line_no,
                    leg=MovementLeg.SINGLE,
                    actor_id=actor.user_id,
                    trace_id=trace_id,
                )

            doc.status = ReceiptStatus.DONE.value
            doc.validated_by = actor.user_id
            doc.validated_at = utcnow()
            await session.flush()

        log.info(
            "receipt validated: %s +%d units into wh=%s by user=%s",
            doc.number,
            doc.total_quantity,
            doc.warehouse_id,
            actor.user_id,
        )
        return doc

    @staticmethod
    async def get(session: AsyncSession, receipt_id: int) -> Receipt:
        return await load_doc(session, Receipt, receipt_id)

    @staticmethod
    async def list(
        session: AsyncSession,
        *,
        status: Optional[ReceiptStatus] = None,
        warehouse_id: Optional[int] = None,
    ) -> List[Receipt]:
        stmt = select(Receipt).order_by(Receipt.id.desc())
        if status is not None:
            stmt = stmt.where(Receipt.status == ReceiptStatus(status).value)
        if warehouse_id is not None:
            stmt = stmt.where(Receipt.warehouse_id == int(warehouse_id))
        return list((await session.execute(stmt)).scalars().all())
