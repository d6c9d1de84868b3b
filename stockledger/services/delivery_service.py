# stockledger/services/delivery_service.py
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
from stockledger.models.delivery import Delivery, DeliveryLine
from stockledger.models.enums import (
    DeliveryStatus,
    DocType,
    MovementLeg,
    MovementType,
    Role,
    TransitStatus,
)
from stockledger.models.requisition import Requisition
from stockledger.schemas.delivery import DeliveryCreateIn, DeliveryLineIn, DeliveryUpdateIn
from stockledger.services.access_guard import Actor, require_role, require_warehouse
from stockledger.services.doc_guards import check_lines, check_not_negative, load_doc, require_status
from stockledger.services.errors import InvalidState, PartialTransfer, StockError, ValidationError
from stockledger.services.master_data import ensure_location, ensure_products, ensure_warehouse
from stockledger.services.numbering_service import NumberingService
from stockledger.services.stock_service import StockService
from stockledger.services.stock_service_apply import MovementResult

log = logging.getLogger("stockledger.deliveries")

CREATE_ROLES = (Role.ADMIN, Role.MANAGER)
VALIDATE_ROLES = (Role.ADMIN, Role.OPERATOR)
SUPERVISE_ROLES = (Role.ADMIN, Role.MANAGER)

_VALIDATABLE = (DeliveryStatus.DRAFT, DeliveryStatus.WAITING, DeliveryStatus.READY)


class DeliveryService:
    """
    Delivery workflow: DRAFT -> WAITING -> READY -> DONE, REJECTED from
    WAITING/READY.

    Validation policy: stock moves when the source side validates.

    - step 1 (one commit): DELIVERY movements out of the source warehouse,
      status DONE; two-sided deliveries are then IN_TRANSIT
    - step 2 (second commit, target only): matching DELIVERY movements into
      the target warehouse, transit_status ARRIVED

    A failure in step 2 leaves DONE + IN_TRANSIT behind and raises
    PartialTransfer; complete_transit() finishes it. accept() is a marker for
    the receiving side and never moves stock.
    """

    def __init__(self, stock: Optional[StockService] = None):
        self.stock = stock or StockService()

    # ---------- helpers ----------

    @staticmethod
    async def _check_lines(
        session: AsyncSession,
        warehouse_id: int,
        target_warehouse_id: Optional[int],
        lines: List[DeliveryLineIn],
    ) -> None:
        check_lines(lines)
        await ensure_products(session, [ln.product_id for ln in lines])
        for i, ln in enumerate(lines):
            await ensure_location(session, ln.from_location_id, warehouse_id)
            if ln.to_location_id is not None:
                if target_warehouse_id is None:
                    raise ValidationError(
                        "to_location_id requires a target warehouse",
                        details=[{"type": "validation", "path": f"lines[{i}].to_location_id", "reason": "no_target"}],
                    )
                await ensure_location(session, ln.to_location_id, target_warehouse_id)

    @staticmethod
    def _build_lines(lines: List[DeliveryLineIn]) -> List[DeliveryLine]:
        return [
            DeliveryLine(
                line_no=i,
                product_id=int(ln.product_id),
                from_location_id=ln.from_location_id,
                to_location_id=ln.to_location_id,
                quantity=int(ln.quantity),
            )
            for i, ln in enumerate(lines, start=1)
        ]

    @staticmethod
    async def _check_target(session: AsyncSession, warehouse_id: int, target_warehouse_id: Optional[int]) -> None:
        if target_warehouse_id is None:
            return
        if int(target_warehouse_id) == int(warehouse_id):
            raise ValidationError("target warehouse must differ from the source warehouse")
        await ensure_warehouse(session, target_warehouse_id)

    # ---------- create / edit ----------

    async def create(self, session: AsyncSession, actor: Actor, payload: DeliveryCreateIn) -> Delivery:
        require_role(actor, CREATE_ROLES, action="create deliveries")
        if payload.initial_status not in (DeliveryStatus.DRAFT, DeliveryStatus.WAITING):
            raise ValidationError(f"delivery cannot be created as {payload.initial_status.value}")

        async with unit_of_work(session):
            wh = await ensure_warehouse(session, payload.warehouse_id)
            await self._check_target(session, wh.id, payload.target_warehouse_id)
            await self._check_lines(session, wh.id, payload.target_warehouse_id, payload.lines)

            number = await NumberingService.next_number(session, DocType.DELIVERY, warehouse_code=wh.code)
            doc = Delivery(
                number=number,
                warehouse_id=wh.id,
                target_warehouse_id=payload.target_warehouse_id,
                customer_name=payload.customer_name,
                delivery_address=payload.delivery_address,
                reference=payload.reference,
                notes=payload.notes,
                schedule_date=payload.schedule_date,
                responsible=payload.responsible,
                status=payload.initial_status.value,
                transit_status=TransitStatus.NONE.value,
                created_by=actor.user_id,
                lines=self._build_lines(payload.lines),
            )
            session.add(doc)
            await session.flush()

        log.info("delivery created: %s (%d lines) by user=%s", doc.number, len(doc.lines), actor.user_id)
        return doc

    async def create_for_requisition(
        self, session: AsyncSession, actor: Actor, req: Requisition
    ) -> Delivery:
        """
        Downstream obligation of an approved requisition: WAITING delivery
        from the final source to the requesting warehouse. Runs inside the
        approval's unit of work; no movements.
        """
        src = await ensure_warehouse(session, req.final_source_warehouse_id)
        number = await NumberingService.next_number(session, DocType.DELIVERY, warehouse_code=src.code)
        doc = Delivery(
            number=number,
            warehouse_id=src.id,
            target_warehouse_id=req.requesting_warehouse_id,
            requisition_id=req.id,
            reference=req.number,
            status=DeliveryStatus.WAITING.value,
            transit_status=TransitStatus.NONE.value,
            created_by=actor.user_id,
            lines=[
                DeliveryLine(line_no=ln.line_no, product_id=ln.product_id, quantity=int(ln.quantity_requested))
                for ln in req.lines
            ],
        )
        session.add(doc)
        await session.flush()
        return doc

    async def update(
        self, session: AsyncSession, delivery_id: int, actor: Actor, payload: DeliveryUpdateIn
    ) -> Delivery:
        require_role(actor, CREATE_ROLES, action="edit deliveries")
        async with unit_of_work(session):
            doc = await load_doc(session, Delivery, delivery_id, for_update=True)
            require_status(doc, [DeliveryStatus.DRAFT], action="edit")

            fields = payload.model_dump(exclude_unset=True)
            warehouse_id = fields.get("warehouse_id") or doc.warehouse_id
            target_id = fields["target_warehouse_id"] if "target_warehouse_id" in fields else doc.target_warehouse_id
            await ensure_warehouse(session, warehouse_id)
            await self._check_target(session, warehouse_id, target_id)

            if payload.lines is not None:
                await self._check_lines(session, warehouse_id, target_id, payload.lines)
                doc.lines = self._build_lines(payload.lines)
            else:
                for ln in doc.lines:
                    await ensure_location(session, ln.from_location_id, warehouse_id)
                    if ln.to_location_id is not None:
                        if target_id is None:
                            raise ValidationError(f"line {ln.line_no} has a destination bin but no target warehouse")
                        await ensure_location(session, ln.to_location_id, target_id)

            doc.warehouse_id = warehouse_id
            doc.target_warehouse_id = target_id
            for field in ("customer_name", "delivery_address", "reference", "notes", "schedule_date", "responsible"):
                if field in fields:
                    setattr(doc, field, fields[field])
            await session.flush()

        log.info("delivery updated: %s by user=%s", doc.number, actor.user_id)
        return doc

    # ---------- status transitions without stock ----------

    async def _transition(
        self, session: AsyncSession, delivery_id: int, *, allowed, to: DeliveryStatus, action: str
    ) -> Delivery:
        async with unit_of_work(session):
            doc = await load_doc(session, Delivery, delivery_id, for_update=True)
            require_status(doc, allowed, action=action)
            check_lines(doc.lines)
            doc.status = to.value
            await session.flush()
        return doc

    async def mark_waiting(self, session: AsyncSession, delivery_id: int, actor: Actor) -> Delivery:
        doc = await self._transition(
            session, delivery_id, allowed=[DeliveryStatus.DRAFT], to=DeliveryStatus.WAITING, action="mark waiting"
        )
        log.info("delivery %s -> WAITING by user=%s", doc.number, actor.user_id)
        return doc

    async def mark_ready(self, session: AsyncSession, delivery_id: int, actor: Actor) -> Delivery:
        doc = await self._transition(
            session, delivery_id, allowed=[DeliveryStatus.WAITING], to=DeliveryStatus.READY, action="mark ready"
        )
        log.info("delivery %s -> READY by user=%s", doc.number, actor.user_id)
        return doc

    async def reject(self, session: AsyncSession, delivery_id: int, actor: Actor, reason: str) -> Delivery:
        require_role(actor, SUPERVISE_ROLES, action="reject deliveries")
        if not reason or not reason.strip():
            raise ValidationError("a rejection reason is required")
        async with unit_of_work(session):
            doc = await load_doc(session, Delivery, delivery_id, for_update=True)
            require_status(doc, [DeliveryStatus.WAITING, DeliveryStatus.READY], action="reject")
            doc.status = DeliveryStatus.REJECTED.value
            doc.rejected_reason = reason.strip()
            await session.flush()
        log.info("delivery %s -> REJECTED by user=%s", doc.number, actor.user_id)
        return doc

    # ---------- validation (stock) ----------

    async def validate(
        self, session: AsyncSession, delivery_id: int, actor: Actor, *, trace_id: Optional[str] = None
    ) -> Delivery:
        require_role(actor, VALIDATE_ROLES, action="validate deliveries")
        allow_negative = get_settings().STOCK_ALLOW_NEGATIVE

        # step 1: source side
        async with unit_of_work(session):
            doc = await load_doc(session, Delivery, delivery_id, for_update=True)
            require_status(doc, _VALIDATABLE, action="validate")
            check_lines(doc.lines)
            two_sided = doc.is_two_sided

            results: List[MovementResult] = []
            for ln in doc.lines:
                r = await self.stock.apply_movement(
                    session,
                    product_id=ln.product_id,
                    warehouse_id=doc.warehouse_id,
                    location_id=ln.from_location_id,
                    delta=-int(ln.quantity),
                    movement_type=MovementType.DELIVERY,
                    source_doc_type=DocType.DELIVERY.value,
                    source_doc_id=doc.id,
                    source_line_no=ln.line_no,
                    leg=MovementLeg.SOURCE if two_sided else MovementLeg.SINGLE,
                    counterparty_warehouse_id=doc.target_warehouse_id,
                    counterparty_location_id=ln.to_location_id,
                    actor_id=actor.user_id,
                    trace_id=trace_id,
                )
                results.append(r)
            try:
                check_not_negative(results, allow_negative=allow_negative)
            except StockError:
                log.warning("delivery %s refused: insufficient stock in wh=%s", doc.number, doc.warehouse_id)
                raise

            doc.status = DeliveryStatus.DONE.value
            doc.validated_by = actor.user_id
            doc.validated_at = utcnow()
            if two_sided:
                doc.transit_status = TransitStatus.IN_TRANSIT.value
            await session.flush()

        log.info("delivery validated (source side): %s wh=%s by user=%s", doc.number, doc.warehouse_id, actor.user_id)
        if not two_sided:
            return doc

        # step 2: destination side
        doc_id, number = doc.id, doc.number
        try:
            return await self._arrive(session, doc_id, actor, trace_id=trace_id)
        except (StockError, SQLAlchemyError) as e:
            PARTIAL.labels(doc_type=DocType.DELIVERY.value).inc()
            log.error("delivery %s left IN_TRANSIT: destination side failed: %s", number, e)
            raise PartialTransfer(
                f"delivery {number} left the source warehouse but did not arrive; run complete-transit",
                doc_type=DocType.DELIVERY.value,
                doc_id=doc_id,
            ) from e

    async def _arrive(
        self, session: AsyncSession, delivery_id: int, actor: Actor, *, trace_id: Optional[str] = None
    ) -> Delivery:
        async with unit_of_work(session):
            doc = await load_doc(session, Delivery, delivery_id, for_update=True)
            if doc.status != DeliveryStatus.DONE.value or doc.transit_status != TransitStatus.IN_TRANSIT.value:
                raise InvalidState(
                    f"delivery {doc.number} is not in transit (status={doc.status}, transit={doc.transit_status})"
                )
            for ln in doc.lines:
                await self.stock.apply_movement(
                    session,
                    product_id=ln.product_id,
                    warehouse_id=doc.target_warehouse_id,
                    location_id=ln.to_location_id,
                    delta=int(ln.quantity),
                    movement_type=MovementType.DELIVERY,
                    source_doc_type=DocType.DELIVERY.value,
                    source_doc_id=doc.id,
                    source_line_no=ln.line_no,
                    leg=MovementLeg.DESTINATION,
                    counterparty_warehouse_id=doc.warehouse_id,
                    counterparty_location_id=ln.from_location_id,
                    actor_id=actor.user_id,
                    trace_id=trace_id,
                )
            doc.transit_status = TransitStatus.ARRIVED.value
            await session.flush()

        log.info("delivery arrived: %s wh=%s", doc.number, doc.target_warehouse_id)
        return doc

    async def complete_transit(
        self, session: AsyncSession, delivery_id: int, actor: Actor, *, trace_id: Optional[str] = None
    ) -> Delivery:
        """Manual completion of a partial delivery; destination legs already written are skipped."""
        require_role(actor, SUPERVISE_ROLES, action="complete deliveries in transit")
        doc = await self._arrive(session, delivery_id, actor, trace_id=trace_id)
        log.info("delivery %s transit completed manually by user=%s", doc.number, actor.user_id)
        return doc

    async def accept(self, session: AsyncSession, delivery_id: int, actor: Actor) -> Delivery:
        async with unit_of_work(session):
            doc = await load_doc(session, Delivery, delivery_id, for_update=True)
            if not doc.is_two_sided:
                raise InvalidState(f"delivery {doc.number} has no receiving warehouse to accept it")
            require_warehouse(actor, doc.target_warehouse_id, action="accept deliveries")
            require_status(doc, [DeliveryStatus.DONE], action="accept")
            if doc.transit_status != TransitStatus.ARRIVED.value:
                raise InvalidState(f"delivery {doc.number} has not arrived (transit={doc.transit_status})")
            if doc.accepted_at is not None:
                raise InvalidState(f"delivery {doc.number} was already accepted")
            doc.accepted_by = actor.user_id
            doc.accepted_at = utcnow()
            await session.flush()
        log.info("delivery accepted: %s by user=%s", doc.number, actor.user_id)
        return doc

    # ---------- read ----------

    @staticmethod
    async def get(session: AsyncSession, delivery_id: int) -> Delivery:
        return await load_doc(session, Delivery, delivery_id)

    @staticmethod
    async def list(
        session: AsyncSession,
        *,
        status: Optional[DeliveryStatus] = None,
        warehouse_id: Optional[int] = None,
        transit_status: Optional[TransitStatus] = None,
    ) -> List[Delivery]:
        stmt = select(Delivery).order_by(Delivery.id.desc())
        if status is not None:
            stmt = stmt.where(Delivery.status == DeliveryStatus(status).value)
        if transit_status is not None:
            stmt = stmt.where(Delivery.transit_status == TransitStatus(transit_status).value)
        if warehouse_id is not None:
            stmt = stmt.where(
                (Delivery.warehouse_id == int(warehouse_id)) | (Delivery.target_warehouse_id == int(warehouse_id))
            )
        return list((await session.execute(stmt)).scalars().all())
