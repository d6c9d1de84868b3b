# stockledger/services/requisition_service.py
from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stockledger.core.tx import unit_of_work
from stockledger.db.base import utcnow
from stockledger.models.delivery import Delivery
from stockledger.models.enums import DocType, RequisitionStatus, Role
from stockledger.models.requisition import Requisition, RequisitionLine
from stockledger.schemas.requisition import RequisitionCreateIn, RequisitionLineIn, RequisitionUpdateIn
from stockledger.services.access_guard import Actor, require_role, require_warehouse
from stockledger.services.delivery_service import DeliveryService
from stockledger.services.doc_guards import check_lines, load_doc, require_status
from stockledger.services.errors import ValidationError
from stockledger.services.master_data import ensure_products, ensure_warehouse
from stockledger.services.numbering_service import NumberingService

log = logging.getLogger("stockledger.requisitions")

APPROVE_ROLES = (Role.ADMIN, Role.MANAGER)

# action -> statuses it may start from; anything else is InvalidState
TRANSITIONS = {
    "edit": (RequisitionStatus.DRAFT,),
    "submit": (RequisitionStatus.DRAFT,),
    "approve": (RequisitionStatus.SUBMITTED,),
    "reject": (RequisitionStatus.SUBMITTED,),
}


class RequisitionService:
    """
    Requisition workflow: DRAFT -> SUBMITTED -> APPROVED | REJECTED.

    Never moves stock. Approval pins the final source warehouse and creates
    the downstream Delivery (WAITING) that will move the goods.
    """

    def __init__(self, deliveries: Optional[DeliveryService] = None):
        self.deliveries = deliveries or DeliveryService()

    @staticmethod
    async def _check_lines(session: AsyncSession, lines: List[RequisitionLineIn]) -> None:
        check_lines(lines, qty_attr="quantity_requested")
        await ensure_products(session, [ln.product_id for ln in lines])

    @staticmethod
    def _build_lines(lines: List[RequisitionLineIn]) -> List[RequisitionLine]:
        return [
            RequisitionLine(
                line_no=i,
                product_id=int(ln.product_id),
                quantity_requested=int(ln.quantity_requested),
                needed_by_date=ln.needed_by_date,
            )
            for i, ln in enumerate(lines, start=1)
        ]

    async def create(self, session: AsyncSession, actor: Actor, payload: RequisitionCreateIn) -> Requisition:
        async with unit_of_work(session):
            wh = await ensure_warehouse(session, payload.requesting_warehouse_id)
            if payload.suggested_source_warehouse_id is not None:
                await ensure_warehouse(session, payload.suggested_source_warehouse_id)
            await self._check_lines(session, payload.lines)

            doc = Requisition(
                number=await NumberingService.next_number(session, DocType.REQUISITION),
                requesting_warehouse_id=wh.id,
                suggested_source_warehouse_id=payload.suggested_source_warehouse_id,
                status=RequisitionStatus.DRAFT.value,
                created_by=actor.user_id,
                lines=self._build_lines(payload.lines),
            )
            session.add(doc)
            await session.flush()

        log.info("requisition created: %s for wh=%s by user=%s", doc.number, wh.id, actor.user_id)
        return doc

    async def update(
        self, session: AsyncSession, requisition_id: int, actor: Actor, payload: RequisitionUpdateIn
    ) -> Requisition:
        async with unit_of_work(session):
            doc = await load_doc(session, Requisition, requisition_id, for_update=True)
            require_status(doc, TRANSITIONS["edit"], action="edit")

            fields = payload.model_dump(exclude_unset=True)
            if fields.get("requesting_warehouse_id") is not None:
                doc.requesting_warehouse_id = (await ensure_warehouse(session, fields["requesting_warehouse_id"])).id
            if "suggested_source_warehouse_id" in fields:
                sid = fields["suggested_source_warehouse_id"]
                if sid is not None:
                    await ensure_warehouse(session, sid)
                doc.suggested_source_warehouse_id = sid
            if payload.lines is not None:
                await self._check_lines(session, payload.lines)
                doc.lines = self._build_lines(payload.lines)
            await session.flush()

        log.info("requisition updated: %s by user=%s", doc.number, actor.user_id)
        return doc

    async def submit(self, session: AsyncSession, requisition_id: int, actor: Actor) -> Requisition:
        async with unit_of_work(session):
            doc = await load_doc(session, Requisition, requisition_id, for_update=True)
            require_status(doc, TRANSITIONS["submit"], action="submit")
            check_lines(doc.lines, qty_attr="quantity_requested")
            doc.status = RequisitionStatus.SUBMITTED.value
            doc.submitted_at = utcnow()
            await session.flush()
        log.info("requisition %s -> SUBMITTED by user=%s", doc.number, actor.user_id)
        return doc

    async def approve(
        self,
        session: AsyncSession,
        requisition_id: int,
        actor: Actor,
        *,
        final_source_warehouse_id: int,
    ) -> Tuple[Requisition, Delivery]:
        require_role(actor, APPROVE_ROLES, action="approve requisitions")

        async with unit_of_work(session):
            doc = await load_doc(session, Requisition, requisition_id, for_update=True)
            require_status(doc, TRANSITIONS["approve"], action="approve")

            if final_source_warehouse_id is None:
                raise ValidationError("final_source_warehouse_id is required")
            src = await ensure_warehouse(session, final_source_warehouse_id)
            if src.id == doc.requesting_warehouse_id:
                raise ValidationError("source warehouse must differ from the requesting warehouse")
            # managers approve only for warehouses they run
            require_warehouse(actor, src.id, action="approve requisitions sourced from it")

            doc.final_source_warehouse_id = src.id
            doc.status = RequisitionStatus.APPROVED.value
            doc.approved_by = actor.user_id
            doc.approved_at = utcnow()
            await session.flush()

            delivery = await self.deliveries.create_for_requisition(session, actor, doc)

        log.info(
            "requisition %s -> APPROVED (source wh=%s, delivery %s) by user=%s",
            doc.number,
            src.id,
            delivery.number,
            actor.user_id,
        )
        return doc, delivery

    async def reject(self, session: AsyncSession, requisition_id: int, actor: Actor, *, reason: str) -> Requisition:
        require_role(actor, APPROVE_ROLES, action="reject requisitions")
        async with unit_of_work(session):
            doc = await load_doc(session, Requisition, requisition_id, for_update=True)
            require_status(doc, TRANSITIONS["reject"], action="reject")
            if not isinstance(reason, str) or not reason.strip():
                raise ValidationError("a rejection reason is required")
            doc.status = RequisitionStatus.REJECTED.value
            doc.rejected_by = actor.user_id
            doc.rejected_at = utcnow()
            doc.rejected_reason = reason.strip()
            await session.flush()
        log.info("requisition %s -> REJECTED by user=%s", doc.number, actor.user_id)
        return doc

    @staticmethod
    async def get(session: AsyncSession, requisition_id: int) -> Requisition:
        return await load_doc(session, Requisition, requisition_id)

    @staticmethod
    async def list(
        session: AsyncSession,
        *,
        status: Optional[RequisitionStatus] = None,
        warehouse_id: Optional[int] = None,
    ) -> List[Requisition]:
        stmt = select(Requisition).order_by(Requisition.id.desc())
        if status is not None:
            stmt = stmt.where(Requisition.status == RequisitionStatus(status).value)
        if warehouse_id is not None:
            stmt = stmt.where(Requisition.requesting_warehouse_id == int(warehouse_id))
        return list((await session.execute(stmt)).scalars().all())
