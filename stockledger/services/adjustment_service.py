# stockledger/services/adjustment_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stockledger.core.config import get_settings
from stockledger.models.adjustment import Adjustment
from stockledger.models.enums import AdjustmentReason, DocType, Role
from stockledger.models.stock_movement import StockMovement
from stockledger.services.access_guard import Actor, require_warehouse
from stockledger.services.doc_guards import load_doc
from stockledger.services.errors import ValidationError
from stockledger.services.master_data import ensure_location, ensure_product, ensure_warehouse
from stockledger.services.numbering_service import NumberingService
from stockledger.services.stock_service import StockService

log = logging.getLogger("stockledger.adjustments")


@dataclass(frozen=True)
class AdjustmentResult:
    adjustment: Adjustment
    movement: Optional[StockMovement]


class AdjustmentService:
    """
    Absolute stock correction (counts, damage, loss).

    The old-quantity read, the Adjustment document and the ADJUSTMENT
    movement are one compare-and-swap attempt in the engine, retried on a
    concurrent change; a stale old_quantity can never be recorded.
    A zero difference still records the document (audit of a count) but no
    movement.
    """

    def __init__(self, stock: Optional[StockService] = None):
        self.stock = stock or StockService()

    async def apply(
        self,
        session: AsyncSession,
        *,
        product_id: int,
        warehouse_id: int,
        location_id: Optional[int],
        new_quantity: int,
        reason: AdjustmentReason | str,
        actor: Actor,
        remarks: Optional[str] = None,
        trace_id: Optional[str] = None,
    ) -> AdjustmentResult:
        if actor.role == Role.OPERATOR:
            require_warehouse(actor, warehouse_id, action="adjust stock")
        if isinstance(new_quantity, bool) or not isinstance(new_quantity, int):
            raise ValidationError(f"new_quantity must be an integer, got {new_quantity!r}")
        if new_quantity < 0 and not get_settings().STOCK_ALLOW_NEGATIVE:
            raise ValidationError(
                "new_quantity must not be negative",
                details=[{"type": "validation", "path": "new_quantity", "reason": "negative"}],
            )
        try:
            reason_val = AdjustmentReason(reason).value
        except ValueError:
            raise ValidationError(
                f"unknown adjustment reason {reason!r}",
                details=[{"type": "validation", "path": "reason", "reason": "unknown"}],
            ) from None

        await ensure_product(session, product_id)
        await ensure_warehouse(session, warehouse_id)
        await ensure_location(session, location_id, warehouse_id)

        holder: dict = {}

        async def _record(old_qty: int, new_qty: int, diff: int) -> int:
            doc = Adjustment(
                number=await NumberingService.next_number(session, DocType.ADJUSTMENT),
                product_id=int(product_id),
                warehouse_id=int(warehouse_id),
                location_id=location_id,
                old_quantity=old_qty,
                new_quantity=new_qty,
                difference=diff,
                reason=reason_val,
                remarks=remarks,
                created_by=actor.user_id,
            )
            session.add(doc)
            await session.flush()
            holder["doc"] = doc
            return int(doc.id)

        res = await self.stock.set_quantity(
            session,
            product_id=product_id,
            warehouse_id=warehouse_id,
            location_id=location_id,
            new_quantity=new_quantity,
            actor_id=actor.user_id,
            source_doc_type=DocType.ADJUSTMENT.value,
            on_swap=_record,
            trace_id=trace_id,
        )
        if session.in_transaction():
            await session.commit()

        doc: Adjustment = holder["doc"]
        log.info(
            "adjustment %s: product=%s wh=%s loc=%s %d -> %d (%+d) reason=%s by user=%s",
            doc.number,
            product_id,
            warehouse_id,
            location_id,
            res.old_quantity,
            res.new_quantity,
            res.difference,
            reason_val,
            actor.user_id,
        )
        return AdjustmentResult(adjustment=doc, movement=res.movement)

    @staticmethod
    async def get(session: AsyncSession, adjustment_id: int) -> Adjustment:
        return await load_doc(session, Adjustment, adjustment_id)

    @staticmethod
    async def movement_for(session: AsyncSession, adjustment_id: int) -> Optional[StockMovement]:
        stmt = select(StockMovement).where(
            StockMovement.source_doc_type == DocType.ADJUSTMENT.value,
            StockMovement.source_doc_id == int(adjustment_id),
        )
        return (await session.execute(stmt)).scalars().first()

    @staticmethod
    async def list(
        session: AsyncSession,
        *,
        warehouse_id: Optional[int] = None,
        product_id: Optional[int] = None,
    ) -> List[Adjustment]:
        stmt = select(Adjustment).order_by(Adjustment.id.desc())
        if warehouse_id is not None:
            stmt = stmt.where(Adjustment.warehouse_id == int(warehouse_id))
        if product_id is not None:
            stmt = stmt.where(Adjustment.product_id == int(product_id))
        return list((await session.execute(stmt)).scalars().all())
