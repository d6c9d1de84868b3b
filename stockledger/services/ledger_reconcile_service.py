# stockledger/services/ledger_reconcile_service.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from stockledger.models.delivery import Delivery
from stockledger.models.enums import DeliveryStatus, MovementLeg, TransferStatus, TransitStatus
from stockledger.models.stock_level import NO_LOCATION_KEY, StockLevel
from stockledger.models.stock_movement import StockMovement
from stockledger.models.transfer import Transfer


class LedgerReconcileService:
    """
    Reconciliation read paths.

    - level_mismatches: keys whose stored quantity differs from Σ delta
    - in_flight: two-sided documents whose source side committed but whose
      destination side did not (yet)
    - unmatched_source_legs: SOURCE movements without their DESTINATION leg
    """

    @staticmethod
    async def level_mismatches(
        session: AsyncSession, *, warehouse_id: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        loc_key = func.coalesce(StockMovement.location_id, NO_LOCATION_KEY)
        sums = (
            select(
                StockMovement.product_id.label("product_id"),
                StockMovement.warehouse_id.label("warehouse_id"),
                loc_key.label("location_key"),
                func.sum(StockMovement.delta).label("ledger_qty"),
            )
            .group_by(StockMovement.product_id, StockMovement.warehouse_id, loc_key)
            .subquery()
        )

        # levels vs ledger (levels with no movements must be 0)
        stmt = select(
            StockLevel.product_id,
            StockLevel.warehouse_id,
            StockLevel.location_id,
            StockLevel.quantity,
            func.coalesce(sums.c.ledger_qty, 0),
        ).outerjoin(
            sums,
            and_(
                sums.c.product_id == StockLevel.product_id,
                sums.c.warehouse_id == StockLevel.warehouse_id,
                sums.c.location_key == StockLevel.location_key,
            ),
        )
        if warehouse_id is not None:
            stmt = stmt.where(StockLevel.warehouse_id == int(warehouse_id))

        out: List[Dict[str, Any]] = []
        for pid, wid, lid, qty, ledger_qty in (await session.execute(stmt)).all():
            if int(qty) != int(ledger_qty):
                out.append(
                    {
                        "product_id": int(pid),
                        "warehouse_id": int(wid),
                        "location_id": lid,
                        "stored_quantity": int(qty),
                        "ledger_quantity": int(ledger_qty),
                        "drift": int(qty) - int(ledger_qty),
                    }
                )

        # movements whose key has no level row at all
        orphan = (
            select(sums.c.product_id, sums.c.warehouse_id, sums.c.location_key, sums.c.ledger_qty)
            .outerjoin(
                StockLevel,
                and_(
                    sums.c.product_id == StockLevel.product_id,
                    sums.c.warehouse_id == StockLevel.warehouse_id,
                    sums.c.location_key == StockLevel.location_key,
                ),
            )
            .where(StockLevel.id.is_(None))
        )
        if warehouse_id is not None:
            orphan = orphan.where(sums.c.warehouse_id == int(warehouse_id))
        for pid, wid, lkey, ledger_qty in (await session.execute(orphan)).all():
            out.append(
                {
                    "product_id": int(pid),
                    "warehouse_id": int(wid),
                    "location_id": None if int(lkey) == NO_LOCATION_KEY else int(lkey),
                    "stored_quantity": 0,
                    "ledger_quantity": int(ledger_qty),
                    "drift": -int(ledger_qty),
                }
            )
        return out

    @staticmethod
    async def in_flight(session: AsyncSession) -> Dict[str, List[Dict[str, Any]]]:
        deliveries = (
            (
                await session.execute(
                    select(Delivery)
                    .where(
                        Delivery.status == DeliveryStatus.DONE.value,
                        Delivery.transit_status == TransitStatus.IN_TRANSIT.value,
                    )
                    .order_by(Delivery.id)
                )
            )
            .scalars()
            .all()
        )
        transfers = (
            (
                await session.execute(
                    select(Transfer)
                    .where(Transfer.status == TransferStatus.IN_TRANSIT.value)
                    .order_by(Transfer.id)
                )
            )
            .scalars()
            .all()
        )
        return {
            "deliveries": [
                {
                    "id": d.id,
                    "number": d.number,
                    "warehouse_id": d.warehouse_id,
                    "target_warehouse_id": d.target_warehouse_id,
                    "validated_at": d.validated_at,
                }
                for d in deliveries
            ],
            "transfers": [
                {
                    "id": t.id,
                    "number": t.number,
                    "source_warehouse_id": t.source_warehouse_id,
                    "target_warehouse_id": t.target_warehouse_id,
                    "dispatched_at": t.dispatched_at,
                }
                for t in transfers
            ],
        }

    @staticmethod
    async def unmatched_source_legs(session: AsyncSession) -> List[Dict[str, Any]]:
        dest = aliased(StockMovement)
        stmt = (
            select(StockMovement)
            .outerjoin(
                dest,
                and_(
                    dest.source_doc_type == StockMovement.source_doc_type,
                    dest.source_doc_id == StockMovement.source_doc_id,
                    dest.source_line_no == StockMovement.source_line_no,
                    dest.leg == MovementLeg.DESTINATION.value,
                ),
            )
            .where(StockMovement.leg == MovementLeg.SOURCE.value, dest.id.is_(None))
            .order_by(StockMovement.id)
        )
        rows = (await session.execute(stmt)).scalars().all()
        return [
            {
                "movement_id": mv.id,
                "source_doc_type": mv.source_doc_type,
                "source_doc_id": mv.source_doc_id,
                "source_line_no": mv.source_line_no,
                "product_id": mv.product_id,
                "warehouse_from_id": mv.warehouse_from_id,
                "warehouse_to_id": mv.warehouse_to_id,
                "delta": int(mv.delta),
            }
            for mv in rows
        ]
