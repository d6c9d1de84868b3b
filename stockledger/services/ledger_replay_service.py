# stockledger/services/ledger_replay_service.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stockledger.models.stock_level import StockLevel, location_key_of
from stockledger.models.stock_movement import StockMovement


class LedgerReplayService:
    """
    Ledger Replay Engine
    --------------------
    Rebuilds one key's balance from an empty start by summing its movements
    in creation order, and compares the result with the stored level.
    """

    @staticmethod
    async def replay(
        session: AsyncSession,
        *,
        product_id: int,
        warehouse_id: int,
        location_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        loc_cond = (
            StockMovement.location_id.is_(None)
            if location_id is None
            else StockMovement.location_id == int(location_id)
        )
        rows = (
            (
                await session.execute(
                    select(StockMovement)
                    .where(
                        StockMovement.product_id == int(product_id),
                        StockMovement.warehouse_id == int(warehouse_id),
                        loc_cond,
                    )
                    .order_by(StockMovement.id.asc())
                )
            )
            .scalars()
            .all()
        )

        running = 0
        timeline: List[Dict[str, Any]] = []
        for mv in rows:
            before = running
            running += int(mv.delta)
            timeline.append(
                {
                    "id": mv.id,
                    "created_at": mv.created_at,
                    "type": mv.type,
                    "delta": int(mv.delta),
                    "before": before,
                    "after": running,
                    "recorded_after": int(mv.after_qty),
                    "source_doc_type": mv.source_doc_type,
                    "source_doc_id": mv.source_doc_id,
                }
            )

        stored = (
            await session.execute(
                select(StockLevel.quantity).where(
                    StockLevel.product_id == int(product_id),
                    StockLevel.warehouse_id == int(warehouse_id),
                    StockLevel.location_key == location_key_of(location_id),
                )
            )
        ).scalar_one_or_none()
        stored_qty = int(stored or 0)

        return {
            "product_id": int(product_id),
            "warehouse_id": int(warehouse_id),
            "location_id": location_id,
            "replayed_quantity": running,
            "stored_quantity": stored_qty,
            "consistent": running == stored_qty,
            "movements": len(timeline),
            "timeline": timeline,
        }
