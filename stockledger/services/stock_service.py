# stockledger/services/stock_service.py
from __future__ import annotations

from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from stockledger.core.config import get_settings
from stockledger.models.enums import MovementLeg, MovementType
from stockledger.models.stock_level import StockLevel, location_key_of
from stockledger.services.stock_service_adjust import OnSwapFn, SetQuantityResult, set_quantity_impl
from stockledger.services.stock_service_apply import MovementResult, apply_movement_impl


class StockService:
    """
    Stock ledger engine: the single choke-point for quantity changes.

    Key: (product_id, warehouse_id, location_id | None).

    - apply_movement   relative delta, idempotent per document line leg
    - set_quantity     absolute target through version CAS (adjustments)
    - read paths       get_stock_level / list_stock_levels / get_total_stock

    Writes run in a savepoint when the caller already holds a transaction,
    so a workflow can apply several lines and its status change as one
    commit.
    """

    async def apply_movement(
        self,
        session: AsyncSession,
        *,
        product_id: int,
        warehouse_id: int,
        delta: int,
        movement_type: MovementType | str,
        source_doc_type: str,
        source_doc_id: int,
        actor_id: int,
        location_id: Optional[int] = None,
        source_line_no: int = 1,
        leg: MovementLeg | str = MovementLeg.SINGLE,
        counterparty_warehouse_id: Optional[int] = None,
        counterparty_location_id: Optional[int] = None,
        trace_id: Optional[str] = None,
    ) -> MovementResult:
        return await apply_movement_impl(
            session=session,
            product_id=product_id,
            warehouse_id=warehouse_id,
            location_id=location_id,
            delta=delta,
            movement_type=movement_type,
            source_doc_type=source_doc_type,
            source_doc_id=source_doc_id,
            actor_id=actor_id,
            source_line_no=source_line_no,
            leg=leg,
            counterparty_warehouse_id=counterparty_warehouse_id,
            counterparty_location_id=counterparty_location_id,
            trace_id=trace_id,
            storage_retries=get_settings().STOCK_STORAGE_RETRIES,
        )

    async def set_quantity(
        self,
        session: AsyncSession,
        *,
        product_id: int,
        warehouse_id: int,
        location_id: Optional[int],
        new_quantity: int,
        actor_id: int,
        source_doc_type: str,
        on_swap: OnSwapFn,
        trace_id: Optional[str] = None,
    ) -> SetQuantityResult:
        return await set_quantity_impl(
            session=session,
            product_id=product_id,
            warehouse_id=warehouse_id,
            location_id=location_id,
            new_quantity=new_quantity,
            actor_id=actor_id,
            source_doc_type=source_doc_type,
            on_swap=on_swap,
            trace_id=trace_id,
            max_retries=get_settings().STOCK_ADJUST_MAX_RETRIES,
            storage_retries=get_settings().STOCK_STORAGE_RETRIES,
        )

    # ---------- read paths ----------

    async def get_stock_level(
        self,
        session: AsyncSession,
        product_id: int,
        warehouse_id: int,
        location_id: Optional[int] = None,
    ) -> int:
        """Absent row means 0."""
        stmt = select(StockLevel.quantity).where(
            StockLevel.product_id == int(product_id),
            StockLevel.warehouse_id == int(warehouse_id),
            StockLevel.location_key == location_key_of(location_id),
        )
        qty = (await session.execute(stmt)).scalar_one_or_none()
        return int(qty or 0)

    async def list_stock_levels(
        self,
        session: AsyncSession,
        product_id: int,
        warehouse_id: Optional[int] = None,
    ) -> List[StockLevel]:
        stmt = select(StockLevel).where(StockLevel.product_id == int(product_id))
        if warehouse_id is not None:
            stmt = stmt.where(StockLevel.warehouse_id == int(warehouse_id))
        stmt = stmt.order_by(StockLevel.warehouse_id, StockLevel.location_key)
        return list((await session.execute(stmt)).scalars().all())

    async def get_total_stock(
        self,
        session: AsyncSession,
        product_id: int,
        warehouse_id: Optional[int] = None,
    ) -> int:
        """Sum over all locations (and warehouses unless one is given)."""
        stmt = select(func.coalesce(func.sum(StockLevel.quantity), 0)).where(
            StockLevel.product_id == int(product_id)
        )
        if warehouse_id is not None:
            stmt = stmt.where(StockLevel.warehouse_id == int(warehouse_id))
        return int((await session.execute(stmt)).scalar_one())
