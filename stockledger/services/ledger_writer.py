# stockledger/services/ledger_writer.py
from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stockledger.db.upsert import dialect_insert
from stockledger.models.enums import MovementLeg
from stockledger.models.stock_movement import StockMovement

_IDEM_KEY = (
    StockMovement.source_doc_type,
    StockMovement.source_doc_id,
    StockMovement.source_line_no,
    StockMovement.leg,
)


async def find_movement(
    session: AsyncSession,
    *,
    source_doc_type: str,
    source_doc_id: int,
    source_line_no: int = 1,
    leg: str = MovementLeg.SINGLE.value,
) -> Optional[StockMovement]:
    stmt = select(StockMovement).where(
        StockMovement.source_doc_type == str(source_doc_type),
        StockMovement.source_doc_id == int(source_doc_id),
        StockMovement.source_line_no == int(source_line_no),
        StockMovement.leg == str(leg),
    )
    return (await session.execute(stmt)).scalars().first()


async def write_movement(
    session: AsyncSession,
    *,
    product_id: int,
    warehouse_id: int,
    location_id: Optional[int],
    warehouse_from_id: Optional[int],
    warehouse_to_id: Optional[int],
    location_from_id: Optional[int],
    location_to_id: Optional[int],
    delta: int,
    after_qty: int,
    movement_type: str,
    source_doc_type: str,
    source_doc_id: int,
    source_line_no: int = 1,
    leg: str = MovementLeg.SINGLE.value,
    actor_id: int,
    trace_id: Optional[str] = None,
) -> Optional[StockMovement]:
    """
    Idempotent ledger append.

    - unique key: (source_doc_type, source_doc_id, source_line_no, leg),
      constraint uq_stock_movements_doc_line_leg
    - returns the new row, or None when the key already exists (the caller
      decides what a lost race means for the level it already touched)
    """
    stmt = (
        dialect_insert(session, StockMovement)
        .values(
            product_id=int(product_id),
            warehouse_id=int(warehouse_id),
            location_id=location_id,
            warehouse_from_id=warehouse_from_id,
            warehouse_to_id=warehouse_to_id,
            location_from_id=location_from_id,
            location_to_id=location_to_id,
            delta=int(delta),
            after_qty=int(after_qty),
            type=str(movement_type),
            source_doc_type=str(source_doc_type),
            source_doc_id=int(source_doc_id),
            source_line_no=int(source_line_no),
            leg=str(leg),
            actor_id=int(actor_id),
            trace_id=trace_id,
        )
        .on_conflict_do_nothing(index_elements=list(_IDEM_KEY))
        .returning(StockMovement)
    )
    res = await session.execute(stmt)
    return res.scalars().first()
