# tests/helpers/stock.py
from __future__ import annotations

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from stockledger.models.enums import Role
from stockledger.models.stock_movement import StockMovement
from stockledger.schemas.receipt import ReceiptCreateIn, ReceiptLineIn
from stockledger.services.access_guard import Actor
from stockledger.services.receipt_service import ReceiptService
from stockledger.services.stock_service import StockService

SEEDER = Actor(user_id=99, role=Role.ADMIN)


async def seed_stock(
    session: AsyncSession,
    *,
    warehouse_id: int,
    product_id: int,
    qty: int,
    location_id: Optional[int] = None,
) -> None:
    """Bring stock in the way production does: a validated receipt."""
    svc = ReceiptService()
    doc = await svc.create(
        session,
        SEEDER,
        ReceiptCreateIn(
            warehouse_id=warehouse_id,
            lines=[ReceiptLineIn(product_id=product_id, location_id=location_id, quantity=qty)],
        ),
    )
    await svc.validate(session, doc.id, SEEDER)


async def level(
    session: AsyncSession, product_id: int, warehouse_id: int, location_id: Optional[int] = None
) -> int:
    return await StockService().get_stock_level(session, product_id, warehouse_id, location_id)


async def movement_count(session: AsyncSession, **where) -> int:
    stmt = select(func.count(StockMovement.id))
    for k, v in where.items():
        stmt = stmt.where(getattr(StockMovement, k) == v)
    return int((await session.execute(stmt)).scalar_one())


async def ledger_sum(
    session: AsyncSession, product_id: int, warehouse_id: int, location_id: Optional[int] = None
) -> int:
    loc = (
        StockMovement.location_id.is_(None)
        if location_id is None
        else StockMovement.location_id == location_id
    )
    stmt = select(func.coalesce(func.sum(StockMovement.delta), 0)).where(
        StockMovement.product_id == product_id,
        StockMovement.warehouse_id == warehouse_id,
        loc,
    )
    return int((await session.execute(stmt)).scalar_one())


def actor_headers(user_id: int, role: str, warehouses: str = "") -> dict:
    h = {"X-User-Id": str(user_id), "X-User-Role": role}
    if warehouses:
        h["X-User-Warehouses"] = warehouses
    return h
