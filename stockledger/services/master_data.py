# stockledger/services/master_data.py
from __future__ import annotations

from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stockledger.models.master_data import Location, Product, Warehouse
from stockledger.services.errors import NotFound, ValidationError


# Master data is owned elsewhere; these are existence checks only.


async def ensure_warehouse(session: AsyncSession, warehouse_id: int) -> Warehouse:
    wh = await session.get(Warehouse, int(warehouse_id))
    if wh is None:
        raise NotFound(f"warehouse not found: id={warehouse_id}")
    return wh


async def ensure_product(session: AsyncSession, product_id: int) -> Product:
    p = await session.get(Product, int(product_id))
    if p is None:
        raise NotFound(f"product not found: id={product_id}")
    return p


async def ensure_products(session: AsyncSession, product_ids: Iterable[int]) -> None:
    wanted = {int(x) for x in product_ids}
    if not wanted:
        return
    rows = await session.execute(select(Product.id).where(Product.id.in_(wanted)))
    found = {int(r[0]) for r in rows.all()}
    missing = sorted(wanted - found)
    if missing:
        raise NotFound(
            f"product not found: ids={missing}",
            details=[{"type": "validation", "reason": "product_not_found", "product_id": pid} for pid in missing],
        )


async def ensure_location(
    session: AsyncSession, location_id: Optional[int], warehouse_id: int
) -> Optional[Location]:
    """None passes through (warehouse-level stock); a location must belong to the warehouse."""
    if location_id is None:
        return None
    loc = await session.get(Location, int(location_id))
    if loc is None:
        raise NotFound(f"location not found: id={location_id}")
    if int(loc.warehouse_id) != int(warehouse_id):
        raise ValidationError(
            f"location {location_id} does not belong to warehouse {warehouse_id}",
            details=[
                {
                    "type": "validation",
                    "reason": "location_warehouse_mismatch",
                    "location_id": int(location_id),
                    "warehouse_id": int(warehouse_id),
                }
            ],
        )
    return loc
