# stockledger/api/routers/stock.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from stockledger.api.deps import get_session
from stockledger.schemas.stock import ProductStockLevelsOut, StockLevelOut, StockLevelQuantityOut
from stockledger.services.stock_service import StockService

router = APIRouter(prefix="/stock", tags=["stock"])


@router.get("/level", response_model=StockLevelQuantityOut)
async def get_stock_level(
    product_id: int = Query(...),
    warehouse_id: int = Query(...),
    location_id: Optional[int] = Query(None),
    session: AsyncSession = Depends(get_session),
) -> StockLevelQuantityOut:
    qty = await StockService().get_stock_level(session, product_id, warehouse_id, location_id)
    return StockLevelQuantityOut(
        product_id=product_id, warehouse_id=warehouse_id, location_id=location_id, quantity=qty
    )


@router.get("/products/{product_id}/levels", response_model=ProductStockLevelsOut)
async def list_product_levels(
    product_id: int,
    warehouse_id: Optional[int] = Query(None),
    session: AsyncSession = Depends(get_session),
) -> ProductStockLevelsOut:
    svc = StockService()
    levels = await svc.list_stock_levels(session, product_id, warehouse_id)
    return ProductStockLevelsOut(
        product_id=product_id,
        warehouse_id=warehouse_id,
        total_quantity=sum(int(lv.quantity) for lv in levels),
        levels=[StockLevelOut.model_validate(lv) for lv in levels],
    )
