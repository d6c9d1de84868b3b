# stockledger/schemas/stock.py
from __future__ import annotations

from typing import List, Optional

from stockledger.schemas._base import UtcDatetime, _Out


class StockLevelQuantityOut(_Out):
    product_id: int
    warehouse_id: int
    location_id: Optional[int] = None
    quantity: int


class StockLevelOut(_Out):
    id: int
    product_id: int
    warehouse_id: int
    location_id: Optional[int] = None
    quantity: int
    version: int
    updated_at: UtcDatetime


class ProductStockLevelsOut(_Out):
    product_id: int
    warehouse_id: Optional[int] = None
    total_quantity: int
    levels: List[StockLevelOut]
