# stockledger/schemas/adjustment.py
from __future__ import annotations

from typing import Optional

from pydantic import Field

from stockledger.models.enums import AdjustmentReason
from stockledger.schemas._base import UtcDatetime, _In, _Out


class AdjustmentIn(_In):
    """Absolute correction: new_quantity is the counted / target balance."""

    product_id: int
    warehouse_id: int
    location_id: Optional[int] = None
    new_quantity: int
    reason: AdjustmentReason
    remarks: Optional[str] = None


class AdjustmentOut(_Out):
    id: int
    number: str
    product_id: int
    warehouse_id: int
    location_id: Optional[int] = None
    old_quantity: int
    new_quantity: int
    difference: int
    reason: AdjustmentReason
    remarks: Optional[str] = None
    created_by: int
    created_at: UtcDatetime
    movement_id: Optional[int] = Field(None, description="absent when difference == 0")
