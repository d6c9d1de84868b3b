# stockledger/schemas/transfer.py
from __future__ import annotations

from typing import List, Optional

from pydantic import Field

from stockledger.models.enums import TransferStatus
from stockledger.schemas._base import UtcDatetime, _In, _Out


class TransferLineIn(_In):
    product_id: int
    source_location_id: Optional[int] = None
    target_location_id: Optional[int] = None
    quantity: int


class TransferCreateIn(_In):
    source_warehouse_id: int
    target_warehouse_id: int
    requisition_id: Optional[int] = Field(None, description="must reference an APPROVED requisition")
    delivery_id: Optional[int] = Field(None, description="delivery between the same two warehouses")
    lines: List[TransferLineIn] = Field(default_factory=list)


class TransferUpdateIn(_In):
    source_warehouse_id: Optional[int] = None
    target_warehouse_id: Optional[int] = None
    lines: Optional[List[TransferLineIn]] = None


class TransferLineOut(_Out):
    id: int
    line_no: int
    product_id: int
    source_location_id: Optional[int] = None
    target_location_id: Optional[int] = None
    quantity: int


class TransferOut(_Out):
    id: int
    number: str
    requisition_id: Optional[int] = None
    delivery_id: Optional[int] = None
    source_warehouse_id: int
    target_warehouse_id: int
    status: TransferStatus

    created_by: int
    dispatched_by: Optional[int] = None
    dispatched_at: Optional[UtcDatetime] = None
    received_by: Optional[int] = None
    received_at: Optional[UtcDatetime] = None
    created_at: UtcDatetime
    updated_at: UtcDatetime

    lines: List[TransferLineOut] = Field(default_factory=list)
