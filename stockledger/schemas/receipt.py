# stockledger/schemas/receipt.py
from __future__ import annotations

from typing import List, Optional

from pydantic import Field

from stockledger.models.enums import ReceiptStatus
from stockledger.schemas._base import UtcDatetime, _In, _Out


class ReceiptLineIn(_In):
    product_id: int
    location_id: Optional[int] = None
    quantity: int = Field(..., description="units received, > 0")


class ReceiptCreateIn(_In):
    """
    Receipt creation.

    - initial_status: DRAFT (default, editable) or WAITING
    - lines must be non-empty; each quantity > 0
    """

    warehouse_id: int
    supplier_name: Optional[str] = Field(None, max_length=255)
    reference: Optional[str] = Field(None, max_length=128)
    notes: Optional[str] = None
    initial_status: ReceiptStatus = ReceiptStatus.DRAFT
    lines: List[ReceiptLineIn] = Field(default_factory=list)


class ReceiptUpdateIn(_In):
    """DRAFT only; fields left out keep their value, `lines` replaces all lines."""

    warehouse_id: Optional[int] = None
    supplier_name: Optional[str] = Field(None, max_length=255)
    reference: Optional[str] = Field(None, max_length=128)
    notes: Optional[str] = None
    lines: Optional[List[ReceiptLineIn]] = None


class ReceiptLineOut(_Out):
    id: int
    line_no: int
    product_id: int
    location_id: Optional[int] = None
    quantity: int


class ReceiptOut(_Out):
    id: int
    number: str
    warehouse_id: int
    supplier_name: Optional[str] = None
    status: ReceiptStatus
    reference: Optional[str] = None
    notes: Optional[str] = None
    total_quantity: int

    created_by: int
    validated_by: Optional[int] = None
    validated_at: Optional[UtcDatetime] = None
    created_at: UtcDatetime
    updated_at: UtcDatetime

    lines: List[ReceiptLineOut] = Field(default_factory=list)
