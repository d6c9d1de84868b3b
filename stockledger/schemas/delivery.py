# stockledger/schemas/delivery.py
from __future__ import annotations

from typing import List, Optional

from pydantic import Field

from stockledger.models.enums import DeliveryStatus, TransitStatus
from stockledger.schemas._base import UtcDatetime, _In, _Out


class DeliveryLineIn(_In):
    product_id: int
    from_location_id: Optional[int] = None
    to_location_id: Optional[int] = Field(None, description="destination bin; two-sided deliveries only")
    quantity: int


class DeliveryCreateIn(_In):
    """
    Delivery creation.

    target_warehouse_id turns the delivery into a warehouse-to-warehouse
    move: validation then writes both sides.
    """

    warehouse_id: int
    target_warehouse_id: Optional[int] = None
    customer_name: Optional[str] = Field(None, max_length=255)
    delivery_address: Optional[str] = None
    reference: Optional[str] = Field(None, max_length=128)
    notes: Optional[str] = None
    schedule_date: Optional[UtcDatetime] = None
    responsible: Optional[str] = Field(None, max_length=128)
    initial_status: DeliveryStatus = DeliveryStatus.DRAFT
    lines: List[DeliveryLineIn] = Field(default_factory=list)


class DeliveryUpdateIn(_In):
    warehouse_id: Optional[int] = None
    target_warehouse_id: Optional[int] = None
    customer_name: Optional[str] = Field(None, max_length=255)
    delivery_address: Optional[str] = None
    reference: Optional[str] = Field(None, max_length=128)
    notes: Optional[str] = None
    schedule_date: Optional[UtcDatetime] = None
    responsible: Optional[str] = Field(None, max_length=128)
    lines: Optional[List[DeliveryLineIn]] = None


class DeliveryRejectIn(_In):
    reason: str = Field(..., description="non-empty")


class DeliveryLineOut(_Out):
    id: int
    line_no: int
    product_id: int
    from_location_id: Optional[int] = None
    to_location_id: Optional[int] = None
    quantity: int


class DeliveryOut(_Out):
    id: int
    number: str
    warehouse_id: int
    target_warehouse_id: Optional[int] = None
    requisition_id: Optional[int] = None
    customer_name: Optional[str] = None
    delivery_address: Optional[str] = None
    status: DeliveryStatus
    transit_status: TransitStatus
    reference: Optional[str] = None
    notes: Optional[str] = None
    schedule_date: Optional[UtcDatetime] = None
    responsible: Optional[str] = None
    rejected_reason: Optional[str] = None

    created_by: int
    validated_by: Optional[int] = None
    validated_at: Optional[UtcDatetime] = None
    accepted_by: Optional[int] = None
    accepted_at: Optional[UtcDatetime] = None
    created_at: UtcDatetime
    updated_at: UtcDatetime

    lines: List[DeliveryLineOut] = Field(default_factory=list)
