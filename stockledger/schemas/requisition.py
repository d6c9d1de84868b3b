# stockledger/schemas/requisition.py
from __future__ import annotations

from datetime import date
from typing import List, Optional

from pydantic import Field

from stockledger.models.enums import RequisitionStatus
from stockledger.schemas._base import UtcDatetime, _In, _Out


class RequisitionLineIn(_In):
    product_id: int
    quantity_requested: int
    needed_by_date: Optional[date] = None


class RequisitionCreateIn(_In):
    requesting_warehouse_id: int
    suggested_source_warehouse_id: Optional[int] = None
    lines: List[RequisitionLineIn] = Field(default_factory=list)


class RequisitionUpdateIn(_In):
    requesting_warehouse_id: Optional[int] = None
    suggested_source_warehouse_id: Optional[int] = None
    lines: Optional[List[RequisitionLineIn]] = None


class RequisitionApproveIn(_In):
    final_source_warehouse_id: int


class RequisitionRejectIn(_In):
    reason: str


class RequisitionLineOut(_Out):
    id: int
    line_no: int
    product_id: int
    quantity_requested: int
    needed_by_date: Optional[date] = None


class RequisitionOut(_Out):
    id: int
    number: str
    requesting_warehouse_id: int
    suggested_source_warehouse_id: Optional[int] = None
    final_source_warehouse_id: Optional[int] = None
    status: RequisitionStatus

    created_by: int
    submitted_at: Optional[UtcDatetime] = None
    approved_by: Optional[int] = None
    approved_at: Optional[UtcDatetime] = None
    rejected_by: Optional[int] = None
    rejected_at: Optional[UtcDatetime] = None
    rejected_reason: Optional[str] = None
    created_at: UtcDatetime
    updated_at: UtcDatetime

    lines: List[RequisitionLineOut] = Field(default_factory=list)


class RequisitionApproveOut(_Out):
    requisition: RequisitionOut
    delivery_id: int
    delivery_number: str
