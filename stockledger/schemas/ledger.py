# stockledger/schemas/ledger.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import Field

from stockledger.models.enums import MovementLeg, MovementType
from stockledger.schemas._base import UtcDatetime, _Out


class MovementOut(_Out):
    id: int
    product_id: int
    warehouse_id: int
    location_id: Optional[int] = None
    warehouse_from_id: Optional[int] = None
    warehouse_to_id: Optional[int] = None
    location_from_id: Optional[int] = None
    location_to_id: Optional[int] = None
    delta: int
    after_qty: int
    type: MovementType
    source_doc_type: str
    source_doc_id: int
    source_line_no: int
    leg: MovementLeg
    actor_id: int
    trace_id: Optional[str] = None
    created_at: UtcDatetime


class PaginationOut(_Out):
    page: int
    limit: int
    total: int
    pages: int


class MovementPageOut(_Out):
    movements: List[MovementOut]
    pagination: PaginationOut


class ReplayEntryOut(_Out):
    id: int
    created_at: UtcDatetime
    type: str
    delta: int
    before: int
    after: int
    recorded_after: int
    source_doc_type: str
    source_doc_id: int


class ReplayOut(_Out):
    product_id: int
    warehouse_id: int
    location_id: Optional[int] = None
    replayed_quantity: int
    stored_quantity: int
    consistent: bool
    movements: int
    timeline: List[ReplayEntryOut] = Field(default_factory=list)


class ReconcileOut(_Out):
    ok: bool
    level_mismatches: List[Dict[str, Any]]
    unmatched_source_legs: List[Dict[str, Any]]


class InFlightOut(_Out):
    deliveries: List[Dict[str, Any]]
    transfers: List[Dict[str, Any]]
