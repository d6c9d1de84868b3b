# stockledger/models/enums.py
from __future__ import annotations

from enum import StrEnum


class MovementType(StrEnum):
    """
    Movement taxonomy written to stock_movements.type.

    - RECEIPT     inbound from a supplier (positive delta)
    - DELIVERY    outbound / warehouse-to-warehouse delivery (both legs)
    - TRANSFER    transfer document legs (negative at source, positive at target)
    - ADJUSTMENT  absolute correction (count, damage, loss)

    The movement type is independent from the document type: a delivery with
    a target warehouse is a two-sided move in the ledger while the document
    stays a DELIVERY.
    """

    RECEIPT = "RECEIPT"
    DELIVERY = "DELIVERY"
    TRANSFER = "TRANSFER"
    ADJUSTMENT = "ADJUSTMENT"


class DocType(StrEnum):
    RECEIPT = "RECEIPT"
    DELIVERY = "DELIVERY"
    TRANSFER = "TRANSFER"
    ADJUSTMENT = "ADJUSTMENT"
    REQUISITION = "REQUISITION"


class MovementLeg(StrEnum):
    """Which side of a document line a movement belongs to (part of the idempotency key)."""

    SINGLE = "SINGLE"
    SOURCE = "SOURCE"
    DESTINATION = "DESTINATION"


class ReceiptStatus(StrEnum):
    DRAFT = "DRAFT"
    WAITING = "WAITING"
    DONE = "DONE"


class DeliveryStatus(StrEnum):
    DRAFT = "DRAFT"
    WAITING = "WAITING"
    READY = "READY"
    DONE = "DONE"
    REJECTED = "REJECTED"


class TransitStatus(StrEnum):
    """In-flight marker for two-sided deliveries."""

    NONE = "NONE"
    IN_TRANSIT = "IN_TRANSIT"
    ARRIVED = "ARRIVED"


class RequisitionStatus(StrEnum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class TransferStatus(StrEnum):
    DRAFT = "DRAFT"
    IN_TRANSIT = "IN_TRANSIT"
    DONE = "DONE"


class AdjustmentReason(StrEnum):
    DAMAGE = "DAMAGE"
    LOSS = "LOSS"
    COUNT_ERROR = "COUNT_ERROR"
    OTHER = "OTHER"


class Role(StrEnum):
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    OPERATOR = "OPERATOR"


__all__ = [
    "MovementType",
    "DocType",
    "MovementLeg",
    "ReceiptStatus",
    "DeliveryStatus",
    "TransitStatus",
    "RequisitionStatus",
    "TransferStatus",
    "AdjustmentReason",
    "Role",
]
