# stockledger/services/errors.py
from __future__ import annotations

from typing import Any, Dict, List, Optional


class StockError(Exception):
    """
    Base of the domain error taxonomy.

    code/status drive the Problem JSON rendered by the HTTP layer; details is
    an optional list of per-line problem entries ({"type", "path", ...}).
    """

    code = "STOCK_ERROR"
    status = 400

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status: Optional[int] = None,
        details: Optional[List[Dict[str, Any]]] = None,
    ):
        super().__init__(message)
        if code:
            self.code = code
        if status:
            self.status = status
        self.message = message
        self.details = list(details) if details else []


class ValidationError(StockError):
    code = "VALIDATION_ERROR"
    status = 422


class InsufficientStock(ValidationError):
    code = "INSUFFICIENT_STOCK"


class InvalidState(StockError):
    code = "INVALID_STATE"
    status = 409


class NotFound(StockError):
    code = "NOT_FOUND"
    status = 404


class AccessDenied(StockError):
    code = "FORBIDDEN"
    status = 403


class ConcurrencyConflict(StockError):
    code = "CONCURRENCY_CONFLICT"
    status = 409


class StorageError(StockError):
    code = "STORAGE_ERROR"
    status = 503


class PartialTransfer(StockError):
    """Source side committed, destination side did not; needs manual completion."""

    code = "PARTIAL_TRANSFER"
    status = 500

    def __init__(self, message: str, *, doc_type: str, doc_id: int, **kw: Any):
        super().__init__(message, **kw)
        self.doc_type = doc_type
        self.doc_id = doc_id


__all__ = [
    "StockError",
    "ValidationError",
    "InsufficientStock",
    "InvalidState",
    "NotFound",
    "AccessDenied",
    "ConcurrencyConflict",
    "StorageError",
    "PartialTransfer",
]
