# stockledger/services/doc_guards.py
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Sequence, Type, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stockledger.services.errors import InsufficientStock, InvalidState, NotFound, ValidationError
from stockledger.services.stock_service_apply import MovementResult

T = TypeVar("T")


async def load_doc(
    session: AsyncSession, model: Type[T], doc_id: int, *, for_update: bool = False
) -> T:
    """
    Load a document fresh from the database.

    for_update takes the row lock (PostgreSQL) so concurrent transitions of
    the same document queue up; SQLite serializes writers already.
    """
    stmt = select(model).where(model.id == int(doc_id)).execution_options(populate_existing=True)  # type: ignore[attr-defined]
    if for_update:
        stmt = stmt.with_for_update()
    doc = (await session.execute(stmt)).scalars().first()
    if doc is None:
        raise NotFound(f"{model.__name__.lower()} not found: id={doc_id}")
    return doc


def require_status(doc: Any, allowed: Iterable[str], *, action: str) -> None:
    allowed_vals = [str(a) for a in allowed]
    if str(doc.status) not in allowed_vals:
        raise InvalidState(
            f"cannot {action} {type(doc).__name__.lower()} {doc.number} in status {doc.status}",
            details=[
                {
                    "type": "state",
                    "reason": "transition_not_allowed",
                    "status": str(doc.status),
                    "allowed": allowed_vals,
                    "action": action,
                }
            ],
        )


def check_lines(lines: Sequence[Any], *, qty_attr: str = "quantity") -> None:
    """At least one line; every quantity a positive integer."""
    if not lines:
        raise ValidationError(
            "at least one line is required",
            details=[{"type": "validation", "path": "lines", "reason": "empty"}],
        )
    bad: List[Dict[str, Any]] = []
    for i, ln in enumerate(lines):
        q = getattr(ln, qty_attr)
        if isinstance(q, bool) or not isinstance(q, int) or q <= 0:
            bad.append(
                {
                    "type": "validation",
                    "path": f"lines[{i}].{qty_attr}",
                    "reason": "must be a positive integer",
                    "product_id": getattr(ln, "product_id", None),
                }
            )
    if bad:
        raise ValidationError("line quantities must be positive integers", details=bad)


def check_not_negative(results: Sequence[MovementResult], *, allow_negative: bool) -> None:
    """
    Negative-stock policy for outbound steps.

    Runs on the post-increment balances inside the same unit of work, so the
    refusal rolls the whole step back.
    """
    if allow_negative:
        return
    short = [
        {
            "type": "shortage",
            "path": f"lines[{r.movement.source_line_no - 1}]",
            "product_id": int(r.movement.product_id),
            "warehouse_id": int(r.movement.warehouse_id),
            "location_id": r.movement.location_id,
            "required_qty": -int(r.movement.delta),
            "available_qty": int(r.movement.after_qty) - int(r.movement.delta),
            "short_qty": -int(r.movement.after_qty),
        }
        for r in results
        if r.applied and int(r.movement.after_qty) < 0
    ]
    if short:
        raise InsufficientStock("insufficient stock", details=short)
