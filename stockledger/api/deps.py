# stockledger/api/deps.py
from __future__ import annotations

from typing import FrozenSet, Optional

from fastapi import Header, HTTPException, Request, status

from stockledger.api.problem import make_problem, new_trace_id
from stockledger.db.session import get_session
from stockledger.models.enums import Role
from stockledger.services.access_guard import Actor

__all__ = ["get_session", "get_actor", "get_trace_id"]


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=make_problem(status_code=401, error_code="UNAUTHORIZED", message=message),
    )


def _parse_warehouses(raw: Optional[str]) -> FrozenSet[int]:
    if not raw:
        return frozenset()
    out = set()
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        if not part.isdigit():
            raise _unauthorized(f"malformed X-User-Warehouses entry: {part!r}")
        out.add(int(part))
    return frozenset(out)


async def get_actor(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
    x_user_warehouses: Optional[str] = Header(default=None),
) -> Actor:
    """
    Identity set by the upstream auth gateway:

    - X-User-Id          numeric user id
    - X-User-Role        ADMIN | MANAGER | OPERATOR
    - X-User-Warehouses  comma separated warehouse ids
    """
    if not x_user_id or not x_user_id.strip().isdigit():
        raise _unauthorized("missing or malformed X-User-Id")
    try:
        role = Role((x_user_role or "").strip().upper())
    except ValueError:
        raise _unauthorized(f"unknown role: {x_user_role!r}") from None
    return Actor(
        user_id=int(x_user_id.strip()),
        role=role,
        assigned_warehouses=_parse_warehouses(x_user_warehouses),
    )


def get_trace_id(request: Request, x_trace_id: Optional[str] = Header(default=None)) -> str:
    tid = (x_trace_id or "").strip() or new_trace_id()
    request.state.trace_id = tid
    return tid
