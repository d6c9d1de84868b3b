# stockledger/db/upsert.py
from __future__ import annotations

from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession


def dialect_insert(session: AsyncSession, model: Any) -> Any:
    """
    INSERT construct that supports ON CONFLICT for the session's backend.

    PostgreSQL and SQLite share the on_conflict_do_update / do_nothing API;
    conflicts are addressed by index_elements, not constraint names, so the
    same statement works on both.
    """
    bind = session.get_bind()
    if bind.dialect.name == "sqlite":
        return sqlite.insert(model)
    return postgresql.insert(model)
