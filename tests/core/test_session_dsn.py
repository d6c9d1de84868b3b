# tests/core/test_session_dsn.py
from __future__ import annotations

import pytest

from stockledger.db.session import normalize_async_dsn


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("postgres://u:p@h:5432/db", "postgresql+psycopg://u:p@h:5432/db"),
        ("postgresql://u:p@h/db", "postgresql+psycopg://u:p@h/db"),
        ("postgresql+asyncpg://u:p@h/db", "postgresql+psycopg://u:p@h/db"),
        ("'postgresql+psycopg://u:p@h/db'", "postgresql+psycopg://u:p@h/db"),
        ("sqlite:///./stock.db", "sqlite+aiosqlite:///./stock.db"),
        ("sqlite+aiosqlite:///:memory:", "sqlite+aiosqlite:///:memory:"),
    ],
)
def test_normalize_async_dsn(raw, expected):
    assert normalize_async_dsn(raw) == expected


def test_empty_dsn_falls_back_to_dev_database():
    assert normalize_async_dsn("").startswith("postgresql+psycopg://")
