# tests/conftest.py
from __future__ import annotations

import os
from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from stockledger.core.config import get_settings
from stockledger.db.base import Base, init_models
from stockledger.db.session import get_session, make_async_engine
from stockledger.main import app
from stockledger.models.enums import Role
from stockledger.models.master_data import Location, Product, Warehouse
from stockledger.services.access_guard import Actor
from tests.helpers.seed import LOC_W1_A, LOC_W1_B, LOC_W2_A, P1, P2, P3, WH1, WH2, WH3

# ==========================
# DSN: explicit test database, otherwise a per-test SQLite file
# ==========================
TEST_DATABASE_URL = os.getenv("STOCK_TEST_DATABASE_URL")


# =========================================
# per-test engine (NullPool, no cross-loop connections)
# =========================================
@pytest_asyncio.fixture(scope="function")
async def async_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    url = TEST_DATABASE_URL or f"sqlite+aiosqlite:///{tmp_path / 'stockledger_test.db'}"
    engine = make_async_engine(url, poolclass=NullPool)
    init_models()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


# =========================================
# minimal master data baseline
# =========================================
@pytest_asyncio.fixture(autouse=True, scope="function")
async def _seed(session_factory) -> None:
    async with session_factory() as sess:
        async with sess.begin():
            sess.add_all(
                [
                    Warehouse(id=WH1, code="W1", name="Main"),
                    Warehouse(id=WH2, code="W2", name="North"),
                    Warehouse(id=WH3, code="W3", name="South"),
                ]
            )
            await sess.flush()
            sess.add_all(
                [
                    Location(id=LOC_W1_A, warehouse_id=WH1, code="A-01"),
                    Location(id=LOC_W1_B, warehouse_id=WH1, code="B-01"),
                    Location(id=LOC_W2_A, warehouse_id=WH2, code="A-01"),
                    Product(id=P1, sku="SKU-101", name="Widget"),
                    Product(id=P2, sku="SKU-102", name="Gadget"),
                    Product(id=P3, sku="SKU-103", name="Gizmo"),
                ]
            )


@pytest_asyncio.fixture(scope="function")
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Standard session; whatever is left open is rolled back."""
    async with session_factory() as sess:
        try:
            yield sess
        finally:
            if sess.in_transaction():
                await sess.rollback()


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Settings are cached; tests that monkeypatch env see their own values."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def allow_negative(monkeypatch):
    monkeypatch.setenv("STOCK_ALLOW_NEGATIVE", "true")
    get_settings.cache_clear()


# =========================================
# actors
# =========================================
@pytest.fixture
def admin() -> Actor:
    return Actor(user_id=1, role=Role.ADMIN)


@pytest.fixture
def manager() -> Actor:
    return Actor(user_id=2, role=Role.MANAGER, assigned_warehouses=frozenset({WH1}))


@pytest.fixture
def operator() -> Actor:
    return Actor(user_id=3, role=Role.OPERATOR, assigned_warehouses=frozenset({WH1}))


@pytest.fixture
def operator_w2() -> Actor:
    return Actor(user_id=4, role=Role.OPERATOR, assigned_warehouses=frozenset({WH2}))


# =========================================
# FastAPI / httpx AsyncClient
# =========================================
@pytest_asyncio.fixture(scope="function")
async def client(session_factory) -> AsyncGenerator[httpx.AsyncClient, None]:
    async def _override_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as sess:
            yield sess

    app.dependency_overrides[get_session] = _override_session
    transport = httpx.ASGITransport(app=app)
    try:
        async with httpx.AsyncClient(
            transport=transport,
            base_url="http://testserver",
            timeout=httpx.Timeout(10.0, connect=5.0, read=10.0, write=5.0, pool=5.0),
        ) as c:
            yield c
    finally:
        app.dependency_overrides.pop(get_session, None)
