# tests/services/test_stock_engine.py
from __future__ import annotations

import asyncio

import pytest
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from stockledger.models.enums import DocType, MovementLeg, MovementType
from stockledger.services import stock_service_apply
from stockledger.services.errors import StorageError, ValidationError
from stockledger.services.stock_service import StockService
from tests.helpers.seed import LOC_W1_A, P1, P2, WH1, WH2
from tests.helpers.stock import ledger_sum, level, movement_count

pytestmark = pytest.mark.asyncio


def _kw(**over):
    kw = dict(
        product_id=P1,
        warehouse_id=WH1,
        delta=5,
        movement_type=MovementType.RECEIPT,
        source_doc_type=DocType.RECEIPT.value,
        source_doc_id=1,
        source_line_no=1,
        actor_id=7,
    )
    kw.update(over)
    return kw


async def test_apply_creates_level_and_movement(session: AsyncSession):
    svc = StockService()
    r = await svc.apply_movement(session, **_kw(delta=7, trace_id="t_abc"))

    assert r.applied is True
    assert r.after_qty == 7
    assert r.delta == 7
    assert r.movement.leg == MovementLeg.SINGLE.value
    assert r.movement.trace_id == "t_abc"
    assert r.movement.warehouse_to_id == WH1
    assert r.movement.warehouse_from_id is None
    assert await level(session, P1, WH1) == 7


async def test_same_line_leg_is_applied_once(session: AsyncSession):
    svc = StockService()
    first = await svc.apply_movement(session, **_kw(delta=4))
    again = await svc.apply_movement(session, **_kw(delta=4))

    assert first.applied is True
    assert again.applied is False
    assert again.movement.id == first.movement.id
    assert await level(session, P1, WH1) == 4
    assert await movement_count(session, source_doc_id=1) == 1


async def test_legs_of_one_line_are_distinct_keys(session: AsyncSession):
    svc = StockService()
    src = await svc.apply_movement(
        session,
        **_kw(
            delta=-3,
            movement_type=MovementType.TRANSFER,
            source_doc_type=DocType.TRANSFER.value,
            leg=MovementLeg.SOURCE,
            counterparty_warehouse_id=WH2,
        ),
    )
    dst = await svc.apply_movement(
        session,
        **_kw(
            warehouse_id=WH2,
            delta=3,
            movement_type=MovementType.TRANSFER,
            source_doc_type=DocType.TRANSFER.value,
            leg=MovementLeg.DESTINATION,
            counterparty_warehouse_id=WH1,
        ),
    )
    assert src.applied and dst.applied
    # provenance on both legs points the same way
    assert (src.movement.warehouse_from_id, src.movement.warehouse_to_id) == (WH1, WH2)
    assert (dst.movement.warehouse_from_id, dst.movement.warehouse_to_id) == (WH1, WH2)


@pytest.mark.parametrize("bad", [0, True, 1.5])
async def test_rejects_non_integer_or_zero_delta(session: AsyncSession, bad):
    with pytest.raises(ValidationError):
        await StockService().apply_movement(session, **_kw(delta=bad))
    assert await movement_count(session) == 0


async def test_engine_returns_negative_balances_to_the_caller(session: AsyncSession):
    r = await StockService().apply_movement(session, **_kw(delta=-2, movement_type=MovementType.DELIVERY))
    assert r.applied is True
    assert r.after_qty == -2


async def test_caller_rollback_discards_level_and_movement(session: AsyncSession):
    svc = StockService()
    with pytest.raises(RuntimeError):
        async with session.begin():
            await svc.apply_movement(session, **_kw(delta=9))
            raise RuntimeError("workflow failed after the movement")

    assert await level(session, P1, WH1) == 0
    assert await movement_count(session) == 0


async def test_locations_are_separate_keys(session: AsyncSession):
    svc = StockService()
    await svc.apply_movement(session, **_kw(delta=2, source_doc_id=1))
    await svc.apply_movement(session, **_kw(delta=3, source_doc_id=2, location_id=LOC_W1_A))
    await svc.apply_movement(session, **_kw(delta=4, source_doc_id=3, warehouse_id=WH2))

    assert await level(session, P1, WH1) == 2
    assert await level(session, P1, WH1, LOC_W1_A) == 3
    assert await svc.get_total_stock(session, P1, WH1) == 5
    assert await svc.get_total_stock(session, P1) == 9
    assert await svc.get_stock_level(session, P2, WH1) == 0

    levels = await svc.list_stock_levels(session, P1, WH1)
    assert [lv.location_id for lv in levels] == [None, LOC_W1_A]


async def test_storage_failure_is_retried(session: AsyncSession, monkeypatch):
    real = stock_service_apply.increment_level
    calls = {"n": 0}

    async def flaky(*args, **kwargs):
        calls["n"] += 1
        if calls["n"] == 1:
            raise DBAPIError("UPDATE stock_levels", {}, Exception("connection reset"))
        return await real(*args, **kwargs)

    monkeypatch.setattr(stock_service_apply, "increment_level", flaky)
    r = await StockService().apply_movement(session, **_kw(delta=6))

    assert calls["n"] == 2
    assert r.applied is True
    assert await level(session, P1, WH1) == 6


async def test_storage_failure_gives_up_without_partial_state(session: AsyncSession, monkeypatch):
    async def broken(*args, **kwargs):
        raise DBAPIError("UPDATE stock_levels", {}, Exception("disk full"))

    monkeypatch.setattr(stock_service_apply, "increment_level", broken)
    with pytest.raises(StorageError):
        await StockService().apply_movement(session, **_kw(delta=6))

    assert await level(session, P1, WH1) == 0
    assert await movement_count(session) == 0


async def test_concurrent_increments_do_not_lose_updates(session_factory):
    svc = StockService()

    async def one(doc_id: int) -> None:
        async with session_factory() as s:
            await svc.apply_movement(s, **_kw(delta=1, source_doc_id=doc_id))

    await asyncio.gather(*(one(i) for i in range(1, 21)))

    async with session_factory() as s:
        assert await level(s, P1, WH1) == 20
        assert await ledger_sum(s, P1, WH1) == 20
        assert await movement_count(s) == 20


async def test_concurrent_replays_of_one_line_apply_once(session_factory):
    svc = StockService()

    async def one() -> bool:
        async with session_factory() as s:
            return (await svc.apply_movement(s, **_kw(delta=5, source_doc_id=42))).applied

    applied = await asyncio.gather(*(one() for _ in range(6)))

    assert applied.count(True) == 1
    async with session_factory() as s:
        assert await level(s, P1, WH1) == 5
        assert await movement_count(s, source_doc_id=42) == 1
