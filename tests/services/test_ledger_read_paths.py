# tests/services/test_ledger_read_paths.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from stockledger.models.enums import DocType, MovementType
from stockledger.models.stock_level import StockLevel
from stockledger.schemas.transfer import TransferCreateIn, TransferLineIn
from stockledger.services.adjustment_service import AdjustmentService
from stockledger.services.errors import ValidationError
from stockledger.services.ledger_query_service import LedgerQueryService, MovementFilter
from stockledger.services.ledger_reconcile_service import LedgerReconcileService
from stockledger.services.ledger_replay_service import LedgerReplayService
from stockledger.services.transfer_service import TransferService
from tests.helpers.seed import P1, P2, WH1, WH2
from tests.helpers.stock import seed_stock

pytestmark = pytest.mark.asyncio

UTC = timezone.utc


async def _history(session: AsyncSession, admin) -> None:
    """W1: +10, +5 (P1), +3 (P2); adjust P1 to 12; transfer 4 of P1 to W2."""
    await seed_stock(session, warehouse_id=WH1, product_id=P1, qty=10)
    await seed_stock(session, warehouse_id=WH1, product_id=P1, qty=5)
    await seed_stock(session, warehouse_id=WH1, product_id=P2, qty=3)
    await AdjustmentService().apply(
        session, product_id=P1, warehouse_id=WH1, location_id=None, new_quantity=12, reason="COUNT_ERROR", actor=admin
    )
    svc = TransferService()
    doc = await svc.create(
        session,
        admin,
        TransferCreateIn(source_warehouse_id=WH1, target_warehouse_id=WH2, lines=[TransferLineIn(product_id=P1, quantity=4)]),
    )
    await svc.execute(session, doc.id, admin)


async def test_list_movements_filters_and_pages(session: AsyncSession, admin):
    await _history(session, admin)

    everything = await LedgerQueryService.list_movements(session, MovementFilter())
    assert everything["pagination"] == {"page": 1, "limit": 50, "total": 6, "pages": 1}
    ids = [m.id for m in everything["movements"]]
    assert ids == sorted(ids, reverse=True)

    p1 = await LedgerQueryService.list_movements(session, MovementFilter(product_id=P1), page=1, limit=2)
    assert p1["pagination"] == {"page": 1, "limit": 2, "total": 5, "pages": 3}
    assert len(p1["movements"]) == 2
    last = await LedgerQueryService.list_movements(session, MovementFilter(product_id=P1), page=3, limit=2)
    assert len(last["movements"]) == 1

    # warehouse filter matches either side of the move
    w2 = await LedgerQueryService.list_movements(session, MovementFilter(warehouse_id=WH2))
    assert {m.leg for m in w2["movements"]} == {"SOURCE", "DESTINATION"}

    adj = await LedgerQueryService.list_movements(session, MovementFilter(type=MovementType.ADJUSTMENT.value))
    assert [m.delta for m in adj["movements"]] == [-3]

    receipts = await LedgerQueryService.list_movements(session, MovementFilter(source_doc_type=DocType.RECEIPT.value))
    assert receipts["pagination"]["total"] == 3

    now = datetime.now(UTC)
    future = await LedgerQueryService.list_movements(session, MovementFilter(date_from=now + timedelta(hours=1)))
    assert future["pagination"]["total"] == 0
    window = await LedgerQueryService.list_movements(
        session, MovementFilter(date_from=now - timedelta(hours=1), date_to=now + timedelta(hours=1))
    )
    assert window["pagination"]["total"] == 6


async def test_list_movements_rejects_bad_paging(session: AsyncSession):
    with pytest.raises(ValidationError):
        await LedgerQueryService.list_movements(session, MovementFilter(), page=0)
    with pytest.raises(ValidationError):
        await LedgerQueryService.list_movements(session, MovementFilter(), limit=201)
    now = datetime.now(UTC)
    with pytest.raises(ValidationError):
        await LedgerQueryService.list_movements(session, MovementFilter(date_from=now, date_to=now - timedelta(days=1)))


async def test_replay_matches_stored_levels(session: AsyncSession, admin):
    await _history(session, admin)

    w1 = await LedgerReplayService.replay(session, product_id=P1, warehouse_id=WH1)
    assert w1["consistent"] is True
    assert w1["replayed_quantity"] == w1["stored_quantity"] == 8
    assert w1["movements"] == 4
    assert [e["after"] for e in w1["timeline"]] == [10, 15, 12, 8]
    assert all(e["after"] == e["recorded_after"] for e in w1["timeline"])

    w2 = await LedgerReplayService.replay(session, product_id=P1, warehouse_id=WH2)
    assert (w2["replayed_quantity"], w2["consistent"]) == (4, True)

    empty = await LedgerReplayService.replay(session, product_id=P2, warehouse_id=WH2)
    assert (empty["replayed_quantity"], empty["stored_quantity"], empty["movements"]) == (0, 0, 0)


async def test_reconcile_reports_drift(session: AsyncSession, admin):
    await _history(session, admin)
    assert await LedgerReconcileService.level_mismatches(session) == []
    assert await LedgerReconcileService.unmatched_source_legs(session) == []

    # someone edits the balance behind the ledger's back
    await session.execute(
        update(StockLevel)
        .where(StockLevel.product_id == P2, StockLevel.warehouse_id == WH1)
        .values(quantity=7)
        .execution_options(synchronize_session=False)
    )

    drift = await LedgerReconcileService.level_mismatches(session)
    assert drift == [
        {
            "product_id": P2,
            "warehouse_id": WH1,
            "location_id": None,
            "stored_quantity": 7,
            "ledger_quantity": 3,
            "drift": 4,
        }
    ]
    assert await LedgerReconcileService.level_mismatches(session, warehouse_id=WH2) == []

    replay = await LedgerReplayService.replay(session, product_id=P2, warehouse_id=WH1)
    assert replay["consistent"] is False
