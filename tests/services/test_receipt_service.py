# tests/services/test_receipt_service.py
from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from stockledger.models.enums import MovementType, ReceiptStatus
from stockledger.schemas.receipt import ReceiptCreateIn, ReceiptLineIn, ReceiptUpdateIn
from stockledger.services.errors import AccessDenied, InvalidState, NotFound, ValidationError
from stockledger.services.receipt_service import ReceiptService
from tests.helpers.seed import LOC_W1_A, LOC_W2_A, P1, P2, WH1, WH2
from tests.helpers.stock import level, movement_count

pytestmark = pytest.mark.asyncio


def _payload(**over) -> ReceiptCreateIn:
    data = dict(
        warehouse_id=WH1,
        supplier_name="ACME",
        lines=[
            ReceiptLineIn(product_id=P1, quantity=10),
            ReceiptLineIn(product_id=P2, location_id=LOC_W1_A, quantity=4),
        ],
    )
    data.update(over)
    return ReceiptCreateIn(**data)


async def test_create_numbers_per_warehouse(session: AsyncSession, admin):
    svc = ReceiptService()
    a = await svc.create(session, admin, _payload())
    b = await svc.create(session, admin, _payload())
    c = await svc.create(session, admin, _payload(warehouse_id=WH2, lines=[ReceiptLineIn(product_id=P1, quantity=1)]))

    assert a.number == "WH-W1-IN-000001"
    assert b.number == "WH-W1-IN-000002"
    assert c.number == "WH-W2-IN-000001"
    assert a.status == ReceiptStatus.DRAFT.value
    assert [ln.line_no for ln in a.lines] == [1, 2]
    assert a.total_quantity == 14


async def test_validate_moves_stock_once(session: AsyncSession, operator):
    svc = ReceiptService()
    doc = await svc.create(session, operator, _payload())
    doc_id = doc.id
    done = await svc.validate(session, doc_id, operator, trace_id="t_receipt01")

    assert done.status == ReceiptStatus.DONE.value
    assert done.validated_by == operator.user_id
    assert done.validated_at is not None
    assert await level(session, P1, WH1) == 10
    assert await level(session, P2, WH1, LOC_W1_A) == 4
    assert await movement_count(session, type=MovementType.RECEIPT.value, source_doc_id=doc_id) == 2

    with pytest.raises(InvalidState):
        await svc.validate(session, doc_id, operator)

    assert await level(session, P1, WH1) == 10
    assert await movement_count(session, source_doc_id=doc_id) == 2


async def test_waiting_receipt_validates(session: AsyncSession, admin):
    svc = ReceiptService()
    doc = await svc.create(session, admin, _payload(initial_status=ReceiptStatus.WAITING))
    doc_id = doc.id
    assert doc.status == ReceiptStatus.WAITING.value
    await svc.validate(session, doc_id, admin)
    assert await level(session, P1, WH1) == 10


async def test_manager_cannot_validate(session: AsyncSession, admin, manager):
    svc = ReceiptService()
    doc = await svc.create(session, admin, _payload())
    doc_id = doc.id
    with pytest.raises(AccessDenied):
        await svc.validate(session, doc_id, manager)
    assert await movement_count(session) == 0


async def test_line_rules(session: AsyncSession, admin):
    svc = ReceiptService()
    with pytest.raises(ValidationError):
        await svc.create(session, admin, _payload(lines=[]))
    with pytest.raises(ValidationError) as ei:
        await svc.create(
            session,
            admin,
            _payload(lines=[ReceiptLineIn(product_id=P1, quantity=3), ReceiptLineIn(product_id=P2, quantity=0)]),
        )
    assert ei.value.details[0]["path"] == "lines[1].quantity"

    # bin of another warehouse
    with pytest.raises(ValidationError):
        await svc.create(session, admin, _payload(lines=[ReceiptLineIn(product_id=P1, location_id=LOC_W2_A, quantity=1)]))
    with pytest.raises(NotFound):
        await svc.create(session, admin, _payload(lines=[ReceiptLineIn(product_id=9999, quantity=1)]))
    with pytest.raises(ValidationError):
        await svc.create(session, admin, _payload(initial_status=ReceiptStatus.DONE))


async def test_edit_only_in_draft(session: AsyncSession, admin):
    svc = ReceiptService()
    doc = await svc.create(session, admin, _payload())
    doc_id = doc.id

    edited = await svc.update(
        session,
        doc_id,
        admin,
        ReceiptUpdateIn(notes="dock 3", lines=[ReceiptLineIn(product_id=P2, quantity=8)]),
    )
    assert edited.notes == "dock 3"
    assert edited.supplier_name == "ACME"
    assert [(ln.product_id, ln.quantity) for ln in edited.lines] == [(P2, 8)]

    await svc.mark_waiting(session, doc_id, admin)
    with pytest.raises(InvalidState):
        await svc.update(session, doc_id, admin, ReceiptUpdateIn(notes="late"))
    with pytest.raises(InvalidState):
        await svc.mark_waiting(session, doc_id, admin)


async def test_get_and_list(session: AsyncSession, admin):
    svc = ReceiptService()
    a = await svc.create(session, admin, _payload())
    b = await svc.create(session, admin, _payload(warehouse_id=WH2, lines=[ReceiptLineIn(product_id=P1, quantity=1)]))
    await svc.validate(session, b.id, admin)

    assert (await ReceiptService.get(session, a.id)).number == a.number
    with pytest.raises(NotFound):
        await ReceiptService.get(session, 12345)

    assert [r.id for r in await ReceiptService.list(session)] == [b.id, a.id]
    assert [r.id for r in await ReceiptService.list(session, status=ReceiptStatus.DONE)] == [b.id]
    assert [r.id for r in await ReceiptService.list(session, warehouse_id=WH1)] == [a.id]
