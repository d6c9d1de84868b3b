# tests/services/test_requisition_service.py
from __future__ import annotations

from datetime import date

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from stockledger.models.enums import DeliveryStatus, RequisitionStatus, TransitStatus
from stockledger.schemas.requisition import RequisitionCreateIn, RequisitionLineIn, RequisitionUpdateIn
from stockledger.services.delivery_service import DeliveryService
from stockledger.services.errors import AccessDenied, InvalidState, ValidationError
from stockledger.services.requisition_service import RequisitionService
from tests.helpers.seed import P1, P2, WH1, WH2, WH3
from tests.helpers.stock import level, movement_count, seed_stock

pytestmark = pytest.mark.asyncio


def _payload(**over) -> RequisitionCreateIn:
    data = dict(
        requesting_warehouse_id=WH2,
        suggested_source_warehouse_id=WH1,
        lines=[
            RequisitionLineIn(product_id=P1, quantity_requested=6, needed_by_date=date(2026, 11, 1)),
            RequisitionLineIn(product_id=P2, quantity_requested=2),
        ],
    )
    data.update(over)
    return RequisitionCreateIn(**data)


async def test_approval_creates_waiting_delivery(session: AsyncSession, operator_w2, manager):
    svc = RequisitionService()
    req = await svc.create(session, operator_w2, _payload())
    req_id = req.id
    assert req.number == "REQ-0001"
    assert req.status == RequisitionStatus.DRAFT.value

    submitted = await svc.submit(session, req_id, operator_w2)
    assert submitted.status == RequisitionStatus.SUBMITTED.value
    assert submitted.submitted_at is not None

    approved, delivery = await svc.approve(session, req_id, manager, final_source_warehouse_id=WH1)

    assert approved.status == RequisitionStatus.APPROVED.value
    assert approved.final_source_warehouse_id == WH1
    assert approved.approved_by == manager.user_id

    assert delivery.status == DeliveryStatus.WAITING.value
    assert delivery.transit_status == TransitStatus.NONE.value
    assert (delivery.warehouse_id, delivery.target_warehouse_id) == (WH1, WH2)
    assert delivery.requisition_id == req_id
    assert delivery.reference == "REQ-0001"
    assert [(ln.product_id, ln.quantity) for ln in delivery.lines] == [(P1, 6), (P2, 2)]

    # approval is paperwork only
    assert await movement_count(session) == 0


async def test_approved_requisition_delivers_end_to_end(session: AsyncSession, operator_w2, manager, operator):
    await seed_stock(session, warehouse_id=WH1, product_id=P1, qty=10)
    await seed_stock(session, warehouse_id=WH1, product_id=P2, qty=5)
    svc = RequisitionService()
    req = await svc.create(session, operator_w2, _payload())
    req_id = req.id
    await svc.submit(session, req_id, operator_w2)
    _, delivery = await svc.approve(session, req_id, manager, final_source_warehouse_id=WH1)

    await DeliveryService().validate(session, delivery.id, operator)

    assert await level(session, P1, WH1) == 4
    assert await level(session, P1, WH2) == 6
    assert await level(session, P2, WH2) == 2


async def test_state_machine_refusals(session: AsyncSession, operator_w2, manager):
    svc = RequisitionService()
    req = await svc.create(session, operator_w2, _payload())
    req_id = req.id

    with pytest.raises(InvalidState):
        await svc.approve(session, req_id, manager, final_source_warehouse_id=WH1)
    with pytest.raises(InvalidState):
        await svc.reject(session, req_id, manager, reason="nope")

    edited = await svc.update(
        session, req_id, operator_w2, RequisitionUpdateIn(lines=[RequisitionLineIn(product_id=P2, quantity_requested=9)])
    )
    assert [(ln.product_id, ln.quantity_requested) for ln in edited.lines] == [(P2, 9)]

    await svc.submit(session, req_id, operator_w2)
    with pytest.raises(InvalidState):
        await svc.submit(session, req_id, operator_w2)
    with pytest.raises(InvalidState):
        await svc.update(session, req_id, operator_w2, RequisitionUpdateIn(suggested_source_warehouse_id=WH3))

    with pytest.raises(ValidationError):
        await svc.reject(session, req_id, manager, reason="  ")
    rejected = await svc.reject(session, req_id, manager, reason="budget freeze")
    assert rejected.status == RequisitionStatus.REJECTED.value
    assert rejected.rejected_reason == "budget freeze"
    assert rejected.rejected_by == manager.user_id

    with pytest.raises(InvalidState):
        await svc.approve(session, req_id, manager, final_source_warehouse_id=WH1)


async def test_approval_guards(session: AsyncSession, operator_w2, manager, operator, admin):
    svc = RequisitionService()
    req = await svc.create(session, operator_w2, _payload())
    req_id = req.id
    await svc.submit(session, req_id, operator_w2)

    with pytest.raises(AccessDenied):
        await svc.approve(session, req_id, operator, final_source_warehouse_id=WH1)
    with pytest.raises(ValidationError):
        await svc.approve(session, req_id, manager, final_source_warehouse_id=WH2)
    # manager runs WH1 only
    with pytest.raises(AccessDenied):
        await svc.approve(session, req_id, manager, final_source_warehouse_id=WH3)

    still = await RequisitionService.get(session, req_id)
    assert still.status == RequisitionStatus.SUBMITTED.value
    assert await DeliveryService.list(session) == []

    # admin may source from anywhere
    approved, delivery = await svc.approve(session, req_id, admin, final_source_warehouse_id=WH3)
    assert approved.final_source_warehouse_id == WH3
    assert delivery.number == "WH-W3-OUT-000001"


async def test_submit_requires_lines(session: AsyncSession, operator_w2):
    svc = RequisitionService()
    with pytest.raises(ValidationError):
        await svc.create(session, operator_w2, _payload(lines=[]))
    with pytest.raises(ValidationError):
        await svc.create(session, operator_w2, _payload(lines=[RequisitionLineIn(product_id=P1, quantity_requested=-1)]))


async def test_list_filters(session: AsyncSession, operator_w2, manager):
    svc = RequisitionService()
    a = await svc.create(session, operator_w2, _payload())
    b = await svc.create(session, manager, _payload(requesting_warehouse_id=WH1, suggested_source_warehouse_id=None))
    await svc.submit(session, b.id, manager)

    assert [r.id for r in await RequisitionService.list(session)] == [b.id, a.id]
    assert [r.id for r in await RequisitionService.list(session, warehouse_id=WH2)] == [a.id]
    assert [r.id for r in await RequisitionService.list(session, status=RequisitionStatus.SUBMITTED)] == [b.id]
