# tests/services/test_transfer_service.py
from __future__ import annotations

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stockledger.models.enums import MovementLeg, MovementType, TransferStatus
from stockledger.models.stock_movement import StockMovement
from stockledger.schemas.delivery import DeliveryCreateIn, DeliveryLineIn
from stockledger.schemas.requisition import RequisitionCreateIn, RequisitionLineIn
from stockledger.schemas.transfer import TransferCreateIn, TransferLineIn, TransferUpdateIn
from stockledger.services.errors import (
    AccessDenied,
    InsufficientStock,
    InvalidState,
    NotFound,
    PartialTransfer,
    StorageError,
    ValidationError,
)
from stockledger.services.delivery_service import DeliveryService
from stockledger.services.ledger_reconcile_service import LedgerReconcileService
from stockledger.services.requisition_service import RequisitionService
from stockledger.services.stock_service import StockService
from stockledger.services.transfer_service import TransferService
from tests.helpers.seed import LOC_W1_B, LOC_W2_A, P1, P2, WH1, WH2, WH3
from tests.helpers.stock import level, seed_stock

pytestmark = pytest.mark.asyncio


class ReceiveFails(StockService):
    async def apply_movement(self, session, **kw):
        if kw.get("leg") == MovementLeg.DESTINATION:
            raise StorageError("target side unavailable")
        return await super().apply_movement(session, **kw)


def _payload(**over) -> TransferCreateIn:
    data = dict(
        source_warehouse_id=WH1,
        target_warehouse_id=WH2,
        lines=[TransferLineIn(product_id=P1, quantity=5)],
    )
    data.update(over)
    return TransferCreateIn(**data)


async def test_execute_moves_both_sides(session: AsyncSession, manager, operator):
    await seed_stock(session, warehouse_id=WH1, product_id=P1, qty=8)
    svc = TransferService()
    doc = await svc.create(session, manager, _payload())
    doc_id = doc.id
    assert doc.number == "TRF-0001"

    done = await svc.execute(session, doc_id, operator)

    assert done.status == TransferStatus.DONE.value
    assert done.dispatched_by == operator.user_id
    assert done.received_by == operator.user_id
    assert await level(session, P1, WH1) == 3
    assert await level(session, P1, WH2) == 5

    rows = await session.execute(
        select(StockMovement.leg, StockMovement.delta)
        .where(StockMovement.type == MovementType.TRANSFER.value, StockMovement.source_doc_id == doc_id)
        .order_by(StockMovement.id)
    )
    assert rows.all() == [(MovementLeg.SOURCE.value, -5), (MovementLeg.DESTINATION.value, 5)]


async def test_dispatch_then_receive(session: AsyncSession, manager, operator):
    await seed_stock(session, warehouse_id=WH1, product_id=P1, qty=8, location_id=LOC_W1_B)
    svc = TransferService()
    doc = await svc.create(
        session,
        manager,
        _payload(lines=[TransferLineIn(product_id=P1, source_location_id=LOC_W1_B, target_location_id=LOC_W2_A, quantity=8)]),
    )
    doc_id = doc.id

    sent = await svc.dispatch(session, doc_id, operator)
    assert sent.status == TransferStatus.IN_TRANSIT.value
    assert await level(session, P1, WH1, LOC_W1_B) == 0
    assert await level(session, P1, WH2, LOC_W2_A) == 0
    flight = await LedgerReconcileService.in_flight(session)
    assert [t["id"] for t in flight["transfers"]] == [doc_id]

    got = await svc.receive(session, doc_id, operator)
    assert got.status == TransferStatus.DONE.value
    assert await level(session, P1, WH2, LOC_W2_A) == 8
    assert (await LedgerReconcileService.in_flight(session))["transfers"] == []

    with pytest.raises(InvalidState):
        await svc.receive(session, doc_id, operator)
    with pytest.raises(InvalidState):
        await svc.dispatch(session, doc_id, operator)


async def test_dispatch_refuses_shortage(session: AsyncSession, manager, operator):
    await seed_stock(session, warehouse_id=WH1, product_id=P1, qty=2)
    svc = TransferService()
    doc = await svc.create(session, manager, _payload())
    doc_id = doc.id

    with pytest.raises(InsufficientStock):
        await svc.execute(session, doc_id, operator)

    assert (await TransferService.get(session, doc_id)).status == TransferStatus.DRAFT.value
    assert await level(session, P1, WH1) == 2
    assert await level(session, P1, WH2) == 0


async def test_failed_receive_leaves_transfer_in_transit(session: AsyncSession, manager, operator):
    await seed_stock(session, warehouse_id=WH1, product_id=P1, qty=8)
    doc = await TransferService().create(session, manager, _payload())
    doc_id = doc.id

    with pytest.raises(PartialTransfer) as ei:
        await TransferService(stock=ReceiveFails()).execute(session, doc_id, operator)
    assert ei.value.doc_type == "TRANSFER"
    assert ei.value.doc_id == doc_id

    stuck = await TransferService.get(session, doc_id)
    assert stuck.status == TransferStatus.IN_TRANSIT.value
    assert await level(session, P1, WH1) == 3
    assert await level(session, P1, WH2) == 0

    await TransferService().receive(session, doc_id, operator)
    assert await level(session, P1, WH2) == 5


async def test_create_rules(session: AsyncSession, manager, operator, operator_w2):
    svc = TransferService()
    with pytest.raises(AccessDenied):
        await svc.create(session, operator, _payload())
    with pytest.raises(ValidationError):
        await svc.create(session, manager, _payload(target_warehouse_id=WH1))
    with pytest.raises(ValidationError):
        await svc.create(session, manager, _payload(lines=[]))
    with pytest.raises(ValidationError):
        await svc.create(
            session, manager, _payload(lines=[TransferLineIn(product_id=P1, target_location_id=LOC_W1_B, quantity=1)])
        )

    reqs = RequisitionService()
    req = await reqs.create(
        session,
        operator_w2,
        RequisitionCreateIn(requesting_warehouse_id=WH2, lines=[RequisitionLineIn(product_id=P1, quantity_requested=5)]),
    )
    req_id = req.id
    with pytest.raises(ValidationError):
        await svc.create(session, manager, _payload(requisition_id=req_id))

    await reqs.submit(session, req_id, operator_w2)
    await reqs.approve(session, req_id, manager, final_source_warehouse_id=WH1)
    linked = await svc.create(session, manager, _payload(requisition_id=req_id))
    assert linked.requisition_id == req_id


async def test_delivery_link_must_match_the_route(session: AsyncSession, manager):
    deliveries = DeliveryService()
    line = [DeliveryLineIn(product_id=P1, quantity=5)]
    routed = await deliveries.create(session, manager, DeliveryCreateIn(warehouse_id=WH1, target_warehouse_id=WH2, lines=line))
    routed_id = routed.id
    local = await deliveries.create(session, manager, DeliveryCreateIn(warehouse_id=WH1, lines=line))
    local_id = local.id

    svc = TransferService()
    with pytest.raises(NotFound):
        await svc.create(session, manager, _payload(delivery_id=424242))
    with pytest.raises(ValidationError) as ei:
        await svc.create(session, manager, _payload(delivery_id=local_id))
    assert ei.value.details[0]["path"] == "delivery_id"

    linked = await svc.create(session, manager, _payload(delivery_id=routed_id))
    linked_id = linked.id
    assert linked.delivery_id == routed_id
    assert (await TransferService.get(session, linked_id)).delivery_id == routed_id

    # the link pins the route while the transfer is still a draft
    with pytest.raises(ValidationError):
        await svc.update(session, linked_id, manager, TransferUpdateIn(target_warehouse_id=WH3))


async def test_edit_only_in_draft(session: AsyncSession, manager, operator):
    await seed_stock(session, warehouse_id=WH1, product_id=P2, qty=4)
    svc = TransferService()
    doc = await svc.create(session, manager, _payload())
    doc_id = doc.id
    edited = await svc.update(session, doc_id, manager, TransferUpdateIn(lines=[TransferLineIn(product_id=P2, quantity=4)]))
    assert [(ln.product_id, ln.quantity) for ln in edited.lines] == [(P2, 4)]

    await svc.dispatch(session, doc_id, operator)
    with pytest.raises(InvalidState):
        await svc.update(session, doc_id, manager, TransferUpdateIn(target_warehouse_id=WH2))

    listed = await TransferService.list(session, status=TransferStatus.IN_TRANSIT, warehouse_id=WH2)
    assert [t.id for t in listed] == [doc_id]
