# tests/api/test_workflow_api.py
from __future__ import annotations

import httpx
import pytest

from tests.helpers.seed import LOC_W1_A, P1, P2, WH1, WH2
from tests.helpers.stock import actor_headers

pytestmark = pytest.mark.asyncio

ADMIN = actor_headers(1, "ADMIN")
MANAGER = actor_headers(2, "MANAGER", "1")
OPERATOR = actor_headers(3, "OPERATOR", "1")
OPERATOR_W2 = actor_headers(4, "OPERATOR", "2")


async def _stock_in(client: httpx.AsyncClient, product_id: int, qty: int, location_id=None) -> dict:
    r = await client.post(
        "/receipts",
        json={
            "warehouse_id": WH1,
            "supplier_name": "ACME",
            "lines": [{"product_id": product_id, "location_id": location_id, "quantity": qty}],
        },
        headers=ADMIN,
    )
    assert r.status_code == 201, r.text
    r = await client.post(f"/receipts/{r.json()['id']}/validate", headers=OPERATOR)
    assert r.status_code == 200, r.text
    return r.json()


async def _qty(client: httpx.AsyncClient, product_id: int, warehouse_id: int, location_id=None) -> int:
    params = {"product_id": product_id, "warehouse_id": warehouse_id}
    if location_id is not None:
        params["location_id"] = location_id
    r = await client.get("/stock/level", params=params)
    assert r.status_code == 200
    return r.json()["quantity"]


async def test_healthz_and_metrics(client: httpx.AsyncClient):
    r = await client.get("/healthz")
    assert r.status_code == 200
    assert r.json()["ok"] is True

    await _stock_in(client, P1, 1)
    r = await client.get("/metrics")
    assert r.status_code == 200
    assert "stock_movements_total" in r.text


async def test_receipt_to_stock_and_ledger(client: httpx.AsyncClient):
    doc = await _stock_in(client, P1, 10, location_id=LOC_W1_A)
    assert doc["status"] == "DONE"
    assert doc["number"] == "WH-W1-IN-000001"
    assert doc["total_quantity"] == 10
    assert doc["validated_at"].endswith(("Z", "+00:00"))

    assert await _qty(client, P1, WH1, LOC_W1_A) == 10
    assert await _qty(client, P1, WH1) == 0

    r = await client.get(f"/stock/products/{P1}/levels")
    body = r.json()
    assert body["total_quantity"] == 10
    assert [lv["location_id"] for lv in body["levels"]] == [LOC_W1_A]

    r = await client.get("/ledger", params={"product_id": P1, "type": "RECEIPT"})
    page = r.json()
    assert page["pagination"]["total"] == 1
    mv = page["movements"][0]
    assert (mv["delta"], mv["after_qty"], mv["leg"]) == (10, 10, "SINGLE")
    assert mv["source_doc_id"] == doc["id"]
    assert mv["trace_id"].startswith("t_")

    r = await client.get("/receipts", params={"status": "DONE"})
    assert [d["id"] for d in r.json()] == [doc["id"]]


async def test_delivery_lifecycle(client: httpx.AsyncClient):
    await _stock_in(client, P1, 10)
    r = await client.post(
        "/deliveries",
        json={"warehouse_id": WH1, "target_warehouse_id": WH2, "lines": [{"product_id": P1, "quantity": 6}]},
        headers=MANAGER,
    )
    assert r.status_code == 201, r.text
    did = r.json()["id"]

    r = await client.patch(f"/deliveries/{did}", json={"notes": "fragile"}, headers=MANAGER)
    assert r.json()["notes"] == "fragile"
    assert (await client.post(f"/deliveries/{did}/waiting", headers=MANAGER)).json()["status"] == "WAITING"
    assert (await client.post(f"/deliveries/{did}/ready", headers=MANAGER)).json()["status"] == "READY"

    r = await client.post(f"/deliveries/{did}/validate", headers=OPERATOR)
    assert r.status_code == 200, r.text
    assert (r.json()["status"], r.json()["transit_status"]) == ("DONE", "ARRIVED")
    assert await _qty(client, P1, WH1) == 4
    assert await _qty(client, P1, WH2) == 6

    r = await client.post(f"/deliveries/{did}/accept", headers=OPERATOR_W2)
    assert r.status_code == 200
    assert r.json()["accepted_by"] == 4

    r = await client.get("/deliveries", params={"warehouse_id": WH2})
    assert [d["id"] for d in r.json()] == [did]


async def test_delivery_reject(client: httpx.AsyncClient):
    r = await client.post(
        "/deliveries",
        json={"warehouse_id": WH1, "initial_status": "WAITING", "lines": [{"product_id": P1, "quantity": 1}]},
        headers=MANAGER,
    )
    did = r.json()["id"]
    r = await client.post(f"/deliveries/{did}/reject", json={"reason": "duplicate order"}, headers=MANAGER)
    assert r.status_code == 200
    assert r.json()["status"] == "REJECTED"
    assert r.json()["rejected_reason"] == "duplicate order"


async def test_requisition_approval_creates_delivery(client: httpx.AsyncClient):
    r = await client.post(
        "/requisitions",
        json={"requesting_warehouse_id": WH2, "lines": [{"product_id": P2, "quantity_requested": 3}]},
        headers=OPERATOR_W2,
    )
    assert r.status_code == 201, r.text
    rid = r.json()["id"]

    assert (await client.post(f"/requisitions/{rid}/submit", headers=OPERATOR_W2)).json()["status"] == "SUBMITTED"
    r = await client.post(f"/requisitions/{rid}/approve", json={"final_source_warehouse_id": WH1}, headers=MANAGER)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["requisition"]["status"] == "APPROVED"
    assert body["delivery_number"] == "WH-W1-OUT-000001"

    r = await client.get(f"/deliveries/{body['delivery_id']}")
    d = r.json()
    assert (d["status"], d["warehouse_id"], d["target_warehouse_id"], d["requisition_id"]) == ("WAITING", WH1, WH2, rid)

    r = await client.post(f"/requisitions/{rid}/reject", json={"reason": "late"}, headers=MANAGER)
    assert r.status_code == 409


async def test_transfer_and_reconcile(client: httpx.AsyncClient):
    await _stock_in(client, P1, 9)
    r = await client.post(
        "/transfers",
        json={"source_warehouse_id": WH1, "target_warehouse_id": WH2, "lines": [{"product_id": P1, "quantity": 9}]},
        headers=MANAGER,
    )
    assert r.status_code == 201, r.text
    tid = r.json()["id"]

    r = await client.post(f"/transfers/{tid}/dispatch", headers=OPERATOR)
    assert r.json()["status"] == "IN_TRANSIT"
    r = await client.get("/ledger/in-flight")
    assert [t["id"] for t in r.json()["transfers"]] == [tid]
    r = await client.get("/ledger/reconcile")
    # goods in transit keep the ledger open
    assert r.json()["ok"] is False
    assert len(r.json()["unmatched_source_legs"]) == 1

    r = await client.post(f"/transfers/{tid}/receive", headers=OPERATOR)
    assert r.json()["status"] == "DONE"
    assert await _qty(client, P1, WH2) == 9

    r = await client.get("/ledger/reconcile")
    assert r.json() == {"ok": True, "level_mismatches": [], "unmatched_source_legs": []}
    r = await client.get("/ledger/replay", params={"product_id": P1, "warehouse_id": WH1})
    replay = r.json()
    assert replay["consistent"] is True
    assert [e["after"] for e in replay["timeline"]] == [9, 0]


async def test_adjustment_endpoints(client: httpx.AsyncClient):
    await _stock_in(client, P1, 20)
    r = await client.post(
        "/adjustments",
        json={"product_id": P1, "warehouse_id": WH1, "new_quantity": 15, "reason": "DAMAGE"},
        headers=OPERATOR,
    )
    assert r.status_code == 201, r.text
    adj = r.json()
    assert (adj["old_quantity"], adj["difference"]) == (20, -5)
    assert isinstance(adj["movement_id"], int)

    r = await client.get(f"/adjustments/{adj['id']}")
    assert r.json()["movement_id"] == adj["movement_id"]
    assert await _qty(client, P1, WH1) == 15

    r = await client.post(
        "/adjustments",
        json={"product_id": P1, "warehouse_id": WH2, "new_quantity": 1, "reason": "LOSS"},
        headers=OPERATOR,
    )
    assert r.status_code == 403

    r = await client.get("/adjustments", params={"product_id": P1})
    assert [a["id"] for a in r.json()] == [adj["id"]]
