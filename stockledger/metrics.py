# stockledger/metrics.py
from __future__ import annotations

import os

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    generate_latest,
    multiprocess,
)

# ledger metrics
MOVEMENTS = Counter("stock_movements_total", "Movements appended to the ledger", ["type", "leg"])
IDEMPOTENT = Counter(
    "stock_movement_idempotent_total",
    "apply_movement calls resolved to an existing movement",
    ["source_doc_type"],
)
CAS_RETRIES = Counter("stock_adjust_cas_retries_total", "Adjustment compare-and-swap retries")
PARTIAL = Counter(
    "stock_partial_transfers_total",
    "Two-sided moves left in flight after the source side committed",
    ["doc_type"],
)

router = APIRouter()


@router.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    """
    Single process: export the default REGISTRY.
    Multi process (PROMETHEUS_MULTIPROC_DIR set): merge the shards through a
    throwaway CollectorRegistry.
    """
    if os.environ.get("PROMETHEUS_MULTIPROC_DIR"):
        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)
        payload = generate_latest(registry)
    else:
        payload = generate_latest(REGISTRY)
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)
