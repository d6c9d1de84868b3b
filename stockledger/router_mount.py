# stockledger/router_mount.py
from __future__ import annotations

from fastapi import FastAPI


def mount_routers(app: FastAPI) -> None:
    # ---------------------------------------------------------------------------
    # routers imports
    # ---------------------------------------------------------------------------
    from stockledger.api.routers.adjustments import router as adjustments_router
    from stockledger.api.routers.deliveries import router as deliveries_router
    from stockledger.api.routers.ledger import router as ledger_router
    from stockledger.api.routers.receipts import router as receipts_router
    from stockledger.api.routers.requisitions import router as requisitions_router
    from stockledger.api.routers.stock import router as stock_router
    from stockledger.api.routers.transfers import router as transfers_router
    from stockledger.metrics import router as metrics_router

    # ---------------------------------------------------------------------------
    # read paths
    # ---------------------------------------------------------------------------
    app.include_router(stock_router)
    app.include_router(ledger_router)

    # ---------------------------------------------------------------------------
    # document workflows
    # ---------------------------------------------------------------------------
    app.include_router(receipts_router)
    app.include_router(deliveries_router)
    app.include_router(requisitions_router)
    app.include_router(transfers_router)
    app.include_router(adjustments_router)

    # ---------------------------------------------------------------------------
    # observability
    # ---------------------------------------------------------------------------
    app.include_router(metrics_router)
