# stockledger/main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from stockledger.core.config import get_settings
from stockledger.core.logging import setup_logging
from stockledger.db.base import init_models
from stockledger.db.session import close_engines
from stockledger.http_problem_handlers import register_exception_handlers
from stockledger.router_mount import mount_routers

logger = logging.getLogger("stockledger")


@asynccontextmanager
async def _lifespan(_app: FastAPI):
    yield
    await close_engines()


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL, json=settings.JSON_LOG)
    init_models()

    app = FastAPI(
        title="stockledger",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=_lifespan,
    )
    register_exception_handlers(app)
    mount_routers(app)

    @app.get("/healthz", tags=["ops"])
    async def healthz() -> dict:
        return {"ok": True, "env": settings.ENV}

    logger.info("stockledger app ready (env=%s)", settings.ENV)
    return app


app = create_app()
