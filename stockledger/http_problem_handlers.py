# stockledger/http_problem_handlers.py
from __future__ import annotations

import logging
from typing import Any, Dict, List

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from stockledger.api.problem import make_problem, new_trace_id
from stockledger.services.errors import PartialTransfer, StockError

logger = logging.getLogger("stockledger")


def _ctx(req: Request) -> Dict[str, Any]:
    return {"path": getattr(req.url, "path", ""), "method": req.method}


def _trace(req: Request) -> str:
    return getattr(req.state, "trace_id", None) or new_trace_id()


def _problem_from_http_exc(req: Request, exc: HTTPException) -> Dict[str, Any]:
    """
    HTTPException.detail -> Problem:
    - already a Problem dict: fill in http_status / trace_id / context
    - anything else: message = str(detail)
    """
    status_code = int(exc.status_code)
    d = exc.detail
    if isinstance(d, dict) and "error_code" in d and "message" in d:
        out = dict(d)
        out.setdefault("http_status", status_code)
        out.setdefault("trace_id", _trace(req))
        merged = _ctx(req)
        if isinstance(out.get("context"), dict):
            merged.update(out["context"])
        out["context"] = merged
        return out

    msg = str(d) if d is not None else "request refused"
    return make_problem(
        status_code=status_code,
        error_code="HTTP_ERROR",
        message=msg,
        context=_ctx(req),
        trace_id=_trace(req),
    )


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StockError)
    async def _stock_exc(req: Request, exc: StockError):
        trace_id = _trace(req)
        ctx = _ctx(req)
        if isinstance(exc, PartialTransfer):
            ctx.update({"doc_type": exc.doc_type, "doc_id": exc.doc_id})
            logger.error("PARTIAL_TRANSFER[%s]: %s", trace_id, exc.message)
        elif exc.status >= 500:
            logger.error("STOCK_ERROR[%s] %s: %s", trace_id, exc.code, exc.message)
        content = make_problem(
            status_code=exc.status,
            error_code=exc.code,
            message=exc.message,
            context=ctx,
            details=exc.details,
            trace_id=trace_id,
        )
        return JSONResponse(status_code=exc.status, content=content)

    @app.exception_handler(Exception)
    async def _unhandled_exc(req: Request, exc: Exception):
        trace_id = _trace(req)
        logger.exception("UNHANDLED_EXC[%s]: %s", trace_id, exc)
        content = make_problem(
            status_code=500,
            error_code="INTERNAL_ERROR",
            message="internal error, please retry later",
            context=_ctx(req),
            trace_id=trace_id,
        )
        return JSONResponse(status_code=500, content=content)

    @app.exception_handler(RequestValidationError)
    async def _validation_exc(req: Request, exc: RequestValidationError):
        details: List[Dict[str, Any]] = []
        for i, e in enumerate(exc.errors()):
            if not isinstance(e, dict):
                continue
            loc = ".".join(str(p) for p in e.get("loc", ()) if p != "body")
            details.append(
                {
                    "type": "validation",
                    "path": loc or f"validation[{i}]",
                    "reason": str(e.get("msg") or e.get("type") or "invalid"),
                }
            )
        content = make_problem(
            status_code=422,
            error_code="VALIDATION_ERROR",
            message="invalid request",
            context=_ctx(req),
            details=details,
            trace_id=_trace(req),
        )
        return JSONResponse(status_code=422, content=content)

    @app.exception_handler(HTTPException)
    async def _http_exc(req: Request, exc: HTTPException):
        content = _problem_from_http_exc(req, exc)
        return JSONResponse(status_code=int(exc.status_code), content=content)
