# stockledger/api/routers/ledger.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from stockledger.api.deps import get_session
from stockledger.models.enums import DocType, MovementType
from stockledger.schemas.ledger import InFlightOut, MovementOut, MovementPageOut, ReconcileOut, ReplayOut
from stockledger.services.ledger_query_service import LedgerQueryService, MovementFilter
from stockledger.services.ledger_reconcile_service import LedgerReconcileService
from stockledger.services.ledger_replay_service import LedgerReplayService

router = APIRouter(prefix="/ledger", tags=["ledger"])


@router.get("", response_model=MovementPageOut)
async def list_movements(
    product_id: Optional[int] = Query(None),
    warehouse_id: Optional[int] = Query(None, description="matches source or destination side"),
    type: Optional[MovementType] = Query(None),
    source_doc_type: Optional[DocType] = Query(None),
    source_doc_id: Optional[int] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    page: int = Query(1),
    limit: int = Query(50),
    session: AsyncSession = Depends(get_session),
) -> MovementPageOut:
    f = MovementFilter(
        product_id=product_id,
        warehouse_id=warehouse_id,
        type=type.value if type else None,
        source_doc_type=source_doc_type.value if source_doc_type else None,
        source_doc_id=source_doc_id,
        date_from=date_from,
        date_to=date_to,
    )
    res = await LedgerQueryService.list_movements(session, f, page=page, limit=limit)
    return MovementPageOut(
        movements=[MovementOut.model_validate(m) for m in res["movements"]],
        pagination=res["pagination"],
    )


@router.get("/replay", response_model=ReplayOut)
async def replay_key(
    product_id: int = Query(...),
    warehouse_id: int = Query(...),
    location_id: Optional[int] = Query(None),
    session: AsyncSession = Depends(get_session),
) -> ReplayOut:
    res = await LedgerReplayService.replay(
        session, product_id=product_id, warehouse_id=warehouse_id, location_id=location_id
    )
    return ReplayOut.model_validate(res)


@router.get("/reconcile", response_model=ReconcileOut)
async def reconcile(
    warehouse_id: Optional[int] = Query(None),
    session: AsyncSession = Depends(get_session),
) -> ReconcileOut:
    mismatches = await LedgerReconcileService.level_mismatches(session, warehouse_id=warehouse_id)
    unmatched = await LedgerReconcileService.unmatched_source_legs(session)
    return ReconcileOut(
        ok=not mismatches and not unmatched,
        level_mismatches=mismatches,
        unmatched_source_legs=unmatched,
    )


@router.get("/in-flight", response_model=InFlightOut)
async def in_flight(session: AsyncSession = Depends(get_session)) -> InFlightOut:
    return InFlightOut.model_validate(await LedgerReconcileService.in_flight(session))
