# stockledger/api/routers/adjustments.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from stockledger.api.deps import get_actor, get_session, get_trace_id
from stockledger.schemas.adjustment import AdjustmentIn, AdjustmentOut
from stockledger.services.access_guard import Actor
from stockledger.services.adjustment_service import AdjustmentService

router = APIRouter(prefix="/adjustments", tags=["adjustments"])


def get_adjustment_service() -> AdjustmentService:
    return AdjustmentService()


@router.post("", response_model=AdjustmentOut, status_code=status.HTTP_201_CREATED)
async def apply_adjustment(
    payload: AdjustmentIn,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_actor),
    trace_id: str = Depends(get_trace_id),
    svc: AdjustmentService = Depends(get_adjustment_service),
) -> AdjustmentOut:
    res = await svc.apply(
        session,
        product_id=payload.product_id,
        warehouse_id=payload.warehouse_id,
        location_id=payload.location_id,
        new_quantity=payload.new_quantity,
        reason=payload.reason,
        actor=actor,
        remarks=payload.remarks,
        trace_id=trace_id,
    )
    out = AdjustmentOut.model_validate(res.adjustment)
    out.movement_id = res.movement.id if res.movement is not None else None
    return out


@router.get("", response_model=List[AdjustmentOut])
async def list_adjustments(
    warehouse_id: Optional[int] = Query(None),
    product_id: Optional[int] = Query(None),
    session: AsyncSession = Depends(get_session),
) -> List[AdjustmentOut]:
    rows = await AdjustmentService.list(session, warehouse_id=warehouse_id, product_id=product_id)
    return [AdjustmentOut.model_validate(r) for r in rows]


@router.get("/{adjustment_id}", response_model=AdjustmentOut)
async def get_adjustment(adjustment_id: int, session: AsyncSession = Depends(get_session)) -> AdjustmentOut:
    out = AdjustmentOut.model_validate(await AdjustmentService.get(session, adjustment_id))
    mv = await AdjustmentService.movement_for(session, adjustment_id)
    out.movement_id = mv.id if mv is not None else None
    return out
