# stockledger/api/routers/requisitions.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from stockledger.api.deps import get_actor, get_session
from stockledger.models.enums import RequisitionStatus
from stockledger.schemas.requisition import (
    RequisitionApproveIn,
    RequisitionApproveOut,
    RequisitionCreateIn,
    RequisitionOut,
    RequisitionRejectIn,
    RequisitionUpdateIn,
)
from stockledger.services.access_guard import Actor
from stockledger.services.requisition_service import RequisitionService

router = APIRouter(prefix="/requisitions", tags=["requisitions"])


def get_requisition_service() -> RequisitionService:
    return RequisitionService()


@router.post("", response_model=RequisitionOut, status_code=status.HTTP_201_CREATED)
async def create_requisition(
    payload: RequisitionCreateIn,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_actor),
    svc: RequisitionService = Depends(get_requisition_service),
) -> RequisitionOut:
    return RequisitionOut.model_validate(await svc.create(session, actor, payload))


@router.get("", response_model=List[RequisitionOut])
async def list_requisitions(
    status_: Optional[RequisitionStatus] = Query(None, alias="status"),
    warehouse_id: Optional[int] = Query(None),
    session: AsyncSession = Depends(get_session),
) -> List[RequisitionOut]:
    rows = await RequisitionService.list(session, status=status_, warehouse_id=warehouse_id)
    return [RequisitionOut.model_validate(r) for r in rows]


@router.get("/{requisition_id}", response_model=RequisitionOut)
async def get_requisition(requisition_id: int, session: AsyncSession = Depends(get_session)) -> RequisitionOut:
    return RequisitionOut.model_validate(await RequisitionService.get(session, requisition_id))


@router.patch("/{requisition_id}", response_model=RequisitionOut)
async def update_requisition(
    requisition_id: int,
    payload: RequisitionUpdateIn,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_actor),
    svc: RequisitionService = Depends(get_requisition_service),
) -> RequisitionOut:
    return RequisitionOut.model_validate(await svc.update(session, requisition_id, actor, payload))


@router.post("/{requisition_id}/submit", response_model=RequisitionOut)
async def submit_requisition(
    requisition_id: int,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_actor),
    svc: RequisitionService = Depends(get_requisition_service),
) -> RequisitionOut:
    return RequisitionOut.model_validate(await svc.submit(session, requisition_id, actor))


@router.post("/{requisition_id}/approve", response_model=RequisitionApproveOut)
async def approve_requisition(
    requisition_id: int,
    payload: RequisitionApproveIn,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_actor),
    svc: RequisitionService = Depends(get_requisition_service),
) -> RequisitionApproveOut:
    req, delivery = await svc.approve(
        session, requisition_id, actor, final_source_warehouse_id=payload.final_source_warehouse_id
    )
    return RequisitionApproveOut(
        requisition=RequisitionOut.model_validate(req),
        delivery_id=delivery.id,
        delivery_number=delivery.number,
    )


@router.post("/{requisition_id}/reject", response_model=RequisitionOut)
async def reject_requisition(
    requisition_id: int,
    payload: RequisitionRejectIn,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_actor),
    svc: RequisitionService = Depends(get_requisition_service),
) -> RequisitionOut:
    return RequisitionOut.model_validate(await svc.reject(session, requisition_id, actor, reason=payload.reason))
