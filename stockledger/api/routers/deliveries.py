# stockledger/api/routers/deliveries.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from stockledger.api.deps import get_actor, get_session, get_trace_id
from stockledger.models.enums import DeliveryStatus, TransitStatus
from stockledger.schemas.delivery import DeliveryCreateIn, DeliveryOut, DeliveryRejectIn, DeliveryUpdateIn
from stockledger.services.access_guard import Actor
from stockledger.services.delivery_service import DeliveryService

router = APIRouter(prefix="/deliveries", tags=["deliveries"])


def get_delivery_service() -> DeliveryService:
    return DeliveryService()


@router.post("", response_model=DeliveryOut, status_code=status.HTTP_201_CREATED)
async def create_delivery(
    payload: DeliveryCreateIn,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_actor),
    svc: DeliveryService = Depends(get_delivery_service),
) -> DeliveryOut:
    return DeliveryOut.model_validate(await svc.create(session, actor, payload))


@router.get("", response_model=List[DeliveryOut])
async def list_deliveries(
    status_: Optional[DeliveryStatus] = Query(None, alias="status"),
    transit_status: Optional[TransitStatus] = Query(None),
    warehouse_id: Optional[int] = Query(None),
    session: AsyncSession = Depends(get_session),
) -> List[DeliveryOut]:
    rows = await DeliveryService.list(
        session, status=status_, warehouse_id=warehouse_id, transit_status=transit_status
    )
    return [DeliveryOut.model_validate(r) for r in rows]


@router.get("/{delivery_id}", response_model=DeliveryOut)
async def get_delivery(delivery_id: int, session: AsyncSession = Depends(get_session)) -> DeliveryOut:
    return DeliveryOut.model_validate(await DeliveryService.get(session, delivery_id))


@router.patch("/{delivery_id}", response_model=DeliveryOut)
async def update_delivery(
    delivery_id: int,
    payload: DeliveryUpdateIn,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_actor),
    svc: DeliveryService = Depends(get_delivery_service),
) -> DeliveryOut:
    return DeliveryOut.model_validate(await svc.update(session, delivery_id, actor, payload))


@router.post("/{delivery_id}/waiting", response_model=DeliveryOut)
async def mark_delivery_waiting(
    delivery_id: int,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_actor),
    svc: DeliveryService = Depends(get_delivery_service),
) -> DeliveryOut:
    return DeliveryOut.model_validate(await svc.mark_waiting(session, delivery_id, actor))


@router.post("/{delivery_id}/ready", response_model=DeliveryOut)
async def mark_delivery_ready(
    delivery_id: int,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_actor),
    svc: DeliveryService = Depends(get_delivery_service),
) -> DeliveryOut:
    return DeliveryOut.model_validate(await svc.mark_ready(session, delivery_id, actor))


@router.post("/{delivery_id}/reject", response_model=DeliveryOut)
async def reject_delivery(
    delivery_id: int,
    payload: DeliveryRejectIn,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_actor),
    svc: DeliveryService = Depends(get_delivery_service),
) -> DeliveryOut:
    return DeliveryOut.model_validate(await svc.reject(session, delivery_id, actor, payload.reason))


@router.post("/{delivery_id}/validate", response_model=DeliveryOut)
async def validate_delivery(
    delivery_id: int,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_actor),
    trace_id: str = Depends(get_trace_id),
    svc: DeliveryService = Depends(get_delivery_service),
) -> DeliveryOut:
    return DeliveryOut.model_validate(await svc.validate(session, delivery_id, actor, trace_id=trace_id))


@router.post("/{delivery_id}/complete-transit", response_model=DeliveryOut)
async def complete_delivery_transit(
    delivery_id: int,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_actor),
    trace_id: str = Depends(get_trace_id),
    svc: DeliveryService = Depends(get_delivery_service),
) -> DeliveryOut:
    return DeliveryOut.model_validate(
        await svc.complete_transit(session, delivery_id, actor, trace_id=trace_id)
    )


@router.post("/{delivery_id}/accept", response_model=DeliveryOut)
async def accept_delivery(
    delivery_id: int,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_actor),
    svc: DeliveryService = Depends(get_delivery_service),
) -> DeliveryOut:
    return DeliveryOut.model_validate(await svc.accept(session, delivery_id, actor))
