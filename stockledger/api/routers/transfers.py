# stockledger/api/routers/transfers.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from stockledger.api.deps import get_actor, get_session, get_trace_id
from stockledger.models.enums import TransferStatus
from stockledger.schemas.transfer import TransferCreateIn, TransferOut, TransferUpdateIn
from stockledger.services.access_guard import Actor
from stockledger.services.transfer_service import TransferService

router = APIRouter(prefix="/transfers", tags=["transfers"])


def get_transfer_service() -> TransferService:
    return TransferService()


@router.post("", response_model=TransferOut, status_code=status.HTTP_201_CREATED)
async def create_transfer(
    payload: TransferCreateIn,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_actor),
    svc: TransferService = Depends(get_transfer_service),
) -> TransferOut:
    return TransferOut.model_validate(await svc.create(session, actor, payload))


@router.get("", response_model=List[TransferOut])
async def list_transfers(
    status_: Optional[TransferStatus] = Query(None, alias="status"),
    warehouse_id: Optional[int] = Query(None),
    session: AsyncSession = Depends(get_session),
) -> List[TransferOut]:
    rows = await TransferService.list(session, status=status_, warehouse_id=warehouse_id)
    return [TransferOut.model_validate(r) for r in rows]


@router.get("/{transfer_id}", response_model=TransferOut)
async def get_transfer(transfer_id: int, session: AsyncSession = Depends(get_session)) -> TransferOut:
    return TransferOut.model_validate(await TransferService.get(session, transfer_id))


@router.patch("/{transfer_id}", response_model=TransferOut)
async def update_transfer(
    transfer_id: int,
    payload: TransferUpdateIn,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_actor),
    svc: TransferService = Depends(get_transfer_service),
) -> TransferOut:
    return TransferOut.model_validate(await svc.update(session, transfer_id, actor, payload))


@router.post("/{transfer_id}/dispatch", response_model=TransferOut)
async def dispatch_transfer(
    transfer_id: int,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_actor),
    trace_id: str = Depends(get_trace_id),
    svc: TransferService = Depends(get_transfer_service),
) -> TransferOut:
    return TransferOut.model_validate(await svc.dispatch(session, transfer_id, actor, trace_id=trace_id))


@router.post("/{transfer_id}/receive", response_model=TransferOut)
async def receive_transfer(
    transfer_id: int,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_actor),
    trace_id: str = Depends(get_trace_id),
    svc: TransferService = Depends(get_transfer_service),
) -> TransferOut:
    return TransferOut.model_validate(await svc.receive(session, transfer_id, actor, trace_id=trace_id))


@router.post("/{transfer_id}/execute", response_model=TransferOut)
async def execute_transfer(
    transfer_id: int,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_actor),
    trace_id: str = Depends(get_trace_id),
    svc: TransferService = Depends(get_transfer_service),
) -> TransferOut:
    return TransferOut.model_validate(await svc.execute(session, transfer_id, actor, trace_id=trace_id))
