# stockledger/api/routers/receipts.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from stockledger.api.deps import get_actor, get_session, get_trace_id
from stockledger.models.enums import ReceiptStatus
from stockledger.schemas.receipt import ReceiptCreateIn, ReceiptOut, ReceiptUpdateIn
from stockledger.services.access_guard import Actor
from stockledger.services.receipt_service import ReceiptService

router = APIRouter(prefix="/receipts", tags=["receipts"])


def get_receipt_service() -> ReceiptService:
    return ReceiptService()


@router.post("", response_model=ReceiptOut, status_code=status.HTTP_201_CREATED)
async def create_receipt(
    payload: ReceiptCreateIn,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_actor),
    svc: ReceiptService = Depends(get_receipt_service),
) -> ReceiptOut:
    return ReceiptOut.model_validate(await svc.create(session, actor, payload))


@router.get("", response_model=List[ReceiptOut])
async def list_receipts(
    status_: Optional[ReceiptStatus] = Query(None, alias="status"),
    warehouse_id: Optional[int] = Query(None),
    session: AsyncSession = Depends(get_session),
) -> List[ReceiptOut]:
    rows = await ReceiptService.list(session, status=status_, warehouse_id=warehouse_id)
    return [ReceiptOut.model_validate(r) for r in rows]


@router.get("/{receipt_id}", response_model=ReceiptOut)
async def get_receipt(receipt_id: int, session: AsyncSession = Depends(get_session)) -> ReceiptOut:
    return ReceiptOut.model_validate(await ReceiptService.get(session, receipt_id))


@router.patch("/{receipt_id}", response_model=ReceiptOut)
async def update_receipt(
    receipt_id: int,
    payload: ReceiptUpdateIn,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_actor),
    svc: ReceiptService = Depends(get_receipt_service),
) -> ReceiptOut:
    return ReceiptOut.model_validate(await svc.update(session, receipt_id, actor, payload))


@router.post("/{receipt_id}/waiting", response_model=ReceiptOut)
async def mark_receipt_waiting(
    receipt_id: int,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_actor),
    svc: ReceiptService = Depends(get_receipt_service),
) -> ReceiptOut:
    return ReceiptOut.model_validate(await svc.mark_waiting(session, receipt_id, actor))


@router.post("/{receipt_id}/validate", response_model=ReceiptOut)
async def validate_receipt(
    receipt_id: int,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_actor),
    trace_id: str = Depends(get_trace_id),
    svc: ReceiptService = Depends(get_receipt_service),
) -> ReceiptOut:
    return ReceiptOut.model_validate(await svc.validate(session, receipt_id, actor, trace_id=trace_id))
