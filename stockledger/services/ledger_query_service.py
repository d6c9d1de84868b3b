# stockledger/services/ledger_query_service.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from stockledger.core.config import get_settings
from stockledger.models.stock_movement import StockMovement
from stockledger.services.errors import ValidationError


@dataclass(frozen=True)
class MovementFilter:
    product_id: Optional[int] = None
    # matches either side of a move (from or to)
    warehouse_id: Optional[int] = None
    type: Optional[str] = None
    source_doc_type: Optional[str] = None
    source_doc_id: Optional[int] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None


class LedgerQueryService:
    """Audit read path over stock_movements (newest first, paged)."""

    @staticmethod
    def _where(f: MovementFilter) -> List[Any]:
        conds: List[Any] = []
        if f.product_id is not None:
            conds.append(StockMovement.product_id == int(f.product_id))
        if f.warehouse_id is not None:
            wid = int(f.warehouse_id)
            conds.append(
                or_(
                    StockMovement.warehouse_from_id == wid,
                    StockMovement.warehouse_to_id == wid,
                )
            )
        if f.type:
            conds.append(StockMovement.type == str(f.type))
        if f.source_doc_type:
            conds.append(StockMovement.source_doc_type == str(f.source_doc_type))
        if f.source_doc_id is not None:
            conds.append(StockMovement.source_doc_id == int(f.source_doc_id))
        if f.date_from is not None:
            conds.append(StockMovement.created_at >= f.date_from)
        if f.date_to is not None:
            conds.append(StockMovement.created_at <= f.date_to)
        return conds

    @classmethod
    async def list_movements(
        cls,
        session: AsyncSession,
        f: MovementFilter,
        *,
        page: int = 1,
        limit: int = 50,
    ) -> Dict[str, Any]:
        max_limit = get_settings().LEDGER_PAGE_LIMIT_MAX
        if page < 1:
            raise ValidationError(f"page must be >= 1, got {page}")
        if limit < 1 or limit > max_limit:
            raise ValidationError(f"limit must be within 1..{max_limit}, got {limit}")
        if f.date_from and f.date_to and f.date_from > f.date_to:
            raise ValidationError("date_from must not be after date_to")

        conds = cls._where(f)

        total = int(
            (await session.execute(select(func.count(StockMovement.id)).where(*conds))).scalar_one()
        )
        stmt = (
            select(StockMovement)
            .where(*conds)
            .order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        rows = list((await session.execute(stmt)).scalars().all())
        return {
            "movements": rows,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": (total + limit - 1) // limit,
            },
        }
