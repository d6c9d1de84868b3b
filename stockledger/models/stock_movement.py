# stockledger/models/stock_movement.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from stockledger.db.base import Base, utcnow


class StockMovement(Base):
    """
    Stock ledger (append-only, never updated or deleted).

    - (product_id, warehouse_id, location_id) is the key the delta applies to
    - *_from_id / *_to_id keep the provenance of both sides of a move
    - after_qty is the key balance right after this movement
    - idempotency: (source_doc_type, source_doc_id, source_line_no, leg) is
      unique, so re-applying the same document line leg is a no-op
    """

    __tablename__ = "stock_movements"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)

    product_id: Mapped[int] = mapped_column(sa.Integer, nullable=False, index=True)
    warehouse_id: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    location_id: Mapped[Optional[int]] = mapped_column(sa.Integer, nullable=True)

    warehouse_from_id: Mapped[Optional[int]] = mapped_column(sa.Integer, nullable=True, index=True)
    warehouse_to_id: Mapped[Optional[int]] = mapped_column(sa.Integer, nullable=True, index=True)
    location_from_id: Mapped[Optional[int]] = mapped_column(sa.Integer, nullable=True)
    location_to_id: Mapped[Optional[int]] = mapped_column(sa.Integer, nullable=True)

    delta: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    after_qty: Mapped[int] = mapped_column(sa.Integer, nullable=False)

    type: Mapped[str] = mapped_column(sa.String(16), nullable=False, index=True)
    source_doc_type: Mapped[str] = mapped_column(sa.String(16), nullable=False)
    source_doc_id: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    source_line_no: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=1)
    leg: Mapped[str] = mapped_column(sa.String(16), nullable=False, default="SINGLE")

    actor_id: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    trace_id: Mapped[Optional[str]] = mapped_column(sa.String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )

    __table_args__ = (
        sa.UniqueConstraint(
            "source_doc_type",
            "source_doc_id",
            "source_line_no",
            "leg",
            name="uq_stock_movements_doc_line_leg",
        ),
        sa.CheckConstraint("delta <> 0", name="ck_stock_movements_delta_nonzero"),
        sa.Index("ix_stock_movements_key", "product_id", "warehouse_id", "location_id"),
        sa.Index("ix_stock_movements_created_at", "created_at"),
        sa.Index("ix_stock_movements_source", "source_doc_type", "source_doc_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<Movement {self.type} product={self.product_id} wh={self.warehouse_id} "
            f"loc={self.location_id} delta={self.delta} after={self.after_qty} "
            f"src={self.source_doc_type}:{self.source_doc_id}/{self.source_line_no}/{self.leg}>"
        )
