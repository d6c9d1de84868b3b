# stockledger/models/stock_level.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy import Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from stockledger.db.base import Base, utcnow

# location_key for warehouse-level stock (no bin)
NO_LOCATION_KEY = 0


def location_key_of(location_id: Optional[int]) -> int:
    return int(location_id) if location_id is not None else NO_LOCATION_KEY


class StockLevel(Base):
    """
    Materialized balance per (product_id, warehouse_id, location_id).

    - quantity is a cache of Σ stock_movements.delta for the key; only the
      ledger engine writes it
    - location_key = coalesce(location_id, 0) carries the unique key, since
      NULL location ids never collide in a unique constraint
    - version is bumped on every write (optimistic check for adjustments)
    - rows are never deleted, only zeroed
    """

    __tablename__ = "stock_levels"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)

    product_id: Mapped[int] = mapped_column(
        sa.Integer,
        sa.ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    warehouse_id: Mapped[int] = mapped_column(
        sa.Integer,
        sa.ForeignKey("warehouses.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    location_id: Mapped[Optional[int]] = mapped_column(
        sa.Integer,
        sa.ForeignKey("locations.id", ondelete="RESTRICT"),
        nullable=True,
    )
    location_key: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=NO_LOCATION_KEY)

    quantity: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    version: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)

    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    __table_args__ = (
        UniqueConstraint("product_id", "warehouse_id", "location_key", name="uq_stock_levels_key"),
        Index("ix_stock_levels_product_wh", "product_id", "warehouse_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<StockLevel product={self.product_id} wh={self.warehouse_id} "
            f"loc={self.location_id} qty={self.quantity} v={self.version}>"
        )
