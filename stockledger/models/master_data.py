# stockledger/models/master_data.py
from __future__ import annotations

from typing import List, Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stockledger.db.base import Base


class Warehouse(Base):
    """
    Warehouse master record (minimal field set).

    Master data is owned by another service; the ledger only needs ids for
    existence checks and `code` for document numbers.
    """

    __tablename__ = "warehouses"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(sa.String(32), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(sa.String(100), nullable=False)

    locations: Mapped[List["Location"]] = relationship(
        "Location",
        back_populates="warehouse",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Warehouse id={self.id} code={self.code!r}>"


class Location(Base):
    """Bin-location inside a warehouse."""

    __tablename__ = "locations"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    warehouse_id: Mapped[int] = mapped_column(
        sa.Integer,
        sa.ForeignKey("warehouses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    code: Mapped[str] = mapped_column(sa.String(64), nullable=False)
    name: Mapped[Optional[str]] = mapped_column(sa.String(100), nullable=True)

    warehouse: Mapped["Warehouse"] = relationship("Warehouse", back_populates="locations")

    __table_args__ = (sa.UniqueConstraint("warehouse_id", "code", name="uq_locations_wh_code"),)

    def __repr__(self) -> str:
        return f"<Location id={self.id} wh={self.warehouse_id} code={self.code!r}>"


class Product(Base):
    __tablename__ = "products"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    sku: Mapped[str] = mapped_column(sa.String(64), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    unit: Mapped[str] = mapped_column(sa.String(16), nullable=False, default="PCS")

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r}>"
