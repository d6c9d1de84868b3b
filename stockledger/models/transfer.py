# stockledger/models/transfer.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stockledger.db.base import Base, utcnow
from stockledger.models.enums import TransferStatus


class Transfer(Base):
    """
    Warehouse-to-warehouse transfer, an explicit two-step saga:

    - dispatch: DRAFT -> IN_TRANSIT, source legs written
    - receive:  IN_TRANSIT -> DONE, destination legs written

    IN_TRANSIT is the queryable in-flight state between the two commits.
    """

    __tablename__ = "transfers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    number: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    requisition_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("requisitions.id", ondelete="SET NULL"), nullable=True, index=True
    )
    # delivery document this transfer carries out, if any
    delivery_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("deliveries.id", ondelete="SET NULL"), nullable=True, index=True
    )

    source_warehouse_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("warehouses.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    target_warehouse_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("warehouses.id", ondelete="RESTRICT"), nullable=False, index=True
    )

    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=TransferStatus.DRAFT.value, index=True
    )

    created_by: Mapped[int] = mapped_column(Integer, nullable=False)
    dispatched_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    dispatched_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    received_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    received_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    lines: Mapped[List["TransferLine"]] = relationship(
        "TransferLine",
        back_populates="transfer",
        cascade="all, delete-orphan",
        order_by="TransferLine.line_no",
        lazy="selectin",
    )


class TransferLine(Base):
    __tablename__ = "transfer_lines"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    transfer_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("transfers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)

    product_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False
    )
    source_location_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("locations.id", ondelete="RESTRICT"), nullable=True
    )
    target_location_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("locations.id", ondelete="RESTRICT"), nullable=True
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    transfer: Mapped["Transfer"] = relationship("Transfer", back_populates="lines")
