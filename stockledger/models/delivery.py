# stockledger/models/delivery.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stockledger.db.base import Base, utcnow
from stockledger.models.enums import DeliveryStatus, TransitStatus


class Delivery(Base):
    """
    Outbound delivery document.

    - DRAFT -> WAITING -> READY -> DONE (REJECTED from WAITING/READY)
    - with target_warehouse_id it is a warehouse-to-warehouse move:
      validation writes the source legs, then the destination legs in a
      second step; transit_status is the in-flight marker between the two
    - accepted_by/accepted_at is a marker set by the receiving side and
      never moves stock
    """

    __tablename__ = "deliveries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    number: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    customer_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    delivery_address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    warehouse_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("warehouses.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    target_warehouse_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("warehouses.id", ondelete="RESTRICT"), nullable=True, index=True
    )
    requisition_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("requisitions.id", ondelete="SET NULL"), nullable=True, index=True
    )

    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=DeliveryStatus.DRAFT.value, index=True
    )
    transit_status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=TransitStatus.NONE.value, index=True
    )

    reference: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    schedule_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    responsible: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    rejected_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_by: Mapped[int] = mapped_column(Integer, nullable=False)
    validated_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    validated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    accepted_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    lines: Mapped[List["DeliveryLine"]] = relationship(
        "DeliveryLine",
        back_populates="delivery",
        cascade="all, delete-orphan",
        order_by="DeliveryLine.line_no",
        lazy="selectin",
    )

    @property
    def is_two_sided(self) -> bool:
        return self.target_warehouse_id is not None


class DeliveryLine(Base):
    __tablename__ = "delivery_lines"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    delivery_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("deliveries.id", ondelete="CASCADE"), nullable=False, index=True
    )
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)

    product_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False
    )
    from_location_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("locations.id", ondelete="RESTRICT"), nullable=True
    )
    # destination bin for two-sided deliveries
    to_location_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("locations.id", ondelete="RESTRICT"), nullable=True
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    delivery: Mapped["Delivery"] = relationship("Delivery", back_populates="lines")
