"""stock ledger core tables

Revision ID: 0001_stock_ledger_core
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001_stock_ledger_core"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _ts(name: str, nullable: bool = False) -> sa.Column:
    if nullable:
        return sa.Column(name, sa.DateTime(timezone=True), nullable=True)
    return sa.Column(name, sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())


def _fk(name: str, target: str, *, nullable: bool, ondelete: str = "RESTRICT") -> sa.Column:
    return sa.Column(name, sa.Integer(), sa.ForeignKey(target, ondelete=ondelete), nullable=nullable)


def upgrade() -> None:
    # ---------- master data ----------
    op.create_table(
        "warehouses",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("code", sa.String(length=32), nullable=False, unique=True),
        sa.Column("name", sa.String(length=100), nullable=False),
    )
    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("sku", sa.String(length=64), nullable=False, unique=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("unit", sa.String(length=16), nullable=False, server_default="PCS"),
    )
    op.create_table(
        "locations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _fk("warehouse_id", "warehouses.id", nullable=False, ondelete="CASCADE"),
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=True),
        sa.UniqueConstraint("warehouse_id", "code", name="uq_locations_wh_code"),
    )
    op.create_index("ix_locations_warehouse_id", "locations", ["warehouse_id"])

    # ---------- ledger ----------
    op.create_table(
        "stock_levels",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _fk("product_id", "products.id", nullable=False),
        _fk("warehouse_id", "warehouses.id", nullable=False),
        _fk("location_id", "locations.id", nullable=True),
        sa.Column("location_key", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
        _ts("updated_at"),
        sa.UniqueConstraint("product_id", "warehouse_id", "location_key", name="uq_stock_levels_key"),
    )
    op.create_index("ix_stock_levels_product_id", "stock_levels", ["product_id"])
    op.create_index("ix_stock_levels_warehouse_id", "stock_levels", ["warehouse_id"])
    op.create_index("ix_stock_levels_product_wh", "stock_levels", ["product_id", "warehouse_id"])

    op.create_table(
        "stock_movements",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("warehouse_id", sa.Integer(), nullable=False),
        sa.Column("location_id", sa.Integer(), nullable=True),
        sa.Column("warehouse_from_id", sa.Integer(), nullable=True),
        sa.Column("warehouse_to_id", sa.Integer(), nullable=True),
        sa.Column("location_from_id", sa.Integer(), nullable=True),
        sa.Column("location_to_id", sa.Integer(), nullable=True),
        sa.Column("delta", sa.Integer(), nullable=False),
        sa.Column("after_qty", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(length=16), nullable=False),
        sa.Column("source_doc_type", sa.String(length=16), nullable=False),
        sa.Column("source_doc_id", sa.Integer(), nullable=False),
        sa.Column("source_line_no", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("leg", sa.String(length=16), nullable=False, server_default="SINGLE"),
        sa.Column("actor_id", sa.Integer(), nullable=False),
        sa.Column("trace_id", sa.String(length=64), nullable=True),
        _ts("created_at"),
        sa.UniqueConstraint(
            "source_doc_type",
            "source_doc_id",
            "source_line_no",
            "leg",
            name="uq_stock_movements_doc_line_leg",
        ),
        sa.CheckConstraint("delta <> 0", name="ck_stock_movements_delta_nonzero"),
    )
    op.create_index("ix_stock_movements_product_id", "stock_movements", ["product_id"])
    op.create_index("ix_stock_movements_warehouse_from_id", "stock_movements", ["warehouse_from_id"])
    op.create_index("ix_stock_movements_warehouse_to_id", "stock_movements", ["warehouse_to_id"])
    op.create_index("ix_stock_movements_type", "stock_movements", ["type"])
    op.create_index(
        "ix_stock_movements_key", "stock_movements", ["product_id", "warehouse_id", "location_id"]
    )
    op.create_index("ix_stock_movements_created_at", "stock_movements", ["created_at"])
    op.create_index("ix_stock_movements_source", "stock_movements", ["source_doc_type", "source_doc_id"])

    # ---------- receipts ----------
    op.create_table(
        "receipts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("number", sa.String(length=64), nullable=False, unique=True),
        _fk("warehouse_id", "warehouses.id", nullable=False),
        sa.Column("supplier_name", sa.String(length=255), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="DRAFT"),
        sa.Column("reference", sa.String(length=128), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.Integer(), nullable=False),
        sa.Column("validated_by", sa.Integer(), nullable=True),
        _ts("validated_at", nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_receipts_warehouse_id", "receipts", ["warehouse_id"])
    op.create_index("ix_receipts_status", "receipts", ["status"])

    op.create_table(
        "receipt_lines",
        sa.Column("id", sa.Integer(), primary_key=True),
        _fk("receipt_id", "receipts.id", nullable=False, ondelete="CASCADE"),
        sa.Column("line_no", sa.Integer(), nullable=False),
        _fk("product_id", "products.id", nullable=False),
        _fk("location_id", "locations.id", nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
    )
    op.create_index("ix_receipt_lines_receipt_id", "receipt_lines", ["receipt_id"])

    # ---------- requisitions ----------
    op.create_table(
        "requisitions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("number", sa.String(length=64), nullable=False, unique=True),
        _fk("requesting_warehouse_id", "warehouses.id", nullable=False),
        _fk("suggested_source_warehouse_id", "warehouses.id", nullable=True),
        _fk("final_source_warehouse_id", "warehouses.id", nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="DRAFT"),
        sa.Column("created_by", sa.Integer(), nullable=False),
        _ts("submitted_at", nullable=True),
        sa.Column("approved_by", sa.Integer(), nullable=True),
        _ts("approved_at", nullable=True),
        sa.Column("rejected_by", sa.Integer(), nullable=True),
        _ts("rejected_at", nullable=True),
        sa.Column("rejected_reason", sa.Text(), nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_requisitions_requesting_warehouse_id", "requisitions", ["requesting_warehouse_id"])
    op.create_index("ix_requisitions_status", "requisitions", ["status"])

    op.create_table(
        "requisition_lines",
        sa.Column("id", sa.Integer(), primary_key=True),
        _fk("requisition_id", "requisitions.id", nullable=False, ondelete="CASCADE"),
        sa.Column("line_no", sa.Integer(), nullable=False),
        _fk("product_id", "products.id", nullable=False),
        sa.Column("quantity_requested", sa.Integer(), nullable=False),
        sa.Column("needed_by_date", sa.Date(), nullable=True),
    )
    op.create_index("ix_requisition_lines_requisition_id", "requisition_lines", ["requisition_id"])

    # ---------- deliveries ----------
    op.create_table(
        "deliveries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("number", sa.String(length=64), nullable=False, unique=True),
        sa.Column("customer_name", sa.String(length=255), nullable=True),
        sa.Column("delivery_address", sa.Text(), nullable=True),
        _fk("warehouse_id", "warehouses.id", nullable=False),
        _fk("target_warehouse_id", "warehouses.id", nullable=True),
        _fk("requisition_id", "requisitions.id", nullable=True, ondelete="SET NULL"),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="DRAFT"),
        sa.Column("transit_status", sa.String(length=16), nullable=False, server_default="NONE"),
        sa.Column("reference", sa.String(length=128), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        _ts("schedule_date", nullable=True),
        sa.Column("responsible", sa.String(length=128), nullable=True),
        sa.Column("rejected_reason", sa.Text(), nullable=True),
        sa.Column("created_by", sa.Integer(), nullable=False),
        sa.Column("validated_by", sa.Integer(), nullable=True),
        _ts("validated_at", nullable=True),
        sa.Column("accepted_by", sa.Integer(), nullable=True),
        _ts("accepted_at", nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_deliveries_warehouse_id", "deliveries", ["warehouse_id"])
    op.create_index("ix_deliveries_target_warehouse_id", "deliveries", ["target_warehouse_id"])
    op.create_index("ix_deliveries_requisition_id", "deliveries", ["requisition_id"])
    op.create_index("ix_deliveries_status", "deliveries", ["status"])
    op.create_index("ix_deliveries_transit_status", "deliveries", ["transit_status"])

    op.create_table(
        "delivery_lines",
        sa.Column("id", sa.Integer(), primary_key=True),
        _fk("delivery_id", "deliveries.id", nullable=False, ondelete="CASCADE"),
        sa.Column("line_no", sa.Integer(), nullable=False),
        _fk("product_id", "products.id", nullable=False),
        _fk("from_location_id", "locations.id", nullable=True),
        _fk("to_location_id", "locations.id", nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
    )
    op.create_index("ix_delivery_lines_delivery_id", "delivery_lines", ["delivery_id"])

    # ---------- transfers ----------
    op.create_table(
        "transfers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("number", sa.String(length=64), nullable=False, unique=True),
        _fk("requisition_id", "requisitions.id", nullable=True, ondelete="SET NULL"),
        _fk("delivery_id", "deliveries.id", nullable=True, ondelete="SET NULL"),
        _fk("source_warehouse_id", "warehouses.id", nullable=False),
        _fk("target_warehouse_id", "warehouses.id", nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="DRAFT"),
        sa.Column("created_by", sa.Integer(), nullable=False),
        sa.Column("dispatched_by", sa.Integer(), nullable=True),
        _ts("dispatched_at", nullable=True),
        sa.Column("received_by", sa.Integer(), nullable=True),
        _ts("received_at", nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_transfers_requisition_id", "transfers", ["requisition_id"])
    op.create_index("ix_transfers_delivery_id", "transfers", ["delivery_id"])
    op.create_index("ix_transfers_source_warehouse_id", "transfers", ["source_warehouse_id"])
    op.create_index("ix_transfers_target_warehouse_id", "transfers", ["target_warehouse_id"])
    op.create_index("ix_transfers_status", "transfers", ["status"])

    op.create_table(
        "transfer_lines",
        sa.Column("id", sa.Integer(), primary_key=True),
        _fk("transfer_id", "transfers.id", nullable=False, ondelete="CASCADE"),
        sa.Column("line_no", sa.Integer(), nullable=False),
        _fk("product_id", "products.id", nullable=False),
        _fk("source_location_id", "locations.id", nullable=True),
        _fk("target_location_id", "locations.id", nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
    )
    op.create_index("ix_transfer_lines_transfer_id", "transfer_lines", ["transfer_id"])

    # ---------- adjustments ----------
    op.create_table(
        "adjustments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("number", sa.String(length=64), nullable=False, unique=True),
        _fk("product_id", "products.id", nullable=False),
        _fk("warehouse_id", "warehouses.id", nullable=False),
        _fk("location_id", "locations.id", nullable=True),
        sa.Column("old_quantity", sa.Integer(), nullable=False),
        sa.Column("new_quantity", sa.Integer(), nullable=False),
        sa.Column("difference", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(length=16), nullable=False),
        sa.Column("remarks", sa.Text(), nullable=True),
        sa.Column("created_by", sa.Integer(), nullable=False),
        _ts("created_at"),
    )
    op.create_index("ix_adjustments_product_id", "adjustments", ["product_id"])
    op.create_index("ix_adjustments_warehouse_id", "adjustments", ["warehouse_id"])
    op.create_index("ix_adjustments_created_at", "adjustments", ["created_at"])

    # ---------- numbering ----------
    op.create_table(
        "doc_sequences",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("doc_type", sa.String(length=16), nullable=False),
        sa.Column("scope", sa.String(length=64), nullable=False, server_default=""),
        sa.Column("last_value", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("doc_type", "scope", name="uq_doc_sequences_type_scope"),
    )


def downgrade() -> None:
    for table in (
        "doc_sequences",
        "adjustments",
        "transfer_lines",
        "transfers",
        "delivery_lines",
        "deliveries",
        "requisition_lines",
        "requisitions",
        "receipt_lines",
        "receipts",
        "stock_movements",
        "stock_levels",
        "locations",
        "products",
        "warehouses",
    ):
        op.drop_table(table)
