"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # Tenants and their users
    op.create_table(
        "organizations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("organization_id", sa.Integer(),
                  sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("email", sa.String(255), unique=True, nullable=False, index=True),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="owner"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    # Catalog and stock
    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("organization_id", sa.Integer(),
                  sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("design", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("synced_from_supplier", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("supplier_product_id", sa.Integer(), nullable=True),
        sa.Column("created_by_name", sa.String(255), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("organization_id", "design", name="uq_product_org_design"),
    )
    op.create_table(
        "color_variants",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("product_id", sa.Integer(),
                  sa.ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("color", sa.String(50), nullable=False),
        sa.Column("wholesale_price", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("retail_price", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.UniqueConstraint("product_id", "color", name="uq_color_variant_product_color"),
    )
    op.create_table(
        "size_stocks",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("color_variant_id", sa.Integer(),
                  sa.ForeignKey("color_variants.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("size", sa.String(10), nullable=False),
        sa.Column("current_stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("locked_stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("reorder_point", sa.Integer(), nullable=False, server_default="20"),
        sa.UniqueConstraint("color_variant_id", "size", name="uq_size_stock_variant_size"),
        sa.CheckConstraint("current_stock >= 0", name="ck_size_stock_current_non_negative"),
        sa.CheckConstraint("locked_stock >= 0", name="ck_size_stock_locked_non_negative"),
    )

    # Wholesale (supplier side)
    op.create_table(
        "wholesale_buyers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("organization_id", sa.Integer(),
                  sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("mobile", sa.String(20), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("business_name", sa.String(255), nullable=True),
        sa.Column("customer_tenant_id", sa.Integer(),
                  sa.ForeignKey("organizations.id", ondelete="SET NULL"), nullable=True, index=True),
        sa.Column("sync_preference", sa.String(10), nullable=False, server_default="direct"),
        *_timestamps(),
        sa.UniqueConstraint("organization_id", "mobile", name="uq_wholesale_buyer_org_mobile"),
    )
    op.create_table(
        "wholesale_orders",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("organization_id", sa.Integer(),
                  sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("buyer_id", sa.Integer(),
                  sa.ForeignKey("wholesale_buyers.id", ondelete="SET NULL"), nullable=True, index=True),
        sa.Column("challan_number", sa.String(100), nullable=True),
        sa.Column("buyer_name", sa.String(255), nullable=False),
        sa.Column("buyer_contact", sa.String(20), nullable=False, index=True),
        sa.Column("business_name", sa.String(255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("discount_type", sa.String(20), nullable=False, server_default="none"),
        sa.Column("discount_value", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("discount_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("subtotal_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("sync_status", sa.String(20), nullable=False, server_default="none", index=True),
        sa.Column("customer_tenant_id", sa.Integer(), nullable=True, index=True),
        sa.Column("synced_to_customer", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("synced_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("current_sync_entry_id", sa.Integer(), nullable=True),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default="0", index=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("organization_id", "challan_number", name="uq_wholesale_order_org_challan"),
    )
    op.create_table(
        "wholesale_order_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_id", sa.Integer(),
                  sa.ForeignKey("wholesale_orders.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("design", sa.String(100), nullable=False),
        sa.Column("color", sa.String(50), nullable=False),
        sa.Column("size", sa.String(10), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("price_per_unit", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("subtotal", sa.Numeric(12, 2), nullable=False, server_default="0"),
    )

    # Sync ledger
    op.create_table(
        "supplier_syncs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("supplier_tenant_id", sa.Integer(),
                  sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("customer_tenant_id", sa.Integer(),
                  sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True, index=True),
        sa.Column("wholesale_order_id", sa.Integer(),
                  sa.ForeignKey("wholesale_orders.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("sync_type", sa.String(10), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending", index=True),
        sa.Column("synced_at", sa.DateTime(timezone=True), nullable=False, index=True),
        sa.Column("items_synced", sa.JSON(), nullable=False),
        sa.Column("changes_made", sa.JSON(), nullable=True),
        sa.Column("factory_receiving_ids", sa.JSON(), nullable=False),
        sa.Column("approved_by_user_id", sa.Integer(), nullable=True),
        sa.Column("approved_by_name", sa.String(255), nullable=True),
        sa.Column("approved_by_email", sa.String(255), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_by_user_id", sa.Integer(), nullable=True),
        sa.Column("rejected_by_name", sa.String(255), nullable=True),
        sa.Column("rejected_by_email", sa.String(255), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.String(1000), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("edited_within_24_hours", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("receipt_confirmed", sa.Boolean(), nullable=True),
        sa.Column("receipt_responded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("receipt_responded_by_user_id", sa.Integer(), nullable=True),
        sa.Column("receipt_responded_by_name", sa.String(255), nullable=True),
        sa.Column("receipt_issues", sa.JSON(), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=False),
        *_timestamps(),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_supplier_syncs_order_type", "supplier_syncs", ["wholesale_order_id", "sync_type"])
    op.create_index("ix_supplier_syncs_customer_synced_at", "supplier_syncs", ["customer_tenant_id", "synced_at"])
    op.create_index("ix_supplier_syncs_supplier_synced_at", "supplier_syncs", ["supplier_tenant_id", "synced_at"])
    op.create_index("ix_supplier_syncs_status_synced_at", "supplier_syncs", ["status", "synced_at"])

    op.create_table(
        "order_sync_requests",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_id", sa.Integer(),
                  sa.ForeignKey("wholesale_orders.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("request_id", sa.Integer(),
                  sa.ForeignKey("supplier_syncs.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("responded_by_user_id", sa.Integer(), nullable=True),
        sa.Column("responded_by_name", sa.String(255), nullable=True),
        sa.Column("responded_by_email", sa.String(255), nullable=True),
        sa.Column("rejection_reason", sa.String(1000), nullable=True),
    )

    # Customer-side receipts
    op.create_table(
        "factory_receivings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("organization_id", sa.Integer(),
                  sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("design", sa.String(100), nullable=False),
        sa.Column("color", sa.String(50), nullable=False),
        sa.Column("quantities", sa.JSON(), nullable=False),
        sa.Column("total_quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("batch_id", sa.String(100), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("received_by", sa.String(255), nullable=True),
        sa.Column("received_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("source_type", sa.String(20), nullable=False, server_default="factory"),
        sa.Column("source_name", sa.String(255), nullable=True),
        sa.Column("is_read_only", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("supplier_tenant_id", sa.Integer(), nullable=True),
        sa.Column("supplier_wholesale_order_id", sa.Integer(), nullable=True, index=True),
        sa.Column("supplier_sync_id", sa.Integer(), nullable=True, index=True),
        sa.Column("supplier_metadata", sa.JSON(), nullable=False),
        sa.Column("created_by_user_id", sa.Integer(), nullable=True),
        sa.Column("created_by_name", sa.String(255), nullable=True),
        *_timestamps(),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_factory_receivings_org_source", "factory_receivings", ["organization_id", "source_type"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(),
                  sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("organization_id", sa.Integer(), nullable=True, index=True),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.String(1000), nullable=False),
        sa.Column("severity", sa.String(20), nullable=False, server_default="info"),
        sa.Column("related_id", sa.Integer(), nullable=True),
        sa.Column("related_model", sa.String(50), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_index("ix_factory_receivings_org_source", table_name="factory_receivings")
    op.drop_table("factory_receivings")
    op.drop_table("order_sync_requests")
    op.drop_index("ix_supplier_syncs_status_synced_at", table_name="supplier_syncs")
    op.drop_index("ix_supplier_syncs_supplier_synced_at", table_name="supplier_syncs")
    op.drop_index("ix_supplier_syncs_customer_synced_at", table_name="supplier_syncs")
    op.drop_index("ix_supplier_syncs_order_type", table_name="supplier_syncs")
    op.drop_table("supplier_syncs")
    op.drop_table("wholesale_order_items")
    op.drop_table("wholesale_orders")
    op.drop_table("wholesale_buyers")
    op.drop_table("size_stocks")
    op.drop_table("color_variants")
    op.drop_table("products")
    op.drop_table("users")
    op.drop_table("organizations")
