"""Supplier sync ledger.

One row per sync operation applied (or proposed) from a supplier's wholesale
order to a customer organization's inventory. ``items_synced`` holds the exact
grouped payload that was applied, which is what reversal subtracts later.
Rows are never deleted.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, validates

from app.db.base import Base, TimestampMixin, utcnow
from app.models.validators import validate_dict, validate_list


class SyncType(str, Enum):
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"


class SyncStatus(str, Enum):
    """Ledger entry status."""

    PENDING = "pending"  # Awaiting customer approval, nothing applied
    ACCEPTED = "accepted"  # Approved and applied
    REJECTED = "rejected"  # Declined by customer, nothing applied
    SYNCED = "synced"  # Applied without approval
    FAILED = "failed"  # Dispatch raised, nothing applied
    CANCELLED = "cancelled"  # Superseded by a resend or order deletion


# Entries whose stock effect is live on the customer side
APPLIED_STATUSES = (SyncStatus.SYNCED.value, SyncStatus.ACCEPTED.value)


class SupplierSync(Base, TimestampMixin):
    """A sync ledger entry."""

    __tablename__ = "supplier_syncs"
    __table_args__ = (
        Index("ix_supplier_syncs_order_type", "wholesale_order_id", "sync_type"),
        Index("ix_supplier_syncs_customer_synced_at", "customer_tenant_id", "synced_at"),
        Index("ix_supplier_syncs_supplier_synced_at", "supplier_tenant_id", "synced_at"),
        Index("ix_supplier_syncs_status_synced_at", "status", "synced_at"),
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    supplier_tenant_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Null only for failed dispatches where the customer was never resolved
    customer_tenant_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True, index=True
    )
    wholesale_order_id: Mapped[int] = mapped_column(
        ForeignKey("wholesale_orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sync_type: Mapped[str] = mapped_column(String(10), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=SyncStatus.PENDING.value, nullable=False, index=True
    )
    synced_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False, index=True
    )

    # [{"design", "color", "quantities": {size: qty}, "total_quantity", "price_per_unit"}]
    items_synced: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    changes_made: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    factory_receiving_ids: Mapped[list[int]] = mapped_column(JSON, default=list, nullable=False)

    approved_by_user_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    approved_by_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    approved_by_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    rejected_by_user_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    rejected_by_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    rejected_by_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    rejected_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)

    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    edited_within_24_hours: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Customer response to an applied entry: None until confirmed or disputed
    receipt_confirmed: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    receipt_responded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    receipt_responded_by_user_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    receipt_responded_by_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    receipt_issues: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)

    # challan number, totals, buyer name, supplier display name
    sync_metadata: Mapped[dict[str, Any]] = mapped_column("metadata", JSON, default=dict, nullable=False)

    @validates("items_synced", "factory_receiving_ids", "receipt_issues")
    def _validate_lists(self, key, value):
        return validate_list(key, value)

    @validates("changes_made", "sync_metadata")
    def _validate_dicts(self, key, value):
        return validate_dict(key, value)

    @property
    def is_applied(self) -> bool:
        return self.status in APPLIED_STATUSES
