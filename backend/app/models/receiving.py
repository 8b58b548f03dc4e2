"""Customer-side stock receipts (factory receivings)."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, validates

from app.db.base import Base, TimestampMixin, utcnow
from app.models.validators import non_negative, size_quantities, validate_dict


class ReceivingSource(str, Enum):
    FACTORY = "factory"
    SUPPLIER_SYNC = "supplier-sync"
    RETURN = "return"
    TRANSFER = "transfer"
    OTHER = "other"


class FactoryReceiving(Base, TimestampMixin):
    """Stock received into an organization's inventory.

    Rows with ``source_type == "supplier-sync"`` mirror one design/color group
    of a supplier order. They are read-only for the customer and point back
    at the originating order and ledger entry by id only.
    """

    __tablename__ = "factory_receivings"
    __table_args__ = (
        Index("ix_factory_receivings_org_source", "organization_id", "source_type"),
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    design: Mapped[str] = mapped_column(String(100), nullable=False)
    color: Mapped[str] = mapped_column(String(50), nullable=False)
    quantities: Mapped[dict[str, int]] = mapped_column(JSON, default=dict, nullable=False)
    total_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    batch_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    received_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    received_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    source_type: Mapped[str] = mapped_column(
        String(20), default=ReceivingSource.FACTORY.value, nullable=False
    )
    source_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_read_only: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Weak references into the supplier's tenant
    supplier_tenant_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    supplier_wholesale_order_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    supplier_sync_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    supplier_metadata: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)

    created_by_user_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_by_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    @validates("quantities")
    def _validate_quantities(self, key, value):
        return size_quantities(key, value)

    @validates("total_quantity")
    def _validate_total(self, key, value):
        return non_negative(key, value)

    @validates("supplier_metadata")
    def _validate_metadata(self, key, value):
        return validate_dict(key, value)
