"""Wholesale models: buyers, orders, order lines and per-order sync requests."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    DateTime,
    Boolean,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from app.db.base import Base, SoftDeleteMixin, TimestampMixin, utcnow
from app.models.validators import non_negative, positive


class SyncPreference(str, Enum):
    """How a linked buyer wants supplier orders applied to their stock."""

    DIRECT = "direct"  # Apply immediately
    MANUAL = "manual"  # Customer approves each request


class OrderSyncStatus(str, Enum):
    """Order-side projection of the sync ledger."""

    NONE = "none"
    PENDING = "pending"
    SYNCED = "synced"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class DiscountType(str, Enum):
    NONE = "none"
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class WholesaleBuyer(Base, TimestampMixin):
    """A buyer in a supplier's directory, keyed by mobile number."""

    __tablename__ = "wholesale_buyers"
    __table_args__ = (
        UniqueConstraint("organization_id", "mobile", name="uq_wholesale_buyer_org_mobile"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    mobile: Mapped[str] = mapped_column(String(20), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    business_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Customer organization this buyer signed up as, null until linked
    customer_tenant_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("organizations.id", ondelete="SET NULL"), nullable=True, index=True
    )
    sync_preference: Mapped[str] = mapped_column(
        String(10), default=SyncPreference.DIRECT.value, nullable=False
    )

    orders: Mapped[list["WholesaleOrder"]] = relationship("WholesaleOrder", back_populates="buyer")


class WholesaleOrder(Base, TimestampMixin, SoftDeleteMixin):
    """A supplier-owned wholesale order (challan)."""

    __tablename__ = "wholesale_orders"
    __table_args__ = (
        UniqueConstraint("organization_id", "challan_number", name="uq_wholesale_order_org_challan"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    buyer_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("wholesale_buyers.id", ondelete="SET NULL"), nullable=True, index=True
    )
    challan_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    buyer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    buyer_contact: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    business_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    discount_type: Mapped[str] = mapped_column(String(20), default=DiscountType.NONE.value, nullable=False)
    discount_value: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0, nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0, nullable=False)
    subtotal_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0, nullable=False)

    # Sync projection; the supplier_syncs ledger is authoritative
    sync_status: Mapped[str] = mapped_column(
        String(20), default=OrderSyncStatus.NONE.value, nullable=False, index=True
    )
    customer_tenant_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    synced_to_customer: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    synced_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    # Ledger entry whose stock effect is currently applied to the customer
    current_sync_entry_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    buyer: Mapped[Optional["WholesaleBuyer"]] = relationship("WholesaleBuyer", back_populates="orders")
    items: Mapped[list["WholesaleOrderItem"]] = relationship(
        "WholesaleOrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="WholesaleOrderItem.id",
    )
    sync_requests: Mapped[list["OrderSyncRequest"]] = relationship(
        "OrderSyncRequest",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderSyncRequest.id",
    )

    @validates("discount_value", "discount_amount", "subtotal_amount", "total_amount")
    def _validate_amounts(self, key, value):
        return non_negative(key, value)

    def get_sync_request(self, request_id: int) -> Optional["OrderSyncRequest"]:
        for req in self.sync_requests:
            if req.request_id == request_id:
                return req
        return None


class WholesaleOrderItem(Base):
    """A single design/color/size line on a wholesale order."""

    __tablename__ = "wholesale_order_items"

    id: Mapped[int] = mapped_column(primary_key=True)
    order_id: Mapped[int] = mapped_column(
        ForeignKey("wholesale_orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    design: Mapped[str] = mapped_column(String(100), nullable=False)
    color: Mapped[str] = mapped_column(String(50), nullable=False)
    size: Mapped[str] = mapped_column(String(10), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price_per_unit: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0, nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0, nullable=False)

    order: Mapped["WholesaleOrder"] = relationship("WholesaleOrder", back_populates="items")

    @validates("quantity")
    def _validate_quantity(self, key, value):
        return positive(key, value)

    @validates("price_per_unit")
    def _validate_price(self, key, value):
        return non_negative(key, value)


class OrderSyncRequest(Base):
    """One send attempt of an order to its customer, kept for every resend."""

    __tablename__ = "order_sync_requests"

    id: Mapped[int] = mapped_column(primary_key=True)
    order_id: Mapped[int] = mapped_column(
        ForeignKey("wholesale_orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    request_id: Mapped[int] = mapped_column(
        ForeignKey("supplier_syncs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sent_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)
    responded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    responded_by_user_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    responded_by_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    responded_by_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)

    order: Mapped["WholesaleOrder"] = relationship("WholesaleOrder", back_populates="sync_requests")
