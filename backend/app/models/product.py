"""Inventory models: Product, ColorVariant and SizeStock.

A product is one design owned by one organization. Stock is tracked per
(design, color, size); ``current_stock - locked_stock`` is what sales may use.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from app.db.base import Base, TimestampMixin
from app.models.validators import non_negative


class Product(Base, TimestampMixin):
    """A design in one organization's catalog."""

    __tablename__ = "products"
    __table_args__ = (
        UniqueConstraint("organization_id", "design", name="uq_product_org_design"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    design: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Set when the product was created on demand by a supplier sync
    synced_from_supplier: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    supplier_product_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_by_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    colors: Mapped[list["ColorVariant"]] = relationship(
        "ColorVariant",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ColorVariant.id",
    )

    def get_color(self, color: str) -> Optional["ColorVariant"]:
        for variant in self.colors:
            if variant.color == color:
                return variant
        return None


class ColorVariant(Base):
    """One color of a design, with its own prices and size rows."""

    __tablename__ = "color_variants"
    __table_args__ = (
        UniqueConstraint("product_id", "color", name="uq_color_variant_product_color"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    color: Mapped[str] = mapped_column(String(50), nullable=False)
    wholesale_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0, nullable=False)
    retail_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0, nullable=False)

    product: Mapped["Product"] = relationship("Product", back_populates="colors")
    sizes: Mapped[list["SizeStock"]] = relationship(
        "SizeStock",
        back_populates="color_variant",
        cascade="all, delete-orphan",
        order_by="SizeStock.id",
    )

    @validates("wholesale_price", "retail_price")
    def _validate_prices(self, key, value):
        return non_negative(key, value)

    def get_size(self, size: str) -> Optional["SizeStock"]:
        for row in self.sizes:
            if row.size == size:
                return row
        return None


class SizeStock(Base):
    """Stock counters for one size of one color variant."""

    __tablename__ = "size_stocks"
    __table_args__ = (
        UniqueConstraint("color_variant_id", "size", name="uq_size_stock_variant_size"),
        CheckConstraint("current_stock >= 0", name="ck_size_stock_current_non_negative"),
        CheckConstraint("locked_stock >= 0", name="ck_size_stock_locked_non_negative"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    color_variant_id: Mapped[int] = mapped_column(
        ForeignKey("color_variants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    size: Mapped[str] = mapped_column(String(10), nullable=False)
    current_stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    locked_stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    reorder_point: Mapped[int] = mapped_column(Integer, default=20, nullable=False)

    color_variant: Mapped["ColorVariant"] = relationship("ColorVariant", back_populates="sizes")

    @validates("current_stock", "locked_stock")
    def _validate_stock(self, key, value):
        return non_negative(key, value)

    @property
    def available_stock(self) -> int:
        return max(0, (self.current_stock or 0) - (self.locked_stock or 0))
