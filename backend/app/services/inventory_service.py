"""Customer-side stock mutations driven by supplier syncs.

Products, colors and sizes missing on the customer side are created on demand
by cloning the supplier's catalog entry with zero stock. Stock changes are
single UPDATE statements so concurrent syncs to the same row never lose an
increment, and decrements clamp at zero.
"""

import logging
from typing import Dict, Optional

from sqlalchemy import case, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.product import ColorVariant, Product, SizeStock

logger = logging.getLogger(__name__)


class InventoryService:
    """Creates catalog entries and moves stock for one organization at a time."""

    def __init__(self, db: Session):
        self.db = db

    def find_product(self, organization_id: int, design: str) -> Optional[Product]:
        return (
            self.db.query(Product)
            .filter(Product.organization_id == organization_id, Product.design == design)
            .first()
        )

    def find_variant(self, organization_id: int, design: str, color: str) -> Optional[ColorVariant]:
        product = self.find_product(organization_id, design)
        if product is None:
            return None
        return product.get_color(color)

    def ensure_variant(
        self,
        customer_org_id: int,
        supplier_org_id: int,
        design: str,
        color: str,
        created_by_name: Optional[str] = None,
    ) -> Optional[ColorVariant]:
        """Return the customer's variant for (design, color), creating it if needed.

        Returns None when the customer lacks it and the supplier's catalog has
        nothing to clone from; the caller skips that group.
        """
        product = self.find_product(customer_org_id, design)
        if product is not None:
            variant = product.get_color(color)
            if variant is not None:
                return variant

        supplier_product = self.find_product(supplier_org_id, design)
        supplier_variant = supplier_product.get_color(color) if supplier_product else None
        if supplier_variant is None:
            logger.warning(
                "Design %s color %s not found for supplier %s; cannot create it for customer %s",
                design, color, supplier_org_id, customer_org_id,
            )
            return None

        if product is None:
            product = self._create_product(customer_org_id, supplier_product, supplier_variant, created_by_name)
            return product.get_color(color)

        return self._add_color(product, supplier_variant)

    def _create_product(
        self,
        organization_id: int,
        supplier_product: Product,
        supplier_variant: ColorVariant,
        created_by_name: Optional[str],
    ) -> Product:
        try:
            with self.db.begin_nested():
                product = Product(
                    organization_id=organization_id,
                    design=supplier_product.design,
                    description=supplier_product.description,
                    synced_from_supplier=True,
                    supplier_product_id=supplier_product.id,
                    created_by_name=created_by_name,
                )
                product.colors.append(self._clone_variant(supplier_variant))
                self.db.add(product)
            logger.info(
                "Created product %s for organization %s from supplier product %s",
                product.design, organization_id, supplier_product.id,
            )
            return product
        except IntegrityError:
            # Another sync created it first
            logger.info("Product %s already created for organization %s, reusing it",
                        supplier_product.design, organization_id)
            product = self.find_product(organization_id, supplier_product.design)
            if product is None:
                raise
            if product.get_color(supplier_variant.color) is None:
                self._add_color(product, supplier_variant)
            return product

    def _add_color(self, product: Product, supplier_variant: ColorVariant) -> ColorVariant:
        try:
            with self.db.begin_nested():
                variant = self._clone_variant(supplier_variant)
                product.colors.append(variant)
            logger.info("Added color %s to product %s (%s)", variant.color, product.id, product.design)
            return variant
        except IntegrityError:
            self.db.refresh(product)
            variant = product.get_color(supplier_variant.color)
            if variant is None:
                raise
            return variant

    @staticmethod
    def _clone_variant(source: ColorVariant) -> ColorVariant:
        """Copy a supplier variant's color, prices and size labels with zero stock."""
        variant = ColorVariant(
            color=source.color,
            wholesale_price=source.wholesale_price or 0,
            retail_price=source.retail_price or 0,
        )
        if source.sizes:
            for row in source.sizes:
                variant.sizes.append(
                    SizeStock(
                        size=row.size,
                        current_stock=0,
                        locked_stock=0,
                        reorder_point=row.reorder_point if row.reorder_point is not None else settings.default_reorder_point,
                    )
                )
        else:
            for size in settings.default_sizes_list:
                variant.sizes.append(
                    SizeStock(size=size, current_stock=0, locked_stock=0,
                              reorder_point=settings.default_reorder_point)
                )
        return variant

    def _ensure_size(self, variant: ColorVariant, size: str) -> SizeStock:
        row = variant.get_size(size)
        if row is not None:
            return row
        try:
            with self.db.begin_nested():
                row = SizeStock(
                    size=size,
                    current_stock=0,
                    locked_stock=0,
                    reorder_point=settings.default_reorder_point,
                )
                variant.sizes.append(row)
            logger.info("Created size %s for color variant %s", size, variant.id)
            return row
        except IntegrityError:
            self.db.refresh(variant)
            row = variant.get_size(size)
            if row is None:
                raise
            return row

    def add_stock(self, variant: ColorVariant, quantities: Dict[str, int]) -> int:
        """Increment current stock per size; returns the total added."""
        added = 0
        for size, quantity in quantities.items():
            if quantity <= 0:
                continue
            row = self._ensure_size(variant, size)
            self.db.execute(
                update(SizeStock)
                .where(SizeStock.id == row.id)
                .values(current_stock=SizeStock.current_stock + quantity)
                .execution_options(synchronize_session="fetch")
            )
            added += quantity
        return added

    def remove_stock(self, organization_id: int, design: str, color: str, quantities: Dict[str, int]) -> int:
        """Decrement current stock per size, flooring at zero.

        Missing products, colors or sizes are logged and skipped. Returns the
        number of size rows touched.
        """
        variant = self.find_variant(organization_id, design, color)
        if variant is None:
            logger.warning(
                "Cannot reverse stock for %s/%s in organization %s: variant not found",
                design, color, organization_id,
            )
            return 0

        touched = 0
        for size, quantity in quantities.items():
            if quantity <= 0:
                continue
            row = variant.get_size(size)
            if row is None:
                logger.warning("Size %s missing on %s/%s for organization %s, skipping",
                               size, design, color, organization_id)
                continue
            self.db.execute(
                update(SizeStock)
                .where(SizeStock.id == row.id)
                .values(
                    current_stock=case(
                        (SizeStock.current_stock > quantity, SizeStock.current_stock - quantity),
                        else_=0,
                    )
                )
                .execution_options(synchronize_session="fetch")
            )
            touched += 1
        return touched
