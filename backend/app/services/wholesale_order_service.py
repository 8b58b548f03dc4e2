"""Wholesale order lifecycle on the supplier side.

Creating, editing and deleting an order are the triggers for supplier sync:
creation dispatches the order, an item edit propagates to the customer within
the edit window, deletion reverses whatever was applied.
"""

import logging
import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.models.wholesale import DiscountType, WholesaleOrder, WholesaleOrderItem
from app.schemas.supplier_sync import OrderItemIn, OrderItemsUpdate, WholesaleOrderCreate
from app.services.buyer_directory import BuyerDirectory
from app.services.supplier_sync_service import SupplierSyncService
from app.services.sync_errors import SyncNotFoundError, SyncPermissionError, SyncStateError

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def _money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def calculate_totals(
    items: List[OrderItemIn], discount_type: str, discount_value: Decimal
) -> Tuple[Decimal, Decimal, Decimal]:
    """Return (subtotal, discount_amount, total). The discount never exceeds the subtotal."""
    subtotal = sum((Decimal(i.quantity) * i.price_per_unit for i in items), Decimal("0"))
    if discount_type == DiscountType.PERCENTAGE.value:
        discount = subtotal * (discount_value or Decimal("0")) / Decimal("100")
    elif discount_type == DiscountType.FIXED.value:
        discount = discount_value or Decimal("0")
    else:
        discount = Decimal("0")
    discount = min(discount, subtotal)
    return _money(subtotal), _money(discount), _money(subtotal - discount)


def challan_prefix(business_name: str) -> str:
    """``"Ram Traders & Co"`` -> ``"RAM_TRADERS_CO"``."""
    cleaned = re.sub(r"[^a-zA-Z0-9\s]", "", business_name)
    return re.sub(r"\s+", "_", cleaned.strip()).upper() or "CH"


class WholesaleOrderService:
    """CRUD for wholesale orders plus the sync triggers around them."""

    def __init__(self, db: Session, sync_service: Optional[SupplierSyncService] = None):
        self.db = db
        self.sync = sync_service or SupplierSyncService(db)
        self.buyers = BuyerDirectory(db)

    def list_orders(self, organization_id: int) -> List[WholesaleOrder]:
        return (
            self.db.query(WholesaleOrder)
            .options(selectinload(WholesaleOrder.items), selectinload(WholesaleOrder.sync_requests))
            .filter(WholesaleOrder.organization_id == organization_id, WholesaleOrder.not_deleted())
            .order_by(WholesaleOrder.created_at.desc(), WholesaleOrder.id.desc())
            .all()
        )

    def get_order(self, organization_id: int, order_id: int) -> WholesaleOrder:
        order = self.db.get(WholesaleOrder, order_id)
        if order is None or order.is_deleted:
            raise SyncNotFoundError("Wholesale order not found")
        if order.organization_id != organization_id:
            raise SyncPermissionError("Wholesale order belongs to another organization")
        return order

    def _challan_exists(self, organization_id: int, challan_number: str) -> bool:
        return (
            self.db.query(WholesaleOrder.id)
            .filter(
                WholesaleOrder.organization_id == organization_id,
                WholesaleOrder.challan_number == challan_number,
            )
            .first()
        ) is not None

    def _next_challan_number(self, organization_id: int, business_name: str) -> str:
        prefix = challan_prefix(business_name)
        count = (
            self.db.query(func.count(WholesaleOrder.id))
            .filter(
                WholesaleOrder.organization_id == organization_id,
                WholesaleOrder.business_name == business_name,
            )
            .scalar()
        ) or 0
        number = count + 1
        while True:
            candidate = f"{prefix}_{number:02d}"
            if not self._challan_exists(organization_id, candidate):
                return candidate
            number += 1

    @staticmethod
    def _build_items(items: List[OrderItemIn]) -> List[WholesaleOrderItem]:
        return [
            WholesaleOrderItem(
                design=item.design,
                color=item.color,
                size=item.size,
                quantity=item.quantity,
                price_per_unit=item.price_per_unit,
                subtotal=_money(Decimal(item.quantity) * item.price_per_unit),
            )
            for item in items
        ]

    def create_order(self, organization_id: int, data: WholesaleOrderCreate) -> Tuple[WholesaleOrder, Dict[str, Any]]:
        """Create the order, then dispatch it to the buyer's customer organization.

        The order is committed before dispatch; a dispatch failure leaves the
        order in place with ``syncStatus`` unchanged so it can be resent.
        """
        business_name = data.business_name or data.buyer_name
        subtotal, discount, total = calculate_totals(data.items, data.discount_type, data.discount_value)

        if data.challan_number and self._challan_exists(organization_id, data.challan_number):
            raise SyncStateError("Challan number already exists")

        try:
            buyer = self.buyers.upsert_buyer(
                organization_id,
                name=data.buyer_name,
                mobile=data.buyer_contact,
                email=data.buyer_email,
                business_name=data.business_name,
            )
            order = WholesaleOrder(
                organization_id=organization_id,
                buyer_id=buyer.id,
                challan_number=data.challan_number or self._next_challan_number(organization_id, business_name),
                buyer_name=data.buyer_name,
                buyer_contact=data.buyer_contact,
                business_name=business_name,
                notes=data.notes,
                discount_type=data.discount_type,
                discount_value=data.discount_value,
                discount_amount=discount,
                subtotal_amount=subtotal,
                total_amount=total,
            )
            order.items = self._build_items(data.items)
            self.db.add(order)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            if "challan" not in str(e.orig):
                raise
            logger.warning("Order for organization %s hit a challan number conflict: %s", organization_id, e.orig)
            raise SyncStateError("Challan number already exists")
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(order)
        logger.info("Wholesale order %s (%s) created for organization %s",
                    order.id, order.challan_number, organization_id)

        try:
            sync_result = self.sync.sync_order_to_customer(order.id, organization_id)
        except Exception as e:
            logger.error("Dispatch of order %s failed, it can be resent: %s", order.id, e)
            sync_result = {"synced": False, "reason": "Sync failed", "error": str(e)}

        self.db.refresh(order)
        return order, sync_result

    def update_items(self, organization_id: int, order_id: int, data: OrderItemsUpdate) -> Tuple[WholesaleOrder, Optional[Dict[str, Any]]]:
        """Replace the order's items and propagate the change to the customer.

        When the order has stock applied on the customer side, the item change
        and its propagation commit together, and an edit outside the window is
        refused with nothing changed.
        """
        order = self.get_order(organization_id, order_id)
        subtotal, discount, total = calculate_totals(data.items, order.discount_type, order.discount_value)

        order.items = self._build_items(data.items)
        order.subtotal_amount = subtotal
        order.discount_amount = discount
        order.total_amount = total
        self.db.flush()

        sync_result = None
        if order.current_sync_entry_id is not None:
            # Commits the item change together with the customer-side replay
            sync_result = self.sync.sync_order_edit(order.id, organization_id, data.changes_made)
        else:
            try:
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise
        self.db.refresh(order)
        logger.info("Wholesale order %s items updated (%s lines)", order.id, len(data.items))
        return order, sync_result

    def delete_order(self, organization_id: int, order_id: int) -> Dict[str, Any]:
        """Soft-delete the order and reverse its customer-side effect."""
        order = self.get_order(organization_id, order_id)
        order.soft_delete()
        self.db.flush()
        result = self.sync.sync_order_delete(order.id, organization_id)
        logger.info("Wholesale order %s deleted", order_id)
        return result
