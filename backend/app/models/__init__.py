"""SQLAlchemy models."""

from app.models.organization import Organization, User
from app.models.product import Product, ColorVariant, SizeStock
from app.models.wholesale import (
    WholesaleBuyer,
    WholesaleOrder,
    WholesaleOrderItem,
    OrderSyncRequest,
    OrderSyncStatus,
    SyncPreference,
    DiscountType,
)
from app.models.supplier_sync import SupplierSync, SyncStatus, SyncType, APPLIED_STATUSES
from app.models.receiving import FactoryReceiving, ReceivingSource
from app.models.notification import Notification

__all__ = [
    "Organization",
    "User",
    "Product",
    "ColorVariant",
    "SizeStock",
    "WholesaleBuyer",
    "WholesaleOrder",
    "WholesaleOrderItem",
    "OrderSyncRequest",
    "OrderSyncStatus",
    "SyncPreference",
    "DiscountType",
    "SupplierSync",
    "SyncStatus",
    "SyncType",
    "APPLIED_STATUSES",
    "FactoryReceiving",
    "ReceivingSource",
    "Notification",
]
