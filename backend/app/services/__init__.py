# Services module

from app.services.sync_errors import (
    SyncError,
    SyncNotFoundError,
    SyncStateError,
    SyncPermissionError,
    EditWindowExpiredError,
)
from app.services.supplier_sync_service import SupplierSyncService, group_order_items
from app.services.sync_ledger_service import SyncLedgerService
from app.services.wholesale_order_service import WholesaleOrderService
