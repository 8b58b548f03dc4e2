"""Supplier -> customer inventory sync engine.

Owns the sync state machine. The ``supplier_syncs`` ledger is the source of
truth; ``WholesaleOrder.sync_status`` and ``current_sync_entry_id`` are kept in
step with it inside the same transaction. Each public operation is one
transaction: ledger writes, customer stock changes and receipt rows either all
commit or none do. Notifications are queued while the transaction runs and
delivered only after it commits.
"""

import logging
from collections import OrderedDict
from datetime import timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.rbac import TokenData
from app.db.base import as_utc, utcnow
from app.models.organization import Organization, User
from app.models.receiving import FactoryReceiving, ReceivingSource
from app.models.supplier_sync import SupplierSync, SyncStatus, SyncType
from app.models.wholesale import (
    OrderSyncRequest,
    OrderSyncStatus,
    SyncPreference,
    WholesaleOrder,
    WholesaleOrderItem,
)
from app.schemas.supplier_sync import SyncedItem, parse_synced_items
from app.services.buyer_directory import BuyerDirectory
from app.services.inventory_service import InventoryService
from app.services.notification_service import NotificationEvent, NotificationService
from app.services.sync_errors import (
    EditWindowExpiredError,
    SyncError,
    SyncNotFoundError,
    SyncPermissionError,
    SyncStateError,
)

logger = logging.getLogger(__name__)


def group_order_items(items: Iterable[WholesaleOrderItem]) -> List[SyncedItem]:
    """Merge order lines into one group per (design, color).

    Sizes repeated within a group are summed. Groups keep the order in which
    their first line appears; the unit price is taken from that line.
    """
    groups: "OrderedDict[Tuple[str, str], Dict[str, Any]]" = OrderedDict()
    for item in items:
        key = (item.design, item.color)
        group = groups.get(key)
        if group is None:
            group = {
                "design": item.design,
                "color": item.color,
                "quantities": {},
                "price_per_unit": float(item.price_per_unit or 0),
            }
            groups[key] = group
        quantities = group["quantities"]
        quantities[item.size] = quantities.get(item.size, 0) + int(item.quantity)
    return [SyncedItem.model_validate(group) for group in groups.values()]


class SupplierSyncService:
    """Dispatches wholesale orders to customer inventories and reverses them."""

    def __init__(self, db: Session, notifier: Optional[NotificationService] = None):
        self.db = db
        self.notifier = notifier or NotificationService(db)
        self.inventory = InventoryService(db)
        self.buyers = BuyerDirectory(db)
        self._outbox: List[NotificationEvent] = []

    # ------------------------------------------------------------------
    # Transaction plumbing
    # ------------------------------------------------------------------

    def _run(self, operation: Callable[..., Dict[str, Any]], *args) -> Dict[str, Any]:
        """Run ``operation`` as one transaction, then deliver queued notifications."""
        self._outbox = []
        try:
            result = operation(*args)
            self.db.commit()
        except SyncError:
            self.db.rollback()
            self._outbox = []
            raise
        except Exception:
            self.db.rollback()
            self._outbox = []
            logger.exception("Sync operation %s failed, transaction rolled back", operation.__name__)
            raise

        events, self._outbox = self._outbox, []
        self.notifier.deliver(events)
        return result

    def _queue(self, event: NotificationEvent) -> None:
        self._outbox.append(event)

    def _lock_order(self, order_id: int) -> Optional[WholesaleOrder]:
        """Load the order holding a row lock for the rest of the transaction."""
        return (
            self.db.query(WholesaleOrder)
            .filter(WholesaleOrder.id == order_id)
            .with_for_update()
            .first()
        )

    def _owned_order(self, order_id: int, supplier_tenant_id: int, include_deleted: bool = False) -> WholesaleOrder:
        order = self._lock_order(order_id)
        if order is None or (order.is_deleted and not include_deleted):
            raise SyncNotFoundError("Wholesale order not found")
        if order.organization_id != supplier_tenant_id:
            raise SyncPermissionError("Wholesale order belongs to another organization")
        return order

    def _supplier_name(self, organization_id: int) -> str:
        organization = self.db.get(Organization, organization_id)
        return organization.display_name if organization else "Supplier"

    @staticmethod
    def _order_metadata(order: WholesaleOrder, supplier_name: str, item_count: int) -> Dict[str, Any]:
        return {
            "challanNumber": order.challan_number,
            "totalAmount": float(order.total_amount or 0),
            "buyerName": order.buyer_name,
            "supplierName": supplier_name,
            "totalItems": item_count,
        }

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def sync_order_to_customer(self, order_id: int, supplier_tenant_id: int) -> Dict[str, Any]:
        """Send a newly created order to the buyer's customer organization.

        Returns a result dict; "no counterpart" outcomes are not errors. A
        failure that is not a SyncError records a ``failed`` ledger entry and
        re-raises.
        """
        try:
            return self._run(self._dispatch_owned, order_id, supplier_tenant_id)
        except SyncError:
            raise
        except Exception as e:
            self._record_failure(order_id, supplier_tenant_id, e)
            raise

    def _dispatch_owned(self, order_id: int, supplier_tenant_id: int) -> Dict[str, Any]:
        order = self._owned_order(order_id, supplier_tenant_id)
        return self._dispatch(order)

    def _dispatch(self, order: WholesaleOrder) -> Dict[str, Any]:
        buyer = self.buyers.find_buyer(order.organization_id, order.buyer_contact)
        if buyer is None or buyer.customer_tenant_id is None:
            logger.info("Order %s: buyer %s is not a linked customer, nothing to sync",
                        order.id, order.buyer_contact)
            order.sync_status = OrderSyncStatus.NONE.value
            return {"synced": False, "reason": "Buyer is not a customer"}

        customer_org, customer_user, reason = self.buyers.resolve_customer(buyer)
        if reason:
            logger.info("Order %s not synced: %s (customer %s)", order.id, reason, buyer.customer_tenant_id)
            return {"synced": False, "reason": reason}

        if buyer.sync_preference == SyncPreference.MANUAL.value:
            return self._create_sync_request(order, customer_org, customer_user)
        return self._perform_direct_sync(order, customer_org, customer_user)

    def _record_failure(self, order_id: int, supplier_tenant_id: int, error: Exception) -> None:
        """Best-effort ``failed`` ledger entry for a dispatch that raised."""
        try:
            self.db.add(
                SupplierSync(
                    supplier_tenant_id=supplier_tenant_id,
                    customer_tenant_id=None,
                    wholesale_order_id=order_id,
                    sync_type=SyncType.CREATE.value,
                    status=SyncStatus.FAILED.value,
                    items_synced=[],
                    factory_receiving_ids=[],
                    error_message=str(error)[:1000],
                    sync_metadata={},
                )
            )
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error("Could not record failed sync for order %s: %s", order_id, e)

    def _create_sync_request(self, order: WholesaleOrder, customer_org: Organization,
                             customer_user: User) -> Dict[str, Any]:
        """Record a pending request; nothing touches customer stock yet."""
        supplier_name = self._supplier_name(order.organization_id)
        items = group_order_items(order.items)

        entry = SupplierSync(
            supplier_tenant_id=order.organization_id,
            customer_tenant_id=customer_org.id,
            wholesale_order_id=order.id,
            sync_type=SyncType.CREATE.value,
            status=SyncStatus.PENDING.value,
            synced_at=utcnow(),
            items_synced=[item.to_ledger() for item in items],
            factory_receiving_ids=[],
            sync_metadata=self._order_metadata(order, supplier_name, len(items)),
        )
        self.db.add(entry)
        self.db.flush()

        order.sync_status = OrderSyncStatus.PENDING.value
        order.customer_tenant_id = customer_org.id
        order.sync_requests.append(
            OrderSyncRequest(request_id=entry.id, sent_at=utcnow(), status=SyncStatus.PENDING.value)
        )

        self._queue(NotificationEvent(
            user_id=customer_user.id,
            organization_id=customer_org.id,
            type="sync_request",
            title="New Stock Sync Request",
            message=f"{supplier_name} sent a sync request for {len(items)} item(s). "
                    f"Order: {order.challan_number or 'N/A'}",
            severity="info",
            related_id=entry.id,
            related_model="SupplierSync",
            metadata={"supplierName": supplier_name, "wholesaleOrderId": order.id},
        ))
        logger.info("Order %s: sync request %s sent to customer %s", order.id, entry.id, customer_org.id)
        return {
            "synced": False,
            "pending": True,
            "syncRequestId": entry.id,
            "message": "Sync request sent to customer for approval",
        }

    def _perform_direct_sync(self, order: WholesaleOrder, customer_org: Organization,
                             customer_user: User) -> Dict[str, Any]:
        supplier_name = self._supplier_name(order.organization_id)
        items = group_order_items(order.items)

        entry = SupplierSync(
            supplier_tenant_id=order.organization_id,
            customer_tenant_id=customer_org.id,
            wholesale_order_id=order.id,
            sync_type=SyncType.CREATE.value,
            status=SyncStatus.SYNCED.value,
            synced_at=utcnow(),
            items_synced=[],
            factory_receiving_ids=[],
            sync_metadata={},
        )
        self.db.add(entry)
        self.db.flush()

        applied, receipt_ids = self._apply_groups(
            entry, order, items, supplier_name,
            received_by="System Auto-sync",
            received_by_user=customer_user,
        )

        now = utcnow()
        order.synced_to_customer = True
        order.synced_at = now
        order.sync_status = OrderSyncStatus.SYNCED.value
        order.customer_tenant_id = customer_org.id
        order.current_sync_entry_id = entry.id

        self._queue(NotificationEvent(
            user_id=customer_user.id,
            organization_id=customer_org.id,
            type="stock_received",
            title="Stock Received from Supplier",
            message=f"{supplier_name} synced {len(applied)} item(s) to your inventory. "
                    f"Order: {order.challan_number or 'N/A'}",
            severity="success",
            related_id=entry.id,
            related_model="SupplierSync",
            metadata={"factoryReceivingIds": receipt_ids, "supplierName": supplier_name},
        ))
        logger.info("Order %s synced directly to customer %s: %s group(s), entry %s",
                    order.id, customer_org.id, len(applied), entry.id)
        return {
            "synced": True,
            "supplierSyncId": entry.id,
            "factoryReceivingIds": receipt_ids,
            "itemsCount": len(applied),
        }

    # ------------------------------------------------------------------
    # Applying and reversing stock
    # ------------------------------------------------------------------

    def _apply_groups(
        self,
        entry: SupplierSync,
        order: WholesaleOrder,
        items: List[SyncedItem],
        supplier_name: str,
        received_by: str,
        received_by_user: Optional[User] = None,
        note_suffix: str = "",
        extra_metadata: Optional[Dict[str, Any]] = None,
    ) -> Tuple[List[SyncedItem], List[int]]:
        """Apply each group to the customer's stock and record a receipt per group.

        Groups whose design/color cannot be found or created are skipped. The
        entry's ``items_synced`` is set to exactly what was applied, so a later
        reversal subtracts only that.
        """
        customer_id = entry.customer_tenant_id
        applied: List[SyncedItem] = []
        receipt_ids: List[int] = []
        skipped: List[Dict[str, str]] = []

        for item in items:
            variant = self.inventory.ensure_variant(
                customer_id, entry.supplier_tenant_id, item.design, item.color, created_by_name=supplier_name
            )
            if variant is None:
                logger.warning("Order %s: skipping %s/%s, not found for supplier %s",
                               order.id, item.design, item.color, entry.supplier_tenant_id)
                skipped.append({"design": item.design, "color": item.color})
                continue

            self.inventory.add_stock(variant, item.quantities)

            receipt = FactoryReceiving(
                organization_id=customer_id,
                design=item.design,
                color=item.color,
                quantities=dict(item.quantities),
                total_quantity=item.total_quantity,
                batch_id=order.challan_number or f"WH-{order.id}",
                notes=f"Auto-synced from {supplier_name} - Order {order.challan_number or order.id}{note_suffix}",
                received_by=received_by,
                received_date=utcnow(),
                source_type=ReceivingSource.SUPPLIER_SYNC.value,
                source_name=supplier_name.lower(),
                is_read_only=True,
                supplier_tenant_id=entry.supplier_tenant_id,
                supplier_wholesale_order_id=order.id,
                supplier_sync_id=entry.id,
                supplier_metadata={
                    "supplierName": supplier_name,
                    "challanNumber": order.challan_number,
                    "orderDate": order.created_at.isoformat() if order.created_at else None,
                    **(extra_metadata or {}),
                },
                created_by_user_id=received_by_user.id if received_by_user else None,
                created_by_name=received_by_user.name if received_by_user else received_by,
            )
            self.db.add(receipt)
            self.db.flush()
            receipt_ids.append(receipt.id)
            applied.append(item)

        entry.items_synced = [item.to_ledger() for item in applied]
        entry.factory_receiving_ids = receipt_ids
        metadata = self._order_metadata(order, supplier_name, len(applied))
        if skipped:
            metadata["skippedGroups"] = skipped
        entry.sync_metadata = {**(entry.sync_metadata or {}), **metadata}
        return applied, receipt_ids

    def _current_entry(self, order: WholesaleOrder) -> Optional[SupplierSync]:
        """The ledger entry whose stock effect is live for ``order``, if any."""
        if order.current_sync_entry_id is None:
            return None
        entry = self.db.get(SupplierSync, order.current_sync_entry_id)
        if (
            entry is None
            or entry.wholesale_order_id != order.id
            or entry.supplier_tenant_id != order.organization_id
            or entry.customer_tenant_id is None
            or entry.customer_tenant_id != order.customer_tenant_id
            or entry.sync_type == SyncType.DELETE.value
            or not entry.is_applied
        ):
            logger.error("Order %s points at sync entry %s which is not its applied entry",
                         order.id, order.current_sync_entry_id)
            raise SyncStateError("Sync ledger is inconsistent for this order")
        return entry

    def _reverse_entry(self, order: WholesaleOrder, entry: SupplierSync) -> int:
        """Undo an applied entry: delete its receipts, subtract its quantities.

        Returns the number of receipts deleted.
        """
        receipts_deleted = 0
        if entry.factory_receiving_ids:
            receipts_deleted = (
                self.db.query(FactoryReceiving)
                .filter(
                    FactoryReceiving.id.in_(entry.factory_receiving_ids),
                    FactoryReceiving.organization_id == entry.customer_tenant_id,
                    FactoryReceiving.supplier_wholesale_order_id == order.id,
                    FactoryReceiving.supplier_sync_id == entry.id,
                )
                .delete(synchronize_session=False)
            )

        for item in parse_synced_items(entry.items_synced):
            self.inventory.remove_stock(entry.customer_tenant_id, item.design, item.color, item.quantities)

        logger.info("Reversed sync entry %s for order %s: %s receipt(s) deleted",
                    entry.id, order.id, receipts_deleted)
        return receipts_deleted

    # ------------------------------------------------------------------
    # Accept / reject
    # ------------------------------------------------------------------

    def _claim_pending(self, entry_id: int, new_status: SyncStatus) -> bool:
        """Move an entry out of ``pending``; False if someone else already did."""
        result = self.db.execute(
            update(SupplierSync)
            .where(SupplierSync.id == entry_id, SupplierSync.status == SyncStatus.PENDING.value)
            .values(status=new_status.value)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount == 1

    def _pending_entry_for(self, sync_id: int, actor: TokenData) -> Tuple[SupplierSync, WholesaleOrder]:
        entry = self.db.get(SupplierSync, sync_id)
        if entry is None:
            raise SyncNotFoundError("Sync request not found")
        if entry.customer_tenant_id != actor.organization_id:
            raise SyncPermissionError("Sync request belongs to another organization")
        if entry.status != SyncStatus.PENDING.value:
            raise SyncStateError(f"Sync request already processed ({entry.status})")

        order = self._lock_order(entry.wholesale_order_id)
        if order is None or order.is_deleted:
            raise SyncNotFoundError("Wholesale order not found")
        if order.organization_id != entry.supplier_tenant_id:
            raise SyncPermissionError("Sync request does not match its order")
        return entry, order

    def accept(self, sync_id: int, actor: TokenData) -> Dict[str, Any]:
        """Apply a pending request's stored items to the caller's inventory."""
        return self._run(self._accept, sync_id, actor)

    def _accept(self, sync_id: int, actor: TokenData) -> Dict[str, Any]:
        entry, order = self._pending_entry_for(sync_id, actor)
        if not self._claim_pending(entry.id, SyncStatus.ACCEPTED):
            raise SyncStateError("Sync request already processed")

        now = utcnow()
        supplier_name = (entry.sync_metadata or {}).get("supplierName") or self._supplier_name(order.organization_id)
        actor_user = self.db.get(User, actor.user_id)
        items = parse_synced_items(entry.items_synced)

        applied, receipt_ids = self._apply_groups(
            entry, order, items, supplier_name,
            received_by=actor.full_name,
            received_by_user=actor_user,
            note_suffix=f" (Accepted by {actor.full_name})",
            extra_metadata={"acceptedBy": actor.full_name, "acceptedAt": now.isoformat()},
        )

        entry.status = SyncStatus.ACCEPTED.value
        entry.synced_at = now
        entry.approved_by_user_id = actor.user_id
        entry.approved_by_name = actor.full_name
        entry.approved_by_email = actor.email
        entry.approved_at = now

        order.sync_status = OrderSyncStatus.ACCEPTED.value
        order.synced_to_customer = True
        order.synced_at = now
        order.current_sync_entry_id = entry.id
        request = order.get_sync_request(entry.id)
        if request is not None:
            request.status = SyncStatus.ACCEPTED.value
            request.responded_at = now
            request.responded_by_user_id = actor.user_id
            request.responded_by_name = actor.full_name
            request.responded_by_email = actor.email

        customer_name = self._supplier_name(entry.customer_tenant_id)
        for user in self.buyers.active_users(order.organization_id):
            self._queue(NotificationEvent(
                user_id=user.id,
                organization_id=order.organization_id,
                type="sync_accepted",
                title="Sync Request Accepted",
                message=f"{customer_name} accepted your sync request for order "
                        f"{order.challan_number or order.id}",
                severity="success",
                related_id=entry.id,
                related_model="SupplierSync",
                metadata={"acceptedBy": actor.full_name, "itemsCount": len(applied)},
            ))

        logger.info("Sync request %s accepted by user %s: %s group(s) applied",
                    entry.id, actor.user_id, len(applied))
        return {
            "syncId": entry.id,
            "itemsCount": len(applied),
            "acceptedBy": actor.full_name,
            "acceptedAt": now.isoformat(),
        }

    def reject(self, sync_id: int, actor: TokenData, reason: Optional[str] = None) -> Dict[str, Any]:
        """Decline a pending request. Customer stock is not touched."""
        return self._run(self._reject, sync_id, actor, reason)

    def _reject(self, sync_id: int, actor: TokenData, reason: Optional[str]) -> Dict[str, Any]:
        entry, order = self._pending_entry_for(sync_id, actor)
        if not self._claim_pending(entry.id, SyncStatus.REJECTED):
            raise SyncStateError("Sync request already processed")

        now = utcnow()
        reason = reason or "No reason provided"
        entry.status = SyncStatus.REJECTED.value
        entry.rejected_by_user_id = actor.user_id
        entry.rejected_by_name = actor.full_name
        entry.rejected_by_email = actor.email
        entry.rejected_at = now
        entry.rejection_reason = reason

        order.sync_status = OrderSyncStatus.REJECTED.value
        request = order.get_sync_request(entry.id)
        if request is not None:
            request.status = SyncStatus.REJECTED.value
            request.responded_at = now
            request.responded_by_user_id = actor.user_id
            request.responded_by_name = actor.full_name
            request.responded_by_email = actor.email
            request.rejection_reason = reason

        customer_name = self._supplier_name(entry.customer_tenant_id)
        for user in self.buyers.active_users(order.organization_id):
            self._queue(NotificationEvent(
                user_id=user.id,
                organization_id=order.organization_id,
                type="sync_rejected",
                title="Sync Request Rejected",
                message=f"{customer_name} rejected your sync request for order "
                        f"{order.challan_number or order.id}. Reason: {reason}",
                severity="warning",
                related_id=entry.id,
                related_model="SupplierSync",
                metadata={"rejectedBy": actor.full_name, "reason": reason},
            ))

        logger.info("Sync request %s rejected by user %s", entry.id, actor.user_id)
        return {
            "syncId": entry.id,
            "rejectedBy": actor.full_name,
            "rejectedAt": now.isoformat(),
            "reason": reason,
        }

    # ------------------------------------------------------------------
    # Resend
    # ------------------------------------------------------------------

    def resend(self, order_id: int, supplier_tenant_id: int) -> Dict[str, Any]:
        """Dispatch a rejected or never-synced order again."""
        return self._run(self._resend, order_id, supplier_tenant_id)

    def _resend(self, order_id: int, supplier_tenant_id: int) -> Dict[str, Any]:
        order = self._owned_order(order_id, supplier_tenant_id)
        if order.sync_status in (OrderSyncStatus.SYNCED.value, OrderSyncStatus.ACCEPTED.value):
            raise SyncStateError("Order is already synced")
        if order.sync_status == OrderSyncStatus.PENDING.value:
            raise SyncStateError("Sync request already pending")

        if order.sync_status == OrderSyncStatus.REJECTED.value:
            cancelled = self.db.execute(
                update(SupplierSync)
                .where(
                    SupplierSync.wholesale_order_id == order.id,
                    SupplierSync.status == SyncStatus.REJECTED.value,
                )
                .values(status=SyncStatus.CANCELLED.value)
                .execution_options(synchronize_session="fetch")
            ).rowcount
            logger.info("Order %s: %s rejected sync request(s) cancelled before resend", order.id, cancelled)

        return self._dispatch(order)

    # ------------------------------------------------------------------
    # Edit / delete propagation
    # ------------------------------------------------------------------

    def sync_order_edit(self, order_id: int, supplier_tenant_id: int,
                        changes_made: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Replace the applied stock effect of an edited order with its current items.

        Refused with ``EditWindowExpiredError`` once the order is older than the
        edit window. Commits any pending changes to the order along with the
        ledger update.
        """
        return self._run(self._sync_order_edit, order_id, supplier_tenant_id, changes_made)

    def _sync_order_edit(self, order_id: int, supplier_tenant_id: int,
                         changes_made: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        order = self._owned_order(order_id, supplier_tenant_id)

        window = timedelta(hours=settings.sync_edit_window_hours)
        if utcnow() - as_utc(order.created_at) > window:
            raise EditWindowExpiredError(settings.sync_edit_window_hours)

        previous = self._current_entry(order)
        if previous is None:
            logger.info("Order %s edited but was never applied to a customer", order.id)
            return {"synced": False, "reason": "No previous sync found"}

        receipts_deleted = self._reverse_entry(order, previous)

        supplier_name = self._supplier_name(order.organization_id)
        items = group_order_items(order.items)
        entry = SupplierSync(
            supplier_tenant_id=order.organization_id,
            customer_tenant_id=previous.customer_tenant_id,
            wholesale_order_id=order.id,
            sync_type=SyncType.EDIT.value,
            status=SyncStatus.SYNCED.value,
            synced_at=utcnow(),
            items_synced=[],
            factory_receiving_ids=[],
            changes_made=changes_made or {},
            edited_within_24_hours=True,
            sync_metadata={"previousSyncId": previous.id},
        )
        self.db.add(entry)
        self.db.flush()

        customer_user = self.buyers.primary_user(previous.customer_tenant_id)
        applied, receipt_ids = self._apply_groups(
            entry, order, items, supplier_name,
            received_by="System Auto-sync",
            received_by_user=customer_user,
            note_suffix=" (Edited)",
            extra_metadata={"isEdit": True},
        )

        order.current_sync_entry_id = entry.id
        order.synced_at = utcnow()

        if customer_user is not None:
            self._queue(NotificationEvent(
                user_id=customer_user.id,
                organization_id=previous.customer_tenant_id,
                type="stock_updated",
                title="Supplier Order Updated",
                message=f"{supplier_name} updated order {order.challan_number or order.id}; "
                        f"your received stock was adjusted",
                severity="info",
                related_id=entry.id,
                related_model="SupplierSync",
                metadata={"previousSyncId": previous.id},
            ))

        logger.info("Order %s edit propagated: entry %s replaced %s", order.id, entry.id, previous.id)
        return {
            "synced": True,
            "supplierSyncId": entry.id,
            "factoryReceivingIds": receipt_ids,
            "itemsCount": len(applied),
            "receivingsDeleted": receipts_deleted,
        }

    def sync_order_delete(self, order_id: int, supplier_tenant_id: int) -> Dict[str, Any]:
        """Reverse whatever a deleted order applied and cancel outstanding requests.

        Works on soft-deleted orders; commits any pending changes to the order
        along with the reversal.
        """
        return self._run(self._sync_order_delete, order_id, supplier_tenant_id)

    def _sync_order_delete(self, order_id: int, supplier_tenant_id: int) -> Dict[str, Any]:
        order = self._owned_order(order_id, supplier_tenant_id, include_deleted=True)

        cancelled = self.db.execute(
            update(SupplierSync)
            .where(
                SupplierSync.wholesale_order_id == order.id,
                SupplierSync.status == SyncStatus.PENDING.value,
            )
            .values(status=SyncStatus.CANCELLED.value)
            .execution_options(synchronize_session="fetch")
        ).rowcount
        for request in order.sync_requests:
            if request.status == SyncStatus.PENDING.value:
                request.status = SyncStatus.CANCELLED.value

        previous = self._current_entry(order)
        if previous is None:
            if cancelled and order.sync_status == OrderSyncStatus.PENDING.value:
                order.sync_status = OrderSyncStatus.NONE.value
            return {"synced": False, "reason": "No sync record found", "cancelledRequests": cancelled}

        receipts_deleted = self._reverse_entry(order, previous)
        entry = SupplierSync(
            supplier_tenant_id=order.organization_id,
            customer_tenant_id=previous.customer_tenant_id,
            wholesale_order_id=order.id,
            sync_type=SyncType.DELETE.value,
            status=SyncStatus.SYNCED.value,
            synced_at=utcnow(),
            items_synced=list(previous.items_synced or []),
            factory_receiving_ids=[],
            sync_metadata={**(previous.sync_metadata or {}), "previousSyncId": previous.id},
        )
        self.db.add(entry)
        self.db.flush()

        order.current_sync_entry_id = None
        order.synced_to_customer = False

        customer_user = self.buyers.primary_user(previous.customer_tenant_id)
        if customer_user is not None:
            supplier_name = self._supplier_name(order.organization_id)
            self._queue(NotificationEvent(
                user_id=customer_user.id,
                organization_id=previous.customer_tenant_id,
                type="stock_reversed",
                title="Supplier Order Cancelled",
                message=f"{supplier_name} cancelled order {order.challan_number or order.id}; "
                        f"the received stock was removed",
                severity="warning",
                related_id=entry.id,
                related_model="SupplierSync",
                metadata={"previousSyncId": previous.id},
            ))

        logger.info("Order %s delete propagated: entry %s reversed", order.id, previous.id)
        return {
            "synced": True,
            "supplierSyncId": entry.id,
            "receivingsDeleted": receipts_deleted,
            "itemsAffected": len(entry.items_synced),
            "cancelledRequests": cancelled,
        }
