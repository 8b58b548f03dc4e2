"""Queries over the sync ledger and supplier-sourced receipts.

Also records a customer's answer to stock that was applied to its inventory:
a receipt confirmation or a reported issue, which alerts the supplier.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.rbac import TokenData
from app.db.base import as_utc, utcnow
from app.models.organization import Organization
from app.models.receiving import FactoryReceiving, ReceivingSource
from app.models.supplier_sync import APPLIED_STATUSES, SupplierSync, SyncStatus, SyncType
from app.models.wholesale import WholesaleOrder
from app.schemas.supplier_sync import parse_synced_items
from app.services.buyer_directory import BuyerDirectory
from app.services.notification_service import NotificationEvent, NotificationService
from app.services.sync_errors import SyncNotFoundError, SyncPermissionError, SyncStateError

logger = logging.getLogger(__name__)


def _iso(value: Optional[datetime]) -> Optional[str]:
    value = as_utc(value)
    return value.isoformat() if value else None


def date_range_start(date_range: Optional[str], now: Optional[datetime] = None) -> Optional[datetime]:
    """Lower bound for a ``dateRange`` filter, None for no filter.

    Ranges start at midnight, so ``7days`` covers today plus the seven full days before it.
    """
    days = {"today": 0, "7days": 7, "30days": 30}.get(date_range)
    if days is None:
        return None
    midnight = (now or utcnow()).replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight - timedelta(days=days)


def serialize_entry(entry: SupplierSync) -> Dict[str, Any]:
    """Ledger entry as an API dict."""
    return {
        "id": entry.id,
        "supplierTenantId": entry.supplier_tenant_id,
        "customerTenantId": entry.customer_tenant_id,
        "wholesaleOrderId": entry.wholesale_order_id,
        "syncType": entry.sync_type,
        "status": entry.status,
        "syncedAt": _iso(entry.synced_at),
        "itemsSynced": [item.model_dump(by_alias=True) for item in parse_synced_items(entry.items_synced)],
        "changesMade": entry.changes_made,
        "factoryReceivingIds": list(entry.factory_receiving_ids or []),
        "approvedBy": {
            "userId": entry.approved_by_user_id,
            "userName": entry.approved_by_name,
            "userEmail": entry.approved_by_email,
        } if entry.approved_by_user_id else None,
        "approvedAt": _iso(entry.approved_at),
        "rejectedBy": {
            "userId": entry.rejected_by_user_id,
            "userName": entry.rejected_by_name,
            "userEmail": entry.rejected_by_email,
        } if entry.rejected_by_user_id else None,
        "rejectedAt": _iso(entry.rejected_at),
        "rejectionReason": entry.rejection_reason,
        "errorMessage": entry.error_message,
        "editedWithin24Hours": entry.edited_within_24_hours,
        "receiptConfirmed": entry.receipt_confirmed,
        "receiptRespondedAt": _iso(entry.receipt_responded_at),
        "receiptRespondedBy": {
            "userId": entry.receipt_responded_by_user_id,
            "userName": entry.receipt_responded_by_name,
        } if entry.receipt_responded_by_user_id else None,
        "receiptIssues": list(entry.receipt_issues or []),
        "metadata": entry.sync_metadata or {},
        "createdAt": _iso(entry.created_at),
    }


class SyncLedgerService:
    """Queries for the sync screens of both suppliers and customers."""

    def __init__(self, db: Session):
        self.db = db
        self.buyers = BuyerDirectory(db)
        self.notifier = NotificationService(db)

    def _organization_name(self, organization_id: Optional[int], cache: Dict[int, str]) -> str:
        if organization_id is None:
            return "Unknown"
        if organization_id not in cache:
            organization = self.db.get(Organization, organization_id)
            cache[organization_id] = organization.display_name if organization else "Unknown"
        return cache[organization_id]

    def _orders_by_id(self, order_ids: List[int]) -> Dict[int, WholesaleOrder]:
        if not order_ids:
            return {}
        orders = self.db.query(WholesaleOrder).filter(WholesaleOrder.id.in_(set(order_ids))).all()
        return {order.id: order for order in orders}

    def pending_requests(self, customer_tenant_id: int) -> List[Dict[str, Any]]:
        """Pending requests addressed to a customer, newest first."""
        entries = (
            self.db.query(SupplierSync)
            .filter(
                SupplierSync.customer_tenant_id == customer_tenant_id,
                SupplierSync.status == SyncStatus.PENDING.value,
            )
            .order_by(SupplierSync.created_at.desc(), SupplierSync.id.desc())
            .all()
        )
        orders = self._orders_by_id([e.wholesale_order_id for e in entries])
        names: Dict[int, str] = {}

        results = []
        for entry in entries:
            order = orders.get(entry.wholesale_order_id)
            data = serialize_entry(entry)
            data["order"] = {
                "challanNumber": order.challan_number if order and order.challan_number else "N/A",
                "buyerName": order.buyer_name if order else "Unknown",
                "totalAmount": float(order.total_amount or 0) if order else 0,
                "date": _iso(order.created_at) if order else None,
            }
            data["supplier"] = {"name": self._organization_name(entry.supplier_tenant_id, names)}
            results.append(data)
        return results

    def received_from_supplier(self, customer_tenant_id: int) -> Dict[str, Any]:
        """Supplier-sourced receipts of a customer, one row per source order."""
        receipts = (
            self.db.query(FactoryReceiving)
            .filter(
                FactoryReceiving.organization_id == customer_tenant_id,
                FactoryReceiving.source_type == ReceivingSource.SUPPLIER_SYNC.value,
            )
            .order_by(FactoryReceiving.received_date.desc(), FactoryReceiving.id.desc())
            .all()
        )

        grouped: Dict[str, Dict[str, Any]] = {}
        for receipt in receipts:
            metadata = receipt.supplier_metadata or {}
            key = str(receipt.supplier_wholesale_order_id or receipt.batch_id)
            group = grouped.get(key)
            if group is None:
                group = {
                    "orderId": receipt.supplier_wholesale_order_id,
                    "batchId": receipt.batch_id,
                    "challanNumber": metadata.get("challanNumber") or receipt.batch_id,
                    "orderDate": metadata.get("orderDate") or _iso(receipt.received_date),
                    "supplierName": metadata.get("supplierName") or receipt.source_name,
                    "receivedDate": _iso(receipt.received_date),
                    "receivedBy": receipt.received_by,
                    "acceptedBy": metadata.get("acceptedBy"),
                    "acceptedAt": metadata.get("acceptedAt"),
                    "items": [],
                    "totalQuantity": 0,
                }
                grouped[key] = group
            group["items"].append({
                "id": receipt.id,
                "design": receipt.design,
                "color": receipt.color,
                "quantities": dict(receipt.quantities or {}),
                "totalQuantity": receipt.total_quantity,
            })
            group["totalQuantity"] += receipt.total_quantity or 0

        orders = list(grouped.values())
        return {"orders": orders, "totalOrders": len(orders), "totalItems": len(receipts)}

    def supplier_logs(self, supplier_tenant_id: int, date_range: Optional[str] = None) -> Dict[str, Any]:
        """Every ledger entry of a supplier, newest first, with summary stats."""
        query = self.db.query(SupplierSync).filter(SupplierSync.supplier_tenant_id == supplier_tenant_id)
        since = date_range_start(date_range)
        if since is not None:
            query = query.filter(SupplierSync.synced_at >= since)
        entries = (
            query.order_by(SupplierSync.synced_at.desc(), SupplierSync.id.desc())
            .limit(settings.supplier_logs_limit)
            .all()
        )

        orders = self._orders_by_id([e.wholesale_order_id for e in entries])
        names: Dict[int, str] = {}
        logs = []
        for entry in entries:
            order = orders.get(entry.wholesale_order_id)
            data = serialize_entry(entry)
            data.update({
                "orderChallanNumber": order.challan_number if order and order.challan_number else "N/A",
                "buyerName": order.buyer_name if order else "Unknown",
                "totalAmount": float(order.total_amount or 0) if order else 0,
                "customerName": self._organization_name(entry.customer_tenant_id, names),
                "itemsCount": len(entry.items_synced or []),
                "success": entry.status in APPLIED_STATUSES,
            })
            logs.append(data)

        stats = {
            "totalSyncs": len(logs),
            "successfulSyncs": sum(1 for log in logs if log["success"]),
            "failedSyncs": sum(1 for log in logs if log["status"] == SyncStatus.FAILED.value),
            "pendingSyncs": sum(1 for log in logs if log["status"] == SyncStatus.PENDING.value),
            "createSyncs": sum(1 for log in logs if log["syncType"] == SyncType.CREATE.value),
            "editSyncs": sum(1 for log in logs if log["syncType"] == SyncType.EDIT.value),
            "deleteSyncs": sum(1 for log in logs if log["syncType"] == SyncType.DELETE.value),
        }
        return {"logs": logs, "stats": stats}

    def order_history(self, order_id: int) -> List[Dict[str, Any]]:
        """All ledger entries of one order, oldest first."""
        entries = (
            self.db.query(SupplierSync)
            .filter(SupplierSync.wholesale_order_id == order_id)
            .order_by(SupplierSync.id)
            .all()
        )
        return [serialize_entry(entry) for entry in entries]

    def customer_logs(
        self, customer_tenant_id: int, page: int = 1, limit: int = 20, status: Optional[str] = None
    ) -> Dict[str, Any]:
        """Ledger entries addressed to a customer, newest first, one page at a time."""
        query = self.db.query(SupplierSync).filter(SupplierSync.customer_tenant_id == customer_tenant_id)
        if status:
            query = query.filter(SupplierSync.status == status)
        total = query.count()
        entries = (
            query.order_by(SupplierSync.synced_at.desc(), SupplierSync.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )

        orders = self._orders_by_id([e.wholesale_order_id for e in entries])
        names: Dict[int, str] = {}
        logs = []
        for entry in entries:
            order = orders.get(entry.wholesale_order_id)
            data = serialize_entry(entry)
            data.update({
                "orderChallanNumber": order.challan_number if order and order.challan_number else "N/A",
                "supplierName": self._organization_name(entry.supplier_tenant_id, names),
                "itemsCount": len(entry.items_synced or []),
            })
            logs.append(data)

        return {
            "syncLogs": logs,
            "pagination": {"total": total, "page": page, "limit": limit, "pages": -(-total // limit)},
        }

    def _applied_entry_for(self, sync_id: int, actor: TokenData) -> SupplierSync:
        entry = (
            self.db.query(SupplierSync)
            .filter(SupplierSync.id == sync_id)
            .with_for_update()
            .first()
        )
        if entry is None:
            raise SyncNotFoundError("Sync log not found")
        if entry.customer_tenant_id != actor.organization_id:
            raise SyncPermissionError("Sync log belongs to another organization")
        if not entry.is_applied or entry.sync_type == SyncType.DELETE.value:
            raise SyncStateError("Only stock that was received can be confirmed or disputed")
        return entry

    @staticmethod
    def _record_response(entry: SupplierSync, actor: TokenData, confirmed: bool) -> None:
        entry.receipt_confirmed = confirmed
        entry.receipt_responded_at = utcnow()
        entry.receipt_responded_by_user_id = actor.user_id
        entry.receipt_responded_by_name = actor.full_name

    def confirm_receipt(self, sync_id: int, actor: TokenData) -> Dict[str, Any]:
        """Mark stock received through a sync as checked and correct."""
        try:
            entry = self._applied_entry_for(sync_id, actor)
            if entry.receipt_confirmed is not None:
                raise SyncStateError("Already responded to this sync")
            self._record_response(entry, actor, confirmed=True)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("Sync entry %s receipt confirmed by user %s", entry.id, actor.user_id)
        return serialize_entry(entry)

    def report_issue(self, sync_id: int, actor: TokenData, issues: List[str]) -> Dict[str, Any]:
        """Dispute stock received through a sync and alert the supplier.

        A later report replaces the earlier issue list, including after a confirmation.
        """
        try:
            entry = self._applied_entry_for(sync_id, actor)
            self._record_response(entry, actor, confirmed=False)
            entry.receipt_issues = list(issues)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        order = self.db.get(WholesaleOrder, entry.wholesale_order_id)
        challan = order.challan_number if order and order.challan_number else entry.wholesale_order_id
        customer_name = self._organization_name(entry.customer_tenant_id, {})
        events = [
            NotificationEvent(
                user_id=user.id,
                organization_id=entry.supplier_tenant_id,
                type="sync_issue",
                title="Sync Issue Reported",
                message=f"{customer_name} reported issues with synced order {challan}",
                severity="error",
                related_id=entry.id,
                related_model="SupplierSync",
                metadata={"issues": list(issues), "reportedBy": actor.full_name},
            )
            for user in self.buyers.active_users(entry.supplier_tenant_id)
        ]
        self.notifier.deliver(events)

        logger.warning("Sync entry %s disputed by organization %s: %d issue(s)",
                       entry.id, entry.customer_tenant_id, len(issues))
        return serialize_entry(entry)
