"""Wholesale order and buyer directory routes (supplier side)."""

from fastapi import APIRouter, HTTPException, Request, status

from app.core.rate_limit import limiter
from app.core.rbac import CurrentUser
from app.core.responses import success_response
from app.db.base import as_utc
from app.db.session import DbSession
from app.models.wholesale import WholesaleBuyer, WholesaleOrder
from app.schemas.supplier_sync import (
    BuyerLinkUpdate,
    OrderItemsUpdate,
    SyncPreferenceUpdate,
    WholesaleOrderCreate,
)
from app.services.buyer_directory import BuyerDirectory
from app.services.sync_errors import SyncError
from app.services.sync_ledger_service import SyncLedgerService
from app.services.wholesale_order_service import WholesaleOrderService

router = APIRouter()


def _iso(value):
    value = as_utc(value)
    return value.isoformat() if value else None


def _order_to_dict(order: WholesaleOrder) -> dict:
    return {
        "id": order.id,
        "challanNumber": order.challan_number,
        "buyerName": order.buyer_name,
        "buyerContact": order.buyer_contact,
        "businessName": order.business_name,
        "notes": order.notes,
        "items": [
            {
                "id": item.id,
                "design": item.design,
                "color": item.color,
                "size": item.size,
                "quantity": item.quantity,
                "pricePerUnit": float(item.price_per_unit or 0),
                "subtotal": float(item.subtotal or 0),
            }
            for item in order.items
        ],
        "subtotalAmount": float(order.subtotal_amount or 0),
        "discountType": order.discount_type,
        "discountValue": float(order.discount_value or 0),
        "discountAmount": float(order.discount_amount or 0),
        "totalAmount": float(order.total_amount or 0),
        "syncStatus": order.sync_status,
        "customerTenantId": order.customer_tenant_id,
        "syncedToCustomer": order.synced_to_customer,
        "syncedAt": _iso(order.synced_at),
        "currentSyncEntryId": order.current_sync_entry_id,
        "syncRequests": [
            {
                "requestId": req.request_id,
                "sentAt": _iso(req.sent_at),
                "status": req.status,
                "respondedAt": _iso(req.responded_at),
                "respondedBy": req.responded_by_name,
                "rejectionReason": req.rejection_reason,
            }
            for req in order.sync_requests
        ],
        "createdAt": _iso(order.created_at),
    }


def _buyer_to_dict(buyer: WholesaleBuyer) -> dict:
    return {
        "id": buyer.id,
        "name": buyer.name,
        "mobile": buyer.mobile,
        "email": buyer.email,
        "businessName": buyer.business_name,
        "customerTenantId": buyer.customer_tenant_id,
        "syncPreference": buyer.sync_preference,
    }


# ==================== ORDERS ====================

@router.post("/orders", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_wholesale_order(request: Request, data: WholesaleOrderCreate, db: DbSession, current_user: CurrentUser):
    """Create an order and sync it to the buyer's inventory when they are a linked customer."""
    try:
        order, sync_result = WholesaleOrderService(db).create_order(current_user.organization_id, data)
    except SyncError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message)
    return success_response({"order": _order_to_dict(order), "sync": sync_result})


@router.get("/orders")
@limiter.limit("60/minute")
def list_wholesale_orders(request: Request, db: DbSession, current_user: CurrentUser):
    orders = WholesaleOrderService(db).list_orders(current_user.organization_id)
    return success_response([_order_to_dict(o) for o in orders])


@router.get("/orders/{order_id}")
@limiter.limit("60/minute")
def get_wholesale_order(request: Request, order_id: int, db: DbSession, current_user: CurrentUser):
    try:
        order = WholesaleOrderService(db).get_order(current_user.organization_id, order_id)
    except SyncError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message)
    return success_response(_order_to_dict(order))


@router.put("/orders/{order_id}/items")
@limiter.limit("30/minute")
def update_wholesale_order_items(
    request: Request, order_id: int, data: OrderItemsUpdate, db: DbSession, current_user: CurrentUser
):
    """Replace an order's items; synced orders can only be edited inside the edit window."""
    try:
        order, sync_result = WholesaleOrderService(db).update_items(current_user.organization_id, order_id, data)
    except SyncError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message)
    return success_response({"order": _order_to_dict(order), "sync": sync_result})


@router.get("/orders/{order_id}/sync-history")
@limiter.limit("60/minute")
def get_wholesale_order_sync_history(request: Request, order_id: int, db: DbSession, current_user: CurrentUser):
    """Every sync ledger entry of one of the caller's orders, oldest first."""
    try:
        order = WholesaleOrderService(db).get_order(current_user.organization_id, order_id)
    except SyncError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message)
    return success_response(SyncLedgerService(db).order_history(order.id))


@router.delete("/orders/{order_id}")
@limiter.limit("30/minute")
def delete_wholesale_order(request: Request, order_id: int, db: DbSession, current_user: CurrentUser):
    """Delete an order and remove its stock from the customer's inventory."""
    try:
        sync_result = WholesaleOrderService(db).delete_order(current_user.organization_id, order_id)
    except SyncError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message)
    return success_response({"sync": sync_result}, message="Order deleted")


# ==================== BUYERS ====================

@router.get("/buyers")
@limiter.limit("60/minute")
def list_buyers(request: Request, db: DbSession, current_user: CurrentUser):
    buyers = BuyerDirectory(db).list_buyers(current_user.organization_id)
    return success_response([_buyer_to_dict(b) for b in buyers])


@router.put("/buyers/{buyer_id}/link")
@limiter.limit("30/minute")
def link_buyer(request: Request, buyer_id: int, data: BuyerLinkUpdate, db: DbSession, current_user: CurrentUser):
    """Link a buyer to the customer organization they signed up as."""
    try:
        buyer = BuyerDirectory(db).link_customer(current_user.organization_id, buyer_id, data.customer_tenant_id)
    except SyncError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message)
    return success_response(_buyer_to_dict(buyer))


@router.put("/buyers/{buyer_id}/sync-preference")
@limiter.limit("30/minute")
def set_buyer_sync_preference(
    request: Request, buyer_id: int, data: SyncPreferenceUpdate, db: DbSession, current_user: CurrentUser
):
    try:
        buyer = BuyerDirectory(db).set_sync_preference(
            current_user.organization_id, buyer_id, data.sync_preference
        )
    except SyncError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message)
    return success_response(_buyer_to_dict(buyer))
