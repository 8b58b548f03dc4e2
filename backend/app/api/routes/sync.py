"""Supplier sync routes.

Customers review and answer sync requests, see what suppliers sent them and
confirm or dispute received stock; suppliers resend orders and audit their
sync ledger.
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request

from app.core.rate_limit import limiter
from app.core.rbac import CurrentUser, RequireManager
from app.core.responses import success_response
from app.db.session import DbSession
from app.schemas.supplier_sync import RejectSyncRequest, ReportSyncIssueRequest
from app.services.supplier_sync_service import SupplierSyncService
from app.services.sync_errors import SyncError
from app.services.sync_ledger_service import SyncLedgerService

router = APIRouter()


@router.get("/pending")
@limiter.limit("60/minute")
def get_pending_sync_requests(request: Request, db: DbSession, current_user: CurrentUser):
    """Pending sync requests addressed to the caller's organization."""
    pending = SyncLedgerService(db).pending_requests(current_user.organization_id)
    return {"success": True, "data": pending, "count": len(pending)}


@router.post("/{sync_id}/accept")
@limiter.limit("30/minute")
def accept_sync_request(request: Request, sync_id: int, db: DbSession, current_user: CurrentUser):
    """Approve a pending request and add its stock to the caller's inventory."""
    try:
        result = SupplierSyncService(db).accept(sync_id, current_user)
    except SyncError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message)
    return success_response(result, message="Sync request accepted and inventory updated")


@router.post("/{sync_id}/reject")
@limiter.limit("30/minute")
def reject_sync_request(
    request: Request,
    sync_id: int,
    db: DbSession,
    current_user: CurrentUser,
    body: Optional[RejectSyncRequest] = None,
):
    """Decline a pending request."""
    reason = body.reason if body else None
    try:
        result = SupplierSyncService(db).reject(sync_id, current_user, reason)
    except SyncError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message)
    return success_response(result, message="Sync request rejected")


@router.post("/resend/{order_id}")
@limiter.limit("30/minute")
def resend_sync_request(request: Request, order_id: int, db: DbSession, current_user: CurrentUser):
    """Dispatch a rejected or never-synced order again."""
    try:
        result = SupplierSyncService(db).resend(order_id, current_user.organization_id)
    except SyncError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message)
    return success_response(result)


@router.get("/received-from-supplier")
@limiter.limit("60/minute")
def get_received_from_supplier(request: Request, db: DbSession, current_user: CurrentUser):
    """Stock received from suppliers, grouped by source order."""
    return success_response(SyncLedgerService(db).received_from_supplier(current_user.organization_id))


@router.get("/supplier-logs")
@limiter.limit("60/minute")
def get_supplier_logs(
    request: Request,
    db: DbSession,
    current_user: RequireManager,
    date_range: Optional[str] = Query(None, alias="dateRange", pattern="^(today|7days|30days|all)$"),
):
    """Every sync ledger entry of the caller's supplier organization."""
    return success_response(SyncLedgerService(db).supplier_logs(current_user.organization_id, date_range))


@router.get("/tenant/logs")
@limiter.limit("60/minute")
def get_tenant_sync_logs(
    request: Request,
    db: DbSession,
    current_user: CurrentUser,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None, pattern="^(pending|accepted|rejected|synced|failed|cancelled)$"),
):
    """Sync ledger entries addressed to the caller's organization, paginated."""
    return success_response(
        SyncLedgerService(db).customer_logs(current_user.organization_id, page=page, limit=limit, status=status)
    )


@router.put("/tenant/logs/{sync_id}/accept")
@limiter.limit("30/minute")
def confirm_synced_receipt(request: Request, sync_id: int, db: DbSession, current_user: CurrentUser):
    """Confirm that stock received through a sync is correct."""
    try:
        result = SyncLedgerService(db).confirm_receipt(sync_id, current_user)
    except SyncError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message)
    return success_response(result, message="Stock receipt confirmed")


@router.put("/tenant/logs/{sync_id}/report-issue")
@limiter.limit("30/minute")
def report_sync_issue(
    request: Request, sync_id: int, body: ReportSyncIssueRequest, db: DbSession, current_user: CurrentUser
):
    """Dispute stock received through a sync; the supplier is alerted."""
    try:
        result = SyncLedgerService(db).report_issue(sync_id, current_user, body.issues)
    except SyncError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message)
    return success_response(result, message="Issue reported. Supplier will be notified.")
