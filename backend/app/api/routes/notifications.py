"""Notifications API routes."""

from fastapi import APIRouter, Query, Request

from app.core.rate_limit import limiter
from app.core.rbac import CurrentUser
from app.core.responses import success_response
from app.db.session import DbSession
from app.services.notification_service import NotificationService

router = APIRouter()


@router.get("/")
@limiter.limit("60/minute")
def list_notifications(
    request: Request,
    db: DbSession,
    current_user: CurrentUser,
    limit: int = Query(100, ge=1, le=500),
):
    """The caller's notifications, newest first."""
    notifications = NotificationService(db).list_for_user(current_user.user_id, limit=limit)
    return success_response([
        {
            "id": n.id,
            "type": n.type,
            "title": n.title,
            "message": n.message,
            "severity": n.severity,
            "relatedId": n.related_id,
            "relatedModel": n.related_model,
            "metadata": n.extra or {},
            "isRead": n.is_read,
            "createdAt": n.created_at.isoformat() if n.created_at else None,
        }
        for n in notifications
    ])
