"""In-app notification sink.

Notifications are informational only: a failure to store one is logged and
swallowed so it can never affect the outcome of the operation that caused it.
Callers deliver them after their own transaction has committed.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.models.notification import Notification

logger = logging.getLogger(__name__)


@dataclass
class NotificationEvent:
    """A notification waiting to be delivered."""

    user_id: int
    type: str
    title: str
    message: str
    severity: str = "info"
    related_id: Optional[int] = None
    related_model: Optional[str] = None
    organization_id: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class NotificationService:
    """Stores notifications for users."""

    def __init__(self, db: Session):
        self.db = db

    def notify(self, event: NotificationEvent) -> bool:
        """Persist one notification. Returns False (never raises) on failure."""
        try:
            self.db.add(
                Notification(
                    user_id=event.user_id,
                    organization_id=event.organization_id,
                    type=event.type,
                    title=event.title,
                    message=event.message,
                    severity=event.severity,
                    related_id=event.related_id,
                    related_model=event.related_model,
                    extra=event.metadata or {},
                )
            )
            self.db.commit()
            return True
        except Exception as e:
            self.db.rollback()
            logger.warning("Failed to create %s notification for user %s (non-critical): %s",
                           event.type, event.user_id, e)
            return False

    def deliver(self, events: List[NotificationEvent]) -> int:
        """Deliver queued events; returns how many were stored."""
        delivered = 0
        for event in events:
            if self.notify(event):
                delivered += 1
        return delivered

    def list_for_user(self, user_id: int, limit: int = 100) -> List[Notification]:
        return (
            self.db.query(Notification)
            .filter(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
            .all()
        )
