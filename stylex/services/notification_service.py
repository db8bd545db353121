"""
In-app Notification Service
Inserts notification rows; push delivery picks up PENDING rows separately
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..models import Notification

logger = logging.getLogger(__name__)

SUBSCRIPTION_EXPIRED = "SUBSCRIPTION_EXPIRED"


def insert_notification(
    db: Session,
    user_id: int,
    notification_type: str,
    title: str,
    message: str,
    payload: Optional[dict] = None,
) -> Notification:
    """
    Queue a notification for a user inside the caller's transaction.

    Args:
        db: Database session (flushed, not committed)
        user_id: Recipient user ID
        notification_type: Type key, e.g. SUBSCRIPTION_EXPIRED
        title: Short title shown in the app
        message: Body text
        payload: Optional JSON payload for the client

    Returns:
        The pending Notification row
    """
    notification = Notification(
        user_id=user_id,
        type=notification_type,
        title=title,
        message=message,
        status="PENDING",
        payload=payload,
    )
    db.add(notification)
    db.flush()
    logger.info(f"🔔 Queued {notification_type} notification for user {user_id}")
    return notification
