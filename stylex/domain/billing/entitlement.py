"""
Entitlement state machine.

State is never stored: it is derived on every read from the period
boundaries and the current time.

    active   now <= period_end
    grace    period_end < now <= grace_end
    blocked  now > grace_end, or no period_end at all
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...models_billing import Subscription
from ...services.notification_service import SUBSCRIPTION_EXPIRED, insert_notification
from ...shared.validators import utcnow
from .repository import BillingRepository

logger = logging.getLogger(__name__)

BILLING_PERIOD = timedelta(days=30)
GRACE_PERIOD = timedelta(days=5)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _date_key(value: Optional[datetime]) -> Optional[str]:
    return value.date().isoformat() if value else None


def get_or_create_subscription(
    db: Session, owner_id: int, now: Optional[datetime] = None, for_update: bool = False
) -> Subscription:
    """Fetch the owner's subscription, seeding a fresh 30-day active period on first access"""
    repo = BillingRepository()
    subscription = repo.get_subscription_by_owner(db, owner_id, for_update=for_update)
    if subscription:
        return subscription

    now = now or utcnow()
    period_end = now + BILLING_PERIOD
    subscription = repo.create_subscription(
        db,
        owner_id=owner_id,
        period_start=now,
        period_end=period_end,
        grace_end=period_end + GRACE_PERIOD,
    )
    logger.info(f"✅ Created subscription for owner {owner_id} (period ends {period_end.isoformat()})")
    return subscription


def compute_subscription_state(subscription: Optional[Subscription], now: Optional[datetime] = None) -> dict:
    now = now or utcnow()
    period_end = subscription.current_period_end if subscription else None
    grace_end = subscription.grace_period_end if subscription else None

    is_active = period_end is not None and now <= period_end
    is_in_grace = not is_active and grace_end is not None and now <= grace_end
    is_blocked = not is_active and not is_in_grace

    return {
        "now": now,
        "period_end": period_end,
        "grace_end": grace_end,
        "is_active": is_active,
        "is_in_grace": is_in_grace,
        "is_blocked": is_blocked,
    }


def state_name(state: dict) -> str:
    if state["is_active"]:
        return "active"
    if state["is_in_grace"]:
        return "grace"
    return "blocked"


def serialize_state(state: dict) -> dict:
    return {
        "state": state_name(state),
        "is_active": state["is_active"],
        "is_in_grace": state["is_in_grace"],
        "is_blocked": state["is_blocked"],
        "period_end": _iso(state["period_end"]),
        "grace_end": _iso(state["grace_end"]),
    }


def ensure_daily_expiry_notification(
    db: Session, owner_id: int, subscription: Subscription, now: Optional[datetime] = None
) -> bool:
    """
    Insert at most one SUBSCRIPTION_EXPIRED notification per UTC day.

    Runs on reads where the subscription is not active. Deduplication is
    best-effort: two concurrent reads may both see a stale
    `last_alert_sent_at` and each insert a notification. No lock is taken
    for this, so a couple of extra notifications on the same day are
    possible and accepted.

    Returns True when a notification was inserted.
    """
    state = compute_subscription_state(subscription, now)
    if state["period_end"] is None or state["is_active"]:
        return False

    today_key = _date_key(state["now"])
    if _date_key(subscription.last_alert_sent_at) == today_key:
        return False

    block_date = _date_key(state["grace_end"])
    if block_date:
        message = (
            f"Tu suscripción venció. Renueva antes del día {block_date} "
            "o tu sistema dejará de funcionar."
        )
    else:
        message = "Tu suscripción venció. Renueva para evitar que tu sistema deje de funcionar."

    insert_notification(
        db,
        user_id=owner_id,
        notification_type=SUBSCRIPTION_EXPIRED,
        title="Tu plan venció",
        message=message,
        payload={"periodEnd": _iso(state["period_end"]), "graceEnd": _iso(state["grace_end"])},
    )
    BillingRepository.update_subscription(db, subscription, last_alert_sent_at=state["now"])
    logger.info(f"⚠️ Expiry notification sent to owner {owner_id} ({state_name(state)})")
    return True
