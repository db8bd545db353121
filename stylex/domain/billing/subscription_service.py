"""Subscription service - Business logic for subscription management"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...config import (
    TRANSFER_ACCOUNT_HOLDER,
    TRANSFER_ACCOUNT_NUMBER,
    TRANSFER_ACCOUNT_TYPE,
    TRANSFER_BANK_NAME,
    TRANSFER_NOTES,
)
from ...database import atomic
from ...shared.validators import clamp_int, clean_text, utcnow
from .entitlement import (
    compute_subscription_state,
    ensure_daily_expiry_notification,
    get_or_create_subscription,
    serialize_state,
)
from .errors import ValidationError
from .plans import compute_monthly_price, get_tier_for_code
from .renewal import renew_subscription
from .repository import BillingRepository
from .schemas import payment_to_dict, subscription_to_dict
from .usage import compute_owner_usage_counts

logger = logging.getLogger(__name__)

MAX_OFFSET = 100000


def get_transfer_config() -> dict:
    """Bank transfer instructions; enabled as soon as any field is configured"""
    notes = clean_text((TRANSFER_NOTES or "").replace("\\n", "\n"))
    config = {
        "bank_name": clean_text(TRANSFER_BANK_NAME),
        "account_holder": clean_text(TRANSFER_ACCOUNT_HOLDER),
        "account_number": clean_text(TRANSFER_ACCOUNT_NUMBER),
        "account_type": clean_text(TRANSFER_ACCOUNT_TYPE),
        "notes": notes,
    }
    config["enabled"] = any(config.values())
    return config


class SubscriptionService:
    """Service for subscription management"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = BillingRepository()

    def get_summary(self, owner_id: int, now: Optional[datetime] = None) -> dict:
        """Subscription row, live state, usage, pricing and transfer instructions for one owner"""
        now = now or utcnow()
        with atomic(self.db):
            subscription = get_or_create_subscription(self.db, owner_id, now=now)
            usage = compute_owner_usage_counts(self.db, owner_id)
            pricing = compute_monthly_price(usage)
            state = compute_subscription_state(subscription, now)
            ensure_daily_expiry_notification(self.db, owner_id, subscription, now=now)

            return {
                "owner_id": owner_id,
                "subscription": subscription_to_dict(subscription),
                "current_plan": get_tier_for_code(subscription.plan_code),
                "recommended_plan": pricing["tier"],
                "state": serialize_state(state),
                "usage": usage,
                "pricing": pricing,
                "transfer": get_transfer_config(),
            }

    def list_owner_payments(self, owner_id: int, limit=None, offset=None) -> list:
        limit = clamp_int(limit, default=20, minimum=1, maximum=100)
        offset = clamp_int(offset, default=0, minimum=0, maximum=MAX_OFFSET)
        rows = self.repo.list_payments(self.db, owner_id, limit, offset)
        return [payment_to_dict(payment) for payment, _name, _email in rows]

    def list_all_payments(self, owner_id: Optional[int] = None, limit=None, offset=None) -> list:
        """Admin ledger view across owners, with owner name and email"""
        limit = clamp_int(limit, default=50, minimum=1, maximum=200)
        offset = clamp_int(offset, default=0, minimum=0, maximum=MAX_OFFSET)
        rows = self.repo.list_payments(self.db, owner_id, limit, offset)
        return [payment_to_dict(payment, name, email) for payment, name, email in rows]

    def admin_activate(self, owner_id: Optional[int], admin_id: Optional[int], now: Optional[datetime] = None) -> dict:
        """Renew an owner by hand; no payment is recorded"""
        if not owner_id:
            raise ValidationError("ownerId requerido")
        with atomic(self.db):
            subscription = renew_subscription(self.db, owner_id, now=now)
            result = {"subscription": subscription_to_dict(subscription)}
        logger.info(f"🔧 Admin {admin_id} activated subscription for owner {owner_id}")
        return result
