"""Renewal operation - extends an owner's paid window by one billing period"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models_billing import Subscription
from ...shared.validators import utcnow
from .entitlement import BILLING_PERIOD, GRACE_PERIOD, get_or_create_subscription
from .plans import compute_monthly_price
from .repository import BillingRepository
from .usage import compute_owner_usage_counts

logger = logging.getLogger(__name__)


def renew_subscription(
    db: Session,
    owner_id: int,
    now: Optional[datetime] = None,
    clear_pending: bool = False,
) -> Subscription:
    """
    Add 30 days of paid time, anchored at the later of now and the current period end.

    Renewing early keeps the unused days; renewing after expiry restarts from
    now. The plan code kept on the row is the pending plan, else the stored
    plan, else the tier implied by current usage. `clear_pending` drops the
    pending plan once it has been applied (recurring rail).

    Only flushes: the caller must insert the matching ledger row in the same
    transaction.
    """
    now = now or utcnow()
    subscription = get_or_create_subscription(db, owner_id, now=now, for_update=True)

    usage = compute_owner_usage_counts(db, owner_id)
    pricing = compute_monthly_price(usage)
    usage_code = pricing["tier"]["code"] if pricing["tier"] else None
    plan_code = subscription.pending_plan_code or subscription.plan_code or usage_code

    previous_end = subscription.current_period_end
    start = previous_end if previous_end and previous_end > now else now
    period_end = start + BILLING_PERIOD

    fields = {
        "status": "active",
        "current_period_start": start,
        "current_period_end": period_end,
        "grace_period_end": period_end + GRACE_PERIOD,
    }
    if plan_code:
        fields["plan_code"] = plan_code
    if clear_pending:
        fields["pending_plan_code"] = None
        fields["pending_plan_effective_at"] = None

    BillingRepository.update_subscription(db, subscription, **fields)
    logger.info(
        f"🔄 Renewed subscription for owner {owner_id}: "
        f"{previous_end.isoformat() if previous_end else 'none'} -> {period_end.isoformat()}"
    )
    return subscription
