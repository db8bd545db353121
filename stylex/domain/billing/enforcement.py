"""
Enforcement gate - called by every operation that mutates a tenant's resources.

Both gates run inside the caller's open transaction and only flush, so the
entitlement check and the caller's write commit (or roll back) together.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...shared.validators import to_int_or_none
from .entitlement import (
    compute_subscription_state,
    ensure_daily_expiry_notification,
    get_or_create_subscription,
)
from .errors import ConflictError, NotFoundError, PaymentRequiredError, ValidationError
from .repository import BillingRepository

logger = logging.getLogger(__name__)


def _gate(db: Session, owner_id: int, now: Optional[datetime], blocked_message: str) -> dict:
    subscription = get_or_create_subscription(db, owner_id, now=now)
    state = compute_subscription_state(subscription, now)

    ensure_daily_expiry_notification(db, owner_id, subscription, now=state["now"])

    if state["is_blocked"]:
        logger.warning(f"⛔ Owner {owner_id} blocked: grace ended {state['grace_end']}")
        block_date = state["grace_end"].date().isoformat() if state["grace_end"] else None
        if block_date:
            blocked_message = f"{blocked_message} (bloqueado desde {block_date})."
        else:
            blocked_message = f"{blocked_message}."
        raise PaymentRequiredError(
            owner_id=owner_id,
            period_end=state["period_end"],
            grace_end=state["grace_end"],
            message=blocked_message,
        )

    return {"owner_id": owner_id, "subscription": subscription, "state": state}


def enforce_shop_subscription(db: Session, shop_id: int, now: Optional[datetime] = None) -> dict:
    """
    Gate a booking-side write on the shop owner's subscription.

    Raises NotFoundError for an unknown shop, ConflictError for a shop with
    no owner, and PaymentRequiredError when the owner is blocked. Otherwise
    returns {"owner_id", "subscription", "state"}.
    """
    shop = BillingRepository.get_active_shop(db, shop_id)
    if not shop:
        raise NotFoundError("Barbería no encontrada")
    if shop.owner_id is None:
        raise ConflictError("La barbería no tiene dueño asignado")

    return _gate(
        db,
        shop.owner_id,
        now,
        "Este negocio tiene el plan vencido. El propietario debe renovar",
    )


def enforce_owner_subscription(db: Session, owner_id, now: Optional[datetime] = None) -> dict:
    """Gate a management write (staff, services, shops) on the owner's own subscription"""
    parsed = to_int_or_none(owner_id)
    if parsed is None:
        raise ValidationError("ownerId requerido")

    return _gate(db, parsed, now, "Tu plan está vencido. Renueva")
