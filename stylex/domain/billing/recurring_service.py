"""
Recurring rail - PayPal billing subscriptions.

Create and change-plan only record the requested plan as pending. The paid
plan changes when PayPal reports the subscription ACTIVE (confirm) or when a
payment webhook arrives; any other provider status is stored as-is and never
touches plan_code.
"""

import logging
from datetime import datetime
from typing import Mapping, Optional
from urllib.parse import urlparse

from sqlalchemy.orm import Session

from ...config import FRONTEND_PUBLIC_URL, PAYPAL_BRAND_NAME, PAYPAL_LOCALE
from ...database import atomic
from ...shared.validators import normalize_plan_code, parse_iso_datetime, utcnow
from ...webhook_security import extract_paypal_transmission_headers
from .entitlement import BILLING_PERIOD, GRACE_PERIOD, get_or_create_subscription
from .errors import BillingError, ConfigurationError, UpstreamError, ValidationError
from .order_service import OVER_LIMIT_MESSAGE
from .paypal_service import PayPalService, find_link, paypal_service
from .plans import (
    compute_monthly_price,
    fits_tier,
    get_paypal_plan_id,
    get_plan_code_for_paypal_plan_id,
    get_tier_for_code,
)
from .renewal import renew_subscription
from .repository import BillingRepository
from .schemas import subscription_to_dict
from .usage import compute_owner_usage_counts

logger = logging.getLogger(__name__)

RECURRING_PROVIDER = "paypal_subscription"
DEFAULT_APP_URL = "http://localhost:5173"

PAYMENT_SUCCESS_EVENTS = {
    "BILLING.SUBSCRIPTION.PAYMENT.SUCCEEDED",
    "PAYMENT.CAPTURE.COMPLETED",
    "PAYMENT.SALE.COMPLETED",
}
PAYMENT_FAILURE_MARKERS = ("FAILED", "DENIED", "REVERSED", "REFUNDED")


def resolve_public_app_url(origin: Optional[str] = None, referer: Optional[str] = None) -> str:
    """Configured frontend URL, else the caller's Origin, else the Referer's origin"""
    configured = (FRONTEND_PUBLIC_URL or "").strip()
    if configured:
        return configured.rstrip("/")
    if origin and origin.strip():
        return origin.strip().rstrip("/")
    if referer and referer.strip():
        parsed = urlparse(referer.strip())
        if parsed.scheme and parsed.netloc:
            return f"{parsed.scheme}://{parsed.netloc}"
    return DEFAULT_APP_URL


def build_application_context(app_url: str) -> dict:
    return {
        "brand_name": PAYPAL_BRAND_NAME,
        "locale": PAYPAL_LOCALE,
        "shipping_preference": "NO_SHIPPING",
        "user_action": "SUBSCRIBE_NOW",
        "return_url": f"{app_url}/?paypal_subscription_success=1",
        "cancel_url": f"{app_url}/?paypal_subscription_cancel=1",
    }


def is_payment_success_event(event_type: str) -> bool:
    if event_type in PAYMENT_SUCCESS_EVENTS:
        return True
    return "PAYMENT" in event_type and not any(m in event_type for m in PAYMENT_FAILURE_MARKERS)


def _first(mapping: Optional[dict], *keys):
    mapping = mapping or {}
    for key in keys:
        value = mapping.get(key)
        if value:
            return value
    return None


def _to_float(value) -> Optional[float]:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


class RecurringSubscriptionService:
    """Service for the PayPal recurring-subscription rail"""

    def __init__(self, db: Session, paypal: Optional[PayPalService] = None):
        self.db = db
        self.paypal = paypal or paypal_service
        self.repo = BillingRepository()

    def _require_plan(self, plan_code: Optional[str]) -> tuple:
        code = normalize_plan_code(plan_code)
        if not code:
            raise ValidationError("planCode inválido")
        plan_id = get_paypal_plan_id(code)
        if not plan_id:
            raise ConfigurationError(f"Falta configurar PAYPAL_PLAN_ID_* para planCode={code}")
        return code, plan_id

    async def create_subscription(self, owner_id: int, plan_code: Optional[str], app_url: str) -> dict:
        """
        Start a PayPal subscription for the requested tier.

        Usage must fit the requested tier. The provider subscription id and
        the requested plan (as pending) are stored before the payer approves.
        """
        code, plan_id = self._require_plan(plan_code)

        with atomic(self.db):
            usage = compute_owner_usage_counts(self.db, owner_id)
        pricing = compute_monthly_price(usage)
        if pricing["is_over_limit"]:
            raise ValidationError(OVER_LIMIT_MESSAGE, details={"pricing": pricing, "usage": usage})

        tier = get_tier_for_code(code)
        if not fits_tier(tier, usage["shop_count"], usage["professional_count"]):
            raise ValidationError(
                "Tu uso actual excede el plan seleccionado. Elige un plan superior.",
                details={"pricing": pricing, "usage": usage},
            )

        data = await self.paypal.create_subscription(
            plan_id=plan_id,
            custom_id=f"owner_{owner_id}_plan_{code}",
            application_context=build_application_context(app_url),
        )

        paypal_subscription_id = data.get("id")
        approval_url = find_link(data, "approve")
        if not paypal_subscription_id or not approval_url:
            raise UpstreamError("Respuesta inválida de PayPal creando suscripción", body=data)

        with atomic(self.db):
            subscription = get_or_create_subscription(self.db, owner_id, for_update=True)
            self.repo.update_subscription(
                self.db,
                subscription,
                billing_provider="paypal",
                paypal_subscription_id=paypal_subscription_id,
                paypal_subscription_status=str(data.get("status") or ""),
                pending_plan_code=code,
                pending_plan_effective_at=None,
            )

        logger.info(f"✅ Created PayPal subscription {paypal_subscription_id} for owner {owner_id} ({code})")
        return {"id": paypal_subscription_id, "approval_url": approval_url, "raw": data}

    async def confirm_subscription(
        self, owner_id: int, subscription_id: Optional[str], now: Optional[datetime] = None
    ) -> dict:
        """Re-read the provider status after payer approval and apply it locally"""
        if not subscription_id:
            raise ValidationError("subscriptionId requerido")

        data = await self.paypal.get_subscription(subscription_id)
        status = str(data.get("status") or "").upper()
        if not status:
            raise UpstreamError("Respuesta inválida de PayPal", body=data)

        plan_code_from_paypal = get_plan_code_for_paypal_plan_id(data.get("plan_id"))
        now = now or utcnow()

        with atomic(self.db):
            subscription = get_or_create_subscription(self.db, owner_id, now=now, for_update=True)
            if str(subscription.paypal_subscription_id or "") != str(subscription_id):
                raise ValidationError("subscriptionId no coincide con el owner")

            if status != "ACTIVE":
                # Not paid yet: record the provider status only
                self.repo.update_subscription(
                    self.db,
                    subscription,
                    billing_provider="paypal",
                    paypal_subscription_status=status,
                )
                logger.info(f"⏳ PayPal subscription {subscription_id} is {status}, plan unchanged")
            else:
                resolved_plan = (
                    plan_code_from_paypal or subscription.pending_plan_code or subscription.plan_code
                )
                period_end = parse_iso_datetime((data.get("billing_info") or {}).get("next_billing_time"))
                if period_end is None:
                    period_end = now + BILLING_PERIOD

                fields = {
                    "status": "active",
                    "billing_provider": "paypal",
                    "paypal_subscription_status": status,
                    "pending_plan_code": None,
                    "pending_plan_effective_at": None,
                    "current_period_start": now,
                    "current_period_end": period_end,
                    "grace_period_end": period_end + GRACE_PERIOD,
                }
                if resolved_plan:
                    fields["plan_code"] = resolved_plan
                self.repo.update_subscription(self.db, subscription, **fields)
                logger.info(
                    f"✅ PayPal subscription {subscription_id} active for owner {owner_id} "
                    f"(plan={resolved_plan}, period ends {period_end.isoformat()})"
                )

            result = {"success": True, "subscription": subscription_to_dict(subscription), "paypal": data}
        return result

    async def cancel_subscription(self, owner_id: int) -> dict:
        """Cancel at PayPal; the paid window is left to expire naturally"""
        subscription_id = self._provider_subscription_id(owner_id, "No hay suscripción PayPal activa")

        await self.paypal.cancel_subscription(subscription_id, reason="Cancelado por el usuario")

        with atomic(self.db):
            subscription = get_or_create_subscription(self.db, owner_id, for_update=True)
            self.repo.update_subscription(self.db, subscription, paypal_subscription_status="CANCELLED")
        return {"success": True}

    async def change_plan(self, owner_id: int, plan_code: Optional[str], app_url: str) -> dict:
        """Revise the provider subscription; the new plan stays pending until PayPal confirms it"""
        code, plan_id = self._require_plan(plan_code)
        subscription_id = self._provider_subscription_id(
            owner_id, "No hay suscripción PayPal existente para cambiar de plan"
        )

        data = await self.paypal.revise_subscription(
            subscription_id, plan_id=plan_id, application_context=build_application_context(app_url)
        )

        with atomic(self.db):
            subscription = get_or_create_subscription(self.db, owner_id, for_update=True)
            self.repo.update_subscription(
                self.db, subscription, pending_plan_code=code, pending_plan_effective_at=None
            )

        logger.info(f"🔄 Requested plan change to {code} for owner {owner_id}")
        return {"success": True, "approval_url": find_link(data, "approve"), "raw": data}

    def _provider_subscription_id(self, owner_id: int, missing_message: str) -> str:
        """Stored PayPal subscription id, read in a short transaction that ends before any provider call"""
        with atomic(self.db):
            subscription = get_or_create_subscription(self.db, owner_id)
            subscription_id = subscription.paypal_subscription_id
            if not subscription_id:
                raise ValidationError(missing_message)
        return subscription_id

    async def _fetch_provider_plan_code(self, subscription_id: str) -> Optional[str]:
        """Best-effort: local tier code for the provider's current plan id; failures are logged only"""
        try:
            data = await self.paypal.get_subscription(subscription_id)
        except BillingError as e:
            logger.warning(f"⚠️ Could not sync plan for PayPal subscription {subscription_id}: {e.message}")
            return None
        return get_plan_code_for_paypal_plan_id(data.get("plan_id"))

    async def handle_webhook(
        self, headers: Mapping[str, str], event: dict, now: Optional[datetime] = None
    ) -> dict:
        """
        Apply a verified PayPal webhook delivery.

        Provider calls (signature check, plan lookup) all finish before the
        subscription row is locked, and the locked block never awaits, so
        concurrent deliveries for one subscription serialize on the row
        without stalling the event loop. Payment events are keyed on the
        provider transaction id; a replay renews nothing.
        """
        transmission = extract_paypal_transmission_headers(headers)
        if not await self.paypal.verify_webhook_signature(transmission, event):
            logger.warning("❌ PayPal webhook signature verification failed")
            raise ValidationError("Firma de webhook inválida")

        event = event or {}
        event_type = str(event.get("event_type") or "").upper()
        resource = event.get("resource") or {}
        logger.info(f"📥 PayPal webhook verified: {event_type}")

        subscription_id = _first(resource, "billing_agreement_id", "id", "subscription_id")
        transaction_id = _first(resource, "id", "sale_id", "transaction_id")
        result = {"received": True, "renewed": False, "duplicate": False}
        if not subscription_id:
            return result

        is_payment = is_payment_success_event(event_type) and bool(transaction_id)
        provider_plan_code = None
        if is_payment:
            provider_plan_code = await self._fetch_provider_plan_code(str(subscription_id))

        now = now or utcnow()
        with atomic(self.db):
            subscription = self.repo.get_subscription_by_paypal_id(
                self.db, str(subscription_id), for_update=True
            )
            if not subscription:
                logger.info(f"PayPal webhook for unknown subscription {subscription_id}, ignoring")
                return result

            owner_id = subscription.owner_id

            if event_type.startswith("BILLING.SUBSCRIPTION."):
                new_status = str(resource.get("status") or "").upper() or event_type
                self.repo.update_subscription(
                    self.db, subscription, paypal_subscription_status=new_status, billing_provider="paypal"
                )

            if is_payment:
                if provider_plan_code:
                    self.repo.update_subscription(self.db, subscription, plan_code=provider_plan_code)

                if self.repo.payment_exists(self.db, RECURRING_PROVIDER, str(transaction_id)):
                    logger.info(f"🔁 PayPal transaction {transaction_id} already recorded, skipping renewal")
                    result["duplicate"] = True
                    return result

                renew_subscription(self.db, owner_id, now=now, clear_pending=True)

                amount_info = resource.get("amount") or {}
                amount = _first(amount_info, "total", "value", "amount")
                currency = _first(amount_info, "currency", "currency_code", "currencyCode")
                paid_at = parse_iso_datetime(_first(resource, "time", "create_time")) or now

                self.repo.create_payment(
                    self.db,
                    owner_id=owner_id,
                    provider=RECURRING_PROVIDER,
                    amount=_to_float(amount),
                    currency=str(currency).upper() if currency else None,
                    provider_payment_id=str(transaction_id),
                    metadata={"eventType": event_type, "subscriptionId": subscription_id, "raw": event},
                    paid_at=paid_at,
                )
                self.repo.update_subscription(
                    self.db, subscription, status="active", billing_provider="paypal"
                )
                result["renewed"] = True
                logger.info(f"✅ Renewed owner {owner_id} from PayPal transaction {transaction_id}")

        return result
