"""One-off order rail - pay the current tier price for 30 days through a PayPal order"""

import logging
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional

from sqlalchemy.orm import Session

from ...config import BILLING_BASE_CURRENCY, PAYPAL_CURRENCY, PAYPAL_EXCHANGE_RATE
from ...database import atomic
from ...shared.validators import normalize_currency, parse_iso_datetime, utcnow
from .entitlement import get_or_create_subscription
from .errors import ConfigurationError, ValidationError
from .paypal_service import PayPalService, paypal_service
from .plans import compute_monthly_price
from .renewal import renew_subscription
from .repository import BillingRepository
from .schemas import subscription_to_dict
from .usage import compute_owner_usage_counts

logger = logging.getLogger(__name__)

ORDER_PROVIDER = "paypal"
ORDER_DESCRIPTION = "Suscripción Stylex (30 días)"
OVER_LIMIT_MESSAGE = (
    "Tu cuenta excede los límites del plan. Ajusta negocios/profesionales o contacta al administrador."
)

CENT = Decimal("0.01")


def compute_settlement_amount(
    base_total,
    settlement_currency: str,
    base_currency: str,
    exchange_rate: Optional[str],
) -> str:
    """
    Convert a tier price into the provider's settlement currency.

    `exchange_rate` is base-currency units per one settlement unit. It is
    only needed when the two currencies differ; a missing or non-positive
    rate in that case is a configuration error. Returns the amount as a
    2-decimal string, the format PayPal expects.
    """
    try:
        total = Decimal(str(base_total))
    except (InvalidOperation, ValueError):
        raise ValidationError("Monto inválido para crear orden")
    if total <= 0:
        raise ValidationError("Monto inválido para crear orden")

    if settlement_currency.upper() == base_currency.upper():
        return str(total.quantize(CENT, rounding=ROUND_HALF_UP))

    try:
        rate = Decimal(str(exchange_rate)) if exchange_rate not in (None, "") else None
    except (InvalidOperation, ValueError):
        rate = None
    if rate is None or not rate.is_finite() or rate <= 0:
        raise ConfigurationError(
            f"Falta PAYPAL_EXCHANGE_RATE para convertir {base_currency} -> {settlement_currency}"
        )

    amount = (total / rate).quantize(CENT, rounding=ROUND_HALF_UP)
    if amount <= 0:
        raise ValidationError("Monto inválido para crear orden")
    return str(amount)


def _to_float(value) -> Optional[float]:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


class OrderService:
    """Service for the PayPal one-off order rail"""

    def __init__(
        self,
        db: Session,
        paypal: Optional[PayPalService] = None,
        settlement_currency: Optional[str] = None,
        exchange_rate: Optional[str] = None,
        base_currency: Optional[str] = None,
    ):
        self.db = db
        self.paypal = paypal or paypal_service
        self.repo = BillingRepository()
        self.settlement_currency = normalize_currency(settlement_currency, PAYPAL_CURRENCY)
        self.exchange_rate = exchange_rate if exchange_rate is not None else PAYPAL_EXCHANGE_RATE
        self.base_currency = normalize_currency(base_currency, BILLING_BASE_CURRENCY)

    async def create_order(self, owner_id: int) -> dict:
        """Open a PayPal order for the owner's current usage tier"""
        # Reads end before the provider call so no transaction idles on the network
        with atomic(self.db):
            usage = compute_owner_usage_counts(self.db, owner_id)
        pricing = compute_monthly_price(usage)
        if pricing["total"] is None:
            raise ValidationError(OVER_LIMIT_MESSAGE, details={"pricing": pricing, "usage": usage})

        amount_value = compute_settlement_amount(
            pricing["total"], self.settlement_currency, self.base_currency, self.exchange_rate
        )

        data = await self.paypal.create_order(
            amount_value=amount_value,
            currency=self.settlement_currency,
            reference_id=f"owner_{owner_id}",
            description=ORDER_DESCRIPTION,
        )

        return {
            "id": data.get("id"),
            "amount": amount_value,
            "currency": self.settlement_currency,
            "tier": pricing["tier"]["code"],
            "raw": data,
        }

    async def capture_order(self, owner_id: int, order_id: Optional[str], now: Optional[datetime] = None) -> dict:
        """
        Capture an approved order, then renew and record the payment in one transaction.

        Ownership is checked on the order before capturing, so a mismatch never
        takes money. A capture already in the ledger is acknowledged without
        renewing again.
        """
        if not order_id:
            raise ValidationError("orderId requerido")

        order = await self.paypal.get_order(order_id)
        reference_id = ((order.get("purchase_units") or [{}])[0] or {}).get("reference_id")
        if reference_id and reference_id != f"owner_{owner_id}":
            raise ValidationError("La orden no pertenece a este propietario")

        data = await self.paypal.capture_order(order_id)

        status = str(data.get("status") or "").upper()
        if status != "COMPLETED":
            raise ValidationError(
                f"Pago no completado (status={status or 'N/A'})", details={"raw": data}
            )

        purchase_units = data.get("purchase_units") or [{}]
        unit = purchase_units[0] or {}
        captures = (unit.get("payments") or {}).get("captures") or [{}]
        capture = captures[0] or {}
        capture_id = capture.get("id")
        amount = (capture.get("amount") or {}).get("value")
        currency = (capture.get("amount") or {}).get("currency_code") or self.settlement_currency
        provider_payment_id = str(capture_id or order_id)

        now = now or utcnow()
        with atomic(self.db):
            # Lock first: concurrent captures of one order serialize on the subscription row
            subscription = get_or_create_subscription(self.db, owner_id, now=now, for_update=True)
            if self.repo.payment_exists(self.db, ORDER_PROVIDER, provider_payment_id):
                logger.info(f"🔁 PayPal capture {provider_payment_id} already recorded, skipping renewal")
                return {
                    "success": True,
                    "duplicate": True,
                    "subscription": subscription_to_dict(subscription),
                    "paypal": data,
                }

            subscription = renew_subscription(self.db, owner_id, now=now)
            self.repo.create_payment(
                self.db,
                owner_id=owner_id,
                provider=ORDER_PROVIDER,
                amount=_to_float(amount),
                currency=str(currency).upper(),
                provider_payment_id=provider_payment_id,
                metadata={"orderId": order_id, "captureId": capture_id, "raw": data},
                paid_at=parse_iso_datetime(capture.get("create_time")) or now,
            )
            result = {
                "success": True,
                "duplicate": False,
                "subscription": subscription_to_dict(subscription),
                "paypal": data,
            }

        logger.info(f"✅ Captured PayPal order {order_id} for owner {owner_id}")
        return result
