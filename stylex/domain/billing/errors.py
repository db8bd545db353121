"""Billing errors - typed failures carrying their HTTP status"""

from datetime import datetime
from typing import Any, Optional


class BillingError(Exception):
    """Base error for the billing domain, rendered as JSON by the app handler"""

    status_code = 500
    error_code = "BILLING_ERROR"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if error_code is not None:
            self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


class ValidationError(BillingError):
    status_code = 400
    error_code = "VALIDATION_ERROR"


class AuthzError(BillingError):
    status_code = 403
    error_code = "FORBIDDEN"


class NotFoundError(BillingError):
    status_code = 404
    error_code = "NOT_FOUND"


class ConflictError(BillingError):
    status_code = 409
    error_code = "CONFLICT"


class ConfigurationError(BillingError):
    status_code = 500
    error_code = "CONFIGURATION_ERROR"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class PaymentRequiredError(BillingError):
    """Subscription is past its grace window; carries the boundaries for a renew prompt"""

    status_code = 402
    error_code = "SUBSCRIPTION_REQUIRED"

    def __init__(
        self,
        owner_id: int,
        period_end: Optional[datetime],
        grace_end: Optional[datetime],
        message: str = "Suscripción vencida. Renueva tu plan para continuar.",
    ):
        self.owner_id = owner_id
        self.period_end = period_end
        self.grace_end = grace_end
        super().__init__(
            message,
            details={
                "ownerId": owner_id,
                "periodEnd": _iso(period_end),
                "graceEnd": _iso(grace_end),
            },
        )


class UpstreamError(BillingError):
    """Payment provider call failed or answered with a non-2xx status"""

    status_code = 502
    error_code = "UPSTREAM_ERROR"

    def __init__(self, message: str, provider_status: Optional[int] = None, body: Any = None):
        self.provider_status = provider_status
        self.body = body
        super().__init__(message, details={"providerStatus": provider_status, "body": body})
