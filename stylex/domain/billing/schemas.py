"""Billing domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from ...models_billing import ManualPaymentReport, Payment, Subscription
from ...shared.validators import clean_text

# ============================================================================
# REQUESTS
# ============================================================================
# Clients still send camelCase keys; both spellings map onto one canonical field.


class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class PlanCodeRequest(_Request):
    """Schema for creating a recurring subscription or changing its plan"""

    plan_code: Optional[str] = Field(default=None, validation_alias=AliasChoices("plan_code", "planCode"))

    @field_validator("plan_code")
    @classmethod
    def strip_plan_code(cls, v: Optional[str]) -> Optional[str]:
        return clean_text(v)


class ConfirmSubscriptionRequest(_Request):
    subscription_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("subscription_id", "subscriptionId")
    )


class CaptureOrderRequest(_Request):
    order_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("order_id", "orderId"))


class ManualReportRequest(_Request):
    """Schema for reporting a bank transfer"""

    owner_id: Optional[int] = Field(default=None, validation_alias=AliasChoices("owner_id", "ownerId"))
    amount: Optional[float] = None
    currency: Optional[str] = None
    reference_text: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("reference_text", "referenceText", "reference")
    )
    proof_url: Optional[str] = Field(default=None, validation_alias=AliasChoices("proof_url", "proofUrl"))

    @field_validator("reference_text", "proof_url", "currency")
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        return clean_text(v)

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v < 0:
            raise ValueError("amount must not be negative")
        return v


class AdminActivateRequest(_Request):
    owner_id: Optional[int] = Field(default=None, validation_alias=AliasChoices("owner_id", "ownerId"))


# ============================================================================
# RESPONSES
# ============================================================================


class SubscriptionOut(BaseModel):
    owner_id: int
    status: str
    plan_code: Optional[str] = None
    billing_provider: Optional[str] = None
    paypal_subscription_id: Optional[str] = None
    paypal_subscription_status: Optional[str] = None
    pending_plan_code: Optional[str] = None
    pending_plan_effective_at: Optional[datetime] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    grace_period_end: Optional[datetime] = None


class TierLimits(BaseModel):
    shops: int
    professionals: int


class TierOut(BaseModel):
    code: str
    name: str
    price: int
    limits: TierLimits


class StateOut(BaseModel):
    state: str
    is_active: bool
    is_in_grace: bool
    is_blocked: bool
    period_end: Optional[str] = None
    grace_end: Optional[str] = None


class UsageOut(BaseModel):
    shop_count: int
    professional_count: int
    barbers_count: int
    owner_counts_as_professional: bool


class Overage(BaseModel):
    shops: int
    professionals: int


class PricingOut(BaseModel):
    currency: str
    tier: Optional[TierOut] = None
    total: Optional[int] = None
    is_over_limit: bool
    overage: Overage


class TransferOut(BaseModel):
    enabled: bool
    bank_name: Optional[str] = None
    account_holder: Optional[str] = None
    account_number: Optional[str] = None
    account_type: Optional[str] = None
    notes: Optional[str] = None


class SummaryResponse(BaseModel):
    owner_id: int
    subscription: SubscriptionOut
    current_plan: Optional[TierOut] = None
    recommended_plan: Optional[TierOut] = None
    state: StateOut
    usage: UsageOut
    pricing: PricingOut
    transfer: TransferOut


class PaymentItem(BaseModel):
    id: int
    owner_id: int
    owner_name: Optional[str] = None
    owner_email: Optional[str] = None
    provider: str
    status: str
    amount: Optional[float] = None
    currency: Optional[str] = None
    provider_payment_id: Optional[str] = None
    metadata: Optional[dict] = None
    paid_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class ManualReportOut(BaseModel):
    id: int
    owner_id: int
    owner_name: Optional[str] = None
    owner_email: Optional[str] = None
    amount: Optional[float] = None
    currency: Optional[str] = None
    reference_text: Optional[str] = None
    proof_url: Optional[str] = None
    status: str
    approved_by: Optional[int] = None
    rejected_by: Optional[int] = None
    decided_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class ManualDecisionResponse(BaseModel):
    report: ManualReportOut
    subscription: Optional[SubscriptionOut] = None


class WebhookResponse(BaseModel):
    received: bool = True
    renewed: bool = False
    duplicate: bool = False


class PayPalConfigResponse(BaseModel):
    client_id: str
    mode: str
    currency: str


# ============================================================================
# ROW SERIALIZERS
# ============================================================================


def subscription_to_dict(subscription: Subscription) -> dict:
    return {
        "owner_id": subscription.owner_id,
        "status": subscription.status,
        "plan_code": subscription.plan_code,
        "billing_provider": subscription.billing_provider,
        "paypal_subscription_id": subscription.paypal_subscription_id,
        "paypal_subscription_status": subscription.paypal_subscription_status,
        "pending_plan_code": subscription.pending_plan_code,
        "pending_plan_effective_at": subscription.pending_plan_effective_at,
        "current_period_start": subscription.current_period_start,
        "current_period_end": subscription.current_period_end,
        "grace_period_end": subscription.grace_period_end,
    }


def payment_to_dict(payment: Payment, owner_name: Optional[str] = None, owner_email: Optional[str] = None) -> dict:
    return {
        "id": payment.id,
        "owner_id": payment.owner_id,
        "owner_name": owner_name,
        "owner_email": owner_email,
        "provider": payment.provider,
        "status": payment.status,
        "amount": payment.amount,
        "currency": payment.currency,
        "provider_payment_id": payment.provider_payment_id,
        "metadata": payment.payment_metadata,
        "paid_at": payment.paid_at,
        "created_at": payment.created_at,
    }


def manual_report_to_dict(
    report: ManualPaymentReport, owner_name: Optional[str] = None, owner_email: Optional[str] = None
) -> dict:
    return {
        "id": report.id,
        "owner_id": report.owner_id,
        "owner_name": owner_name,
        "owner_email": owner_email,
        "amount": report.amount,
        "currency": report.currency,
        "reference_text": report.reference_text,
        "proof_url": report.proof_url,
        "status": report.status,
        "approved_by": report.approved_by,
        "rejected_by": report.rejected_by,
        "decided_at": report.decided_at,
        "created_at": report.created_at,
    }
