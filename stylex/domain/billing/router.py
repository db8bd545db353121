"""Billing router - FastAPI endpoints for subscriptions and payments"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ...auth import (
    CurrentUser,
    can_access_owner,
    get_current_user,
    is_admin_role,
    require_admin,
    require_owner_or_admin,
)
from ...database import get_db
from ...shared.validators import to_int_or_none
from .errors import AuthzError, ValidationError
from .manual_service import ManualPaymentService
from .order_service import OrderService
from .paypal_service import PayPalService, paypal_service
from .recurring_service import RecurringSubscriptionService, resolve_public_app_url
from .schemas import (
    AdminActivateRequest,
    CaptureOrderRequest,
    ConfirmSubscriptionRequest,
    ManualDecisionResponse,
    ManualReportOut,
    ManualReportRequest,
    PaymentItem,
    PayPalConfigResponse,
    PlanCodeRequest,
    SummaryResponse,
    WebhookResponse,
)
from .subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/subscriptions", tags=["Subscriptions"])
webhooks_router = APIRouter(prefix="/api/subscriptions/paypal", tags=["Webhooks"])


def get_paypal_service() -> PayPalService:
    """Dependency injection for the PayPal client"""
    return paypal_service


def get_subscription_service(db: Session = Depends(get_db)) -> SubscriptionService:
    """Dependency injection for SubscriptionService"""
    return SubscriptionService(db)


def get_order_service(
    db: Session = Depends(get_db), paypal: PayPalService = Depends(get_paypal_service)
) -> OrderService:
    return OrderService(db, paypal=paypal)


def get_recurring_service(
    db: Session = Depends(get_db), paypal: PayPalService = Depends(get_paypal_service)
) -> RecurringSubscriptionService:
    return RecurringSubscriptionService(db, paypal=paypal)


def get_manual_service(db: Session = Depends(get_db)) -> ManualPaymentService:
    return ManualPaymentService(db)


def _app_url(request: Request) -> str:
    return resolve_public_app_url(request.headers.get("origin"), request.headers.get("referer"))


def _require_owner_access(user: CurrentUser, owner_id: int) -> None:
    if not can_access_owner(user, owner_id):
        raise AuthzError("Acceso denegado")


# ============================================================================
# OWNER VIEWS
# ============================================================================


@router.get("/owner/{owner_id}", response_model=SummaryResponse)
async def get_owner_summary(
    owner_id: int,
    user: CurrentUser = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Subscription state, usage and pricing for an owner"""
    _require_owner_access(user, owner_id)
    return service.get_summary(owner_id)


@router.get("/owner/{owner_id}/payments", response_model=list[PaymentItem])
async def list_owner_payments(
    owner_id: int,
    limit: Optional[str] = None,
    offset: Optional[str] = None,
    user: CurrentUser = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Payment history for an owner"""
    _require_owner_access(user, owner_id)
    return service.list_owner_payments(owner_id, limit=limit, offset=offset)


# ============================================================================
# MANUAL TRANSFERS
# ============================================================================


@router.post("/manual-report", response_model=ManualReportOut, status_code=201)
async def create_manual_report(
    body: ManualReportRequest,
    user: CurrentUser = Depends(require_owner_or_admin),
    service: ManualPaymentService = Depends(get_manual_service),
):
    """Report a bank transfer for admin review"""
    # Only admins may report on behalf of another owner
    owner_id = user.user_id
    if is_admin_role(user.role) and body.owner_id is not None:
        owner_id = body.owner_id

    return service.submit_report(
        owner_id=owner_id,
        amount=body.amount,
        currency=body.currency,
        reference_text=body.reference_text,
        proof_url=body.proof_url,
    )


@router.get("/admin/manual-reports", response_model=list[ManualReportOut])
async def list_manual_reports(
    status: Optional[str] = None,
    _admin: CurrentUser = Depends(require_admin),
    service: ManualPaymentService = Depends(get_manual_service),
):
    return service.list_reports(status)


@router.post("/admin/manual-reports/{report_id}/approve", response_model=ManualDecisionResponse)
async def approve_manual_report(
    report_id: int,
    admin: CurrentUser = Depends(require_admin),
    service: ManualPaymentService = Depends(get_manual_service),
):
    return service.approve_report(report_id, admin.user_id)


@router.post("/admin/manual-reports/{report_id}/reject", response_model=ManualDecisionResponse)
async def reject_manual_report(
    report_id: int,
    admin: CurrentUser = Depends(require_admin),
    service: ManualPaymentService = Depends(get_manual_service),
):
    return service.reject_report(report_id, admin.user_id)


# ============================================================================
# ADMIN
# ============================================================================


@router.post("/admin/activate")
async def admin_activate_subscription(
    body: AdminActivateRequest,
    admin: CurrentUser = Depends(require_admin),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Manually renew an owner's subscription (no payment recorded)"""
    return service.admin_activate(body.owner_id, admin.user_id)


@router.get("/admin/payments", response_model=list[PaymentItem])
async def list_payments_admin(
    owner_id: Optional[str] = None,
    ownerId: Optional[str] = None,  # noqa: N803 - legacy query name
    limit: Optional[str] = None,
    offset: Optional[str] = None,
    _admin: CurrentUser = Depends(require_admin),
    service: SubscriptionService = Depends(get_subscription_service),
):
    owner_filter = to_int_or_none(owner_id if owner_id is not None else ownerId)
    return service.list_all_payments(owner_filter, limit=limit, offset=offset)


# ============================================================================
# PAYPAL ONE-OFF ORDERS
# ============================================================================


@router.get("/paypal/config", response_model=PayPalConfigResponse)
async def get_paypal_config(paypal: PayPalService = Depends(get_paypal_service)):
    """Public PayPal settings for the checkout buttons"""
    return paypal.public_config()


@router.post("/paypal/create-order")
async def create_paypal_order(
    user: CurrentUser = Depends(require_owner_or_admin),
    service: OrderService = Depends(get_order_service),
):
    return await service.create_order(user.user_id)


@router.post("/paypal/capture-order")
async def capture_paypal_order(
    body: CaptureOrderRequest,
    user: CurrentUser = Depends(require_owner_or_admin),
    service: OrderService = Depends(get_order_service),
):
    return await service.capture_order(user.user_id, body.order_id)


# ============================================================================
# PAYPAL RECURRING SUBSCRIPTIONS
# ============================================================================


@router.post("/paypal/subscriptions/create")
async def create_paypal_subscription(
    body: PlanCodeRequest,
    request: Request,
    user: CurrentUser = Depends(require_owner_or_admin),
    service: RecurringSubscriptionService = Depends(get_recurring_service),
):
    return await service.create_subscription(user.user_id, body.plan_code, _app_url(request))


@router.post("/paypal/subscriptions/confirm")
async def confirm_paypal_subscription(
    body: ConfirmSubscriptionRequest,
    user: CurrentUser = Depends(require_owner_or_admin),
    service: RecurringSubscriptionService = Depends(get_recurring_service),
):
    return await service.confirm_subscription(user.user_id, body.subscription_id)


@router.post("/paypal/subscriptions/cancel")
async def cancel_paypal_subscription(
    user: CurrentUser = Depends(require_owner_or_admin),
    service: RecurringSubscriptionService = Depends(get_recurring_service),
):
    return await service.cancel_subscription(user.user_id)


@router.post("/paypal/subscriptions/change-plan")
async def change_paypal_subscription_plan(
    body: PlanCodeRequest,
    request: Request,
    user: CurrentUser = Depends(require_owner_or_admin),
    service: RecurringSubscriptionService = Depends(get_recurring_service),
):
    return await service.change_plan(user.user_id, body.plan_code, _app_url(request))


# ============================================================================
# WEBHOOKS (no bearer auth; verified with PayPal)
# ============================================================================


@webhooks_router.post("/webhook", response_model=WebhookResponse)
async def handle_paypal_webhook(
    request: Request,
    service: RecurringSubscriptionService = Depends(get_recurring_service),
):
    try:
        event = await request.json()
    except ValueError:
        raise ValidationError("Cuerpo de webhook inválido")
    if not isinstance(event, dict):
        raise ValidationError("Cuerpo de webhook inválido")

    return await service.handle_webhook(request.headers, event)
