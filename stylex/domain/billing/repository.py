"""Billing repository - Database operations for billing"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import BarberShop, User
from ...models_billing import ManualPaymentReport, Payment, Subscription


class BillingRepository:
    """
    Repository for billing database operations.

    Methods only flush; the calling service owns the transaction. Locked
    reads (`for_update=True`) reload the row so the caller never works on a
    stale copy from the session's identity map.
    """

    # ------------------------------------------------------------------
    # Shops and staff
    # ------------------------------------------------------------------

    @staticmethod
    def get_active_shop(db: Session, shop_id: int) -> Optional[BarberShop]:
        """Get a shop that has not been soft-deleted"""
        return (
            db.query(BarberShop)
            .filter(BarberShop.id == shop_id, BarberShop.deleted_at.is_(None))
            .first()
        )

    @staticmethod
    def list_active_shop_ids(db: Session, owner_id: int) -> List[int]:
        rows = (
            db.query(BarberShop.id)
            .filter(BarberShop.owner_id == owner_id, BarberShop.deleted_at.is_(None))
            .all()
        )
        return [row[0] for row in rows]

    @staticmethod
    def count_barbers_at_shops(db: Session, shop_ids: List[int]) -> int:
        """Count non-deleted barber-role users assigned to any of the given shops"""
        if not shop_ids:
            return 0
        return (
            db.query(func.count(User.id))
            .filter(
                User.deleted_at.is_(None),
                func.lower(User.role) == "barber",
                User.shop_id.in_(shop_ids),
            )
            .scalar()
            or 0
        )

    @staticmethod
    def is_owner_also_staff(db: Session, owner_id: int) -> bool:
        """True when the owner is assigned as a professional at one of their own active shops"""
        row = (
            db.query(User.id)
            .join(BarberShop, BarberShop.id == User.shop_id)
            .filter(
                User.id == owner_id,
                User.deleted_at.is_(None),
                BarberShop.owner_id == owner_id,
                BarberShop.deleted_at.is_(None),
            )
            .first()
        )
        return row is not None

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    @staticmethod
    def get_subscription_by_owner(
        db: Session, owner_id: int, for_update: bool = False
    ) -> Optional[Subscription]:
        query = db.query(Subscription).filter(Subscription.owner_id == owner_id)
        if for_update:
            query = query.with_for_update().populate_existing()
        return query.first()

    @staticmethod
    def get_subscription_by_paypal_id(
        db: Session, paypal_subscription_id: str, for_update: bool = False
    ) -> Optional[Subscription]:
        query = db.query(Subscription).filter(
            Subscription.paypal_subscription_id == paypal_subscription_id
        )
        if for_update:
            query = query.with_for_update().populate_existing()
        return query.first()

    @staticmethod
    def create_subscription(
        db: Session,
        owner_id: int,
        period_start: datetime,
        period_end: datetime,
        grace_end: datetime,
    ) -> Subscription:
        subscription = Subscription(
            owner_id=owner_id,
            status="active",
            current_period_start=period_start,
            current_period_end=period_end,
            grace_period_end=grace_end,
            last_alert_sent_at=None,
            billing_provider="none",
        )
        db.add(subscription)
        db.flush()
        return subscription

    @staticmethod
    def update_subscription(db: Session, subscription: Subscription, **fields) -> Subscription:
        """Assign the given columns and flush; None values are written as NULL"""
        for key, value in fields.items():
            if not hasattr(Subscription, key):
                raise AttributeError(f"Subscription has no column '{key}'")
            setattr(subscription, key, value)
        db.flush()
        return subscription

    # ------------------------------------------------------------------
    # Payments ledger
    # ------------------------------------------------------------------

    @staticmethod
    def payment_exists(db: Session, provider: str, provider_payment_id: str) -> bool:
        row = (
            db.query(Payment.id)
            .filter(
                Payment.provider == provider,
                Payment.provider_payment_id == provider_payment_id,
            )
            .first()
        )
        return row is not None

    @staticmethod
    def create_payment(
        db: Session,
        owner_id: int,
        provider: str,
        amount: Optional[float],
        currency: Optional[str],
        provider_payment_id: Optional[str],
        metadata: Optional[dict],
        paid_at: Optional[datetime],
        status: str = "confirmed",
    ) -> Payment:
        payment = Payment(
            owner_id=owner_id,
            provider=provider,
            status=status,
            amount=amount,
            currency=currency,
            provider_payment_id=provider_payment_id,
            payment_metadata=metadata,
            paid_at=paid_at,
        )
        db.add(payment)
        db.flush()
        return payment

    @staticmethod
    def list_payments(
        db: Session, owner_id: Optional[int], limit: int, offset: int
    ) -> List[tuple]:
        """Payments newest first (unpaid rows last), each paired with its owner's name and email"""
        query = db.query(Payment, User.name, User.email).outerjoin(User, User.id == Payment.owner_id)
        if owner_id is not None:
            query = query.filter(Payment.owner_id == owner_id)
        return (
            query.order_by(Payment.paid_at.desc().nullslast(), Payment.created_at.desc(), Payment.id.desc())
            .limit(limit)
            .offset(offset)
            .all()
        )

    # ------------------------------------------------------------------
    # Manual transfer reports
    # ------------------------------------------------------------------

    @staticmethod
    def create_manual_report(
        db: Session,
        owner_id: int,
        amount: Optional[float],
        currency: str,
        reference_text: Optional[str],
        proof_url: Optional[str],
    ) -> ManualPaymentReport:
        report = ManualPaymentReport(
            owner_id=owner_id,
            amount=amount,
            currency=currency,
            reference_text=reference_text,
            proof_url=proof_url,
            status="pending",
        )
        db.add(report)
        db.flush()
        return report

    @staticmethod
    def get_manual_report(
        db: Session, report_id: int, for_update: bool = False
    ) -> Optional[ManualPaymentReport]:
        query = db.query(ManualPaymentReport).filter(ManualPaymentReport.id == report_id)
        if for_update:
            query = query.with_for_update().populate_existing()
        return query.first()

    @staticmethod
    def list_manual_reports(db: Session, status: Optional[str] = None) -> List[tuple]:
        query = db.query(ManualPaymentReport, User.name, User.email).outerjoin(
            User, User.id == ManualPaymentReport.owner_id
        )
        if status:
            query = query.filter(func.lower(ManualPaymentReport.status) == status.lower())
        return query.order_by(ManualPaymentReport.created_at.desc(), ManualPaymentReport.id.desc()).all()
