"""
Subscription, Payment Ledger and Manual Transfer Report Models
"""

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from .database import Base


class Subscription(Base):
    """One row per owner; liveness is derived from the period boundaries, not `status`"""

    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False, index=True)

    # active, pending_verification (free text history is tolerated)
    status = Column(String(50), default="active", nullable=False)

    # Paid window
    current_period_start = Column(DateTime, nullable=True)
    current_period_end = Column(DateTime, nullable=True)
    grace_period_end = Column(DateTime, nullable=True)  # period end + grace window

    # Dedupes expiry notifications to one per UTC day
    last_alert_sent_at = Column(DateTime, nullable=True)

    billing_provider = Column(String(20), default="none", nullable=False)  # none, paypal
    plan_code = Column(String(50), nullable=True)  # basic_1, basic_2, pro, premium

    # PayPal recurring linkage
    paypal_subscription_id = Column(String(255), nullable=True, index=True)
    paypal_subscription_status = Column(String(50), nullable=True)

    # Plan requested but not yet confirmed by the provider
    pending_plan_code = Column(String(50), nullable=True)
    pending_plan_effective_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class Payment(Base):
    """Append-only ledger row per confirmed payment"""

    __tablename__ = "payments"
    __table_args__ = (
        # A given external transaction produces at most one ledger row
        UniqueConstraint("provider", "provider_payment_id", name="uq_payments_provider_payment"),
    )

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    provider = Column(String(50), nullable=False)  # paypal, paypal_subscription, manual
    status = Column(String(50), default="confirmed", nullable=False)
    amount = Column(Float, nullable=True)
    currency = Column(String(10), nullable=True)
    provider_payment_id = Column(String(255), nullable=True)  # NULL for manual transfers

    # Provenance blob (order/capture ids, webhook event, approving admin...)
    payment_metadata = Column("metadata", JSON, nullable=True)

    paid_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class ManualPaymentReport(Base):
    """Bank transfer claimed by an owner, decided exactly once by an admin"""

    __tablename__ = "manual_payment_reports"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    amount = Column(Float, nullable=True)
    currency = Column(String(10), nullable=True)
    reference_text = Column(Text, nullable=True)
    proof_url = Column(String(1000), nullable=True)

    status = Column(String(20), default="pending", nullable=False)  # pending, approved, rejected
    approved_by = Column(Integer, nullable=True)
    rejected_by = Column(Integer, nullable=True)
    decided_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
