"""Tests for the owner summary, ledger listings and admin activation"""

from datetime import timedelta

import pytest

from stylex.domain.billing import subscription_service
from stylex.domain.billing.errors import ValidationError
from stylex.domain.billing.repository import BillingRepository
from stylex.domain.billing.subscription_service import SubscriptionService, get_transfer_config
from stylex.models import Notification
from stylex.models_billing import Payment


@pytest.fixture
def service(db):
    return SubscriptionService(db)


def add_payment(db, owner, provider_payment_id, paid_at):
    BillingRepository.create_payment(
        db,
        owner_id=owner.id,
        provider="paypal",
        amount=16.67,
        currency="USD",
        provider_payment_id=provider_payment_id,
        metadata=None,
        paid_at=paid_at,
    )
    db.commit()


class TestSummary:
    def test_grace_owner_summary_and_notification(self, service, factory, db, now):
        owner, _shops = factory.owner_with_usage(shops=1, professionals=2)
        factory.subscription(owner, now - timedelta(days=1), now + timedelta(days=4), plan_code="basic_2")

        summary = service.get_summary(owner.id, now=now)

        assert summary["state"]["state"] == "grace"
        assert summary["current_plan"]["code"] == "basic_2"
        assert summary["recommended_plan"]["code"] == "basic_1"
        assert summary["pricing"]["total"] == 1000
        assert summary["usage"]["professional_count"] == 2
        assert db.query(Notification).filter_by(user_id=owner.id).count() == 1

    def test_over_limit_summary(self, service, factory, now):
        owner, _shops = factory.owner_with_usage(shops=4, professionals=20)

        summary = service.get_summary(owner.id, now=now)

        assert summary["recommended_plan"] is None
        assert summary["pricing"]["is_over_limit"] is True
        assert summary["pricing"]["overage"] == {"shops": 1, "professionals": 8}


class TestPaymentListings:
    def test_owner_payments_newest_first(self, service, factory, db, now):
        owner = factory.owner()
        other = factory.owner()
        add_payment(db, owner, "CAP-OLD", now - timedelta(days=30))
        add_payment(db, owner, "CAP-NEW", now)
        add_payment(db, other, "CAP-OTHER", now)

        payments = service.list_owner_payments(owner.id)

        assert [p["provider_payment_id"] for p in payments] == ["CAP-NEW", "CAP-OLD"]

    def test_paging_is_clamped(self, service, factory, db, now):
        owner = factory.owner()
        for i in range(3):
            add_payment(db, owner, f"CAP-{i}", now - timedelta(days=i))

        assert len(service.list_owner_payments(owner.id, limit="0")) == 1
        assert len(service.list_owner_payments(owner.id, limit="2", offset="2")) == 1
        assert len(service.list_owner_payments(owner.id, limit="nope", offset="-1")) == 3

    def test_admin_listing_includes_owner_contact(self, service, factory, db, now):
        owner = factory.owner(name="Ana Rosario")
        add_payment(db, owner, "CAP-1", now)

        payments = service.list_all_payments()

        assert payments[0]["owner_name"] == "Ana Rosario"
        assert payments[0]["owner_email"] == owner.email


class TestAdminActivate:
    def test_renews_without_payment(self, service, factory, db, now):
        owner = factory.owner()
        factory.subscription(owner, now - timedelta(days=20), now - timedelta(days=15))

        result = service.admin_activate(owner.id, admin_id=1, now=now)

        assert result["subscription"]["current_period_end"] == now + timedelta(days=30)
        assert db.query(Payment).count() == 0

    def test_owner_required(self, service):
        with pytest.raises(ValidationError):
            service.admin_activate(None, admin_id=1)


def test_transfer_config(monkeypatch):
    monkeypatch.setattr(subscription_service, "TRANSFER_BANK_NAME", "Banco Popular")
    monkeypatch.setattr(subscription_service, "TRANSFER_ACCOUNT_HOLDER", None)
    monkeypatch.setattr(subscription_service, "TRANSFER_ACCOUNT_NUMBER", " 123-456 ")
    monkeypatch.setattr(subscription_service, "TRANSFER_ACCOUNT_TYPE", "")
    monkeypatch.setattr(subscription_service, "TRANSFER_NOTES", "Línea 1\\nLínea 2")

    config = get_transfer_config()

    assert config["enabled"] is True
    assert config["account_number"] == "123-456"
    assert config["account_holder"] is None
    assert config["notes"] == "Línea 1\nLínea 2"
