"""Tests for the manual bank-transfer rail"""

from datetime import timedelta

import pytest

from stylex.domain.billing.entitlement import GRACE_PERIOD
from stylex.domain.billing.errors import ConflictError, NotFoundError, ValidationError
from stylex.domain.billing.manual_service import ManualPaymentService
from stylex.domain.billing.repository import BillingRepository
from stylex.models_billing import ManualPaymentReport, Payment, Subscription


@pytest.fixture
def service(db):
    return ManualPaymentService(db)


class TestSubmitReport:
    def test_submit_flags_pending_verification(self, service, factory, db):
        owner = factory.owner()

        report = service.submit_report(owner.id, 1500, None, "Transferencia 0042", None)

        assert report["status"] == "pending"
        assert report["currency"] == "DOP"
        assert report["reference_text"] == "Transferencia 0042"
        subscription = db.query(Subscription).filter_by(owner_id=owner.id).one()
        assert subscription.status == "pending_verification"

    def test_pending_verification_does_not_change_access(self, service, factory, db, now):
        owner = factory.owner()
        period_end = now + timedelta(days=3)
        factory.subscription(owner, period_end, period_end + GRACE_PERIOD)

        service.submit_report(owner.id, 1500, "dop", None, "https://files.example/proof.jpg")

        subscription = db.query(Subscription).filter_by(owner_id=owner.id).one()
        assert subscription.current_period_end == period_end

    def test_reference_or_proof_required(self, service, factory, db):
        owner = factory.owner()
        with pytest.raises(ValidationError):
            service.submit_report(owner.id, 1500, "DOP", None, None)
        assert db.query(ManualPaymentReport).count() == 0

    def test_owner_required(self, service):
        with pytest.raises(ValidationError):
            service.submit_report(None, 1500, "DOP", "ref", None)


class TestListReports:
    def test_filters_by_status_newest_first(self, service, factory):
        owner = factory.owner(name="Carlos Peña")
        first = service.submit_report(owner.id, 1000, "DOP", "ref-1", None)
        second = service.submit_report(owner.id, 1500, "DOP", "ref-2", None)
        admin = factory.admin()
        service.reject_report(first["id"], admin.id)

        pending = service.list_reports("PENDING")
        everything = service.list_reports()

        assert [r["id"] for r in pending] == [second["id"]]
        assert pending[0]["owner_name"] == "Carlos Peña"
        assert {r["id"] for r in everything} == {first["id"], second["id"]}


class TestDecisions:
    def test_approve_renews_and_records_payment(self, service, factory, db, now):
        owner = factory.owner()
        admin = factory.admin()
        factory.subscription(owner, now - timedelta(days=7), now - timedelta(days=2))
        report = service.submit_report(owner.id, 1500, "DOP", "ref-9", None)

        result = service.approve_report(report["id"], admin.id, now=now)

        assert result["report"]["status"] == "approved"
        assert result["report"]["approved_by"] == admin.id
        subscription = db.query(Subscription).filter_by(owner_id=owner.id).one()
        assert subscription.status == "active"
        assert subscription.current_period_end == now + timedelta(days=30)
        assert subscription.grace_period_end == now + timedelta(days=35)

        payment = db.query(Payment).one()
        assert payment.provider == "manual"
        assert payment.provider_payment_id is None
        assert payment.amount == pytest.approx(1500)
        assert payment.currency == "DOP"
        assert payment.paid_at == now
        assert payment.payment_metadata["reportId"] == report["id"]
        assert payment.payment_metadata["approvedBy"] == admin.id

    def test_ledger_failure_rolls_back_approval(self, service, factory, db, now, monkeypatch):
        owner = factory.owner()
        admin = factory.admin()
        factory.subscription(owner, now - timedelta(days=7), now - timedelta(days=2))
        report = service.submit_report(owner.id, 1500, "DOP", "ref-9", None)

        def failing_create_payment(*args, **kwargs):
            raise RuntimeError("ledger insert failed")

        monkeypatch.setattr(BillingRepository, "create_payment", staticmethod(failing_create_payment))

        with pytest.raises(RuntimeError):
            service.approve_report(report["id"], admin.id, now=now)

        subscription = db.query(Subscription).filter_by(owner_id=owner.id).one()
        assert subscription.current_period_end == now - timedelta(days=7)
        assert db.query(ManualPaymentReport).filter_by(id=report["id"]).one().status == "pending"
        assert db.query(Payment).count() == 0

    def test_second_decision_conflicts(self, service, factory, db, now):
        owner = factory.owner()
        admin = factory.admin()
        report = service.submit_report(owner.id, 1500, "DOP", "ref", None)
        service.approve_report(report["id"], admin.id, now=now)
        period_end = db.query(Subscription).filter_by(owner_id=owner.id).one().current_period_end

        with pytest.raises(ConflictError) as exc_info:
            service.approve_report(report["id"], admin.id, now=now)
        with pytest.raises(ConflictError):
            service.reject_report(report["id"], admin.id, now=now)

        assert exc_info.value.status_code == 409
        assert db.query(Payment).count() == 1
        assert db.query(Subscription).filter_by(owner_id=owner.id).one().current_period_end == period_end

    def test_reject_leaves_subscription_alone(self, service, factory, db, now):
        owner = factory.owner()
        admin = factory.admin()
        report = service.submit_report(owner.id, 1500, "DOP", "ref", None)
        before = db.query(Subscription).filter_by(owner_id=owner.id).one().current_period_end

        result = service.reject_report(report["id"], admin.id, now=now)

        assert result["report"]["status"] == "rejected"
        assert result["report"]["rejected_by"] == admin.id
        assert db.query(Payment).count() == 0
        assert db.query(Subscription).filter_by(owner_id=owner.id).one().current_period_end == before

    def test_unknown_report(self, service):
        with pytest.raises(NotFoundError):
            service.approve_report(12345, 1)
        with pytest.raises(NotFoundError):
            service.reject_report(12345, 1)
