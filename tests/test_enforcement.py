"""Tests for the enforcement gate used by booking and management writes"""

from datetime import timedelta

import pytest

from stylex.domain.billing.enforcement import enforce_owner_subscription, enforce_shop_subscription
from stylex.domain.billing.errors import (
    ConflictError,
    NotFoundError,
    PaymentRequiredError,
    ValidationError,
)
from stylex.models import Notification
from stylex.models_billing import Subscription


class TestEnforceShopSubscription:
    def test_unknown_shop(self, db, now):
        with pytest.raises(NotFoundError) as exc_info:
            enforce_shop_subscription(db, 999, now=now)
        assert exc_info.value.status_code == 404

    def test_deleted_shop_is_not_found(self, db, factory, now):
        shop = factory.shop(factory.owner(), deleted=True)
        with pytest.raises(NotFoundError):
            enforce_shop_subscription(db, shop.id, now=now)

    def test_shop_without_owner(self, db, factory, now):
        shop = factory.shop(None)
        with pytest.raises(ConflictError) as exc_info:
            enforce_shop_subscription(db, shop.id, now=now)
        assert exc_info.value.status_code == 409

    def test_first_use_creates_active_subscription(self, db, factory, now):
        owner = factory.owner()
        shop = factory.shop(owner)

        result = enforce_shop_subscription(db, shop.id, now=now)

        assert result["owner_id"] == owner.id
        assert result["state"]["is_active"] is True
        assert db.query(Subscription).filter_by(owner_id=owner.id).count() == 1

    def test_grace_period_allows_booking_and_notifies_once(self, db, factory, now):
        owner = factory.owner()
        shop = factory.shop(owner)
        factory.subscription(owner, now - timedelta(days=1), now + timedelta(days=4))

        first = enforce_shop_subscription(db, shop.id, now=now)
        db.commit()
        second = enforce_shop_subscription(db, shop.id, now=now + timedelta(hours=2))
        db.commit()

        assert first["state"]["is_in_grace"] is True
        assert second["state"]["is_in_grace"] is True
        assert db.query(Notification).filter_by(user_id=owner.id).count() == 1

    def test_blocked_owner_raises_payment_required(self, db, factory, now):
        owner = factory.owner()
        shop = factory.shop(owner)
        period_end = now - timedelta(days=10)
        grace_end = now - timedelta(days=5)
        factory.subscription(owner, period_end, grace_end)

        with pytest.raises(PaymentRequiredError) as exc_info:
            enforce_shop_subscription(db, shop.id, now=now)

        error = exc_info.value
        assert error.status_code == 402
        assert error.owner_id == owner.id
        assert error.details == {
            "ownerId": owner.id,
            "periodEnd": period_end.isoformat(),
            "graceEnd": grace_end.isoformat(),
        }
        assert grace_end.date().isoformat() in error.message


class TestEnforceOwnerSubscription:
    def test_owner_id_required(self, db, now):
        with pytest.raises(ValidationError):
            enforce_owner_subscription(db, None, now=now)

    def test_active_owner_passes(self, db, factory, now):
        owner = factory.owner()
        factory.subscription(owner, now + timedelta(days=3), now + timedelta(days=8))

        result = enforce_owner_subscription(db, owner.id, now=now)

        assert result["subscription"].owner_id == owner.id
        assert result["state"]["is_active"] is True

    def test_string_owner_id_is_accepted(self, db, factory, now):
        owner = factory.owner()
        result = enforce_owner_subscription(db, str(owner.id), now=now)
        assert result["owner_id"] == owner.id

    def test_blocked_owner(self, db, factory, now):
        owner = factory.owner()
        factory.subscription(owner, now - timedelta(days=6), now - timedelta(seconds=1))

        with pytest.raises(PaymentRequiredError) as exc_info:
            enforce_owner_subscription(db, owner.id, now=now)
        assert exc_info.value.to_dict()["error_code"] == "SUBSCRIPTION_REQUIRED"
