"""Tests for the owner usage counter"""

from stylex.domain.billing.usage import compute_owner_usage_counts


class TestUsageCounts:
    def test_owner_without_shops(self, db, factory):
        owner = factory.owner()
        usage = compute_owner_usage_counts(db, owner.id)
        assert usage["shop_count"] == 0
        assert usage["professional_count"] == 0

    def test_counts_active_shops_and_barbers(self, db, factory):
        owner = factory.owner()
        first = factory.shop(owner)
        second = factory.shop(owner)
        factory.barbers(first, 2)
        factory.barbers(second, 3)

        usage = compute_owner_usage_counts(db, owner.id)

        assert usage["shop_count"] == 2
        assert usage["barbers_count"] == 5
        assert usage["professional_count"] == 5
        assert usage["owner_counts_as_professional"] is False

    def test_deleted_shops_and_staff_are_ignored(self, db, factory):
        owner = factory.owner()
        live = factory.shop(owner)
        gone = factory.shop(owner, deleted=True)
        factory.barbers(live, 1)
        factory.barbers(live, 2, deleted=True)
        factory.barbers(gone, 4)

        usage = compute_owner_usage_counts(db, owner.id)

        assert usage["shop_count"] == 1
        assert usage["professional_count"] == 1

    def test_only_barber_role_counts(self, db, factory):
        owner = factory.owner()
        shop = factory.shop(owner)
        factory.user(role="client", shop=shop)
        factory.user(role="BARBER", shop=shop)

        usage = compute_owner_usage_counts(db, owner.id)

        assert usage["barbers_count"] == 1

    def test_owner_working_at_own_shop_counts_once(self, db, factory):
        owner = factory.owner()
        shop = factory.shop(owner)
        owner.shop_id = shop.id
        db.commit()
        factory.barbers(shop, 1)

        usage = compute_owner_usage_counts(db, owner.id)

        assert usage["owner_counts_as_professional"] is True
        assert usage["professional_count"] == 2

    def test_owner_working_at_someone_elses_shop_does_not_count(self, db, factory):
        owner = factory.owner()
        factory.shop(owner)
        other_shop = factory.shop(factory.owner())
        owner.shop_id = other_shop.id
        db.commit()

        usage = compute_owner_usage_counts(db, owner.id)

        assert usage["owner_counts_as_professional"] is False
        assert usage["professional_count"] == 0
