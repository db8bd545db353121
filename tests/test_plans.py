"""Tests for usage-based tier selection and plan-id mapping"""

import pytest

from stylex.domain.billing import plans
from stylex.domain.billing.plans import (
    compute_monthly_price,
    get_paypal_plan_id,
    get_plan_code_for_paypal_plan_id,
    get_tier_for_code,
    select_tier_for_usage,
)


class TestSelectTier:
    @pytest.mark.parametrize(
        "shops,pros,expected",
        [
            (0, 0, "basic_1"),
            (1, 2, "basic_1"),
            (1, 3, "basic_2"),
            (2, 1, "pro"),
            (2, 5, "pro"),
            (1, 4, "pro"),
            (2, 6, "pro"),
            (3, 0, "premium"),
            (2, 7, "premium"),
            (3, 12, "premium"),
        ],
    )
    def test_smallest_fitting_tier(self, shops, pros, expected):
        result = select_tier_for_usage(shops, pros)
        assert result["tier"]["code"] == expected
        assert result["is_over_limit"] is False

    def test_over_limit_reports_overage(self):
        result = select_tier_for_usage(4, 20)
        assert result["tier"] is None
        assert result["is_over_limit"] is True
        assert result["overage"] == {"shops": 1, "professionals": 8}

    def test_over_limit_on_one_dimension_only(self):
        result = select_tier_for_usage(1, 13)
        assert result["is_over_limit"] is True
        assert result["overage"] == {"shops": 0, "professionals": 1}

    def test_negative_and_garbage_inputs_count_as_zero(self):
        result = select_tier_for_usage(-3, "abc")
        assert result["normalized"] == {"shop_count": 0, "professional_count": 0}
        assert result["tier"]["code"] == "basic_1"


class TestComputeMonthlyPrice:
    def test_one_shop_two_professionals(self):
        pricing = compute_monthly_price({"shop_count": 1, "professional_count": 2})
        assert pricing["tier"]["code"] == "basic_1"
        assert pricing["total"] == 1000
        assert pricing["is_over_limit"] is False

    def test_two_shops_five_professionals_skips_basic_2(self):
        pricing = compute_monthly_price({"shop_count": 2, "professional_count": 5})
        assert pricing["tier"]["code"] == "pro"
        assert pricing["total"] == 2000

    def test_over_limit_has_no_total(self):
        pricing = compute_monthly_price({"shop_count": 4, "professional_count": 20})
        assert pricing["total"] is None
        assert pricing["tier"] is None
        assert pricing["is_over_limit"] is True
        assert pricing["overage"] == {"shops": 1, "professionals": 8}

    def test_price_is_in_base_currency(self):
        pricing = compute_monthly_price({"shop_count": 1, "professional_count": 1})
        assert pricing["currency"] == plans.BILLING_BASE_CURRENCY


class TestPlanLookup:
    def test_tier_for_code_is_case_insensitive(self):
        assert get_tier_for_code(" PRO ")["name"] == "Pro"

    def test_unknown_code(self):
        assert get_tier_for_code("gold") is None
        assert get_tier_for_code(None) is None

    def test_paypal_plan_id_mapping_round_trip(self, monkeypatch):
        monkeypatch.setitem(plans.PAYPAL_PLAN_IDS, "pro", "P-PRO-123")
        assert get_paypal_plan_id("pro") == "P-PRO-123"
        assert get_plan_code_for_paypal_plan_id("P-PRO-123") == "pro"

    def test_unconfigured_plan_id(self, monkeypatch):
        monkeypatch.setitem(plans.PAYPAL_PLAN_IDS, "premium", None)
        assert get_paypal_plan_id("premium") is None
        assert get_plan_code_for_paypal_plan_id("") is None
        assert get_plan_code_for_paypal_plan_id("P-UNKNOWN") is None
