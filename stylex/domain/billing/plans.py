"""
Pricing tiers and usage-based tier selection.

Tiers are ordered by ascending limits; an owner lands on the first tier whose
shop and professional limits both accommodate current usage.
"""

from typing import Optional

from ...config import BILLING_BASE_CURRENCY, PAYPAL_PLAN_IDS
from ...shared.validators import normalize_plan_code

# Monthly prices are expressed in BILLING_BASE_CURRENCY
PLAN_TIERS = [
    {"code": "basic_1", "name": "Básico 1", "price": 1000, "limits": {"shops": 1, "professionals": 2}},
    {"code": "basic_2", "name": "Básico 2", "price": 1500, "limits": {"shops": 1, "professionals": 3}},
    {"code": "pro", "name": "Pro", "price": 2000, "limits": {"shops": 2, "professionals": 6}},
    {"code": "premium", "name": "Premium", "price": 2500, "limits": {"shops": 3, "professionals": 12}},
]

MAX_TIER = PLAN_TIERS[-1]


def _non_negative(value) -> int:
    try:
        return max(0, int(value or 0))
    except (TypeError, ValueError):
        return 0


def get_tier_for_code(plan_code: Optional[str]) -> Optional[dict]:
    """Look up a tier by code; unknown or empty codes return None"""
    code = normalize_plan_code(plan_code)
    if not code:
        return None
    return next((t for t in PLAN_TIERS if t["code"] == code), None)


def fits_tier(tier: dict, shop_count: int, professional_count: int) -> bool:
    limits = tier["limits"]
    return shop_count <= limits["shops"] and professional_count <= limits["professionals"]


def select_tier_for_usage(shop_count, professional_count) -> dict:
    """
    Pick the smallest tier that accommodates both usage dimensions.

    Returns {"tier", "is_over_limit", "overage", "normalized"}; `tier` is None
    only when usage exceeds the largest tier.
    """
    shops = _non_negative(shop_count)
    pros = _non_negative(professional_count)

    tier = next((t for t in PLAN_TIERS if fits_tier(t, shops, pros)), None)

    over_shops = max(0, shops - MAX_TIER["limits"]["shops"])
    over_pros = max(0, pros - MAX_TIER["limits"]["professionals"])

    return {
        "tier": tier,
        "is_over_limit": tier is None,
        "overage": {"shops": over_shops, "professionals": over_pros},
        "normalized": {"shop_count": shops, "professional_count": pros},
    }


def compute_monthly_price(usage: dict) -> dict:
    """Price an owner's usage snapshot against the tier table"""
    selection = select_tier_for_usage(usage.get("shop_count"), usage.get("professional_count"))
    tier = selection["tier"]

    if tier is None:
        return {
            "currency": BILLING_BASE_CURRENCY,
            "tier": None,
            "total": None,
            "is_over_limit": True,
            "overage": selection["overage"],
        }

    return {
        "currency": BILLING_BASE_CURRENCY,
        "tier": dict(tier),
        "total": tier["price"],
        "is_over_limit": False,
        "overage": selection["overage"],
    }


def get_paypal_plan_id(plan_code: Optional[str]) -> Optional[str]:
    """Provider plan id configured for a tier code, or None"""
    code = normalize_plan_code(plan_code)
    if not code:
        return None
    plan_id = (PAYPAL_PLAN_IDS.get(code) or "").strip()
    return plan_id or None


def get_plan_code_for_paypal_plan_id(paypal_plan_id: Optional[str]) -> Optional[str]:
    """Reverse mapping from a provider plan id back to the local tier code"""
    pid = (paypal_plan_id or "").strip()
    if not pid:
        return None
    for code, configured in PAYPAL_PLAN_IDS.items():
        if (configured or "").strip() == pid:
            return code
    return None
