"""Usage counter - live shop and professional counts for an owner"""

from sqlalchemy.orm import Session

from .repository import BillingRepository


def compute_owner_usage_counts(db: Session, owner_id: int) -> dict:
    """
    Count an owner's non-deleted shops and the professionals working at them.

    Professionals are barber-role users assigned to one of those shops, plus
    one when the owner is assigned at one of their own shops.
    """
    repo = BillingRepository()

    shop_ids = repo.list_active_shop_ids(db, owner_id)
    barbers_count = repo.count_barbers_at_shops(db, shop_ids)
    owner_counts = repo.is_owner_also_staff(db, owner_id)

    return {
        "shop_count": len(shop_ids),
        "professional_count": barbers_count + (1 if owner_counts else 0),
        "barbers_count": barbers_count,
        "owner_counts_as_professional": owner_counts,
    }
