"""Shared validation utilities"""

from datetime import datetime, timezone
from typing import Any, Optional

VALID_PLAN_CODES = ("basic_1", "basic_2", "pro", "premium")


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how DateTime columns are stored"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC already"""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Any) -> Optional[datetime]:
    """
    Parse a provider ISO-8601 timestamp ("2024-05-01T10:00:00Z") into naive UTC.

    Returns None for anything that is not a parseable string.
    """
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return to_naive_utc(datetime.fromisoformat(text))
    except ValueError:
        return None


def normalize_plan_code(value: Any) -> Optional[str]:
    """
    Normalize a plan code to its canonical lowercase form.

    Returns None when the value is empty or not one of the known tier codes.
    """
    if value is None:
        return None
    code = str(value).strip().lower()
    if code not in VALID_PLAN_CODES:
        return None
    return code


def normalize_currency(value: Any, default: str) -> str:
    """Uppercase ISO currency code, falling back to `default` when blank"""
    code = str(value or "").strip().upper()
    return code or default


def to_int_or_none(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def clamp_int(value: Any, default: int, minimum: int, maximum: int) -> int:
    """Parse an integer query value and clamp it to [minimum, maximum]"""
    parsed = to_int_or_none(value)
    if parsed is None:
        parsed = default
    return max(minimum, min(maximum, parsed))


def clean_text(value: Any) -> Optional[str]:
    """Strip a free-text value; blank strings become None"""
    if value is None:
        return None
    text = str(value).strip()
    return text or None
