"""
Comanda - Shared Helpers
=========================
Pure utility functions with NO database or module dependencies.
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional
from zoneinfo import ZoneInfo

from config.settings import BUSINESS_TIMEZONE, CURRENCY_SYMBOL

_CENTS = Decimal("0.01")


def now_utc() -> datetime:
    """Returns current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


def now_business() -> datetime:
    """Current business-local wall time as a naive datetime (stored as-is)."""
    return to_business(now_utc())


def to_business(value: datetime) -> datetime:
    """Convert an aware datetime to naive business-local time."""
    if value.tzinfo is None:
        return value
    return value.astimezone(ZoneInfo(BUSINESS_TIMEZONE)).replace(tzinfo=None)


def safe_int(value: Optional[str]) -> Optional[int]:
    """Safely convert a string to int. Returns None on failure."""
    if value is None:
        return None
    try:
        return int(str(value).strip())
    except (ValueError, TypeError):
        return None


def parse_money(value) -> Optional[Decimal]:
    """
    Parse a non-negative amount with at most 2 decimal places.
    Returns None when the value is not a valid amount.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        d = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not d.is_finite() or d < 0:
        return None
    if d.as_tuple().exponent < -2 and d != d.quantize(_CENTS):
        return None
    return d.quantize(_CENTS)


def money(value) -> Decimal:
    """Round any numeric value to cents."""
    return Decimal(str(value or 0)).quantize(_CENTS, rounding=ROUND_HALF_UP)


def format_quetzal(value) -> str:
    """Format an amount as 'Q1,234.50'."""
    if value is None:
        value = 0
    try:
        return f"{CURRENCY_SYMBOL}{money(value):,.2f}"
    except (InvalidOperation, ValueError, TypeError):
        return str(value)
