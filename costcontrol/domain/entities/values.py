"""
Value helpers shared by the entities.

Monetary amounts and hours are carried as Decimal. Missing numbers are
coalesced to zero before any arithmetic.
"""
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

ZERO = Decimal("0")


def to_decimal(value: Any) -> Decimal:
    """
    Coerce a raw numeric value to Decimal.

    None, empty strings, NaN and unparseable values become 0.
    """
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        return value if value.is_finite() else ZERO
    try:
        result = Decimal(str(value).strip().replace(",", "").replace("$", ""))
    except (InvalidOperation, ValueError):
        return ZERO
    return result if result.is_finite() else ZERO


def optional_decimal(value: Any) -> Optional[Decimal]:
    """Like to_decimal, but keeps "absent" distinguishable from zero."""
    if value is None or value == "":
        return None
    if isinstance(value, float) and value != value:  # NaN from pandas
        return None
    return to_decimal(value)


def to_date(value: Any) -> Optional[date]:
    """Parse ISO dates, datetimes and date strings; None stays None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip()[:10])
