"""
Aggregation helpers shared by the calculators.

- Ordered-precedence fallback for optional amounts
- Grouping into fixed labor buckets with a default-bucket policy
- Week anchoring for weekly series
"""
from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal
from typing import Callable, Dict, Hashable, Iterable, Optional, TypeVar

from ..entities import ZERO, LaborCategory

R = TypeVar('R')


def first_present(*candidates: Optional[Decimal]) -> Optional[Decimal]:
    """
    Return the first candidate that counts as present.

    None and 0 are both missing, so an order whose forecast_amount is 0
    falls through to the next field.

    Returns:
        The first present value, or None if all are missing
    """
    for value in candidates:
        if value is None or value == 0:
            continue
        return value
    return None


def sum_amounts(records: Iterable[R], value: Callable[[R], Optional[Decimal]]) -> Decimal:
    """Sum `value(record)` over records, nulls counting as zero."""
    total = ZERO
    for record in records:
        amount = value(record)
        if amount is not None:
            total += amount
    return total


def group_sum(
    records: Iterable[R],
    key: Callable[[R], Hashable],
    value: Callable[[R], Optional[Decimal]],
) -> Dict[Hashable, Decimal]:
    """
    Sum values per key, preserving first-seen key order.

    Args:
        records: Input rows
        key: Grouping key for a row
        value: Amount for a row (None counts as zero)

    Returns:
        Dict of key -> summed amount
    """
    totals: Dict[Hashable, Decimal] = defaultdict(lambda: ZERO)
    for record in records:
        amount = value(record)
        totals[key(record)] += amount if amount is not None else ZERO
    return dict(totals)


def labor_buckets() -> Dict[LaborCategory, Decimal]:
    """Zeroed direct/indirect/staff buckets, always all three."""
    return {category: ZERO for category in LaborCategory}


def group_by_labor_category(
    records: Iterable[R],
    category: Callable[[R], object],
    value: Callable[[R], Optional[Decimal]],
    default: LaborCategory = LaborCategory.DIRECT,
) -> Dict[LaborCategory, Decimal]:
    """
    Sum values into direct/indirect/staff buckets.

    Rows whose category is missing or not recognised land in `default`.
    All three buckets are present in the result even when empty.
    """
    buckets = labor_buckets()
    grouped = group_sum(records, lambda r: LaborCategory.parse(category(r), default), value)
    buckets.update(grouped)
    return buckets


def _js_weekday(day: date) -> int:
    """Day of week with Sunday = 0 ... Saturday = 6."""
    return (day.weekday() + 1) % 7


def week_ending_sunday(day: date) -> date:
    """The Sunday that ends the week containing `day` (a Sunday maps to itself)."""
    return day + timedelta(days=(7 - _js_weekday(day)) % 7)


def week_start_monday(day: date) -> date:
    """
    Monday anchor for weekly trend keys: day - weekday + 1 with Sunday = 0.

    Sunday work therefore keys to the following Monday.
    """
    return day - timedelta(days=_js_weekday(day)) + timedelta(days=1)


def month_key(day: date) -> str:
    """YYYY-MM period key."""
    return f"{day.year:04d}-{day.month:02d}"
