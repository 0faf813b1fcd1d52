"""
Labor Entities - Craft types, weekly actuals, headcount forecasts and the
labor cost summaries built from them.
"""
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Dict, Optional, Tuple

from .values import ZERO, optional_decimal, to_date, to_decimal


class LaborCategory(Enum):
    """Labor classification driving rate defaults and cost buckets."""
    DIRECT = "direct"
    INDIRECT = "indirect"
    STAFF = "staff"

    @classmethod
    def parse(cls, value, default: "LaborCategory" = None) -> "LaborCategory":
        """Case-insensitive lookup; missing or unknown values go to `default`."""
        if isinstance(value, cls):
            return value
        default = default or cls.DIRECT
        if not value:
            return default
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return default


@dataclass(frozen=True)
class CraftType:
    """Craft type lookup row: id, default hourly rate and category."""

    id: str
    default_rate: Optional[Decimal] = None
    category: LaborCategory = LaborCategory.DIRECT
    name: str = ""
    code: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> 'CraftType':
        return cls(
            id=str(data['id']),
            default_rate=optional_decimal(data.get('default_rate')),
            category=LaborCategory.parse(data.get('category')),
            name=str(data.get('name') or ''),
            code=str(data.get('code') or ''),
        )


@dataclass(frozen=True)
class LaborActual:
    """
    Weekly labor actual for one craft type.

    `actual_cost_with_burden` is the canonical cost whenever present.
    """

    week_ending: Optional[date] = None
    actual_hours: Optional[Decimal] = None
    actual_cost: Optional[Decimal] = None
    actual_cost_with_burden: Optional[Decimal] = None
    burden_amount: Optional[Decimal] = None
    craft_type: Optional[CraftType] = None

    @property
    def craft_type_id(self) -> Optional[str]:
        return self.craft_type.id if self.craft_type else None

    @classmethod
    def from_dict(cls, data: dict, craft_types: Dict[str, CraftType] = None) -> 'LaborActual':
        craft_id = data.get('craft_type_id') or data.get('craft_type')
        craft = None
        if craft_id not in (None, ''):
            craft = (craft_types or {}).get(str(craft_id)) or CraftType(
                id=str(craft_id), category=LaborCategory.parse(data.get('category'))
            )
        return cls(
            week_ending=to_date(data.get('week_ending')),
            actual_hours=optional_decimal(data.get('actual_hours')),
            actual_cost=optional_decimal(data.get('actual_cost')),
            actual_cost_with_burden=optional_decimal(data.get('actual_cost_with_burden')),
            burden_amount=optional_decimal(data.get('burden_amount')),
            craft_type=craft,
        )


@dataclass(frozen=True)
class EmployeeLaborActual:
    """
    One employee's labor for one week.

    Attributes:
        employee_id: Employee identifier
        week_ending: Week ending date (Sunday)
        category: Raw employee category ('Direct', 'Indirect', 'Staff' or None)
        st_hours / ot_hours: Straight-time and overtime hours
        st_wages / ot_wages: Straight-time and overtime wages
        total_hours: Total hours worked
        total_cost: Unburdened cost
        total_cost_with_burden: Burdened cost; never below total_cost
    """

    employee_id: str
    week_ending: date
    category: Optional[str] = None
    st_hours: Decimal = ZERO
    ot_hours: Decimal = ZERO
    st_wages: Decimal = ZERO
    ot_wages: Decimal = ZERO
    total_hours: Decimal = ZERO
    total_cost: Decimal = ZERO
    total_cost_with_burden: Optional[Decimal] = None
    pay_period_ending: Optional[date] = None
    division_id: Optional[str] = None
    project_id: Optional[str] = None
    id: Optional[str] = None

    def __post_init__(self):
        if self.total_cost_with_burden is not None and self.total_cost_with_burden < self.total_cost:
            raise ValueError("total_cost_with_burden cannot be less than total_cost")

    @property
    def worked_hours(self) -> Decimal:
        return self.st_hours + self.ot_hours


@dataclass(frozen=True)
class LaborForecast:
    """Planned headcount for one craft type and week."""

    craft_type: str
    forecasted_headcount: Decimal = ZERO
    weekly_hours: Optional[Decimal] = None
    week_ending: Optional[date] = None

    def __post_init__(self):
        if self.forecasted_headcount < 0:
            raise ValueError("Forecasted headcount cannot be negative")

    @classmethod
    def from_dict(cls, data: dict) -> 'LaborForecast':
        return cls(
            craft_type=str(data.get('craft_type_id') or data.get('craft_type')),
            forecasted_headcount=to_decimal(data.get('forecasted_headcount', data.get('headcount'))),
            weekly_hours=optional_decimal(data.get('weekly_hours')),
            week_ending=to_date(data.get('week_ending')),
        )


@dataclass(frozen=True)
class LaborWages:
    """Wage build-up for one timecard line."""

    st_wages: Decimal
    ot_wages: Decimal
    burden: Decimal
    total_cost: Decimal


# =============================================================================
# Summaries
# =============================================================================

@dataclass(frozen=True)
class CategoryLaborCost:
    """Labor and per diem totals for one labor category."""

    hours: Decimal = ZERO
    labor_cost: Decimal = ZERO
    per_diem: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.labor_cost + self.per_diem


@dataclass(frozen=True)
class LaborCostSummary:
    """
    Project labor cost including per diem.

    total_labor_cost is wages plus burden; total_cost adds per diem.
    """

    total_hours: Decimal = ZERO
    total_labor_cost: Decimal = ZERO
    total_per_diem: Decimal = ZERO
    breakdown: Dict[LaborCategory, CategoryLaborCost] = field(default_factory=dict)

    @property
    def total_cost(self) -> Decimal:
        return self.total_labor_cost + self.total_per_diem

    def category(self, category: LaborCategory) -> CategoryLaborCost:
        return self.breakdown.get(category, CategoryLaborCost())


@dataclass(frozen=True)
class WeeklyLaborCost:
    """Labor and per diem for one week ending date."""

    week_ending: date
    total_hours: Decimal = ZERO
    direct_labor_cost: Decimal = ZERO
    indirect_labor_cost: Decimal = ZERO
    staff_labor_cost: Decimal = ZERO
    direct_per_diem: Decimal = ZERO
    indirect_per_diem: Decimal = ZERO

    @property
    def total_labor_cost(self) -> Decimal:
        return self.direct_labor_cost + self.indirect_labor_cost + self.staff_labor_cost

    @property
    def total_per_diem(self) -> Decimal:
        return self.direct_per_diem + self.indirect_per_diem

    @property
    def total_cost(self) -> Decimal:
        return self.total_labor_cost + self.total_per_diem


@dataclass(frozen=True)
class RateBucket:
    """Hours, cost and the resulting rate for one slice of actuals."""

    hours: Decimal = ZERO
    cost: Decimal = ZERO

    @property
    def rate(self) -> Decimal:
        return self.cost / self.hours if self.hours > 0 else ZERO


@dataclass(frozen=True)
class CompositeRate:
    """Composite (blended) labor rate over a trailing window."""

    overall: RateBucket
    recent: RateBucket
    start_date: date
    end_date: date
    by_category: Dict[LaborCategory, RateBucket] = field(default_factory=dict)
    weekly: Tuple[Tuple[date, RateBucket], ...] = ()

    @property
    def weeks_of_data(self) -> int:
        return len(self.weekly)
