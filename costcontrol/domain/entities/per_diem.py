"""
Per Diem Entities - Daily allowance charges, project configuration and
the summaries built from them.
"""
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple

from .values import ZERO, to_decimal


class EmployeeType(Enum):
    """Per diem bucket. Staff employees are charged as Indirect."""
    DIRECT = "Direct"
    INDIRECT = "Indirect"

    @classmethod
    def for_employee_category(cls, category: Optional[str]) -> "EmployeeType":
        """Only 'Direct' employees get the direct rate; everyone else is Indirect."""
        if category and str(category).strip().lower() == "direct":
            return cls.DIRECT
        return cls.INDIRECT


@dataclass(frozen=True)
class PerDiemCost:
    """
    One employee's per diem charge for a work date.

    The amount is always rate_applied x days_worked; it cannot be set
    independently.
    """

    employee_id: str
    work_date: date
    employee_type: EmployeeType
    rate_applied: Decimal
    days_worked: Decimal
    project_id: Optional[str] = None
    labor_actual_id: Optional[str] = None
    pay_period_ending: Optional[date] = None
    id: Optional[str] = None

    @property
    def amount(self) -> Decimal:
        return self.rate_applied * self.days_worked

    @property
    def is_direct(self) -> bool:
        return self.employee_type is EmployeeType.DIRECT


@dataclass(frozen=True)
class PerDiemConfig:
    """Project-level per diem settings."""

    per_diem_enabled: bool = False
    per_diem_rate_direct: Decimal = ZERO
    per_diem_rate_indirect: Decimal = ZERO

    def rate_for(self, employee_type: EmployeeType) -> Decimal:
        if employee_type is EmployeeType.DIRECT:
            return self.per_diem_rate_direct
        return self.per_diem_rate_indirect

    @classmethod
    def from_dict(cls, data: dict) -> 'PerDiemConfig':
        return cls(
            per_diem_enabled=bool(data.get('per_diem_enabled')),
            per_diem_rate_direct=to_decimal(data.get('per_diem_rate_direct')),
            per_diem_rate_indirect=to_decimal(data.get('per_diem_rate_indirect')),
        )


@dataclass(frozen=True)
class PerDiemSummary:
    """Project per diem totals."""

    project_id: str
    project_name: str
    per_diem_enabled: bool
    per_diem_rate_direct: Decimal
    per_diem_rate_indirect: Decimal
    unique_employees: int = 0
    days_with_per_diem: int = 0
    total_direct_per_diem: Decimal = ZERO
    total_indirect_per_diem: Decimal = ZERO
    first_per_diem_date: Optional[date] = None
    last_per_diem_date: Optional[date] = None

    @property
    def total_per_diem_amount(self) -> Decimal:
        return self.total_direct_per_diem + self.total_indirect_per_diem


@dataclass(frozen=True)
class PayPeriodPerDiem:
    """Per diem for a single pay period."""

    direct: Decimal = ZERO
    indirect: Decimal = ZERO
    total: Decimal = ZERO
    employee_count: int = 0
    details: Tuple[PerDiemCost, ...] = ()


@dataclass(frozen=True)
class DateRangePerDiem:
    """Per diem over a date range."""

    total_amount: Decimal = ZERO
    direct_amount: Decimal = ZERO
    indirect_amount: Decimal = ZERO
    days_count: int = 0
    employees_count: int = 0


@dataclass(frozen=True)
class PerDiemTrendPoint:
    """One period of a per diem trend series."""

    period: str
    direct_amount: Decimal = ZERO
    indirect_amount: Decimal = ZERO
    total_amount: Decimal = ZERO
    employee_count: int = 0


@dataclass(frozen=True)
class PerDiemRecalculationResult:
    """Outcome of rebuilding a project's per diem rows."""

    project_id: str
    records_processed: int
    total_per_diem_amount: Decimal
    recalculated_at: datetime
    message: Optional[str] = None


@dataclass(frozen=True)
class PerDiemValidationResult:
    """
    Per diem configuration check.

    Warnings never make the result invalid; only errors do.
    """

    is_valid: bool
    errors: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()
