"""
Labor Cost Calculator - Labor wages, burden and per diem rolled into
direct / indirect / staff totals.

Labor rows are bucketed by the employee's category (unknown -> direct).
Per diem rows are bucketed by employee_type; only Direct and Indirect
exist, so the staff per diem bucket stays at zero.
"""
import logging
from collections import OrderedDict
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy.orm import Session

from costcontrol.config import EngineConfig, get_config
from costcontrol.infrastructure.repositories import LaborRepository, PerDiemRepository, safe_fetch
from ..entities import (
    ZERO,
    CategoryLaborCost,
    CompositeRate,
    EmployeeLaborActual,
    EmployeeType,
    LaborActual,
    LaborCategory,
    LaborCostSummary,
    LaborWages,
    PerDiemCost,
    RateBucket,
    WeeklyLaborCost,
)
from .aggregation import group_by_labor_category, labor_buckets, week_ending_sunday

logger = logging.getLogger(__name__)

_PER_DIEM_BUCKETS = {
    EmployeeType.DIRECT: LaborCategory.DIRECT,
    EmployeeType.INDIRECT: LaborCategory.INDIRECT,
}


# =============================================================================
# Wages and burden
# =============================================================================

def calculate_labor_wages(
    st_hours: Decimal,
    st_rate: Decimal,
    ot_hours: Decimal = ZERO,
    config: Optional[EngineConfig] = None,
) -> LaborWages:
    """
    Build up wages for one timecard line.

    Overtime is paid at the overtime multiplier; burden applies to
    straight-time wages only.

    Example:
        40 ST hours at 50 with 5 OT hours -> 2000 + 375 + 560 = 2935
    """
    config = config or get_config()
    st_wages = st_hours * st_rate
    ot_wages = ot_hours * st_rate * config.overtime_multiplier
    burden = st_wages * config.burden_rate
    return LaborWages(
        st_wages=st_wages,
        ot_wages=ot_wages,
        burden=burden,
        total_cost=st_wages + ot_wages + burden,
    )


def resolve_burdened_cost(actual: EmployeeLaborActual, config: Optional[EngineConfig] = None) -> Decimal:
    """Stored burdened cost, or wages plus straight-time burden when none was stored."""
    if actual.total_cost_with_burden is not None:
        return actual.total_cost_with_burden
    config = config or get_config()
    return actual.st_wages + actual.ot_wages + actual.st_wages * config.burden_rate


# =============================================================================
# Summaries
# =============================================================================

def _per_diem_by_category(per_diem_costs: Iterable[PerDiemCost]) -> Dict[LaborCategory, Decimal]:
    buckets = labor_buckets()
    for cost in per_diem_costs:
        buckets[_PER_DIEM_BUCKETS[cost.employee_type]] += cost.amount
    return buckets


def summarize_labor_costs(
    labor_actuals: Sequence[EmployeeLaborActual],
    per_diem_costs: Sequence[PerDiemCost],
    config: Optional[EngineConfig] = None,
) -> LaborCostSummary:
    """
    Total labor cost and per diem by labor category.

    Args:
        labor_actuals: Employee weekly actuals
        per_diem_costs: Per diem rows for the same scope
        config: Engine configuration (burden rate for rows missing burdened cost)

    Returns:
        LaborCostSummary with all three categories present
    """
    config = config or get_config()
    hours = group_by_labor_category(labor_actuals, lambda a: a.category, lambda a: a.total_hours)
    costs = group_by_labor_category(
        labor_actuals, lambda a: a.category, lambda a: resolve_burdened_cost(a, config)
    )
    per_diem = _per_diem_by_category(per_diem_costs)

    breakdown = {
        category: CategoryLaborCost(
            hours=hours[category],
            labor_cost=costs[category],
            per_diem=per_diem[category],
        )
        for category in LaborCategory
    }
    return LaborCostSummary(
        total_hours=sum(hours.values(), ZERO),
        total_labor_cost=sum(costs.values(), ZERO),
        total_per_diem=sum(per_diem.values(), ZERO),
        breakdown=breakdown,
    )


def summarize_weekly_labor_costs(
    labor_actuals: Sequence[EmployeeLaborActual],
    per_diem_costs: Sequence[PerDiemCost],
    config: Optional[EngineConfig] = None,
) -> List[WeeklyLaborCost]:
    """
    Weekly labor and per diem series.

    Labor is keyed by its week_ending; per diem by the Sunday ending the
    week of its work_date. Weeks with only one kind of cost still appear.

    Returns:
        One row per week ending, ascending
    """
    config = config or get_config()
    weeks: Dict[date, Dict[str, Decimal]] = OrderedDict()

    def week(key: date) -> Dict[str, Decimal]:
        if key not in weeks:
            weeks[key] = {
                'total_hours': ZERO,
                LaborCategory.DIRECT: ZERO,
                LaborCategory.INDIRECT: ZERO,
                LaborCategory.STAFF: ZERO,
                EmployeeType.DIRECT: ZERO,
                EmployeeType.INDIRECT: ZERO,
            }
        return weeks[key]

    for actual in labor_actuals:
        row = week(actual.week_ending)
        row['total_hours'] += actual.total_hours
        row[LaborCategory.parse(actual.category)] += resolve_burdened_cost(actual, config)

    for cost in per_diem_costs:
        week(week_ending_sunday(cost.work_date))[cost.employee_type] += cost.amount

    return [
        WeeklyLaborCost(
            week_ending=week_ending,
            total_hours=row['total_hours'],
            direct_labor_cost=row[LaborCategory.DIRECT],
            indirect_labor_cost=row[LaborCategory.INDIRECT],
            staff_labor_cost=row[LaborCategory.STAFF],
            direct_per_diem=row[EmployeeType.DIRECT],
            indirect_per_diem=row[EmployeeType.INDIRECT],
        )
        for week_ending, row in sorted(weeks.items())
    ]


# =============================================================================
# Composite rate
# =============================================================================

def _craft_actual_cost(actual: LaborActual) -> Decimal:
    if actual.actual_cost_with_burden is not None:
        return actual.actual_cost_with_burden
    return actual.actual_cost or ZERO


def calculate_composite_rate(
    actuals: Iterable[LaborActual],
    as_of: date,
    weeks_back: Optional[int] = None,
    recent_weeks: Optional[int] = None,
    categories: Optional[Iterable[LaborCategory]] = None,
    config: Optional[EngineConfig] = None,
) -> CompositeRate:
    """
    Blended cost per hour over a trailing window of craft actuals.

    Only rows with hours > 0 inside [as_of - weeks_back weeks, as_of]
    count. The recent rate uses the last `recent_weeks` weeks of that
    window.

    Args:
        actuals: Craft-level weekly actuals
        as_of: End of the window
        weeks_back: Window length in weeks (config default 12)
        recent_weeks: Recent-trend length in weeks (config default 4)
        categories: Craft categories to include (all when None)
        config: Engine configuration

    Returns:
        CompositeRate with overall, recent, per-category and weekly rates
    """
    config = config or get_config()
    weeks_back = config.composite_weeks_back if weeks_back is None else weeks_back
    recent_weeks = config.composite_recent_weeks if recent_weeks is None else recent_weeks
    included = frozenset(categories) if categories else frozenset(LaborCategory)

    start = as_of - timedelta(weeks=weeks_back)
    recent_start = as_of - timedelta(weeks=recent_weeks)

    totals = [ZERO, ZERO]
    recent = [ZERO, ZERO]
    by_category = {category: [ZERO, ZERO] for category in LaborCategory}
    weekly: Dict[date, List[Decimal]] = {}

    for actual in actuals:
        hours = actual.actual_hours or ZERO
        if hours <= 0 or actual.week_ending is None:
            continue
        if not start <= actual.week_ending <= as_of:
            continue
        category = actual.craft_type.category if actual.craft_type else LaborCategory.DIRECT
        if category not in included:
            continue

        cost = _craft_actual_cost(actual)
        for bucket in (totals, by_category[category], weekly.setdefault(actual.week_ending, [ZERO, ZERO])):
            bucket[0] += hours
            bucket[1] += cost
        if actual.week_ending >= recent_start:
            recent[0] += hours
            recent[1] += cost

    return CompositeRate(
        overall=RateBucket(*totals),
        recent=RateBucket(*recent),
        start_date=start,
        end_date=as_of,
        by_category={category: RateBucket(*values) for category, values in by_category.items()},
        weekly=tuple((week_ending, RateBucket(*values)) for week_ending, values in sorted(weekly.items())),
    )


# =============================================================================
# Repository-backed calculator
# =============================================================================

class LaborCostCalculator:
    """
    Labor cost totals read straight from the store.

    A failed read is logged and treated as no rows, so a broken per diem
    query still yields labor totals.
    """

    def __init__(self, session: Session, config: Optional[EngineConfig] = None):
        self.session = session
        self.config = config or get_config()
        self.labor = LaborRepository(session)
        self.per_diem = PerDiemRepository(session)
        self._fetch = lambda description, query: safe_fetch(session, description, query, [])

    def calculate_project_labor_costs(
        self,
        project_id: str,
        division_id: Optional[str] = None,
    ) -> LaborCostSummary:
        """
        Project labor and per diem totals, optionally for one division.

        Args:
            project_id: Project identifier
            division_id: Restrict labor and per diem to one division

        Returns:
            LaborCostSummary (zeros when nothing could be read)
        """
        actuals = self._fetch(
            "labor actuals",
            lambda: self.labor.get_employee_actuals(project_id, division_id=division_id),
        )
        per_diem = self._fetch(
            "per diem costs",
            lambda: self.per_diem.get_costs(project_id, division_id=division_id),
        )
        summary = summarize_labor_costs(actuals, per_diem, self.config)
        logger.debug(
            "Labor costs for project %s: %s labor + %s per diem",
            project_id, summary.total_labor_cost, summary.total_per_diem,
        )
        return summary

    def get_weekly_labor_costs(
        self,
        project_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[WeeklyLaborCost]:
        """Weekly labor and per diem between optional inclusive bounds."""
        actuals = self._fetch(
            "weekly labor actuals",
            lambda: self.labor.get_employee_actuals(project_id, start_date=start_date, end_date=end_date),
        )
        per_diem = self._fetch(
            "weekly per diem costs",
            lambda: self.per_diem.get_costs(project_id, start_date=start_date, end_date=end_date),
        )
        return summarize_weekly_labor_costs(actuals, per_diem, self.config)

    def get_composite_rate(
        self,
        project_id: str,
        as_of: date,
        weeks_back: Optional[int] = None,
        categories: Optional[Iterable[LaborCategory]] = None,
    ) -> CompositeRate:
        """Composite rate over the project's craft actuals."""
        actuals = self._fetch("craft labor actuals", lambda: self.labor.get_craft_actuals(project_id))
        return calculate_composite_rate(
            actuals, as_of, weeks_back=weeks_back, categories=categories, config=self.config
        )
