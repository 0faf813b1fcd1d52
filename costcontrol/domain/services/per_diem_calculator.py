"""
Per Diem Calculator - Builds, summarizes and validates per diem charges.

Per diem is a flat allowance per employee per week worked. Direct
employees get the project's direct rate; everyone else (Indirect, Staff,
unknown) gets the indirect rate. Amounts are always rate x days.
"""
import logging
from collections import OrderedDict
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from costcontrol.config import EngineConfig, get_config
from costcontrol.infrastructure.repositories import (
    LaborRepository,
    PerDiemRepository,
    ProjectRepository,
    safe_fetch,
)
from ..entities import (
    ZERO,
    DateRangePerDiem,
    EmployeeLaborActual,
    EmployeeType,
    PayPeriodPerDiem,
    PerDiemConfig,
    PerDiemCost,
    PerDiemRecalculationResult,
    PerDiemSummary,
    PerDiemTrendPoint,
    PerDiemValidationResult,
)
from ..exceptions import ValidationError
from .aggregation import month_key, week_start_monday

logger = logging.getLogger(__name__)

TREND_GROUPINGS = ('week', 'month')

DISABLED_MESSAGE = "Per diem not enabled or rates are zero"


# =============================================================================
# Pure building blocks
# =============================================================================

def build_per_diem_costs(
    actuals: Iterable[EmployeeLaborActual],
    per_diem_config: PerDiemConfig,
    days_per_week: Decimal,
    project_id: Optional[str] = None,
) -> List[PerDiemCost]:
    """
    One per diem row per employee and week worked.

    Rows without straight-time or overtime hours are ignored; several
    rows for the same employee and week collapse into one charge tied to
    the last of them. Employees whose rate is zero get no row.

    Args:
        actuals: Employee weekly actuals
        per_diem_config: Project per diem settings
        days_per_week: Days charged per week worked
        project_id: Project stamped on the rows

    Returns:
        Per diem costs in first-seen order
    """
    worked: Dict[Tuple[str, date], EmployeeLaborActual] = OrderedDict()
    for actual in actuals:
        if actual.worked_hours <= 0:
            continue
        key = (actual.employee_id, actual.week_ending)
        worked[key] = actual

    costs = []
    for (employee_id, week_ending), actual in worked.items():
        employee_type = EmployeeType.for_employee_category(actual.category)
        rate = per_diem_config.rate_for(employee_type)
        if rate == 0:
            continue
        costs.append(PerDiemCost(
            employee_id=employee_id,
            work_date=week_ending,
            employee_type=employee_type,
            rate_applied=rate,
            days_worked=days_per_week,
            project_id=project_id or actual.project_id,
            labor_actual_id=actual.id,
            pay_period_ending=actual.pay_period_ending,
        ))
    return costs


def _split(costs: Iterable[PerDiemCost]) -> Tuple[Decimal, Decimal]:
    direct = indirect = ZERO
    for cost in costs:
        if cost.is_direct:
            direct += cost.amount
        else:
            indirect += cost.amount
    return direct, indirect


def summarize_per_diem(
    project_id: str,
    project_name: str,
    per_diem_config: PerDiemConfig,
    costs: Sequence[PerDiemCost],
) -> PerDiemSummary:
    """Project totals: distinct employees and days, direct/indirect split, date span."""
    direct, indirect = _split(costs)
    dates = [cost.work_date for cost in costs]
    return PerDiemSummary(
        project_id=project_id,
        project_name=project_name,
        per_diem_enabled=per_diem_config.per_diem_enabled,
        per_diem_rate_direct=per_diem_config.per_diem_rate_direct,
        per_diem_rate_indirect=per_diem_config.per_diem_rate_indirect,
        unique_employees=len({cost.employee_id for cost in costs}),
        days_with_per_diem=len(set(dates)),
        total_direct_per_diem=direct,
        total_indirect_per_diem=indirect,
        first_per_diem_date=min(dates) if dates else None,
        last_per_diem_date=max(dates) if dates else None,
    )


def aggregate_pay_period(costs: Sequence[PerDiemCost]) -> PayPeriodPerDiem:
    direct, indirect = _split(costs)
    return PayPeriodPerDiem(
        direct=direct,
        indirect=indirect,
        total=direct + indirect,
        employee_count=len({cost.employee_id for cost in costs}),
        details=tuple(costs),
    )


def aggregate_date_range(costs: Sequence[PerDiemCost]) -> DateRangePerDiem:
    direct, indirect = _split(costs)
    return DateRangePerDiem(
        total_amount=direct + indirect,
        direct_amount=direct,
        indirect_amount=indirect,
        days_count=len({cost.work_date for cost in costs}),
        employees_count=len({cost.employee_id for cost in costs}),
    )


def per_diem_trends(costs: Iterable[PerDiemCost], group_by: str = 'week') -> List[PerDiemTrendPoint]:
    """
    Per diem series by week or month.

    Weekly periods are keyed by the Monday anchor of the work date
    (ISO date string); monthly periods by 'YYYY-MM'.

    Raises:
        ValidationError: if group_by is not 'week' or 'month'
    """
    if group_by not in TREND_GROUPINGS:
        raise ValidationError('group_by', f"must be one of {', '.join(TREND_GROUPINGS)}")

    periods: Dict[str, dict] = {}
    for cost in costs:
        if group_by == 'week':
            period = week_start_monday(cost.work_date).isoformat()
        else:
            period = month_key(cost.work_date)
        bucket = periods.setdefault(
            period, {'direct': ZERO, 'indirect': ZERO, 'employees': set()}
        )
        bucket['direct' if cost.is_direct else 'indirect'] += cost.amount
        bucket['employees'].add(cost.employee_id)

    return [
        PerDiemTrendPoint(
            period=period,
            direct_amount=bucket['direct'],
            indirect_amount=bucket['indirect'],
            total_amount=bucket['direct'] + bucket['indirect'],
            employee_count=len(bucket['employees']),
        )
        for period, bucket in sorted(periods.items())
    ]


def validate_per_diem_config(
    per_diem_config: Optional[PerDiemConfig],
    rate_warning_ceiling: Decimal,
) -> PerDiemValidationResult:
    """
    Sanity-check per diem settings.

    Only a missing configuration is an error; odd settings are warnings.
    """
    if per_diem_config is None:
        return PerDiemValidationResult(
            is_valid=False, errors=("Failed to fetch project configuration",)
        )

    warnings = []
    if not per_diem_config.per_diem_enabled:
        warnings.append("Per diem is not enabled for this project")
    if per_diem_config.per_diem_rate_direct == 0 and per_diem_config.per_diem_rate_indirect == 0:
        warnings.append("Both direct and indirect per diem rates are set to zero")
    if per_diem_config.per_diem_rate_direct > rate_warning_ceiling:
        warnings.append(
            f"Direct per diem rate (${per_diem_config.per_diem_rate_direct}) seems unusually high"
        )
    if per_diem_config.per_diem_rate_indirect > rate_warning_ceiling:
        warnings.append(
            f"Indirect per diem rate (${per_diem_config.per_diem_rate_indirect}) seems unusually high"
        )
    return PerDiemValidationResult(is_valid=True, warnings=tuple(warnings))


# =============================================================================
# Repository-backed calculator
# =============================================================================

class PerDiemCalculator:
    """
    Per diem operations against the store.

    Reads that fail are logged and come back empty (or None where the
    operation returns a single object).
    """

    def __init__(self, session: Session, config: Optional[EngineConfig] = None):
        self.session = session
        self.config = config or get_config()
        self.projects = ProjectRepository(session)
        self.labor = LaborRepository(session)
        self.costs = PerDiemRepository(session)

    def _fetch(self, description: str, query, default=None):
        return safe_fetch(self.session, description, query, default)

    def get_project_per_diem_summary(self, project_id: str) -> Optional[PerDiemSummary]:
        """
        Per diem summary for a project with per diem enabled.

        Returns:
            PerDiemSummary, or None if the project is missing, has per diem
            disabled, or could not be read
        """
        project = self._fetch("project", lambda: self.projects.get_by_id(project_id))
        if project is None or not project.per_diem_enabled:
            return None
        per_diem_config = self.projects.get_per_diem_config(project_id)
        costs = self._fetch("per diem costs", lambda: self.costs.get_costs(project_id))
        if costs is None:
            return None
        return summarize_per_diem(project_id, project.name or "", per_diem_config, costs)

    def get_project_per_diem_costs(
        self,
        project_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        employee_id: Optional[str] = None,
        employee_type: Optional[EmployeeType] = None,
    ) -> List[PerDiemCost]:
        """Filtered per diem rows, newest first; [] when the read fails."""
        return self._fetch(
            "per diem costs",
            lambda: self.costs.get_costs(
                project_id,
                start_date=start_date,
                end_date=end_date,
                employee_id=employee_id,
                employee_type=employee_type,
            ),
            [],
        )

    def recalculate_project_per_diem(self, project_id: str) -> Optional[PerDiemRecalculationResult]:
        """
        Rebuild a project's per diem rows from its labor actuals.

        Existing rows are deleted first, so running this twice leaves the
        same rows. When per diem is off (or both rates are zero) nothing is
        touched and the result says so.

        Returns:
            PerDiemRecalculationResult, or None if the project is missing
            or the rebuild failed (rolled back)
        """
        try:
            per_diem_config = self.projects.get_per_diem_config(project_id)
            if per_diem_config is None:
                logger.error("Cannot recalculate per diem: project %s not found", project_id)
                return None

            now = datetime.now(timezone.utc)
            if not per_diem_config.per_diem_enabled or (
                per_diem_config.per_diem_rate_direct == 0 and per_diem_config.per_diem_rate_indirect == 0
            ):
                return PerDiemRecalculationResult(
                    project_id=project_id,
                    records_processed=0,
                    total_per_diem_amount=ZERO,
                    recalculated_at=now,
                    message=DISABLED_MESSAGE,
                )

            actuals = self.labor.get_employee_actuals(project_id)
            costs = build_per_diem_costs(
                actuals, per_diem_config, self.config.per_diem_days_per_week, project_id
            )
            written = self.costs.replace_for_project(project_id, costs)
            self.costs.commit()
        except SQLAlchemyError:
            logger.exception("Error recalculating per diem for project %s", project_id)
            self.costs.rollback()
            return None

        total = sum((cost.amount for cost in costs), ZERO)
        logger.info("Recalculated per diem for project %s: %d rows, %s", project_id, written, total)
        return PerDiemRecalculationResult(
            project_id=project_id,
            records_processed=written,
            total_per_diem_amount=total,
            recalculated_at=now,
        )

    def get_per_diem_by_pay_period(self, project_id: str, pay_period_ending: date) -> PayPeriodPerDiem:
        costs = self._fetch(
            "per diem by pay period",
            lambda: self.costs.get_costs(project_id, pay_period_ending=pay_period_ending),
            [],
        )
        return aggregate_pay_period(costs)

    def calculate_per_diem_for_date_range(
        self,
        project_id: str,
        start_date: date,
        end_date: date,
    ) -> DateRangePerDiem:
        costs = self.get_project_per_diem_costs(project_id, start_date=start_date, end_date=end_date)
        return aggregate_date_range(costs)

    def validate_project_per_diem_config(self, project_id: str) -> PerDiemValidationResult:
        per_diem_config = self._fetch(
            "project per diem configuration",
            lambda: self.projects.get_per_diem_config(project_id),
        )
        return validate_per_diem_config(per_diem_config, self.config.per_diem_rate_warning_ceiling)

    def get_per_diem_trends(self, project_id: str, group_by: str = 'week') -> List[PerDiemTrendPoint]:
        """Weekly or monthly per diem series for charts."""
        return per_diem_trends(self.get_project_per_diem_costs(project_id), group_by)
