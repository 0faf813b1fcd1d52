"""
Unit Tests for per diem calculation.

Tests business rules:
- One charge per employee and week worked, amount = rate x days
- Direct employees get the direct rate; everyone else the indirect rate
- Recalculation replaces rows (running it twice changes nothing)
- Disabled or zero-rate projects are left untouched
"""
import pytest
from datetime import date
from decimal import Decimal

from costcontrol.domain.entities import EmployeeLaborActual, EmployeeType, PerDiemConfig, PerDiemCost
from costcontrol.domain.exceptions import ValidationError
from costcontrol.domain.services import (
    PerDiemCalculator,
    aggregate_date_range,
    aggregate_pay_period,
    build_per_diem_costs,
    per_diem_trends,
    summarize_per_diem,
    validate_per_diem_config,
)
from costcontrol.domain.services.per_diem_calculator import DISABLED_MESSAGE
from costcontrol.infrastructure.repositories import PerDiemRepository
from costcontrol.models import Employee, EmployeeLaborActualEntity, PerDiemCostEntity, Project


def D(value):
    return Decimal(str(value))


@pytest.fixture
def per_diem_config():
    return PerDiemConfig(
        per_diem_enabled=True, per_diem_rate_direct=D(150), per_diem_rate_indirect=D(100),
    )


@pytest.fixture
def actuals():
    return [
        EmployeeLaborActual(
            id="a1", employee_id="e1", week_ending=date(2024, 1, 7), category="Direct",
            st_hours=D(40), pay_period_ending=date(2024, 1, 14),
        ),
        # Same employee and week from a second division
        EmployeeLaborActual(
            id="a2", employee_id="e1", week_ending=date(2024, 1, 7), category="Direct",
            st_hours=D(10), pay_period_ending=date(2024, 1, 14),
        ),
        EmployeeLaborActual(
            id="a3", employee_id="e2", week_ending=date(2024, 1, 7), category="Staff", st_hours=D(40),
        ),
        EmployeeLaborActual(
            id="a4", employee_id="e3", week_ending=date(2024, 1, 7), category="Indirect",
        ),
        EmployeeLaborActual(
            id="a5", employee_id="e4", week_ending=date(2024, 1, 14), category=None, ot_hours=D(8),
        ),
    ]


def cost(employee_id, work_date, employee_type, rate, days=5, pay_period_ending=None):
    return PerDiemCost(
        employee_id=employee_id, work_date=work_date, employee_type=employee_type,
        rate_applied=D(rate), days_worked=D(days), pay_period_ending=pay_period_ending,
    )


@pytest.fixture
def costs():
    return [
        cost("e1", date(2024, 1, 7), EmployeeType.DIRECT, 150),
        cost("e2", date(2024, 1, 3), EmployeeType.INDIRECT, 100),
        cost("e1", date(2024, 2, 4), EmployeeType.DIRECT, 150, days=2),
    ]


# =============================================================================
# Building charges
# =============================================================================

class TestBuildPerDiemCosts:
    """Tests for turning labor actuals into per diem charges."""

    def test_one_row_per_employee_week(self, actuals, per_diem_config):
        rows = build_per_diem_costs(actuals, per_diem_config, D(5), "proj-1")
        assert [(r.employee_id, r.work_date) for r in rows] == [
            ("e1", date(2024, 1, 7)),
            ("e2", date(2024, 1, 7)),
            ("e4", date(2024, 1, 14)),
        ]

    def test_collapsed_rows_tie_to_last_actual(self, actuals, per_diem_config):
        first = build_per_diem_costs(actuals, per_diem_config, D(5))[0]
        assert first.labor_actual_id == "a2"
        assert first.pay_period_ending == date(2024, 1, 14)

    def test_rates_by_employee_type(self, actuals, per_diem_config):
        rows = build_per_diem_costs(actuals, per_diem_config, D(5), "proj-1")
        assert rows[0].employee_type is EmployeeType.DIRECT
        assert rows[0].amount == D(750)
        # Staff and unknown categories are charged the indirect rate
        assert rows[1].employee_type is EmployeeType.INDIRECT
        assert rows[2].employee_type is EmployeeType.INDIRECT
        assert rows[2].amount == D(500)
        assert all(r.project_id == "proj-1" for r in rows)

    def test_zero_rate_skips_employee(self, actuals):
        config = PerDiemConfig(per_diem_enabled=True, per_diem_rate_direct=D(0), per_diem_rate_indirect=D(80))
        rows = build_per_diem_costs(actuals, config, D(5))
        assert "e1" not in {r.employee_id for r in rows}
        assert len(rows) == 2

    def test_amount_is_rate_times_days(self):
        assert cost("e1", date(2024, 1, 7), EmployeeType.DIRECT, 150).amount == D(750)


class TestEmployeeType:
    """Tests for the per diem bucket of an employee category."""

    @pytest.mark.parametrize("category,expected", [
        ("Direct", EmployeeType.DIRECT),
        ("direct", EmployeeType.DIRECT),
        ("Indirect", EmployeeType.INDIRECT),
        ("Staff", EmployeeType.INDIRECT),
        (None, EmployeeType.INDIRECT),
    ])
    def test_for_employee_category(self, category, expected):
        assert EmployeeType.for_employee_category(category) is expected


# =============================================================================
# Aggregates
# =============================================================================

class TestAggregates:
    """Tests for summaries, pay periods, date ranges and trends."""

    def test_summary(self, costs, per_diem_config):
        summary = summarize_per_diem("proj-1", "Refinery Turnaround", per_diem_config, costs)
        assert summary.unique_employees == 2
        assert summary.days_with_per_diem == 3
        assert summary.total_direct_per_diem == D(1050)
        assert summary.total_indirect_per_diem == D(500)
        assert summary.total_per_diem_amount == D(1550)
        assert summary.first_per_diem_date == date(2024, 1, 3)
        assert summary.last_per_diem_date == date(2024, 2, 4)

    def test_empty_summary(self, per_diem_config):
        summary = summarize_per_diem("proj-1", "Empty", per_diem_config, [])
        assert summary.total_per_diem_amount == D(0)
        assert summary.first_per_diem_date is None

    def test_pay_period(self, costs):
        period = aggregate_pay_period(costs[:2])
        assert period.direct == D(750)
        assert period.indirect == D(500)
        assert period.total == D(1250)
        assert period.employee_count == 2
        assert len(period.details) == 2

    def test_date_range(self, costs):
        result = aggregate_date_range(costs)
        assert result.total_amount == D(1550)
        assert result.days_count == 3
        assert result.employees_count == 2

    def test_weekly_trends_use_monday_anchor(self, costs):
        points = per_diem_trends(costs, 'week')
        # Wednesday 1/3 -> Monday 1/1; Sundays 1/7 and 2/4 -> the following Monday
        assert [p.period for p in points] == ["2024-01-01", "2024-01-08", "2024-02-05"]
        assert points[0].indirect_amount == D(500)
        assert points[1].direct_amount == D(750)

    def test_monthly_trends(self, costs):
        points = per_diem_trends(costs, 'month')
        assert [p.period for p in points] == ["2024-01", "2024-02"]
        assert points[0].total_amount == D(1250)
        assert points[0].employee_count == 2
        assert points[1].total_amount == D(300)

    def test_invalid_grouping(self, costs):
        with pytest.raises(ValidationError) as exc_info:
            per_diem_trends(costs, 'day')
        assert exc_info.value.field == 'group_by'


class TestValidatePerDiemConfig:
    """Tests for per diem configuration checks."""

    def test_missing_configuration_is_invalid(self):
        result = validate_per_diem_config(None, D(500))
        assert not result.is_valid
        assert result.errors == ("Failed to fetch project configuration",)

    def test_valid_configuration(self, per_diem_config):
        result = validate_per_diem_config(per_diem_config, D(500))
        assert result.is_valid
        assert result.warnings == ()

    def test_disabled_and_zero_rates_only_warn(self):
        result = validate_per_diem_config(PerDiemConfig(), D(500))
        assert result.is_valid
        assert result.warnings == (
            "Per diem is not enabled for this project",
            "Both direct and indirect per diem rates are set to zero",
        )

    def test_high_rates_warn(self):
        config = PerDiemConfig(per_diem_enabled=True, per_diem_rate_direct=D(600), per_diem_rate_indirect=D(501))
        result = validate_per_diem_config(config, D(500))
        assert result.is_valid
        assert result.warnings == (
            "Direct per diem rate ($600) seems unusually high",
            "Indirect per diem rate ($501) seems unusually high",
        )


# =============================================================================
# Repository-backed calculator
# =============================================================================

@pytest.fixture
def labor_rows(db_session, project):
    db_session.add_all([
        Employee(id="emp1", name="A. Fitter", category="Direct"),
        Employee(id="emp2", name="B. Super", category="Indirect"),
    ])
    db_session.add_all([
        EmployeeLaborActualEntity(
            id="la1", project_id=project.id, employee_id="emp1", week_ending=date(2024, 1, 7),
            pay_period_ending=date(2024, 1, 14), st_hours=40, total_hours=40,
        ),
        EmployeeLaborActualEntity(
            id="la2", project_id=project.id, employee_id="emp2", week_ending=date(2024, 1, 7),
            pay_period_ending=date(2024, 1, 14), st_hours=40, total_hours=40,
        ),
        EmployeeLaborActualEntity(
            id="la3", project_id=project.id, employee_id="emp1", week_ending=date(2024, 1, 14),
            pay_period_ending=date(2024, 1, 28), st_hours=0, ot_hours=0,
        ),
    ])
    db_session.commit()
    return project


class TestPerDiemCalculator:
    """Tests for the repository-backed per diem calculator."""

    def test_recalculate(self, db_session, labor_rows, config):
        result = PerDiemCalculator(db_session, config).recalculate_project_per_diem(labor_rows.id)
        assert result.records_processed == 2
        assert result.total_per_diem_amount == D(1250)
        assert result.message is None
        assert PerDiemRepository(db_session).count() == 2

    def test_recalculate_twice_leaves_same_rows(self, db_session, labor_rows, config):
        calculator = PerDiemCalculator(db_session, config)
        calculator.recalculate_project_per_diem(labor_rows.id)
        first = [(c.employee_id, c.work_date, c.amount) for c in calculator.get_project_per_diem_costs(labor_rows.id)]
        calculator.recalculate_project_per_diem(labor_rows.id)
        second = [(c.employee_id, c.work_date, c.amount) for c in calculator.get_project_per_diem_costs(labor_rows.id)]
        assert first == second
        assert PerDiemRepository(db_session).count() == 2

    def test_recalculate_replaces_stale_rows(self, db_session, labor_rows, config):
        db_session.add(PerDiemCostEntity(
            project_id=labor_rows.id, employee_id="emp1", work_date=date(2023, 12, 31),
            employee_type="Direct", rate_applied=150, days_worked=5, amount=750,
        ))
        db_session.commit()
        PerDiemCalculator(db_session, config).recalculate_project_per_diem(labor_rows.id)
        assert not PerDiemRepository(db_session).exists(work_date=date(2023, 12, 31))

    def test_recalculate_disabled_project(self, db_session, labor_rows, config):
        labor_rows.per_diem_enabled = False
        db_session.commit()
        result = PerDiemCalculator(db_session, config).recalculate_project_per_diem(labor_rows.id)
        assert result.records_processed == 0
        assert result.total_per_diem_amount == D(0)
        assert result.message == DISABLED_MESSAGE
        assert PerDiemRepository(db_session).count() == 0

    def test_recalculate_zero_rates(self, db_session, config):
        db_session.add(Project(
            id="proj-0", name="No Rates", per_diem_enabled=True,
            per_diem_rate_direct=0, per_diem_rate_indirect=0,
        ))
        db_session.commit()
        result = PerDiemCalculator(db_session, config).recalculate_project_per_diem("proj-0")
        assert result.message == DISABLED_MESSAGE

    def test_recalculate_missing_project(self, db_session, config):
        assert PerDiemCalculator(db_session, config).recalculate_project_per_diem("nope") is None

    def test_summary(self, db_session, labor_rows, config):
        calculator = PerDiemCalculator(db_session, config)
        calculator.recalculate_project_per_diem(labor_rows.id)
        summary = calculator.get_project_per_diem_summary(labor_rows.id)
        assert summary.project_name == "Refinery Turnaround"
        assert summary.unique_employees == 2
        assert summary.total_direct_per_diem == D(750)
        assert summary.total_indirect_per_diem == D(500)

    def test_summary_none_when_disabled_or_missing(self, db_session, labor_rows, config):
        calculator = PerDiemCalculator(db_session, config)
        assert calculator.get_project_per_diem_summary("nope") is None
        labor_rows.per_diem_enabled = False
        db_session.commit()
        assert calculator.get_project_per_diem_summary(labor_rows.id) is None

    def test_filtered_costs(self, db_session, labor_rows, config):
        calculator = PerDiemCalculator(db_session, config)
        calculator.recalculate_project_per_diem(labor_rows.id)
        direct = calculator.get_project_per_diem_costs(labor_rows.id, employee_type=EmployeeType.DIRECT)
        assert [c.employee_id for c in direct] == ["emp1"]
        assert calculator.get_project_per_diem_costs(labor_rows.id, start_date=date(2024, 2, 1)) == []

    def test_pay_period_and_date_range(self, db_session, labor_rows, config):
        calculator = PerDiemCalculator(db_session, config)
        calculator.recalculate_project_per_diem(labor_rows.id)

        period = calculator.get_per_diem_by_pay_period(labor_rows.id, date(2024, 1, 14))
        assert period.total == D(1250)
        assert period.employee_count == 2

        span = calculator.calculate_per_diem_for_date_range(labor_rows.id, date(2024, 1, 1), date(2024, 1, 31))
        assert span.total_amount == D(1250)
        assert span.days_count == 1

    def test_trends(self, db_session, labor_rows, config):
        calculator = PerDiemCalculator(db_session, config)
        calculator.recalculate_project_per_diem(labor_rows.id)
        points = calculator.get_per_diem_trends(labor_rows.id, 'month')
        assert [(p.period, p.total_amount) for p in points] == [("2024-01", D(1250))]

    def test_stored_staff_rows_read_as_indirect(self, db_session, labor_rows, config):
        db_session.add(PerDiemCostEntity(
            project_id=labor_rows.id, employee_id="emp3", work_date=date(2024, 1, 7),
            employee_type="Staff", rate_applied=100, days_worked=5, amount=500,
        ))
        db_session.commit()

        calculator = PerDiemCalculator(db_session, config)
        indirect = calculator.get_project_per_diem_costs(labor_rows.id, employee_type=EmployeeType.INDIRECT)
        assert [c.employee_id for c in indirect] == ["emp3"]
        assert calculator.get_project_per_diem_summary(labor_rows.id).total_indirect_per_diem == D(500)

    def test_validate_project(self, db_session, project, config):
        calculator = PerDiemCalculator(db_session, config)
        assert calculator.validate_project_per_diem_config(project.id).is_valid
        assert not calculator.validate_project_per_diem_config("nope").is_valid
