"""
Domain Services - WBS generation, labor cost, per diem and forecast calculations.
"""

from .wbs_generator import WBSGenerator, validate_wbs_structure, rollup_budget_totals
from .labor_cost_calculator import (
    LaborCostCalculator,
    calculate_labor_wages,
    calculate_composite_rate,
    resolve_burdened_cost,
    summarize_labor_costs,
    summarize_weekly_labor_costs,
)
from .per_diem_calculator import (
    PerDiemCalculator,
    build_per_diem_costs,
    summarize_per_diem,
    aggregate_pay_period,
    aggregate_date_range,
    per_diem_trends,
    validate_per_diem_config,
)
from .forecast_calculation_service import ForecastCalculationService, ProjectForecastService

__all__ = [
    'WBSGenerator',
    'validate_wbs_structure',
    'rollup_budget_totals',
    'LaborCostCalculator',
    'calculate_labor_wages',
    'calculate_composite_rate',
    'resolve_burdened_cost',
    'summarize_labor_costs',
    'summarize_weekly_labor_costs',
    'PerDiemCalculator',
    'build_per_diem_costs',
    'summarize_per_diem',
    'aggregate_pay_period',
    'aggregate_date_range',
    'per_diem_trends',
    'validate_per_diem_config',
    'ForecastCalculationService',
    'ProjectForecastService',
]
