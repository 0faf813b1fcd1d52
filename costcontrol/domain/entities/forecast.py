"""
Forecast Entities - Results of the EAC/ETC/VAC calculations.

Each result checks its own invariant on construction:
- ForecastResult: EAC = actual cost to date + ETC
- CategoryForecast: forecasted final >= actuals
"""
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Dict

from ..exceptions import InvariantViolationError
from .labor import LaborCategory
from .values import ZERO


@dataclass(frozen=True)
class POForecastTotals:
    """Portfolio totals over a set of purchase orders."""

    committed: Decimal = ZERO
    invoiced: Decimal = ZERO
    forecasted: Decimal = ZERO
    remaining_commitments: Decimal = ZERO


@dataclass(frozen=True)
class LaborCostTotals:
    """Labor cost total with its split by labor category."""

    total: Decimal = ZERO
    by_category: Dict[LaborCategory, Decimal] = field(default_factory=dict)

    def for_category(self, category: LaborCategory) -> Decimal:
        return self.by_category.get(category, ZERO)


@dataclass(frozen=True)
class ForecastBreakdown:
    """Components of an EAC, so callers can reconcile without recomputing."""

    po_actuals: Decimal = ZERO
    po_remaining: Decimal = ZERO
    po_forecasted: Decimal = ZERO
    labor_actuals: Decimal = ZERO
    labor_future: Decimal = ZERO


@dataclass(frozen=True)
class ForecastResult:
    """Project Estimate at Completion."""

    actual_cost_to_date: Decimal
    estimate_to_complete: Decimal
    estimate_at_completion: Decimal
    breakdown: ForecastBreakdown

    def __post_init__(self):
        expected = self.actual_cost_to_date + self.estimate_to_complete
        if self.estimate_at_completion != expected:
            raise InvariantViolationError(
                "eac_additivity", str(expected), str(self.estimate_at_completion)
            )


@dataclass(frozen=True)
class CategoryForecast:
    """
    Budget vs. forecast for one budget category.

    variance is positive when under budget.
    """

    category_name: str
    budget: Decimal
    committed: Decimal
    actuals: Decimal
    forecasted_final: Decimal
    variance: Decimal

    def __post_init__(self):
        if self.forecasted_final < self.actuals:
            raise InvariantViolationError(
                "forecast_floor", f">= {self.actuals}", str(self.forecasted_final)
            )


class ForecastMethod(Enum):
    """Which estimate the spend-threshold policy trusted."""
    MARGIN_BASED = "margin-based"
    COMMITTED_BASED = "committed-based"


@dataclass(frozen=True)
class ThresholdForecast:
    """
    Forecasted final cost chosen by the spend-threshold policy.

    Attributes:
        revised_contract: Original contract plus approved change orders
        total_committed: Labor actuals plus committed PO value
        current_costs: Spent to date (labor actuals plus PO invoiced)
        spend_percentage: total_committed / revised_contract x 100
        method: Which branch produced forecasted_final_cost
        forecasted_final_cost: Never below current_costs
    """

    revised_contract: Decimal
    total_committed: Decimal
    current_costs: Decimal
    spend_percentage: Decimal
    method: ForecastMethod
    forecasted_final_cost: Decimal

    @property
    def remaining_to_spend(self) -> Decimal:
        return self.revised_contract - self.forecasted_final_cost

    @property
    def margin_percentage(self) -> Decimal:
        if self.revised_contract <= 0:
            return ZERO
        return (self.revised_contract - self.forecasted_final_cost) / self.revised_contract * 100


@dataclass(frozen=True)
class ProjectVariance:
    """Variance at Completion: contract value minus EAC."""

    contract_value: Decimal
    estimate_at_completion: Decimal

    @property
    def variance_at_completion(self) -> Decimal:
        return self.contract_value - self.estimate_at_completion

    @property
    def variance_percentage(self) -> Decimal:
        if self.contract_value == 0:
            return ZERO
        return self.variance_at_completion / self.contract_value * 100


@dataclass(frozen=True)
class ProjectForecast:
    """Project-level forecast: EAC, the threshold policy result and VAC."""

    project_id: str
    eac: ForecastResult
    threshold: ThresholdForecast
    variance: ProjectVariance
