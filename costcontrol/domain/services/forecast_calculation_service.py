"""
Forecast Calculation Service - Estimate at Completion and category forecasts.

Every view that shows a forecast goes through this service so the same
rules apply everywhere:
- PO forecast precedence: forecasted_final_cost, then forecast_amount,
  then committed_amount (zero or missing falls through), floored at invoiced
- Burdened labor cost is the actual cost whenever it is present
- Future labor rate: running average, then craft default, then fallback rate
- EAC = (PO invoiced + labor actuals) + (remaining commitments + future labor)
"""
import logging
from decimal import Decimal
from datetime import date
from typing import Dict, Iterable, Mapping, Optional, Sequence, Union

from sqlalchemy.orm import Session

from costcontrol.config import EngineConfig, get_config
from costcontrol.infrastructure.repositories import LaborRepository, ProjectRepository
from ..entities import (
    ZERO,
    CategoryForecast,
    ChangeOrder,
    CraftType,
    ForecastBreakdown,
    ForecastMethod,
    ForecastResult,
    LaborActual,
    LaborCategory,
    LaborCostTotals,
    LaborForecast,
    POForecastTotals,
    ProjectForecast,
    ProjectVariance,
    PurchaseOrder,
    ThresholdForecast,
    to_decimal,
)
from ..exceptions import ProjectNotFoundError
from .aggregation import first_present, group_by_labor_category, sum_amounts

logger = logging.getLogger(__name__)

LABOR_CATEGORY_NAME = 'LABOR'

CraftTypes = Union[Mapping[str, CraftType], Iterable[CraftType], None]


def _craft_type_map(craft_types: CraftTypes, actuals: Iterable[LaborActual] = ()) -> Dict[str, CraftType]:
    """Craft types by id; those attached to actuals fill any gaps."""
    by_id: Dict[str, CraftType] = {}
    for actual in actuals:
        if actual.craft_type is not None:
            by_id.setdefault(actual.craft_type.id, actual.craft_type)
    if isinstance(craft_types, Mapping):
        by_id.update(craft_types)
    elif craft_types:
        by_id.update({craft.id: craft for craft in craft_types})
    return by_id


def labor_actual_cost(actual: LaborActual) -> Decimal:
    """Burdened cost, else unburdened cost, else zero."""
    return first_present(actual.actual_cost_with_burden, actual.actual_cost) or ZERO


class ForecastCalculationService:
    """
    Stateless forecast calculations.

    Holds only the engine configuration; every method is a pure function
    of its arguments.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or get_config()

    # =========================================================================
    # Purchase orders
    # =========================================================================

    def calculate_po_forecast(self, po: PurchaseOrder) -> Decimal:
        """
        Forecasted final cost of one purchase order.

        A manually entered forecasted_final_cost wins even when it is below
        the committed amount, as long as it clears what was invoiced.
        """
        forecast = first_present(po.forecasted_final_cost, po.forecast_amount) or po.committed
        return max(forecast, po.invoiced)

    def calculate_total_po_forecast(self, purchase_orders: Sequence[PurchaseOrder]) -> POForecastTotals:
        committed = sum_amounts(purchase_orders, lambda po: po.committed_amount)
        invoiced = sum_amounts(purchase_orders, lambda po: po.invoiced_amount)
        forecasted = sum_amounts(purchase_orders, self.calculate_po_forecast)
        return POForecastTotals(
            committed=committed,
            invoiced=invoiced,
            forecasted=forecasted,
            remaining_commitments=max(ZERO, committed - invoiced),
        )

    # =========================================================================
    # Labor
    # =========================================================================

    def calculate_labor_rates_by_craft(self, labor_actuals: Iterable[LaborActual]) -> Dict[str, Decimal]:
        """
        Running average cost per hour for each craft type.

        Only rows with a craft type and hours > 0 count. Crafts without
        hours are absent from the result rather than mapped to zero.
        """
        totals: Dict[str, list] = {}
        for actual in labor_actuals:
            hours = actual.actual_hours or ZERO
            if actual.craft_type_id is None or hours <= 0:
                continue
            bucket = totals.setdefault(actual.craft_type_id, [ZERO, ZERO])
            bucket[0] += labor_actual_cost(actual)
            bucket[1] += hours

        return {craft_id: cost / hours for craft_id, (cost, hours) in totals.items() if hours > 0}

    def calculate_future_labor_cost(
        self,
        labor_forecasts: Iterable[LaborForecast],
        running_average_rates: Mapping[str, Decimal],
        craft_types: CraftTypes = None,
    ) -> LaborCostTotals:
        """
        Cost of the planned headcount.

        Args:
            labor_forecasts: Headcount plan rows
            running_average_rates: Rates from calculate_labor_rates_by_craft()
            craft_types: Craft types (mapping by id or iterable) for default
                rates and categories

        Returns:
            LaborCostTotals with direct/indirect/staff always present
        """
        crafts = _craft_type_map(craft_types)
        default_category = LaborCategory.parse(self.config.default_labor_category)

        def weekly_cost(forecast: LaborForecast) -> Decimal:
            craft = crafts.get(forecast.craft_type)
            rate = first_present(
                running_average_rates.get(forecast.craft_type),
                craft.default_rate if craft else None,
            ) or self.config.fallback_labor_rate
            hours = first_present(forecast.weekly_hours) or self.config.forecast_weekly_hours
            return hours * forecast.forecasted_headcount * rate

        forecasts = list(labor_forecasts)
        by_category = group_by_labor_category(
            forecasts,
            lambda f: crafts[f.craft_type].category if f.craft_type in crafts else None,
            weekly_cost,
            default=default_category,
        )
        return LaborCostTotals(total=sum(by_category.values(), ZERO), by_category=by_category)

    def calculate_total_labor_actuals(self, labor_actuals: Iterable[LaborActual]) -> LaborCostTotals:
        """Actual labor cost (burdened where available) by craft category."""
        by_category = group_by_labor_category(
            labor_actuals,
            lambda a: a.craft_type.category if a.craft_type else None,
            labor_actual_cost,
        )
        return LaborCostTotals(total=sum(by_category.values(), ZERO), by_category=by_category)

    # =========================================================================
    # Estimate at Completion
    # =========================================================================

    def calculate_project_eac(
        self,
        purchase_orders: Sequence[PurchaseOrder],
        labor_actuals: Sequence[LaborActual],
        labor_forecasts: Sequence[LaborForecast],
        craft_types: CraftTypes = None,
    ) -> ForecastResult:
        """
        Project Estimate at Completion.

        Args:
            purchase_orders: All project purchase orders
            labor_actuals: Craft-level labor actuals to date
            labor_forecasts: Headcount plan for the remaining weeks
            craft_types: Craft types for default rates and categories;
                craft types attached to the actuals are used as well

        Returns:
            ForecastResult with actual cost to date, ETC, EAC and breakdown
        """
        po_totals = self.calculate_total_po_forecast(purchase_orders)
        labor_totals = self.calculate_total_labor_actuals(labor_actuals)
        rates = self.calculate_labor_rates_by_craft(labor_actuals)
        future = self.calculate_future_labor_cost(
            labor_forecasts, rates, _craft_type_map(craft_types, labor_actuals)
        )

        actual_cost_to_date = po_totals.invoiced + labor_totals.total
        estimate_to_complete = po_totals.remaining_commitments + future.total

        logger.debug(
            "EAC: actuals %s + ETC %s (%d POs, %d labor actuals, %d forecast rows)",
            actual_cost_to_date, estimate_to_complete,
            len(purchase_orders), len(labor_actuals), len(labor_forecasts),
        )
        return ForecastResult(
            actual_cost_to_date=actual_cost_to_date,
            estimate_to_complete=estimate_to_complete,
            estimate_at_completion=actual_cost_to_date + estimate_to_complete,
            breakdown=ForecastBreakdown(
                po_actuals=po_totals.invoiced,
                po_remaining=po_totals.remaining_commitments,
                po_forecasted=po_totals.forecasted,
                labor_actuals=labor_totals.total,
                labor_future=future.total,
            ),
        )

    def calculate_category_forecast(
        self,
        category_name: str,
        budget: Decimal,
        purchase_orders: Sequence[PurchaseOrder],
        labor_actuals: Optional[Sequence[LaborActual]] = None,
        labor_forecasts: Optional[Sequence[LaborForecast]] = None,
        labor_category: Optional[LaborCategory] = None,
        craft_types: CraftTypes = None,
    ) -> CategoryForecast:
        """
        Budget vs. forecast for one budget category.

        'LABOR' with both labor lists uses actuals plus future labor (labor
        is committed as it is spent). Otherwise purchase orders drive the
        numbers, and with no purchase orders the forecast is the budget.
        The forecast never drops below actuals.

        Args:
            category_name: Budget category name ('LABOR' selects the labor branch)
            budget: Category budget
            purchase_orders: POs filed under the category
            labor_actuals: Labor actuals (labor branch)
            labor_forecasts: Headcount plan (labor branch)
            labor_category: Restrict labor numbers to one labor category
            craft_types: Craft types for future labor rates

        Returns:
            CategoryForecast (variance positive when under budget)
        """
        committed = actuals = ZERO
        forecasted_final = budget

        if category_name == LABOR_CATEGORY_NAME and labor_actuals is not None and labor_forecasts is not None:
            labor_totals = self.calculate_total_labor_actuals(labor_actuals)
            rates = self.calculate_labor_rates_by_craft(labor_actuals)
            future = self.calculate_future_labor_cost(
                labor_forecasts, rates, _craft_type_map(craft_types, labor_actuals)
            )
            if labor_category:
                actuals = labor_totals.for_category(labor_category)
                future_cost = future.for_category(labor_category)
            else:
                actuals = labor_totals.total
                future_cost = future.total
            committed = actuals
            forecasted_final = actuals + future_cost
        elif purchase_orders:
            po_totals = self.calculate_total_po_forecast(purchase_orders)
            committed = po_totals.committed
            actuals = po_totals.invoiced
            forecasted_final = po_totals.forecasted

        forecasted_final = max(forecasted_final, actuals)
        return CategoryForecast(
            category_name=category_name,
            budget=budget,
            committed=committed,
            actuals=actuals,
            forecasted_final=forecasted_final,
            variance=budget - forecasted_final,
        )

    # =========================================================================
    # Contract-level policy
    # =========================================================================

    def calculate_revised_contract(
        self,
        original_contract: Decimal,
        change_orders: Iterable[ChangeOrder],
    ) -> Decimal:
        """Original contract plus approved change orders."""
        return original_contract + sum_amounts(
            (co for co in change_orders if co.is_approved), lambda co: co.amount
        )

    def calculate_threshold_forecast(
        self,
        revised_contract: Decimal,
        labor_actual_cost: Decimal,
        purchase_orders: Sequence[PurchaseOrder],
        base_margin_percentage: Optional[Decimal] = None,
    ) -> ThresholdForecast:
        """
        Forecasted final cost switched on how much of the contract is committed.

        Below the spend threshold the committed figures are too thin to
        trust, so the forecast is the revised contract less the base margin.
        From the threshold on, it is the committed cost. Either way it is
        floored at the costs already incurred.

        Args:
            revised_contract: Contract value including approved change orders
            labor_actual_cost: Labor cost to date
            purchase_orders: All project purchase orders
            base_margin_percentage: Planned margin (config default when None)

        Returns:
            ThresholdForecast
        """
        margin = (
            self.config.default_base_margin_percentage
            if base_margin_percentage is None else base_margin_percentage
        )
        po_committed = sum_amounts(
            purchase_orders, lambda po: first_present(po.committed_amount, po.total_amount)
        )
        po_invoiced = sum_amounts(purchase_orders, lambda po: po.invoiced_amount)

        total_committed = labor_actual_cost + po_committed
        current_costs = labor_actual_cost + po_invoiced
        spend_percentage = total_committed / revised_contract * 100 if revised_contract > 0 else ZERO

        if spend_percentage < self.config.spend_threshold * 100:
            method = ForecastMethod.MARGIN_BASED
            forecast = revised_contract * (1 - margin / 100)
        else:
            method = ForecastMethod.COMMITTED_BASED
            forecast = total_committed

        return ThresholdForecast(
            revised_contract=revised_contract,
            total_committed=total_committed,
            current_costs=current_costs,
            spend_percentage=spend_percentage,
            method=method,
            forecasted_final_cost=max(forecast, current_costs),
        )

    def calculate_variance_at_completion(
        self,
        contract_value: Decimal,
        estimate_at_completion: Decimal,
    ) -> ProjectVariance:
        return ProjectVariance(contract_value=contract_value, estimate_at_completion=estimate_at_completion)


class ProjectForecastService:
    """
    Project forecast assembled from stored records.

    Reads purchase orders, change orders, craft actuals and the headcount
    plan, then runs them through ForecastCalculationService.
    """

    def __init__(self, session: Session, config: Optional[EngineConfig] = None):
        self.config = config or get_config()
        self.calculator = ForecastCalculationService(self.config)
        self.projects = ProjectRepository(session)
        self.labor = LaborRepository(session)

    def calculate_project_forecast(self, project_id: str, as_of: Optional[date] = None) -> ProjectForecast:
        """
        EAC, threshold forecast and VAC for a project.

        Args:
            project_id: Project identifier
            as_of: Headcount weeks ending after this date are future labor;
                defaults to the latest week with actuals

        Raises:
            ProjectNotFoundError: if the project does not exist

        Returns:
            ProjectForecast
        """
        project = self.projects.get_by_id(project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)

        purchase_orders = self.projects.get_purchase_orders(project_id)
        change_orders = self.projects.get_change_orders(project_id)
        actuals = self.labor.get_craft_actuals(project_id)
        if as_of is None:
            weeks = [a.week_ending for a in actuals if a.week_ending is not None]
            as_of = max(weeks) if weeks else None
        forecasts = self.labor.get_headcount_forecasts(
            project_id, self.config.headcount_weekly_hours, after=as_of
        )
        craft_types = self.labor.get_craft_types()

        eac = self.calculator.calculate_project_eac(purchase_orders, actuals, forecasts, craft_types)
        revised_contract = self.calculator.calculate_revised_contract(
            to_decimal(project.original_contract), change_orders
        )
        threshold = self.calculator.calculate_threshold_forecast(
            revised_contract,
            eac.breakdown.labor_actuals,
            purchase_orders,
            self.projects.get_base_margin_percentage(project_id),
        )
        logger.info(
            "Forecast for project %s: EAC %s, %s forecast %s",
            project_id, eac.estimate_at_completion, threshold.method.value,
            threshold.forecasted_final_cost,
        )
        return ProjectForecast(
            project_id=project_id,
            eac=eac,
            threshold=threshold,
            variance=self.calculator.calculate_variance_at_completion(
                revised_contract, eac.estimate_at_completion
            ),
        )
