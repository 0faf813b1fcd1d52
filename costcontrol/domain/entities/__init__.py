"""
Domain Entities - Immutable inputs and computed results.
"""

from .values import ZERO, to_decimal, optional_decimal, to_date
from .budget import BudgetDiscipline, BudgetCategory, CategoryBudget
from .wbs import WBSNode, CostType, wbs_path, parent_of
from .commitments import PurchaseOrder, ChangeOrder, ChangeOrderStatus
from .labor import (
    LaborCategory, CraftType, LaborActual, EmployeeLaborActual, LaborForecast,
    LaborWages, CategoryLaborCost, LaborCostSummary, WeeklyLaborCost,
    RateBucket, CompositeRate,
)
from .per_diem import (
    EmployeeType, PerDiemCost, PerDiemConfig, PerDiemSummary, PayPeriodPerDiem,
    DateRangePerDiem, PerDiemTrendPoint, PerDiemRecalculationResult,
    PerDiemValidationResult,
)
from .forecast import (
    POForecastTotals, LaborCostTotals, ForecastBreakdown, ForecastResult,
    CategoryForecast, ForecastMethod, ThresholdForecast, ProjectVariance, ProjectForecast,
)

__all__ = [
    'ZERO', 'to_decimal', 'optional_decimal', 'to_date',
    'BudgetDiscipline', 'BudgetCategory', 'CategoryBudget',
    'WBSNode', 'CostType', 'wbs_path', 'parent_of',
    'PurchaseOrder', 'ChangeOrder', 'ChangeOrderStatus',
    'LaborCategory', 'CraftType', 'LaborActual', 'EmployeeLaborActual', 'LaborForecast',
    'LaborWages', 'CategoryLaborCost', 'LaborCostSummary', 'WeeklyLaborCost',
    'RateBucket', 'CompositeRate',
    'EmployeeType', 'PerDiemCost', 'PerDiemConfig', 'PerDiemSummary', 'PayPeriodPerDiem',
    'DateRangePerDiem', 'PerDiemTrendPoint', 'PerDiemRecalculationResult',
    'PerDiemValidationResult',
    'POForecastTotals', 'LaborCostTotals', 'ForecastBreakdown', 'ForecastResult',
    'CategoryForecast', 'ForecastMethod', 'ThresholdForecast', 'ProjectVariance', 'ProjectForecast',
]
