"""
Domain Layer - Cost entities and the calculation services built on them.

This module contains:
- entities/: Immutable domain objects (WBSNode, PurchaseOrder, LaborActual, PerDiemCost)
- services/: WBS generation, labor cost, per diem and forecast calculations
"""

from .entities import (
    BudgetDiscipline,
    WBSNode,
    PurchaseOrder,
    ChangeOrder,
    LaborActual,
    EmployeeLaborActual,
    LaborForecast,
    PerDiemCost,
    ForecastResult,
)

__all__ = [
    'BudgetDiscipline',
    'WBSNode',
    'PurchaseOrder', 'ChangeOrder',
    'LaborActual', 'EmployeeLaborActual', 'LaborForecast',
    'PerDiemCost',
    'ForecastResult',
]
