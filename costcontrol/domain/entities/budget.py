"""
Budget Discipline Entity - One construction discipline's budget.

Produced by the upstream spreadsheet ingestion and consumed by the WBS
generator. Category values are per discipline; the "ALL LABOR" and
"DISCIPLINE TOTALS" rows are aggregates and never become line items.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Dict

from .values import ZERO, to_decimal


class BudgetCategory(Enum):
    """Budget categories carried by a discipline."""
    DIRECT_LABOR = "DIRECT_LABOR"
    INDIRECT_LABOR = "INDIRECT_LABOR"
    MATERIALS = "MATERIALS"
    EQUIPMENT = "EQUIPMENT"
    SUBCONTRACTS = "SUBCONTRACTS"
    ADD_ONS = "ADD_ONS"
    # Add-on detail lines, folded into ADD_ONS
    TAXES = "TAXES"
    PER_DIEM = "PER_DIEM"
    SCAFFOLDING = "SCAFFOLDING"
    RISK = "RISK"

    @classmethod
    def parse(cls, value: str) -> "BudgetCategory":
        """Accept 'DIRECT LABOR', 'direct_labor', 'ADD ONS' and similar."""
        key = str(value).strip().upper().replace("-", "_").replace(" ", "_")
        return cls(key)


ADD_ON_DETAIL = (
    BudgetCategory.TAXES,
    BudgetCategory.PER_DIEM,
    BudgetCategory.SCAFFOLDING,
    BudgetCategory.RISK,
)

AGGREGATE_DISCIPLINES = frozenset({"ALL LABOR", "DISCIPLINE TOTALS"})


@dataclass(frozen=True)
class CategoryBudget:
    """Manhours, value and percentage for one budget category."""

    manhours: Decimal = ZERO
    value: Decimal = ZERO
    percentage: Decimal = ZERO

    def __post_init__(self):
        """Validate category amounts are non-negative."""
        if self.manhours < 0 or self.value < 0:
            raise ValueError("Budget category values cannot be negative")

    @classmethod
    def from_dict(cls, data) -> 'CategoryBudget':
        if not isinstance(data, dict):
            # A bare number is the category value
            return cls(value=to_decimal(data))
        return cls(
            manhours=to_decimal(data.get('manhours')),
            value=to_decimal(data.get('value')),
            percentage=to_decimal(data.get('percentage')),
        )


EMPTY_CATEGORY = CategoryBudget()


@dataclass(frozen=True)
class BudgetDiscipline:
    """
    Budget for a single discipline (e.g. "MECHANICAL", "PIPING").

    Attributes:
        name: Discipline name as it appears in the budget sheet
        categories: Category -> CategoryBudget; missing categories read as zero
    """

    name: str
    categories: Dict[BudgetCategory, CategoryBudget] = field(default_factory=dict)

    @property
    def is_aggregate(self) -> bool:
        """True for summary rows that must never become WBS line items."""
        return self.name.strip().upper() in AGGREGATE_DISCIPLINES

    def category(self, category: BudgetCategory) -> CategoryBudget:
        return self.categories.get(category, EMPTY_CATEGORY)

    def value_of(self, category: BudgetCategory) -> Decimal:
        return self.category(category).value

    @property
    def add_ons_value(self) -> Decimal:
        """
        Total add-ons (taxes, per diem, scaffolding, risk).

        An explicit ADD_ONS category wins; otherwise the detail lines
        are summed.
        """
        if BudgetCategory.ADD_ONS in self.categories:
            return self.value_of(BudgetCategory.ADD_ONS)
        return sum((self.value_of(c) for c in ADD_ON_DETAIL), ZERO)

    @classmethod
    def from_dict(cls, data: dict) -> 'BudgetDiscipline':
        """
        Create a BudgetDiscipline from a parsed budget row.

        Accepts either `name` or `discipline`/`disciplineName` for the
        name and a `categories` mapping keyed by category name.
        """
        name = data.get('name') or data.get('discipline') or data.get('disciplineName') or ''
        categories = {
            BudgetCategory.parse(key): CategoryBudget.from_dict(value)
            for key, value in (data.get('categories') or {}).items()
        }
        return cls(name=str(name), categories=categories)
