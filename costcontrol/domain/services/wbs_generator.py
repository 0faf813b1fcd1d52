"""
WBS Generator - Builds the Work Breakdown Structure from budget disciplines.

Tree layout:
1            PROJECT TOTAL
1.1          CONSTRUCTION PHASE
1.1.NN       One node per fixed WBS group, in fixed order
1.1.NN.MM    Parent groups (Civil, Mechanical, I&E): one node per discipline
...CC        Five cost categories (DL, IL, MAT, EQ, SUB) under each leaf
...CC.XX     Line items, produced on request by the line-item helpers

Disciplines are routed to groups through a static, case-insensitive lookup
table. Names that are not in the table go to the UNASSIGNED group (99).
"""
import logging
import re
from collections import OrderedDict
from dataclasses import dataclass
from decimal import Decimal
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Union

from ...config import EngineConfig, get_config
from ..entities import (
    ZERO,
    BudgetCategory,
    BudgetDiscipline,
    CostType,
    WBSNode,
)
from ..exceptions import InvalidWBSCodeError, ValidationError

logger = logging.getLogger(__name__)

LABOR_COST_TYPES = frozenset({CostType.DL, CostType.IL})

# Level-4 budget sources; Indirect Labor carries the add-ons
CATEGORY_BUDGET_SOURCES = MappingProxyType({
    CostType.DL: BudgetCategory.DIRECT_LABOR,
    CostType.IL: BudgetCategory.INDIRECT_LABOR,
    CostType.MAT: BudgetCategory.MATERIALS,
    CostType.EQ: BudgetCategory.EQUIPMENT,
    CostType.SUB: BudgetCategory.SUBCONTRACTS,
})


@dataclass(frozen=True)
class WBSGroup:
    """A level-3 WBS group."""
    code: str
    name: str


@dataclass(frozen=True)
class CostCategoryDef:
    """A level-4 cost category."""
    code: str
    name: str
    cost_type: CostType


def labor_category_suffix(labor_category_code: str) -> str:
    """Numeric part of a labor category code ('DL101' -> '101', 'IL05' -> '05')."""
    return re.sub(r"[DLI|]", "", str(labor_category_code))


def category_budget(discipline: BudgetDiscipline, cost_type: CostType) -> Decimal:
    """Budget for one cost category of a discipline (IL includes add-ons)."""
    value = discipline.value_of(CATEGORY_BUDGET_SOURCES[cost_type])
    if cost_type is CostType.IL:
        value += discipline.add_ons_value
    return value


class WBSGenerator:
    """
    Generates WBS nodes and codes from the configured lookup tables.

    The tree builder and get_wbs_code_for_item() share the same
    discipline -> group and cost type -> category-code tables.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        config = config or get_config()
        self.root = config.wbs_root
        self.phase = config.wbs_phase
        self.groups = tuple(WBSGroup(str(g['code']), g['name']) for g in config.wbs_groups)
        self.parent_groups = frozenset(config.wbs_parent_groups)
        unassigned = config.wbs_unassigned_group
        self.unassigned_group = WBSGroup(str(unassigned['code']), unassigned['name'])
        self.discipline_to_group: Mapping[str, str] = MappingProxyType(config.discipline_to_group)
        self.cost_categories = tuple(
            CostCategoryDef(str(c['code']), c['name'], CostType(c['type']))
            for c in config.wbs_cost_categories
        )
        self.category_codes: Mapping[CostType, str] = MappingProxyType(
            {c.cost_type: c.code for c in self.cost_categories}
        )
        self.material_types = tuple(
            (str(m['code']), m['name']) for m in config.wbs_material_types
        )
        self.line_item_gap = config.wbs_line_item_gap

    # =========================================================================
    # Lookups
    # =========================================================================

    @property
    def group_prefix(self) -> str:
        return str(self.phase['code'])

    def group_code_for(self, discipline_name: str) -> str:
        """Group code for a discipline name; unassigned code when unknown."""
        key = str(discipline_name).strip().upper()
        return self.discipline_to_group.get(key, self.unassigned_group.code)

    def is_parent_group(self, group_code: str) -> bool:
        """Parent groups (and UNASSIGNED) hold one sub-node per discipline."""
        return group_code in self.parent_groups or group_code == self.unassigned_group.code

    @property
    def reserved_slots(self) -> int:
        """Sort-order slots reserved after each leaf's categories."""
        return len(self.cost_categories) * self.line_item_gap

    # =========================================================================
    # Tree generation
    # =========================================================================

    def generate_wbs_structure(self, disciplines: Iterable[BudgetDiscipline]) -> List[WBSNode]:
        """
        Generate the complete WBS tree from budget disciplines.

        Args:
            disciplines: Parsed budget disciplines; aggregate rows are skipped

        Returns:
            Nodes in traversal order (root, phase, each group, its
            sub-disciplines, their cost categories)
        """
        by_group: Dict[str, List[BudgetDiscipline]] = OrderedDict()
        for discipline in disciplines:
            if discipline.is_aggregate:
                continue
            by_group.setdefault(self.group_code_for(discipline.name), []).append(discipline)

        groups = list(self.groups)
        unassigned = by_group.get(self.unassigned_group.code, [])
        if unassigned:
            logger.warning(
                "Routing %d discipline(s) without a WBS group to %s: %s",
                len(unassigned),
                self.unassigned_group.code,
                ", ".join(d.name for d in unassigned),
            )
            groups.append(self.unassigned_group)

        nodes: List[WBSNode] = []
        sort_order = 0

        root_code = str(self.root['code'])
        nodes.append(WBSNode.create(
            root_code, self.root['name'], sort_order, children_count=1,
        ))
        sort_order += 1

        nodes.append(WBSNode.create(
            self.group_prefix, self.phase['name'], sort_order,
            phase=self.phase.get('phase'), children_count=len(groups),
        ))
        sort_order += 1

        for group in groups:
            members = by_group.get(group.code, [])
            group_code = f"{self.group_prefix}.{group.code}"
            parent = self.is_parent_group(group.code)

            if parent:
                children = len(members)
            else:
                children = len(self.cost_categories) if members else 0
            nodes.append(WBSNode.create(group_code, group.name, sort_order, children_count=children))
            sort_order += 1

            if parent:
                for index, discipline in enumerate(members, start=1):
                    sub_code = f"{group_code}.{index:02d}"
                    nodes.append(WBSNode.create(
                        sub_code, discipline.name, sort_order,
                        children_count=len(self.cost_categories),
                    ))
                    sort_order += 1
                    nodes.extend(self._cost_category_nodes(sub_code, discipline, sort_order))
                    sort_order += self.reserved_slots
            elif members:
                if len(members) > 1:
                    logger.warning(
                        "WBS group %s takes one discipline; ignoring %s",
                        group.code, ", ".join(d.name for d in members[1:]),
                    )
                nodes.extend(self._cost_category_nodes(group_code, members[0], sort_order))
                sort_order += self.reserved_slots

        logger.info("Generated %d WBS nodes from %d WBS groups", len(nodes), len(groups))
        return nodes

    def _cost_category_nodes(
        self,
        parent_code: str,
        discipline: BudgetDiscipline,
        start_sort_order: int,
    ) -> List[WBSNode]:
        """Five cost-category nodes, each carrying the discipline's budget."""
        return [
            WBSNode.create(
                f"{parent_code}.{category.code}",
                category.name,
                start_sort_order + index,
                cost_type=category.cost_type,
                budget_total=category_budget(discipline, category.cost_type),
            )
            for index, category in enumerate(self.cost_categories)
        ]

    # =========================================================================
    # Code derivation
    # =========================================================================

    def get_wbs_code_for_item(
        self,
        discipline_name: str,
        cost_type: Union[CostType, str],
        labor_category_code: Optional[str] = None,
        sub_discipline_index: Optional[int] = None,
    ) -> str:
        """
        Derive the WBS code for a budget item without building the tree.

        Args:
            discipline_name: Discipline name (case-insensitive)
            cost_type: DL, IL, MAT, EQ or SUB
            labor_category_code: Labor category (e.g. 'DL101'); appended as a
                line-item segment for DL/IL only
            sub_discipline_index: 1-based position of the discipline inside a
                parent group; required for parent groups and UNASSIGNED

        Returns:
            Code such as '1.1.14.01' or '1.1.09.01.01.101'; '99' stands in for
            an unknown group or cost type

        Raises:
            ValidationError: sub_discipline_index missing for a parent group
        """
        try:
            cost_type = CostType(cost_type) if not isinstance(cost_type, CostType) else cost_type
        except ValueError:
            cost_type = None

        group_code = self.group_code_for(discipline_name)
        category_code = self.category_codes.get(cost_type, "99") if cost_type else "99"

        code = f"{self.group_prefix}.{group_code}"
        if self.is_parent_group(group_code):
            if sub_discipline_index is None:
                raise ValidationError(
                    'sub_discipline_index',
                    f"{discipline_name} sits under parent group {group_code}; its position is required",
                )
            code += f".{sub_discipline_index:02d}"
        code += f".{category_code}"

        suffix = labor_category_suffix(labor_category_code) if labor_category_code else ""
        if suffix and cost_type in LABOR_COST_TYPES:
            code += f".{suffix}"
        return code

    # =========================================================================
    # Line items
    # =========================================================================

    def create_labor_line_items(
        self,
        parent_code: str,
        cost_type: Union[CostType, str],
        labor_categories: Sequence[Mapping],
        start_sort_order: int,
    ) -> List[WBSNode]:
        """
        Create line items for labor categories under a DL or IL node.

        Args:
            parent_code: Code of the DL/IL category node
            cost_type: DL or IL
            labor_categories: Mappings with 'code' (e.g. 'DL101') and 'name'
            start_sort_order: First sort order to assign

        Returns:
            One node per labor category
        """
        cost_type = CostType(cost_type)
        if cost_type not in LABOR_COST_TYPES:
            raise ValidationError('cost_type', f"labor line items need DL or IL, got {cost_type.value}")

        return [
            WBSNode.create(
                f"{parent_code}.{labor_category_suffix(category['code'])}",
                category['name'],
                start_sort_order + index,
                cost_type=cost_type,
                labor_category_id=category['code'],
            )
            for index, category in enumerate(labor_categories)
        ]

    def create_material_line_items(self, parent_code: str, start_sort_order: int) -> List[WBSNode]:
        """Create the Taxed / Taxes / Non-Taxed material line items."""
        return [
            WBSNode.create(
                f"{parent_code}.{code}",
                name,
                start_sort_order + index,
                cost_type=CostType.MAT,
            )
            for index, (code, name) in enumerate(self.material_types)
        ]


# =============================================================================
# Structure checks
# =============================================================================

def validate_wbs_structure(nodes: Sequence[WBSNode]) -> None:
    """
    Check a node list forms a tree.

    Raises:
        InvalidWBSCodeError: on duplicate codes, missing parents or a
            level step other than 1
    """
    by_code: Dict[str, WBSNode] = {}
    for node in nodes:
        if node.code in by_code:
            raise InvalidWBSCodeError(node.code, "duplicate code")
        by_code[node.code] = node

    for node in nodes:
        if node.parent_code is None:
            continue
        parent = by_code.get(node.parent_code)
        if parent is None:
            raise InvalidWBSCodeError(node.code, f"parent '{node.parent_code}' missing")
        if node.level != parent.level + 1:
            raise InvalidWBSCodeError(
                node.code, f"level {node.level} under parent level {parent.level}"
            )


def rollup_budget_totals(nodes: Iterable[WBSNode]) -> Dict[str, Decimal]:
    """
    Roll category budgets up the tree.

    Returns:
        Code -> total budget of the node and everything below it
    """
    totals: Dict[str, Decimal] = {}
    for node in nodes:
        totals.setdefault(node.code, ZERO)
        if node.budget_total is None:
            continue
        for ancestor in node.path:
            totals[ancestor] = totals.get(ancestor, ZERO) + node.budget_total
    return totals
