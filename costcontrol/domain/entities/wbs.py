"""
WBS Node Entity - One node of the Work Breakdown Structure tree.

Codes are dot-separated and hierarchical: every code is its parent's
code plus one segment, so level and path are both derived from the code.
"""
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple

from ..exceptions import InvalidWBSCodeError

# Root, phase, group, discipline/category, line item; one extra level when
# a parent group holds sub-discipline nodes.
MAX_WBS_LEVEL = 6


class CostType(Enum):
    """Level-4 cost categories."""
    DL = "DL"    # Direct Labor
    IL = "IL"    # Indirect Labor (add-ons folded in)
    MAT = "MAT"  # Materials
    EQ = "EQ"    # Equipment
    SUB = "SUB"  # Subcontracts


def wbs_path(code: str) -> Tuple[str, ...]:
    """Ancestor codes of `code`, root first, including `code` itself."""
    segments = code.split(".")
    return tuple(".".join(segments[:i]) for i in range(1, len(segments) + 1))


def parent_of(code: str) -> Optional[str]:
    """Parent code, or None for the root."""
    head, sep, _ = code.rpartition(".")
    return head if sep else None


@dataclass(frozen=True)
class WBSNode:
    """
    A node of the WBS tree.

    Attributes:
        code: Dot-separated hierarchical code (unique)
        level: Depth in the tree, 1 for the root
        description: Node label
        path: Ancestor codes including this node, root first
        sort_order: Position in a flattened, ordered listing
        parent_code: Parent node code (None for the root)
        cost_type: Cost category for category and line-item nodes
        budget_total: Budget for category nodes (None above them)
        children_count: Number of direct children generated
        phase: Project phase for the phase node
        labor_category_id: Labor category code for labor line items
    """

    code: str
    level: int
    description: str
    path: Tuple[str, ...]
    sort_order: int
    parent_code: Optional[str] = None
    cost_type: Optional[CostType] = None
    budget_total: Optional[Decimal] = None
    children_count: int = 0
    phase: Optional[str] = None
    labor_category_id: Optional[str] = None

    def __post_init__(self):
        """Validate code, level and path agree with each other."""
        segments = self.code.split(".")
        if not self.code or any(not s for s in segments):
            raise InvalidWBSCodeError(self.code, "empty code segment")
        if not 1 <= self.level <= MAX_WBS_LEVEL:
            raise InvalidWBSCodeError(self.code, f"level {self.level} out of range")
        if self.parent_code is None:
            if self.level != 1:
                raise InvalidWBSCodeError(self.code, "only the root may omit parent_code")
        elif parent_of(self.code) != self.parent_code:
            raise InvalidWBSCodeError(
                self.code, f"code must be '{self.parent_code}.<segment>'"
            )
        if tuple(self.path) != wbs_path(self.code):
            raise InvalidWBSCodeError(self.code, f"path {list(self.path)} does not match code")
        if len(self.path) != self.level:
            raise InvalidWBSCodeError(self.code, f"path length {len(self.path)} != level {self.level}")

    @classmethod
    def create(cls, code: str, description: str, sort_order: int, **kwargs) -> 'WBSNode':
        """Build a node with parent_code, level and path derived from the code."""
        path = wbs_path(code)
        return cls(
            code=code,
            level=len(path),
            description=description,
            path=path,
            sort_order=sort_order,
            parent_code=parent_of(code),
            **kwargs,
        )

    def to_dict(self) -> dict:
        """Plain dict for persistence and export."""
        return {
            'code': self.code,
            'parent_code': self.parent_code,
            'level': self.level,
            'description': self.description,
            'phase': self.phase,
            'cost_type': self.cost_type.value if self.cost_type else None,
            'labor_category_id': self.labor_category_id,
            'path': list(self.path),
            'sort_order': self.sort_order,
            'children_count': self.children_count,
            'budget_total': self.budget_total,
        }
