"""
WBS Repository - Persists generated WBS nodes per project.
"""
import json
import logging
from typing import Iterable, List
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from costcontrol.domain.entities import CostType, WBSNode, optional_decimal
from costcontrol.domain.exceptions import PersistenceError
from costcontrol.models import WBSNodeEntity
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class WBSRepository(BaseRepository[WBSNodeEntity]):
    """Repository for the wbs_structure table."""

    def __init__(self, session: Session):
        super().__init__(session, WBSNodeEntity)

    def exists(self, **criteria) -> bool:
        """Check if a WBS node matching the criteria exists."""
        return self._exists(**criteria)

    def replace_for_project(self, project_id: str, nodes: Iterable[WBSNode]) -> int:
        """
        Replace a project's WBS with freshly generated nodes and commit.

        Raises:
            PersistenceError: if the write fails (the transaction is rolled back)

        Returns:
            Number of nodes written
        """
        try:
            self.session.query(WBSNodeEntity).filter(
                WBSNodeEntity.project_id == project_id
            ).delete(synchronize_session=False)

            rows = [
                WBSNodeEntity(
                    project_id=project_id,
                    code=node.code,
                    parent_code=node.parent_code,
                    level=node.level,
                    description=node.description,
                    phase=node.phase,
                    cost_type=node.cost_type.value if node.cost_type else None,
                    labor_category_id=node.labor_category_id,
                    path=json.dumps(list(node.path)),
                    sort_order=node.sort_order,
                    children_count=node.children_count,
                    budget_total=node.budget_total,
                )
                for node in nodes
            ]
            self.add_all(rows)
            self.commit()
        except SQLAlchemyError as e:
            self.rollback()
            logger.exception("Failed to write WBS for project %s", project_id)
            raise PersistenceError("wbs_replace", {"project_id": project_id}) from e

        logger.info("Wrote %d WBS nodes for project %s", len(rows), project_id)
        return len(rows)

    def get_for_project(self, project_id: str) -> List[WBSNode]:
        """Stored WBS nodes in sort order."""
        rows = self.session.query(WBSNodeEntity).filter(
            WBSNodeEntity.project_id == project_id
        ).order_by(WBSNodeEntity.sort_order, WBSNodeEntity.code).all()
        return [
            WBSNode(
                code=row.code,
                parent_code=row.parent_code,
                level=row.level,
                description=row.description or "",
                phase=row.phase,
                cost_type=CostType(row.cost_type) if row.cost_type else None,
                labor_category_id=row.labor_category_id,
                path=tuple(json.loads(row.path or "[]")),
                sort_order=row.sort_order or 0,
                children_count=row.children_count or 0,
                budget_total=optional_decimal(row.budget_total),
            )
            for row in rows
        ]
