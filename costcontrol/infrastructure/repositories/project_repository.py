"""
Project Repository - Project headers, contract value and per diem settings.
"""
from decimal import Decimal
from typing import List, Optional
from sqlalchemy.orm import Session

from costcontrol.domain.entities import (
    ChangeOrder, ChangeOrderStatus, PerDiemConfig, PurchaseOrder, optional_decimal, to_decimal,
)
from costcontrol.models import Project, PurchaseOrderEntity, ChangeOrderEntity
from .base_repository import BaseRepository


class ProjectRepository(BaseRepository[Project]):
    """Repository for projects and their commitments."""

    def __init__(self, session: Session):
        super().__init__(session, Project)

    def exists(self, **criteria) -> bool:
        """Check if a Project matching the criteria exists."""
        return self._exists(**criteria)

    def get_per_diem_config(self, project_id: str) -> Optional[PerDiemConfig]:
        """
        Per diem settings for a project.

        Returns:
            PerDiemConfig, or None when the project does not exist
        """
        project = self.get_by_id(project_id)
        if project is None:
            return None
        return PerDiemConfig(
            per_diem_enabled=bool(project.per_diem_enabled),
            per_diem_rate_direct=to_decimal(project.per_diem_rate_direct),
            per_diem_rate_indirect=to_decimal(project.per_diem_rate_indirect),
        )

    def get_base_margin_percentage(self, project_id: str) -> Optional[Decimal]:
        project = self.get_by_id(project_id)
        return optional_decimal(project.base_margin_percentage) if project else None

    def get_purchase_orders(self, project_id: str) -> List[PurchaseOrder]:
        """All purchase orders for a project."""
        rows = self.session.query(PurchaseOrderEntity).filter(
            PurchaseOrderEntity.project_id == project_id
        ).order_by(PurchaseOrderEntity.po_number).all()
        return [
            PurchaseOrder(
                committed_amount=optional_decimal(row.committed_amount),
                invoiced_amount=optional_decimal(row.invoiced_amount),
                forecast_amount=optional_decimal(row.forecast_amount),
                forecasted_final_cost=optional_decimal(row.forecasted_final_cost),
                total_amount=optional_decimal(row.total_amount),
                po_number=row.po_number or "",
                project_id=row.project_id,
            )
            for row in rows
        ]

    def get_change_orders(self, project_id: str) -> List[ChangeOrder]:
        """All change orders for a project, any status."""
        rows = self.session.query(ChangeOrderEntity).filter(
            ChangeOrderEntity.project_id == project_id
        ).all()
        return [
            ChangeOrder(
                amount=to_decimal(row.amount),
                status=ChangeOrderStatus.parse(row.status, ChangeOrderStatus.PENDING),
                co_number=row.co_number or "",
                description=row.description or "",
            )
            for row in rows
        ]
