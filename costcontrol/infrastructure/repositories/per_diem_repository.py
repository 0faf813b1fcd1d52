"""
Per Diem Repository - Reads and rebuilds per diem cost rows.

The stored amount column is written as rate x days; on read the entity
recomputes it from the same two fields.
"""
from datetime import date
from typing import Iterable, List, Optional
from sqlalchemy.orm import Session

from costcontrol.domain.entities import EmployeeType, PerDiemCost, to_decimal
from costcontrol.models import EmployeeLaborActualEntity, PerDiemCostEntity
from .base_repository import BaseRepository


def _to_entity(row: PerDiemCostEntity) -> PerDiemCost:
    return PerDiemCost(
        id=row.id,
        project_id=row.project_id,
        employee_id=row.employee_id,
        work_date=row.work_date,
        employee_type=EmployeeType.for_employee_category(row.employee_type),
        rate_applied=to_decimal(row.rate_applied),
        days_worked=to_decimal(row.days_worked),
        labor_actual_id=row.labor_actual_id,
        pay_period_ending=row.pay_period_ending,
    )


class PerDiemRepository(BaseRepository[PerDiemCostEntity]):
    """Repository for per diem cost rows."""

    def __init__(self, session: Session):
        super().__init__(session, PerDiemCostEntity)

    def exists(self, **criteria) -> bool:
        """Check if a per diem row matching the criteria exists."""
        return self._exists(**criteria)

    def get_costs(
        self,
        project_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        employee_id: Optional[str] = None,
        employee_type: Optional[EmployeeType] = None,
        division_id: Optional[str] = None,
        pay_period_ending: Optional[date] = None,
    ) -> List[PerDiemCost]:
        """
        Per diem rows for a project, newest work date first.

        Args:
            project_id: Project identifier
            start_date / end_date: Inclusive work_date bounds
            employee_id: Single employee filter
            employee_type: Direct or Indirect filter
            division_id: Only rows tied to labor actuals in this division
            pay_period_ending: Single pay period filter

        Returns:
            Per diem costs
        """
        query = self.session.query(PerDiemCostEntity).filter(
            PerDiemCostEntity.project_id == project_id
        )
        if division_id:
            query = query.join(
                EmployeeLaborActualEntity,
                PerDiemCostEntity.labor_actual_id == EmployeeLaborActualEntity.id,
            ).filter(EmployeeLaborActualEntity.division_id == division_id)
        if start_date:
            query = query.filter(PerDiemCostEntity.work_date >= start_date)
        if end_date:
            query = query.filter(PerDiemCostEntity.work_date <= end_date)
        if employee_id:
            query = query.filter(PerDiemCostEntity.employee_id == employee_id)
        if pay_period_ending:
            query = query.filter(PerDiemCostEntity.pay_period_ending == pay_period_ending)

        rows = query.order_by(
            PerDiemCostEntity.work_date.desc(), PerDiemCostEntity.employee_id
        ).all()
        costs = [_to_entity(row) for row in rows]
        if employee_type:
            # Stored types other than Direct read back as Indirect
            costs = [cost for cost in costs if cost.employee_type is employee_type]
        return costs

    def replace_for_project(self, project_id: str, costs: Iterable[PerDiemCost]) -> int:
        """
        Delete a project's per diem rows and insert `costs` in their place.

        Does not commit; the caller owns the transaction.

        Returns:
            Number of rows inserted
        """
        self.session.query(PerDiemCostEntity).filter(
            PerDiemCostEntity.project_id == project_id
        ).delete(synchronize_session=False)

        rows = [
            PerDiemCostEntity(
                project_id=project_id,
                employee_id=cost.employee_id,
                work_date=cost.work_date,
                employee_type=cost.employee_type.value,
                rate_applied=cost.rate_applied,
                days_worked=cost.days_worked,
                amount=cost.amount,
                labor_actual_id=cost.labor_actual_id,
                pay_period_ending=cost.pay_period_ending,
            )
            for cost in costs
        ]
        self.add_all(rows)
        self.session.flush()
        return len(rows)
