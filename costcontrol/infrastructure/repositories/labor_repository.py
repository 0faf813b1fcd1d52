"""
Labor Repository - Weekly labor actuals, headcount plans and craft types.

Rows are returned as domain entities with nulls left as None; the
calculators decide how missing numbers are coalesced.
"""
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional
from sqlalchemy.orm import Session

from costcontrol.domain.entities import (
    CraftType, EmployeeLaborActual, LaborActual, LaborCategory, LaborForecast,
    optional_decimal, to_decimal,
)
from costcontrol.models import (
    CraftTypeEntity, EmployeeLaborActualEntity, HeadcountForecastEntity, LaborActualEntity,
)
from .base_repository import BaseRepository


def _craft_type(row: CraftTypeEntity) -> CraftType:
    return CraftType(
        id=row.id,
        default_rate=optional_decimal(row.default_rate),
        category=LaborCategory.parse(row.category),
        name=row.name or "",
        code=row.code or "",
    )


class LaborRepository(BaseRepository[EmployeeLaborActualEntity]):
    """Repository for labor actuals and forecasts."""

    def __init__(self, session: Session):
        super().__init__(session, EmployeeLaborActualEntity)

    def exists(self, **criteria) -> bool:
        """Check if an employee labor actual matching the criteria exists."""
        return self._exists(**criteria)

    def get_employee_actuals(
        self,
        project_id: str,
        division_id: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[EmployeeLaborActual]:
        """
        Employee-level weekly actuals for a project.

        Args:
            project_id: Project identifier
            division_id: Optional division filter
            start_date: Inclusive lower bound on week_ending
            end_date: Inclusive upper bound on week_ending

        Returns:
            Actuals ordered by week ending
        """
        query = self.session.query(EmployeeLaborActualEntity).filter(
            EmployeeLaborActualEntity.project_id == project_id
        )

        if division_id:
            query = query.filter(EmployeeLaborActualEntity.division_id == division_id)
        if start_date:
            query = query.filter(EmployeeLaborActualEntity.week_ending >= start_date)
        if end_date:
            query = query.filter(EmployeeLaborActualEntity.week_ending <= end_date)

        rows = query.order_by(
            EmployeeLaborActualEntity.week_ending, EmployeeLaborActualEntity.id
        ).all()
        return [
            EmployeeLaborActual(
                id=row.id,
                employee_id=row.employee_id,
                project_id=row.project_id,
                division_id=row.division_id,
                week_ending=row.week_ending,
                pay_period_ending=row.pay_period_ending,
                category=row.employee.category if row.employee else None,
                st_hours=to_decimal(row.st_hours),
                ot_hours=to_decimal(row.ot_hours),
                st_wages=to_decimal(row.st_wages),
                ot_wages=to_decimal(row.ot_wages),
                total_hours=to_decimal(row.total_hours),
                total_cost=to_decimal(row.total_cost),
                total_cost_with_burden=optional_decimal(row.total_cost_with_burden),
            )
            for row in rows
        ]

    def get_craft_actuals(self, project_id: str) -> List[LaborActual]:
        """Craft-level weekly actuals with their craft types."""
        rows = self.session.query(LaborActualEntity).filter(
            LaborActualEntity.project_id == project_id
        ).order_by(LaborActualEntity.week_ending, LaborActualEntity.id).all()

        return [
            LaborActual(
                week_ending=row.week_ending,
                actual_hours=optional_decimal(row.actual_hours),
                actual_cost=optional_decimal(row.actual_cost),
                actual_cost_with_burden=optional_decimal(row.actual_cost_with_burden),
                burden_amount=optional_decimal(row.burden_amount),
                craft_type=_craft_type(row.craft_type) if row.craft_type else None,
            )
            for row in rows
        ]

    def get_headcount_forecasts(
        self,
        project_id: str,
        default_weekly_hours: Decimal,
        after: Optional[date] = None,
    ) -> List[LaborForecast]:
        """
        Headcount plan rows as labor forecasts.

        Args:
            project_id: Project identifier
            default_weekly_hours: Hours per head for rows that store none
            after: Only weeks ending strictly after this date

        Returns:
            Forecasts ordered by week ending
        """
        query = self.session.query(HeadcountForecastEntity).filter(
            HeadcountForecastEntity.project_id == project_id
        )
        if after:
            query = query.filter(HeadcountForecastEntity.week_ending > after)

        rows = query.order_by(HeadcountForecastEntity.week_ending, HeadcountForecastEntity.id).all()
        return [
            LaborForecast(
                craft_type=row.craft_type_id,
                forecasted_headcount=to_decimal(row.headcount),
                weekly_hours=optional_decimal(row.avg_weekly_hours) or default_weekly_hours,
                week_ending=row.week_ending,
            )
            for row in rows
        ]

    def get_craft_types(self) -> Dict[str, CraftType]:
        """All craft types keyed by id."""
        rows = self.session.query(CraftTypeEntity).all()
        return {row.id: _craft_type(row) for row in rows}
