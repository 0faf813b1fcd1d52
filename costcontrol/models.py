"""
Database models and SQLAlchemy setup for the cost engine's collaborators.

The engine itself computes over domain entities; these tables are what the
repositories read records from and write generated rows (per diem costs,
WBS nodes) back to. Monetary values are stored as NUMERIC and surface as
Decimal.
"""
import os
import uuid
from datetime import datetime
from sqlalchemy import (
    create_engine, Column, Integer, String, Numeric, Boolean,
    DateTime, Date, Text, ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import declarative_base, relationship

DATABASE_URL = os.getenv("COSTCONTROL_DATABASE_URL", "sqlite:///./costcontrol.db")


def make_engine(url: str = DATABASE_URL):
    """Create an engine; SQLite connections may be shared across threads."""
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args)


engine = make_engine()
Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


class Project(Base):
    """Project header with contract value and per diem settings."""
    __tablename__ = "projects"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(200), nullable=False)
    job_number = Column(String(50), index=True)
    original_contract = Column(Numeric(14, 2), default=0)
    base_margin_percentage = Column(Numeric(5, 2), nullable=True)
    per_diem_enabled = Column(Boolean, default=False)
    per_diem_rate_direct = Column(Numeric(10, 2), default=0)
    per_diem_rate_indirect = Column(Numeric(10, 2), default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Employee(Base):
    """Employee roster; category is 'Direct', 'Indirect' or 'Staff'."""
    __tablename__ = "employees"

    id = Column(String(36), primary_key=True, default=_uuid)
    employee_number = Column(String(50), index=True)
    name = Column(String(200))
    category = Column(String(20), default="Direct")
    base_rate = Column(Numeric(10, 2), nullable=True)
    is_active = Column(Boolean, default=True)


class CraftTypeEntity(Base):
    """Craft type lookup."""
    __tablename__ = "craft_types"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(100))
    code = Column(String(20), index=True)
    category = Column(String(20), default="direct")  # direct, indirect, staff
    default_rate = Column(Numeric(10, 2), nullable=True)


class LaborActualEntity(Base):
    """Weekly labor actuals per craft type."""
    __tablename__ = "labor_actuals"

    id = Column(String(36), primary_key=True, default=_uuid)
    project_id = Column(String(36), ForeignKey("projects.id"), index=True, nullable=False)
    craft_type_id = Column(String(36), ForeignKey("craft_types.id"), index=True)
    week_ending = Column(Date, index=True)
    actual_hours = Column(Numeric(12, 2), nullable=True)
    actual_cost = Column(Numeric(14, 2), nullable=True)
    actual_cost_with_burden = Column(Numeric(14, 2), nullable=True)
    burden_amount = Column(Numeric(14, 2), nullable=True)

    craft_type = relationship("CraftTypeEntity")


class EmployeeLaborActualEntity(Base):
    """Weekly labor actuals per employee."""
    __tablename__ = "labor_employee_actuals"

    id = Column(String(36), primary_key=True, default=_uuid)
    project_id = Column(String(36), ForeignKey("projects.id"), index=True, nullable=False)
    employee_id = Column(String(36), ForeignKey("employees.id"), index=True, nullable=False)
    division_id = Column(String(36), nullable=True, index=True)
    week_ending = Column(Date, index=True, nullable=False)
    pay_period_ending = Column(Date, nullable=True)
    st_hours = Column(Numeric(10, 2), default=0)
    ot_hours = Column(Numeric(10, 2), default=0)
    st_wages = Column(Numeric(14, 2), default=0)
    ot_wages = Column(Numeric(14, 2), default=0)
    total_hours = Column(Numeric(10, 2), default=0)
    total_cost = Column(Numeric(14, 2), default=0)
    total_cost_with_burden = Column(Numeric(14, 2), nullable=True)

    employee = relationship("Employee")


class HeadcountForecastEntity(Base):
    """Planned weekly headcount per craft type."""
    __tablename__ = "labor_headcount_forecasts"

    id = Column(String(36), primary_key=True, default=_uuid)
    project_id = Column(String(36), ForeignKey("projects.id"), index=True, nullable=False)
    craft_type_id = Column(String(36), ForeignKey("craft_types.id"), index=True)
    week_ending = Column(Date, index=True)
    headcount = Column(Numeric(10, 2), default=0)
    avg_weekly_hours = Column(Numeric(6, 2), nullable=True)


class PurchaseOrderEntity(Base):
    """Purchase order commitments."""
    __tablename__ = "purchase_orders"

    id = Column(String(36), primary_key=True, default=_uuid)
    project_id = Column(String(36), ForeignKey("projects.id"), index=True, nullable=False)
    po_number = Column(String(50), index=True)
    committed_amount = Column(Numeric(14, 2), nullable=True)
    invoiced_amount = Column(Numeric(14, 2), nullable=True)
    forecast_amount = Column(Numeric(14, 2), nullable=True)
    forecasted_final_cost = Column(Numeric(14, 2), nullable=True)
    total_amount = Column(Numeric(14, 2), nullable=True)


class ChangeOrderEntity(Base):
    """Contract change orders."""
    __tablename__ = "change_orders"

    id = Column(String(36), primary_key=True, default=_uuid)
    project_id = Column(String(36), ForeignKey("projects.id"), index=True, nullable=False)
    co_number = Column(String(50))
    description = Column(Text, nullable=True)
    amount = Column(Numeric(14, 2), default=0)
    status = Column(String(20), default="draft")  # draft, pending, approved, rejected, cancelled


class PerDiemCostEntity(Base):
    """Per diem charge per employee and work date."""
    __tablename__ = "per_diem_costs"
    __table_args__ = (
        UniqueConstraint("project_id", "employee_id", "work_date", name="uq_per_diem_employee_day"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    project_id = Column(String(36), ForeignKey("projects.id"), index=True, nullable=False)
    employee_id = Column(String(36), ForeignKey("employees.id"), index=True, nullable=False)
    work_date = Column(Date, index=True, nullable=False)
    employee_type = Column(String(10), nullable=False)  # Direct, Indirect
    rate_applied = Column(Numeric(10, 2), nullable=False)
    days_worked = Column(Numeric(5, 2), nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    labor_actual_id = Column(String(36), ForeignKey("labor_employee_actuals.id"), nullable=True)
    pay_period_ending = Column(Date, nullable=True, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    labor_actual = relationship("EmployeeLaborActualEntity")


class WBSNodeEntity(Base):
    """Persisted WBS node."""
    __tablename__ = "wbs_structure"
    __table_args__ = (
        UniqueConstraint("project_id", "code", name="uq_wbs_project_code"),
    )

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(String(36), ForeignKey("projects.id"), index=True, nullable=False)
    code = Column(String(50), nullable=False)
    parent_code = Column(String(50), nullable=True, index=True)
    level = Column(Integer, nullable=False)
    description = Column(String(200))
    phase = Column(String(50), nullable=True)
    cost_type = Column(String(5), nullable=True)
    labor_category_id = Column(String(20), nullable=True)
    path = Column(Text)  # JSON list of ancestor codes
    sort_order = Column(Integer, default=0)
    children_count = Column(Integer, default=0)
    budget_total = Column(Numeric(14, 2), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


def init_db(bind=None):
    """Create all tables on `bind` (the default engine when None)."""
    Base.metadata.create_all(bind=bind or engine)
