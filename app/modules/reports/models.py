from app.database.database import Base
from sqlalchemy import Column, String, Date, DateTime, ForeignKey, Numeric, Enum
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from app.common.mixins import CompanyMixin, TimestampMixin
import enum


class ReportType(str, enum.Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    ANNUAL = "ANNUAL"
    CUSTOM = "CUSTOM"


class FinancialReport(Base, CompanyMixin, TimestampMixin):
    """A saved income/expense summary. Figures are frozen at generation time."""
    __tablename__ = "financial_reports"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String(150), nullable=False)
    report_type = Column(Enum(ReportType), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)

    income_window_start = Column(DateTime, nullable=False)
    income_window_end = Column(DateTime, nullable=False)
    expense_window_start = Column(DateTime, nullable=False)
    expense_window_end = Column(DateTime, nullable=False)

    # Income
    sales_income = Column(Numeric(12, 2), nullable=False, default=0)
    table_rent_income = Column(Numeric(12, 2), nullable=False, default=0)
    other_income = Column(Numeric(12, 2), nullable=False, default=0)
    total_income = Column(Numeric(12, 2), nullable=False, default=0)

    # Expense
    inventory_cost = Column(Numeric(12, 2), nullable=False, default=0)
    maintenance_cost = Column(Numeric(12, 2), nullable=False, default=0)
    staff_cost = Column(Numeric(12, 2), nullable=False, default=0)
    utility_cost = Column(Numeric(12, 2), nullable=False, default=0)
    other_expenses = Column(Numeric(12, 2), nullable=False, default=0)
    total_expense = Column(Numeric(12, 2), nullable=False, default=0)

    net_profit = Column(Numeric(12, 2), nullable=False, default=0)

    generated_by_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
