"""
Pydantic schemas for Reports module

Request and response models for the financial report and dashboard endpoints.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from app.common.mixins import to_naive_utc
from app.modules.reports.models import ReportType


class FinancialReportRequest(BaseModel):
    """Period selection shared by live and saved reports"""
    company_id: Optional[UUID] = Field(None, description="Required for SUPERADMIN")
    report_type: ReportType = Field(ReportType.DAILY, description="DAILY uses start_date only")
    start_date: date = Field(..., description="First day of the period")
    end_date: Optional[date] = Field(None, description="Last day of the period (inclusive)")
    start_at: Optional[datetime] = Field(None, description="CUSTOM only: exact start instant")
    end_at: Optional[datetime] = Field(None, description="CUSTOM only: exact end instant (exclusive)")

    @field_validator("start_at", "end_at")
    @classmethod
    def normalize_instants(cls, v):
        return to_naive_utc(v) if v is not None else v

    @model_validator(mode="after")
    def validate_period(self):
        if self.report_type == ReportType.DAILY:
            self.end_date = self.start_date
        elif self.end_date is None:
            raise ValueError("end_date is required for this report type")
        if self.end_date < self.start_date:
            raise ValueError("end_date must be greater than or equal to start_date")
        if (self.start_at is None) != (self.end_at is None):
            raise ValueError("start_at and end_at must be provided together")
        if self.start_at is not None:
            if self.report_type != ReportType.CUSTOM:
                raise ValueError("start_at/end_at are only accepted for CUSTOM reports")
            if self.end_at <= self.start_at:
                raise ValueError("end_at must be after start_at")
        return self


class FinancialSummary(BaseModel):
    """Aggregated figures for one period"""
    company_id: UUID
    name: str
    report_type: ReportType
    start_date: date
    end_date: date

    income_window_start: datetime
    income_window_end: datetime
    expense_window_start: datetime
    expense_window_end: datetime

    sales_income: Decimal
    table_rent_income: Decimal
    other_income: Decimal
    total_income: Decimal

    inventory_cost: Decimal
    maintenance_cost: Decimal
    staff_cost: Decimal
    utility_cost: Decimal
    other_expenses: Decimal
    total_expense: Decimal

    net_profit: Decimal


class FinancialReportOut(FinancialSummary):
    id: UUID
    generated_by_id: Optional[UUID]
    created_at: datetime

    class Config:
        from_attributes = True


class DashboardStats(BaseModel):
    """Floor and sales figures for the company's current local day and month"""
    company_id: UUID
    date: date
    tables_count: int
    active_sessions_count: int
    inventory_items_count: int
    low_stock_items_count: int
    today_sales: Decimal = Field(..., description="PAID orders since local midnight")
    month_sales: Decimal = Field(..., description="PAID orders since the 1st of the local month")
