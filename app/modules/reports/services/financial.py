"""
Financial Report Service

Income and expense for a period, with two time windows per period:

- income (POS orders, table rent) follows the company's business day, so a
  night that runs past midnight counts toward the day it started;
- expenses (purchases, maintenance, manual expenses) follow the calendar day.

Live reports and saved reports both go through `calculate`.
"""

import logging
from datetime import date
from typing import List, Optional, Tuple
from uuid import UUID


from app.common.exceptions import NotFoundError
from app.common.validators import to_money
from app.database.database import retry_read
from app.modules.auth.dependencies import ensure_company_access
from app.modules.auth.schemas import AuthContext
from app.modules.company.utils import (
    business_hours_from_company, company_timezone, get_business_day_end,
    get_business_day_start, get_calendar_day_window, get_calendar_range_window
)
from app.modules.expenses.models import Expense, ExpenseCategory
from app.modules.inventory.models import InventoryItem, ItemType, MovementType, StockMovement
from app.modules.pos.models import PaymentStatus, PosOrder
from app.modules.reports.models import FinancialReport, ReportType
from app.modules.reports.schemas import FinancialReportRequest, FinancialSummary
from app.modules.sessions.models import SessionStatus, TableSession
from app.modules.tables.models import TableMaintenance
from .base import BaseReportService, Window

logger = logging.getLogger(__name__)

OTHER_EXPENSE_CATEGORIES = (
    ExpenseCategory.SUPPLIES,
    ExpenseCategory.RENT,
    ExpenseCategory.INSURANCE,
    ExpenseCategory.MARKETING,
    ExpenseCategory.OTHER,
)


def report_name(report_type: ReportType, start_date: date, end_date: date) -> str:
    if report_type == ReportType.DAILY:
        return f"Daily report {start_date.isoformat()}"
    if report_type == ReportType.WEEKLY:
        return f"Weekly report {start_date.isoformat()} - {end_date.isoformat()}"
    if report_type == ReportType.MONTHLY:
        return f"Monthly report {start_date.strftime('%B %Y')}"
    if report_type == ReportType.QUARTERLY:
        return f"Q{(start_date.month - 1) // 3 + 1} {start_date.year}"
    if report_type == ReportType.ANNUAL:
        return f"Annual report {start_date.year}"
    return f"Custom report {start_date.isoformat()} - {end_date.isoformat()}"


class FinancialReportService(BaseReportService):
    """Service for income vs expense reports"""

    def resolve_windows(self, request: FinancialReportRequest) -> Tuple[Window, Window]:
        """(income_window, expense_window) for a period request"""
        if request.start_at is not None:
            window = (request.start_at, request.end_at)
            return window, window

        tz_name = company_timezone(self.company)
        config = business_hours_from_company(self.company)

        if request.start_date == request.end_date:
            expense_window = get_calendar_day_window(request.start_date, tz_name)
        else:
            expense_window = get_calendar_range_window(request.start_date, request.end_date, tz_name)

        if config is None:
            return expense_window, expense_window

        income_window = (
            get_business_day_start(request.start_date, config),
            get_business_day_end(request.end_date, config),
        )
        return income_window, expense_window

    def calculate(self, request: FinancialReportRequest) -> FinancialSummary:
        income_window, expense_window = self.resolve_windows(request)
        income_start, income_end = income_window
        expense_start, expense_end = expense_window

        # Income
        sales_income = self._sum(
            PosOrder.amount,
            PosOrder.company_id == self.company_id,
            PosOrder.payment_status == PaymentStatus.PAID,
            PosOrder.created_at >= income_start,
            PosOrder.created_at < income_end,
        )
        table_rent_income = self._sum(
            TableSession.total_cost,
            TableSession.company_id == self.company_id,
            TableSession.status == SessionStatus.COMPLETED,
            TableSession.started_at >= income_start,
            TableSession.started_at < income_end,
        )
        other_income = to_money(0)

        # Expense
        purchase_criteria = (
            StockMovement.company_id == self.company_id,
            StockMovement.movement_type == MovementType.PURCHASE,
            StockMovement.created_at >= expense_start,
            StockMovement.created_at < expense_end,
            StockMovement.item_id == InventoryItem.id,
        )
        purchase_cost = StockMovement.cost_price * StockMovement.quantity
        inventory_cost = self._sum(purchase_cost, *purchase_criteria, InventoryItem.item_type == ItemType.SALE)
        internal_use_cost = self._sum(
            purchase_cost, *purchase_criteria, InventoryItem.item_type == ItemType.INTERNAL_USE
        )

        def expenses_in(*categories):
            return self._sum(
                Expense.amount,
                Expense.company_id == self.company_id,
                Expense.category.in_(categories),
                Expense.expense_date >= expense_start,
                Expense.expense_date < expense_end,
            )

        table_maintenance = self._sum(
            TableMaintenance.cost,
            TableMaintenance.company_id == self.company_id,
            TableMaintenance.maintenance_at >= expense_start,
            TableMaintenance.maintenance_at < expense_end,
        )
        maintenance_cost = to_money(table_maintenance + expenses_in(ExpenseCategory.MAINTENANCE))
        staff_cost = expenses_in(ExpenseCategory.STAFF)
        utility_cost = expenses_in(ExpenseCategory.UTILITIES)
        other_expenses = to_money(internal_use_cost + expenses_in(*OTHER_EXPENSE_CATEGORIES))

        total_income = to_money(sales_income + table_rent_income + other_income)
        total_expense = to_money(inventory_cost + maintenance_cost + staff_cost + utility_cost + other_expenses)

        return FinancialSummary(
            company_id=self.company_id,
            name=report_name(request.report_type, request.start_date, request.end_date),
            report_type=request.report_type,
            start_date=request.start_date,
            end_date=request.end_date,
            income_window_start=income_start,
            income_window_end=income_end,
            expense_window_start=expense_start,
            expense_window_end=expense_end,
            sales_income=sales_income,
            table_rent_income=table_rent_income,
            other_income=other_income,
            total_income=total_income,
            inventory_cost=inventory_cost,
            maintenance_cost=maintenance_cost,
            staff_cost=staff_cost,
            utility_cost=utility_cost,
            other_expenses=other_expenses,
            total_expense=total_expense,
            net_profit=to_money(total_income - total_expense),
        )

    def generate(self, request: FinancialReportRequest, auth: AuthContext) -> FinancialReport:
        """Compute and save the report"""
        summary = self.calculate(request)
        report = FinancialReport(**summary.model_dump(), generated_by_id=auth.user_id)
        self.db.add(report)
        self.db.commit()
        self.db.refresh(report)

        logger.info(
            f"Financial report {report.id} '{report.name}' generated for company {self.company_id}: "
            f"income {report.total_income}, expense {report.total_expense}"
        )
        return report

    def list_reports(
        self,
        report_type: Optional[ReportType] = None,
        limit: int = 100,
        offset: int = 0
    ) -> List[FinancialReport]:
        query = self.db.query(FinancialReport).filter(FinancialReport.company_id == self.company_id)
        if report_type:
            query = query.filter(FinancialReport.report_type == report_type)
        query = query.order_by(FinancialReport.created_at.desc()).offset(offset).limit(limit)
        return retry_read(self.db, query.all)

    @staticmethod
    def get_report(db, report_id: UUID, auth: AuthContext) -> FinancialReport:
        report = retry_read(db, lambda: db.query(FinancialReport).filter(FinancialReport.id == report_id).first())
        if not report:
            raise NotFoundError("Financial report not found")
        ensure_company_access(auth, report.company_id, "Financial report")
        return report

    @staticmethod
    def delete_report(db, report_id: UUID, auth: AuthContext) -> None:
        report = FinancialReportService.get_report(db, report_id, auth)
        db.delete(report)
        db.commit()
        logger.info(f"Financial report {report_id} deleted")
