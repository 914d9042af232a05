"""
Tests para reportes financieros

Income follows the business day, expenses follow the calendar day.
Rows are inserted with explicit timestamps so window edges can be checked.
The dashboard uses calendar days and months in the company timezone.
"""

import pytest
from datetime import date, datetime
from decimal import Decimal
from sqlalchemy.orm import Session

from app.common.mixins import utcnow
from app.core.config import settings
from app.modules.expenses.models import Expense, ExpenseCategory
from app.modules.inventory.models import InventoryItem, ItemType, MovementType, StockMovement
from app.modules.pos.models import PaymentMethod, PaymentStatus, PosOrder
from app.modules.reports.models import FinancialReport, ReportType
from app.modules.reports.schemas import FinancialReportRequest
from app.modules.reports.services.dashboard import DashboardService
from app.modules.reports.services.financial import FinancialReportService, report_name
from app.modules.sessions.models import SessionStatus, TableSession
from app.modules.tables.models import TableMaintenance

DAY = date(2025, 3, 10)


def at(day_offset, hour, minute=0):
    return datetime(2025, 3, 10 + day_offset, hour, minute)


@pytest.fixture
def daytime_company(db_session: Session, sample_company):
    """Open 08:00-23:00 every day, UTC."""
    sample_company.timezone = "UTC"
    sample_company.business_hours_start = "08:00"
    sample_company.business_hours_end = "23:00"
    sample_company.operating_days = ["MON", "TUE", "WED", "THU", "FRI", "SAT", "SUN"]
    db_session.commit()
    return sample_company


@pytest.fixture
def add_order(db_session: Session):
    def _add(company, amount, created_at, payment_status=PaymentStatus.PAID):
        order = PosOrder(
            company_id=company.id,
            amount=Decimal(amount),
            payment_method=PaymentMethod.CASH,
            payment_status=payment_status,
            created_at=created_at
        )
        db_session.add(order)
        db_session.commit()
        return order
    return _add


@pytest.fixture
def add_expense(db_session: Session):
    def _add(company, amount, expense_date, category=ExpenseCategory.MAINTENANCE):
        expense = Expense(
            company_id=company.id,
            category=category,
            description=f"{category.value} expense",
            amount=Decimal(amount),
            expense_date=expense_date
        )
        db_session.add(expense)
        db_session.commit()
        return expense
    return _add


def calculate(db: Session, company, **params):
    params.setdefault("start_date", DAY)
    return FinancialReportService(db, company.id).calculate(FinancialReportRequest(**params))


class TestReportWindows:

    def test_income_uses_business_hours_and_expenses_calendar_day(
        self, db_session: Session, daytime_company, add_order, add_expense
    ):
        add_order(daytime_company, "4.00", at(0, 7, 59))
        add_order(daytime_company, "10.00", at(0, 8, 0))
        add_order(daytime_company, "20.00", at(0, 22, 59))
        add_order(daytime_company, "40.00", at(0, 23, 0))
        add_order(daytime_company, "80.00", at(0, 12, 0), payment_status=PaymentStatus.UNPAID)

        add_expense(daytime_company, "5.00", at(0, 0, 30))
        add_expense(daytime_company, "7.00", at(0, 23, 59))
        add_expense(daytime_company, "100.00", at(1, 0, 0))

        summary = calculate(db_session, daytime_company)

        assert summary.income_window_start == at(0, 8)
        assert summary.income_window_end == at(0, 23)
        assert summary.expense_window_start == at(0, 0)
        assert summary.expense_window_end == at(1, 0)

        assert summary.sales_income == Decimal("30.00")
        assert summary.maintenance_cost == Decimal("12.00")
        assert summary.total_expense == Decimal("12.00")
        assert summary.net_profit == Decimal("18.00")
        assert summary.name == "Daily report 2025-03-10"

    def test_overnight_hours_count_toward_opening_day(
        self, db_session: Session, sample_company, add_order, add_expense
    ):
        sample_company.timezone = "UTC"
        sample_company.business_hours_start = "18:00"
        sample_company.business_hours_end = "02:00"
        db_session.commit()

        add_order(sample_company, "10.00", at(0, 19))
        add_order(sample_company, "15.00", at(1, 1, 30))
        add_order(sample_company, "99.00", at(1, 2, 0))
        add_expense(sample_company, "9.00", at(1, 1, 0), category=ExpenseCategory.UTILITIES)

        summary = calculate(db_session, sample_company)

        assert summary.income_window_end == at(1, 2)
        assert summary.sales_income == Decimal("25.00")
        assert summary.utility_cost == Decimal("0.00")

    def test_without_business_hours_income_uses_calendar_day(self, db_session: Session, sample_company, add_order):
        sample_company.timezone = "UTC"
        db_session.commit()
        add_order(sample_company, "10.00", at(0, 0, 5))
        add_order(sample_company, "10.00", at(0, 23, 55))

        summary = calculate(db_session, sample_company)
        assert summary.income_window_start == summary.expense_window_start == at(0, 0)
        assert summary.sales_income == Decimal("20.00")

    def test_company_timezone_shifts_windows(self, db_session: Session, sample_company):
        sample_company.timezone = "America/Bogota"
        db_session.commit()

        summary = calculate(db_session, sample_company)
        assert summary.expense_window_start == at(0, 5)
        assert summary.expense_window_end == at(1, 5)

    def test_custom_instants_are_used_literally(self, db_session: Session, daytime_company, add_order, add_expense):
        add_order(daytime_company, "10.00", at(0, 3))
        add_expense(daytime_company, "4.00", at(0, 3), category=ExpenseCategory.STAFF)

        summary = calculate(
            db_session, daytime_company,
            report_type=ReportType.CUSTOM, end_date=DAY, start_at=at(0, 2), end_at=at(0, 4)
        )
        assert summary.income_window_start == summary.expense_window_start == at(0, 2)
        assert summary.sales_income == Decimal("10.00")
        assert summary.staff_cost == Decimal("4.00")

    def test_multi_day_range(self, db_session: Session, daytime_company, add_order):
        add_order(daytime_company, "10.00", at(0, 9))
        add_order(daytime_company, "10.00", at(6, 22))
        add_order(daytime_company, "10.00", at(7, 9))

        summary = calculate(
            db_session, daytime_company, report_type=ReportType.WEEKLY, end_date=date(2025, 3, 16)
        )
        assert summary.sales_income == Decimal("20.00")
        assert summary.name == "Weekly report 2025-03-10 - 2025-03-16"


class TestReportFigures:

    def test_table_rent_counts_completed_sessions(self, db_session: Session, daytime_company, sample_table):
        for status, cost in ((SessionStatus.COMPLETED, "15.00"), (SessionStatus.CANCELLED, None)):
            db_session.add(TableSession(
                company_id=daytime_company.id,
                table_id=sample_table.id,
                started_at=at(0, 10),
                ended_at=at(0, 11, 30),
                status=status,
                total_cost=Decimal(cost) if cost else None
            ))
        db_session.commit()

        summary = calculate(db_session, daytime_company)
        assert summary.table_rent_income == Decimal("15.00")
        assert summary.total_income == Decimal("15.00")

    def test_purchases_and_maintenance(self, db_session: Session, daytime_company, sample_table, make_item):
        beer = make_item(name="Cerveza", quantity=0)
        chalk = make_item(name="Tiza", quantity=0, item_type=ItemType.INTERNAL_USE)
        for item, cost in ((beer, "2.00"), (chalk, "0.50")):
            db_session.add(StockMovement(
                company_id=daytime_company.id,
                item_id=item.id,
                movement_type=MovementType.PURCHASE,
                quantity=10,
                cost_price=Decimal(cost),
                created_at=at(0, 6)
            ))
        db_session.add(TableMaintenance(
            company_id=daytime_company.id,
            table_id=sample_table.id,
            description="Cambio de paño",
            cost=Decimal("30.00"),
            maintenance_at=at(0, 7)
        ))
        db_session.add(Expense(
            company_id=daytime_company.id,
            category=ExpenseCategory.RENT,
            description="Arriendo",
            amount=Decimal("50.00"),
            expense_date=at(0, 9)
        ))
        db_session.commit()

        summary = calculate(db_session, daytime_company)
        assert summary.inventory_cost == Decimal("20.00")
        assert summary.maintenance_cost == Decimal("30.00")
        assert summary.other_expenses == Decimal("55.00")
        assert summary.total_expense == Decimal("105.00")
        assert summary.net_profit == Decimal("-105.00")

    def test_other_companies_are_excluded(self, db_session: Session, daytime_company, other_company, add_order):
        add_order(daytime_company, "10.00", at(0, 12))
        add_order(other_company, "500.00", at(0, 12))

        assert calculate(db_session, daytime_company).sales_income == Decimal("10.00")


class TestReportNames:

    @pytest.mark.parametrize("report_type,start,end,expected", [
        (ReportType.DAILY, date(2025, 1, 5), date(2025, 1, 5), "Daily report 2025-01-05"),
        (ReportType.MONTHLY, date(2025, 1, 1), date(2025, 1, 31), "Monthly report January 2025"),
        (ReportType.QUARTERLY, date(2025, 4, 1), date(2025, 6, 30), "Q2 2025"),
        (ReportType.ANNUAL, date(2025, 1, 1), date(2025, 12, 31), "Annual report 2025"),
        (ReportType.CUSTOM, date(2025, 1, 3), date(2025, 1, 9), "Custom report 2025-01-03 - 2025-01-09"),
    ])
    def test_report_name(self, report_type, start, end, expected):
        assert report_name(report_type, start, end) == expected

    def test_daily_ignores_end_date(self):
        request = FinancialReportRequest(start_date=DAY, end_date=date(2025, 3, 20))
        assert request.end_date == DAY


class TestReportEndpoints:

    def test_generated_report_matches_live_data(
        self, client, auth_headers, db_session: Session, daytime_company, add_order, add_expense
    ):
        add_order(daytime_company, "10.00", at(0, 9))
        add_expense(daytime_company, "3.00", at(0, 1))

        live = client.get("/financial-reports/data?start_date=2025-03-10", headers=auth_headers)
        assert live.status_code == 200

        saved = client.post(
            "/financial-reports/generate",
            json={"report_type": "DAILY", "start_date": "2025-03-10"},
            headers=auth_headers
        )
        assert saved.status_code == 201

        for field in ("sales_income", "total_income", "maintenance_cost", "total_expense", "net_profit"):
            assert Decimal(saved.json()[field]) == Decimal(live.json()[field])
        assert Decimal(saved.json()["net_profit"]) == Decimal("7.00")

        report_id = saved.json()["id"]
        assert client.get(f"/financial-reports/{report_id}", headers=auth_headers).status_code == 200
        assert len(client.get("/financial-reports/", headers=auth_headers).json()) == 1
        assert client.delete(f"/financial-reports/{report_id}", headers=auth_headers).status_code == 204
        db_session.expire_all()
        assert db_session.query(FinancialReport).count() == 0

    def test_seller_cannot_see_reports(self, client, seller_headers):
        assert client.get("/financial-reports/data?start_date=2025-03-10", headers=seller_headers).status_code == 403
        response = client.post(
            "/financial-reports/generate", json={"start_date": "2025-03-10"}, headers=seller_headers
        )
        assert response.status_code == 403

    def test_csv_export(self, client, auth_headers, daytime_company, add_order):
        add_order(daytime_company, "10.00", at(0, 9))

        response = client.get("/financial-reports/data?start_date=2025-03-10&export=csv", headers=auth_headers)
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        lines = response.text.strip().splitlines()
        assert lines[0].startswith("Report,Type,Start Date,End Date,Currency,Sales Income")
        assert lines[1].startswith(f"Daily report 2025-03-10,DAILY,2025-03-10,2025-03-10,{settings.CURRENCY},10.00")

    def test_range_report_requires_end_date(self, client, auth_headers):
        response = client.get(
            "/financial-reports/data?start_date=2025-03-10&report_type=WEEKLY", headers=auth_headers
        )
        assert response.status_code == 400

    def test_reports_are_company_scoped(self, client, auth_headers, other_admin_headers):
        saved = client.post(
            "/financial-reports/generate", json={"start_date": "2025-03-10"}, headers=auth_headers
        ).json()
        assert client.get(f"/financial-reports/{saved['id']}", headers=other_admin_headers).status_code == 404


class TestDashboard:

    def test_today_and_month_follow_company_timezone(
        self, db_session: Session, sample_company, sample_table, second_table, make_item, add_order
    ):
        sample_company.timezone = "America/Bogota"
        db_session.add(TableSession(
            company_id=sample_company.id, table_id=sample_table.id,
            status=SessionStatus.ACTIVE, started_at=at(0, 20)
        ))
        db_session.commit()
        make_item(name="Cerveza", quantity=10)
        make_item(name="Papas", quantity=1)

        add_order(sample_company, "10.00", at(0, 6))     # 01:00 local, today
        add_order(sample_company, "7.00", at(0, 4))      # 23:00 local the day before
        add_order(sample_company, "4.00", at(-9, 12))    # 1st of the month
        add_order(sample_company, "100.00", datetime(2025, 2, 28, 12))
        add_order(sample_company, "50.00", at(0, 8), payment_status=PaymentStatus.UNPAID)

        # 22:00 on the 10th in Bogota
        stats = DashboardService(db_session, sample_company.id).get_stats(now=at(1, 3))

        assert stats.date == DAY
        assert stats.tables_count == 2
        assert stats.active_sessions_count == 1
        assert stats.inventory_items_count == 2
        assert stats.low_stock_items_count == 1
        assert stats.today_sales == Decimal("10.00")
        assert stats.month_sales == Decimal("21.00")

    def test_stats_endpoint_is_open_to_sellers(self, client, seller_headers, sample_company, add_order, other_company):
        add_order(sample_company, "12.50", utcnow())
        add_order(other_company, "99.00", utcnow())

        response = client.get("/dashboard/stats", headers=seller_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["company_id"] == str(sample_company.id)
        assert Decimal(data["today_sales"]) == Decimal("12.50")
        assert Decimal(data["month_sales"]) == Decimal("12.50")

    def test_stats_endpoint_is_company_scoped(self, client, auth_headers, other_company):
        response = client.get(f"/dashboard/stats?company_id={other_company.id}", headers=auth_headers)
        assert response.status_code == 403
