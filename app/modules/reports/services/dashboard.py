"""
Dashboard Service

Counts and running sales totals for the landing page. Days and months are
calendar periods in the company timezone, not business days.
"""

from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from app.common.mixins import utcnow
from app.modules.company.utils import company_timezone, get_calendar_day_window
from app.modules.inventory.models import InventoryItem
from app.modules.pos.models import PaymentStatus, PosOrder
from app.modules.sessions.models import SessionStatus, TableSession
from app.modules.tables.models import Table
from ..schemas import DashboardStats
from .base import BaseReportService


class DashboardService(BaseReportService):

    def get_stats(self, now: Optional[datetime] = None) -> DashboardStats:
        now = now or utcnow()
        tz_name = company_timezone(self.company)
        today = now.replace(tzinfo=timezone.utc).astimezone(ZoneInfo(tz_name)).date()
        day_start, day_end = get_calendar_day_window(today, tz_name)
        month_start, _ = get_calendar_day_window(today.replace(day=1), tz_name)

        def paid_sales(start: datetime):
            return self._sum(
                PosOrder.amount,
                PosOrder.company_id == self.company_id,
                PosOrder.payment_status == PaymentStatus.PAID,
                PosOrder.created_at >= start,
                PosOrder.created_at < day_end,
            )

        return DashboardStats(
            company_id=self.company_id,
            date=today,
            tables_count=self._count(Table.id, Table.company_id == self.company_id),
            active_sessions_count=self._count(
                TableSession.id,
                TableSession.company_id == self.company_id,
                TableSession.status == SessionStatus.ACTIVE,
            ),
            inventory_items_count=self._count(InventoryItem.id, InventoryItem.company_id == self.company_id),
            low_stock_items_count=self._count(
                InventoryItem.id,
                InventoryItem.company_id == self.company_id,
                InventoryItem.is_active.is_(True),
                InventoryItem.quantity <= InventoryItem.critical_threshold,
            ),
            today_sales=paid_sales(day_start),
            month_sales=paid_sales(month_start),
        )
