"""
Session cost engine: elapsed wall-clock time billed at an hourly rate.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional

from app.common.validators import to_money

MS_PER_HOUR = Decimal(3_600_000)


def elapsed_milliseconds(started_at: datetime, ended_at: datetime) -> int:
    delta = ended_at - started_at
    return max(0, (delta.days * 86_400_000) + (delta.seconds * 1000) + (delta.microseconds // 1000))


def elapsed_hours(started_at: datetime, ended_at: datetime) -> Decimal:
    """Fractional hours; never rounded to whole hours."""
    return Decimal(elapsed_milliseconds(started_at, ended_at)) / MS_PER_HOUR


def compute_session_cost(started_at: datetime, ended_at: datetime, hourly_rate: Optional[Decimal]) -> Decimal:
    """elapsed hours x hourly rate, rounded to cents. No rate means no charge."""
    if not hourly_rate:
        return to_money(Decimal("0"))
    return to_money(elapsed_hours(started_at, ended_at) * Decimal(hourly_rate))


def resolve_hourly_rate(table) -> Optional[Decimal]:
    """Table rate, falling back to the company default."""
    if table.hourly_rate is not None:
        return table.hourly_rate
    company = table.company
    return company.default_hourly_rate if company is not None else None
