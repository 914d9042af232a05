"""
Business-day windows.

A business day is the company's opening interval for a calendar date,
possibly running past midnight (e.g. 18:00-02:00). Windows are half-open
[start, end) and returned as naive UTC so they compare directly with stored
timestamps.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

from app.common.validators import WEEKDAY_CODES, parse_time_of_day, validate_time_of_day
from app.core.config import settings

Window = Tuple[datetime, datetime]


@dataclass
class GeneralHours:
    start: str
    end: str
    operating_days: List[str] = field(default_factory=lambda: list(WEEKDAY_CODES))


@dataclass
class DayHours:
    enabled: bool
    start: Optional[str] = None
    end: Optional[str] = None


@dataclass
class BusinessHoursConfig:
    use_individual_hours: bool
    timezone: str = "UTC"
    general_hours: Optional[GeneralHours] = None
    individual_hours: Dict[str, DayHours] = field(default_factory=dict)


def parse_individual_day_hours(raw: Optional[dict]) -> Dict[str, DayHours]:
    if not raw:
        return {}
    parsed = {}
    for day, config in raw.items():
        if day not in WEEKDAY_CODES or not isinstance(config, dict):
            continue
        parsed[day] = DayHours(
            enabled=bool(config.get("enabled")),
            start=config.get("start"),
            end=config.get("end"),
        )
    return parsed


def company_timezone(company) -> str:
    return company.timezone or settings.DEFAULT_TIMEZONE


def business_hours_from_company(company) -> Optional[BusinessHoursConfig]:
    """
    Build the config the company selected, or None when it has no usable
    business hours (income then uses the calendar day).
    """
    tz_name = company_timezone(company)

    if company.use_individual_hours and company.individual_day_hours:
        return BusinessHoursConfig(
            use_individual_hours=True,
            timezone=tz_name,
            individual_hours=parse_individual_day_hours(company.individual_day_hours),
        )

    if company.business_hours_start and company.business_hours_end:
        return BusinessHoursConfig(
            use_individual_hours=False,
            timezone=tz_name,
            general_hours=GeneralHours(
                start=company.business_hours_start,
                end=company.business_hours_end,
                operating_days=list(company.operating_days or WEEKDAY_CODES),
            ),
        )

    return None


def _local_to_utc(day: date, at: time, tz: ZoneInfo) -> datetime:
    return datetime.combine(day, at, tzinfo=tz).astimezone(timezone.utc).replace(tzinfo=None)


def get_calendar_day_window(day: date, tz_name: str = "UTC") -> Window:
    """[day 00:00, next day 00:00) in the given timezone."""
    tz = ZoneInfo(tz_name)
    return _local_to_utc(day, time.min, tz), _local_to_utc(day + timedelta(days=1), time.min, tz)


def get_calendar_range_window(start_day: date, end_day: date, tz_name: str = "UTC") -> Window:
    """[start_day 00:00, end_day + 1 00:00)."""
    tz = ZoneInfo(tz_name)
    return _local_to_utc(start_day, time.min, tz), _local_to_utc(end_day + timedelta(days=1), time.min, tz)


def _hours_for_day(day: date, config: BusinessHoursConfig) -> Optional[Tuple[str, str]]:
    code = WEEKDAY_CODES[day.weekday()]

    if config.use_individual_hours:
        day_hours = config.individual_hours.get(code)
        if not day_hours or not day_hours.enabled or not day_hours.start or not day_hours.end:
            return None
        return day_hours.start, day_hours.end

    general = config.general_hours
    if general is None or code not in general.operating_days:
        return None
    return general.start, general.end


def get_business_day_window(day: date, config: Optional[BusinessHoursConfig]) -> Window:
    """
    Opening interval for `day`. Closing at or before the opening time means
    the business day ends on the following date. Closed or unconfigured days
    fall back to the calendar day.
    """
    if config is None:
        return get_calendar_day_window(day)

    hours = _hours_for_day(day, config)
    if hours is None or not all(validate_time_of_day(value) for value in hours):
        return get_calendar_day_window(day, config.timezone)

    tz = ZoneInfo(config.timezone)
    start_h, start_m = parse_time_of_day(hours[0])
    end_h, end_m = parse_time_of_day(hours[1])
    opens = time(start_h, start_m)
    closes = time(end_h, end_m)

    end_day = day + timedelta(days=1) if closes <= opens else day
    return _local_to_utc(day, opens, tz), _local_to_utc(end_day, closes, tz)


def get_business_day_start(day: date, config: Optional[BusinessHoursConfig]) -> datetime:
    return get_business_day_window(day, config)[0]


def get_business_day_end(day: date, config: Optional[BusinessHoursConfig]) -> datetime:
    return get_business_day_window(day, config)[1]
