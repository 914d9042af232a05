"""
Shared validators and money helpers
"""
import re
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


TIME_OF_DAY_PATTERN = re.compile(r'^([01]?[0-9]|2[0-3]):[0-5][0-9]$')

WEEKDAY_CODES = ["MON", "TUE", "WED", "THU", "FRI", "SAT", "SUN"]

CENT = Decimal("0.01")


def validate_time_of_day(value: str) -> bool:
    """
    Valida una hora en formato 24h HH:MM.
    Acepta '8:00' y '08:00'; rechaza '24:00' y '7:5'.
    """
    return bool(TIME_OF_DAY_PATTERN.match(value or ""))


def parse_time_of_day(value: str) -> tuple:
    """Return (hour, minute) for a validated HH:MM string."""
    hours, minutes = value.split(":")
    return int(hours), int(minutes)


def validate_timezone(name: str) -> bool:
    """True when `name` is a known IANA timezone."""
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


def normalize_weekdays(days: Iterable[str]) -> List[str]:
    """
    Uppercase, deduplicate and order weekday codes Monday-first.
    Raises ValueError on unknown codes.
    """
    cleaned = {day.strip().upper() for day in days}
    unknown = cleaned - set(WEEKDAY_CODES)
    if unknown:
        raise ValueError(f"Invalid day(s): {', '.join(sorted(unknown))}")
    return [day for day in WEEKDAY_CODES if day in cleaned]


def to_money(value: Optional[Decimal]) -> Decimal:
    """Quantize to cents, half up. None counts as zero."""
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)
