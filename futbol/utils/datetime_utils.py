"""
Datetime utility functions.

All "today" decisions use the league's local time zone, not the server's.
"""

import calendar
import os
from datetime import date, datetime
from typing import List, Tuple
import pytz
from dotenv import load_dotenv

load_dotenv()

LEAGUE_TIMEZONE = os.getenv("LEAGUE_TIMEZONE", "America/Argentina/Buenos_Aires")

SUNDAY = 6  # date.weekday() value


def utcnow() -> datetime:
    """
    Get current UTC datetime using pytz.UTC.

    Returns:
        Current UTC datetime with pytz timezone information
    """
    return datetime.now(pytz.UTC)


def league_now() -> datetime:
    """Current datetime in the league time zone."""
    return datetime.now(pytz.timezone(LEAGUE_TIMEZONE))


def league_today() -> date:
    """Current calendar date in the league time zone."""
    return league_now().date()


def month_index(year: int, month: int) -> int:
    """Absolute month number, handy for comparing (year, month) pairs."""
    return year * 12 + (month - 1)


def add_months(year: int, month: int, offset: int) -> Tuple[int, int]:
    """Return (year, month) shifted by offset months."""
    idx = month_index(year, month) + offset
    return idx // 12, idx % 12 + 1


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    """
    First day of the month and first day of the next one.

    Raises:
        ValueError: If month is not 1-12
    """
    if not 1 <= month <= 12:
        raise ValueError("El mes debe estar entre 1 y 12")
    next_year, next_month = add_months(year, month, 1)
    return date(year, month, 1), date(next_year, next_month, 1)


def sundays_in_month(year: int, month: int) -> List[int]:
    """Day numbers of every Sunday in the given month."""
    _, days = calendar.monthrange(year, month)
    return [d for d in range(1, days + 1) if date(year, month, d).weekday() == SUNDAY]


def is_sunday(value: date) -> bool:
    return value.weekday() == SUNDAY


SPANISH_MONTHS = [
    "enero", "febrero", "marzo", "abril", "mayo", "junio",
    "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
]
SPANISH_WEEKDAYS = ["lunes", "martes", "miércoles", "jueves", "viernes", "sábado", "domingo"]


def format_spanish_date(value: date) -> str:
    """Long Spanish date, e.g. 'domingo 5 de octubre de 2025'."""
    return (
        f"{SPANISH_WEEKDAYS[value.weekday()]} {value.day} de "
        f"{SPANISH_MONTHS[value.month - 1]} de {value.year}"
    )


def spanish_month_name(month: int) -> str:
    return SPANISH_MONTHS[month - 1]
