"""Tests for the calendar and date helpers."""

from datetime import date
from urllib.parse import parse_qs, urlparse

import pytest

from futbol.utils import calendar_utils
from futbol.utils.datetime_utils import (
    add_months,
    format_spanish_date,
    is_sunday,
    month_bounds,
    month_index,
    sundays_in_month,
)

GAME_DAY = date(2025, 10, 5)


def test_parse_game_time():
    assert calendar_utils.parse_game_time("19:30") == (19, 30)
    assert calendar_utils.parse_game_time(None) == (10, 0)
    for bad in ("25:00", "18", "ab:cd"):
        with pytest.raises(ValueError):
            calendar_utils.parse_game_time(bad)


def test_game_window_lasts_one_hour():
    start, end = calendar_utils.game_window(GAME_DAY, "20:15")
    assert (start.hour, start.minute) == (20, 15)
    assert (end - start).total_seconds() == 3600


def test_google_calendar_url():
    url = calendar_utils.google_calendar_url(
        GAME_DAY, "18:00", "Cancha Norte", [{"name": "Ana", "email": "ana@example.com"}]
    )
    params = parse_qs(urlparse(url).query)

    assert params["action"] == ["TEMPLATE"]
    assert params["dates"] == ["20251005T180000/20251005T190000"]
    assert params["location"] == ["Cancha Norte"]
    assert "ana@example.com" in params["details"][0]


def test_build_ics():
    ics = calendar_utils.build_ics(
        "game_1",
        GAME_DAY,
        "18:00",
        "Cancha Norte",
        "https://maps.example.com/x",
        [{"name": "Ana", "email": "ana@example.com"}, {"name": "Sin mail", "email": None}],
    )
    lines = ics.split("\r\n")

    assert lines[0] == "BEGIN:VCALENDAR"
    assert lines[-1] == "END:VCALENDAR"
    assert "DTSTART:20251005T180000" in lines
    assert "DTEND:20251005T190000" in lines
    assert "LOCATION:Cancha Norte - https://maps.example.com/x" in lines
    assert [line for line in lines if line.startswith("ATTENDEE")] == ["ATTENDEE:mailto:ana@example.com"]


def test_build_location_default():
    assert calendar_utils.build_location() == calendar_utils.DEFAULT_LOCATION


def test_month_arithmetic():
    assert add_months(2025, 12, 1) == (2026, 1)
    assert add_months(2025, 1, -1) == (2024, 12)
    assert month_index(2026, 1) - month_index(2025, 12) == 1


def test_month_bounds():
    assert month_bounds(2025, 12) == (date(2025, 12, 1), date(2026, 1, 1))
    with pytest.raises(ValueError):
        month_bounds(2025, 13)


def test_sundays_in_month():
    assert sundays_in_month(2025, 10) == [5, 12, 19, 26]
    assert all(is_sunday(date(2025, 11, d)) for d in sundays_in_month(2025, 11))


def test_format_spanish_date():
    assert format_spanish_date(GAME_DAY) == "domingo 5 de octubre de 2025"
