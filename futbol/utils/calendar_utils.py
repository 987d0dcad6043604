"""
Calendar helpers: Google Calendar links and ICS invites for a game.

Times are local to the league; ICS and Google dates are written as
floating local times (no Z suffix), matching what players see on the pitch.
"""

from datetime import date, datetime, timedelta
from typing import Dict, List, Optional
from urllib.parse import urlencode

from futbol.utils.constants import DEFAULT_GAME_TIME, GAME_DURATION_HOURS, GAME_TITLE

DEFAULT_LOCATION = "Cancha por definir"


def parse_game_time(value: Optional[str]) -> tuple:
    """
    Parse an HH:MM string into (hours, minutes).

    Raises:
        ValueError: If the time is malformed
    """
    value = value or DEFAULT_GAME_TIME
    try:
        hours_str, minutes_str = value.split(":")
        hours, minutes = int(hours_str), int(minutes_str)
    except (AttributeError, ValueError):
        raise ValueError(f"Hora inválida: {value}")
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValueError(f"Hora inválida: {value}")
    return hours, minutes


def game_window(game_date: date, custom_time: Optional[str] = None) -> tuple:
    """Return (start, end) datetimes for a game."""
    hours, minutes = parse_game_time(custom_time)
    start = datetime(game_date.year, game_date.month, game_date.day, hours, minutes)
    return start, start + timedelta(hours=GAME_DURATION_HOURS)


def _format_calendar_datetime(value: datetime) -> str:
    return value.strftime("%Y%m%dT%H%M%S")


def _participants_description(participants: Optional[List[Dict]]) -> str:
    if not participants:
        return "Partido de fútbol organizado automáticamente"
    lines = "\n".join(f"• {p.get('name')} ({p.get('email')})" for p in participants)
    return f"Partido organizado con {len(participants)} jugadores.\n\nParticipantes:\n{lines}"


def build_location(location: Optional[str] = None, maps_link: Optional[str] = None) -> str:
    location = location or DEFAULT_LOCATION
    return f"{location} - {maps_link}" if maps_link else location


def google_calendar_url(
    game_date: date,
    custom_time: Optional[str] = None,
    location: Optional[str] = None,
    participants: Optional[List[Dict]] = None,
) -> str:
    """Link that opens a pre-filled Google Calendar event."""
    start, end = game_window(game_date, custom_time)
    params = {
        "action": "TEMPLATE",
        "text": GAME_TITLE,
        "dates": f"{_format_calendar_datetime(start)}/{_format_calendar_datetime(end)}",
        "details": _participants_description(participants),
        "location": location or DEFAULT_LOCATION,
    }
    return f"https://calendar.google.com/calendar/render?{urlencode(params)}"


def build_ics(
    game_id: str,
    game_date: date,
    custom_time: Optional[str] = None,
    location: Optional[str] = None,
    maps_link: Optional[str] = None,
    participants: Optional[List[Dict]] = None,
) -> str:
    """Render an ICS (RFC 5545) invite for a game."""
    start, end = game_window(game_date, custom_time)
    description = _participants_description(participants).replace("\n", "\\n")
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//Futbol Domingos//ES",
        "BEGIN:VEVENT",
        f"UID:futbol_{game_id}@futbol-domingos",
        f"DTSTART:{_format_calendar_datetime(start)}",
        f"DTEND:{_format_calendar_datetime(end)}",
        f"SUMMARY:{GAME_TITLE}",
        f"DESCRIPTION:{description}",
        f"LOCATION:{build_location(location, maps_link)}",
    ]
    lines.extend(f"ATTENDEE:mailto:{p['email']}" for p in participants or [] if p.get("email"))
    lines.extend(["STATUS:CONFIRMED", "SEQUENCE:0", "END:VEVENT", "END:VCALENDAR"])
    return "\r\n".join(lines)
