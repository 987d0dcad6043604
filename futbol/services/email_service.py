"""
Email service using SendGrid for sending league notifications.

Every public send function returns True/False and never raises: email
problems must not break the request (or batch) that triggered them.
"""

import os
import logging
from datetime import date
from typing import Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail, Email, To
from dotenv import load_dotenv
from futbol.services import settings_service
from futbol.utils.datetime_utils import format_spanish_date, spanish_month_name

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

# SendGrid Configuration
SENDGRID_API_KEY = os.getenv("SENDGRID_API_KEY")
SENDGRID_FROM_EMAIL = os.getenv("SENDGRID_FROM_EMAIL", "noreply@futbol-domingos.com")
SENDGRID_FROM_NAME = os.getenv("SENDGRID_FROM_NAME", "Fútbol Domingos")
ENABLE_EMAIL = settings_service.get_bool_env("ENABLE_EMAIL", default=True)
APP_URL = os.getenv("APP_URL", "http://localhost:3000").rstrip("/")

# Delay between sequential sends in bulk operations (provider rate limit)
EMAIL_SEND_DELAY_SECONDS = float(os.getenv("EMAIL_SEND_DELAY_SECONDS", "0.5"))


async def is_enabled(session: Optional[AsyncSession] = None) -> bool:
    """
    Check if email is enabled, checking database first.

    Args:
        session: Optional database session for checking database settings

    Returns:
        True if email is enabled, False otherwise
    """
    try:
        return await settings_service.get_bool_setting(
            session, "enable_email", env_var="ENABLE_EMAIL", default=True, fallback_to_cache=True
        )
    except Exception as e:
        logger.warning(f"Error getting ENABLE_EMAIL from settings, using default: {e}")
        return ENABLE_EMAIL


def is_configured() -> bool:
    return bool(SENDGRID_API_KEY)


async def send_email(
    to_emails: List[str],
    subject: str,
    text_body: str,
    html_body: Optional[str] = None,
    session: Optional[AsyncSession] = None,
) -> bool:
    """
    Send one email via SendGrid.

    Args:
        to_emails: Recipient addresses (sent as a single message)
        subject: Subject line
        text_body: Plain text body
        html_body: Optional HTML body
        session: Optional database session for checking database settings

    Returns:
        bool: True if the email was sent (or sending is disabled), False on failure
    """
    recipients = [e for e in to_emails if e]
    if not recipients:
        logger.warning(f"No recipients for email '{subject}', skipping")
        return False

    if not await is_enabled(session):
        logger.info(f"Email sending is disabled. Skipped '{subject}' to {len(recipients)} recipient(s)")
        return True

    if not SENDGRID_API_KEY:
        logger.warning(f"SENDGRID_API_KEY not configured. Skipped '{subject}'")
        return True

    try:
        message = Mail(
            from_email=Email(SENDGRID_FROM_EMAIL, SENDGRID_FROM_NAME),
            to_emails=[To(e) for e in recipients],
            subject=subject,
            plain_text_content=text_body,
            html_content=html_body or text_body.replace("\n", "<br>"),
        )

        sg = SendGridAPIClient(SENDGRID_API_KEY)
        response = sg.send(message)

        if 200 <= response.status_code < 300:
            logger.info(f"Email '{subject}' sent to {len(recipients)} recipient(s)")
            return True
        logger.error(f"SendGrid returned status {response.status_code}: {response.body}")
        return False
    except Exception as e:
        logger.error(f"Failed to send email '{subject}': {str(e)}")
        return False


def _html(title: str, paragraphs: List[str], button: Optional[tuple] = None) -> str:
    body = "".join(f"<p>{p}</p>" for p in paragraphs)
    if button:
        label, url = button
        body += (
            f'<p><a href="{url}" style="background:#16a34a;color:#fff;padding:10px 18px;'
            f'border-radius:6px;text-decoration:none">{label}</a></p>'
        )
    return (
        '<div style="font-family:sans-serif;max-width:600px;margin:0 auto">'
        f'<h2 style="color:#16a34a">{title}</h2>{body}'
        '<hr><p style="color:#888;font-size:12px">Fútbol Domingos</p></div>'
    )


async def send_admin_match_ready(
    admin_emails: List[str],
    game_date: date,
    participant_names: List[str],
    waitlist_count: int = 0,
) -> bool:
    """Tell the admins a Sunday reached quorum and needs a field reservation."""
    subject = f"🚨 ADMIN: Partido listo con {len(participant_names)} jugadores - {game_date.isoformat()}"
    lines = [
        f"El {format_spanish_date(game_date)} alcanzó el mínimo de jugadores.",
        "",
        "Jugadores:",
        *[f"• {name}" for name in participant_names],
        "",
        f"En lista de espera: {waitlist_count}",
        "",
        "Reservá la cancha y confirmá el partido desde el panel de administración.",
        f"{APP_URL}/dashboard/admin",
    ]
    html = _html(
        "Partido listo para confirmar",
        [
            f"El <strong>{format_spanish_date(game_date)}</strong> alcanzó el mínimo de jugadores.",
            "<br>".join(participant_names),
            f"En lista de espera: {waitlist_count}",
        ],
        ("Ir al panel", f"{APP_URL}/dashboard/admin"),
    )
    return await send_email(admin_emails, subject, "\n".join(lines), html)


async def send_voting_open(to_emails: List[str], month: int, year: int) -> bool:
    """Announce that a new month is open for availability voting."""
    month_name = spanish_month_name(month).capitalize()
    subject = f"📅 Ya podés votar tu disponibilidad para {month_name} {year}"
    text = (
        f"¡Se abrió la votación para {month_name} {year}!\n\n"
        f"Marcá los domingos que podés jugar: {APP_URL}/dashboard"
    )
    html = _html(
        f"Votación abierta: {month_name} {year}",
        ["Marcá los domingos que podés jugar."],
        ("Votar ahora", f"{APP_URL}/dashboard"),
    )
    return await send_email(to_emails, subject, text, html)


async def send_voting_reminder(user_email: str, user_name: str, month: int, year: int) -> bool:
    """Remind one player to mark their availability."""
    month_name = spanish_month_name(month).capitalize()
    subject = f"🗳️ Recordatorio: Marca tu disponibilidad para {month_name}"
    text = (
        f"Hola {user_name},\n\n"
        f"Todavía no marcaste tu disponibilidad para {month_name} {year}.\n"
        f"Votá acá: {APP_URL}/dashboard"
    )
    html = _html(
        f"Hola {user_name}",
        [f"Todavía no marcaste tu disponibilidad para <strong>{month_name} {year}</strong>."],
        ("Marcar disponibilidad", f"{APP_URL}/dashboard"),
    )
    return await send_email([user_email], subject, text, html)


async def send_match_confirmation(
    user_email: str,
    user_name: str,
    game_date: date,
    game_time: str,
    reservation_info: Optional[Dict] = None,
    calendar_url: Optional[str] = None,
) -> bool:
    """Tell a participant the game is confirmed, with place, time and calendar link."""
    reservation_info = reservation_info or {}
    location = reservation_info.get("location") or "Cancha por definir"
    subject = f"⚽ Partido confirmado - {game_date.isoformat()}"
    lines = [
        f"Hola {user_name},",
        "",
        f"El partido del {format_spanish_date(game_date)} está confirmado.",
        f"Hora: {game_time}",
        f"Lugar: {location}",
    ]
    if reservation_info.get("maps_link"):
        lines.append(f"Mapa: {reservation_info['maps_link']}")
    if reservation_info.get("cost") is not None:
        lines.append(f"Costo: ${reservation_info['cost']}")
    if reservation_info.get("payment_alias"):
        lines.append(f"Alias para pagar: {reservation_info['payment_alias']}")
    if calendar_url:
        lines.extend(["", f"Agregar al calendario: {calendar_url}"])
    html = _html(
        "Partido confirmado",
        [f"Hola {user_name},"] + lines[2:],
        ("Agregar a Google Calendar", calendar_url) if calendar_url else None,
    )
    return await send_email([user_email], subject, "\n".join(lines), html)


async def send_match_completed(
    user_email: str,
    user_name: str,
    game_date: date,
    game_id: str,
    team1_score: int,
    team2_score: int,
    payment_alias: Optional[str] = None,
) -> bool:
    """Share the result and invite the participant to vote for the MVP."""
    subject = f"🏆 Resultado del partido - {game_date.isoformat()}"
    vote_url = f"{APP_URL}/dashboard/games?game={game_id}"
    lines = [
        f"Hola {user_name},",
        "",
        f"Resultado del {format_spanish_date(game_date)}: Equipo 1 {team1_score} - {team2_score} Equipo 2",
        "",
        f"Votá al MVP del partido: {vote_url}",
    ]
    if payment_alias:
        lines.extend(["", f"Recordá pagar tu parte de la cancha al alias {payment_alias}"])
    html = _html("Resultado del partido", [f"Hola {user_name},"] + lines[2:], ("Votar MVP", vote_url))
    return await send_email([user_email], subject, "\n".join(lines), html)


async def send_mvp_reminder(user_email: str, user_name: str, game_date: date, game_id: str) -> bool:
    """Remind a participant who has not voted for the MVP yet."""
    subject = f"🏅 Recordatorio: votá al MVP del {game_date.isoformat()}"
    vote_url = f"{APP_URL}/dashboard/games?game={game_id}"
    text = (
        f"Hola {user_name},\n\n"
        f"Todavía no votaste al MVP del partido del {format_spanish_date(game_date)}.\n"
        f"Votá acá: {vote_url}"
    )
    html = _html(
        f"Hola {user_name}",
        [f"Todavía no votaste al MVP del partido del {format_spanish_date(game_date)}."],
        ("Votar MVP", vote_url),
    )
    return await send_email([user_email], subject, text, html)


async def send_test_email(to_email: str, session: Optional[AsyncSession] = None) -> bool:
    subject = "✅ Email de prueba - Fútbol Domingos"
    text = "Si recibiste este email, la configuración de SendGrid funciona."
    return await send_email([to_email], subject, text, session=session)


async def get_configuration_status(session: Optional[AsyncSession] = None) -> Dict:
    """Describe the email configuration without exposing secrets."""
    return {
        "enabled": await is_enabled(session),
        "configured": is_configured(),
        "from_email": SENDGRID_FROM_EMAIL,
        "send_delay_seconds": EMAIL_SEND_DELAY_SECONDS,
    }
