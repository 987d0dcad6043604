"""
Bulk email sends: voting reminders, match confirmations and MVP reminders.

Sends run one after another with a fixed delay between them (provider rate
limit). A failed send is counted and the batch carries on.
"""

import asyncio
import logging
from functools import partial
from typing import Awaitable, Callable, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from futbol.database.models import Game, GameStatus, MonthlyAvailability, ReminderStatus, User
from futbol.services import email_service, game_service, mvp_service, settings_service, user_service
from futbol.services.email_queue import get_email_queue
from futbol.utils.calendar_utils import google_calendar_url
from futbol.utils.constants import DEFAULT_GAME_TIME, MAX_PARTICIPANTS
from futbol.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)


async def send_sequentially(
    recipients: List[Dict], send_one: Callable[[Dict], Awaitable[bool]]
) -> Dict:
    """
    Send to each recipient in turn, sleeping between sends.

    Returns:
        Dict with successful/failed counts and the addresses of each
    """
    successful: List[str] = []
    failed: List[str] = []
    for index, recipient in enumerate(recipients):
        try:
            ok = await send_one(recipient)
        except Exception as e:
            logger.error(f"Error sending to {recipient.get('email')}: {e}")
            ok = False
        (successful if ok else failed).append(recipient.get("email"))

        if index < len(recipients) - 1 and email_service.EMAIL_SEND_DELAY_SECONDS > 0:
            await asyncio.sleep(email_service.EMAIL_SEND_DELAY_SECONDS)

    return {
        "successful": len(successful),
        "failed": len(failed),
        "successful_emails": successful,
        "failed_emails": failed,
    }


async def get_users_needing_reminders(session: AsyncSession, month: int, year: int) -> List[Dict]:
    """
    Whitelisted, non-admin users who have not voted for the month and whose
    reminders are still active (no reminder row means active).
    """
    voted = select(MonthlyAvailability.user_id).where(
        MonthlyAvailability.month == month,
        MonthlyAvailability.year == year,
        MonthlyAvailability.has_voted == True,  # noqa: E712
    )
    inactive = select(ReminderStatus.user_id).where(
        ReminderStatus.month == month,
        ReminderStatus.year == year,
        ReminderStatus.is_active == False,  # noqa: E712
    )
    result = await session.execute(
        select(User)
        .where(
            User.is_whitelisted == True,  # noqa: E712
            User.is_admin == False,  # noqa: E712
            User.id.not_in(voted),
            User.id.not_in(inactive),
        )
        .order_by(User.name.asc())
    )
    return [user_service.user_to_dict(u) for u in result.scalars().all()]


async def record_reminder_sent(session: AsyncSession, user_id: str, month: int, year: int) -> None:
    """Bump the reminder counter for a user. Does not commit."""
    result = await session.execute(
        select(ReminderStatus).where(
            ReminderStatus.user_id == user_id,
            ReminderStatus.month == month,
            ReminderStatus.year == year,
        )
    )
    status = result.scalar_one_or_none()
    if status is None:
        status = ReminderStatus(user_id=user_id, month=month, year=year, reminder_count=0, is_active=True)
        session.add(status)
    status.reminder_count = (status.reminder_count or 0) + 1
    status.last_reminder_sent = utcnow()


async def preview_daily_reminders(session: AsyncSession) -> Dict:
    month, year = await settings_service.get_active_month(session)
    users = await get_users_needing_reminders(session, month, year)
    return {
        "success": True,
        "active_month": {"month": month, "year": year},
        "users_needing_reminders": [
            {"id": u["id"], "name": u["name"], "email": u["email"]} for u in users
        ],
        "count": len(users),
    }


async def send_voting_reminders(session: AsyncSession) -> Dict:
    """Send the voting reminder for the active month to everyone who still needs it."""
    month, year = await settings_service.get_active_month(session)
    users = await get_users_needing_reminders(session, month, year)
    if not users:
        return {
            "success": True,
            "message": "No hay usuarios que necesiten recordatorio",
            "count": 0,
            "successful": 0,
            "failed": 0,
        }

    async def send_one(user: Dict) -> bool:
        return await email_service.send_voting_reminder(
            user["email"], user_service.display_name(user), month, year
        )

    outcome = await send_sequentially(users, send_one)
    sent = set(outcome["successful_emails"])
    for user in users:
        if user["email"] in sent:
            await record_reminder_sent(session, user["id"], month, year)
    await session.commit()

    logger.info(
        f"Voting reminders for {month}/{year}: {outcome['successful']} sent, {outcome['failed']} failed"
    )
    return {
        "success": True,
        "message": f"Recordatorios enviados: {outcome['successful']}",
        "count": len(users),
        "active_month": {"month": month, "year": year},
        **outcome,
    }


def _confirmation_sender(game: Game, game_time: str, calendar_url: str):
    async def send_one(user: Dict) -> bool:
        return await email_service.send_match_confirmation(
            user["email"],
            user_service.display_name(user),
            game.date,
            game_time,
            game.reservation_info,
            calendar_url,
        )

    return send_one


async def send_match_confirmations(
    session: AsyncSession, selected_participants: Optional[List[str]] = None
) -> Dict:
    """
    Send the confirmation email for every confirmed, full game, optionally
    only to selected participants.
    """
    result = await session.execute(
        select(Game).where(Game.status == GameStatus.CONFIRMED).order_by(Game.date.asc())
    )
    games = [g for g in result.scalars().all() if len(g.participants or []) >= MAX_PARTICIPANTS]
    if not games:
        raise ValueError("No hay partidos confirmados para notificar")

    totals = {"successful": 0, "failed": 0, "successful_emails": [], "failed_emails": []}
    for game in games:
        users = await user_service.get_users_by_ids(session, game.participants)
        recipients = [users[uid] for uid in game.participants if uid in users]
        if selected_participants is not None:
            recipients = [u for u in recipients if u["id"] in selected_participants]
        game_time = game.custom_time or (game.reservation_info or {}).get("time") or DEFAULT_GAME_TIME
        calendar_url = google_calendar_url(
            game.date, game_time, (game.reservation_info or {}).get("location"), list(users.values())
        )

        outcome = await send_sequentially(
            recipients, _confirmation_sender(game, game_time, calendar_url)
        )
        for key in totals:
            totals[key] += outcome[key]

    logger.info(f"Match confirmations: {totals['successful']} sent, {totals['failed']} failed")
    return {"success": True, "games": len(games), **totals}


async def send_mvp_reminders(session: AsyncSession, game_id: Optional[str] = None) -> Dict:
    """Remind participants who have not voted for the MVP (latest completed game by default)."""
    if game_id:
        game = await game_service.get_game(session, game_id)
    else:
        game = await game_service.get_latest_completed_game(session)
        if game is None:
            raise ValueError("No hay partidos completados")
    if game.status != GameStatus.COMPLETED:
        raise ValueError("El partido no está completado")
    if mvp_service.is_finalized(game):
        raise ValueError("La votación de MVP ya fue finalizada")

    pending = await mvp_service.get_non_voters(session, game.id)

    async def send_one(user: Dict) -> bool:
        return await email_service.send_mvp_reminder(
            user["email"], user_service.display_name(user), game.date, game.id
        )

    outcome = await send_sequentially(pending, send_one)
    logger.info(f"MVP reminders for game {game.id}: {outcome['successful']} sent, {outcome['failed']} failed")
    return {"success": True, "game_id": game.id, "count": len(pending), **outcome}


async def queue_voting_open_email(session: AsyncSession, month: int, year: int) -> int:
    """
    Queue the "voting opened" announcement to every whitelisted user.

    Returns:
        Number of recipients
    """
    users = await user_service.get_users(session, whitelisted_only=True)
    emails = [u["email"] for u in users if u.get("email")]
    if not emails:
        return 0
    get_email_queue().enqueue(
        f"voting-open {month}/{year}",
        partial(email_service.send_voting_open, emails, month, year),
    )
    return len(emails)
