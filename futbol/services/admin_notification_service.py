"""
Admin notification service.

Notifications are created inside the caller's transaction (no commit) when
they are a side effect of another operation, and committed here when they
are the operation itself.
"""

import logging
from datetime import date
from typing import Dict, List

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from futbol.database.models import AdminNotification, AdminNotificationType
from futbol.services.exceptions import NotFoundError
from futbol.utils.datetime_utils import format_spanish_date, spanish_month_name

logger = logging.getLogger(__name__)


def notification_to_dict(notification: AdminNotification) -> Dict:
    return {
        "id": notification.id,
        "type": AdminNotificationType(notification.type).value,
        "game_id": notification.game_id,
        "month": notification.month,
        "year": notification.year,
        "message": notification.message,
        "is_read": notification.is_read,
        "action_required": notification.action_required,
        "created_at": notification.created_at.isoformat() if notification.created_at else None,
    }


async def create_match_ready_notification(
    session: AsyncSession, game_id: str, game_date: date, participant_count: int
) -> AdminNotification:
    """Add a 'match ready' alert for a game that just reached quorum. Does not commit."""
    notification = AdminNotification(
        type=AdminNotificationType.MATCH_READY,
        game_id=game_id,
        month=game_date.month,
        year=game_date.year,
        message=(
            f"El partido del {format_spanish_date(game_date)} tiene {participant_count} "
            f"jugadores confirmados. Reservá la cancha y confirmá el partido."
        ),
        is_read=False,
        action_required=True,
    )
    session.add(notification)
    await session.flush()
    logger.info(f"Match-ready admin notification created for game {game_id}")
    return notification


async def create_voting_reminder_notification(
    session: AsyncSession, month: int, year: int
) -> Dict:
    """Add a voting reminder alert for a month and commit."""
    if not 1 <= month <= 12:
        raise ValueError("El mes debe estar entre 1 y 12")
    notification = AdminNotification(
        type=AdminNotificationType.VOTING_REMINDER,
        month=month,
        year=year,
        message=(
            f"Recordá enviar el recordatorio de votación para "
            f"{spanish_month_name(month)} {year}."
        ),
        is_read=False,
        action_required=True,
    )
    session.add(notification)
    await session.commit()
    return notification_to_dict(notification)


async def get_unread_notifications(session: AsyncSession) -> List[Dict]:
    result = await session.execute(
        select(AdminNotification)
        .where(AdminNotification.is_read == False)  # noqa: E712
        .order_by(AdminNotification.created_at.desc(), AdminNotification.id.desc())
    )
    return [notification_to_dict(n) for n in result.scalars().all()]


async def mark_as_read(session: AsyncSession, notification_id: int) -> Dict:
    result = await session.execute(
        select(AdminNotification).where(AdminNotification.id == notification_id)
    )
    notification = result.scalar_one_or_none()
    if notification is None:
        raise NotFoundError("Notificación no encontrada")
    notification.is_read = True
    await session.commit()
    return notification_to_dict(notification)


async def mark_game_notifications_read(session: AsyncSession, game_id: str) -> None:
    """Mark every alert tied to a game as handled. Does not commit."""
    await session.execute(
        update(AdminNotification)
        .where(AdminNotification.game_id == game_id)
        .values(is_read=True)
    )
