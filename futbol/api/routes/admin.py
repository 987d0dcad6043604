"""Admin notification, settings and sweep route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from futbol.api.auth_dependencies import require_admin
from futbol.api.routes import service_error
from futbol.database.db import get_db_session
from futbol.models.schemas import ActiveMonthRequest, AdminNotificationAction
from futbol.services import (
    admin_notification_service,
    game_service,
    reminder_service,
    settings_service,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/admin/notifications")
async def get_notifications(
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Unread admin notifications, newest first."""
    try:
        notifications = await admin_notification_service.get_unread_notifications(session)
        return {"notifications": notifications, "count": len(notifications)}
    except Exception as e:
        logger.error(f"Error fetching admin notifications: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error fetching notifications: {str(e)}")


@router.post("/api/admin/notifications")
async def notification_action(
    payload: AdminNotificationAction,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Act on admin notifications.

    Actions:
        mark_read: mark one notification as handled
        confirm_match: confirm the notified game with reservation details
        create_voting_reminder: add a reminder alert for the active month
    """
    try:
        if payload.action == "mark_read":
            notification = await admin_notification_service.mark_as_read(
                session, payload.notification_id
            )
            return {"success": True, "notification": notification}

        if payload.action == "confirm_match":
            game = await game_service.confirm_game(
                session,
                payload.game_id,
                custom_time=payload.custom_time,
                reservation_info=(
                    payload.reservation_info.model_dump() if payload.reservation_info else None
                ),
            )
            return {"success": True, "game": game}

        month, year = await settings_service.get_active_month(session)
        notification = await admin_notification_service.create_voting_reminder_notification(
            session, month, year
        )
        return {"success": True, "notification": notification}
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error handling notification action {payload.action}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error handling notification: {str(e)}")


@router.get("/api/admin/settings/active-month")
async def get_active_month(
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    month, year = await settings_service.get_active_month(session)
    return {"month": month, "year": year}


@router.put("/api/admin/settings/active-month")
async def set_active_month(
    payload: ActiveMonthRequest,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Open a month for voting. Moving to a new month announces it by email."""
    try:
        changed = await settings_service.set_active_month(session, payload.month, payload.year)
        notified = 0
        if changed:
            notified = await reminder_service.queue_voting_open_email(
                session, payload.month, payload.year
            )
        return {
            "success": True,
            "month": payload.month,
            "year": payload.year,
            "changed": changed,
            "notified": notified,
        }
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error setting active month: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error setting active month: {str(e)}")


@router.post("/api/admin/check-and-create-games")
async def check_and_create_games(
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Create games for days that reached quorum and reconcile scheduled rosters."""
    try:
        result = await game_service.check_and_create_games(session)
        return {"success": True, **result}
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error running game sweep: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error checking games: {str(e)}")


@router.post("/api/admin/cleanup-games")
async def cleanup_games(
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Drop users who are no longer whitelisted from open games."""
    try:
        result = await game_service.cleanup_non_whitelisted(session)
        return {"success": True, **result}
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error cleaning up games: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error cleaning up games: {str(e)}")
