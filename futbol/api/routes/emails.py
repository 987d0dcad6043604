"""Email trigger route handlers: cron jobs and admin sends."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from futbol.api.auth_dependencies import require_admin, require_cron
from futbol.api.routes import service_error
from futbol.database.db import get_db_session
from futbol.models.schemas import EmailTestRequest, MatchConfirmationRequest, MvpReminderRequest
from futbol.services import email_service, game_service, reminder_service
from futbol.services.email_queue import get_email_queue

logger = logging.getLogger(__name__)
router = APIRouter()


# ---------------------------------------------------------------------------
# Cron (Authorization: Bearer <CRON_SECRET>)
# ---------------------------------------------------------------------------

@router.get("/api/cron/send-daily-reminders", dependencies=[Depends(require_cron)])
async def preview_daily_reminders(session: AsyncSession = Depends(get_db_session)):
    """Who would get today's voting reminder."""
    try:
        return await reminder_service.preview_daily_reminders(session)
    except Exception as e:
        logger.error(f"Error previewing reminders: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error previewing reminders: {str(e)}")


@router.post("/api/cron/send-daily-reminders", dependencies=[Depends(require_cron)])
async def send_daily_reminders(session: AsyncSession = Depends(get_db_session)):
    try:
        return await reminder_service.send_voting_reminders(session)
    except Exception as e:
        logger.error(f"Error sending daily reminders: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error sending reminders: {str(e)}")


@router.post("/api/cron/check-and-create-games", dependencies=[Depends(require_cron)])
async def cron_check_and_create_games(session: AsyncSession = Depends(get_db_session)):
    try:
        result = await game_service.check_and_create_games(session)
        return {"success": True, **result}
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error running scheduled game sweep: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error checking games: {str(e)}")


# ---------------------------------------------------------------------------
# Admin sends
# ---------------------------------------------------------------------------

@router.post("/api/emails/send-voting-reminder")
async def send_voting_reminder(
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Send the voting reminder for the active month now."""
    try:
        return await reminder_service.send_voting_reminders(session)
    except Exception as e:
        logger.error(f"Error sending voting reminders: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error sending reminders: {str(e)}")


@router.post("/api/emails/send-match-confirmation")
async def send_match_confirmation(
    payload: MatchConfirmationRequest,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Resend confirmation emails for confirmed games, optionally to a subset."""
    try:
        return await reminder_service.send_match_confirmations(session, payload.selected_participants)
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error sending match confirmations: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error sending confirmations: {str(e)}")


@router.post("/api/emails/send-mvp-reminder")
async def send_mvp_reminder(
    payload: MvpReminderRequest,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await reminder_service.send_mvp_reminders(session, payload.game_id)
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error sending MVP reminders: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error sending MVP reminders: {str(e)}")


@router.post("/api/emails/test")
async def send_test_email(
    payload: EmailTestRequest,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    sent = await email_service.send_test_email(payload.email, session)
    if not sent:
        raise HTTPException(status_code=502, detail="No se pudo enviar el email de prueba")
    return {"success": True, "message": f"Email de prueba enviado a {payload.email}"}


@router.get("/api/emails/health")
async def email_health(
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Email configuration plus background dispatch stats and recent failures."""
    return {
        "configuration": await email_service.get_configuration_status(session),
        "queue": get_email_queue().stats(),
    }
