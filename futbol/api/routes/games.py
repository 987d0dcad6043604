"""Game, result, team and waitlist route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from futbol.api.auth_dependencies import get_current_user, require_admin, require_whitelisted_admin
from futbol.api.routes import service_error
from futbol.database.db import get_db_session
from futbol.models.schemas import (
    ConfirmGameRequest,
    GameCreate,
    GameUpdate,
    ParticipantRemoveRequest,
    ResultRequest,
    WaitlistAddRequest,
)
from futbol.services import game_service, user_service, waitlist_service
from futbol.utils.calendar_utils import build_ics, google_calendar_url
from futbol.utils.constants import DEFAULT_GAME_TIME

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/games")
async def list_games(
    status: Optional[str] = None,
    month: Optional[int] = None,
    year: Optional[int] = None,
    full_only: bool = False,
    current_user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """List games by date, optionally filtered by status, month or full rosters."""
    try:
        games = await game_service.list_games(
            session, status=status, month=month, year=year, full_only=full_only
        )
        return {"games": games}
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error listing games: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error listing games: {str(e)}")


@router.post("/api/games")
async def create_game(
    payload: GameCreate,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Create a game for a date by hand (admin)."""
    try:
        game = await game_service.create_game(
            session,
            payload.game_date,
            participants=payload.participants,
            waitlist=payload.waitlist,
            custom_time=payload.custom_time,
        )
        return {"success": True, "game": game}
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error creating game: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error creating game: {str(e)}")


@router.get("/api/games/{game_id}")
async def get_game(
    game_id: str,
    current_user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    game = await game_service.get_game_by_id(session, game_id)
    if game is None:
        raise HTTPException(status_code=404, detail="Partido no encontrado")
    return game


@router.patch("/api/games/{game_id}")
async def update_game(
    game_id: str,
    payload: GameUpdate,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Partial admin update: status, roster, teams, reservation info or time."""
    try:
        game = await game_service.update_game(session, game_id, payload.model_dump(exclude_unset=True))
        return {"success": True, "game": game}
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error updating game {game_id}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error updating game: {str(e)}")


@router.post("/api/games/{game_id}/confirm")
async def confirm_game(
    game_id: str,
    payload: ConfirmGameRequest,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Confirm a game with its reservation details and notify participants."""
    try:
        game = await game_service.confirm_game(
            session,
            game_id,
            custom_time=payload.custom_time,
            reservation_info=payload.reservation_info.model_dump() if payload.reservation_info else None,
        )
        return {"success": True, "game": game}
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error confirming game {game_id}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error confirming game: {str(e)}")


@router.put("/api/games/{game_id}/result")
async def set_result(
    game_id: str,
    payload: ResultRequest,
    admin: dict = Depends(require_whitelisted_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Record the score of a completed game."""
    try:
        game = await game_service.set_result(
            session, game_id, payload.team1_score, payload.team2_score, payload.notes
        )
        return {"success": True, "game": game}
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error setting result for game {game_id}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error setting result: {str(e)}")


@router.delete("/api/games/{game_id}/result")
async def clear_result(
    game_id: str,
    admin: dict = Depends(require_whitelisted_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        game = await game_service.clear_result(session, game_id)
        return {"success": True, "game": game}
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error clearing result for game {game_id}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error clearing result: {str(e)}")


@router.post("/api/games/{game_id}/teams")
async def generate_teams(
    game_id: str,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Split the participants into two random teams (admin)."""
    try:
        game = await game_service.assign_random_teams(session, game_id)
        return {"success": True, "game": game}
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error generating teams for game {game_id}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error generating teams: {str(e)}")


async def _calendar_context(session: AsyncSession, game_id: str):
    try:
        game = await game_service.get_game(session, game_id)
    except ValueError as e:
        raise service_error(e)
    users = await user_service.get_users_by_ids(session, game.participants or [])
    participants = [users[uid] for uid in game.participants or [] if uid in users]
    reservation = game.reservation_info or {}
    game_time = game.custom_time or reservation.get("time") or DEFAULT_GAME_TIME
    return game, participants, reservation, game_time


@router.get("/api/games/{game_id}/calendar.ics")
async def download_ics(
    game_id: str,
    current_user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """ICS invite for a game."""
    game, participants, reservation, game_time = await _calendar_context(session, game_id)
    content = build_ics(
        game.id,
        game.date,
        game_time,
        reservation.get("location"),
        reservation.get("maps_link"),
        participants,
    )
    return Response(
        content=content,
        media_type="text/calendar; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="partido-{game.date.isoformat()}.ics"'},
    )


@router.get("/api/games/{game_id}/calendar-link")
async def google_calendar_link(
    game_id: str,
    current_user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    game, participants, reservation, game_time = await _calendar_context(session, game_id)
    return {"url": google_calendar_url(game.date, game_time, reservation.get("location"), participants)}


@router.post("/api/games/{game_id}/waitlist")
async def add_to_waitlist(
    game_id: str,
    payload: WaitlistAddRequest,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        game = await waitlist_service.add_to_waitlist(session, game_id, payload.user_id)
        return {"success": True, "game": game}
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error adding to waitlist of game {game_id}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error updating waitlist: {str(e)}")


@router.patch("/api/games/{game_id}/waitlist")
async def remove_participant(
    game_id: str,
    payload: ParticipantRemoveRequest,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Remove a participant. The head of the waitlist is promoted unless
    user_id_to_add names a replacement.
    """
    try:
        game = await waitlist_service.remove_from_game(
            session, game_id, payload.user_id_to_remove, payload.user_id_to_add
        )
        return {"success": True, "game": game, "promoted_user_id": game.get("promoted_user_id")}
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error removing participant from game {game_id}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error updating participants: {str(e)}")


@router.delete("/api/games/{game_id}/waitlist/{user_id}")
async def remove_from_waitlist(
    game_id: str,
    user_id: str,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        game = await waitlist_service.remove_from_waitlist(session, game_id, user_id)
        return {"success": True, "game": game}
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error removing from waitlist of game {game_id}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error updating waitlist: {str(e)}")
