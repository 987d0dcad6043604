"""MVP voting route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from futbol.api.auth_dependencies import get_current_user, require_admin
from futbol.api.routes import limiter, service_error
from futbol.database.db import get_db_session
from futbol.models.schemas import MvpFinalizeRequest, MvpVoteRequest
from futbol.services import mvp_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/mvp/vote")
@limiter.limit("20/minute")
async def cast_mvp_vote(
    request: Request,
    payload: MvpVoteRequest,
    current_user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Vote for the MVP of a completed game. One anonymous vote per participant."""
    try:
        return await mvp_service.cast_vote(
            session, payload.game_id, current_user["id"], payload.voted_for_id
        )
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error casting MVP vote: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error casting MVP vote: {str(e)}")


@router.post("/api/mvp/finalize")
async def finalize_mvp(
    payload: MvpFinalizeRequest,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Close MVP voting for a game and store the winner (or tied winners)."""
    try:
        return await mvp_service.finalize(session, payload.game_id)
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error finalizing MVP for game {payload.game_id}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error finalizing MVP: {str(e)}")


@router.get("/api/mvp/results/{game_id}")
async def get_mvp_results(
    game_id: str,
    current_user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await mvp_service.get_results(session, game_id, current_user["id"])
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error fetching MVP results for game {game_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error fetching MVP results: {str(e)}")


@router.get("/api/mvp/voted/{game_id}")
async def has_voted(
    game_id: str,
    current_user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    return {"has_voted": await mvp_service.has_voted(session, game_id, current_user["id"])}


@router.get("/api/mvp/non-voters/{game_id}")
async def get_non_voters(
    game_id: str,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        users = await mvp_service.get_non_voters(session, game_id)
        return {"non_voters": users, "count": len(users)}
    except ValueError as e:
        raise service_error(e)


@router.get("/api/mvp/votes")
async def get_leaderboard(
    current_user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """MVP votes received per player across all games."""
    try:
        return {"leaderboard": await mvp_service.get_leaderboard(session)}
    except Exception as e:
        logger.error(f"Error fetching MVP leaderboard: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error fetching MVP leaderboard: {str(e)}")


@router.get("/api/mvp/all-votes")
async def get_all_votes(
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    return {"votes": await mvp_service.get_all_votes(session)}
