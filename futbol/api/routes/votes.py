"""Day vote and monthly availability route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from futbol.api.auth_dependencies import get_current_user
from futbol.api.routes import limiter, service_error
from futbol.database.db import get_db_session
from futbol.models.schemas import (
    AvailabilityRequest,
    DayUnvoteRequest,
    DayVoteRequest,
    UnvoteRequest,
)
from futbol.services import vote_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/day-vote")
@limiter.limit("30/minute")
async def cast_day_vote(
    request: Request,
    payload: DayVoteRequest,
    current_user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Vote yes/no for a single Sunday.

    A yes vote may create the day's game once quorum is reached; a no vote
    frees the user's spot and promotes the head of the waitlist.
    """
    try:
        return await vote_service.record_day_vote(
            session,
            current_user["id"],
            payload.year,
            payload.month,
            payload.day,
            payload.vote_type,
        )
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error recording day vote: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error recording vote: {str(e)}")


@router.delete("/api/day-vote")
@limiter.limit("30/minute")
async def remove_day_vote(
    request: Request,
    payload: DayUnvoteRequest,
    current_user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Withdraw the current user's vote for a Sunday."""
    try:
        return await vote_service.remove_day_vote(
            session, current_user["id"], payload.year, payload.month, payload.day
        )
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error removing day vote: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error removing vote: {str(e)}")


@router.get("/api/day-votes")
async def list_day_votes(
    year: int,
    month: int,
    day: Optional[int] = None,
    mine: bool = False,
    current_user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Day votes of a month (or one day), oldest first."""
    try:
        votes = await vote_service.get_day_votes(
            session, year, month, day=day, user_id=current_user["id"] if mine else None
        )
        return {"votes": votes}
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error fetching day votes: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error fetching day votes: {str(e)}")


@router.post("/api/availability")
@limiter.limit("30/minute")
async def submit_availability(
    request: Request,
    payload: AvailabilityRequest,
    current_user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Replace the current user's availability for a month."""
    try:
        return await vote_service.submit_monthly_availability(
            session,
            current_user["id"],
            payload.month,
            payload.year,
            payload.available_sundays,
            payload.cannot_play_any_day,
        )
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error submitting availability: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error submitting availability: {str(e)}")


@router.post("/api/availability/unvote")
async def unvote_days(
    payload: UnvoteRequest,
    current_user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await vote_service.unvote_days(
            session, current_user["id"], payload.month, payload.year, payload.unavailable_sundays
        )
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error removing votes: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error removing votes: {str(e)}")


@router.get("/api/availability/user")
async def get_user_availability(
    month: int,
    year: int,
    current_user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        days = await vote_service.get_user_availability(session, current_user["id"], month, year)
        return {"available_sundays": days}
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error fetching user availability: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error fetching availability: {str(e)}")


@router.get("/api/availability/voting-status")
async def get_voting_status(
    month: int,
    year: int,
    current_user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await vote_service.get_voting_status(session, current_user["id"], month, year)
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error fetching voting status: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error fetching voting status: {str(e)}")


@router.get("/api/availability/record")
async def get_availability_record(
    month: int,
    year: int,
    current_user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        record = await vote_service.get_availability_record(session, current_user["id"], month, year)
        return {"availability": record}
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error fetching availability record: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error fetching availability: {str(e)}")


@router.get("/api/availability/month")
async def get_month_availability(
    month: int,
    year: int,
    current_user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Every user's availability for a month."""
    try:
        return {"availability": await vote_service.get_month_availability(session, month, year)}
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error fetching month availability: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error fetching availability: {str(e)}")


@router.get("/api/availability/blocked")
async def get_blocked_sundays(
    month: int,
    year: int,
    current_user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Sundays of the month that already have a confirmed game."""
    try:
        return {"blocked_sundays": await vote_service.get_blocked_sundays(session, month, year)}
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error fetching blocked Sundays: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error fetching blocked Sundays: {str(e)}")


@router.get("/api/voting-window")
async def get_voting_window(current_user: dict = Depends(get_current_user)):
    return {
        "months": [{"year": year, "month": month} for year, month in vote_service.voting_window()]
    }
