"""
Vote service: per-day yes/no votes and the monthly availability record.

The monthly record's available_sundays always equals the set of days with a
yes vote for that user and month; every write below keeps both in step.
Each public mutation is one transaction. Lifecycle emails for games created
along the way are queued only after the commit.
"""

import logging
from datetime import date
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from futbol.database.models import (
    DayVote,
    Game,
    GameStatus,
    MonthlyAvailability,
    ReminderStatus,
    User,
    VoteType,
)
from futbol.services import game_service, waitlist_service
from futbol.services.exceptions import (
    ClosedMonthError,
    NotFoundError,
    OutsideVotingWindowError,
    PastDateError,
)
from futbol.utils.constants import VOTING_WINDOW_MONTHS
from futbol.utils.datetime_utils import (
    add_months,
    is_sunday,
    league_today,
    month_bounds,
    month_index,
    utcnow,
)

logger = logging.getLogger(__name__)

UNVOTE_CLOSED_MONTH_MESSAGE = "No puedes modificar votos en meses pasados"


def day_vote_to_dict(vote: DayVote) -> Dict:
    return {
        "id": vote.id,
        "user_id": vote.user_id,
        "year": vote.year,
        "month": vote.month,
        "day": vote.day,
        "vote_type": VoteType(vote.vote_type).value,
        "voted_at": vote.voted_at.isoformat() if vote.voted_at else None,
    }


def availability_to_dict(record: MonthlyAvailability) -> Dict:
    return {
        "user_id": record.user_id,
        "month": record.month,
        "year": record.year,
        "available_sundays": list(record.available_sundays or []),
        "cannot_play_any_day": record.cannot_play_any_day,
        "has_voted": record.has_voted,
        "updated_at": record.updated_at.isoformat() if record.updated_at else None,
    }


# ---------------------------------------------------------------------------
# Calendar rules
# ---------------------------------------------------------------------------

def check_month_open(year: int, month: int, closed_message: Optional[str] = None) -> None:
    """
    Reject months before the current league month.

    Runs before any other validation so a closed month is always reported as
    such, whatever else is wrong with the request.
    """
    today = league_today()
    if month_index(year, month) < month_index(today.year, today.month):
        raise ClosedMonthError(closed_message) if closed_message else ClosedMonthError()


def check_voting_window(year: int, month: int) -> None:
    if not 1 <= month <= 12:
        raise ValueError("El mes debe estar entre 1 y 12")
    today = league_today()
    last_year, last_month = add_months(today.year, today.month, VOTING_WINDOW_MONTHS - 1)
    if month_index(year, month) > month_index(last_year, last_month):
        raise OutsideVotingWindowError()


def validate_vote_day(year: int, month: int, day: int) -> date:
    """
    Returns:
        The Sunday being voted for

    Raises:
        ValueError / PastDateError: If the day is not a future (or today's) Sunday
    """
    try:
        target = date(year, month, day)
    except (TypeError, ValueError):
        raise ValueError(f"Fecha inválida: {year}-{month}-{day}")
    if not is_sunday(target):
        raise ValueError("Solo se puede votar por domingos")
    if target < league_today():
        raise PastDateError()
    return target


def parse_day_list(days) -> List[int]:
    """
    Normalize a list of day numbers from a request body.

    Raises:
        ValueError: If it is not a list of integers
    """
    if days is None:
        return []
    if not isinstance(days, list) or any(
        isinstance(d, bool) or not isinstance(d, int) for d in days
    ):
        raise ValueError("Los días deben ser una lista de números enteros")
    return sorted(set(days))


def _parse_vote_type(vote_type: str) -> VoteType:
    try:
        return VoteType(vote_type)
    except ValueError:
        raise ValueError("vote_type debe ser 'yes' o 'no'")


# ---------------------------------------------------------------------------
# Internal helpers (no commit)
# ---------------------------------------------------------------------------

async def _require_user(session: AsyncSession, user_id: str) -> User:
    result = await session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError("Usuario no encontrado")
    return user


async def _get_day_vote(session: AsyncSession, user_id: str, target: date) -> Optional[DayVote]:
    result = await session.execute(
        select(DayVote).where(
            DayVote.user_id == user_id,
            DayVote.year == target.year,
            DayVote.month == target.month,
            DayVote.day == target.day,
        )
    )
    return result.scalar_one_or_none()


async def _upsert_day_vote(
    session: AsyncSession, user_id: str, target: date, vote_type: VoteType
) -> DayVote:
    """
    Create or update a day vote.

    Repeating the same vote keeps its timestamp, so the voter keeps their
    queue position; switching yes/no restarts it.
    """
    vote = await _get_day_vote(session, user_id, target)
    if vote is None:
        vote = DayVote(
            user_id=user_id,
            year=target.year,
            month=target.month,
            day=target.day,
            vote_type=vote_type,
        )
        session.add(vote)
    elif VoteType(vote.vote_type) != vote_type:
        vote.vote_type = vote_type
        vote.voted_at = utcnow()
    await session.flush()
    return vote


async def _get_availability(
    session: AsyncSession, user_id: str, month: int, year: int
) -> Optional[MonthlyAvailability]:
    result = await session.execute(
        select(MonthlyAvailability).where(
            MonthlyAvailability.user_id == user_id,
            MonthlyAvailability.month == month,
            MonthlyAvailability.year == year,
        )
    )
    return result.scalar_one_or_none()


async def _get_or_create_availability(
    session: AsyncSession, user_id: str, month: int, year: int
) -> MonthlyAvailability:
    record = await _get_availability(session, user_id, month, year)
    if record is None:
        record = MonthlyAvailability(
            user_id=user_id,
            month=month,
            year=year,
            available_sundays=[],
            cannot_play_any_day=False,
            has_voted=False,
        )
        session.add(record)
    return record


async def _set_day_available(
    session: AsyncSession, user_id: str, target: date, available: bool, mark_voted: bool = True
) -> MonthlyAvailability:
    record = await _get_or_create_availability(session, user_id, target.month, target.year)
    days = set(record.available_sundays or [])
    if available:
        days.add(target.day)
        record.cannot_play_any_day = False
    else:
        days.discard(target.day)
    record.available_sundays = sorted(days)
    if mark_voted:
        record.has_voted = True
    await session.flush()
    return record


async def _deactivate_reminders(session: AsyncSession, user_id: str, month: int, year: int) -> None:
    await session.execute(
        update(ReminderStatus)
        .where(
            ReminderStatus.user_id == user_id,
            ReminderStatus.month == month,
            ReminderStatus.year == year,
        )
        .values(is_active=False)
    )


async def _finish(session: AsyncSession, created_games: List[Game]) -> None:
    """Commit, then queue admin emails for games created in this transaction."""
    await game_service.commit_game_changes(session)
    for game in created_games:
        await game_service.queue_match_ready_email(session, game)


# ---------------------------------------------------------------------------
# Day votes
# ---------------------------------------------------------------------------

async def record_day_vote(
    session: AsyncSession, user_id: str, year: int, month: int, day: int, vote_type: str
) -> Dict:
    """
    Record a yes/no vote for one Sunday.

    A yes vote adds the day to the monthly record and may create (or join)
    the day's game. A no vote removes the day and, if the user held a spot,
    frees it for the waitlist.

    Raises:
        ClosedMonthError, OutsideVotingWindowError, PastDateError, ValueError,
        NotFoundError, ConcurrentUpdateError
    """
    check_month_open(year, month)
    check_voting_window(year, month)
    parsed_type = _parse_vote_type(vote_type)
    target = validate_vote_day(year, month, day)
    await _require_user(session, user_id)

    vote = await _upsert_day_vote(session, user_id, target, parsed_type)
    game = None
    created = False
    withdrawal = None
    if parsed_type == VoteType.YES:
        await _set_day_available(session, user_id, target, True)
        await _deactivate_reminders(session, user_id, month, year)
        game, created = await game_service.register_yes_vote(session, target, user_id)
    else:
        await _set_day_available(session, user_id, target, False)
        withdrawal = await waitlist_service.withdraw_user_from_day(session, user_id, target)

    await _finish(session, [game] if created else [])
    logger.info(f"User {user_id} voted {parsed_type.value} for {target}")
    return {
        "success": True,
        "vote": day_vote_to_dict(vote),
        "game": game_service.game_to_dict(game) if game else None,
        "game_created": created,
        "withdrawal": withdrawal,
    }


async def remove_day_vote(session: AsyncSession, user_id: str, year: int, month: int, day: int) -> Dict:
    """
    Withdraw a day vote entirely (unvote).

    The day leaves the monthly record; if the user was playing or waiting for
    that day's game, they are removed and the waitlist head is promoted.
    """
    check_month_open(year, month, UNVOTE_CLOSED_MONTH_MESSAGE)
    try:
        target = date(year, month, day)
    except (TypeError, ValueError):
        raise ValueError(f"Fecha inválida: {year}-{month}-{day}")

    vote = await _get_day_vote(session, user_id, target)
    if vote is not None:
        await session.delete(vote)
        await session.flush()

    record = await _get_availability(session, user_id, month, year)
    if record is not None:
        await _set_day_available(session, user_id, target, False, mark_voted=False)

    withdrawal = await waitlist_service.withdraw_user_from_day(session, user_id, target)
    await _finish(session, [])
    logger.info(f"User {user_id} removed their vote for {target}")
    return {"success": True, "removed": vote is not None, "withdrawal": withdrawal}


async def get_day_votes(
    session: AsyncSession,
    year: int,
    month: int,
    day: Optional[int] = None,
    user_id: Optional[str] = None,
) -> List[Dict]:
    """Day votes for a month (or single day), oldest first."""
    query = select(DayVote).where(DayVote.year == year, DayVote.month == month)
    if day is not None:
        query = query.where(DayVote.day == day)
    if user_id is not None:
        query = query.where(DayVote.user_id == user_id)
    result = await session.execute(query.order_by(DayVote.day.asc(), DayVote.voted_at.asc(), DayVote.id.asc()))
    return [day_vote_to_dict(v) for v in result.scalars().all()]


# ---------------------------------------------------------------------------
# Monthly availability
# ---------------------------------------------------------------------------

async def submit_monthly_availability(
    session: AsyncSession,
    user_id: str,
    month: int,
    year: int,
    available_sundays: List[int],
    cannot_play_any_day: bool = False,
) -> Dict:
    """
    Replace a user's availability for a month in one go.

    Day votes follow: listed days become yes votes, previously available days
    that are no longer listed are withdrawn. Days already in the past are
    kept as they were.
    """
    check_month_open(year, month)
    check_voting_window(year, month)
    days = parse_day_list(available_sundays)
    if not isinstance(cannot_play_any_day, bool):
        raise ValueError("cannot_play_any_day debe ser true o false")
    await _require_user(session, user_id)

    requested = [] if cannot_play_any_day else days
    targets = [validate_vote_day(year, month, day) for day in requested]
    today = league_today()

    result = await session.execute(
        select(DayVote).where(
            DayVote.user_id == user_id,
            DayVote.year == year,
            DayVote.month == month,
            DayVote.vote_type == VoteType.YES,
        )
    )
    existing_yes = {v.day: v for v in result.scalars().all()}
    past_days = {d for d in existing_yes if date(year, month, d) < today}

    withdrawals = []
    for day, vote in existing_yes.items():
        if day in requested or day in past_days:
            continue
        await session.delete(vote)
        await session.flush()
        withdrawal = await waitlist_service.withdraw_user_from_day(session, user_id, date(year, month, day))
        if withdrawal:
            withdrawals.append(withdrawal)

    for target in targets:
        await _upsert_day_vote(session, user_id, target, VoteType.YES)

    record = await _get_or_create_availability(session, user_id, month, year)
    record.available_sundays = sorted(set(requested) | past_days)
    record.cannot_play_any_day = cannot_play_any_day
    record.has_voted = True
    await _deactivate_reminders(session, user_id, month, year)
    await session.flush()

    created_games = []
    for target in targets:
        game, created = await game_service.register_yes_vote(session, target, user_id)
        if created:
            created_games.append(game)

    await _finish(session, created_games)
    logger.info(f"User {user_id} submitted availability for {month}/{year}: {record.available_sundays}")
    return {
        "success": True,
        "availability": availability_to_dict(record),
        "games_created": [game_service.game_to_dict(g) for g in created_games],
        "withdrawals": withdrawals,
    }


async def unvote_days(
    session: AsyncSession, user_id: str, month: int, year: int, unavailable_sundays: List[int]
) -> Dict:
    """Withdraw several day votes of a month at once."""
    check_month_open(year, month, UNVOTE_CLOSED_MONTH_MESSAGE)
    days = parse_day_list(unavailable_sundays)
    withdrawals = []
    for day in days:
        try:
            target = date(year, month, day)
        except (TypeError, ValueError):
            raise ValueError(f"Fecha inválida: {year}-{month}-{day}")
        vote = await _get_day_vote(session, user_id, target)
        if vote is not None:
            await session.delete(vote)
            await session.flush()
        withdrawal = await waitlist_service.withdraw_user_from_day(session, user_id, target)
        if withdrawal:
            withdrawals.append(withdrawal)

    record = await _get_availability(session, user_id, month, year)
    if record is not None:
        removed = set(days)
        record.available_sundays = [d for d in record.available_sundays or [] if d not in removed]
    await _finish(session, [])
    return {"success": True, "withdrawals": withdrawals}


async def get_user_availability(session: AsyncSession, user_id: str, month: int, year: int) -> List[int]:
    record = await _get_availability(session, user_id, month, year)
    return list(record.available_sundays or []) if record else []


async def get_voting_status(session: AsyncSession, user_id: str, month: int, year: int) -> Dict:
    record = await _get_availability(session, user_id, month, year)
    return {
        "has_voted": bool(record and record.has_voted),
        "cannot_play_any_day": bool(record and record.cannot_play_any_day),
    }


async def get_availability_record(
    session: AsyncSession, user_id: str, month: int, year: int
) -> Optional[Dict]:
    record = await _get_availability(session, user_id, month, year)
    return availability_to_dict(record) if record else None


async def get_month_availability(session: AsyncSession, month: int, year: int) -> List[Dict]:
    """Every user's availability record for a month."""
    result = await session.execute(
        select(MonthlyAvailability).where(
            MonthlyAvailability.month == month, MonthlyAvailability.year == year
        )
    )
    return [availability_to_dict(r) for r in result.scalars().all()]


async def get_blocked_sundays(session: AsyncSession, month: int, year: int) -> List[int]:
    """Sundays of the month that already have a confirmed game."""
    first, next_first = month_bounds(year, month)
    result = await session.execute(
        select(Game.date).where(
            Game.date >= first,
            Game.date < next_first,
            Game.status == GameStatus.CONFIRMED,
        )
    )
    return sorted(row[0].day for row in result.all())


def voting_window() -> List[Tuple[int, int]]:
    """(year, month) pairs currently open for voting."""
    today = league_today()
    return [add_months(today.year, today.month, i) for i in range(VOTING_WINDOW_MONTHS)]
