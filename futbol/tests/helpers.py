"""Test data helpers shared by the service and route tests."""

from datetime import date, timedelta
from typing import List, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from futbol.database.models import User
from futbol.services import vote_service
from futbol.utils.datetime_utils import add_months, league_today, sundays_in_month


def next_sunday(weeks_ahead: int = 0) -> date:
    """A Sunday strictly after today, optionally some weeks later."""
    today = league_today()
    days = (6 - today.weekday()) % 7 or 7
    return today + timedelta(days=days + 7 * weeks_ahead)


def previous_month() -> Tuple[int, int]:
    """(year, month) of the month before the current league month."""
    today = league_today()
    return add_months(today.year, today.month, -1)


def future_sundays_in_one_month(count: int) -> List[date]:
    """The first month (from the current one) with `count` Sundays still ahead."""
    today = league_today()
    for offset in range(2):
        year, month = add_months(today.year, today.month, offset)
        days = [date(year, month, d) for d in sundays_in_month(year, month)]
        upcoming = [d for d in days if d > today]
        if len(upcoming) >= count:
            return upcoming[:count]
    raise AssertionError("no month with enough Sundays ahead")


async def make_users(
    session: AsyncSession,
    count: int,
    prefix: str = "player",
    whitelisted: bool = True,
    is_admin: bool = False,
) -> List[str]:
    """Insert users and return their ids in creation order."""
    ids = []
    for i in range(count):
        user_id = f"{prefix}_{i:02d}"
        session.add(
            User(
                id=user_id,
                email=f"{user_id}@example.com",
                name=f"{prefix.title()} {i:02d}",
                is_whitelisted=whitelisted,
                is_admin=is_admin,
            )
        )
        ids.append(user_id)
    await session.commit()
    return ids


async def vote_yes(session: AsyncSession, user_ids: List[str], day: date) -> List[dict]:
    """Cast a yes vote for each user, in order."""
    results = []
    for user_id in user_ids:
        results.append(
            await vote_service.record_day_vote(
                session, user_id, day.year, day.month, day.day, "yes"
            )
        )
    return results
