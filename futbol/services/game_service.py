"""
Game service: quorum detection, game creation sweep, the status machine,
results, teams and roster cleanup.

Game rosters are JSON lists. They are always replaced with new lists, never
mutated in place, so the ORM sees the change and bumps the row version.
"""

import logging
import random
from datetime import date
from functools import partial
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from futbol.database.models import (
    DayVote,
    Game,
    GameStatus,
    User,
    VoteType,
)
from futbol.services import admin_notification_service, email_service, user_service
from futbol.services.email_queue import get_email_queue
from futbol.services.exceptions import ConcurrentUpdateError, NotFoundError
from futbol.utils.calendar_utils import google_calendar_url, parse_game_time
from futbol.utils.constants import (
    DEFAULT_GAME_TIME,
    MAX_PARTICIPANTS,
    QUORUM,
    TEAM_SIZE,
    VOTING_WINDOW_MONTHS,
)
from futbol.utils.datetime_utils import add_months, league_today, month_bounds

logger = logging.getLogger(__name__)

# Forward-only moves; cancellation is allowed from any non-final state
ALLOWED_TRANSITIONS = {
    GameStatus.SCHEDULED: {GameStatus.CONFIRMED, GameStatus.COMPLETED, GameStatus.CANCELLED},
    GameStatus.CONFIRMED: {GameStatus.COMPLETED, GameStatus.CANCELLED},
    GameStatus.COMPLETED: set(),
    GameStatus.CANCELLED: set(),
}

RESERVATION_FIELDS = ("location", "time", "cost", "reserved_by", "maps_link", "payment_alias")


def game_to_dict(game: Game) -> Dict:
    return {
        "id": game.id,
        "date": game.date.isoformat() if game.date else None,
        "status": GameStatus(game.status).value,
        "participants": list(game.participants or []),
        "waitlist": list(game.waitlist or []),
        "teams": game.teams,
        "result": game.result,
        "reservation_info": game.reservation_info,
        "custom_time": game.custom_time,
        "admin_notification_sent": game.admin_notification_sent,
        "created_at": game.created_at.isoformat() if game.created_at else None,
        "updated_at": game.updated_at.isoformat() if game.updated_at else None,
    }


async def commit_game_changes(session: AsyncSession) -> None:
    """
    Commit a unit of work that touched game rows.

    A stale version counter or a duplicate game date both mean another request
    changed the same game first.
    """
    try:
        await session.commit()
    except (StaleDataError, IntegrityError) as e:
        await session.rollback()
        logger.warning(f"Concurrent game update detected: {e}")
        raise ConcurrentUpdateError()


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

async def get_game(session: AsyncSession, game_id: str) -> Game:
    """
    Load a game ORM object.

    Raises:
        NotFoundError: If the game does not exist
    """
    result = await session.execute(select(Game).where(Game.id == game_id))
    game = result.scalar_one_or_none()
    if game is None:
        raise NotFoundError("Partido no encontrado")
    return game


async def get_game_by_id(session: AsyncSession, game_id: str) -> Optional[Dict]:
    result = await session.execute(select(Game).where(Game.id == game_id))
    game = result.scalar_one_or_none()
    return game_to_dict(game) if game else None


async def get_game_by_date(session: AsyncSession, game_date: date) -> Optional[Game]:
    result = await session.execute(select(Game).where(Game.date == game_date))
    return result.scalar_one_or_none()


async def list_games(
    session: AsyncSession,
    status: Optional[str] = None,
    month: Optional[int] = None,
    year: Optional[int] = None,
    full_only: bool = False,
) -> List[Dict]:
    """
    List games ordered by date.

    Args:
        status: Optional status filter
        month/year: Optional calendar month filter (both required together)
        full_only: Only games with a full participant list
    """
    query = select(Game).order_by(Game.date.asc())
    if status:
        try:
            query = query.where(Game.status == GameStatus(status))
        except ValueError:
            raise ValueError(f"Estado inválido: {status}")
    if month and year:
        first, next_first = month_bounds(year, month)
        query = query.where(Game.date >= first, Game.date < next_first)
    result = await session.execute(query)
    games = [game_to_dict(g) for g in result.scalars().all()]
    if full_only:
        games = [g for g in games if len(g["participants"]) >= MAX_PARTICIPANTS]
    return games


async def get_latest_completed_game(session: AsyncSession) -> Optional[Game]:
    result = await session.execute(
        select(Game)
        .where(Game.status == GameStatus.COMPLETED)
        .order_by(Game.date.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Quorum
# ---------------------------------------------------------------------------

def split_roster(voter_ids: Sequence[str]) -> Tuple[List[str], List[str]]:
    """First MAX_PARTICIPANTS voters play, the rest wait in FIFO order."""
    voters = list(voter_ids)
    return voters[:MAX_PARTICIPANTS], voters[MAX_PARTICIPANTS:]


async def get_qualifying_voters(session: AsyncSession, game_date: date) -> List[str]:
    """Whitelisted users with a yes vote for the day, oldest vote first."""
    result = await session.execute(
        select(DayVote.user_id)
        .join(User, User.id == DayVote.user_id)
        .where(
            DayVote.year == game_date.year,
            DayVote.month == game_date.month,
            DayVote.day == game_date.day,
            DayVote.vote_type == VoteType.YES,
            User.is_whitelisted == True,  # noqa: E712
        )
        .order_by(DayVote.voted_at.asc(), DayVote.id.asc())
    )
    return [row[0] for row in result.all()]


async def register_yes_vote(
    session: AsyncSession, game_date: date, user_id: str
) -> Tuple[Optional[Game], bool]:
    """
    React to a yes vote for a day.

    If the day already has a scheduled game, a whitelisted voter who is not on
    it yet joins the participants (or the waitlist when full). Otherwise the
    day is checked for quorum and a game is created when it is reached.
    Does not commit.

    Returns:
        (game or None, created)
    """
    game = await get_game_by_date(session, game_date)
    if game is not None:
        participants = list(game.participants or [])
        waitlist = list(game.waitlist or [])
        if (
            game.status == GameStatus.SCHEDULED
            and user_id not in participants
            and user_id not in waitlist
            and user_id in await get_qualifying_voters(session, game_date)
        ):
            if len(participants) < MAX_PARTICIPANTS:
                game.participants = participants + [user_id]
                logger.info(f"User {user_id} joined game {game.id} as participant")
            else:
                game.waitlist = waitlist + [user_id]
                logger.info(f"User {user_id} joined waitlist of game {game.id}")
        return game, False

    voters = await get_qualifying_voters(session, game_date)
    if len(voters) < QUORUM:
        return None, False

    participants, waitlist = split_roster(voters)
    game = Game(
        date=game_date,
        status=GameStatus.SCHEDULED,
        participants=participants,
        waitlist=waitlist,
    )
    session.add(game)
    await session.flush()

    await admin_notification_service.create_match_ready_notification(
        session, game.id, game_date, len(participants)
    )
    game.admin_notification_sent = True
    logger.info(
        f"Quorum reached for {game_date}: created game {game.id} "
        f"({len(participants)} participants, {len(waitlist)} waitlisted)"
    )
    return game, True


async def queue_match_ready_email(session: AsyncSession, game: Game) -> None:
    """Queue the admin 'game filled' email. Call after the game is committed."""
    admin_emails = await user_service.get_admin_emails(session)
    if not admin_emails:
        logger.warning(f"No admins to notify about game {game.id}")
        return
    users = await user_service.get_users_by_ids(session, game.participants or [])
    names = [user_service.display_name(users[uid]) for uid in game.participants if uid in users]
    get_email_queue().enqueue(
        f"match-ready {game.date.isoformat()}",
        partial(
            email_service.send_admin_match_ready,
            admin_emails,
            game.date,
            names,
            len(game.waitlist or []),
        ),
    )


async def check_and_create_games(session: AsyncSession) -> Dict:
    """
    Sweep the voting window and make games match the votes.

    Days with quorum and no game get one (marked as already notified, so no
    admin email fires). Scheduled games whose roster differs from the current
    vote order are reconciled. Days before today are left alone.
    """
    today = league_today()
    created: List[Dict] = []
    updated: List[Dict] = []

    for offset in range(VOTING_WINDOW_MONTHS):
        year, month = add_months(today.year, today.month, offset)
        result = await session.execute(
            select(DayVote.day, DayVote.user_id)
            .join(User, User.id == DayVote.user_id)
            .where(
                DayVote.year == year,
                DayVote.month == month,
                DayVote.vote_type == VoteType.YES,
                User.is_whitelisted == True,  # noqa: E712
            )
            .order_by(DayVote.day.asc(), DayVote.voted_at.asc(), DayVote.id.asc())
        )
        votes_by_day: Dict[int, List[str]] = {}
        for day, user_id in result.all():
            votes_by_day.setdefault(day, []).append(user_id)

        for day, voters in sorted(votes_by_day.items()):
            game_date = date(year, month, day)
            if len(voters) < QUORUM or game_date < today:
                continue

            participants, waitlist = split_roster(voters)
            game = await get_game_by_date(session, game_date)
            if game is None:
                game = Game(
                    date=game_date,
                    status=GameStatus.SCHEDULED,
                    participants=participants,
                    waitlist=waitlist,
                    admin_notification_sent=True,
                )
                session.add(game)
                await session.flush()
                created.append(
                    {
                        "game_id": game.id,
                        "date": game_date.isoformat(),
                        "participants": len(participants),
                        "waitlist": len(waitlist),
                    }
                )
            elif game.status == GameStatus.SCHEDULED and (
                set(game.participants or []) != set(participants)
                or set(game.waitlist or []) != set(waitlist)
            ):
                game.participants = participants
                game.waitlist = waitlist
                game.teams = _clean_teams(game.teams, participants)
                updated.append(
                    {
                        "game_id": game.id,
                        "date": game_date.isoformat(),
                        "participants": len(participants),
                        "waitlist": len(waitlist),
                    }
                )

    await commit_game_changes(session)
    logger.info(f"Game sweep: {len(created)} created, {len(updated)} updated")
    return {
        "games_created": len(created),
        "games_updated": len(updated),
        "details": {"created": created, "updated": updated},
    }


async def cleanup_non_whitelisted(session: AsyncSession) -> Dict:
    """
    Remove users who are no longer whitelisted from open games, back-filling
    participants from the waitlist.
    """
    result = await session.execute(select(User.id).where(User.is_whitelisted == True))  # noqa: E712
    whitelisted = {row[0] for row in result.all()}

    result = await session.execute(
        select(Game).where(Game.status.in_([GameStatus.SCHEDULED, GameStatus.CONFIRMED]))
    )
    details = []
    for game in result.scalars().all():
        participants = [uid for uid in game.participants or [] if uid in whitelisted]
        waitlist = [uid for uid in game.waitlist or [] if uid in whitelisted]
        removed = [
            uid for uid in list(game.participants or []) + list(game.waitlist or [])
            if uid not in whitelisted
        ]
        if not removed:
            continue
        while len(participants) < MAX_PARTICIPANTS and waitlist:
            participants.append(waitlist.pop(0))
        game.participants = participants
        game.waitlist = waitlist
        game.teams = _clean_teams(game.teams, participants)
        details.append({"game_id": game.id, "date": game.date.isoformat(), "removed": removed})

    await commit_game_changes(session)
    logger.info(f"Roster cleanup: {len(details)} games updated")
    return {"updated": len(details), "details": details}


# ---------------------------------------------------------------------------
# Admin game management
# ---------------------------------------------------------------------------

def _clean_teams(teams: Optional[Dict], valid_ids: Sequence[str]) -> Optional[Dict]:
    """Drop players that are no longer on the roster from team assignments."""
    if not teams:
        return teams
    valid = set(valid_ids)
    return {
        "team1": [uid for uid in teams.get("team1", []) if uid in valid],
        "team2": [uid for uid in teams.get("team2", []) if uid in valid],
    }


def _validate_roster(participants: List[str], waitlist: List[str]) -> None:
    if len(set(participants)) != len(participants) or len(set(waitlist)) != len(waitlist):
        raise ValueError("Hay jugadores repetidos en la lista")
    if set(participants) & set(waitlist):
        raise ValueError("Un jugador no puede estar en participantes y lista de espera a la vez")
    if len(participants) > MAX_PARTICIPANTS:
        raise ValueError(f"Un partido admite como máximo {MAX_PARTICIPANTS} participantes")


def _validate_teams(teams: Dict, participants: List[str]) -> Dict:
    team1 = list(teams.get("team1") or [])
    team2 = list(teams.get("team2") or [])
    if set(team1) & set(team2):
        raise ValueError("Un jugador no puede estar en los dos equipos")
    outsiders = (set(team1) | set(team2)) - set(participants)
    if outsiders:
        raise ValueError("Los equipos solo pueden incluir participantes del partido")
    return {"team1": team1, "team2": team2}


def _validate_reservation(reservation_info: Dict) -> Dict:
    cleaned = {k: reservation_info.get(k) for k in RESERVATION_FIELDS if reservation_info.get(k) is not None}
    if not cleaned.get("location"):
        raise ValueError("location is required")
    if cleaned.get("time"):
        parse_game_time(cleaned["time"])
    if cleaned.get("cost") is not None and cleaned["cost"] < 0:
        raise ValueError("El costo no puede ser negativo")
    return cleaned


def validate_transition(current: GameStatus, new: GameStatus) -> None:
    """
    Raises:
        ValueError: If the status cannot move from current to new
    """
    if current == new:
        return
    if new not in ALLOWED_TRANSITIONS[current]:
        raise ValueError(f"No se puede cambiar el estado de '{current.value}' a '{new.value}'")


async def create_game(
    session: AsyncSession,
    game_date: date,
    participants: Optional[List[str]] = None,
    waitlist: Optional[List[str]] = None,
    custom_time: Optional[str] = None,
) -> Dict:
    """Admin creation of a game for a date (one game per date)."""
    participants = list(participants or [])
    waitlist = list(waitlist or [])
    _validate_roster(participants, waitlist)
    if custom_time:
        parse_game_time(custom_time)
    if await get_game_by_date(session, game_date):
        raise ValueError("Ya existe un partido para esa fecha")

    game = Game(
        date=game_date,
        status=GameStatus.SCHEDULED,
        participants=participants,
        waitlist=waitlist,
        custom_time=custom_time,
    )
    session.add(game)
    await session.flush()

    notify = len(participants) >= QUORUM
    if notify:
        await admin_notification_service.create_match_ready_notification(
            session, game.id, game_date, len(participants)
        )
        game.admin_notification_sent = True
    await commit_game_changes(session)
    if notify:
        await queue_match_ready_email(session, game)
    logger.info(f"Game {game.id} created for {game_date} by admin")
    return game_to_dict(game)


async def update_game(session: AsyncSession, game_id: str, updates: Dict) -> Dict:
    """
    Apply an admin update to a game.

    Supported keys: status, participants, waitlist, teams, reservation_info,
    custom_time. Only keys present in updates are touched.
    """
    game = await get_game(session, game_id)
    previous_status = GameStatus(game.status)

    participants = list(updates["participants"]) if "participants" in updates else list(game.participants or [])
    waitlist = list(updates["waitlist"]) if "waitlist" in updates else list(game.waitlist or [])
    if "participants" in updates or "waitlist" in updates:
        _validate_roster(participants, waitlist)
        game.participants = participants
        game.waitlist = waitlist
        game.teams = _clean_teams(game.teams, participants)

    if "teams" in updates:
        game.teams = _validate_teams(updates["teams"], participants) if updates["teams"] else None

    if "reservation_info" in updates:
        game.reservation_info = (
            _validate_reservation(updates["reservation_info"]) if updates["reservation_info"] else None
        )

    if "custom_time" in updates:
        if updates["custom_time"]:
            parse_game_time(updates["custom_time"])
        game.custom_time = updates["custom_time"] or None

    new_status = previous_status
    if updates.get("status"):
        try:
            new_status = GameStatus(updates["status"])
        except ValueError:
            raise ValueError(f"Estado inválido: {updates['status']}")
        validate_transition(previous_status, new_status)
        game.status = new_status

    await commit_game_changes(session)
    if new_status != previous_status:
        logger.info(f"Game {game_id} status {previous_status.value} -> {new_status.value}")
        if new_status == GameStatus.CONFIRMED:
            await queue_confirmation_emails(session, game)
    return game_to_dict(game)


async def confirm_game(
    session: AsyncSession,
    game_id: str,
    custom_time: Optional[str] = None,
    reservation_info: Optional[Dict] = None,
) -> Dict:
    """
    Confirm a scheduled game with its reservation details and queue the
    confirmation email to every participant.
    """
    game = await get_game(session, game_id)
    validate_transition(GameStatus(game.status), GameStatus.CONFIRMED)
    if custom_time:
        parse_game_time(custom_time)
        game.custom_time = custom_time
    if reservation_info:
        game.reservation_info = _validate_reservation(reservation_info)
    game.status = GameStatus.CONFIRMED
    await admin_notification_service.mark_game_notifications_read(session, game_id)
    await commit_game_changes(session)
    logger.info(f"Game {game_id} confirmed")
    await queue_confirmation_emails(session, game)
    return game_to_dict(game)


async def queue_confirmation_emails(
    session: AsyncSession, game: Game, only_user_ids: Optional[List[str]] = None
) -> int:
    """Queue one confirmation email per participant. Returns how many were queued."""
    users = await user_service.get_users_by_ids(session, game.participants or [])
    game_time = game.custom_time or (game.reservation_info or {}).get("time") or DEFAULT_GAME_TIME
    location = (game.reservation_info or {}).get("location")
    calendar_url = google_calendar_url(game.date, game_time, location, list(users.values()))
    queued = 0
    for uid in game.participants or []:
        if only_user_ids is not None and uid not in only_user_ids:
            continue
        user = users.get(uid)
        if not user:
            continue
        get_email_queue().enqueue(
            f"match-confirmed {game.date.isoformat()} -> {uid}",
            partial(
                email_service.send_match_confirmation,
                user["email"],
                user_service.display_name(user),
                game.date,
                game_time,
                game.reservation_info,
                calendar_url,
            ),
        )
        queued += 1
    return queued


# ---------------------------------------------------------------------------
# Results and teams
# ---------------------------------------------------------------------------

async def set_result(
    session: AsyncSession,
    game_id: str,
    team1_score: int,
    team2_score: int,
    notes: Optional[str] = None,
) -> Dict:
    """
    Record the score of a completed game and queue the completion email
    (result plus MVP voting invite) to participants.
    """
    for score in (team1_score, team2_score):
        if isinstance(score, bool) or not isinstance(score, int) or score < 0:
            raise ValueError("Los resultados deben ser números no negativos")

    game = await get_game(session, game_id)
    if game.status != GameStatus.COMPLETED:
        raise ValueError("Solo se puede cargar el resultado de partidos completados")

    result = {"team1_score": team1_score, "team2_score": team2_score}
    if notes:
        result["notes"] = notes
    if game.result and game.result.get("mvp") is not None:
        result["mvp"] = game.result["mvp"]
    game.result = result
    await commit_game_changes(session)
    logger.info(f"Result recorded for game {game_id}: {team1_score}-{team2_score}")

    users = await user_service.get_users_by_ids(session, game.participants or [])
    payment_alias = (game.reservation_info or {}).get("payment_alias")
    for uid in game.participants or []:
        user = users.get(uid)
        if not user:
            continue
        get_email_queue().enqueue(
            f"match-completed {game.date.isoformat()} -> {uid}",
            partial(
                email_service.send_match_completed,
                user["email"],
                user_service.display_name(user),
                game.date,
                game.id,
                team1_score,
                team2_score,
                payment_alias,
            ),
        )
    return game_to_dict(game)


async def clear_result(session: AsyncSession, game_id: str) -> Dict:
    game = await get_game(session, game_id)
    if game.result is None:
        raise ValueError("El partido no tiene resultado")
    game.result = None
    await commit_game_changes(session)
    logger.info(f"Result cleared for game {game_id}")
    return game_to_dict(game)


def generate_teams(participants: Sequence[str], rng: Optional[random.Random] = None) -> Dict:
    """
    Split exactly two teams' worth of players into two random teams.

    Raises:
        ValueError: If the roster is not exactly 2 * TEAM_SIZE players
    """
    players = list(participants)
    if len(players) != TEAM_SIZE * 2:
        raise ValueError(f"Se necesitan exactamente {TEAM_SIZE * 2} jugadores para armar equipos")
    (rng or random).shuffle(players)
    return {"team1": players[:TEAM_SIZE], "team2": players[TEAM_SIZE:]}


async def assign_random_teams(session: AsyncSession, game_id: str) -> Dict:
    game = await get_game(session, game_id)
    if game.status in (GameStatus.COMPLETED, GameStatus.CANCELLED):
        raise ValueError("No se pueden armar equipos para este partido")
    game.teams = generate_teams(game.participants or [])
    await commit_game_changes(session)
    return game_to_dict(game)
