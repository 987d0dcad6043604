"""
Waitlist service: removing players from games and promoting from the waitlist.

When a participant leaves, the head of the waitlist (the oldest vote) takes
the free spot. Every operation here runs inside one transaction and relies
on the game's version counter to detect a concurrent change.
"""

import logging
from datetime import date
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from futbol.database.models import Game, GameStatus
from futbol.services import game_service, user_service
from futbol.services.exceptions import NotFoundError

logger = logging.getLogger(__name__)


def remove_participant(
    participants: List[str], waitlist: List[str], user_id: str
) -> Tuple[List[str], List[str], Optional[str]]:
    """
    Drop a participant and promote the head of the waitlist.

    Returns:
        (new participants, new waitlist, promoted user id or None)
    """
    new_participants = [uid for uid in participants if uid != user_id]
    new_waitlist = list(waitlist)
    promoted = None
    if new_waitlist:
        promoted = new_waitlist.pop(0)
        new_participants.append(promoted)
    return new_participants, new_waitlist, promoted


def _clean_teams(teams: Optional[Dict], removed_id: str, valid_ids: List[str]) -> Optional[Dict]:
    if not teams:
        return teams
    valid = set(valid_ids)
    return {
        "team1": [uid for uid in teams.get("team1", []) if uid != removed_id and uid in valid],
        "team2": [uid for uid in teams.get("team2", []) if uid != removed_id and uid in valid],
    }


async def withdraw_user_from_day(
    session: AsyncSession, user_id: str, game_date: date
) -> Optional[Dict]:
    """
    Take a user out of the game on a date after they withdrew their yes vote.

    Only scheduled games change: confirmed rosters are handled by admins, and
    finished or cancelled games are history. Does not commit.

    Returns:
        Dict describing the change, or None if nothing changed
    """
    game = await game_service.get_game_by_date(session, game_date)
    if game is None or game.status != GameStatus.SCHEDULED:
        return None

    participants = list(game.participants or [])
    waitlist = list(game.waitlist or [])

    if user_id in participants:
        participants, waitlist, promoted = remove_participant(participants, waitlist, user_id)
        game.participants = participants
        game.waitlist = waitlist
        game.teams = _clean_teams(game.teams, user_id, participants)
        if promoted:
            logger.info(f"User {promoted} promoted from waitlist in game {game.id} after {user_id} withdrew")
        else:
            logger.info(f"User {user_id} left game {game.id}; waitlist empty")
        return {"game_id": game.id, "removed_from": "participants", "promoted_user_id": promoted}

    if user_id in waitlist:
        game.waitlist = [uid for uid in waitlist if uid != user_id]
        logger.info(f"User {user_id} left the waitlist of game {game.id}")
        return {"game_id": game.id, "removed_from": "waitlist", "promoted_user_id": None}

    return None


async def remove_user_from_open_games(session: AsyncSession, user_id: str) -> List[Dict]:
    """
    Take a departing user out of every scheduled or confirmed game, promoting
    from the waitlist where they held a spot. Does not commit.
    """
    result = await session.execute(
        select(Game).where(Game.status.in_([GameStatus.SCHEDULED, GameStatus.CONFIRMED]))
    )
    changes = []
    for game in result.scalars().all():
        participants = list(game.participants or [])
        waitlist = list(game.waitlist or [])
        if user_id in participants:
            participants, waitlist, promoted = remove_participant(participants, waitlist, user_id)
            game.participants = participants
            game.waitlist = waitlist
            game.teams = _clean_teams(game.teams, user_id, participants)
            changes.append({"game_id": game.id, "removed_from": "participants", "promoted_user_id": promoted})
        elif user_id in waitlist:
            game.waitlist = [uid for uid in waitlist if uid != user_id]
            changes.append({"game_id": game.id, "removed_from": "waitlist", "promoted_user_id": None})
    if changes:
        logger.info(f"User {user_id} removed from {len(changes)} open game(s)")
    return changes


async def _get_open_game(session: AsyncSession, game_id: str):
    game = await game_service.get_game(session, game_id)
    if game.status == GameStatus.COMPLETED:
        raise ValueError("No se puede modificar la lista de un partido completado")
    return game


async def add_to_waitlist(session: AsyncSession, game_id: str, user_id: str) -> Dict:
    """Admin: append a user to the end of a game's waitlist."""
    game = await _get_open_game(session, game_id)
    if await user_service.get_user_by_id(session, user_id) is None:
        raise NotFoundError("Usuario no encontrado")
    if user_id in (game.participants or []):
        raise ValueError("El usuario ya es participante")
    if user_id in (game.waitlist or []):
        raise ValueError("El usuario ya está en la lista de espera")

    game.waitlist = list(game.waitlist or []) + [user_id]
    await game_service.commit_game_changes(session)
    logger.info(f"Admin added {user_id} to the waitlist of game {game_id}")
    return game_service.game_to_dict(game)


async def remove_from_game(
    session: AsyncSession,
    game_id: str,
    user_id: str,
    replacement_id: Optional[str] = None,
) -> Dict:
    """
    Admin: remove a participant.

    Without a replacement the head of the waitlist is promoted. With one, the
    replacement takes the freed spot (leaving the waitlist if they were on it).
    """
    game = await _get_open_game(session, game_id)
    participants = list(game.participants or [])
    waitlist = list(game.waitlist or [])
    if user_id not in participants:
        raise ValueError("El usuario no es participante de este partido")

    promoted = None
    if replacement_id:
        if replacement_id in participants:
            raise ValueError("El reemplazo ya es participante")
        if await user_service.get_user_by_id(session, replacement_id) is None:
            raise NotFoundError("Usuario de reemplazo no encontrado")
        participants[participants.index(user_id)] = replacement_id
        waitlist = [uid for uid in waitlist if uid != replacement_id]
        promoted = replacement_id
    else:
        participants, waitlist, promoted = remove_participant(participants, waitlist, user_id)

    game.participants = participants
    game.waitlist = waitlist
    game.teams = _clean_teams(game.teams, user_id, participants)
    await game_service.commit_game_changes(session)
    logger.info(f"Admin removed {user_id} from game {game_id}; promoted {promoted}")
    result = game_service.game_to_dict(game)
    result["promoted_user_id"] = promoted
    return result


async def remove_from_waitlist(session: AsyncSession, game_id: str, user_id: str) -> Dict:
    """Admin: remove a user from a game's waitlist."""
    game = await _get_open_game(session, game_id)
    if user_id not in (game.waitlist or []):
        raise ValueError("El usuario no está en la lista de espera")
    game.waitlist = [uid for uid in game.waitlist if uid != user_id]
    await game_service.commit_game_changes(session)
    logger.info(f"Admin removed {user_id} from the waitlist of game {game_id}")
    return game_service.game_to_dict(game)
