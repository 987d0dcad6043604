"""
MVP voting for completed games.

Vote content (mvp_votes) is stored without the voter; a separate
mvp_vote_status row records who has voted. Both are written in the same
transaction, and the unique (game, voter) constraint backs the one-vote rule.
"""

import logging
from typing import Dict, List, Optional, Union

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from futbol.database.models import Game, GameStatus, MvpVote, MvpVoteStatus
from futbol.services import game_service, user_service
from futbol.services.exceptions import PermissionDeniedError

logger = logging.getLogger(__name__)


def _require_voting_open(game: Game) -> None:
    if game.status != GameStatus.COMPLETED or not game.result:
        raise ValueError("La votación de MVP solo está disponible para partidos completados con resultado")


def is_finalized(game: Game) -> bool:
    return bool(game.result) and game.result.get("mvp") is not None


async def has_voted(session: AsyncSession, game_id: str, voter_id: str) -> bool:
    result = await session.execute(
        select(MvpVoteStatus.id).where(
            MvpVoteStatus.game_id == game_id, MvpVoteStatus.voter_id == voter_id
        )
    )
    return result.first() is not None


async def cast_vote(session: AsyncSession, game_id: str, voter_id: str, voted_for_id: str) -> Dict:
    """
    Record one anonymous MVP vote.

    Raises:
        NotFoundError: Game does not exist
        PermissionDeniedError: Voter did not play the game
        ValueError: Voting closed, invalid target, or already voted
    """
    game = await game_service.get_game(session, game_id)
    _require_voting_open(game)
    if is_finalized(game):
        raise ValueError("La votación de MVP ya fue finalizada")

    participants = list(game.participants or [])
    if voter_id not in participants:
        raise PermissionDeniedError("Solo los jugadores del partido pueden votar al MVP")
    if not voted_for_id or voted_for_id not in participants:
        raise ValueError("Solo se puede votar a un jugador que participó del partido")
    if voted_for_id == voter_id:
        raise ValueError("No puedes votarte a ti mismo")
    if await has_voted(session, game_id, voter_id):
        raise ValueError("Ya votaste al MVP de este partido")

    session.add(MvpVote(game_id=game_id, voted_for_id=voted_for_id))
    session.add(MvpVoteStatus(game_id=game_id, voter_id=voter_id, has_voted=True))
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise ValueError("Ya votaste al MVP de este partido")

    logger.info(f"MVP vote recorded for game {game_id}")
    return {"success": True, "message": "Voto registrado"}


async def _tally(session: AsyncSession, game_id: str) -> Dict[str, int]:
    result = await session.execute(
        select(MvpVote.voted_for_id, func.count(MvpVote.id))
        .where(MvpVote.game_id == game_id)
        .group_by(MvpVote.voted_for_id)
    )
    return {row[0]: row[1] for row in result.all()}


def pick_mvp(counts: Dict[str, int]) -> Optional[Union[str, List[str]]]:
    """
    Highest vote count wins; a tie yields the sorted list of tied ids.

    Returns:
        A single id, a list of ids, or None when there are no votes
    """
    if not counts:
        return None
    top = max(counts.values())
    winners = sorted(uid for uid, count in counts.items() if count == top)
    return winners[0] if len(winners) == 1 else winners


async def get_results(session: AsyncSession, game_id: str, requester_id: str) -> Dict:
    """Vote counts for a game. Only participants may see them."""
    game = await game_service.get_game(session, game_id)
    if game.status != GameStatus.COMPLETED:
        raise ValueError("La votación de MVP solo está disponible para partidos completados")
    if requester_id not in (game.participants or []):
        raise PermissionDeniedError("Solo los jugadores del partido pueden ver los resultados del MVP")

    counts = await _tally(session, game_id)
    total_votes = sum(counts.values())
    users = await user_service.get_users_by_ids(session, counts.keys())

    vote_results = []
    for uid, count in sorted(counts.items(), key=lambda item: (-item[1], item[0])):
        user = users.get(uid, {})
        vote_results.append(
            {
                "player_id": uid,
                "player_name": user.get("name", "Jugador desconocido"),
                "player_nickname": user.get("nickname"),
                "player_image_url": user.get("image_url"),
                "vote_count": count,
                "vote_percentage": round(count * 100 / total_votes) if total_votes else 0,
            }
        )

    return {
        "game_id": game_id,
        "total_participants": len(game.participants or []),
        "total_votes": total_votes,
        "leader": pick_mvp(counts),
        "finalized_mvp": game.result.get("mvp") if game.result else None,
        "vote_results": vote_results,
    }


async def get_non_voters(session: AsyncSession, game_id: str) -> List[Dict]:
    """Participants who have not voted yet."""
    game = await game_service.get_game(session, game_id)
    result = await session.execute(
        select(MvpVoteStatus.voter_id).where(MvpVoteStatus.game_id == game_id)
    )
    voted = {row[0] for row in result.all()}
    pending = [uid for uid in game.participants or [] if uid not in voted]
    users = await user_service.get_users_by_ids(session, pending)
    return [users[uid] for uid in pending if uid in users]


async def finalize(session: AsyncSession, game_id: str) -> Dict:
    """
    Close MVP voting: store the winner (or tied winners) in result.mvp.

    Finalizing twice is rejected.
    """
    game = await game_service.get_game(session, game_id)
    _require_voting_open(game)
    if is_finalized(game):
        raise ValueError("La votación de MVP ya fue finalizada")

    counts = await _tally(session, game_id)
    mvp = pick_mvp(counts)
    if mvp is None:
        raise ValueError("No hay votos de MVP para este partido")

    game.result = {**game.result, "mvp": mvp}
    await game_service.commit_game_changes(session)
    logger.info(f"MVP finalized for game {game_id}: {mvp}")
    return {
        "success": True,
        "mvp": mvp,
        "is_tie": isinstance(mvp, list),
        "vote_counts": counts,
    }


async def get_leaderboard(session: AsyncSession) -> List[Dict]:
    """Total MVP votes received per player across all games."""
    result = await session.execute(
        select(MvpVote.voted_for_id, func.count(MvpVote.id).label("total"))
        .group_by(MvpVote.voted_for_id)
        .order_by(func.count(MvpVote.id).desc())
    )
    rows = result.all()
    users = await user_service.get_users_by_ids(session, [row[0] for row in rows])
    return [
        {
            "player_id": uid,
            "total_votes": total,
            "player_name": users.get(uid, {}).get("name", "Jugador desconocido"),
            "player_nickname": users.get(uid, {}).get("nickname"),
            "player_image_url": users.get(uid, {}).get("image_url"),
        }
        for uid, total in rows
    ]


async def get_all_votes(session: AsyncSession) -> List[Dict]:
    """Every anonymous vote, newest first."""
    result = await session.execute(
        select(MvpVote).order_by(MvpVote.created_at.desc(), MvpVote.id.desc())
    )
    return [
        {
            "id": vote.id,
            "game_id": vote.game_id,
            "voted_for_id": vote.voted_for_id,
            "created_at": vote.created_at.isoformat() if vote.created_at else None,
        }
        for vote in result.scalars().all()
    ]
