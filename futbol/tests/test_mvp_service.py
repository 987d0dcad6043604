"""
Unit tests for MVP service.
Tests casting votes, tallying, ties and finalization.
"""

import pytest
import pytest_asyncio
from sqlalchemy import select

from futbol.database.models import Game, GameStatus, MvpVote, MvpVoteStatus
from futbol.services import mvp_service
from futbol.services.exceptions import NotFoundError, PermissionDeniedError
from futbol.tests.helpers import make_users, next_sunday


@pytest_asyncio.fixture
async def completed_game(db_session):
    """A completed game with a result and ten participants."""
    players = await make_users(db_session, 10)
    game = Game(
        date=next_sunday(),
        status=GameStatus.COMPLETED,
        participants=players,
        waitlist=[],
        result={"team1_score": 4, "team2_score": 3},
    )
    db_session.add(game)
    await db_session.commit()
    return game, players


def test_pick_mvp_single_winner():
    assert mvp_service.pick_mvp({"A": 4, "B": 1}) == "A"


def test_pick_mvp_tie_returns_sorted_list():
    assert mvp_service.pick_mvp({"B": 3, "A": 3, "C": 1}) == ["A", "B"]


def test_pick_mvp_no_votes():
    assert mvp_service.pick_mvp({}) is None


@pytest.mark.asyncio
async def test_cast_vote_is_anonymous(db_session, completed_game):
    game, players = completed_game

    result = await mvp_service.cast_vote(db_session, game.id, players[0], players[1])

    assert result["success"] is True
    vote = (await db_session.execute(select(MvpVote))).scalar_one()
    assert vote.voted_for_id == players[1]
    assert not hasattr(vote, "voter_id")
    assert await mvp_service.has_voted(db_session, game.id, players[0]) is True
    assert await mvp_service.has_voted(db_session, game.id, players[1]) is False


@pytest.mark.asyncio
async def test_second_vote_rejected(db_session, completed_game):
    game, players = completed_game
    await mvp_service.cast_vote(db_session, game.id, players[0], players[1])

    with pytest.raises(ValueError, match="Ya votaste"):
        await mvp_service.cast_vote(db_session, game.id, players[0], players[2])

    statuses = (await db_session.execute(select(MvpVoteStatus))).scalars().all()
    assert len(statuses) == 1


@pytest.mark.asyncio
async def test_vote_rules(db_session, completed_game):
    game, players = completed_game
    outsider = (await make_users(db_session, 1, prefix="outsider"))[0]

    with pytest.raises(NotFoundError):
        await mvp_service.cast_vote(db_session, "missing", players[0], players[1])
    with pytest.raises(PermissionDeniedError):
        await mvp_service.cast_vote(db_session, game.id, outsider, players[1])
    with pytest.raises(ValueError, match="participó"):
        await mvp_service.cast_vote(db_session, game.id, players[0], outsider)
    with pytest.raises(ValueError, match="ti mismo"):
        await mvp_service.cast_vote(db_session, game.id, players[0], players[0])


@pytest.mark.asyncio
async def test_vote_requires_completed_game_with_result(db_session):
    players = await make_users(db_session, 10)
    game = Game(date=next_sunday(), status=GameStatus.CONFIRMED, participants=players, waitlist=[])
    db_session.add(game)
    await db_session.commit()

    with pytest.raises(ValueError, match="completados"):
        await mvp_service.cast_vote(db_session, game.id, players[0], players[1])


@pytest.mark.asyncio
async def test_results_visible_to_participants_only(db_session, completed_game):
    game, players = completed_game
    for voter in players[:3]:
        await mvp_service.cast_vote(db_session, game.id, voter, players[9])
    await mvp_service.cast_vote(db_session, game.id, players[3], players[8])

    results = await mvp_service.get_results(db_session, game.id, players[0])

    assert results["total_votes"] == 4
    assert results["total_participants"] == 10
    assert results["leader"] == players[9]
    assert results["vote_results"][0]["player_id"] == players[9]
    assert results["vote_results"][0]["vote_count"] == 3
    assert results["vote_results"][0]["vote_percentage"] == 75

    with pytest.raises(PermissionDeniedError):
        await mvp_service.get_results(db_session, game.id, "outsider")


@pytest.mark.asyncio
async def test_non_voters(db_session, completed_game):
    game, players = completed_game
    await mvp_service.cast_vote(db_session, game.id, players[0], players[1])

    pending = await mvp_service.get_non_voters(db_session, game.id)

    assert [u["id"] for u in pending] == players[1:]


@pytest.mark.asyncio
async def test_finalize_with_tie(db_session, completed_game):
    game, players = completed_game
    votes = [(0, 5), (1, 5), (2, 6), (3, 6), (4, 7)]
    for voter, target in votes:
        await mvp_service.cast_vote(db_session, game.id, players[voter], players[target])

    result = await mvp_service.finalize(db_session, game.id)

    assert result["is_tie"] is True
    assert result["mvp"] == sorted([players[5], players[6]])
    assert result["vote_counts"][players[7]] == 1
    await db_session.refresh(game)
    assert game.result["mvp"] == sorted([players[5], players[6]])
    assert game.result["team1_score"] == 4


@pytest.mark.asyncio
async def test_finalize_twice_rejected(db_session, completed_game):
    game, players = completed_game
    await mvp_service.cast_vote(db_session, game.id, players[0], players[1])
    result = await mvp_service.finalize(db_session, game.id)
    assert result == {
        "success": True,
        "mvp": players[1],
        "is_tie": False,
        "vote_counts": {players[1]: 1},
    }

    with pytest.raises(ValueError, match="finalizada"):
        await mvp_service.finalize(db_session, game.id)
    with pytest.raises(ValueError, match="finalizada"):
        await mvp_service.cast_vote(db_session, game.id, players[2], players[1])


@pytest.mark.asyncio
async def test_finalize_without_votes_rejected(db_session, completed_game):
    game, _ = completed_game
    with pytest.raises(ValueError, match="No hay votos"):
        await mvp_service.finalize(db_session, game.id)


@pytest.mark.asyncio
async def test_leaderboard_and_all_votes(db_session, completed_game):
    game, players = completed_game
    await mvp_service.cast_vote(db_session, game.id, players[0], players[1])
    await mvp_service.cast_vote(db_session, game.id, players[2], players[1])
    await mvp_service.cast_vote(db_session, game.id, players[3], players[4])

    leaderboard = await mvp_service.get_leaderboard(db_session)
    assert leaderboard[0]["player_id"] == players[1]
    assert leaderboard[0]["total_votes"] == 2
    assert leaderboard[0]["player_name"] == "Player 01"

    all_votes = await mvp_service.get_all_votes(db_session)
    assert len(all_votes) == 3
    assert all("voter_id" not in v for v in all_votes)
