"""
Unit tests for reminder service.
Tests who gets voting reminders and the sequential bulk sends.
"""

import pytest
from sqlalchemy import select

from futbol.database.models import Game, GameStatus, MonthlyAvailability, ReminderStatus
from futbol.services import email_service, mvp_service, reminder_service, settings_service
from futbol.tests.helpers import make_users, next_sunday


def recording_sender(calls, fail_for=()):
    async def send(user_email, *args, **kwargs):
        calls.append(user_email)
        return user_email not in fail_for

    return send


@pytest.mark.asyncio
async def test_send_sequentially_counts_failures():
    recipients = [{"email": "a@example.com"}, {"email": "b@example.com"}, {"email": "c@example.com"}]

    async def send_one(user):
        if user["email"] == "c@example.com":
            raise RuntimeError("boom")
        return user["email"] == "a@example.com"

    outcome = await reminder_service.send_sequentially(recipients, send_one)

    assert outcome == {
        "successful": 1,
        "failed": 2,
        "successful_emails": ["a@example.com"],
        "failed_emails": ["b@example.com", "c@example.com"],
    }


@pytest.mark.asyncio
async def test_users_needing_reminders(db_session):
    month, year = await settings_service.get_active_month(db_session)
    voted, pending, muted = await make_users(db_session, 3)
    await make_users(db_session, 1, prefix="admin", is_admin=True)
    await make_users(db_session, 1, prefix="guest", whitelisted=False)
    db_session.add(MonthlyAvailability(user_id=voted, month=month, year=year, has_voted=True))
    db_session.add(ReminderStatus(user_id=muted, month=month, year=year, is_active=False))
    await db_session.commit()

    users = await reminder_service.get_users_needing_reminders(db_session, month, year)

    assert [u["id"] for u in users] == [pending]


@pytest.mark.asyncio
async def test_send_voting_reminders_records_status(db_session, monkeypatch):
    calls = []
    players = await make_users(db_session, 2)
    monkeypatch.setattr(
        email_service,
        "send_voting_reminder",
        recording_sender(calls, fail_for={f"{players[1]}@example.com"}),
    )

    result = await reminder_service.send_voting_reminders(db_session)

    assert result["successful"] == 1
    assert result["failed"] == 1
    assert len(calls) == 2
    status = (await db_session.execute(select(ReminderStatus))).scalar_one()
    assert status.user_id == players[0]
    assert status.reminder_count == 1
    assert status.last_reminder_sent is not None


@pytest.mark.asyncio
async def test_send_voting_reminders_nobody_pending(db_session):
    result = await reminder_service.send_voting_reminders(db_session)
    assert result["count"] == 0
    assert result["successful"] == 0


@pytest.mark.asyncio
async def test_match_confirmations_need_confirmed_game(db_session):
    with pytest.raises(ValueError, match="No hay partidos confirmados"):
        await reminder_service.send_match_confirmations(db_session)


@pytest.mark.asyncio
async def test_match_confirmations_to_selected_players(db_session, monkeypatch):
    calls = []
    monkeypatch.setattr(email_service, "send_match_confirmation", recording_sender(calls))
    players = await make_users(db_session, 10)
    db_session.add(
        Game(
            date=next_sunday(),
            status=GameStatus.CONFIRMED,
            participants=players,
            waitlist=[],
            reservation_info={"location": "Club Norte", "time": "18:00"},
        )
    )
    await db_session.commit()

    everyone = await reminder_service.send_match_confirmations(db_session)
    assert everyone["successful"] == 10

    calls.clear()
    selected = await reminder_service.send_match_confirmations(db_session, players[:2])
    assert selected["successful"] == 2
    assert calls == [f"{players[0]}@example.com", f"{players[1]}@example.com"]


@pytest.mark.asyncio
async def test_mvp_reminders_target_non_voters(db_session, monkeypatch):
    calls = []
    monkeypatch.setattr(email_service, "send_mvp_reminder", recording_sender(calls))
    players = await make_users(db_session, 10)
    game = Game(
        date=next_sunday(),
        status=GameStatus.COMPLETED,
        participants=players,
        waitlist=[],
        result={"team1_score": 1, "team2_score": 0},
    )
    db_session.add(game)
    await db_session.commit()
    await mvp_service.cast_vote(db_session, game.id, players[0], players[1])

    result = await reminder_service.send_mvp_reminders(db_session)

    assert result["game_id"] == game.id
    assert result["count"] == 9
    assert f"{players[0]}@example.com" not in calls


@pytest.mark.asyncio
async def test_mvp_reminders_without_completed_game(db_session):
    with pytest.raises(ValueError, match="No hay partidos completados"):
        await reminder_service.send_mvp_reminders(db_session)


@pytest.mark.asyncio
async def test_voting_open_email_is_queued(db_session, fresh_email_queue):
    await make_users(db_session, 3)
    await make_users(db_session, 1, prefix="guest", whitelisted=False)

    assert await reminder_service.queue_voting_open_email(db_session, 12, 2026) == 3
    assert fresh_email_queue.pending_count() == 1
