"""
Unit tests for user service.
Tests provisioning, identity-provider events, flags and deletion.
"""

import pytest
from sqlalchemy import select

from futbol.database.models import DayVote, Game, MonthlyAvailability, User
from futbol.services import user_service
from futbol.services.exceptions import NotFoundError
from futbol.tests.helpers import make_users, next_sunday, vote_yes


def identity_payload(user_id="user_abc", **overrides):
    data = {
        "id": user_id,
        "email_addresses": [
            {"id": "idn_2", "email_address": "other@example.com"},
            {"id": "idn_1", "email_address": "ana@example.com"},
        ],
        "primary_email_address_id": "idn_1",
        "first_name": "Ana",
        "last_name": "García",
        "username": "anita",
        "image_url": "https://img.example.com/ana.png",
    }
    data.update(overrides)
    return data


@pytest.mark.asyncio
async def test_provision_user_defaults(db_session):
    user = await user_service.provision_user(db_session, "user_1", "new@example.com")

    assert user["name"] == "new"
    assert user["is_whitelisted"] is False
    assert user["is_admin"] is False

    again = await user_service.provision_user(db_session, "user_1", "new@example.com", "Other")
    assert again["name"] == "new"


@pytest.mark.asyncio
async def test_provision_user_requires_email(db_session):
    with pytest.raises(ValueError, match="email"):
        await user_service.provision_user(db_session, "user_1", "")


@pytest.mark.asyncio
async def test_identity_created_event(db_session):
    result = await user_service.handle_identity_event(db_session, "user.created", identity_payload())

    assert result["success"] is True
    user = await user_service.get_user_by_id(db_session, "user_abc")
    assert user["email"] == "ana@example.com"
    assert user["name"] == "Ana García"
    assert user["nickname"] == "anita"
    assert user["is_whitelisted"] is False


@pytest.mark.asyncio
async def test_identity_created_falls_back_to_username(db_session):
    payload = identity_payload(first_name=None, last_name=None)
    await user_service.handle_identity_event(db_session, "user.created", payload)

    user = await user_service.get_user_by_id(db_session, "user_abc")
    assert user["name"] == "anita"


@pytest.mark.asyncio
async def test_identity_updated_preserves_flags(db_session):
    await user_service.handle_identity_event(db_session, "user.created", identity_payload())
    await user_service.set_admin(db_session, "user_abc", True)
    await user_service.set_whitelisted(db_session, "user_abc", True)

    await user_service.handle_identity_event(
        db_session, "user.updated", identity_payload(first_name="Anabel")
    )

    user = await user_service.get_user_by_id(db_session, "user_abc")
    assert user["name"] == "Anabel García"
    assert user["is_admin"] is True
    assert user["is_whitelisted"] is True


@pytest.mark.asyncio
async def test_identity_updated_unknown_user(db_session):
    result = await user_service.handle_identity_event(db_session, "user.updated", identity_payload())
    assert result == {"success": True, "message": "User not found in database"}


@pytest.mark.asyncio
async def test_identity_deleted_removes_user_and_votes(db_session):
    user_id = (await make_users(db_session, 1))[0]
    await vote_yes(db_session, [user_id], next_sunday())

    result = await user_service.handle_identity_event(db_session, "user.deleted", {"id": user_id})

    assert result["success"] is True
    assert (await db_session.execute(select(User))).scalars().all() == []
    assert (await db_session.execute(select(DayVote))).scalars().all() == []
    assert (await db_session.execute(select(MonthlyAvailability))).scalars().all() == []


@pytest.mark.asyncio
async def test_identity_event_without_id(db_session):
    with pytest.raises(ValueError, match="No user ID"):
        await user_service.handle_identity_event(db_session, "user.deleted", {})


@pytest.mark.asyncio
async def test_identity_other_events_ignored(db_session):
    result = await user_service.handle_identity_event(db_session, "session.created", {"id": "sess_1"})
    assert result == {"success": True}


@pytest.mark.asyncio
async def test_update_nickname(db_session):
    user_id = (await make_users(db_session, 1))[0]

    user = await user_service.update_nickname(db_session, user_id, "  Pipa  ")
    assert user["nickname"] == "Pipa"

    with pytest.raises(ValueError, match="apodo"):
        await user_service.update_nickname(db_session, user_id, "x")

    cleared = await user_service.update_nickname(db_session, user_id, "")
    assert cleared["nickname"] is None

    with pytest.raises(NotFoundError):
        await user_service.update_nickname(db_session, "ghost", "Pipa")


@pytest.mark.asyncio
async def test_get_users_whitelisted_only(db_session):
    await make_users(db_session, 2)
    await make_users(db_session, 1, prefix="guest", whitelisted=False)

    assert len(await user_service.get_users(db_session)) == 3
    assert len(await user_service.get_users(db_session, whitelisted_only=True)) == 2


@pytest.mark.asyncio
async def test_admin_emails(db_session):
    await make_users(db_session, 2)
    await make_users(db_session, 1, prefix="admin", is_admin=True)

    assert await user_service.get_admin_emails(db_session) == ["admin_00@example.com"]


@pytest.mark.asyncio
async def test_bulk_upsert(db_session):
    await make_users(db_session, 1)

    result = await user_service.bulk_upsert(
        db_session,
        [
            {"id": "player_00", "email": "renamed@example.com", "is_admin": True},
            {"id": "player_99", "email": "p99@example.com", "name": "Nuevo"},
        ],
    )

    assert result == {"created": 1, "updated": 1}
    existing = await user_service.get_user_by_id(db_session, "player_00")
    assert existing["email"] == "renamed@example.com"
    assert existing["is_admin"] is True

    with pytest.raises(ValueError):
        await user_service.bulk_upsert(db_session, [{"id": "x"}])


def test_display_name_prefers_nickname():
    assert user_service.display_name({"nickname": "Pipa", "name": "Pedro"}) == "Pipa"
    assert user_service.display_name({"nickname": None, "name": "Pedro"}) == "Pedro"


@pytest.mark.asyncio
async def test_deleted_user_leaves_open_games(db_session):
    players = await make_users(db_session, 12)
    day = next_sunday()
    await vote_yes(db_session, players, day)

    await user_service.handle_identity_event(db_session, "user.deleted", {"id": players[0]})
    await user_service.delete_user(db_session, players[11])

    game = (await db_session.execute(select(Game))).scalar_one()
    await db_session.refresh(game)
    assert players[0] not in game.participants
    assert players[10] in game.participants
    assert len(game.participants) == 10
    assert game.waitlist == []
