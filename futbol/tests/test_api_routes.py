"""
Tests for the HTTP layer: authentication, authorization and error rendering.
Services are replaced with fakes; their behaviour is covered by the service tests.
"""

import json
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from svix.webhooks import Webhook

from futbol.api.main import app
from futbol.services import (
    auth_service,
    game_service,
    reminder_service,
    settings_service,
    user_service,
    vote_service,
)
from futbol.services.exceptions import ClosedMonthError, ConcurrentUpdateError, NotFoundError
from futbol.tests.helpers import previous_month


@pytest.fixture
def client():
    """Create a test client."""
    return TestClient(app)


def make_client_with_auth(monkeypatch, user_id="user_1", is_admin=False, is_whitelisted=True):
    """Create a test client with mocked authentication."""
    def fake_verify_token(token):
        return {"sub": user_id, "email": f"{user_id}@example.com"}

    async def fake_get_user_by_id(session, uid):
        return {
            "id": user_id,
            "email": f"{user_id}@example.com",
            "name": "Test User",
            "nickname": None,
            "image_url": None,
            "is_admin": is_admin,
            "is_whitelisted": is_whitelisted,
            "created_at": "2025-01-01T00:00:00+00:00",
            "updated_at": None,
        }

    monkeypatch.setattr(auth_service, "verify_token", fake_verify_token, raising=True)
    monkeypatch.setattr(user_service, "get_user_by_id", fake_get_user_by_id, raising=True)

    return TestClient(app), {"Authorization": "Bearer dummy"}


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_root_page(client):
    response = client.get("/")
    assert response.status_code == 200
    assert "Fútbol Domingos API" in response.text


def test_missing_token_is_401(client):
    response = client.get("/api/users/current")
    assert response.status_code == 401
    assert response.json() == {"error": "No autorizado"}


def test_invalid_token_is_401(client, monkeypatch):
    monkeypatch.setattr(auth_service, "verify_token", lambda token: None)
    response = client.get("/api/users/current", headers={"Authorization": "Bearer bad"})
    assert response.status_code == 401


def test_unknown_user_is_provisioned(monkeypatch):
    async def fake_get_user_by_id(session, uid):
        return None

    provisioned = {}

    async def fake_provision_user(session, user_id, email, name=None, image_url=None):
        provisioned.update(id=user_id, email=email)
        return {"id": user_id, "email": email, "name": name or "nuevo"}

    monkeypatch.setattr(auth_service, "verify_token", lambda token: {"sub": "user_new", "email": "n@example.com"})
    monkeypatch.setattr(user_service, "get_user_by_id", fake_get_user_by_id)
    monkeypatch.setattr(user_service, "provision_user", fake_provision_user)

    response = TestClient(app).get("/api/users/current", headers={"Authorization": "Bearer x"})

    assert response.status_code == 200
    assert response.json()["id"] == "user_new"
    assert response.json()["is_whitelisted"] is False
    assert provisioned == {"id": "user_new", "email": "n@example.com"}


def test_current_user(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch, is_admin=True)

    assert client.get("/api/users/current", headers=headers).json()["id"] == "user_1"
    assert client.get("/api/users/check-admin", headers=headers).json() == {"is_admin": True}


def test_admin_route_forbidden_for_players(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch, is_admin=False)

    response = client.get("/api/admin/notifications", headers=headers)

    assert response.status_code == 403
    assert response.json() == {"error": "Admin access required"}


def test_admin_cannot_demote_self(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch, is_admin=True)

    response = client.patch("/api/users/user_1/admin", json={"is_admin": False}, headers=headers)

    assert response.status_code == 400


def test_closed_month_vote_error_shape(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch)

    async def fake_record_day_vote(session, user_id, year, month, day, vote_type):
        raise ClosedMonthError()

    monkeypatch.setattr(vote_service, "record_day_vote", fake_record_day_vote)

    response = client.post("/api/day-vote", json={"year": 2020, "month": 1}, headers=headers)

    assert response.status_code == 400
    assert response.json() == {"error": "Mes cerrado", "details": "No puedes votar en meses pasados"}


def test_day_vote_passes_payload(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch)
    calls = []

    async def fake_record_day_vote(session, user_id, year, month, day, vote_type):
        calls.append((user_id, year, month, day, vote_type))
        return {"success": True, "game_created": False}

    monkeypatch.setattr(vote_service, "record_day_vote", fake_record_day_vote)

    response = client.post(
        "/api/day-vote",
        json={"year": 2030, "month": 3, "day": 3, "vote_type": "yes"},
        headers=headers,
    )

    assert response.status_code == 200
    assert calls == [("user_1", 2030, 3, 3, "yes")]


def test_validation_error_is_400(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch)

    response = client.post("/api/day-vote", json={"month": 3}, headers=headers)

    assert response.status_code == 400
    assert response.json()["error"] == "Datos inválidos"
    assert "year" in response.json()["details"]


def test_concurrent_update_is_409(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch, is_admin=True)

    async def fake_assign_random_teams(session, game_id):
        raise ConcurrentUpdateError()

    monkeypatch.setattr(game_service, "assign_random_teams", fake_assign_random_teams)

    response = client.post("/api/games/game_1/teams", headers=headers)

    assert response.status_code == 409


def test_missing_game_is_404(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch, is_admin=True)

    async def fake_update_game(session, game_id, changes):
        raise NotFoundError("Partido no encontrado")

    monkeypatch.setattr(game_service, "update_game", fake_update_game)

    response = client.patch("/api/games/nope", json={"status": "confirmed"}, headers=headers)

    assert response.status_code == 404
    assert response.json() == {"error": "Partido no encontrado"}


def test_result_requires_whitelisted_admin(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch, is_admin=True, is_whitelisted=False)

    response = client.put(
        "/api/games/game_1/result", json={"team1_score": 3, "team2_score": 2}, headers=headers
    )

    assert response.status_code == 403


def test_active_month_change_announces(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch, is_admin=True)

    async def fake_set_active_month(session, month, year):
        return True

    async def fake_queue_voting_open_email(session, month, year):
        return 12

    monkeypatch.setattr(settings_service, "set_active_month", fake_set_active_month)
    monkeypatch.setattr(reminder_service, "queue_voting_open_email", fake_queue_voting_open_email)

    response = client.put(
        "/api/admin/settings/active-month", json={"month": 4, "year": 2031}, headers=headers
    )

    assert response.status_code == 200
    assert response.json()["changed"] is True
    assert response.json()["notified"] == 12


def test_cron_requires_secret(client, monkeypatch):
    async def fake_check_and_create_games(session):
        return {"created": 0, "updated": 0}

    monkeypatch.setattr(game_service, "check_and_create_games", fake_check_and_create_games)

    assert client.post("/api/cron/check-and-create-games").status_code == 401
    assert client.post(
        "/api/cron/check-and-create-games", headers={"Authorization": "Bearer wrong"}
    ).status_code == 401

    response = client.post(
        "/api/cron/check-and-create-games", headers={"Authorization": "Bearer test-cron-secret"}
    )
    assert response.status_code == 200


def test_webhook_requires_svix_headers(client):
    response = client.post("/api/webhooks/identity", content=b"{}")
    assert response.status_code == 400
    assert response.json() == {"error": "Missing svix headers"}


def test_webhook_rejects_bad_signature(client):
    response = client.post(
        "/api/webhooks/identity",
        content=b'{"type": "user.created", "data": {"id": "user_1"}}',
        headers={"svix-id": "msg_1", "svix-timestamp": "1700000000", "svix-signature": "v1,bogus"},
    )
    assert response.status_code == 400


def test_webhook_dispatches_event(client, monkeypatch):
    received = []

    async def fake_handle_identity_event(session, event_type, data):
        received.append((event_type, data["id"]))
        return {"success": True, "message": "User created successfully"}

    monkeypatch.setattr(user_service, "handle_identity_event", fake_handle_identity_event)

    payload = json.dumps({"type": "user.created", "data": {"id": "user_9"}})
    now = datetime.now(tz=timezone.utc)
    signature = Webhook(auth_service.IDENTITY_WEBHOOK_SECRET).sign("msg_9", now, payload)

    response = client.post(
        "/api/webhooks/identity",
        content=payload.encode(),
        headers={
            "svix-id": "msg_9",
            "svix-timestamp": str(int(now.timestamp())),
            "svix-signature": signature,
        },
    )

    assert response.status_code == 200
    assert received == [("user.created", "user_9")]


def test_closed_month_availability_ignores_malformed_days(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch)
    year, month = previous_month()

    response = client.post(
        "/api/availability",
        json={"year": year, "month": month, "available_sundays": ["x"]},
        headers=headers,
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Mes cerrado"


def test_closed_month_bulk_unvote_ignores_malformed_days(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch)
    year, month = previous_month()

    response = client.post(
        "/api/availability/unvote",
        json={"year": year, "month": month, "unavailable_sundays": "x"},
        headers=headers,
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Mes cerrado"


def test_invalid_month_is_400(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch)

    blocked = client.get("/api/availability/blocked?month=13&year=2030", headers=headers)
    games = client.get("/api/games?month=13&year=2030", headers=headers)

    assert blocked.status_code == 400
    assert blocked.json() == {"error": "El mes debe estar entre 1 y 12"}
    assert games.status_code == 400


def test_unexpected_error_renders_json(monkeypatch):
    make_client_with_auth(monkeypatch)

    def broken_voting_window():
        raise RuntimeError("boom")

    monkeypatch.setattr(vote_service, "voting_window", broken_voting_window)
    client = TestClient(app, raise_server_exceptions=False)

    response = client.get("/api/voting-window", headers={"Authorization": "Bearer dummy"})

    assert response.status_code == 500
    assert response.json() == {"error": "Error interno del servidor", "details": "boom"}
