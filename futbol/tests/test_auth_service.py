"""
Unit tests for auth service.
Tests token verification, the cron secret and webhook signatures.
"""

import json
from datetime import datetime, timedelta, timezone

import pytest
from svix.webhooks import Webhook

from futbol.services import auth_service


def signed_headers(payload: str, msg_id: str = "msg_1"):
    now = datetime.now(tz=timezone.utc)
    signature = Webhook(auth_service.IDENTITY_WEBHOOK_SECRET).sign(msg_id, now, payload)
    return {
        "svix-id": msg_id,
        "svix-timestamp": str(int(now.timestamp())),
        "svix-signature": signature,
    }


def test_token_round_trip():
    token = auth_service.create_access_token({"sub": "user_1", "email": "a@example.com"})
    claims = auth_service.verify_token(token)
    assert claims["sub"] == "user_1"
    assert claims["email"] == "a@example.com"


def test_expired_token_rejected():
    token = auth_service.create_access_token({"sub": "user_1"}, expires_delta=timedelta(minutes=-5))
    assert auth_service.verify_token(token) is None


def test_garbage_token_rejected():
    assert auth_service.verify_token("not-a-token") is None


def test_cron_secret():
    assert auth_service.verify_cron_secret("Bearer test-cron-secret") is True
    assert auth_service.verify_cron_secret("Bearer wrong") is False
    assert auth_service.verify_cron_secret("test-cron-secret") is False
    assert auth_service.verify_cron_secret(None) is False


def test_cron_secret_unset(monkeypatch):
    monkeypatch.setattr(auth_service, "CRON_SECRET", None)
    assert auth_service.verify_cron_secret("Bearer ") is False


def test_webhook_valid_signature():
    payload = json.dumps({"type": "user.created", "data": {"id": "user_1"}})
    event = auth_service.verify_webhook(payload.encode(), signed_headers(payload))
    assert event["type"] == "user.created"
    assert event["data"]["id"] == "user_1"


def test_webhook_tampered_payload():
    payload = json.dumps({"type": "user.created", "data": {"id": "user_1"}})
    headers = signed_headers(payload)
    tampered = payload.replace("user_1", "user_2")
    with pytest.raises(ValueError, match="Invalid webhook signature"):
        auth_service.verify_webhook(tampered.encode(), headers)


def test_webhook_secret_missing(monkeypatch):
    monkeypatch.setattr(auth_service, "IDENTITY_WEBHOOK_SECRET", None)
    with pytest.raises(ValueError, match="not configured"):
        auth_service.verify_webhook(b"{}", {})
