"""
Unit tests for email service and the background email queue.
"""

import asyncio
from datetime import date

import pytest

from futbol.services import email_service
from futbol.services.email_queue import EmailQueue


class FakeResponse:
    def __init__(self, status_code):
        self.status_code = status_code
        self.body = b""


def fake_sendgrid(status_code=202, sent=None):
    """Build a stand-in for SendGridAPIClient that records messages."""

    class FakeClient:
        def __init__(self, api_key):
            self.api_key = api_key

        def send(self, message):
            if sent is not None:
                sent.append(message)
            return FakeResponse(status_code)

    return FakeClient


async def _enabled(session=None):
    return True


@pytest.mark.asyncio
async def test_send_email_without_recipients():
    assert await email_service.send_email([], "Hola", "Cuerpo") is False
    assert await email_service.send_email([None, ""], "Hola", "Cuerpo") is False


@pytest.mark.asyncio
async def test_send_email_disabled_skips_provider(monkeypatch):
    sent = []
    monkeypatch.setattr(email_service, "SendGridAPIClient", fake_sendgrid(sent=sent))

    assert await email_service.send_email(["a@example.com"], "Hola", "Cuerpo") is True
    assert sent == []


@pytest.mark.asyncio
async def test_send_email_success(monkeypatch):
    sent = []
    monkeypatch.setattr(email_service, "is_enabled", _enabled)
    monkeypatch.setattr(email_service, "SENDGRID_API_KEY", "SG.test")
    monkeypatch.setattr(email_service, "SendGridAPIClient", fake_sendgrid(202, sent))

    ok = await email_service.send_voting_reminder("a@example.com", "Ana", 11, 2026)

    assert ok is True
    assert len(sent) == 1


@pytest.mark.asyncio
async def test_send_email_provider_error(monkeypatch):
    monkeypatch.setattr(email_service, "is_enabled", _enabled)
    monkeypatch.setattr(email_service, "SENDGRID_API_KEY", "SG.test")
    monkeypatch.setattr(email_service, "SendGridAPIClient", fake_sendgrid(500))

    assert await email_service.send_email(["a@example.com"], "Hola", "Cuerpo") is False


@pytest.mark.asyncio
async def test_send_email_exception_is_swallowed(monkeypatch):
    class ExplodingClient:
        def __init__(self, api_key):
            raise RuntimeError("network down")

    monkeypatch.setattr(email_service, "is_enabled", _enabled)
    monkeypatch.setattr(email_service, "SENDGRID_API_KEY", "SG.test")
    monkeypatch.setattr(email_service, "SendGridAPIClient", ExplodingClient)

    assert await email_service.send_email(["a@example.com"], "Hola", "Cuerpo") is False


@pytest.mark.asyncio
async def test_templates_render_without_provider():
    game_date = date(2026, 11, 1)
    assert await email_service.send_admin_match_ready(["admin@example.com"], game_date, ["Ana", "Beto"], 2)
    assert await email_service.send_voting_open(["a@example.com"], 12, 2026)
    assert await email_service.send_match_confirmation(
        "a@example.com", "Ana", game_date, "10:00", {"location": "Club", "cost": 5000}, "https://cal"
    )
    assert await email_service.send_match_completed(
        "a@example.com", "Ana", game_date, "g1", 3, 2, "futbol.alias"
    )
    assert await email_service.send_mvp_reminder("a@example.com", "Ana", game_date, "g1")


@pytest.mark.asyncio
async def test_configuration_status():
    status = await email_service.get_configuration_status()
    assert status["enabled"] is False
    assert status["configured"] is False
    assert status["send_delay_seconds"] == 0


@pytest.mark.asyncio
async def test_queue_drain_records_failures():
    queue = EmailQueue()
    calls = []

    async def ok():
        calls.append("ok")
        return True

    async def rejected():
        return False

    async def broken():
        raise RuntimeError("boom")

    queue.enqueue("ok", ok)
    queue.enqueue("rejected", rejected)
    queue.enqueue("broken", broken)

    assert queue.pending_count() == 3
    assert await queue.drain() == 3

    stats = queue.stats()
    assert stats["pending"] == 0
    assert stats["sent"] == 1
    assert stats["failed"] == 2
    assert [f["description"] for f in stats["recent_failures"]] == ["rejected", "broken"]
    assert stats["recent_failures"][1]["error"] == "boom"
    assert calls == ["ok"]


@pytest.mark.asyncio
async def test_queue_worker_sends_in_background():
    queue = EmailQueue()
    done = asyncio.Event()

    async def job():
        done.set()
        return True

    queue.start()
    try:
        assert queue.is_running
        queue.enqueue("background", job)
        await asyncio.wait_for(done.wait(), timeout=2)
        assert queue.sent_count == 1
    finally:
        queue.stop()
