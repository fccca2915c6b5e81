"""Tests for application wiring and the sweep scheduler loop"""
import asyncio

import pytest

from conftest import make_match
from match_notifier import send_notification
from match_notifier.config import Config
from match_notifier.errors import AuthError
from match_notifier.main import NotifierApp
from match_notifier.services import firebase
from match_notifier.storage.models import MatchStatus


@pytest.fixture
def app(monkeypatch, database, gateway):
    monkeypatch.setenv("FIREBASE_PROJECT_ID", "tennis-connect")
    return NotifierApp(Config(), database=database, gateway=gateway)


def test_components_share_injected_clients(app, database, gateway):
    assert app.dispatcher.gateway is gateway
    assert app.sweeps.database is database
    assert app.notifications.resolver is app.resolver


@pytest.mark.asyncio
async def test_sweep_loop_survives_failing_sweep(app):
    calls = []

    async def failing_sweep():
        calls.append(1)
        raise RuntimeError("boom")

    app.running = True
    task = asyncio.create_task(app._sweep_loop("test", failing_sweep, 1))
    await asyncio.sleep(0.05)

    assert calls == [1]
    assert not task.done()

    task.cancel()
    await asyncio.gather(task, return_exceptions=True)


@pytest.mark.asyncio
async def test_custom_notification_requires_verified_caller(app, gateway, users, monkeypatch):
    def fake_verify(token, app=None):
        if token == "good":
            return {"uid": "organizer-1"}
        raise ValueError("malformed token")

    monkeypatch.setattr(firebase.auth, "verify_id_token", fake_verify)
    request = {"recipientIds": ["u1", "u2"], "title": "Court change", "body": "Moved to court 2"}

    with pytest.raises(AuthError):
        await app.send_custom_notification(request, "bad")
    assert gateway.multicasts == []

    result = await app.send_custom_notification(request, "good")

    assert result == {"success": True, "successCount": 2, "failureCount": 0}


@pytest.mark.asyncio
async def test_cli_cancel_notifies_players(app, database, gateway, users):
    database.upsert_match(make_match())

    assert await send_notification.cancel_match(app, "m1", "Rain") is True

    assert database.get_match("m1").status == MatchStatus.CANCELLED
    assert len(gateway.multicasts) == 1
    assert sorted(gateway.multicasts[0]["tokens"]) == ["tok-u1", "tok-u2"]
    assert await send_notification.cancel_match(app, "missing", None) is False


@pytest.mark.asyncio
async def test_cli_send_rejects_missing_token(app, gateway, users):
    assert await send_notification.send_custom(app, ["u1"], "T", "B", None) is False
    assert gateway.multicasts == []
