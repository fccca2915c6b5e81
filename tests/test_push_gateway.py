"""Tests for the Firebase push gateway adapter"""
import warnings
from types import SimpleNamespace

import pytest
from firebase_admin import exceptions, messaging

from match_notifier.errors import DeliveryError
from match_notifier.services import firebase
from match_notifier.services.push_gateway import FirebasePushGateway, stringify_data


def batch_response(tokens, failing=()):
    responses = [
        SimpleNamespace(success=False, message_id=None, exception=Exception("unregistered"))
        if token in failing
        else SimpleNamespace(success=True, message_id=f"id-{token}", exception=None)
        for token in tokens
    ]
    success = sum(1 for r in responses if r.success)
    return SimpleNamespace(success_count=success, failure_count=len(responses) - success, responses=responses)


def test_stringify_data():
    assert stringify_data({"a": 1, "b": None, "c": "x"}) == {"a": "1", "b": "", "c": "x"}
    assert stringify_data(None) == {}


def test_send_returns_message_id(monkeypatch):
    captured = {}

    def fake_send(message, app=None):
        captured["message"] = message
        return "projects/p/messages/1"

    monkeypatch.setattr(messaging, "send", fake_send)

    message_id = FirebasePushGateway().send("tok", "Title", "Body", {"matchId": 7})

    assert message_id == "projects/p/messages/1"
    assert captured["message"].token == "tok"
    assert captured["message"].data == {"matchId": "7"}


def test_send_maps_unregistered_token(monkeypatch):
    def fake_send(message, app=None):
        raise messaging.UnregisteredError("Requested entity was not found.")

    monkeypatch.setattr(messaging, "send", fake_send)

    with pytest.raises(DeliveryError) as exc_info:
        FirebasePushGateway().send("tok", "T", "B", {})
    assert exc_info.value.code == "invalid-token"


def test_send_maps_unavailable(monkeypatch):
    def fake_send(message, app=None):
        raise exceptions.UnavailableError("Service unavailable")

    monkeypatch.setattr(messaging, "send", fake_send)

    with pytest.raises(DeliveryError) as exc_info:
        FirebasePushGateway().send("tok", "T", "B", {})
    assert exc_info.value.code == "unavailable"


def test_multicast_accounts_per_token(monkeypatch):
    monkeypatch.setattr(
        messaging, "send_each_for_multicast",
        lambda message, app=None: batch_response(message.tokens, failing={"b"})
    )

    result = FirebasePushGateway().send_multicast(["a", "b", "c"], "T", "B", {})

    assert (result.success_count, result.failure_count) == (2, 1)
    assert [o.token for o in result.outcomes if not o.success] == ["b"]


def test_multicast_chunks_large_token_sets(monkeypatch):
    calls = []

    def fake_multicast(message, app=None):
        calls.append(len(message.tokens))
        return batch_response(message.tokens)

    monkeypatch.setattr(messaging, "send_each_for_multicast", fake_multicast)

    tokens = [f"t{i}" for i in range(1201)]
    result = FirebasePushGateway().send_multicast(tokens, "T", "B", {})

    assert calls == [500, 500, 201]
    assert result.success_count == 1201


def test_verify_caller(monkeypatch):
    def fake_verify(token, app=None):
        if token == "good":
            return {"uid": "user-1"}
        raise ValueError("malformed token")

    monkeypatch.setattr(firebase.auth, "verify_id_token", fake_verify)

    assert firebase.verify_caller("good") == firebase.AuthContext(uid="user-1")
    assert firebase.verify_caller("bad") is None
    assert firebase.verify_caller(None) is None


def test_multicast_counts_failed_chunk_and_keeps_going(monkeypatch):
    calls = []

    def fake_multicast(message, app=None):
        calls.append(len(message.tokens))
        if len(calls) == 2:
            raise exceptions.UnavailableError("Service unavailable")
        return batch_response(message.tokens)

    monkeypatch.setattr(messaging, "send_each_for_multicast", fake_multicast)

    tokens = [f"t{i}" for i in range(1100)]
    result = FirebasePushGateway().send_multicast(tokens, "T", "B", {})

    assert calls == [500, 500, 100]
    assert (result.success_count, result.failure_count) == (600, 500)
    failed = [o for o in result.outcomes if not o.success]
    assert [o.token for o in failed] == tokens[500:1000]
    assert all("unavailable" in o.error.lower() for o in failed)


def test_multicast_raises_when_every_chunk_fails(monkeypatch):
    def fake_multicast(message, app=None):
        raise messaging.QuotaExceededError("Quota exceeded")

    monkeypatch.setattr(messaging, "send_each_for_multicast", fake_multicast)

    with pytest.raises(DeliveryError) as exc_info:
        FirebasePushGateway().send_multicast([f"t{i}" for i in range(600)], "T", "B", {})
    assert exc_info.value.code == "quota-exceeded"


def test_messages_build_without_deprecation_warnings(monkeypatch):
    monkeypatch.setattr(messaging, "send", lambda message, app=None: "id-1")
    monkeypatch.setattr(
        messaging, "send_each_for_multicast",
        lambda message, app=None: batch_response(message.tokens)
    )
    gateway = FirebasePushGateway()

    with warnings.catch_warnings():
        warnings.simplefilter("error", DeprecationWarning)
        gateway.send("tok", "T", "B", {"matchId": "m1"})
        gateway.send_multicast(["a", "b"], "T", "B", {"matchId": "m1"})
