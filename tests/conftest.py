"""Shared fixtures for notifier tests"""
import threading
import time
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

import pytest

from match_notifier.errors import DeliveryError
from match_notifier.services.composer import NotificationComposer
from match_notifier.services.dispatcher import DeliveryDispatcher
from match_notifier.services.notification_service import NotificationService
from match_notifier.services.push_gateway import MulticastResult, PushGateway, TokenOutcome
from match_notifier.services.recipients import RecipientResolver
from match_notifier.services.store_events import StoreEvents
from match_notifier.services.sweep_service import SweepService
from match_notifier.services.tracker import ReminderTracker
from match_notifier.storage.database import Database
from match_notifier.storage.models import Match, MatchStatus, User

NOW = datetime(2026, 10, 19, 12, 0, 0)


class FakeGateway(PushGateway):
    """In-memory push gateway recording every call"""

    def __init__(self):
        self.sent: List[Dict[str, Any]] = []
        self.multicasts: List[Dict[str, Any]] = []
        self.bad_tokens = set()
        self.fail_with: Optional[DeliveryError] = None
        self.delay = 0.0
        self._lock = threading.Lock()

    def send(self, token: str, title: str, body: str, data: Mapping[str, Any]) -> str:
        time.sleep(self.delay)
        if self.fail_with:
            raise self.fail_with
        if token in self.bad_tokens:
            raise DeliveryError(f"Token {token} is not registered", reason="invalid-token")
        with self._lock:
            self.sent.append({"token": token, "title": title, "body": body, "data": dict(data)})
            return f"msg-{len(self.sent)}"

    def send_multicast(
        self,
        tokens: Sequence[str],
        title: str,
        body: str,
        data: Mapping[str, Any]
    ) -> MulticastResult:
        time.sleep(self.delay)
        if self.fail_with:
            raise self.fail_with
        outcomes = [
            TokenOutcome(token, False, error="invalid-token") if token in self.bad_tokens
            else TokenOutcome(token, True, message_id=f"msg-{token}")
            for token in tokens
        ]
        with self._lock:
            self.multicasts.append(
                {"tokens": list(tokens), "title": title, "body": body, "data": dict(data)}
            )
        success = sum(1 for o in outcomes if o.success)
        return MulticastResult(success, len(outcomes) - success, outcomes)

    def bodies(self) -> List[str]:
        return [call["body"] for call in self.multicasts + self.sent]


def make_match(match_id: str = "m1", **overrides) -> Match:
    fields = dict(
        id=match_id,
        status=MatchStatus.CONFIRMED,
        match_date=datetime(2026, 10, 24, 18, 30),
        match_time="18:30",
        court_name="Riverside Court 3",
        player_ids=["u1", "u2"],
        match_type="doubles",
        max_players=4,
        min_rating=3.0,
        max_rating=4.0,
    )
    fields.update(overrides)
    return Match(**fields)


def make_user(user_id: str, token: Optional[str] = "default", **overrides) -> User:
    fields = dict(
        id=user_id,
        display_name=f"Player {user_id}",
        fcm_token=f"tok-{user_id}" if token == "default" else token,
        rating=3.5,
    )
    fields.update(overrides)
    return User(**fields)


@pytest.fixture
def database(tmp_path) -> Database:
    return Database(db_path=str(tmp_path / "notifier.db"))


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def users(database):
    """Four players with tokens plus one without"""
    created = [make_user(uid) for uid in ("u1", "u2", "u3", "u4")]
    created.append(make_user("u5", token=None))
    for user in created:
        database.upsert_user(user)
    return created


@pytest.fixture
def resolver(database) -> RecipientResolver:
    return RecipientResolver(database)


@pytest.fixture
def composer() -> NotificationComposer:
    return NotificationComposer("UTC")


@pytest.fixture
def dispatcher(database, gateway) -> DeliveryDispatcher:
    return DeliveryDispatcher(database, gateway, send_timeout=2.0)


@pytest.fixture
def service(resolver, composer, dispatcher) -> NotificationService:
    return NotificationService(resolver, composer, dispatcher)


@pytest.fixture
def tracker(database) -> ReminderTracker:
    return ReminderTracker(database)


@pytest.fixture
def sweeps(database, resolver, composer, dispatcher, tracker) -> SweepService:
    return SweepService(database, resolver, composer, dispatcher, tracker)


@pytest.fixture
def events(database, service) -> StoreEvents:
    return StoreEvents(database, service)
