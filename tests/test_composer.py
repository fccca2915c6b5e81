"""Tests for notification templates"""
from datetime import datetime

import pytest

from conftest import make_match
from match_notifier.services.composer import NotificationComposer
from match_notifier.services.transitions import Transition, TransitionType
from match_notifier.utils.timezone import format_match_datetime


def test_cancellation_includes_reason(composer):
    match = make_match(cancel_reason="Court flooded")
    draft = composer.compose(Transition(TransitionType.CANCELLED), match)

    assert draft.title == "Match Cancelled"
    assert draft.body == "Match at Riverside Court 3 has been cancelled: Court flooded"
    assert draft.data == {"type": "match_cancelled", "matchId": "m1"}


def test_cancellation_without_reason(composer):
    draft = composer.compose(Transition(TransitionType.CANCELLED), make_match())

    assert draft.body == "Match at Riverside Court 3 has been cancelled"


def test_substitute_needed_mentions_match_type(composer):
    draft = composer.compose(Transition(TransitionType.SUBSTITUTE_NEEDED), make_match(match_type="singles"))

    assert draft.title == "Substitute Needed!"
    assert draft.body == "A singles match at Riverside Court 3 needs a substitute player"


def test_player_joined_carries_player_id(composer):
    draft = composer.compose(
        Transition(TransitionType.PLAYER_JOINED, "u3"), make_match(), actor_name="Dana"
    )

    assert draft.body == "Dana has joined your match at Riverside Court 3"
    assert draft.data == {"type": "player_joined", "matchId": "m1", "playerId": "u3"}


def test_player_left_reports_open_spots(composer):
    match = make_match(player_ids=["u1"], max_players=4)
    draft = composer.compose(Transition(TransitionType.PLAYER_LEFT, "u2"), match)

    assert draft.title == "Player Left Match"
    assert draft.body == "A player has left the match. 3 spot(s) now available."


def test_reschedule_formats_new_time(composer):
    draft = composer.compose(Transition(TransitionType.RESCHEDULED), make_match())

    assert draft.body == "Match at Riverside Court 3 has been rescheduled to Sat, Oct 24, 6:30 PM"
    assert draft.data["type"] == "match_rescheduled"


def test_reschedule_uses_display_timezone():
    composer = NotificationComposer("America/New_York")
    draft = composer.compose(Transition(TransitionType.RESCHEDULED), make_match())

    assert draft.body.endswith("Sat, Oct 24, 2:30 PM")


@pytest.mark.parametrize("moment, expected", [
    (datetime(2026, 10, 24, 0, 5), "Sat, Oct 24, 12:05 AM"),
    (datetime(2026, 10, 26, 12, 0), "Mon, Oct 26, 12:00 PM"),
])
def test_format_match_datetime_twelve_hour_clock(moment, expected):
    assert format_match_datetime(moment) == expected


def test_reminder_and_welcome(composer):
    reminder = composer.compose_reminder(make_match(), "2 hours")
    welcome = composer.compose_welcome("u9")

    assert reminder.body == "Your match at Riverside Court 3 is in 2 hours"
    assert reminder.data == {"type": "match_reminder", "matchId": "m1", "timeframe": "2 hours"}
    assert welcome.title.startswith("Welcome to Tennis Connect!")
    assert welcome.data == {"type": "welcome", "userId": "u9"}
