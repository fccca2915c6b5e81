"""Notification text and payload templates"""
from dataclasses import dataclass, field
from typing import Dict, Optional

from .transitions import Transition, TransitionType
from ..storage.models import Match
from ..utils.timezone import format_match_datetime

REMINDER_TYPE = "match_reminder"
WELCOME_TYPE = "welcome"

WELCOME_TITLE = "Welcome to Tennis Connect! 🎾"
WELCOME_BODY = "Start by finding matches near you or creating your own match."


@dataclass
class NotificationDraft:
    """Title, body and routing data for one notification"""
    title: str
    body: str
    data: Dict[str, str] = field(default_factory=dict)


class NotificationComposer:
    """Builds notification drafts for transitions, reminders and welcomes"""
    
    def __init__(self, display_timezone: str = "UTC"):
        self.display_timezone = display_timezone
    
    def compose(
        self,
        transition: Transition,
        match: Match,
        actor_name: Optional[str] = None
    ) -> NotificationDraft:
        """
        Build the draft for a match transition
        
        Args:
            transition: Detected transition
            match: Match state after the update
            actor_name: Display name of the joining/leaving player
        
        Returns:
            Notification draft whose data carries the transition type
            and match ID
        """
        data = {"type": transition.type.value, "matchId": match.id}
        name = actor_name or "A player"
        
        if transition.type == TransitionType.CANCELLED:
            reason = f": {match.cancel_reason}" if match.cancel_reason else ""
            return NotificationDraft(
                "Match Cancelled",
                f"Match at {match.court_name} has been cancelled{reason}",
                data
            )
        
        if transition.type == TransitionType.SUBSTITUTE_NEEDED:
            return NotificationDraft(
                "Substitute Needed!",
                f"A {match.match_type} match at {match.court_name} needs a substitute player",
                data
            )
        
        if transition.type == TransitionType.PLAYER_JOINED:
            data["playerId"] = transition.player_id or ""
            return NotificationDraft(
                "New Player Joined",
                f"{name} has joined your match at {match.court_name}",
                data
            )
        
        if transition.type == TransitionType.PLAYER_LEFT:
            data["playerId"] = transition.player_id or ""
            return NotificationDraft(
                "Player Left Match",
                f"{name} has left the match. {match.spots_available} spot(s) now available.",
                data
            )
        
        if transition.type == TransitionType.RESCHEDULED:
            when = format_match_datetime(match.match_date, self.display_timezone)
            return NotificationDraft(
                "Match Rescheduled",
                f"Match at {match.court_name} has been rescheduled to {when}",
                data
            )
        
        raise ValueError(f"Unsupported transition: {transition.type}")
    
    def compose_reminder(self, match: Match, timeframe: str) -> NotificationDraft:
        """Build a reminder, e.g. timeframe='24 hours'"""
        return NotificationDraft(
            "Match Reminder",
            f"Your match at {match.court_name} is in {timeframe}",
            {"type": REMINDER_TYPE, "matchId": match.id, "timeframe": timeframe}
        )
    
    def compose_welcome(self, user_id: str) -> NotificationDraft:
        """Build the welcome notification for a new user"""
        return NotificationDraft(
            WELCOME_TITLE,
            WELCOME_BODY,
            {"type": WELCOME_TYPE, "userId": user_id}
        )
