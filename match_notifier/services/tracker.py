"""Idempotency gates for reminders and time-driven status changes"""
from dataclasses import dataclass
from datetime import datetime
from typing import List

from ..storage.database import Database
from ..storage.models import Match


@dataclass(frozen=True)
class ReminderWindow:
    """A reminder sent once when a match is between min_hours and max_hours away"""
    timeframe: str
    min_hours: float
    max_hours: float
    flag: str
    
    def contains(self, hours: float) -> bool:
        return self.min_hours <= hours <= self.max_hours


REMINDER_WINDOWS = (
    ReminderWindow("24 hours", 23.0, 25.0, "reminder_24_sent"),
    ReminderWindow("2 hours", 1.5, 2.5, "reminder_2_sent"),
)


def hours_until(match: Match, now: datetime) -> float:
    return (match.match_date - now).total_seconds() / 3600


class ReminderTracker:
    """Reads and claims the per-window reminder flags of matches"""
    
    def __init__(self, database: Database):
        self.database = database
    
    def due_windows(self, match: Match, now: datetime) -> List[ReminderWindow]:
        """Get the windows the match is in whose flag is still unset"""
        hours = hours_until(match, now)
        return [
            window for window in REMINDER_WINDOWS
            if window.contains(hours) and not getattr(match, window.flag)
        ]
    
    def claim(self, match: Match, window: ReminderWindow) -> bool:
        """
        Claim the right to send a reminder
        
        The flag is set with a conditional write, so when overlapping
        sweeps race for the same window exactly one of them wins.
        
        Returns:
            True if the caller should send the reminder
        """
        claimed = self.database.claim_reminder(match.id, window.flag)
        if claimed:
            setattr(match, window.flag, True)
        return claimed


def is_due_for_completion(match: Match, now: datetime) -> bool:
    """A non-terminal match is complete once its scheduled end has passed"""
    return not match.status.is_terminal and now > match.end_time
