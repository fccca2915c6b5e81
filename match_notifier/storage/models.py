"""Data models for matches, users and notification records"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional

from ..utils.timezone import to_utc


class MatchStatus(str, Enum):
    """Lifecycle status of a match"""
    OPEN = "open"
    FULL = "full"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "inProgress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    
    @property
    def is_terminal(self) -> bool:
        return self in (MatchStatus.COMPLETED, MatchStatus.CANCELLED)


# Statuses that still receive reminders (an in-progress match needs none)
REMINDER_STATUSES = (MatchStatus.OPEN, MatchStatus.FULL, MatchStatus.CONFIRMED)

NON_TERMINAL_STATUSES = REMINDER_STATUSES + (MatchStatus.IN_PROGRESS,)


class NotificationStatus(str, Enum):
    """Delivery status of a notification record"""
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


@dataclass
class Match:
    """Represents a scheduled match and its participants"""
    id: str
    status: MatchStatus
    match_date: datetime  # naive UTC start time
    court_name: str
    player_ids: List[str] = field(default_factory=list)
    match_time: Optional[str] = None  # display label as entered, e.g. '18:30'
    duration_minutes: int = 60
    match_type: str = "doubles"
    max_players: int = 4
    min_rating: float = 0.0
    max_rating: float = 7.0
    sub_needed: bool = False
    reminder_24_sent: bool = False
    reminder_2_sent: bool = False
    cancel_reason: Optional[str] = None
    updated_at: Optional[datetime] = None
    
    def __post_init__(self):
        self.status = MatchStatus(self.status)
        self.match_date = to_utc(self.match_date)
        # Participants are a set; keep first occurrence order
        self.player_ids = list(dict.fromkeys(self.player_ids))
    
    @property
    def end_time(self) -> datetime:
        return self.match_date + timedelta(minutes=self.duration_minutes or 60)
    
    @property
    def spots_available(self) -> int:
        return max(self.max_players - len(self.player_ids), 0)
    
    def __hash__(self):
        return hash(self.id)
    
    def __eq__(self, other):
        if not isinstance(other, Match):
            return False
        return self.id == other.id


@dataclass
class User:
    """Represents a user as seen by the notifier (read-only)"""
    id: str
    display_name: str
    fcm_token: Optional[str] = None
    rating: float = 0.0
    sub_available: bool = False
    created_at: Optional[datetime] = None
    
    @property
    def reachable(self) -> bool:
        return bool(self.fcm_token)


@dataclass
class NotificationRecord:
    """A dispatched (or pending) push notification"""
    id: str
    title: str
    body: str
    created_at: datetime
    token: Optional[str] = None
    tokens: List[str] = field(default_factory=list)
    data: Dict[str, Any] = field(default_factory=dict)
    status: NotificationStatus = NotificationStatus.PENDING
    sent_at: Optional[datetime] = None
    success_count: Optional[int] = None
    failure_count: Optional[int] = None
    error: Optional[str] = None
    
    def __post_init__(self):
        self.status = NotificationStatus(self.status)
    
    @property
    def is_multicast(self) -> bool:
        return not self.token
    
    @property
    def is_terminal(self) -> bool:
        return self.status != NotificationStatus.PENDING
