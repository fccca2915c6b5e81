"""Timezone conversion and display formatting utilities"""
from datetime import datetime
from typing import Optional
import pytz


def to_utc(dt: datetime, tz: Optional[str] = None) -> datetime:
    """
    Convert a datetime to naive UTC.
    
    Args:
        dt: Datetime object (naive or timezone-aware)
        tz: Optional timezone string (e.g., 'America/New_York')
            If provided and dt is naive, dt is assumed to be in that timezone
    
    Returns:
        Naive datetime in UTC
    """
    if dt.tzinfo is None:
        if tz:
            dt = pytz.timezone(tz).localize(dt)
        else:
            dt = pytz.UTC.localize(dt)
    
    return dt.astimezone(pytz.UTC).replace(tzinfo=None)


def now_utc() -> datetime:
    """Get current UTC time as naive datetime"""
    return datetime.now(pytz.UTC).replace(tzinfo=None)


def format_match_datetime(dt: datetime, tz: str = "UTC") -> str:
    """
    Render a naive UTC datetime for notification text.
    
    Produces short weekday, short month, day, and 12-hour time,
    e.g. 'Sat, Oct 24, 6:30 PM', in the given display timezone.
    """
    local = pytz.UTC.localize(dt).astimezone(pytz.timezone(tz))
    hour = local.hour % 12 or 12
    meridiem = "AM" if local.hour < 12 else "PM"
    return f"{local:%a}, {local:%b} {local.day}, {hour}:{local:%M} {meridiem}"
