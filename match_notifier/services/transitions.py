"""Classify match updates into notification-worthy transitions"""
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from ..storage.models import Match, MatchStatus


class TransitionType(str, Enum):
    """Kinds of match changes that produce notifications"""
    CANCELLED = "match_cancelled"
    SUBSTITUTE_NEEDED = "substitute_needed"
    PLAYER_JOINED = "player_joined"
    PLAYER_LEFT = "player_left"
    RESCHEDULED = "match_rescheduled"


@dataclass(frozen=True)
class Transition:
    """A single change detected between two match snapshots"""
    type: TransitionType
    player_id: Optional[str] = None


def classify(before: Optional[Match], after: Optional[Match]) -> List[Transition]:
    """
    Diff two snapshots of the same match
    
    Every rule is evaluated independently, so one update can produce
    several transitions. Creation and deletion (a missing snapshot)
    produce none.
    
    Args:
        before: Match state prior to the update
        after: Match state after the update
    
    Returns:
        Transitions in a stable order: cancellation, substitute request,
        joins, departures, reschedule
    """
    if before is None or after is None:
        return []
    
    transitions: List[Transition] = []
    
    if before.status != MatchStatus.CANCELLED and after.status == MatchStatus.CANCELLED:
        transitions.append(Transition(TransitionType.CANCELLED))
    
    if not before.sub_needed and after.sub_needed:
        transitions.append(Transition(TransitionType.SUBSTITUTE_NEEDED))
    
    previous = set(before.player_ids)
    current = set(after.player_ids)
    
    for player_id in after.player_ids:
        if player_id not in previous:
            transitions.append(Transition(TransitionType.PLAYER_JOINED, player_id))
    
    for player_id in before.player_ids:
        if player_id not in current:
            transitions.append(Transition(TransitionType.PLAYER_LEFT, player_id))
    
    if before.match_date != after.match_date or before.match_time != after.match_time:
        transitions.append(Transition(TransitionType.RESCHEDULED))
    
    return transitions
