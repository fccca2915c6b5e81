"""Resolve participants and substitute candidates to push tokens"""
from typing import Iterable, List, Optional

from ..errors import StoreError
from ..storage.database import Database
from ..storage.models import Match
from ..utils.logger import setup_logger

logger = setup_logger(__name__)

DEFAULT_PLAYER_NAME = "A player"


class RecipientResolver:
    """Looks up users in the record store and collects their tokens"""
    
    def __init__(self, database: Database, lookup_batch_size: int = 100):
        """
        Initialize resolver
        
        Args:
            database: Record store to read users from
            lookup_batch_size: Max user IDs fetched per lookup query
        """
        self.database = database
        self.lookup_batch_size = lookup_batch_size
    
    def resolve_tokens(self, user_ids: Iterable[str]) -> List[str]:
        """
        Get the tokens of the given users
        
        Unknown users and users without a token are skipped. A failing
        lookup batch is logged and skipped without affecting other batches.
        
        Returns:
            Deduplicated tokens, possibly empty
        """
        ids = list(dict.fromkeys(uid for uid in user_ids if uid))
        tokens: List[str] = []
        
        for start in range(0, len(ids), self.lookup_batch_size):
            batch = ids[start:start + self.lookup_batch_size]
            try:
                users = self.database.get_users(batch)
            except StoreError as e:
                logger.error(f"Failed to look up {len(batch)} user(s): {e}")
                continue
            tokens.extend(user.fcm_token for user in users if user.reachable)
        
        return list(dict.fromkeys(tokens))
    
    def resolve_substitute_tokens(self, match: Match) -> List[str]:
        """
        Get tokens of available substitutes whose rating fits the match
        
        Players already in the match are not asked to substitute.
        """
        candidates = self.database.find_substitutes(match.min_rating, match.max_rating)
        participants = set(match.player_ids)
        tokens = [
            user.fcm_token for user in candidates
            if user.reachable and user.id not in participants
        ]
        return list(dict.fromkeys(tokens))
    
    def display_name(self, user_id: str) -> str:
        """Get a user's display name, falling back to a generic label"""
        try:
            user = self.database.get_user(user_id)
        except StoreError as e:
            logger.warning(f"Could not look up name for user {user_id}: {e}")
            user = None
        return user.display_name if user and user.display_name else DEFAULT_PLAYER_NAME
    
    @staticmethod
    def excluding(user_ids: Iterable[str], excluded: Optional[str]) -> List[str]:
        """Drop one actor from a list of participant IDs"""
        return [uid for uid in user_ids if uid != excluded]
