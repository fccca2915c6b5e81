"""Record-store writes that raise notification events"""
import asyncio
from typing import List, Optional

from .notification_service import NotificationService
from ..storage.database import Database
from ..storage.models import Match, NotificationRecord, User
from ..utils.logger import setup_logger

logger = setup_logger(__name__)


class StoreEvents:
    """
    Writes matches, users and notification records, then hands the
    before/after snapshots of each write to the notification service.
    
    Components that change the store go through here so every write that
    should notify somebody does.
    """
    
    def __init__(self, database: Database, notifications: NotificationService):
        self.database = database
        self.notifications = notifications
    
    async def save_match(self, match: Match) -> List[NotificationRecord]:
        """
        Store a match and notify about the change
        
        A newly created match has no earlier snapshot and notifies nobody.
        
        Returns:
            Records of the dispatches the update caused
        """
        before = await asyncio.to_thread(self.database.upsert_match, match)
        if before is None:
            logger.debug(f"Created match {match.id}")
            return []
        return await self.notifications.on_match_update(match.id, before, match)
    
    async def create_user(self, user: User) -> Optional[NotificationRecord]:
        """Store a user and welcome them if the user is new"""
        before = await asyncio.to_thread(self.database.upsert_user, user)
        if before is not None:
            logger.debug(f"User {user.id} already exists, no welcome sent")
            return None
        return await self.notifications.on_user_create(user)
    
    async def create_notification(self, record: NotificationRecord) -> Optional[NotificationRecord]:
        """Store a pending notification record and deliver it"""
        await asyncio.to_thread(self.database.insert_notification, record)
        return await self.notifications.on_notification_create(record)
