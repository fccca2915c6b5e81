"""Event-driven notification entry points"""
import asyncio
from typing import Any, Dict, List, Mapping, Optional

from .composer import NotificationComposer, NotificationDraft
from .dispatcher import DeliveryDispatcher
from .firebase import AuthContext
from .recipients import RecipientResolver
from .transitions import Transition, TransitionType, classify
from ..errors import AuthError, InternalError, NotifierError, ValidationError
from ..storage.models import Match, NotificationRecord, NotificationStatus, User
from ..utils.logger import setup_logger

logger = setup_logger(__name__)

NO_TOKENS_MESSAGE = "No valid tokens found"


class NotificationService:
    """Turns record-store events and ad-hoc requests into notifications"""
    
    def __init__(
        self,
        resolver: RecipientResolver,
        composer: NotificationComposer,
        dispatcher: DeliveryDispatcher
    ):
        self.resolver = resolver
        self.composer = composer
        self.dispatcher = dispatcher
    
    async def on_match_update(
        self,
        match_id: str,
        before: Optional[Match],
        after: Optional[Match]
    ) -> List[NotificationRecord]:
        """
        Notify about every transition between two match snapshots
        
        Never raises for delivery or store problems: there is no caller to
        report to, so failures are logged and recorded on the notification.
        
        Returns:
            Records of the dispatches that were attempted
        """
        records: List[NotificationRecord] = []
        
        for transition in classify(before, after):
            try:
                record = await self._notify_transition(transition, after)
            except NotifierError as e:
                logger.error(f"Error handling {transition.type.value} for match {match_id}: {e}")
                continue
            if record:
                records.append(record)
        
        return records
    
    async def _notify_transition(
        self,
        transition: Transition,
        match: Match
    ) -> Optional[NotificationRecord]:
        actor_name = None
        
        if transition.type == TransitionType.SUBSTITUTE_NEEDED:
            tokens = await asyncio.to_thread(self.resolver.resolve_substitute_tokens, match)
        elif transition.type == TransitionType.PLAYER_JOINED:
            tokens = await asyncio.to_thread(
                self.resolver.resolve_tokens,
                self.resolver.excluding(match.player_ids, transition.player_id)
            )
        else:
            tokens = await asyncio.to_thread(self.resolver.resolve_tokens, match.player_ids)
        
        if not tokens:
            return None
        
        if transition.player_id:
            actor_name = await asyncio.to_thread(self.resolver.display_name, transition.player_id)
        
        draft = self.composer.compose(transition, match, actor_name)
        record = await self.dispatcher.deliver(draft, tokens)
        if record and record.status == NotificationStatus.SENT:
            logger.info(
                f"Sent {transition.type.value} notification to "
                f"{record.success_count} recipient(s) for match {match.id}"
            )
        return record
    
    async def on_user_create(self, user: User) -> Optional[NotificationRecord]:
        """Send the welcome notification to a newly created user"""
        if not user.reachable:
            return None
        
        record = await self.dispatcher.deliver_direct(
            self.composer.compose_welcome(user.id), user.fcm_token
        )
        if record and record.status == NotificationStatus.SENT:
            logger.info(f"Sent welcome notification to new user: {user.id}")
        return record
    
    async def on_notification_create(self, record: NotificationRecord) -> Optional[NotificationRecord]:
        """Deliver a notification record written by another component"""
        if record.is_terminal:
            logger.debug(f"Notification {record.id} already {record.status.value}, ignoring")
            return None
        return await self.dispatcher.dispatch_record(record)
    
    async def send_custom_notification(
        self,
        request: Mapping[str, Any],
        auth: Optional[AuthContext]
    ) -> Dict[str, Any]:
        """
        Ad-hoc dispatch to a list of users
        
        Args:
            request: {'recipientIds': [...], 'title': str, 'body': str, 'data': {...}}
            auth: Authenticated caller, or None
        
        Returns:
            {'success': True, 'successCount': n, 'failureCount': m} or
            {'success': False, 'message': 'No valid tokens found'}
        
        Raises:
            AuthError: no authenticated caller
            ValidationError: missing or malformed fields
            InternalError: delivery failed
        """
        if auth is None:
            raise AuthError("User must be authenticated to send notifications")
        
        recipient_ids = request.get("recipientIds")
        title = request.get("title")
        body = request.get("body")
        data = request.get("data") or {}
        
        if recipient_ids is None or not title or not body:
            raise ValidationError("Missing required fields: recipientIds, title, body")
        if not isinstance(recipient_ids, (list, tuple)) or not all(isinstance(r, str) for r in recipient_ids):
            raise ValidationError("recipientIds must be a list of user IDs")
        if not isinstance(title, str) or not isinstance(body, str):
            raise ValidationError("title and body must be strings")
        if not isinstance(data, Mapping):
            raise ValidationError("data must be a map")
        
        tokens = await asyncio.to_thread(self.resolver.resolve_tokens, list(recipient_ids))
        if not tokens:
            return {"success": False, "message": NO_TOKENS_MESSAGE}
        
        record = await self.dispatcher.deliver(NotificationDraft(title, body, dict(data)), tokens)
        
        if record is None or record.status != NotificationStatus.SENT:
            logger.error(f"Error sending custom notification for {auth.uid}")
            raise InternalError("Failed to send notification")
        
        logger.info(
            f"Custom notification from {auth.uid}: "
            f"{record.success_count} succeeded, {record.failure_count} failed"
        )
        return {
            "success": True,
            "successCount": record.success_count,
            "failureCount": record.failure_count,
        }
