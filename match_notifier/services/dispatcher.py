"""Delivery dispatcher: sends drafts through the push gateway and records outcomes"""
import asyncio
import uuid
from typing import Callable, List, Optional, Sequence

from .composer import NotificationDraft
from .push_gateway import MulticastResult, PushGateway
from ..errors import DeliveryError, StoreError
from ..storage.database import Database
from ..storage.models import NotificationRecord, NotificationStatus
from ..utils.logger import setup_logger
from ..utils.timezone import now_utc

logger = setup_logger(__name__)


class DeliveryDispatcher:
    """Sends notifications and persists a NotificationRecord for each dispatch"""
    
    def __init__(
        self,
        database: Database,
        gateway: PushGateway,
        send_timeout: float = 10.0
    ):
        """
        Initialize dispatcher
        
        Args:
            database: Record store for notification records
            gateway: Push gateway used for delivery
            send_timeout: Seconds before a gateway call is abandoned
        """
        self.database = database
        self.gateway = gateway
        self.send_timeout = send_timeout
    
    async def _call_gateway(self, func: Callable, *args):
        """Run a blocking gateway call in a worker thread under a timeout"""
        try:
            return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=self.send_timeout)
        except asyncio.TimeoutError as e:
            raise DeliveryError(
                f"Gateway call timed out after {self.send_timeout}s", reason="timeout"
            ) from e
    
    async def send_one(self, token: str, draft: NotificationDraft) -> str:
        """
        Deliver a draft to a single token
        
        Returns:
            Gateway message ID
        
        Raises:
            DeliveryError: if the gateway rejects the message or times out
        """
        return await self._call_gateway(
            self.gateway.send, token, draft.title, draft.body, draft.data
        )
    
    async def send_many(self, tokens: Sequence[str], draft: NotificationDraft) -> MulticastResult:
        """
        Deliver a draft to many tokens
        
        Stale tokens show up as failures in the result and are not retried.
        
        Raises:
            DeliveryError: if the whole multicast call fails
        """
        if not tokens:
            return MulticastResult()
        return await self._call_gateway(
            self.gateway.send_multicast, list(tokens), draft.title, draft.body, draft.data
        )
    
    async def deliver(
        self,
        draft: NotificationDraft,
        tokens: Sequence[str]
    ) -> Optional[NotificationRecord]:
        """
        Multicast a draft and record the outcome
        
        Returns:
            The terminal NotificationRecord, or None when there was nobody
            to send to
        """
        tokens = list(dict.fromkeys(t for t in tokens if t))
        if not tokens:
            logger.debug(f"No tokens for '{draft.title}', skipping dispatch")
            return None
        
        record = self._new_record(draft, tokens=tokens)
        return await self.dispatch_record(record, persist_new=True)
    
    async def deliver_direct(
        self,
        draft: NotificationDraft,
        token: Optional[str]
    ) -> Optional[NotificationRecord]:
        """Send a draft to a single token and record the outcome"""
        if not token:
            return None
        
        record = self._new_record(draft, token=token)
        return await self.dispatch_record(record, persist_new=True)
    
    async def dispatch_record(
        self,
        record: NotificationRecord,
        persist_new: bool = False
    ) -> NotificationRecord:
        """
        Deliver a pending notification record and write back its status
        
        Args:
            record: Pending record carrying either a token or a token list
            persist_new: Insert the record before sending (it does not exist yet)
        
        Returns:
            The record with its terminal status
        """
        if persist_new:
            await asyncio.to_thread(self._save, record, True)
        
        try:
            if record.token:
                await self.send_one(record.token, self._draft(record))
            elif record.tokens:
                result = await self.send_many(record.tokens, self._draft(record))
                record.success_count = result.success_count
                record.failure_count = result.failure_count
            else:
                raise DeliveryError("Notification has no token or tokens", reason="no-recipients")
            record.status = NotificationStatus.SENT
            record.sent_at = now_utc()
            logger.info(
                f"Sent '{record.title}' ({record.id}): "
                f"{self._describe(record)}"
            )
        except DeliveryError as e:
            record.status = NotificationStatus.FAILED
            record.error = e.message
            logger.error(f"Error sending notification {record.id}: {e}")
        except Exception as e:
            record.status = NotificationStatus.FAILED
            record.error = str(e) or type(e).__name__
            logger.exception(f"Unexpected error sending notification {record.id}")
        
        await asyncio.to_thread(self._save, record)
        return record
    
    def _save(self, record: NotificationRecord, insert: bool = False):
        try:
            if insert:
                self.database.insert_notification(record)
            else:
                self.database.update_notification(record)
        except StoreError as e:
            logger.error(f"Failed to persist notification {record.id}: {e}")
    
    @staticmethod
    def _new_record(
        draft: NotificationDraft,
        token: Optional[str] = None,
        tokens: Optional[List[str]] = None
    ) -> NotificationRecord:
        return NotificationRecord(
            id=uuid.uuid4().hex,
            title=draft.title,
            body=draft.body,
            data=dict(draft.data),
            created_at=now_utc(),
            token=token,
            tokens=tokens or []
        )
    
    @staticmethod
    def _draft(record: NotificationRecord) -> NotificationDraft:
        return NotificationDraft(record.title, record.body, dict(record.data))
    
    @staticmethod
    def _describe(record: NotificationRecord) -> str:
        if record.is_multicast:
            return f"{record.success_count} succeeded, {record.failure_count} failed"
        return "delivered to 1 token"
