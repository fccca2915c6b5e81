"""Push gateway clients"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from firebase_admin import exceptions, messaging

from ..errors import DeliveryError
from ..utils.logger import setup_logger

logger = setup_logger(__name__)

# FCM accepts at most this many tokens per multicast call
FCM_MULTICAST_LIMIT = 500


@dataclass
class TokenOutcome:
    """Delivery result for one token of a multicast"""
    token: str
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


@dataclass
class MulticastResult:
    """Aggregate delivery result of a multicast"""
    success_count: int = 0
    failure_count: int = 0
    outcomes: List[TokenOutcome] = field(default_factory=list)
    
    def merge(self, other: "MulticastResult"):
        self.success_count += other.success_count
        self.failure_count += other.failure_count
        self.outcomes.extend(other.outcomes)


def stringify_data(data: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    """FCM data payloads only carry string values"""
    return {str(key): "" if value is None else str(value) for key, value in (data or {}).items()}


class PushGateway:
    """Interface of a push delivery gateway"""
    
    def send(self, token: str, title: str, body: str, data: Mapping[str, Any]) -> str:
        """Deliver to one token and return the gateway message ID"""
        raise NotImplementedError
    
    def send_multicast(
        self,
        tokens: Sequence[str],
        title: str,
        body: str,
        data: Mapping[str, Any]
    ) -> MulticastResult:
        """Deliver to many tokens with per-token accounting"""
        raise NotImplementedError


class FirebasePushGateway(PushGateway):
    """Firebase Cloud Messaging gateway built on firebase-admin"""
    
    def __init__(self, app=None):
        """
        Initialize gateway
        
        Args:
            app: Optional firebase_admin App; the default app is used if omitted
        """
        self.app = app
    
    def send(self, token: str, title: str, body: str, data: Mapping[str, Any]) -> str:
        message = messaging.Message(
            notification=messaging.Notification(title=title, body=body),
            data=stringify_data(data),
            token=token
        )
        try:
            return messaging.send(message, app=self.app)
        except exceptions.FirebaseError as e:
            raise DeliveryError(f"FCM rejected message: {e}", reason=_reason(e)) from e
        except ValueError as e:
            raise DeliveryError(f"Invalid FCM message: {e}", reason="invalid-argument") from e
    
    def send_multicast(
        self,
        tokens: Sequence[str],
        title: str,
        body: str,
        data: Mapping[str, Any]
    ) -> MulticastResult:
        """
        Multicast in FCM-sized chunks
        
        A chunk the gateway rejects as a whole is counted as failed for each
        of its tokens and the remaining chunks are still sent.
        
        Raises:
            DeliveryError: only when every chunk was rejected
        """
        result = MulticastResult()
        payload = stringify_data(data)
        last_error: Optional[DeliveryError] = None
        delivered_chunks = 0
        
        for start in range(0, len(tokens), FCM_MULTICAST_LIMIT):
            chunk = list(tokens[start:start + FCM_MULTICAST_LIMIT])
            try:
                response = self._send_chunk(chunk, title, body, payload)
            except DeliveryError as e:
                logger.warning(
                    f"Multicast chunk of {len(chunk)} tokens at offset {start} failed: {e}"
                )
                last_error = e
                result.merge(MulticastResult(
                    failure_count=len(chunk),
                    outcomes=[TokenOutcome(token=token, success=False, error=str(e)) for token in chunk]
                ))
                continue
            
            delivered_chunks += 1
            outcomes = [
                TokenOutcome(
                    token=token,
                    success=resp.success,
                    message_id=resp.message_id,
                    error=str(resp.exception) if resp.exception else None
                )
                for token, resp in zip(chunk, response.responses)
            ]
            result.merge(MulticastResult(response.success_count, response.failure_count, outcomes))
        
        if last_error is not None and delivered_chunks == 0:
            raise last_error
        return result
    
    def _send_chunk(self, chunk: List[str], title: str, body: str, payload: Dict[str, str]):
        message = messaging.MulticastMessage(
            tokens=chunk,
            notification=messaging.Notification(title=title, body=body),
            data=payload
        )
        try:
            return messaging.send_each_for_multicast(message, app=self.app)
        except exceptions.FirebaseError as e:
            raise DeliveryError(f"FCM multicast failed: {e}", reason=_reason(e)) from e
        except ValueError as e:
            raise DeliveryError(f"Invalid FCM multicast: {e}", reason="invalid-argument") from e


def _reason(error: exceptions.FirebaseError) -> str:
    """Map a Firebase error to a short gateway-specific reason"""
    if isinstance(error, messaging.UnregisteredError):
        return "invalid-token"
    if isinstance(error, messaging.QuotaExceededError):
        return "quota-exceeded"
    if isinstance(error, exceptions.UnavailableError):
        return "unavailable"
    return str(error.code or "unknown").lower().replace("_", "-")
