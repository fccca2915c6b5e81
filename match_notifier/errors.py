"""Error taxonomy for notification dispatch"""
from typing import Optional


class NotifierError(Exception):
    """Base class for all notifier errors"""
    
    code = "unknown"
    
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(NotifierError):
    """Malformed or missing fields in an ad-hoc dispatch request"""
    
    code = "invalid-argument"


class AuthError(NotifierError):
    """Ad-hoc dispatch attempted without an authenticated caller"""
    
    code = "unauthenticated"


class InternalError(NotifierError):
    """Unexpected failure surfaced to an ad-hoc caller"""
    
    code = "internal"


class DeliveryError(NotifierError):
    """The push gateway rejected or timed out a send"""
    
    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.reason = reason
    
    @property
    def code(self) -> str:
        return self.reason or "delivery-failed"


class StoreError(NotifierError):
    """A record store query or write failed"""
    
    code = "store-failed"
