"""Firebase Admin SDK setup and caller authentication"""
from dataclasses import dataclass
from typing import Optional

import firebase_admin
from firebase_admin import auth, credentials, exceptions

from ..utils.logger import setup_logger

logger = setup_logger(__name__)


@dataclass(frozen=True)
class AuthContext:
    """An authenticated caller of the ad-hoc dispatch entry point"""
    uid: str


def initialize_firebase(project_id: str, credentials_path: Optional[str] = None):
    """Initialize the default Firebase app once"""
    if firebase_admin._apps:
        return firebase_admin.get_app()
    
    options = {"projectId": project_id}
    if credentials_path:
        app = firebase_admin.initialize_app(credentials.Certificate(credentials_path), options)
    else:
        # Application Default Credentials
        app = firebase_admin.initialize_app(options=options)
    logger.info(f"Firebase Admin SDK initialized for project {project_id}")
    return app


def verify_caller(id_token: Optional[str], app=None) -> Optional[AuthContext]:
    """
    Verify a Firebase ID token
    
    Returns:
        AuthContext for a valid token, None when the caller is anonymous
        or the token is rejected
    """
    if not id_token:
        return None
    try:
        decoded = auth.verify_id_token(id_token, app=app)
    except (ValueError, exceptions.FirebaseError) as e:
        logger.warning(f"ID token verification failed: {e}")
        return None
    return AuthContext(uid=decoded["uid"])
