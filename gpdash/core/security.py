"""
Security utilities for the GP dashboard
Session token decoding and requester identity resolution
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
import logging

from jose import JWTError, jwt

from gpdash.core.config import settings

logger = logging.getLogger(__name__)

ANONYMOUS = "anonymous"
GUEST_DISPLAY_NAME = "Guest User"


@dataclass(frozen=True)
class Requester:
    """Who is asking: the owner id used for reservations plus a display label"""
    id: str
    name: str


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT session token"""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_session_token(token: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Decode a session token

    Returns the claims, or None when the token is missing or invalid.
    Unauthenticated callers are allowed, so an invalid token is not an error.
    """
    if not token:
        return None
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        logger.warning(f"Ignoring invalid session token: {e}")
        return None


def resolve_requester(
    session: Optional[Dict[str, Any]] = None,
    guest_id: Optional[str] = None
) -> Requester:
    """
    Resolve the requester identity

    Order: session email -> session user id -> guest id -> "anonymous".
    This order decides reservation ownership and must not change.
    """
    session = session or {}
    email = session.get("sub") or session.get("email")
    user_id = session.get("uid")
    requester_id = email or (str(user_id) if user_id else None) or guest_id or ANONYMOUS

    name = session.get("name")
    if not name:
        if requester_id != ANONYMOUS and requester_id != guest_id:
            name = requester_id
        else:
            name = GUEST_DISPLAY_NAME

    return Requester(id=requester_id, name=name)
