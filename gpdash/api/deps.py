"""
API Dependencies
Common dependencies for API endpoints
"""

from typing import Optional
from fastapi import Depends, Query
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from gpdash.core.database import get_db, get_erp_db  # noqa: F401
from gpdash.core.security import Requester, decode_session_token, resolve_requester

# Sessions are optional; guests identify themselves with a guest id
security = HTTPBearer(auto_error=False)


def get_requester(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    guest_id: Optional[str] = Query(None, max_length=255)
) -> Requester:
    """
    Requester for GET endpoints, guest id from the query string.
    """
    return resolve_requester(_session_claims(credentials), guest_id)


def get_session_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[dict]:
    """
    Session claims for POST endpoints, which carry the guest id in the body.
    """
    return _session_claims(credentials)


def _session_claims(credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[dict]:
    if credentials is None:
        return None
    return decode_session_token(credentials.credentials)
