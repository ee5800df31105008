"""
Authentication dependency.

Session/token verification happens upstream (gateway or the main app); this
service trusts the authenticated user id it is handed in the X-User-Id
header and only rejects requests that arrive without one.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import Header, HTTPException, status

logger = logging.getLogger(__name__)


class AuthenticationError(HTTPException):
    """Authentication failed."""
    def __init__(self, detail: str = "Missing authenticated user"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
        )


async def get_current_user(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id")
) -> Dict[str, Any]:
    """FastAPI dependency to get the current authenticated user.
    
    Usage:
        @router.get("/quests")
        async def list_quests(user: dict = Depends(get_current_user)):
            user_id = user["id"]
    
    Raises:
        AuthenticationError: If no user id was provided
    """
    if not x_user_id or not x_user_id.strip():
        logger.debug("Rejected request without X-User-Id")
        raise AuthenticationError()
    return {"id": x_user_id.strip()}
