"""
Authentication dependencies for FastAPI routes.
"""

import os
import secrets
from typing import Optional

from dotenv import load_dotenv
from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from league_engine.services import auth_service

load_dotenv()

# Bearer scheme without auto_error so a missing header is a 401, not a 403
security = HTTPBearer(auto_error=False)

TRIGGER_SECRET = os.getenv("TRIGGER_SECRET")


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> dict:
    """
    Dependency to get the current authenticated user from JWT token.

    Args:
        credentials: HTTP Bearer token credentials

    Returns:
        User dictionary with the caller's "id"

    Raises:
        HTTPException: If the token is missing or invalid
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "unauthenticated", "message": "Must be authenticated"},
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = auth_service.verify_token(credentials.credentials)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "unauthenticated", "message": "Invalid authentication token"},
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("user_id")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "unauthenticated", "message": "Invalid token payload"},
            headers={"WWW-Authenticate": "Bearer"},
        )

    return {"id": str(user_id)}


async def require_user(user: dict = Depends(get_current_user)) -> dict:
    """Require any authenticated user."""
    return user


async def require_trigger_secret(
    x_trigger_secret: Optional[str] = Header(default=None),
) -> None:
    """
    Require the shared secret the event platform sends with trigger calls.

    Raises:
        HTTPException: 503 if no secret is configured, 401 if it does not match
    """
    expected = TRIGGER_SECRET
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Triggers are disabled: TRIGGER_SECRET is not configured",
        )
    if not x_trigger_secret or not secrets.compare_digest(x_trigger_secret, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid trigger secret",
        )
