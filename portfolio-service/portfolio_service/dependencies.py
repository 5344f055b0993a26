"""
FastAPI dependencies for authentication
"""
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from typing import Optional
import logging

from .config import settings
from .exceptions import UnauthorizedError
from .schemas import User

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def decode_access_token(token: str) -> User:
    """
    Verify a JWT access token issued by the user service

    Args:
        token: JWT access token

    Returns:
        User read from the token claims

    Raises:
        UnauthorizedError: If the token is invalid, expired or has no user id
    """
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        logger.warning(f"Token verification failed: {e}")
        raise UnauthorizedError("Invalid authentication credentials")

    user_id = payload.get("sub") or payload.get("userId") or payload.get("id")
    if not user_id:
        raise UnauthorizedError("Invalid authentication credentials")

    return User(
        id=str(user_id),
        email=payload.get("email"),
        username=payload.get("username"),
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> User:
    """
    Get current authenticated user

    Raises:
        UnauthorizedError: If no valid Bearer token was sent
    """
    if not credentials:
        raise UnauthorizedError()
    return decode_access_token(credentials.credentials)


async def get_current_user_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[User]:
    """Get current user if authenticated, None otherwise"""
    if not credentials:
        return None

    try:
        return decode_access_token(credentials.credentials)
    except UnauthorizedError:
        return None
