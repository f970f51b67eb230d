"""FastAPI authentication dependencies for route protection."""

import uuid

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.auth.security import ACCESS, decode_token
from marketplace.database import get_db
from marketplace.errors import AuthenticationError, AuthorizationError
from marketplace.models.user import User

# Missing credentials are reported by the dependencies below, as 401
_bearer_scheme = HTTPBearer(auto_error=False)


async def _user_from_token(db: AsyncSession, token: str) -> User | None:
    """Resolve an access token to an active user, or None."""
    try:
        payload = decode_token(token, expected_type=ACCESS)
        user_id = uuid.UUID(payload.get("sub") or "")
    except (JWTError, ValueError):
        return None

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        return None
    return user


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Return the authenticated user.

    Raises:
        AuthenticationError: no token, an invalid/expired/refresh token, or an
            unknown or deactivated user.
    """
    if credentials is None:
        raise AuthenticationError("Not authenticated")

    user = await _user_from_token(db, credentials.credentials)
    if user is None:
        raise AuthenticationError()
    return user


async def get_current_active_user(user: User = Depends(get_current_user)) -> User:
    if not user.is_active:
        raise AuthorizationError("Account is inactive")
    return user


async def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User | None:
    """Authenticate if a valid bearer token is present, otherwise return None.

    Public listing reads use this: an invalid token is treated as anonymous.
    """
    if credentials is None:
        return None
    return await _user_from_token(db, credentials.credentials)


async def require_admin(user: User = Depends(get_current_active_user)) -> User:
    if not user.is_admin:
        raise AuthorizationError("Admin access required")
    return user
