"""Shared API dependencies: authentication, admin guard and rate limiting."""

from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from aicouncil.db import get_db, User, UserRole
from aicouncil.services.auth_service import decode_access_token, get_user_by_id
from aicouncil.services.errors import RateLimitExceededError
from aicouncil.services.usage_tracker import UsageTracker

security = HTTPBearer(auto_error=False)


async def user_from_token(db: AsyncSession, token: Optional[str]) -> Optional[User]:
    """Resolve an access token to an active user, or None."""
    if not token:
        return None
    user_id = decode_access_token(token)
    if not user_id:
        return None
    user = await get_user_by_id(db, user_id)
    if not user or not user.is_active:
        return None
    return user


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> User:
    """Dependency to get the current authenticated user from the Bearer token."""
    if not credentials or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = decode_access_token(credentials.credentials)
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await get_user_by_id(db, user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is disabled",
        )

    return user


async def require_admin(current_user: User = Depends(get_current_user)) -> User:
    """FastAPI dependency: reject non-admin users with 403."""
    if current_user.role != UserRole.ADMIN.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user


def enforce_rate_limit(tracker: UsageTracker, user: User) -> None:
    """Raise RateLimitExceededError when the user's tier ceiling is reached this hour."""
    result = tracker.check_limit(user.id, user.subscription_tier)
    if not result.allowed:
        raise RateLimitExceededError(
            result.reason,
            requests_this_hour=result.requests_this_hour,
            limit=result.limit,
        )
