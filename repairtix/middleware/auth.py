"""
JWT authentication dependencies.

Resolves the Bearer token on each request to a ``User``. Every failure to
authenticate is reported as 401 "Invalid token" whatever part of the token
was wrong.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from repairtix.database import get_db
from repairtix.errors import ForbiddenError, UnauthorizedError
from repairtix.models import User
from repairtix.security import verify_token

logger = logging.getLogger(__name__)

# Missing credentials raise our 401 rather than HTTPBearer's 403
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Validate JWT token and return current user.

    Args:
        credentials: HTTP Authorization header with Bearer token
        db: Database session

    Returns:
        Authenticated user

    Raises:
        UnauthorizedError: If the token is missing, invalid, expired, a
            refresh token, names an unknown user, or was issued for a
            company the user no longer belongs to
    """
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Invalid token")

    try:
        payload = verify_token(credentials.credentials, token_type="access")
        user_id = UUID(payload["sub"])
    except (JWTError, ValueError, KeyError, TypeError):
        raise UnauthorizedError("Invalid token")

    result = await db.execute(
        select(User).where(User.id == user_id, User.deleted_at.is_(None))
    )
    user = result.scalar_one_or_none()

    if user is None:
        raise UnauthorizedError("Invalid token")

    # Superusers move between companies, everyone else is pinned to theirs
    if not user.is_superuser:
        token_company = payload.get("company_id")
        if token_company is None or user.company_id is None or token_company != str(user.company_id):
            logger.warning(f"Token company mismatch for user {user.id}")
            raise UnauthorizedError("Invalid token")

    return user


async def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    """
    Get current user and verify they are active.

    Raises:
        ForbiddenError: If user is inactive
    """
    if not current_user.is_active:
        raise ForbiddenError("Inactive user")
    return current_user
