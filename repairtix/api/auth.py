"""
Authentication API routes.

Provides endpoints for:
- Registration (new company or invitation)
- Login (JWT generation)
- Token refresh
- Current user profile with roles and permissions
"""

import logging
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from jose import JWTError
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.ext.asyncio import AsyncSession

from repairtix.config.settings import get_settings
from repairtix.database import get_db
from repairtix.errors import ForbiddenError, UnauthorizedError
from repairtix.middleware.auth import get_current_active_user
from repairtix.middleware.rbac import get_user_permissions, get_user_roles
from repairtix.models import User
from repairtix.security import create_access_token, create_refresh_token, verify_token
from repairtix.services import auth as auth_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["authentication"])


# Pydantic schemas
class RegisterRequest(BaseModel):
    """Either company_name (new company) or invitation_token (join) is required."""

    email: EmailStr
    password: str = Field(..., min_length=8)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    company_name: Optional[str] = Field(None, max_length=255)
    invitation_token: Optional[str] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshTokenRequest(BaseModel):
    refresh_token: str


class UserResponse(BaseModel):
    id: UUID
    email: str
    first_name: str
    last_name: str
    role: str
    company_id: Optional[UUID]
    current_location_id: Optional[UUID]
    is_active: bool
    last_login_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds
    user: UserResponse


class MeResponse(UserResponse):
    roles: List[str]
    permissions: List[str]


def _issue_tokens(user: User) -> TokenResponse:
    settings = get_settings()
    return TokenResponse(
        access_token=create_access_token(user_id=user.id, company_id=user.company_id, email=user.email),
        refresh_token=create_refresh_token(user_id=user.id, company_id=user.company_id),
        token_type="bearer",
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=UserResponse.model_validate(user),
    )


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(register_data: RegisterRequest, db: AsyncSession = Depends(get_db)):
    """
    Register a user and return tokens.

    With ``company_name`` a new company is created and the user becomes its
    admin. With ``invitation_token`` the user joins the inviting company with
    the invited role.
    """
    user = await auth_service.register(
        db,
        email=register_data.email,
        password=register_data.password,
        first_name=register_data.first_name,
        last_name=register_data.last_name,
        company_name=register_data.company_name,
        invitation_token=register_data.invitation_token,
    )
    return _issue_tokens(user)


@router.post("/login", response_model=TokenResponse)
async def login(login_data: LoginRequest, db: AsyncSession = Depends(get_db)):
    """
    Authenticate user and return JWT tokens.

    Raises:
        UnauthorizedError: If credentials are invalid
    """
    user = await auth_service.login(db, login_data.email, login_data.password)
    return _issue_tokens(user)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(refresh_data: RefreshTokenRequest, db: AsyncSession = Depends(get_db)):
    """Exchange a refresh token for a new token pair."""
    try:
        payload = verify_token(refresh_data.refresh_token, token_type="refresh")
        user_id = UUID(payload.get("sub"))
    except (JWTError, TypeError, ValueError) as e:
        logger.warning(f"Rejected refresh token: {e}")
        raise UnauthorizedError("Invalid refresh token")

    user = await db.get(User, user_id)
    if user is None or user.is_deleted:
        raise UnauthorizedError("Invalid refresh token")
    token_company = payload.get("company_id")
    if not user.is_superuser and (user.company_id is None or token_company != str(user.company_id)):
        logger.warning(f"Refresh token company mismatch for user {user.id}")
        raise UnauthorizedError("Invalid refresh token")
    if not user.is_active:
        raise ForbiddenError("Account is disabled")

    return _issue_tokens(user)


@router.get("/me", response_model=MeResponse)
async def get_me(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """Current user with all held roles and the aggregated permissions."""
    roles: List[str] = [current_user.role]
    permissions: List[str] = []
    if current_user.company_id is not None:
        roles = await get_user_roles(db, current_user, current_user.company_id)
        permissions = await get_user_permissions(db, current_user, current_user.company_id)

    return MeResponse(
        **UserResponse.model_validate(current_user).model_dump(),
        roles=roles,
        permissions=permissions,
    )
