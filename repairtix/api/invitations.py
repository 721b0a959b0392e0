"""
Invitation API routes.

Admins invite people to their company. The token check is public so the
sign-up page can show who is being invited before registration.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, EmailStr
from sqlalchemy.ext.asyncio import AsyncSession

from repairtix.config.permissions import UserRole
from repairtix.database import get_db
from repairtix.middleware import TenantContext, require_admin, require_company_context
from repairtix.services import invitations as invitation_service

router = APIRouter(prefix="/api/invitations", tags=["invitations"])


class InvitationCreate(BaseModel):
    email: EmailStr
    role: UserRole = UserRole.TECHNICIAN
    expires_in_days: Optional[int] = None


class InvitationResponse(BaseModel):
    id: UUID
    company_id: UUID
    email: str
    token: str
    role: str
    invited_by: UUID
    expires_at: datetime
    used_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class TokenValidationResponse(BaseModel):
    valid: bool
    error: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None
    company_id: Optional[UUID] = None


@router.post(
    "",
    response_model=InvitationResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin())],
)
async def create_invitation(
    payload: InvitationCreate,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    return await invitation_service.create_invitation(
        db,
        context.company_id,
        payload.email,
        invited_by=context.user.id,
        role=payload.role.value,
        expires_in_days=payload.expires_in_days,
    )


@router.get("", response_model=List[InvitationResponse], dependencies=[Depends(require_admin())])
async def list_invitations(
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    return await invitation_service.list_invitations(db, context.company_id)


@router.delete(
    "/{invitation_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin())],
)
async def revoke_invitation(
    invitation_id: UUID,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    await invitation_service.revoke_invitation(db, invitation_id, context.company_id)


@router.get("/validate/{token}", response_model=TokenValidationResponse)
async def validate_token(token: str, email: Optional[str] = None, db: AsyncSession = Depends(get_db)):
    validation = await invitation_service.is_token_valid(db, token, email)
    if not validation.valid:
        return TokenValidationResponse(valid=False, error=validation.error)
    invitation = validation.invitation
    return TokenValidationResponse(
        valid=True, email=invitation.email, role=invitation.role, company_id=invitation.company_id
    )
