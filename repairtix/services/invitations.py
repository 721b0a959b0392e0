"""
Invitation service.

Admins invite people by e-mail. The invitation token is single-use, expires
after a configurable number of days and is bound to the invited address.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from repairtix.config.permissions import COMPANY_ROLES, UserRole
from repairtix.config.settings import get_settings
from repairtix.errors import BadRequestError, NotFoundError
from repairtix.models import Invitation
from repairtix.models.base import utc_now

logger = logging.getLogger(__name__)


@dataclass
class TokenValidation:
    valid: bool
    invitation: Optional[Invitation] = None
    error: Optional[str] = None


def generate_token() -> str:
    return secrets.token_urlsafe(32)


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def find_active_invitation(db: AsyncSession, email: str, company_id: UUID) -> Optional[Invitation]:
    """Unused, unexpired, not revoked invitation for an e-mail in a company."""
    result = await db.execute(
        select(Invitation).where(
            Invitation.company_id == company_id,
            Invitation.email == normalize_email(email),
            Invitation.used_at.is_(None),
            Invitation.deleted_at.is_(None),
            Invitation.expires_at > utc_now(),
        )
    )
    return result.scalars().first()


async def create_invitation(
    db: AsyncSession,
    company_id: UUID,
    email: str,
    invited_by: UUID,
    role: str = UserRole.TECHNICIAN.value,
    expires_in_days: Optional[int] = None,
) -> Invitation:
    """
    Invite an e-mail address to the company.

    Raises:
        BadRequestError: If an active invitation already exists for the address
            or the role cannot be granted by invitation
    """
    if role not in {r.value for r in COMPANY_ROLES}:
        raise BadRequestError(f"Invalid role: {role}")

    email = normalize_email(email)
    if await find_active_invitation(db, email, company_id) is not None:
        raise BadRequestError("An active invitation already exists for this email address")

    days = expires_in_days or get_settings().invitation_expiry_days
    invitation = Invitation(
        company_id=company_id,
        email=email,
        token=generate_token(),
        role=role,
        invited_by=invited_by,
        expires_at=utc_now() + timedelta(days=days),
    )
    db.add(invitation)
    await db.commit()
    await db.refresh(invitation)

    logger.info(f"Created invitation {invitation.id} for company {company_id} (role {role})")
    return invitation


async def find_by_token(db: AsyncSession, token: str) -> Optional[Invitation]:
    result = await db.execute(
        select(Invitation).where(Invitation.token == token, Invitation.deleted_at.is_(None))
    )
    return result.scalar_one_or_none()


async def is_token_valid(db: AsyncSession, token: str, email: Optional[str] = None) -> TokenValidation:
    """Check a token, optionally against the e-mail address registering with it."""
    invitation = await find_by_token(db, token)
    if invitation is None:
        return TokenValidation(valid=False, error="Invalid invitation token")
    if invitation.is_used:
        return TokenValidation(valid=False, invitation=invitation, error="Invitation has already been used")
    if invitation.is_expired:
        return TokenValidation(valid=False, invitation=invitation, error="Invitation has expired")
    if email is not None and normalize_email(email) != invitation.email:
        return TokenValidation(valid=False, invitation=invitation, error="Email does not match invitation")
    return TokenValidation(valid=True, invitation=invitation)


async def mark_as_used(db: AsyncSession, token: str, commit: bool = True) -> bool:
    """Consume a token. Returns False if it was unknown or already used."""
    invitation = await find_by_token(db, token)
    if invitation is None or invitation.is_used:
        return False
    invitation.used_at = utc_now()
    if commit:
        await db.commit()
    return True


async def list_invitations(db: AsyncSession, company_id: UUID) -> list[Invitation]:
    result = await db.execute(
        select(Invitation)
        .where(Invitation.company_id == company_id, Invitation.deleted_at.is_(None))
        .order_by(Invitation.created_at.desc())
    )
    return list(result.scalars().all())


async def revoke_invitation(db: AsyncSession, invitation_id: UUID, company_id: UUID) -> None:
    result = await db.execute(
        select(Invitation).where(
            Invitation.id == invitation_id,
            Invitation.company_id == company_id,
            Invitation.deleted_at.is_(None),
        )
    )
    invitation = result.scalar_one_or_none()
    if invitation is None:
        raise NotFoundError("Invitation not found")

    invitation.soft_delete()
    await db.commit()
    logger.info(f"Revoked invitation {invitation_id} for company {company_id}")
