"""
Registration and login.

Registration either creates a new company (the registering user becomes its
admin) or joins an existing one through an invitation token.
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from repairtix.config.permissions import UserRole
from repairtix.errors import BadRequestError, ConflictError, UnauthorizedError
from repairtix.models import User
from repairtix.services import companies as company_service
from repairtix.services import invitations as invitation_service
from repairtix.services import permissions as permission_service
from repairtix.services import users as user_service

logger = logging.getLogger(__name__)


async def register(
    db: AsyncSession,
    *,
    email: str,
    password: str,
    first_name: str,
    last_name: str,
    company_name: Optional[str] = None,
    invitation_token: Optional[str] = None,
) -> User:
    """
    Register a user.

    Raises:
        BadRequestError: If neither a company name nor an invitation token is
            given, the invitation is not valid, or the company exists
        ConflictError: If the e-mail is already registered
    """
    if invitation_token:
        validation = await invitation_service.is_token_valid(db, invitation_token, email)
        if not validation.valid:
            raise BadRequestError(validation.error)

        invitation = validation.invitation
        user = await user_service.create_user(
            db,
            email=email,
            password=password,
            first_name=first_name,
            last_name=last_name,
            role=invitation.role,
            company_id=invitation.company_id,
            commit=False,
        )
        await invitation_service.mark_as_used(db, invitation_token, commit=False)
        await db.commit()
        await db.refresh(user)

        logger.info(f"User {user.id} joined company {user.company_id} via invitation")
        return user

    if company_name and company_name.strip():
        if await user_service.find_by_email(db, email) is not None:
            raise ConflictError("User with this email already exists")

        company = await company_service.create_company(db, company_name, commit=False)
        user = await user_service.create_user(
            db,
            email=email,
            password=password,
            first_name=first_name,
            last_name=last_name,
            role=UserRole.ADMIN.value,
            company_id=company.id,
            commit=False,
        )
        await db.commit()
        await db.refresh(user)

        await permission_service.initialize_company_permissions(db, company.id)
        logger.info(f"User {user.id} registered new company {company.id}")
        return user

    raise BadRequestError("Either companyName or invitationToken is required")


async def login(db: AsyncSession, email: str, password: str) -> User:
    """
    Check credentials.

    Raises:
        UnauthorizedError: On unknown e-mail, wrong password or inactive user
    """
    user = await user_service.authenticate(db, email, password)
    if user is None or not user.is_active:
        raise UnauthorizedError("Invalid credentials")

    await user_service.record_login(db, user)
    return user
