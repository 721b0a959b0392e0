"""
Tenant resolution.

Every request from a regular user is scoped to the user's company. Platform
superusers have no company of their own; they either act globally or, with
the ``X-Impersonate-Company`` header, inside one company.
"""

import logging
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from fastapi import Depends, Header
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from repairtix.database import get_db
from repairtix.errors import ForbiddenError
from repairtix.middleware.auth import get_current_active_user
from repairtix.models import Company, User

logger = logging.getLogger(__name__)

IMPERSONATION_HEADER = "X-Impersonate-Company"


@dataclass
class TenantContext:
    """Who is calling and which company (and location) the call is scoped to."""

    user: User
    company_id: Optional[UUID]
    location_id: Optional[UUID] = None
    impersonating: bool = False

    @property
    def is_superuser(self) -> bool:
        return self.user.is_superuser

    @property
    def role(self) -> str:
        return self.user.role


async def _active_company(db: AsyncSession, company_id: UUID) -> Optional[Company]:
    result = await db.execute(
        select(Company).where(Company.id == company_id, Company.deleted_at.is_(None))
    )
    return result.scalar_one_or_none()


async def get_tenant_context(
    impersonate_company: Optional[str] = Header(None, alias=IMPERSONATION_HEADER),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
) -> TenantContext:
    """
    Resolve the tenant for the current request.

    Raises:
        ForbiddenError: If a regular user has no company, or a superuser
            impersonates a company that does not exist
    """
    if current_user.is_superuser:
        if not impersonate_company:
            return TenantContext(user=current_user, company_id=None)

        try:
            company_id = UUID(impersonate_company)
        except ValueError:
            raise ForbiddenError("Invalid company ID for impersonation")

        if await _active_company(db, company_id) is None:
            raise ForbiddenError("Invalid company ID for impersonation")

        logger.info(f"Superuser {current_user.id} impersonating company {company_id}")
        return TenantContext(user=current_user, company_id=company_id, impersonating=True)

    if current_user.company_id is None:
        raise ForbiddenError("User must belong to a company")

    if await _active_company(db, current_user.company_id) is None:
        raise ForbiddenError("User must belong to a company")

    return TenantContext(
        user=current_user,
        company_id=current_user.company_id,
        location_id=current_user.current_location_id,
    )


async def require_company_context(
    context: TenantContext = Depends(get_tenant_context),
) -> TenantContext:
    """Tenant context that is guaranteed to carry a company."""
    if context.company_id is None:
        raise ForbiddenError("Company context required")
    return context
