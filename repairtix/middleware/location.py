"""
Location context dependencies.

Location-scoped resources (tickets, invoices) are created in and listed for
the user's current location.
"""

from dataclasses import replace

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from repairtix.database import get_db
from repairtix.errors import ForbiddenError
from repairtix.middleware.tenant import TenantContext, get_tenant_context
from repairtix.services import locations as location_service


async def require_location_context(
    context: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> TenantContext:
    """
    Tenant context with a current location the user may access.

    Superusers are not required to have a location; theirs is used only if it
    belongs to the company they are acting in.

    Raises:
        ForbiddenError: No company, no current location, or no access to it
    """
    if context.company_id is None:
        raise ForbiddenError("User and company context required")

    user = context.user
    if context.is_superuser:
        location_id = None
        if user.current_location_id and await location_service.location_belongs_to_company(
            db, user.current_location_id, context.company_id
        ):
            location_id = user.current_location_id
        return replace(context, location_id=location_id)

    if not user.current_location_id:
        raise ForbiddenError("User must have a current location set")

    if not await location_service.user_has_location_access(
        db, user, user.current_location_id, context.company_id
    ):
        raise ForbiddenError("User does not have access to this location")

    return replace(context, location_id=user.current_location_id)


async def optional_location_context(
    context: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> TenantContext:
    """Like :func:`require_location_context` but a missing location is allowed."""
    if context.company_id is None:
        raise ForbiddenError("User and company context required")

    user = context.user
    if not user.current_location_id:
        return replace(context, location_id=None)

    if context.is_superuser:
        belongs = await location_service.location_belongs_to_company(
            db, user.current_location_id, context.company_id
        )
        return replace(context, location_id=user.current_location_id if belongs else None)

    if not await location_service.user_has_location_access(
        db, user, user.current_location_id, context.company_id
    ):
        raise ForbiddenError("User does not have access to this location")

    return replace(context, location_id=user.current_location_id)
