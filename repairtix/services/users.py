"""
User service: accounts, role assignments and location assignments.

``User.role`` mirrors the primary row in ``user_roles``; every role change
goes through this module so the two never diverge.
"""

import logging
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from repairtix.config.permissions import COMPANY_ROLES, UserRole
from repairtix.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from repairtix.models import Location, User, UserLocation, UserRoleAssignment
from repairtix.models.base import utc_now
from repairtix.security import hash_password, verify_password
from repairtix.services import locations as location_service

logger = logging.getLogger(__name__)

TECHNICIAN_ROLES = (UserRole.TECHNICIAN.value, UserRole.MANAGER.value, UserRole.ADMIN.value)


def _check_role(role: str) -> None:
    if role not in {r.value for r in COMPANY_ROLES}:
        raise BadRequestError(f"Invalid role: {role}")


async def find_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(
        select(User).where(func.lower(User.email) == email.strip().lower(), User.deleted_at.is_(None))
    )
    return result.scalar_one_or_none()


async def get_user(db: AsyncSession, user_id: UUID, company_id: UUID) -> User:
    result = await db.execute(
        select(User).where(
            User.id == user_id,
            User.company_id == company_id,
            User.deleted_at.is_(None),
        )
    )
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError("User not found")
    return user


async def list_users(db: AsyncSession, company_id: UUID) -> list[User]:
    result = await db.execute(
        select(User)
        .where(User.company_id == company_id, User.deleted_at.is_(None))
        .order_by(User.last_name, User.first_name)
    )
    return list(result.scalars().all())


async def create_user(
    db: AsyncSession,
    *,
    email: str,
    password: str,
    first_name: str,
    last_name: str,
    role: str,
    company_id: Optional[UUID],
    commit: bool = True,
) -> User:
    """
    Create a user and its primary role assignment.

    Raises:
        ConflictError: If the e-mail is already registered
    """
    if await find_by_email(db, email) is not None:
        raise ConflictError("User with this email already exists")

    user = User(
        email=email.strip().lower(),
        hashed_password=hash_password(password),
        first_name=first_name,
        last_name=last_name,
        role=role,
        company_id=company_id,
        is_active=True,
    )
    db.add(user)
    await db.flush()

    if company_id is not None:
        db.add(UserRoleAssignment(user_id=user.id, company_id=company_id, role=role, is_primary=True))

    if commit:
        await db.commit()
        await db.refresh(user)
    return user


async def authenticate(db: AsyncSession, email: str, password: str) -> Optional[User]:
    user = await find_by_email(db, email)
    if user is None or not verify_password(password, user.hashed_password):
        return None
    return user


async def record_login(db: AsyncSession, user: User) -> None:
    user.last_login_at = utc_now()
    await db.commit()


async def update_user(db: AsyncSession, user_id: UUID, company_id: UUID, data: dict[str, Any]) -> User:
    user = await get_user(db, user_id, company_id)

    if "email" in data and data["email"] and data["email"].lower() != user.email:
        existing = await find_by_email(db, data["email"])
        if existing is not None and existing.id != user.id:
            raise ConflictError("User with this email already exists")
        data["email"] = data["email"].strip().lower()

    if "password" in data:
        password = data.pop("password")
        if password:
            user.hashed_password = hash_password(password)

    role = data.pop("role", None)
    for field, value in data.items():
        if value is not None:
            setattr(user, field, value)
    await db.commit()

    if role and role != user.role:
        await add_user_role(db, user.id, role, company_id, is_primary=True)

    await db.refresh(user)
    return user


async def delete_user(db: AsyncSession, user_id: UUID, company_id: UUID, acting_user_id: UUID) -> None:
    if user_id == acting_user_id:
        raise ForbiddenError("You cannot delete your own account")
    user = await get_user(db, user_id, company_id)
    user.soft_delete()
    await db.commit()
    logger.info(f"Deleted user {user_id} from company {company_id}")


async def list_technicians(db: AsyncSession, company_id: UUID) -> list[User]:
    """Active users holding a role that can work on tickets."""
    role_users = select(UserRoleAssignment.user_id).where(
        UserRoleAssignment.company_id == company_id,
        UserRoleAssignment.role.in_(TECHNICIAN_ROLES),
    )
    result = await db.execute(
        select(User)
        .where(
            User.company_id == company_id,
            User.deleted_at.is_(None),
            User.is_active.is_(True),
            (User.id.in_(role_users)) | (User.role.in_(TECHNICIAN_ROLES)),
        )
        .order_by(User.last_name, User.first_name)
    )
    return list(result.scalars().all())


# Roles


async def get_user_role_assignments(
    db: AsyncSession, user_id: UUID, company_id: UUID
) -> list[UserRoleAssignment]:
    result = await db.execute(
        select(UserRoleAssignment)
        .where(UserRoleAssignment.user_id == user_id, UserRoleAssignment.company_id == company_id)
        .order_by(UserRoleAssignment.is_primary.desc(), UserRoleAssignment.created_at)
    )
    return list(result.scalars().all())


async def _set_primary(db: AsyncSession, user: User, role: str, company_id: UUID) -> None:
    await db.execute(
        update(UserRoleAssignment)
        .where(UserRoleAssignment.user_id == user.id, UserRoleAssignment.company_id == company_id)
        .values(is_primary=UserRoleAssignment.role == role)
    )
    user.role = role


async def add_user_role(
    db: AsyncSession, user_id: UUID, role: str, company_id: UUID, is_primary: bool = False
) -> list[UserRoleAssignment]:
    """Grant a role (idempotent); optionally make it the primary role."""
    _check_role(role)
    user = await get_user(db, user_id, company_id)

    assignments = await get_user_role_assignments(db, user.id, company_id)
    if not any(a.role == role for a in assignments):
        db.add(UserRoleAssignment(user_id=user.id, company_id=company_id, role=role, is_primary=False))
        await db.flush()

    if is_primary or not assignments:
        await _set_primary(db, user, role, company_id)

    await db.commit()
    return await get_user_role_assignments(db, user.id, company_id)


async def remove_user_role(
    db: AsyncSession, user_id: UUID, role: str, company_id: UUID
) -> list[UserRoleAssignment]:
    """
    Revoke a role. The next remaining role becomes primary if needed.

    Raises:
        BadRequestError: If it is the user's last role
        NotFoundError: If the user does not hold the role
    """
    user = await get_user(db, user_id, company_id)
    assignments = await get_user_role_assignments(db, user.id, company_id)

    removed = next((a for a in assignments if a.role == role), None)
    if removed is None:
        raise NotFoundError("User does not have this role")
    if len(assignments) <= 1:
        raise BadRequestError("Cannot remove the last role from a user")

    await db.execute(
        delete(UserRoleAssignment).where(
            UserRoleAssignment.user_id == user.id,
            UserRoleAssignment.company_id == company_id,
            UserRoleAssignment.role == role,
        )
    )

    if removed.is_primary or user.role == role:
        remaining = [a for a in assignments if a.role != role]
        await _set_primary(db, user, remaining[0].role, company_id)

    await db.commit()
    return await get_user_role_assignments(db, user.id, company_id)


async def set_primary_role(
    db: AsyncSession, user_id: UUID, role: str, company_id: UUID
) -> list[UserRoleAssignment]:
    user = await get_user(db, user_id, company_id)
    assignments = await get_user_role_assignments(db, user.id, company_id)
    if not any(a.role == role for a in assignments):
        raise BadRequestError("User does not have this role")

    await _set_primary(db, user, role, company_id)
    await db.commit()
    return await get_user_role_assignments(db, user.id, company_id)


# Locations


async def assign_location(db: AsyncSession, user_id: UUID, location_id: UUID, company_id: UUID) -> None:
    await get_user(db, user_id, company_id)
    await location_service.get_location(db, location_id, company_id)

    existing = await db.execute(
        select(UserLocation.id).where(
            UserLocation.user_id == user_id, UserLocation.location_id == location_id
        )
    )
    if existing.scalar_one_or_none() is None:
        db.add(UserLocation(user_id=user_id, location_id=location_id))
        await db.commit()


async def remove_location(db: AsyncSession, user_id: UUID, location_id: UUID, company_id: UUID) -> None:
    user = await get_user(db, user_id, company_id)
    result = await db.execute(
        delete(UserLocation).where(
            UserLocation.user_id == user_id, UserLocation.location_id == location_id
        )
    )
    if result.rowcount == 0:
        raise NotFoundError("Location assignment not found")

    if user.current_location_id == location_id and user.role != UserRole.ADMIN.value:
        user.current_location_id = None
    await db.commit()


async def get_user_locations(db: AsyncSession, user: User, company_id: UUID) -> list[Location]:
    """Locations a user may work in (all of them for admins)."""
    if user.role in (UserRole.ADMIN.value, UserRole.SUPERUSER.value):
        return await location_service.list_locations(db, company_id)

    result = await db.execute(
        select(Location)
        .join(UserLocation, UserLocation.location_id == Location.id)
        .where(
            UserLocation.user_id == user.id,
            Location.company_id == company_id,
            Location.deleted_at.is_(None),
        )
        .order_by(Location.created_at)
    )
    return list(result.scalars().all())


async def set_current_location(
    db: AsyncSession, user: User, location_id: Optional[UUID], company_id: UUID
) -> User:
    """
    Switch the location a user is working in (None clears it).

    Raises:
        ForbiddenError: If the user may not access the location
    """
    if location_id is not None and not await location_service.user_has_location_access(
        db, user, location_id, company_id
    ):
        raise ForbiddenError("User does not have access to this location")

    user.current_location_id = location_id
    await db.commit()
    await db.refresh(user)
    return user
