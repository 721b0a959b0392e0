"""
User management API routes.

Company admins manage the users of their company: accounts, the roles each
user holds and the locations each user may work in. Any user may switch
their own current location.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.ext.asyncio import AsyncSession

from repairtix.config.permissions import UserRole
from repairtix.database import get_db
from repairtix.middleware import TenantContext, require_admin, require_company_context, require_manager_or_admin
from repairtix.services import users as user_service

router = APIRouter(prefix="/api/users", tags=["users"])


# Pydantic schemas
class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    role: UserRole = UserRole.TECHNICIAN


class UserUpdate(BaseModel):
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=8)
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None


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
    created_at: datetime

    class Config:
        from_attributes = True


class RoleRequest(BaseModel):
    role: UserRole
    is_primary: bool = False


class RoleAssignmentResponse(BaseModel):
    role: str
    is_primary: bool

    class Config:
        from_attributes = True


class LocationSummary(BaseModel):
    id: UUID
    name: str
    is_free: bool

    class Config:
        from_attributes = True


class CurrentLocationRequest(BaseModel):
    location_id: Optional[UUID] = None


@router.get("", response_model=List[UserResponse], dependencies=[Depends(require_manager_or_admin())])
async def list_users(
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.list_users(db, context.company_id)


@router.get("/technicians", response_model=List[UserResponse])
async def list_technicians(
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    """Users that tickets can be assigned to."""
    return await user_service.list_technicians(db, context.company_id)


@router.get("/me/locations", response_model=List[LocationSummary])
async def my_locations(
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.get_user_locations(db, context.user, context.company_id)


@router.put("/me/current-location", response_model=UserResponse)
async def set_my_current_location(
    payload: CurrentLocationRequest,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    """
    Switch the location the caller is working in.

    Raises:
        ForbiddenError: If the caller may not access the location
    """
    return await user_service.set_current_location(db, context.user, payload.location_id, context.company_id)


@router.post(
    "",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin())],
)
async def create_user(
    payload: UserCreate,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.create_user(
        db,
        email=payload.email,
        password=payload.password,
        first_name=payload.first_name,
        last_name=payload.last_name,
        role=payload.role.value,
        company_id=context.company_id,
    )


@router.get("/{user_id}", response_model=UserResponse, dependencies=[Depends(require_manager_or_admin())])
async def get_user(
    user_id: UUID,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.get_user(db, user_id, context.company_id)


@router.put("/{user_id}", response_model=UserResponse, dependencies=[Depends(require_admin())])
async def update_user(
    user_id: UUID,
    payload: UserUpdate,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    data = payload.model_dump(exclude_unset=True)
    if data.get("role") is not None:
        data["role"] = data["role"].value
    return await user_service.update_user(db, user_id, context.company_id, data)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(require_admin())])
async def delete_user(
    user_id: UUID,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    await user_service.delete_user(db, user_id, context.company_id, acting_user_id=context.user.id)


# Roles


@router.get(
    "/{user_id}/roles",
    response_model=List[RoleAssignmentResponse],
    dependencies=[Depends(require_admin())],
)
async def get_user_roles(
    user_id: UUID,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    await user_service.get_user(db, user_id, context.company_id)
    return await user_service.get_user_role_assignments(db, user_id, context.company_id)


@router.post(
    "/{user_id}/roles",
    response_model=List[RoleAssignmentResponse],
    dependencies=[Depends(require_admin())],
)
async def add_user_role(
    user_id: UUID,
    payload: RoleRequest,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.add_user_role(
        db, user_id, payload.role.value, context.company_id, is_primary=payload.is_primary
    )


@router.delete(
    "/{user_id}/roles/{role}",
    response_model=List[RoleAssignmentResponse],
    dependencies=[Depends(require_admin())],
)
async def remove_user_role(
    user_id: UUID,
    role: UserRole,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.remove_user_role(db, user_id, role.value, context.company_id)


@router.put(
    "/{user_id}/roles/{role}/primary",
    response_model=List[RoleAssignmentResponse],
    dependencies=[Depends(require_admin())],
)
async def set_primary_role(
    user_id: UUID,
    role: UserRole,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.set_primary_role(db, user_id, role.value, context.company_id)


# Locations


@router.get(
    "/{user_id}/locations",
    response_model=List[LocationSummary],
    dependencies=[Depends(require_admin())],
)
async def get_user_locations(
    user_id: UUID,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.get_user(db, user_id, context.company_id)
    return await user_service.get_user_locations(db, user, context.company_id)


@router.post(
    "/{user_id}/locations/{location_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin())],
)
async def assign_location(
    user_id: UUID,
    location_id: UUID,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    await user_service.assign_location(db, user_id, location_id, context.company_id)


@router.delete(
    "/{user_id}/locations/{location_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin())],
)
async def remove_location(
    user_id: UUID,
    location_id: UUID,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    await user_service.remove_location(db, user_id, location_id, context.company_id)
