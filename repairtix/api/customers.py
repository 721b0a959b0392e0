"""Customer API routes."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.ext.asyncio import AsyncSession

from repairtix.api.tickets import TicketResponse
from repairtix.config.permissions import Permission
from repairtix.database import get_db
from repairtix.middleware import TenantContext, require_company_context, require_permission
from repairtix.services import customers as customer_service
from repairtix.services import tickets as ticket_service

router = APIRouter(prefix="/api/customers", tags=["customers"])


class CustomerBase(BaseModel):
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None, max_length=500)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    zip_code: Optional[str] = Field(None, max_length=20)
    notes: Optional[str] = None


class CustomerCreate(CustomerBase):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)


class CustomerUpdate(CustomerBase):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)


class CustomerResponse(BaseModel):
    id: UUID
    company_id: UUID
    first_name: str
    last_name: str
    email: Optional[str]
    phone: Optional[str]
    address: Optional[str]
    city: Optional[str]
    state: Optional[str]
    zip_code: Optional[str]
    notes: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


@router.get(
    "",
    response_model=List[CustomerResponse],
    dependencies=[Depends(require_permission(Permission.CUSTOMERS_READ))],
)
async def list_customers(
    search: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    """List customers, optionally matching ``search`` against name, e-mail or phone."""
    return await customer_service.list_customers(db, context.company_id, search=search, skip=skip, limit=limit)


@router.get(
    "/{customer_id}",
    response_model=CustomerResponse,
    dependencies=[Depends(require_permission(Permission.CUSTOMERS_READ))],
)
async def get_customer(
    customer_id: UUID,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    return await customer_service.get_customer(db, customer_id, context.company_id)


@router.get(
    "/{customer_id}/tickets",
    response_model=List[TicketResponse],
    dependencies=[Depends(require_permission(Permission.TICKETS_READ))],
)
async def list_customer_tickets(
    customer_id: UUID,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    await customer_service.get_customer(db, customer_id, context.company_id)
    return await ticket_service.list_tickets(db, context.company_id, customer_id=customer_id)


@router.post(
    "",
    response_model=CustomerResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permission(Permission.CUSTOMERS_CREATE))],
)
async def create_customer(
    payload: CustomerCreate,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    return await customer_service.create_customer(db, context.company_id, payload.model_dump())


@router.put(
    "/{customer_id}",
    response_model=CustomerResponse,
    dependencies=[Depends(require_permission(Permission.CUSTOMERS_UPDATE))],
)
async def update_customer(
    customer_id: UUID,
    payload: CustomerUpdate,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    return await customer_service.update_customer(
        db, customer_id, context.company_id, payload.model_dump(exclude_unset=True)
    )


@router.delete(
    "/{customer_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_permission(Permission.CUSTOMERS_DELETE))],
)
async def delete_customer(
    customer_id: UUID,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    await customer_service.delete_customer(db, customer_id, context.company_id)
