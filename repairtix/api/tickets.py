"""
Repair ticket API routes.

Tickets are listed for and created in the caller's current location. Reading
a single ticket works across the company's locations.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from repairtix.config.permissions import Permission
from repairtix.database import get_db
from repairtix.middleware import (
    TenantContext,
    require_company_context,
    require_location_context,
    require_permission,
)
from repairtix.models import TicketPriority, TicketStatus
from repairtix.services import tickets as ticket_service

router = APIRouter(prefix="/api/tickets", tags=["tickets"])


class TicketCreate(BaseModel):
    customer_id: UUID
    asset_id: Optional[UUID] = None
    technician_id: Optional[UUID] = None
    priority: TicketPriority = TicketPriority.MEDIUM
    device_type: str = Field(..., min_length=1, max_length=100)
    device_brand: Optional[str] = Field(None, max_length=100)
    device_model: Optional[str] = Field(None, max_length=100)
    serial_number: Optional[str] = Field(None, max_length=100)
    issue_description: str = Field(..., min_length=1)
    estimated_completion_date: Optional[datetime] = None


class TicketUpdate(BaseModel):
    customer_id: Optional[UUID] = None
    asset_id: Optional[UUID] = None
    status: Optional[TicketStatus] = None
    priority: Optional[TicketPriority] = None
    device_type: Optional[str] = Field(None, min_length=1, max_length=100)
    device_brand: Optional[str] = Field(None, max_length=100)
    device_model: Optional[str] = Field(None, max_length=100)
    serial_number: Optional[str] = Field(None, max_length=100)
    issue_description: Optional[str] = Field(None, min_length=1)
    estimated_completion_date: Optional[datetime] = None


class AssignRequest(BaseModel):
    technician_id: Optional[UUID] = None


class StatusRequest(BaseModel):
    status: TicketStatus


class NotesRequest(BaseModel):
    notes: str = Field(..., min_length=1)


class TicketResponse(BaseModel):
    id: UUID
    company_id: UUID
    location_id: UUID
    ticket_number: str
    customer_id: UUID
    asset_id: Optional[UUID]
    technician_id: Optional[UUID]
    status: str
    priority: str
    device_type: str
    device_brand: Optional[str]
    device_model: Optional[str]
    serial_number: Optional[str]
    issue_description: str
    diagnostic_notes: Optional[str]
    repair_notes: Optional[str]
    estimated_completion_date: Optional[datetime]
    completed_date: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


def _dump(payload: BaseModel) -> dict:
    data = payload.model_dump(exclude_unset=True)
    for field in ("status", "priority"):
        if data.get(field) is not None:
            data[field] = data[field].value
    return data


@router.get(
    "",
    response_model=List[TicketResponse],
    dependencies=[Depends(require_permission(Permission.TICKETS_READ))],
)
async def list_tickets(
    customer_id: Optional[UUID] = None,
    status: Optional[TicketStatus] = None,
    technician_id: Optional[UUID] = None,
    context: TenantContext = Depends(require_location_context),
    db: AsyncSession = Depends(get_db),
):
    """Tickets of the current location, newest first."""
    return await ticket_service.list_tickets(
        db,
        context.company_id,
        customer_id=customer_id,
        status=status.value if status else None,
        location_id=context.location_id,
        technician_id=technician_id,
    )


@router.get(
    "/{ticket_id}",
    response_model=TicketResponse,
    dependencies=[Depends(require_permission(Permission.TICKETS_READ))],
)
async def get_ticket(
    ticket_id: UUID,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    return await ticket_service.get_ticket(db, ticket_id, context.company_id)


@router.post(
    "",
    response_model=TicketResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permission(Permission.TICKETS_CREATE))],
)
async def create_ticket(
    payload: TicketCreate,
    context: TenantContext = Depends(require_location_context),
    db: AsyncSession = Depends(get_db),
):
    """
    Open a ticket at the current location.

    Raises:
        BadRequestError: If the customer, asset or technician is unknown to the company
    """
    return await ticket_service.create_ticket(db, context.company_id, context.location_id, _dump(payload))


@router.put(
    "/{ticket_id}",
    response_model=TicketResponse,
    dependencies=[Depends(require_permission(Permission.TICKETS_UPDATE))],
)
async def update_ticket(
    ticket_id: UUID,
    payload: TicketUpdate,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    return await ticket_service.update_ticket(db, ticket_id, context.company_id, _dump(payload))


@router.delete(
    "/{ticket_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_permission(Permission.TICKETS_DELETE))],
)
async def delete_ticket(
    ticket_id: UUID,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    await ticket_service.delete_ticket(db, ticket_id, context.company_id)


@router.post(
    "/{ticket_id}/assign",
    response_model=TicketResponse,
    dependencies=[Depends(require_permission(Permission.TICKETS_ASSIGN))],
)
async def assign_technician(
    ticket_id: UUID,
    payload: AssignRequest,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    return await ticket_service.assign_technician(db, ticket_id, payload.technician_id, context.company_id)


@router.post(
    "/{ticket_id}/status",
    response_model=TicketResponse,
    dependencies=[Depends(require_permission(Permission.TICKETS_UPDATE_STATUS))],
)
async def update_status(
    ticket_id: UUID,
    payload: StatusRequest,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    return await ticket_service.update_status(db, ticket_id, payload.status.value, context.company_id)


@router.post(
    "/{ticket_id}/diagnostic-notes",
    response_model=TicketResponse,
    dependencies=[Depends(require_permission(Permission.TICKETS_ADD_NOTES))],
)
async def add_diagnostic_notes(
    ticket_id: UUID,
    payload: NotesRequest,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    return await ticket_service.add_diagnostic_notes(db, ticket_id, payload.notes, context.company_id)


@router.post(
    "/{ticket_id}/repair-notes",
    response_model=TicketResponse,
    dependencies=[Depends(require_permission(Permission.TICKETS_ADD_NOTES))],
)
async def add_repair_notes(
    ticket_id: UUID,
    payload: NotesRequest,
    context: TenantContext = Depends(require_company_context),
    db: AsyncSession = Depends(get_db),
):
    return await ticket_service.add_repair_notes(db, ticket_id, payload.notes, context.company_id)
