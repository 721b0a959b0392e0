"""
Repair ticket service.

Tickets belong to a company and a location. Ticket numbers look like
``TKT-12345678-042`` and are unique within a company.
"""

import logging
import secrets
import time
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from repairtix.errors import BadRequestError, InternalServerError, NotFoundError
from repairtix.models import Ticket, TicketStatus, User
from repairtix.models.base import utc_now
from repairtix.services import customers as customer_service
from repairtix.services import locations as location_service

logger = logging.getLogger(__name__)

MAX_NUMBER_ATTEMPTS = 10


def _candidate_number() -> str:
    timestamp = str(int(time.time() * 1000))[-8:]
    return f"TKT-{timestamp}-{secrets.randbelow(1000):03d}"


async def generate_ticket_number(db: AsyncSession, company_id: UUID) -> str:
    for _ in range(MAX_NUMBER_ATTEMPTS):
        number = _candidate_number()
        result = await db.execute(
            select(Ticket.id).where(Ticket.company_id == company_id, Ticket.ticket_number == number)
        )
        if result.scalar_one_or_none() is None:
            return number
    raise InternalServerError("Could not allocate a unique ticket number")


async def list_tickets(
    db: AsyncSession,
    company_id: UUID,
    customer_id: Optional[UUID] = None,
    status: Optional[str] = None,
    location_id: Optional[UUID] = None,
    technician_id: Optional[UUID] = None,
) -> list[Ticket]:
    stmt = select(Ticket).where(Ticket.company_id == company_id, Ticket.deleted_at.is_(None))
    if customer_id:
        stmt = stmt.where(Ticket.customer_id == customer_id)
    if status:
        stmt = stmt.where(Ticket.status == status)
    if location_id:
        stmt = stmt.where(Ticket.location_id == location_id)
    if technician_id:
        stmt = stmt.where(Ticket.technician_id == technician_id)
    result = await db.execute(stmt.order_by(Ticket.created_at.desc()))
    return list(result.scalars().all())


async def get_ticket(db: AsyncSession, ticket_id: UUID, company_id: UUID) -> Ticket:
    result = await db.execute(
        select(Ticket).where(
            Ticket.id == ticket_id,
            Ticket.company_id == company_id,
            Ticket.deleted_at.is_(None),
        )
    )
    ticket = result.scalar_one_or_none()
    if ticket is None:
        raise NotFoundError("Ticket not found")
    return ticket


async def _check_technician(db: AsyncSession, technician_id: UUID, company_id: UUID) -> None:
    result = await db.execute(
        select(User.id).where(
            User.id == technician_id,
            User.company_id == company_id,
            User.deleted_at.is_(None),
            User.is_active.is_(True),
        )
    )
    if result.scalar_one_or_none() is None:
        raise BadRequestError("Technician not found or does not belong to company")


async def _check_references(db: AsyncSession, company_id: UUID, data: dict[str, Any]) -> None:
    if data.get("customer_id"):
        try:
            await customer_service.get_customer(db, data["customer_id"], company_id)
        except NotFoundError:
            raise BadRequestError("Customer not found or does not belong to company")
    if data.get("asset_id"):
        try:
            asset = await customer_service.get_asset(db, data["asset_id"], company_id)
        except NotFoundError:
            raise BadRequestError("Asset not found or does not belong to company")
        if data.get("customer_id") and asset.customer_id != data["customer_id"]:
            raise BadRequestError("Asset does not belong to this customer")
    if data.get("technician_id"):
        await _check_technician(db, data["technician_id"], company_id)
    if data.get("location_id"):
        if not await location_service.location_belongs_to_company(db, data["location_id"], company_id):
            raise BadRequestError("Location not found or does not belong to company")


async def create_ticket(
    db: AsyncSession, company_id: UUID, location_id: Optional[UUID], data: dict[str, Any]
) -> Ticket:
    """
    Open a ticket at a location.

    Raises:
        BadRequestError: If the location, customer, asset or technician is
            not part of the company
    """
    if location_id is None:
        raise BadRequestError("Location is required to create a ticket")

    data = dict(data)
    data["location_id"] = location_id
    await _check_references(db, company_id, data)

    if data.get("technician_id") and not data.get("status"):
        data["status"] = TicketStatus.ASSIGNED.value

    ticket = Ticket(
        company_id=company_id,
        ticket_number=await generate_ticket_number(db, company_id),
        **{k: v for k, v in data.items() if v is not None},
    )
    db.add(ticket)
    await db.commit()
    await db.refresh(ticket)

    logger.info(f"Created ticket {ticket.ticket_number} in company {company_id}")
    return ticket


async def update_ticket(db: AsyncSession, ticket_id: UUID, company_id: UUID, data: dict[str, Any]) -> Ticket:
    ticket = await get_ticket(db, ticket_id, company_id)
    await _check_references(db, company_id, {"customer_id": ticket.customer_id, **data})

    if "status" in data and data["status"]:
        _apply_status(ticket, data.pop("status"))

    for field, value in data.items():
        if value is None and field in ("customer_id", "location_id", "device_type", "issue_description", "priority"):
            continue
        setattr(ticket, field, value)

    await db.commit()
    await db.refresh(ticket)
    return ticket


async def delete_ticket(db: AsyncSession, ticket_id: UUID, company_id: UUID) -> None:
    ticket = await get_ticket(db, ticket_id, company_id)
    ticket.soft_delete()
    await db.commit()
    logger.info(f"Deleted ticket {ticket.ticket_number} in company {company_id}")


async def assign_technician(
    db: AsyncSession, ticket_id: UUID, technician_id: Optional[UUID], company_id: UUID
) -> Ticket:
    """Assign (or with None, unassign) a technician. New tickets move to ``assigned``."""
    ticket = await get_ticket(db, ticket_id, company_id)
    if technician_id is not None:
        await _check_technician(db, technician_id, company_id)

    ticket.technician_id = technician_id
    if technician_id is not None and ticket.status == TicketStatus.NEW.value:
        ticket.status = TicketStatus.ASSIGNED.value

    await db.commit()
    await db.refresh(ticket)
    return ticket


def _apply_status(ticket: Ticket, status: str) -> None:
    ticket.status = status
    if status == TicketStatus.COMPLETED.value:
        ticket.completed_date = ticket.completed_date or utc_now()
    else:
        ticket.completed_date = None


async def update_status(db: AsyncSession, ticket_id: UUID, status: str, company_id: UUID) -> Ticket:
    ticket = await get_ticket(db, ticket_id, company_id)
    _apply_status(ticket, status)
    await db.commit()
    await db.refresh(ticket)
    return ticket


def _append(existing: Optional[str], notes: str) -> str:
    return f"{existing}\n\n{notes}" if existing else notes


async def add_diagnostic_notes(db: AsyncSession, ticket_id: UUID, notes: str, company_id: UUID) -> Ticket:
    ticket = await get_ticket(db, ticket_id, company_id)
    ticket.diagnostic_notes = _append(ticket.diagnostic_notes, notes)
    await db.commit()
    await db.refresh(ticket)
    return ticket


async def add_repair_notes(db: AsyncSession, ticket_id: UUID, notes: str, company_id: UUID) -> Ticket:
    ticket = await get_ticket(db, ticket_id, company_id)
    ticket.repair_notes = _append(ticket.repair_notes, notes)
    await db.commit()
    await db.refresh(ticket)
    return ticket
