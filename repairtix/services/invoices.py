"""
Invoice service.

Totals are always derived from the line items and the tax settings of the
invoice's location. Part lines tied to an inventory item move stock at that
location: adding deducts, removing restores.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from repairtix.config.permissions import Permission
from repairtix.errors import BadRequestError, ForbiddenError, InternalServerError, NotFoundError
from repairtix.models import Invoice, InvoiceItem, InvoiceItemType, InvoiceStatus
from repairtix.services import customers as customer_service
from repairtix.services import inventory as inventory_service
from repairtix.services import locations as location_service
from repairtix.services import tickets as ticket_service

logger = logging.getLogger(__name__)

MAX_NUMBER_ATTEMPTS = 10
CENT = Decimal("0.01")


def _money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def compute_totals(
    items: Iterable[InvoiceItem],
    tax_rate: Decimal,
    discount_amount: Decimal,
    tax_inclusive: bool = False,
) -> dict[str, Decimal]:
    """
    Invoice totals from line items.

    Tax is computed on taxable lines only. With inclusive pricing the tax is
    already part of the line prices and is extracted rather than added.

    Returns:
        ``subtotal``, ``tax_amount`` and ``total_amount``
    """
    items = list(items)
    subtotal = sum((Decimal(item.subtotal) for item in items), Decimal("0"))
    taxable = sum((Decimal(item.subtotal) for item in items if item.is_taxable), Decimal("0"))
    rate = Decimal(tax_rate or 0)

    tax = Decimal("0")
    if rate > 0:
        if tax_inclusive:
            tax = taxable - taxable / (1 + rate / 100)
        else:
            tax = taxable * rate / 100

    total = subtotal + (Decimal("0") if tax_inclusive else tax) - Decimal(discount_amount or 0)
    return {
        "subtotal": _money(subtotal),
        "tax_amount": _money(tax),
        "total_amount": _money(total),
    }


def _line_amounts(
    quantity: int,
    unit_price: Decimal,
    discount_percent: Optional[Decimal],
    discount_amount: Optional[Decimal],
) -> tuple[Decimal, Decimal, Decimal]:
    """(discount_percent, discount_amount, subtotal). An explicit amount wins over a percent."""
    gross = Decimal(quantity) * Decimal(unit_price)
    if discount_amount is not None:
        amount = Decimal(str(discount_amount))
        percent = (amount / gross * 100) if gross > 0 else Decimal("0")
    elif discount_percent is not None:
        percent = Decimal(str(discount_percent))
        amount = gross * percent / 100
    else:
        percent, amount = Decimal("0"), Decimal("0")
    return percent.quantize(CENT, rounding=ROUND_HALF_UP), _money(amount), _money(gross - amount)


async def generate_invoice_number(db: AsyncSession, company_id: UUID) -> str:
    for _ in range(MAX_NUMBER_ATTEMPTS):
        now = datetime.now(timezone.utc)
        number = f"INV-{now:%Y%m}-{str(int(time.time() * 1000))[-6:]}"
        existing = await db.execute(
            select(Invoice.id).where(Invoice.company_id == company_id, Invoice.invoice_number == number)
        )
        if existing.scalar_one_or_none() is None:
            return number
        await asyncio.sleep(0.001)
    raise InternalServerError("Could not allocate an invoice number")


async def list_invoices(
    db: AsyncSession,
    company_id: UUID,
    customer_id: Optional[UUID] = None,
    status: Optional[str] = None,
    ticket_id: Optional[UUID] = None,
    location_id: Optional[UUID] = None,
) -> list[Invoice]:
    stmt = select(Invoice).where(Invoice.company_id == company_id, Invoice.deleted_at.is_(None))
    if customer_id:
        stmt = stmt.where(Invoice.customer_id == customer_id)
    if status:
        stmt = stmt.where(Invoice.status == status)
    if ticket_id:
        stmt = stmt.where(Invoice.ticket_id == ticket_id)
    if location_id:
        stmt = stmt.where(Invoice.location_id == location_id)
    result = await db.execute(stmt.order_by(Invoice.created_at.desc()))
    return list(result.scalars().all())


async def get_invoice(db: AsyncSession, invoice_id: UUID, company_id: UUID) -> Invoice:
    result = await db.execute(
        select(Invoice).where(
            Invoice.id == invoice_id,
            Invoice.company_id == company_id,
            Invoice.deleted_at.is_(None),
        )
    )
    invoice = result.scalar_one_or_none()
    if invoice is None:
        raise NotFoundError("Invoice not found")
    return invoice


async def recalculate_totals(db: AsyncSession, invoice: Invoice) -> Invoice:
    """Refresh tax rate and totals from the location's current tax settings. Does not commit."""
    location = await location_service.get_location(db, invoice.location_id, invoice.company_id)
    invoice.tax_rate = location.tax_rate
    totals = compute_totals(invoice.items, location.tax_rate, invoice.discount_amount, location.tax_inclusive)
    invoice.subtotal = totals["subtotal"]
    invoice.tax_amount = totals["tax_amount"]
    invoice.total_amount = totals["total_amount"]
    return invoice


async def _check_references(db: AsyncSession, company_id: UUID, data: dict[str, Any]) -> None:
    if data.get("customer_id") is not None:
        try:
            await customer_service.get_customer(db, data["customer_id"], company_id)
        except NotFoundError:
            raise BadRequestError("Customer not found or does not belong to company")
    if data.get("ticket_id") is not None:
        try:
            await ticket_service.get_ticket(db, data["ticket_id"], company_id)
        except NotFoundError:
            raise BadRequestError("Ticket not found or does not belong to company")


async def create_invoice(db: AsyncSession, company_id: UUID, location_id: UUID, data: dict[str, Any]) -> Invoice:
    """
    Create a draft invoice at a location.

    Raises:
        BadRequestError: Unknown customer, ticket or location
    """
    if not await location_service.location_belongs_to_company(db, location_id, company_id):
        raise BadRequestError("Location not found or does not belong to company")
    await _check_references(db, company_id, data)

    invoice = Invoice(
        company_id=company_id,
        location_id=location_id,
        invoice_number=await generate_invoice_number(db, company_id),
        customer_id=data["customer_id"],
        ticket_id=data.get("ticket_id"),
        status=data.get("status") or InvoiceStatus.DRAFT.value,
        issue_date=data.get("issue_date") or datetime.now(timezone.utc),
        due_date=data.get("due_date"),
        discount_amount=_money(data.get("discount_amount") or 0),
        notes=data.get("notes"),
        items=[],
    )
    db.add(invoice)
    await recalculate_totals(db, invoice)
    await db.commit()
    await db.refresh(invoice)

    logger.info(f"Created invoice {invoice.invoice_number} for company {company_id}")
    return invoice


async def update_invoice(db: AsyncSession, invoice_id: UUID, company_id: UUID, data: dict[str, Any]) -> Invoice:
    invoice = await get_invoice(db, invoice_id, company_id)
    await _check_references(db, company_id, data)

    for field in ("customer_id", "status", "issue_date"):
        if data.get(field) is not None:
            setattr(invoice, field, data[field])
    for field in ("ticket_id", "due_date", "notes"):
        if field in data:
            setattr(invoice, field, data[field])
    if data.get("discount_amount") is not None:
        invoice.discount_amount = _money(data["discount_amount"])

    await recalculate_totals(db, invoice)
    await db.commit()
    await db.refresh(invoice)
    return invoice


async def delete_invoice(db: AsyncSession, invoice_id: UUID, company_id: UUID) -> None:
    invoice = await get_invoice(db, invoice_id, company_id)
    invoice.soft_delete()
    await db.commit()


def _deducts_stock(inventory_item_id: Optional[UUID], item_type: str) -> bool:
    return inventory_item_id is not None and item_type == InvoiceItemType.PART.value


async def _check_stock(
    db: AsyncSession, invoice: Invoice, inventory_item_id: UUID, requested: int, company_id: UUID
) -> None:
    item = await inventory_service.get_item(db, inventory_item_id, company_id)
    if not item.track_quantity:
        return
    available = await inventory_service.get_quantity_for_location(
        db, inventory_item_id, invoice.location_id, company_id
    )
    if requested > available:
        raise BadRequestError(f"Insufficient stock. Available: {available}, Requested: {requested}")


async def add_item(db: AsyncSession, invoice_id: UUID, company_id: UUID, data: dict[str, Any]) -> InvoiceItem:
    """
    Add a line to an invoice.

    Lines tied to an inventory item default their description, price, type
    and taxability from the item and are checked against stock at the
    invoice location.

    Raises:
        NotFoundError: Unknown invoice or inventory item
        BadRequestError: Not enough stock
    """
    invoice = await get_invoice(db, invoice_id, company_id)

    quantity = data.get("quantity") or 1
    if quantity <= 0:
        raise BadRequestError("Quantity must be greater than 0")
    description = (data.get("description") or "").strip()
    unit_price = data.get("unit_price")
    item_type = data.get("type")
    is_taxable = data.get("is_taxable", True)

    inventory_item_id = data.get("inventory_item_id")
    if inventory_item_id is not None:
        try:
            inventory_item = await inventory_service.get_item(db, inventory_item_id, company_id)
        except NotFoundError:
            raise NotFoundError("Inventory item not found or does not belong to company")
        await _check_stock(db, invoice, inventory_item_id, quantity, company_id)

        is_taxable = inventory_item.is_taxable
        description = description or inventory_item.name
        if not unit_price:
            unit_price = inventory_item.selling_price
        item_type = item_type or InvoiceItemType.PART.value

    if not description:
        raise BadRequestError("Description is required")

    item_type = item_type or InvoiceItemType.SERVICE.value
    percent, discount, subtotal = _line_amounts(
        quantity, Decimal(str(unit_price or 0)), data.get("discount_percent"), data.get("discount_amount")
    )
    line = InvoiceItem(
        inventory_item_id=inventory_item_id,
        description=description,
        quantity=quantity,
        unit_price=_money(unit_price or 0),
        discount_percent=percent,
        discount_amount=discount,
        subtotal=subtotal,
        type=item_type,
        is_taxable=is_taxable,
    )
    invoice.items.append(line)

    if _deducts_stock(inventory_item_id, item_type):
        await inventory_service.adjust_quantity_for_location(
            db, inventory_item_id, invoice.location_id, -quantity, company_id, commit=False
        )

    await recalculate_totals(db, invoice)
    await db.commit()
    await db.refresh(line)
    return line


def _find_line(invoice: Invoice, item_id: UUID) -> InvoiceItem:
    for line in invoice.items:
        if line.id == item_id:
            return line
    raise NotFoundError("Invoice item not found")


async def update_item(
    db: AsyncSession,
    invoice_id: UUID,
    item_id: UUID,
    company_id: UUID,
    data: dict[str, Any],
    permissions: Optional[list[str]] = None,
) -> InvoiceItem:
    """
    Update an invoice line and reconcile stock.

    When ``permissions`` is given, changing the price or the discount needs
    ``invoices.modifyPrices`` / ``invoices.modifyDiscounts``.
    """
    invoice = await get_invoice(db, invoice_id, company_id)
    line = _find_line(invoice, item_id)

    if permissions is not None:
        if data.get("unit_price") is not None and Decimal(str(data["unit_price"])) != Decimal(line.unit_price):
            if Permission.INVOICES_MODIFY_PRICES.value not in permissions:
                raise ForbiddenError("You do not have permission to modify prices")
        changes_percent = data.get("discount_percent") is not None and Decimal(
            str(data["discount_percent"])
        ) != Decimal(line.discount_percent)
        changes_amount = data.get("discount_amount") is not None and Decimal(
            str(data["discount_amount"])
        ) != Decimal(line.discount_amount)
        if (changes_percent or changes_amount) and Permission.INVOICES_MODIFY_DISCOUNTS.value not in permissions:
            raise ForbiddenError("You do not have permission to modify discounts")

    quantity = data.get("quantity") or line.quantity
    item_type = data.get("type") or line.type
    inventory_item_id = data["inventory_item_id"] if "inventory_item_id" in data else line.inventory_item_id
    unit_price = Decimal(str(data["unit_price"])) if data.get("unit_price") is not None else Decimal(line.unit_price)

    was_deducting = _deducts_stock(line.inventory_item_id, line.type)
    now_deducting = _deducts_stock(inventory_item_id, item_type)
    same_stock = was_deducting and now_deducting and inventory_item_id == line.inventory_item_id

    if same_stock and quantity != line.quantity:
        delta = quantity - line.quantity
        if delta > 0:
            await _check_stock(db, invoice, inventory_item_id, delta, company_id)
        await inventory_service.adjust_quantity_for_location(
            db, inventory_item_id, invoice.location_id, -delta, company_id, commit=False
        )
    elif not same_stock:
        if was_deducting:
            await inventory_service.adjust_quantity_for_location(
                db, line.inventory_item_id, invoice.location_id, line.quantity, company_id, commit=False
            )
        if now_deducting:
            await _check_stock(db, invoice, inventory_item_id, quantity, company_id)
            await inventory_service.adjust_quantity_for_location(
                db, inventory_item_id, invoice.location_id, -quantity, company_id, commit=False
            )

    if data.get("discount_amount") is None and data.get("discount_percent") is None:
        # Keep the stored percent so the discount scales with the new line amount
        percent, discount, subtotal = _line_amounts(quantity, unit_price, line.discount_percent, None)
    else:
        percent, discount, subtotal = _line_amounts(
            quantity, unit_price, data.get("discount_percent"), data.get("discount_amount")
        )

    if data.get("description"):
        line.description = data["description"]
    if data.get("is_taxable") is not None:
        line.is_taxable = data["is_taxable"]
    line.quantity = quantity
    line.type = item_type
    line.inventory_item_id = inventory_item_id
    line.unit_price = _money(unit_price)
    line.discount_percent = percent
    line.discount_amount = discount
    line.subtotal = subtotal

    await recalculate_totals(db, invoice)
    await db.commit()
    await db.refresh(line)
    return line


async def delete_item(db: AsyncSession, invoice_id: UUID, item_id: UUID, company_id: UUID) -> None:
    invoice = await get_invoice(db, invoice_id, company_id)
    line = _find_line(invoice, item_id)

    if _deducts_stock(line.inventory_item_id, line.type):
        try:
            await inventory_service.adjust_quantity_for_location(
                db, line.inventory_item_id, invoice.location_id, line.quantity, company_id, commit=False
            )
        except NotFoundError:
            # Item was deleted since; nothing to restore
            logger.warning(f"Could not restore stock for deleted invoice item {item_id}")

    invoice.items.remove(line)
    await recalculate_totals(db, invoice)
    await db.commit()


async def mark_paid(
    db: AsyncSession,
    invoice_id: UUID,
    company_id: UUID,
    payment_method: str,
    payment_reference: Optional[str] = None,
    paid_date: Optional[datetime] = None,
    notes: Optional[str] = None,
) -> Invoice:
    invoice = await get_invoice(db, invoice_id, company_id)
    invoice.status = InvoiceStatus.PAID.value
    invoice.paid_date = paid_date or datetime.now(timezone.utc)
    invoice.payment_method = payment_method
    invoice.payment_reference = payment_reference
    if notes:
        invoice.payment_notes = notes
    await db.commit()
    await db.refresh(invoice)

    logger.info(f"Invoice {invoice.invoice_number} marked paid via {payment_method}")
    return invoice


async def refund_invoice(
    db: AsyncSession,
    invoice_id: UUID,
    company_id: UUID,
    amount: Decimal,
    reason: Optional[str] = None,
    method: Optional[str] = None,
) -> Invoice:
    """
    Record a refund against a paid invoice.

    Refunds accumulate. Once the refunded total reaches the invoice total the
    invoice is cancelled.

    Raises:
        BadRequestError: Invoice not paid, non-positive amount, or refunds
            exceeding the invoice total
    """
    invoice = await get_invoice(db, invoice_id, company_id)
    if invoice.status != InvoiceStatus.PAID.value:
        raise BadRequestError("Only paid invoices can be refunded")

    amount = _money(amount)
    if amount <= 0:
        raise BadRequestError("Refund amount must be greater than 0")

    already = Decimal(invoice.refund_amount or 0)
    total = Decimal(invoice.total_amount)
    refunded = already + amount
    if refunded > total:
        raise BadRequestError(f"Refund amount exceeds invoice total. Maximum refund: {_money(total - already)}")

    invoice.refund_amount = refunded
    invoice.refund_date = datetime.now(timezone.utc)
    invoice.refund_reason = reason
    invoice.refund_method = method or "manual"
    if refunded >= total:
        invoice.status = InvoiceStatus.CANCELLED.value

    await db.commit()
    await db.refresh(invoice)

    logger.info(f"Refunded {amount} on invoice {invoice.invoice_number}")
    return invoice
