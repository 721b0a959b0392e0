"""Company (tenant) service."""

import logging
import re
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from repairtix.errors import BadRequestError, NotFoundError
from repairtix.models import Company

logger = logging.getLogger(__name__)


def slugify(name: str) -> str:
    """Company name -> subdomain (lower-case, hyphen separated)."""
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug[:100]


async def get_company(db: AsyncSession, company_id: UUID) -> Company:
    result = await db.execute(
        select(Company).where(Company.id == company_id, Company.deleted_at.is_(None))
    )
    company = result.scalar_one_or_none()
    if company is None:
        raise NotFoundError("Company not found")
    return company


async def find_by_subdomain(db: AsyncSession, subdomain: str) -> Optional[Company]:
    result = await db.execute(select(Company).where(Company.subdomain == subdomain))
    return result.scalar_one_or_none()


async def list_companies(db: AsyncSession, skip: int = 0, limit: int = 100) -> list[Company]:
    result = await db.execute(
        select(Company)
        .where(Company.deleted_at.is_(None))
        .order_by(Company.created_at.desc())
        .offset(skip)
        .limit(limit)
    )
    return list(result.scalars().all())


async def create_company(db: AsyncSession, name: str, commit: bool = True) -> Company:
    """
    Create a company whose subdomain is derived from its name.

    Raises:
        BadRequestError: If the name is empty or the subdomain is taken
    """
    subdomain = slugify(name)
    if not subdomain:
        raise BadRequestError("Company name must contain letters or digits")

    if await find_by_subdomain(db, subdomain) is not None:
        raise BadRequestError("Company with this name already exists")

    company = Company(name=name.strip(), subdomain=subdomain, settings={})
    db.add(company)
    if commit:
        await db.commit()
        await db.refresh(company)
    else:
        await db.flush()

    logger.info(f"Created company {company.id} ({subdomain})")
    return company


async def update_company(db: AsyncSession, company_id: UUID, data: dict[str, Any]) -> Company:
    company = await get_company(db, company_id)
    for field, value in data.items():
        if field == "name" and not value:
            continue
        setattr(company, field, value)
    await db.commit()
    await db.refresh(company)
    return company
