"""
Pytest configuration and fixtures for RepairTix tests.

Provides fixtures for:
- Database session (SQLite via aiosqlite)
- Test client
- Companies, locations and users for every role
- JWT tokens and auth headers
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("ENCRYPTION_KEY", "test-encryption-key-for-repairtix")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret")
os.environ.setdefault("ENABLE_BILLING_SCHEDULER", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from typing import AsyncGenerator, Optional  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from repairtix.config.permissions import UserRole  # noqa: E402
from repairtix.database import get_db  # noqa: E402
from repairtix.main import app  # noqa: E402
from repairtix.models import (  # noqa: E402
    Base,
    Company,
    Customer,
    Location,
    User,
    UserLocation,
    UserRoleAssignment,
)
from repairtix.security import create_access_token, hash_password  # noqa: E402

PASSWORD = "password123"


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """Create test database engine."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test_db.sqlite'}", poolclass=NullPool, echo=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def test_db(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async_session = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

    async with async_session() as session:
        yield session


async def make_company(db: AsyncSession, name: str, subdomain: str) -> Company:
    company = Company(name=name, subdomain=subdomain, settings={})
    db.add(company)
    await db.commit()
    await db.refresh(company)
    return company


async def make_location(db: AsyncSession, company: Company, name: str, is_free: bool = False, **fields) -> Location:
    location = Location(company_id=company.id, name=name, is_free=is_free, **fields)
    db.add(location)
    await db.commit()
    await db.refresh(location)
    return location


async def make_user(
    db: AsyncSession,
    company: Optional[Company],
    role: UserRole,
    email: str,
    location: Optional[Location] = None,
    is_active: bool = True,
) -> User:
    """Create a user with its primary role row and, optionally, a current location."""
    user = User(
        company_id=company.id if company else None,
        email=email,
        hashed_password=hash_password(PASSWORD),
        first_name=role.value.capitalize(),
        last_name="User",
        role=role.value,
        is_active=is_active,
    )
    db.add(user)
    await db.flush()

    if company is not None:
        db.add(UserRoleAssignment(user_id=user.id, company_id=company.id, role=role.value, is_primary=True))
    if location is not None:
        db.add(UserLocation(user_id=user.id, location_id=location.id))
        user.current_location_id = location.id

    await db.commit()
    await db.refresh(user)
    return user


def auth_headers(user: User) -> dict[str, str]:
    token = create_access_token(user_id=user.id, company_id=user.company_id, email=user.email)
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def test_company(test_db: AsyncSession) -> Company:
    return await make_company(test_db, "Fix It Fast", "fix-it-fast")


@pytest_asyncio.fixture
async def other_company(test_db: AsyncSession) -> Company:
    return await make_company(test_db, "Other Repairs", "other-repairs")


@pytest_asyncio.fixture
async def test_location(test_db: AsyncSession, test_company: Company) -> Location:
    """Main (free) location with 8.25% exclusive sales tax."""
    return await make_location(
        test_db, test_company, "Main Street", is_free=True, state_tax=6, county_tax=1.25, city_tax=1
    )


@pytest_asyncio.fixture
async def second_location(test_db: AsyncSession, test_company: Company, test_location: Location) -> Location:
    return await make_location(test_db, test_company, "Downtown")


@pytest_asyncio.fixture
async def other_location(test_db: AsyncSession, other_company: Company) -> Location:
    return await make_location(test_db, other_company, "Elsewhere", is_free=True)


@pytest_asyncio.fixture
async def admin_user(test_db: AsyncSession, test_company: Company, test_location: Location) -> User:
    return await make_user(test_db, test_company, UserRole.ADMIN, "admin@fixitfast.com", test_location)


@pytest_asyncio.fixture
async def manager_user(test_db: AsyncSession, test_company: Company, test_location: Location) -> User:
    return await make_user(test_db, test_company, UserRole.MANAGER, "manager@fixitfast.com", test_location)


@pytest_asyncio.fixture
async def technician_user(test_db: AsyncSession, test_company: Company, test_location: Location) -> User:
    return await make_user(test_db, test_company, UserRole.TECHNICIAN, "tech@fixitfast.com", test_location)


@pytest_asyncio.fixture
async def frontdesk_user(test_db: AsyncSession, test_company: Company, test_location: Location) -> User:
    return await make_user(test_db, test_company, UserRole.FRONTDESK, "desk@fixitfast.com", test_location)


@pytest_asyncio.fixture
async def inactive_user(test_db: AsyncSession, test_company: Company) -> User:
    return await make_user(test_db, test_company, UserRole.TECHNICIAN, "gone@fixitfast.com", is_active=False)


@pytest_asyncio.fixture
async def other_admin(test_db: AsyncSession, other_company: Company, other_location: Location) -> User:
    return await make_user(test_db, other_company, UserRole.ADMIN, "admin@otherrepairs.com", other_location)


@pytest_asyncio.fixture
async def superuser(test_db: AsyncSession) -> User:
    return await make_user(test_db, None, UserRole.SUPERUSER, "root@repairtix.com")


@pytest_asyncio.fixture
async def test_customer(test_db: AsyncSession, test_company: Company) -> Customer:
    customer = Customer(company_id=test_company.id, first_name="Jane", last_name="Doe", email="jane@example.com")
    test_db.add(customer)
    await test_db.commit()
    await test_db.refresh(customer)
    return customer


@pytest.fixture
def admin_headers(admin_user: User) -> dict[str, str]:
    return auth_headers(admin_user)


@pytest.fixture
def technician_headers(technician_user: User) -> dict[str, str]:
    return auth_headers(technician_user)


@pytest.fixture
def manager_headers(manager_user: User) -> dict[str, str]:
    return auth_headers(manager_user)


@pytest.fixture
def frontdesk_headers(frontdesk_user: User) -> dict[str, str]:
    return auth_headers(frontdesk_user)


@pytest.fixture
def superuser_headers(superuser: User) -> dict[str, str]:
    return auth_headers(superuser)


@pytest.fixture
def other_admin_headers(other_admin: User) -> dict[str, str]:
    return auth_headers(other_admin)


@pytest_asyncio.fixture
async def client(test_db: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client with database session override."""

    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
