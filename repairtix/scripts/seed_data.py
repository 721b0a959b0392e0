"""
Seed data script for local development.

Creates a platform superuser and sample companies, each with an admin, a
few locations (the first one free), customers and inventory, so billing
and multi-location flows can be exercised by hand.

Usage:
    python -m repairtix.scripts.seed_data
"""

import asyncio
from dataclasses import dataclass

from repairtix.config.permissions import UserRole
from repairtix.database import AsyncSessionLocal, init_db
from repairtix.services import billing as billing_service
from repairtix.services import companies as company_service
from repairtix.services import customers as customer_service
from repairtix.services import inventory as inventory_service
from repairtix.services import locations as location_service
from repairtix.services import permissions as permission_service
from repairtix.services import users as user_service

SEED_PASSWORD = "password123"


@dataclass
class SampleCompany:
    name: str
    location_count: int


SAMPLE_COMPANIES = [
    SampleCompany("Fix It Fast", 1),
    SampleCompany("Phone Doctor", 2),
    SampleCompany("Circuit Clinic", 3),
]

SAMPLE_ITEMS = [
    {"name": "iPhone 13 Screen", "cost_price": 45, "selling_price": 129.99, "initial_quantity": 10},
    {"name": "USB-C Charging Port", "cost_price": 4.5, "selling_price": 39.99, "initial_quantity": 25},
    {"name": "Laptop Battery 56Wh", "cost_price": 32, "selling_price": 89.0, "initial_quantity": 6},
]


async def seed_superuser(db) -> None:
    if await user_service.find_by_email(db, "superuser@repairtix.example.com") is not None:
        print("⚠️  Superuser already exists. Skipping.")
        return

    await user_service.create_user(
        db,
        email="superuser@repairtix.example.com",
        password=SEED_PASSWORD,
        first_name="Platform",
        last_name="Admin",
        role=UserRole.SUPERUSER.value,
        company_id=None,
    )
    print("  ✅ Created superuser@repairtix.example.com")


async def seed_company(db, sample: SampleCompany) -> None:
    subdomain = company_service.slugify(sample.name)
    if await company_service.find_by_subdomain(db, subdomain) is not None:
        print(f"⚠️  Company {subdomain} already exists. Skipping.")
        return

    company = await company_service.create_company(db, sample.name)
    await permission_service.initialize_company_permissions(db, company.id)

    admin = await user_service.create_user(
        db,
        email=f"admin@{subdomain}.example.com",
        password=SEED_PASSWORD,
        first_name="Shop",
        last_name="Admin",
        role=UserRole.ADMIN.value,
        company_id=company.id,
    )
    print(f"\n📦 {company.name} ({admin.email})")

    locations = []
    for index in range(sample.location_count):
        location = await location_service.create_location(
            db,
            company.id,
            {
                "name": f"{sample.name} - Location {index + 1}",
                "address": f"{index + 1} Main Street",
                "phone": f"555-000{index}",
                "is_free": index == 0,
                "state_tax": 5,
                "county_tax": 2,
                "city_tax": 1,
            },
        )
        await user_service.assign_location(db, admin.id, location.id, company.id)
        locations.append(location)
        print(f"  ✅ Location {location.name} (free: {location.is_free})")

    await user_service.set_current_location(db, admin, locations[0].id, company.id)

    for item in SAMPLE_ITEMS:
        await inventory_service.create_item(db, company.id, {**item, "location_id": locations[0].id})
    print(f"  ✅ {len(SAMPLE_ITEMS)} inventory items")

    await customer_service.create_customer(
        db,
        company.id,
        {"first_name": "Jane", "last_name": "Customer", "email": f"jane@{subdomain}.example.com", "phone": "555-1234"},
    )

    subscription = await billing_service.get_or_create_subscription(db, company.id)
    print(f"  ✅ Subscription: ${subscription.monthly_amount}/month")


async def seed_database():
    """Create seed data for development."""
    print("🌱 Seeding database with sample data...")

    async with AsyncSessionLocal() as db:
        await seed_superuser(db)
        for sample in SAMPLE_COMPANIES:
            await seed_company(db, sample)

    print("\n✅ Database seeded successfully!")
    print(f"\n🔑 Every seeded account uses the password: {SEED_PASSWORD}")


async def main():
    """Main entry point."""
    print("🔧 Initializing database schema...")
    await init_db()
    print("✅ Database schema created")

    await seed_database()


if __name__ == "__main__":
    asyncio.run(main())
