"""
RepairTix API application.

Main FastAPI application entry point.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path

import sentry_sdk
from alembic import command
from alembic.config import Config
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from repairtix.api import (
    assets_router,
    auth_router,
    billing_router,
    brands_router,
    categories_router,
    companies_router,
    customers_router,
    integrations_router,
    inventory_router,
    inventory_transfers_router,
    invitations_router,
    invoices_router,
    locations_router,
    models_router,
    permissions_router,
    purchase_orders_router,
    subcategories_router,
    tickets_router,
    users_router,
)
from repairtix.config.settings import get_settings
from repairtix.database import DATABASE_URL, close_db
from repairtix.services.billing_scheduler import billing_scheduler

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

ALEMBIC_INI = Path(__file__).resolve().parent.parent / "alembic.ini"
MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"


def run_migrations() -> None:
    """Apply pending Alembic migrations (blocking; run in a worker thread)."""
    config = Config(str(ALEMBIC_INI)) if ALEMBIC_INI.exists() else Config()
    config.set_main_option("script_location", str(MIGRATIONS_DIR))
    config.attributes["database_url"] = DATABASE_URL
    config.attributes["configure_logger"] = False
    command.upgrade(config, "head")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    logger.info(f"Starting {settings.service_name} v{settings.service_version}")
    logger.info(f"Environment: {settings.environment}")

    if settings.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            environment=settings.environment,
            traces_sample_rate=settings.sentry_traces_sample_rate,
        )
        logger.info("Sentry error reporting enabled")

    if settings.run_migrations_on_startup:
        # env.py drives its own event loop, so keep it off this one
        await asyncio.to_thread(run_migrations)
        logger.info("Database migrations applied")

    if settings.enable_billing_scheduler:
        billing_scheduler.start()

    yield

    # Shutdown
    logger.info("Shutting down RepairTix API")
    billing_scheduler.stop()
    await close_db()


app = FastAPI(
    title="RepairTix API",
    version=settings.service_version,
    description="Multi-tenant management API for electronics repair shops",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# auth_router first: login/register need no authentication
app.include_router(auth_router)
app.include_router(companies_router)
app.include_router(locations_router)
app.include_router(users_router)
app.include_router(permissions_router)
app.include_router(invitations_router)
app.include_router(integrations_router)
app.include_router(customers_router)
app.include_router(assets_router)
app.include_router(tickets_router)
app.include_router(inventory_router)
app.include_router(categories_router)
app.include_router(subcategories_router)
app.include_router(brands_router)
app.include_router(models_router)
app.include_router(inventory_transfers_router)
app.include_router(purchase_orders_router)
app.include_router(invoices_router)
app.include_router(billing_router)


@app.get("/health")
async def health():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": settings.service_name,
        "version": settings.service_version,
        "billing_scheduler": billing_scheduler.is_running(),
    }


@app.get("/")
async def root():
    """Root endpoint with service information"""
    return {
        "service": settings.service_name,
        "version": settings.service_version,
        "environment": settings.environment,
        "docs": "/docs",
        "health": "/health",
    }


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler for unhandled errors"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "An unexpected error occurred. Please try again later."},
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("repairtix.main:app", host="0.0.0.0", port=8000, log_level=settings.log_level.lower())
