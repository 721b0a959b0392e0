"""
Daily billing job.

Runs :func:`repairtix.services.billing.process_monthly_billing` every day at
the configured hour (02:00 by default). The billing function itself decides
whether today is the billing day.
"""

import logging
from typing import Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.ext.asyncio import AsyncSession

from repairtix.config.settings import get_settings
from repairtix.services import billing as billing_service

logger = logging.getLogger(__name__)

JOB_ID = "monthly_billing"


class BillingScheduler:
    """Owns the APScheduler instance that triggers monthly billing."""

    def __init__(self, session_factory: Optional[Callable[[], AsyncSession]] = None):
        self._session_factory = session_factory
        self._scheduler: Optional[AsyncIOScheduler] = None

    def _sessions(self) -> Callable[[], AsyncSession]:
        if self._session_factory is None:
            from repairtix.database import AsyncSessionLocal

            self._session_factory = AsyncSessionLocal
        return self._session_factory

    async def run_billing(self) -> int:
        """Run one billing pass in its own session."""
        logger.info("Starting scheduled monthly billing run")
        try:
            async with self._sessions()() as db:
                processed = await billing_service.process_monthly_billing(db)
        except Exception as e:
            logger.error(f"Scheduled billing run failed: {e}")
            return 0
        logger.info(f"Scheduled billing run finished, {processed} subscriptions processed")
        return processed

    def start(self) -> None:
        if self.is_running():
            logger.warning("Billing scheduler is already running")
            return

        settings = get_settings()
        self._scheduler = AsyncIOScheduler(timezone="UTC")
        self._scheduler.add_job(
            self.run_billing,
            trigger=CronTrigger(hour=settings.billing_cron_hour, minute=settings.billing_cron_minute),
            id=JOB_ID,
            name="Process monthly subscription billing",
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info(
            f"Billing scheduler started (daily at "
            f"{settings.billing_cron_hour:02d}:{settings.billing_cron_minute:02d} UTC)"
        )

    def stop(self) -> None:
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Billing scheduler stopped")
        self._scheduler = None

    def is_running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def next_run_time(self):
        if not self.is_running():
            return None
        job = self._scheduler.get_job(JOB_ID)
        return job.next_run_time if job else None


billing_scheduler = BillingScheduler()
