"""APScheduler job that applies due form schedules.

Form schedules are also evaluated whenever the form list is read; this
job makes open/close transitions happen on time even when nobody is
looking at the site.
"""

import logging
import os

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from dotenv import load_dotenv

from portal.services.form_service import FormService
from portal.store import PortalRepository

load_dotenv()

logger = logging.getLogger(__name__)

FORM_SCHEDULE_TICK_SECONDS = int(os.getenv("FORM_SCHEDULE_TICK_SECONDS", "60"))

# ---------------------------------------------------------------------------
# Scheduler singleton
# ---------------------------------------------------------------------------
scheduler = AsyncIOScheduler()


async def run_form_schedule_tick(repository: PortalRepository) -> None:
    """Apply any form or site-wide schedule whose trigger time has passed."""
    try:
        if await FormService.tick(repository):
            logger.info("Form schedule tick applied status changes")
    except Exception:
        logger.exception("Form schedule tick failed")


def start_scheduler(repository: PortalRepository) -> None:
    """Start the scheduler with the form schedule job."""
    if scheduler.running:
        logger.info("Scheduler already running; skipping start")
        return

    scheduler.add_job(
        run_form_schedule_tick,
        "interval",
        seconds=FORM_SCHEDULE_TICK_SECONDS,
        args=[repository],
        id="form_schedule_tick",
        name="Apply form open/close schedules",
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    scheduler.start()
    logger.info("Scheduler started - form schedule tick every %ds", FORM_SCHEDULE_TICK_SECONDS)


def shutdown_scheduler() -> None:
    """Shut down the scheduler if it is running."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
