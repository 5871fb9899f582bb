# app/services/scheduler.py
"""Background scheduler for the recording backfill sweep.

Runs the sweep every BACKFILL_INTERVAL_HOURS and once shortly after startup.
Set BACKFILL_ENABLED=false to disable (tests, or when an external cron
calls ``POST /internal/run-backfill`` instead).
"""

import logging
from datetime import timedelta
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from app.core.config import get_settings
from app.db.session import AsyncSessionLocal
from app.services.backfill_sweeper import build_backfill_sweeper
from app.services.time_utils import utcnow
from app.services.zoom_client import ZoomClientError, get_zoom_client

logger = logging.getLogger(__name__)

_scheduler: Any = None


async def run_backfill_job() -> None:
    """Scheduler entry point: one backfill sweep in its own DB session."""
    try:
        zoom_client = get_zoom_client()
    except ZoomClientError:
        logger.warning("Backfill sweep skipped: Zoom credentials not configured")
        return

    try:
        sweeper = build_backfill_sweeper(zoom_client)
        async with AsyncSessionLocal() as session:
            await sweeper.run(session)
    except Exception:
        logger.exception("Backfill sweep run failed")


async def start_scheduler() -> None:
    """Start the APScheduler background scheduler if enabled."""
    global _scheduler

    settings = get_settings()
    if not settings.BACKFILL_ENABLED:
        logger.info("Backfill scheduler disabled (BACKFILL_ENABLED is false)")
        return

    _scheduler = AsyncIOScheduler()
    _scheduler.add_job(
        run_backfill_job,
        trigger=IntervalTrigger(hours=settings.BACKFILL_INTERVAL_HOURS),
        id="recording_backfill",
        name="Recording backfill sweep",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    _scheduler.add_job(
        run_backfill_job,
        trigger=DateTrigger(
            run_date=utcnow() + timedelta(seconds=settings.BACKFILL_STARTUP_DELAY_SECONDS)
        ),
        id="recording_backfill_startup",
        name="Recording backfill sweep after startup",
        replace_existing=True,
    )
    _scheduler.start()
    logger.info(
        "Backfill scheduler started: every %d h, first run in %d s",
        settings.BACKFILL_INTERVAL_HOURS,
        settings.BACKFILL_STARTUP_DELAY_SECONDS,
    )


async def stop_scheduler() -> None:
    """Stop the background scheduler if running."""
    global _scheduler
    if _scheduler is not None:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("Backfill scheduler stopped")
