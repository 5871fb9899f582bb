# app/services/backfill_sweeper.py
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Awaitable, Callable, List, Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings, get_settings
from app.models.occurrence import Occurrence
from app.schemas.backfill import BackfillSummary
from app.schemas.occurrence import OccurrenceStatus
from app.services.recording_resolver import RecordingResolver, RecordingUnavailableError
from app.services.time_utils import utcnow
from app.services.zoom_client import ZoomClient, ZoomClientError

logger = logging.getLogger(__name__)


class BackfillSweeper:
    """
    Finds ended occurrences that never received their recording artifacts and
    resolves them through the RecordingResolver.

    Behavior
    --------
    - Candidates: status `ended`, transcript or video missing, no recording
      webhook seen, ended between `lookback_days` ago and `min_age_minutes`
      ago. Newest first, at most `batch_size` per sweep.
    - One resolver call per candidate, `item_delay_seconds` apart.
    - Only missing fields are filled; existing artifacts are never replaced.
    - A failure on one occurrence is counted and logged; the sweep goes on.
    """

    def __init__(
        self,
        resolver: RecordingResolver,
        batch_size: int = 20,
        item_delay_seconds: float = 2.0,
        lookback_days: int = 30,
        min_age_minutes: int = 10,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.resolver = resolver
        self.batch_size = batch_size
        self.item_delay_seconds = item_delay_seconds
        self.lookback_days = lookback_days
        self.min_age_minutes = min_age_minutes
        self.clock = clock
        self.sleep = sleep

    async def find_candidates(self, db: AsyncSession, now: datetime) -> List[Occurrence]:
        stmt = (
            select(Occurrence)
            .where(
                Occurrence.status == OccurrenceStatus.ENDED.value,
                or_(Occurrence.transcript.is_(None), Occurrence.video_url.is_(None)),
                Occurrence.recording_webhook_received.is_(False),
                Occurrence.actual_end >= now - timedelta(days=self.lookback_days),
                Occurrence.actual_end <= now - timedelta(minutes=self.min_age_minutes),
            )
            .order_by(Occurrence.actual_end.desc())
            .limit(self.batch_size)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def run(self, db: AsyncSession) -> BackfillSummary:
        started_at = self.clock()
        candidates = await self.find_candidates(db, started_at)

        if not candidates:
            logger.info("Backfill sweep: no occurrences pending recordings")
        else:
            logger.info("Backfill sweep: %d occurrences pending recordings", len(candidates))

        updated = not_available = failed = 0
        stale = False

        for index, occurrence in enumerate(candidates):
            if index and self.item_delay_seconds > 0:
                await self.sleep(self.item_delay_seconds)

            # A rollback expires every loaded row.
            if stale:
                try:
                    await db.refresh(occurrence)
                except SQLAlchemyError:
                    failed += 1
                    logger.exception("Backfill could not reload an occurrence")
                    continue
            occurrence_id = occurrence.id

            try:
                result = await self.resolver.fetch_recording(occurrence)
            except RecordingUnavailableError:
                not_available += 1
                continue
            except ZoomClientError as exc:
                failed += 1
                logger.warning("Backfill lookup failed for occurrence %s: %s", occurrence_id, exc)
                continue

            changed = False
            if result.transcript and not occurrence.transcript:
                occurrence.transcript = result.transcript
                changed = True
            if result.video_url and not occurrence.video_url:
                occurrence.video_url = result.video_url
                changed = True

            if not changed:
                not_available += 1
                continue

            try:
                await db.commit()
            except SQLAlchemyError:
                await db.rollback()
                stale = True
                failed += 1
                logger.exception("Backfill could not persist occurrence %s", occurrence_id)
                continue
            updated += 1

        summary = BackfillSummary(
            started_at=started_at,
            considered=len(candidates),
            updated=updated,
            not_available=not_available,
            failed=failed,
        )
        logger.info(
            "Backfill sweep finished: updated=%d not_available=%d failed=%d",
            summary.updated,
            summary.not_available,
            summary.failed,
        )
        return summary


def build_backfill_sweeper(
    zoom_client: ZoomClient,
    settings: Optional[Settings] = None,
) -> BackfillSweeper:
    """
    BackfillSweeper wired to the application settings.
    """
    settings = settings or get_settings()
    return BackfillSweeper(
        resolver=RecordingResolver(
            zoom_client,
            host_window_days=settings.HOST_RECORDINGS_WINDOW_DAYS,
        ),
        batch_size=settings.BACKFILL_BATCH_SIZE,
        item_delay_seconds=settings.BACKFILL_ITEM_DELAY_SECONDS,
        lookback_days=settings.BACKFILL_LOOKBACK_DAYS,
        min_age_minutes=settings.RECORDING_MIN_AGE_MINUTES,
    )
