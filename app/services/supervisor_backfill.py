# app/services/supervisor_backfill.py
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.occurrence import Occurrence
from app.schemas.backfill import SupervisorBackfillSummary
from app.schemas.occurrence import OccurrenceStatus
from app.services.zoom_client import ZoomClient, ZoomClientError

logger = logging.getLogger(__name__)


async def backfill_supervisor_urls(
    db: AsyncSession,
    zoom_client: ZoomClient,
    limit: int = 50,
    delay_seconds: float = 0.5,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> SupervisorBackfillSummary:
    """
    Fill `supervisor_url` (the host `start_url`) for live and scheduled
    occurrences created before it was captured.

    Occurrences of the same series share one meeting lookup.
    """
    stmt = (
        select(Occurrence)
        .where(
            Occurrence.status.in_(
                [OccurrenceStatus.LIVE.value, OccurrenceStatus.SCHEDULED.value]
            ),
            Occurrence.supervisor_url.is_(None),
        )
        .order_by(Occurrence.scheduled_start.asc())
        .limit(limit)
    )
    result = await db.execute(stmt)
    occurrences = list(result.scalars().all())

    if not occurrences:
        return SupervisorBackfillSummary(
            considered=0,
            updated=0,
            failed=0,
            message="All live/scheduled occurrences already have a supervisor_url",
        )

    start_urls: Dict[str, Optional[str]] = {}
    updated = failed = 0

    for occurrence in occurrences:
        series_id = occurrence.series_id
        if series_id not in start_urls:
            if start_urls and delay_seconds > 0:
                await sleep(delay_seconds)
            try:
                detail = await zoom_client.get_meeting(series_id)
                start_urls[series_id] = detail.get("start_url") or None
            except ZoomClientError as exc:
                logger.warning("Could not fetch start_url for series %s: %s", series_id, exc)
                start_urls[series_id] = None
                failed += 1
                continue

        url = start_urls[series_id]
        if url:
            occurrence.supervisor_url = url
            updated += 1

    await db.commit()
    logger.info("supervisor_url backfilled for %d occurrences", updated)

    return SupervisorBackfillSummary(
        considered=len(occurrences),
        updated=updated,
        failed=failed,
        message=f"{updated} live/scheduled occurrences updated with supervisor_url",
    )
