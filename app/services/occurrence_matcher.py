# app/services/occurrence_matcher.py
from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.occurrence import Occurrence
from app.services.time_utils import ensure_utc


def pick_closest(
    candidates: Sequence[Occurrence],
    reference: datetime,
) -> Optional[Occurrence]:
    """
    Return the candidate whose scheduled start is nearest to `reference`.

    Ties go to the earliest scheduled start. Pending occurrences (scheduled,
    never started) are preferred; the full list is only searched when none
    of them is pending.
    """
    if not candidates:
        return None

    pending = [occ for occ in candidates if occ.is_pending]
    pool = pending or list(candidates)
    reference = ensure_utc(reference)

    def _distance(occ: Occurrence) -> tuple[float, datetime]:
        scheduled = ensure_utc(occ.scheduled_start)
        return abs((scheduled - reference).total_seconds()), scheduled

    return min(pool, key=_distance)


class OccurrenceMatcher:
    """
    Resolves which persisted occurrence an inbound event refers to.

    - Exact (series_id, occurrence_id) match wins when the event carries an
      occurrence id.
    - Otherwise the occurrence of the series scheduled closest to the
      reference instant, preferring ones that have not started yet.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def resolve(
        self,
        series_id: str,
        occurrence_id: Optional[str],
        reference: datetime,
    ) -> Optional[Occurrence]:
        if occurrence_id:
            exact = await self.find_exact(series_id, occurrence_id)
            if exact is not None:
                return exact

        stmt = (
            select(Occurrence)
            .where(Occurrence.series_id == str(series_id))
            .order_by(Occurrence.scheduled_start.asc(), Occurrence.id.asc())
        )
        result = await self.db.execute(stmt)
        series_rows = list(result.scalars().all())

        return pick_closest(series_rows, reference)

    async def find_exact(
        self,
        series_id: str,
        occurrence_id: Optional[str],
    ) -> Optional[Occurrence]:
        """
        Row stored under (series_id, occurrence_id); a None occurrence id
        selects the non-recurring slot.
        """
        stmt = select(Occurrence).where(Occurrence.series_id == str(series_id))
        if occurrence_id is None:
            stmt = stmt.where(Occurrence.occurrence_id.is_(None))
        else:
            stmt = stmt.where(Occurrence.occurrence_id == str(occurrence_id))

        result = await self.db.execute(stmt.order_by(Occurrence.id.asc()))
        return result.scalars().first()

    async def find_live_by_session(self, session_uuid: str) -> Optional[Occurrence]:
        stmt = (
            select(Occurrence)
            .where(
                Occurrence.session_uuid == session_uuid,
                Occurrence.status == "live",
            )
            .order_by(Occurrence.id.asc())
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def find_by_session(self, session_uuid: str) -> list[Occurrence]:
        stmt = (
            select(Occurrence)
            .where(Occurrence.session_uuid == session_uuid)
            .order_by(Occurrence.scheduled_start.asc(), Occurrence.id.asc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
