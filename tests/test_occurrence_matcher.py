# tests/test_occurrence_matcher.py
from datetime import datetime, timezone

import pytest

from app.db.session import AsyncSessionLocal
from app.models.occurrence import Occurrence
from app.services.occurrence_matcher import OccurrenceMatcher, pick_closest

SERIES = "85746065432"


def _at(hour: int, minute: int = 0) -> datetime:
    return datetime(2025, 1, 10, hour, minute, tzinfo=timezone.utc)


async def _seed(session, *rows: Occurrence) -> None:
    session.add_all(rows)
    await session.commit()


def _occurrence(occurrence_id: str, start: datetime, **kwargs) -> Occurrence:
    return Occurrence(
        series_id=SERIES,
        occurrence_id=occurrence_id,
        topic="Algebra I",
        host_id="instructor@example.com",
        scheduled_start=start,
        duration_minutes=60,
        status=kwargs.pop("status", "scheduled"),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_start_near_afternoon_slot_matches_afternoon_occurrence():
    """
    Both occurrences pending; a start at 13:55 belongs to the 14:00 slot.
    """
    async with AsyncSessionLocal() as session:
        morning = _occurrence("1", _at(9))
        afternoon = _occurrence("2", _at(14))
        await _seed(session, morning, afternoon)

        row = await OccurrenceMatcher(session).resolve(SERIES, None, _at(13, 55))

        assert row is not None
        assert row.id == afternoon.id


@pytest.mark.asyncio
async def test_live_occurrence_is_excluded_while_pending_ones_exist():
    async with AsyncSessionLocal() as session:
        morning = _occurrence("1", _at(9), status="live", actual_start=_at(9, 2))
        afternoon = _occurrence("2", _at(14))
        await _seed(session, morning, afternoon)

        row = await OccurrenceMatcher(session).resolve(SERIES, None, _at(13, 55))

        assert row.id == afternoon.id


@pytest.mark.asyncio
async def test_exact_occurrence_id_wins_over_proximity():
    async with AsyncSessionLocal() as session:
        morning = _occurrence("1", _at(9))
        afternoon = _occurrence("2", _at(14))
        await _seed(session, morning, afternoon)

        row = await OccurrenceMatcher(session).resolve(SERIES, "1", _at(13, 55))

        assert row.id == morning.id


@pytest.mark.asyncio
async def test_unknown_occurrence_id_falls_back_to_proximity():
    async with AsyncSessionLocal() as session:
        morning = _occurrence("1", _at(9))
        afternoon = _occurrence("2", _at(14))
        await _seed(session, morning, afternoon)

        row = await OccurrenceMatcher(session).resolve(SERIES, "999", _at(9, 10))

        assert row.id == morning.id


@pytest.mark.asyncio
async def test_no_rows_for_series_returns_none():
    async with AsyncSessionLocal() as session:
        await _seed(session, _occurrence("1", _at(9)))

        row = await OccurrenceMatcher(session).resolve("other-series", None, _at(9))

        assert row is None


@pytest.mark.asyncio
async def test_all_started_falls_back_to_closest_overall():
    async with AsyncSessionLocal() as session:
        morning = _occurrence("1", _at(9), status="ended", actual_start=_at(9), actual_end=_at(10))
        afternoon = _occurrence("2", _at(14), status="live", actual_start=_at(14))
        await _seed(session, morning, afternoon)

        row = await OccurrenceMatcher(session).resolve(SERIES, None, _at(10, 5))

        assert row.id == morning.id


@pytest.mark.asyncio
async def test_find_exact_with_none_selects_non_recurring_slot():
    async with AsyncSessionLocal() as session:
        single = Occurrence(
            series_id=SERIES,
            occurrence_id=None,
            scheduled_start=_at(9),
            status="scheduled",
        )
        recurring = _occurrence("1", _at(9))
        await _seed(session, single, recurring)

        matcher = OccurrenceMatcher(session)

        assert (await matcher.find_exact(SERIES, None)).id == single.id
        assert (await matcher.find_exact(SERIES, "1")).id == recurring.id


def test_pick_closest_breaks_ties_by_earliest_start():
    early = _occurrence("1", _at(9))
    late = _occurrence("2", _at(11))

    assert pick_closest([late, early], _at(10)) is early
    assert pick_closest([], _at(10)) is None
