# app/api/routes/meetings.py
import logging
from datetime import timedelta
from http import HTTPStatus
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies.zoom import optional_zoom_client
from app.core.config import get_settings
from app.db.session import get_db
from app.models.occurrence import Occurrence
from app.schemas.occurrence import (
    MeetingsOverview,
    OccurrenceDetail,
    OccurrenceRead,
    OccurrenceStatus,
    RecordingResponse,
    RecordingSource,
)
from app.services.punctuality import PunctualityCalculator
from app.services.recording_resolver import RecordingResolver, RecordingUnavailableError
from app.services.time_utils import ensure_utc, utcnow
from app.services.zoom_client import ZoomClient, ZoomClientError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/meetings", tags=["Meetings"])


async def _find_by_session(
    db: AsyncSession,
    session_uuid: str,
    occurrence_id: Optional[str],
) -> Optional[Occurrence]:
    stmt = select(Occurrence).where(Occurrence.session_uuid == session_uuid)
    if occurrence_id:
        stmt = stmt.where(Occurrence.occurrence_id == occurrence_id)
    stmt = stmt.order_by(Occurrence.scheduled_start.asc(), Occurrence.id.asc()).limit(1)

    result = await db.execute(stmt)
    return result.scalars().first()


async def _get_or_404(
    db: AsyncSession,
    session_uuid: str,
    occurrence_id: Optional[str],
) -> Occurrence:
    occurrence = await _find_by_session(db, session_uuid, occurrence_id)
    if occurrence is None:
        raise HTTPException(
            status_code=HTTPStatus.NOT_FOUND,
            detail=f"Occurrence for session {session_uuid} not found.",
        )
    return occurrence


@router.get(
    "",
    response_model=MeetingsOverview,
    summary="List occurrences grouped by lifecycle",
    description=(
        "Return every known occurrence, newest scheduled start first, split into:\n"
        "- `in_progress`: live sessions\n"
        "- `past`: ended sessions\n"
        "- `upcoming`: scheduled sessions that have not reached their start time\n"
        "- `not_started`: scheduled sessions whose start time passed without the "
        "session being opened\n\n"
        "`poll_interval_seconds` tells dashboards how often to refresh."
    ),
)
async def list_meetings(db: AsyncSession = Depends(get_db)) -> MeetingsOverview:
    """
    Bucket all occurrences for the dashboard.
    """
    result = await db.execute(
        select(Occurrence).order_by(Occurrence.scheduled_start.desc(), Occurrence.id.desc())
    )
    occurrences = result.scalars().all()
    now = utcnow()

    in_progress: list[OccurrenceRead] = []
    past: list[OccurrenceRead] = []
    upcoming: list[OccurrenceRead] = []
    not_started: list[OccurrenceRead] = []

    for occ in occurrences:
        item = OccurrenceRead.model_validate(occ)
        if occ.status == OccurrenceStatus.LIVE.value:
            in_progress.append(item)
        elif occ.status == OccurrenceStatus.ENDED.value:
            past.append(item)
        elif ensure_utc(occ.scheduled_start) > now:
            upcoming.append(item)
        elif occ.actual_start is None:
            not_started.append(item)

    return MeetingsOverview(
        in_progress=in_progress,
        past=past,
        upcoming=upcoming,
        not_started=not_started,
        poll_interval_seconds=get_settings().CLIENT_POLL_INTERVAL_SECONDS,
    )


@router.get(
    "/{session_uuid:path}/recording",
    response_model=RecordingResponse,
    summary="Transcript and video for a session",
    description=(
        "Serve cached transcript / video for the occurrence identified by its "
        "session UUID (and optional `occurrence_id`).\n\n"
        "When nothing is cached and the session ended at least "
        "`RECORDING_MIN_AGE_MINUTES` ago, the recording is resolved from Zoom on "
        "demand and stored. Missing artifacts are reported as nulls, not errors."
    ),
    responses={404: {"description": "No occurrence with that session UUID."}},
)
async def get_recording(
    session_uuid: str = Path(..., description="Zoom meeting UUID of the session."),
    occurrence_id: Optional[str] = Query(default=None, description="Zoom occurrence id."),
    db: AsyncSession = Depends(get_db),
    zoom_client: Optional[ZoomClient] = Depends(optional_zoom_client),
) -> RecordingResponse:
    settings = get_settings()
    occurrence = await _get_or_404(db, session_uuid, occurrence_id)

    def _response(source: RecordingSource) -> RecordingResponse:
        return RecordingResponse(
            meeting=OccurrenceRead.model_validate(occurrence),
            transcript=occurrence.transcript,
            video_url=occurrence.video_url,
            source=source,
            poll_interval_seconds=settings.CLIENT_POLL_INTERVAL_SECONDS,
        )

    if occurrence.transcript or occurrence.video_url:
        return _response(RecordingSource.CACHED)

    min_age = timedelta(minutes=settings.RECORDING_MIN_AGE_MINUTES)
    if occurrence.actual_end is None or utcnow() - ensure_utc(occurrence.actual_end) < min_age:
        return _response(RecordingSource.PENDING)

    if zoom_client is None:
        return _response(RecordingSource.UNAVAILABLE)

    resolver = RecordingResolver(zoom_client, host_window_days=settings.HOST_RECORDINGS_WINDOW_DAYS)
    try:
        recording = await resolver.fetch_recording(occurrence)
    except (RecordingUnavailableError, ZoomClientError) as exc:
        logger.info("On-demand recording lookup for %s found nothing: %s", session_uuid, exc)
        return _response(RecordingSource.UNAVAILABLE)

    if recording.is_empty:
        return _response(RecordingSource.UNAVAILABLE)

    occurrence.transcript = recording.transcript or occurrence.transcript
    occurrence.video_url = recording.video_url or occurrence.video_url
    meeting = OccurrenceRead.model_validate(occurrence)
    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Could not store on-demand recording for %s", session_uuid)
        return RecordingResponse(
            meeting=meeting,
            transcript=recording.transcript,
            video_url=recording.video_url,
            source=RecordingSource.FETCHED,
            poll_interval_seconds=settings.CLIENT_POLL_INTERVAL_SECONDS,
        )

    return _response(RecordingSource.FETCHED)


@router.get(
    "/{session_uuid:path}",
    response_model=OccurrenceDetail,
    summary="Occurrence detail with punctuality",
    description=(
        "Return the occurrence identified by its session UUID (earliest scheduled "
        "start when several match; narrow with `occurrence_id`) together with "
        "start / end punctuality verdicts."
    ),
    responses={404: {"description": "No occurrence with that session UUID."}},
)
async def get_meeting(
    session_uuid: str = Path(..., description="Zoom meeting UUID of the session."),
    occurrence_id: Optional[str] = Query(default=None, description="Zoom occurrence id."),
    db: AsyncSession = Depends(get_db),
) -> OccurrenceDetail:
    occurrence = await _get_or_404(db, session_uuid, occurrence_id)
    base = OccurrenceRead.model_validate(occurrence)
    return OccurrenceDetail(
        **base.model_dump(),
        punctuality=PunctualityCalculator.evaluate(occurrence),
    )
