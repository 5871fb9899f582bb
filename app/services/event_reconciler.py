# app/services/event_reconciler.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.occurrence import Occurrence
from app.schemas.occurrence import OccurrenceStatus
from app.schemas.recording import RecordingResult
from app.schemas.webhook import (
    MeetingCreatedEvent,
    MeetingEndedEvent,
    MeetingObject,
    MeetingStartedEvent,
    ProviderEvent,
    RecordingCompletedEvent,
)
from app.services.occurrence_matcher import OccurrenceMatcher
from app.services.recording_resolver import UNKNOWN_HOST, RecordingResolver
from app.services.time_utils import minutes_between, parse_provider_datetime, utcnow
from app.services.zoom_client import ZoomClient, ZoomClientError

logger = logging.getLogger(__name__)

DEFAULT_TOPIC = "Untitled"
DEFAULT_DURATION_MINUTES = 60


@dataclass
class ReconcileOutcome:
    """
    What a handler did with an event; returned for logging and tests.
    """

    action: str
    occurrence_ids: List[int] = field(default_factory=list)


def _advance_status(row: Occurrence, target: OccurrenceStatus) -> None:
    """Move `row` forward to `target`; never backwards."""
    current = OccurrenceStatus(row.status)
    if target.rank > current.rank:
        row.status = target.value


def _optional_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return str(int(value))
    return str(value)


class EventReconciler:
    """
    Applies Zoom lifecycle events to the `occurrences` table.

    Each event type has its own handler; all of them go through the shared
    OccurrenceMatcher to find the row an event refers to, and all of them are
    safe to re-run on duplicate delivery:

    - meeting.created   -> upsert one `scheduled` row per declared occurrence
    - meeting.started   -> bind the best pending row (or insert one) as `live`
    - meeting.ended     -> close the live row as `ended`
    - recording.*       -> attach transcript / video to rows of that session

    Handlers commit their own unit of work. Zoom API failures are absorbed
    here; database errors propagate to the caller.
    """

    def __init__(
        self,
        db: AsyncSession,
        zoom_client: ZoomClient,
        recording_resolver: Optional[RecordingResolver] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.db = db
        self.zoom = zoom_client
        self.matcher = OccurrenceMatcher(db)
        self.recordings = recording_resolver or RecordingResolver(zoom_client)
        self.clock = clock

        self._handlers: Dict[type, Callable[[Any], Awaitable[ReconcileOutcome]]] = {
            MeetingCreatedEvent: self.handle_created,
            MeetingStartedEvent: self.handle_started,
            MeetingEndedEvent: self.handle_ended,
            RecordingCompletedEvent: self.handle_recording_completed,
        }

    async def handle(self, event: ProviderEvent) -> ReconcileOutcome:
        handler = self._handlers[type(event)]
        outcome = await handler(event)
        logger.info(
            "Reconciled %s: action=%s occurrences=%s",
            event.event,
            outcome.action,
            outcome.occurrence_ids,
        )
        return outcome

    # ------------------------------------------------------------------
    # meeting.created
    # ------------------------------------------------------------------
    async def handle_created(self, event: MeetingCreatedEvent) -> ReconcileOutcome:
        meeting = event.meeting
        if not meeting.id:
            logger.warning("meeting.created without meeting id; ignoring")
            return ReconcileOutcome(action="ignored")

        detail = await self._meeting_detail(meeting)
        series_id = _optional_str(detail.get("id")) or meeting.id

        declared = detail.get("occurrences") or []
        if declared:
            occurrences = [
                occ for occ in declared
                if (occ.get("status") or "").lower() != "deleted"
            ]
        else:
            occurrences = [
                {
                    "occurrence_id": None,
                    "start_time": detail.get("start_time"),
                    "duration": detail.get("duration"),
                }
            ]

        rows: List[Occurrence] = []
        for occ in occurrences:
            start = parse_provider_datetime(occ.get("start_time") or detail.get("start_time"))
            if start is None:
                logger.warning(
                    "Skipping occurrence %s of series %s: unparseable start time %r",
                    occ.get("occurrence_id"),
                    series_id,
                    occ.get("start_time"),
                )
                continue

            occurrence_id = _optional_str(occ.get("occurrence_id"))
            row = await self.matcher.find_exact(series_id, occurrence_id)
            if row is None:
                row = Occurrence(
                    series_id=series_id,
                    occurrence_id=occurrence_id,
                    status=OccurrenceStatus.SCHEDULED.value,
                    recording_webhook_received=False,
                )
                self.db.add(row)

            row.topic = detail.get("topic") or DEFAULT_TOPIC
            row.host_id = detail.get("host_email") or detail.get("host_id") or UNKNOWN_HOST
            row.scheduled_start = start
            row.duration_minutes = (
                occ.get("duration") or detail.get("duration") or DEFAULT_DURATION_MINUTES
            )
            if detail.get("start_url"):
                row.supervisor_url = detail["start_url"]
            # Series UUID until the run that claims this row supplies its own.
            if row.session_uuid is None and detail.get("uuid"):
                row.session_uuid = detail["uuid"]

            await self.db.flush()
            rows.append(row)

        await self.db.commit()
        return ReconcileOutcome(action="upserted", occurrence_ids=[r.id for r in rows])

    async def _meeting_detail(self, meeting: MeetingObject) -> Dict[str, Any]:
        """
        Full meeting definition from Zoom, or the webhook's own object when
        the API call fails.
        """
        try:
            return await self.zoom.get_meeting(meeting.id)
        except ZoomClientError as exc:
            logger.warning(
                "Meeting detail fetch failed for %s, using webhook payload: %s",
                meeting.id,
                exc,
            )
            return meeting.model_dump()

    # ------------------------------------------------------------------
    # meeting.started
    # ------------------------------------------------------------------
    async def handle_started(self, event: MeetingStartedEvent) -> ReconcileOutcome:
        meeting = event.meeting
        if not meeting.id:
            logger.warning("meeting.started without meeting id; ignoring")
            return ReconcileOutcome(action="ignored")

        if meeting.uuid:
            bound = [
                r for r in await self.matcher.find_by_session(meeting.uuid)
                if r.actual_start is not None
            ]
            if bound:
                return ReconcileOutcome(
                    action="duplicate",
                    occurrence_ids=[r.id for r in bound],
                )

        actual_start = parse_provider_datetime(meeting.start_time) or self.clock()
        row = await self.matcher.resolve(meeting.id, meeting.occurrence_id, actual_start)
        insert_occurrence_id = meeting.occurrence_id

        if row is not None and row.actual_start is not None:
            if meeting.uuid is None or row.session_uuid == meeting.uuid:
                return ReconcileOutcome(action="duplicate", occurrence_ids=[row.id])

            # Best match already belongs to another run: record this run
            # separately instead of rebinding a started occurrence.
            logger.warning(
                "Series %s start at %s matched already-started occurrence %s; "
                "recording as an unannounced session",
                meeting.id,
                actual_start.isoformat(),
                row.id,
            )
            if meeting.occurrence_id is not None and row.occurrence_id == meeting.occurrence_id:
                insert_occurrence_id = None
            row = None

        if row is None:
            row = Occurrence(
                series_id=meeting.id,
                occurrence_id=insert_occurrence_id,
                session_uuid=meeting.uuid,
                topic=meeting.topic or DEFAULT_TOPIC,
                host_id=meeting.host or UNKNOWN_HOST,
                scheduled_start=actual_start,
                duration_minutes=meeting.duration,
                actual_start=actual_start,
                status=OccurrenceStatus.LIVE.value,
                delay_minutes=0,
                recording_webhook_received=False,
            )
            self.db.add(row)
            await self.db.commit()
            return ReconcileOutcome(action="inserted_live", occurrence_ids=[row.id])

        row.actual_start = actual_start
        row.delay_minutes = minutes_between(actual_start, row.scheduled_start)
        if meeting.uuid:
            row.session_uuid = meeting.uuid
        _advance_status(row, OccurrenceStatus.LIVE)

        await self.db.commit()
        return ReconcileOutcome(action="started", occurrence_ids=[row.id])

    # ------------------------------------------------------------------
    # meeting.ended
    # ------------------------------------------------------------------
    async def handle_ended(self, event: MeetingEndedEvent) -> ReconcileOutcome:
        meeting = event.meeting
        now = self.clock()

        row: Optional[Occurrence] = None
        if meeting.uuid:
            session_rows = await self.matcher.find_by_session(meeting.uuid)
            row = next((r for r in session_rows if r.status == OccurrenceStatus.LIVE.value), None)
            if row is None and any(r.status == OccurrenceStatus.ENDED.value for r in session_rows):
                return ReconcileOutcome(
                    action="duplicate",
                    occurrence_ids=[r.id for r in session_rows],
                )

        if row is None and meeting.id:
            row = await self.matcher.resolve(meeting.id, meeting.occurrence_id, now)

        if row is None:
            logger.info(
                "meeting.ended for series=%s uuid=%s matched no occurrence",
                meeting.id,
                meeting.uuid,
            )
            return ReconcileOutcome(action="not_found")

        if row.status == OccurrenceStatus.ENDED.value:
            return ReconcileOutcome(action="duplicate", occurrence_ids=[row.id])

        row.actual_end = now
        if row.actual_start is not None:
            elapsed = (now - row.actual_start).total_seconds() / 60.0
            row.observed_duration_minutes = round(max(elapsed, 0.0), 2)
        if meeting.uuid and (row.session_uuid is None or row.actual_start is None):
            row.session_uuid = meeting.uuid
        _advance_status(row, OccurrenceStatus.ENDED)

        await self.db.commit()
        return ReconcileOutcome(action="ended", occurrence_ids=[row.id])

    # ------------------------------------------------------------------
    # recording.transcript_completed / recording.completed
    # ------------------------------------------------------------------
    async def handle_recording_completed(
        self,
        event: RecordingCompletedEvent,
    ) -> ReconcileOutcome:
        meeting = event.meeting
        if not meeting.uuid:
            logger.warning("%s without meeting uuid; ignoring", event.event)
            return ReconcileOutcome(action="ignored")

        # Rows still `scheduled` only carry the series UUID.
        rows = [
            r for r in await self.matcher.find_by_session(meeting.uuid)
            if r.status != OccurrenceStatus.SCHEDULED.value
        ]
        if not rows:
            logger.info("%s for uuid=%s matched no occurrence", event.event, meeting.uuid)
            return ReconcileOutcome(action="not_found")

        try:
            result = await self.recordings.resolve_files(meeting.recording_files)
        except ZoomClientError as exc:
            logger.warning("Could not materialize recording files: %s", exc)
            result = RecordingResult()

        for row in rows:
            if result.transcript:
                row.transcript = result.transcript
            if result.video_url:
                row.video_url = result.video_url
            row.recording_webhook_received = True

        await self.db.commit()
        return ReconcileOutcome(action="recording_saved", occurrence_ids=[r.id for r in rows])
