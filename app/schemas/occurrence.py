# app/schemas/occurrence.py
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.punctuality import PunctualityReport


class OccurrenceStatus(str, Enum):
    """
    Lifecycle of a persisted occurrence. Transitions only move forward:
    SCHEDULED -> LIVE -> ENDED.
    """

    SCHEDULED = "scheduled"
    LIVE = "live"
    ENDED = "ended"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]


_STATUS_RANK = {
    OccurrenceStatus.SCHEDULED: 0,
    OccurrenceStatus.LIVE: 1,
    OccurrenceStatus.ENDED: 2,
}


class OccurrenceRead(BaseModel):
    """
    Public representation of an Occurrence row.
    """

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., examples=[1], description="Database identifier of the occurrence.")
    series_id: str = Field(
        ...,
        examples=["85746065432"],
        description="Zoom meeting id shared by every occurrence of the series.",
    )
    occurrence_id: str | None = Field(
        None,
        examples=["1736505000000"],
        description="Zoom occurrence id; absent for non-recurring meetings.",
    )
    session_uuid: str | None = Field(
        None,
        examples=["4444AAAiAAAAAiAiAiiAii=="],
        description="UUID of the concrete run, assigned when the session starts.",
    )
    topic: str = Field(..., examples=["Algebra I - Group B"])
    host_id: str = Field(..., examples=["instructor@example.com"])
    scheduled_start: datetime = Field(..., description="Planned start (UTC).")
    duration_minutes: int | None = Field(None, examples=[60])
    actual_start: datetime | None = Field(None, description="Observed start (UTC).")
    actual_end: datetime | None = Field(None, description="Observed end (UTC).")
    status: OccurrenceStatus = Field(..., examples=["scheduled"])
    delay_minutes: int | None = Field(
        None,
        examples=[3],
        description="Minutes between scheduled and actual start; positive means late.",
    )
    observed_duration_minutes: float | None = Field(None, examples=[58.5])
    transcript: str | None = None
    video_url: str | None = None
    supervisor_url: str | None = None
    recording_webhook_received: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


class OccurrenceDetail(OccurrenceRead):
    """
    Occurrence plus its punctuality verdicts, as returned by the detail endpoint.
    """

    punctuality: PunctualityReport


class MeetingsOverview(BaseModel):
    """
    Dashboard listing of every known occurrence, bucketed by lifecycle.
    """

    in_progress: list[OccurrenceRead] = Field(
        ..., description="Occurrences currently live."
    )
    past: list[OccurrenceRead] = Field(..., description="Occurrences that have ended.")
    upcoming: list[OccurrenceRead] = Field(
        ..., description="Scheduled occurrences whose start is still in the future."
    )
    not_started: list[OccurrenceRead] = Field(
        ...,
        description=(
            "Scheduled occurrences whose start time has passed without the "
            "session ever being opened."
        ),
    )
    poll_interval_seconds: int = Field(
        ...,
        examples=[30],
        description="How often clients should refresh this listing.",
    )


class RecordingSource(str, Enum):
    CACHED = "cached"
    FETCHED = "fetched"
    PENDING = "pending"
    UNAVAILABLE = "unavailable"


class RecordingResponse(BaseModel):
    """
    Transcript / video artifacts for a single occurrence.
    """

    meeting: OccurrenceRead
    transcript: str | None = None
    video_url: str | None = None
    source: RecordingSource = Field(
        ...,
        description=(
            "`cached` when served from the database, `fetched` when resolved from "
            "Zoom during this request, `pending` when the session ended too "
            "recently (or has not ended), `unavailable` when Zoom had nothing."
        ),
    )
    poll_interval_seconds: int = Field(..., examples=[30])
