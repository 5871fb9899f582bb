# app/schemas/webhook.py
from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

URL_VALIDATION_EVENT = "endpoint.url_validation"


class RecordingFile(BaseModel):
    """
    One entry of Zoom's `recording_files` list.
    """

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    file_type: Optional[str] = None
    file_extension: Optional[str] = None
    recording_type: Optional[str] = None
    download_url: Optional[str] = None
    status: Optional[str] = None


class MeetingObject(BaseModel):
    """
    The `payload.object` block shared by Zoom meeting and recording events.

    Zoom sends numeric ids as JSON numbers; they are kept as strings here so
    they compare equal to the persisted identifiers.
    """

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    uuid: Optional[str] = None
    occurrence_id: Optional[str] = None
    topic: Optional[str] = None
    host_id: Optional[str] = None
    host_email: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    duration: Optional[int] = None
    timezone: Optional[str] = None
    start_url: Optional[str] = None
    occurrences: list[dict[str, Any]] = Field(default_factory=list)
    recording_files: list[RecordingFile] = Field(default_factory=list)

    @field_validator("id", "occurrence_id", mode="before")
    @classmethod
    def _stringify_ids(cls, value: Any) -> Any:
        if value is None or value == "":
            return None
        if isinstance(value, (int, float)):
            return str(int(value))
        return value

    @property
    def host(self) -> Optional[str]:
        return self.host_email or self.host_id


class EventPayload(BaseModel):
    model_config = ConfigDict(extra="allow")

    account_id: Optional[str] = None
    object: MeetingObject


class _ZoomEvent(BaseModel):
    model_config = ConfigDict(extra="allow")

    event_ts: Optional[int] = None
    payload: EventPayload

    @property
    def meeting(self) -> MeetingObject:
        return self.payload.object


class MeetingCreatedEvent(_ZoomEvent):
    event: Literal["meeting.created"]


class MeetingStartedEvent(_ZoomEvent):
    event: Literal["meeting.started"]


class MeetingEndedEvent(_ZoomEvent):
    event: Literal["meeting.ended"]


class RecordingCompletedEvent(_ZoomEvent):
    event: Literal["recording.transcript_completed", "recording.completed"]

    download_token: Optional[str] = None


ProviderEvent = Annotated[
    Union[
        MeetingCreatedEvent,
        MeetingStartedEvent,
        MeetingEndedEvent,
        RecordingCompletedEvent,
    ],
    Field(discriminator="event"),
]

_EVENT_ADAPTER: TypeAdapter[ProviderEvent] = TypeAdapter(ProviderEvent)

KNOWN_EVENTS = frozenset(
    {
        "meeting.created",
        "meeting.started",
        "meeting.ended",
        "recording.transcript_completed",
        "recording.completed",
    }
)


def parse_provider_event(body: dict[str, Any]) -> Optional[ProviderEvent]:
    """
    Turn a raw webhook body into one of the typed lifecycle events.

    Returns None for event types this service does not act on. A body for a
    known event type that does not fit its model raises
    `pydantic.ValidationError`.
    """
    if body.get("event") not in KNOWN_EVENTS:
        return None
    return _EVENT_ADAPTER.validate_python(body)


class UrlValidationPayload(BaseModel):
    plainToken: str


class UrlValidationRequest(BaseModel):
    event: Literal["endpoint.url_validation"]
    payload: UrlValidationPayload


class UrlValidationResponse(BaseModel):
    plainToken: str
    encryptedToken: str


class WebhookAck(BaseModel):
    status: str = Field("OK", examples=["OK"])
