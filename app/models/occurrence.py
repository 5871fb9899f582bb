# app/models/occurrence.py
from sqlalchemy import (
    Boolean,
    Column,
    Float,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from app.db.base import Base
from app.db.types import UTCDateTime
from app.services.time_utils import utcnow


class Occurrence(Base):
    """
    One scheduled (or observed) run of a Zoom meeting series.

    Rows are created from `meeting.created` webhooks, promoted to `live` and
    `ended` by the matching lifecycle events, and enriched with transcript /
    video artifacts once the recording is available.
    """

    __tablename__ = "occurrences"

    id = Column(Integer, primary_key=True, index=True)

    series_id = Column(String(64), nullable=False, index=True)
    occurrence_id = Column(String(64), nullable=True)
    session_uuid = Column(String(128), nullable=True, index=True)

    topic = Column(String(512), nullable=False, default="Untitled")
    host_id = Column(String(255), nullable=False, default="unknown")

    scheduled_start = Column(UTCDateTime(), nullable=False, index=True)
    duration_minutes = Column(Integer, nullable=True)

    actual_start = Column(UTCDateTime(), nullable=True)
    actual_end = Column(UTCDateTime(), nullable=True)

    status = Column(String(16), nullable=False, default="scheduled", index=True)
    delay_minutes = Column(Integer, nullable=True)
    observed_duration_minutes = Column(Float, nullable=True)

    transcript = Column(Text, nullable=True)
    video_url = Column(Text, nullable=True)
    supervisor_url = Column(Text, nullable=True)

    recording_webhook_received = Column(Boolean, nullable=False, default=False)

    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint(
            "series_id",
            "occurrence_id",
            name="uq_occurrences_series_occurrence",
        ),
    )

    @property
    def is_pending(self) -> bool:
        """Scheduled and never observed starting."""
        return self.status == "scheduled" and self.actual_start is None

    def __repr__(self) -> str:
        return (
            f"<Occurrence id={self.id} series_id={self.series_id} "
            f"occurrence_id={self.occurrence_id} status={self.status}>"
        )
