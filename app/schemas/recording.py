# app/schemas/recording.py
from pydantic import BaseModel, Field


class RecordingResult(BaseModel):
    """
    Artifacts resolved for one occurrence. Either field may be missing when
    Zoom has not produced it or its download failed.
    """

    transcript: str | None = Field(None, description="Transcript text (WebVTT).")
    video_url: str | None = Field(
        None,
        description="MP4 download URL carrying a short-lived access token.",
    )

    @property
    def is_empty(self) -> bool:
        return not self.transcript and not self.video_url
