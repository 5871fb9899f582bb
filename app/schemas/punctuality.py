# app/schemas/punctuality.py
from enum import Enum

from pydantic import BaseModel, Field


class PunctualityStatus(str, Enum):
    EARLY = "early"
    LATE = "late"
    ON_TIME = "on_time"
    UNKNOWN = "unknown"


class Verdict(BaseModel):
    """
    Timeliness of one edge (start or end) of an occurrence.
    """

    status: PunctualityStatus = Field(..., examples=["late"])
    minutes: int | None = Field(
        None,
        examples=[15],
        description="Magnitude of the deviation in minutes; always non-negative.",
    )
    message: str = Field(..., examples=["Ended 15 min late"])


class PunctualityReport(BaseModel):
    start: Verdict
    end: Verdict
