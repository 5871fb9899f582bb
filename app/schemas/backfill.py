# app/schemas/backfill.py
from datetime import datetime

from pydantic import BaseModel, Field


class BackfillSummary(BaseModel):
    """
    Summary of one recording backfill sweep.
    """

    started_at: datetime = Field(..., description="When the sweep began (UTC).")
    considered: int = Field(
        ...,
        examples=[12],
        description="Ended occurrences missing a transcript or video that were examined.",
    )
    updated: int = Field(..., examples=[9], description="Occurrences that gained artifacts.")
    not_available: int = Field(
        ...,
        examples=[2],
        description="Occurrences for which Zoom returned no usable files yet.",
    )
    failed: int = Field(..., examples=[1], description="Occurrences whose lookup errored.")


class SupervisorBackfillSummary(BaseModel):
    """
    Result of filling host start URLs for live/scheduled occurrences.
    """

    considered: int = Field(..., examples=[50])
    updated: int = Field(..., examples=[48])
    failed: int = Field(..., examples=[0])
    message: str = Field(..., examples=["48 live/scheduled occurrences updated with supervisor_url"])
