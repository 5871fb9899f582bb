# app/services/punctuality.py
from __future__ import annotations

from datetime import timedelta
from typing import Any

from app.schemas.punctuality import PunctualityReport, PunctualityStatus, Verdict
from app.services.time_utils import minutes_between, parse_provider_datetime

UNKNOWN_MESSAGE = "—"


def _verdict(diff_minutes: int, label: str) -> Verdict:
    if diff_minutes > 0:
        return Verdict(
            status=PunctualityStatus.LATE,
            minutes=diff_minutes,
            message=f"{label} {diff_minutes} min late",
        )
    if diff_minutes < 0:
        return Verdict(
            status=PunctualityStatus.EARLY,
            minutes=abs(diff_minutes),
            message=f"{label} {abs(diff_minutes)} min early",
        )
    return Verdict(status=PunctualityStatus.ON_TIME, minutes=0, message=f"{label} on time")


def _unknown() -> Verdict:
    return Verdict(status=PunctualityStatus.UNKNOWN, minutes=None, message=UNKNOWN_MESSAGE)


class PunctualityCalculator:
    """
    Derives start / end timeliness of an occurrence from its stored fields.

    Rules
    -----
    - Start: taken from `delay_minutes` as stored at session start
      (> 0 late, < 0 early, 0 on time, missing unknown).
    - End: `actual_end` compared with `scheduled_start + duration_minutes`;
      all three are required, otherwise unknown.

    Never raises; bad or missing inputs produce an `unknown` verdict.
    """

    @staticmethod
    def evaluate(occurrence: Any) -> PunctualityReport:
        return PunctualityReport(
            start=PunctualityCalculator.start_verdict(occurrence),
            end=PunctualityCalculator.end_verdict(occurrence),
        )

    @staticmethod
    def start_verdict(occurrence: Any) -> Verdict:
        delay = getattr(occurrence, "delay_minutes", None)
        if delay is None:
            return _unknown()
        try:
            return _verdict(int(delay), "Started")
        except (TypeError, ValueError):
            return _unknown()

    @staticmethod
    def end_verdict(occurrence: Any) -> Verdict:
        scheduled_start = parse_provider_datetime(getattr(occurrence, "scheduled_start", None))
        actual_end = parse_provider_datetime(getattr(occurrence, "actual_end", None))
        duration = getattr(occurrence, "duration_minutes", None)

        # Zero duration is treated as undeclared.
        if scheduled_start is None or actual_end is None or not duration:
            return _unknown()

        try:
            scheduled_end = scheduled_start + timedelta(minutes=float(duration))
        except (TypeError, ValueError, OverflowError):
            return _unknown()

        return _verdict(minutes_between(actual_end, scheduled_end), "Ended")
