# app/services/recording_resolver.py
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, Iterable, List, Optional

from app.models.occurrence import Occurrence
from app.schemas.recording import RecordingResult
from app.schemas.webhook import RecordingFile
from app.services.time_utils import ensure_utc
from app.services.zoom_client import ZoomClient, ZoomClientError, encode_meeting_uuid

logger = logging.getLogger(__name__)

UNKNOWN_HOST = "unknown"


class RecordingUnavailableError(RuntimeError):
    """
    Raised when no lookup strategy produced a recording listing and the
    occurrence has no artifacts from an earlier resolution.
    """


def _is_mp4(file: RecordingFile) -> bool:
    return (file.file_type or "").upper() == "MP4"


def select_transcript_file(files: Iterable[RecordingFile]) -> Optional[RecordingFile]:
    """
    Pick the transcript among a meeting's recording files.

    Preference: file_type TRANSCRIPT, then recording_type audio_transcript,
    then a `.vtt` extension. Video files are never returned.
    """
    usable = [f for f in files if f.download_url and not _is_mp4(f)]

    for matches in (
        lambda f: (f.file_type or "").upper() == "TRANSCRIPT",
        lambda f: (f.recording_type or "").lower() == "audio_transcript",
        lambda f: (f.file_extension or "").lower() == "vtt",
    ):
        for file in usable:
            if matches(file):
                return file
    return None


def select_video_file(files: Iterable[RecordingFile]) -> Optional[RecordingFile]:
    """
    Pick the MP4 to expose as the session video.

    Preference: shared-screen layouts, then active speaker, then any MP4.
    """
    mp4s = [f for f in files if f.download_url and _is_mp4(f)]

    for matches in (
        lambda f: "shared_screen" in (f.recording_type or ""),
        lambda f: (f.recording_type or "") == "active_speaker",
        lambda f: True,
    ):
        for file in mp4s:
            if matches(file):
                return file
    return None


def authorize_download_url(url: str, token: str) -> str:
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}access_token={token}"


class RecordingResolver:
    """
    Retrieves transcript text and video URL for an occurrence from Zoom.

    Lookup strategies, tried in order until one returns a recording listing:
    1) meeting UUID (double URL-encoded)
    2) series (numeric meeting) id
    3) the host's recordings in a window around the session, matched by
       UUID or meeting id
    """

    def __init__(self, zoom_client: ZoomClient, host_window_days: int = 1) -> None:
        self.zoom = zoom_client
        self.host_window_days = host_window_days

    async def fetch_recording(self, occurrence: Occurrence) -> RecordingResult:
        """
        Resolve recording artifacts for `occurrence`.

        Raises RecordingUnavailableError when every strategy came back empty
        and the occurrence has nothing cached either.
        """
        logger.info(
            "Looking up recording for occurrence id=%s series_id=%s",
            occurrence.id,
            occurrence.series_id,
        )
        listing = await self._find_listing(occurrence)

        if listing is None:
            if occurrence.transcript or occurrence.video_url:
                return RecordingResult(
                    transcript=occurrence.transcript,
                    video_url=occurrence.video_url,
                )
            raise RecordingUnavailableError(
                f"No recording listing found for occurrence {occurrence.id}"
            )

        files = [
            RecordingFile.model_validate(raw)
            for raw in listing.get("recording_files") or []
        ]
        return await self.resolve_files(files)

    async def resolve_files(self, files: List[RecordingFile]) -> RecordingResult:
        """
        Choose transcript and video among `files` and materialize them.

        The transcript is downloaded as text; the video is returned as an
        authorized download URL. A failed transcript download leaves only the
        transcript unset.
        """
        transcript_file = select_transcript_file(files)
        video_file = select_video_file(files)

        if transcript_file is None and video_file is None:
            return RecordingResult()

        token = await self.zoom.get_access_token()

        transcript: Optional[str] = None
        if transcript_file is not None:
            try:
                transcript = await self.zoom.download_text(
                    authorize_download_url(transcript_file.download_url, token)
                )
                logger.info("Downloaded transcript (%d characters)", len(transcript))
            except ZoomClientError as exc:
                logger.warning("Transcript download failed: %s", exc)

        video_url: Optional[str] = None
        if video_file is not None:
            video_url = authorize_download_url(video_file.download_url, token)
            logger.info(
                "Selected MP4 recording (%s)", video_file.recording_type or "unknown type"
            )

        return RecordingResult(transcript=transcript or None, video_url=video_url)

    async def _find_listing(self, occurrence: Occurrence) -> Optional[Dict[str, Any]]:
        for strategy in (self._by_session_uuid, self._by_series_id, self._by_host_window):
            listing = await strategy(occurrence)
            if listing is not None:
                return listing
        return None

    async def _by_session_uuid(self, occurrence: Occurrence) -> Optional[Dict[str, Any]]:
        if not occurrence.session_uuid:
            return None
        try:
            return await self.zoom.get_meeting_recordings(
                encode_meeting_uuid(occurrence.session_uuid)
            )
        except ZoomClientError as exc:
            logger.info("Recording lookup by UUID failed: %s", exc.status_code or exc)
            return None

    async def _by_series_id(self, occurrence: Occurrence) -> Optional[Dict[str, Any]]:
        if not occurrence.series_id:
            return None
        try:
            return await self.zoom.get_meeting_recordings(occurrence.series_id)
        except ZoomClientError as exc:
            logger.info("Recording lookup by meeting id failed: %s", exc.status_code or exc)
            return None

    async def _by_host_window(self, occurrence: Occurrence) -> Optional[Dict[str, Any]]:
        anchor = occurrence.actual_end or occurrence.scheduled_start
        if not occurrence.host_id or occurrence.host_id == UNKNOWN_HOST or anchor is None:
            return None

        anchor = ensure_utc(anchor)
        window = timedelta(days=self.host_window_days)
        try:
            payload = await self.zoom.list_user_recordings(
                occurrence.host_id,
                from_date=(anchor - window).date(),
                to_date=(anchor + window).date(),
            )
        except ZoomClientError as exc:
            logger.info("Host recordings lookup failed: %s", exc.status_code or exc)
            return None

        meetings = payload.get("meetings") or []
        if occurrence.session_uuid:
            for meeting in meetings:
                if meeting.get("uuid") == occurrence.session_uuid:
                    return meeting
        for meeting in meetings:
            if str(meeting.get("id")) == str(occurrence.series_id):
                return meeting
        return None
