# app/services/zoom_client.py
from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from app.core.config import get_settings
from app.services.token_cache import TokenCache, TokenError

logger = logging.getLogger(__name__)


class ZoomClientError(RuntimeError):
    """
    Raised when the ZoomClient cannot obtain an access token or when a
    Zoom API call fails (non-2xx, timeout, connection error).
    """

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def encode_meeting_uuid(uuid: str) -> str:
    """
    Double URL-encode a meeting UUID for use as a path segment.

    Zoom UUIDs may contain `/` and `+`; the API requires them encoded twice.
    """
    return quote(quote(uuid, safe=""), safe="")


class ZoomClient:
    """
    Minimal Zoom API v2 client on top of a shared TokenCache.

    Responsibilities
    ----------------
    - Attach the cached bearer token to every request.
    - Provide the handful of calls the reconciliation engine needs
      (meeting detail, recordings, file download).
    - Avoid leaking HTTP client details into the rest of the codebase.
    """

    def __init__(
        self,
        token_cache: TokenCache,
        base_url: str = "https://api.zoom.us/v2",
        timeout_seconds: float = 10.0,
        download_timeout_seconds: float = 30.0,
    ) -> None:
        self._tokens = token_cache
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._download_timeout_seconds = download_timeout_seconds

    async def get_access_token(self) -> str:
        try:
            return await self._tokens.get()
        except TokenError as exc:
            raise ZoomClientError(str(exc)) from exc

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> httpx.Response:
        """
        Low-level helper for issuing an authenticated HTTP request to Zoom.

        `path` may be an absolute URL or a path relative to the base URL.
        Transport failures are converted to ZoomClientError; HTTP error
        statuses are left for the caller to inspect.
        """
        token = await self.get_access_token()

        if path.startswith("http://") or path.startswith("https://"):
            url = path
        else:
            url = f"{self._base_url}/{path.lstrip('/')}"

        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }

        try:
            async with httpx.AsyncClient(timeout=timeout or self._timeout_seconds) as client:
                resp = await client.request(
                    method=method.upper(),
                    url=url,
                    headers=headers,
                    params=params,
                )
        except httpx.HTTPError as exc:
            raise ZoomClientError(f"Zoom {method.upper()} {path} failed: {exc}") from exc

        return resp

    async def get_json(
        self,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        """
        Issue a GET request to a Zoom endpoint and return the JSON payload.

        Raises ZoomClientError on non-2xx or non-JSON responses.
        """
        resp = await self._request("GET", path, params=params, timeout=timeout)
        if resp.status_code // 100 != 2:
            raise ZoomClientError(
                f"Zoom GET {path} failed (status={resp.status_code}): {resp.text}",
                status_code=resp.status_code,
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise ZoomClientError(
                f"Zoom GET {path} returned a non-JSON body (status={resp.status_code})",
                status_code=resp.status_code,
            ) from exc

    async def get_meeting(self, meeting_id: str) -> Dict[str, Any]:
        """Full meeting detail, including `occurrences` for recurring meetings."""
        return await self.get_json(f"/meetings/{meeting_id}")

    async def get_meeting_recordings(self, meeting_ref: str) -> Dict[str, Any]:
        """
        Recording listing for a meeting. `meeting_ref` is either a numeric
        meeting id or an already double-encoded UUID.
        """
        return await self.get_json(f"/meetings/{meeting_ref}/recordings")

    async def list_user_recordings(
        self,
        user_id: str,
        from_date: date,
        to_date: date,
    ) -> Dict[str, Any]:
        params = {"from": from_date.isoformat(), "to": to_date.isoformat()}
        return await self.get_json(
            f"/users/{quote(user_id, safe='')}/recordings",
            params=params,
            timeout=max(self._timeout_seconds, 15.0),
        )

    async def download_text(self, url: str) -> str:
        """
        Fetch a recording file (e.g. a VTT transcript) as text.
        """
        resp = await self._request("GET", url, timeout=self._download_timeout_seconds)
        if resp.status_code // 100 != 2:
            raise ZoomClientError(
                f"Zoom download failed (status={resp.status_code})",
                status_code=resp.status_code,
            )
        return resp.text


# Simple singleton-style accessor wired to app settings
_zoom_client_instance: Optional[ZoomClient] = None


def get_zoom_client() -> ZoomClient:
    """
    Lazily construct the process-wide ZoomClient (and its TokenCache) from
    application settings.
    """
    global _zoom_client_instance
    if _zoom_client_instance is None:
        settings = get_settings()
        if not settings.ZOOM_ACCOUNT_ID or not settings.ZOOM_CLIENT_ID or not settings.ZOOM_CLIENT_SECRET:
            raise ZoomClientError(
                "ZOOM_ACCOUNT_ID, ZOOM_CLIENT_ID and ZOOM_CLIENT_SECRET must be "
                "configured in settings to use the shared Zoom client."
            )
        token_cache = TokenCache(
            account_id=settings.ZOOM_ACCOUNT_ID,
            client_id=settings.ZOOM_CLIENT_ID,
            client_secret=settings.ZOOM_CLIENT_SECRET,
            token_url=settings.ZOOM_OAUTH_URL,
            safety_margin_seconds=settings.ZOOM_TOKEN_SAFETY_MARGIN_SECONDS,
            timeout_seconds=settings.ZOOM_HTTP_TIMEOUT_SECONDS,
        )
        _zoom_client_instance = ZoomClient(
            token_cache=token_cache,
            base_url=settings.ZOOM_API_BASE_URL,
            timeout_seconds=settings.ZOOM_HTTP_TIMEOUT_SECONDS,
            download_timeout_seconds=settings.ZOOM_DOWNLOAD_TIMEOUT_SECONDS,
        )
    return _zoom_client_instance
