# app/services/token_cache.py
from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

import httpx

from app.services.time_utils import utcnow

logger = logging.getLogger(__name__)


class TokenError(RuntimeError):
    """
    Raised when the OAuth endpoint refuses the credential exchange or returns
    an unusable payload.
    """


@dataclass
class _TokenState:
    access_token: str
    expires_at: datetime


class TokenCache:
    """
    Holds the bearer token for Zoom's Server-to-Server OAuth app.

    Responsibilities
    ----------------
    - Exchange account credentials for an access token.
    - Keep the token and its absolute expiry in memory for this process.
    - Refresh transparently once the expiry (minus a safety margin) passes.

    Notes
    -----
    - There is no single-flight guard: two coroutines hitting an expired
      cache at the same moment may both refresh. Either token is valid.
    """

    def __init__(
        self,
        account_id: str,
        client_id: str,
        client_secret: str,
        token_url: str = "https://zoom.us/oauth/token",
        safety_margin_seconds: int = 300,
        timeout_seconds: float = 10.0,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if not account_id or not client_id or not client_secret:
            raise ValueError("account_id, client_id and client_secret are required")

        self._account_id = account_id
        self._client_id = client_id
        self._client_secret = client_secret
        self._token_url = token_url
        self._safety_margin_seconds = safety_margin_seconds
        self._timeout_seconds = timeout_seconds
        self._clock = clock

        self._state: Optional[_TokenState] = None

    @property
    def expires_at(self) -> Optional[datetime]:
        return self._state.expires_at if self._state else None

    def _basic_auth_header(self) -> str:
        raw = f"{self._client_id}:{self._client_secret}".encode()
        return "Basic " + base64.b64encode(raw).decode()

    async def _exchange(self) -> _TokenState:
        """
        Perform the `account_credentials` grant against the token endpoint.
        """
        data = {
            "grant_type": "account_credentials",
            "account_id": self._account_id,
        }
        headers = {"Authorization": self._basic_auth_header()}

        try:
            async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
                resp = await client.post(self._token_url, data=data, headers=headers)
        except httpx.HTTPError as exc:
            raise TokenError(f"Token request failed: {exc}") from exc

        if resp.status_code != 200:
            raise TokenError(
                f"Failed to obtain Zoom token (status={resp.status_code}): {resp.text}"
            )

        try:
            payload = resp.json()
        except ValueError as exc:
            raise TokenError("Zoom token response was not JSON") from exc
        if not isinstance(payload, dict):
            raise TokenError("Invalid token response from Zoom (expected an object)")

        access_token = payload.get("access_token")
        expires_in = payload.get("expires_in")

        if not access_token or not isinstance(expires_in, (int, float)):
            raise TokenError(
                "Invalid token response from Zoom (missing access_token/expires_in)"
            )

        lifetime = max(float(expires_in) - self._safety_margin_seconds, 0.0)
        expires_at = self._clock() + timedelta(seconds=lifetime)
        logger.info("Obtained Zoom access token valid until %s", expires_at.isoformat())

        return _TokenState(access_token=access_token, expires_at=expires_at)

    async def get(self) -> str:
        """
        Return a valid access token, exchanging credentials when the cache is
        empty or past its expiry.
        """
        if self._state is not None and self._clock() < self._state.expires_at:
            return self._state.access_token

        self._state = await self._exchange()
        return self._state.access_token

    def invalidate(self) -> None:
        self._state = None
