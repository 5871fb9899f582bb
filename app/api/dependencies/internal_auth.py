# app/api/dependencies/internal_auth.py
import hmac
from typing import Optional

from fastapi import Header, HTTPException, status

from app.core.config import get_settings

OPEN_ENVIRONMENTS = ("local", "test")


def _key_matches(provided: Optional[str], expected: str) -> bool:
    if not provided:
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())


async def verify_internal_api_key(
    internal_api_key: Optional[str] = Header(
        default=None,
        alias="X-Internal-Api-Key",
        description="Internal API key required for /internal endpoints in non-local environments.",
    ),
) -> None:
    """
    Dependency protecting the /internal maintenance endpoints
    (backfill sweep, supervisor URL backfill).

    Rules
    -----
    - APP_ENV in ("local", "test"):
        - INTERNAL_API_KEY unset -> open (convenient for local dev).
        - INTERNAL_API_KEY set   -> header must match.
    - Any other APP_ENV:
        - INTERNAL_API_KEY unset -> 500 (misconfiguration).
        - Header missing or wrong -> 401.
    """
    settings = get_settings()
    env = (settings.APP_ENV or "local").lower()
    expected = getattr(settings, "INTERNAL_API_KEY", None)

    if not expected:
        if env in OPEN_ENVIRONMENTS:
            return
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="INTERNAL_API_KEY not configured for this environment.",
        )

    if not _key_matches(internal_api_key, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing internal API key.",
        )
