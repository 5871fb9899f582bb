# app/api/dependencies/webhook_auth.py
import hashlib
import hmac
import time
from typing import Optional

from fastapi import HTTPException, status

SIGNATURE_VERSION = "v0"


def sign_plain_token(secret: str, plain_token: str) -> str:
    """
    Hex HMAC-SHA256 of the `plainToken` Zoom sends during URL validation.
    """
    return hmac.new(secret.encode(), plain_token.encode(), hashlib.sha256).hexdigest()


def compute_signature(secret: str, timestamp: str, raw_body: bytes) -> str:
    """
    Expected `x-zm-signature` value for a request body:
    ``v0=hex(HMAC-SHA256(secret, "v0:{timestamp}:{body}"))``.
    """
    message = f"{SIGNATURE_VERSION}:{timestamp}:".encode() + raw_body
    digest = hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_VERSION}={digest}"


def verify_zoom_signature(
    secret: str,
    timestamp: Optional[str],
    raw_body: bytes,
    signature: Optional[str],
    tolerance_seconds: int = 0,
    now: Optional[float] = None,
) -> None:
    """
    Reject the request with 401 unless the Zoom signature headers match the
    body. With `tolerance_seconds > 0` stale timestamps are rejected too.
    """
    if not timestamp or not signature:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing webhook signature.",
        )

    if tolerance_seconds > 0:
        current = time.time() if now is None else now
        try:
            age = abs(current - int(timestamp))
        except ValueError:
            age = None
        if age is None or age > tolerance_seconds:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Stale webhook timestamp.",
            )

    expected = compute_signature(secret, timestamp, raw_body)
    if not hmac.compare_digest(expected.encode(), signature.encode()):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Bad webhook signature.",
        )
