# app/api/dependencies/zoom.py
import logging
from typing import Optional

from fastapi import HTTPException, status

from app.services.zoom_client import ZoomClient, ZoomClientError, get_zoom_client

logger = logging.getLogger(__name__)


def optional_zoom_client() -> Optional[ZoomClient]:
    """
    Shared ZoomClient, or None when Zoom credentials are not configured.
    """
    try:
        return get_zoom_client()
    except ZoomClientError as exc:
        logger.warning("Zoom client unavailable: %s", exc)
        return None


def require_zoom_client() -> ZoomClient:
    """
    Shared ZoomClient; 503 when Zoom credentials are not configured.
    """
    try:
        return get_zoom_client()
    except ZoomClientError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc
