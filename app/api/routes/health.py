# app/api/routes/health.py
import logging
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Optional

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies.zoom import optional_zoom_client
from app.core.config import get_settings
from app.db.session import get_db
from app.services.zoom_client import ZoomClient, ZoomClientError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


class HealthChecks(BaseModel):
    database: str = Field(..., examples=["ok"], description="`ok` or `error`.")
    zoom: str = Field(
        ...,
        examples=["ok"],
        description="`ok`, `error` (token exchange failed) or `not_configured`.",
    )


class HealthResponse(BaseModel):
    """
    Response schema for the health check endpoint.
    """

    status: str = Field(
        ...,
        description="`ok` when every dependency answered, `degraded` otherwise.",
        examples=["ok"],
    )
    app_name: str = Field(
        ...,
        description="Human-friendly name of the running application.",
        examples=["OccurrenceSync Monitor"],
    )
    environment: str = Field(
        ...,
        description="Current deployment environment (local/dev/stage/prod).",
        examples=["local"],
    )
    timestamp_utc: datetime = Field(
        ...,
        description="Server-side timestamp (UTC) at which this health check was generated.",
        examples=["2025-01-01T10:30:00Z"],
    )
    checks: HealthChecks


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check for OccurrenceSync Monitor service",
    description=(
        "Verifies that the database answers a trivial query and that a Zoom "
        "access token can be obtained.\n\n"
        "Returns 200 with `status=ok` when both succeed and 503 with "
        "`status=degraded` otherwise."
    ),
    responses={
        200: {"description": "Service and its dependencies are healthy."},
        503: {"description": "At least one dependency failed its check."},
    },
)
async def health_check(
    response: Response,
    db: AsyncSession = Depends(get_db),
    zoom_client: Optional[ZoomClient] = Depends(optional_zoom_client),
) -> HealthResponse:
    settings = get_settings()

    try:
        await db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as exc:
        logger.warning("Health check: database unreachable: %s", exc)
        database = "error"

    if zoom_client is None:
        zoom = "not_configured"
    else:
        try:
            await zoom_client.get_access_token()
            zoom = "ok"
        except ZoomClientError as exc:
            logger.warning("Health check: Zoom token unavailable: %s", exc)
            zoom = "error"

    healthy = database == "ok" and zoom == "ok"
    if not healthy:
        response.status_code = HTTPStatus.SERVICE_UNAVAILABLE

    return HealthResponse(
        status="ok" if healthy else "degraded",
        app_name=settings.APP_NAME,
        environment=settings.APP_ENV,
        timestamp_utc=datetime.now(tz=timezone.utc),
        checks=HealthChecks(database=database, zoom=zoom),
    )
