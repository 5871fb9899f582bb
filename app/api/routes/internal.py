# app/api/routes/internal.py
from fastapi import APIRouter, Depends
from http import HTTPStatus
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies.internal_auth import verify_internal_api_key
from app.api.dependencies.zoom import require_zoom_client
from app.core.config import get_settings
from app.db.session import get_db
from app.schemas.backfill import BackfillSummary, SupervisorBackfillSummary
from app.services.backfill_sweeper import build_backfill_sweeper
from app.services.supervisor_backfill import backfill_supervisor_urls
from app.services.zoom_client import ZoomClient

router = APIRouter(
    prefix="/internal",
    tags=["Internal"],
    dependencies=[Depends(verify_internal_api_key)],
)


@router.post(
    "/run-backfill",
    response_model=BackfillSummary,
    status_code=HTTPStatus.OK,
    summary="Run the recording backfill sweep now",
    description=(
        "Looks for ended occurrences that are still missing a transcript or video "
        "and resolves them from Zoom, exactly like the periodic sweep.\n\n"
        "Intended for cron jobs or manual recovery; protected via the "
        "`X-Internal-Api-Key` header when configured."
    ),
    responses={
        200: {
            "description": "Sweep executed. A summary is returned.",
            "content": {
                "application/json": {
                    "example": {
                        "started_at": "2025-11-14T06:00:00Z",
                        "considered": 4,
                        "updated": 3,
                        "not_available": 1,
                        "failed": 0,
                    }
                }
            },
        },
        401: {"description": "Missing or invalid internal API key (if configured)."},
        503: {"description": "Zoom API credentials not configured."},
    },
)
async def run_backfill(
    db: AsyncSession = Depends(get_db),
    zoom_client: ZoomClient = Depends(require_zoom_client),
) -> BackfillSummary:
    sweeper = build_backfill_sweeper(zoom_client)
    return await sweeper.run(db)


@router.post(
    "/fix-supervisor-urls",
    response_model=SupervisorBackfillSummary,
    status_code=HTTPStatus.OK,
    summary="Fill missing supervisor URLs",
    description=(
        "One-off maintenance: for live and scheduled occurrences without a "
        "`supervisor_url`, fetch the meeting's host `start_url` from Zoom and "
        "store it."
    ),
    responses={
        401: {"description": "Missing or invalid internal API key (if configured)."},
        503: {"description": "Zoom API credentials not configured."},
    },
)
async def fix_supervisor_urls(
    db: AsyncSession = Depends(get_db),
    zoom_client: ZoomClient = Depends(require_zoom_client),
) -> SupervisorBackfillSummary:
    settings = get_settings()
    return await backfill_supervisor_urls(
        db,
        zoom_client,
        limit=settings.SUPERVISOR_BACKFILL_LIMIT,
        delay_seconds=settings.SUPERVISOR_BACKFILL_DELAY_SECONDS,
    )
