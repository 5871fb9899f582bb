# app/api/routes/webhooks.py
import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from http import HTTPStatus
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies.webhook_auth import sign_plain_token, verify_zoom_signature
from app.api.dependencies.zoom import optional_zoom_client
from app.core.config import get_settings
from app.db.session import get_db
from app.schemas.webhook import (
    URL_VALIDATION_EVENT,
    UrlValidationRequest,
    UrlValidationResponse,
    WebhookAck,
    parse_provider_event,
)
from app.services.event_reconciler import EventReconciler
from app.services.recording_resolver import RecordingResolver
from app.services.zoom_client import ZoomClient

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Webhooks"])


@router.post(
    "/webhook",
    response_model=UrlValidationResponse | WebhookAck,
    status_code=HTTPStatus.OK,
    summary="Receive Zoom meeting lifecycle webhooks",
    description=(
        "Entry point for Zoom event subscriptions.\n\n"
        "- `endpoint.url_validation` is answered with the plain token and its "
        "HMAC-SHA256 signature.\n"
        "- Every other request must carry a valid `x-zm-signature`.\n"
        "- `meeting.created`, `meeting.started`, `meeting.ended` and "
        "`recording.transcript_completed` are reconciled against the stored "
        "occurrences; any other event is acknowledged and ignored.\n\n"
        "Recognized events are always acknowledged with 200 once authenticated, "
        "even when nothing matched, so Zoom does not keep retrying."
    ),
    responses={
        200: {
            "description": "Event acknowledged (or URL validation answered).",
            "content": {"application/json": {"example": {"status": "OK"}}},
        },
        400: {"description": "Body is not a valid Zoom event."},
        401: {"description": "Missing or invalid webhook signature."},
        500: {"description": "ZOOM_WEBHOOK_SECRET not configured."},
        503: {"description": "Zoom API credentials not configured."},
    },
)
async def receive_zoom_webhook(
    request: Request,
    signature: Optional[str] = Header(default=None, alias="x-zm-signature"),
    timestamp: Optional[str] = Header(default=None, alias="x-zm-request-timestamp"),
    db: AsyncSession = Depends(get_db),
    zoom_client: Optional[ZoomClient] = Depends(optional_zoom_client),
):
    """
    Authenticate, parse and reconcile a single Zoom webhook delivery.
    """
    settings = get_settings()
    secret = settings.ZOOM_WEBHOOK_SECRET
    if not secret:
        raise HTTPException(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            detail="ZOOM_WEBHOOK_SECRET not configured.",
        )

    raw_body = await request.body()
    try:
        body = json.loads(raw_body)
    except ValueError:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail="Body is not valid JSON.")
    if not isinstance(body, dict):
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail="Body must be a JSON object.")

    if body.get("event") == URL_VALIDATION_EVENT:
        try:
            validation = UrlValidationRequest.model_validate(body)
        except ValidationError:
            raise HTTPException(
                status_code=HTTPStatus.BAD_REQUEST,
                detail="URL validation payload is missing plainToken.",
            )
        plain_token = validation.payload.plainToken
        return UrlValidationResponse(
            plainToken=plain_token,
            encryptedToken=sign_plain_token(secret, plain_token),
        )

    verify_zoom_signature(
        secret,
        timestamp,
        raw_body,
        signature,
        tolerance_seconds=settings.WEBHOOK_TIMESTAMP_TOLERANCE_SECONDS,
    )

    try:
        event = parse_provider_event(body)
    except ValidationError as exc:
        logger.warning("Rejected malformed %s webhook: %s", body.get("event"), exc)
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail="Malformed event payload.")

    if event is None:
        logger.info("Ignoring webhook event %s", body.get("event"))
        return WebhookAck()

    if zoom_client is None:
        raise HTTPException(
            status_code=HTTPStatus.SERVICE_UNAVAILABLE,
            detail="Zoom API credentials not configured.",
        )

    reconciler = EventReconciler(
        db,
        zoom_client,
        recording_resolver=RecordingResolver(
            zoom_client,
            host_window_days=settings.HOST_RECORDINGS_WINDOW_DAYS,
        ),
    )
    try:
        await reconciler.handle(event)
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Could not persist %s webhook", event.event)

    return WebhookAck()
