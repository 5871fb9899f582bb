# app/main.py
import logging

from fastapi import FastAPI

from app.api.routes import health, internal, meetings, webhooks
from app.core.config import get_settings
from app.db.session import init_db
from app.services.scheduler import start_scheduler, stop_scheduler


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app() -> FastAPI:
    """
    Application factory for the OccurrenceSync Monitor service.
    """
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.APP_NAME,
        description=(
            "Backend service that ingests Zoom meeting lifecycle webhooks,\n"
            "reconciles them against the catalog of scheduled class occurrences,\n"
            "derives start/end punctuality and collects transcripts and recordings."
        ),
        version="0.1.0",
    )

    # Routers
    app.include_router(health.router)
    app.include_router(webhooks.router)
    app.include_router(meetings.router)
    app.include_router(internal.router)

    @app.on_event("startup")
    async def on_startup() -> None:  # pragma: no cover
        await init_db()
        await start_scheduler()

    @app.on_event("shutdown")
    async def on_shutdown() -> None:  # pragma: no cover
        await stop_scheduler()

    return app


app = create_app()
