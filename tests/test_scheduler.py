# tests/test_scheduler.py
import pytest

from app.core.config import Settings
from app.services import scheduler as scheduler_module


@pytest.mark.asyncio
async def test_scheduler_not_started_when_disabled(monkeypatch):
    monkeypatch.setattr(scheduler_module, "get_settings", lambda: Settings(BACKFILL_ENABLED=False))

    await scheduler_module.start_scheduler()

    assert scheduler_module._scheduler is None


@pytest.mark.asyncio
async def test_scheduler_registers_periodic_and_startup_jobs(monkeypatch):
    settings = Settings(BACKFILL_ENABLED=True, BACKFILL_INTERVAL_HOURS=6)
    monkeypatch.setattr(scheduler_module, "get_settings", lambda: settings)

    await scheduler_module.start_scheduler()
    try:
        periodic = scheduler_module._scheduler.get_job("recording_backfill")
        startup = scheduler_module._scheduler.get_job("recording_backfill_startup")

        assert periodic is not None
        assert periodic.trigger.interval.total_seconds() == 6 * 3600
        assert startup is not None
    finally:
        await scheduler_module.stop_scheduler()

    assert scheduler_module._scheduler is None


@pytest.mark.asyncio
async def test_backfill_job_skips_without_zoom_credentials(monkeypatch):
    """
    The job must not raise out of the scheduler when Zoom is not configured.
    """
    called = []
    monkeypatch.setattr(scheduler_module, "build_backfill_sweeper", lambda *a, **k: called.append(a))

    await scheduler_module.run_backfill_job()

    assert called == []
