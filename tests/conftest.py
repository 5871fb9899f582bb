# tests/conftest.py
import os

# Settings are cached on first access, so the test environment must be in
# place before anything under `app` is imported.
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DB_URL", "sqlite+aiosqlite:///./test_occurrence_sync.db")
os.environ.setdefault("BACKFILL_ENABLED", "false")
os.environ.setdefault("ZOOM_WEBHOOK_SECRET", "test-webhook-secret")

import pytest
from fastapi.testclient import TestClient

from app.api.dependencies.zoom import optional_zoom_client, require_zoom_client
from app.db.session import reset_schema_sync
from app.main import create_app
from fakes import FakeZoomClient


@pytest.fixture(scope="session")
def client() -> TestClient:
    """
    Shared TestClient fixture for all tests.

    Uses the application factory so the test settings above are applied.
    """
    app = create_app()
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture(autouse=True)
def _reset_db():
    """
    Give every test an empty `occurrences` table.
    """
    reset_schema_sync()
    yield


@pytest.fixture
def fake_zoom() -> FakeZoomClient:
    return FakeZoomClient()


@pytest.fixture
def zoom_override(client: TestClient, fake_zoom: FakeZoomClient):
    """
    Route every Zoom dependency of the app to `fake_zoom` for one test.
    """
    client.app.dependency_overrides[optional_zoom_client] = lambda: fake_zoom
    client.app.dependency_overrides[require_zoom_client] = lambda: fake_zoom
    yield fake_zoom
    client.app.dependency_overrides.pop(optional_zoom_client, None)
    client.app.dependency_overrides.pop(require_zoom_client, None)
