# tests/test_internal_auth_dependency.py
from http import HTTPStatus

from app.api.dependencies import internal_auth as auth_module


class DummySettingsProd:
    APP_ENV = "prod"
    INTERNAL_API_KEY = "supersecret"


class DummySettingsProdNoKey:
    APP_ENV = "prod"
    INTERNAL_API_KEY = None


def test_internal_endpoint_open_in_test_env_without_key(client, zoom_override):
    """
    APP_ENV='test' and no INTERNAL_API_KEY: maintenance endpoints are open.
    """
    resp = client.post("/internal/run-backfill")

    assert resp.status_code == HTTPStatus.OK
    data = resp.json()
    assert data["considered"] == 0
    assert "started_at" in data


def test_internal_endpoint_401_when_key_missing_in_prod(monkeypatch, client, zoom_override):
    """
    In non-local env with INTERNAL_API_KEY set, calling an /internal endpoint
    without the X-Internal-Api-Key header should return 401.
    """
    monkeypatch.setattr(auth_module, "get_settings", lambda: DummySettingsProd())

    resp = client.post("/internal/run-backfill")
    assert resp.status_code == HTTPStatus.UNAUTHORIZED
    assert "invalid or missing" in resp.json()["detail"].lower()


def test_internal_endpoint_401_when_key_wrong_in_prod(monkeypatch, client, zoom_override):
    monkeypatch.setattr(auth_module, "get_settings", lambda: DummySettingsProd())

    resp = client.post(
        "/internal/fix-supervisor-urls",
        headers={"X-Internal-Api-Key": "wrong-key"},
    )
    assert resp.status_code == HTTPStatus.UNAUTHORIZED


def test_internal_endpoint_200_when_key_correct_in_prod(monkeypatch, client, zoom_override):
    monkeypatch.setattr(auth_module, "get_settings", lambda: DummySettingsProd())

    resp = client.post(
        "/internal/fix-supervisor-urls",
        headers={"X-Internal-Api-Key": "supersecret"},
    )
    assert resp.status_code == HTTPStatus.OK
    data = resp.json()
    assert data["considered"] == 0
    assert "already have a supervisor_url" in data["message"]


def test_internal_endpoint_500_when_key_not_configured_in_prod(monkeypatch, client, zoom_override):
    monkeypatch.setattr(auth_module, "get_settings", lambda: DummySettingsProdNoKey())

    resp = client.post("/internal/run-backfill")
    assert resp.status_code == HTTPStatus.INTERNAL_SERVER_ERROR


def test_internal_endpoint_503_without_zoom_credentials(client):
    resp = client.post("/internal/run-backfill")

    assert resp.status_code == HTTPStatus.SERVICE_UNAVAILABLE
