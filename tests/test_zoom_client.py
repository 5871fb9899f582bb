# tests/test_zoom_client.py
from datetime import date
from http import HTTPStatus
from typing import Any, Dict, List, Optional

import httpx
import pytest

from app.services.token_cache import TokenError
from app.services.zoom_client import ZoomClient, ZoomClientError, encode_meeting_uuid


class _StaticTokens:
    def __init__(self, token: str = "bearer-123", fail: bool = False) -> None:
        self.token = token
        self.fail = fail

    async def get(self) -> str:
        if self.fail:
            raise TokenError("invalid_client")
        return self.token


class _FakeResponse:
    def __init__(self, status_code: int, json_data: Any = None, text: str = ""):
        self.status_code = status_code
        self._json_data = json_data
        self.text = text or str(json_data)

    def json(self) -> Any:
        return self._json_data


class _FakeApiClient:
    """
    Stand-in for httpx.AsyncClient recording every API request.
    """

    requests: List[Dict[str, Any]] = []
    next_response: _FakeResponse = _FakeResponse(HTTPStatus.OK, {"ok": True})

    def __init__(self, timeout: float | None = None):
        self.timeout = timeout

    async def __aenter__(self) -> "_FakeApiClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    async def request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> _FakeResponse:
        _FakeApiClient.requests.append(
            {
                "method": method,
                "url": url,
                "headers": headers,
                "params": params,
                "timeout": self.timeout,
            }
        )
        return _FakeApiClient.next_response


@pytest.fixture
def api_client(monkeypatch):
    _FakeApiClient.requests = []
    _FakeApiClient.next_response = _FakeResponse(HTTPStatus.OK, {"ok": True})
    monkeypatch.setattr(httpx, "AsyncClient", _FakeApiClient)
    return _FakeApiClient


def _client(**kwargs) -> ZoomClient:
    return ZoomClient(_StaticTokens(), base_url="https://api.zoom.example/v2/", **kwargs)


def test_encode_meeting_uuid_double_encodes_slashes():
    assert encode_meeting_uuid("/ajXp112QmuoKj4854875==") == "%252FajXp112QmuoKj4854875%253D%253D"
    assert encode_meeting_uuid("abc+def") == "abc%252Bdef"


@pytest.mark.asyncio
async def test_get_meeting_builds_url_and_bearer_header(api_client):
    data = await _client().get_meeting("85746065432")

    assert data == {"ok": True}
    last = api_client.requests[-1]
    assert last["method"] == "GET"
    assert last["url"] == "https://api.zoom.example/v2/meetings/85746065432"
    assert last["headers"]["Authorization"] == "Bearer bearer-123"


@pytest.mark.asyncio
async def test_list_user_recordings_passes_date_window(api_client):
    await _client().list_user_recordings(
        "instructor@example.com",
        from_date=date(2025, 1, 9),
        to_date=date(2025, 1, 11),
    )

    last = api_client.requests[-1]
    assert last["url"] == "https://api.zoom.example/v2/users/instructor%40example.com/recordings"
    assert last["params"] == {"from": "2025-01-09", "to": "2025-01-11"}
    assert last["timeout"] >= 15


@pytest.mark.asyncio
async def test_non_2xx_raises_with_status_code(api_client):
    api_client.next_response = _FakeResponse(HTTPStatus.NOT_FOUND, {"code": 3301})

    with pytest.raises(ZoomClientError) as exc_info:
        await _client().get_meeting_recordings("85746065432")

    assert exc_info.value.status_code == HTTPStatus.NOT_FOUND


@pytest.mark.asyncio
async def test_download_text_uses_absolute_url_and_download_timeout(api_client):
    api_client.next_response = _FakeResponse(HTTPStatus.OK, text="WEBVTT\n\nhello")

    text = await _client(download_timeout_seconds=42).download_text(
        "https://zoom.example/rec/download/abc?access_token=t"
    )

    assert text == "WEBVTT\n\nhello"
    last = api_client.requests[-1]
    assert last["url"] == "https://zoom.example/rec/download/abc?access_token=t"
    assert last["timeout"] == 42


@pytest.mark.asyncio
async def test_transport_error_becomes_zoom_client_error(monkeypatch):
    class _BrokenClient(_FakeApiClient):
        async def request(self, method, url, headers=None, params=None):
            raise httpx.ReadTimeout("slow")

    monkeypatch.setattr(httpx, "AsyncClient", _BrokenClient)

    with pytest.raises(ZoomClientError):
        await _client().get_meeting("1")


@pytest.mark.asyncio
async def test_token_failure_becomes_zoom_client_error(api_client):
    client = ZoomClient(_StaticTokens(fail=True))

    with pytest.raises(ZoomClientError):
        await client.get_meeting("1")
    assert api_client.requests == []


@pytest.mark.asyncio
async def test_non_json_success_body_raises_zoom_client_error(api_client):
    class _HtmlResponse(_FakeResponse):
        def json(self) -> Any:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")

    api_client.next_response = _HtmlResponse(HTTPStatus.OK, text="<html>maintenance</html>")

    with pytest.raises(ZoomClientError) as exc_info:
        await _client().get_meeting_recordings("85746065432")

    assert exc_info.value.status_code == HTTPStatus.OK
