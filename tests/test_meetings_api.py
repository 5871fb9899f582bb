# tests/test_meetings_api.py
import asyncio
from datetime import timedelta
from http import HTTPStatus

from app.db.session import AsyncSessionLocal
from app.models.occurrence import Occurrence
from app.services.time_utils import utcnow
from fakes import recording_file


def _seed(*rows: Occurrence) -> None:
    async def _add() -> None:
        async with AsyncSessionLocal() as session:
            session.add_all(rows)
            await session.commit()

    asyncio.run(_add())


def _occurrence(series_id: str, starts_in: timedelta, **kwargs) -> Occurrence:
    values = dict(
        series_id=series_id,
        topic=f"Class {series_id}",
        host_id="unknown",
        scheduled_start=utcnow() + starts_in,
        duration_minutes=60,
        status="scheduled",
    )
    values.update(kwargs)
    return Occurrence(**values)


def _ended(series_id: str, ended_ago: timedelta, **kwargs) -> Occurrence:
    now = utcnow()
    return _occurrence(
        series_id,
        -(ended_ago + timedelta(hours=1)),
        session_uuid=kwargs.pop("session_uuid", f"uuid-{series_id}=="),
        actual_start=now - ended_ago - timedelta(hours=1),
        actual_end=now - ended_ago,
        delay_minutes=0,
        status="ended",
        **kwargs,
    )


def test_list_meetings_buckets_by_lifecycle(client):
    now = utcnow()
    _seed(
        _occurrence("live", -timedelta(minutes=20), status="live", actual_start=now - timedelta(minutes=18)),
        _ended("past", timedelta(hours=2)),
        _occurrence("future", timedelta(hours=3)),
        _occurrence("missed", -timedelta(hours=1)),
    )

    response = client.get("/api/meetings")
    assert response.status_code == HTTPStatus.OK
    data = response.json()

    assert [m["series_id"] for m in data["in_progress"]] == ["live"]
    assert [m["series_id"] for m in data["past"]] == ["past"]
    assert [m["series_id"] for m in data["upcoming"]] == ["future"]
    assert [m["series_id"] for m in data["not_started"]] == ["missed"]
    assert data["poll_interval_seconds"] == 30


def test_list_meetings_orders_newest_first(client):
    _seed(
        _occurrence("a", timedelta(hours=1)),
        _occurrence("b", timedelta(hours=5)),
        _occurrence("c", timedelta(hours=3)),
    )

    data = client.get("/api/meetings").json()

    assert [m["series_id"] for m in data["upcoming"]] == ["b", "c", "a"]


def test_meeting_detail_includes_punctuality(client):
    row = _ended("detail", timedelta(hours=1))
    row.delay_minutes = -5
    _seed(row)

    response = client.get("/api/meetings/uuid-detail==")
    assert response.status_code == HTTPStatus.OK
    data = response.json()

    assert data["series_id"] == "detail"
    assert data["punctuality"]["start"]["status"] == "early"
    assert data["punctuality"]["start"]["minutes"] == 5
    assert data["punctuality"]["end"]["status"] == "on_time"


def test_meeting_detail_narrowed_by_occurrence_id(client):
    _seed(
        _ended("shared", timedelta(hours=5), occurrence_id="1", session_uuid="shared=="),
        _ended("shared", timedelta(hours=1), occurrence_id="2", session_uuid="shared=="),
    )

    first = client.get("/api/meetings/shared==").json()
    second = client.get("/api/meetings/shared==", params={"occurrence_id": "2"}).json()

    assert first["occurrence_id"] == "1"
    assert second["occurrence_id"] == "2"


def test_meeting_detail_unknown_uuid_is_404(client):
    response = client.get("/api/meetings/does-not-exist==")

    assert response.status_code == HTTPStatus.NOT_FOUND
    assert "not found" in response.json()["detail"]


def test_recording_served_from_cache(client, zoom_override):
    _seed(_ended("cached", timedelta(hours=1), transcript="WEBVTT\n\nhi", video_url="https://v/1.mp4"))

    data = client.get("/api/meetings/uuid-cached==/recording").json()

    assert data["source"] == "cached"
    assert data["transcript"] == "WEBVTT\n\nhi"
    assert data["meeting"]["series_id"] == "cached"
    assert zoom_override.calls == []


def test_recording_pending_until_min_age(client, zoom_override):
    _seed(_ended("fresh", timedelta(minutes=2)))

    data = client.get("/api/meetings/uuid-fresh==/recording").json()

    assert data["source"] == "pending"
    assert data["transcript"] is None
    assert zoom_override.calls == []


def test_recording_pending_while_session_is_live(client, zoom_override):
    _seed(
        _occurrence(
            "running",
            -timedelta(minutes=30),
            status="live",
            session_uuid="running==",
            actual_start=utcnow() - timedelta(minutes=30),
        )
    )

    data = client.get("/api/meetings/running==/recording").json()

    assert data["source"] == "pending"


def test_recording_fetched_on_demand_and_stored(client, zoom_override):
    zoom_override.recordings["ondemand"] = {
        "recording_files": [
            recording_file("TRANSCRIPT", "https://zoom.example/rec/t.vtt", "audio_transcript", "VTT"),
            recording_file("MP4", "https://zoom.example/rec/v.mp4", "shared_screen"),
        ]
    }
    _seed(_ended("ondemand", timedelta(hours=1)))

    first = client.get("/api/meetings/uuid-ondemand==/recording").json()
    second = client.get("/api/meetings/uuid-ondemand==/recording").json()

    assert first["source"] == "fetched"
    assert first["transcript"].startswith("WEBVTT")
    assert first["video_url"] == "https://zoom.example/rec/v.mp4?access_token=fake-zoom-token"
    assert second["source"] == "cached"
    assert second["video_url"] == first["video_url"]


def test_recording_unavailable_returns_nulls(client, zoom_override):
    _seed(_ended("nothing", timedelta(hours=1)))

    response = client.get("/api/meetings/uuid-nothing==/recording")

    assert response.status_code == HTTPStatus.OK
    data = response.json()
    assert data["source"] == "unavailable"
    assert data["transcript"] is None
    assert data["video_url"] is None


def test_recording_unavailable_without_zoom_credentials(client):
    _seed(_ended("nocreds", timedelta(hours=1)))

    data = client.get("/api/meetings/uuid-nocreds==/recording").json()

    assert data["source"] == "unavailable"
