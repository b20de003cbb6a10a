from __future__ import annotations

from fastapi.testclient import TestClient

from watchlog.dependencies import get_pipeline
from watchlog.models.watch_contracts import REQUIRED_DISPLAY_FIELDS


def _drain_pipeline() -> None:
    # Waits for queued events; the next submit starts a fresh pool.
    get_pipeline().shutdown(wait=True)


def test_health_reports_missing_api_key(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "api_key_configured": False}


def test_request_id_header_is_echoed(client: TestClient) -> None:
    response = client.get("/health", headers={"X-Request-ID": "req_123"})

    assert response.headers["X-Request-ID"] == "req_123"
    assert client.get("/health").headers["X-Request-ID"]


def test_config_round_trip_forces_display_fields(client: TestClient) -> None:
    initial = client.get("/config")
    assert initial.status_code == 200
    assert initial.json()["profile"] == "Child"
    assert initial.json()["apiKey"] == ""

    response = client.put(
        "/config",
        json={
            "apiKey": "key-123",
            "profile": "Teen",
            "fieldPrefs": {"title": False, "viewCount": False},
            "enrichment": {"categoryName": False, "channelBasics": True},
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["apiKey"] == "key-123"
    assert body["profile"] == "Teen"
    assert body["fieldPrefs"]["viewCount"] is False
    assert all(body["fieldPrefs"][field_name] for field_name in REQUIRED_DISPLAY_FIELDS)
    assert body["enrichment"] == {"categoryName": False, "channelBasics": True}
    assert client.get("/config").json() == body
    assert client.get("/health").json()["api_key_configured"] is True


def test_config_update_rejects_unknown_keys(client: TestClient) -> None:
    response = client.put("/config", json={"apiKey": "key-123", "theme": "dark"})

    assert response.status_code == 422


def test_watch_event_is_accepted_and_logged(client: TestClient) -> None:
    response = client.post(
        "/watch-events",
        json={"videoId": "vid_001", "url": "https://www.youtube.com/shorts/vid_001"},
    )

    assert response.status_code == 202
    assert response.json() == {"ok": True}

    _drain_pipeline()
    page = client.get("/watch-log").json()
    assert page["total"] == 1
    entry = page["entries"][0]
    assert entry["videoId"] == "vid_001"
    assert entry["profile"] == "Child"
    assert entry["isShorts"] is True
    assert entry["watchedAt"]


def test_repeat_watch_event_is_suppressed(client: TestClient) -> None:
    for _ in range(2):
        assert client.post("/watch-events", json={"videoId": "vid_001"}).status_code == 202
        _drain_pipeline()

    assert client.get("/watch-log").json()["total"] == 1


def test_watch_log_limit_returns_most_recent_entries(client: TestClient) -> None:
    for index in range(3):
        client.post("/watch-events", json={"videoId": f"vid_{index:03d}"})
    _drain_pipeline()

    page = client.get("/watch-log", params={"limit": 2}).json()

    assert page["total"] == 3
    assert len(page["entries"]) == 2
    assert client.get("/watch-log", params={"limit": 0}).status_code == 422


def test_watch_event_requires_video_id(client: TestClient) -> None:
    assert client.post("/watch-events", json={"url": "https://example.com"}).status_code == 422
    assert client.post("/watch-events", json={"videoId": "   "}).status_code == 422
