from __future__ import annotations

from collections.abc import Mapping
from http.client import IncompleteRead
from typing import Any

import pytest

from watchlog.services.metadata_fetcher import (
    DEFAULT_FETCH_PARTS,
    MetadataFetcher,
    normalize_parts,
    parse_count,
    parse_iso8601_duration_seconds,
)
from watchlog.services.retry_policy import RetryPolicy, linear_backoff
from watchlog.services.video_catalog_client import (
    UpstreamError,
    VideoCatalogClient,
    VideoNotFoundError,
)


class _ScriptedCatalogClient:
    def __init__(self, responses: list[dict[str, Any] | Exception]) -> None:
        self._responses = list(responses)
        self.calls: list[tuple[str, dict[str, str]]] = []

    def get_json(self, resource: str, params: Mapping[str, str]) -> dict[str, Any]:
        self.calls.append((resource, dict(params)))
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class _RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def _video_item() -> dict[str, Any]:
    return {
        "id": "vid_001",
        "snippet": {
            "title": "Counting With Blocks",
            "description": "Learn to count to ten.",
            "channelId": "chan_001",
            "channelTitle": "Blocks TV",
            "publishedAt": "2026-01-10T12:00:00Z",
            "tags": ["counting"],
            "thumbnails": {"default": {"url": "https://img.example/1.jpg"}},
            "categoryId": "27",
            "liveBroadcastContent": "",
        },
        "contentDetails": {
            "duration": "PT5M12S",
            "definition": "hd",
            "caption": "true",
            "contentRating": {},
        },
        "statistics": {"viewCount": "1200", "likeCount": "", "commentCount": "not-a-number"},
        "status": {"madeForKids": True},
    }


def _fetcher(
    client: _ScriptedCatalogClient,
    sleep: _RecordingSleep,
    *,
    max_retries: int = 3,
) -> MetadataFetcher:
    return MetadataFetcher(
        client,
        retry_policy=RetryPolicy(
            max_retries=max_retries,
            backoff=linear_backoff(0.3),
            sleep=sleep,
        ),
    )


def test_parse_iso8601_duration_seconds() -> None:
    assert parse_iso8601_duration_seconds("PT1H2M3S") == 3_723
    assert parse_iso8601_duration_seconds("PT45S") == 45
    assert parse_iso8601_duration_seconds("PT10M") == 600
    assert parse_iso8601_duration_seconds("PT2H") == 7_200
    assert parse_iso8601_duration_seconds("PT") == 0
    assert parse_iso8601_duration_seconds("") is None
    assert parse_iso8601_duration_seconds("garbage") is None
    assert parse_iso8601_duration_seconds("P1DT2H") is None
    assert parse_iso8601_duration_seconds(None) is None


def test_parse_count_treats_missing_and_malformed_values_as_unknown() -> None:
    assert parse_count("1200") == 1_200
    assert parse_count("0") == 0
    assert parse_count("") is None
    assert parse_count(None) is None
    assert parse_count("1.2k") is None
    assert parse_count(True) is None


def test_normalize_parts_filters_unknown_names() -> None:
    assert normalize_parts(["status", "bogus", "status", "snippet"]) == ["status", "snippet"]
    assert normalize_parts(["bogus", "fileDetails"]) == []


def test_normalize_parts_defaults_only_when_nothing_was_requested() -> None:
    assert normalize_parts(None) == list(DEFAULT_FETCH_PARTS)
    assert normalize_parts([]) == list(DEFAULT_FETCH_PARTS)


def test_fetch_shapes_requested_parts_only() -> None:
    client = _ScriptedCatalogClient([{"items": [_video_item()]}])
    sleep = _RecordingSleep()

    record = _fetcher(client, sleep).fetch("vid_001", "key-123", ["snippet", "contentDetails"])

    assert client.calls == [
        ("videos", {"part": "snippet,contentDetails", "id": "vid_001", "key": "key-123"})
    ]
    assert record["videoId"] == "vid_001"
    assert record["title"] == "Counting With Blocks"
    assert record["liveContent"] == "none"
    assert record["durationSeconds"] == 312
    assert record["caption"] is True
    assert "viewCount" not in record
    assert "madeForKids" not in record
    assert sleep.delays == []


def test_fetch_parses_statistics_and_status() -> None:
    client = _ScriptedCatalogClient([{"items": [_video_item()]}])

    record = _fetcher(client, _RecordingSleep()).fetch(
        "vid_001", "key-123", ["statistics", "status", "topicDetails"]
    )

    assert record["viewCount"] == 1_200
    assert record["likeCount"] is None
    assert record["commentCount"] is None
    assert record["madeForKids"] is True
    assert record["topicCategories"] == []
    assert "title" not in record


def test_fetch_retries_transient_failures_with_linear_backoff() -> None:
    client = _ScriptedCatalogClient(
        [
            UpstreamError("videos.list 503", status_code=503),
            UpstreamError("videos.list 503", status_code=503),
            UpstreamError("videos.list request failed: timed out"),
            {"items": [_video_item()]},
        ]
    )
    sleep = _RecordingSleep()

    record = _fetcher(client, sleep).fetch("vid_001", "key-123", ["snippet"])

    assert record["title"] == "Counting With Blocks"
    assert len(client.calls) == 4
    assert sleep.delays == pytest.approx([0.3, 0.6, 0.9])


def test_fetch_raises_last_error_after_exhausting_retries() -> None:
    client = _ScriptedCatalogClient(
        [
            UpstreamError("first", status_code=500),
            UpstreamError("second", status_code=500),
            UpstreamError("third", status_code=500),
            UpstreamError("fourth", status_code=429),
        ]
    )
    sleep = _RecordingSleep()

    with pytest.raises(UpstreamError) as exc_info:
        _fetcher(client, sleep).fetch("vid_001", "key-123", ["snippet"])

    assert str(exc_info.value) == "fourth"
    assert exc_info.value.status_code == 429
    assert len(client.calls) == 4
    assert len(sleep.delays) == 3


def test_fetch_without_retries_makes_single_attempt() -> None:
    client = _ScriptedCatalogClient([UpstreamError("boom")])
    sleep = _RecordingSleep()

    with pytest.raises(UpstreamError):
        _fetcher(client, sleep, max_retries=0).fetch("vid_001", "key-123", ["snippet"])

    assert len(client.calls) == 1
    assert sleep.delays == []


def test_fetch_missing_video_is_not_retried() -> None:
    client = _ScriptedCatalogClient([{"items": []}])
    sleep = _RecordingSleep()

    with pytest.raises(VideoNotFoundError) as exc_info:
        _fetcher(client, sleep).fetch("vid_missing", "key-123", ["snippet"])

    assert exc_info.value.video_id == "vid_missing"
    assert len(client.calls) == 1
    assert sleep.delays == []


def test_catalog_client_wraps_connection_failures() -> None:
    client = VideoCatalogClient(base_url="http://127.0.0.1:9/", http_timeout_seconds=1)

    with pytest.raises(UpstreamError) as exc_info:
        client.get_json("videos", {"part": "snippet", "id": "vid_001", "key": "key-123"})

    assert "videos.list" in str(exc_info.value)


class _TruncatedResponse:
    def __enter__(self) -> _TruncatedResponse:
        return self

    def __exit__(self, *exc_info: object) -> None:
        return None

    def getcode(self) -> int:
        return 200

    def read(self) -> bytes:
        raise IncompleteRead(b'{"items": [')


def test_catalog_client_wraps_truncated_responses(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        "watchlog.services.video_catalog_client.urlopen",
        lambda request, timeout: _TruncatedResponse(),
    )
    client = VideoCatalogClient(base_url="https://catalog.example", http_timeout_seconds=1)

    with pytest.raises(UpstreamError) as exc_info:
        client.get_json("videos", {"part": "snippet", "id": "vid_001", "key": "key-123"})

    assert "videos.list request failed" in str(exc_info.value)
    assert isinstance(exc_info.value.__cause__, IncompleteRead)
