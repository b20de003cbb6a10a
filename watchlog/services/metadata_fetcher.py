from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from typing import Any

from watchlog.models.watch_contracts import ALLOWED_PARTS
from watchlog.services.retry_policy import RetryPolicy
from watchlog.services.video_catalog_client import (
    CatalogClient,
    VideoCatalogError,
    VideoNotFoundError,
    as_dict,
    first_item,
)

LOGGER = logging.getLogger("watchlog.metadata")

ISO8601_DURATION_PATTERN = re.compile(
    r"^PT(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+)S)?$"
)
DEFAULT_FETCH_PARTS: tuple[str, ...] = ("snippet", "contentDetails", "statistics", "status")


def parse_iso8601_duration_seconds(raw_value: object) -> int | None:
    if not isinstance(raw_value, str):
        return None
    matched = ISO8601_DURATION_PATTERN.match(raw_value.strip())
    if matched is None:
        return None

    hours = int(matched.group("hours") or 0)
    minutes = int(matched.group("minutes") or 0)
    seconds = int(matched.group("seconds") or 0)
    return hours * 3_600 + minutes * 60 + seconds


def normalize_parts(parts: Sequence[str] | None) -> list[str]:
    """Keep known parts in request order; an empty or missing list means the default set."""
    if not parts:
        return list(DEFAULT_FETCH_PARTS)
    selected: list[str] = []
    for part in parts:
        if part in ALLOWED_PARTS and part not in selected:
            selected.append(part)
    return selected


class MetadataFetcher:
    def __init__(self, client: CatalogClient, *, retry_policy: RetryPolicy | None = None) -> None:
        self._client = client
        self._retry_policy = retry_policy if retry_policy is not None else RetryPolicy()

    def fetch(self, video_id: str, api_key: str, parts: Sequence[str] | None) -> dict[str, Any]:
        """Fetch one video and shape it into a flat record.

        Only fields belonging to the requested parts are present in the result.
        Upstream failures are retried per the retry policy and the last one is
        re-raised; a missing video raises ``VideoNotFoundError`` immediately.
        """
        part_list = normalize_parts(parts)
        params = {"part": ",".join(part_list), "id": video_id, "key": api_key}

        retries_done = 0
        while True:
            try:
                payload = self._client.get_json("videos", params)
            except VideoCatalogError as exc:
                if not self._retry_policy.should_retry(retries_done):
                    raise
                retries_done += 1
                delay = self._retry_policy.wait(retries_done)
                LOGGER.info(
                    "metadata fetch retry video_id=%s attempt=%s max_attempts=%s "
                    "delay_s=%s error=%s",
                    video_id,
                    retries_done + 1,
                    self._retry_policy.max_attempts,
                    delay,
                    exc,
                )
                continue

            item = first_item(payload)
            if item is None:
                raise VideoNotFoundError(video_id)
            return shape_video_record(item, part_list, fallback_video_id=video_id)


def shape_video_record(
    item: dict[str, Any],
    parts: Sequence[str],
    *,
    fallback_video_id: str,
) -> dict[str, Any]:
    raw_id = item.get("id")
    record: dict[str, Any] = {
        "videoId": raw_id if isinstance(raw_id, str) and raw_id else fallback_video_id
    }

    if "snippet" in parts:
        snippet = as_dict(item.get("snippet"))
        record["title"] = snippet.get("title")
        record["description"] = snippet.get("description")
        record["publishedAt"] = snippet.get("publishedAt")
        record["channelId"] = snippet.get("channelId")
        record["channelTitle"] = snippet.get("channelTitle")
        record["tags"] = _list_or_empty(snippet.get("tags"))
        record["thumbnails"] = as_dict(snippet.get("thumbnails"))
        record["categoryId"] = snippet.get("categoryId")
        record["defaultLanguage"] = snippet.get("defaultLanguage")
        record["defaultAudioLanguage"] = snippet.get("defaultAudioLanguage")
        record["liveContent"] = snippet.get("liveBroadcastContent") or "none"

    if "contentDetails" in parts:
        content_details = as_dict(item.get("contentDetails"))
        record["durationSeconds"] = parse_iso8601_duration_seconds(content_details.get("duration"))
        record["definition"] = content_details.get("definition")
        record["caption"] = content_details.get("caption") == "true"
        record["regionRestriction"] = content_details.get("regionRestriction")
        record["contentRating"] = content_details.get("contentRating")

    if "status" in parts:
        status = as_dict(item.get("status"))
        record["madeForKids"] = status.get("madeForKids")

    if "statistics" in parts:
        statistics = as_dict(item.get("statistics"))
        record["viewCount"] = parse_count(statistics.get("viewCount"))
        record["likeCount"] = parse_count(statistics.get("likeCount"))
        record["commentCount"] = parse_count(statistics.get("commentCount"))

    if "topicDetails" in parts:
        topic_details = as_dict(item.get("topicDetails"))
        record["topicCategories"] = _list_or_empty(topic_details.get("topicCategories"))

    return record


def parse_count(raw_value: object) -> int | None:
    # Counts arrive as decimal strings; absent or empty means "unknown", not zero.
    if raw_value is None or raw_value == "":
        return None
    if isinstance(raw_value, bool):
        return None
    if isinstance(raw_value, int):
        return raw_value
    if isinstance(raw_value, float):
        return int(raw_value)
    if isinstance(raw_value, str):
        try:
            return int(raw_value.strip())
        except ValueError:
            return None
    return None


def _list_or_empty(raw_value: object) -> list[Any]:
    if isinstance(raw_value, list):
        return list(raw_value)
    return []

