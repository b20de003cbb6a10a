from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import Lock
from typing import Any

from watchlog.services.metadata_fetcher import parse_count
from watchlog.services.video_catalog_client import (
    CatalogClient,
    VideoCatalogError,
    as_dict,
    first_item,
)

LOGGER = logging.getLogger("watchlog.enrichment")

DEFAULT_REGION_CODE = "US"
CHANNEL_PARTS = "snippet,statistics,brandingSettings,topicDetails"


@dataclass(frozen=True)
class ChannelBasics:
    channel_id: str | None
    custom_url: str | None
    channel_country: str | None
    channel_description: str | None
    channel_created_at: str | None
    banner: str | None
    subscriber_count: int | None
    video_count: int | None

    def to_entry(self) -> dict[str, Any]:
        return {
            "channelId": self.channel_id,
            "customUrl": self.custom_url,
            "channelCountry": self.channel_country,
            "channelDescription": self.channel_description,
            "channelCreatedAt": self.channel_created_at,
            "banner": self.banner,
            "subscriberCount": self.subscriber_count,
            "videoCount": self.video_count,
        }


class CategoryNameCache:
    """Process-lifetime ``"{region}:{category}"`` -> name map; ``None`` is a cached miss."""

    def __init__(self) -> None:
        self._names: dict[str, str | None] = {}
        self._lock = Lock()

    def lookup(self, cache_key: str) -> tuple[bool, str | None]:
        with self._lock:
            if cache_key in self._names:
                return True, self._names[cache_key]
        return False, None

    def store(self, cache_key: str, name: str | None) -> None:
        with self._lock:
            self._names[cache_key] = name

    def __len__(self) -> int:
        with self._lock:
            return len(self._names)


class EnrichmentService:
    """Best-effort secondary lookups. Failures degrade to ``None`` and are never retried."""

    def __init__(
        self,
        client: CatalogClient,
        *,
        category_cache: CategoryNameCache | None = None,
    ) -> None:
        self._client = client
        self._category_cache = category_cache if category_cache is not None else CategoryNameCache()

    def resolve_category_name(
        self,
        category_id: str | None,
        api_key: str,
        region_code: str = DEFAULT_REGION_CODE,
    ) -> str | None:
        if not category_id:
            return None
        cache_key = f"{region_code}:{category_id}"
        cached, cached_name = self._category_cache.lookup(cache_key)
        if cached:
            return cached_name

        try:
            payload = self._client.get_json(
                "videoCategories",
                {
                    "part": "snippet",
                    "id": str(category_id),
                    "key": api_key,
                    "regionCode": region_code,
                },
            )
        except VideoCatalogError as exc:
            LOGGER.warning(
                "enrichment category_lookup_failed category_id=%s region=%s error=%s",
                category_id,
                region_code,
                exc,
            )
            return None

        item = first_item(payload)
        title = as_dict(item.get("snippet")).get("title") if item is not None else None
        name = title if isinstance(title, str) and title else None
        self._category_cache.store(cache_key, name)
        return name

    def fetch_channel_basics(self, channel_id: str | None, api_key: str) -> ChannelBasics | None:
        if not channel_id:
            return None
        try:
            payload = self._client.get_json(
                "channels",
                {"part": CHANNEL_PARTS, "id": channel_id, "key": api_key},
            )
        except VideoCatalogError as exc:
            LOGGER.warning(
                "enrichment channel_lookup_failed channel_id=%s error=%s",
                channel_id,
                exc,
            )
            return None

        item = first_item(payload)
        if item is None:
            return None

        snippet = as_dict(item.get("snippet"))
        statistics = as_dict(item.get("statistics"))
        branding_image = as_dict(as_dict(item.get("brandingSettings")).get("image"))
        raw_id = item.get("id")
        return ChannelBasics(
            channel_id=raw_id if isinstance(raw_id, str) else None,
            custom_url=_coerce_nonempty_string(snippet.get("customUrl")),
            channel_country=_coerce_nonempty_string(snippet.get("country")),
            channel_description=_coerce_nonempty_string(snippet.get("description")),
            channel_created_at=_coerce_nonempty_string(snippet.get("publishedAt")),
            banner=_coerce_nonempty_string(branding_image.get("bannerExternalUrl")),
            subscriber_count=parse_count(statistics.get("subscriberCount")),
            video_count=parse_count(statistics.get("videoCount")),
        )


def _coerce_nonempty_string(raw_value: object) -> str | None:
    if isinstance(raw_value, str) and raw_value:
        return raw_value
    return None
