from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from http.client import HTTPException
from typing import Any, Protocol, cast
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

LOGGER = logging.getLogger("watchlog.catalog")

DEFAULT_CATALOG_BASE_URL = "https://www.googleapis.com/youtube/v3"


class VideoCatalogError(Exception):
    pass


class UpstreamError(VideoCatalogError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class VideoNotFoundError(VideoCatalogError):
    def __init__(self, video_id: str) -> None:
        super().__init__(f"Video not found: {video_id}")
        self.video_id = video_id


class CatalogClient(Protocol):
    def get_json(self, resource: str, params: Mapping[str, str]) -> dict[str, Any]:
        ...


class VideoCatalogClient:
    """Thin GET client for the catalog's ``videos``, ``channels`` and ``videoCategories``."""

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_CATALOG_BASE_URL,
        http_timeout_seconds: float = 30.0,
    ) -> None:
        self._base_url = _normalize_base_url(base_url)
        self._http_timeout_seconds = max(1.0, http_timeout_seconds)

    def get_json(self, resource: str, params: Mapping[str, str]) -> dict[str, Any]:
        query = urlencode(dict(params))
        request = Request(
            f"{self._base_url}/{resource}?{query}",
            headers={
                "accept": "application/json",
                "user-agent": "watchlog/0.1",
            },
            method="GET",
        )

        try:
            with urlopen(request, timeout=self._http_timeout_seconds) as response:
                status_code = int(response.getcode() or 0)
                raw_body = response.read().decode("utf-8", errors="replace")
        except HTTPError as exc:
            LOGGER.debug("catalog request_failed resource=%s status=%s", resource, exc.code)
            raise UpstreamError(
                f"{resource}.list {exc.code} {exc.reason}",
                status_code=int(exc.code),
            ) from exc
        except (URLError, HTTPException, TimeoutError, OSError) as exc:
            raise UpstreamError(f"{resource}.list request failed: {exc}") from exc

        if status_code < 200 or status_code >= 300:
            raise UpstreamError(f"{resource}.list {status_code}", status_code=status_code)

        try:
            parsed = json.loads(raw_body) if raw_body.strip() else {}
        except json.JSONDecodeError as exc:
            raise UpstreamError(f"{resource}.list returned invalid JSON") from exc
        return as_dict(parsed)


def first_item(payload: Mapping[str, Any]) -> dict[str, Any] | None:
    items = as_list(payload.get("items"))
    if not items:
        return None
    item = as_dict(items[0])
    return item or None


def as_dict(value: Any) -> dict[str, Any]:
    if isinstance(value, dict):
        raw_dict = cast(dict[object, object], value)
        converted: dict[str, Any] = {}
        for key, item in raw_dict.items():
            if isinstance(key, str):
                converted[key] = item
        return converted
    return {}


def as_list(value: Any) -> list[Any]:
    if isinstance(value, list):
        return list(cast(list[Any], value))
    return []


def _normalize_base_url(raw_value: str) -> str:
    trimmed = raw_value.strip()
    if not trimmed:
        return DEFAULT_CATALOG_BASE_URL
    return trimmed.rstrip("/")
