from __future__ import annotations

from datetime import datetime
from typing import Any

from watchlog.repositories.common import parse_timestamp
from watchlog.repositories.key_value_store import KeyValueStore

DEDUP_MARKERS_KEY = "lastLogged"


def marker_key(profile: str, video_id: str) -> str:
    return f"{profile}:{video_id}"


class DedupMarkerRepository:
    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def get_marker(self, profile: str, video_id: str) -> datetime | None:
        markers = self._store.get(DEDUP_MARKERS_KEY, {})
        if not isinstance(markers, dict):
            return None
        return parse_timestamp(markers.get(marker_key(profile, video_id)))

    def set_marker(self, profile: str, video_id: str, logged_at: datetime) -> None:
        key = marker_key(profile, video_id)

        def _write(current: Any) -> dict[str, Any]:
            markers = dict(current) if isinstance(current, dict) else {}
            markers[key] = logged_at.isoformat()
            return markers

        self._store.update(DEDUP_MARKERS_KEY, {}, _write)
