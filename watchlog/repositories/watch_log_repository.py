from __future__ import annotations

from typing import Any

from watchlog.models.watch_contracts import LogEntry
from watchlog.repositories.key_value_store import KeyValueStore

WATCH_LOG_KEY = "watchLog"
DEFAULT_MAX_ENTRIES = 5_000


class WatchLogRepository:
    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def append(self, entry: LogEntry, *, max_entries: int = DEFAULT_MAX_ENTRIES) -> int:
        """Append ``entry`` and evict the oldest entries beyond ``max_entries``.

        Returns the number of entries retained after the append.
        """
        clamped_max_entries = max(1, max_entries)
        appended = dict(entry)

        def _append(current: Any) -> list[Any]:
            entries = list(current) if isinstance(current, list) else []
            entries.append(appended)
            overflow = len(entries) - clamped_max_entries
            if overflow > 0:
                del entries[:overflow]
            return entries

        updated = self._store.update(WATCH_LOG_KEY, [], _append)
        return len(updated)

    def list_entries(self, *, limit: int | None = None) -> list[LogEntry]:
        raw_entries = self._store.get(WATCH_LOG_KEY, [])
        if not isinstance(raw_entries, list):
            return []
        entries: list[LogEntry] = [item for item in raw_entries if isinstance(item, dict)]
        if limit is not None:
            clamped_limit = max(0, limit)
            return entries[-clamped_limit:] if clamped_limit else []
        return entries
