from __future__ import annotations

import logging
from collections.abc import Callable
from threading import Lock

from watchlog.models.watch_contracts import LogEntry

LOGGER = logging.getLogger("watchlog.notifications")

WatchLogListener = Callable[[LogEntry], None]


class WatchLogNotifier:
    """Fire-and-forget broadcast of freshly logged entries to in-process listeners."""

    def __init__(self) -> None:
        self._listeners: list[WatchLogListener] = []
        self._lock = Lock()

    def subscribe(self, listener: WatchLogListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def publish(self, entry: LogEntry) -> int:
        with self._lock:
            listeners = list(self._listeners)

        delivered = 0
        for listener in listeners:
            try:
                listener(dict(entry))
            except Exception:
                LOGGER.warning(
                    "watch log listener failed video_id=%s",
                    entry.get("videoId"),
                    exc_info=True,
                )
                continue
            delivered += 1
        return delivered
