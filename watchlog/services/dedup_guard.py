from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from watchlog.repositories.dedup_marker_repository import DedupMarkerRepository

DEFAULT_DEDUP_TTL_MINUTES = 120


def _utc_now() -> datetime:
    return datetime.now(UTC)


class DedupGuard:
    """Suppresses re-logging of a (profile, video) pair inside the dedup window.

    ``should_suppress`` and ``mark_logged`` are not atomic together; two events for
    the same pair finishing at the same moment may both be logged.
    """

    def __init__(
        self,
        markers: DedupMarkerRepository,
        *,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._markers = markers
        self._clock = clock

    def should_suppress(
        self,
        profile: str,
        video_id: str,
        ttl_minutes: float = DEFAULT_DEDUP_TTL_MINUTES,
    ) -> bool:
        last_logged_at = self._markers.get_marker(profile, video_id)
        if last_logged_at is None:
            return False
        age = self._clock() - last_logged_at
        return age < timedelta(minutes=ttl_minutes)

    def mark_logged(self, profile: str, video_id: str) -> None:
        self._markers.set_marker(profile, video_id, self._clock())
