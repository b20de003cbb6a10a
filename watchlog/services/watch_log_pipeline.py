from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import UTC, datetime
from threading import Lock
from typing import Any, Literal
from uuid import uuid4

from structlog.contextvars import bind_contextvars, reset_contextvars

from watchlog.models.watch_contracts import LogEntry, WatchEvent, WatchLogConfig
from watchlog.repositories.config_repository import ConfigRepository
from watchlog.repositories.watch_log_repository import DEFAULT_MAX_ENTRIES, WatchLogRepository
from watchlog.services.dedup_guard import DEFAULT_DEDUP_TTL_MINUTES, DedupGuard
from watchlog.services.enrichment_service import DEFAULT_REGION_CODE, EnrichmentService
from watchlog.services.field_policy import (
    infer_is_shorts,
    parts_needed_from_field_prefs,
    project_fields,
)
from watchlog.services.metadata_fetcher import MetadataFetcher
from watchlog.services.notifications import WatchLogNotifier
from watchlog.telemetry import (
    WATCH_LOG_FAILED,
    WATCH_LOG_LOGGED,
    WATCH_LOG_SUPPRESSED,
    TelemetryClient,
)

LOGGER = logging.getLogger("watchlog.pipeline")

WatchLogStatus = Literal["logged", "suppressed", "failed"]
WatchLogStage = Literal[
    "received",
    "dedup_check",
    "fetch_parts",
    "enrich",
    "project",
    "persist",
    "notify",
    "done",
]


@dataclass(frozen=True)
class WatchLogOutcome:
    status: WatchLogStatus
    video_id: str
    stage: WatchLogStage
    entry: LogEntry | None = None
    error_type: str | None = None
    error: str | None = None


def _utc_now() -> datetime:
    return datetime.now(UTC)


class WatchLogPipeline:
    def __init__(
        self,
        *,
        config_repository: ConfigRepository,
        dedup_guard: DedupGuard,
        metadata_fetcher: MetadataFetcher,
        enrichment_service: EnrichmentService,
        watch_log_repository: WatchLogRepository,
        notifier: WatchLogNotifier | None = None,
        telemetry: TelemetryClient | None = None,
        dedup_ttl_minutes: float = DEFAULT_DEDUP_TTL_MINUTES,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        region_code: str = DEFAULT_REGION_CODE,
        max_workers: int = 4,
        executor: Executor | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._config_repository = config_repository
        self._dedup_guard = dedup_guard
        self._metadata_fetcher = metadata_fetcher
        self._enrichment_service = enrichment_service
        self._watch_log_repository = watch_log_repository
        self._notifier = notifier if notifier is not None else WatchLogNotifier()
        self._telemetry = telemetry if telemetry is not None else TelemetryClient.disabled()
        self._dedup_ttl_minutes = max(0.0, dedup_ttl_minutes)
        self._max_entries = max(1, max_entries)
        self._region_code = region_code
        self._max_workers = max(1, max_workers)
        self._executor = executor
        self._owns_executor = executor is None
        self._executor_lock = Lock()
        self._clock = clock

    @property
    def notifier(self) -> WatchLogNotifier:
        return self._notifier

    def submit(self, event: WatchEvent) -> Future[WatchLogOutcome]:
        """Run ``handle`` on the worker pool; the future never carries an exception."""
        return self._get_executor().submit(self.handle, event)

    def shutdown(self, *, wait: bool = True) -> None:
        with self._executor_lock:
            executor = self._executor
            if executor is None or not self._owns_executor:
                return
            self._executor = None
        executor.shutdown(wait=wait)

    def handle(self, event: WatchEvent) -> WatchLogOutcome:
        context_tokens = bind_contextvars(
            watch_event_id=uuid4().hex,
            watch_video_id=event.video_id,
        )
        try:
            return self._run(event)
        finally:
            reset_contextvars(**context_tokens)

    def _run(self, event: WatchEvent) -> WatchLogOutcome:
        stage: WatchLogStage = "received"
        telemetry = self._telemetry.bind(video_id=event.video_id)
        try:
            config = self._config_repository.load()

            stage = "dedup_check"
            if self._dedup_guard.should_suppress(
                config.profile, event.video_id, self._dedup_ttl_minutes
            ):
                LOGGER.debug(
                    "watch log suppressed profile=%s video_id=%s",
                    config.profile,
                    event.video_id,
                )
                telemetry.emit(WATCH_LOG_SUPPRESSED, profile=config.profile)
                return WatchLogOutcome(status="suppressed", video_id=event.video_id, stage=stage)

            stage = "fetch_parts"
            parts = parts_needed_from_field_prefs(config.field_prefs)
            metadata: dict[str, Any] = {"videoId": event.video_id}
            if config.api_key and parts:
                metadata = self._metadata_fetcher.fetch(event.video_id, config.api_key, parts)
            entry = self._build_candidate_entry(event, config, metadata)

            stage = "enrich"
            self._enrich(entry, config)

            stage = "project"
            filtered = project_fields(entry, config.field_prefs, config.enrichment)

            stage = "persist"
            retained = self._watch_log_repository.append(filtered, max_entries=self._max_entries)
            self._dedup_guard.mark_logged(config.profile, event.video_id)

            stage = "notify"
            self._notifier.publish(filtered)
        except Exception as exc:
            LOGGER.warning(
                "watch log event failed video_id=%s stage=%s error_type=%s error=%s",
                event.video_id,
                stage,
                type(exc).__name__,
                exc,
                exc_info=True,
            )
            telemetry.emit(
                WATCH_LOG_FAILED,
                stage=stage,
                error_type=type(exc).__name__,
            )
            return WatchLogOutcome(
                status="failed",
                video_id=event.video_id,
                stage=stage,
                error_type=type(exc).__name__,
                error=str(exc),
            )

        LOGGER.info(
            "watch log entry appended profile=%s video_id=%s parts=%s fields=%s retained=%s",
            config.profile,
            event.video_id,
            ",".join(parts) or "-",
            len(filtered),
            retained,
        )
        telemetry.emit(
            WATCH_LOG_LOGGED,
            parts=parts,
            fields=len(filtered),
            is_shorts=filtered.get("isShorts"),
        )
        return WatchLogOutcome(
            status="logged",
            video_id=event.video_id,
            stage="done",
            entry=filtered,
        )

    def _build_candidate_entry(
        self,
        event: WatchEvent,
        config: WatchLogConfig,
        metadata: dict[str, Any],
    ) -> LogEntry:
        duration_seconds = metadata.get("durationSeconds")
        return {
            "videoId": event.video_id,
            "url": event.url,
            "profile": config.profile,
            # snippet
            "title": metadata.get("title"),
            "description": metadata.get("description"),
            "channelId": metadata.get("channelId"),
            "channelTitle": metadata.get("channelTitle"),
            "publishedAt": metadata.get("publishedAt"),
            "tags": metadata.get("tags") or [],
            "thumbnails": metadata.get("thumbnails") or {},
            "categoryId": metadata.get("categoryId"),
            "defaultLanguage": metadata.get("defaultLanguage"),
            "defaultAudioLanguage": metadata.get("defaultAudioLanguage"),
            "liveContent": metadata.get("liveContent") or "none",
            # contentDetails
            "durationSeconds": duration_seconds,
            "definition": metadata.get("definition"),
            "caption": metadata.get("caption"),
            "regionRestriction": metadata.get("regionRestriction"),
            "contentRating": metadata.get("contentRating"),
            # status
            "madeForKids": metadata.get("madeForKids"),
            # statistics
            "viewCount": metadata.get("viewCount"),
            "likeCount": metadata.get("likeCount"),
            "commentCount": metadata.get("commentCount"),
            # topicDetails
            "topicCategories": metadata.get("topicCategories") or [],
            "isShorts": infer_is_shorts(event.url, duration_seconds),
            "categoryName": None,
            "channelExtra": None,
            "watchedAt": self._clock().isoformat(),
        }

    def _enrich(self, entry: LogEntry, config: WatchLogConfig) -> None:
        if not config.api_key:
            return

        if entry.get("categoryId") and config.enrichment.category_name:
            entry["categoryName"] = self._enrichment_service.resolve_category_name(
                entry["categoryId"],
                config.api_key,
                self._region_code,
            )

        if entry.get("channelId") and config.enrichment.channel_basics:
            channel = self._enrichment_service.fetch_channel_basics(
                entry["channelId"],
                config.api_key,
            )
            entry["channelExtra"] = channel.to_entry() if channel is not None else None

    def _get_executor(self) -> Executor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers,
                    thread_name_prefix="watchlog-pipeline",
                )
                self._owns_executor = True
            return self._executor
