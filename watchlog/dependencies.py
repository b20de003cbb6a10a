from __future__ import annotations

from functools import lru_cache

from watchlog.config import AppSettings, load_settings
from watchlog.repositories.config_repository import ConfigRepository
from watchlog.repositories.database import Database
from watchlog.repositories.dedup_marker_repository import DedupMarkerRepository
from watchlog.repositories.key_value_store import SqliteKeyValueStore
from watchlog.repositories.watch_log_repository import WatchLogRepository
from watchlog.services.dedup_guard import DedupGuard
from watchlog.services.enrichment_service import CategoryNameCache, EnrichmentService
from watchlog.services.metadata_fetcher import MetadataFetcher
from watchlog.services.retry_policy import RetryPolicy, linear_backoff
from watchlog.services.video_catalog_client import VideoCatalogClient
from watchlog.services.watch_log_pipeline import WatchLogPipeline
from watchlog.telemetry import TelemetryClient, build_telemetry_client


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return load_settings()


@lru_cache(maxsize=1)
def get_key_value_store() -> SqliteKeyValueStore:
    database = Database(get_settings().db_path)
    database.initialize()
    return SqliteKeyValueStore(database)


def get_config_repository() -> ConfigRepository:
    return ConfigRepository(get_key_value_store())


def get_watch_log_repository() -> WatchLogRepository:
    return WatchLogRepository(get_key_value_store())


@lru_cache(maxsize=1)
def get_category_cache() -> CategoryNameCache:
    return CategoryNameCache()


@lru_cache(maxsize=1)
def get_pipeline() -> WatchLogPipeline:
    settings = get_settings()
    store = get_key_value_store()
    client = VideoCatalogClient(
        base_url=settings.catalog_base_url,
        http_timeout_seconds=settings.catalog_http_timeout_seconds,
    )

    return WatchLogPipeline(
        config_repository=ConfigRepository(store),
        dedup_guard=DedupGuard(DedupMarkerRepository(store)),
        metadata_fetcher=MetadataFetcher(
            client,
            retry_policy=RetryPolicy(
                max_retries=settings.metadata_max_retries,
                backoff=linear_backoff(settings.metadata_retry_backoff_seconds),
            ),
        ),
        enrichment_service=EnrichmentService(client, category_cache=get_category_cache()),
        watch_log_repository=WatchLogRepository(store),
        telemetry=get_telemetry(),
        dedup_ttl_minutes=settings.dedup_ttl_minutes,
        max_entries=settings.watch_log_max_entries,
        region_code=settings.category_region_code,
        max_workers=settings.pipeline_max_workers,
    )


@lru_cache(maxsize=1)
def get_telemetry() -> TelemetryClient:
    settings = get_settings()
    return build_telemetry_client(
        enabled=settings.telemetry_enabled,
        sink=settings.telemetry_sink,
    )


def reset_cached_dependencies() -> None:
    if get_pipeline.cache_info().currsize:
        get_pipeline().shutdown(wait=True)
    get_pipeline.cache_clear()
    get_category_cache.cache_clear()
    get_key_value_store.cache_clear()
    get_telemetry.cache_clear()
    get_settings.cache_clear()
