from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DATA_DIR = Path(".watchlog")
DEFAULT_CATALOG_BASE_URL = "https://www.googleapis.com/youtube/v3"
TELEMETRY_SINKS: tuple[str, ...] = ("none", "log")

# Paths that live under `data_dir` unless set explicitly.
DATA_DIR_DEFAULTS: dict[str, Path] = {
    "db_path": Path("state.db"),
    "log_dir": Path("logs"),
}


class AppSettings(BaseSettings):
    """
    Process configuration for the watch-log service, read from `WATCHLOG_*`.

    The per-user configuration object (API key, profile, field policy) lives in the
    key-value store instead; see `ConfigRepository`.
    """

    model_config = SettingsConfigDict(
        env_prefix="WATCHLOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    data_dir: Path = Field(
        default=DEFAULT_DATA_DIR,
        description="Directory holding the SQLite store and logs.",
    )
    db_path: Path = Field(
        default=DEFAULT_DATA_DIR / "state.db",
        description="SQLite key-value store. Defaults to `<data_dir>/state.db`.",
    )
    log_dir: Path = Field(
        default=DEFAULT_DATA_DIR / "logs",
        description="Directory for JSON log files. Defaults to `<data_dir>/logs`.",
    )
    log_level: str = Field(default="INFO", description="Minimum level printed to the console.")

    catalog_base_url: str = Field(
        default=DEFAULT_CATALOG_BASE_URL,
        description="Base URL of the video catalog API.",
    )
    catalog_http_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for a single catalog request.",
    )
    metadata_max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Retries after the first failed video metadata request.",
    )
    metadata_retry_backoff_seconds: float = Field(
        default=0.3,
        ge=0.0,
        description="Linear backoff step; retry N waits N times this value.",
    )
    category_region_code: str = Field(
        default="US",
        description="Region code used for category name lookups.",
    )

    dedup_ttl_minutes: float = Field(
        default=120,
        ge=0,
        description="Window during which a repeat watch of the same video by a profile is ignored.",
    )
    watch_log_max_entries: int = Field(
        default=5_000,
        ge=1,
        description="Maximum watch log entries retained; oldest are evicted first.",
    )
    pipeline_max_workers: int = Field(
        default=4,
        ge=1,
        le=64,
        description="Worker threads processing watch events concurrently.",
    )

    telemetry_enabled: bool = Field(
        default=True,
        description="Emit pipeline and HTTP telemetry events.",
    )
    telemetry_sink: Literal["none", "log"] = Field(
        default="log",
        description="`log` writes events to the telemetry log file; `none` drops them.",
    )

    @model_validator(mode="before")
    @classmethod
    def _place_paths_under_data_dir(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        values = dict(data)
        data_dir = Path(values.get("data_dir") or DEFAULT_DATA_DIR)
        for field_name, relative_path in DATA_DIR_DEFAULTS.items():
            if not values.get(field_name):
                values[field_name] = data_dir / relative_path
        return values

    @field_validator("data_dir", *DATA_DIR_DEFAULTS, mode="after")
    @classmethod
    def _resolve_path(cls, value: Path) -> Path:
        return value.expanduser().resolve()

    @field_validator("telemetry_sink", mode="before")
    @classmethod
    def _normalize_telemetry_sink(cls, value: Any) -> Any:
        if isinstance(value, str) and value.strip().lower() in TELEMETRY_SINKS:
            return value.strip().lower()
        raise ValueError(f"WATCHLOG_TELEMETRY_SINK must be one of: {', '.join(TELEMETRY_SINKS)}.")

    @field_validator("catalog_base_url", mode="before")
    @classmethod
    def _normalize_catalog_base_url(cls, value: Any) -> Any:
        normalized = value.strip().rstrip("/") if isinstance(value, str) else ""
        if not normalized:
            raise ValueError("WATCHLOG_CATALOG_BASE_URL must be a non-empty URL.")
        return normalized

    @field_validator("category_region_code", mode="before")
    @classmethod
    def _normalize_region_code(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            return "US"
        return value.strip().upper()


def load_settings() -> AppSettings:
    return AppSettings()
