from __future__ import annotations

import logging
from pathlib import Path

import pytest
from pydantic import ValidationError

from watchlog.config import load_settings
from watchlog.logging_config import (
    LOG_FILE_NAME,
    TELEMETRY_LOG_FILE_NAME,
    configure_application_logging,
)


def test_settings_defaults_follow_data_dir(data_dir: Path) -> None:
    settings = load_settings()

    assert settings.data_dir == data_dir.resolve()
    assert settings.db_path == data_dir.resolve() / "state.db"
    assert settings.log_dir == data_dir.resolve() / "logs"
    assert settings.metadata_max_retries == 3
    assert settings.dedup_ttl_minutes == 120
    assert settings.watch_log_max_entries == 5_000
    assert settings.category_region_code == "US"


def test_settings_explicit_paths_and_normalization(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("WATCHLOG_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("WATCHLOG_DB_PATH", str(tmp_path / "elsewhere" / "watch.db"))
    monkeypatch.setenv("WATCHLOG_CATALOG_BASE_URL", " https://catalog.example/v3/ ")
    monkeypatch.setenv("WATCHLOG_CATEGORY_REGION_CODE", "gb")
    monkeypatch.setenv("WATCHLOG_TELEMETRY_ENABLED", "off")
    monkeypatch.setenv("WATCHLOG_TELEMETRY_SINK", "LOG")

    settings = load_settings()

    assert settings.db_path == (tmp_path / "elsewhere" / "watch.db").resolve()
    assert settings.log_dir == (tmp_path / "data" / "logs").resolve()
    assert settings.catalog_base_url == "https://catalog.example/v3"
    assert settings.category_region_code == "GB"
    assert settings.telemetry_enabled is False
    assert settings.telemetry_sink == "log"


def test_settings_reject_unknown_telemetry_sink(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WATCHLOG_TELEMETRY_SINK", "otlp")

    with pytest.raises(ValidationError):
        load_settings()


def test_settings_reject_out_of_range_retries(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WATCHLOG_METADATA_MAX_RETRIES", "-1")

    with pytest.raises(ValidationError):
        load_settings()


def test_configure_application_logging_writes_json_log_file(data_dir: Path) -> None:
    settings = load_settings()

    log_file = configure_application_logging(settings)
    logging.getLogger("watchlog.pipeline").info("watch log entry appended video_id=%s", "vid_001")
    for handler in logging.getLogger("watchlog").handlers:
        handler.flush()

    assert log_file == settings.log_dir / LOG_FILE_NAME
    assert (settings.log_dir / TELEMETRY_LOG_FILE_NAME).parent.is_dir()
    content = log_file.read_text(encoding="utf-8")
    assert "watch log entry appended video_id=vid_001" in content
    assert data_dir.resolve() in log_file.parents
