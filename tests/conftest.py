from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from watchlog.dependencies import reset_cached_dependencies
from watchlog.main import create_app


@pytest.fixture
def data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    runtime_dir = tmp_path / "runtime-data"
    runtime_dir.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("WATCHLOG_DATA_DIR", str(runtime_dir))
    monkeypatch.setenv("WATCHLOG_TELEMETRY_SINK", "none")
    # Nothing in the suite may reach the real catalog.
    monkeypatch.setenv("WATCHLOG_CATALOG_BASE_URL", "http://127.0.0.1:9")
    monkeypatch.setenv("WATCHLOG_METADATA_RETRY_BACKOFF_SECONDS", "0")
    return runtime_dir


@pytest.fixture
def client(data_dir: Path) -> Iterator[TestClient]:
    _ = data_dir
    reset_cached_dependencies()

    app = create_app()
    with TestClient(app) as test_client:
        yield test_client

    reset_cached_dependencies()
