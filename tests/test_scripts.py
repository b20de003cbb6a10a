from __future__ import annotations

import sys
from pathlib import Path

import pytest

from watchlog.dependencies import reset_cached_dependencies
from watchlog.repositories.database import Database
from watchlog.repositories.key_value_store import SqliteKeyValueStore
from watchlog.repositories.watch_log_repository import WatchLogRepository
from watchlog.scripts import log_watch


def test_log_watch_script_logs_event_and_prints_outcome(
    data_dir: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    reset_cached_dependencies()
    monkeypatch.setattr(sys, "argv", ["log_watch", "vid_001"])

    exit_code = log_watch.main()

    assert exit_code == 0
    assert '"status": "logged"' in capsys.readouterr().out
    store = SqliteKeyValueStore(Database(data_dir.resolve() / "state.db"))
    entries = WatchLogRepository(store).list_entries()
    assert [entry["videoId"] for entry in entries] == ["vid_001"]
    assert entries[0]["url"] == "https://www.youtube.com/watch?v=vid_001"
