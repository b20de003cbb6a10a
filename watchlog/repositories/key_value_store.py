from __future__ import annotations

import copy
import json
import sqlite3
from collections.abc import Callable
from threading import Lock
from typing import Any, Protocol

from watchlog.repositories.common import utc_now_iso
from watchlog.repositories.database import Database


class KeyValueStore(Protocol):
    """Persistent get/set contract used for config, dedup markers, and the watch log.

    ``update`` is the read-modify-write primitive: ``mutate`` receives the current
    value (or ``default``) and returns the value to store. Implementations run it
    atomically with respect to other writers of the same store.
    """

    def get(self, key: str, default: Any = None) -> Any:
        ...

    def set(self, key: str, value: Any) -> None:
        ...

    def update(self, key: str, default: Any, mutate: Callable[[Any], Any]) -> Any:
        ...


class SqliteKeyValueStore:
    def __init__(self, db: Database) -> None:
        self._db = db
        self._lock = Lock()

    def get(self, key: str, default: Any = None) -> Any:
        with self._db.connection() as conn:
            row = conn.execute(
                """
                SELECT value_json
                FROM key_value_entries
                WHERE key = ?
                """,
                (key,),
            ).fetchone()

        if row is None:
            return copy.deepcopy(default)
        return _decode_value(row["value_json"], default)

    def set(self, key: str, value: Any) -> None:
        with self._lock, self._db.connection() as conn:
            _write_value(conn, key, value)

    def update(self, key: str, default: Any, mutate: Callable[[Any], Any]) -> Any:
        with self._lock, self._db.connection() as conn:
            # Take the write lock before reading so other processes cannot interleave.
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT value_json FROM key_value_entries WHERE key = ?",
                (key,),
            ).fetchone()
            current = (
                copy.deepcopy(default) if row is None else _decode_value(row["value_json"], default)
            )
            updated = mutate(current)
            _write_value(conn, key, updated)
        return updated


class InMemoryKeyValueStore:
    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._values: dict[str, Any] = copy.deepcopy(initial or {})
        self._lock = Lock()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            if key not in self._values:
                return copy.deepcopy(default)
            return copy.deepcopy(self._values[key])

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._values[key] = copy.deepcopy(value)

    def update(self, key: str, default: Any, mutate: Callable[[Any], Any]) -> Any:
        with self._lock:
            current = copy.deepcopy(self._values.get(key, default))
            updated = mutate(current)
            self._values[key] = copy.deepcopy(updated)
        return updated


def _write_value(conn: sqlite3.Connection, key: str, value: Any) -> None:
    conn.execute(
        """
        INSERT INTO key_value_entries (key, value_json, updated_at)
        VALUES (?, ?, ?)
        ON CONFLICT(key) DO UPDATE SET
            value_json = excluded.value_json,
            updated_at = excluded.updated_at
        """,
        (key, json.dumps(value, sort_keys=True, ensure_ascii=True), utc_now_iso()),
    )


def _decode_value(raw_value: object, default: Any) -> Any:
    if not isinstance(raw_value, str):
        return copy.deepcopy(default)
    try:
        return json.loads(raw_value)
    except json.JSONDecodeError:
        return copy.deepcopy(default)
