"""
Key-value persistence for decks and drill sessions.

Enables save/resume so an interrupted session can be continued.
Backends:
- JsonFileStore: one JSON file per key in ~/.phrase-drill/store/
- SqliteStore: key/value table in ~/.phrase-drill/drill.db
- MemoryStore: in-process dict

Stores never raise on I/O problems: failures are logged, `set` returns
False and `get` returns None, so the session carries on in memory.
"""

from __future__ import annotations

import json
import re
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

from loguru import logger
from pydantic import ValidationError

from .models import Session
from .schemas import SessionSnapshot

Blob = dict[str, Any]


class KeyValueStore(Protocol):
    def get(self, key: str) -> Blob | None: ...

    def set(self, key: str, blob: Blob) -> bool: ...

    def remove(self, key: str) -> None: ...


# =============================================================================
# Backends
# =============================================================================


class MemoryStore:
    """Dict-backed store. Blobs are round-tripped through JSON like the real ones."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> Blob | None:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def set(self, key: str, blob: Blob) -> bool:
        self._data[key] = json.dumps(blob, default=str)
        return True

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class JsonFileStore:
    """
    Stores each key as a JSON file.

    Files are named {key}.json; characters outside [A-Za-z0-9._-] are replaced.
    Writes go to a temporary file first and are renamed into place.
    """

    def __init__(self, directory: Path):
        self.directory = directory
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.directory / f"{_UNSAFE_KEY_CHARS.sub('_', key)}.json"

    def get(self, key: str) -> Blob | None:
        filepath = self._path(key)
        if not filepath.exists():
            return None

        try:
            with open(filepath, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read {filepath}: {e}")
            return None

        if not isinstance(data, dict):
            logger.warning(f"Ignoring {filepath}: expected a JSON object")
            return None
        return data

    def set(self, key: str, blob: Blob) -> bool:
        filepath = self._path(key)
        tmp_path = filepath.with_suffix(".json.tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(blob, f, indent=2, default=str)
            tmp_path.replace(filepath)
        except (OSError, TypeError, ValueError) as e:
            logger.warning(f"Could not write {filepath}: {e}")
            return False
        return True

    def remove(self, key: str) -> None:
        filepath = self._path(key)
        try:
            filepath.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not remove {filepath}: {e}")


class SqliteStore:
    """Key/value table in a local SQLite database."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn: sqlite3.Connection | None = None
        self._init_schema()

        logger.debug(f"SqliteStore initialized at {self.db_path}")

    @property
    def conn(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path))
        return self._conn

    def _init_schema(self) -> None:
        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        self.conn.commit()

    def get(self, key: str) -> Blob | None:
        try:
            row = self.conn.execute(
                "SELECT value FROM kv_store WHERE key = ?", (key,)
            ).fetchone()
        except sqlite3.Error as e:
            logger.warning(f"Could not read {key!r} from {self.db_path}: {e}")
            return None
        if row is None:
            return None

        try:
            data = json.loads(row[0])
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring corrupt value for {key!r}: {e}")
            return None
        return data if isinstance(data, dict) else None

    def set(self, key: str, blob: Blob) -> bool:
        try:
            self.conn.execute(
                """
                INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value,
                                               updated_at = excluded.updated_at
                """,
                (key, json.dumps(blob, default=str), datetime.now().isoformat()),
            )
            self.conn.commit()
        except (sqlite3.Error, TypeError, ValueError) as e:
            logger.warning(f"Could not write {key!r} to {self.db_path}: {e}")
            return False
        return True

    def remove(self, key: str) -> None:
        try:
            self.conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            self.conn.commit()
        except sqlite3.Error as e:
            logger.warning(f"Could not remove {key!r} from {self.db_path}: {e}")

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None


def create_store(backend: str, path: Path) -> KeyValueStore:
    """Build the store named by configuration."""
    if backend == "sqlite":
        return SqliteStore(path)
    return JsonFileStore(path)


# =============================================================================
# Session Persistence Bridge
# =============================================================================


class SessionPersistence:
    """Saves and restores one deck's session snapshot."""

    def __init__(self, store: KeyValueStore, deck_id: str = "default"):
        self.store = store
        self.deck_id = deck_id

    @property
    def key(self) -> str:
        return f"{self.deck_id}.session"

    def save(self, session: Session) -> bool:
        snapshot = SessionSnapshot.from_session(session, saved_at=datetime.now())
        ok = self.store.set(self.key, snapshot.model_dump(mode="json"))
        if not ok:
            logger.warning("Session snapshot not saved; continuing without resume support")
        return ok

    def load(self) -> SessionSnapshot | None:
        """Return a resumable snapshot, or None."""
        blob = self.store.get(self.key)
        if blob is None:
            return None

        try:
            snapshot = SessionSnapshot.model_validate(blob)
        except ValidationError as e:
            logger.warning(f"Discarding invalid session snapshot: {e.error_count()} error(s)")
            return None

        if not snapshot.resumable:
            return None
        return snapshot

    def clear(self) -> None:
        self.store.remove(self.key)
