"""Counters kept in a local database file."""

from __future__ import annotations

import logging
import os
import sqlite3
import tempfile
import threading

from pushrelay.storage import Counter, Storage

DEFAULT_BUCKET = "pushrelay"
_DEFAULT_FILE = "pushrelay-stat.db"

_CREATE_TABLE = (
    "CREATE TABLE IF NOT EXISTS counters ("
    " bucket TEXT NOT NULL,"
    " key TEXT NOT NULL,"
    " value INTEGER NOT NULL DEFAULT 0,"
    " PRIMARY KEY (bucket, key))"
)
_SET = (
    "INSERT INTO counters (bucket, key, value) VALUES (?, ?, ?) "
    "ON CONFLICT (bucket, key) DO UPDATE SET value = excluded.value"
)
_ADD = (
    "INSERT INTO counters (bucket, key, value) VALUES (?, ?, ?) "
    "ON CONFLICT (bucket, key) DO UPDATE SET value = value + excluded.value"
)
_GET = "SELECT value FROM counters WHERE bucket = ? AND key = ?"

_log = logging.getLogger(__name__)


class FileStorage(Storage):
    """Counters persisted in a single database file, grouped by bucket."""

    def __init__(self, path: str = "", bucket: str = DEFAULT_BUCKET) -> None:
        self.path = path or os.path.join(tempfile.gettempdir(), _DEFAULT_FILE)
        self.bucket = bucket
        self._db: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    @property
    def _conn(self) -> sqlite3.Connection:
        if self._db is None:
            raise RuntimeError("storage is not open")
        return self._db

    def init(self) -> None:
        """Open the file, creating it when missing; raise sqlite3.Error on failure."""
        self.close()
        db = sqlite3.connect(self.path, check_same_thread=False, isolation_level=None)
        try:
            db.execute(_CREATE_TABLE)
        except sqlite3.Error:
            db.close()
            raise
        self._db = db

    def close(self) -> None:
        if self._db is None:
            return
        with self._lock:
            self._db.close()
            self._db = None

    def _write(self, statement: str, counter: Counter, count: int) -> None:
        conn = self._conn
        key = Counter(counter).value
        with self._lock:
            try:
                conn.execute(statement, (self.bucket, key, int(count)))
            except sqlite3.Error as exc:
                _log.error("file storage update error: %s", exc)

    def reset(self) -> None:
        for counter in Counter:
            self._write(_SET, counter, 0)

    def increment(self, counter: Counter, count: int) -> None:
        self._write(_ADD, counter, count)

    def value(self, counter: Counter) -> int:
        conn = self._conn
        key = Counter(counter).value
        with self._lock:
            try:
                row = conn.execute(_GET, (self.bucket, key)).fetchone()
            except sqlite3.Error as exc:
                _log.error("file storage get error: %s", exc)
                return 0
        if row is None:
            return 0
        try:
            return int(row[0])
        except (TypeError, ValueError):
            return 0