# src/dailyquest/storage/kv_store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
import time
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class SqliteKVStore:
    """
    SQLite key/value store holding one JSON document per key.

    Flat key/value persistence:
    - values are JSON text; reads decode, writes encode
    - a value that no longer decodes is deleted and reported as missing
    - writes never raise; a failed save is retried once with a simplified payload

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "dailyquest.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            total = len(self.keys())
        except sqlite3.Error:
            total = -1
        logger.info("SqliteKVStore ready db=%s keys=%s", self._db_path, total)

    @property
    def db_path(self) -> Path:
        return self._db_path

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _encode(value: Any) -> str:
        return json.dumps(value, ensure_ascii=False)

    def _write_raw(self, key: str, text: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO kv(key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                """,
                (key, text, time.time()),
            )
            conn.commit()
        finally:
            conn.close()

    def _read_raw(self, key: str) -> str | None:
        conn = self._get_conn()
        try:
            cur = conn.execute("SELECT value FROM kv WHERE key = ?", (key,))
            row = cur.fetchone()
            return None if row is None else str(row["value"])
        finally:
            conn.close()

    # ---- public API ----

    def get(self, key: str) -> Any | None:
        if not key:
            return None
        try:
            raw = self._read_raw(key)
        except sqlite3.Error:
            logger.exception("Failed to read key=%s", key)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.exception("Corrupt JSON for key=%s; discarding stored value.", key)
            with contextlib.suppress(sqlite3.Error):
                self.delete(key)
            return None

    def set(self, key: str, value: Any) -> None:
        """
        Store `value` under `key`.

        Any failed save (encode or write) is retried once with a simplified
        payload where unencodable values become strings. A second failure is
        logged and the value is dropped.
        """
        if not key:
            logger.error("Refusing to store a value under an empty key.")
            return
        try:
            text = self._encode(value)
            self._write_raw(key, text)
        except (TypeError, ValueError, sqlite3.Error):
            logger.exception("Failed to save key=%s; retrying simplified.", key)
            try:
                text = json.dumps(value, ensure_ascii=False, default=str)
                self._write_raw(key, text)
            except (TypeError, ValueError, sqlite3.Error):
                logger.exception("Simplified save failed for key=%s; value not saved.", key)
                return
        logger.debug("Stored key=%s bytes=%d", key, len(text))

    def delete(self, key: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            conn.commit()
        finally:
            conn.close()

    def keys(self, prefix: str = "") -> list[str]:
        conn = self._get_conn()
        try:
            cur = conn.execute(
                "SELECT key FROM kv WHERE substr(key, 1, ?) = ? ORDER BY key",
                (len(prefix), prefix),
            )
            return [str(r["key"]) for r in cur.fetchall()]
        finally:
            conn.close()

    def size(self, prefix: str = "") -> int:
        """Total stored bytes (UTF-8 length of the JSON text) under `prefix`."""
        conn = self._get_conn()
        try:
            cur = conn.execute(
                "SELECT COALESCE(SUM(LENGTH(CAST(value AS BLOB))), 0) FROM kv WHERE substr(key, 1, ?) = ?",
                (len(prefix), prefix),
            )
            (n,) = cur.fetchone()
            return int(n)
        finally:
            conn.close()
