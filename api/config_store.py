"""
api/config_store.py
===================
SQLite persistence for the active intersection config.

A single key/value table holds the last accepted config document as
JSON text, so a restarted process comes back with the same layout.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from pathlib import Path
from typing import Optional, Union

log = logging.getLogger("config_store")

ACTIVE_CONFIG_KEY = "active_intersection_config"

_CREATE_TABLE = (
    "CREATE TABLE IF NOT EXISTS app_config ("
    "key TEXT PRIMARY KEY, "
    "value TEXT NOT NULL)"
)
_UPSERT = (
    "INSERT INTO app_config(key, value) VALUES(?, ?) "
    "ON CONFLICT(key) DO UPDATE SET value = excluded.value"
)
_SELECT = "SELECT value FROM app_config WHERE key = ?"


class ConfigStoreError(RuntimeError):
    """Raised when the backing database cannot be opened or written."""


class ConfigStore:
    """Key/value store backed by one SQLite file.

    Args:
        path: Database file; ``":memory:"`` keeps everything in-process.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self._path = str(path)
        self._lock = threading.Lock()
        self._conn: Optional[sqlite3.Connection] = None

    @property
    def path(self) -> str:
        return self._path

    def initialize(self) -> None:
        """Open the database and create the table if needed."""
        with self._lock:
            if self._conn is not None:
                return
            try:
                if self._path != ":memory:":
                    Path(self._path).parent.mkdir(parents=True, exist_ok=True)
                conn = sqlite3.connect(self._path, check_same_thread=False)
                conn.execute(_CREATE_TABLE)
                conn.commit()
            except (OSError, sqlite3.Error) as exc:
                raise ConfigStoreError(f"cannot open config store {self._path}: {exc}") from exc
            self._conn = conn
        log.info("Config store ready at %s", self._path)

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise ConfigStoreError("config store is not initialized")
        return self._conn

    def save_active_config_json(self, text: str) -> None:
        """Upsert *text* as the active config document."""
        with self._lock:
            conn = self._connection()
            try:
                conn.execute(_UPSERT, (ACTIVE_CONFIG_KEY, text))
                conn.commit()
            except sqlite3.Error as exc:
                raise ConfigStoreError(f"cannot save active config: {exc}") from exc
        log.info("Active intersection config saved (%d bytes)", len(text))

    def load_active_config_json(self) -> Optional[str]:
        """Stored config document, or ``None`` when nothing was saved yet."""
        with self._lock:
            conn = self._connection()
            try:
                row = conn.execute(_SELECT, (ACTIVE_CONFIG_KEY,)).fetchone()
            except sqlite3.Error as exc:
                raise ConfigStoreError(f"cannot load active config: {exc}") from exc
        return row[0] if row else None
