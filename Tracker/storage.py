"""
Durable key-value storage with pluggable backends.

The state store keeps two string values (the JSON state tree and the theme
name). Backends only move strings in and out; serialization is the caller's
business. Every backend failure surfaces as StorageError.
"""
from __future__ import annotations

import os
import platform
import sqlite3
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

from .config import StorageSettings

APP_NAME = "ArcItemTracker"


class StorageError(Exception):
    """Raised when durable storage cannot be read or written."""


def get_user_data_dir() -> Path:
    """Per-user application data directory for this platform, created on first use."""
    if platform.system() == "Windows":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
    elif platform.system() == "Darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))

    data_dir = base / APP_NAME
    try:
        data_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise StorageError(f"Cannot create data directory {data_dir}: {exc}") from exc
    return data_dir


class StorageBackend(ABC):
    """Abstract base class for key-value storage backends."""

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """Return the stored value, or None if the key is absent."""

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """Store a value under key, replacing any previous value."""

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Remove key. Removing an absent key is not an error."""

    def close(self) -> None:
        """Release backend resources (optional)."""


class MemoryStorageBackend(StorageBackend):
    """Process-local storage. Nothing survives a restart."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._items: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class FileStorageBackend(StorageBackend):
    """
    One file per key in a directory.

    Writes go through a temp file and an atomic replace so a crash never
    leaves a half-written state blob behind.
    """

    def __init__(self, directory: Optional[Path] = None):
        self._directory = directory or get_user_data_dir()
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Cannot create storage directory {self._directory}: {exc}") from exc

    @property
    def directory(self) -> Path:
        return self._directory

    def _get_path(self, key: str) -> Path:
        """Get the file path for a storage key."""
        safe_key = "".join(c if c.isalnum() or c in "-_" else "_" for c in key)
        return self._directory / f"{safe_key}.store"

    def get_item(self, key: str) -> Optional[str]:
        path = self._get_path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise StorageError(f"Cannot read {path}: {exc}") from exc

    def set_item(self, key: str, value: str) -> None:
        path = self._get_path(key)
        temp_path = path.with_suffix(".tmp")
        try:
            with temp_path.open("w", encoding="utf-8") as fh:
                fh.write(value)
            temp_path.replace(path)
        except OSError as exc:
            if temp_path.exists():
                temp_path.unlink()
            raise StorageError(f"Cannot write {path}: {exc}") from exc

    def remove_item(self, key: str) -> None:
        path = self._get_path(key)
        try:
            if path.exists():
                path.unlink()
        except OSError as exc:
            raise StorageError(f"Cannot remove {path}: {exc}") from exc


class SQLiteStorageBackend(StorageBackend):
    """
    Key-value pairs in a single SQLite table.

    Thread-safe via connection-per-thread.

    Schema:
        kv_store (
            key TEXT PRIMARY KEY,
            value TEXT
        )
    """

    _CREATE_TABLE_SQL = """
        CREATE TABLE IF NOT EXISTS kv_store (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        )
    """

    def __init__(self, db_path: Optional[Path] = None):
        self._db_path = db_path or (get_user_data_dir() / "tracker_state.db")
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Cannot create storage directory {self._db_path.parent}: {exc}") from exc
        self._local = threading.local()
        # Every thread gets its own connection; close() has to reach all of them
        self._connections: List[sqlite3.Connection] = []
        self._connections_lock = threading.Lock()

        # Fail fast on an unusable database path
        self._get_connection()

    def _get_connection(self) -> sqlite3.Connection:
        """Connection for the calling thread, opened and migrated on first use."""
        if not hasattr(self._local, 'conn') or self._local.conn is None:
            try:
                conn = sqlite3.connect(
                    str(self._db_path),
                    check_same_thread=False,
                    timeout=10.0,
                )
            except sqlite3.Error as exc:
                self._local.conn = None
                raise StorageError(f"Cannot open {self._db_path}: {exc}") from exc
            try:
                conn.execute(self._CREATE_TABLE_SQL)
                conn.commit()
            except sqlite3.Error as exc:
                conn.close()
                self._local.conn = None
                raise StorageError(f"Cannot open {self._db_path}: {exc}") from exc
            with self._connections_lock:
                self._connections.append(conn)
            self._local.conn = conn
        return self._local.conn

    def get_item(self, key: str) -> Optional[str]:
        conn = self._get_connection()
        try:
            row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as exc:
            raise StorageError(f"Cannot read '{key}': {exc}") from exc
        return None if row is None else row[0]

    def set_item(self, key: str, value: str) -> None:
        conn = self._get_connection()
        try:
            conn.execute(
                "INSERT OR REPLACE INTO kv_store (key, value) VALUES (?, ?)",
                (key, value),
            )
            conn.commit()
        except sqlite3.Error as exc:
            raise StorageError(f"Cannot write '{key}': {exc}") from exc

    def remove_item(self, key: str) -> None:
        conn = self._get_connection()
        try:
            conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            conn.commit()
        except sqlite3.Error as exc:
            raise StorageError(f"Cannot remove '{key}': {exc}") from exc

    @property
    def open_connections(self) -> int:
        with self._connections_lock:
            return len(self._connections)

    def close(self) -> None:
        """Close the connections opened by every thread."""
        with self._connections_lock:
            connections, self._connections = self._connections, []
        for conn in connections:
            conn.close()
        # Threads still holding a closed connection reopen on next use
        self._local = threading.local()


def create_storage(settings: StorageSettings) -> StorageBackend:
    """Build the backend named in the storage settings."""
    if settings.backend == "memory":
        return MemoryStorageBackend()
    if settings.backend == "sqlite":
        directory = settings.directory or get_user_data_dir()
        return SQLiteStorageBackend(directory / f"{settings.key_prefix}.db")
    return FileStorageBackend(settings.directory)
