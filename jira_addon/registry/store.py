"""Key/value backends for the client registry.

Backends are selected with a connection string:

- ``memory://`` -- in-process dict, lost on restart.
- ``json://<path>`` -- one JSON file, rewritten atomically (temp write + rename).
- ``sqlite://<path>`` -- embedded sqlite database (the default).

All file IO runs in a worker thread so the event loop never blocks.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import sqlite3
import tempfile
import threading
from pathlib import Path
from typing import Any, Protocol

from jira_addon.errors import ConfigurationError, RegistryError

logger = logging.getLogger(__name__)


class ClientStore(Protocol):
    """Async key/value contract shared by every backend."""

    async def get(self, key: str) -> dict[str, Any] | None: ...

    async def set(self, key: str, value: dict[str, Any]) -> None: ...

    async def delete(self, key: str) -> bool: ...

    async def close(self) -> None: ...


class MemoryStore:
    """Dict-backed store for tests and throwaway deployments."""

    def __init__(self) -> None:
        self._data: dict[str, dict[str, Any]] = {}

    async def get(self, key: str) -> dict[str, Any] | None:
        value = self._data.get(key)
        return dict(value) if value is not None else None

    async def set(self, key: str, value: dict[str, Any]) -> None:
        self._data[key] = dict(value)

    async def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    async def close(self) -> None:
        self._data.clear()


class JsonFileStore:
    """Single JSON file holding ``{"entries": {key: value}}``.

    Every write rewrites the whole file, so writes are serialized with an
    ``asyncio.Lock``.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> dict[str, Any] | None:
        entries = await asyncio.to_thread(self._load)
        return entries.get(key)

    async def set(self, key: str, value: dict[str, Any]) -> None:
        async with self._lock:
            entries = await asyncio.to_thread(self._load)
            entries[key] = value
            await asyncio.to_thread(self._save, entries)

    async def delete(self, key: str) -> bool:
        async with self._lock:
            entries = await asyncio.to_thread(self._load)
            if entries.pop(key, None) is None:
                return False
            await asyncio.to_thread(self._save, entries)
            return True

    async def close(self) -> None:
        return None

    def _load(self) -> dict[str, dict[str, Any]]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            msg = f"Corrupt registry file: {self._path}"
            raise RegistryError(msg) from exc
        entries = data.get("entries", {}) if isinstance(data, dict) else {}
        return dict(entries)

    def _save(self, entries: dict[str, dict[str, Any]]) -> None:
        """Save entries atomically (temp write + rename)."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        content = json.dumps({"entries": entries}, indent=2, ensure_ascii=False) + "\n"
        fd, tmp_path = tempfile.mkstemp(dir=str(self._path.parent), suffix=".tmp")
        tmp = Path(tmp_path)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            tmp.replace(self._path)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise


class SqliteStore:
    """Embedded sqlite table ``entries(key TEXT PRIMARY KEY, value TEXT)``."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = threading.Lock()
        self._conn: sqlite3.Connection | None = None

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            if self._path.parent != Path():
                self._path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self._path), check_same_thread=False)
            conn.execute("CREATE TABLE IF NOT EXISTS entries (key TEXT PRIMARY KEY, value TEXT)")
            conn.commit()
            self._conn = conn
        return self._conn

    def _get(self, key: str) -> dict[str, Any] | None:
        with self._lock:
            row = self._connection().execute(
                "SELECT value FROM entries WHERE key = ?", (key,)
            ).fetchone()
        return json.loads(row[0]) if row else None

    def _set(self, key: str, value: dict[str, Any]) -> None:
        payload = json.dumps(value, ensure_ascii=False)
        with self._lock:
            conn = self._connection()
            conn.execute(
                "INSERT INTO entries (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, payload),
            )
            conn.commit()

    def _delete(self, key: str) -> bool:
        with self._lock:
            conn = self._connection()
            cursor = conn.execute("DELETE FROM entries WHERE key = ?", (key,))
            conn.commit()
        return cursor.rowcount > 0

    def _close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    async def get(self, key: str) -> dict[str, Any] | None:
        return await asyncio.to_thread(self._get, key)

    async def set(self, key: str, value: dict[str, Any]) -> None:
        await asyncio.to_thread(self._set, key, value)

    async def delete(self, key: str) -> bool:
        return await asyncio.to_thread(self._delete, key)

    async def close(self) -> None:
        await asyncio.to_thread(self._close)


def open_store(url: str) -> ClientStore:
    """Create the backend named by *url* (``scheme://location``).

    ``sqlite://addon.sqlite`` is relative to the working directory,
    ``sqlite:///var/lib/addon.sqlite`` is absolute.
    """
    scheme, sep, location = url.partition("://")
    if not sep:
        msg = f"Store URL must look like scheme://location, got '{url}'"
        raise ConfigurationError(msg)

    if scheme == "memory":
        store: ClientStore = MemoryStore()
    elif scheme == "json":
        if not location:
            msg = "json:// store URL needs a file path"
            raise ConfigurationError(msg)
        store = JsonFileStore(Path(location).expanduser())
    elif scheme == "sqlite":
        if not location:
            msg = "sqlite:// store URL needs a file path"
            raise ConfigurationError(msg)
        store = SqliteStore(Path(location).expanduser())
    else:
        msg = f"Unsupported store scheme '{scheme}'"
        raise ConfigurationError(msg)

    logger.info("Client store opened: %s", scheme)
    return store
