"""SmartSentry — Persistent key-value storage

Async string key/value store used for the credential, cached collections and
offline map tiles. SQLiteKeyValueStore persists to disk; MemoryKeyValueStore
is a process-local stand-in with the same interface.
"""

import asyncio
import logging
import sqlite3
from pathlib import Path
from typing import Optional

logger = logging.getLogger("smartsentry.storage")


class KeyValueStore:
    """Interface shared by the storage backends."""

    async def get_item(self, key: str) -> Optional[str]:
        raise NotImplementedError

    async def set_item(self, key: str, value: str) -> None:
        raise NotImplementedError

    async def remove_item(self, key: str) -> None:
        raise NotImplementedError

    async def get_all_keys(self) -> list[str]:
        raise NotImplementedError

    async def multi_remove(self, keys: list[str]) -> None:
        for key in keys:
            await self.remove_item(key)


class MemoryKeyValueStore(KeyValueStore):
    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    async def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    async def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    async def get_all_keys(self) -> list[str]:
        return list(self._data)


class SQLiteKeyValueStore(KeyValueStore):
    """sqlite3-backed store; each operation opens its own connection in a worker thread."""

    def __init__(self, db_path: str | Path):
        self._db_path = str(db_path)
        Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self._db_path, timeout=10)

    def _init_db(self):
        conn = self._connect()
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)
            conn.commit()
        finally:
            conn.close()

    def _get(self, key: str) -> Optional[str]:
        conn = self._connect()
        try:
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
            return row[0] if row else None
        finally:
            conn.close()

    def _set(self, key: str, value: str):
        conn = self._connect()
        try:
            conn.execute(
                "INSERT INTO kv (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value),
            )
            conn.commit()
        finally:
            conn.close()

    def _remove(self, keys: list[str]):
        conn = self._connect()
        try:
            conn.executemany("DELETE FROM kv WHERE key = ?", [(k,) for k in keys])
            conn.commit()
        finally:
            conn.close()

    def _keys(self) -> list[str]:
        conn = self._connect()
        try:
            return [r[0] for r in conn.execute("SELECT key FROM kv ORDER BY rowid").fetchall()]
        finally:
            conn.close()

    async def get_item(self, key: str) -> Optional[str]:
        return await asyncio.to_thread(self._get, key)

    async def set_item(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._set, key, value)

    async def remove_item(self, key: str) -> None:
        await asyncio.to_thread(self._remove, [key])

    async def multi_remove(self, keys: list[str]) -> None:
        if keys:
            await asyncio.to_thread(self._remove, list(keys))
            logger.debug(f"Removed {len(keys)} keys")

    async def get_all_keys(self) -> list[str]:
        return await asyncio.to_thread(self._keys)
