"""SmartSentry — Persistent collection cache with TTL"""

import asyncio
import json
import time
import logging
from typing import Any, Callable, Optional

from smartsentry.config import CACHE_TTL_SECONDS, HISTORY_CACHE_CAP
from smartsentry.models import CachedCollection, Pagination
from smartsentry.storage import KeyValueStore

logger = logging.getLogger("smartsentry.cache")


class LocalCache:
    """Timestamped list snapshots stored as ``{data, timestamp, pagination}`` JSON blobs.

    Reads honour a TTL unless told otherwise. Writes to the same key are
    serialized so concurrent prepends don't lose entries.
    """

    def __init__(self, store: KeyValueStore, ttl: float = CACHE_TTL_SECONDS,
                 clock: Callable[[], float] = time.time):
        self._store = store
        self._ttl = ttl
        self._clock = clock
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    async def _read_raw(self, key: str) -> Optional[CachedCollection]:
        blob = await self._store.get_item(key)
        if blob is None:
            return None
        try:
            payload = json.loads(blob)
            return CachedCollection(
                items=payload.get("data") or [],
                fetchedAt=float(payload.get("timestamp") or 0.0),
                pagination=Pagination(**(payload.get("pagination") or {})),
            )
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Discarding unreadable cache entry {key}: {e}")
            return None

    async def _write_raw(self, key: str, collection: CachedCollection):
        blob = json.dumps({
            "data": collection.items,
            "timestamp": collection.fetchedAt,
            "pagination": collection.pagination.model_dump(),
        })
        await self._store.set_item(key, blob)

    async def write(self, key: str, collection: CachedCollection) -> CachedCollection:
        """Store ``collection`` stamped with the current time."""
        stamped = collection.model_copy(update={"fetchedAt": self._clock()})
        async with self._lock(key):
            await self._write_raw(key, stamped)
        logger.debug(f"Cache write {key}: {len(stamped.items)} items")
        return stamped

    async def read(self, key: str, ignore_ttl: bool = False) -> Optional[CachedCollection]:
        collection = await self._read_raw(key)
        if collection is None:
            return None
        age = self._clock() - collection.fetchedAt
        if not ignore_ttl and age > self._ttl:
            logger.info(f"Cache entry {key} is stale ({age / 3600:.1f}h old)")
            return None
        return collection

    async def prepend(self, key: str, item: Any, cap: int = HISTORY_CACHE_CAP) -> CachedCollection:
        """Insert ``item`` at the front, keep the newest ``cap`` items, and persist."""
        async with self._lock(key):
            existing = await self._read_raw(key)
            current = existing or CachedCollection()
            items = [item] + list(current.items)
            if len(items) > cap:
                items = items[:cap]
            pagination = current.pagination.model_copy(
                update={"total": max(current.pagination.total + 1, len(items))}
            )
            # A local insert does not revalidate server data; keep the original fetch time
            fetched_at = existing.fetchedAt if existing is not None else self._clock()
            updated = CachedCollection(items=items, fetchedAt=fetched_at, pagination=pagination)
            await self._write_raw(key, updated)
        return updated

    async def clear(self, key: str):
        async with self._lock(key):
            await self._store.remove_item(key)
