"""SmartSentry — Emergency history reconciliation

Fast path: a TTL-valid cache hit is delivered before any network round trip.

Authoritative path: the server is always asked. A success overwrites the
cache; a failure falls back to the cache regardless of age. Only when nothing
is cached does the failure reach the caller.
"""

import logging
from datetime import datetime, timezone
from typing import AsyncIterator, Callable, Optional

from smartsentry.api import SOSAPI
from smartsentry.cache import LocalCache
from smartsentry.config import HISTORY_CACHE_CAP, HISTORY_CACHE_KEY, HISTORY_PAGE_SIZE
from smartsentry.errors import (
    AccessDenied, ApiError, AuthExpired, HistoryLoadError, NetworkError,
    NoCredential, RequestFailed,
)
from smartsentry.location import normalize_location
from smartsentry.models import (
    CachedCollection, EMERGENCY_STATUSES, EMERGENCY_TYPES,
    EmergencyRecord, HistoryResult, Pagination,
)

logger = logging.getLogger("smartsentry.history")


def to_record(raw: dict) -> EmergencyRecord:
    """Build an EmergencyRecord from a server or cached dict without raising on odd fields."""
    rtype = raw.get("type")
    status = raw.get("status")
    timestamp = raw.get("timestamp") or raw.get("createdAt") or datetime.now(timezone.utc).isoformat()
    duration = raw.get("duration")
    notified = raw.get("contactsNotified")
    return EmergencyRecord(
        id=str(raw.get("id") or raw.get("_id") or ""),
        type=rtype if rtype in EMERGENCY_TYPES else "manual",
        status=status if status in EMERGENCY_STATUSES else "active",
        timestamp=str(timestamp),
        location=normalize_location(raw),
        duration=duration if isinstance(duration, (int, float)) and not isinstance(duration, bool) else None,
        contactsNotified=notified if isinstance(notified, int) and not isinstance(notified, bool) else None,
    )


def _serialize(record: EmergencyRecord) -> dict:
    return record.model_dump()


def _pagination(raw, page: int, count: int) -> Pagination:
    if isinstance(raw, dict):
        try:
            return Pagination(**{k: v for k, v in raw.items() if k in Pagination.model_fields and v is not None})
        except ValueError:
            logger.warning(f"Ignoring malformed pagination: {raw!r}")
    return Pagination(page=page, totalPages=1, total=count)


def classify_failure(error: ApiError) -> HistoryLoadError:
    if isinstance(error, RequestFailed) and error.status == 404:
        return HistoryLoadError(
            "Emergency history is not available on this server (endpoint not found).",
            HistoryLoadError.ENDPOINT_NOT_FOUND,
        )
    if isinstance(error, (NoCredential, AuthExpired, AccessDenied)):
        return HistoryLoadError(
            "Authentication failed. Please log in again to view your emergency history.",
            HistoryLoadError.AUTHENTICATION_FAILED,
        )
    if isinstance(error, NetworkError):
        return HistoryLoadError(
            "Unable to reach the server. Check your connection and try again.",
            HistoryLoadError.NETWORK,
        )
    return HistoryLoadError(error.message, HistoryLoadError.OTHER)


class HistoryReconciler:
    def __init__(self, sos_api: SOSAPI, cache: LocalCache, cache_key: str = HISTORY_CACHE_KEY,
                 limit: int = HISTORY_PAGE_SIZE):
        self.sos_api = sos_api
        self.cache = cache
        self.cache_key = cache_key
        self.limit = limit

    def _from_cache(self, collection: CachedCollection, offline: bool) -> HistoryResult:
        return HistoryResult(
            data=[to_record(item) for item in collection.items if isinstance(item, dict)],
            pagination=collection.pagination,
            isOffline=offline,
            fromCache=True,
        )

    async def updates(self, force_refresh: bool = False, page: int = 1) -> AsyncIterator[HistoryResult]:
        """Yield the fast cached result (if any) and then the authoritative one.

        Raises HistoryLoadError when the fetch fails and nothing is cached.
        """
        if not force_refresh:
            cached = await self.cache.read(self.cache_key)
            if cached is not None:
                logger.info(f"History fast path: {len(cached.items)} cached records")
                yield self._from_cache(cached, offline=False)

        try:
            res = await self.sos_api.get_history(self.limit, page)
        except ApiError as e:
            logger.warning(f"History fetch failed: {e}")
            fallback = await self.cache.read(self.cache_key, ignore_ttl=True)
            if fallback is not None:
                logger.info(f"Serving {len(fallback.items)} cached records offline")
                yield self._from_cache(fallback, offline=True)
                return
            raise classify_failure(e) from e

        raw_items = res.get("data") if isinstance(res, dict) else res
        if not isinstance(raw_items, list):
            raw_items = []
        records = [to_record(r) for r in raw_items if isinstance(r, dict)]
        pagination = _pagination(res.get("pagination") if isinstance(res, dict) else None, page, len(records))

        # Server result is authoritative; no cap applied here
        await self.cache.write(self.cache_key, CachedCollection(
            items=[_serialize(r) for r in records],
            pagination=pagination,
        ))
        yield HistoryResult(data=records, pagination=pagination, isOffline=False, fromCache=False)

    async def load(self, force_refresh: bool = False,
                   on_cached: Optional[Callable[[HistoryResult], None]] = None) -> HistoryResult:
        """Return the authoritative result; ``on_cached`` receives the fast-path result first."""
        final: Optional[HistoryResult] = None
        async for result in self.updates(force_refresh):
            if final is None and result.fromCache and not result.isOffline and on_cached is not None:
                on_cached(result)
            final = result
        return final

    async def record_local(self, record: EmergencyRecord | dict, cap: int = HISTORY_CACHE_CAP) -> CachedCollection:
        """Optimistically prepend a record to the cached history before any server round trip."""
        if isinstance(record, dict):
            record = to_record(record)
        return await self.cache.prepend(self.cache_key, _serialize(record), cap=cap)
