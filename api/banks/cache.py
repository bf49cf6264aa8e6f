"""
Process-wide bank catalog cache.

Freshness states:
- empty: nothing in memory and nothing usable persisted yet
- fresh: snapshot younger than the TTL, served without any I/O
- stale: snapshot older than the TTL, next non-forced read refreshes it

Concurrent non-forced readers that find the cache empty or stale share one
in-flight refresh task, so only one upstream request is made and every waiter
sees the same snapshot (or the same error). Forced refreshes always issue
their own request. Publishing a snapshot is serialized by `_publish_lock`.
"""

from __future__ import annotations

import asyncio
import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Sequence

from core.errors import AppError, CacheAccessError, UpstreamUnavailable

from .models import CatalogSnapshot, Institution

DEFAULT_TTL_HOURS = 24.0

logger = logging.getLogger(__name__)

CatalogFetcher = Callable[[], Awaitable[Sequence[Institution]]]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def catalog_ttl_hours() -> float:
    raw = os.environ.get("BANK_CATALOG_TTL_HOURS", "").strip()
    if not raw:
        return DEFAULT_TTL_HOURS
    try:
        value = float(raw)
    except ValueError:
        return DEFAULT_TTL_HOURS
    # nan / inf / <= 0 are not usable durations
    if not (0 < value < float("inf")):
        return DEFAULT_TTL_HOURS
    return value


class CatalogCache:
    def __init__(
        self,
        *,
        source: CatalogFetcher,
        store: Any,
        ttl: timedelta | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """
        `source` returns the upstream catalog; `store` provides
        `load_snapshot()` / `save_snapshot(snapshot)` for the persisted row.
        """
        if ttl is None or ttl <= timedelta(0):
            ttl = timedelta(hours=catalog_ttl_hours())
        self._source = source
        self._store = store
        self._ttl = ttl
        self._clock = clock or _utc_now
        self._snapshot: CatalogSnapshot | None = None
        self._persisted_loaded = False
        self._inflight: asyncio.Future[CatalogSnapshot] | None = None
        self._publish_lock = asyncio.Lock()

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    @property
    def snapshot(self) -> CatalogSnapshot | None:
        return self._snapshot

    def _is_fresh(self, snapshot: CatalogSnapshot) -> bool:
        return self._clock() - snapshot.fetched_at < self._ttl

    def state(self) -> str:
        snapshot = self._snapshot
        if snapshot is None:
            return "empty"
        return "fresh" if self._is_fresh(snapshot) else "stale"

    async def get(self, force_refresh: bool = False) -> CatalogSnapshot:
        if force_refresh:
            return await self._refresh(forced=True)

        snapshot = self._snapshot
        if snapshot is not None and self._is_fresh(snapshot):
            return snapshot

        task = self._inflight
        if task is None:
            task = asyncio.ensure_future(self._load_or_refresh())
            self._inflight = task
            task.add_done_callback(self._on_inflight_done)
        # A cancelled waiter must not cancel the refresh the others wait on.
        return await asyncio.shield(task)

    def _on_inflight_done(self, task: asyncio.Future[CatalogSnapshot]) -> None:
        if self._inflight is task:
            self._inflight = None
        if not task.cancelled():
            # Mark the exception as retrieved even if every waiter went away.
            task.exception()

    async def _load_or_refresh(self) -> CatalogSnapshot:
        if not self._persisted_loaded:
            persisted = await self._load_persisted()
            self._persisted_loaded = True
            if persisted is not None and self._snapshot is None:
                self._snapshot = persisted
                logger.info(
                    "bank_catalog_loaded count=%s fetched_at=%s",
                    len(persisted),
                    persisted.fetched_at.isoformat(),
                )
            snapshot = self._snapshot
            if snapshot is not None and self._is_fresh(snapshot):
                return snapshot
        return await self._refresh(forced=False)

    async def _load_persisted(self) -> CatalogSnapshot | None:
        try:
            return await self._store.load_snapshot()
        except AppError:
            raise
        except Exception as exc:
            logger.exception("bank_catalog_load_failed")
            raise CacheAccessError("Failed to read the bank catalog cache.") from exc

    async def _refresh(self, *, forced: bool) -> CatalogSnapshot:
        try:
            items = await self._source()
        except UpstreamUnavailable as exc:
            logger.warning("bank_catalog_refresh_failed forced=%s error=%s", forced, exc)
            raise

        async with self._publish_lock:
            fetched_at = self._clock()
            current = self._snapshot
            if current is not None and current.fetched_at > fetched_at:
                fetched_at = current.fetched_at
            snapshot = CatalogSnapshot.build(items, fetched_at=fetched_at)

            try:
                await self._store.save_snapshot(snapshot)
            except AppError:
                raise
            except Exception as exc:
                logger.exception("bank_catalog_save_failed")
                raise CacheAccessError("Failed to write the bank catalog cache.") from exc

            self._snapshot = snapshot

        logger.info(
            "bank_catalog_refreshed count=%s fetched_at=%s forced=%s",
            len(snapshot),
            snapshot.fetched_at.isoformat(),
            forced,
        )
        return snapshot
