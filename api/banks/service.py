"""
Bank catalog business logic.

Scope:
- what a given user sees (shared catalog minus their inactive overrides)
- single and bulk override changes
- explicit catalog refresh
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable

from core.errors import CacheAccessError, NotFoundInCatalog

from .cache import CatalogCache
from .models import CatalogSnapshot, Institution

logger = logging.getLogger(__name__)


class CatalogService:
    def __init__(self, *, cache: CatalogCache, overrides: Any) -> None:
        # `overrides` is the override store: `banks.repository` in production.
        self.cache = cache
        self.overrides = overrides

    async def list_for_user(
        self,
        user_id: int,
        *,
        only_active: bool = True,
        query: str | None = None,
    ) -> list[Institution]:
        snapshot_task = asyncio.ensure_future(self.cache.get())
        inactive_task = asyncio.ensure_future(self.overrides.get_inactive_codes(user_id))
        try:
            snapshot, inactive = await asyncio.gather(snapshot_task, inactive_task)
        except BaseException:
            # Stop and drain the other read so its outcome is not left unretrieved.
            for task in (snapshot_task, inactive_task):
                task.cancel()
            await asyncio.gather(snapshot_task, inactive_task, return_exceptions=True)
            raise

        candidates: Iterable[Institution] = snapshot.institutions

        needle = (query or "").strip().lower()
        if needle:
            candidates = [b for b in candidates if b.matches(needle)]

        if only_active:
            candidates = [b for b in candidates if b.code not in inactive]

        return sorted(candidates, key=lambda b: b.code)

    async def inactive_codes(self, user_id: int) -> list[int]:
        return sorted(await self.overrides.get_inactive_codes(user_id))

    async def validate_code_exists(self, code: int) -> bool:
        snapshot = await self.cache.get()
        return snapshot.has_code(code)

    async def ensure_code_exists(self, code: int) -> None:
        if not await self.validate_code_exists(code):
            raise NotFoundInCatalog()

    async def inactivate(self, user_id: int, code: int) -> None:
        await self.ensure_code_exists(code)
        await self.overrides.set_inactive(user_id, code)

    async def reactivate(self, user_id: int, code: int) -> None:
        # No catalog check: a code dropped upstream can still be cleared.
        await self.overrides.clear_override(user_id, code)

    async def bulk_reactivate(self, user_id: int, codes: Iterable[int]) -> None:
        await self.overrides.bulk_clear(user_id, set(codes))

    async def inactivate_all(self, user_id: int) -> int:
        snapshot = await self.cache.get()
        codes = snapshot.codes()
        await self.overrides.bulk_set_inactive(user_id, codes)
        logger.info("bank_overrides_inactivate_all user_id=%s codes=%s", user_id, len(codes))
        return len(codes)

    async def reactivate_all(self, user_id: int) -> None:
        await self.overrides.clear_all_for_user(user_id)
        logger.info("bank_overrides_reactivate_all user_id=%s", user_id)

    async def refresh_catalog(self) -> CatalogSnapshot:
        return await self.cache.get(force_refresh=True)

    async def check_cache(self) -> dict:
        """
        Diagnostic read of the cache. Any failure, upstream included, is
        reported as CacheAccessError.
        """
        try:
            snapshot = await self.cache.get()
        except CacheAccessError:
            raise
        except Exception as exc:
            logger.warning("bank_catalog_cache_check_failed error=%s", exc)
            raise CacheAccessError() from exc
        return {"ok": True, "state": self.cache.state(), "count": len(snapshot)}
