"""Shared fixtures and in-memory fakes for bank catalog tests."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from banks.cache import CatalogCache
from banks.models import CatalogSnapshot, Institution
from banks.service import CatalogService
from core.errors import UpstreamUnavailable


SAMPLE_BANKS = [
    Institution(code=341, name="ITAÚ UNIBANCO S.A.", full_name="Itaú Unibanco S.A.", ispb="60701190"),
    Institution(code=1, name="BCO DO BRASIL S.A.", full_name="Banco do Brasil S.A.", ispb="00000000"),
    Institution(code=237, name="BCO BRADESCO S.A.", full_name="Banco Bradesco S.A.", ispb="60746948"),
]


class FakeClock:
    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeSource:
    """Upstream stand-in: counts calls, can fail, can block until released."""

    def __init__(self, banks=None):
        self.banks = list(SAMPLE_BANKS if banks is None else banks)
        self.calls = 0
        self.fail = False
        self.gate: asyncio.Event | None = None

    async def __call__(self):
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise UpstreamUnavailable("upstream down")
        return list(self.banks)


class FakeSnapshotStore:
    def __init__(self, snapshot: CatalogSnapshot | None = None):
        self.snapshot = snapshot
        self.loads = 0
        self.saves = 0
        self.fail_on_save = False

    async def load_snapshot(self):
        self.loads += 1
        return self.snapshot

    async def save_snapshot(self, snapshot):
        self.saves += 1
        if self.fail_on_save:
            raise OSError("disk full")
        self.snapshot = snapshot


class FakeOverrideStore:
    """Sparse override rows keyed by (user_id, code)."""

    def __init__(self):
        self.rows: dict[tuple[int, int], bool] = {}

    async def get_inactive_codes(self, user_id):
        return {code for (uid, code), inactive in self.rows.items() if uid == user_id and inactive}

    async def set_inactive(self, user_id, code):
        self.rows[(user_id, code)] = True

    async def clear_override(self, user_id, code):
        self.rows.pop((user_id, code), None)

    async def bulk_set_inactive(self, user_id, codes):
        for code in codes:
            self.rows[(user_id, code)] = True

    async def bulk_clear(self, user_id, codes):
        for code in codes:
            self.rows.pop((user_id, code), None)

    async def clear_all_for_user(self, user_id):
        for key in [k for k in self.rows if k[0] == user_id]:
            del self.rows[key]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def source():
    return FakeSource()


@pytest.fixture
def snapshot_store():
    return FakeSnapshotStore()


@pytest.fixture
def override_store():
    return FakeOverrideStore()


@pytest.fixture
def cache(source, snapshot_store, clock):
    return CatalogCache(source=source, store=snapshot_store, ttl=timedelta(hours=24), clock=clock)


@pytest.fixture
def catalog_service(cache, override_store):
    return CatalogService(cache=cache, overrides=override_store)
