"""
Shared fixtures for scratch game tests
In-memory cache, a scripted ledger and a deterministic prize picker
"""

import os
import sys
from datetime import datetime, timezone

import pytest

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from scratch_game.errors import StoreUnavailable
from scratch_game.kv_store import MemoryKeyValueStore
from scratch_game.local_cache import LocalCache
from scratch_game.prize_catalog import PrizeCatalog
from scratch_game.reconciliation import ReconciliationEngine
from scratch_game.record_store import RecordStoreClient
from scratch_game.ip_resolver import StaticIpResolver

NOW = datetime(2026, 2, 10, 12, 0, tzinfo=timezone.utc)
TODAY = "2026-02-10"


class FakeRecordStore(RecordStoreClient):
    """Ledger double: rows in memory, optional outage and write visibility"""

    def __init__(self, rows=None, fail_fetch=False, upsert_ok=True, visible=True, prizes=None):
        super().__init__(sheet_url='http://ledger.test/exec', enabled=True,
                         push_attempts=1, push_backoff=0)
        self.rows = list(rows or [])
        self.fail_fetch = fail_fetch
        self.upsert_ok = upsert_ok
        self.visible = visible
        self.prizes = list(prizes or [])
        self.upserts = []
        self.fetch_calls = 0
        self.gate = None

    async def fetch_all(self):
        self.fetch_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_fetch:
            raise StoreUnavailable("network down")
        return list(self.rows)

    async def fetch_prizes(self):
        return list(self.prizes)

    async def upsert(self, record):
        self.upserts.append(record)
        if self.upsert_ok and self.visible:
            self.rows.append(record)
        return self.upsert_ok


class PickRng:
    """Stand-in for random.Random whose choice() returns a fixed prize"""

    def __init__(self, value):
        self.value = value

    def choice(self, seq):
        assert self.value in seq
        return self.value


def scratch_rows(target, rows=(20, 60, 100, 140, 170), width=360):
    """One horizontal stroke per row; stops at the stroke that reveals"""
    for y in rows:
        target.begin_stroke()
        for x in range(0, width + 1, 10):
            target.move_to(x, y)
        if target.end_stroke():
            return True
    return False


@pytest.fixture
def cache():
    return LocalCache(MemoryKeyValueStore())


@pytest.fixture
def store():
    return FakeRecordStore()


@pytest.fixture
def catalog(cache):
    cache.save_prizes([38, 58, 88])
    return PrizeCatalog(cache, rng=PickRng(58))


@pytest.fixture
def engine(store, cache, catalog):
    return ReconciliationEngine(store, cache, catalog, StaticIpResolver('203.0.113.7'))
