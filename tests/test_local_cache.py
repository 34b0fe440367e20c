"""
Test Local Cache
Record indexes, expiry rule, prize catalog and malformed state handling
"""

from datetime import timedelta

from sqlalchemy import create_engine

from conftest import NOW, TODAY
from scratch_game import config
from scratch_game.kv_store import MemoryKeyValueStore, SQLKeyValueStore
from scratch_game.local_cache import LocalCache
from scratch_game.models import PlayRecord


def make_record(username="bob", prize=58, date=TODAY, age_hours=1.0, scratched=False):
    return PlayRecord(username=username, agent="HG07", prize=prize, date=date,
                      timestamp=NOW - timedelta(hours=age_hours), is_scratched=scratched)


def test_save_replaces_record_for_same_user_and_day(cache):
    cache.save_record(make_record(username="Bob", prize=58))
    cache.save_record(make_record(username="bob", prize=58, scratched=True))
    cache.save_record(make_record(username="bob", prize=88, date="2026-02-09"))

    records = cache.all_records()
    assert len(records) == 2
    assert cache.get_record("BOB", TODAY).is_scratched is True


def test_latest_index_tracks_most_recent_save(cache):
    cache.save_record(make_record(date="2026-02-09", prize=38))
    cache.save_record(make_record(date=TODAY, prize=88))

    assert cache.get_latest_record("Bob").prize == 88


def test_valid_record_respects_expiry_and_day(cache):
    cache.save_record(make_record(age_hours=7.9))
    assert cache.get_valid_record("bob", TODAY, NOW) is not None

    cache.save_record(make_record(age_hours=8.1))
    assert cache.get_valid_record("bob", TODAY, NOW) is None

    assert cache.get_valid_record("bob", "2026-02-11", NOW) is None


def test_revealed_record_ignores_expiry_window(cache):
    cache.save_record(make_record(age_hours=20, scratched=True))

    valid = cache.get_valid_record("bob", TODAY, NOW)
    assert valid is not None
    assert valid.is_scratched is True


def test_unrevealed_save_never_replaces_revealed_record(cache):
    cache.save_record(make_record(prize=88, age_hours=9, scratched=True))

    kept = cache.save_record(make_record(prize=58, age_hours=0))

    assert kept.prize == 88 and kept.is_scratched is True
    stored = cache.get_record("bob", TODAY)
    assert stored.prize == 88 and stored.is_scratched is True
    assert cache.get_latest_record("bob").is_scratched is True


def test_malformed_json_degrades_to_empty():
    kv = MemoryKeyValueStore({
        config.RECORDS_KEY: b"{not json",
        config.LATEST_BY_USER_KEY: b"\xff\xfe",
        config.PRIZE_CATALOG_KEY: b"[oops",
    })
    cache = LocalCache(kv)

    assert cache.all_records() == []
    assert cache.get_latest_record("bob") is None
    assert cache.get_prizes() == [38, 58, 88]

    cache.save_record(make_record())
    assert cache.get_record("bob", TODAY).prize == 58


def test_prize_catalog_filters_non_numeric(cache):
    cache.kv.set(config.PRIZE_CATALOG_KEY, b'[38, "58", "abc", null, 88.0]')

    assert cache.get_prizes() == [38, 58, 88]


def test_prize_catalog_defaults_when_missing(cache):
    assert cache.get_prizes() == [38, 58, 88]


def test_store_config_prefers_persisted_value(cache, monkeypatch):
    monkeypatch.setattr(config, "SHEET_URL", "https://env.example/exec")
    monkeypatch.setattr(config, "SHEET_ENABLED", True)
    assert cache.get_store_config() == {'sheet_url': "https://env.example/exec", 'enabled': True}

    cache.save_store_config(" https://saved.example/exec ", enabled=False)
    assert cache.get_store_config() == {'sheet_url': "https://saved.example/exec", 'enabled': False}


def test_sql_store_persists_across_cache_instances():
    engine = create_engine("sqlite://")
    first = LocalCache(SQLKeyValueStore(engine))
    first.save_record(make_record())
    first.save_record(make_record(scratched=True))

    reloaded = LocalCache(SQLKeyValueStore(engine))
    record = reloaded.get_valid_record("bob", TODAY, NOW)

    assert record is not None
    assert record.is_scratched is True
    assert reloaded.kv.count() == 2
