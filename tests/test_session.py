"""
Test Session Controller
Full login -> scratch -> reveal -> re-login flows
"""

import asyncio

import pytest

from conftest import FakeRecordStore, PickRng, scratch_rows
from scratch_game.errors import InvalidLogin, LoginInProgress
from scratch_game.ip_resolver import StaticIpResolver
from scratch_game.models import today_string
from scratch_game.prize_catalog import PrizeCatalog
from scratch_game.reconciliation import BLOCKED as OUTCOME_BLOCKED, FRESH
from scratch_game.reconciliation import ReconciliationEngine
from scratch_game.session import BLOCKED, ELIGIBLE, LOGGED_OUT, REVEALED, SessionController


def build_session(cache, store, prize=58, publisher=None):
    cache.save_prizes([38, 58, 88])
    catalog = PrizeCatalog(cache, rng=PickRng(prize))
    engine = ReconciliationEngine(store, cache, catalog, StaticIpResolver("198.51.100.4"))
    return SessionController(engine, store, cache, catalog=catalog, publisher=publisher)


def test_new_player_reveal_then_blocked_on_relogin(cache):
    store = FakeRecordStore()
    reveals = []

    class Publisher:
        def publish_reveal(self, username, prize, date):
            reveals.append((username, prize))

    session = build_session(cache, store, publisher=Publisher())

    async def scenario():
        result = await session.login("bob", "07")
        assert result.outcome == FRESH
        assert result.record.prize == 58
        assert result.record.agent == "HG07"
        assert result.record.is_scratched is False
        assert session.state == ELIGIBLE

        assert scratch_rows(session) is True
        assert session.state == REVEALED
        assert session.record.is_scratched is True
        # Cached before the push settles
        assert cache.get_record("bob", today_string()).is_scratched is True

        await session.wait_pending()
        session.logout()

        again = await session.login("Bob", "07")
        return again

    again = asyncio.run(scenario())

    assert len(store.upserts) == 1
    assert store.upserts[0].is_scratched is True
    assert session.push_results == [(("bob", today_string()), True)]
    assert reveals == [("bob", 58)]
    assert again.outcome == OUTCOME_BLOCKED
    assert again.record.prize == 58
    assert session.state == BLOCKED


def test_reveal_survives_failed_push(cache):
    store = FakeRecordStore(upsert_ok=False)
    session = build_session(cache, store)

    async def scenario():
        await session.login("bob", "07")
        scratch_rows(session)
        await session.wait_pending()
        session.logout()
        return await session.login("bob", "07")

    again = asyncio.run(scenario())

    assert len(store.upserts) == 1
    assert session.push_results[0][1] is False
    assert cache.get_record("bob", today_string()).is_scratched is True
    assert again.outcome == OUTCOME_BLOCKED


def test_reveal_visible_locally_when_ledger_lags(cache):
    store = FakeRecordStore(visible=False)
    session = build_session(cache, store)

    async def scenario():
        await session.login("bob", "07")
        scratch_rows(session)
        await session.wait_pending()
        session.logout()
        return await session.login("bob", "07")

    again = asyncio.run(scenario())

    assert store.rows == []
    assert again.outcome == OUTCOME_BLOCKED
    assert again.source == "local"


def test_blocked_session_ignores_scratching(cache):
    store = FakeRecordStore()
    session = build_session(cache, store)

    async def scenario():
        await session.login("bob", "07")
        scratch_rows(session)
        await session.wait_pending()
        session.logout()
        await session.login("bob", "07")
        return scratch_rows(session)

    assert asyncio.run(scenario()) is False
    assert session.state == BLOCKED
    assert session.message
    assert len(store.upserts) == 1


def test_reveal_fires_only_once(cache):
    store = FakeRecordStore()
    session = build_session(cache, store)

    async def scenario():
        await session.login("bob", "07")
        scratch_rows(session)
        scratch_rows(session)
        session.detector.on_reveal()
        await session.wait_pending()

    asyncio.run(scenario())

    assert len(store.upserts) == 1


def test_partial_scratch_does_not_reveal(cache):
    store = FakeRecordStore()
    session = build_session(cache, store)

    async def scenario():
        await session.login("bob", "07")
        return scratch_rows(session, rows=(20,))

    assert asyncio.run(scenario()) is False
    assert session.state == ELIGIBLE
    assert store.upserts == []
    assert cache.get_record("bob", today_string()).is_scratched is False


def test_scratch_outside_event_loop_fails_before_reveal(cache):
    store = FakeRecordStore()
    session = build_session(cache, store)
    asyncio.run(session.login("bob", "07"))

    with pytest.raises(RuntimeError):
        scratch_rows(session)

    assert session.state == ELIGIBLE
    assert session.record.is_scratched is False
    assert cache.get_record("bob", today_string()).is_scratched is False
    assert store.upserts == []

    async def scenario():
        revealed = scratch_rows(session)
        await session.wait_pending()
        return revealed

    assert asyncio.run(scenario()) is True
    assert session.state == REVEALED
    assert len(store.upserts) == 1


def test_second_concurrent_login_is_rejected(cache):
    store = FakeRecordStore()
    session = build_session(cache, store)

    async def scenario():
        store.gate = asyncio.Event()
        first = asyncio.ensure_future(session.login("bob", "07"))
        await asyncio.sleep(0)
        assert session.is_verifying
        with pytest.raises(LoginInProgress):
            await session.login("bob", "07")
        store.gate.set()
        return await first

    result = asyncio.run(scenario())

    assert result.outcome == FRESH
    assert store.fetch_calls == 1
    assert session.state == ELIGIBLE


@pytest.mark.parametrize("username, agent", [
    ("", "07"),
    ("bob", ""),
    ("bob smith", "07"),
    ("bob", "7a"),
    ("bob", "1234"),
])
def test_invalid_login_is_rejected(cache, username, agent):
    session = build_session(cache, FakeRecordStore())

    with pytest.raises(InvalidLogin):
        asyncio.run(session.login(username, agent))
    assert session.state == LOGGED_OUT


def test_logout_keeps_persisted_record(cache):
    store = FakeRecordStore()
    session = build_session(cache, store)

    asyncio.run(session.login("bob", "07"))
    before = cache.get_record("bob", today_string())
    session.logout()

    assert session.state == LOGGED_OUT
    assert session.record is None
    assert cache.get_record("bob", today_string()) == before


def test_start_refreshes_prize_catalog(cache):
    store = FakeRecordStore(prizes=[100, 200])
    session = build_session(cache, store)

    async def scenario():
        session.start()
        await session.wait_pending()

    asyncio.run(scenario())

    assert cache.get_prizes() == [100, 200]
