"""
Play one scratch-card session from the command line

Usage:
    python play.py --username bob --agent 07
    python play.py --username bob --agent 07 --coverage 60 --memory
"""

import argparse
import asyncio
import sys

from dotenv import find_dotenv, load_dotenv

# scratch_game.config reads the environment at import time
load_dotenv(find_dotenv(usecwd=True))

from scratch_game import config
from scratch_game.errors import GameError
from scratch_game.ip_resolver import IpResolver, StaticIpResolver
from scratch_game.kv_store import MemoryKeyValueStore, SQLKeyValueStore
from scratch_game.local_cache import LocalCache
from scratch_game.prize_catalog import PrizeCatalog
from scratch_game.reconciliation import ReconciliationEngine
from scratch_game.record_store import RecordStoreClient
from scratch_game.session import REVEALED, SessionController
from utils.logging_config import log_error, setup_logging
from utils.redis_publisher import GameEventPublisher


def sweep(session, coverage):
    """One horizontal stroke per band until the card reveals or reaches `coverage` percent"""
    band = config.SCRATCH_RADIUS * 2
    for y in range(config.SCRATCH_RADIUS, config.CARD_HEIGHT + band, band):
        session.begin_stroke()
        for x in range(0, config.CARD_WIDTH + 1, config.SCRATCH_RADIUS // 2):
            session.move_to(x, y)
        # Coverage is only checked between strokes
        if session.end_stroke() or session.detector.measure_coverage() >= coverage:
            break


async def run(args):
    kv = MemoryKeyValueStore() if args.memory else SQLKeyValueStore(config.GAME_DATABASE_URL)
    cache = LocalCache(kv)
    publisher = GameEventPublisher()
    store = RecordStoreClient(cache=cache, publisher=publisher)
    catalog = PrizeCatalog(cache)
    resolver = StaticIpResolver(args.ip) if args.ip is not None else IpResolver()
    engine = ReconciliationEngine(store, cache, catalog, resolver, publisher=publisher)
    session = SessionController(engine, store, cache, catalog=catalog, publisher=publisher)

    session.start()
    result = await session.login(args.username, args.agent)
    print(f"🎟️ {result.record.username} ({result.record.agent}) on {result.record.date}: "
          f"{result.outcome} via {result.source}")
    if result.ip_flagged:
        print(f"🚩 IP already used today by {result.flagged_username}")
    if session.message:
        print(f"   {session.message}")

    if args.coverage > 0:
        sweep(session, args.coverage)
        print(f"   Coverage: {session.detector.measure_coverage():.1f}%")

    if session.state == REVEALED or result.is_blocked:
        print(f"💰 Prize: ${session.record.prize}")
    else:
        print("   Card not revealed yet")

    await session.wait_pending()
    for identity, ok in session.push_results:
        print(f"   Ledger push {identity}: {'✅' if ok else '❌'}")
    session.logout()


def main():
    parser = argparse.ArgumentParser(description="Play one scratch-card session")
    parser.add_argument("--username", required=True)
    parser.add_argument("--agent", required=True, help="Agent code digits (HG prefix is added)")
    parser.add_argument("--coverage", type=float, default=45.0,
                        help="Scratch until this percent of the card is uncovered (0 = don't scratch)")
    parser.add_argument("--ip", default=None, help="Use this client IP instead of looking it up")
    parser.add_argument("--memory", action="store_true", help="Use an in-memory cache instead of the database")
    parser.add_argument("--log-level", default=None)
    args = parser.parse_args()

    logger = setup_logging('play', args.log_level)

    try:
        asyncio.run(run(args))
    except GameError as e:
        log_error(logger, e, "Session failed")
        sys.exit(1)


if __name__ == "__main__":
    main()
