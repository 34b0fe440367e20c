"""
Ledger and cache health check script.
Run this to verify the cache database and the spreadsheet ledger are reachable.
"""

import os
import sys
import time

import requests
from dotenv import find_dotenv, load_dotenv
from sqlalchemy.exc import SQLAlchemyError

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# scratch_game.config reads the environment at import time
load_dotenv(find_dotenv(usecwd=True))

from scratch_game import config
from scratch_game.kv_store import SQLKeyValueStore
from scratch_game.local_cache import LocalCache
from scratch_game.models import PlayRecord, today_string

print("🔍 Testing cache database connection...")
print(f"URL: {config.GAME_DATABASE_URL.split('@')[0] if '@' in config.GAME_DATABASE_URL else config.GAME_DATABASE_URL}")

try:
    kv = SQLKeyValueStore(config.GAME_DATABASE_URL)
    cache = LocalCache(kv)
    records = cache.all_records()
    today = today_string()
    print("✅ Cache database connection successful!")
    print(f"  ✅ {kv.count()} keys, {len(records)} cached records "
          f"({sum(1 for r in records if r.date == today)} today)")
    print(f"  🎁 Prize catalog: {cache.get_prizes()}")
except SQLAlchemyError as e:
    print(f"\n❌ Cache database check failed: {e}")
    sys.exit(1)

settings = cache.get_store_config()
if not settings['enabled'] or not settings['sheet_url']:
    print("\n⚠️ Ledger disabled or SHEET_URL not set - skipping ledger check")
    sys.exit(0)

print("\n📋 Checking ledger...")
try:
    response = requests.get(
        settings['sheet_url'],
        params={'type': 'records', '_t': str(int(time.time() * 1000))},
        headers={'Cache-Control': 'no-store'},
        timeout=config.STORE_TIMEOUT_SECONDS,
    )
    response.raise_for_status()
    rows = response.json()
    if not isinstance(rows, list):
        print(f"  ❌ Unexpected response format: {type(rows).__name__}")
        sys.exit(1)
    parsed = [r for r in (PlayRecord.from_row(row) for row in rows) if r is not None]
    identities = {r.identity for r in parsed}
    print(f"  ✅ records: {len(rows)} rows, {len(identities)} distinct (username, date)")
    if len(identities) < len(parsed):
        print(f"  ℹ️ {len(parsed) - len(identities)} duplicate rows (resolved by latest timestamp)")
    print("\n✅ Health check passed!")
except (requests.RequestException, ValueError) as e:
    print(f"\n❌ Ledger check failed: {e}")
    sys.exit(1)
