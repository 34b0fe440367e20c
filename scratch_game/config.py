"""
Scratch Game Configuration
All configurable parameters for the daily scratch-card game
"""

import os

# Remote ledger (spreadsheet web app)
SHEET_URL = os.getenv("SHEET_URL", "").strip()
SHEET_ENABLED = os.getenv("SHEET_ENABLED", "true").strip().lower() in ("1", "true", "yes", "on")
STORE_TIMEOUT_SECONDS = float(os.getenv("STORE_TIMEOUT_SECONDS", "15"))

# Reveal push retry policy (owned by the record store client)
RECORD_PUSH_ATTEMPTS = int(os.getenv("RECORD_PUSH_ATTEMPTS", "3"))
RECORD_PUSH_BACKOFF_SECONDS = float(os.getenv("RECORD_PUSH_BACKOFF_SECONDS", "1.0"))

# Durable local cache
GAME_DATABASE_URL = os.getenv("GAME_DATABASE_URL", "sqlite:///scratch_game.db")
if GAME_DATABASE_URL.startswith("postgres://"):
    GAME_DATABASE_URL = GAME_DATABASE_URL.replace("postgres://", "postgresql://", 1)

# Game day calendar (empty = process local time)
GAME_TIMEZONE = os.getenv("GAME_TIMEZONE", "").strip()

# Client IP lookup
IP_LOOKUP_URL = os.getenv("IP_LOOKUP_URL", "https://api.ipify.org?format=json")
IP_LOOKUP_TIMEOUT_SECONDS = 5

# Eligibility rules
RECORD_EXPIRY_HOURS = 8  # cached in-progress game survives at most 8 hours

# Prize catalog
DEFAULT_PRIZES = [38, 58, 88]
FALLBACK_PRIZE = 38

# Login
AGENT_PREFIX = "HG"
AGENT_MAX_DIGITS = 3

# Scratch card surface
CARD_WIDTH = 360
CARD_HEIGHT = 180
SCRATCH_RADIUS = 20
REVEAL_THRESHOLD_PERCENT = 40  # auto reveal once coverage is strictly above this

# Local cache keys
RECORDS_KEY = "play_records"
LATEST_BY_USER_KEY = "play_records_latest"
PRIZE_CATALOG_KEY = "prize_catalog"
STORE_CONFIG_KEY = "store_config"
