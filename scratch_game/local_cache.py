"""
Local Cache
Persists play records, the prize catalog and store settings in a KeyValueStore

Layout (JSON values):
- play_records: list of records, one per (normalized username, date)
- play_records_latest: {normalized username: most recent record}
- prize_catalog: list of integers
- store_config: {"sheet_url": str, "enabled": bool}
"""

import json
import logging
from datetime import datetime
from typing import List, Optional

from . import config
from .errors import MalformedLocalState
from .kv_store import KeyValueStore
from .models import PlayRecord, normalize_username, game_now

logger = logging.getLogger(__name__)


class LocalCache:
    """Synchronous record cache keyed by (username, date)"""

    def __init__(self, kv: KeyValueStore, expiry_hours: float = config.RECORD_EXPIRY_HOURS):
        self.kv = kv
        self.expiry_seconds = expiry_hours * 3600

    # --- raw JSON access ---

    def _load(self, key, default):
        raw = self.kv.get(key)
        if raw is None:
            return default
        try:
            return self._decode(key, raw)
        except MalformedLocalState as e:
            logger.warning(f"⚠️ {e} - using default")
            return default

    @staticmethod
    def _decode(key, raw):
        try:
            return json.loads(raw.decode('utf-8'))
        except (UnicodeDecodeError, ValueError) as e:
            raise MalformedLocalState(f"Cache entry '{key}' is not valid JSON: {e}") from e

    def _dump(self, key, value):
        self.kv.set(key, json.dumps(value).encode('utf-8'))

    # --- play records ---

    def all_records(self) -> List[PlayRecord]:
        rows = self._load(config.RECORDS_KEY, [])
        if not isinstance(rows, list):
            logger.warning(f"⚠️ Cache entry '{config.RECORDS_KEY}' is not a list - ignoring")
            return []
        return [r for r in (PlayRecord.from_row(row) for row in rows) if r is not None]

    def save_record(self, record: PlayRecord):
        """
        Replace the record for (username, date) and update the per-user index

        Both indexes are written before returning so a reload observes the
        record immediately. A revealed record is never replaced by an
        unrevealed one for the same (username, date); the kept record is
        returned.
        """
        existing = self.get_record(record.user_key, record.date)
        if existing is not None and existing.is_scratched and not record.is_scratched:
            logger.warning(f"⚠️ Refusing to overwrite revealed record {existing.username}/{existing.date}")
            return existing

        records = [r for r in self.all_records() if r.identity != record.identity]
        records.append(record)
        self._dump(config.RECORDS_KEY, [r.to_dict() for r in records])

        latest = self._load(config.LATEST_BY_USER_KEY, {})
        if not isinstance(latest, dict):
            latest = {}
        latest[record.user_key] = record.to_dict()
        self._dump(config.LATEST_BY_USER_KEY, latest)
        return record

    def get_record(self, username, date: str) -> Optional[PlayRecord]:
        """Exact (username, date) lookup with no expiry rule"""
        for record in self.all_records():
            if record.matches(username, date):
                return record
        return None

    def get_latest_record(self, username) -> Optional[PlayRecord]:
        latest = self._load(config.LATEST_BY_USER_KEY, {})
        if not isinstance(latest, dict):
            return None
        return PlayRecord.from_row(latest.get(normalize_username(username)))

    def get_valid_record(self, username, today: str, now: Optional[datetime] = None) -> Optional[PlayRecord]:
        """
        Cached record that may still be honored today

        A record counts only if it belongs to today. The expiry window applies
        to in-progress games only; a revealed record for today always counts.
        """
        now = now or game_now()
        candidate = self.get_record(username, today) or self.get_latest_record(username)
        if candidate is None:
            return None
        if candidate.date != today:
            logger.debug(f"Cached record for {candidate.username} is from {candidate.date} - stale")
            return None
        if not candidate.is_scratched and candidate.age_seconds(now) > self.expiry_seconds:
            logger.info(f"Cached record for {candidate.username} is older than "
                        f"{self.expiry_seconds / 3600:g}h - stale")
            return None
        return candidate

    # --- prize catalog ---

    def get_prizes(self) -> List[int]:
        raw = self._load(config.PRIZE_CATALOG_KEY, None)
        if not isinstance(raw, list):
            return list(config.DEFAULT_PRIZES)
        prizes = []
        for value in raw:
            try:
                prizes.append(int(float(value)))
            except (TypeError, ValueError, OverflowError):
                continue
        return prizes

    def save_prizes(self, prizes):
        self._dump(config.PRIZE_CATALOG_KEY, [int(p) for p in prizes])

    # --- store settings ---

    def get_store_config(self) -> dict:
        """Persisted ledger settings, falling back to the environment"""
        stored = self._load(config.STORE_CONFIG_KEY, {})
        if not isinstance(stored, dict):
            stored = {}
        sheet_url = str(stored.get('sheet_url') or config.SHEET_URL).strip()
        enabled = stored.get('enabled')
        if not isinstance(enabled, bool):
            enabled = config.SHEET_ENABLED
        return {'sheet_url': sheet_url, 'enabled': enabled}

    def save_store_config(self, sheet_url: str, enabled: bool = True):
        self._dump(config.STORE_CONFIG_KEY, {'sheet_url': sheet_url.strip(), 'enabled': bool(enabled)})
