"""
Reconciliation Engine
Decides whether a participant may start today's game, which existing record
must be resumed, and when a new record is created

Sources, in order:
1. Ledger rows (authoritative, possibly duplicated, possibly stale)
2. Local cache (honored only for today's records inside the expiry window)
3. A fresh record with a prize drawn from the catalog

A ledger outage is not an error for the participant: evaluation falls back to
the local cache only (fail-open).
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from .errors import StoreUnavailable
from .models import PlayRecord, game_now, normalize_username, today_string

logger = logging.getLogger(__name__)

FRESH = 'fresh'
RESUME = 'resume'
BLOCKED = 'blocked'

SOURCE_REMOTE = 'remote'
SOURCE_LOCAL = 'local'
SOURCE_NEW = 'new'


@dataclass
class Eligibility:
    """Result of an eligibility check"""
    outcome: str
    record: PlayRecord
    source: str
    ip_flagged: bool = False
    flagged_username: Optional[str] = None
    store_reachable: bool = True

    @property
    def is_fresh(self) -> bool:
        return self.outcome == FRESH

    @property
    def is_resume(self) -> bool:
        return self.outcome == RESUME

    @property
    def is_blocked(self) -> bool:
        return self.outcome == BLOCKED


def select_canonical(records: Iterable[PlayRecord], username, date: str) -> Optional[PlayRecord]:
    """
    Canonical record for (username, date)

    Several physical rows may exist for one identity; the one with the most
    recent timestamp wins (first seen wins an exact tie).
    """
    canonical = None
    for record in records:
        if not record.matches(username, date):
            continue
        if canonical is None or record.timestamp > canonical.timestamp:
            canonical = record
    return canonical


def find_ip_conflict(records: Iterable[PlayRecord], ip: str, username, date: str) -> Optional[PlayRecord]:
    """Scratched record from today with the same IP under a different username"""
    if not ip:
        return None
    user_key = normalize_username(username)
    for record in records:
        if (record.ip == ip and record.date == date and record.is_scratched
                and record.user_key != user_key):
            return record
    return None


class ReconciliationEngine:
    """Merges ledger and local cache state into one eligibility outcome"""

    def __init__(self, store, cache, catalog, ip_resolver=None, publisher=None):
        self.store = store
        self.cache = cache
        self.catalog = catalog
        self.ip_resolver = ip_resolver
        self.publisher = publisher

    async def _resolve_ip(self) -> str:
        if self.ip_resolver is None:
            return ''
        return await self.ip_resolver.resolve()

    async def resolve_eligibility(self, username, agent='', today: Optional[str] = None,
                                  now: Optional[datetime] = None) -> Eligibility:
        """
        Resolve today's game for a participant

        Args:
            username: login name (stored with original casing, compared lowercased)
            agent: agent code stored on a fresh record
            today: game day (defaults to the configured calendar's today)
            now: current instant (defaults to the wall clock)

        Returns:
            Eligibility: BLOCKED (already revealed), RESUME (started, not
            revealed) or FRESH (new record created and cached)
        """
        now = now or game_now()
        today = today or today_string(now)
        display_name = str(username or '').strip()
        user_key = normalize_username(display_name)

        ip = await self._resolve_ip()

        remote = None
        try:
            remote = await self.store.fetch_all()
        except StoreUnavailable as e:
            logger.warning(f"⚠️ Ledger unavailable, checking local cache only for {display_name}: {e}")

        flag_source = remote if remote is not None else self.cache.all_records()
        conflict = find_ip_conflict(flag_source, ip, user_key, today)
        if conflict is not None:
            self._report_ip_conflict(display_name, ip, conflict, today)

        def _result(outcome, record, source):
            return Eligibility(
                outcome=outcome,
                record=record,
                source=source,
                ip_flagged=conflict is not None,
                flagged_username=conflict.username if conflict else None,
                store_reachable=remote is not None,
            )

        if remote is not None:
            record = select_canonical(remote, user_key, today)
            if record is not None:
                record = self._adopt_remote(record)
                outcome = BLOCKED if record.is_scratched else RESUME
                logger.info(f"Ledger has today's record for {display_name}: {outcome} (prize {record.prize})")
                return _result(outcome, record, SOURCE_REMOTE)

        cached = self.cache.get_valid_record(user_key, today, now)
        if cached is not None:
            outcome = BLOCKED if cached.is_scratched else RESUME
            logger.info(f"Local cache has today's record for {display_name}: {outcome} (prize {cached.prize})")
            return _result(outcome, cached, SOURCE_LOCAL)

        record = PlayRecord(
            username=display_name,
            agent=str(agent or ''),
            prize=self.catalog.draw(),
            date=today,
            timestamp=now,
            is_scratched=False,
            is_claimed=False,
            ip=ip,
        )
        # Ledger is written at reveal time only
        kept = self.cache.save_record(record)
        if kept.is_scratched:
            return _result(BLOCKED, kept, SOURCE_LOCAL)
        logger.info(f"🎟️ New game for {display_name} on {today} (prize {record.prize})")
        return _result(FRESH, record, SOURCE_NEW)

    def _adopt_remote(self, record: PlayRecord) -> PlayRecord:
        """
        Mirror a ledger record into the local cache

        A local reveal the ledger has not caught up with is kept, since the
        scratched flag never reverts.
        """
        local = self.cache.get_record(record.user_key, record.date)
        if local is not None and local.is_scratched and not record.is_scratched:
            logger.debug(f"Keeping local revealed record for {record.username}/{record.date}")
            return local
        self.cache.save_record(record)
        return record

    def _report_ip_conflict(self, username, ip, conflict: PlayRecord, today):
        logger.warning(f"🚩 IP {ip} already revealed today's card as '{conflict.username}' "
                       f"(now logging in as '{username}')")
        if self.publisher is not None:
            self.publisher.publish_ip_flag(username, ip, conflict.username, today)
