"""
Record Store Client
Reads and writes play records against the spreadsheet web app that acts as
the authoritative ledger

The ledger has no uniqueness constraint and no read-after-write guarantee:
rows may be duplicated and a fresh write may not show up in the next read.

Settings loaded from the local cache (store_config) with env var fallbacks:
- sheet_url / SHEET_URL: web app endpoint
- enabled / SHEET_ENABLED: master switch for remote reads and writes
"""

import asyncio
import json
import logging
import time
import uuid
from typing import Callable, List, Optional, Set

import aiohttp

from utils.error_helpers import log_exceptions
from utils.logging_config import log_api_call

from . import config
from .errors import StoreUnavailable, StoreWriteFailed
from .models import PlayRecord

logger = logging.getLogger(__name__)

PushCallback = Callable[[PlayRecord, bool], None]


class RecordStoreClient:
    """
    Ledger client

    fetch_all() raises StoreUnavailable instead of returning an empty list when
    the ledger could not be checked, so "no rows" always means "no data".
    """

    def __init__(self, cache=None, sheet_url=None, enabled=None,
                 timeout=config.STORE_TIMEOUT_SECONDS,
                 push_attempts=config.RECORD_PUSH_ATTEMPTS,
                 push_backoff=config.RECORD_PUSH_BACKOFF_SECONDS,
                 publisher=None):
        self.cache = cache
        self._sheet_url_override = sheet_url
        self._enabled_override = enabled
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.push_attempts = max(1, int(push_attempts))
        self.push_backoff = push_backoff
        self.publisher = publisher
        self._pending: Set[asyncio.Task] = set()

        self._load_settings()

    def _load_settings(self):
        """Load ledger settings from the local cache or environment variables"""
        if self.cache is not None:
            stored = self.cache.get_store_config()
            self.sheet_url = stored['sheet_url']
            self.enabled = stored['enabled']
        else:
            self.sheet_url = config.SHEET_URL
            self.enabled = config.SHEET_ENABLED

        if self._sheet_url_override is not None:
            self.sheet_url = self._sheet_url_override.strip()
        if self._enabled_override is not None:
            self.enabled = bool(self._enabled_override)

    def refresh_settings(self):
        """Reload settings from the cache"""
        self._load_settings()
        logger.info(f"🔄 Record store settings refreshed - URL set: {bool(self.sheet_url)}, enabled: {self.enabled}")

    @property
    def is_configured(self) -> bool:
        return bool(self.enabled and self.sheet_url)

    # --- reads ---

    async def _get_table(self, table: str):
        """GET one ledger table as parsed JSON, bypassing every cache layer"""
        params = {
            'type': table,
            '_t': f"{int(time.time() * 1000)}{uuid.uuid4().hex[:8]}",
        }
        headers = {'Cache-Control': 'no-store'}
        started = time.monotonic()
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            async with session.get(self.sheet_url, params=params, headers=headers) as response:
                log_api_call(logger, 'Ledger', f"GET {table}", response.status, time.monotonic() - started)
                if response.status != 200:
                    raise StoreUnavailable(f"Ledger returned status {response.status} for {table}")
                # Apps Script replies with text/html content type
                return await response.json(content_type=None)

    async def fetch_all(self) -> List[PlayRecord]:
        """
        Fetch every play record row in the ledger

        Returns:
            list: parsed records (possibly empty, possibly with duplicates)

        Raises:
            StoreUnavailable: disabled store, network error, bad status or malformed body
        """
        if not self.is_configured:
            raise StoreUnavailable("Record store is disabled or has no URL")

        try:
            data = await self._get_table('records')
        except StoreUnavailable:
            raise
        except asyncio.TimeoutError as e:
            raise StoreUnavailable("Timeout fetching ledger records") from e
        except (aiohttp.ClientError, ValueError) as e:
            raise StoreUnavailable(f"Error fetching ledger records: {e}") from e

        if not isinstance(data, list):
            raise StoreUnavailable(f"Unexpected ledger response format: {type(data).__name__}")

        records = [r for r in (PlayRecord.from_row(row) for row in data) if r is not None]
        if len(records) != len(data):
            logger.debug(f"Skipped {len(data) - len(records)} ledger rows without a username")
        return records

    async def fetch_prizes(self) -> List[int]:
        """Remote prize catalog; empty list when unavailable"""
        if not self.is_configured:
            return []
        try:
            data = await self._get_table('prizes')
        except (StoreUnavailable, asyncio.TimeoutError, aiohttp.ClientError, ValueError) as e:
            logger.warning(f"Failed to fetch prizes: {e}")
            return []
        if not isinstance(data, list):
            return []

        prizes = []
        for value in data:
            try:
                prizes.append(int(float(value)))
            except (TypeError, ValueError, OverflowError):
                continue
        return prizes

    # --- writes ---

    async def _post(self, form: dict):
        started = time.monotonic()
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(self.sheet_url, data=form) as response:
                    log_api_call(logger, 'Ledger', f"POST {form.get('action')}",
                                 response.status, time.monotonic() - started)
                    if response.status >= 400:
                        raise StoreWriteFailed(f"Ledger returned status {response.status}")
        except asyncio.TimeoutError as e:
            raise StoreWriteFailed("Timeout posting to ledger") from e
        except aiohttp.ClientError as e:
            raise StoreWriteFailed(f"Network error posting to ledger: {e}") from e

    async def upsert(self, record: PlayRecord) -> bool:
        """
        Write a record keyed by (username, date), retrying per the push policy

        The ledger may append instead of update; readers resolve duplicates by
        most recent timestamp.

        Returns:
            bool: True if the ledger accepted the write
        """
        if not self.is_configured:
            logger.debug(f"Record store disabled - not pushing {record.username}/{record.date}")
            return False

        form = record.to_form()
        last_error = None
        for attempt in range(1, self.push_attempts + 1):
            try:
                await self._post(form)
                logger.info(f"✅ Pushed record {record.username}/{record.date} (attempt {attempt})")
                return True
            except StoreWriteFailed as e:
                last_error = e
                logger.warning(f"Push attempt {attempt}/{self.push_attempts} failed for "
                               f"{record.username}/{record.date}: {e}")
                if attempt < self.push_attempts and self.push_backoff > 0:
                    await asyncio.sleep(self.push_backoff * attempt)

        logger.error(f"❌ Giving up on record {record.username}/{record.date}: {last_error}")
        if self.publisher is not None:
            self.publisher.publish_push_failed(record.username, record.date, last_error)
        return False

    async def push_prizes(self, prizes) -> bool:
        """Replace the remote prize catalog and keep a local copy"""
        if not self.is_configured:
            return False
        try:
            await self._post({'action': 'save_prizes', 'prizes': json.dumps([int(p) for p in prizes])})
        except StoreWriteFailed as e:
            logger.error(f"Sync prizes failed: {e}")
            return False
        if self.cache is not None:
            self.cache.save_prizes(prizes)
        return True

    # --- fire-and-forget ---

    def push_in_background(self, record: PlayRecord, on_result: Optional[PushCallback] = None) -> asyncio.Task:
        """
        Dispatch upsert(record) as a detached task

        The caller does not await it; the outcome is delivered to on_result.
        Must be called from a running event loop.
        """
        task = asyncio.get_running_loop().create_task(self.upsert(record))
        self._pending.add(task)

        def _done(t: asyncio.Task):
            self._pending.discard(t)
            if t.cancelled():
                ok = False
            elif t.exception() is not None:
                logger.error(f"Background push for {record.username} crashed: {t.exception()}")
                ok = False
            else:
                ok = t.result()
            if on_result is not None:
                with log_exceptions("push result callback", username=record.username, date=record.date):
                    on_result(record, ok)

        task.add_done_callback(_done)
        return task

    @property
    def pending_pushes(self) -> int:
        return len(self._pending)

    async def wait_pending(self):
        """Wait for in-flight background pushes (shutdown and tests)"""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
