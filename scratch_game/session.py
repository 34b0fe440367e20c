"""
Session Controller
Drives one participant session: login -> eligible -> revealed

State machine:
    logged_out --login--> verifying --> eligible | blocked
    eligible --detector threshold--> revealed
    any --logout--> logged_out

The reveal transition is only reachable through the scratch detector. On
reveal the record is cached synchronously and pushed to the ledger as a
detached task whose outcome never rolls the reveal back.
"""

import asyncio
import logging
from typing import Optional

from .errors import LoginInProgress
from .models import PlayRecord, normalize_login
from .reconciliation import Eligibility
from .scratch_detector import ScratchRevealDetector

logger = logging.getLogger(__name__)

LOGGED_OUT = 'logged_out'
VERIFYING = 'verifying'
ELIGIBLE = 'eligible'
BLOCKED = 'blocked'
REVEALED = 'revealed'

ALREADY_PLAYED_MESSAGE = "Today's play has been used. Here is today's result."


class SessionController:
    """One session per client; all methods run on the event loop thread"""

    def __init__(self, engine, store, cache, catalog=None, publisher=None,
                 detector_factory=ScratchRevealDetector):
        self.engine = engine
        self.store = store
        self.cache = cache
        self.catalog = catalog
        self.publisher = publisher
        self.detector_factory = detector_factory

        self.state = LOGGED_OUT
        self.eligibility: Optional[Eligibility] = None
        self.record: Optional[PlayRecord] = None
        self.detector: Optional[ScratchRevealDetector] = None
        self.message = ''
        self.push_results = []
        self._refresh_task: Optional[asyncio.Task] = None

    def start(self) -> Optional[asyncio.Task]:
        """Refresh the prize catalog in the background"""
        if self.catalog is None:
            return None
        self._refresh_task = asyncio.get_running_loop().create_task(self.catalog.refresh(self.store))
        self._refresh_task.add_done_callback(self._on_refresh_done)
        return self._refresh_task

    @staticmethod
    def _on_refresh_done(task: asyncio.Task):
        if not task.cancelled() and task.exception() is not None:
            logger.warning(f"Prize catalog refresh failed: {task.exception()}")

    @property
    def is_verifying(self) -> bool:
        return self.state == VERIFYING

    async def login(self, username, agent_digits) -> Eligibility:
        """
        Verify a participant and open their card

        Raises:
            LoginInProgress: another login is still being verified
            InvalidLogin: missing or malformed username / agent code
        """
        if self.state == VERIFYING:
            raise LoginInProgress("A login is already being verified")

        user, agent = normalize_login(username, agent_digits)

        previous_state = self.state
        self.state = VERIFYING
        self.message = ''
        try:
            result = await self.engine.resolve_eligibility(user, agent)
        except Exception:
            self.state = previous_state
            raise

        self.eligibility = result
        self.record = result.record

        if result.is_blocked:
            self.state = BLOCKED
            self.message = ALREADY_PLAYED_MESSAGE
            self.detector = self.detector_factory(revealed=True)
        else:
            self.state = ELIGIBLE
            self.detector = self.detector_factory(on_reveal=self._handle_reveal)

        logger.info(f"Session {result.record.username}: {previous_state} -> {self.state} "
                    f"({result.outcome} from {result.source})")
        return result

    # --- scratch input (ignored outside the eligible state) ---

    def begin_stroke(self):
        if self.state == ELIGIBLE:
            self.detector.begin_stroke()

    def move_to(self, x, y):
        if self.state == ELIGIBLE:
            self.detector.move_to(x, y)

    def end_stroke(self) -> bool:
        """
        Finish a stroke; returns True if it revealed the card

        Must be called from a running event loop since a reveal dispatches the
        ledger push as a task. Without one, RuntimeError is raised before the
        stroke is measured, leaving the session and cache untouched.
        """
        if self.state != ELIGIBLE:
            return False
        asyncio.get_running_loop()
        return self.detector.end_stroke()

    def _handle_reveal(self):
        if self.state != ELIGIBLE or self.record is None or self.record.is_scratched:
            return

        updated = self.record.scratched()
        self.record = updated
        self.cache.save_record(updated)
        self.state = REVEALED
        logger.info(f"🎉 {updated.username} revealed prize {updated.prize} for {updated.date}")

        if self.publisher is not None:
            self.publisher.publish_reveal(updated.username, updated.prize, updated.date)

        self.store.push_in_background(updated, self._on_push_result)

    def _on_push_result(self, record: PlayRecord, ok: bool):
        self.push_results.append((record.identity, ok))
        if ok:
            logger.debug(f"Ledger confirmed {record.username}/{record.date}")
        else:
            logger.warning(f"Ledger push for {record.username}/{record.date} did not succeed; "
                           f"local record stays revealed")

    def logout(self):
        """Drop in-memory session state; persisted records are untouched"""
        self.state = LOGGED_OUT
        self.eligibility = None
        self.record = None
        self.detector = None
        self.message = ''

    async def wait_pending(self):
        """Wait for background work (catalog refresh, ledger pushes)"""
        if self._refresh_task is not None:
            await asyncio.gather(self._refresh_task, return_exceptions=True)
        await self.store.wait_pending()
