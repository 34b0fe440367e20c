"""
Prize Catalog
Active prize amounts, cached locally and refreshed from the ledger
"""

import logging
import random
from typing import List

from . import config
from .errors import NoEligiblePrizeConfigured

logger = logging.getLogger(__name__)


class PrizeCatalog:
    """Draws one prize uniformly at random from the cached catalog"""

    def __init__(self, cache, rng=None, fallback_prize=config.FALLBACK_PRIZE):
        self.cache = cache
        self.rng = rng or random.Random()
        self.fallback_prize = fallback_prize

    def current_prizes(self) -> List[int]:
        """Ordered list of positive prize amounts"""
        return [p for p in self.cache.get_prizes() if p > 0]

    def _eligible_prizes(self) -> List[int]:
        prizes = self.current_prizes()
        if not prizes:
            raise NoEligiblePrizeConfigured("Prize catalog has no positive amounts")
        return prizes

    def draw(self) -> int:
        """Pick a prize; never fails (falls back to a fixed amount)"""
        try:
            prizes = self._eligible_prizes()
        except NoEligiblePrizeConfigured as e:
            logger.warning(f"⚠️ {e} - using fallback prize {self.fallback_prize}")
            return self.fallback_prize
        return self.rng.choice(prizes)

    async def refresh(self, store) -> bool:
        """
        Replace the cached catalog with the ledger's, if it has one

        Returns:
            bool: True if the cache was updated
        """
        prizes = await store.fetch_prizes()
        if not prizes:
            logger.debug("No remote prize catalog - keeping cached prizes")
            return False
        self.cache.save_prizes(prizes)
        logger.info(f"🎁 Prize catalog refreshed: {prizes}")
        return True
