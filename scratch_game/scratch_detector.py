"""
Scratch-Reveal Detector
Tracks which part of the scratch card's cover has been rubbed off and fires a
single reveal signal once enough of the prize is visible
"""

import logging
from typing import Callable, Optional

from . import config

logger = logging.getLogger(__name__)


class ScratchRevealDetector:
    """
    Coverage mask over a width x height surface, one byte per unit cell

    Usage:
        detector = ScratchRevealDetector(on_reveal=handle_reveal)
        detector.begin_stroke()
        detector.move_to(120, 80)
        detector.end_stroke()   # coverage is measured here, not per move
    """

    def __init__(self, width=config.CARD_WIDTH, height=config.CARD_HEIGHT,
                 radius=config.SCRATCH_RADIUS, threshold=config.REVEAL_THRESHOLD_PERCENT,
                 on_reveal: Optional[Callable[[], None]] = None, revealed=False):
        if width <= 0 or height <= 0:
            raise ValueError("Surface dimensions must be positive")
        self.width = int(width)
        self.height = int(height)
        self.radius = radius
        self.threshold = threshold
        self.on_reveal = on_reveal
        self._mask = bytearray(self.width * self.height)
        self._stroking = False
        self.revealed = False

        if revealed:
            # Card already revealed earlier: show it clear, never fire again
            self._clear()
            self.revealed = True

    @property
    def total_area(self) -> int:
        return self.width * self.height

    def apply_scratch(self, x, y):
        """Uncover the disk of `radius` around (x, y); never re-covers"""
        if self.revealed:
            return
        r = self.radius
        r_sq = r * r
        x0 = max(0, int(x - r))
        x1 = min(self.width - 1, int(x + r))
        y0 = max(0, int(y - r))
        y1 = min(self.height - 1, int(y + r))
        for py in range(y0, y1 + 1):
            dy = py + 0.5 - y
            dy_sq = dy * dy
            if dy_sq > r_sq:
                continue
            row = py * self.width
            for px in range(x0, x1 + 1):
                dx = px + 0.5 - x
                if dx * dx + dy_sq <= r_sq:
                    self._mask[row + px] = 1

    def measure_coverage(self) -> float:
        """Uncovered share of the surface in percent (full scan of the mask)"""
        return self._mask.count(1) * 100.0 / self.total_area

    # --- gesture handling ---

    def begin_stroke(self):
        self._stroking = True

    def move_to(self, x, y):
        """Pointer sample; only scratches while a stroke is active"""
        if self._stroking:
            self.apply_scratch(x, y)

    def end_stroke(self) -> bool:
        """
        Finish a stroke and check the reveal threshold

        Returns:
            bool: True if this call fired the reveal
        """
        self._stroking = False
        if self.revealed:
            return False

        coverage = self.measure_coverage()
        if coverage <= self.threshold:
            logger.debug(f"Coverage {coverage:.1f}% - below {self.threshold}%")
            return False

        logger.info(f"✨ Coverage {coverage:.1f}% passed {self.threshold}% - revealing")
        self.revealed = True
        self._clear()
        if self.on_reveal is not None:
            self.on_reveal()
        return True

    def _clear(self):
        self._mask = bytearray(b'\x01' * self.total_area)
