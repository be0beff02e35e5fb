from __future__ import annotations

import logging
import random
from typing import Iterable, List, Optional

from .battleship import Position
from .config import BOARD_SIZE

logger = logging.getLogger(__name__)


class TargetingStrategy:
    """
    Uniform random hunt without repeats.

    Every square of the board starts in the untried pool; each call to
    generate_shot() draws one uniformly at random and removes it, so no
    position is ever returned twice until reset(). An exhausted pool is
    refilled instead of raising.
    """

    # ------------------------------------------------------------------ #
    # Construction
    # ------------------------------------------------------------------ #
    def __init__(self, size: int = BOARD_SIZE, *, rng: Optional[random.Random] = None) -> None:
        self.size = size
        self._rng = rng or random.Random()
        self._untried: List[Position] = []
        self.reset()

    def reset(self) -> None:
        self._untried = [Position(r, c) for r in range(self.size) for c in range(self.size)]

    # ------------------------------------------------------------------ #
    # Shot selection
    # ------------------------------------------------------------------ #
    def generate_shot(self) -> Position:
        if not self._untried:
            logger.warning("Targeting pool exhausted – refilling all %d squares", self.size * self.size)
            self.reset()
        # swap-remove keeps the draw O(1); order of the pool is irrelevant
        idx = self._rng.randrange(len(self._untried))
        last = self._untried.pop()
        if idx == len(self._untried):
            return last
        shot, self._untried[idx] = self._untried[idx], last
        return shot

    # ------------------------------------------------------------------ #
    # Persistence helpers
    # ------------------------------------------------------------------ #
    @property
    def remaining(self) -> List[Position]:
        return list(self._untried)

    def restore(self, positions: Iterable[Position]) -> None:
        self._untried = list(positions)
