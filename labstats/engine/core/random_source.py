from __future__ import annotations
from typing import Optional
import random

from .constants import _LCG_INCREMENT, _LCG_MODULUS, _LCG_MULTIPLIER


class RandomSource:
    """
    Linear congruential generator used for every shuffle in the engine.

    ``RandomSource(42)`` always yields the same stream; ``RandomSource()``
    starts the same recurrence from an OS-entropy state, so unseeded runs
    differ from each other but behave identically otherwise.
    """

    def __init__(self, seed: Optional[int] = None) -> None:
        if seed is None:
            seed = random.SystemRandom().randrange(_LCG_MODULUS)
        self.seed = int(seed)
        self._state = self.seed

    def random(self) -> float:
        """Next draw in ``[0, 1)``."""
        self._state = (self._state * _LCG_MULTIPLIER + _LCG_INCREMENT) % _LCG_MODULUS
        return self._state / _LCG_MODULUS

    def index_below(self, n: int) -> int:
        return int(self.random() * n)

    def __repr__(self) -> str:
        return f"RandomSource(seed={self.seed})"
