"""
RaffleLab — Random Sources

The draw sampler never touches global random state; it is handed a source
object exposing random() -> float in [0, 1).

    SystemRandomSource — fresh OS-seeded generator (unseeded runs)
    SineRandomSource   — deterministic sine-based generator (seeded runs);
                         identical seeds reproduce identical draw streams
"""

from __future__ import annotations

import math
import random
from typing import Optional, Protocol


class RandomSource(Protocol):
    def random(self) -> float:
        """Float in [0, 1)."""
        ...


class SystemRandomSource:
    """Non-deterministic uniform source backed by its own random.Random."""

    def __init__(self):
        self._rng = random.Random()

    def random(self) -> float:
        return self._rng.random()


class SineRandomSource:
    """Sine-hash PRNG: x = sin(x) * 10000, output frac(x).

    Weak statistically but cheap and exactly reproducible; kept for
    compatibility with simulation results recorded by the admin suite.
    """

    def __init__(self, seed: int):
        self.seed = seed
        self._x = math.sin(seed) * 10000

    def random(self) -> float:
        self._x = math.sin(self._x) * 10000
        return self._x - math.floor(self._x)


def make_random_source(seed: Optional[int] = None) -> RandomSource:
    """None → system entropy. Any int (0 included) → seeded sine source."""
    if seed is None:
        return SystemRandomSource()
    return SineRandomSource(int(seed))
