"""Implements the seeded pseudo-random source shared by a WFC run."""

from __future__ import annotations

import logging
import math
import time
from typing import Mapping, Sequence, TypeVar

from tilecollapse.constants import DEFAULT_TILE_WEIGHT, LCG_INCREMENT, LCG_MODULUS, LCG_MULTIPLIER
from tilecollapse.errors import EmptySelection

T = TypeVar("T")

logger = logging.getLogger(__name__)


def resolve_seed(seed: int | None = None) -> int:
    """Returns the 32-bit seed a generator starts from.

    Args:
        seed: Any integer, reduced modulo 2^32. If None, a seed is derived from the wall-clock time.
    """
    if seed is None:
        seed = time.time_ns() // 1_000_000
        logger.debug("No seed supplied, derived seed %d from wall-clock time", seed % LCG_MODULUS)
    return int(seed) % LCG_MODULUS


class RandomNumberGenerator:
    """Deterministic linear congruential generator.

    Every stochastic choice of a WFC run (starting cell, starting tile type, frontier tie-breaks and weighted tile
    picks) is drawn from a single instance of this class, so that a run is fully reproducible for a fixed seed and a
    fixed input configuration. The sequence is identical on every platform because only integer arithmetic modulo 2^32
    is involved.

    Attributes:
        seed: The (reduced) seed the generator was created with.
    """

    seed: int

    # The current LCG state.
    _state: int

    def __init__(self, seed: int | None = None) -> None:
        """Initializes the generator.

        Args:
            seed: A 32-bit integer seed. Larger or negative values are reduced modulo 2^32. If None, a seed is derived
                from the wall-clock time.
        """
        self.seed = resolve_seed(seed)
        self._state = self.seed

    def next(self) -> float:
        """Advances the generator and returns a float in [0, 1)."""
        self._state = (LCG_MULTIPLIER * self._state + LCG_INCREMENT) % LCG_MODULUS
        return self._state / LCG_MODULUS

    def random_float(self, minimum: float, maximum: float) -> float:
        """Returns a float scaled by 'maximum' and offset by 'minimum'."""
        return self.next() * maximum + minimum

    def random_integer(self, minimum: int, maximum: int) -> int:
        """Returns an integer in [minimum, minimum + maximum)."""
        return math.floor(self.next() * maximum + minimum)

    def pick_uniform(self, seq: Sequence[T]) -> T:
        """Uniformly picks one element of a sequence.

        Args:
            seq: The sequence to pick from.

        Returns:
            The element at index floor(next() * len(seq)).

        Raises:
            EmptySelection: If 'seq' is empty. No random number is consumed in this case.
        """
        if len(seq) == 0:
            raise EmptySelection("cannot pick from an empty sequence")
        return seq[math.floor(self.next() * len(seq))]

    def pick_weighted(self, candidates: Sequence[T], weights: Mapping[T, int]) -> T:
        """Picks one candidate with a probability proportional to its weight.

        Each candidate is expanded into 'weight' copies (candidates absent from 'weights' get one copy), the copies are
        concatenated in input order and one of them is picked uniformly. Weights are not validated here: a weight of 0
        or below simply produces no copies.

        Args:
            candidates: The candidates to choose from.
            weights: Weight per candidate.

        Returns:
            The chosen candidate.

        Raises:
            EmptySelection: If the expansion contains no element.
        """
        expanded: list[T] = []
        for candidate in candidates:
            expanded.extend([candidate] * weights.get(candidate, DEFAULT_TILE_WEIGHT))
        if not expanded:
            raise EmptySelection(f"no weighted candidate to pick from {list(candidates)!r}")
        return self.pick_uniform(expanded)
