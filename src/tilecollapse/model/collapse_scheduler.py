"""Implements the core WFC algorithm as a steppable scheduler."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING

from tilecollapse.errors import CollapseFailed, ContradictionError, CorruptState, NotReady
from tilecollapse.model.entropy import EntropyEngine

if TYPE_CHECKING:
    from tilecollapse.model.grid import Grid
    from tilecollapse.model.random_generator import RandomNumberGenerator
    from tilecollapse.model.rule_set import RuleSet
    from tilecollapse.model.weighting import Weighting

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CollapseStep:
    """Describes the resolution of a single cell."""

    # The index of the resolved cell.
    index: int
    # The tile index the cell was resolved to.
    tile: int
    # Number of attempts needed (1 if the first pick could be propagated).
    attempts: int
    # Number of cells still unresolved after this step.
    remaining: int


class CollapseScheduler:
    """Resolves a grid one cell per step, lowest entropy first.

    Each step picks a cell uniformly among the unresolved cells sharing the minimum entropy, picks one of its candidate
    tiles by weight, assigns it and recomputes the entropy of the cell's unresolved neighbors. If that propagation runs
    into a contradiction the attempt is rolled back and retried with another candidate, up to as many attempts as the
    cell had candidates. There is no backtracking beyond the current cell.

    The scheduler does not loop on its own. The caller drives it with 'step()' and may interleave other work between
    steps, or stop stepping at any point (which leaves the grid partially resolved).
    """

    # The grid being resolved. Owned exclusively by this scheduler during a run.
    _grid: Grid
    # The adjacency rules every resolved pair of neighbors has to satisfy.
    _rule_set: RuleSet
    # Selection weights for the candidate tiles.
    _weighting: Weighting
    # The single random source of the run.
    _rng: RandomNumberGenerator
    # Computes entropy and candidate tiles from resolved neighbors.
    _entropy_engine: EntropyEngine
    # If True, one random cell is resolved to a random declared tile before the first step.
    _start_with_random: bool
    # If True, a retry never picks a candidate that already failed for the same cell.
    _exclude_tried_candidates: bool
    # True once 'start()' has run.
    _started: bool

    def __init__(
        self,
        grid: Grid,
        rule_set: RuleSet,
        weighting: Weighting,
        rng: RandomNumberGenerator,
        start_with_random: bool = True,
        exclude_tried_candidates: bool = True,
    ) -> None:
        """Initializes the scheduler for one run.

        Args:
            grid: The grid to resolve. Cells that are already resolved act as fixed anchors.
            rule_set: The adjacency rules.
            weighting: The selection weights.
            rng: The random source used for every stochastic choice of the run.
            start_with_random: Whether to resolve one random cell to a random declared tile before the first step.
            exclude_tried_candidates: Whether retries of a failed cell skip the candidates that already failed. If
                False, every retry draws from the full candidate set again.
        """
        self._grid = grid
        self._rule_set = rule_set
        self._weighting = weighting
        self._rng = rng
        self._entropy_engine = EntropyEngine(grid, rule_set)
        self._start_with_random = start_with_random
        self._exclude_tried_candidates = exclude_tried_candidates
        self._started = False

    @property
    def is_finished(self) -> bool:
        return self._grid.unresolved_count() == 0

    @property
    def entropy_engine(self) -> EntropyEngine:
        return self._entropy_engine

    def start(self) -> CollapseStep | None:
        """Seeds the random starting cell (if enabled) and computes the initial entropy of all unresolved cells.

        Returns:
            The step describing the random starting cell, or None if no starting cell was seeded.

        Raises:
            EmptySelection: If a random start is requested but no rule is declared.
            ContradictionError: If the resolved cells (anchors and starting cell) already contradict each other.
        """
        seed_step = None
        if self._start_with_random:
            unresolved_indices = self._grid.unresolved_indices()
            if unresolved_indices:
                index = self._rng.pick_uniform(unresolved_indices)
                tile = self._rng.pick_uniform(self._rule_set.declared_tiles())
                self._grid.set_tile(index, tile)
                seed_step = CollapseStep(index, tile, 1, len(unresolved_indices) - 1)
                logger.debug("Seeded random starting cell %d with tile %d", index, tile)

        for index in self._grid.unresolved_indices():
            entropy, available_tiles = self._entropy_engine.compute_entropy(index)
            self._grid.set_entropy(index, entropy, available_tiles)

        self._started = True
        return seed_step

    def step(self) -> CollapseStep:
        """Resolves exactly one cell.

        Returns:
            The step describing the resolved cell.

        Raises:
            NotReady: If 'start()' has not been called.
            NoCandidateCells: If every cell is already resolved.
            ContradictionError: If the chosen cell has no candidate tiles.
            CollapseFailed: If every attempt to resolve the chosen cell ran into a contradiction.
        """
        if not self._started:
            raise NotReady("the scheduler has to be started before stepping")

        index = self._rng.pick_uniform(self._grid.lowest_entropy_frontier())
        cell = self._grid[index]
        if not cell.available_tiles:
            raise ContradictionError(f"cell {index} has no candidate tiles", index, self._grid.snapshot())

        tile, attempts = self._collapse_cell_at(index)
        remaining = self._grid.unresolved_count()
        logger.debug("Collapsed cell %d to tile %d (%d remaining)", index, tile, remaining)
        return CollapseStep(index, tile, attempts, remaining)

    def verify(self) -> None:
        """Checks that every cell of a finished grid has a tile.

        Raises:
            CorruptState: If some cell has no tile assigned.
        """
        unset_indices = [cell.index for cell in self._grid if cell.tile is None]
        if unset_indices:
            raise CorruptState(f"{len(unset_indices)} cells have no tile after the run finished", unset_indices)

    def _collapse_cell_at(self, index: int) -> tuple[int, int]:
        """Picks, assigns and propagates a tile for a cell, retrying with other candidates on contradictions."""
        cell = self._grid[index]
        entropy = cell.entropy
        candidates = cell.available_tiles

        tried: list[int] = []
        last_error: ContradictionError | None = None
        for attempt in range(1, len(candidates) + 1):
            choices = candidates
            if self._exclude_tried_candidates:
                choices = tuple(tile for tile in candidates if tile not in tried)
                if not choices:
                    break

            tile = self._rng.pick_weighted(choices, self._weighting.weights)
            tried.append(tile)
            try:
                self._assign(index, tile)
            except ContradictionError as error:
                self._grid.clear_tile(index, entropy, candidates)
                last_error = error
                logger.warning(
                    "Attempt %d/%d for cell %d with tile %d failed: %s", attempt, len(candidates), index, tile, error
                )
                continue
            return tile, attempt

        raise CollapseFailed(
            f"failed to collapse cell {index} after {len(tried)} attempts", index, tried, self._grid.snapshot()
        ) from last_error

    def _assign(self, index: int, tile: int) -> None:
        """Resolves a cell to a tile and propagates the new constraint to its neighbors."""
        if tile not in self._rule_set:
            raise ContradictionError(
                f"tile type {self._rule_set.registry.tile_type_of(tile)!r} has no adjacency rule",
                index,
                self._grid.snapshot(),
            )
        self._grid.set_tile(index, tile)
        self._propagate(index)

    def _propagate(self, index: int) -> None:
        """Recomputes the entropy of the unresolved neighbors of a freshly resolved cell.

        All neighbors are evaluated before any is written, so a contradiction leaves the neighbors untouched.
        """
        updates = [
            (neighbor_index, self._entropy_engine.compute_entropy(neighbor_index))
            for _, neighbor_index in self._grid.neighbors(index)
            if not self._grid[neighbor_index].is_resolved
        ]
        for neighbor_index, (entropy, available_tiles) in updates:
            self._grid.set_entropy(neighbor_index, entropy, available_tiles)
