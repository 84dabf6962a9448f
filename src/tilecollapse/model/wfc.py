"""Contains the WFC tile buffer: configuration, state machine and run entry points."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING, Any, Iterable, Iterator, Mapping

from tilecollapse.enums import BufferState, Direction
from tilecollapse.errors import ContradictionError, NotReady, WFCError
from tilecollapse.model.collapse_scheduler import CollapseScheduler, CollapseStep
from tilecollapse.model.grid import Cell, Grid
from tilecollapse.model.level_data import tiles_to_json
from tilecollapse.model.random_generator import RandomNumberGenerator, resolve_seed
from tilecollapse.model.rule_set import Rule, RuleSet, TileTypeId, TileTypeRegistry
from tilecollapse.model.weighting import Weighting

if TYPE_CHECKING:
    import numpy as np
    from numpy.typing import NDArray


@dataclass(frozen=True)
class WFCOptions:
    """Construction config of a tile buffer."""

    # Number of columns (in cells).
    width: int
    # Number of rows (in cells).
    height: int
    # Seed of the random source. If None, a seed is derived from the wall-clock time once, at construction.
    seed: int | None = None
    # If True, retries of a failed cell skip the candidates that already failed for it.
    exclude_tried_candidates: bool = True


@dataclass(frozen=True)
class TileData:
    """Public view of a cell, with tile types given as external identifiers."""

    index: int
    type: TileTypeId | None
    entropy: float
    available_tiles: tuple[TileTypeId, ...]


class WFC:
    """A Wave Function Collapse tile buffer.

    Holds the grid, the adjacency rules, the weighting and the pre-seeded tiles of one level, and generates the level
    with a 'CollapseScheduler'. The buffer moves through the states of 'BufferState': it is UNKNOWN until at least one
    rule is registered, READY to run afterwards, COLLAPSING while a run is in progress and COLLAPSED once every cell has
    been resolved. Results can only be read in the COLLAPSED state.

    A failed run leaves the buffer COLLAPSING, with the grid in whatever partial state it reached. Only
    'reset_tile_data()' or 'reset_level()' make the buffer runnable again.

    Each run creates its own random source from the buffer's seed, so repeating a run after 'reset_tile_data()' with
    unchanged rules, weights and pre-seeded tiles reproduces the same grid.

    Attributes:
        seed: The seed every run's random source starts from.
        start_with_random: Whether runs resolve one random cell to a random declared tile before the first step.
    """

    seed: int
    start_with_random: bool

    # The construction config.
    _options: WFCOptions
    # Interns the external tile type identifiers of rules, weights and pre-seeded tiles.
    _registry: TileTypeRegistry
    # The adjacency rules.
    _rule_set: RuleSet
    # The selection weights.
    _weighting: Weighting
    # The cells of the level.
    _grid: Grid
    # The current lifecycle state.
    _buffer_state: BufferState
    # The scheduler of the run in progress, None outside of a run.
    _scheduler: CollapseScheduler | None

    def __init__(self, options: WFCOptions) -> None:
        """Initializes an empty buffer (no rules, no weights, all cells unresolved).

        Args:
            options: The construction config.

        Raises:
            ValueError: If width or height is not a positive integer.
        """
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self._options = options
        self._grid = Grid(options.width, options.height)
        self.seed = resolve_seed(options.seed)
        self._scheduler = None
        self._init_level()

    # === PROPERTIES ===

    @property
    def width(self) -> int:
        return self._grid.width

    @property
    def height(self) -> int:
        return self._grid.height

    @property
    def buffer_state(self) -> BufferState:
        return self._buffer_state

    @property
    def grid(self) -> Grid:
        """The grid of the level. Treat it as read-only; it is mutated by runs only."""
        return self._grid

    @property
    def rule_set(self) -> RuleSet:
        return self._rule_set

    @property
    def weighting(self) -> Weighting:
        return self._weighting

    @property
    def tile_types(self) -> list[TileTypeId]:
        """All known tile type identifiers, in tile index order."""
        return list(self._registry)

    @property
    def tiles(self) -> list[TileData]:
        """The current data of all cells, in index order, regardless of the buffer state."""
        return [self._to_tile_data(cell) for cell in self._grid]

    # === RULES AND WEIGHTS ===

    def set_rule(self, tile_type: TileTypeId, rule: Rule | Mapping[str, Iterable[TileTypeId]]) -> None:
        self._ensure_not_collapsing()
        self._rule_set.set_rule(tile_type, rule)
        self._refresh_buffer_state()

    def set_rules(self, rules: Mapping[TileTypeId, Any] | Iterable[Any]) -> None:
        """Sets several rules, see 'RuleSet.set_rules()' for the accepted shapes."""
        self._ensure_not_collapsing()
        self._rule_set.set_rules(rules)
        self._refresh_buffer_state()

    def reset_rules(self) -> None:
        self._ensure_not_collapsing()
        self._rule_set.reset_rules()
        self._refresh_buffer_state()

    def set_weight(self, tile_type: TileTypeId, weight: int) -> None:
        self._ensure_not_collapsing()
        self._weighting.set_weight(tile_type, weight)

    def set_weights(self, weights: Mapping[TileTypeId, int] | Iterable[Any]) -> None:
        """Sets several weights, see 'Weighting.set_weights()' for the accepted shapes."""
        self._ensure_not_collapsing()
        self._weighting.set_weights(weights)

    def reset_weights(self) -> None:
        self._ensure_not_collapsing()
        self._weighting.reset_weights()

    # === PRE-SEEDED TILES ===

    def set_tile_data(self, tile: TileTypeId | Mapping[str, Any], index: int, seed_random_start: bool = True) -> None:
        """Pre-seeds a cell with a fixed tile type before a run.

        The cell becomes a resolved anchor that the run grows around.

        Args:
            tile: The tile type, or a mapping with a 'type' entry.
            index: The index of the cell.
            seed_random_start: Whether the run should additionally resolve one random cell before the first step.
        """
        self.set_tiles([(index, tile)], seed_random_start)

    def set_tiles(self, tiles: Mapping[int, TileTypeId] | Iterable[Any], seed_random_start: bool = True) -> None:
        """Pre-seeds several cells.

        Accepts a mapping of cell index to tile type, an iterable of (index, tile_type) pairs, or an iterable of dicts
        shaped {'index': ..., 'type': ...} or {'index': ..., 'tile': {'type': ...}}.

        All entries are checked before any cell changes, so an invalid entry leaves the grid untouched.

        Raises:
            IndexError: If a cell index is outside of the grid.
            TypeError: If a tile type identifier is not a str or an int.
        """
        self._ensure_tiles_editable()
        preseeds = []
        for entry in tiles.items() if isinstance(tiles, Mapping) else tiles:
            if isinstance(entry, Mapping):
                index, tile = entry["index"], entry.get("tile", entry)
            else:
                index, tile = entry
            tile_type = tile["type"] if isinstance(tile, Mapping) else tile
            self._grid.check_index(index)
            self._registry.validate(tile_type)
            preseeds.append((index, tile_type))

        for index, tile_type in preseeds:
            self._grid.set_tile(index, self._registry.intern(tile_type))
        self.start_with_random = seed_random_start

    def reset_tile_data(self) -> None:
        """Puts every cell back into the initial unresolved state and re-enables the random start."""
        self._grid.reset()
        self.start_with_random = True
        self._scheduler = None
        self._buffer_state = self._is_data_ready()

    def reset_level(self) -> None:
        """Resets tiles, rules, weights and the buffer state."""
        self._grid.reset()
        self._scheduler = None
        self._init_level()

    # === RUNNING ===

    def start(self) -> CollapseStep | None:
        """Starts a run: seeds the random starting cell and computes the initial entropies.

        Returns:
            The step describing the random starting cell, or None if none was seeded.

        Raises:
            NotReady: If the buffer is not READY. The buffer is left unchanged in this case.
            WFCError: If the run fails while starting. The buffer is left COLLAPSING.
        """
        if self._buffer_state in (BufferState.UNKNOWN, BufferState.READY):
            self._buffer_state = self._is_data_ready()
        if self._buffer_state != BufferState.READY:
            raise NotReady(
                f"cannot run while the buffer is {self._buffer_state.value}, register rules or reset the level first",
                self._buffer_state,
            )

        self._scheduler = CollapseScheduler(
            self._grid,
            self._rule_set,
            self._weighting,
            RandomNumberGenerator(self.seed),
            self.start_with_random,
            self._options.exclude_tried_candidates,
        )
        self._buffer_state = BufferState.COLLAPSING
        self._logger.info("Starting %dx%d run with seed %d", self.width, self.height, self.seed)

        try:
            seed_step = self._scheduler.start()
            if self._scheduler.is_finished:
                self._finish()
        except WFCError as error:
            self._abort(error)
            raise
        return seed_step

    def step(self) -> CollapseStep:
        """Resolves exactly one cell of the run in progress.

        Raises:
            NotReady: If no run is in progress.
            WFCError: If the step fails. The run is aborted and the buffer is left COLLAPSING.
        """
        if self._buffer_state != BufferState.COLLAPSING or self._scheduler is None:
            raise NotReady(f"no run in progress, the buffer is {self._buffer_state.value}", self._buffer_state)

        try:
            collapse_step = self._scheduler.step()
            if self._scheduler.is_finished:
                self._finish()
        except WFCError as error:
            self._abort(error)
            raise
        return collapse_step

    def steps(self) -> Iterator[CollapseStep]:
        """Starts a run and yields after every resolved cell, the random starting cell included.

        Stopping the iteration early leaves the run in progress; it can be continued with 'step()'.
        """
        seed_step = self.start()
        if seed_step is not None:
            yield seed_step
        while self._buffer_state == BufferState.COLLAPSING:
            yield self.step()

    def run(self) -> None:
        """Runs to completion.

        Raises:
            NotReady: If the buffer is not READY.
            WFCError: If the run fails (see 'errors'). The grid must then be reset before retrying.
        """
        for _ in self.steps():
            pass

    async def run_async(self) -> None:
        """Runs to completion, handing control back to the event loop after every resolved cell."""
        for _ in self.steps():
            await asyncio.sleep(0)

    # === RESULTS ===

    def get_resolved_tile(self, index: int) -> TileData:
        """Returns the data of a resolved cell.

        Raises:
            NotReady: If the buffer is not COLLAPSED.
        """
        self._ensure_collapsed()
        return self._to_tile_data(self._grid[index])

    def tile_array(self) -> NDArray[np.int_]:
        """Returns the (height, width) array of tile indices (see 'tile_types'), -1 for unresolved cells."""
        return self._grid.to_array()

    def to_json(self) -> bytes:
        """Exports the resolved grid as a JSON array of {'index', 'type'} objects in index order."""
        self._ensure_collapsed()
        return tiles_to_json(self.tiles)

    def rule_violations(self) -> list[tuple[int, Direction, int]]:
        """Lists every pair of resolved neighbors that breaks the adjacency rules.

        Returns:
            (index, direction, neighbor_index) for each resolved cell whose resolved neighbor in 'direction' is not
                among the tiles its rule allows there.
        """
        adjacency_array = self._rule_set.get_adjacency_array()
        violations = []
        for cell in self._grid:
            if cell.tile is None:
                continue
            for direction, neighbor_index in self._grid.neighbors(cell.index):
                neighbor_tile = self._grid[neighbor_index].tile
                if neighbor_tile is not None and not adjacency_array[cell.tile, neighbor_tile, direction.value]:
                    violations.append((cell.index, direction, neighbor_index))
        return violations

    # === INTERNALS ===

    def _init_level(self) -> None:
        self._registry = TileTypeRegistry()
        self._rule_set = RuleSet(self._registry)
        self._weighting = Weighting(self._registry)
        self.start_with_random = True
        self._buffer_state = self._is_data_ready()

    def _is_data_ready(self) -> BufferState:
        if len(self._grid) == 0 or len(self._rule_set) == 0:
            return BufferState.UNKNOWN
        return BufferState.READY

    def _refresh_buffer_state(self) -> None:
        if self._buffer_state in (BufferState.UNKNOWN, BufferState.READY):
            self._buffer_state = self._is_data_ready()

    def _ensure_not_collapsing(self) -> None:
        if self._buffer_state == BufferState.COLLAPSING:
            raise NotReady("the buffer is collapsing, reset the tile data first", self._buffer_state)

    def _ensure_tiles_editable(self) -> None:
        if self._buffer_state in (BufferState.COLLAPSING, BufferState.COLLAPSED):
            raise NotReady(
                f"tiles cannot be changed while the buffer is {self._buffer_state.value}, reset the tile data first",
                self._buffer_state,
            )

    def _ensure_collapsed(self) -> None:
        if self._buffer_state != BufferState.COLLAPSED:
            raise NotReady(
                f"tile data is only valid once collapsed, the buffer is {self._buffer_state.value}",
                self._buffer_state,
            )

    def _finish(self) -> None:
        assert self._scheduler is not None
        self._scheduler.verify()
        self._scheduler = None
        self._buffer_state = BufferState.COLLAPSED
        self._logger.info("Collapsed %dx%d grid with seed %d", self.width, self.height, self.seed)

    def _abort(self, error: WFCError) -> None:
        """Stops the run in progress; the buffer stays COLLAPSING until it is reset."""
        self._scheduler = None
        self._logger.error("Run with seed %d aborted: %s", self.seed, error)
        if isinstance(error, ContradictionError) and error.snapshot and self._logger.isEnabledFor(logging.DEBUG):
            self._logger.debug(
                "Grid at the time of the contradiction: %s",
                [self._to_tile_data(cell) for cell in error.snapshot],
            )

    def _to_tile_data(self, cell: Cell) -> TileData:
        return TileData(
            cell.index,
            None if cell.tile is None else self._registry.tile_type_of(cell.tile),
            cell.entropy,
            tuple(self._registry.tile_type_of(tile) for tile in cell.available_tiles),
        )
