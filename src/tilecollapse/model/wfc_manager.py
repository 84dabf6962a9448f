"""Contains the class that creates and manages several independent WFC levels."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Iterable, Mapping

from tilecollapse.enums import BufferState
from tilecollapse.errors import WFCError
from tilecollapse.model.wfc import WFC, WFCOptions

if TYPE_CHECKING:
    from tilecollapse.model.rule_set import TileTypeId


class LevelManager:
    """Manages the creation and generation of several WFC levels.

    Every level is an independent 'WFC' buffer with its own grid, rules, weights and seed, addressed by the index it
    was created with. Turning the generated tile types into graphics is left to the caller.
    """

    # The managed levels, in creation order.
    _levels: list[WFC]

    def __init__(self) -> None:
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self._levels = []

    def __len__(self) -> int:
        return len(self._levels)

    def create_level(self, width: int, height: int, seed: int | None = None) -> int:
        """Creates a new, empty level.

        Args:
            width: The width of the level (in cells).
            height: The height of the level (in cells).
            seed: The seed of the level. Derived from the wall-clock time if None.

        Returns:
            The index of the new level.
        """
        self._levels.append(WFC(WFCOptions(width, height, seed)))
        level_index = len(self._levels) - 1
        self._logger.debug("Created %dx%d level %d", width, height, level_index)
        return level_index

    def get_level(self, level_index: int) -> WFC:
        """Returns the buffer of a level.

        Raises:
            IndexError: If there is no level with this index.
        """
        if not 0 <= level_index < len(self._levels):
            raise IndexError(f"invalid level index {level_index}")
        return self._levels[level_index]

    def load_rules(self, level_index: int, rules: Mapping[TileTypeId, Any] | Iterable[Any]) -> None:
        self.get_level(level_index).set_rules(rules)

    def load_weights(self, level_index: int, weights: Mapping[TileTypeId, int] | Iterable[Any]) -> None:
        self.get_level(level_index).set_weights(weights)

    def load_defaults(self, level_index: int, defaults: Mapping[int, TileTypeId] | Iterable[Any]) -> None:
        """Pre-seeds cells of a level, see 'WFC.set_tiles()' for the accepted shapes."""
        self.get_level(level_index).set_tiles(defaults)

    def generate_level(self, level_index: int) -> None:
        """Generates a level synchronously."""
        self.get_level(level_index).run()

    async def generate_level_async(self, level_index: int) -> None:
        """Generates a level, yielding to the event loop after every resolved cell."""
        await self.get_level(level_index).run_async()

    async def generate_all_async(self) -> list[int]:
        """Generates every READY level, interleaving their steps on the running event loop.

        A failing level does not stop the others; its error is logged and it stays COLLAPSING until reset.

        Returns:
            The indices of the levels that were generated successfully.
        """
        level_indices = [i for i, level in enumerate(self._levels) if level.buffer_state == BufferState.READY]
        results = await asyncio.gather(
            *(self.generate_level_async(i) for i in level_indices),
            return_exceptions=True,
        )

        generated = []
        for level_index, result in zip(level_indices, results):
            if isinstance(result, WFCError):
                self._logger.error("Generating level %d failed: %s", level_index, result)
            elif isinstance(result, BaseException):
                raise result
            else:
                generated.append(level_index)
        return generated

    def get_tile_type(self, level_index: int, index: int) -> TileTypeId:
        """Returns the tile type of a cell of a generated level.

        Raises:
            IndexError: If there is no level with this index.
            NotReady: If the level has not been generated.
        """
        tile_type = self.get_level(level_index).get_resolved_tile(index).type
        assert tile_type is not None
        return tile_type
