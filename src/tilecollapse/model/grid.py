"""Contains the mutable board of cells that a WFC run resolves."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
import math
from numbers import Integral
from typing import TYPE_CHECKING, Iterator

import numpy as np

from tilecollapse.constants import UNSET_TILE_INDEX
from tilecollapse.enums import Direction
from tilecollapse.errors import NoCandidateCells

if TYPE_CHECKING:
    from numpy.typing import NDArray


@dataclass
class Cell:
    """A single cell of the grid.

    A cell with entropy 0 is resolved: its tile is assigned and it is never changed again during a run. An unresolved
    cell has either a finite entropy (the number of candidate tiles its resolved neighbors allow) or an infinite
    entropy (no resolved neighbor yet, candidates unknown).
    """

    # Row-major position of the cell (row * width + col).
    index: int
    # The assigned tile index, None while unresolved.
    tile: int | None = None
    # Number of candidate tiles, math.inf if unconstrained, 0 if resolved.
    entropy: float = math.inf
    # The candidate tile indices of an unresolved cell, in constraint order.
    available_tiles: tuple[int, ...] = field(default_factory=tuple)

    @property
    def is_resolved(self) -> bool:
        return self.entropy == 0


class Grid:
    """A width x height arena of cells addressed by row-major index.

    Neighbors are computed arithmetically; there is no neighbor across a grid edge.

    Attributes:
        width: The number of columns.
        height: The number of rows.
    """

    width: int
    height: int

    # All cells in index order.
    _cells: list[Cell]

    def __init__(self, width: int, height: int) -> None:
        """Allocates the grid with every cell unresolved.

        Raises:
            ValueError: If a dimension is not a positive integer.
        """
        for name, value in (("width", width), ("height", height)):
            if not isinstance(value, Integral) or isinstance(value, bool) or value <= 0:
                raise ValueError(f"grid {name} must be a positive integer, got {value!r}")
        self.width = int(width)
        self.height = int(height)
        self.reset()

    def __len__(self) -> int:
        return len(self._cells)

    def __iter__(self) -> Iterator[Cell]:
        return iter(self._cells)

    def __getitem__(self, index: int) -> Cell:
        return self._cells[self.check_index(index)]

    def reset(self) -> None:
        """Rebuilds every cell in the initial unresolved state."""
        self._cells = [Cell(index) for index in range(self.width * self.height)]

    def set_tile(self, index: int, tile: int) -> None:
        """Assigns a tile to a cell and marks it resolved."""
        cell = self[index]
        cell.tile = tile
        cell.entropy = 0
        cell.available_tiles = ()

    def clear_tile(self, index: int, entropy: float = math.inf, available_tiles: tuple[int, ...] = ()) -> None:
        """Puts a cell back into an unresolved state."""
        cell = self[index]
        cell.tile = None
        cell.entropy = entropy
        cell.available_tiles = available_tiles

    def set_entropy(self, index: int, entropy: float, available_tiles: tuple[int, ...]) -> None:
        """Overwrites the entropy and candidate tiles of an unresolved cell."""
        cell = self[index]
        cell.entropy = entropy
        cell.available_tiles = available_tiles

    def coords_of(self, index: int) -> tuple[int, int]:
        """Returns the (row, col) coords of a cell index."""
        return divmod(self.check_index(index), self.width)

    def index_of(self, row: int, col: int) -> int:
        """Returns the cell index of (row, col) coords."""
        if not (0 <= row < self.height and 0 <= col < self.width):
            raise IndexError(f"cell coords {(row, col)} outside of {self.height}x{self.width} grid")
        return row * self.width + col

    def neighbor(self, index: int, direction: Direction) -> int | None:
        """Returns the index of the neighbor in a direction, or None at a grid edge."""
        row, col = self.coords_of(index)
        neighbor_row = row + direction.to_vector()[0]
        neighbor_col = col + direction.to_vector()[1]
        if neighbor_row < 0 or neighbor_row >= self.height or neighbor_col < 0 or neighbor_col >= self.width:
            return None
        return neighbor_row * self.width + neighbor_col

    def neighbors(self, index: int) -> Iterator[tuple[Direction, int]]:
        """Yields (direction, neighbor index) for every in-bounds neighbor, in Direction order."""
        for direction in Direction:
            neighbor_index = self.neighbor(index, direction)
            if neighbor_index is not None:
                yield direction, neighbor_index

    def unresolved_indices(self) -> list[int]:
        return [cell.index for cell in self._cells if not cell.is_resolved]

    def unresolved_count(self) -> int:
        return sum(1 for cell in self._cells if not cell.is_resolved)

    def lowest_entropy_frontier(self) -> list[int]:
        """Returns the indices of all unresolved cells sharing the minimum entropy, in index order.

        Raises:
            NoCandidateCells: If every cell is resolved.
        """
        unresolved = [cell for cell in self._cells if not cell.is_resolved]
        if not unresolved:
            raise NoCandidateCells("no unresolved cells remain to choose from")
        min_entropy = min(cell.entropy for cell in unresolved)
        return [cell.index for cell in unresolved if cell.entropy == min_entropy]

    def snapshot(self) -> tuple[Cell, ...]:
        """Returns independent copies of all cells."""
        return tuple(replace(cell) for cell in self._cells)

    def to_array(self) -> NDArray[np.int_]:
        """Returns the (height, width) array of tile indices, UNSET_TILE_INDEX for unresolved cells."""
        tiles = [UNSET_TILE_INDEX if cell.tile is None else cell.tile for cell in self._cells]
        return np.array(tiles, dtype=np.int_).reshape(self.height, self.width)

    def entropy_array(self) -> NDArray[np.double]:
        """Returns the (height, width) array of cell entropies (np.inf for unconstrained cells)."""
        return np.array([cell.entropy for cell in self._cells], dtype=np.double).reshape(self.height, self.width)

    def check_index(self, index: int) -> int:
        """Returns the index unchanged if it addresses a cell of the grid.

        Raises:
            IndexError: If the index is out of range.
        """
        if not 0 <= index < len(self._cells):
            raise IndexError(f"cell index {index} outside of grid with {len(self._cells)} cells")
        return index
