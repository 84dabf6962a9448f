"""Computes the candidate tiles and entropy of unresolved cells."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from tilecollapse.errors import ContradictionError

if TYPE_CHECKING:
    from tilecollapse.model.grid import Grid
    from tilecollapse.model.rule_set import RuleSet


class EntropyEngine:
    """Derives a cell's candidate tiles from its already resolved neighbors.

    Only immediate neighbors are considered. A resolved neighbor in some direction contributes its allowed tiles in the
    opposite direction (a resolved cell above contributes its 'down' list, since that list says what may sit below
    it). Unresolved and out-of-bounds neighbors contribute nothing. Cells next to resolved cells therefore get a finite
    entropy first, which makes the collapse grow outward from the resolved area.
    """

    # The grid whose cells are inspected.
    _grid: Grid
    # The adjacency rules the neighbor constraints are read from.
    _rule_set: RuleSet

    def __init__(self, grid: Grid, rule_set: RuleSet) -> None:
        self._grid = grid
        self._rule_set = rule_set

    def compute_entropy(self, index: int) -> tuple[float, tuple[int, ...]]:
        """Computes the entropy and candidate tiles of a cell.

        Args:
            index: The index of the cell.

        Returns:
            (0, (tile,)) for a resolved cell, (math.inf, ()) for a cell without resolved neighbors, otherwise the size
                of the intersection of all neighbor constraints together with the intersection itself. The intersection
                keeps the order of the first contributing constraint (directions are visited in Direction order).

        Raises:
            ContradictionError: If the neighbor constraints have an empty intersection, or if a resolved neighbor has a
                tile without a declared rule.
        """
        cell = self._grid[index]
        if cell.is_resolved:
            assert cell.tile is not None
            return 0, (cell.tile,)

        constraints: list[tuple[int, ...]] = []
        for direction, neighbor_index in self._grid.neighbors(index):
            neighbor = self._grid[neighbor_index]
            if not neighbor.is_resolved:
                continue
            assert neighbor.tile is not None

            allowed_tiles = self._rule_set.get_compatible_tiles(neighbor.tile, direction.reverse())
            if allowed_tiles is None:
                raise ContradictionError(
                    f"cell {neighbor_index} holds tile type {self._rule_set.registry.tile_type_of(neighbor.tile)!r}, "
                    "which has no adjacency rule",
                    index,
                    self._grid.snapshot(),
                )
            constraints.append(allowed_tiles)

        if not constraints:
            return math.inf, ()

        candidates = constraints[0]
        for allowed_tiles in constraints[1:]:
            candidates = tuple(tile for tile in candidates if tile in allowed_tiles)

        if not candidates:
            raise ContradictionError(
                f"the resolved neighbors of cell {index} allow no common tile type", index, self._grid.snapshot()
            )
        return len(candidates), candidates
