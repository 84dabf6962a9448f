"""Contains the per-tile-type selection weights."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable, Mapping

from tilecollapse.constants import DEFAULT_TILE_WEIGHT

if TYPE_CHECKING:
    from tilecollapse.model.rule_set import TileTypeId, TileTypeRegistry


class Weighting:
    """Maps tile types to positive integer selection weights.

    Tile types without an entry weigh DEFAULT_TILE_WEIGHT, so an empty weighting means uniform selection. Weights are
    stored by tile index so they can be handed to 'RandomNumberGenerator.pick_weighted()' directly.
    """

    # The registry used to intern the tile types of the weight entries.
    _registry: TileTypeRegistry
    # Weight per tile index, for tiles with an explicit weight only.
    _weights: dict[int, int]

    def __init__(self, registry: TileTypeRegistry) -> None:
        self._registry = registry
        self._weights = {}

    def __len__(self) -> int:
        return len(self._weights)

    @property
    def weights(self) -> Mapping[int, int]:
        """The explicit weights by tile index."""
        return self._weights

    def set_weight(self, tile_type: TileTypeId, weight: int) -> None:
        """Sets the weight of a tile type.

        Args:
            tile_type: The tile type to weigh.
            weight: A positive integer. The chance of picking a candidate is its weight divided by the summed weights
                of all candidates.

        Raises:
            TypeError: If 'weight' is not an integer.
            ValueError: If 'weight' is not positive.
        """
        if not isinstance(weight, int) or isinstance(weight, bool):
            raise TypeError(f"weight of tile type {tile_type!r} must be an int, got {type(weight).__name__}")
        if weight <= 0:
            raise ValueError(f"weight of tile type {tile_type!r} must be positive, got {weight}")
        self._weights[self._registry.intern(tile_type)] = weight

    def set_weights(self, weights: Mapping[TileTypeId, int] | Iterable[Any]) -> None:
        """Sets several weights at once.

        Accepts a mapping of tile type to weight, an iterable of (tile_type, weight) pairs, or an iterable of
        {'type': ..., 'weight': ...} dicts. Existing weights of other tile types are kept.
        """
        entries = weights.items() if isinstance(weights, Mapping) else weights
        for entry in entries:
            if isinstance(entry, Mapping):
                self.set_weight(entry["type"], entry["weight"])
            else:
                tile_type, weight = entry
                self.set_weight(tile_type, weight)

    def reset_weights(self) -> None:
        self._weights = {}

    def get_weight(self, tile_type: TileTypeId) -> int:
        """Returns the weight of a tile type, DEFAULT_TILE_WEIGHT if it has none."""
        if tile_type not in self._registry:
            return DEFAULT_TILE_WEIGHT
        return self._weights.get(self._registry.index_of(tile_type), DEFAULT_TILE_WEIGHT)

    def to_mapping(self) -> dict[TileTypeId, int]:
        """Returns the explicit weights keyed by external identifier."""
        return {self._registry.tile_type_of(tile_index): weight for tile_index, weight in self._weights.items()}
