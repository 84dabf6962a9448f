"""Manages tile types and their directional adjacency rules for the WFC algorithm."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterable, Iterator, Mapping, Union

import numpy as np

from tilecollapse.constants import RULE_KEYS
from tilecollapse.enums import Direction

if TYPE_CHECKING:
    from numpy.typing import NDArray

# External identifier of a tile type, as supplied by the caller (e.g. "grass" or 12).
TileTypeId = Union[str, int]


class TileTypeRegistry:
    """Interns external tile type identifiers into dense tile indices.

    Tile indices are handed out in first-seen order, starting at 0. All internal tables (rules, weights, grid cells)
    are keyed by tile index, which closes the set of identifiers a run can encounter.
    """

    # External identifier for each tile index.
    _tile_types: list[TileTypeId]
    # Maps each external identifier to its tile index.
    _indices_by_tile_type: dict[TileTypeId, int]

    def __init__(self) -> None:
        self._tile_types = []
        self._indices_by_tile_type = {}

    def __len__(self) -> int:
        return len(self._tile_types)

    def __contains__(self, tile_type: object) -> bool:
        return tile_type in self._indices_by_tile_type

    def __iter__(self) -> Iterator[TileTypeId]:
        return iter(self._tile_types)

    def validate(self, tile_type: object) -> None:
        """Checks that an identifier could be interned, without registering it.

        Raises:
            TypeError: If the identifier is not a str or an int.
        """
        if not isinstance(tile_type, (str, int)) or isinstance(tile_type, bool):
            raise TypeError(f"tile type identifiers must be str or int, got {type(tile_type).__name__}")

    def intern(self, tile_type: TileTypeId) -> int:
        """Returns the tile index of an identifier, registering it first if it is new."""
        self.validate(tile_type)
        tile_index = self._indices_by_tile_type.get(tile_type)
        if tile_index is None:
            tile_index = len(self._tile_types)
            self._tile_types.append(tile_type)
            self._indices_by_tile_type[tile_type] = tile_index
        return tile_index

    def index_of(self, tile_type: TileTypeId) -> int:
        """Returns the tile index of an already registered identifier."""
        try:
            return self._indices_by_tile_type[tile_type]
        except KeyError:
            raise KeyError(f"unknown tile type {tile_type!r}") from None

    def tile_type_of(self, tile_index: int) -> TileTypeId:
        """Returns the external identifier of a tile index."""
        return self._tile_types[tile_index]


@dataclass(frozen=True)
class Rule:
    """Directional adjacency rule of a single tile type.

    Each field lists the tile types that are allowed as the neighbor in that direction. The lists are kept in the
    order they were declared in.
    """

    up: tuple[Any, ...] = ()
    down: tuple[Any, ...] = ()
    left: tuple[Any, ...] = ()
    right: tuple[Any, ...] = ()

    @classmethod
    def from_mapping(cls, data: Mapping[str, Iterable[Any]]) -> Rule:
        """Builds a rule from the wire shape {'up': [...], 'down': [...], 'left': [...], 'right': [...]}.

        Missing directions allow nothing.
        """
        unknown_keys = set(data) - set(RULE_KEYS)
        if unknown_keys:
            raise ValueError(f"unknown rule directions: {sorted(unknown_keys)}")
        return cls(**{direction.rule_key: tuple(data.get(direction.rule_key, ())) for direction in Direction})

    def allowed(self, direction: Direction) -> tuple[Any, ...]:
        """Returns the neighbors allowed in a direction."""
        return getattr(self, direction.rule_key)

    def to_mapping(self) -> dict[str, list[Any]]:
        """Returns the rule in its wire shape."""
        return {direction.rule_key: list(self.allowed(direction)) for direction in Direction}


class RuleSet:
    """Stores the directional adjacency rules for all declared tile types.

    Rules are directional and are taken exactly as declared: if A allows B on its right, B has to declare A on its
    left for the pairing to hold in both directions. Neither symmetry nor the existence of referenced tile types is
    checked when rules are set. Violations surface during a run as contradictions.

    Attributes:
        registry: The tile type registry the rules intern their identifiers in.
    """

    registry: TileTypeRegistry

    # For each declared tile index (in declaration order), the allowed neighbor tile indices per direction.
    _compatible_tiles: dict[int, dict[Direction, tuple[int, ...]]]

    def __init__(self, registry: TileTypeRegistry | None = None) -> None:
        """Initializes an empty rule set.

        Args:
            registry: The registry to intern tile types in. A new one is created if None.
        """
        self.registry = registry if registry is not None else TileTypeRegistry()
        self._compatible_tiles = {}

    def __len__(self) -> int:
        return len(self._compatible_tiles)

    def __contains__(self, tile_index: object) -> bool:
        return tile_index in self._compatible_tiles

    def set_rule(self, tile_type: TileTypeId, rule: Rule | Mapping[str, Iterable[TileTypeId]]) -> None:
        """Declares (or replaces) the adjacency rule of a tile type."""
        self.set_rules([(tile_type, rule)])

    def set_rules(self, rules: Mapping[TileTypeId, Any] | Iterable[Any]) -> None:
        """Sets several rules at once.

        A mapping of tile type to rule replaces all existing rules. An iterable of (tile_type, rule) pairs, or of
        {'type': ..., 'rule': ...} dicts, is merged into the existing rules entry by entry.

        Every entry is validated before any rule changes, so a malformed entry leaves the rules untouched.

        Raises:
            ValueError: If a rule has unknown direction keys.
            TypeError: If a tile type identifier is not a str or an int.
        """
        if isinstance(rules, Mapping):
            entries = list(rules.items())
        else:
            entries = [
                (entry["type"], entry["rule"]) if isinstance(entry, Mapping) else tuple(entry) for entry in rules
            ]

        parsed_rules = []
        for tile_type, rule in entries:
            if not isinstance(rule, Rule):
                rule = Rule.from_mapping(rule)
            self.registry.validate(tile_type)
            for direction in Direction:
                for neighbor in rule.allowed(direction):
                    self.registry.validate(neighbor)
            parsed_rules.append((tile_type, rule))

        compatible_tiles = {} if isinstance(rules, Mapping) else dict(self._compatible_tiles)
        for tile_type, rule in parsed_rules:
            compatible_tiles[self.registry.intern(tile_type)] = {
                direction: tuple(self.registry.intern(neighbor) for neighbor in rule.allowed(direction))
                for direction in Direction
            }
        self._compatible_tiles = compatible_tiles

    def reset_rules(self) -> None:
        """Removes all rules. Interned tile types stay registered."""
        self._compatible_tiles = {}

    def declared_tiles(self) -> list[int]:
        """Returns the tile indices that have a rule, in declaration order."""
        return list(self._compatible_tiles)

    def get_compatible_tiles(self, tile_index: int, direction: Direction) -> tuple[int, ...] | None:
        """Returns the tile indices allowed next to a tile in a direction.

        Args:
            tile_index: The tile whose rule is consulted.
            direction: The direction, seen from that tile.

        Returns:
            The allowed neighbor tile indices in declaration order, or None if the tile has no rule.
        """
        compatible_tiles = self._compatible_tiles.get(tile_index)
        if compatible_tiles is None:
            return None
        return compatible_tiles[direction]

    def get_rule(self, tile_type: TileTypeId) -> Rule:
        """Returns the rule of a tile type in terms of external identifiers."""
        tile_index = self.registry.index_of(tile_type)
        if tile_index not in self._compatible_tiles:
            raise KeyError(f"no rule declared for tile type {tile_type!r}")
        compatible_tiles = self._compatible_tiles[tile_index]
        return Rule(
            **{
                direction.rule_key: tuple(self.registry.tile_type_of(i) for i in compatible_tiles[direction])
                for direction in Direction
            }
        )

    def to_mapping(self) -> dict[TileTypeId, Rule]:
        """Returns all rules keyed by external identifier, in declaration order."""
        return {
            self.registry.tile_type_of(tile_index): self.get_rule(self.registry.tile_type_of(tile_index))
            for tile_index in self._compatible_tiles
        }

    def get_adjacency_array(self) -> NDArray[np.bool_]:
        """Returns the adjacency rules as a 3D boolean array.

        The element [t1, t2, direction] is True exactly if tile t2 may be placed next to tile t1 in the specified
        direction. Tiles without a rule allow nothing.
        """
        tile_count = len(self.registry)
        adjacency_array = np.full((tile_count, tile_count, len(Direction)), False, dtype=bool)
        for tile_index, compatible_tiles in self._compatible_tiles.items():
            for direction, neighbors in compatible_tiles.items():
                if neighbors:
                    adjacency_array[tile_index, list(neighbors), direction.value] = True
        return adjacency_array
