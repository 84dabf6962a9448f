"""Reads and writes rules, weights and resolved grids as JSON."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable, Mapping

import orjson

from tilecollapse.model.rule_set import Rule

if TYPE_CHECKING:
    from tilecollapse.model.rule_set import TileTypeId
    from tilecollapse.model.wfc import TileData


def parse_rules(data: bytes | str, int_keys: bool = False) -> dict[TileTypeId, Rule]:
    """Parses rules in their wire shape.

    The expected document is an object mapping each tile type to {"up": [...], "down": [...], "left": [...],
    "right": [...]}.

    Args:
        data: The JSON document.
        int_keys: JSON object keys are always strings. Set this to convert them to int for integer tile types.

    Returns:
        The rules keyed by tile type, in document order.

    Raises:
        ValueError: If the document is not valid JSON or not shaped as described.
    """
    document = orjson.loads(data)
    if not isinstance(document, dict):
        raise ValueError(f"rules document must be a JSON object, got {type(document).__name__}")

    rules: dict[TileTypeId, Rule] = {}
    for tile_type, rule_data in document.items():
        if not isinstance(rule_data, dict):
            raise ValueError(f"rule of tile type {tile_type!r} must be a JSON object")
        rules[int(tile_type) if int_keys else tile_type] = Rule.from_mapping(rule_data)
    return rules


def read_rules(path: Path | str, int_keys: bool = False) -> dict[TileTypeId, Rule]:
    """Reads a rules file, see 'parse_rules()'."""
    with Path(path).open("rb") as f:
        return parse_rules(f.read(), int_keys)


def rules_to_json(rules: Mapping[TileTypeId, Rule]) -> bytes:
    """Serializes rules into their wire shape."""
    return orjson.dumps(
        {tile_type: rule.to_mapping() for tile_type, rule in rules.items()},
        option=orjson.OPT_NON_STR_KEYS | orjson.OPT_INDENT_2,
    )


def parse_weights(data: bytes | str, int_keys: bool = False) -> dict[TileTypeId, int]:
    """Parses weights.

    Accepts either an object mapping tile types to weights, or an array of {"type": ..., "weight": ...} objects.

    Raises:
        ValueError: If the document is not valid JSON or not shaped as described.
    """
    document = orjson.loads(data)
    entries: Iterable[tuple[Any, Any]]
    if isinstance(document, dict):
        entries = document.items()
    elif isinstance(document, list):
        try:
            entries = [(entry["type"], entry["weight"]) for entry in document]
        except (KeyError, TypeError) as error:
            raise ValueError("weight entries must be objects with 'type' and 'weight'") from error
    else:
        raise ValueError(f"weights document must be a JSON object or array, got {type(document).__name__}")

    weights: dict[TileTypeId, int] = {}
    for tile_type, weight in entries:
        if int_keys and isinstance(tile_type, str):
            tile_type = int(tile_type)
        weights[tile_type] = weight
    return weights


def read_weights(path: Path | str, int_keys: bool = False) -> dict[TileTypeId, int]:
    """Reads a weights file, see 'parse_weights()'."""
    with Path(path).open("rb") as f:
        return parse_weights(f.read(), int_keys)


def tiles_to_json(tiles: Iterable[TileData]) -> bytes:
    """Serializes cells as an array of {"index": ..., "type": ...} objects in index order."""
    return orjson.dumps([{"index": tile.index, "type": tile.type} for tile in sorted(tiles, key=lambda t: t.index)])
