"""Contains all global enumeration classes used throughout the project."""

from __future__ import annotations

from enum import Enum


class BufferState(Enum):
    """Defines the lifecycle states of a WFC tile buffer."""

    UNKNOWN = "unknown"
    """Either the tile array is empty or no adjacency rule has been registered yet."""
    READY = "ready"
    """Tiles exist and at least one rule is registered. Required to start a run."""
    COLLAPSING = "collapsing"
    """A run is in progress, or a run was aborted and the buffer has not been reset since."""
    COLLAPSED = "collapsed"
    """Every cell has been resolved successfully. Required to read results."""


class Direction(Enum):
    """Defines the cardinal directions used for tile adjacency.

    The member order is the order in which neighbor constraints are evaluated, which in turn decides the order of the
    candidate tiles of a cell.
    """

    UP = 0
    """Upward direction."""
    DOWN = 1
    """Downward direction."""
    LEFT = 2
    """Left direction."""
    RIGHT = 3
    """Right direction."""

    def reverse(self) -> Direction:
        """Returns the opposite direction of the current direction."""
        match self:
            case Direction.UP:
                return Direction.DOWN
            case Direction.DOWN:
                return Direction.UP
            case Direction.LEFT:
                return Direction.RIGHT
            case Direction.RIGHT:
                return Direction.LEFT

    def to_vector(self) -> tuple[int, int]:
        """Returns the (row, col) vector representation for the direction."""
        match self:
            case Direction.UP:
                return (-1, 0)
            case Direction.DOWN:
                return (1, 0)
            case Direction.LEFT:
                return (0, -1)
            case Direction.RIGHT:
                return (0, 1)

    @property
    def rule_key(self) -> str:
        """The key under which the direction is stored in the rule wire shape (e.g. 'up')."""
        return self.name.lower()
