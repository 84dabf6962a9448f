"""Contains the exception hierarchy raised by the WFC model."""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from tilecollapse.enums import BufferState
    from tilecollapse.model.grid import Cell


class WFCError(Exception):
    """Base exception for all WFC errors."""

    pass


class NotReady(WFCError):
    """A run or a result read was attempted outside the required buffer state."""

    def __init__(self, message: str, state: BufferState | None = None):
        super().__init__(message)
        self.state = state


class EmptySelection(WFCError):
    """A uniform or weighted pick was asked to choose from an empty set."""

    pass


class NoCandidateCells(WFCError):
    """The lowest-entropy frontier was requested while no unresolved cell remains."""

    pass


class ContradictionError(WFCError):
    """The resolved neighbors of a cell jointly allow zero tile types.

    Attributes:
        index: The index of the cell that could not be given a candidate set, if known.
        snapshot: Copies of all grid cells at the moment the contradiction was detected.
    """

    def __init__(self, message: str, index: int | None = None, snapshot: Sequence[Cell] = ()):
        super().__init__(message)
        self.index = index
        self.snapshot = tuple(snapshot)


class CollapseFailed(ContradictionError):
    """A cell could not be resolved after exhausting its retry budget.

    The error of the last attempt is chained as '__cause__'.

    Attributes:
        tried: The tile indices that were attempted for the cell, in attempt order.
    """

    def __init__(self, message: str, index: int, tried: Sequence[int] = (), snapshot: Sequence[Cell] = ()):
        super().__init__(message, index, snapshot)
        self.tried = tuple(tried)


class CorruptState(WFCError):
    """The run believes it has finished but some cell still has no assigned type."""

    def __init__(self, message: str, unset_indices: Sequence[int] = ()):
        super().__init__(message)
        self.unset_indices = tuple(unset_indices)
