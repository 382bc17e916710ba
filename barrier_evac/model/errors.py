"""Error taxonomy for the evacuation model."""


class EvacuationError(Exception):
    """Base class for all model errors."""


class OutOfBounds(EvacuationError, IndexError):
    """A queried cell lies outside the grid."""

    def __init__(self, cell, width: int, height: int):
        super().__init__(f"Cell {cell} outside {width}x{height} grid")
        self.cell = cell


class InvalidStart(EvacuationError):
    """Planning was requested from a barrier cell."""


class InvalidGoal(EvacuationError):
    """The goal set is empty or overlaps the barrier layer."""


class NoPathFound(EvacuationError):
    """No exit is reachable from the start cell."""

    def __init__(self, start, expanded: int = 0):
        super().__init__(f"No exit reachable from {start}")
        self.start = start
        self.expanded = expanded


class StaleConfiguration(EvacuationError):
    """The barrier layer changed while a tick was in flight."""
