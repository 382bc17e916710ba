"""Static map for the evacuation simulation."""

import threading
from contextlib import contextmanager
from typing import FrozenSet, Iterable, Iterator, List, Tuple

import numpy as np

from .errors import InvalidGoal, OutOfBounds, StaleConfiguration

Cell = Tuple[int, int]

# East, west, north, south
CARDINAL_OFFSETS: Tuple[Cell, ...] = ((1, 0), (-1, 0), (0, 1), (0, -1))


class GridWorld:
    """
    Owns grid dimensions, the barrier layer and the exit cells.

    Coordinate convention: (x, y) for API, [y, x] for array indexing.
    The barrier layer may only be replaced between ticks; the simulation
    clock holds ``tick_guard()`` while a tick runs.
    """

    def __init__(self, width: int, height: int,
                 barriers: Iterable[Cell] = (),
                 exits: Iterable[Cell] = ()):
        if width <= 0 or height <= 0:
            raise ValueError(f"Grid dimensions must be positive, got {width}x{height}")
        self.width = width
        self.height = height
        self.revision = 0
        self._tick_lock = threading.Lock()

        self._exits: FrozenSet[Cell] = frozenset(self._normalize(exits))
        self._barriers: FrozenSet[Cell] = frozenset()
        # Boolean mask: True = barrier (impassable)
        self.walls = np.zeros((height, width), dtype=bool)
        self._replace_barriers(self._normalize(barriers))

    @property
    def barriers(self) -> FrozenSet[Cell]:
        return self._barriers

    @property
    def exits(self) -> FrozenSet[Cell]:
        return self._exits

    def _normalize(self, cells: Iterable[Cell]) -> List[Cell]:
        normalized = []
        for cell in cells:
            x, y = int(cell[0]), int(cell[1])
            self._check((x, y))
            normalized.append((x, y))
        return normalized

    def _check(self, cell: Cell) -> None:
        if not self.in_bounds(cell):
            raise OutOfBounds(cell, self.width, self.height)

    def in_bounds(self, cell: Cell) -> bool:
        x, y = cell
        return 0 <= x < self.width and 0 <= y < self.height

    def is_blocked(self, cell: Cell) -> bool:
        """Return True if the cell is a barrier."""
        self._check(cell)
        return cell in self._barriers

    def is_exit(self, cell: Cell) -> bool:
        """Return True if occupying the cell removes an agent."""
        self._check(cell)
        return cell in self._exits

    def is_walkable(self, cell: Cell) -> bool:
        """Check if cell is within bounds and not a barrier."""
        return self.in_bounds(cell) and cell not in self._barriers

    def neighbors4(self, cell: Cell) -> List[Cell]:
        """In-bounds cardinal neighbours, barriers included."""
        self._check(cell)
        x, y = cell
        neighbors = []
        for dx, dy in CARDINAL_OFFSETS:
            candidate = (x + dx, y + dy)
            if self.in_bounds(candidate):
                neighbors.append(candidate)
        return neighbors

    def walkable_cells(self) -> List[Cell]:
        """All non-barrier cells in row-major order."""
        ys, xs = np.where(~self.walls)
        return [(int(x), int(y)) for x, y in zip(xs, ys)]

    def exit_mask(self) -> np.ndarray:
        mask = np.zeros((self.height, self.width), dtype=bool)
        for x, y in self._exits:
            mask[y, x] = True
        return mask

    @contextmanager
    def tick_guard(self) -> Iterator[int]:
        """Hold the world for one tick; yields the revision at entry."""
        if not self._tick_lock.acquire(blocking=False):
            raise StaleConfiguration("A tick is already in progress")
        try:
            yield self.revision
        finally:
            self._tick_lock.release()

    def set_barriers(self, cells: Iterable[Cell]) -> None:
        """Replace the barrier layer. Must not be called during a tick."""
        normalized = self._normalize(cells)
        if not self._tick_lock.acquire(blocking=False):
            raise StaleConfiguration("Barrier layer changed while a tick was in progress")
        try:
            self._replace_barriers(normalized)
        finally:
            self._tick_lock.release()

    def _replace_barriers(self, cells: List[Cell]) -> None:
        barriers = frozenset(cells)
        overlap = barriers & self._exits
        if overlap:
            raise InvalidGoal(f"Barriers overlap exit cells: {sorted(overlap)}")

        walls = np.zeros((self.height, self.width), dtype=bool)
        for x, y in barriers:
            walls[y, x] = True

        self._barriers = barriers
        self.walls = walls
        self.revision += 1

    def __repr__(self) -> str:
        return (f"GridWorld({self.width}x{self.height}, "
                f"barriers={len(self._barriers)}, exits={len(self._exits)})")
