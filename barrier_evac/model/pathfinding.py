"""A* route planning to the nearest exit."""

import heapq
import itertools
import logging
from typing import Dict, Optional, Sequence, Set, Tuple

import numpy as np
from scipy.ndimage import distance_transform_cdt

from .errors import InvalidGoal, InvalidStart, NoPathFound, OutOfBounds
from .grid import Cell, GridWorld

logger = logging.getLogger(__name__)

Path = Tuple[Cell, ...]


class PathPlanner:
    """
    Shortest 4-connected route from a start cell to the nearest exit.

    Search state (g scores, parents, closed set, open heap) lives only for
    the duration of one ``plan`` call. The heuristic is the Manhattan
    distance to the nearest exit, which is admissible and consistent for
    unit-cost cardinal moves.

    Open-set ordering: lowest f first; on equal f the larger g wins;
    remaining ties go to the earliest inserted entry.
    """

    def __init__(self, world: GridWorld):
        self.world = world
        self.last_expanded = 0
        self._heuristic: Optional[np.ndarray] = None
        self._heuristic_revision = -1

    def heuristic_field(self) -> np.ndarray:
        """Manhattan distance from every cell to its nearest exit."""
        if not self.world.exits:
            raise InvalidGoal("World has no exit cells")
        if self._heuristic is None or self._heuristic_revision != self.world.revision:
            # Exits are the zero-valued background of the transform
            self._heuristic = distance_transform_cdt(
                ~self.world.exit_mask(), metric='taxicab'
            )
            self._heuristic_revision = self.world.revision
        return self._heuristic

    def estimate(self, cell: Cell) -> int:
        x, y = cell
        return int(self.heuristic_field()[y, x])

    def plan(self, start: Cell) -> Path:
        """
        Return the path from ``start`` (exclusive) to an exit (inclusive).

        Raises OutOfBounds, InvalidStart, InvalidGoal or NoPathFound.
        """
        world = self.world
        if not world.in_bounds(start):
            raise OutOfBounds(start, world.width, world.height)
        if start in world.barriers:
            raise InvalidStart(f"Start cell {start} is a barrier")
        heuristic = self.heuristic_field()

        exits = world.exits
        barriers = world.barriers
        self.last_expanded = 0
        if start in exits:
            return ()

        g_score: Dict[Cell, int] = {start: 0}
        parent: Dict[Cell, Cell] = {}
        closed: Set[Cell] = set()
        sequence = itertools.count()
        open_heap = [(int(heuristic[start[1], start[0]]), 0, next(sequence), start)]

        while open_heap:
            _, neg_g, _, cell = heapq.heappop(open_heap)
            if cell in closed or -neg_g > g_score[cell]:
                continue  # superseded entry

            if cell in exits:
                path = self._reconstruct(parent, cell)
                logger.debug("Planned %d-step path from %s to %s (%d expanded)",
                             len(path), start, cell, self.last_expanded)
                return path

            closed.add(cell)
            self.last_expanded += 1
            tentative = g_score[cell] + 1
            for nb in world.neighbors4(cell):
                if nb in barriers or nb in closed:
                    continue
                known = g_score.get(nb)
                if known is None or tentative < known:
                    g_score[nb] = tentative
                    parent[nb] = cell
                    f = tentative + int(heuristic[nb[1], nb[0]])
                    heapq.heappush(open_heap, (f, -tentative, next(sequence), nb))

        logger.debug("No exit reachable from %s (%d expanded)", start, self.last_expanded)
        raise NoPathFound(start, self.last_expanded)

    @staticmethod
    def _reconstruct(parent: Dict[Cell, Cell], goal: Cell) -> Path:
        cells = [goal]
        while cells[-1] in parent:
            cells.append(parent[cells[-1]])
        cells.pop()  # start is excluded
        cells.reverse()
        return tuple(cells)

    def is_stale(self, path: Optional[Sequence[Cell]], path_index: int,
                 path_start: Optional[Cell], cell: Cell) -> bool:
        """
        Check whether a cached path must be replanned before reuse.

        Stale when absent or exhausted, when the agent is not on the cell the
        path cursor expects (it was deflected), or when any remaining
        waypoint has since become a barrier.
        """
        if path is None or path_start is None or path_index >= len(path):
            return True
        expected = path_start if path_index == 0 else path[path_index - 1]
        if expected != cell:
            return True
        barriers = self.world.barriers
        return any(step in barriers for step in path[path_index:])
