"""Exit distance field for the evacuation simulation."""

import numpy as np
from collections import deque

from .grid import CARDINAL_OFFSETS, Cell, GridWorld


class ExitDistanceField:
    """
    True 4-connected step distance from every cell to its nearest exit.

    Barriers are impassable. Cells that cannot reach any exit hold inf.
    """

    def __init__(self, world: GridWorld):
        self.world = world
        self.revision = -1
        self.field = np.full((world.height, world.width), np.inf)
        self.compute()

    def compute(self) -> None:
        """
        Compute distance gradient using multi-source BFS from all exits.
        """
        width, height = self.world.width, self.world.height
        walls = self.world.walls
        self.field = np.full((height, width), np.inf)
        self.revision = self.world.revision

        queue = deque()
        for gx, gy in self.world.exits:
            self.field[gy, gx] = 0
            queue.append((gx, gy, 0))

        while queue:
            x, y, dist = queue.popleft()
            for dx, dy in CARDINAL_OFFSETS:
                nx, ny = x + dx, y + dy
                if (0 <= nx < width and 0 <= ny < height
                        and not walls[ny, nx]
                        and self.field[ny, nx] == np.inf):
                    self.field[ny, nx] = dist + 1
                    queue.append((nx, ny, dist + 1))

    def refresh(self) -> None:
        """Recompute if the barrier layer changed since the last compute."""
        if self.revision != self.world.revision:
            self.compute()

    def distance(self, cell: Cell) -> float:
        """Return step distance to the nearest exit (inf if enclosed)."""
        x, y = cell
        return float(self.field[y, x])

    def is_reachable(self, cell: Cell) -> bool:
        return bool(np.isfinite(self.distance(cell)))

    def unreachable_cells(self) -> int:
        """Count walkable cells with no route to any exit."""
        return int(np.sum(~np.isfinite(self.field) & ~self.world.walls))
