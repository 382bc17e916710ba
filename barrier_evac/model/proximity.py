"""Bucketed spatial index over agent positions."""

import math
from collections import defaultdict
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

if TYPE_CHECKING:
    from .agent import Agent

Point = Tuple[float, float]

NUMERIC_FIELDS: Dict[str, Callable[["Agent"], float]] = {
    'speed': lambda agent: agent.speed,
    'panic_level': lambda agent: agent.panic_level,
}


class ProximityIndex:
    """
    Radius queries over a snapshot of agent positions.

    Agents are hashed into square buckets of ``bucket_size`` cells; a query
    scans only the buckets overlapping the query's bounding square. The
    snapshot (positions and numeric fields) is taken by ``rebuild`` and is
    read-only until the next rebuild.
    """

    def __init__(self, bucket_size: float = 1.0):
        if bucket_size <= 0:
            raise ValueError(f"bucket_size must be positive, got {bucket_size}")
        self.bucket_size = bucket_size
        self.agents: List["Agent"] = []
        self.positions = np.zeros((0, 2), dtype=np.float64)
        self.values: Dict[str, np.ndarray] = {}
        self.buckets: Dict[Tuple[int, int], List[int]] = {}

    def _bucket(self, x: float, y: float) -> Tuple[int, int]:
        return (int(math.floor(x / self.bucket_size)),
                int(math.floor(y / self.bucket_size)))

    def rebuild(self, agents: Sequence["Agent"]) -> None:
        """Snapshot the given agents; order is kept as given."""
        self.agents = list(agents)
        self.positions = np.array(
            [agent.cell for agent in self.agents], dtype=np.float64
        ).reshape(-1, 2)
        self.values = {
            name: np.array([getter(agent) for agent in self.agents], dtype=np.float64)
            for name, getter in NUMERIC_FIELDS.items()
        }

        buckets = defaultdict(list)
        for idx, (x, y) in enumerate(self.positions):
            buckets[self._bucket(x, y)].append(idx)
        self.buckets = dict(buckets)

    def _indices_within(self, point: Point, radius: float,
                        exclude: Optional[int]) -> np.ndarray:
        if radius < 0 or not self.agents:
            return np.zeros(0, dtype=np.int64)

        px, py = point
        bx0, by0 = self._bucket(px - radius, py - radius)
        bx1, by1 = self._bucket(px + radius, py + radius)
        candidates = []
        for bx in range(bx0, bx1 + 1):
            for by in range(by0, by1 + 1):
                candidates.extend(self.buckets.get((bx, by), ()))
        if not candidates:
            return np.zeros(0, dtype=np.int64)

        candidates = np.array(sorted(candidates), dtype=np.int64)
        offsets = self.positions[candidates] - np.array([px, py])
        within = np.hypot(offsets[:, 0], offsets[:, 1]) <= radius
        hits = candidates[within]
        if exclude is not None:
            hits = np.array([i for i in hits if self.agents[i].id != exclude],
                            dtype=np.int64)
        return hits

    def query(self, point: Point, radius: float,
              exclude: Optional[int] = None) -> List["Agent"]:
        """Agents within ``radius`` (inclusive) of ``point``, sorted by id."""
        hits = self._indices_within(point, radius, exclude)
        return sorted((self.agents[i] for i in hits), key=lambda a: a.id)

    def closest(self, point: Point, radius: float,
                exclude: Optional[int] = None) -> Optional["Agent"]:
        """Nearest agent within ``radius``; ties go to the lower id."""
        hits = self._indices_within(point, radius, exclude)
        if len(hits) == 0:
            return None
        offsets = self.positions[hits] - np.array(point, dtype=np.float64)
        distances = np.hypot(offsets[:, 0], offsets[:, 1])
        ranked = sorted(zip(distances, (self.agents[i].id for i in hits), hits))
        return self.agents[ranked[0][2]]

    def mean(self, field: str, point: Point, radius: float,
             exclude: Optional[int] = None) -> Optional[float]:
        """Average of a snapshotted numeric field, or None if nobody is in range."""
        if field not in NUMERIC_FIELDS:
            raise ValueError(f"Unknown numeric field: {field}")
        hits = self._indices_within(point, radius, exclude)
        if len(hits) == 0:
            return None
        return float(np.mean(self.values[field][hits]))

    def __len__(self) -> int:
        return len(self.agents)
