"""Shared fixtures for the evacuation simulation tests."""

from collections import deque

import numpy as np
import pytest

from barrier_evac.config import (AgentConfig, BarrierEvent, GridConfig, LayoutConfig,
                                 SimulationConfig, SpawnConfig, points)
from barrier_evac.model.grid import GridWorld


def _build_config(width, height, barriers=(), exits=(), agent_count=0,
                  spawn_cells=None, max_ticks=100, seed=0,
                  barrier_events=(), **agent_kwargs):
    spawn = SpawnConfig()
    if spawn_cells is not None:
        spawn = SpawnConfig(distribution="zones", zones=[points(spawn_cells)])
    layout = LayoutConfig(
        barriers=[points(barriers)] if barriers else [],
        exits=[points(exits)],
        spawn=spawn,
        barrier_events=[
            BarrierEvent(tick=tick, add=[points(add)] if add else [],
                         remove=[points(remove)] if remove else [])
            for tick, add, remove in barrier_events
        ],
    )
    return SimulationConfig(
        grid=GridConfig(width=width, height=height),
        max_ticks=max_ticks,
        agent_count=agent_count,
        agents=AgentConfig(**agent_kwargs),
        layout=layout,
        seed=seed,
    )


@pytest.fixture
def make_config():
    """Factory for small in-memory configurations."""
    return _build_config


@pytest.fixture
def corridor():
    """10x1 corridor with an exit at the east end."""
    return GridWorld(10, 1, exits=[(9, 0)])


def _bfs_distance(world, start):
    """Exhaustive 4-connected BFS distance from start to the nearest exit."""
    if start in world.exits:
        return 0
    seen = {start}
    queue = deque([(start, 0)])
    while queue:
        cell, dist = queue.popleft()
        for nb in world.neighbors4(cell):
            if nb in seen or nb in world.barriers:
                continue
            if nb in world.exits:
                return dist + 1
            seen.add(nb)
            queue.append((nb, dist + 1))
    return None


@pytest.fixture
def bfs_distance():
    return _bfs_distance


def _random_world(seed):
    """Small random grid with random barrier density and 1-3 exits."""
    rng = np.random.default_rng(seed)
    width = int(rng.integers(4, 11))
    height = int(rng.integers(4, 11))
    density = float(rng.uniform(0.0, 0.4))
    blocked = rng.random((height, width)) < density

    cells = [(x, y) for y in range(height) for x in range(width)]
    open_cells = [c for c in cells if not blocked[c[1], c[0]]]
    if len(open_cells) < 2:
        open_cells = cells[:2]
        for x, y in open_cells:
            blocked[y, x] = False

    exit_count = min(int(rng.integers(1, 4)), len(open_cells) - 1)
    exit_idx = rng.choice(len(open_cells), size=exit_count, replace=False)
    exits = [open_cells[int(i)] for i in exit_idx]
    barriers = [c for c in cells if blocked[c[1], c[0]]]
    starts = [c for c in open_cells if c not in exits]
    start = starts[int(rng.integers(0, len(starts)))]
    return GridWorld(width, height, barriers=barriers, exits=exits), start


@pytest.fixture
def random_world():
    return _random_world
