"""
Tests for the agent pool and motion model.
"""

import pytest

from barrier_evac.config import AgentConfig
from barrier_evac.model.agent import AgentState
from barrier_evac.model.errors import InvalidStart
from barrier_evac.model.grid import GridWorld
from barrier_evac.model.pathfinding import PathPlanner
from barrier_evac.model.pool import AgentPool, compute_panic, deflect
from barrier_evac.model.proximity import ProximityIndex


def make_pool(world, **agent_kwargs):
    return AgentPool(world, PathPlanner(world), AgentConfig(**agent_kwargs))


def tick(pool, index, tick_number):
    live = pool.live()
    index.rebuild(live)
    decisions = [pool.decide(agent, index, tick_number) for agent in live]
    return decisions, pool.apply(decisions, tick_number)


def test_compute_panic():
    assert compute_panic(None, 0.5) == 0.0
    assert compute_panic(2.0, 0.5) == pytest.approx(1.0)
    assert compute_panic(10.0, 0.5, panic_cap=2.0) == pytest.approx(2.0)
    assert compute_panic(-3.0, 0.5) == 0.0


def test_panic_never_decreases_with_neighbour_speed():
    speeds = [0.0, 0.5, 1.0, 1.5, 3.0, 8.0]
    panics = [compute_panic(s, 0.2) for s in speeds]
    assert panics == sorted(panics)
    assert all(p >= 0 for p in panics)


@pytest.mark.parametrize("slow, fast", [(1.0, 2.0), (0.5, 0.6), (2.0, 5.0)])
def test_decide_panic_monotonic_in_neighbour_speed(slow, fast):
    world = GridWorld(12, 12, exits=[(11, 11)])
    results = []
    for neighbour_speed in (slow, fast):
        pool = make_pool(world, panic_radius=3.0, panic_factor=0.3,
                         distance_preference=0.0)
        agent = pool.spawn((5, 5))
        neighbour = pool.spawn((6, 7))
        neighbour.speed = neighbour_speed
        index = ProximityIndex(bucket_size=3.0)
        index.rebuild(pool.live())
        decision = pool.decide(agent, index, 1)
        results.append(decision)
    assert results[1].panic_level >= results[0].panic_level
    assert results[0].speed == pytest.approx(1.0 + results[0].panic_level)


def test_lone_agent_follows_path_one_cell_per_tick(corridor):
    pool = make_pool(corridor)
    agent = pool.spawn((0, 0))
    index = ProximityIndex()
    decisions, exited = tick(pool, index, 1)
    assert agent.cell == (1, 0)
    assert agent.heading == (1, 0)
    assert agent.path_heading == (1, 0)
    assert agent.panic_level == 0.0
    assert agent.deflected is False
    assert decisions[0].steps == 1
    assert exited == []


def test_adjacent_agents_deflect():
    world = GridWorld(10, 10, exits=[(9, 5)])
    pool = make_pool(world, distance_preference=2.0)
    a = pool.spawn((2, 5))
    b = pool.spawn((3, 5))
    tick(pool, ProximityIndex(bucket_size=2.0), 1)
    assert any(agent.deflected and agent.heading != agent.path_heading
               for agent in (a, b))
    # On a tie the lower id turns counter-clockwise, the higher clockwise
    assert a.path_heading == (1, 0)
    assert a.heading == (0, 1)
    assert a.cell == (2, 6)
    assert b.heading == (0, -1)
    assert b.cell == (3, 4)
    # Deflection never edits the cached path
    assert a.path_index == 0


def test_agents_sharing_a_cell_separate():
    world = GridWorld(10, 10, exits=[(9, 5)])
    pool = make_pool(world, distance_preference=1.0)
    a = pool.spawn((2, 5))
    b = pool.spawn((3, 5))
    b.cell = (2, 5)
    tick(pool, ProximityIndex(), 1)
    assert a.deflected is False
    assert a.cell == (3, 5)
    assert b.deflected is True
    assert b.cell == (2, 4)


def test_deflected_agent_replans_from_new_cell():
    world = GridWorld(10, 10, exits=[(9, 5)])
    pool = make_pool(world, distance_preference=2.0)
    a = pool.spawn((2, 5))
    pool.spawn((3, 5))
    index = ProximityIndex(bucket_size=2.0)
    tick(pool, index, 1)
    deflected_cell = a.cell
    tick(pool, index, 2)
    assert a.path_start == deflected_cell


def test_two_path_steps_between_deflections():
    world = GridWorld(10, 10, exits=[(9, 5)])
    pool = make_pool(world, distance_preference=9.0, panic_factor=0.0)
    a = pool.spawn((2, 5))
    b = pool.spawn((3, 5))
    index = ProximityIndex(bucket_size=9.0)

    tick(pool, index, 1)
    assert a.deflected and b.deflected
    assert a.steps_since_deflection == 0

    # The neighbour stays in range but both agents walk their paths
    for t in (2, 3):
        tick(pool, index, t)
        assert not a.deflected and not b.deflected
        assert a.heading == a.path_heading
    assert a.steps_since_deflection == 2

    tick(pool, index, 4)
    assert a.deflected and b.deflected


def test_deflection_falls_back_to_path_in_corridor(corridor):
    pool = make_pool(corridor, distance_preference=2.0)
    a = pool.spawn((0, 0))
    b = pool.spawn((1, 0))
    tick(pool, ProximityIndex(bucket_size=2.0), 1)
    assert (a.cell, b.cell) == ((1, 0), (2, 0))
    assert not a.deflected and not b.deflected


def test_deflect_prefers_side_away_from_neighbour():
    world = GridWorld(5, 5, exits=[(4, 4)])
    # Neighbour below: turn north
    assert deflect((2, 2), (1, 0), (2, 1), world) == (0, 1)
    # Neighbour above: turn south
    assert deflect((2, 2), (1, 0), (2, 3), world) == (0, -1)
    # Preferred side blocked: take the other one
    world.set_barriers([(2, 3)])
    assert deflect((2, 2), (1, 0), (2, 1), world) == (0, -1)
    world.set_barriers([(2, 3), (2, 1)])
    assert deflect((2, 2), (1, 0), (3, 2), world) is None


def test_deflect_tie_side():
    world = GridWorld(5, 5, exits=[(4, 4)])
    assert deflect((2, 2), (1, 0), (3, 2), world) == (0, 1)
    assert deflect((2, 2), (1, 0), (3, 2), world, prefer_ccw=False) == (0, -1)
    assert deflect((2, 2), (0, 1), (2, 2), world, prefer_ccw=False) == (1, 0)


def test_agent_exits_and_is_removed(corridor):
    pool = make_pool(corridor)
    agent = pool.spawn((8, 0))
    _, exited = tick(pool, ProximityIndex(), 4)
    assert exited == [agent]
    assert agent.state == AgentState.EXITED
    assert agent.alive is False
    assert agent.exit_tick == 4
    assert len(pool) == 0
    assert pool.all_agents == [agent]


def test_fast_agent_moves_several_cells_and_stops_on_exit(corridor):
    pool = make_pool(corridor, base_speed=3.0)
    agent = pool.spawn((0, 0))
    tick(pool, ProximityIndex(), 1)
    assert agent.cell == (3, 0)

    late = make_pool(corridor, base_speed=3.0)
    runner = late.spawn((8, 0))
    decisions, exited = tick(late, ProximityIndex(), 1)
    assert runner.cell == (9, 0)
    assert decisions[0].steps == 1
    assert exited == [runner]


def test_slow_agent_accumulates_movement(corridor):
    pool = make_pool(corridor, base_speed=0.5)
    agent = pool.spawn((0, 0))
    index = ProximityIndex()
    tick(pool, index, 1)
    assert agent.cell == (0, 0)
    tick(pool, index, 2)
    assert agent.cell == (1, 0)


def test_enclosed_agent_is_stuck_not_removed():
    world = GridWorld(5, 5, barriers=[(1, 0), (0, 1)], exits=[(4, 4)])
    pool = make_pool(world, max_replan_attempts=2)
    agent = pool.spawn((0, 0))
    index = ProximityIndex()
    for t in range(1, 5):
        tick(pool, index, t)
    assert agent.state == AgentState.STUCK
    assert agent.cell == (0, 0)
    assert agent.replan_failures == 2
    assert len(pool) == 1
    assert pool.stuck() == [agent]

    # Opening the enclosure lets the agent plan again
    world.set_barriers([(1, 0)])
    pool.reset_replan_failures()
    tick(pool, index, 5)
    assert agent.state == AgentState.ACTIVE
    assert agent.cell == (0, 1)


def test_invalid_start_propagates():
    world = GridWorld(5, 5, exits=[(4, 4)])
    pool = make_pool(world)
    pool.spawn((0, 0))
    world.set_barriers([(0, 0)])
    with pytest.raises(InvalidStart):
        tick(pool, ProximityIndex(), 1)


def test_spawn_rejects_barrier_and_exit_cells():
    world = GridWorld(5, 5, barriers=[(1, 1)], exits=[(4, 4)])
    pool = make_pool(world)
    with pytest.raises(ValueError):
        pool.spawn((1, 1))
    with pytest.raises(ValueError):
        pool.spawn((4, 4))
    assert len(pool) == 0


def test_decisions_use_tick_start_positions():
    world = GridWorld(10, 10, exits=[(9, 0)])
    pool = make_pool(world, distance_preference=1.0)
    a = pool.spawn((0, 0))
    b = pool.spawn((2, 0))
    index = ProximityIndex()
    index.rebuild(pool.live())
    first = pool.decide(a, index, 1)
    # Until apply, nothing has moved and b still sees a at its old cell
    assert a.cell == (0, 0)
    second = pool.decide(b, index, 1)
    assert second.cell == (3, 0)
    assert first.cell == (1, 0)
