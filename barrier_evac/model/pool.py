"""Agent pool and the per-tick motion model."""

import logging
import math
from typing import TYPE_CHECKING, Dict, Iterator, List, Optional, Sequence

from .agent import DEFLECTION_COOLDOWN, Agent, AgentState, Heading, MoveDecision
from .errors import NoPathFound
from .grid import Cell, GridWorld
from .pathfinding import PathPlanner
from .proximity import ProximityIndex

if TYPE_CHECKING:
    from ..config import AgentConfig

logger = logging.getLogger(__name__)


def compute_panic(mean_neighbor_speed: Optional[float], panic_factor: float,
                  panic_cap: Optional[float] = None) -> float:
    """
    Panic grows linearly with the mean speed of nearby agents.

    No neighbours means no panic. The result is never negative and is
    clamped to ``panic_cap`` when one is configured.
    """
    if mean_neighbor_speed is None:
        return 0.0
    panic = max(0.0, panic_factor * mean_neighbor_speed)
    if panic_cap is not None:
        panic = min(panic, panic_cap)
    return panic


def deflect(cell: Cell, heading: Heading, away_from: Cell,
            world: GridWorld, prefer_ccw: bool = True) -> Optional[Heading]:
    """
    Rotate ``heading`` by 90 degrees to steer away from ``away_from``.

    The rotation pointing further from the other agent is tried first
    (``prefer_ccw`` picks the side on a tie), then the opposite one.
    Returns None when neither rotated cell is walkable.
    """
    hx, hy = heading
    ccw = (-hy, hx)
    cw = (hy, -hx)
    away = (cell[0] - away_from[0], cell[1] - away_from[1])

    def score(d: Heading) -> int:
        return d[0] * away[0] + d[1] * away[1]

    if score(ccw) == score(cw):
        order = (ccw, cw) if prefer_ccw else (cw, ccw)
    else:
        order = (ccw, cw) if score(ccw) > score(cw) else (cw, ccw)
    for dx, dy in order:
        if world.is_walkable((cell[0] + dx, cell[1] + dy)):
            return (dx, dy)
    return None


class AgentPool:
    """
    Owns the live agents and turns index snapshots into movement.

    Updates are two-phase: ``decide`` reads only the tick-start snapshot
    and returns a MoveDecision, ``apply`` writes every decision of the tick
    at once and buffers exits until the full pass is done.
    """

    def __init__(self, world: GridWorld, planner: PathPlanner,
                 config: "AgentConfig"):
        self.world = world
        self.planner = planner
        self.config = config
        self.all_agents: List[Agent] = []
        self._live: Dict[int, Agent] = {}
        self._next_id = 1

    def spawn(self, cell: Cell, tick: int = 0) -> Agent:
        """Create an agent on a walkable, non-exit cell."""
        if self.world.is_blocked(cell):
            raise ValueError(f"Cannot spawn agent on barrier cell {cell}")
        if self.world.is_exit(cell):
            raise ValueError(f"Cannot spawn agent on exit cell {cell}")
        agent = Agent(self._next_id, cell, self.config.base_speed, spawn_tick=tick)
        self._next_id += 1
        self.all_agents.append(agent)
        self._live[agent.id] = agent
        return agent

    def live(self) -> List[Agent]:
        """Live agents in stable id order."""
        return [self._live[agent_id] for agent_id in sorted(self._live)]

    def positions(self) -> Dict[int, Cell]:
        return {agent.id: agent.cell for agent in self.live()}

    def get(self, agent_id: int) -> Agent:
        for agent in self.all_agents:
            if agent.id == agent_id:
                return agent
        raise KeyError(agent_id)

    def stuck(self) -> List[Agent]:
        return [agent for agent in self.live() if agent.stuck]

    def reset_replan_failures(self) -> None:
        """Let stuck agents retry after the barrier layer changed."""
        for agent in self.live():
            agent.replan_failures = 0

    def _may_replan(self, failures: int) -> bool:
        limit = self.config.max_replan_attempts
        return limit is None or failures < limit

    def decide(self, agent: Agent, index: ProximityIndex, tick: int) -> MoveDecision:
        """Compute one agent's panic, speed, path and move for this tick."""
        cfg = self.config
        cell = agent.cell

        mean_speed = index.mean('speed', cell, cfg.panic_radius, exclude=agent.id)
        panic = compute_panic(mean_speed, cfg.panic_factor, cfg.panic_cap)
        speed = agent.base_speed + panic
        budget = agent.move_budget + speed
        steps = int(math.floor(budget))
        budget -= steps

        path = agent.path
        path_index = agent.path_index
        path_start = agent.path_start
        state = agent.state
        failures = agent.replan_failures

        if self.planner.is_stale(path, path_index, path_start, cell):
            path, path_index, path_start = None, 0, None
            if self._may_replan(failures):
                try:
                    path = self.planner.plan(cell)
                    path_start = cell
                    state = AgentState.ACTIVE
                    failures = 0
                except NoPathFound:
                    failures += 1
                    if state != AgentState.STUCK:
                        logger.warning("Agent %d stuck at %s on tick %d: no exit reachable",
                                       agent.id, cell, tick)
                    state = AgentState.STUCK
            else:
                state = AgentState.STUCK

        path_heading = None
        if path is not None and path_index < len(path):
            wx, wy = path[path_index]
            path_heading = (wx - cell[0], wy - cell[1])

        new_cell = cell
        heading: Heading = (0, 0)
        deflected = False
        moved = 0
        since_deflection = agent.steps_since_deflection
        if state == AgentState.ACTIVE and path_heading is not None and steps > 0:
            neighbor = None
            # At least two path steps between sidesteps: exit distance shrinks
            # by one or more every three moves
            if since_deflection >= DEFLECTION_COOLDOWN:
                neighbor = index.closest(cell, cfg.distance_preference, exclude=agent.id)
            detour = None
            # Of two agents sharing a cell only the higher id steps aside
            if neighbor is not None and not (neighbor.cell == cell and agent.id < neighbor.id):
                detour = deflect(cell, path_heading, neighbor.cell, self.world,
                                 prefer_ccw=agent.id < neighbor.id)
            # None also when boxed in sideways: keep following the path
            if detour is not None:
                heading = detour
                deflected = True
                new_cell = (cell[0] + detour[0], cell[1] + detour[1])
                moved = 1
                since_deflection = 0
                logger.debug("Agent %d deflected %s -> %s away from agent %d",
                             agent.id, path_heading, detour, neighbor.id)
            else:
                heading = path_heading
                while moved < steps and path_index < len(path):
                    new_cell = path[path_index]
                    path_index += 1
                    moved += 1
                    if self.world.is_exit(new_cell):
                        break
                since_deflection += moved

        return MoveDecision(
            agent_id=agent.id,
            cell=new_cell,
            panic_level=panic,
            speed=speed,
            move_budget=budget,
            state=state,
            path=path,
            path_index=path_index,
            path_start=path_start,
            replan_failures=failures,
            heading=heading,
            path_heading=path_heading,
            deflected=deflected,
            steps_since_deflection=since_deflection,
            steps=moved,
            reached_exit=self.world.is_exit(new_cell),
        )

    def apply(self, decisions: Sequence[MoveDecision], tick: int) -> List[Agent]:
        """Write the tick's decisions, then remove agents standing on exits."""
        exited = []
        for decision in decisions:
            agent = self._live[decision.agent_id]
            agent.cell = decision.cell
            agent.panic_level = decision.panic_level
            agent.speed = decision.speed
            agent.move_budget = decision.move_budget
            agent.state = decision.state
            agent.path = decision.path
            agent.path_index = decision.path_index
            agent.path_start = decision.path_start
            agent.replan_failures = decision.replan_failures
            agent.heading = decision.heading
            agent.path_heading = decision.path_heading
            agent.deflected = decision.deflected
            agent.steps_since_deflection = decision.steps_since_deflection
            agent.steps_taken += decision.steps
            if decision.reached_exit:
                exited.append(agent)

        for agent in sorted(exited, key=lambda a: a.id):
            self.remove(agent, tick)
        return exited

    def remove(self, agent: Agent, tick: int) -> None:
        """Mark an agent exited and drop it from the live set."""
        agent.state = AgentState.EXITED
        agent.exit_tick = tick
        del self._live[agent.id]

    def __len__(self) -> int:
        return len(self._live)

    def __iter__(self) -> Iterator[Agent]:
        return iter(self.live())
