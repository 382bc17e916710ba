"""Simulation clock for the evacuation model."""

import logging
import numpy as np
from typing import Callable, Dict, Iterable, List, Optional, Set, TYPE_CHECKING

from .grid import Cell, GridWorld
from .agent import AgentState
from .errors import StaleConfiguration
from .floor_field import ExitDistanceField
from .pathfinding import PathPlanner
from .pool import AgentPool
from .proximity import ProximityIndex
from .state import AgentSnapshot, ExitEvent, RunResult, RunStatus, SimulationState
from ..config import expand_cells

if TYPE_CHECKING:
    from ..config import SimulationConfig

logger = logging.getLogger(__name__)


class SimulationClock:
    """
    Orchestrates the discrete-time simulation loop.

    Each tick:
    1. Rebuild the proximity index from live agent positions
    2. Decide panic, speed, path and move for every live agent (id order)
    3. Apply all decisions at once
    4. Remove agents standing on exits and log exit events
    5. Return an immutable state snapshot

    The barrier layer is held for the whole tick; it may only change
    between ticks, through ``set_barriers`` or scheduled barrier events.
    """

    def __init__(self, config: "SimulationConfig"):
        self.config = config
        self.current_tick = 0
        self.rng = np.random.default_rng(config.seed)

        width, height = config.grid.width, config.grid.height
        self.world = GridWorld(
            width, height,
            barriers=expand_cells(config.layout.barriers, width, height),
            exits=expand_cells(config.layout.exits, width, height)
        )
        self.distance_field = ExitDistanceField(self.world)
        self.planner = PathPlanner(self.world)

        agents_cfg = config.agents
        self.index = ProximityIndex(
            bucket_size=max(agents_cfg.panic_radius, agents_cfg.distance_preference, 1.0)
        )
        self.pool = AgentPool(self.world, self.planner, agents_cfg)

        # Metrics tracking
        self.events: List[ExitEvent] = []
        self.spawn_distances: Dict[int, float] = {}
        self._pending_barrier_events = sorted(config.layout.barrier_events,
                                              key=lambda ev: ev.tick)
        self._deferred_barriers: Set[Cell] = set()
        self._spawn_agents()

    def _spawn_candidates(self) -> List[Cell]:
        spawn = self.config.layout.spawn
        if spawn.distribution == "zones":
            zone_cells = expand_cells(spawn.zones, self.world.width, self.world.height)
            cells = sorted(zone_cells)
        else:
            cells = sorted(self.world.walkable_cells())
        return [c for c in cells
                if self.world.is_walkable(c) and not self.world.is_exit(c)]

    def _spawn_agents(self) -> None:
        """Place initial agents on distinct random cells."""
        candidates = self._spawn_candidates()
        count = min(self.config.agent_count, len(candidates))
        if count < self.config.agent_count:
            logger.warning("Only %d free cells for %d requested agents",
                           len(candidates), self.config.agent_count)
        if count == 0:
            return

        chosen = self.rng.choice(len(candidates), size=count, replace=False)
        for idx in chosen:
            agent = self.pool.spawn(candidates[int(idx)], tick=0)
            self.spawn_distances[agent.id] = self.distance_field.distance(agent.cell)

        enclosed = [aid for aid, d in self.spawn_distances.items() if not np.isfinite(d)]
        if enclosed:
            logger.warning("%d agents spawned with no route to any exit: %s",
                           len(enclosed), enclosed)
        logger.info("Spawned %d agents on %dx%d grid (%d barriers, %d exits)",
                    count, self.world.width, self.world.height,
                    len(self.world.barriers), len(self.world.exits))

    def set_barriers(self, cells: Iterable[Cell]) -> None:
        """
        Replace the barrier layer between ticks.

        Cells occupied by live agents stay open until their occupant has
        left; they are closed at the start of the first tick they are empty.
        """
        cells = set(cells)
        occupied = {agent.cell for agent in self.pool.live()}
        deferred = cells & occupied
        if deferred:
            logger.warning("Tick %d: deferring %d barrier cells occupied by agents: %s",
                           self.current_tick, len(deferred), sorted(deferred))
        self._deferred_barriers = deferred
        self._replace_barriers(cells - deferred)

    def _close_deferred_barriers(self) -> None:
        if not self._deferred_barriers:
            return
        occupied = {agent.cell for agent in self.pool.live()}
        vacated = self._deferred_barriers - occupied
        if not vacated:
            return
        self._deferred_barriers -= vacated
        logger.info("Tick %d: closing %d vacated barrier cells: %s",
                    self.current_tick, len(vacated), sorted(vacated))
        self._replace_barriers(set(self.world.barriers) | vacated)

    def _replace_barriers(self, cells: Set[Cell]) -> None:
        self.world.set_barriers(cells)
        self.distance_field.refresh()
        self.pool.reset_replan_failures()
        logger.info("Tick %d: barrier layer replaced (%d cells, revision %d)",
                    self.current_tick, len(self.world.barriers), self.world.revision)

    def _apply_barrier_events(self, tick: int) -> None:
        width, height = self.world.width, self.world.height
        while self._pending_barrier_events and self._pending_barrier_events[0].tick <= tick:
            event = self._pending_barrier_events.pop(0)
            barriers = set(self.world.barriers) | self._deferred_barriers
            barriers |= expand_cells(event.add, width, height)
            barriers -= expand_cells(event.remove, width, height)
            self.set_barriers(barriers)

    def step(self) -> SimulationState:
        """Execute one discrete tick."""
        self._close_deferred_barriers()
        with self.world.tick_guard() as revision:
            tick = self.current_tick + 1
            live = self.pool.live()
            self.index.rebuild(live)

            decisions = [self.pool.decide(agent, self.index, tick) for agent in live]
            if self.world.revision != revision:
                raise StaleConfiguration(
                    f"Barrier layer changed during tick {tick} "
                    f"(revision {revision} -> {self.world.revision})"
                )

            exited = self.pool.apply(decisions, tick)
            new_events = [ExitEvent(tick=tick, agent_id=agent.id) for agent in exited]
            self.events.extend(new_events)
            self.current_tick = tick

        if new_events:
            logger.debug("Tick %d: %d agents exited", tick, len(new_events))
        return self._create_state_snapshot(new_events)

    def run(self, max_ticks: Optional[int] = None,
            on_step: Optional[Callable[[SimulationState], None]] = None) -> RunResult:
        """
        Step until every agent has exited or ``max_ticks`` ticks have run.

        Scheduled barrier events are applied between ticks. Agents that
        cannot reach an exit leave the run INCOMPLETE; that is a result,
        not an error.
        """
        limit = self.config.max_ticks if max_ticks is None else max_ticks
        end_tick = self.current_tick + limit

        while len(self.pool) > 0 and self.current_tick < end_tick:
            self._apply_barrier_events(self.current_tick + 1)
            state = self.step()
            if on_step is not None:
                on_step(state)

        if len(self.pool) == 0:
            completed_at = self.events[-1].tick if self.events else self.current_tick
            logger.info("Evacuation complete at tick %d", completed_at)
            return RunResult(status=RunStatus.COMPLETE, ticks=completed_at)

        remaining = tuple(agent.id for agent in self.pool.live())
        stuck = tuple(agent.id for agent in self.pool.stuck())
        logger.info("Tick cap reached at %d: %d agents remaining (%d stuck)",
                    self.current_tick, len(remaining), len(stuck))
        return RunResult(status=RunStatus.INCOMPLETE, ticks=self.current_tick,
                         remaining=remaining, stuck=stuck)

    def snapshot(self) -> SimulationState:
        """Snapshot of the current state without advancing the clock."""
        return self._create_state_snapshot([])

    def _create_state_snapshot(self, new_events: List[ExitEvent]) -> SimulationState:
        """Create immutable snapshot of current simulation state."""
        agent_snapshots = [
            AgentSnapshot(
                agent_id=a.id,
                x=a.cell[0],
                y=a.cell[1],
                state=a.state.value,
                alive=a.alive
            )
            for a in self.pool.all_agents
        ]

        live = self.pool.live()
        active_count = len(live)
        walkable = self.world.width * self.world.height - len(self.world.barriers)
        exited_count = len(self.events)

        metrics = {
            'density': active_count / walkable if walkable > 0 else 0,
            'exited': exited_count,
            'total_agents': len(self.pool.all_agents),
            'active_agents': active_count,
            'stuck_agents': sum(1 for a in live if a.state == AgentState.STUCK),
            'deflected_agents': sum(1 for a in live if a.deflected),
            'mean_panic': float(np.mean([a.panic_level for a in live])) if live else 0.0,
            'throughput': exited_count / max(1, self.current_tick),
            'avg_travel_time': self._mean_travel_time()
        }

        return SimulationState(
            tick=self.current_tick,
            agents=agent_snapshots,
            barriers=self.world.barriers,
            exits=self.world.exits,
            exit_events=list(new_events),
            metrics=metrics
        )

    def _travel_times(self) -> List[int]:
        return [a.travel_time() for a in self.pool.all_agents if a.exit_tick is not None]

    def _mean_travel_time(self) -> float:
        times = self._travel_times()
        return float(np.mean(times)) if times else 0.0

    def is_finished(self) -> bool:
        """Check if simulation should terminate."""
        return (self.current_tick >= self.config.max_ticks or
                len(self.pool) == 0)

    def get_summary(self) -> Dict:
        """Get summary statistics for the simulation."""
        times = self._travel_times()
        reachable = [d for d in self.spawn_distances.values() if np.isfinite(d)]
        return {
            'total_ticks': self.current_tick,
            'evacuation_time': (self.events[-1].tick
                                if self.events and len(self.pool) == 0 else None),
            'agents_exited': len(self.events),
            'agents_total': len(self.pool.all_agents),
            'agents_remaining': len(self.pool),
            'agents_stuck': len(self.pool.stuck()),
            'avg_travel_time': float(np.mean(times)) if times else 0.0,
            'max_travel_time': max(times) if times else 0,
            'ideal_evacuation_time': int(max(reachable)) if reachable else None,
            'throughput': len(self.events) / max(1, self.current_tick)
        }
