"""State snapshot dataclasses for the evacuation simulation."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Tuple

from .grid import Cell


@dataclass(frozen=True)
class AgentSnapshot:
    """Immutable snapshot of an agent's state at a given tick."""
    agent_id: int
    x: int
    y: int
    state: str  # "active", "stuck", "exited"
    alive: bool


@dataclass(frozen=True)
class ExitEvent:
    """An agent reaching an exit cell."""
    tick: int
    agent_id: int


@dataclass
class SimulationState:
    """Complete snapshot of simulation state at a given tick."""
    tick: int
    agents: List[AgentSnapshot]
    barriers: FrozenSet[Cell]
    exits: FrozenSet[Cell]
    exit_events: List[ExitEvent]
    metrics: Dict[str, float]

    def to_csv_rows(self) -> List[Dict]:
        """Convert to CSV-compatible format."""
        return [
            {
                "tick": self.tick,
                "agent_id": a.agent_id,
                "x": a.x,
                "y": a.y,
                "state": a.state,
                "alive": int(a.alive),
            }
            for a in self.agents
        ]


class RunStatus(Enum):
    COMPLETE = "complete"
    INCOMPLETE = "incomplete"


@dataclass(frozen=True)
class RunResult:
    """
    Outcome of ``SimulationClock.run``.

    ``ticks`` is the tick at which the last agent exited for a complete run,
    or the number of ticks executed when the cap was hit.
    """
    status: RunStatus
    ticks: int
    remaining: Tuple[int, ...] = field(default_factory=tuple)
    stuck: Tuple[int, ...] = field(default_factory=tuple)

    @property
    def complete(self) -> bool:
        return self.status == RunStatus.COMPLETE
