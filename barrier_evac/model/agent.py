"""Agent entity and per-tick movement decision."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from .grid import Cell
from .pathfinding import Path


class AgentState(Enum):
    """Possible states for an agent."""
    ACTIVE = "active"
    STUCK = "stuck"
    EXITED = "exited"


Heading = Tuple[int, int]

# Path steps an agent must take between two deflections
DEFLECTION_COOLDOWN = 2


class Agent:
    """
    Individual evacuee on the grid.

    Positions are cell-aligned. The cached path is never edited in place;
    ``path_index`` is a cursor to the next waypoint and ``path_start`` is
    the cell the path was planned from.
    """

    def __init__(self, agent_id: int, cell: Cell,
                 base_speed: float, spawn_tick: int = 0):
        self.id = agent_id
        self.cell = cell
        self.base_speed = base_speed
        self.speed = base_speed
        self.panic_level = 0.0
        self.move_budget = 0.0
        self.state = AgentState.ACTIVE

        self.path: Optional[Path] = None
        self.path_index = 0
        self.path_start: Optional[Cell] = None
        self.replan_failures = 0

        self.heading: Heading = (0, 0)
        self.path_heading: Optional[Heading] = None
        self.deflected = False
        self.steps_since_deflection = DEFLECTION_COOLDOWN

        self.steps_taken = 0
        self.spawn_tick = spawn_tick
        self.exit_tick: Optional[int] = None

    @property
    def alive(self) -> bool:
        return self.state != AgentState.EXITED

    @property
    def stuck(self) -> bool:
        return self.state == AgentState.STUCK

    def next_waypoint(self) -> Optional[Cell]:
        if self.path is None or self.path_index >= len(self.path):
            return None
        return self.path[self.path_index]

    def travel_time(self) -> Optional[int]:
        if self.exit_tick is None:
            return None
        return self.exit_tick - self.spawn_tick

    def __repr__(self) -> str:
        return (f"Agent(id={self.id}, cell={self.cell}, "
                f"state={self.state.value})")


@dataclass(frozen=True)
class MoveDecision:
    """
    Outcome of one agent's update, computed from the tick-start snapshot.

    Nothing here is written to the agent until every decision of the tick
    has been computed.
    """
    agent_id: int
    cell: Cell
    panic_level: float
    speed: float
    move_budget: float
    state: AgentState
    path: Optional[Path]
    path_index: int
    path_start: Optional[Cell]
    replan_failures: int
    heading: Heading
    path_heading: Optional[Heading]
    deflected: bool
    steps_since_deflection: int
    steps: int
    reached_exit: bool
