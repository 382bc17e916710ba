"""Model package for the barrier evacuation simulation."""

from .errors import (EvacuationError, OutOfBounds, InvalidStart, InvalidGoal,
                     NoPathFound, StaleConfiguration)
from .state import AgentSnapshot, ExitEvent, SimulationState, RunResult, RunStatus
from .grid import GridWorld
from .floor_field import ExitDistanceField
from .pathfinding import PathPlanner
from .proximity import ProximityIndex
from .agent import Agent, AgentState, MoveDecision
from .pool import AgentPool
from .engine import SimulationClock

__all__ = [
    'EvacuationError',
    'OutOfBounds',
    'InvalidStart',
    'InvalidGoal',
    'NoPathFound',
    'StaleConfiguration',
    'AgentSnapshot',
    'ExitEvent',
    'SimulationState',
    'RunResult',
    'RunStatus',
    'GridWorld',
    'ExitDistanceField',
    'PathPlanner',
    'ProximityIndex',
    'Agent',
    'AgentState',
    'MoveDecision',
    'AgentPool',
    'SimulationClock',
]
