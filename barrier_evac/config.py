"""Configuration dataclasses and YAML loader for the evacuation simulation."""

from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional, Set, TYPE_CHECKING
from pathlib import Path
import yaml

if TYPE_CHECKING:
    from .model.grid import Cell

SPAWN_DISTRIBUTIONS = ("uniform", "zones")


@dataclass
class GridConfig:
    width: int
    height: int


@dataclass
class AgentConfig:
    base_speed: float = 1.0
    panic_radius: float = 3.0
    panic_factor: float = 0.1
    panic_cap: Optional[float] = None
    distance_preference: float = 1.0
    max_replan_attempts: Optional[int] = None  # None = retry every tick


@dataclass
class CellSpec:
    spec_type: str  # "rectangle" or "points"
    data: Dict[str, Any]


@dataclass
class SpawnConfig:
    distribution: str = "uniform"
    zones: List[CellSpec] = field(default_factory=list)


@dataclass
class BarrierEvent:
    """Barrier cells added/removed by the driver before the given tick runs."""
    tick: int
    add: List[CellSpec] = field(default_factory=list)
    remove: List[CellSpec] = field(default_factory=list)


@dataclass
class LayoutConfig:
    barriers: List[CellSpec] = field(default_factory=list)
    exits: List[CellSpec] = field(default_factory=list)
    spawn: SpawnConfig = field(default_factory=SpawnConfig)
    barrier_events: List[BarrierEvent] = field(default_factory=list)


@dataclass
class SimulationConfig:
    grid: GridConfig
    max_ticks: int
    agent_count: int
    agents: AgentConfig
    layout: LayoutConfig

    # Export flags (can be overridden by CLI)
    csv_enabled: bool = True
    events_enabled: bool = True
    snapshot_enabled: bool = True
    gif_enabled: bool = False
    quiet: bool = False
    seed: Optional[int] = None
    out_dir: Path = field(default_factory=lambda: Path("./output"))


def rectangle(x: int, y: int, width: int, height: int) -> CellSpec:
    return CellSpec(spec_type="rectangle",
                    data={'x': x, 'y': y, 'width': width, 'height': height})


def points(coords) -> CellSpec:
    return CellSpec(spec_type="points", data={'coords': [tuple(c) for c in coords]})


def expand_cells(specs: List[CellSpec], width: int, height: int) -> "Set[Cell]":
    """
    Resolve cell specs into concrete cells.

    Rectangles are clipped to the grid; explicit points must lie inside it.
    """
    cells: "Set[Cell]" = set()
    for spec in specs:
        if spec.spec_type == "rectangle":
            d = spec.data
            # Clamp to grid boundaries
            x_end = min(d['x'] + d['width'], width)
            y_end = min(d['y'] + d['height'], height)
            for x in range(max(0, d['x']), x_end):
                for y in range(max(0, d['y']), y_end):
                    cells.add((x, y))
        elif spec.spec_type == "points":
            for x, y in spec.data['coords']:
                if not (0 <= x < width and 0 <= y < height):
                    raise ValueError(f"Point ({x}, {y}) outside {width}x{height} grid")
                cells.add((int(x), int(y)))
        else:
            raise ValueError(f"Unknown cell spec type: {spec.spec_type}")
    return cells


def _parse_cell_specs(specs_raw: List[Dict]) -> List[CellSpec]:
    """Parse barrier/exit/zone specifications from raw YAML data."""
    specs = []
    for s in specs_raw or []:
        spec_type = s.get('type', 'rectangle')
        if spec_type == 'rectangle':
            if s['width'] <= 0 or s['height'] <= 0:
                raise ValueError(f"Rectangle must have positive size: {s}")
            specs.append(rectangle(s['x'], s['y'], s['width'], s['height']))
        elif spec_type == 'points':
            specs.append(points(s['coords']))
        else:
            raise ValueError(f"Unknown cell spec type: {spec_type}")
    return specs


def _parse_spawn(spawn_raw: Optional[Dict]) -> SpawnConfig:
    spawn_raw = spawn_raw or {}
    distribution = spawn_raw.get('distribution', 'uniform')
    if distribution not in SPAWN_DISTRIBUTIONS:
        raise ValueError(f"Unknown spawn distribution: {distribution}")
    zones = _parse_cell_specs(spawn_raw.get('zones', []))
    if distribution == 'zones' and not zones:
        raise ValueError("Spawn distribution 'zones' needs at least one zone")
    return SpawnConfig(distribution=distribution, zones=zones)


def _parse_barrier_events(events_raw: List[Dict]) -> List[BarrierEvent]:
    events = []
    for e in events_raw or []:
        if e['tick'] < 1:
            raise ValueError(f"Barrier event tick must be >= 1, got {e['tick']}")
        events.append(BarrierEvent(
            tick=e['tick'],
            add=_parse_cell_specs(e.get('add', [])),
            remove=_parse_cell_specs(e.get('remove', []))
        ))
    return sorted(events, key=lambda ev: ev.tick)


def _parse_agents(agents_raw: Optional[Dict]) -> AgentConfig:
    agents_raw = agents_raw or {}
    panic_cap = agents_raw.get('panic_cap')
    max_replan_attempts = agents_raw.get('max_replan_attempts')
    agents = AgentConfig(
        base_speed=float(agents_raw.get('base_speed', 1.0)),
        panic_radius=float(agents_raw.get('panic_radius', 3.0)),
        panic_factor=float(agents_raw.get('panic_factor', 0.1)),
        panic_cap=float(panic_cap) if panic_cap is not None else None,
        distance_preference=float(agents_raw.get('distance_preference', 1.0)),
        max_replan_attempts=(int(max_replan_attempts)
                             if max_replan_attempts is not None else None)
    )
    for name in ('base_speed', 'panic_radius', 'panic_factor', 'distance_preference'):
        if getattr(agents, name) < 0:
            raise ValueError(f"agents.{name} must be non-negative")
    if agents.panic_cap is not None and agents.panic_cap < 0:
        raise ValueError("agents.panic_cap must be non-negative")
    if agents.max_replan_attempts is not None and agents.max_replan_attempts < 1:
        raise ValueError("agents.max_replan_attempts must be at least 1")
    return agents


def parse_config(raw: Dict[str, Any]) -> SimulationConfig:
    """Build a validated SimulationConfig from already-parsed YAML data."""
    grid = GridConfig(
        width=raw['grid']['width'],
        height=raw['grid']['height']
    )
    if grid.width <= 0 or grid.height <= 0:
        raise ValueError(f"Grid dimensions must be positive, got {grid.width}x{grid.height}")

    layout_raw = raw.get('layout', {})
    layout = LayoutConfig(
        barriers=_parse_cell_specs(layout_raw.get('barriers', [])),
        exits=_parse_cell_specs(layout_raw.get('exits', [])),
        spawn=_parse_spawn(layout_raw.get('spawn')),
        barrier_events=_parse_barrier_events(layout_raw.get('barrier_events', []))
    )
    if not layout.exits:
        raise ValueError("layout.exits must define at least one exit")

    sim_raw = raw['simulation']
    if sim_raw['max_ticks'] < 1:
        raise ValueError("simulation.max_ticks must be at least 1")
    if sim_raw['agent_count'] < 0:
        raise ValueError("simulation.agent_count must be non-negative")

    # Parse export config (optional)
    export_raw = raw.get('export', {})

    return SimulationConfig(
        grid=grid,
        max_ticks=sim_raw['max_ticks'],
        agent_count=sim_raw['agent_count'],
        agents=_parse_agents(raw.get('agents')),
        layout=layout,
        csv_enabled=export_raw.get('csv', True),
        events_enabled=export_raw.get('events', True),
        snapshot_enabled=export_raw.get('snapshot', True),
        gif_enabled=export_raw.get('gif', False),
        seed=sim_raw.get('seed')
    )


def load_config(config_path: Path) -> SimulationConfig:
    """Load and validate YAML configuration file."""
    with open(config_path) as f:
        raw = yaml.safe_load(f)
    if not isinstance(raw, dict):
        raise ValueError(f"Configuration root must be a mapping: {config_path}")
    return parse_config(raw)
