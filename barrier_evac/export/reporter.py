"""Summary report generation for the evacuation simulation."""

from typing import List, Dict, Optional, TYPE_CHECKING
from pathlib import Path

if TYPE_CHECKING:
    from ..model.state import RunResult, SimulationState


class Reporter:
    """Generates summary statistics and formatted text report."""

    def __init__(self, config_path: str, seed: Optional[int]):
        self.config_path = config_path
        self.seed = seed
        self.exits_per_tick: List[int] = []
        self.peak_density = 0.0
        self.peak_throughput = 0
        self.peak_throughput_tick: Optional[int] = None
        self.max_stuck = 0

    def update(self, state: "SimulationState") -> None:
        """Accumulate metrics per tick."""
        exits_now = len(state.exit_events)
        self.exits_per_tick.append(exits_now)

        current_density = state.metrics.get('density', 0)
        if current_density > self.peak_density:
            self.peak_density = current_density

        if exits_now > self.peak_throughput:
            self.peak_throughput = exits_now
            self.peak_throughput_tick = state.tick

        self.max_stuck = max(self.max_stuck, int(state.metrics.get('stuck_agents', 0)))

    def throughput_curve(self) -> List[int]:
        """Cumulative exits after each tick."""
        curve = []
        total = 0
        for count in self.exits_per_tick:
            total += count
            curve.append(total)
        return curve

    def generate_summary(self, result: "RunResult",
                         summary: Dict,
                         output_dir: Path,
                         csv_enabled: bool,
                         events_enabled: bool,
                         snapshot_enabled: bool,
                         gif_enabled: bool) -> str:
        """Returns formatted text report."""
        total_agents = int(summary.get('agents_total', 0))
        exited = int(summary.get('agents_exited', 0))
        completion_pct = (exited / total_agents * 100) if total_agents > 0 else 0
        ideal = summary.get('ideal_evacuation_time')

        if result.complete:
            outcome = f"COMPLETE at tick {result.ticks}"
        else:
            outcome = (f"INCOMPLETE after {result.ticks} ticks "
                       f"({len(result.remaining)} remaining, {len(result.stuck)} stuck)")

        lines = [
            "",
            "=" * 80,
            "                    BARRIER EVACUATION SIMULATION REPORT",
            "=" * 80,
            f"Configuration: {self.config_path}",
            f"Random Seed: {self.seed if self.seed is not None else 'None (random)'}",
            "",
            "EVACUATION METRICS",
            "-" * 40,
            f"Outcome:               {outcome}",
            f"Agents Exited:         {exited} / {total_agents} ({completion_pct:.1f}%)",
            f"Ideal Evacuation Time: {ideal if ideal is not None else 'n/a'} ticks",
            f"Average Travel Time:   {summary.get('avg_travel_time', 0):.1f} ticks",
            f"Max Travel Time:       {summary.get('max_travel_time', 0)} ticks",
            f"Peak Density:          {self.peak_density:.4f} agents/cell",
            f"Throughput:            {summary.get('throughput', 0):.4f} agents/tick",
            f"Peak Throughput:       {self.peak_throughput} agents/tick"
            + (f" (tick {self.peak_throughput_tick})" if self.peak_throughput_tick else ""),
            f"Stuck Agents (max):    {self.max_stuck}",
            "",
            "OUTPUT FILES",
            "-" * 40,
        ]

        # Output file paths
        if csv_enabled:
            lines.append(f"Agent Log:  {output_dir / 'simulation_log.csv'}")
        else:
            lines.append("Agent Log:  (disabled)")

        if events_enabled:
            lines.append(f"Exit Log:   {output_dir / 'exit_events.csv'}")
        else:
            lines.append("Exit Log:   (disabled)")

        if snapshot_enabled:
            lines.append(f"Snapshot:   {output_dir / 'final_state.png'}")
        else:
            lines.append("Snapshot:   (disabled)")

        if gif_enabled:
            lines.append(f"Animation:  {output_dir / 'simulation.gif'}")
        else:
            lines.append("Animation:  (disabled)")

        lines.append("=" * 80)

        return "\n".join(lines)
