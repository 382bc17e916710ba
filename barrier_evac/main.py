"""
Barrier Evacuation Simulation

Routes agents around barriers to the nearest exit with A*, with panic and
local crowd avoidance, to compare evacuation time across barrier layouts.

Usage:
    barrier-evac --config configs/office.yaml [options]

Examples:
    barrier-evac --config configs/office.yaml
    barrier-evac --config configs/office.yaml --gif --out-dir results/
    barrier-evac --config configs/corridor.yaml --no-csv --no-snapshot --quiet
    barrier-evac --config configs/office.yaml --seed 42 --log-level DEBUG
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config import load_config
from .model.engine import SimulationClock
from .model.errors import EvacuationError
from .export.csv_writer import CSVWriter, EventWriter
from .export.visualizer import Visualizer
from .export.reporter import Reporter


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog='barrier-evac',
        description='Barrier Evacuation Simulation',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    barrier-evac --config configs/office.yaml
    barrier-evac --config configs/office.yaml --gif --out-dir results/
    barrier-evac --config configs/corridor.yaml --no-csv --no-snapshot --quiet
    barrier-evac --config configs/office.yaml --seed 42 --log-level DEBUG
        """
    )

    # Required arguments
    parser.add_argument('--config', type=Path, required=True,
                        help='Path to YAML configuration file')

    # Optional overrides
    parser.add_argument('--ticks', type=int, default=None,
                        help='Override max simulation ticks')
    parser.add_argument('--out-dir', type=Path, default=Path('./output'),
                        help='Output directory for exports (default: ./output)')

    # Export toggles
    parser.add_argument('--csv', dest='csv', action='store_true', default=None,
                        help='Enable per-tick agent CSV export (default)')
    parser.add_argument('--no-csv', dest='csv', action='store_false',
                        help='Disable per-tick agent CSV export')

    parser.add_argument('--events', dest='events', action='store_true', default=None,
                        help='Enable exit-event CSV export (default)')
    parser.add_argument('--no-events', dest='events', action='store_false',
                        help='Disable exit-event CSV export')

    parser.add_argument('--snapshot', dest='snapshot', action='store_true', default=None,
                        help='Enable final snapshot (default)')
    parser.add_argument('--no-snapshot', dest='snapshot', action='store_false',
                        help='Disable final snapshot')

    parser.add_argument('--gif', action='store_true', default=False,
                        help='Enable GIF animation export')

    parser.add_argument('--quiet', action='store_true', default=False,
                        help='Suppress stdout output')

    parser.add_argument('--seed', type=int, default=None,
                        help='Random seed for reproducibility')

    parser.add_argument('--log-level', default='WARNING',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging level (default: WARNING)')

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level),
                        format='%(asctime)s %(name)s %(levelname)s: %(message)s')

    # Load configuration
    try:
        config = load_config(args.config)
    except FileNotFoundError:
        print(f"Error: Configuration file not found: {args.config}", file=sys.stderr)
        return 1
    except (KeyError, TypeError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return 1

    # Apply CLI overrides
    if args.ticks is not None:
        config.max_ticks = args.ticks
    if args.csv is not None:
        config.csv_enabled = args.csv
    if args.events is not None:
        config.events_enabled = args.events
    if args.snapshot is not None:
        config.snapshot_enabled = args.snapshot
    if args.gif:
        config.gif_enabled = True
    config.quiet = args.quiet
    if args.seed is not None:
        config.seed = args.seed
    config.out_dir = args.out_dir

    if not config.quiet:
        print("Initializing simulation...")
        print(f"  Grid: {config.grid.width}x{config.grid.height}")
        print(f"  Agents: {config.agent_count}")
        print(f"  Max ticks: {config.max_ticks}")

    try:
        clock = SimulationClock(config)
    except (EvacuationError, ValueError) as e:
        print(f"Error building simulation: {e}", file=sys.stderr)
        return 1

    if not config.quiet:
        print(f"  Spawned: {len(clock.pool.all_agents)} agents")

    # Initialize exporters
    csv_writer = None
    if config.csv_enabled:
        csv_writer = CSVWriter(config.out_dir / 'simulation_log.csv')
        csv_writer.open()
        csv_writer.append(clock.snapshot())

    event_writer = None
    if config.events_enabled:
        event_writer = EventWriter(config.out_dir / 'exit_events.csv')
        event_writer.open()

    visualizer = Visualizer(config.grid.width, config.grid.height)
    reporter = Reporter(str(args.config), config.seed)

    def on_step(state) -> None:
        if csv_writer:
            csv_writer.append(state)
        if event_writer:
            event_writer.append(state)

        # Buffer GIF frame (every N ticks to reduce memory)
        if config.gif_enabled:
            if state.tick % 5 == 0 or state.metrics.get('active_agents', 0) == 0:
                visualizer.buffer_frame(state)

        reporter.update(state)

        if not config.quiet and state.tick % 100 == 0:
            active = state.metrics.get('active_agents', 0)
            exited = int(state.metrics.get('exited', 0))
            print(f"  Tick {state.tick}: {active} active, {exited} exited")

    if not config.quiet:
        print("\nRunning simulation...")

    result = None
    exit_code = 0
    try:
        result = clock.run(on_step=on_step)
    except KeyboardInterrupt:
        if not config.quiet:
            print("\nSimulation interrupted by user.")
    except EvacuationError as e:
        print(f"Simulation aborted on tick {clock.current_tick}: {e}", file=sys.stderr)
        exit_code = 2
    finally:
        if csv_writer:
            csv_writer.close()
        if event_writer:
            event_writer.close()

    if not config.quiet and csv_writer:
        print(f"\nCSV saved: {config.out_dir / 'simulation_log.csv'}")
    if not config.quiet and event_writer:
        print(f"Exit events saved: {config.out_dir / 'exit_events.csv'}")

    final_state = clock.snapshot()
    if config.snapshot_enabled:
        snapshot_path = config.out_dir / 'final_state.png'
        visualizer.save_snapshot(final_state, snapshot_path)
        if not config.quiet:
            print(f"Snapshot saved: {snapshot_path}")

    if config.gif_enabled:
        gif_path = config.out_dir / 'simulation.gif'
        if not config.quiet:
            print(f"Generating GIF ({len(visualizer.frames)} frames)...")
        visualizer.generate_gif(gif_path, fps=10)
        if not config.quiet:
            print(f"Animation saved: {gif_path}")

    # Print summary report
    if not config.quiet and result is not None:
        report = reporter.generate_summary(
            result,
            clock.get_summary(),
            config.out_dir,
            config.csv_enabled,
            config.events_enabled,
            config.snapshot_enabled,
            config.gif_enabled
        )
        print(report)

    return exit_code


if __name__ == '__main__':
    sys.exit(main())
