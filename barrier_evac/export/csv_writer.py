"""CSV export functionality for the evacuation simulation."""

import csv
from pathlib import Path
from typing import Dict, Iterable, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from ..model.state import ExitEvent, SimulationState

AGENT_FIELDS = ['tick', 'agent_id', 'x', 'y', 'state', 'alive']
EVENT_FIELDS = ['tick', 'agent_id']


class CSVWriter:
    """
    Writes rows to a CSV file incrementally.

    Output format (agent log):
        tick,agent_id,x,y,state,alive
        1,1,5,10,active,1
        ...
    """

    def __init__(self, output_path: Path, fieldnames: Optional[List[str]] = None):
        self.output_path = Path(output_path)
        self.fieldnames = fieldnames or AGENT_FIELDS
        self.file: Optional[object] = None
        self.writer: Optional[csv.DictWriter] = None
        self._is_open = False

    def open(self) -> None:
        """Initialize file and write header."""
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        self.file = open(self.output_path, 'w', newline='')
        self.writer = csv.DictWriter(self.file, fieldnames=self.fieldnames)
        self.writer.writeheader()
        self._is_open = True

    def write_rows(self, rows: Iterable[Dict]) -> None:
        if not self._is_open:
            self.open()
        for row in rows:
            self.writer.writerow(row)
        self.file.flush()  # Ensure data is written

    def append(self, state: "SimulationState") -> None:
        """Write per-agent records for the current tick."""
        self.write_rows(state.to_csv_rows())

    def close(self) -> None:
        """Close file handle."""
        if self.file:
            self.file.close()
            self.file = None
            self.writer = None
            self._is_open = False

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class EventWriter(CSVWriter):
    """Exit-event log: one ``tick,agent_id`` row per agent reaching an exit."""

    def __init__(self, output_path: Path):
        super().__init__(output_path, EVENT_FIELDS)

    def append(self, state: "SimulationState") -> None:
        self.write_events(state.exit_events)

    def write_events(self, events: Iterable["ExitEvent"]) -> None:
        self.write_rows({'tick': e.tick, 'agent_id': e.agent_id} for e in events)
