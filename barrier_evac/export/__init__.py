"""I/O package for the evacuation simulation."""

from .csv_writer import CSVWriter, EventWriter
from .visualizer import Visualizer
from .reporter import Reporter

__all__ = ['CSVWriter', 'EventWriter', 'Visualizer', 'Reporter']
