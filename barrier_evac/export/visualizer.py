"""Rendering of simulation snapshots to PNG and animated GIF."""

import numpy as np
import matplotlib
matplotlib.use('Agg')  # Use non-interactive backend
import matplotlib.pyplot as plt
from matplotlib.colors import to_rgb
from pathlib import Path
from typing import List, TYPE_CHECKING
from PIL import Image
import io

if TYPE_CHECKING:
    from ..model.state import SimulationState


class Visualizer:
    """
    Draws grid layout and agents from SimulationState snapshots only.

    Supports:
    - Single PNG snapshots
    - Animated GIF compilation
    """

    # Color scheme
    COLORS = {
        'barrier': '#2C3E50',   # Dark blue-gray
        'floor': '#ECF0F1',     # Light gray
        'exit': '#27AE60',      # Green
        'active': '#3498DB',    # Blue
        'stuck': '#E74C3C',     # Red
    }

    def __init__(self, grid_width: int, grid_height: int):
        self.width = grid_width
        self.height = grid_height
        self.frames: List[Image.Image] = []

    def _base_layer(self, state: "SimulationState") -> np.ndarray:
        base = np.ones((self.height, self.width, 3))
        base[:, :] = to_rgb(self.COLORS['floor'])
        barrier_rgb = to_rgb(self.COLORS['barrier'])
        exit_rgb = to_rgb(self.COLORS['exit'])
        for x, y in state.barriers:
            base[y, x] = barrier_rgb
        for x, y in state.exits:
            base[y, x] = exit_rgb
        return base

    def _create_figure(self, state: "SimulationState") -> plt.Figure:
        """Create matplotlib figure for state visualization."""
        # Determine figure size based on grid aspect ratio
        aspect = self.width / self.height
        fig_height = 6
        fig_width = max(8, fig_height * aspect)
        fig, ax = plt.subplots(figsize=(fig_width, fig_height))

        ax.imshow(self._base_layer(state), origin='lower', aspect='equal',
                  extent=[-0.5, self.width - 0.5, -0.5, self.height - 0.5])

        # Draw live agents
        active_count = 0
        for agent in state.agents:
            if not agent.alive:
                continue
            active_count += 1
            color = self.COLORS.get(agent.state, '#95A5A6')
            ax.plot(agent.x, agent.y, 'o', color=color,
                    markersize=5, markeredgecolor='white', markeredgewidth=0.3)

        ax.set_title(f'Tick {state.tick} | Remaining: {active_count} | '
                     f'Exited: {int(state.metrics.get("exited", 0))}')
        ax.set_xlabel('X')
        ax.set_ylabel('Y')
        ax.set_xlim(-0.5, self.width - 0.5)
        ax.set_ylim(-0.5, self.height - 0.5)

        legend_elements = [
            plt.Line2D([0], [0], marker='o', color='w', label='Active',
                       markerfacecolor=self.COLORS['active'], markersize=8),
            plt.Line2D([0], [0], marker='o', color='w', label='Stuck',
                       markerfacecolor=self.COLORS['stuck'], markersize=8),
            plt.Line2D([0], [0], marker='s', color='w', label='Exit',
                       markerfacecolor=self.COLORS['exit'], markersize=8),
        ]
        ax.legend(handles=legend_elements, loc='upper right', fontsize=8)

        plt.tight_layout()
        return fig

    def buffer_frame(self, state: "SimulationState") -> None:
        """Store frame for GIF generation."""
        fig = self._create_figure(state)

        # Convert to PIL Image
        buf = io.BytesIO()
        fig.savefig(buf, format='png', dpi=80)
        buf.seek(0)
        img = Image.open(buf).copy()
        self.frames.append(img)
        buf.close()
        plt.close(fig)

    def save_snapshot(self, state: "SimulationState", output_path: Path) -> None:
        """Save single PNG image of current state."""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fig = self._create_figure(state)
        fig.savefig(output_path, dpi=150, bbox_inches='tight')
        plt.close(fig)

    def generate_gif(self, output_path: Path, fps: int = 10) -> None:
        """Compile buffered frames into animated GIF."""
        if not self.frames:
            return

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        duration = int(1000 / fps)  # milliseconds per frame

        self.frames[0].save(
            output_path,
            save_all=True,
            append_images=self.frames[1:],
            duration=duration,
            loop=0
        )
