from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Tuple

from ..config import ViewerConfig
from ..layout.engine import LaidOutGraph


@dataclass
class ViewState:
    """Pan, zoom, selection and hover state of a view over one laid-out graph.

    Screen coordinates map to layout coordinates as
    ``world = (screen - pan) / scale``.
    """
    scale: float = 1.0
    pan_x: float = 0.0
    pan_y: float = 0.0
    min_scale: float = 0.1
    max_scale: float = 3.0
    zoom_step: float = 1.2
    selected: Optional[str] = None
    hovered: Optional[str] = None

    @classmethod
    def from_config(cls, config: ViewerConfig) -> ViewState:
        return cls(min_scale=config.min_scale, max_scale=config.max_scale, zoom_step=config.zoom_step)

    def clamp(self, scale: float) -> float:
        return max(self.min_scale, min(self.max_scale, scale))

    def to_world(self, sx: float, sy: float) -> Tuple[float, float]:
        return (sx - self.pan_x) / self.scale, (sy - self.pan_y) / self.scale

    def to_screen(self, wx: float, wy: float) -> Tuple[float, float]:
        return wx * self.scale + self.pan_x, wy * self.scale + self.pan_y

    def pan(self, dx: float, dy: float):
        self.pan_x += dx
        self.pan_y += dy

    def zoom_at(self, factor: float, sx: float, sy: float):
        """Scales by factor, keeping the layout point under (sx, sy) fixed on screen."""
        wx, wy = self.to_world(sx, sy)
        self.scale = self.clamp(self.scale * factor)
        self.pan_x = sx - wx * self.scale
        self.pan_y = sy - wy * self.scale

    def zoom_in(self):
        self.scale = self.clamp(self.scale * self.zoom_step)

    def zoom_out(self):
        self.scale = self.clamp(self.scale / self.zoom_step)

    def reset(self):
        self.scale = 1.0
        self.pan_x = 0.0
        self.pan_y = 0.0

    def hit_test(self, graph: LaidOutGraph, sx: float, sy: float) -> Optional[str]:
        return graph.node_at(*self.to_world(sx, sy))

    def hover(self, graph: LaidOutGraph, sx: float, sy: float) -> Optional[str]:
        self.hovered = self.hit_test(graph, sx, sy)
        return self.hovered

    def click(self, graph: LaidOutGraph, sx: float, sy: float) -> Optional[str]:
        """Selects the node under the pointer; clicking the selected node clears it."""
        node_id = self.hit_test(graph, sx, sy)
        if node_id is not None:
            self.selected = None if self.selected == node_id else node_id
        return self.selected

    def select(self, graph: LaidOutGraph, node_id: Optional[str]):
        if node_id is not None:
            graph.node(node_id)
        self.selected = node_id
