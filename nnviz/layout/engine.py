from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import networkx as nx
import numpy as np

from ..config import ViewerConfig
from ..errors import LayoutError
from ..graph.canonical import CanonicalGraph, GraphNode, NodeKind
from ..graph.labels import truncate
from ..utils.logging import get_logger
from .layering import LayeredGraph, build_layers, minimise_crossings

logger = get_logger("nnviz.layout")

Point = Tuple[float, float]


@dataclass(frozen=True)
class LaidOutNode:
    """A graph node with its box in layout coordinates (y grows downward)."""
    id: str
    kind: str
    name: str
    x: float
    y: float
    width: float
    height: float
    label_lines: Tuple[str, ...] = ()

    @property
    def left_center(self) -> Point:
        return (self.x, self.y + self.height / 2)

    @property
    def right_center(self) -> Point:
        return (self.x + self.width, self.y + self.height / 2)

    def contains(self, px: float, py: float) -> bool:
        return self.x <= px <= self.x + self.width and self.y <= py <= self.y + self.height

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind,
            "name": self.name,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "labels": list(self.label_lines),
        }


@dataclass(frozen=True)
class LaidOutEdge:
    """An edge routed orthogonally from the source's right side to the target's left side."""
    id: str
    source: str
    target: str
    tensor: str
    tensors: Tuple[str, ...] = ()
    points: Tuple[Point, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "tensor": self.tensor,
            "tensors": list(self.tensors),
            "points": [list(p) for p in self.points],
        }


@dataclass(frozen=True)
class LaidOutGraph:
    nodes: Tuple[LaidOutNode, ...] = ()
    edges: Tuple[LaidOutEdge, ...] = ()
    width: float = 0.0
    height: float = 0.0

    @property
    def is_empty(self) -> bool:
        return not self.nodes

    def node(self, node_id: str) -> LaidOutNode:
        for n in self.nodes:
            if n.id == node_id:
                return n
        raise KeyError(node_id)

    def node_at(self, x: float, y: float) -> Optional[str]:
        """Id of the node drawn on top at (x, y), or None."""
        for n in reversed(self.nodes):
            if n.contains(x, y):
                return n.id
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
            "width": self.width,
            "height": self.height,
        }


def label_lines(node: GraphNode, max_length: int) -> Tuple[str, ...]:
    if node.kind == NodeKind.OPERATOR:
        return (node.label, *node.details)
    return (truncate(node.name, max_length),)


def layout(graph: CanonicalGraph, config: ViewerConfig | None = None) -> LaidOutGraph:
    """Computes a left-to-right layered layout for the canonical graph."""
    config = config or ViewerConfig()
    if not graph.nodes:
        return LaidOutGraph()

    try:
        layered = build_layers(graph)
        ordering = minimise_crossings(layered, config.crossing_sweeps, config.sweep_node_limit)
        laid_out = _place(graph, layered, ordering, config)
    except LayoutError:
        raise
    except (nx.NetworkXException, KeyError, ValueError) as e:
        raise LayoutError(f"Layout failed: {e}") from e

    logger.debug(
        f"Laid out {len(laid_out.nodes)} nodes in {layered.layer_count} layers "
        f"({laid_out.width:.0f} x {laid_out.height:.0f})"
    )
    return laid_out


def _place(
    graph: CanonicalGraph,
    layered: LayeredGraph,
    ordering: List[List[str]],
    config: ViewerConfig,
) -> LaidOutGraph:
    def size(node_id: str) -> Tuple[float, float]:
        if layered.is_slot(node_id):
            return 0.0, 0.0
        return config.node_size(str(graph.nodes[node_id].kind))

    # Columns: one per layer, as wide as its widest node
    layer_widths = np.array(
        [max((size(n)[0] for n in layer), default=0.0) for layer in ordering], dtype=float
    )
    layer_x = np.concatenate(([0.0], np.cumsum(layer_widths[:-1] + config.layer_spacing)))

    # Rows: stack each layer, then centre it against the tallest layer
    boxes: Dict[str, Tuple[float, float, float, float]] = {}
    layer_heights: List[float] = []
    for layer_idx, layer in enumerate(ordering):
        cursor = 0.0
        prev: Optional[str] = None
        for node_id in layer:
            if prev is not None:
                both_real = not layered.is_slot(prev) and not layered.is_slot(node_id)
                cursor += config.node_spacing if both_real else config.edge_spacing
            w, h = size(node_id)
            x = float(layer_x[layer_idx] + (layer_widths[layer_idx] - w) / 2)
            boxes[node_id] = (x, cursor, w, h)
            cursor += h
            prev = node_id
        layer_heights.append(cursor)

    max_height = max(layer_heights, default=0.0)
    for layer_idx, layer in enumerate(ordering):
        offset = (max_height - layer_heights[layer_idx]) / 2
        for node_id in layer:
            x, y, w, h = boxes[node_id]
            boxes[node_id] = (x, y + offset, w, h)

    nodes = []
    for node in graph.nodes.values():
        x, y, w, h = boxes[node.id]
        nodes.append(LaidOutNode(
            id=node.id,
            kind=str(node.kind),
            name=node.name,
            x=x,
            y=y,
            width=w,
            height=h,
            label_lines=label_lines(node, config.label_max_length),
        ))

    def center_y(node_id: str) -> float:
        _, y, _, h = boxes[node_id]
        return y + h / 2

    def gap_x(layer_idx: int) -> float:
        return float(layer_x[layer_idx] + layer_widths[layer_idx] + config.layer_spacing / 2)

    edges = []
    for edge in graph.edges:
        sx, _, sw, _ = boxes[edge.source]
        tx, _, _, _ = boxes[edge.target]
        src_layer = layered.layers[edge.source]
        waypoints = [center_y(s) for s in layered.chains.get(edge.key, [])]
        waypoints.append(center_y(edge.target))

        current = center_y(edge.source)
        points: List[Point] = [(sx + sw, current)]
        for hop, next_y in enumerate(waypoints):
            column = gap_x(src_layer + hop)
            points.append((column, current))
            points.append((column, next_y))
            current = next_y
        points.append((tx, current))
        edges.append(LaidOutEdge(
            id=edge.id,
            source=edge.source,
            target=edge.target,
            tensor=edge.tensor,
            tensors=edge.tensors,
            points=tuple(points),
        ))

    width = max((n.x + n.width for n in nodes), default=0.0)
    height = max((n.y + n.height for n in nodes), default=0.0)
    return LaidOutGraph(nodes=tuple(nodes), edges=tuple(edges), width=width, height=height)
