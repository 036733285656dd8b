"""
Layer assignment, routing slots and crossing minimization for the layered layout.

Phases:
  1. Layer assignment: inputs in layer 0, operators by longest path, outputs last.
  2. Routing slots: edges spanning more than one layer get a slot per
     intermediate layer so every edge joins adjacent layers. Edges from the
     same source share their slots, so a fan-out costs one slot per layer.
  3. Crossing minimization: barycenter sweeps, keeping the best ordering seen,
     skipped when the layered graph exceeds a node budget.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

import networkx as nx
import numpy as np

from ..errors import LayoutError
from ..graph.canonical import CanonicalGraph, NodeKind
from ..utils.logging import get_logger

logger = get_logger("nnviz.layout")

SLOT_PREFIX = "__slot_"


@dataclass
class LayeredGraph:
    """Canonical graph plus routing slots, where every edge joins adjacent layers."""

    dag: nx.DiGraph
    layers: Dict[str, int]
    layer_count: int
    chains: Dict[Tuple[str, str], List[str]] = field(default_factory=dict)

    def is_slot(self, node_id: str) -> bool:
        return node_id.startswith(SLOT_PREFIX)


def to_digraph(graph: CanonicalGraph) -> nx.DiGraph:
    dag = nx.DiGraph()
    for node_id in graph.nodes:
        dag.add_node(node_id)
    for edge in graph.edges:
        dag.add_edge(edge.source, edge.target)
    return dag


def assign_layers(graph: CanonicalGraph) -> Dict[str, int]:
    """Maps node id -> layer index with no empty layers in between."""
    dag = to_digraph(graph)
    if not nx.is_directed_acyclic_graph(dag):
        cycle = nx.find_cycle(dag)
        path = " -> ".join([u for u, _ in cycle] + [cycle[-1][1]])
        raise LayoutError(f"Graph contains a cycle and cannot be layered: {path}")

    layers: Dict[str, int] = {}
    outputs: List[str] = []
    for node_id in nx.topological_sort(dag):
        kind = graph.nodes[node_id].kind
        if kind == NodeKind.INPUT:
            layers[node_id] = 0
        elif kind == NodeKind.OUTPUT:
            outputs.append(node_id)
        else:
            layers[node_id] = max((layers[p] + 1 for p in dag.predecessors(node_id)), default=1)

    last = max(layers.values(), default=0) + 1
    for node_id in outputs:
        layers[node_id] = last

    remap = {layer: i for i, layer in enumerate(sorted(set(layers.values())))}
    return {node_id: remap[layer] for node_id, layer in layers.items()}


def build_layers(graph: CanonicalGraph) -> LayeredGraph:
    layers = assign_layers(graph)
    dag = nx.DiGraph()
    for node_id in graph.nodes:
        dag.add_node(node_id)

    chains: Dict[Tuple[str, str], List[str]] = {}
    for edge in graph.edges:
        src_layer, tgt_layer = layers[edge.source], layers[edge.target]
        prev = edge.source
        slots: List[str] = []
        for layer in range(src_layer + 1, tgt_layer):
            slot_id = f"{SLOT_PREFIX}{edge.source}_{layer}"
            dag.add_node(slot_id)
            layers[slot_id] = layer
            dag.add_edge(prev, slot_id)
            slots.append(slot_id)
            prev = slot_id
        dag.add_edge(prev, edge.target)
        if slots:
            chains[edge.key] = slots

    layer_count = (max(layers.values()) + 1) if layers else 0
    return LayeredGraph(dag=dag, layers=layers, layer_count=layer_count, chains=chains)


def initial_ordering(layered: LayeredGraph) -> List[List[str]]:
    ordering: List[List[str]] = [[] for _ in range(layered.layer_count)]
    for node_id in layered.dag.nodes:
        ordering[layered.layers[node_id]].append(node_id)
    return ordering


def _inversions(values: Sequence[int], size: int) -> int:
    """Counts pairs i < j with values[i] > values[j] using a Fenwick tree."""
    tree = [0] * (size + 1)
    count = 0
    for seen, value in enumerate(values):
        i, at_most = value + 1, 0
        while i > 0:
            at_most += tree[i]
            i -= i & -i
        count += seen - at_most
        i = value + 1
        while i <= size:
            tree[i] += 1
            i += i & -i
    return count


def count_crossings(ordering: List[List[str]], dag: nx.DiGraph) -> int:
    """Number of edge crossings between each pair of adjacent layers."""
    total = 0
    for layer_idx in range(len(ordering) - 1):
        tgt_pos = {node_id: i for i, node_id in enumerate(ordering[layer_idx + 1])}
        pairs: List[Tuple[int, int]] = []
        for src_pos, node_id in enumerate(ordering[layer_idx]):
            for succ in dag.successors(node_id):
                if succ in tgt_pos:
                    pairs.append((src_pos, tgt_pos[succ]))
        pairs.sort()
        total += _inversions([t for _, t in pairs], len(ordering[layer_idx + 1]))
    return total


def _barycenter(neighbors: List[str], neighbor_pos: Dict[str, int], current: int) -> float:
    positions = [neighbor_pos[n] for n in neighbors if n in neighbor_pos]
    if not positions:
        return float(current)
    return float(np.mean(positions))


def _sweep(ordering: List[List[str]], dag: nx.DiGraph) -> None:
    # Top-down: order by predecessor positions
    for layer_idx in range(1, len(ordering)):
        prev = {n: i for i, n in enumerate(ordering[layer_idx - 1])}
        layer = ordering[layer_idx]
        keys = {
            n: _barycenter(list(dag.predecessors(n)), prev, i) for i, n in enumerate(layer)
        }
        layer.sort(key=keys.__getitem__)

    # Bottom-up: order by successor positions
    for layer_idx in range(len(ordering) - 2, -1, -1):
        nxt = {n: i for i, n in enumerate(ordering[layer_idx + 1])}
        layer = ordering[layer_idx]
        keys = {
            n: _barycenter(list(dag.successors(n)), nxt, i) for i, n in enumerate(layer)
        }
        layer.sort(key=keys.__getitem__)


def minimise_crossings(
    layered: LayeredGraph, max_sweeps: int = 24, node_limit: int | None = None
) -> List[List[str]]:
    """Per-layer node order after barycenter sweeps.

    Sorting is stable, so ties keep the canonical node order and the result
    is reproducible for the same graph. Above ``node_limit`` layered nodes
    (slots included) the initial order is returned as is.
    """
    ordering = initial_ordering(layered)
    if node_limit is not None and layered.dag.number_of_nodes() > node_limit:
        logger.info(
            f"Skipping crossing reduction: {layered.dag.number_of_nodes()} layered nodes "
            f"exceed the limit of {node_limit}"
        )
        return ordering
    best = [list(layer) for layer in ordering]
    best_crossings = count_crossings(best, layered.dag)

    for _ in range(max_sweeps):
        if best_crossings == 0:
            break
        _sweep(ordering, layered.dag)
        crossings = count_crossings(ordering, layered.dag)
        if crossings >= best_crossings:
            break
        best_crossings = crossings
        best = [list(layer) for layer in ordering]

    return best
