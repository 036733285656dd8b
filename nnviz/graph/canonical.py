from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional, Set, Tuple

from ..errors import BuildError
from ..ir.raw_model import RawModel, RawNode
from ..utils.logging import get_logger
from .labels import describe_operator, resolve_op_type

logger = get_logger("nnviz.graph")


class NodeKind(str, Enum):
    """Kinds of visual nodes in the canonical graph."""

    INPUT = "input"
    OPERATOR = "operator"
    OUTPUT = "output"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class GraphNode:
    """Canonical visual unit: a tensor endpoint or one operator invocation."""

    id: str
    kind: NodeKind
    name: str
    label: str
    op_type: Optional[str] = None
    details: Tuple[str, ...] = ()
    index: Optional[int] = None
    is_initializer: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": str(self.kind),
            "name": self.name,
            "label": self.label,
            "opType": self.op_type,
            "details": list(self.details),
            "index": self.index,
            "isInitializer": self.is_initializer,
        }


@dataclass(frozen=True)
class GraphEdge:
    """Producer -> consumer dependency.

    ``tensor`` is the first tensor seen between the pair; ``tensors`` lists
    every distinct tensor carried, e.g. two outputs of a Split feeding one node.
    """

    source: str
    target: str
    tensor: str
    tensors: Tuple[str, ...] = ()

    def __post_init__(self):
        if not self.tensors:
            object.__setattr__(self, "tensors", (self.tensor,))

    @property
    def key(self) -> Tuple[str, str]:
        return (self.source, self.target)

    @property
    def id(self) -> str:
        return f"e-{self.source}-{self.target}"

    def carrying(self, tensor: str) -> GraphEdge:
        if tensor in self.tensors:
            return self
        return GraphEdge(self.source, self.target, self.tensor, self.tensors + (tensor,))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "tensor": self.tensor,
            "tensors": list(self.tensors),
        }


@dataclass
class CanonicalGraph:
    """Deduplicated, identity-stable directed graph derived from a RawModel."""

    nodes: Dict[str, GraphNode] = field(default_factory=dict)
    edges: List[GraphEdge] = field(default_factory=list)
    declared_inputs: List[str] = field(default_factory=list)
    declared_outputs: List[str] = field(default_factory=list)
    initializers: List[Dict[str, Any]] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def add_node(self, node: GraphNode) -> None:
        if node.id in self.nodes:
            raise ValueError(f"Duplicate node id: {node.id}")
        self.nodes[node.id] = node

    def get_node(self, node_id: str) -> GraphNode:
        return self.nodes[node_id]

    def nodes_of_kind(self, kind: NodeKind) -> Iterator[GraphNode]:
        return (n for n in self.nodes.values() if n.kind == kind)

    def operators(self) -> List[GraphNode]:
        return list(self.nodes_of_kind(NodeKind.OPERATOR))

    def predecessors(self, node_id: str) -> List[str]:
        return [e.source for e in self.edges if e.target == node_id]

    def successors(self, node_id: str) -> List[str]:
        return [e.target for e in self.edges if e.source == node_id]

    def validate(self) -> None:
        """Raises ValueError if any edge references a node that does not exist."""
        dangling = [
            f"{e.source} -> {e.target}"
            for e in self.edges
            if e.source not in self.nodes or e.target not in self.nodes
        ]
        if dangling:
            raise ValueError("Graph has dangling edges:\n" + "\n".join(dangling))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes.values()],
            "edges": [e.to_dict() for e in self.edges],
        }


class GraphBuilder:
    """Owns the tensor-name -> node-id mapping for one build.

    Ids are handed out first come, first assigned, and never reused. Output
    nodes live in their own namespace so a declared output does not collide
    with the operator that produces it.
    """

    def __init__(self, prefix: str = "id"):
        self.prefix = prefix
        self._ids: Dict[str, str] = {}
        self._output_ids: Dict[str, str] = {}
        self._counter = 0

    def _next(self) -> str:
        self._counter += 1
        return f"{self.prefix}-{self._counter}"

    def node_id(self, name: str) -> str:
        if name not in self._ids:
            self._ids[name] = self._next()
        return self._ids[name]

    def output_id(self, name: str) -> str:
        if name not in self._output_ids:
            self._output_ids[name] = self._next()
        return self._output_ids[name]

    def has_id(self, name: str) -> bool:
        return name in self._ids


def canonical_names(nodes: Tuple[RawNode, ...], tensors: Iterable[str] = ()) -> List[str]:
    """Canonical name per node: output[0], else name, else node-<i>; never shared.

    A name given by ``node.name`` or by position must also avoid every tensor
    name in ``tensors``, so an operator never takes over a tensor's identity.
    """
    reserved = set(tensors)
    for node in nodes:
        reserved.update(t for t in (*node.input, *node.output) if t)

    names: List[str] = []
    claimed: Set[str] = set()

    def positional(i: int) -> str:
        name, suffix = f"node-{i}", 0
        while name in claimed or name in reserved:
            suffix += 1
            name = f"node-{i}-{suffix}"
        return name

    for i, node in enumerate(nodes):
        if node.output and node.output[0]:
            name = node.output[0]
        elif node.name and node.name not in reserved:
            name = node.name
        else:
            name = positional(i)
        if name in claimed:
            fallback = positional(i)
            logger.warning(f"Node {i} redefines '{name}'; using positional name {fallback}")
            name = fallback
        claimed.add(name)
        names.append(name)
    return names


def build_canonical_graph(raw: RawModel, output_nodes: bool = False) -> CanonicalGraph:
    """Derives the canonical graph from a decoded model.

    Pass 1 assigns ids to every consumed tensor and creates input nodes for the
    ones no operator produces. Pass 2 creates one operator node per RawNode.
    Edges follow node order, then input-list order.

    Raises BuildError if the result would not be a consistent graph.
    """
    try:
        graph = _build(raw, output_nodes)
        graph.validate()
    except ValueError as e:
        raise BuildError(f"Could not build graph: {e}") from e
    logger.debug(
        f"Built canonical graph: {len(graph.nodes)} nodes, {len(graph.edges)} edges"
    )
    return graph


def _build(raw: RawModel, output_nodes: bool) -> CanonicalGraph:
    g = raw.graph
    builder = GraphBuilder()
    graph = CanonicalGraph(
        declared_inputs=[v.name for v in g.inputs],
        declared_outputs=[v.name for v in g.outputs],
        initializers=[dict(t) for t in g.initializers],
        metadata={
            "producer_name": raw.producer_name,
            "producer_version": raw.producer_version,
            "graph_name": g.name,
        },
    )
    initializer_names = set(g.initializer_names)

    names = canonical_names(
        g.nodes, [*graph.declared_inputs, *graph.declared_outputs, *initializer_names]
    )
    producers: Dict[str, int] = {}
    for i, node in enumerate(g.nodes):
        for out in node.output:
            if out and out not in producers:
                producers[out] = i

    def tensor_key(tensor: str) -> str:
        # Any output of an operator, not only output[0], resolves to that operator
        if tensor in producers:
            return names[producers[tensor]]
        return tensor

    def add_input(tensor: str) -> None:
        node_id = builder.node_id(tensor)
        graph.add_node(GraphNode(
            id=node_id,
            kind=NodeKind.INPUT,
            name=tensor,
            label=tensor,
            is_initializer=tensor in initializer_names,
        ))

    # Pass 1: inputs
    for node in g.nodes:
        for tensor in node.input:
            if not tensor:
                continue
            key = tensor_key(tensor)
            if builder.has_id(key):
                continue
            if tensor in producers:
                builder.node_id(key)
            else:
                add_input(tensor)

    for tensor in graph.declared_inputs:
        if tensor and tensor not in producers and not builder.has_id(tensor):
            add_input(tensor)

    # Pass 2: operators
    for i, node in enumerate(g.nodes):
        op_label = resolve_op_type(node, i)
        graph.add_node(GraphNode(
            id=builder.node_id(names[i]),
            kind=NodeKind.OPERATOR,
            name=names[i],
            label=op_label,
            op_type=node.op_type,
            details=tuple(describe_operator(node, op_label)),
            index=i,
        ))

    # Edges: one per (source, target) pair, listing every tensor it carries
    positions: Dict[Tuple[str, str], int] = {}

    def add_edge(edge: GraphEdge) -> None:
        if edge.key in positions:
            at = positions[edge.key]
            graph.edges[at] = graph.edges[at].carrying(edge.tensor)
            return
        positions[edge.key] = len(graph.edges)
        graph.edges.append(edge)

    for i, node in enumerate(g.nodes):
        target = builder.node_id(names[i])
        for tensor in node.input:
            if tensor:
                add_edge(GraphEdge(source=builder.node_id(tensor_key(tensor)), target=target, tensor=tensor))

    if output_nodes:
        for tensor in graph.declared_outputs:
            key = tensor_key(tensor)
            if not tensor or not builder.has_id(key):
                logger.warning(f"Declared output '{tensor}' is never produced; dropping it")
                continue
            out_id = builder.output_id(tensor)
            if out_id in graph.nodes:
                logger.warning(f"Output '{tensor}' is declared more than once")
                continue
            graph.add_node(GraphNode(id=out_id, kind=NodeKind.OUTPUT, name=tensor, label=tensor))
            add_edge(GraphEdge(source=builder.node_id(key), target=out_id, tensor=tensor))

    return graph
