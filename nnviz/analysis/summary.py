from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Mapping

import numpy as np

from ..graph.canonical import CanonicalGraph

HIGH_COMPLEXITY_THRESHOLD = 1000
MEDIUM_COMPLEXITY_THRESHOLD = 100


class Complexity(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"

    def __str__(self) -> str:
        return self.value


def classify_complexity(operator_count: int) -> Complexity:
    if operator_count > HIGH_COMPLEXITY_THRESHOLD:
        return Complexity.HIGH
    if operator_count > MEDIUM_COMPLEXITY_THRESHOLD:
        return Complexity.MEDIUM
    return Complexity.LOW


def _element_count(tensor: Mapping[str, Any]) -> int:
    dims = [int(d) for d in tensor.get("dims", [])]
    return int(np.prod(dims, dtype=np.int64))


def count_parameters(initializers: Iterable[Mapping[str, Any]]) -> int:
    """Total number of elements stored in the initializers."""
    return sum(_element_count(t) for t in initializers)


@dataclass(frozen=True)
class Analysis:
    total_inputs: int = 0
    total_outputs: int = 0
    total_nodes: int = 0
    total_initializers: int = 0
    total_parameters: int = 0
    model_complexity: Complexity = Complexity.LOW
    operator_frequency: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalInputs": self.total_inputs,
            "totalOutputs": self.total_outputs,
            "totalNodes": self.total_nodes,
            "totalInitializers": self.total_initializers,
            "totalParameters": self.total_parameters,
            "modelComplexity": str(self.model_complexity),
            "operatorFrequency": dict(self.operator_frequency),
        }


def summarize(graph: CanonicalGraph) -> Analysis:
    """Counts and operator histogram for a canonical graph."""
    frequency: Dict[str, int] = {}
    total_nodes = 0
    for node in graph.operators():
        total_nodes += 1
        if node.op_type:
            frequency[node.op_type] = frequency.get(node.op_type, 0) + 1

    return Analysis(
        total_inputs=len(graph.declared_inputs),
        total_outputs=len(graph.declared_outputs),
        total_nodes=total_nodes,
        total_initializers=len(graph.initializers),
        total_parameters=count_parameters(graph.initializers),
        model_complexity=classify_complexity(total_nodes),
        operator_frequency=frequency,
    )
