"""
Descriptive label lines for graph nodes.
"""

from __future__ import annotations

from typing import Any, List, Optional, Sequence

from ..ir.raw_model import RawNode

PLACEHOLDER = "–"
ELLIPSIS = "..."

CONV_OPS = {"Conv", "ConvTranspose", "ConvInteger", "QLinearConv"}
POOL_OPS = {"MaxPool", "AveragePool", "LpPool"}


def resolve_op_type(node: RawNode, index: int) -> str:
    """Display name of an operator: opType, then op_type, then type, then a positional name."""
    for candidate in (node.op_type, node.op_type_alias, node.type_hint):
        if candidate:
            return candidate
    return f"Node {index}"


def format_ints(value: Any) -> str:
    if not value:
        return PLACEHOLDER
    if isinstance(value, (list, tuple)):
        return "×".join(str(v) for v in value)
    return str(value)


def _named_input(inputs: Sequence[str], keyword: str, position: int) -> str:
    named = next((i for i in inputs if keyword in i.lower()), None)
    if named:
        return named
    if len(inputs) > position and inputs[position]:
        return inputs[position]
    return PLACEHOLDER


def describe_operator(node: RawNode, op_type: Optional[str] = None) -> List[str]:
    """Lines shown under the op type for recognised operators."""
    op_type = op_type or node.op_type
    attrs = node.attribute
    if op_type in CONV_OPS:
        return [
            f"Weight: {_named_input(node.input, 'weight', 1)}",
            f"Bias: {_named_input(node.input, 'bias', 2)}",
            f"Dilations: {format_ints(attrs.get('dilations'))}",
            f"Kernel: {format_ints(attrs.get('kernel_shape'))}",
            f"Padding: {format_ints(attrs.get('pads'))}",
            f"Strides: {format_ints(attrs.get('strides'))}",
        ]
    if op_type in POOL_OPS:
        return [
            f"Kernel: {format_ints(attrs.get('kernel_shape'))}",
            f"Padding: {format_ints(attrs.get('pads'))}",
            f"Strides: {format_ints(attrs.get('strides'))}",
        ]
    return []


def truncate(text: str, max_length: int) -> str:
    if len(text) > max_length:
        return text[:max_length] + ELLIPSIS
    return text
