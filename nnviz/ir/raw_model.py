from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

import onnx

UNKNOWN = "Unknown"

# Symbolic AttributeProto type -> value field in the decoded mapping
ATTRIBUTE_VALUE_FIELDS = {
    "FLOAT": "f",
    "INT": "i",
    "STRING": "s",
    "TENSOR": "t",
    "GRAPH": "g",
    "SPARSE_TENSOR": "sparseTensor",
    "TYPE_PROTO": "tp",
    "FLOATS": "floats",
    "INTS": "ints",
    "STRINGS": "strings",
    "TENSORS": "tensors",
    "GRAPHS": "graphs",
    "SPARSE_TENSORS": "sparseTensors",
    "TYPE_PROTOS": "typeProtos",
}

# Lookup order when an attribute carries no usable type tag
_ATTRIBUTE_FALLBACK_ORDER = ("ints", "floats", "strings", "i", "f", "s", "t", "g", "tensors", "graphs")


def attribute_value(attr: Mapping[str, Any]) -> Any:
    """Selects the populated value of a decoded attribute, keyed by its symbolic type."""
    key = ATTRIBUTE_VALUE_FIELDS.get(attr.get("type", ""))
    if key is not None and key in attr:
        return attr[key]
    for key in _ATTRIBUTE_FALLBACK_ORDER:
        if key in attr:
            return attr[key]
    # Proto defaults are omitted when decoding, so a tagged scalar may be absent
    if attr.get("type") == "INT":
        return "0"
    if attr.get("type") == "FLOAT":
        return 0.0
    return None


def _dim_text(dim: Mapping[str, Any]) -> str:
    if "dimValue" in dim:
        return str(dim["dimValue"])
    if "dimParam" in dim:
        return str(dim["dimParam"])
    return "?"


def describe_type(type_proto: Mapping[str, Any] | None) -> Tuple[str, Tuple[str, ...]]:
    """Returns a (type, shape) description of a decoded TypeProto."""
    if not type_proto:
        return "unknown", ()
    if "tensorType" in type_proto or "sparseTensorType" in type_proto:
        tensor = type_proto.get("tensorType") or type_proto.get("sparseTensorType") or {}
        elem_type = tensor.get("elemType", 0)
        dtype = _dtype_name(elem_type)
        dims = tuple(_dim_text(d) for d in tensor.get("shape", {}).get("dim", []))
        return f"tensor({dtype})", dims
    for key, name in (("sequenceType", "sequence"), ("mapType", "map"), ("optionalType", "optional")):
        if key in type_proto:
            return name, ()
    return "unknown", ()


def _dtype_name(elem_type: Any) -> str:
    # elem_type is an int32 field, so it decodes as an int rather than an enum name
    if isinstance(elem_type, str):
        return elem_type.lower()
    try:
        return onnx.TensorProto.DataType.Name(int(elem_type)).lower()
    except ValueError:
        return "unknown"


@dataclass(frozen=True)
class ValueInfo:
    name: str
    type: str = "unknown"
    shape: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> ValueInfo:
        type_name, shape = describe_type(d.get("type"))
        return cls(name=d.get("name", ""), type=type_name, shape=shape)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "type": self.type, "shape": list(self.shape)}


@dataclass(frozen=True)
class RawNode:
    """One operator invocation as decoded from the model."""
    op_type: Optional[str] = None
    op_type_alias: Optional[str] = None
    type_hint: Optional[str] = None
    name: Optional[str] = None
    domain: str = ""
    input: Tuple[str, ...] = ()
    output: Tuple[str, ...] = ()
    attribute: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> RawNode:
        attrs = d.get("attribute") or []
        if isinstance(attrs, Mapping):
            attribute = dict(attrs)
        else:
            attribute = {a.get("name", ""): attribute_value(a) for a in attrs}
        return cls(
            op_type=d.get("opType") or None,
            op_type_alias=d.get("op_type") or None,
            type_hint=d.get("type") or None,
            name=d.get("name") or None,
            domain=d.get("domain", ""),
            input=tuple(d.get("input") or ()),
            output=tuple(d.get("output") or ()),
            attribute=attribute,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "opType": self.op_type,
            "name": self.name,
            "domain": self.domain,
            "input": list(self.input),
            "output": list(self.output),
            "attribute": dict(self.attribute),
        }


@dataclass(frozen=True)
class RawGraph:
    name: str = ""
    nodes: Tuple[RawNode, ...] = ()
    inputs: Tuple[ValueInfo, ...] = ()
    outputs: Tuple[ValueInfo, ...] = ()
    initializers: Tuple[Dict[str, Any], ...] = ()

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> RawGraph:
        return cls(
            name=d.get("name", ""),
            nodes=tuple(RawNode.from_dict(n) for n in d.get("node") or ()),
            inputs=tuple(ValueInfo.from_dict(v) for v in d.get("input") or ()),
            outputs=tuple(ValueInfo.from_dict(v) for v in d.get("output") or ()),
            initializers=tuple(dict(t) for t in d.get("initializer") or ()),
        )

    @property
    def initializer_names(self) -> List[str]:
        return [t.get("name", "") for t in self.initializers]


@dataclass(frozen=True)
class RawModel:
    producer_name: str = UNKNOWN
    producer_version: str = UNKNOWN
    ir_version: str = "0"
    model_version: str = "0"
    domain: str = ""
    opset_import: Tuple[Dict[str, str], ...] = ()
    graph: RawGraph = field(default_factory=RawGraph)

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> RawModel:
        return cls(
            producer_name=d.get("producerName") or UNKNOWN,
            producer_version=d.get("producerVersion") or UNKNOWN,
            ir_version=str(d.get("irVersion", "0")),
            model_version=str(d.get("modelVersion", "0")),
            domain=d.get("domain", ""),
            opset_import=tuple(
                {"domain": o.get("domain", ""), "version": str(o.get("version", "0"))}
                for o in d.get("opsetImport") or ()
            ),
            graph=RawGraph.from_dict(d.get("graph") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model": {
                "producerName": self.producer_name,
                "producerVersion": self.producer_version,
                "irVersion": self.ir_version,
                "opsetImport": [dict(o) for o in self.opset_import],
            },
            "graph": {
                "inputs": [v.to_dict() for v in self.graph.inputs],
                "outputs": [v.to_dict() for v in self.graph.outputs],
                "nodes": [n.to_dict() for n in self.graph.nodes],
                "initializers": [dict(t) for t in self.graph.initializers],
            },
        }
