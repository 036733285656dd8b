from __future__ import annotations
import importlib
from pathlib import Path
from typing import Any, Type

import onnx
from google.protobuf import json_format
from google.protobuf.message import DecodeError as ProtobufDecodeError, Message

from ..errors import DecodeError
from ..utils.logging import get_logger
from .raw_model import RawModel

logger = get_logger("nnviz.decoder")

DEFAULT_SCHEMA = "onnx:ModelProto"


def load_schema(location: str = DEFAULT_SCHEMA) -> Type[Message]:
    """Resolves a protobuf message class from a 'module:Attr' or 'module.Attr' location."""
    if ":" in location:
        module_name, _, attr = location.partition(":")
    else:
        module_name, _, attr = location.rpartition(".")
    if not module_name or not attr:
        raise DecodeError(f"Invalid schema location '{location}'.")
    try:
        schema = getattr(importlib.import_module(module_name), attr)
    except (ImportError, AttributeError) as e:
        raise DecodeError(f"Could not load schema '{location}': {e}") from e
    if not (isinstance(schema, type) and issubclass(schema, Message)):
        raise DecodeError(f"Schema '{location}' is not a protobuf message type.")
    return schema


def decode(data: Any, schema: Type[Message] | None = None) -> RawModel:
    """Decodes a serialized model buffer into a RawModel.

    64-bit integers come out as decimal strings, enums as their symbolic names
    and bytes fields as opaque base64 strings; repeated fields that are absent
    come out as empty tuples.
    """
    schema = schema or onnx.ModelProto
    message = schema()
    try:
        message.ParseFromString(bytes(data))
    except (ProtobufDecodeError, TypeError, ValueError) as e:
        raise DecodeError(str(e) or f"Buffer is not a valid {schema.__name__}.") from e

    fields = json_format.MessageToDict(message)
    model = RawModel.from_dict(fields)
    logger.debug(
        f"Decoded {schema.__name__}: {len(model.graph.nodes)} nodes, "
        f"{len(model.graph.inputs)} inputs, {len(model.graph.outputs)} outputs"
    )
    return model


def load_raw_model(path: str, schema: Type[Message] | None = None) -> RawModel:
    """Reads a model file and decodes it."""
    return decode(Path(path).read_bytes(), schema)
