from __future__ import annotations
import asyncio
import warnings
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Type

from google.protobuf.message import Message

from ..analysis.summary import Analysis, summarize
from ..config import ViewerConfig
from ..errors import EmptyGraphWarning, ViewerError
from ..graph.canonical import CanonicalGraph, build_canonical_graph
from ..ir.onnx_decoder import decode, load_schema
from ..ir.raw_model import RawModel
from ..layout.engine import LaidOutGraph, layout
from ..utils.logging import get_logger

logger = get_logger("nnviz.pipeline")

RUNTIME_LOAD = "runtime-load"
FALLBACK = "fallback"


@dataclass(frozen=True)
class PipelineResult:
    """Outcome of one decode -> build -> summarize -> layout run."""
    parsing_method: str
    model: Optional[RawModel] = None
    graph: Optional[CanonicalGraph] = None
    analysis: Optional[Analysis] = None
    layout: Optional[LaidOutGraph] = None
    error: Optional[str] = None
    stage: Optional[str] = None
    file: Optional[Dict[str, Any]] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, exc: ViewerError) -> PipelineResult:
        return cls(parsing_method=FALLBACK, error=str(exc) or type(exc).__name__, stage=exc.stage)

    def to_dict(self) -> Dict[str, Any]:
        if not self.ok:
            return {"error": self.error, "parsingMethod": self.parsing_method, "stage": self.stage}
        data = self.model.to_dict()
        data["analysis"] = self.analysis.to_dict()
        data["layout"] = self.layout.to_dict()
        if self.file is not None:
            data["file"] = dict(self.file)
        data["parsingMethod"] = self.parsing_method
        return data


def describe_file(name: str, size: int) -> Dict[str, Any]:
    return {"name": name, "size": size, "sizeFormatted": f"{size / 1024:.2f} KB"}


def run(
    data: bytes,
    config: ViewerConfig | None = None,
    schema: Type[Message] | None = None,
    file_name: str | None = None,
) -> PipelineResult:
    """
    Runs the full pipeline for one model buffer.

    Any stage failure short-circuits the remaining stages and comes back as a
    failure result; nothing raised by a stage escapes this function.
    """
    config = config or ViewerConfig()
    try:
        if schema is None:
            schema = load_schema(config.schema)
        model = decode(data, schema)
        graph = build_canonical_graph(model, output_nodes=config.output_nodes)
        analysis = summarize(graph)
        if not model.graph.nodes:
            warnings.warn("Model graph has no nodes.", EmptyGraphWarning, stacklevel=2)
        laid_out = layout(graph, config)
    except ViewerError as e:
        logger.warning(f"{e.stage} failed: {e}")
        return PipelineResult.failure(e)

    logger.info(
        f"Parsed model from {model.producer_name} {model.producer_version}: "
        f"{analysis.total_nodes} operators, complexity {analysis.model_complexity}"
    )
    return PipelineResult(
        parsing_method=RUNTIME_LOAD,
        model=model,
        graph=graph,
        analysis=analysis,
        layout=laid_out,
        file=describe_file(file_name, len(data)) if file_name else None,
    )


class ViewerSession:
    """Holds the result of the most recently started load.

    Each load bumps a generation counter; a load that finishes after a newer
    one was started is discarded instead of replacing the current result.
    """

    def __init__(self, config: ViewerConfig | None = None):
        self.config = config or ViewerConfig()
        self.current: Optional[PipelineResult] = None
        self._generation = 0

    def _begin(self) -> int:
        self._generation += 1
        return self._generation

    def _superseded(self, generation: int) -> bool:
        if generation != self._generation:
            logger.info(f"Discarding superseded load {generation} (latest is {self._generation})")
            return True
        return False

    def _publish(self, generation: int, result: PipelineResult) -> Optional[PipelineResult]:
        if self._superseded(generation):
            return None
        self.current = result
        return result

    def load(self, data: bytes, file_name: str | None = None) -> PipelineResult:
        generation = self._begin()
        self.current = None
        return self._publish(generation, run(data, self.config, file_name=file_name))

    async def load_async(self, read: Callable[[], Awaitable[bytes]]) -> Optional[PipelineResult]:
        """Awaits the buffer and schema, runs the pipeline off the event loop.

        Returns None when a newer load started while this one was in flight.
        """
        generation = self._begin()
        self.current = None
        try:
            data = await read()
            schema = await asyncio.to_thread(load_schema, self.config.schema)
        except ViewerError as e:
            return self._publish(generation, PipelineResult.failure(e))
        if self._superseded(generation):
            return None
        result = await asyncio.to_thread(run, data, self.config, schema)
        return self._publish(generation, result)
