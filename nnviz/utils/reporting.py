from __future__ import annotations
import json
from typing import Any, Dict

import pandas as pd

from ..runtime.pipeline import PipelineResult


def generate_report_json(result: PipelineResult) -> Dict[str, Any]:
    """Generates a JSON-compatible dictionary from a pipeline result."""
    return result.to_dict()


def operator_table(result: PipelineResult) -> pd.DataFrame:
    """Operator histogram as a DataFrame, most frequent first, ties by name."""
    frequency = result.analysis.operator_frequency if result.ok else {}
    df = pd.DataFrame(list(frequency.items()), columns=["op_type", "count"])
    if df.empty:
        return df
    df = df.sort_values(["count", "op_type"], ascending=[False, True], kind="mergesort")
    df["share"] = df["count"] / df["count"].sum()
    return df.reset_index(drop=True)


def format_summary(result: PipelineResult) -> str:
    if not result.ok:
        return f"Failed to load model ({result.stage}): {result.error}"

    model = result.model
    analysis = result.analysis
    lines = [
        f"Producer:      {model.producer_name} {model.producer_version}",
        f"IR version:    {model.ir_version}",
        "Opsets:        " + (", ".join(f"{o['domain'] or 'ai.onnx'}:{o['version']}" for o in model.opset_import) or "-"),
        f"Inputs:        {analysis.total_inputs}",
        f"Outputs:       {analysis.total_outputs}",
        f"Operators:     {analysis.total_nodes}",
        f"Initializers:  {analysis.total_initializers}",
        f"Parameters:    {analysis.total_parameters:,}",
        f"Complexity:    {analysis.model_complexity}",
    ]

    table = operator_table(result)
    if not table.empty:
        table["share"] = table["share"].map("{:.1%}".format)
        lines.append("")
        lines.append("Operator frequency:")
        lines.append(table.to_string(index=False))
    return "\n".join(lines)


def print_summary(result: PipelineResult):
    print(format_summary(result))


def dump_json(result: PipelineResult, indent: int = 2) -> str:
    return json.dumps(generate_report_json(result), indent=indent)
