from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
import yaml

from .utils.logging import get_logger

logger = get_logger("nnviz.config")


@dataclass
class ViewerConfig:
    """Model viewer configuration: decoding, graph building, layout and view limits."""
    # Model and schema
    model: str = ""
    schema: str = "onnx:ModelProto"

    # Config file
    config_file: str = ""

    # Graph building
    output_nodes: bool = True

    # Layout spacing (layout units)
    node_spacing: float = 80.0
    layer_spacing: float = 100.0
    edge_spacing: float = 40.0
    crossing_sweeps: int = 24
    sweep_node_limit: int = 20000

    # Node sizes per kind
    operator_width: float = 200.0
    operator_height: float = 120.0
    tensor_width: float = 140.0
    tensor_height: float = 80.0

    # Labels
    label_max_length: int = 20

    # View limits
    min_scale: float = 0.1
    max_scale: float = 3.0
    zoom_step: float = 1.2

    log_level: str = "INFO"

    def __post_init__(self):
        for key in ("node_spacing", "layer_spacing", "edge_spacing"):
            if getattr(self, key) < 0:
                raise ValueError(f"{key} must be non-negative, got {getattr(self, key)}")
        for key in ("operator_width", "operator_height", "tensor_width", "tensor_height"):
            if getattr(self, key) <= 0:
                raise ValueError(f"{key} must be positive, got {getattr(self, key)}")
        if self.sweep_node_limit < 1:
            raise ValueError("sweep_node_limit must be at least 1.")
        if self.crossing_sweeps < 0:
            raise ValueError("crossing_sweeps must be non-negative.")
        if self.label_max_length < 1:
            raise ValueError("label_max_length must be at least 1.")
        if not 0 < self.min_scale <= 1.0 <= self.max_scale:
            raise ValueError(
                f"Scale range [{self.min_scale}, {self.max_scale}] must be positive and contain 1.0."
            )
        if self.zoom_step <= 1.0:
            raise ValueError("zoom_step must be greater than 1.0.")

    def node_size(self, kind: str) -> tuple[float, float]:
        """Returns (width, height) for a node kind."""
        if kind == "operator":
            return self.operator_width, self.operator_height
        return self.tensor_width, self.tensor_height

    def update_from_yaml(self, yaml_path: str):
        """Updates config fields from a YAML file."""
        with open(yaml_path, 'r') as f:
            yaml_config = yaml.safe_load(f) or {}
        for key, value in yaml_config.items():
            if hasattr(self, key):
                setattr(self, key, value)
            else:
                logger.warning(f"Ignoring unknown config key '{key}' in {yaml_path}")

    @classmethod
    def from_args(cls, args) -> ViewerConfig:
        """Factory method to create a ViewerConfig from parsed argparse arguments."""
        config = cls()

        # 1. Load from YAML config file if provided
        if hasattr(args, 'config') and args.config:
            config.config_file = args.config
            if Path(config.config_file).exists():
                config.update_from_yaml(config.config_file)
            else:
                logger.warning(f"Config file {config.config_file} not found.")

        # 2. Override with command-line arguments
        arg_dict = vars(args)
        for key, value in arg_dict.items():
            if value is not None and hasattr(config, key):
                setattr(config, key, value)

        config.__post_init__()
        return config
