from __future__ import annotations
import argparse
from pathlib import Path

from ..config import ViewerConfig
from ..runtime.pipeline import run as run_pipeline
from ..utils.logging import get_logger
from ..utils.reporting import dump_json, print_summary
from ..utils.viz import export_graph_html

logger = get_logger("nnviz.cli")


def _load(args):
    config = ViewerConfig.from_args(args)
    get_logger("nnviz", config.log_level)
    if not config.model:
        raise SystemExit("error: no model given on the command line or in the config file")
    try:
        data = Path(config.model).read_bytes()
    except OSError as e:
        raise SystemExit(f"error: cannot read model: {e}")
    return config, run_pipeline(data, config, file_name=Path(config.model).name)


def cmd_inspect(args):
    """Handles the 'inspect' command."""
    _, result = _load(args)
    print_summary(result)
    return 0 if result.ok else 1


def cmd_layout(args):
    """Handles the 'layout' command."""
    config, result = _load(args)
    print(dump_json(result))
    if result.ok and args.html:
        export_graph_html(result.layout, args.html, title=Path(config.model).name)
        logger.info(f"Graph preview written to {args.html}")
    return 0 if result.ok else 1


def _add_common_arguments(p):
    # Config file
    p.add_argument("-c", "--config", type=str, default=None,
                   help="Path to YAML config file to override defaults")

    # Core args (set default=None to allow override from YAML)
    p.add_argument("model", nargs='?', default=None,
                   help="Path to ONNX model (optional if specified in config)")
    p.add_argument("--log-level", type=str, default=None, dest="log_level",
                   choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                   help="Logging level")
    p.add_argument("--no-output-nodes", action="store_false", default=None, dest="output_nodes",
                   help="Do not add nodes for the declared graph outputs")

    spacing = p.add_argument_group('Layout Arguments')
    spacing.add_argument("--node-spacing", type=float, default=None, dest="node_spacing",
                         help="Vertical gap between nodes of a layer")
    spacing.add_argument("--layer-spacing", type=float, default=None, dest="layer_spacing",
                         help="Horizontal gap between layers")
    spacing.add_argument("--edge-spacing", type=float, default=None, dest="edge_spacing",
                         help="Gap next to edge routing slots")
    spacing.add_argument("--crossing-sweeps", type=int, default=None, dest="crossing_sweeps",
                         help="Maximum number of crossing-reduction sweeps")


def build_parser():
    p = argparse.ArgumentParser(
        prog="nnviz",
        description="Neural network model viewer: decode, analyze and lay out ONNX graphs",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    # --- Inspect Command ---
    pi = sub.add_parser("inspect", help="Print a summary of the model",
                        formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    _add_common_arguments(pi)
    pi.set_defaults(func=cmd_inspect)

    # --- Layout Command ---
    pl = sub.add_parser("layout", help="Lay out the model graph and print it as JSON",
                        formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    _add_common_arguments(pl)
    pl.add_argument("--html", type=str, default=None,
                    help="Path to save an HTML preview of the laid-out graph")
    pl.set_defaults(func=cmd_layout)

    return p


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
