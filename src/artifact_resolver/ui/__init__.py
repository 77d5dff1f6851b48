"""Command-line surface: argparse router and plain-text rendering."""

from artifact_resolver.ui.cli import CLIError, build_parser, run_cli
from artifact_resolver.ui.render import CLIRenderer

__all__ = ["CLIError", "CLIRenderer", "build_parser", "run_cli"]
