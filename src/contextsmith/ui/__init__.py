"""UI package exports for the CLI router, rendering, and manifest reports."""

from contextsmith.ui.cli import CLIError, build_parser, main, run_cli
from contextsmith.ui.render import CLIRenderer, create_renderer
from contextsmith.ui.reports import compute_stats, explain_payload, stats_payload

__all__ = [
    "CLIError",
    "CLIRenderer",
    "build_parser",
    "compute_stats",
    "create_renderer",
    "explain_payload",
    "main",
    "run_cli",
    "stats_payload",
]
