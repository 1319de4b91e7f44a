"""Bundle rendering (markdown, JSON, plain, XML) and output writing."""

from contextsmith.output.formats import (
    Bundle,
    BundleSection,
    OutputFormat,
    parse_format,
    render_bundle,
    resolve_output_path,
    write_output,
)

__all__ = [
    "Bundle",
    "BundleSection",
    "OutputFormat",
    "parse_format",
    "render_bundle",
    "resolve_output_path",
    "write_output",
]
