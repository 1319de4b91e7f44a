"""
contextsmith — bundle formatting and output writing

File: src/contextsmith/output/formats.py
Last updated: 2026-10-18

Purpose
- Render a :class:`Bundle` of selected snippets as markdown, JSON, plain text, or XML, and write
  the result to stdout or a file.

Functional requirements
- Rendering is a pure function of the bundle; section order is the order the bundle was built in.
- XML content goes into CDATA; embedded ``]]>`` is split across CDATA sections.
- File output is atomic and creates parent directories; an output directory receives
  ``bundle.<ext>``.
"""

from __future__ import annotations

import json
import os
import sys
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final

from contextsmith.errors import ValidationError
from contextsmith.utils.fs import atomic_write

if TYPE_CHECKING:
    from typing import TextIO

PathLike = str | os.PathLike[str]


class OutputFormat(StrEnum):
    MARKDOWN = "markdown"
    JSON = "json"
    PLAIN = "plain"
    XML = "xml"

    @property
    def extension(self) -> str:
        return _EXTENSIONS[self]


_EXTENSIONS: Final[dict[OutputFormat, str]] = {
    OutputFormat.MARKDOWN: ".md",
    OutputFormat.JSON: ".json",
    OutputFormat.PLAIN: ".txt",
    OutputFormat.XML: ".xml",
}

BUNDLE_STEM: Final[str] = "bundle"


@dataclass(frozen=True, slots=True)
class BundleSection:
    file_path: str
    start_line: int
    end_line: int
    language: str
    reason: str
    content: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "file_path": self.file_path,
            "start_line": self.start_line,
            "end_line": self.end_line,
            "language": self.language,
            "reason": self.reason,
            "content": self.content,
        }


@dataclass(frozen=True, slots=True)
class Bundle:
    """Format-agnostic intermediate every command builds before rendering."""

    summary: str
    sections: tuple[BundleSection, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary,
            "sections": [section.to_dict() for section in self.sections],
        }


def parse_format(value: str | OutputFormat) -> OutputFormat:
    try:
        return OutputFormat(str(value).strip().lower())
    except ValueError as exc:
        expected = ", ".join(fmt.value for fmt in OutputFormat)
        raise ValidationError("format", f"{value!r} (expected one of: {expected})") from exc


def render_bundle(bundle: Bundle, output_format: OutputFormat | str) -> str:
    fmt = parse_format(output_format)
    if fmt is OutputFormat.MARKDOWN:
        return _render_markdown(bundle)
    if fmt is OutputFormat.JSON:
        return _render_json(bundle)
    if fmt is OutputFormat.PLAIN:
        return _render_plain(bundle)
    return _render_xml(bundle)


def _render_markdown(bundle: Bundle) -> str:
    parts: list[str] = ["# Context Bundle\n\n"]
    if bundle.summary:
        parts.append(f"> {bundle.summary}\n\n")
    for section in bundle.sections:
        parts.append(f"## `{section.file_path}`\n")
        if section.reason:
            parts.append(f"*{section.reason}*\n")
        parts.append(f"```{section.language}\n")
        parts.append(_with_trailing_newline(section.content))
        parts.append("```\n\n")
    return "".join(parts)


def _render_json(bundle: Bundle) -> str:
    return json.dumps(bundle.to_dict(), indent=2, sort_keys=True, ensure_ascii=False) + "\n"


def _render_plain(bundle: Bundle) -> str:
    parts: list[str] = []
    if bundle.summary:
        parts.append(f"{bundle.summary}\n\n")
    for section in bundle.sections:
        parts.append(f"--- {section.file_path} ---\n")
        parts.append(_with_trailing_newline(section.content))
        parts.append("\n")
    return "".join(parts)


def _render_xml(bundle: Bundle) -> str:
    parts: list[str] = [
        '<?xml version="1.0" encoding="UTF-8"?>\n',
        "<bundle>\n",
        f"  <summary>{escape_xml(bundle.summary)}</summary>\n",
    ]
    for section in bundle.sections:
        parts.append(
            f'  <section start_line="{section.start_line}" end_line="{section.end_line}">\n'
        )
        parts.append(f"    <file_path>{escape_xml(section.file_path)}</file_path>\n")
        parts.append(f"    <language>{escape_xml(section.language)}</language>\n")
        parts.append(f"    <reason>{escape_xml(section.reason)}</reason>\n")
        parts.append(f"    <content>{cdata(section.content)}</content>\n")
        parts.append("  </section>\n")
    parts.append("</bundle>\n")
    return "".join(parts)


def escape_xml(text: str) -> str:
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def cdata(text: str) -> str:
    """Wrap ``text`` in CDATA, splitting any ``]]>`` so the section cannot terminate early."""

    return "<![CDATA[" + text.replace("]]>", "]]]]><![CDATA[>") + "]]>"


def _with_trailing_newline(text: str) -> str:
    return text if text.endswith("\n") else text + "\n"


def resolve_output_path(out: PathLike, output_format: OutputFormat | str) -> Path:
    """Directories (existing, or spelled with a trailing separator) receive ``bundle.<ext>``."""

    fmt = parse_format(output_format)
    raw = os.fspath(out)
    target = Path(raw)
    if target.is_dir() or raw.endswith(("/", os.sep)):
        return target / f"{BUNDLE_STEM}{fmt.extension}"
    return target


def write_output(
    content: str,
    out: PathLike | None = None,
    *,
    stream: TextIO | None = None,
) -> Path | None:
    """Write ``content`` to ``out`` atomically, or to ``stream`` (stdout) when ``out`` is unset."""

    if out is None:
        target_stream = stream if stream is not None else sys.stdout
        target_stream.write(content)
        target_stream.flush()
        return None
    target = Path(out)
    atomic_write(target, content, create_parents=True)
    return target


__all__ = [
    "BUNDLE_STEM",
    "Bundle",
    "BundleSection",
    "OutputFormat",
    "cdata",
    "escape_xml",
    "parse_format",
    "render_bundle",
    "resolve_output_path",
    "write_output",
]
