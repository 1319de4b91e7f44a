"""
contextsmith — terminal renderer for status lines and reports

File: src/contextsmith/ui/render.py
Last updated: 2026-10-18

Purpose
- Print the explain/stats reports and the ``ok:``/``warning:`` status lines commands emit.

Functional requirements
- Output is plain text; only status labels and headings are colored, and only on a TTY without
  ``NO_COLOR`` or ``--no-color``.
- Commands point status output at stderr so stdout stays reserved for bundle text.
- ``quiet`` silences everything.
"""

from __future__ import annotations

import os
import sys
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Sequence
    from typing import TextIO

_GREEN: Final[str] = "\033[32m"
_YELLOW: Final[str] = "\033[33m"
_BOLD: Final[str] = "\033[1m"
_RESET: Final[str] = "\033[0m"


class CLIRenderer:
    def __init__(
        self,
        *,
        no_color: bool = False,
        quiet: bool = False,
        stream: TextIO | None = None,
    ) -> None:
        self.quiet = quiet
        self._stream = stream
        self._color = (
            not no_color and not os.environ.get("NO_COLOR") and self.stream.isatty()
        )

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stdout

    def heading(self, text: str) -> None:
        self._print(self._paint(text, _BOLD))

    def kv(self, key: str, value: object) -> None:
        self._print(f"{key}: {value}")

    def text(self, line: str) -> None:
        self._print(line)

    def blank(self) -> None:
        self._print("")

    def section(self, title: str) -> None:
        """Blank line, then ``title``."""

        self._print(f"\n{title}")

    def ok(self, label: str) -> None:
        self._print(f"{self._paint('ok:', _GREEN)} {label}")

    def warning(self, text: str) -> None:
        self._print(f"{self._paint('warning:', _YELLOW)} {text}")

    def table(
        self,
        headers: Sequence[str],
        rows: Sequence[Sequence[str]],
        *,
        title: str | None = None,
    ) -> None:
        """Left-aligned columns under a dashed rule; nothing at all when ``rows`` is empty."""

        if not rows:
            return

        widths = [
            max(len(header), *(len(str(row[index])) for row in rows))
            for index, header in enumerate(headers)
        ]

        def line(cells: Sequence[str]) -> str:
            return "  " + "  ".join(
                str(cell).ljust(width) for cell, width in zip(cells, widths, strict=True)
            ).rstrip()

        if title:
            self.section(title)
        self._print(line(headers))
        self._print(line(["-" * width for width in widths]))
        for row in rows:
            self._print(line(row))

    def _paint(self, text: str, code: str) -> str:
        return f"{code}{text}{_RESET}" if self._color else text

    def _print(self, line: str) -> None:
        if not self.quiet:
            print(line, file=self.stream)


def create_renderer(
    *,
    no_color: bool = False,
    quiet: bool = False,
    stream: TextIO | None = None,
) -> CLIRenderer:
    return CLIRenderer(no_color=no_color, quiet=quiet, stream=stream)


__all__ = ["CLIRenderer", "create_renderer"]
