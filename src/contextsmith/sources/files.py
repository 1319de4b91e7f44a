"""Explicit file references (``path`` or ``path:START-END``) as candidates."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Final

from contextsmith.domain.models import Candidate, OriginKind, normalize_relative_path
from contextsmith.errors import InvalidRangeError, NotFoundError, ValidationError
from contextsmith.kernel.slicer import split_lines
from contextsmith.utils.fs import is_within, read_source_text

if TYPE_CHECKING:
    from collections.abc import Iterable

PathLike = str | os.PathLike[str]

_RANGE_SUFFIX_RE: Final[re.Pattern[str]] = re.compile(r"^(?P<path>.+):(?P<start>\d+)-(?P<end>\d+)$")


@dataclass(frozen=True, slots=True)
class FileReference:
    path: str
    start_line: int | None = None
    end_line: int | None = None

    @property
    def whole_file(self) -> bool:
        return self.start_line is None


def parse_file_reference(text: str) -> FileReference:
    """Split ``path[:START-END]``; the range is validated against the file later."""

    value = text.strip()
    if not value:
        raise ValidationError("files", "file reference must not be empty")
    match = _RANGE_SUFFIX_RE.match(value)
    if match is None:
        return FileReference(path=value)
    start_line = int(match.group("start"))
    end_line = int(match.group("end"))
    if start_line < 1 or end_line < start_line:
        raise InvalidRangeError(match.group("path"), start_line, end_line, "invalid line range")
    return FileReference(path=match.group("path"), start_line=start_line, end_line=end_line)


def candidates_from_files(
    root: PathLike,
    references: Iterable[str | FileReference],
) -> tuple[Candidate, ...]:
    """Resolve references below ``root`` into ``explicit_file`` candidates.

    Missing files raise ``NotFoundError``; ranges past the end of the file raise
    ``InvalidRangeError``. Empty files yield no candidate.
    """

    root_path = Path(root).resolve()
    candidates: list[Candidate] = []
    for raw in references:
        reference = raw if isinstance(raw, FileReference) else parse_file_reference(raw)
        relative, local_path = _resolve(root_path, reference.path)
        if not local_path.is_file():
            raise NotFoundError(reference.path)

        lines = split_lines(read_source_text(local_path))
        if reference.start_line is None or reference.end_line is None:
            if not lines:
                continue
            start_line, end_line = 1, len(lines)
        else:
            start_line, end_line = reference.start_line, reference.end_line
            if end_line > len(lines):
                raise InvalidRangeError(
                    relative, start_line, end_line, f"file has {len(lines)} lines"
                )

        candidates.append(
            Candidate(
                file_path=relative,
                start_line=start_line,
                end_line=end_line,
                origin_kind=OriginKind.EXPLICIT_FILE,
                raw_text="\n".join(lines[start_line - 1 : end_line]),
            )
        )
    return tuple(candidates)


def _resolve(root: Path, raw_path: str) -> tuple[str, Path]:
    candidate = Path(raw_path).expanduser()
    local_path = candidate if candidate.is_absolute() else root / candidate
    local_path = Path(os.path.normpath(local_path))
    if not is_within(local_path, root):
        raise ValidationError("files", f"path is outside the repository root: {raw_path}")
    relative = local_path.relative_to(root).as_posix()
    return normalize_relative_path(relative, field_name="files"), local_path


__all__ = ["FileReference", "candidates_from_files", "parse_file_reference"]
