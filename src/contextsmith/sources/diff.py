"""
contextsmith — unified diff parsing

File: src/contextsmith/sources/diff.py
Last updated: 2026-10-18

Purpose
- Parse ``git diff -u`` output into structured files, hunks, and lines.
- Map every hunk onto one ``diff_hunk`` candidate in new-file coordinates.

Functional requirements
- Recognize ``diff --git`` headers, ``/dev/null`` added/deleted markers, rename headers,
  ``@@ -a,b +c,d @@`` hunk headers, ``+``/``-``/space lines and ``\\ No newline`` markers.
- Deleted files and files emptied by the diff have no current content; their candidates carry
  the removed text and the file is reported as detached.

Non-functional requirements
- Pure functions over text; no git or filesystem access.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Final

from contextsmith.domain.models import Candidate, OriginKind

if TYPE_CHECKING:
    from collections.abc import Iterable

_HUNK_HEADER_RE: Final[re.Pattern[str]] = re.compile(
    r"^@@ -(?P<old_start>\d+)(?:,(?P<old_count>\d+))? "
    r"\+(?P<new_start>\d+)(?:,(?P<new_count>\d+))? @@"
)
_NO_NEWLINE_MARKER: Final[str] = "\\ No newline at end of file"
_DEV_NULL: Final[str] = "/dev/null"


class FileStatus(StrEnum):
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"


class LineKind(StrEnum):
    CONTEXT = "context"
    ADDED = "added"
    REMOVED = "removed"


@dataclass(frozen=True, slots=True)
class DiffLine:
    kind: LineKind
    content: str
    old_lineno: int | None
    new_lineno: int | None


@dataclass(frozen=True, slots=True)
class DiffHunk:
    old_start: int
    old_count: int
    new_start: int
    new_count: int
    header: str
    lines: tuple[DiffLine, ...] = ()

    @property
    def added_lines(self) -> tuple[DiffLine, ...]:
        return tuple(line for line in self.lines if line.kind is LineKind.ADDED)

    @property
    def removed_lines(self) -> tuple[DiffLine, ...]:
        return tuple(line for line in self.lines if line.kind is LineKind.REMOVED)


@dataclass(frozen=True, slots=True)
class DiffFile:
    path: str
    status: FileStatus
    old_path: str | None = None
    hunks: tuple[DiffHunk, ...] = ()

    @property
    def is_emptied(self) -> bool:
        """True when the diff leaves the file without any lines."""

        return bool(self.hunks) and all(
            hunk.new_start == 0 and hunk.new_count == 0 for hunk in self.hunks
        )

    @property
    def is_detached(self) -> bool:
        return self.status is FileStatus.DELETED or self.is_emptied


@dataclass(frozen=True, slots=True)
class DiffCandidates:
    """Candidates derived from a diff plus the files that have no current content."""

    candidates: tuple[Candidate, ...]
    detached_paths: frozenset[str] = field(default_factory=frozenset)
    file_count: int = 0
    hunk_count: int = 0


@dataclass(slots=True)
class _FileBuilder:
    path: str
    old_path: str | None
    status: FileStatus
    hunks: list[DiffHunk] = field(default_factory=list)

    def freeze(self) -> DiffFile:
        old_path = self.old_path if self.old_path != self.path else None
        return DiffFile(
            path=self.path,
            status=self.status,
            old_path=old_path,
            hunks=tuple(self.hunks),
        )


@dataclass(slots=True)
class _HunkBuilder:
    old_start: int
    old_count: int
    new_start: int
    new_count: int
    header: str
    lines: list[DiffLine] = field(default_factory=list)

    def freeze(self) -> DiffHunk:
        return DiffHunk(
            old_start=self.old_start,
            old_count=self.old_count,
            new_start=self.new_start,
            new_count=self.new_count,
            header=self.header,
            lines=tuple(self.lines),
        )


def parse_unified_diff(text: str) -> tuple[DiffFile, ...]:
    """Parse unified diff ``text`` into files in input order."""

    files: list[DiffFile] = []
    current_file: _FileBuilder | None = None
    current_hunk: _HunkBuilder | None = None
    old_lineno = 0
    new_lineno = 0

    def flush_hunk() -> None:
        nonlocal current_hunk
        if current_file is not None and current_hunk is not None:
            current_file.hunks.append(current_hunk.freeze())
        current_hunk = None

    def flush_file() -> None:
        nonlocal current_file
        flush_hunk()
        if current_file is not None:
            files.append(current_file.freeze())
        current_file = None

    for line in text.splitlines():
        if line.startswith("diff --git "):
            flush_file()
            old_path, new_path = parse_diff_header(line)
            status = FileStatus.RENAMED if old_path != new_path else FileStatus.MODIFIED
            current_file = _FileBuilder(path=new_path, old_path=old_path, status=status)
            continue

        if current_file is None:
            continue

        if current_hunk is None:
            if line.startswith("new file mode"):
                current_file.status = FileStatus.ADDED
                continue
            if line.startswith("deleted file mode"):
                current_file.status = FileStatus.DELETED
                continue
            if line.startswith("rename from "):
                current_file.old_path = _unquote(line[len("rename from ") :])
                current_file.status = FileStatus.RENAMED
                continue
            if line.startswith("rename to "):
                current_file.path = _unquote(line[len("rename to ") :])
                current_file.status = FileStatus.RENAMED
                continue
            if line.startswith("--- "):
                if line[4:].strip() == _DEV_NULL:
                    current_file.status = FileStatus.ADDED
                continue
            if line.startswith("+++ "):
                if line[4:].strip() == _DEV_NULL:
                    current_file.status = FileStatus.DELETED
                continue

        if line.startswith("@@ "):
            flush_hunk()
            current_hunk = parse_hunk_header(line)
            if current_hunk is not None:
                old_lineno = current_hunk.old_start
                new_lineno = current_hunk.new_start
            continue

        if current_hunk is None:
            continue

        if line == _NO_NEWLINE_MARKER:
            continue
        if line.startswith("+"):
            current_hunk.lines.append(DiffLine(LineKind.ADDED, line[1:], None, new_lineno))
            new_lineno += 1
        elif line.startswith("-"):
            current_hunk.lines.append(DiffLine(LineKind.REMOVED, line[1:], old_lineno, None))
            old_lineno += 1
        else:
            content = line[1:] if line.startswith(" ") else line
            current_hunk.lines.append(DiffLine(LineKind.CONTEXT, content, old_lineno, new_lineno))
            old_lineno += 1
            new_lineno += 1

    flush_file()
    return tuple(files)


def parse_diff_header(line: str) -> tuple[str, str]:
    """Return ``(old_path, new_path)`` from a ``diff --git a/<old> b/<new>`` line."""

    rest = line[len("diff --git ") :] if line.startswith("diff --git ") else line
    if rest.startswith('"'):
        old_raw, _, new_raw = rest.partition('" ')
        return _strip_prefix(_unquote(old_raw + '"'), "a/"), _strip_prefix(_unquote(new_raw), "b/")

    old_raw, sep, new_raw = rest.partition(" b/")
    if not sep:
        return _strip_prefix(rest, "a/"), _strip_prefix(rest, "a/")
    return _strip_prefix(old_raw, "a/"), new_raw


def parse_hunk_header(line: str) -> _HunkBuilder | None:
    match = _HUNK_HEADER_RE.match(line)
    if match is None:
        return None
    old_count = match.group("old_count")
    new_count = match.group("new_count")
    return _HunkBuilder(
        old_start=int(match.group("old_start")),
        old_count=int(old_count) if old_count is not None else 1,
        new_start=int(match.group("new_start")),
        new_count=int(new_count) if new_count is not None else 1,
        header=line,
    )


def candidates_from_diff(files: Iterable[DiffFile]) -> DiffCandidates:
    """Map every hunk onto one ``diff_hunk`` candidate.

    Live files get the span of the hunk's added lines in new-file coordinates; hunks that only
    remove lines point at the line where the removal happened. Detached files get the span of
    the removed lines with their text attached.
    """

    candidates: list[Candidate] = []
    detached: set[str] = set()
    file_count = 0
    hunk_count = 0

    for diff_file in files:
        file_count += 1
        if diff_file.is_detached:
            detached.add(diff_file.path)
        for hunk in diff_file.hunks:
            hunk_count += 1
            candidate = _hunk_candidate(diff_file, hunk)
            if candidate is not None:
                candidates.append(candidate)

    return DiffCandidates(
        candidates=tuple(candidates),
        detached_paths=frozenset(detached),
        file_count=file_count,
        hunk_count=hunk_count,
    )


def _hunk_candidate(diff_file: DiffFile, hunk: DiffHunk) -> Candidate | None:
    if diff_file.is_detached:
        removed = hunk.removed_lines
        if not removed:
            return None
        old_numbers = [line.old_lineno for line in removed if line.old_lineno is not None]
        return Candidate(
            file_path=diff_file.path,
            start_line=max(min(old_numbers), 1),
            end_line=max(max(old_numbers), 1),
            origin_kind=OriginKind.DIFF_HUNK,
            raw_text="\n".join(line.content for line in removed),
        )

    added = hunk.added_lines
    if added:
        new_numbers = [line.new_lineno for line in added if line.new_lineno is not None]
        return Candidate(
            file_path=diff_file.path,
            start_line=min(new_numbers),
            end_line=max(new_numbers),
            origin_kind=OriginKind.DIFF_HUNK,
            raw_text="\n".join(line.content for line in added),
        )

    removed = hunk.removed_lines
    if not removed:
        return None
    anchor = _removal_anchor(hunk)
    return Candidate(
        file_path=diff_file.path,
        start_line=anchor,
        end_line=anchor,
        origin_kind=OriginKind.DIFF_HUNK,
        raw_text="\n".join(line.content for line in removed),
    )


def _removal_anchor(hunk: DiffHunk) -> int:
    new_position = hunk.new_start
    for line in hunk.lines:
        if line.kind is LineKind.REMOVED:
            break
        if line.new_lineno is not None:
            new_position = line.new_lineno
    return max(new_position, 1)


def _strip_prefix(value: str, prefix: str) -> str:
    return value[len(prefix) :] if value.startswith(prefix) else value


def _unquote(value: str) -> str:
    stripped = value.strip()
    if len(stripped) >= 2 and stripped.startswith('"') and stripped.endswith('"'):
        inner = stripped[1:-1]
        return inner.replace('\\"', '"').replace("\\\\", "\\")
    return stripped


__all__ = [
    "DiffCandidates",
    "DiffFile",
    "DiffHunk",
    "DiffLine",
    "FileStatus",
    "LineKind",
    "candidates_from_diff",
    "parse_diff_header",
    "parse_unified_diff",
]
