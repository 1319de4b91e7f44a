"""
contextsmith — candidate slicer

File: src/contextsmith/kernel/slicer.py
Last updated: 2026-10-18

Purpose
- Turn raw, possibly-overlapping candidates into canonical non-overlapping snippets per file.

Functional requirements
- Pad each candidate by ``context_lines`` (clamped to file bounds) unless ``hunks_only``.
- Merge ranges that overlap or sit within ``merge_gap`` lines of each other, unioning origins.
- Re-read file content at slice time; candidates outside the current bounds are rejected.
- Files without current content (deleted, re-ingested bundles) are sliced in detached mode from
  the candidates' own text.

Non-functional requirements
- Output is a pure function of the candidate multiset, file content, and configuration; the
  arrival order of candidates never matters.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Final, Protocol

from contextsmith.domain.models import Candidate, OriginKind, Snippet, normalize_relative_path
from contextsmith.errors import InvalidRangeError, NotFoundError, ValidationError
from contextsmith.utils.fs import local_path, read_source_text
from contextsmith.utils.hashing import sha256_text

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

PathLike = str | os.PathLike[str]

DETACHED_DIGEST: Final[str] = "detached"


class LineSource(Protocol):
    """
    Supplies the current lines of a repository file.

    ``None`` marks a detached file (deleted, or known only from a bundle); a path the source
    knows nothing about raises :class:`NotFoundError`.
    """

    def read_lines(self, file_path: str) -> tuple[str, ...] | None: ...


class FilesystemLineSource:
    """Reads files below ``root`` once and serves the cached snapshot afterwards."""

    def __init__(self, root: PathLike, *, detached_paths: Iterable[str] = ()) -> None:
        self._root = Path(root).resolve()
        self._detached = frozenset(
            normalize_relative_path(path, field_name="detached path") for path in detached_paths
        )
        self._cache: dict[str, tuple[str, ...]] = {}

    @property
    def root(self) -> Path:
        return self._root

    def read_lines(self, file_path: str) -> tuple[str, ...] | None:
        if file_path in self._detached:
            return None
        if file_path in self._cache:
            return self._cache[file_path]

        path = local_path(self._root, file_path)
        if not path.is_file():
            raise NotFoundError(file_path)
        lines = split_lines(read_source_text(path))
        self._cache[file_path] = lines
        return lines


class MappingLineSource:
    """In-memory line source; ``None`` values mark detached files."""

    def __init__(self, files: Mapping[str, str | Sequence[str] | None]) -> None:
        self._files: dict[str, tuple[str, ...] | None] = {}
        for raw_path, content in files.items():
            path = normalize_relative_path(raw_path, field_name="file path")
            if content is None:
                self._files[path] = None
            elif isinstance(content, str):
                self._files[path] = split_lines(content)
            else:
                self._files[path] = tuple(content)

    def read_lines(self, file_path: str) -> tuple[str, ...] | None:
        if file_path not in self._files:
            raise NotFoundError(file_path)
        return self._files[file_path]


@dataclass(frozen=True, slots=True)
class SliceResult:
    snippets: tuple[Snippet, ...]
    file_digests: tuple[tuple[str, str], ...]
    candidate_count: int


@dataclass(slots=True)
class _Span:
    start: int
    end: int
    kinds: set[OriginKind]
    texts: list[str]


def slice_candidates(
    candidates: Iterable[Candidate],
    line_source: LineSource,
    *,
    context_lines: int = 0,
    hunks_only: bool = False,
    merge_gap: int = 0,
) -> SliceResult:
    """Slice ``candidates`` into canonical snippets ordered by ``(file_path, start, end)``."""

    if isinstance(context_lines, bool) or not isinstance(context_lines, int) or context_lines < 0:
        raise ValidationError("context_lines", "must be an integer >= 0")
    if isinstance(merge_gap, bool) or not isinstance(merge_gap, int) or merge_gap < 0:
        raise ValidationError("merge_gap", "must be an integer >= 0")

    by_file: dict[str, list[Candidate]] = {}
    count = 0
    for candidate in candidates:
        if not isinstance(candidate, Candidate):
            raise TypeError("slice_candidates expects Candidate items")
        by_file.setdefault(candidate.file_path, []).append(candidate)
        count += 1

    snippets: list[Snippet] = []
    digests: list[tuple[str, str]] = []
    seen: set[tuple[str, int, int, str]] = set()

    for file_path in sorted(by_file):
        file_candidates = by_file[file_path]
        lines = line_source.read_lines(file_path)
        if lines is None:
            spans = _merge_detached(file_candidates, merge_gap)
            digests.append((file_path, DETACHED_DIGEST))
            texts = ["\n".join(span.texts) for span in spans]
        else:
            padding = 0 if hunks_only else context_lines
            spans = _merge_attached(file_path, file_candidates, lines, padding, merge_gap)
            digests.append((file_path, sha256_text("\n".join(lines))))
            texts = ["\n".join(lines[span.start - 1 : span.end]) for span in spans]

        for span, text in zip(spans, texts, strict=True):
            identity = (file_path, span.start, span.end, text)
            if identity in seen:
                continue
            seen.add(identity)
            snippets.append(
                Snippet(
                    file_path=file_path,
                    start_line=span.start,
                    end_line=span.end,
                    text=text,
                    origin_kinds=frozenset(span.kinds),
                )
            )

    return SliceResult(
        snippets=tuple(snippets),
        file_digests=tuple(digests),
        candidate_count=count,
    )


def split_lines(text: str) -> tuple[str, ...]:
    """Split on ``\\n`` (tolerating ``\\r\\n``); a trailing newline does not add a line."""

    if not text:
        return ()
    parts = text.split("\n")
    if parts[-1] == "":
        parts.pop()
    return tuple(part[:-1] if part.endswith("\r") else part for part in parts)


def _merge_attached(
    file_path: str,
    candidates: Sequence[Candidate],
    lines: Sequence[str],
    padding: int,
    merge_gap: int,
) -> list[_Span]:
    total = len(lines)
    padded: list[tuple[int, int, OriginKind]] = []
    for candidate in candidates:
        if candidate.end_line > total:
            raise InvalidRangeError(
                file_path,
                candidate.start_line,
                candidate.end_line,
                f"outside current file bounds (file has {total} lines)",
            )
        start = max(1, candidate.start_line - padding)
        end = min(total, candidate.end_line + padding)
        padded.append((start, end, candidate.origin_kind))

    padded.sort(key=lambda item: (item[0], item[1], item[2].priority))
    merged: list[_Span] = []
    for start, end, kind in padded:
        if merged and start <= merged[-1].end + merge_gap + 1:
            last = merged[-1]
            last.end = max(last.end, end)
            last.kinds.add(kind)
            continue
        merged.append(_Span(start=start, end=end, kinds={kind}, texts=[]))
    return merged


def _merge_detached(candidates: Sequence[Candidate], merge_gap: int) -> list[_Span]:
    ordered = sorted(
        candidates,
        key=lambda item: (item.start_line, item.end_line, item.origin_kind.priority, item.raw_text),
    )
    merged: list[_Span] = []
    for candidate in ordered:
        if merged and candidate.start_line <= merged[-1].end + merge_gap + 1:
            last = merged[-1]
            shared = last.end - candidate.start_line + 1
            if shared > 0:
                tail = split_lines(candidate.raw_text)[shared:]
                if tail:
                    last.texts.append("\n".join(tail))
            elif candidate.raw_text not in last.texts:
                last.texts.append(candidate.raw_text)
            last.end = max(last.end, candidate.end_line)
            last.kinds.add(candidate.origin_kind)
            continue
        merged.append(
            _Span(
                start=candidate.start_line,
                end=candidate.end_line,
                kinds={candidate.origin_kind},
                texts=[candidate.raw_text],
            )
        )
    return merged


__all__ = [
    "DETACHED_DIGEST",
    "FilesystemLineSource",
    "LineSource",
    "MappingLineSource",
    "SliceResult",
    "slice_candidates",
    "split_lines",
]
