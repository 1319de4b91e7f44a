"""Literal/regex grep and regex symbol-definition search over scanned files."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Final

from contextsmith.domain.models import Candidate, OriginKind
from contextsmith.errors import ValidationError
from contextsmith.sources.scanner import DEFAULT_MAX_FILE_BYTES, has_generated_marker
from contextsmith.utils.fs import SOURCE_ENCODING, local_path

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from contextsmith.sources.scanner import ScannedFile

PathLike = str | os.PathLike[str]

_BINARY_SNIFF_BYTES: Final[int] = 8192

# Declaration keywords across the languages the tool is commonly pointed at.
_DEFINITION_KEYWORDS: Final[tuple[str, ...]] = (
    "fn",
    "struct",
    "enum",
    "trait",
    "type",
    "const",
    "static",
    "mod",
    "impl",
    "def",
    "class",
    "function",
    "func",
    "interface",
    "module",
    "let",
    "var",
)
_DEFINITION_PREFIX: Final[str] = (
    r"(?:^|\s)"
    r"(?:pub(?:\([^)]*\))?\s+(?:(?:unsafe\s+)?(?:async\s+)?)?"
    r"|export\s+(?:default\s+)?"
    r"|(?:async\s+)?)?"
)


@dataclass(frozen=True, slots=True)
class SearchQuery:
    pattern: str
    regex: bool = False
    ignore_case: bool = False

    def compile(self) -> re.Pattern[str]:
        if not self.pattern:
            raise ValidationError("pattern", "search pattern must not be empty")
        source = self.pattern if self.regex else re.escape(self.pattern)
        flags = re.IGNORECASE if self.ignore_case else 0
        try:
            return re.compile(source, flags)
        except re.error as exc:
            raise ValidationError("pattern", f"invalid regular expression: {exc}") from exc


@dataclass(frozen=True, slots=True)
class TextMatch:
    file_path: str
    line_number: int
    column: int
    line_text: str


@dataclass(frozen=True, slots=True)
class SearchResult:
    matches: tuple[TextMatch, ...]
    files_searched: int
    files_matched: int
    truncated: bool = False

    @property
    def matched_paths(self) -> tuple[str, ...]:
        return tuple(sorted({match.file_path for match in self.matches}))


def build_symbol_pattern(symbol: str) -> re.Pattern[str]:
    """Compile a pattern matching common definition forms of ``symbol``."""

    name = symbol.strip()
    if not name:
        raise ValidationError("symbol", "symbol name must not be empty")
    keywords = "|".join(_DEFINITION_KEYWORDS)
    return re.compile(rf"{_DEFINITION_PREFIX}(?:{keywords})\s+{re.escape(name)}\b")


def search_files(
    root: PathLike,
    files: Iterable[ScannedFile],
    pattern: re.Pattern[str],
    *,
    max_files: int | None = None,
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES,
    skip_generated_markers: bool = True,
) -> SearchResult:
    """Search ``files`` line by line; ``max_files`` keeps the first matching files by path."""

    if max_files is not None and (isinstance(max_files, bool) or max_files < 1):
        raise ValidationError("max-files", "must be a positive integer")

    root_path = Path(root).resolve()
    per_file: dict[str, list[TextMatch]] = {}
    searched = 0
    for scanned in sorted(files, key=lambda item: item.path):
        if scanned.size > max_file_bytes:
            continue
        text = _read_text(local_path(root_path, scanned.path))
        if text is None:
            continue
        if skip_generated_markers and not scanned.is_generated and has_generated_marker(text):
            continue
        searched += 1
        found = search_content(pattern, text, scanned.path)
        if found:
            per_file[scanned.path] = found

    matched_paths = sorted(per_file)
    truncated = max_files is not None and len(matched_paths) > max_files
    if max_files is not None:
        matched_paths = matched_paths[:max_files]

    matches = tuple(match for path in matched_paths for match in per_file[path])
    return SearchResult(
        matches=matches,
        files_searched=searched,
        files_matched=len(matched_paths),
        truncated=truncated,
    )


def search_content(pattern: re.Pattern[str], text: str, file_path: str) -> list[TextMatch]:
    """Return one match per matching line, with the 1-based column of the first hit."""

    matches: list[TextMatch] = []
    for line_number, line in enumerate(text.splitlines(), start=1):
        hit = pattern.search(line)
        if hit is None:
            continue
        matches.append(
            TextMatch(
                file_path=file_path,
                line_number=line_number,
                column=hit.start() + 1,
                line_text=line,
            )
        )
    return matches


def candidates_from_matches(
    matches: Sequence[TextMatch], origin_kind: OriginKind
) -> tuple[Candidate, ...]:
    return tuple(
        Candidate(
            file_path=match.file_path,
            start_line=match.line_number,
            end_line=match.line_number,
            origin_kind=origin_kind,
            raw_text=match.line_text,
        )
        for match in matches
    )


def _read_text(path: Path) -> str | None:
    try:
        data = path.read_bytes()
    except OSError:
        return None
    if b"\0" in data[:_BINARY_SNIFF_BYTES]:
        return None
    return data.decode(SOURCE_ENCODING, errors="replace")


__all__ = [
    "SearchQuery",
    "SearchResult",
    "TextMatch",
    "build_symbol_pattern",
    "candidates_from_matches",
    "search_content",
    "search_files",
]
