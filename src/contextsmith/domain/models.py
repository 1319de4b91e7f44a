"""Frozen domain models shared by the selection kernel, with strict validation."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import StrEnum
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, NamedTuple

from contextsmith.errors import InvalidRangeError, ValidationError

if TYPE_CHECKING:
    from collections.abc import Iterable


class OriginKind(StrEnum):
    """Where a candidate came from; declaration order is the tie-break priority."""

    DIFF_HUNK = "diff_hunk"
    EXPLICIT_FILE = "explicit_file"
    SYMBOL_DEFINITION = "symbol_definition"
    GREP_MATCH = "grep_match"

    @property
    def priority(self) -> int:
        return _ORIGIN_PRIORITY[self]


_ORIGIN_PRIORITY: dict[OriginKind, int] = {kind: index for index, kind in enumerate(OriginKind)}

# Free-text reasons written by older bundles and manifests; first matching prefix wins.
_REASON_TEXT_ORIGINS: tuple[tuple[str, OriginKind], ...] = (
    ("grep", OriginKind.GREP_MATCH),
    ("definition", OriginKind.SYMBOL_DEFINITION),
    ("symbol", OriginKind.SYMBOL_DEFINITION),
    ("explicit", OriginKind.EXPLICIT_FILE),
    ("modified", OriginKind.DIFF_HUNK),
    ("added", OriginKind.DIFF_HUNK),
    ("deleted", OriginKind.DIFF_HUNK),
    ("renamed", OriginKind.DIFF_HUNK),
    ("diff", OriginKind.DIFF_HUNK),
)


class SelectedBy(StrEnum):
    MUST = "must"
    RANKED = "ranked"
    FIRST_SNIPPET_GUARD = "first_snippet_guard"
    MANUAL = "manual"


class ReasonCode(StrEnum):
    """Fixed reason vocabulary; declaration order is the canonical emission order."""

    DIFF_HUNK = "diff_hunk"
    EXPLICIT_FILE = "explicit_file"
    GREP_MATCH = "grep_match"
    SYMBOL_DEFINITION = "symbol_definition"
    BUDGET_EXCLUDED = "budget_excluded"
    DROP_FILTER = "drop_filter"
    MUST_OVERRIDE_DROP = "must_override_drop"


_REASON_ORDER: dict[ReasonCode, int] = {code: index for index, code in enumerate(ReasonCode)}


class Signal(StrEnum):
    TEXT = "text"
    DIFF = "diff"
    RECENCY = "recency"
    PROXIMITY = "proximity"
    TEST = "test"


class SnippetKey(NamedTuple):
    """Locator of one snippet: ``path:start-end``."""

    file_path: str
    start_line: int
    end_line: int

    def __str__(self) -> str:
        return f"{self.file_path}:{self.start_line}-{self.end_line}"

    @classmethod
    def parse(cls, text: str) -> SnippetKey:
        """Parse ``path:START-END`` into a key."""

        path, sep, span = text.rpartition(":")
        if not sep or not path:
            raise ValidationError("snippet locator", f"expected PATH:START-END, got {text!r}")
        start_text, dash, end_text = span.partition("-")
        if not dash or not start_text.isdigit() or not end_text.isdigit():
            raise ValidationError("snippet locator", f"expected PATH:START-END, got {text!r}")
        start_line = int(start_text)
        end_line = int(end_text)
        normalized = normalize_relative_path(path, field_name="snippet locator")
        _validate_range(normalized, start_line, end_line)
        return cls(normalized, start_line, end_line)


@dataclass(frozen=True, slots=True)
class Candidate:
    """Raw, possibly-overlapping span of interest produced by a candidate source."""

    file_path: str
    start_line: int
    end_line: int
    origin_kind: OriginKind
    raw_text: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "file_path", normalize_relative_path(self.file_path, field_name="file_path")
        )
        object.__setattr__(self, "origin_kind", OriginKind(self.origin_kind))
        if not isinstance(self.raw_text, str):
            raise TypeError("Candidate.raw_text must be a string")
        _validate_range(self.file_path, self.start_line, self.end_line)


@dataclass(frozen=True, slots=True)
class Snippet:
    """Canonical merged span; never mutated after the slicer creates it."""

    file_path: str
    start_line: int
    end_line: int
    text: str
    origin_kinds: frozenset[OriginKind]

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "file_path", normalize_relative_path(self.file_path, field_name="file_path")
        )
        kinds = frozenset(OriginKind(kind) for kind in self.origin_kinds)
        if not kinds:
            raise ValueError("Snippet.origin_kinds must not be empty")
        object.__setattr__(self, "origin_kinds", kinds)
        _validate_range(self.file_path, self.start_line, self.end_line)

    @property
    def key(self) -> SnippetKey:
        return SnippetKey(self.file_path, self.start_line, self.end_line)

    @property
    def char_len(self) -> int:
        return len(self.text)

    @property
    def origin_priority(self) -> int:
        return min(kind.priority for kind in self.origin_kinds)

    @property
    def ordered_origin_kinds(self) -> tuple[OriginKind, ...]:
        return tuple(sorted(self.origin_kinds, key=lambda kind: kind.priority))

    @property
    def origin_reason_codes(self) -> tuple[ReasonCode, ...]:
        return ordered_reason_codes(ReasonCode(kind.value) for kind in self.origin_kinds)


@dataclass(frozen=True, slots=True)
class SignalVector:
    """Per-signal scores for one snippet."""

    text: float = 0.0
    diff: float = 0.0
    recency: float = 0.0
    proximity: float = 0.0
    test: float = 0.0

    def __post_init__(self) -> None:
        for signal in Signal:
            value = getattr(self, signal.value)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise TypeError(f"signal {signal.value} must be a number")
            if not math.isfinite(value):
                raise ValueError(f"signal {signal.value} must be finite")
            object.__setattr__(self, signal.value, float(value))

    def get(self, signal: Signal) -> float:
        return float(getattr(self, signal.value))

    def as_dict(self) -> dict[str, float]:
        return {signal.value: self.get(signal) for signal in Signal}


@dataclass(frozen=True, slots=True)
class Score:
    signals: SignalVector
    weighted_total: float

    def __post_init__(self) -> None:
        if not math.isfinite(self.weighted_total):
            raise ValueError("Score.weighted_total must be finite")


@dataclass(frozen=True, slots=True)
class Decision:
    """Packer outcome for exactly one snippet."""

    included: bool
    selected_by: SelectedBy | None
    reason_codes: tuple[ReasonCode, ...]

    def __post_init__(self) -> None:
        if self.included and self.selected_by is None:
            raise ValueError("included decisions must record selected_by")
        if not self.included and self.selected_by is not None:
            raise ValueError("excluded decisions must not record selected_by")
        if self.selected_by is not None:
            object.__setattr__(self, "selected_by", SelectedBy(self.selected_by))
        codes = ordered_reason_codes(self.reason_codes)
        if not codes:
            raise ValueError("Decision.reason_codes must not be empty")
        object.__setattr__(self, "reason_codes", codes)


def ordered_reason_codes(codes: Iterable[ReasonCode | str]) -> tuple[ReasonCode, ...]:
    """Return ``codes`` de-duplicated in vocabulary order; unknown codes raise ``ValueError``."""

    unique = {ReasonCode(code) for code in codes}
    return tuple(sorted(unique, key=_REASON_ORDER.__getitem__))


def origin_from_reason_text(reason: str) -> OriginKind:
    """Map an origin code or a legacy free-text reason onto an origin kind.

    Unrecognized reasons fall back to ``explicit_file``.
    """

    lowered = reason.strip().lower()
    for kind in OriginKind:
        if lowered == kind.value:
            return kind
    for prefix, origin in _REASON_TEXT_ORIGINS:
        if lowered.startswith(prefix):
            return origin
    return OriginKind.EXPLICIT_FILE


def normalize_relative_path(value: object, *, field_name: str) -> str:
    """Return a canonical relative POSIX path or raise ``ValidationError``."""

    if not isinstance(value, str):
        raise TypeError(f"{field_name} must be a string")

    normalized = value.replace("\\", "/").strip()
    if not normalized:
        raise ValidationError(field_name, "path must not be empty")

    pure = PurePosixPath(normalized)
    if pure.is_absolute():
        raise ValidationError(field_name, f"path must be relative: {value!r}")
    if any(part == ".." for part in pure.parts):
        raise ValidationError(field_name, f"path must not contain traversal: {value!r}")

    canonical = pure.as_posix()
    if canonical in {"", "."}:
        raise ValidationError(field_name, "path must point to a file")
    return canonical


def _validate_range(file_path: str, start_line: int, end_line: int) -> None:
    if not _is_strict_int(start_line) or not _is_strict_int(end_line):
        raise TypeError("line numbers must be integers")
    if start_line < 1:
        raise InvalidRangeError(file_path, start_line, end_line, "start_line must be >= 1")
    if end_line < start_line:
        raise InvalidRangeError(file_path, start_line, end_line, "end_line must be >= start_line")


def _is_strict_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


__all__ = [
    "Candidate",
    "Decision",
    "OriginKind",
    "ReasonCode",
    "Score",
    "SelectedBy",
    "Signal",
    "SignalVector",
    "Snippet",
    "SnippetKey",
    "normalize_relative_path",
    "ordered_reason_codes",
    "origin_from_reason_text",
]
