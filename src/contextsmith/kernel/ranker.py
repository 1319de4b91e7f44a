"""
contextsmith — deterministic snippet ranker

File: src/contextsmith/kernel/ranker.py
Last updated: 2026-10-18

Purpose
- Compute the per-signal score vector of each snippet and the single total order used by every
  downstream consumer.

Functional requirements
- Signals: text (query density, tf-idf), diff (origin includes a diff hunk), recency (normalized
  file timestamps), proximity (distance to diff hunks for non-diff snippets), test (test-file
  path heuristics).
- ``weighted_total`` is the weight-by-signal sum; missing weights are 0, unknown signals raise
  ``ConfigError``.
- Order: ``(weighted_total DESC, origin_priority ASC, file_path ASC, start_line ASC,
  end_line ASC)``.

Non-functional requirements
- No dependency on wall-clock time, map iteration order, or input order.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Final

from contextsmith.constants import SCORE_QUANTUM_DECIMALS
from contextsmith.domain.models import (
    OriginKind,
    Score,
    Signal,
    SignalVector,
    Snippet,
    SnippetKey,
)
from contextsmith.errors import ConfigError

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

PROXIMITY_DECAY_LINES: Final[float] = 20.0
SAME_DIRECTORY_PROXIMITY: Final[float] = 0.25

_TEST_DIRECTORY_SEGMENTS: Final[frozenset[str]] = frozenset(
    {"test", "tests", "__tests__", "spec", "specs"}
)
_TEST_FILE_PATTERNS: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"^test_.+"),
    re.compile(r"^.+_test\.[^.]+$"),
    re.compile(r"^.+\.(test|spec)\.[^.]+$"),
    re.compile(r"^.+Tests?\.[^.]+$"),
)

RankedSnippet = tuple[Snippet, Score]


@dataclass(frozen=True, slots=True)
class RankingInputs:
    """Run-level facts the signals are computed from; held fixed for a run."""

    query_terms: tuple[str, ...] = ()
    query_pattern: re.Pattern[str] | None = None
    timestamps: Mapping[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        terms = tuple(term for term in self.query_terms if term)
        object.__setattr__(self, "query_terms", terms)
        for path, value in self.timestamps.items():
            if isinstance(value, bool) or not isinstance(value, int):
                raise TypeError(f"timestamp for {path!r} must be an integer")

    @property
    def has_query(self) -> bool:
        return bool(self.query_terms) or self.query_pattern is not None

    def count_matches(self, text: str) -> int:
        if self.query_pattern is not None:
            return sum(1 for _ in self.query_pattern.finditer(text))
        return sum(text.count(term) for term in self.query_terms)


def validate_weights(weights: Mapping[str, float]) -> dict[Signal, float]:
    """Resolve a signal-name -> weight mapping; unknown or non-finite weights raise."""

    resolved: dict[Signal, float] = {signal: 0.0 for signal in Signal}
    known = {signal.value for signal in Signal}
    for name in sorted(weights):
        if name not in known:
            expected = ", ".join(signal.value for signal in Signal)
            raise ConfigError(f"unknown ranking signal {name!r}; expected one of: {expected}")
        value = weights[name]
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigError(f"ranking weight {name!r} must be a number")
        if not math.isfinite(value):
            raise ConfigError(f"ranking weight {name!r} must be finite")
        resolved[Signal(name)] = float(value)
    return resolved


def rank(
    snippets: Sequence[Snippet],
    weights: Mapping[str, float],
    inputs: RankingInputs | None = None,
) -> tuple[RankedSnippet, ...]:
    """Score ``snippets`` and return them in canonical rank order."""

    resolved_weights = validate_weights(weights)
    facts = inputs if inputs is not None else RankingInputs()

    ordered_input = sorted(
        snippets, key=lambda item: (item.file_path, item.start_line, item.end_line)
    )
    text_scores = _text_signal(ordered_input, facts)
    recency_scores = _recency_signal(ordered_input, facts.timestamps)
    diff_index = _diff_index(ordered_input)

    ranked: list[RankedSnippet] = []
    for snippet in ordered_input:
        signals = SignalVector(
            text=text_scores[snippet.key],
            diff=1.0 if OriginKind.DIFF_HUNK in snippet.origin_kinds else 0.0,
            recency=recency_scores.get(snippet.file_path, 0.0),
            proximity=_proximity_signal(snippet, diff_index),
            test=1.0 if is_test_path(snippet.file_path) else 0.0,
        )
        total = _weighted(signals, resolved_weights)
        ranked.append((snippet, Score(signals=signals, weighted_total=total)))

    ranked.sort(key=rank_sort_key)
    return tuple(ranked)


def rank_sort_key(item: RankedSnippet) -> tuple[float, int, str, int, int]:
    """The single comparator used for every ordering in the system."""

    snippet, score = item
    return (
        -score.weighted_total,
        snippet.origin_priority,
        snippet.file_path,
        snippet.start_line,
        snippet.end_line,
    )


def is_test_path(file_path: str) -> bool:
    """Return whether ``file_path`` looks like a test file."""

    pure = PurePosixPath(file_path)
    if any(part.lower() in _TEST_DIRECTORY_SEGMENTS for part in pure.parts[:-1]):
        return True
    return any(pattern.match(pure.name) for pattern in _TEST_FILE_PATTERNS)


def text_score(
    match_count: int,
    total_matches: int,
    total_snippets: int,
    matched_snippets: int,
) -> float:
    """``tf * idf`` with ``tf = match_count / total_matches`` and ``idf = ln(N / df) + 1``."""

    if match_count <= 0 or total_matches <= 0 or matched_snippets <= 0:
        return 0.0
    tf = match_count / total_matches
    idf = math.log(total_snippets / matched_snippets) + 1.0
    return tf * idf


def _weighted(signals: SignalVector, weights: Mapping[Signal, float]) -> float:
    total = 0.0
    for signal in Signal:
        total += weights[signal] * signals.get(signal)
    quantized = round(total, SCORE_QUANTUM_DECIMALS)
    # Adding 0.0 turns -0.0 into 0.0 so canonical formatting never prints a sign.
    return quantized + 0.0


def _text_signal(snippets: Sequence[Snippet], inputs: RankingInputs) -> dict[SnippetKey, float]:
    counts = {
        snippet.key: inputs.count_matches(snippet.text) if inputs.has_query else 0
        for snippet in snippets
    }
    total_matches = sum(counts.values())
    matched = sum(1 for value in counts.values() if value > 0)
    return {
        key: text_score(value, total_matches, len(snippets), matched)
        for key, value in counts.items()
    }


def _recency_signal(
    snippets: Sequence[Snippet], timestamps: Mapping[str, int]
) -> dict[str, float]:
    paths = sorted({snippet.file_path for snippet in snippets if snippet.file_path in timestamps})
    if not paths:
        return {}
    values = [timestamps[path] for path in paths]
    oldest = min(values)
    newest = max(values)
    if newest == oldest:
        return {path: 1.0 for path in paths}
    span = float(newest - oldest)
    return {path: (timestamps[path] - oldest) / span for path in paths}


def _diff_index(snippets: Iterable[Snippet]) -> dict[str, list[tuple[int, int]]]:
    index: dict[str, list[tuple[int, int]]] = {}
    for snippet in snippets:
        if OriginKind.DIFF_HUNK in snippet.origin_kinds:
            index.setdefault(snippet.file_path, []).append((snippet.start_line, snippet.end_line))
    return index


def _proximity_signal(
    snippet: Snippet, diff_index: Mapping[str, Sequence[tuple[int, int]]]
) -> float:
    if OriginKind.DIFF_HUNK in snippet.origin_kinds:
        return 0.0

    same_file = diff_index.get(snippet.file_path)
    if same_file:
        distance = min(_line_gap(snippet, start, end) for start, end in same_file)
        return 1.0 / (1.0 + distance / PROXIMITY_DECAY_LINES)

    directory = PurePosixPath(snippet.file_path).parent
    if any(PurePosixPath(path).parent == directory for path in diff_index):
        return SAME_DIRECTORY_PROXIMITY
    return 0.0


def _line_gap(snippet: Snippet, start: int, end: int) -> int:
    if snippet.end_line < start:
        return start - snippet.end_line
    if snippet.start_line > end:
        return snippet.start_line - end
    return 0


__all__ = [
    "PROXIMITY_DECAY_LINES",
    "SAME_DIRECTORY_PROXIMITY",
    "RankedSnippet",
    "RankingInputs",
    "is_test_path",
    "rank",
    "rank_sort_key",
    "text_score",
    "validate_weights",
]
