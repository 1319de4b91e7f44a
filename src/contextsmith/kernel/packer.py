"""
Budget-constrained packing of ranked snippets.

This module turns the ranker's order into one inclusion decision per snippet:
- manual pins and ``must`` patterns are forced in first, in rank order
- ``drop`` patterns force snippets out unless a pin or ``must`` pattern overrides them
- the remaining snippets are walked greedily in rank order until the first one that does not
  fit ``budget_tokens - reserve_tokens``
- a first-snippet guard includes the top-ranked snippet when nothing else was selected

Decisions are logged through `structlog` as machine-parseable ``context_pack_decision`` events.
"""

from __future__ import annotations

from dataclasses import dataclass
from fnmatch import fnmatchcase
from typing import TYPE_CHECKING, Any, Final

from contextsmith.domain.models import Decision, ReasonCode, SelectedBy, SnippetKey
from contextsmith.errors import ValidationError
from contextsmith.kernel.tokens import DEFAULT_MODEL_FAMILY, ModelFamily
from contextsmith.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from contextsmith.domain.models import Score, Snippet
    from contextsmith.kernel.ranker import RankedSnippet
    from contextsmith.kernel.tokens import TokenEstimator

_GLOB_CHARACTERS: Final[frozenset[str]] = frozenset("*?[")


@dataclass(frozen=True, slots=True)
class PackedSnippet:
    """One (snippet, score, decision) triple plus its estimated cost."""

    snippet: Snippet
    score: Score
    decision: Decision
    estimated_tokens: int


@dataclass(frozen=True, slots=True)
class PackResult:
    entries: tuple[PackedSnippet, ...]
    budget_tokens: int
    reserve_tokens: int
    model_family: ModelFamily

    @property
    def available_tokens(self) -> int:
        return max(self.budget_tokens - self.reserve_tokens, 0)

    @property
    def included(self) -> tuple[PackedSnippet, ...]:
        return tuple(entry for entry in self.entries if entry.decision.included)

    @property
    def included_count(self) -> int:
        return sum(1 for entry in self.entries if entry.decision.included)

    @property
    def total_tokens(self) -> int:
        return sum(entry.estimated_tokens for entry in self.entries if entry.decision.included)


def path_matches(file_path: str, pattern: str) -> bool:
    """Glob match when ``pattern`` has glob characters, substring match otherwise."""

    if not pattern:
        return False
    if _GLOB_CHARACTERS.intersection(pattern):
        return fnmatchcase(file_path, pattern)
    return pattern in file_path


def matches_any(file_path: str, patterns: Iterable[str]) -> bool:
    return any(path_matches(file_path, pattern) for pattern in patterns)


def pack(
    ranked: Sequence[RankedSnippet],
    budget_tokens: int,
    *,
    estimator: TokenEstimator,
    must: Sequence[str] = (),
    drop: Sequence[str] = (),
    pins: Sequence[SnippetKey] = (),
    reserve_tokens: int = 0,
    model_family: ModelFamily = DEFAULT_MODEL_FAMILY,
    logger: Any | None = None,
) -> PackResult:
    """Decide inclusion for every ranked snippet without reordering them."""

    _require_non_negative_int("budget_tokens", budget_tokens)
    _require_non_negative_int("reserve_tokens", reserve_tokens)
    log = logger if logger is not None else get_logger(__name__)

    snippets = [snippet for snippet, _ in ranked]
    costs = [_estimate(estimator, snippet.text, model_family) for snippet in snippets]
    dropped = [matches_any(snippet.file_path, drop) for snippet in snippets]
    pinned = _resolve_pins(snippets, pins)
    available = max(budget_tokens - reserve_tokens, 0)

    decisions: list[Decision | None] = [None] * len(snippets)
    used = 0

    for index, snippet in enumerate(snippets):
        if index in pinned:
            decisions[index] = _forced(snippet, SelectedBy.MANUAL, overrides_drop=dropped[index])
            used += costs[index]
    for index, snippet in enumerate(snippets):
        if decisions[index] is None and matches_any(snippet.file_path, must):
            decisions[index] = _forced(snippet, SelectedBy.MUST, overrides_drop=dropped[index])
            used += costs[index]
    for index, snippet in enumerate(snippets):
        if decisions[index] is None and dropped[index]:
            decisions[index] = Decision(
                included=False,
                selected_by=None,
                reason_codes=(*snippet.origin_reason_codes, ReasonCode.DROP_FILTER),
            )

    exhausted = False
    for index, snippet in enumerate(snippets):
        if decisions[index] is not None:
            continue
        if not exhausted and used + costs[index] <= available:
            decisions[index] = Decision(
                included=True,
                selected_by=SelectedBy.RANKED,
                reason_codes=snippet.origin_reason_codes,
            )
            used += costs[index]
            continue
        exhausted = True
        decisions[index] = Decision(
            included=False,
            selected_by=None,
            reason_codes=(*snippet.origin_reason_codes, ReasonCode.BUDGET_EXCLUDED),
        )

    if snippets and not any(decision is not None and decision.included for decision in decisions):
        guard_index = next((i for i, is_dropped in enumerate(dropped) if not is_dropped), 0)
        decisions[guard_index] = Decision(
            included=True,
            selected_by=SelectedBy.FIRST_SNIPPET_GUARD,
            reason_codes=snippets[guard_index].origin_reason_codes,
        )

    entries: list[PackedSnippet] = []
    for (snippet, score), decision, cost in zip(ranked, decisions, costs, strict=True):
        if decision is None:
            raise RuntimeError(f"no decision recorded for {snippet.key}")
        entries.append(
            PackedSnippet(snippet=snippet, score=score, decision=decision, estimated_tokens=cost)
        )
        log.debug(
            "context_pack_decision",
            snippet=str(snippet.key),
            included=decision.included,
            selected_by=decision.selected_by.value if decision.selected_by else None,
            reason_codes=[code.value for code in decision.reason_codes],
            estimated_tokens=cost,
            weighted_total=score.weighted_total,
        )

    result = PackResult(
        entries=tuple(entries),
        budget_tokens=budget_tokens,
        reserve_tokens=reserve_tokens,
        model_family=model_family,
    )
    log.info(
        "context_pack_summary",
        snippet_count=len(entries),
        included_count=result.included_count,
        total_tokens=result.total_tokens,
        available_tokens=result.available_tokens,
    )
    return result


def _forced(snippet: Snippet, selected_by: SelectedBy, *, overrides_drop: bool) -> Decision:
    codes: tuple[ReasonCode, ...] = snippet.origin_reason_codes
    if overrides_drop:
        codes = (*codes, ReasonCode.MUST_OVERRIDE_DROP)
    return Decision(included=True, selected_by=selected_by, reason_codes=codes)


def _resolve_pins(snippets: Sequence[Snippet], pins: Sequence[SnippetKey]) -> set[int]:
    resolved: set[int] = set()
    for pin in pins:
        hits = [
            index
            for index, snippet in enumerate(snippets)
            if snippet.file_path == pin.file_path
            and snippet.start_line <= pin.end_line
            and pin.start_line <= snippet.end_line
        ]
        if not hits:
            raise ValidationError("pin", f"no snippet overlaps {pin}")
        resolved.update(hits)
    return resolved


def _estimate(estimator: TokenEstimator, text: str, model_family: ModelFamily) -> int:
    estimated = estimator.estimate(text, model_family)
    if isinstance(estimated, bool) or not isinstance(estimated, int):
        raise TypeError("token estimator must return an integer")
    if estimated < 0:
        raise ValueError("token estimator must return >= 0")
    return estimated


def _require_non_negative_int(name: str, value: object) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(name, "must be an integer >= 0")


__all__ = [
    "PackResult",
    "PackedSnippet",
    "matches_any",
    "pack",
    "path_matches",
]
