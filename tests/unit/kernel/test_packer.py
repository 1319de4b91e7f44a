"""
contextsmith — unit tests for the budget packer

File: tests/unit/kernel/test_packer.py
Last updated: 2026-10-18

Purpose
- Validate greedy packing, reserve handling, must/drop/pin overrides, and the first-snippet guard.

What this test file should cover
- Exactly one decision per snippet, emitted in rank order.
- Structured decision events through the injected logger.
"""

from __future__ import annotations

from typing import Any

import pytest

from contextsmith.domain.models import (
    OriginKind,
    ReasonCode,
    Score,
    SelectedBy,
    SignalVector,
    Snippet,
    SnippetKey,
)
from contextsmith.errors import ValidationError
from contextsmith.kernel.packer import PackResult, pack, path_matches
from contextsmith.kernel.ranker import RankedSnippet
from contextsmith.kernel.tokens import CharRatioEstimator, ModelFamily

# One token per character keeps the arithmetic in these tests obvious.
ONE_CHAR_PER_TOKEN = CharRatioEstimator(ratio_override=1.0)


class _RecordingLogger:
    def __init__(self) -> None:
        self.events: list[tuple[str, str, dict[str, Any]]] = []

    def debug(self, event: str, **fields: Any) -> None:
        self.events.append(("debug", event, fields))

    def info(self, event: str, **fields: Any) -> None:
        self.events.append(("info", event, fields))


def _ranked(*specs: tuple[str, int, str]) -> tuple[RankedSnippet, ...]:
    """Build ranked snippets from ``(path, start_line, text)`` in the given (rank) order."""

    items: list[RankedSnippet] = []
    for index, (path, start, text) in enumerate(specs):
        snippet = Snippet(
            file_path=path,
            start_line=start,
            end_line=start,
            text=text,
            origin_kinds=frozenset({OriginKind.GREP_MATCH}),
        )
        items.append((snippet, Score(SignalVector(), float(len(specs) - index))))
    return tuple(items)


def _outcome(result: PackResult) -> list[tuple[str, bool, SelectedBy | None]]:
    return [
        (str(entry.snippet.key), entry.decision.included, entry.decision.selected_by)
        for entry in result.entries
    ]


@pytest.mark.unit
def test_greedy_packing_stops_at_first_snippet_that_does_not_fit() -> None:
    ranked = _ranked(("a.py", 1, "aaaa"), ("b.py", 1, "bbbbbbbbbb"), ("c.py", 1, "cc"))

    result = pack(ranked, 6, estimator=ONE_CHAR_PER_TOKEN)

    assert _outcome(result) == [
        ("a.py:1-1", True, SelectedBy.RANKED),
        ("b.py:1-1", False, None),
        ("c.py:1-1", False, None),
    ]
    assert result.entries[1].decision.reason_codes == (
        ReasonCode.GREP_MATCH,
        ReasonCode.BUDGET_EXCLUDED,
    )
    assert result.total_tokens == 4
    assert result.included_count == 1


@pytest.mark.unit
def test_reserve_reduces_available_budget() -> None:
    ranked = _ranked(("a.py", 1, "aaaa"), ("b.py", 1, "b"))

    result = pack(ranked, 10, estimator=ONE_CHAR_PER_TOKEN, reserve_tokens=6)

    assert result.available_tokens == 4
    assert _outcome(result) == [
        ("a.py:1-1", True, SelectedBy.RANKED),
        ("b.py:1-1", False, None),
    ]


@pytest.mark.unit
def test_reserve_at_or_above_budget_leaves_only_the_guard() -> None:
    ranked = _ranked(("a.py", 1, "aa"), ("b.py", 1, "b"))

    result = pack(ranked, 5, estimator=ONE_CHAR_PER_TOKEN, reserve_tokens=9)

    assert result.available_tokens == 0
    assert _outcome(result) == [
        ("a.py:1-1", True, SelectedBy.FIRST_SNIPPET_GUARD),
        ("b.py:1-1", False, None),
    ]


@pytest.mark.unit
def test_drop_excludes_and_must_overrides_drop() -> None:
    ranked = _ranked(
        ("vendor/lib.py", 1, "v"),
        ("src/keep.py", 1, "k"),
        ("vendor/pinned.py", 1, "p"),
    )

    result = pack(
        ranked,
        100,
        estimator=ONE_CHAR_PER_TOKEN,
        must=["pinned"],
        drop=["vendor/"],
    )

    assert _outcome(result) == [
        ("vendor/lib.py:1-1", False, None),
        ("src/keep.py:1-1", True, SelectedBy.RANKED),
        ("vendor/pinned.py:1-1", True, SelectedBy.MUST),
    ]
    assert ReasonCode.DROP_FILTER in result.entries[0].decision.reason_codes
    assert ReasonCode.MUST_OVERRIDE_DROP in result.entries[2].decision.reason_codes


@pytest.mark.unit
def test_must_snippets_consume_budget_before_ranked_ones() -> None:
    ranked = _ranked(("a.py", 1, "aaa"), ("big_must.py", 1, "mmmmmm"))

    result = pack(ranked, 8, estimator=ONE_CHAR_PER_TOKEN, must=["big_must"])

    assert _outcome(result) == [
        ("a.py:1-1", False, None),
        ("big_must.py:1-1", True, SelectedBy.MUST),
    ]


@pytest.mark.unit
def test_must_may_exceed_the_budget() -> None:
    ranked = _ranked(("a.py", 1, "a" * 50))

    result = pack(ranked, 10, estimator=ONE_CHAR_PER_TOKEN, must=["*.py"])

    assert result.included_count == 1
    assert result.total_tokens == 50


@pytest.mark.unit
def test_pins_select_overlapping_snippets_as_manual() -> None:
    ranked = _ranked(("a.py", 1, "aaaa"), ("b.py", 10, "bbbb"))

    result = pack(
        ranked,
        8,
        estimator=ONE_CHAR_PER_TOKEN,
        pins=[SnippetKey("b.py", 5, 12)],
        drop=["b.py"],
    )

    assert _outcome(result) == [
        ("a.py:1-1", True, SelectedBy.RANKED),
        ("b.py:10-10", True, SelectedBy.MANUAL),
    ]
    assert ReasonCode.MUST_OVERRIDE_DROP in result.entries[1].decision.reason_codes
    assert result.total_tokens == 8


@pytest.mark.unit
def test_pin_without_overlapping_snippet_is_rejected() -> None:
    ranked = _ranked(("a.py", 1, "aaaa"))

    with pytest.raises(ValidationError, match="no snippet overlaps"):
        pack(ranked, 10, estimator=ONE_CHAR_PER_TOKEN, pins=[SnippetKey("a.py", 2, 3)])


@pytest.mark.unit
def test_first_snippet_guard_includes_top_snippet_when_nothing_fits() -> None:
    ranked = _ranked(("a.py", 1, "aaaaaa"), ("b.py", 1, "bbbbbb"))

    result = pack(ranked, 3, estimator=ONE_CHAR_PER_TOKEN)

    assert _outcome(result) == [
        ("a.py:1-1", True, SelectedBy.FIRST_SNIPPET_GUARD),
        ("b.py:1-1", False, None),
    ]
    assert result.entries[0].decision.reason_codes == (ReasonCode.GREP_MATCH,)


@pytest.mark.unit
def test_first_snippet_guard_skips_dropped_snippets() -> None:
    ranked = _ranked(("gen/a.py", 1, "aaaaaa"), ("b.py", 1, "bbbbbb"))

    result = pack(ranked, 3, estimator=ONE_CHAR_PER_TOKEN, drop=["gen/"])

    assert _outcome(result) == [
        ("gen/a.py:1-1", False, None),
        ("b.py:1-1", True, SelectedBy.FIRST_SNIPPET_GUARD),
    ]


@pytest.mark.unit
def test_empty_input_yields_empty_result() -> None:
    result = pack((), 100, estimator=ONE_CHAR_PER_TOKEN)

    assert result.entries == ()
    assert result.total_tokens == 0


@pytest.mark.unit
@pytest.mark.parametrize(("budget", "reserve"), [(-1, 0), (10, -1)])
def test_negative_budget_or_reserve_is_rejected(budget: int, reserve: int) -> None:
    with pytest.raises(ValidationError):
        pack(
            _ranked(("a.py", 1, "a")),
            budget,
            estimator=ONE_CHAR_PER_TOKEN,
            reserve_tokens=reserve,
        )


@pytest.mark.unit
def test_estimator_must_return_integers() -> None:
    class _FloatEstimator:
        def estimate(self, text: str, model_family: ModelFamily) -> int:
            return 1.5  # type: ignore[return-value]

    with pytest.raises(TypeError):
        pack(_ranked(("a.py", 1, "a")), 10, estimator=_FloatEstimator())


@pytest.mark.unit
def test_decisions_are_logged_as_structured_events() -> None:
    logger = _RecordingLogger()
    ranked = _ranked(("a.py", 1, "aa"), ("b.py", 1, "bbbbbbbb"))

    pack(ranked, 4, estimator=ONE_CHAR_PER_TOKEN, logger=logger)

    decisions = [
        fields for _, event, fields in logger.events if event == "context_pack_decision"
    ]
    assert [item["snippet"] for item in decisions] == ["a.py:1-1", "b.py:1-1"]
    assert decisions[1]["reason_codes"] == ["grep_match", "budget_excluded"]
    summary = [fields for _, event, fields in logger.events if event == "context_pack_summary"]
    assert summary == [
        {"snippet_count": 2, "included_count": 1, "total_tokens": 2, "available_tokens": 4}
    ]


@pytest.mark.unit
@pytest.mark.parametrize(
    ("path", "pattern", "expected"),
    [
        ("src/vendor/x.py", "vendor", True),
        ("src/app.py", "*.py", True),
        ("src/app.py", "src/*.rs", False),
        ("src/app.py", "", False),
        ("src/app.py", "app.py", True),
    ],
)
def test_path_matches(path: str, pattern: str, expected: bool) -> None:
    assert path_matches(path, pattern) is expected
