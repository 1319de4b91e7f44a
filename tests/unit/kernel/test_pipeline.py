"""
contextsmith — unit tests for the selection pipeline

File: tests/unit/kernel/test_pipeline.py
Last updated: 2026-10-18

Purpose
- Validate the slice -> rank -> pack -> manifest -> bundle composition and the in-memory
  determinism check.
"""

from __future__ import annotations

import json

import pytest

from contextsmith.domain.models import Candidate, OriginKind
from contextsmith.errors import DeterminismViolation
from contextsmith.kernel.manifest import config_fingerprint
from contextsmith.kernel.pipeline import (
    SelectionRequest,
    SelectionSettings,
    determinism_check,
    run_selection,
)
from contextsmith.kernel.slicer import MappingLineSource
from contextsmith.kernel.tokens import CharRatioEstimator, ModelFamily
from contextsmith.output import OutputFormat, render_bundle

SOURCE_FILES = {
    "src/app.py": "".join(f"app line {number}\n" for number in range(1, 21)),
    "src/util.rs": "".join(f"util line {number}\n" for number in range(1, 11)),
}


def _request(**settings_overrides: object) -> SelectionRequest:
    options: dict[str, object] = {
        "budget_tokens": 1000,
        "weights": {"diff": 2.0, "proximity": 1.5},
    }
    options.update(settings_overrides)
    settings = SelectionSettings(**options)  # type: ignore[arg-type]
    return SelectionRequest(
        candidates=(
            Candidate("src/app.py", 5, 6, OriginKind.DIFF_HUNK),
            Candidate("src/app.py", 15, 15, OriginKind.GREP_MATCH),
            Candidate("src/util.rs", 2, 2, OriginKind.GREP_MATCH),
        ),
        settings=settings,
        command="diff",
        command_arguments={"staged": False},
        summary="2 files changed",
    )


@pytest.mark.unit
def test_run_selection_composes_every_stage() -> None:
    outcome = run_selection(_request(context_lines=1), MappingLineSource(SOURCE_FILES))

    assert [str(snippet.key) for snippet in outcome.slice_result.snippets] == [
        "src/app.py:4-7",
        "src/app.py:14-16",
        "src/util.rs:1-3",
    ]
    assert [str(entry.key) for entry in outcome.manifest.entries] == [
        "src/app.py:4-7",
        "src/app.py:14-16",
        "src/util.rs:1-3",
    ]
    assert outcome.manifest.summary.candidate_count == 3
    assert outcome.manifest.summary.included_count == 3
    assert [section.file_path for section in outcome.bundle.sections] == [
        "src/app.py",
        "src/app.py",
        "src/util.rs",
    ]
    assert outcome.bundle.sections[0].reason == "diff_hunk"
    assert outcome.bundle.sections[0].language == "python"
    assert outcome.bundle.sections[2].language == "rust"
    assert outcome.bundle.summary.startswith("2 files changed; 3 of 3 snippets")
    assert outcome.bundle_text == render_bundle(outcome.bundle, OutputFormat.MARKDOWN)


@pytest.mark.unit
def test_bundle_contains_only_included_snippets_in_rank_order() -> None:
    request = _request(budget_tokens=8, output_format=OutputFormat.JSON)

    outcome = run_selection(
        request, MappingLineSource(SOURCE_FILES), CharRatioEstimator(ratio_override=4.0)
    )
    payload = json.loads(outcome.bundle_text)

    included = [str(entry.key) for entry in outcome.manifest.included_entries]
    sections = [
        f"{item['file_path']}:{item['start_line']}-{item['end_line']}"
        for item in payload["sections"]
    ]
    assert sections == included
    assert len(outcome.manifest.entries) == 3
    assert outcome.manifest.entries[0].key.start_line == 5


@pytest.mark.unit
def test_config_fingerprint_defaults_to_settings_payload() -> None:
    request = _request()
    outcome = run_selection(request, MappingLineSource(SOURCE_FILES))

    explicit = SelectionRequest(
        candidates=request.candidates,
        settings=request.settings,
        command=request.command,
        command_arguments=request.command_arguments,
        config_fingerprint=config_fingerprint(request.settings.fingerprint_payload()),
        summary=request.summary,
    )
    same = run_selection(explicit, MappingLineSource(SOURCE_FILES))

    assert (
        outcome.manifest.summary.determinism_fingerprint
        == same.manifest.summary.determinism_fingerprint
    )


@pytest.mark.unit
def test_model_family_changes_estimates() -> None:
    gpt = run_selection(_request(), MappingLineSource(SOURCE_FILES))
    claude = run_selection(
        _request(model_family=ModelFamily.CLAUDE), MappingLineSource(SOURCE_FILES)
    )

    assert claude.manifest.summary.total_tokens > gpt.manifest.summary.total_tokens
    assert claude.manifest.summary.model_family == "claude"


@pytest.mark.unit
def test_determinism_check_returns_outcome_when_runs_agree() -> None:
    request = _request()

    checked = determinism_check(request, MappingLineSource(SOURCE_FILES))
    plain = run_selection(request, MappingLineSource(SOURCE_FILES))

    assert checked.manifest == plain.manifest
    assert checked.bundle_text == plain.bundle_text


@pytest.mark.unit
def test_determinism_check_raises_when_runs_diverge() -> None:
    class _DriftingEstimator:
        def __init__(self) -> None:
            self.calls = 0

        def estimate(self, text: str, model_family: ModelFamily) -> int:
            self.calls += 1
            return self.calls

    with pytest.raises(DeterminismViolation, match="determinism check failed"):
        determinism_check(_request(), MappingLineSource(SOURCE_FILES), _DriftingEstimator())


@pytest.mark.unit
def test_determinism_check_reads_each_file_once() -> None:
    class _CountingSource(MappingLineSource):
        def __init__(self) -> None:
            super().__init__(SOURCE_FILES)
            self.reads: list[str] = []

        def read_lines(self, file_path: str) -> tuple[str, ...] | None:
            self.reads.append(file_path)
            return super().read_lines(file_path)

    source = _CountingSource()

    determinism_check(_request(), source)

    assert sorted(source.reads) == ["src/app.py", "src/util.rs"]


@pytest.mark.unit
def test_overlapping_diff_hunks_become_one_ranked_snippet() -> None:
    request = SelectionRequest(
        candidates=(
            Candidate("A.rs", 1, 5, OriginKind.DIFF_HUNK),
            Candidate("A.rs", 4, 9, OriginKind.DIFF_HUNK),
        ),
        settings=SelectionSettings(
            budget_tokens=10000,
            weights={"text": 0.0, "diff": 2.0, "recency": 0.0, "proximity": 0.0, "test": 0.0},
        ),
    )
    lines = "".join(f"fn line_{number}() {{}}\n" for number in range(1, 11))

    outcome = run_selection(request, MappingLineSource({"A.rs": lines}))

    (entry,) = outcome.manifest.entries
    assert str(entry.key) == "A.rs:1-9"
    assert entry.included is True
    assert entry.selected_by is not None
    assert entry.selected_by.value == "ranked"


@pytest.mark.unit
def test_zero_budget_still_selects_one_snippet() -> None:
    request = SelectionRequest(
        candidates=(Candidate("src/app.py", 3, 3, OriginKind.GREP_MATCH),),
        settings=SelectionSettings(budget_tokens=0),
    )

    outcome = run_selection(request, MappingLineSource(SOURCE_FILES))

    assert outcome.manifest.summary.included_count == 1
    (entry,) = outcome.manifest.entries
    assert entry.selected_by is not None
    assert entry.selected_by.value == "first_snippet_guard"


@pytest.mark.unit
def test_must_pattern_overrides_drop_pattern() -> None:
    request = SelectionRequest(
        candidates=(Candidate("tests/important.rs", 1, 1, OriginKind.GREP_MATCH),),
        settings=SelectionSettings(
            budget_tokens=1000, must=("tests/important.rs",), drop=("tests/",)
        ),
    )

    outcome = run_selection(request, MappingLineSource({"tests/important.rs": "fn t() {}\n"}))

    (entry,) = outcome.manifest.entries
    assert entry.included is True
    assert entry.selected_by is not None
    assert entry.selected_by.value == "must"
    assert "must_override_drop" in [code.value for code in entry.reason_codes]
