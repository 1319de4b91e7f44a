"""
contextsmith — selection pipeline

File: src/contextsmith/kernel/pipeline.py
Last updated: 2026-10-18

Purpose
- Run Slicer -> Ranker -> Packer -> Manifest for one request and render the bundle text.
- Provide determinism-check mode: two in-memory runs against one captured input snapshot.

Functional requirements
- The configuration is an explicit value passed in; nothing here reads ambient global state.
- All file reads happen through a ``LineSource``; the pipeline itself never prints.

Key interfaces / contracts
- ``run_selection(request, line_source, estimator) -> SelectionOutcome``
- ``determinism_check(request, line_source, estimator)`` raises ``DeterminismViolation``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from contextsmith.constants import SELECTION_STRATEGY
from contextsmith.errors import DeterminismViolation
from contextsmith.kernel.manifest import (
    build_manifest,
    command_fingerprint,
    config_fingerprint,
    repo_state_fingerprint,
)
from contextsmith.kernel.packer import pack
from contextsmith.kernel.ranker import RankingInputs, rank
from contextsmith.kernel.slicer import slice_candidates
from contextsmith.kernel.tokens import DEFAULT_MODEL_FAMILY, CharRatioEstimator, ModelFamily
from contextsmith.observability.logging import get_logger
from contextsmith.output.formats import Bundle, BundleSection, OutputFormat, render_bundle
from contextsmith.utils.languages import infer_language

if TYPE_CHECKING:
    from collections.abc import Mapping

    from contextsmith.domain.models import Candidate, SnippetKey
    from contextsmith.kernel.manifest import Manifest
    from contextsmith.kernel.packer import PackResult
    from contextsmith.kernel.ranker import RankedSnippet
    from contextsmith.kernel.slicer import LineSource, SliceResult
    from contextsmith.kernel.tokens import TokenEstimator


@dataclass(frozen=True, slots=True)
class SelectionSettings:
    """Kernel parameters resolved from config and command-line flags."""

    budget_tokens: int
    reserve_tokens: int = 0
    context_lines: int = 0
    hunks_only: bool = False
    merge_gap: int = 0
    weights: Mapping[str, float] = field(default_factory=dict)
    must: tuple[str, ...] = ()
    drop: tuple[str, ...] = ()
    pins: tuple[SnippetKey, ...] = ()
    model_family: ModelFamily = DEFAULT_MODEL_FAMILY
    output_format: OutputFormat = OutputFormat.MARKDOWN
    languages: Mapping[str, tuple[str, ...]] = field(default_factory=dict)

    def fingerprint_payload(self) -> dict[str, Any]:
        return {
            "budget_tokens": self.budget_tokens,
            "reserve_tokens": self.reserve_tokens,
            "context_lines": self.context_lines,
            "hunks_only": self.hunks_only,
            "merge_gap": self.merge_gap,
            "weights": {name: float(value) for name, value in sorted(self.weights.items())},
            "must": sorted(self.must),
            "drop": sorted(self.drop),
            "pins": sorted(str(pin) for pin in self.pins),
            "model_family": self.model_family.value,
            "output_format": self.output_format.value,
            "languages": {
                name: list(extensions) for name, extensions in sorted(self.languages.items())
            },
        }


@dataclass(frozen=True, slots=True)
class SelectionRequest:
    candidates: tuple[Candidate, ...]
    settings: SelectionSettings
    ranking_inputs: RankingInputs = field(default_factory=RankingInputs)
    command: str = "select"
    command_arguments: Mapping[str, Any] = field(default_factory=dict)
    config_fingerprint: str | None = None
    revision: str | None = None
    selection_strategy: str = SELECTION_STRATEGY
    summary: str = ""


@dataclass(frozen=True, slots=True)
class SelectionOutcome:
    slice_result: SliceResult
    ranked: tuple[RankedSnippet, ...]
    packed: PackResult
    manifest: Manifest
    bundle: Bundle
    bundle_text: str


class SnapshotLineSource:
    """Captures every file read once so repeated runs observe identical content."""

    def __init__(self, inner: LineSource) -> None:
        self._inner = inner
        self._snapshot: dict[str, tuple[str, ...] | None] = {}

    def read_lines(self, file_path: str) -> tuple[str, ...] | None:
        if file_path not in self._snapshot:
            self._snapshot[file_path] = self._inner.read_lines(file_path)
        return self._snapshot[file_path]


def run_selection(
    request: SelectionRequest,
    line_source: LineSource,
    estimator: TokenEstimator | None = None,
    *,
    logger: Any | None = None,
) -> SelectionOutcome:
    log = logger if logger is not None else get_logger(__name__)
    settings = request.settings
    token_estimator = estimator if estimator is not None else CharRatioEstimator()

    sliced = slice_candidates(
        request.candidates,
        line_source,
        context_lines=settings.context_lines,
        hunks_only=settings.hunks_only,
        merge_gap=settings.merge_gap,
    )
    ranked = rank(sliced.snippets, settings.weights, request.ranking_inputs)
    packed = pack(
        ranked,
        settings.budget_tokens,
        estimator=token_estimator,
        must=settings.must,
        drop=settings.drop,
        pins=settings.pins,
        reserve_tokens=settings.reserve_tokens,
        model_family=settings.model_family,
        logger=log,
    )
    manifest = build_manifest(
        packed,
        config_fingerprint=(
            request.config_fingerprint
            if request.config_fingerprint is not None
            else config_fingerprint(settings.fingerprint_payload())
        ),
        command_fingerprint=command_fingerprint(request.command, request.command_arguments),
        repo_state_fingerprint=repo_state_fingerprint(
            sliced.file_digests, revision=request.revision
        ),
        candidate_count=sliced.candidate_count,
        selection_strategy=request.selection_strategy,
    )
    bundle = build_bundle(packed, summary=_bundle_summary(request, packed), settings=settings)
    bundle_text = render_bundle(bundle, settings.output_format)

    log.info(
        "context_selection_complete",
        command=request.command,
        candidate_count=sliced.candidate_count,
        snippet_count=len(sliced.snippets),
        included_count=manifest.summary.included_count,
        determinism_fingerprint=manifest.summary.determinism_fingerprint,
    )
    return SelectionOutcome(
        slice_result=sliced,
        ranked=ranked,
        packed=packed,
        manifest=manifest,
        bundle=bundle,
        bundle_text=bundle_text,
    )


def determinism_check(
    request: SelectionRequest,
    line_source: LineSource,
    estimator: TokenEstimator | None = None,
    *,
    logger: Any | None = None,
) -> SelectionOutcome:
    """Run the pipeline twice over one input snapshot; divergence raises."""

    snapshot = SnapshotLineSource(line_source)
    first = run_selection(request, snapshot, estimator, logger=logger)
    second = run_selection(request, snapshot, estimator, logger=logger)

    first_fingerprint = first.manifest.summary.determinism_fingerprint
    second_fingerprint = second.manifest.summary.determinism_fingerprint
    bundle_differs = first.bundle_text != second.bundle_text
    if first_fingerprint != second_fingerprint or bundle_differs:
        raise DeterminismViolation(
            first_fingerprint=first_fingerprint,
            second_fingerprint=second_fingerprint,
            bundle_differs=bundle_differs,
        )
    return first


def build_bundle(packed: PackResult, *, summary: str, settings: SelectionSettings) -> Bundle:
    """Included snippets in rank order, one section each."""

    sections = tuple(
        BundleSection(
            file_path=entry.snippet.file_path,
            start_line=entry.snippet.start_line,
            end_line=entry.snippet.end_line,
            language=infer_language(entry.snippet.file_path, settings.languages),
            reason=", ".join(kind.value for kind in entry.snippet.ordered_origin_kinds),
            content=entry.snippet.text,
        )
        for entry in packed.included
    )
    return Bundle(summary=summary, sections=sections)


def _bundle_summary(request: SelectionRequest, packed: PackResult) -> str:
    snippet_word = "snippet" if len(packed.entries) == 1 else "snippets"
    selection = (
        f"{packed.included_count} of {len(packed.entries)} {snippet_word}, "
        f"~{packed.total_tokens} tokens (budget: {packed.budget_tokens}, "
        f"reserve: {packed.reserve_tokens})"
    )
    if request.summary:
        return f"{request.summary}; {selection}"
    return selection


__all__ = [
    "SelectionOutcome",
    "SelectionRequest",
    "SelectionSettings",
    "SnapshotLineSource",
    "build_bundle",
    "determinism_check",
    "run_selection",
]
