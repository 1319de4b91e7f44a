"""
contextsmith — selection kernel

File: src/contextsmith/kernel/__init__.py
Last updated: 2026-10-18

Purpose
- Slicer, Ranker, Packer and Manifest/determinism engine: a pure, synchronous transformation
  from (candidates, configuration, budget) to (bundle, manifest).
"""

from contextsmith.kernel.manifest import (
    Manifest,
    ManifestEntry,
    ManifestSummary,
    build_manifest,
    load_manifest,
    manifest_sibling_path,
    write_manifest,
)
from contextsmith.kernel.packer import PackedSnippet, PackResult, pack
from contextsmith.kernel.pipeline import (
    SelectionOutcome,
    SelectionRequest,
    SelectionSettings,
    determinism_check,
    run_selection,
)
from contextsmith.kernel.ranker import RankingInputs, rank
from contextsmith.kernel.slicer import (
    FilesystemLineSource,
    LineSource,
    MappingLineSource,
    SliceResult,
    slice_candidates,
)
from contextsmith.kernel.tokens import CharRatioEstimator, ModelFamily, TokenEstimator, parse_model

__all__ = [
    "CharRatioEstimator",
    "FilesystemLineSource",
    "LineSource",
    "Manifest",
    "ManifestEntry",
    "ManifestSummary",
    "MappingLineSource",
    "ModelFamily",
    "PackResult",
    "PackedSnippet",
    "RankingInputs",
    "SelectionOutcome",
    "SelectionRequest",
    "SelectionSettings",
    "SliceResult",
    "TokenEstimator",
    "build_manifest",
    "determinism_check",
    "load_manifest",
    "manifest_sibling_path",
    "pack",
    "parse_model",
    "rank",
    "run_selection",
    "slice_candidates",
    "write_manifest",
]
