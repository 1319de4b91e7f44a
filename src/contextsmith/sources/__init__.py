"""Candidate sources: git diffs, searches, explicit files, and re-ingested bundles."""

from contextsmith.sources.bundle import LoadedBundle, load_bundle, parse_bundle
from contextsmith.sources.diff import (
    DiffCandidates,
    DiffFile,
    DiffHunk,
    DiffLine,
    FileStatus,
    LineKind,
    candidates_from_diff,
    parse_unified_diff,
)
from contextsmith.sources.files import FileReference, candidates_from_files, parse_file_reference
from contextsmith.sources.git import DiffRequest, GitRepository
from contextsmith.sources.recency import RecencySource, collect_timestamps, parse_recency_source
from contextsmith.sources.scanner import ScannedFile, ScanOptions, scan
from contextsmith.sources.search import (
    SearchQuery,
    SearchResult,
    TextMatch,
    build_symbol_pattern,
    candidates_from_matches,
    search_files,
)

__all__ = [
    "DiffCandidates",
    "DiffFile",
    "DiffHunk",
    "DiffLine",
    "DiffRequest",
    "FileReference",
    "FileStatus",
    "GitRepository",
    "LineKind",
    "LoadedBundle",
    "RecencySource",
    "ScanOptions",
    "ScannedFile",
    "SearchQuery",
    "SearchResult",
    "TextMatch",
    "build_symbol_pattern",
    "candidates_from_diff",
    "candidates_from_files",
    "candidates_from_matches",
    "collect_timestamps",
    "load_bundle",
    "parse_bundle",
    "parse_file_reference",
    "parse_recency_source",
    "parse_unified_diff",
    "scan",
    "search_files",
]
