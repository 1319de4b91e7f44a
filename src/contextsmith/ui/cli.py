"""Command-line interface router for contextsmith."""

from __future__ import annotations

import argparse
import contextlib
import json
import sys
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final

from contextsmith import __version__
from contextsmith.config import (
    default_config,
    dump_config,
    language_extensions,
    load_config,
)
from contextsmith.config.schema import LOG_LEVELS
from contextsmith.constants import CACHE_DIR, DEFAULT_CONFIG_FILE, MANIFEST_FILENAME
from contextsmith.domain.models import OriginKind, SnippetKey
from contextsmith.errors import ValidationError
from contextsmith.kernel.manifest import (
    config_fingerprint,
    load_manifest,
    manifest_sibling_path,
    resolve_manifest_path,
    write_manifest,
)
from contextsmith.kernel.pipeline import (
    SelectionRequest,
    SelectionSettings,
    determinism_check,
    run_selection,
)
from contextsmith.kernel.ranker import RankingInputs
from contextsmith.kernel.slicer import FilesystemLineSource, MappingLineSource
from contextsmith.kernel.tokens import DEFAULT_MODEL_FAMILY, CharRatioEstimator, parse_model
from contextsmith.observability import (
    LoggingConfig,
    correlation_scope,
    get_logger,
    setup_logging,
    shutdown_logging,
)
from contextsmith.output import OutputFormat, parse_format, resolve_output_path, write_output
from contextsmith.sources import (
    DiffRequest,
    GitRepository,
    RecencySource,
    ScanOptions,
    SearchQuery,
    build_symbol_pattern,
    candidates_from_diff,
    candidates_from_files,
    candidates_from_matches,
    collect_timestamps,
    load_bundle,
    parse_recency_source,
    scan,
    search_files,
)
from contextsmith.ui.render import CLIRenderer, create_renderer
from contextsmith.ui.reports import (
    compute_stats,
    explain_payload,
    render_explain,
    render_stats,
    stats_payload,
)
from contextsmith.utils.fs import atomic_write

if TYPE_CHECKING:
    from contextsmith.domain.models import Candidate
    from contextsmith.kernel.pipeline import SelectionOutcome
    from contextsmith.kernel.slicer import LineSource

LOG_LEVEL_CHOICES: Final[tuple[str, ...]] = LOG_LEVELS
_NON_SEMANTIC_CONFIG_KEYS: Final[frozenset[str]] = frozenset({"logging", "cache"})


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = 1

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True, slots=True)
class _CommandContext:
    root: Path
    config: dict[str, Any]
    status: CLIRenderer


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for all supported CLI workflows."""

    parser = argparse.ArgumentParser(
        prog="contextsmith",
        description=(
            "contextsmith: deterministic context selection for code review and LLM prompts.\n\n"
            "Common workflows:\n"
            "  contextsmith diff --out ctx/           Bundle the working-tree changes\n"
            "  contextsmith collect --grep TODO       Bundle every line mentioning TODO\n"
            "  contextsmith pack ctx/bundle.json      Re-pack a JSON bundle to a new budget\n"
            "  contextsmith explain ctx/              Show why each snippet was chosen\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--root",
        default=".",
        help="Repository root directory (default: current working directory).",
    )
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help=f"Path to a TOML or YAML config (default: ./{DEFAULT_CONFIG_FILE} if present).",
    )
    common.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVEL_CHOICES,
        default=None,
        help="Log level for JSON logs on stderr (default: config logging.level).",
    )
    common.add_argument(
        "--log-file",
        default=None,
        help="Also append JSON logs to this file.",
    )
    common.add_argument(
        "--quiet",
        "-q",
        action="store_true",
        default=False,
        help="Suppress status output.",
    )
    common.add_argument(
        "--no-color",
        action="store_true",
        default=False,
        help="Disable colored output (also respects NO_COLOR env var).",
    )

    selection = argparse.ArgumentParser(add_help=False)
    budget_group = selection.add_mutually_exclusive_group()
    budget_group.add_argument(
        "--budget", type=int, default=None, help="Token budget (default: config)."
    )
    budget_group.add_argument(
        "--chars",
        type=int,
        default=None,
        help="Character budget, converted to tokens for --model.",
    )
    selection.add_argument(
        "--reserve", type=int, default=None, help="Tokens held back from the budget."
    )
    selection.add_argument(
        "--model", default=None, help="Model name used for token estimation (default: gpt-4)."
    )
    selection.add_argument(
        "--must",
        action="append",
        default=[],
        metavar="PATTERN",
        help="Always include snippets whose path matches (repeatable).",
    )
    selection.add_argument(
        "--drop",
        action="append",
        default=[],
        metavar="PATTERN",
        help="Exclude snippets whose path matches (repeatable).",
    )
    selection.add_argument(
        "--format",
        dest="output_format",
        choices=[fmt.value for fmt in OutputFormat],
        default=OutputFormat.MARKDOWN.value,
        help="Bundle format (default: markdown).",
    )
    selection.add_argument(
        "--out",
        default=None,
        help="Write the bundle to this file or directory; the manifest goes next to it.",
    )
    selection.add_argument(
        "--recency",
        choices=[source.value for source in RecencySource],
        default=None,
        help="Timestamp source for the recency signal (default: config).",
    )
    selection.add_argument(
        "--determinism-check",
        action="store_true",
        default=False,
        help="Run the selection twice and fail when the results differ.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # init ----------------------------------------------------------------
    init_parser = subparsers.add_parser(
        "init",
        parents=[common],
        help="Write a default contextsmith.toml and create the cache directory.",
    )
    init_parser.add_argument(
        "--force", action="store_true", default=False, help="Overwrite an existing config."
    )
    init_parser.add_argument(
        "--no-cache", action="store_true", default=False, help="Do not create the cache."
    )
    init_parser.set_defaults(handler=_cmd_init)

    # diff ----------------------------------------------------------------
    diff_parser = subparsers.add_parser(
        "diff",
        parents=[common, selection],
        help="Select context from git changes.",
    )
    diff_parser.add_argument(
        "rev_range", nargs="?", default=None, help="Revision range, e.g. HEAD~3..HEAD."
    )
    diff_parser.add_argument(
        "--staged", action="store_true", default=False, help="Diff the index."
    )
    diff_parser.add_argument(
        "--untracked",
        action="store_true",
        default=False,
        help="Include untracked files as added.",
    )
    diff_parser.add_argument(
        "--since", default=None, help="Diff against the last commit before this date."
    )
    diff_parser.add_argument(
        "--hunks-only",
        action="store_true",
        default=False,
        help="Do not pad hunks with context lines.",
    )
    diff_parser.add_argument(
        "--context", type=int, default=None, help="Context lines around each hunk."
    )
    diff_parser.set_defaults(handler=_cmd_diff)

    # collect -------------------------------------------------------------
    collect_parser = subparsers.add_parser(
        "collect",
        parents=[common, selection],
        help="Select context by search or explicit files.",
    )
    mode = collect_parser.add_mutually_exclusive_group(required=True)
    mode.add_argument("--grep", default=None, metavar="PATTERN", help="Search file contents.")
    mode.add_argument("--symbol", default=None, metavar="NAME", help="Find definitions.")
    mode.add_argument(
        "--files", nargs="+", default=None, metavar="PATH", help="PATH or PATH:START-END."
    )
    collect_parser.add_argument(
        "--regex", action="store_true", default=False, help="Treat --grep as a regex."
    )
    collect_parser.add_argument(
        "--ignore-case", action="store_true", default=False, help="Case-insensitive --grep."
    )
    collect_parser.add_argument("--lang", default=None, help="Only search this language.")
    collect_parser.add_argument("--path", default=None, help="Only search below this path/glob.")
    collect_parser.add_argument(
        "--exclude",
        action="append",
        default=[],
        metavar="GLOB",
        help="Exclude matching paths (repeatable).",
    )
    collect_parser.add_argument(
        "--max-files", type=int, default=None, help="Keep at most N matching files."
    )
    collect_parser.add_argument(
        "--context", type=int, default=None, help="Context lines around each match."
    )
    collect_parser.set_defaults(handler=_cmd_collect)

    # pack ----------------------------------------------------------------
    pack_parser = subparsers.add_parser(
        "pack",
        parents=[common, selection],
        help="Re-pack a JSON bundle under a new budget.",
    )
    pack_parser.add_argument("bundle", help="JSON bundle written by --format json.")
    pack_parser.add_argument(
        "--pin",
        action="append",
        default=[],
        metavar="PATH:START-END",
        help="Force this snippet in before everything else (repeatable).",
    )
    pack_parser.set_defaults(handler=_cmd_pack)

    # explain -------------------------------------------------------------
    explain_parser = subparsers.add_parser(
        "explain",
        parents=[common],
        help="Show every selection decision recorded in a manifest.",
    )
    explain_parser.add_argument("manifest", help="Manifest, bundle, or output directory.")
    explain_parser.add_argument("--top", type=int, default=None, help="Show the first N.")
    explain_parser.add_argument("--json", action="store_true", default=False, help="Emit JSON.")
    explain_parser.set_defaults(handler=_cmd_explain)

    # stats ---------------------------------------------------------------
    stats_parser = subparsers.add_parser(
        "stats",
        parents=[common],
        help="Summarize token usage recorded in a manifest.",
    )
    stats_parser.add_argument("manifest", help="Manifest, bundle, or output directory.")
    stats_parser.add_argument("--top", type=int, default=None, help="Show the top N files.")
    stats_parser.add_argument("--json", action="store_true", default=False, help="Emit JSON.")
    stats_parser.set_defaults(handler=_cmd_stats)

    return parser


# ---------------------------------------------------------------------------
# Entrypoints
# ---------------------------------------------------------------------------


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return 2

    try:
        with correlation_scope(command=namespace.command, run_id=uuid.uuid4().hex):
            result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    finally:
        shutdown_logging()
    return int(result)


def main(argv: Sequence[str] | None = None) -> int:
    """Compatibility wrapper for main-module wiring."""

    return run_cli(argv)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_init(args: argparse.Namespace) -> int:
    root = _repo_root(args)
    renderer = _get_renderer(args)
    config_path = root / DEFAULT_CONFIG_FILE
    if config_path.exists() and not _flag(args, "force"):
        raise CLIError(f"{config_path} already exists (use --force to overwrite)", exit_code=1)

    config = default_config()
    if _flag(args, "no_cache"):
        config["cache"]["enabled"] = False
    atomic_write(config_path, dump_config(config), create_parents=True)
    renderer.ok(f"wrote {config_path}")

    if not _flag(args, "no_cache"):
        cache_dir = root / Path(*CACHE_DIR.parts)
        cache_dir.mkdir(parents=True, exist_ok=True)
        renderer.ok(f"created {cache_dir}")
    return 0


def _cmd_diff(args: argparse.Namespace) -> int:
    context = _command_context(args)
    repository = GitRepository(context.root)
    request = DiffRequest(
        rev_range=_optional_str(getattr(args, "rev_range", None)),
        staged=_flag(args, "staged"),
        untracked=_flag(args, "untracked"),
        since=_optional_str(getattr(args, "since", None)),
    )
    diff_files = repository.diff_files(request)
    derived = candidates_from_diff(diff_files)
    if not derived.candidates:
        context.status.text("No changes found.")
        return 0

    summary = (
        f"{_plural(derived.file_count, 'file')} changed, {_plural(derived.hunk_count, 'hunk')}"
    )
    return _select_and_emit(
        args,
        context,
        candidates=derived.candidates,
        line_source=FilesystemLineSource(context.root, detached_paths=derived.detached_paths),
        ranking_inputs_query=None,
        command="diff",
        command_arguments={
            "rev_range": request.rev_range,
            "staged": request.staged,
            "untracked": request.untracked,
            "since": request.since,
        },
        summary=summary,
        revision=repository.head_revision(),
        hunks_only=_flag(args, "hunks_only"),
    )


def _cmd_collect(args: argparse.Namespace) -> int:
    context = _command_context(args)
    grep = _optional_str(getattr(args, "grep", None))
    symbol = _optional_str(getattr(args, "symbol", None))
    files = _string_sequence(getattr(args, "files", None))

    query: RankingInputs | None = None
    if files:
        candidates = candidates_from_files(context.root, files)
        summary = f"{_plural(len(files), 'explicit file')}"
        command_arguments: dict[str, object] = {"files": list(files)}
    else:
        scanned = scan(context.root, _scan_options(args, context.config))
        max_files = _optional_positive_int(getattr(args, "max_files", None), "max-files")
        if grep is not None:
            pattern = SearchQuery(
                pattern=grep,
                regex=_flag(args, "regex"),
                ignore_case=_flag(args, "ignore_case"),
            ).compile()
            result = search_files(context.root, scanned, pattern, max_files=max_files)
            candidates = candidates_from_matches(result.matches, OriginKind.GREP_MATCH)
            query = RankingInputs(query_pattern=pattern)
            summary = f"grep {grep!r}: {_plural(len(result.matches), 'match', 'matches')}"
            command_arguments = {
                "grep": grep,
                "regex": _flag(args, "regex"),
                "ignore_case": _flag(args, "ignore_case"),
            }
        elif symbol is not None:
            pattern = build_symbol_pattern(symbol)
            result = search_files(context.root, scanned, pattern, max_files=max_files)
            candidates = candidates_from_matches(result.matches, OriginKind.SYMBOL_DEFINITION)
            query = RankingInputs(query_terms=(symbol.strip(),))
            summary = f"symbol {symbol!r}: {_plural(len(result.matches), 'definition')}"
            command_arguments = {"symbol": symbol}
        else:
            raise ValidationError("collect", "one of --grep, --symbol, or --files is required")

        summary = f"{summary} in {_plural(result.files_matched, 'file')}"
        if result.truncated:
            context.status.warning(f"--max-files {max_files} reached; results truncated")
        command_arguments.update(
            {
                "lang": _optional_str(getattr(args, "lang", None)),
                "path": _optional_str(getattr(args, "path", None)),
                "exclude": sorted(_string_sequence(getattr(args, "exclude", None))),
                "max_files": max_files,
            }
        )

    if not candidates:
        context.status.text("No matches found.")
        return 0

    repository = GitRepository(context.root)
    revision = repository.head_revision() if repository.is_repository() else None
    return _select_and_emit(
        args,
        context,
        candidates=candidates,
        line_source=FilesystemLineSource(context.root),
        ranking_inputs_query=query,
        command="collect",
        command_arguments=command_arguments,
        summary=summary,
        revision=revision,
        hunks_only=False,
    )


def _cmd_pack(args: argparse.Namespace) -> int:
    context = _command_context(args)
    bundle_arg = _require_str(getattr(args, "bundle", None), "bundle")
    loaded = load_bundle(Path(bundle_arg).expanduser())
    pins = tuple(SnippetKey.parse(raw) for raw in _string_sequence(getattr(args, "pin", None)))
    if not loaded.candidates:
        context.status.text("Bundle has no sections.")
        return 0

    return _select_and_emit(
        args,
        context,
        candidates=loaded.candidates,
        line_source=MappingLineSource({path: None for path in loaded.file_paths}),
        ranking_inputs_query=None,
        command="pack",
        command_arguments={"pins": sorted(str(pin) for pin in pins)},
        summary=f"repacked {_plural(loaded.section_count, 'section')}",
        revision=None,
        hunks_only=True,
        pins=pins,
    )


def _cmd_explain(args: argparse.Namespace) -> int:
    _command_context(args)
    manifest_arg = _require_str(getattr(args, "manifest", None), "manifest")
    source = resolve_manifest_path(Path(manifest_arg).expanduser())
    manifest = load_manifest(source)
    top = _optional_positive_int(getattr(args, "top", None), "top")

    if _flag(args, "json"):
        _emit_json(explain_payload(manifest, source=source.as_posix(), top=top))
        return 0

    renderer = create_renderer(no_color=_flag(args, "no_color"))
    render_explain(renderer, manifest, source=source.as_posix(), top=top)
    return 0


def _cmd_stats(args: argparse.Namespace) -> int:
    context = _command_context(args)
    manifest_arg = _require_str(getattr(args, "manifest", None), "manifest")
    source = resolve_manifest_path(Path(manifest_arg).expanduser())
    manifest = load_manifest(source)
    top = _optional_positive_int(getattr(args, "top", None), "top")
    stats = compute_stats(manifest, top=top, languages=language_extensions(context.config))

    if _flag(args, "json"):
        _emit_json(stats_payload(stats, source=source.as_posix()))
        return 0

    renderer = create_renderer(no_color=_flag(args, "no_color"))
    render_stats(renderer, stats, source=source.as_posix())
    return 0


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------


def _select_and_emit(
    args: argparse.Namespace,
    context: _CommandContext,
    *,
    candidates: Sequence[Candidate],
    line_source: LineSource,
    ranking_inputs_query: RankingInputs | None,
    command: str,
    command_arguments: Mapping[str, object],
    summary: str,
    revision: str | None,
    hunks_only: bool,
    pins: tuple[SnippetKey, ...] = (),
) -> int:
    settings = _selection_settings(args, context.config, hunks_only=hunks_only, pins=pins)
    recency = parse_recency_source(
        _optional_str(getattr(args, "recency", None))
        or str(context.config["ranking"]["recency_source"])
    )
    timestamps = collect_timestamps(
        context.root, {candidate.file_path for candidate in candidates}, recency
    )
    base_inputs = ranking_inputs_query if ranking_inputs_query is not None else RankingInputs()
    ranking_inputs = RankingInputs(
        query_terms=base_inputs.query_terms,
        query_pattern=base_inputs.query_pattern,
        timestamps=timestamps,
    )

    request = SelectionRequest(
        candidates=tuple(candidates),
        settings=settings,
        ranking_inputs=ranking_inputs,
        command=command,
        command_arguments={
            **command_arguments,
            "recency": recency.value,
            "chars": getattr(args, "chars", None),
        },
        config_fingerprint=config_fingerprint(
            {
                "config": {
                    key: value
                    for key, value in context.config.items()
                    if key not in _NON_SEMANTIC_CONFIG_KEYS
                },
                "settings": settings.fingerprint_payload(),
            }
        ),
        revision=revision,
        summary=summary,
    )

    estimator = CharRatioEstimator()
    logger = get_logger(__name__)
    outcome: SelectionOutcome
    if _flag(args, "determinism_check"):
        outcome = determinism_check(request, line_source, estimator, logger=logger)
    else:
        outcome = run_selection(request, line_source, estimator, logger=logger)

    _emit_outcome(args, context, outcome, settings.output_format)
    return 0


def _emit_outcome(
    args: argparse.Namespace,
    context: _CommandContext,
    outcome: SelectionOutcome,
    output_format: OutputFormat,
) -> None:
    out_arg = _optional_str(getattr(args, "out", None))
    summary = outcome.manifest.summary
    status = context.status

    if out_arg is None:
        write_output(outcome.bundle_text)
    else:
        out_target = Path(out_arg).expanduser()
        directory_target = out_target.is_dir() or out_arg.endswith(("/", "\\"))
        bundle_path = resolve_output_path(out_arg, output_format)
        manifest_path = (
            out_target / MANIFEST_FILENAME
            if directory_target
            else manifest_sibling_path(bundle_path)
        )
        # Manifest first: a bundle on disk always has its manifest next to it.
        write_manifest(outcome.manifest, manifest_path)
        try:
            write_output(outcome.bundle_text, bundle_path)
        except OSError:
            with contextlib.suppress(OSError):
                manifest_path.unlink(missing_ok=True)
            raise
        status.ok(f"bundle written to {bundle_path}")
        status.ok(f"manifest written to {manifest_path}")

    if _flag(args, "determinism_check"):
        status.ok(f"determinism check passed ({summary.determinism_fingerprint})")
    status.text(
        f"{args.command}: {summary.included_count} of {len(outcome.manifest.entries)} snippets, "
        f"~{summary.total_tokens} tokens (budget: {summary.budget}, "
        f"reserve: {summary.reserve_tokens})"
    )


def _selection_settings(
    args: argparse.Namespace,
    config: Mapping[str, Any],
    *,
    hunks_only: bool,
    pins: tuple[SnippetKey, ...],
) -> SelectionSettings:
    budget = getattr(args, "budget", None)
    chars = getattr(args, "chars", None)
    reserve = getattr(args, "reserve", None)
    context_lines = getattr(args, "context", None)
    model_name = _optional_str(getattr(args, "model", None))
    model_family = parse_model(model_name) if model_name else DEFAULT_MODEL_FAMILY

    if chars is not None:
        if chars < 0:
            raise ValidationError("chars", "must be >= 0")
        budget_tokens = CharRatioEstimator().budget_for_chars(chars, model_family)
    elif budget is not None:
        if budget < 0:
            raise ValidationError("budget", "must be >= 0")
        budget_tokens = budget
    else:
        budget_tokens = int(config["default_budget"])
    reserve_tokens = int(config["reserve_tokens"]) if reserve is None else reserve
    if reserve_tokens < 0:
        raise ValidationError("reserve", "must be >= 0")
    resolved_context = (
        int(config["ranking"]["context_lines"]) if context_lines is None else context_lines
    )
    if resolved_context < 0:
        raise ValidationError("context", "must be >= 0")

    return SelectionSettings(
        budget_tokens=budget_tokens,
        reserve_tokens=reserve_tokens,
        context_lines=resolved_context,
        hunks_only=hunks_only,
        merge_gap=int(config["ranking"]["merge_gap"]),
        weights=dict(config["ranking_weights"]),
        must=tuple(_string_sequence(getattr(args, "must", None))),
        drop=tuple(_string_sequence(getattr(args, "drop", None))),
        pins=pins,
        model_family=model_family,
        output_format=parse_format(getattr(args, "output_format", OutputFormat.MARKDOWN.value)),
        languages=language_extensions(config),
    )


def _scan_options(args: argparse.Namespace, config: Mapping[str, Any]) -> ScanOptions:
    return ScanOptions(
        ignore=tuple(config["ignore"]),
        generated=tuple(config["generated"]),
        exclude=tuple(_string_sequence(getattr(args, "exclude", None))),
        languages=language_extensions(config),
        lang=_optional_str(getattr(args, "lang", None)),
        path_glob=_optional_str(getattr(args, "path", None)),
    )


# ---------------------------------------------------------------------------
# Rendering helpers
# ---------------------------------------------------------------------------


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False))


def _get_renderer(args: argparse.Namespace) -> CLIRenderer:
    """Status renderer; writes to stderr so stdout stays reserved for bundle text."""

    return create_renderer(
        no_color=_flag(args, "no_color"),
        quiet=_flag(args, "quiet"),
        stream=sys.stderr,
    )


def _plural(count: int, singular: str, plural: str | None = None) -> str:
    word = singular if count == 1 else (plural or f"{singular}s")
    return f"{count} {word}"


# ---------------------------------------------------------------------------
# Helpers: config, paths, resolution
# ---------------------------------------------------------------------------


def _command_context(args: argparse.Namespace) -> _CommandContext:
    root = _repo_root(args)
    config = _load_effective_config(args, root)
    logging_config = config["logging"]
    setup_logging(
        LoggingConfig(
            level=str(logging_config["level"]),
            log_file=logging_config.get("file"),
        )
    )
    return _CommandContext(root=root, config=config, status=_get_renderer(args))


def _repo_root(args: argparse.Namespace) -> Path:
    raw = _require_str(getattr(args, "root", None), "root")
    candidate = Path(raw).expanduser().resolve()
    if not candidate.exists() or not candidate.is_dir():
        raise CLIError(f"root is not a directory: {candidate}", exit_code=1)
    return candidate


def _load_effective_config(args: argparse.Namespace, root: Path) -> dict[str, Any]:
    return load_config(
        root,
        _optional_str(getattr(args, "config_path", None)),
        cli_overrides={
            "logging.level": _optional_str(getattr(args, "log_level", None)),
            "logging.file": _optional_str(getattr(args, "log_file", None)),
        },
    )


def _require_str(value: object, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise CLIError(f"missing required argument: {name}", exit_code=1)
    return value.strip()


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def _optional_positive_int(value: object, name: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError(name, "must be a positive integer")
    return value


def _flag(args: argparse.Namespace, name: str) -> bool:
    return bool(getattr(args, name, False))


def _string_sequence(value: object) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,) if value.strip() else ()
    if isinstance(value, Sequence):
        return tuple(item for item in value if isinstance(item, str) and item.strip())
    return ()


__all__ = ["CLIError", "build_parser", "main", "run_cli"]
