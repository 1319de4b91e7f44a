"""
contextsmith — configuration schema and validation.

File: src/contextsmith/config/schema.py
Last updated: 2026-10-18

Purpose
- Own the built-in defaults for ignore globs, budgets, ranking weights, languages, cache and
  logging, and decide whether a merged config is usable.

Behavior
- Every problem is collected with its dotted path before anything is raised, so one run reports
  all of them.
- Unknown ranking signals and negative or non-finite weights are configuration errors.
- ``reserve_tokens`` must stay below ``default_budget``.
- ``dump_config`` renders the TOML that ``contextsmith init`` writes, keys in a fixed order.
"""

from __future__ import annotations

import copy
import json
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, NotRequired, TypedDict

from contextsmith.constants import CONFIG_SCHEMA_VERSION
from contextsmith.domain.models import Signal
from contextsmith.errors import ConfigError

ConfigSchemaVersion: Final[int] = CONFIG_SCHEMA_VERSION
RECENCY_SOURCES: Final[tuple[str, ...]] = ("commit", "mtime", "none")
LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR")

# Config paths that are normalized relative to the config file location.
PATH_FIELDS: Final[tuple[tuple[str, ...], ...]] = (
    ("cache", "dir"),
    ("logging", "file"),
)


class MetaConfig(TypedDict):
    schema_version: int


class LanguageConfig(TypedDict):
    extensions: list[str]


class CacheConfig(TypedDict):
    enabled: bool
    dir: NotRequired[str | None]


class RankingConfig(TypedDict):
    recency_source: str
    merge_gap: int
    context_lines: int


class LoggingSettings(TypedDict):
    level: str
    file: NotRequired[str | None]


class ContextSmithConfig(TypedDict):
    meta: MetaConfig
    ignore: list[str]
    generated: list[str]
    default_budget: int
    reserve_tokens: int
    ranking_weights: dict[str, float]
    languages: dict[str, LanguageConfig]
    cache: CacheConfig
    ranking: RankingConfig
    logging: LoggingSettings


DEFAULT_CONFIG: Final[ContextSmithConfig] = {
    "meta": {
        "schema_version": ConfigSchemaVersion,
    },
    "ignore": [
        "node_modules",
        "target",
        "DerivedData",
        ".next",
        "dist",
        "build",
        ".contextsmith",
        "*.min.js",
        "*.map",
    ],
    "generated": [
        "*.pb.rs",
        "*.pb.go",
        "*_pb2.py",
        "*.generated.*",
    ],
    "default_budget": 12000,
    "reserve_tokens": 500,
    "ranking_weights": {
        "text": 1.0,
        "diff": 2.0,
        "recency": 0.5,
        "proximity": 1.5,
        "test": 0.8,
    },
    "languages": {
        "python": {"extensions": ["py"]},
        "rust": {"extensions": ["rs"]},
        "typescript": {"extensions": ["ts", "tsx"]},
    },
    "cache": {
        "enabled": True,
        "dir": None,
    },
    "ranking": {
        "recency_source": "commit",
        "merge_gap": 0,
        "context_lines": 3,
    },
    "logging": {
        "level": "WARNING",
        "file": None,
    },
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    """Validation result with normalized config when no issues were found."""

    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ConfigError):
    """Raised when strict config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered}")


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


def default_config() -> ContextSmithConfig:
    """Return a deep copy of deterministic built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def migration_guidance(found_version: int) -> str:
    """Return deterministic migration guidance for schema version mismatch."""

    if found_version < ConfigSchemaVersion:
        return (
            f"schema version {found_version} is older than supported {ConfigSchemaVersion}; "
            "regenerate contextsmith.toml with `contextsmith init --force`"
        )
    if found_version > ConfigSchemaVersion:
        return (
            f"schema version {found_version} is newer than supported {ConfigSchemaVersion}; "
            "upgrade contextsmith"
        )
    return "schema version is current"


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deterministically deep-merge ``overlay`` onto ``base``."""

    merged = _deep_copy_mapping(base)
    _merge_into(merged, overlay)
    return merged


def validate_config(config: Mapping[str, object] | object) -> ConfigValidationResult:
    """Validate config and return structured issues with deterministic paths."""

    issues = _IssueCollector()
    root = _as_object(config, "<root>", issues)
    if root is None:
        return ConfigValidationResult(config=None, issues=issues.items())

    normalized = _validate_root(root, issues)
    if issues.has_issues:
        return ConfigValidationResult(config=None, issues=issues.items())
    return ConfigValidationResult(config=normalized, issues=issues.items())


def assert_valid_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Validate config and raise ``ConfigValidationError`` on failure."""

    result = validate_config(config)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def language_extensions(config: Mapping[str, Any]) -> dict[str, tuple[str, ...]]:
    """Flatten ``languages.<name>.extensions`` into ``{name: (ext, ...)}``."""

    languages = config.get("languages", {})
    return {
        name: tuple(languages[name].get("extensions", ()))
        for name in sorted(languages)
        if isinstance(languages[name], Mapping)
    }


def dump_config(config: Mapping[str, object]) -> str:
    """Render ``config`` as TOML with a fixed key order; ``None`` values are omitted."""

    lines: list[str] = ["# contextsmith configuration"]
    _dump_table(lines, (), config)
    return "\n".join(lines).rstrip("\n") + "\n"


def _dump_table(lines: list[str], path: tuple[str, ...], table: Mapping[str, object]) -> None:
    scalars = [key for key in table if not isinstance(table[key], Mapping)]
    tables = [key for key in table if isinstance(table[key], Mapping)]

    present = [key for key in scalars if table[key] is not None]
    if path and (present or not tables):
        lines.append("")
        lines.append("[" + ".".join(_toml_key(part) for part in path) + "]")
    for key in present:
        value = table[key]
        lines.append(f"{_toml_key(key)} = {_toml_value(value)}")
    for key in tables:
        nested = table[key]
        if isinstance(nested, Mapping):
            _dump_table(lines, (*path, key), nested)


def _toml_key(key: str) -> str:
    if key and all(char.isalnum() or char in "_-" for char in key):
        return key
    return json.dumps(key, ensure_ascii=False)


def _toml_value(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError("cannot serialize non-finite float to TOML")
        return repr(value)
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(_toml_value(item) for item in value) + "]"
    raise TypeError(f"unsupported TOML value type: {type(value).__name__}")


def _validate_root(payload: Mapping[str, object], issues: _IssueCollector) -> dict[str, Any]:
    allowed = {
        "meta",
        "ignore",
        "generated",
        "default_budget",
        "reserve_tokens",
        "ranking_weights",
        "languages",
        "cache",
        "ranking",
        "logging",
    }
    _reject_unknown_keys(payload, allowed, "", issues)
    _require_keys(payload, allowed - {"meta"}, "", issues)

    out: dict[str, Any] = {}

    meta = payload.get("meta")
    if meta is not None:
        meta_obj = _as_object(meta, "meta", issues)
        if meta_obj is not None:
            out["meta"] = _validate_meta(meta_obj, issues)

    for key in ("ignore", "generated"):
        if key in payload:
            parsed_list = _as_str_list(payload[key], key, issues)
            if parsed_list is not None:
                out[key] = parsed_list

    budget: int | None = None
    if "default_budget" in payload:
        budget = _as_int(payload["default_budget"], "default_budget", issues, minimum=1)
        if budget is not None:
            out["default_budget"] = budget

    if "reserve_tokens" in payload:
        reserve = _as_int(payload["reserve_tokens"], "reserve_tokens", issues, minimum=0)
        if reserve is not None:
            if budget is not None and reserve >= budget:
                issues.add("reserve_tokens", "must be less than default_budget")
            else:
                out["reserve_tokens"] = reserve

    if "ranking_weights" in payload:
        weights = _as_object(payload["ranking_weights"], "ranking_weights", issues)
        if weights is not None:
            out["ranking_weights"] = _validate_weights(weights, issues)

    if "languages" in payload:
        languages = _as_object(payload["languages"], "languages", issues)
        if languages is not None:
            out["languages"] = _validate_languages(languages, issues)

    if "cache" in payload:
        cache = _as_object(payload["cache"], "cache", issues)
        if cache is not None:
            out["cache"] = _validate_cache(cache, issues)

    if "ranking" in payload:
        ranking = _as_object(payload["ranking"], "ranking", issues)
        if ranking is not None:
            out["ranking"] = _validate_ranking(ranking, issues)

    if "logging" in payload:
        logging_section = _as_object(payload["logging"], "logging", issues)
        if logging_section is not None:
            out["logging"] = _validate_logging(logging_section, issues)

    return out


def _validate_meta(payload: Mapping[str, object], issues: _IssueCollector) -> dict[str, Any]:
    _reject_unknown_keys(payload, {"schema_version"}, "meta", issues)
    _require_keys(payload, {"schema_version"}, "meta", issues)

    out: dict[str, Any] = {}
    if "schema_version" in payload:
        parsed = _as_int(payload["schema_version"], "meta.schema_version", issues, minimum=1)
        if parsed is not None:
            out["schema_version"] = parsed
            if parsed != ConfigSchemaVersion:
                issues.add("meta.schema_version", migration_guidance(parsed))
    return out


def _validate_weights(payload: Mapping[str, object], issues: _IssueCollector) -> dict[str, float]:
    known = tuple(signal.value for signal in Signal)
    out: dict[str, float] = {}
    for key in sorted(payload):
        path = _join("ranking_weights", key)
        if key not in known:
            issues.add(path, f"unknown ranking signal; expected one of: {', '.join(known)}")
            continue
        parsed = _as_float(payload[key], path, issues, minimum=0.0)
        if parsed is not None:
            out[key] = parsed
    return out


def _validate_languages(
    payload: Mapping[str, object], issues: _IssueCollector
) -> dict[str, dict[str, list[str]]]:
    out: dict[str, dict[str, list[str]]] = {}
    for name in sorted(payload):
        path = _join("languages", name)
        entry = _as_object(payload[name], path, issues)
        if entry is None:
            continue
        _reject_unknown_keys(entry, {"extensions"}, path, issues)
        _require_keys(entry, {"extensions"}, path, issues)
        if "extensions" not in entry:
            continue
        extensions = _as_str_list(entry["extensions"], _join(path, "extensions"), issues)
        if extensions is not None:
            out[name] = {"extensions": [extension.lstrip(".") for extension in extensions]}
    return out


def _validate_cache(payload: Mapping[str, object], issues: _IssueCollector) -> dict[str, Any]:
    _reject_unknown_keys(payload, {"enabled", "dir"}, "cache", issues)
    _require_keys(payload, {"enabled"}, "cache", issues)

    out: dict[str, Any] = {"dir": None}
    if "enabled" in payload:
        enabled = _as_bool(payload["enabled"], "cache.enabled", issues)
        if enabled is not None:
            out["enabled"] = enabled
    if payload.get("dir") is not None:
        out["dir"] = _as_path_text(payload["dir"], "cache.dir", issues)
    return out


def _validate_ranking(payload: Mapping[str, object], issues: _IssueCollector) -> dict[str, Any]:
    allowed = {"recency_source", "merge_gap", "context_lines"}
    _reject_unknown_keys(payload, allowed, "ranking", issues)
    _require_keys(payload, allowed, "ranking", issues)

    out: dict[str, Any] = {}
    if "recency_source" in payload:
        source = _as_enum(
            payload["recency_source"],
            "ranking.recency_source",
            issues,
            allowed_values=RECENCY_SOURCES,
        )
        if source is not None:
            out["recency_source"] = source
    for key in ("merge_gap", "context_lines"):
        if key in payload:
            parsed = _as_int(payload[key], _join("ranking", key), issues, minimum=0)
            if parsed is not None:
                out[key] = parsed
    return out


def _validate_logging(payload: Mapping[str, object], issues: _IssueCollector) -> dict[str, Any]:
    _reject_unknown_keys(payload, {"level", "file"}, "logging", issues)
    _require_keys(payload, {"level"}, "logging", issues)

    out: dict[str, Any] = {"file": None}
    if "level" in payload:
        raw_level = payload["level"]
        level = _as_enum(
            raw_level.upper() if isinstance(raw_level, str) else raw_level,
            "logging.level",
            issues,
            allowed_values=LOG_LEVELS,
        )
        if level is not None:
            out["level"] = level
    if payload.get("file") is not None:
        out["file"] = _as_path_text(payload["file"], "logging.file", issues)
    return out


def _as_object(value: object, path: str, issues: _IssueCollector) -> dict[str, object] | None:
    if not isinstance(value, Mapping):
        issues.add(path, f"expected object, got {type(value).__name__}")
        return None
    out: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            issues.add(path, f"object key must be string, got {type(key).__name__}")
            continue
        out[key] = item
    return out


def _as_str(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip()
    if not parsed:
        issues.add(path, "must not be empty")
        return None
    return parsed


def _as_str_list(value: object, path: str, issues: _IssueCollector) -> list[str] | None:
    if not isinstance(value, (list, tuple)):
        issues.add(path, f"expected array of strings, got {type(value).__name__}")
        return None
    out: list[str] = []
    for index, item in enumerate(value):
        parsed = _as_str(item, f"{path}[{index}]", issues)
        if parsed is not None:
            out.append(parsed)
    return out


def _as_path_text(value: object, path: str, issues: _IssueCollector) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if "\x00" in parsed:
        issues.add(path, "must not contain NUL bytes")
        return None
    return parsed


def _as_bool(value: object, path: str, issues: _IssueCollector) -> bool | None:
    if isinstance(value, bool):
        return value
    issues.add(path, f"expected boolean, got {type(value).__name__}")
    return None


def _as_int(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: int | None = None,
) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        issues.add(path, f"expected integer, got {type(value).__name__}")
        return None
    if minimum is not None and value < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return value


def _as_float(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: float | None = None,
) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        issues.add(path, f"expected number, got {type(value).__name__}")
        return None
    parsed = float(value)
    if not math.isfinite(parsed):
        issues.add(path, "must be finite")
        return None
    if minimum is not None and parsed < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return parsed


def _as_enum(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    allowed_values: tuple[str, ...],
) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if parsed not in allowed_values:
        expected = ", ".join(sorted(allowed_values))
        issues.add(path, f"invalid value {parsed!r}; expected one of: {expected}")
        return None
    return parsed


def _reject_unknown_keys(
    payload: Mapping[str, object],
    allowed: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(payload):
        if key not in allowed:
            issues.add(_join(path, key), "unknown field")


def _require_keys(
    payload: Mapping[str, object],
    required: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(required):
        if key not in payload:
            issues.add(_join(path, key), "missing required field")


def _join(path: str, key: str) -> str:
    if not path:
        return key
    return f"{path}.{key}"


def _merge_into(target: dict[str, Any], overlay: Mapping[str, object]) -> None:
    for key in overlay:
        value = overlay[key]
        if isinstance(value, Mapping):
            existing = target.get(key)
            if isinstance(existing, dict):
                _merge_into(existing, value)
            else:
                nested_new: dict[str, Any] = {}
                _merge_into(nested_new, value)
                target[key] = nested_new
        else:
            target[key] = _deep_copy_value(value)


def _deep_copy_mapping(value: Mapping[str, object]) -> dict[str, Any]:
    return {key: _deep_copy_value(item) for key, item in value.items()}


def _deep_copy_value(value: object) -> Any:
    if isinstance(value, Mapping):
        return {key: _deep_copy_value(item) for key, item in value.items() if isinstance(key, str)}
    if isinstance(value, list):
        return [_deep_copy_value(item) for item in value]
    if isinstance(value, tuple):
        return tuple(_deep_copy_value(item) for item in value)
    return copy.deepcopy(value)


__all__ = [
    "DEFAULT_CONFIG",
    "LOG_LEVELS",
    "PATH_FIELDS",
    "RECENCY_SOURCES",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "ContextSmithConfig",
    "assert_valid_config",
    "default_config",
    "dump_config",
    "language_extensions",
    "merge_config",
    "migration_guidance",
    "validate_config",
]
