"""
contextsmith — runtime config loader.

File: src/contextsmith/config/loader.py
Last updated: 2026-10-18

Purpose
- Resolve the effective config for one command run.

Resolution
- Layers, lowest first: built-in defaults, the first config file found, ``CONTEXTSMITH_*``
  environment variables, CLI flags.
- File search: ``--config``, ``<root>/contextsmith.toml``, ``~/.contextsmith.toml``,
  ``$XDG_CONFIG_HOME/contextsmith/config.toml``. ``.yaml``/``.yml`` files go through
  ``yaml.safe_load``, everything else through ``tomllib``.
- Environment names are derived from the defaults, e.g. ``CONTEXTSMITH_RANKING_WEIGHTS_DIFF``,
  and values are coerced to the type of the default they replace.
- Relative paths in the result are anchored at the config file directory (or the root).
"""

from __future__ import annotations

import os
import tomllib
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Any, Final

import yaml

from contextsmith.config.schema import (
    PATH_FIELDS,
    assert_valid_config,
    default_config,
    merge_config,
)
from contextsmith.constants import DEFAULT_CONFIG_FILE, HOME_CONFIG_FILE, XDG_CONFIG_RELATIVE
from contextsmith.errors import ConfigError

ENV_PREFIX: Final[str] = "CONTEXTSMITH_"
YAML_SUFFIXES: Final[frozenset[str]] = frozenset({".yaml", ".yml"})

_TRUE_WORDS: Final[frozenset[str]] = frozenset({"1", "true", "t", "yes", "y", "on"})
_FALSE_WORDS: Final[frozenset[str]] = frozenset({"0", "false", "f", "no", "n", "off"})


class ConfigLoadError(ConfigError):
    """Raised when config cannot be loaded or overrides cannot be coerced."""


def load_config(
    root: str | Path | None = None,
    config_path: str | Path | None = None,
    *,
    cli_overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
    home: str | Path | None = None,
) -> dict[str, Any]:
    """Load effective config with deterministic precedence: CLI > env > file > defaults.

    ``cli_overrides`` keys are dotted config paths; ``None`` values are skipped.
    """

    project_root = Path(root if root is not None else Path.cwd()).resolve()
    env_map = os.environ if environ is None else environ

    source = find_config_file(project_root, config_path, environ=env_map, home=home)
    from_file = assert_valid_config(
        merge_config(default_config(), load_config_file(source) if source is not None else {})
    )

    layered = merge_config(from_file, _env_overrides(from_file, env_map))
    for key in sorted(cli_overrides or {}):
        value = (cli_overrides or {})[key]
        if value is not None:
            _assign(layered, tuple(part for part in key.split(".") if part), value)
    effective = assert_valid_config(layered)

    base_dir = source.parent if source is not None else project_root
    for field_path in PATH_FIELDS:
        section, name = field_path
        raw = effective[section].get(name)
        if isinstance(raw, str):
            effective[section][name] = _anchor_path(raw, base_dir)
    return effective


def find_config_file(
    root: Path,
    config_path: str | Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    home: str | Path | None = None,
) -> Path | None:
    """Return the first existing config file in search order, or ``None`` for defaults.

    An explicit ``config_path`` must exist.
    """

    if config_path is not None:
        explicit = Path(config_path).expanduser().resolve()
        if not explicit.is_file():
            raise ConfigLoadError(f"config file not found: {explicit}")
        return explicit

    return next(
        (path for path in config_search_paths(root, environ=environ, home=home) if path.is_file()),
        None,
    )


def config_search_paths(
    root: Path,
    *,
    environ: Mapping[str, str] | None = None,
    home: str | Path | None = None,
) -> tuple[Path, ...]:
    env_map = os.environ if environ is None else environ
    home_dir = Path(home) if home is not None else Path.home()
    xdg_raw = env_map.get("XDG_CONFIG_HOME", "").strip()
    xdg_dir = Path(xdg_raw) if xdg_raw else home_dir / ".config"
    return (
        root / DEFAULT_CONFIG_FILE,
        home_dir / HOME_CONFIG_FILE,
        xdg_dir.joinpath(*XDG_CONFIG_RELATIVE.parts),
    )


def load_config_file(path: str | Path) -> dict[str, Any]:
    """Parse one TOML or YAML config file into a plain mapping."""

    file_path = Path(path)
    is_yaml = file_path.suffix.lower() in YAML_SUFFIXES
    try:
        if is_yaml:
            with file_path.open("r", encoding="utf-8") as handle:
                parsed = yaml.safe_load(handle)
        else:
            with file_path.open("rb") as handle:
                parsed = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(f"invalid TOML in {file_path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigLoadError(f"invalid YAML in {file_path}: {exc}") from exc
    except OSError as exc:
        raise ConfigLoadError(f"unable to read config file {file_path}: {exc}") from exc

    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise ConfigLoadError(f"config root must be a mapping: {file_path}")
    return parsed


def env_name_for_path(path: tuple[str, ...]) -> str:
    return ENV_PREFIX + "_".join(part.upper() for part in path)


def _env_overrides(config: Mapping[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
    bindable = {path: value for path, value in _scalar_fields(config) if path[0] != "meta"}
    # Optional paths default to None; bind them as strings.
    for field_path in PATH_FIELDS:
        bindable.setdefault(field_path, "")

    overrides: dict[str, Any] = {}
    for path in sorted(bindable):
        env_name = env_name_for_path(path)
        raw = environ.get(env_name)
        if raw is not None:
            _assign(overrides, path, _coerce(raw.strip(), type(bindable[path]), env_name, path))
    return overrides


def _scalar_fields(
    payload: Mapping[str, Any], prefix: tuple[str, ...] = ()
) -> Iterator[tuple[tuple[str, ...], bool | int | float | str]]:
    for key, value in payload.items():
        if isinstance(value, Mapping):
            yield from _scalar_fields(value, (*prefix, key))
        elif isinstance(value, (bool, int, float, str)):
            yield (*prefix, key), value


def _coerce(value: str, kind: type, env_name: str, path: tuple[str, ...]) -> object:
    target = f"{env_name} -> {'.'.join(path)}"
    if kind is bool:
        lowered = value.lower()
        if lowered in _TRUE_WORDS or lowered in _FALSE_WORDS:
            return lowered in _TRUE_WORDS
        raise ConfigLoadError(f"{target} must be a boolean (true/false/1/0/yes/no/on/off)")
    if kind is int:
        try:
            return int(value)
        except ValueError as exc:
            raise ConfigLoadError(f"{target} must be an integer") from exc
    if kind is float:
        try:
            return float(value)
        except ValueError as exc:
            raise ConfigLoadError(f"{target} must be a number") from exc
    return value


def _assign(target: dict[str, Any], path: tuple[str, ...], value: object) -> None:
    if not path:
        raise ConfigLoadError("config override key must not be empty")
    cursor = target
    for part in path[:-1]:
        if not isinstance(cursor.get(part), dict):
            cursor[part] = {}
        cursor = cursor[part]
    cursor[path[-1]] = value


def _anchor_path(raw: str, base_dir: Path) -> str:
    candidate = Path(os.path.expandvars(raw)).expanduser()
    if not candidate.is_absolute():
        candidate = base_dir / candidate
    return Path(os.path.normpath(candidate)).as_posix()


__all__ = [
    "ENV_PREFIX",
    "ConfigLoadError",
    "config_search_paths",
    "env_name_for_path",
    "find_config_file",
    "load_config",
    "load_config_file",
]
