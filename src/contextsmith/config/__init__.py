"""
contextsmith — configuration package.

File: src/contextsmith/config/__init__.py
Last updated: 2026-10-18

Purpose
- Public entry points for loading, validating, and dumping contextsmith configuration.
"""

from contextsmith.config.loader import (
    ENV_PREFIX,
    ConfigLoadError,
    find_config_file,
    load_config,
    load_config_file,
)
from contextsmith.config.schema import (
    DEFAULT_CONFIG,
    ConfigValidationError,
    ConfigValidationIssue,
    assert_valid_config,
    default_config,
    dump_config,
    language_extensions,
    validate_config,
)

__all__ = [
    "DEFAULT_CONFIG",
    "ENV_PREFIX",
    "ConfigLoadError",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "assert_valid_config",
    "default_config",
    "dump_config",
    "find_config_file",
    "language_extensions",
    "load_config",
    "load_config_file",
    "validate_config",
]
