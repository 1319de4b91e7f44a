"""Stable constants shared across the kernel, sources, and command layer."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Final

# Schema versions for persisted contracts.
CONFIG_SCHEMA_VERSION: Final[int] = 1
MANIFEST_SCHEMA_VERSION: Final[str] = "2"
LEGACY_MANIFEST_SCHEMA_VERSION: Final[str] = "1"
SUPPORTED_MANIFEST_SCHEMA_VERSIONS: Final[tuple[str, ...]] = (
    LEGACY_MANIFEST_SCHEMA_VERSION,
    MANIFEST_SCHEMA_VERSION,
)

# Selection strategy recorded in every manifest this version writes.
SELECTION_STRATEGY: Final[str] = "greedy-rank-order/v1"
LEGACY_SELECTION_STRATEGY: Final[str] = "legacy"

# Default file names.
DEFAULT_CONFIG_FILE: Final[str] = "contextsmith.toml"
HOME_CONFIG_FILE: Final[str] = ".contextsmith.toml"
XDG_CONFIG_RELATIVE: Final[PurePosixPath] = PurePosixPath("contextsmith/config.toml")
STATE_DIR: Final[PurePosixPath] = PurePosixPath(".contextsmith")
CACHE_DIR: Final[PurePosixPath] = STATE_DIR / "cache"
MANIFEST_FILENAME: Final[str] = "manifest.json"
MANIFEST_SUFFIX: Final[str] = ".manifest.json"

# Fixed numeric formatting for canonical serialization.
CANONICAL_FLOAT_DECIMALS: Final[int] = 6
SCORE_QUANTUM_DECIMALS: Final[int] = 9

__all__ = [
    "CACHE_DIR",
    "CANONICAL_FLOAT_DECIMALS",
    "CONFIG_SCHEMA_VERSION",
    "DEFAULT_CONFIG_FILE",
    "HOME_CONFIG_FILE",
    "LEGACY_MANIFEST_SCHEMA_VERSION",
    "LEGACY_SELECTION_STRATEGY",
    "MANIFEST_FILENAME",
    "MANIFEST_SCHEMA_VERSION",
    "MANIFEST_SUFFIX",
    "SCORE_QUANTUM_DECIMALS",
    "SELECTION_STRATEGY",
    "STATE_DIR",
    "SUPPORTED_MANIFEST_SCHEMA_VERSIONS",
    "XDG_CONFIG_RELATIVE",
]
