"""
contextsmith — hashing utilities

File: src/contextsmith/utils/hashing.py
Last updated: 2026-10-18

Purpose
- Produce the content digests and ``sha256:<hex>`` fingerprints recorded in manifests.

Functional requirements
- Canonical JSON uses sorted keys and compact separators, and rejects NaN/Infinity, so equal
  payloads always fingerprint equally.
"""

from __future__ import annotations

import hashlib
import json
from typing import Final

FINGERPRINT_PREFIX: Final[str] = "sha256:"

__all__ = [
    "FINGERPRINT_PREFIX",
    "canonical_json",
    "fingerprint_text",
    "sha256_bytes",
    "sha256_text",
]


def sha256_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def sha256_text(text: str) -> str:
    """Hex digest of ``text`` encoded as UTF-8."""

    return sha256_bytes(text.encode("utf-8"))


def canonical_json(payload: object) -> str:
    return json.dumps(
        payload,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )


def fingerprint_text(text: str) -> str:
    """Return ``sha256:<hex>`` for ``text``."""

    return FINGERPRINT_PREFIX + sha256_text(text)
