"""Utility exports for filesystem, hashing, and language helpers."""

from contextsmith.utils.fs import atomic_write, is_within, local_path, read_source_text
from contextsmith.utils.hashing import canonical_json, fingerprint_text, sha256_text
from contextsmith.utils.languages import infer_language

__all__ = [
    "atomic_write",
    "canonical_json",
    "fingerprint_text",
    "infer_language",
    "is_within",
    "local_path",
    "read_source_text",
    "sha256_text",
]
