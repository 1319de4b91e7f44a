"""
contextsmith — deterministic context-selection compiler

File: src/contextsmith/__init__.py
Last updated: 2026-10-18

Purpose
- Package root. Selects, scores, and budgets code snippets from a repository's changed or
  queried content and records every inclusion/exclusion decision in a manifest.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).

Key interfaces / contracts
- ``contextsmith.kernel`` holds the selection pipeline; everything else feeds it or renders it.
"""

from __future__ import annotations

__version__ = "0.3.0"

__all__ = ["__version__"]
