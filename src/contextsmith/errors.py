"""
contextsmith — error taxonomy

File: src/contextsmith/errors.py
Last updated: 2026-10-18

Purpose
- Define the typed failures raised by the kernel, the candidate sources, and config loading.
- Provide a pure classification of each failure into user-error / retryable flags.

Functional requirements
- Kernel errors are terminal to the current run; nothing is retried internally.
- Errors carry enough context (paths, ranges, commands) for a one-line diagnostic.

Non-functional requirements
- Standard library only; no printing from this module.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Sequence

_TRANSIENT_GIT_MARKERS: Final[tuple[str, ...]] = (
    "index.lock",
    "unable to create",
    "resource temporarily unavailable",
)


class ContextSmithError(Exception):
    """Base error for every failure raised by contextsmith."""


class ValidationError(ContextSmithError, ValueError):
    """Raised for a malformed or missing required flag, query, or argument."""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.detail = message
        super().__init__(f"invalid {field}: {message}")


class InvalidRangeError(ContextSmithError, ValueError):
    """Raised when a line range is malformed or lies outside the file's current bounds."""

    def __init__(
        self,
        file_path: str,
        start_line: int,
        end_line: int,
        message: str,
    ) -> None:
        self.file_path = file_path
        self.start_line = start_line
        self.end_line = end_line
        super().__init__(f"{file_path}:{start_line}-{end_line}: {message}")


class ConfigError(ContextSmithError, ValueError):
    """Raised for invalid configuration (unknown ranking signal, malformed weights, ...)."""


class ParseError(ContextSmithError, ValueError):
    """Raised when a bundle or manifest cannot be parsed."""

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        self.detail = message
        super().__init__(f"failed to parse {path}: {message}")


class NotFoundError(ContextSmithError, LookupError):
    """Raised when a bundle, manifest, or referenced file does not exist."""

    def __init__(self, path: str, what: str = "file") -> None:
        self.path = path
        self.what = what
        super().__init__(f"{what} not found: {path}")


class DeterminismViolation(ContextSmithError, RuntimeError):
    """Raised when two in-memory runs over identical inputs diverge."""

    def __init__(
        self,
        *,
        first_fingerprint: str,
        second_fingerprint: str,
        bundle_differs: bool,
    ) -> None:
        self.first_fingerprint = first_fingerprint
        self.second_fingerprint = second_fingerprint
        self.bundle_differs = bundle_differs
        parts: list[str] = []
        if first_fingerprint != second_fingerprint:
            parts.append(f"fingerprint {first_fingerprint} != {second_fingerprint}")
        if bundle_differs:
            parts.append("bundle text differs")
        super().__init__("determinism check failed: " + "; ".join(parts or ["unknown divergence"]))


class GitError(ContextSmithError, RuntimeError):
    """Raised when a git subprocess cannot be executed or exits non-zero."""

    def __init__(
        self,
        *,
        command: Sequence[str],
        returncode: int,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        self.command = tuple(command)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        message = f"git command failed ({returncode}): {' '.join(command)}"
        if stderr.strip():
            message = f"{message}: {stderr.strip()}"
        super().__init__(message)


@dataclass(frozen=True, slots=True)
class ErrorClass:
    """Classification flags for one failure."""

    user_error: bool
    retryable: bool


def classify_error(exc: BaseException) -> ErrorClass:
    """Map a failure onto ``user_error``/``retryable`` flags."""

    if isinstance(exc, (ValidationError, InvalidRangeError, NotFoundError, ConfigError)):
        return ErrorClass(user_error=True, retryable=False)
    if isinstance(exc, ParseError):
        return ErrorClass(user_error=True, retryable=False)
    if isinstance(exc, GitError):
        stderr = exc.stderr.lower()
        transient = any(marker in stderr for marker in _TRANSIENT_GIT_MARKERS)
        return ErrorClass(user_error=False, retryable=transient)
    if isinstance(exc, DeterminismViolation):
        return ErrorClass(user_error=False, retryable=False)
    if isinstance(exc, OSError):
        return ErrorClass(user_error=False, retryable=True)
    return ErrorClass(user_error=False, retryable=False)


__all__ = [
    "ConfigError",
    "ContextSmithError",
    "DeterminismViolation",
    "ErrorClass",
    "GitError",
    "InvalidRangeError",
    "NotFoundError",
    "ParseError",
    "ValidationError",
    "classify_error",
]
