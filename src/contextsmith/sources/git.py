"""Deterministic git subprocess helpers for diff, file listing, and recency lookups."""

from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Final

from contextsmith.errors import GitError, ValidationError
from contextsmith.sources.diff import (
    DiffFile,
    DiffHunk,
    DiffLine,
    FileStatus,
    LineKind,
    parse_unified_diff,
)
from contextsmith.utils.fs import is_within, local_path, read_source_text

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

_MISSING_GIT_RETURNCODE: Final[int] = 127
_TIMESTAMP_MARKER: Final[str] = "@"


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Normalized subprocess result for one git invocation."""

    command: tuple[str, ...]
    cwd: str
    returncode: int
    stdout: str
    stderr: str


@dataclass(frozen=True, slots=True)
class DiffRequest:
    """Which diff to produce: working tree, index, a revision range, or changes since a date."""

    rev_range: str | None = None
    staged: bool = False
    untracked: bool = False
    since: str | None = None


class GitRepository:
    """Thin wrapper around the git CLI rooted at one work tree."""

    def __init__(
        self,
        root: Path | str,
        *,
        env_overrides: Mapping[str, str] | None = None,
    ) -> None:
        self.root = Path(root).resolve()
        self._env_overrides = dict(env_overrides or {})

    def is_repository(self) -> bool:
        try:
            result = self._run_git(["rev-parse", "--is-inside-work-tree"], check=False)
        except GitError:
            return False
        return result.returncode == 0 and result.stdout.strip() == "true"

    def ensure_repository(self) -> None:
        self._run_git(["rev-parse", "--git-dir"])

    def head_revision(self) -> str | None:
        """Return the ``HEAD`` commit id, or ``None`` for a repository without commits."""

        result = self._run_git(["rev-parse", "--verify", "--quiet", "HEAD"], check=False)
        if result.returncode != 0:
            return None
        revision = result.stdout.strip()
        return revision or None

    def diff_text(self, request: DiffRequest) -> str:
        args = ["-c", "core.quotepath=false", "diff", "--no-color", "--no-ext-diff", "-u"]
        if request.staged:
            args.append("--cached")
        if request.rev_range:
            args.append(request.rev_range)
        elif request.since:
            args.append(self.resolve_since(request.since))
        return self._run_git(args).stdout

    def resolve_since(self, since: str) -> str:
        """Resolve a ``--since`` value to ``<base>..HEAD``."""

        value = since.strip()
        if not value:
            raise ValidationError("since", "value must not be empty")
        base = self._run_git(["rev-list", "-1", f"--before={value}", "HEAD"]).stdout.strip()
        if not base:
            raise ValidationError("since", f"no commits found before {value!r}")
        return f"{base}..HEAD"

    def diff_files(self, request: DiffRequest) -> tuple[DiffFile, ...]:
        """Return parsed diff files, with untracked files appended as whole-file additions."""

        self.ensure_repository()
        files = list(parse_unified_diff(self.diff_text(request)))
        if request.untracked:
            files.extend(self.untracked_diff_files())
        return tuple(files)

    def untracked_files(self) -> tuple[str, ...]:
        output = self._run_git(["ls-files", "--others", "--exclude-standard", "-z"]).stdout
        return tuple(sorted(path for path in output.split("\0") if path))

    def untracked_diff_files(self) -> tuple[DiffFile, ...]:
        files: list[DiffFile] = []
        for relative in self.untracked_files():
            path = local_path(self.root, relative)
            if not path.is_file() or not is_within(path, self.root):
                continue
            content = read_source_text(path)
            lines = content.splitlines()
            if not lines:
                continue
            diff_lines = tuple(
                DiffLine(LineKind.ADDED, text, None, index)
                for index, text in enumerate(lines, start=1)
            )
            hunk = DiffHunk(
                old_start=0,
                old_count=0,
                new_start=1,
                new_count=len(lines),
                header=f"@@ -0,0 +1,{len(lines)} @@",
                lines=diff_lines,
            )
            files.append(DiffFile(path=relative, status=FileStatus.ADDED, hunks=(hunk,)))
        return tuple(files)

    def list_files(self) -> tuple[str, ...]:
        """Tracked plus untracked, non-ignored files in the work tree."""

        output = self._run_git(
            ["ls-files", "--cached", "--others", "--exclude-standard", "-z"]
        ).stdout
        return tuple(sorted({path for path in output.split("\0") if path}))

    def commit_timestamps(self, paths: Iterable[str]) -> dict[str, int]:
        """Return the last commit time (epoch seconds) for each path that has history."""

        wanted = sorted(set(paths))
        if not wanted or self.head_revision() is None:
            return {}

        args = [
            "-c",
            "core.quotepath=false",
            "log",
            f"--format={_TIMESTAMP_MARKER}%ct",
            "--name-only",
            "--no-renames",
            "--",
            *wanted,
        ]
        output = self._run_git(args).stdout

        remaining = set(wanted)
        timestamps: dict[str, int] = {}
        current: int | None = None
        for line in output.splitlines():
            if not line:
                continue
            if line.startswith(_TIMESTAMP_MARKER):
                current = int(line[len(_TIMESTAMP_MARKER) :])
                continue
            if current is not None and line in remaining:
                timestamps[line] = current
                remaining.discard(line)
                if not remaining:
                    break
        return timestamps

    def _run_git(
        self,
        args: Sequence[str],
        *,
        check: bool = True,
    ) -> CommandResult:
        command = ("git", *args)
        env = os.environ.copy()
        env["GIT_TERMINAL_PROMPT"] = "0"
        env.setdefault("GIT_CONFIG_NOSYSTEM", "1")
        env.update(self._env_overrides)

        try:
            completed = subprocess.run(
                command,
                cwd=self.root,
                env=env,
                text=True,
                encoding="utf-8",
                errors="replace",
                capture_output=True,
                check=False,
            )
        except FileNotFoundError as exc:
            raise GitError(
                command=command,
                returncode=_MISSING_GIT_RETURNCODE,
                stderr=f"git executable not found: {exc}",
            ) from exc

        result = CommandResult(
            command=command,
            cwd=self.root.as_posix(),
            returncode=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
        )

        if check and result.returncode != 0:
            raise GitError(
                command=result.command,
                returncode=result.returncode,
                stdout=result.stdout,
                stderr=result.stderr,
            )

        return result


__all__ = ["CommandResult", "DiffRequest", "GitRepository"]
