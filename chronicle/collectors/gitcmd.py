"""Thin wrapper around the git binary."""

from __future__ import annotations

import subprocess
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from loguru import logger

from chronicle.errors import GitCommandError, SourceError

_RECORD_SEP = "\x1e"
_FIELD_SEP = "\x1f"
_LOG_FORMAT = f"{_RECORD_SEP}%H{_FIELD_SEP}%an{_FIELD_SEP}%at{_FIELD_SEP}%s"
DEFAULT_TIMEOUT = 60.0
# Extra time a git command may run past the run deadline before it is killed.
_DEADLINE_GRACE = 1.0


@dataclass(frozen=True, slots=True)
class CommitInfo:
    commit_id: str
    author: str
    timestamp: datetime
    subject: str
    files: tuple[str, ...]


class GitRepository:
    """Runs read-only git commands inside one working tree."""

    def __init__(
        self,
        path: Path,
        *,
        git_binary: str = "git",
        timeout: float | None = DEFAULT_TIMEOUT,
        deadline: float | None = None,
    ) -> None:
        self.path = Path(path)
        self.git_binary = git_binary
        self.timeout = timeout
        self.deadline = deadline

    def _command_timeout(self, args: tuple[str, ...]) -> float | None:
        """Per-command timeout, shortened so no command outlives ``deadline`` (a ``time.monotonic`` value)."""

        if self.deadline is None:
            return self.timeout
        remaining = self.deadline - time.monotonic()
        if remaining <= 0:
            raise SourceError(self.path, f"run deadline reached before git {args[0]}")
        budget = remaining + _DEADLINE_GRACE
        return budget if self.timeout is None else min(self.timeout, budget)

    def run(self, *args: str) -> str:
        timeout = self._command_timeout(args)
        cmd = [self.git_binary, "-C", str(self.path), *args]
        logger.trace("Running {}", " ".join(cmd))
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=timeout,
                check=False,
            )
        except FileNotFoundError as exc:
            raise SourceError(self.path, f"git executable '{self.git_binary}' not found") from exc
        except subprocess.TimeoutExpired as exc:
            raise SourceError(self.path, f"git {' '.join(args)} timed out") from exc
        if result.returncode != 0:
            raise GitCommandError(self.path, list(args), result.returncode, result.stderr)
        return result.stdout

    def ensure_repository(self) -> None:
        if not self.path.exists():
            raise SourceError(self.path, "repository path does not exist")
        if not self.path.is_dir():
            raise SourceError(self.path, "repository path is not a directory")
        try:
            inside = self.run("rev-parse", "--is-inside-work-tree").strip()
        except GitCommandError as exc:
            raise SourceError(self.path, "not a git repository") from exc
        if inside != "true":
            raise SourceError(self.path, "not a git work tree")

    def default_branch(self) -> str | None:
        """Branch HEAD points at, or ``None`` on a detached HEAD."""

        try:
            return self.run("symbolic-ref", "--quiet", "--short", "HEAD").strip() or None
        except GitCommandError:
            return None

    def local_branches(self) -> dict[str, str]:
        """Map of local branch name to tip commit id."""

        output = self.run("for-each-ref", "--format=%(refname:short)%00%(objectname)", "refs/heads")
        branches: dict[str, str] = {}
        for line in output.splitlines():
            if "\x00" not in line:
                continue
            name, commit_id = line.split("\x00", 1)
            branches[name] = commit_id.strip()
        return branches

    def commit_exists(self, commit_id: str) -> bool:
        try:
            self.run("cat-file", "-e", f"{commit_id}^{{commit}}")
        except GitCommandError:
            return False
        return True

    def rev_list(self, tip: str, *, exclude: list[str] | None = None, since: datetime | None = None) -> list[str]:
        """Commits reachable from ``tip`` but not from ``exclude``, oldest first."""

        args = ["rev-list", "--topo-order", "--reverse"]
        if since is not None:
            args.append(f"--since={int(since.timestamp())}")
        args.append(tip)
        args.extend(f"^{commit_id}" for commit_id in exclude or [])
        args.append("--")
        return [line.strip() for line in self.run(*args).splitlines() if line.strip()]

    def ahead_behind(self, base: str, tip: str) -> tuple[int, int]:
        output = self.run("rev-list", "--left-right", "--count", f"{base}...{tip}").split()
        if len(output) != 2:
            return 0, 0
        behind, ahead = (int(value) for value in output)
        return ahead, behind

    def commit_details(self, commit_ids: list[str]) -> list[CommitInfo]:
        """Author, subject and changed paths for ``commit_ids`` in the given order."""

        if not commit_ids:
            return []
        output = self.run(
            "log",
            "--no-walk=unsorted",
            "--no-renames",
            "--name-only",
            f"--format={_LOG_FORMAT}",
            *commit_ids,
            "--",
        )
        commits: list[CommitInfo] = []
        for chunk in output.split(_RECORD_SEP):
            if not chunk.strip():
                continue
            header, _, body = chunk.partition("\n")
            fields = header.split(_FIELD_SEP)
            if len(fields) < 4:
                logger.debug("Skipping malformed git log record in {}: {!r}", self.path, header)
                continue
            commit_id, author, epoch, subject = fields[0], fields[1], fields[2], _FIELD_SEP.join(fields[3:])
            files = tuple(line.strip() for line in body.splitlines() if line.strip())
            commits.append(
                CommitInfo(
                    commit_id=commit_id.strip(),
                    author=author or "Unknown",
                    timestamp=datetime.fromtimestamp(int(epoch or 0), tz=timezone.utc),
                    subject=subject.strip() or "(no message)",
                    files=files,
                )
            )
        return commits


__all__ = ["GitRepository", "CommitInfo"]
