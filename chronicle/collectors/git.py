"""Git activity collector: new commits per branch since the watermark."""

from __future__ import annotations

import time
from datetime import datetime
from pathlib import Path
from typing import Callable

from loguru import logger

from chronicle.config import ChronicleConfig
from chronicle.errors import SourceError
from chronicle.models import BranchActivity, CollectorOutput, CommitRecord, SourceWarning
from chronicle.text import truncate

from .gitcmd import GitRepository

RepositoryFactory = Callable[..., GitRepository]

RepoWatermark = dict[str, str]


class GitCollector:
    """Enumerates local branches of every configured repository.

    For each branch the commits not reachable from the recorded commit are
    consumed oldest first in batches of ``limits.max_commits``. The batch is the
    ancestry closure of its newest commit, which becomes the new watermark, so
    consecutive capped runs cover the whole range exactly once.
    """

    def __init__(
        self,
        config: ChronicleConfig,
        *,
        repository_factory: RepositoryFactory | None = None,
    ) -> None:
        self.config = config
        self._factory = repository_factory or GitRepository

    def collect(
        self,
        watermark: dict[str, RepoWatermark],
        *,
        since: datetime | None = None,
        deadline: float | None = None,
    ) -> CollectorOutput:
        """Collect every configured repository.

        ``deadline`` is a ``time.monotonic`` value; git commands are cut short
        at it and no further repository is started once it has passed.
        """

        output = CollectorOutput(source="git")
        for repo_path in self.config.repos:
            key = str(repo_path)
            if deadline is not None and time.monotonic() >= deadline:
                logger.warning("Run deadline reached; skipping repository {}", repo_path)
                output.warnings.append(SourceWarning("git", key, "skipped: run deadline reached"))
                continue
            try:
                branches, repo_state, warnings = self._collect_repository(
                    Path(repo_path), dict(watermark.get(key, {})), since, deadline
                )
            except (SourceError, OSError, ValueError) as exc:
                logger.warning("Skipping repository {}: {}", repo_path, exc)
                output.warnings.append(SourceWarning("git", key, _describe(exc)))
                continue

            output.branches.extend(branches)
            output.warnings.extend(warnings)
            output.update[key] = repo_state
            logger.info(
                "Repository {}: {} branch(es) with activity, {} commit(s)",
                repo_path,
                len(branches),
                sum(len(branch.commits) for branch in branches),
            )
        return output

    # ------------------------------------------------------------------
    def _collect_repository(
        self,
        path: Path,
        known: RepoWatermark,
        since: datetime | None,
        deadline: float | None = None,
    ) -> tuple[list[BranchActivity], RepoWatermark, list[SourceWarning]]:
        repo = self._factory(path, git_binary=self.config.git_binary, deadline=deadline)
        repo.ensure_repository()

        key = str(path)
        default_branch = repo.default_branch()
        tips = repo.local_branches()
        warnings: list[SourceWarning] = []

        # Recorded commits that still exist; used to skip history already
        # reported on another branch when a branch shows up for the first time.
        valid_known = {name: commit for name, commit in known.items() if repo.commit_exists(commit)}
        for name in sorted(set(known) & set(tips) - set(valid_known)):
            message = f"recorded commit {known[name][:7]} of branch '{name}' no longer exists; history was rewritten"
            logger.warning("{}: {}", path, message)
            warnings.append(SourceWarning("git", key, message))

        new_state: RepoWatermark = {}
        activities: list[BranchActivity] = []
        for name in sorted(tips, key=lambda branch: (branch != default_branch, branch)):
            tip = tips[name]
            last_seen = valid_known.get(name)
            is_new = name not in known

            if last_seen == tip:
                new_state[name] = tip
                continue

            if last_seen is not None:
                exclude = [last_seen]
            else:
                exclude = sorted({commit for branch, commit in valid_known.items() if branch != name})
                if is_new and default_branch and name != default_branch and default_branch in tips:
                    exclude.append(tips[default_branch])

            pending = repo.rev_list(tip, exclude=exclude, since=since)
            limit = self.config.limits.max_commits
            if len(pending) > limit:
                cutoff = pending[limit - 1]
                batch = repo.rev_list(cutoff, exclude=exclude, since=since)
                remaining = len(pending) - len(batch)
                new_state[name] = cutoff
            else:
                batch = pending
                remaining = 0
                new_state[name] = tip

            if not batch and not (is_new and known):
                continue

            commits = self._build_commits(repo, key, name, list(reversed(batch)), is_new)
            ahead = behind = 0
            if default_branch and name != default_branch and default_branch in tips:
                ahead, behind = repo.ahead_behind(tips[default_branch], tip)

            activities.append(
                BranchActivity(
                    repo=key,
                    name=name,
                    is_new=is_new,
                    is_default=name == default_branch,
                    commits=tuple(commits),
                    ahead=ahead,
                    behind=behind,
                    pending=remaining,
                )
            )
            if remaining:
                logger.info(
                    "{}@{}: reported {} commit(s), {} left for the next run",
                    path.name,
                    name,
                    len(commits),
                    remaining,
                )

        return activities, new_state, warnings

    def _build_commits(
        self,
        repo: GitRepository,
        repo_key: str,
        branch: str,
        commit_ids: list[str],
        is_new: bool,
    ) -> list[CommitRecord]:
        limits = self.config.limits
        records: list[CommitRecord] = []
        for info in repo.commit_details(commit_ids):
            files = info.files[: limits.max_changed_files]
            records.append(
                CommitRecord(
                    repo=repo_key,
                    branch=branch,
                    commit_id=info.commit_id,
                    author=info.author,
                    message=truncate(info.subject, limits.max_chars_per_item),
                    timestamp=info.timestamp,
                    changed_files=tuple(files),
                    files_truncated=len(info.files) - len(files),
                    branch_is_new=is_new,
                )
            )
        return records


def _describe(exc: Exception) -> str:
    if isinstance(exc, SourceError):
        return exc.message
    return str(exc)


__all__ = ["GitCollector"]
