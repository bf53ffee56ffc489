"""Shared pytest fixtures: configuration builders and throwaway git repositories."""

from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path
from typing import Any, Callable

import pytest
from loguru import logger

_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from chronicle import cli  # noqa: E402
from chronicle.config import ChronicleConfig, LimitsConfig  # noqa: E402

_GIT_ENV = {
    "GIT_AUTHOR_NAME": "Ada Tester",
    "GIT_AUTHOR_EMAIL": "ada@example.com",
    "GIT_COMMITTER_NAME": "Ada Tester",
    "GIT_COMMITTER_EMAIL": "ada@example.com",
    "GIT_CONFIG_NOSYSTEM": "1",
}


class GitRepoBuilder:
    """Drives a scratch repository through the git binary."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._counter = 0

    def git(self, *args: str, env: dict[str, str] | None = None) -> str:
        env = {**os.environ, **_GIT_ENV, "HOME": str(self.path.parent), **(env or {})}
        result = subprocess.run(
            ["git", "-C", str(self.path), *args],
            capture_output=True,
            text=True,
            env=env,
            check=True,
        )
        return result.stdout.strip()

    def init(self) -> "GitRepoBuilder":
        self.path.mkdir(parents=True, exist_ok=True)
        self.git("init", "--quiet")
        self.git("symbolic-ref", "HEAD", "refs/heads/main")
        self.git("config", "user.name", _GIT_ENV["GIT_AUTHOR_NAME"])
        self.git("config", "user.email", _GIT_ENV["GIT_AUTHOR_EMAIL"])
        self.git("config", "commit.gpgsign", "false")
        return self

    def commit(self, message: str, files: dict[str, str] | None = None, *, when: str | None = None) -> str:
        self._counter += 1
        files = files or {f"file-{self._counter}.txt": f"content {self._counter}\n"}
        for name, content in files.items():
            target = self.path / name
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
            self.git("add", name)
        dates = {"GIT_AUTHOR_DATE": when, "GIT_COMMITTER_DATE": when} if when else None
        self.git("commit", "--quiet", "-m", message, env=dates)
        return self.head()

    def head(self) -> str:
        return self.git("rev-parse", "HEAD")

    def checkout(self, branch: str, *, create: bool = False) -> None:
        if create:
            self.git("checkout", "--quiet", "-b", branch)
        else:
            self.git("checkout", "--quiet", branch)


@pytest.fixture
def git_repo(tmp_path: Path) -> Callable[[str], GitRepoBuilder]:
    """Factory creating initialised repositories under ``tmp_path`` with ``main`` checked out."""

    def _create(name: str = "repo") -> GitRepoBuilder:
        return GitRepoBuilder(tmp_path / name).init()

    return _create


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[..., ChronicleConfig]:
    """Build an in-memory configuration rooted at ``tmp_path``.

    Sources default to empty lists so each test opts into the ones it needs.
    """

    def _make(**overrides: Any) -> ChronicleConfig:
        limits = overrides.pop("limits", None)
        values: dict[str, Any] = {
            "output_dir": tmp_path / "chronicles",
            "state_file": tmp_path / "state.json",
            "repos": [],
            "todo_files": [],
            "notes_dirs": [],
        }
        values.update(overrides)
        if isinstance(limits, dict):
            values["limits"] = LimitsConfig(**limits)
        elif limits is not None:
            values["limits"] = limits
        return ChronicleConfig(**values)

    return _make


@pytest.fixture(autouse=True)
def _reset_cli_logging():
    yield
    # The CLI swaps in its own stderr sink; drop it so the next test starts clean.
    if cli._log_handler_id is not None:
        logger.remove(cli._log_handler_id)
        cli._log_handler_id = None
        logger.add(sys.stderr)
