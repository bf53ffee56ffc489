"""Error taxonomy shared by the collectors, the state store and the CLI."""

from __future__ import annotations

from pathlib import Path


class ChronicleError(RuntimeError):
    """Base class for every error raised by chronicle."""

    exit_code: int = 1


class ConfigError(ChronicleError):
    """Configuration is missing or invalid; raised before any collection."""

    exit_code = 2


class SourceError(ChronicleError):
    """A single repository, file or directory could not be read.

    Source errors never abort a run: the collector that raised it turns it into
    a report warning and keeps the watermark entries of that source unchanged.
    """

    def __init__(self, target: str | Path, message: str) -> None:
        super().__init__(f"{target}: {message}")
        self.target = str(target)
        self.message = message


class GitCommandError(SourceError):
    """A git invocation exited with a non-zero status."""

    def __init__(self, target: str | Path, args: list[str], returncode: int, stderr: str) -> None:
        detail = stderr.strip().splitlines()[-1] if stderr.strip() else f"exit status {returncode}"
        super().__init__(target, f"git {' '.join(args)} failed: {detail}")
        self.args_list = list(args)
        self.returncode = returncode
        self.stderr = stderr


class StateError(ChronicleError):
    """The watermark document cannot be parsed."""


class WriteError(ChronicleError):
    """The chronicle or the watermark could not be written."""

    exit_code = 3


class RunTimeoutError(ChronicleError):
    """Collection did not finish within the configured time budget."""

    exit_code = 4


__all__ = [
    "ChronicleError",
    "ConfigError",
    "SourceError",
    "GitCommandError",
    "StateError",
    "WriteError",
    "RunTimeoutError",
]
