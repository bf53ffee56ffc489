"""Change records, collector outputs and the aggregated report."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Literal, Union

SourceKind = Literal["git", "todos", "notes"]
ALL_SOURCES: tuple[SourceKind, ...] = ("git", "todos", "notes")


class ChangeStatus(str, Enum):
    NEW = "NEW"
    DONE = "DONE"
    MODIFIED = "MODIFIED"
    UNCHANGED = "UNCHANGED"


@dataclass(frozen=True, slots=True)
class CommitRecord:
    """One commit observed on a branch during this run."""

    repo: str
    branch: str
    commit_id: str
    author: str
    message: str
    timestamp: datetime
    changed_files: tuple[str, ...] = ()
    files_truncated: int = 0
    branch_is_new: bool = False

    @property
    def short_id(self) -> str:
        return self.commit_id[:7]


@dataclass(frozen=True, slots=True)
class BranchActivity:
    """Commits of one branch, newest first, plus branch-level context."""

    repo: str
    name: str
    is_new: bool
    is_default: bool
    commits: tuple[CommitRecord, ...]
    ahead: int = 0
    behind: int = 0
    pending: int = 0

    @property
    def repo_name(self) -> str:
        return Path(self.repo).name or self.repo


@dataclass(frozen=True, slots=True)
class TodoItemRecord:
    file: str
    item_key: str
    text: str
    status: ChangeStatus
    state: str = "open"
    previous_text: str | None = None
    line: int = 0


@dataclass(frozen=True, slots=True)
class NoteRecord:
    file: str
    status: ChangeStatus
    excerpt: str
    modified_at: datetime
    truncated: bool = False


AnyRecord = Union[CommitRecord, TodoItemRecord, NoteRecord]


@dataclass(frozen=True, slots=True)
class ChangeRecord:
    """Source-agnostic projection of a record; ``summarize`` derives the report counts from it."""

    kind: SourceKind
    status: ChangeStatus
    summary: str


def to_change_record(record: AnyRecord) -> ChangeRecord:
    if isinstance(record, CommitRecord):
        return ChangeRecord("git", ChangeStatus.NEW, f"{record.branch}@{record.short_id} {record.message}")
    if isinstance(record, TodoItemRecord):
        return ChangeRecord("todos", record.status, record.text)
    if isinstance(record, NoteRecord):
        return ChangeRecord("notes", record.status, record.file)
    raise TypeError(f"Unsupported record type: {type(record).__name__}")


@dataclass(frozen=True, slots=True)
class SourceWarning:
    """A recoverable problem attached to the report instead of failing the run."""

    source: str
    target: str
    message: str

    def __str__(self) -> str:
        return f"[{self.source}] {self.target}: {self.message}"


@dataclass(slots=True)
class CollectorOutput:
    """Result of one collector run.

    ``update`` holds the partial watermark for the units that completed
    (repositories, TODO files or note directories). ``failed`` marks a collector
    that crashed as a whole; its update is never folded in.
    """

    source: SourceKind
    branches: list[BranchActivity] = field(default_factory=list)
    todos: list[TodoItemRecord] = field(default_factory=list)
    notes: list[NoteRecord] = field(default_factory=list)
    update: dict[str, Any] = field(default_factory=dict)
    warnings: list[SourceWarning] = field(default_factory=list)
    overflow: int = 0
    failed: bool = False

    @classmethod
    def failure(cls, source: SourceKind, message: str) -> "CollectorOutput":
        return cls(source=source, warnings=[SourceWarning(source, source, message)], failed=True)


@dataclass(frozen=True, slots=True)
class ChronicleSummary:
    repositories: int = 0
    branches: int = 0
    new_branches: int = 0
    commits: int = 0
    pending_commits: int = 0
    todos_new: int = 0
    todos_done: int = 0
    todos_modified: int = 0
    todo_overflow: int = 0
    notes_new: int = 0
    notes_modified: int = 0
    note_overflow: int = 0
    warnings: int = 0


@dataclass(slots=True)
class ChronicleReport:
    """Everything a renderer needs for one generation."""

    date: date
    generated_at: datetime
    since: datetime | None
    sources: tuple[SourceKind, ...]
    branches: list[BranchActivity] = field(default_factory=list)
    todos: list[TodoItemRecord] = field(default_factory=list)
    notes: list[NoteRecord] = field(default_factory=list)
    warnings: list[SourceWarning] = field(default_factory=list)
    todo_overflow: int = 0
    note_overflow: int = 0
    summary: ChronicleSummary = field(default_factory=ChronicleSummary)

    @property
    def commits(self) -> list[CommitRecord]:
        return [commit for branch in self.branches for commit in branch.commits]

    def changes(self) -> list[ChangeRecord]:
        records: list[AnyRecord] = [*self.commits, *self.todos, *self.notes]
        return [to_change_record(record) for record in records]

    def has_activity(self) -> bool:
        return bool(self.branches or self.todos or self.notes)

    def repositories(self) -> dict[str, list[BranchActivity]]:
        grouped: dict[str, list[BranchActivity]] = {}
        for branch in self.branches:
            grouped.setdefault(branch.repo, []).append(branch)
        return grouped


__all__ = [
    "ALL_SOURCES",
    "AnyRecord",
    "BranchActivity",
    "ChangeRecord",
    "ChangeStatus",
    "ChronicleReport",
    "ChronicleSummary",
    "CollectorOutput",
    "CommitRecord",
    "NoteRecord",
    "SourceKind",
    "SourceWarning",
    "TodoItemRecord",
    "to_change_record",
]
