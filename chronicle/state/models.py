"""Persisted watermark document."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

WATERMARK_VERSION = "2"

Completion = Literal["open", "in_progress", "done"]


class _StateModel(BaseModel):
    # Forward compatible: fields written by newer versions are dropped on load.
    model_config = ConfigDict(extra="ignore")


class TodoItemState(_StateModel):
    """Last reported state of one TODO item."""

    content_hash: str
    status: Completion = "open"
    text: str = ""


class NoteState(_StateModel):
    """Last reported state of one note file."""

    modified_at: float
    content_hash: str


class Watermark(_StateModel):
    """How much of every source has already been reported.

    A missing key always means "never seen".
    """

    version: str = WATERMARK_VERSION
    last_run_at: datetime | None = None
    repos: dict[str, dict[str, str]] = Field(default_factory=dict)
    todo_items: dict[str, dict[str, TodoItemState]] = Field(default_factory=dict)
    notes: dict[str, NoteState] = Field(default_factory=dict)

    def is_empty(self) -> bool:
        return not (self.repos or self.todo_items or self.notes)

    def counts(self) -> dict[str, int]:
        return {
            "repos": len(self.repos),
            "branches": sum(len(branches) for branches in self.repos.values()),
            "todo_files": len(self.todo_items),
            "todo_items": sum(len(items) for items in self.todo_items.values()),
            "notes": len(self.notes),
        }


__all__ = ["Watermark", "TodoItemState", "NoteState", "Completion", "WATERMARK_VERSION"]
