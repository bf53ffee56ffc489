"""Watermark state: persisted model and store."""

from chronicle.state.models import NoteState, TodoItemState, Watermark
from chronicle.state.store import WatermarkStore

__all__ = ["Watermark", "TodoItemState", "NoteState", "WatermarkStore"]
