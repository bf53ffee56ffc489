"""Per-source collectors producing change records and partial watermarks."""

from chronicle.collectors.git import GitCollector
from chronicle.collectors.gitcmd import CommitInfo, GitRepository
from chronicle.collectors.notes import NotesTracker
from chronicle.collectors.todo import TodoDiffer, parse_items

__all__ = ["GitCollector", "GitRepository", "CommitInfo", "NotesTracker", "TodoDiffer", "parse_items"]
