"""TODO/inbox differ: classify checkbox and bullet items against stored hashes."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from chronicle.config import ChronicleConfig
from chronicle.errors import SourceError
from chronicle.models import ChangeStatus, CollectorOutput, SourceWarning, TodoItemRecord
from chronicle.state.models import Completion, TodoItemState
from chronicle.text import collapse_whitespace, content_hash, truncate

_ITEM_RE = re.compile(
    r"^\s*(?:[-*+]|\d+[.)])\s+(?:\[(?P<mark>[ xX~\-])\]\s+)?(?P<text>\S.*?)\s*$"
)
_EMPTY_BOX_RE = re.compile(r"\[[ xX~\-]\]")
_FENCE_RE = re.compile(r"^\s*(```|~~~)")
_EMPHASIS_RE = re.compile(r"[*_`~]+")
_TRAILING_PUNCT_RE = re.compile(r"[\s.!?;:,]+$")

_MARK_TO_STATE: dict[str | None, Completion] = {
    None: "open",
    " ": "open",
    "x": "done",
    "X": "done",
    "~": "in_progress",
    "-": "in_progress",
}

FileItems = dict[str, TodoItemState]


@dataclass(frozen=True, slots=True)
class ParsedItem:
    """One TODO entry after normalisation."""

    key: str
    text: str
    state: Completion
    content_hash: str
    line: int


def identity_text(text: str) -> str:
    """Text an item's identity is derived from.

    Case, Markdown emphasis, trailing punctuation and whitespace do not take part
    in identity, so rewording those keeps the item recognisable.
    """

    stripped = _EMPHASIS_RE.sub("", text)
    stripped = _TRAILING_PUNCT_RE.sub("", collapse_whitespace(stripped))
    return stripped.casefold()


def parse_items(content: str) -> list[ParsedItem]:
    """Parse checkbox and bullet entries in document order.

    Keys depend on content only; repeated identical items get an ordinal
    suffix in order of appearance.
    """

    items: list[ParsedItem] = []
    seen: dict[str, int] = {}
    in_fence = False
    for line_no, line in enumerate(content.splitlines(), start=1):
        if _FENCE_RE.match(line):
            in_fence = not in_fence
            continue
        if in_fence:
            continue
        match = _ITEM_RE.match(line)
        if match is None:
            continue
        text = collapse_whitespace(match.group("text"))
        if not text or _EMPTY_BOX_RE.fullmatch(text):
            continue
        base_key = content_hash(identity_text(text))[:16]
        occurrence = seen.get(base_key, 0) + 1
        seen[base_key] = occurrence
        key = base_key if occurrence == 1 else f"{base_key}#{occurrence}"
        items.append(
            ParsedItem(
                key=key,
                text=text,
                state=_MARK_TO_STATE[match.group("mark")],
                content_hash=content_hash(text),
                line=line_no,
            )
        )
    return items


def classify(item: ParsedItem, stored: TodoItemState | None) -> ChangeStatus:
    if stored is None:
        return ChangeStatus.NEW
    if item.state == "done" and stored.status != "done":
        return ChangeStatus.DONE
    if item.content_hash == stored.content_hash and item.state == stored.status:
        return ChangeStatus.UNCHANGED
    return ChangeStatus.MODIFIED


class TodoDiffer:
    """Diffs every configured TODO file against its stored item map."""

    def __init__(self, config: ChronicleConfig) -> None:
        self.config = config

    def collect(self, watermark: dict[str, FileItems]) -> CollectorOutput:
        output = CollectorOutput(source="todos")
        budget = self.config.limits.max_todo_items
        for todo_file in self.config.todo_files:
            key = str(todo_file)
            try:
                content = self._read(Path(todo_file))
            except SourceError as exc:
                logger.warning("Skipping TODO file {}: {}", todo_file, exc.message)
                output.warnings.append(SourceWarning("todos", key, exc.message))
                continue

            records, file_state, overflow = self.diff_file(key, content, watermark.get(key, {}), budget)
            budget -= len(records)
            output.todos.extend(records)
            output.overflow += overflow
            output.update[key] = file_state
            logger.debug("TODO file {}: {} change(s), {} over the cap", todo_file, len(records), overflow)
        return output

    def diff_file(
        self,
        file_key: str,
        content: str,
        stored: FileItems,
        budget: int,
    ) -> tuple[list[TodoItemRecord], FileItems, int]:
        """Classify the items of one file.

        Returns the reported records, the file's new item map and the number of
        changes left out because ``budget`` ran out. Items left out keep their
        stored state so a later run reports them.
        """

        max_chars = self.config.limits.max_chars_per_item
        records: list[TodoItemRecord] = []
        new_state: FileItems = {}
        overflow = 0
        for item in parse_items(content):
            previous = stored.get(item.key)
            status = classify(item, previous)
            current = TodoItemState(content_hash=item.content_hash, status=item.state, text=item.text)
            if status is ChangeStatus.UNCHANGED:
                new_state[item.key] = current
                continue
            if len(records) >= budget:
                overflow += 1
                if previous is not None:
                    new_state[item.key] = previous
                continue

            new_state[item.key] = current
            records.append(
                TodoItemRecord(
                    file=file_key,
                    item_key=item.key,
                    text=truncate(item.text, max_chars),
                    status=status,
                    state=item.state,
                    previous_text=(
                        truncate(previous.text, max_chars)
                        if status is ChangeStatus.MODIFIED and previous is not None
                        else None
                    ),
                    line=item.line,
                )
            )
        return records, new_state, overflow

    def _read(self, path: Path) -> str:
        if not path.exists():
            raise SourceError(path, "TODO file does not exist")
        if not path.is_file():
            raise SourceError(path, "TODO path is not a file")
        try:
            return path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            raise SourceError(path, f"cannot read TODO file: {exc}") from exc


__all__ = ["TodoDiffer", "ParsedItem", "parse_items", "identity_text", "classify"]
