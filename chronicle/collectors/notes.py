"""Notes tracker: content-hash freshness diff over note directories."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from loguru import logger

from chronicle.config import ChronicleConfig
from chronicle.errors import SourceError
from chronicle.models import ChangeStatus, CollectorOutput, NoteRecord, SourceWarning
from chronicle.state.models import NoteState
from chronicle.text import content_hash, excerpt


@dataclass(slots=True)
class _Candidate:
    dir_key: str
    file_key: str
    status: ChangeStatus
    content: str
    current: NoteState
    previous: NoteState | None


class NotesTracker:
    """Recursively scans ``notes_dirs`` and reports new or edited notes.

    Only a content change counts as an edit; a newer modification time with the
    same content just refreshes the stored marker.
    """

    def __init__(self, config: ChronicleConfig) -> None:
        self.config = config

    def collect(self, watermark: dict[str, NoteState], *, since: datetime | None = None) -> CollectorOutput:
        output = CollectorOutput(source="notes")
        candidates: list[_Candidate] = []
        scanned: dict[str, NoteState | None] = {}

        for notes_dir in self.config.notes_dirs:
            dir_key = str(notes_dir)
            try:
                files = list(self._iter_note_files(Path(notes_dir)))
            except SourceError as exc:
                logger.warning("Skipping notes directory {}: {}", notes_dir, exc.message)
                output.warnings.append(SourceWarning("notes", dir_key, exc.message))
                continue

            dir_state: dict[str, NoteState] = {}
            for path in files:
                file_key = str(path)
                if file_key in scanned:
                    # Overlapping directories: record the state, report once.
                    if scanned[file_key] is not None:
                        dir_state[file_key] = scanned[file_key]
                    continue
                previous = watermark.get(file_key)
                try:
                    mtime = path.stat().st_mtime
                    content = path.read_text(encoding="utf-8", errors="replace")
                except OSError as exc:
                    logger.warning("Cannot read note {}: {}", path, exc)
                    output.warnings.append(SourceWarning("notes", file_key, f"cannot read note: {exc}"))
                    if previous is not None:
                        dir_state[file_key] = previous
                    scanned[file_key] = previous
                    continue

                current = NoteState(modified_at=mtime, content_hash=content_hash(content))
                dir_state[file_key] = current
                scanned[file_key] = current
                if previous is None:
                    if since is not None and mtime < since.timestamp():
                        continue
                    status = ChangeStatus.NEW
                elif previous.content_hash != current.content_hash:
                    status = ChangeStatus.MODIFIED
                else:
                    continue
                candidates.append(_Candidate(dir_key, file_key, status, content, current, previous))

            output.update[dir_key] = dir_state

        candidates.sort(key=lambda c: (-c.current.modified_at, c.file_key))
        limits = self.config.limits
        reported, overflow = candidates[: limits.max_note_files], candidates[limits.max_note_files :]

        for candidate in overflow:
            for dir_state in output.update.values():
                if candidate.file_key not in dir_state:
                    continue
                if candidate.previous is None:
                    del dir_state[candidate.file_key]
                else:
                    dir_state[candidate.file_key] = candidate.previous
        output.overflow = len(overflow)

        for candidate in reported:
            text, truncated = excerpt(candidate.content, limits.max_chars_per_item)
            output.notes.append(
                NoteRecord(
                    file=candidate.file_key,
                    status=candidate.status,
                    excerpt=text,
                    modified_at=datetime.fromtimestamp(candidate.current.modified_at, tz=timezone.utc),
                    truncated=truncated,
                )
            )

        logger.info(
            "Notes: {} change(s) reported, {} deferred to a later run",
            len(output.notes),
            output.overflow,
        )
        return output

    def _iter_note_files(self, root: Path) -> Iterator[Path]:
        if not root.exists():
            raise SourceError(root, "notes directory does not exist")
        if not root.is_dir():
            raise SourceError(root, "notes path is not a directory")

        extensions = set(self.config.note_extensions)

        def _raise(exc: OSError) -> None:
            raise SourceError(root, f"cannot list notes directory: {exc}")

        for dirpath, dirnames, filenames in os.walk(root, onerror=_raise):
            dirnames[:] = sorted(name for name in dirnames if not name.startswith("."))
            for filename in sorted(filenames):
                if filename.startswith("."):
                    continue
                path = Path(dirpath) / filename
                if path.suffix.lower() in extensions and path.is_file():
                    yield path


__all__ = ["NotesTracker"]
