"""Fold collector outputs into one report and the next watermark."""

from __future__ import annotations

import os
from collections import Counter
from datetime import date, datetime
from typing import Iterable

from loguru import logger

from chronicle.config import ChronicleConfig
from chronicle.models import (
    ALL_SOURCES,
    ChangeStatus,
    ChronicleReport,
    ChronicleSummary,
    CollectorOutput,
    SourceKind,
    SourceWarning,
)
from chronicle.state.models import Watermark


class ChronicleAggregator:
    """Pure merge step between the collectors and the renderer.

    The previous watermark is never mutated. Outputs flagged as failed
    contribute their warnings only, so the entries of a collector that crashed
    keep their previous values.
    """

    def __init__(self, config: ChronicleConfig) -> None:
        self.config = config

    def aggregate(
        self,
        previous: Watermark,
        outputs: Iterable[CollectorOutput],
        *,
        report_date: date,
        generated_at: datetime,
        since: datetime | None = None,
        warnings: Iterable[SourceWarning] = (),
    ) -> tuple[ChronicleReport, Watermark]:
        by_source = {output.source: output for output in outputs}
        ordered = [by_source[source] for source in ALL_SOURCES if source in by_source]

        watermark = previous.model_copy(deep=True)
        report = ChronicleReport(
            date=report_date,
            generated_at=generated_at,
            since=since if since is not None else previous.last_run_at,
            sources=tuple(output.source for output in ordered),
            warnings=list(warnings),
        )

        completed: list[SourceKind] = []
        for output in ordered:
            report.warnings.extend(output.warnings)
            if output.failed:
                logger.warning("Collector '{}' failed; its watermark entries are kept", output.source)
                continue
            completed.append(output.source)
            if output.source == "git":
                report.branches.extend(output.branches)
                _fold_repos(watermark, output.update)
            elif output.source == "todos":
                report.todos.extend(output.todos)
                report.todo_overflow += output.overflow
                _fold_todos(watermark, output.update)
            elif output.source == "notes":
                report.notes.extend(output.notes)
                report.note_overflow += output.overflow
                _fold_notes(watermark, output.update)

        if completed:
            watermark.last_run_at = generated_at
        report.summary = summarize(report)
        logger.debug("Aggregated {} source(s): {}", len(completed), report.summary)
        return report, watermark


def _fold_repos(watermark: Watermark, update: dict[str, dict[str, str]]) -> None:
    # Branches missing from the update were deleted; dropping them is intended.
    for repo, branches in update.items():
        watermark.repos[repo] = dict(branches)


def _fold_todos(watermark: Watermark, update: dict) -> None:
    for todo_file, items in update.items():
        watermark.todo_items[todo_file] = dict(items)


def _fold_notes(watermark: Watermark, update: dict) -> None:
    for notes_dir, files in update.items():
        prefix = notes_dir.rstrip(os.sep) + os.sep
        for stale in [key for key in watermark.notes if key.startswith(prefix)]:
            del watermark.notes[stale]
        watermark.notes.update(files)


def summarize(report: ChronicleReport) -> ChronicleSummary:
    counts = Counter((change.kind, change.status) for change in report.changes())
    return ChronicleSummary(
        repositories=len(report.repositories()),
        branches=len(report.branches),
        new_branches=sum(1 for branch in report.branches if branch.is_new),
        commits=counts["git", ChangeStatus.NEW],
        pending_commits=sum(branch.pending for branch in report.branches),
        todos_new=counts["todos", ChangeStatus.NEW],
        todos_done=counts["todos", ChangeStatus.DONE],
        todos_modified=counts["todos", ChangeStatus.MODIFIED],
        todo_overflow=report.todo_overflow,
        notes_new=counts["notes", ChangeStatus.NEW],
        notes_modified=counts["notes", ChangeStatus.MODIFIED],
        note_overflow=report.note_overflow,
        warnings=len(report.warnings),
    )


__all__ = ["ChronicleAggregator", "summarize"]
