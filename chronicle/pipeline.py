"""High-level orchestration: load watermark, collect, fold, render, persist."""

from __future__ import annotations

import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Callable

from loguru import logger

from chronicle.aggregator import ChronicleAggregator
from chronicle.collectors import GitCollector, NotesTracker, TodoDiffer
from chronicle.collectors.git import RepositoryFactory
from chronicle.config import ChronicleConfig
from chronicle.errors import RunTimeoutError, StateError, WriteError
from chronicle.models import ALL_SOURCES, ChronicleReport, CollectorOutput, SourceKind, SourceWarning
from chronicle.renderer import ChronicleRenderer
from chronicle.state import Watermark, WatermarkStore
from chronicle.storage import atomic_write_text


@dataclass(slots=True)
class GenerationRequest:
    """One invocation of ``chronicle gen``."""

    date: date = field(default_factory=date.today)
    since: datetime | None = None
    only: frozenset[SourceKind] = frozenset(ALL_SOURCES)
    dry_run: bool = False


@dataclass(slots=True)
class ChronicleRunResult:
    """Report, rendered document and next watermark of a single run."""

    report: ChronicleReport
    watermark: Watermark
    markdown: str
    output_path: Path
    exit_code: int = 0
    saved: bool = False
    written: bool = False
    appended: bool = False


def chronicle_filename(day: date) -> str:
    return f"chronicle-{day.isoformat()}.md"


RUN_SEPARATOR = "\n\n---\n\n"


class ChroniclePipeline:
    """Wires the collectors, the aggregator, the renderer and the watermark store."""

    def __init__(
        self,
        config: ChronicleConfig,
        *,
        store: WatermarkStore | None = None,
        repository_factory: RepositoryFactory | None = None,
        template: str | None = None,
    ) -> None:
        self.config = config
        self.store = store or WatermarkStore(config.state_file)
        self._git = GitCollector(config, repository_factory=repository_factory)
        self._todos = TodoDiffer(config)
        self._notes = NotesTracker(config)
        self._aggregator = ChronicleAggregator(config)
        self._renderer = ChronicleRenderer(config, template=template)

    def output_path(self, day: date) -> Path:
        return Path(self.config.output_dir) / chronicle_filename(day)

    # ------------------------------------------------------------------
    def run(self, request: GenerationRequest) -> ChronicleRunResult:
        """Collect and render without touching the disk."""

        generated_at = datetime.now(timezone.utc)
        state_warnings: list[SourceWarning] = []
        try:
            previous = self.store.load()
        except StateError as exc:
            logger.warning("{}; continuing with an empty watermark", exc)
            previous = Watermark()
            state_warnings.append(
                SourceWarning("state", str(self.store.path), f"{exc}; every source was treated as new")
            )

        selected = [source for source in ALL_SOURCES if source in request.only]
        logger.info(
            "Generating chronicle for {} from sources: {}",
            request.date.isoformat(),
            ", ".join(selected) or "none",
        )
        outputs = self._collect(selected, previous, request.since)

        report, watermark = self._aggregator.aggregate(
            previous,
            outputs,
            report_date=request.date,
            generated_at=generated_at,
            since=request.since,
            warnings=state_warnings,
        )
        markdown = self._renderer.render(report)
        exit_code = 1 if report.warnings else 0
        logger.info(
            "Chronicle ready: {} commit(s), {} TODO change(s), {} note(s), {} warning(s)",
            report.summary.commits,
            len(report.todos),
            len(report.notes),
            len(report.warnings),
        )
        return ChronicleRunResult(
            report=report,
            watermark=watermark,
            markdown=markdown,
            output_path=self.output_path(request.date),
            exit_code=exit_code,
        )

    def run_and_save(self, request: GenerationRequest) -> ChronicleRunResult:
        """Run, then write the chronicle and the watermark unless ``dry_run`` is set.

        The chronicle is written before the watermark, so a failed write never
        advances the watermark past content nobody saw. A run without activity
        leaves the day's file alone; a later run on the same day is appended to
        it so earlier entries survive.
        """

        result = self.run(request)
        if request.dry_run:
            logger.info("Dry run: nothing written")
            return result

        if result.report.has_activity():
            self._write_chronicle(result)
        else:
            logger.info("No activity to report; {} left untouched", result.output_path)

        self.store.save(result.watermark)
        result.saved = True
        return result

    def _write_chronicle(self, result: ChronicleRunResult) -> None:
        path = result.output_path
        try:
            if path.is_file():
                existing = path.read_text(encoding="utf-8").rstrip()
                atomic_write_text(path, existing + RUN_SEPARATOR + result.markdown)
                result.appended = True
            else:
                atomic_write_text(path, result.markdown)
        except OSError as exc:
            raise WriteError(f"Cannot write chronicle {path}: {exc}") from exc
        result.written = True
        logger.info("Chronicle {} {}", "appended to" if result.appended else "written to", path)

    # ------------------------------------------------------------------
    def _collect(
        self,
        sources: list[SourceKind],
        previous: Watermark,
        since: datetime | None,
    ) -> list[CollectorOutput]:
        timeout = self.config.timeout_seconds
        # Git subprocesses are killed at the deadline so worker threads do not
        # keep the interpreter alive after a timeout.
        deadline = time.monotonic() + timeout if timeout is not None else None
        tasks: dict[SourceKind, Callable[[], CollectorOutput]] = {
            "git": lambda: self._git.collect(previous.repos, since=since, deadline=deadline),
            "todos": lambda: self._todos.collect(previous.todo_items),
            "notes": lambda: self._notes.collect(previous.notes, since=since),
        }
        if not sources:
            return []

        executor = ThreadPoolExecutor(max_workers=len(sources), thread_name_prefix="chronicle")
        try:
            futures: dict[Future[CollectorOutput], SourceKind] = {
                executor.submit(tasks[source]): source for source in sources
            }
            done, not_done = wait(futures, timeout=timeout)
            if not_done:
                pending = sorted(futures[future] for future in not_done)
                raise RunTimeoutError(
                    f"Collection exceeded {timeout:g}s (still running: {', '.join(pending)}); nothing was written"
                )

            outputs: list[CollectorOutput] = []
            for future, source in futures.items():
                try:
                    outputs.append(future.result())
                except Exception as exc:
                    logger.exception("Collector '{}' crashed", source)
                    outputs.append(CollectorOutput.failure(source, f"collector crashed: {exc}"))
            return outputs
        finally:
            executor.shutdown(wait=False, cancel_futures=True)


__all__ = ["ChroniclePipeline", "ChronicleRunResult", "GenerationRequest", "chronicle_filename"]
