from __future__ import annotations

from datetime import date, datetime, timezone

from chronicle.aggregator import ChronicleAggregator, summarize
from chronicle.models import (
    BranchActivity,
    ChangeRecord,
    ChronicleReport,
    ChangeStatus,
    CollectorOutput,
    CommitRecord,
    NoteRecord,
    SourceWarning,
    TodoItemRecord,
)
from chronicle.state import NoteState, TodoItemState, Watermark

GENERATED_AT = datetime(2024, 1, 16, 9, 0, tzinfo=timezone.utc)
LAST_RUN = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)


def _previous() -> Watermark:
    return Watermark(
        last_run_at=LAST_RUN,
        repos={"/r/app": {"main": "1" * 40}, "/r/lib": {"main": "2" * 40}},
        todo_items={"/t/TODO.md": {"k1": TodoItemState(content_hash="h1", text="Alpha")}},
        notes={
            "/n/idea.md": NoteState(modified_at=1.0, content_hash="n1"),
            "/n/old.md": NoteState(modified_at=1.0, content_hash="n2"),
            "/other/keep.md": NoteState(modified_at=1.0, content_hash="n3"),
        },
    )


def _commit(commit_id: str) -> CommitRecord:
    return CommitRecord(
        repo="/r/app",
        branch="main",
        commit_id=commit_id,
        author="Ada",
        message="work",
        timestamp=GENERATED_AT,
    )


def _git_output() -> CollectorOutput:
    branch = BranchActivity(repo="/r/app", name="main", is_new=False, is_default=True, commits=(_commit("3" * 40),))
    return CollectorOutput(source="git", branches=[branch], update={"/r/app": {"main": "3" * 40}})


def _todo_output() -> CollectorOutput:
    record = TodoItemRecord(file="/t/TODO.md", item_key="k1", text="Alpha", status=ChangeStatus.DONE, state="done")
    return CollectorOutput(
        source="todos",
        todos=[record],
        overflow=4,
        update={"/t/TODO.md": {"k1": TodoItemState(content_hash="h1", status="done", text="Alpha")}},
    )


def _notes_output() -> CollectorOutput:
    note = NoteRecord(file="/n/idea.md", status=ChangeStatus.MODIFIED, excerpt="x", modified_at=GENERATED_AT)
    return CollectorOutput(
        source="notes",
        notes=[note],
        update={"/n": {"/n/idea.md": NoteState(modified_at=2.0, content_hash="n9")}},
    )


def test_aggregate_folds_each_source_and_counts(make_config) -> None:
    aggregator = ChronicleAggregator(make_config())
    previous = _previous()

    report, watermark = aggregator.aggregate(
        previous,
        [_notes_output(), _git_output(), _todo_output()],
        report_date=date(2024, 1, 16),
        generated_at=GENERATED_AT,
    )

    assert report.sources == ("git", "todos", "notes")
    assert report.since == LAST_RUN
    assert watermark.last_run_at == GENERATED_AT
    assert watermark.repos == {"/r/app": {"main": "3" * 40}, "/r/lib": {"main": "2" * 40}}
    assert watermark.todo_items["/t/TODO.md"]["k1"].status == "done"
    assert set(watermark.notes) == {"/n/idea.md", "/other/keep.md"}
    summary = report.summary
    assert (summary.repositories, summary.commits, summary.todos_done, summary.todo_overflow) == (1, 1, 1, 4)
    assert (summary.notes_modified, summary.warnings) == (1, 0)
    assert [change.kind for change in report.changes()] == ["git", "todos", "notes"]
    # The input watermark is never mutated.
    assert previous == _previous()


def test_failed_collector_keeps_previous_entries(make_config) -> None:
    aggregator = ChronicleAggregator(make_config())

    report, watermark = aggregator.aggregate(
        _previous(),
        [CollectorOutput.failure("git", "collector crashed: boom"), _todo_output()],
        report_date=date(2024, 1, 16),
        generated_at=GENERATED_AT,
    )

    assert watermark.repos == _previous().repos
    assert report.branches == []
    assert [str(warning) for warning in report.warnings] == ["[git] git: collector crashed: boom"]
    assert watermark.last_run_at == GENERATED_AT


def test_nothing_completed_keeps_last_run(make_config) -> None:
    aggregator = ChronicleAggregator(make_config())

    report, watermark = aggregator.aggregate(
        _previous(),
        [CollectorOutput.failure("notes", "collector crashed")],
        report_date=date(2024, 1, 16),
        generated_at=GENERATED_AT,
        warnings=[SourceWarning("state", "/s/state.json", "unreadable")],
    )

    assert watermark == _previous()
    assert report.summary.warnings == 2
    assert report.warnings[0].source == "state"


def test_since_override_wins_and_first_run_has_none(make_config) -> None:
    aggregator = ChronicleAggregator(make_config())
    override = datetime(2024, 1, 1, tzinfo=timezone.utc)

    report, _ = aggregator.aggregate(
        _previous(), [], report_date=date(2024, 1, 16), generated_at=GENERATED_AT, since=override
    )
    assert report.since == override

    report, watermark = aggregator.aggregate(
        Watermark(), [], report_date=date(2024, 1, 16), generated_at=GENERATED_AT
    )
    assert report.since is None
    assert watermark.last_run_at is None
    assert not report.has_activity()


def test_summarize_counts_the_change_projection() -> None:
    todos = [
        TodoItemRecord(file="/t/TODO.md", item_key=f"k{index}", text=f"Item {index}", status=status, state="open")
        for index, status in enumerate([ChangeStatus.NEW, ChangeStatus.NEW, ChangeStatus.MODIFIED])
    ]
    report = ChronicleReport(
        date=date(2024, 1, 16),
        generated_at=GENERATED_AT,
        since=LAST_RUN,
        sources=("git", "todos", "notes"),
        branches=_git_output().branches,
        todos=todos,
        notes=_notes_output().notes,
    )

    changes = report.changes()
    summary = summarize(report)

    assert changes[0] == ChangeRecord("git", ChangeStatus.NEW, "main@3333333 work")
    assert (summary.commits, summary.todos_new, summary.todos_modified, summary.todos_done) == (1, 2, 1, 0)
    assert (summary.notes_new, summary.notes_modified) == (0, 1)
    assert summary.commits + summary.todos_new + summary.todos_modified + summary.notes_modified == len(changes)
