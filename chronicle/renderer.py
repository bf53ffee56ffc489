"""Rendering helpers for Markdown chronicles."""

from __future__ import annotations

import re
from datetime import datetime

from jinja2 import BaseLoader, Environment

from chronicle.config import ChronicleConfig
from chronicle.models import BranchActivity, ChronicleReport, TodoItemRecord

_DEFAULT_TEMPLATE = """# Chronicle: {{ report.date.isoformat() }}

**Generated:** {{ report.generated_at | utc }}
**Since:** {{ report.since | utc if report.since else "first run" }}

## Summary

| Category | Count |
|----------|-------|
| Repositories | {{ s.repositories }} |
| Commits | {{ s.commits }} |
| New Branches | {{ s.new_branches }} |
| New TODOs | {{ s.todos_new }} |
| Completed TODOs | {{ s.todos_done }} |
| Modified TODOs | {{ s.todos_modified }} |
| Note Updates | {{ s.notes_new + s.notes_modified }} |
{% if s.warnings %}
| Warnings | {{ s.warnings }} |
{% endif %}

{% if not report.has_activity() %}
*No new activity since the last chronicle.*

{% endif %}
{% if repositories %}
## Git Activity

{% for repo in repositories %}
### {{ repo.name }}

**Path:** `{{ repo.path }}`

{% for branch in repo.branches %}
#### `{{ branch.name }}`{% if branch.ahead or branch.behind %} (ahead {{ branch.ahead }}, behind {{ branch.behind }}){% endif %}{% if branch.is_new %} ← NEW{% endif %}


{% for commit in branch.commits %}
- `{{ commit.short_id }}` {{ commit.message }}{% if show_authors %} — *{{ commit.author }}*{% endif %}

{% endfor %}
{% if not branch.commits %}
*No commits of its own yet.*
{% endif %}
{% set files, hidden = changed_files(branch) %}
{% if files %}

<details>
<summary>Changed files ({{ files | length + hidden }})</summary>

{% for path in files %}
- `{{ path }}`
{% endfor %}
{% if hidden %}

*... and {{ hidden }} more files*
{% endif %}

</details>
{% endif %}
{% if branch.pending %}

*+{{ branch.pending }} more commits, reported in the next chronicle*
{% endif %}

{% endfor %}
{% endfor %}
{% endif %}
{% if todo_groups %}
## TODOs

{% for file, items in todo_groups %}
### `{{ file }}`

{% for item in items %}
- {{ checkbox(item) }} {{ item.text }} ← {{ item.status.value }}{% if item.previous_text %} (was: {{ item.previous_text }}){% endif %}

{% endfor %}

{% endfor %}
{% endif %}
{% if report.todo_overflow %}
*+{{ report.todo_overflow }} more TODO changes*

{% endif %}
{% if report.notes %}
## Notes

{% for note in report.notes %}
### `{{ note.file }}` ← {{ note.status.value | lower }}

*Modified: {{ note.modified_at | utc }}*

{{ note.excerpt }}

{% endfor %}
{% endif %}
{% if report.note_overflow %}
*+{{ report.note_overflow }} more notes*

{% endif %}
{% if report.warnings %}
## Warnings

{% for warning in report.warnings %}
- **{{ warning.source }}** `{{ warning.target }}`: {{ warning.message }}
{% endfor %}
{% endif %}
"""

_CHECKBOX = {"open": "[ ]", "in_progress": "[~]", "done": "[x]"}
_BLANK_RUNS_RE = re.compile(r"\n{3,}")


def _utc(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S UTC")


class ChronicleRenderer:
    """Render an aggregated report into a Markdown document."""

    def __init__(self, config: ChronicleConfig, template: str | None = None) -> None:
        self.config = config
        env = Environment(loader=BaseLoader(), autoescape=False, trim_blocks=True, lstrip_blocks=True)
        env.filters["utc"] = _utc
        self._template = env.from_string(template or _DEFAULT_TEMPLATE)

    def render(self, report: ChronicleReport) -> str:
        rendered = self._template.render(
            report=report,
            s=report.summary,
            repositories=self._repositories(report),
            todo_groups=self._todo_groups(report.todos),
            show_authors=self.config.display.show_authors,
            changed_files=self._changed_files,
            checkbox=lambda item: _CHECKBOX.get(item.state, "[ ]"),
        )
        return _BLANK_RUNS_RE.sub("\n\n", rendered).strip() + "\n"

    def _repositories(self, report: ChronicleReport) -> list[dict]:
        return [
            {"name": branches[0].repo_name, "path": path, "branches": branches}
            for path, branches in report.repositories().items()
        ]

    def _changed_files(self, branch: BranchActivity) -> tuple[list[str], int]:
        """Distinct paths touched by the branch's commits, capped for display."""

        seen: dict[str, None] = {}
        hidden = 0
        for commit in branch.commits:
            hidden += commit.files_truncated
            for path in commit.changed_files:
                seen.setdefault(path, None)
        paths = list(seen)
        limit = self.config.limits.max_changed_files
        return paths[:limit], hidden + max(len(paths) - limit, 0)

    @staticmethod
    def _todo_groups(todos: list[TodoItemRecord]) -> list[tuple[str, list[TodoItemRecord]]]:
        grouped: dict[str, list[TodoItemRecord]] = {}
        for item in todos:
            grouped.setdefault(item.file, []).append(item)
        return list(grouped.items())


__all__ = ["ChronicleRenderer"]
