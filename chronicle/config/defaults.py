"""Default configuration file written by ``chronicle config init``."""

from __future__ import annotations

from jinja2 import BaseLoader, Environment

from .app import ChronicleConfig

_TEMPLATE = """# Chronicle configuration
# Relative paths are resolved against the directory of this file.

output_dir = "{{ config.output_dir.as_posix() }}"
state_file = "{{ config.state_file.as_posix() }}"
logging_level = "{{ config.logging_level }}"

# Git repositories to track
repos = [{% for repo in config.repos %}"{{ repo.as_posix() }}"{% if not loop.last %}, {% endif %}{% endfor %}]

# TODO/inbox files with checkbox or bullet items
todo_files = []
# todo_files = ["./TODO.md", "./inbox.md"]

# Directories scanned recursively for notes
notes_dirs = []
# notes_dirs = ["./notes"]

note_extensions = [{% for ext in config.note_extensions %}"{{ ext }}"{% if not loop.last %}, {% endif %}{% endfor %}]

[limits]
max_commits = {{ config.limits.max_commits }}
max_changed_files = {{ config.limits.max_changed_files }}
max_note_files = {{ config.limits.max_note_files }}
max_chars_per_item = {{ config.limits.max_chars_per_item }}
max_todo_items = {{ config.limits.max_todo_items }}

[display]
show_authors = {{ config.display.show_authors | lower }}
"""


def render_default_config(config: ChronicleConfig | None = None) -> str:
    """Render ``config`` (defaults when omitted) as a commented TOML document."""

    env = Environment(loader=BaseLoader(), autoescape=False, keep_trailing_newline=True)
    return env.from_string(_TEMPLATE).render(config=config or ChronicleConfig())


__all__ = ["render_default_config"]
