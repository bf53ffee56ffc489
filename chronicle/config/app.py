"""Application-level configuration models."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, ValidationError, field_validator

from chronicle.config.base import BaseConfig, load_config
from chronicle.errors import ConfigError


class LimitsConfig(BaseConfig):
    """Size bounds applied while collecting and reporting."""

    max_commits: int = Field(50, ge=1, description="Commits reported per branch and run")
    max_changed_files: int = Field(80, ge=0, description="Changed paths listed per commit")
    max_note_files: int = Field(30, ge=1, description="Note files reported per run")
    max_chars_per_item: int = Field(2000, ge=1, description="Characters kept per TODO item, note excerpt or commit message")
    max_todo_items: int = Field(100, ge=1, description="TODO changes reported per run")


class DisplayConfig(BaseConfig):
    """Rendering switches."""

    show_authors: bool = Field(True, description="Show commit author names (useful for teams, noise for solo work)")


class ChronicleConfig(BaseConfig):
    """Top-level runtime configuration."""

    output_dir: Path = Field(Path("./chronicles"), description="Directory where chronicle files are written")
    state_file: Path = Field(Path("./.chronicle-state.json"), description="Watermark document tracking what was reported")
    repos: list[Path] = Field(default_factory=lambda: [Path(".")], description="Git repositories to track")
    todo_files: list[Path] = Field(default_factory=list, description="TODO/inbox Markdown files to diff")
    notes_dirs: list[Path] = Field(default_factory=list, description="Directories scanned recursively for notes")
    note_extensions: list[str] = Field(
        default_factory=lambda: [".md", ".markdown", ".txt"],
        description="File suffixes treated as notes",
    )
    limits: LimitsConfig = Field(default_factory=LimitsConfig, description="Collection limits")
    display: DisplayConfig = Field(default_factory=DisplayConfig, description="Display settings")
    logging_level: str = Field("INFO", description="Log level: DEBUG, INFO, WARNING, ERROR")
    timeout_seconds: float | None = Field(None, gt=0, description="Abort the whole run after this many seconds")
    git_binary: str = Field("git", description="git executable used by the git collector")

    @field_validator("note_extensions")
    @classmethod
    def _normalise_extensions(cls, value: list[str]) -> list[str]:
        normalised: list[str] = []
        for ext in value:
            ext = ext.strip().lower()
            if not ext:
                continue
            normalised.append(ext if ext.startswith(".") else f".{ext}")
        return normalised

    @field_validator("logging_level")
    @classmethod
    def _check_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown logging level '{value}'")
        return level

    def resolve_paths(self, base_dir: Path) -> "ChronicleConfig":
        """Return a copy with every relative path anchored at ``base_dir``."""

        def _anchor(path: Path) -> Path:
            path = path.expanduser()
            return path if path.is_absolute() else (base_dir / path).resolve()

        return self.model_copy(
            update={
                "output_dir": _anchor(self.output_dir),
                "state_file": _anchor(self.state_file),
                "repos": [_anchor(p) for p in self.repos],
                "todo_files": [_anchor(p) for p in self.todo_files],
                "notes_dirs": [_anchor(p) for p in self.notes_dirs],
            }
        )


def load_chronicle_config(path: Path) -> ChronicleConfig:
    """Load, validate and path-resolve the configuration, raising :class:`ConfigError`."""

    path = Path(path)
    try:
        config = load_config(ChronicleConfig, path)
    except FileNotFoundError as exc:
        raise ConfigError(f"{exc}. Run 'chronicle config init' to create one.") from exc
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or '<root>'}: {err['msg']}" for err in exc.errors()
        )
        raise ConfigError(f"Invalid configuration in {path}: {problems}") from exc
    except (ValueError, OSError) as exc:
        raise ConfigError(str(exc)) from exc
    return config.resolve_paths(path.resolve().parent)


__all__ = ["ChronicleConfig", "LimitsConfig", "DisplayConfig", "load_chronicle_config"]
