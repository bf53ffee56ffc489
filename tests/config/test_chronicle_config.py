from __future__ import annotations

import tomllib
from pathlib import Path

import pytest

from chronicle.config import BaseConfig, ChronicleConfig, load_chronicle_config, load_config, render_default_config
from chronicle.errors import ConfigError


class ExampleConfig(BaseConfig):
    data_root: Path
    feature_enabled: bool


def test_load_config_success(tmp_path: Path) -> None:
    sample = tmp_path / "config.toml"
    sample.write_text(
        """
        data_root = "./cache"
        feature_enabled = true
        """.strip(),
        encoding="utf-8",
    )

    cfg = load_config(ExampleConfig, sample)

    assert cfg.data_root == Path("./cache")
    assert cfg.feature_enabled is True


def test_load_config_missing_file(tmp_path: Path) -> None:
    missing = tmp_path / "missing.toml"
    with pytest.raises(FileNotFoundError):
        load_config(ExampleConfig, missing)


def test_load_config_invalid_toml(tmp_path: Path) -> None:
    broken = tmp_path / "broken.toml"
    broken.write_text("repos = [", encoding="utf-8")
    with pytest.raises(ValueError, match="Invalid TOML"):
        load_config(ExampleConfig, broken)


def test_defaults_match_documented_values() -> None:
    cfg = ChronicleConfig()

    assert cfg.repos == [Path(".")]
    assert cfg.todo_files == []
    assert cfg.note_extensions == [".md", ".markdown", ".txt"]
    assert cfg.limits.max_commits == 50
    assert cfg.limits.max_changed_files == 80
    assert cfg.limits.max_note_files == 30
    assert cfg.limits.max_chars_per_item == 2000
    assert cfg.limits.max_todo_items == 100
    assert cfg.display.show_authors is True
    assert cfg.logging_level == "INFO"
    assert cfg.timeout_seconds is None


def test_relative_paths_resolve_against_config_directory(tmp_path: Path) -> None:
    config_dir = tmp_path / "workspace"
    config_dir.mkdir()
    config_file = config_dir / "chronicle.toml"
    config_file.write_text(
        """
output_dir = "out"
state_file = ".state.json"
repos = ["code/app", "/srv/absolute"]
todo_files = ["TODO.md"]
notes_dirs = ["notes"]
note_extensions = ["MD", ".org"]
logging_level = "debug"

[limits]
max_commits = 5
""",
        encoding="utf-8",
    )

    cfg = load_chronicle_config(config_file)

    base = config_dir.resolve()
    assert cfg.output_dir == base / "out"
    assert cfg.state_file == base / ".state.json"
    assert cfg.repos == [base / "code" / "app", Path("/srv/absolute")]
    assert cfg.todo_files == [base / "TODO.md"]
    assert cfg.notes_dirs == [base / "notes"]
    assert cfg.note_extensions == [".md", ".org"]
    assert cfg.logging_level == "DEBUG"
    assert cfg.limits.max_commits == 5
    assert cfg.limits.max_note_files == 30


def test_missing_config_points_to_init(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="chronicle config init") as excinfo:
        load_chronicle_config(tmp_path / "chronicle.toml")
    assert excinfo.value.exit_code == 2


@pytest.mark.parametrize(
    "content, fragment",
    [
        ("unknown_key = 1\n", "unknown_key"),
        ("[limits]\nmax_commits = 0\n", "limits.max_commits"),
        ("logging_level = \"LOUD\"\n", "logging_level"),
        ("timeout_seconds = -5\n", "timeout_seconds"),
    ],
)
def test_invalid_config_raises_config_error(tmp_path: Path, content: str, fragment: str) -> None:
    config_file = tmp_path / "chronicle.toml"
    config_file.write_text(content, encoding="utf-8")

    with pytest.raises(ConfigError) as excinfo:
        load_chronicle_config(config_file)

    assert fragment in str(excinfo.value)


def test_default_config_template_round_trips(tmp_path: Path) -> None:
    rendered = render_default_config()

    payload = tomllib.loads(rendered)
    cfg = ChronicleConfig.model_validate(payload)

    assert cfg == ChronicleConfig()
    assert "# Directories scanned recursively for notes" in rendered
