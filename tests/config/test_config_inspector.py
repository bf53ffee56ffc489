from __future__ import annotations

from pathlib import Path

from chronicle.config.inspector import check_config, explain_config


def test_check_config_ok_with_source_warnings(tmp_path: Path) -> None:
    (tmp_path / "notes").mkdir()
    (tmp_path / "plain").mkdir()
    config_file = tmp_path / "chronicle.toml"
    config_file.write_text(
        """
repos = ["plain", "missing-repo"]
todo_files = ["TODO.md"]
notes_dirs = ["notes", "gone"]
""",
        encoding="utf-8",
    )

    result, exit_code, config = check_config(config_file)

    assert exit_code == 0
    assert result["status"] == "ok"
    assert config is not None
    assert config.notes_dirs[0] == (tmp_path / "notes").resolve()
    warnings = "\n".join(result["warnings"])
    assert "has no .git entry" in warnings
    assert "missing-repo" in warnings
    assert "TODO file does not exist" in warnings
    assert "gone" in warnings
    assert sum("Notes directory" in warning for warning in result["warnings"]) == 1


def test_check_config_reports_empty_sources(tmp_path: Path) -> None:
    config_file = tmp_path / "chronicle.toml"
    config_file.write_text("repos = []\n", encoding="utf-8")

    result, exit_code, _ = check_config(config_file)

    assert exit_code == 0
    assert any("No repos" in warning for warning in result["warnings"])


def test_check_config_error_codes(tmp_path: Path) -> None:
    result, exit_code, config = check_config(tmp_path / "absent.toml")
    assert (result["error"]["type"], exit_code, config) == ("missing_file", 2, None)

    bad_toml = tmp_path / "bad.toml"
    bad_toml.write_text("repos = [\n", encoding="utf-8")
    result, exit_code, _ = check_config(bad_toml)
    assert (result["error"]["type"], exit_code) == ("invalid_format", 1)

    bad_schema = tmp_path / "schema.toml"
    bad_schema.write_text("[limits]\nmax_note_files = 0\n", encoding="utf-8")
    result, exit_code, _ = check_config(bad_schema)
    assert (result["error"]["type"], exit_code) == ("validation_error", 3)
    assert result["error"]["details"][0]["loc"] == "limits.max_note_files"


def test_explain_config_walks_nested_models() -> None:
    fields = {field["name"]: field for field in explain_config()}

    assert "limits.max_commits" in fields
    assert fields["limits.max_commits"]["default"] == 50
    assert fields["display.show_authors"]["type"] == "bool"
    assert fields["timeout_seconds"]["type"] == "Optional[float]"
    assert fields["repos"]["default"] == ["."]
    assert fields["output_dir"]["description"]
