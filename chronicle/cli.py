"""Command line interface for chronicle."""

from __future__ import annotations

import json
import sys
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any, NoReturn

import typer
from loguru import logger

from .config import ChronicleConfig, load_chronicle_config, render_default_config
from .config.inspector import check_config, explain_config
from .display import print_markdown
from .errors import ChronicleError, ConfigError
from .models import ALL_SOURCES, SourceKind
from .pipeline import ChroniclePipeline, GenerationRequest
from .state import WatermarkStore

EXIT_NOT_FOUND = 5

_log_handler_id: int | None = None


@dataclass(slots=True)
class CLIState:
    """Holds shared state between Typer commands."""

    config_path: Path
    _config: ChronicleConfig | None = None

    def ensure_config(self) -> ChronicleConfig:
        if self._config is None:
            logger.debug("Loading configuration from {}", self.config_path)
            self._config = load_chronicle_config(self.config_path)
            _configure_logging(self._config.logging_level)
        return self._config


app = typer.Typer(help="Daily chronicle of git, TODO and note activity")
config_app = typer.Typer(help="Create, validate and document configuration files")
app.add_typer(config_app, name="config")
show_app = typer.Typer(help="Display generated chronicles")
app.add_typer(show_app, name="show")
state_app = typer.Typer(help="Inspect or reset the watermark")
app.add_typer(state_app, name="state")


def _configure_logging(level: str) -> None:
    global _log_handler_id
    if _log_handler_id is None:
        logger.remove()
    else:
        logger.remove(_log_handler_id)
    _log_handler_id = logger.add(sys.stderr, level=level)


def _normalize_format(value: str) -> str:
    return value.lower()


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):  # pragma: no cover - defensive guard
        raise RuntimeError("CLI context is not initialised")
    return state


def _exit(code: int) -> NoReturn:
    raise typer.Exit(code)


def _load_config_or_exit(state: CLIState) -> ChronicleConfig:
    try:
        return state.ensure_config()
    except ConfigError as exc:
        logger.error("Configuration error: {}", exc)
        _exit(exc.exit_code)


def _parse_date(value: str | None) -> date:
    if value is None:
        return date.today()
    try:
        return date.fromisoformat(value)
    except ValueError:
        logger.error("Invalid --date '{}': expected YYYY-MM-DD", value)
        _exit(2)


def _parse_since(value: str | None) -> datetime | None:
    if value is None:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        logger.error("Invalid --since '{}': expected YYYY-MM-DD or an ISO 8601 timestamp", value)
        _exit(2)
    # Naive values are local wall-clock time.
    return parsed if parsed.tzinfo is not None else parsed.astimezone()


def _parse_only(value: str | None) -> frozenset[SourceKind]:
    if value is None:
        return frozenset(ALL_SOURCES)
    requested = {part.strip().lower() for part in value.split(",") if part.strip()}
    unknown = sorted(requested - set(ALL_SOURCES))
    if unknown or not requested:
        logger.error(
            "Invalid --only '{}': choose from {}",
            value,
            ", ".join(ALL_SOURCES),
        )
        _exit(2)
    return frozenset(source for source in ALL_SOURCES if source in requested)


@app.callback()
def main_callback(
    ctx: typer.Context,
    config: Path = typer.Option(
        Path("chronicle.toml"),
        "--config",
        help="Path to the TOML configuration file",
    ),
) -> None:
    """Initialise CLI state."""

    ctx.obj = CLIState(config_path=config.resolve())


@app.command(help="Generate the chronicle for everything new since the last run")
def gen(
    ctx: typer.Context,
    date_: str | None = typer.Option(None, "--date", help="Chronicle date (YYYY-MM-DD), defaults to today"),
    since: str | None = typer.Option(
        None,
        "--since",
        help="Only report activity after this date or timestamp instead of the watermark alone",
    ),
    only: str | None = typer.Option(
        None,
        "--only",
        help="Comma separated subset of sources: git,todos,notes",
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print the chronicle without writing any file"),
) -> None:
    state = _get_state(ctx)
    request = GenerationRequest(
        date=_parse_date(date_),
        since=_parse_since(since),
        only=_parse_only(only),
        dry_run=dry_run,
    )
    config = _load_config_or_exit(state)

    try:
        result = ChroniclePipeline(config).run_and_save(request)
    except ChronicleError as exc:
        logger.error("Chronicle generation failed: {}", exc)
        _exit(exc.exit_code)

    if dry_run:
        print_markdown(result.markdown)
    elif not result.written:
        logger.info("No activity to report.")
    for warning in result.report.warnings:
        logger.warning("{}", warning)
    _exit(result.exit_code)


@show_app.command("latest", help="Print the most recent chronicle")
def show_latest(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    config = _load_config_or_exit(state)

    latest = find_latest_chronicle(config.output_dir)
    if latest is None:
        logger.error("No chronicle found in {}. Run 'chronicle gen' first.", config.output_dir)
        _exit(EXIT_NOT_FOUND)

    typer.echo(latest.read_text(encoding="utf-8"), nl=False)


def find_latest_chronicle(output_dir: Path) -> Path | None:
    if not output_dir.is_dir():
        return None
    # ISO dates in the file names sort chronologically.
    candidates = sorted(path for path in output_dir.glob("chronicle-*.md") if path.is_file())
    return candidates[-1] if candidates else None


@state_app.command("reset", help="Forget everything reported so far")
def state_reset(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    config = _load_config_or_exit(state)

    try:
        WatermarkStore(config.state_file).reset()
    except ChronicleError as exc:
        logger.error("{}", exc)
        _exit(exc.exit_code)
    logger.info("State reset: the next 'chronicle gen' reports every source from scratch")


@state_app.command("show", help="Summarise the stored watermark")
def state_show(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    config = _load_config_or_exit(state)

    try:
        watermark = WatermarkStore(config.state_file).load()
    except ChronicleError as exc:
        logger.error("{}", exc)
        _exit(exc.exit_code)

    payload: dict[str, Any] = {
        "state_file": str(config.state_file),
        "version": watermark.version,
        "last_run_at": watermark.last_run_at.isoformat() if watermark.last_run_at else None,
        "empty": watermark.is_empty(),
        **watermark.counts(),
    }
    print(json.dumps(payload, indent=2, ensure_ascii=False))


@config_app.command("init", help="Write a default configuration file")
def init(
    ctx: typer.Context,
    path: Path | None = typer.Option(None, "--path", help="Destination, defaults to the --config path"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file"),
) -> None:
    state = _get_state(ctx)
    target = path or state.config_path

    if target.exists() and not force:
        logger.warning("Configuration file already exists at {}; use --force to overwrite", target)
        _exit(1)

    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(render_default_config(), encoding="utf-8")
    except OSError as exc:
        logger.error("Cannot write configuration file {}: {}", target, exc)
        _exit(3)

    logger.info("Configuration file created: {}", target)
    logger.info("Edit it to list your repositories, TODO files and note directories, then run 'chronicle gen'")


@config_app.command(help="Validate the configuration file")
def check(
    ctx: typer.Context,
    format: str = typer.Option(  # noqa: A002 - match CLI option name
        "text",
        "--format",
        case_sensitive=False,
        help="Output format for validation results",
        callback=_normalize_format,
    ),
) -> None:
    state = _get_state(ctx)
    result, exit_code, _ = check_config(state.config_path)

    if format == "json":
        print(json.dumps(result, indent=2, ensure_ascii=False, default=str))
        _exit(exit_code)

    if result["status"] == "ok":
        logger.info("Configuration OK: {}", result["config_path"])
        for warning in result["warnings"]:
            logger.warning(warning)
    else:
        error: dict[str, Any] = result["error"]
        logger.error(
            "Configuration error ({}) for {}: {}",
            error["type"],
            result["config_path"],
            error["message"],
        )
        for detail in error.get("details", []):
            location = detail["loc"] or "<root>"
            logger.error("  - {}: {} ({})", location, detail["message"], detail["type"])

    _exit(exit_code)


@config_app.command(help="Describe available configuration fields")
def explain(
    format: str = typer.Option(  # noqa: A002 - match CLI option name
        "text",
        "--format",
        case_sensitive=False,
        help="Output format for configuration schema",
        callback=_normalize_format,
    ),
) -> None:
    fields = explain_config()

    if format == "json":
        print(json.dumps({"fields": fields}, indent=2, ensure_ascii=False, default=str))
        return

    logger.info("Configuration schema ({} fields):", len(fields))
    for field in fields:
        default_value = field["default"]
        if isinstance(default_value, (dict, list)):
            default_repr = json.dumps(default_value, ensure_ascii=False, default=str)
        elif default_value is None:
            default_repr = "None"
        else:
            default_repr = str(default_value)
        description = field["description"] or "(no description)"
        logger.info(
            "  - {name}: type={type}, required={required}, default={default}, description={description}",
            name=field["name"],
            type=field["type"],
            required="yes" if field["required"] else "no",
            default=default_repr,
            description=description,
        )


def main(argv: list[str] | None = None) -> int:
    """Entry point compatible with setuptools console scripts."""

    try:
        result = app(args=argv, standalone_mode=False)
    except typer.Exit as exc:
        return exc.exit_code
    if isinstance(result, int):
        return result
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
