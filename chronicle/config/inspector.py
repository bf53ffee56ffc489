"""Utilities for inspecting and validating configuration files."""

from __future__ import annotations

from pathlib import Path
from types import UnionType
from typing import Any, Iterable, Union, get_args, get_origin

from pydantic import BaseModel, ValidationError
from pydantic.fields import FieldInfo

from .app import ChronicleConfig
from .base import load_config


class ConfigInspectionError(RuntimeError):
    """Raised when configuration inspection fails unexpectedly."""


def _error_result(path: Path, kind: str, message: str, **extra: Any) -> dict[str, Any]:
    return {
        "status": "error",
        "config_path": str(path),
        "error": {"type": kind, "message": message, **extra},
    }


def check_config(path: Path) -> tuple[dict[str, Any], int, ChronicleConfig | None]:
    """Validate the configuration file and collect warnings.

    Returns ``(result_dict, exit_code, config_or_None)``; the exit codes match
    the CLI conventions (0 ok, 2 missing/unreadable, 3 schema, 1 bad TOML).
    """

    try:
        config = load_config(ChronicleConfig, path)
    except FileNotFoundError as exc:
        return _error_result(path, "missing_file", str(exc)), 2, None
    except ValidationError as exc:
        details = [
            {"loc": _format_error_location(err["loc"]), "message": err["msg"], "type": err["type"]}
            for err in exc.errors()
        ]
        return _error_result(path, "validation_error", "Configuration validation failed", details=details), 3, None
    except PermissionError as exc:
        return _error_result(path, "permission_error", str(exc)), 2, None
    except ValueError as exc:
        return _error_result(path, "invalid_format", str(exc)), 1, None
    except Exception as exc:  # pragma: no cover - unexpected failures
        raise ConfigInspectionError("Unexpected configuration inspection error") from exc

    resolved = config.resolve_paths(Path(path).resolve().parent)
    result = {
        "status": "ok",
        "config_path": str(path),
        "warnings": _collect_warnings(resolved),
    }
    return result, 0, resolved


def explain_config() -> list[dict[str, Any]]:
    """Describe configuration fields for documentation purposes."""

    documentation: list[dict[str, Any]] = []

    def _walk(model_cls: type[BaseModel], prefix: str = "") -> None:
        for field_name, field in model_cls.model_fields.items():
            documentation.append(
                {
                    "name": f"{prefix}{field_name}",
                    "type": _format_annotation(field.annotation),
                    "required": field.is_required(),
                    "default": _format_default(field),
                    "description": field.description or "",
                }
            )
            annotation = field.annotation
            if isinstance(annotation, type) and issubclass(annotation, BaseModel):
                _walk(annotation, f"{prefix}{field_name}.")

    _walk(ChronicleConfig)
    return documentation


def _format_error_location(location: Iterable[Union[int, str]]) -> str:
    return ".".join(str(part) for part in location)


def _collect_warnings(config: ChronicleConfig) -> list[str]:
    warnings: list[str] = []

    if not (config.repos or config.todo_files or config.notes_dirs):
        warnings.append("No repos, todo_files or notes_dirs configured; chronicles will be empty")
    for repo in config.repos:
        if not repo.exists():
            warnings.append(f"Repository path does not exist: {repo}")
        elif not (repo / ".git").exists():
            warnings.append(f"Repository path has no .git entry: {repo}")
    for todo_file in config.todo_files:
        if not todo_file.is_file():
            warnings.append(f"TODO file does not exist: {todo_file}")
    for notes_dir in config.notes_dirs:
        if not notes_dir.is_dir():
            warnings.append(f"Notes directory does not exist: {notes_dir}")
    if not config.note_extensions and config.notes_dirs:
        warnings.append("'note_extensions' is empty; no note files will be tracked")

    return warnings


def _format_annotation(annotation: Any) -> str:
    origin = get_origin(annotation)
    if origin is None:
        if isinstance(annotation, type):
            return annotation.__name__
        return repr(annotation).replace("typing.", "")

    args = get_args(annotation)
    if origin in {Union, UnionType}:
        non_none = [arg for arg in args if arg is not type(None)]  # noqa: E721
        if len(non_none) == 1 and len(args) == 2:
            return f"Optional[{_format_annotation(non_none[0])}]"
        return f"Union[{', '.join(_format_annotation(arg) for arg in args)}]"

    origin_name = getattr(origin, "__name__", repr(origin).replace("typing.", ""))
    if args:
        return f"{origin_name}[{', '.join(_format_annotation(arg) for arg in args)}]"
    return origin_name


def _format_default(field: FieldInfo) -> Any:
    if field.default_factory is not None:
        return _stringify_default(field.default_factory())
    if field.is_required():
        return None
    return _stringify_default(field.default)


def _stringify_default(value: Any) -> Any:
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (list, tuple)):
        return [_stringify_default(item) for item in value]
    return value


__all__ = ["check_config", "explain_config", "ConfigInspectionError"]
