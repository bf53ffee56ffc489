"""Watermark persistence: load, atomic save and reset."""

from __future__ import annotations

import json
from pathlib import Path

from loguru import logger
from pydantic import ValidationError

from chronicle.errors import StateError, WriteError
from chronicle.storage import atomic_write_text

from .models import Watermark


class WatermarkStore:
    """Sole reader and writer of the durable watermark document."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> Watermark:
        """Return the stored watermark, or an empty one when none exists yet.

        Raises :class:`StateError` when the document exists but cannot be parsed;
        callers recover by starting from an empty watermark.
        """

        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.debug("No watermark at {}; starting from an empty state", self.path)
            return Watermark()
        except OSError as exc:
            raise StateError(f"Cannot read state file {self.path}: {exc}") from exc

        if not raw.strip():
            return Watermark()

        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StateError(f"State file {self.path} is not valid JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise StateError(f"State file {self.path} does not contain a JSON object")

        if "sources" in payload and "repos" not in payload:
            logger.info("State file {} uses the legacy per-source layout; starting fresh", self.path)
            return Watermark()

        try:
            return Watermark.model_validate(payload)
        except ValidationError as exc:
            raise StateError(f"State file {self.path} has an invalid layout: {exc.error_count()} error(s)") from exc

    def save(self, watermark: Watermark) -> None:
        """Write the whole document atomically."""

        text = json.dumps(watermark.model_dump(mode="json"), indent=2, sort_keys=True, ensure_ascii=False)
        try:
            atomic_write_text(self.path, text + "\n")
        except OSError as exc:
            raise WriteError(f"Cannot write state file {self.path}: {exc}") from exc
        logger.debug("Watermark saved to {}", self.path)

    def reset(self) -> Watermark:
        """Clear every entry so the next run reports all sources as new."""

        empty = Watermark()
        self.save(empty)
        logger.info("Watermark at {} reset", self.path)
        return empty


__all__ = ["WatermarkStore"]
