"""Configuration namespace for chronicle."""

from __future__ import annotations

from .app import ChronicleConfig, DisplayConfig, LimitsConfig, load_chronicle_config
from .base import BaseConfig, load_config
from .defaults import render_default_config

__all__ = [
    "BaseConfig",
    "ChronicleConfig",
    "DisplayConfig",
    "LimitsConfig",
    "load_config",
    "load_chronicle_config",
    "render_default_config",
]
