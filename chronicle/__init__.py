"""Local-first daily chronicle of git history, TODO files and notes.

Every run reports only what changed since the persisted watermark and then
advances it.
"""

__version__ = "0.3.0"

__all__: list[str] = ["__version__"]
