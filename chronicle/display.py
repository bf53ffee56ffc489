"""Terminal display of chronicles printed by ``gen --dry-run``."""

from __future__ import annotations

import os
import sys
from typing import Mapping, TextIO

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.theme import Theme

_THEME = Theme(
    {
        "markdown.h1": "bold cyan",
        "markdown.h2": "bold blue",
        "markdown.h3": "blue",
        "markdown.code": "yellow",
        "markdown.code_block": "green",
        "markdown.item.bullet": "cyan",
    }
)


def should_use_colors(environ: Mapping[str, str] | None = None, stream: TextIO | None = None) -> bool:
    """Decide whether styled output is wanted.

    ``NO_COLOR`` wins over everything, ``CLICOLOR_FORCE`` (any value but ``0``)
    enables styling even when piped, ``CLICOLOR=0`` disables it, and otherwise
    the answer is whether ``stream`` is a terminal.
    """

    env = os.environ if environ is None else environ
    if "NO_COLOR" in env:
        return False
    force = env.get("CLICOLOR_FORCE")
    if force is not None and force != "0":
        return True
    if env.get("CLICOLOR") == "0":
        return False
    target = stream if stream is not None else sys.stdout
    isatty = getattr(target, "isatty", None)
    return bool(isatty and isatty())


def print_markdown(markdown: str, *, stream: TextIO | None = None, environ: Mapping[str, str] | None = None) -> None:
    target = stream if stream is not None else sys.stdout
    if not should_use_colors(environ, target):
        typer.echo(markdown, file=target, nl=False)
        return

    console = Console(file=target, force_terminal=True, theme=_THEME, highlight=False)
    console.print(Markdown(markdown))


__all__ = ["print_markdown", "should_use_colors"]
