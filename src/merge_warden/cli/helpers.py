"""Shared console, logging and error reporting for CLI commands."""

from __future__ import annotations

import logging
from typing import NoReturn

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from merge_warden.core.errors import LockTimeout, MergeWardenError

console = Console()

# EX_TEMPFAIL: contention, safe to retry later.
EXIT_QUEUE_TIMEOUT = 75


def configure_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    handler = RichHandler(console=console, show_path=False, markup=False, rich_tracebacks=verbose)
    package_logger = logging.getLogger("merge_warden")
    package_logger.handlers = [handler]
    package_logger.setLevel(level)


def fail(exc: MergeWardenError) -> NoReturn:
    """Report ``exc`` and exit with the matching code."""
    kind = type(exc).__name__
    console.print(f"[red]{kind}:[/red] {escape(str(exc))}", highlight=False)
    if isinstance(exc, LockTimeout):
        raise typer.Exit(EXIT_QUEUE_TIMEOUT)
    raise typer.Exit(1)


__all__ = ["console", "configure_logging", "fail", "EXIT_QUEUE_TIMEOUT"]
