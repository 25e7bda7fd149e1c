"""
merge-warden - publish feature branches into a protected target branch.

Usage:
    merge-warden publish refs/heads/feature/login --target master --push
    merge-warden publish --run-tests
    merge-warden pull-requests publish --git-access-token $TOKEN
"""

from __future__ import annotations

import typer

from merge_warden.cli.commands import register_commands
from merge_warden.cli.helpers import configure_logging

__version__ = "0.1.0"

app = typer.Typer(
    name="merge-warden",
    help="Rebase, validate and fast-forward feature branches into a protected branch",
    add_completion=False,
    no_args_is_help=True,
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"merge-warden {__version__}")
        raise typer.Exit()


@app.callback()
def callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every git command"),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version and exit"
    ),
) -> None:
    """Configure logging before any command runs."""
    configure_logging(verbose)


register_commands(app)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
