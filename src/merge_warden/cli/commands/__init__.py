"""CLI command modules for merge-warden."""

import typer

from . import pull_requests
from .publish import publish, self_test


def register_commands(app: typer.Typer) -> None:
    """Attach every command and sub-app to the root Typer app."""
    app.command()(publish)
    app.command("self-test")(self_test)
    app.add_typer(pull_requests.app, name="pull-requests")


__all__ = ["register_commands"]
