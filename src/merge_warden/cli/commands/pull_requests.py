"""Pull request commands: list active pull requests and publish them in turn."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.markup import escape
from rich.table import Table

from merge_warden.cli.commands.publish import load_cli_config, run_publish
from merge_warden.cli.helpers import EXIT_QUEUE_TIMEOUT, console, fail
from merge_warden.core.config import WardenConfig
from merge_warden.core.errors import MergeWardenError, PullRequestSourceError
from merge_warden.merge.pipeline import PublishOptions
from merge_warden.pull_requests import PullRequest, PullRequestSource

app = typer.Typer(
    help="Active pull requests on the hosting service",
    no_args_is_help=True,
)


def _fetch_pull_requests(
    config_path: Optional[Path],
    token: Optional[str],
    target: Optional[str],
) -> tuple[WardenConfig, list[PullRequest]]:
    config = load_cli_config(config_path)
    if not token:
        console.print("[red]Error:[/red] An access token is required (--git-access-token or MERGE_WARDEN_GIT_TOKEN)")
        raise typer.Exit(1)
    try:
        with PullRequestSource(config.service, token) as source:
            return config, source.active_pull_requests(target)
    except PullRequestSourceError as exc:
        fail(exc)


@app.command("list")
def list_pull_requests(
    target_branch: Optional[str] = typer.Option(None, "--target", help="Only pull requests into this branch"),
    git_access_token: Optional[str] = typer.Option(
        None, "--git-access-token", envvar="MERGE_WARDEN_GIT_TOKEN", show_default=False
    ),
    config_path: Optional[Path] = typer.Option(None, "--config", help="Path to config.toml"),
) -> None:
    """List active pull requests."""
    _, pull_requests = _fetch_pull_requests(config_path, git_access_token, target_branch)
    if not pull_requests:
        console.print("[dim]No active pull requests[/dim]")
        return

    table = Table(title="Active pull requests")
    table.add_column("ID", justify="right")
    table.add_column("Title")
    table.add_column("Source", style="cyan")
    table.add_column("Target", style="green")
    for pr in pull_requests:
        table.add_row(str(pr.pull_request_id), escape(pr.title), pr.source_branch, pr.target_branch)
    console.print(table)


@app.command("publish")
def publish_pull_requests(
    target_branch: Optional[str] = typer.Option(None, "--target", help="Only pull requests into this branch"),
    push: bool = typer.Option(True, "--push/--no-push", help="Push each target branch after fast-forwarding"),
    delete_source: bool = typer.Option(False, "--delete-source", help="Delete source branches after a successful push"),
    verify_commits: bool = typer.Option(False, "--verify-commits", help="Lint commit subjects and committer names first"),
    git_user_name: Optional[str] = typer.Option(None, "--git-user-name", envvar="MERGE_WARDEN_GIT_USER"),
    git_access_token: Optional[str] = typer.Option(
        None, "--git-access-token", envvar="MERGE_WARDEN_GIT_TOKEN", show_default=False
    ),
    repo: Path = typer.Option(Path("."), "--repo", help="Working copy to publish from"),
    lock_timeout: Optional[float] = typer.Option(
        None, "--lock-timeout", min=0.0, help="Minutes to wait for the publish lock"
    ),
    config_path: Optional[Path] = typer.Option(None, "--config", help="Path to config.toml"),
) -> None:
    """Publish every active pull request into its target branch."""
    config, pull_requests = _fetch_pull_requests(config_path, git_access_token, target_branch)
    if not pull_requests:
        console.print("[dim]No active pull requests[/dim]")
        return

    options = PublishOptions(
        push_on_success=push,
        delete_source_on_success=delete_source,
        verify_commit_descriptions=verify_commits,
        git_user_name=git_user_name,
        git_access_token=git_access_token,
        lock_timeout=lock_timeout * 60.0 if lock_timeout is not None else None,
    )

    outcomes: list[tuple[PullRequest, str]] = []
    for pr in pull_requests:
        console.print(f"\n[cyan]Publishing !{pr.pull_request_id}[/cyan] {escape(pr.title)}")
        try:
            result = run_publish(repo, config, pr.source_ref, pr.target_branch, options)
        except MergeWardenError as exc:
            outcomes.append((pr, f"{type(exc).__name__}: {exc}".splitlines()[0]))
            continue
        if not result.ran:
            outcomes.append((pr, "queue timeout"))
        else:
            outcomes.append((pr, "published"))

    table = Table(title="Publish summary")
    table.add_column("ID", justify="right")
    table.add_column("Source", style="cyan")
    table.add_column("Target", style="green")
    table.add_column("Outcome")
    for pr, outcome in outcomes:
        style = "green" if outcome == "published" else "red"
        table.add_row(str(pr.pull_request_id), pr.source_branch, pr.target_branch, f"[{style}]{escape(outcome)}[/{style}]")
    console.print(table)

    failures = [outcome for _, outcome in outcomes if outcome != "published"]
    if failures:
        only_timeouts = all(outcome == "queue timeout" for outcome in failures)
        raise typer.Exit(EXIT_QUEUE_TIMEOUT if only_timeouts else 1)
