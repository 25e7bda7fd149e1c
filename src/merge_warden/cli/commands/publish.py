"""Publish command implementation.

Rebases a source branch onto the target, validates the preserved-merge
topology and fast-forwards the target, all under the named publish lock.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.live import Live

from merge_warden.cli.helpers import EXIT_QUEUE_TIMEOUT, console, fail
from merge_warden.cli.ui import publish_tracker
from merge_warden.core.config import WardenConfig, load_config
from merge_warden.core.errors import ConfigError, MergeWardenError
from merge_warden.core.git_runner import GitRunner
from merge_warden.core.redaction import SecretSet
from merge_warden.core.refs import normalize_branch_name
from merge_warden.merge.pipeline import PublishOptions, PublishPipeline, PublishResult
from merge_warden.selftest import render_results, run_self_tests


def load_cli_config(config_path: Optional[Path]) -> WardenConfig:
    try:
        return load_config(config_path)
    except ConfigError as exc:
        fail(exc)


def build_pipeline(
    repo: Path,
    config: WardenConfig,
    secrets: SecretSet,
    tracker_observer=None,
) -> PublishPipeline:
    runner = GitRunner(repo.resolve(), secrets=secrets, remote=config.git.remote)
    return PublishPipeline(runner=runner, config=config, on_stage=tracker_observer)


def run_publish(
    repo: Path,
    config: WardenConfig,
    source_ref: str,
    target: str,
    options: PublishOptions,
) -> PublishResult:
    """Run one publish with a rendered step tree; errors propagate."""
    secrets = SecretSet([options.git_access_token or ""])
    tracker = publish_tracker(
        f"Publish {normalize_branch_name(source_ref)} → {target}",
        lint=options.verify_commit_descriptions,
        push=options.push_on_success,
    )
    pipeline = build_pipeline(repo, config, secrets, tracker.observe)
    try:
        with Live(tracker.render(), console=console, refresh_per_second=8, transient=True) as live:
            tracker.attach_refresh(lambda: live.update(tracker.render()))
            return pipeline.publish(source_ref, target, options)
    finally:
        console.print(tracker.render())


def self_test() -> None:
    """Run the built-in merge topology scenarios."""
    if not render_results(run_self_tests(), console):
        raise typer.Exit(1)


def publish(
    source_ref: Optional[str] = typer.Argument(
        None,
        envvar="BUILD_SOURCEVERSION",
        help="Source branch (refs/heads/<name> or bare name) or 40-character commit id",
        show_default=False,
    ),
    target_branch: Optional[str] = typer.Option(None, "--target", help="Target branch (default from config)"),
    commit_id: Optional[str] = typer.Option(None, "--commit-id", help="Pin the source to this commit"),
    run_tests: bool = typer.Option(False, "--run-tests", help="Run the self-test scenarios instead of publishing"),
    push: bool = typer.Option(False, "--push/--no-push", help="Push the target branch after fast-forwarding"),
    delete_source: bool = typer.Option(False, "--delete-source", help="Delete the source branch after a successful push"),
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
    """Rebase, validate and fast-forward SOURCE_REF into the target branch."""
    if run_tests:
        self_test()
        return

    config = load_cli_config(config_path)
    target = target_branch or config.publish.target_branch
    if not (source_ref or commit_id):
        console.print("[red]Error:[/red] No source ref given and BUILD_SOURCEVERSION is not set")
        raise typer.Exit(1)

    options = PublishOptions(
        push_on_success=push,
        delete_source_on_success=delete_source,
        verify_commit_descriptions=verify_commits,
        commit_id=commit_id,
        git_user_name=git_user_name,
        git_access_token=git_access_token,
        lock_timeout=lock_timeout * 60.0 if lock_timeout is not None else None,
    )

    try:
        result = run_publish(repo, config, source_ref or "", target, options)
    except MergeWardenError as exc:
        fail(exc)

    if not result.ran:
        console.print(
            f"[yellow]Queue timeout:[/yellow] publish lock for {result.target_branch} was not acquired; retry later"
        )
        raise typer.Exit(EXIT_QUEUE_TIMEOUT)

    console.print(f"[green]✓[/green] {result.target_branch} fast-forwarded to {result.head_commit}")
