"""End-to-end publish runs against real git repositories.

Each test builds a bare origin, pushes a feature branch from one clone while
master moves on in another, then publishes from a third clone.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from merge_warden.core.config import WardenConfig
from merge_warden.core.errors import CommandFailure, InvalidTopology
from merge_warden.core.git_runner import GitRunner
from merge_warden.merge.pipeline import PipelineState, PublishOptions, PublishPipeline
from tests.utils import clone, commit_file, configure_identity, git

pytestmark = pytest.mark.git_repo


def _push_feature(origin: Path, workdir: Path, build) -> None:
    dev = clone(origin, workdir)
    git(dev, "checkout", "-q", "-b", "feature/login")
    build(dev)
    git(dev, "push", "-q", "origin", "feature/login")


def _advance_master(origin: Path, workdir: Path, name: str = "CHANGELOG.md") -> str:
    other = clone(origin, workdir)
    sha = commit_file(other, name, "master moved\n", "Update changelog")
    git(other, "push", "-q", "origin", "master")
    return sha


def _publisher(origin: Path, workdir: Path, config: WardenConfig) -> tuple[PublishPipeline, Path]:
    work = clone(origin, workdir)
    return PublishPipeline(runner=GitRunner(work), config=config), work


def _linear(dev: Path) -> None:
    commit_file(dev, "login.py", "def login(): ...\n", "Add login")
    commit_file(dev, "login_test.py", "def test_login(): ...\n", "Test login")


def _with_merge(dev: Path) -> None:
    commit_file(dev, "login.py", "def login(): ...\n", "Add login")
    git(dev, "checkout", "-q", "-b", "feature/login-ui")
    commit_file(dev, "login.html", "<form></form>\n", "Add login form")
    git(dev, "checkout", "-q", "feature/login")
    git(dev, "merge", "-q", "--no-ff", "feature/login-ui", "-m", "Merge branch 'feature/login-ui'")


def _nested_merges(dev: Path) -> None:
    commit_file(dev, "login.py", "def login(): ...\n", "Add login")
    git(dev, "checkout", "-q", "-b", "feature/login-ui")
    commit_file(dev, "login.html", "<form></form>\n", "Add login form")
    git(dev, "checkout", "-q", "-b", "feature/login-css")
    commit_file(dev, "login.css", "form {}\n", "Style login form")
    git(dev, "checkout", "-q", "feature/login-ui")
    git(dev, "merge", "-q", "--no-ff", "feature/login-css", "-m", "Merge branch 'feature/login-css'")
    git(dev, "checkout", "-q", "feature/login")
    git(dev, "merge", "-q", "--no-ff", "feature/login-ui", "-m", "Merge branch 'feature/login-ui'")


def test_publishes_linear_branch(tmp_path: Path, origin_repo: Path, warden_config: WardenConfig):
    _push_feature(origin_repo, tmp_path / "dev", _linear)
    master_tip = _advance_master(origin_repo, tmp_path / "other")
    pipeline, _ = _publisher(origin_repo, tmp_path / "work", warden_config)

    result = pipeline.publish(
        "refs/heads/feature/login",
        "master",
        PublishOptions(push_on_success=True, delete_source_on_success=True),
    )

    assert result.ran is True
    assert result.state is PipelineState.DONE
    assert git(origin_repo, "rev-parse", "refs/heads/master") == result.head_commit
    subjects = git(origin_repo, "log", "--format=%s", "master").splitlines()
    assert subjects == ["Test login", "Add login", "Update changelog", "Initial commit"]
    assert git(origin_repo, "merge-base", "--is-ancestor", master_tip, "master") == ""
    assert git(origin_repo, "branch", "--list", "feature/login") == ""


def test_publishes_branch_with_preserved_merge(tmp_path: Path, origin_repo: Path, warden_config: WardenConfig):
    _push_feature(origin_repo, tmp_path / "dev", _with_merge)
    _advance_master(origin_repo, tmp_path / "other")
    pipeline, work = _publisher(origin_repo, tmp_path / "work", warden_config)

    result = pipeline.publish("feature/login", "master", PublishOptions(push_on_success=True))

    assert result.ran is True
    merges = git(origin_repo, "rev-list", "--merges", "master").splitlines()
    assert len(merges) == 1
    assert git(origin_repo, "log", "-1", "--format=%s", "master") == "Merge branch 'feature/login-ui'"
    assert git(origin_repo, "rev-parse", "refs/heads/feature/login") != ""


def test_nothing_to_merge_leaves_target_untouched(tmp_path: Path, origin_repo: Path, warden_config: WardenConfig):
    seed_master = git(origin_repo, "rev-parse", "master")
    dev = clone(origin_repo, tmp_path / "dev")
    git(dev, "push", "-q", "origin", "master:refs/heads/feature/empty")
    pipeline, _ = _publisher(origin_repo, tmp_path / "work", warden_config)

    with pytest.raises(InvalidTopology):
        pipeline.publish("feature/empty", "master", PublishOptions(push_on_success=True))

    assert git(origin_repo, "rev-parse", "master") == seed_master


def test_invalid_topology_discards_rebase(tmp_path: Path, origin_repo: Path, warden_config: WardenConfig):
    _push_feature(origin_repo, tmp_path / "dev", _nested_merges)
    master_tip = _advance_master(origin_repo, tmp_path / "other")
    pipeline, work = _publisher(origin_repo, tmp_path / "work", warden_config)
    source_tip = git(origin_repo, "rev-parse", "refs/heads/feature/login")

    with pytest.raises(InvalidTopology):
        pipeline.publish("feature/login", "master", PublishOptions(push_on_success=True))

    assert git(work, "rev-parse", "refs/heads/feature/login") == source_tip
    assert git(work, "rev-parse", "HEAD") == source_tip
    assert git(work, "status", "--porcelain") == ""
    assert git(origin_repo, "rev-parse", "master") == master_tip


def test_conflicting_rebase_is_aborted(tmp_path: Path, origin_repo: Path, warden_config: WardenConfig):
    def _conflicting(dev: Path) -> None:
        commit_file(dev, "CHANGELOG.md", "feature change\n", "Edit changelog on feature")

    _push_feature(origin_repo, tmp_path / "dev", _conflicting)
    seed_tip = _advance_master(origin_repo, tmp_path / "other")
    pipeline, work = _publisher(origin_repo, tmp_path / "work", warden_config)

    with pytest.raises(CommandFailure) as exc_info:
        pipeline.publish("feature/login", "master", PublishOptions(push_on_success=True))

    assert exc_info.value.args_list[:2] == ["git", "rebase"]
    assert not (work / ".git" / "rebase-merge").exists()
    assert not (work / ".git" / "rebase-apply").exists()
    assert git(work, "status", "--porcelain") == ""
    assert git(origin_repo, "rev-parse", "master") == seed_tip


def test_access_token_never_left_in_remote_url(tmp_path: Path, warden_config: WardenConfig):
    work = tmp_path / "work"
    work.mkdir()
    git(work, "init", "-q", "-b", "master")
    configure_identity(work)
    commit_file(work, "README.md", "local\n", "Local commit")
    git(work, "remote", "add", "origin", "https://127.0.0.1:9/org/repo.git")
    pipeline = PublishPipeline(runner=GitRunner(work), config=warden_config)

    with pytest.raises(CommandFailure) as exc_info:
        pipeline.publish("feature", "master", PublishOptions(git_access_token="tok3n-value"))

    assert "tok3n-value" not in str(exc_info.value)
    assert git(work, "remote", "get-url", "origin") == "https://127.0.0.1:9/org/repo.git"
