from __future__ import annotations

from pathlib import Path
from typing import Iterator

import pytest

from merge_warden.core.config import WardenConfig
from tests.utils import clone, commit_file, configure_identity, git, run


@pytest.fixture(autouse=True)
def warden_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep config and lock files out of the real home directory."""
    home = tmp_path / "warden-home"
    monkeypatch.setenv("MERGE_WARDEN_HOME", str(home))
    monkeypatch.delenv("BUILD_SOURCEVERSION", raising=False)
    monkeypatch.delenv("MERGE_WARDEN_GIT_TOKEN", raising=False)
    return home


@pytest.fixture()
def warden_config(tmp_path: Path) -> WardenConfig:
    config = WardenConfig()
    config.publish.lock_dir = str(tmp_path / "locks")
    return config


@pytest.fixture()
def temp_repo(tmp_path: Path) -> Iterator[Path]:
    repo_dir = tmp_path / "repo"
    repo_dir.mkdir()
    run(["git", "init", "-q", "-b", "master"], cwd=repo_dir)
    configure_identity(repo_dir)
    yield repo_dir


@pytest.fixture()
def origin_repo(tmp_path: Path) -> Path:
    """Bare origin whose master holds a single initial commit."""
    origin = tmp_path / "origin.git"
    origin.mkdir()
    run(["git", "init", "-q", "--bare", "-b", "master"], cwd=origin)

    seed = clone(origin, tmp_path / "seed")
    commit_file(seed, "README.md", "seed\n", "Initial commit")
    git(seed, "push", "-q", "origin", "HEAD:refs/heads/master")
    return origin
