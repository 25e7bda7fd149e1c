"""Git command runner with output capture and secret redaction.

Every command runs synchronously in the working copy, with stdout and stderr
combined into a single captured stream. Captured text is redacted against the
run's :class:`SecretSet` before it is logged or attached to an exception.
"""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path

from merge_warden.core.errors import CommandFailure
from merge_warden.core.redaction import SecretSet

logger = logging.getLogger(__name__)

__all__ = ["GitResult", "GitRunner"]


@dataclass(frozen=True)
class GitResult:
    """Exit status and redacted combined output of one git command."""

    returncode: int
    output: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class GitRunner:
    """Run git commands against a single working copy."""

    def __init__(
        self,
        repo_root: Path,
        secrets: SecretSet | None = None,
        remote: str = "origin",
        git_executable: str = "git",
    ) -> None:
        self.repo_root = Path(repo_root)
        self.secrets = secrets if secrets is not None else SecretSet()
        self.remote = remote
        self.git_executable = git_executable

    def _env(self) -> dict[str, str]:
        env = dict(os.environ)
        # Never block on a credential prompt or an editor.
        env["GIT_TERMINAL_PROMPT"] = "0"
        env["GIT_EDITOR"] = "true"
        return env

    def run(self, *args: str, ignore_errors: bool = False) -> GitResult:
        """Run ``git <args>`` and return its redacted result.

        Raises:
            CommandFailure: on a non-zero exit, unless ``ignore_errors`` is set.
        """
        display = self.secrets.redact(" ".join(["git", *args]))
        logger.debug("Running: %s", display)
        try:
            completed = subprocess.run(
                [self.git_executable, *args],
                cwd=str(self.repo_root),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                encoding="utf-8",
                errors="replace",
                check=False,
                env=self._env(),
            )
            returncode = completed.returncode
            output = completed.stdout or ""
        except FileNotFoundError:
            returncode = 127
            output = f"{self.git_executable} executable not found on PATH"

        output = self.secrets.redact(output)
        if output.strip():
            logger.debug("%s", output.rstrip())

        result = GitResult(returncode=returncode, output=output)
        if not result.ok:
            if ignore_errors:
                logger.debug("Ignoring exit code %d from: %s", returncode, display)
            else:
                raise CommandFailure(
                    [self.secrets.redact(arg) for arg in ["git", *args]],
                    returncode,
                    output,
                )
        return result

    def output(self, *args: str) -> str:
        return self.run(*args).output.strip()

    # Working copy

    def config(self, key: str, value: str) -> None:
        self.run("config", key, value)

    def unset_config(self, key: str) -> None:
        self.run("config", "--unset", key, ignore_errors=True)

    def checkout(self, ref: str | None = None, *, detach: bool = False) -> None:
        args = ["checkout", "-q"]
        if detach:
            args.append("--detach")
        if ref:
            args.append(ref)
        self.run(*args)

    def checkout_reset(self, branch: str, start_point: str) -> None:
        """Check out ``branch``, creating or resetting it at ``start_point``."""
        self.run("checkout", "-q", "-B", branch, start_point)

    def reset_hard(self, ref: str, *, ignore_errors: bool = False) -> GitResult:
        return self.run("reset", "--hard", ref, ignore_errors=ignore_errors)

    def clean(self, *, ignored: bool = True, ignore_errors: bool = False) -> GitResult:
        flags = "-fdx" if ignored else "-fd"
        return self.run("clean", flags, ignore_errors=ignore_errors)

    # History

    def rebase(self, upstream: str, *, rebase_merges: bool = True) -> None:
        args = ["rebase"]
        if rebase_merges:
            args.append("--rebase-merges")
        args.append(upstream)
        self.run(*args)

    def rebase_abort(self) -> GitResult:
        return self.run("rebase", "--abort", ignore_errors=True)

    def rev_parse(self, ref: str) -> str:
        return self.output("rev-parse", ref)

    def rev_list_parents(self, commit_range: str) -> str:
        return self.run("rev-list", "--parents", "--topo-order", commit_range).output

    def log(self, pretty: str, commit_range: str) -> str:
        return self.run("log", f"--pretty=format:{pretty}", commit_range).output

    def merge_ff_only(self, ref: str) -> None:
        self.run("merge", "--ff-only", ref)

    # Remote

    def fetch(self, refspec: str) -> None:
        self.run("fetch", self.remote, refspec)

    def push(self, refspec: str) -> None:
        self.run("push", self.remote, refspec)

    def get_remote_url(self) -> str:
        return self.output("remote", "get-url", self.remote)

    def set_remote_url(self, url: str) -> None:
        self.run("remote", "set-url", self.remote, url)
