"""Exception hierarchy for merge-warden publish operations."""

from __future__ import annotations

from typing import Sequence


class MergeWardenError(Exception):
    """Base exception for merge-warden errors."""
    pass


class CommandFailure(MergeWardenError):
    """A git command exited non-zero.

    The command line and output are expected to be redacted already; the
    runner never hands plaintext secrets to this exception.
    """

    def __init__(self, args: Sequence[str], returncode: int, output: str):
        self.args_list = list(args)
        self.returncode = returncode
        self.output = output
        command = " ".join(self.args_list)
        message = f"Command failed with exit code {returncode}: {command}"
        if output.strip():
            message = f"{message}\n{output.rstrip()}"
        super().__init__(message)


class InvalidTopology(MergeWardenError):
    """Rebased history does not have the preserved-merge shape."""

    def __init__(self, commit_range: str, problems: Sequence[str]):
        self.commit_range = commit_range
        self.problems = list(problems)
        detail = "; ".join(self.problems) if self.problems else "no details"
        super().__init__(f"Invalid merge for {commit_range}: {detail}")


class LintViolation(MergeWardenError):
    """One or more commits failed the history lint rules."""

    def __init__(self, violations: Sequence[str]):
        self.violations = list(violations)
        lines = "\n".join(f"  - {violation}" for violation in self.violations)
        super().__init__(f"History lint failed with {len(self.violations)} violation(s):\n{lines}")


class LockTimeout(MergeWardenError):
    """The publish mutex was not acquired within its timeout."""

    def __init__(self, name: str, timeout: float):
        self.name = name
        self.timeout = timeout
        super().__init__(f"Timed out after {timeout:g}s waiting for publish lock '{name}'")


class PolicyViolation(MergeWardenError):
    """A requested operation is forbidden by branch policy."""
    pass


class ConfigError(MergeWardenError):
    """Raised when configuration is missing or malformed."""
    pass


class PullRequestSourceError(MergeWardenError):
    """Raised when the hosting service cannot list pull requests."""
    pass


__all__ = [
    "MergeWardenError",
    "CommandFailure",
    "InvalidTopology",
    "LintViolation",
    "LockTimeout",
    "PolicyViolation",
    "ConfigError",
    "PullRequestSourceError",
]
