"""Core utilities: errors, redaction, refs, configuration and git runner."""

from .errors import (
    CommandFailure,
    ConfigError,
    InvalidTopology,
    LintViolation,
    LockTimeout,
    MergeWardenError,
    PolicyViolation,
    PullRequestSourceError,
)
from .git_runner import GitResult, GitRunner
from .redaction import MASK, SecretSet, redact
from .refs import is_commit_id, normalize_branch_name

__all__ = [
    "CommandFailure",
    "ConfigError",
    "InvalidTopology",
    "LintViolation",
    "LockTimeout",
    "MergeWardenError",
    "PolicyViolation",
    "PullRequestSourceError",
    "GitResult",
    "GitRunner",
    "MASK",
    "SecretSet",
    "redact",
    "is_commit_id",
    "normalize_branch_name",
]
