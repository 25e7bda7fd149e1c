"""History lint rules applied to the commits about to be published."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable

from merge_warden.core.errors import ConfigError, LintViolation
from merge_warden.core.git_runner import GitRunner

logger = logging.getLogger(__name__)

__all__ = ["LintedCommit", "HistoryLintRules", "LOG_FORMAT", "parse_log"]

# Unit separator keeps subjects containing tabs or spaces intact.
LOG_FORMAT = "%H%x1f%cn%x1f%s"
_FIELD_SEP = "\x1f"

DEFAULT_FORBIDDEN_SUBJECTS = (
    r"^fixup! ",
    r"^squash! ",
    r"^amend! ",
    r"^(?i:wip)\b",
)

_COMMITTER_NAME_RE = re.compile(r"^\S+(?:\s+\S+)+$")


@dataclass(frozen=True)
class LintedCommit:
    commit: str
    committer: str
    subject: str


def parse_log(output: str) -> list[LintedCommit]:
    commits = []
    for line in output.splitlines():
        if not line.strip():
            continue
        parts = line.split(_FIELD_SEP, 2)
        while len(parts) < 3:
            parts.append("")
        commits.append(LintedCommit(commit=parts[0], committer=parts[1], subject=parts[2]))
    return commits


@dataclass
class HistoryLintRules:
    """Regex subject rules plus the committer-name format check."""

    target_branch: str
    remote: str = "origin"
    extra_patterns: Iterable[str] = ()
    exempt_committers: Iterable[str] = ()
    patterns: list[re.Pattern[str]] = field(init=False)

    def __post_init__(self) -> None:
        target = re.escape(self.target_branch)
        remote = re.escape(self.remote)
        sources = [
            *DEFAULT_FORBIDDEN_SUBJECTS,
            rf"^Merge branch '{target}'",
            rf"^Merge remote-tracking branch '{remote}/{target}'",
            *self.extra_patterns,
        ]
        self.patterns = []
        for source in sources:
            try:
                self.patterns.append(re.compile(source))
            except re.error as exc:
                raise ConfigError(f"Invalid forbidden subject pattern {source!r}: {exc}") from exc
        self.exempt_committers = frozenset(self.exempt_committers)

    def check_commit(self, commit: LintedCommit) -> list[str]:
        violations = []
        short = commit.commit[:10]
        for pattern in self.patterns:
            if pattern.search(commit.subject):
                violations.append(
                    f"{short}: subject {commit.subject!r} matches forbidden pattern {pattern.pattern!r}"
                )
                break
        name = commit.committer.strip()
        if name not in self.exempt_committers and not _COMMITTER_NAME_RE.match(name):
            violations.append(
                f"{short}: committer name {commit.committer!r} must be a first and last name"
            )
        return violations

    def check(self, commits: Iterable[LintedCommit]) -> list[str]:
        violations: list[str] = []
        for commit in commits:
            violations.extend(self.check_commit(commit))
        return violations

    def verify_range(self, runner: GitRunner, commit_range: str) -> None:
        """Lint every commit in ``commit_range``.

        Raises:
            LintViolation: listing every violation found.
        """
        commits = parse_log(runner.log(LOG_FORMAT, commit_range))
        violations = self.check(commits)
        if violations:
            for violation in violations:
                logger.warning(violation)
            raise LintViolation(violations)
        logger.info("History lint passed for %d commit(s) in %s", len(commits), commit_range)
