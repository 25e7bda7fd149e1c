"""Merge-topology validation for rebased history.

After ``git rebase --rebase-merges <target>`` the range ``target..HEAD`` must
look like a straight line of commits with at most one re-created merge open
at any time, each merge closed again before the next one opens. The listing
comes from ``git rev-list --parents --topo-order``: newest first, each line
being a commit followed by its parents.

The validator walks that listing once. It follows the *continuation parent*
(the last parent listed) from record to record and remembers where the open
merge segment must end (the merge's first parent). Anything else is reported
as a problem and latches the verdict to invalid.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Sequence

logger = logging.getLogger(__name__)

CommitParentRecord = tuple[str, ...]

__all__ = [
    "CommitParentRecord",
    "TopologyResult",
    "ValidatorState",
    "TopologyValidator",
    "parse_rev_list",
    "validate_topology",
]


class TopologyResult(str, Enum):
    UNDETERMINED = "undetermined"
    VALID = "valid"
    INVALID = "invalid"


@dataclass
class ValidatorState:
    """Pending identifiers and verdict for one validation run."""

    expected_next: str | None = None
    expected_end: str | None = None
    result: TopologyResult = TopologyResult.UNDETERMINED

    def invalidate(self) -> None:
        self.result = TopologyResult.INVALID

    def settle(self) -> None:
        # INVALID is absorbing; only an undetermined verdict may become VALID.
        if self.result is TopologyResult.UNDETERMINED:
            self.result = TopologyResult.VALID


@dataclass
class TopologyValidator:
    """Streaming verifier; feed records in listing order, then call finish()."""

    state: ValidatorState = field(default_factory=ValidatorState)
    problems: list[str] = field(default_factory=list)
    seen: int = 0

    def _problem(self, message: str) -> None:
        logger.warning(message)
        self.problems.append(message)
        self.state.invalidate()

    def feed(self, record: Sequence[str]) -> None:
        if not record:
            self._problem("Empty commit record")
            return

        state = self.state
        current, parents = record[0], tuple(record[1:])
        self.seen += 1

        if not parents:
            self._problem(f"Commit {current} has no parents inside the merged range")
            return

        if state.expected_next is not None and state.expected_next != current:
            self._problem(f"Commit {current} is out of place, expected {state.expected_next}")

        state.expected_next = parents[-1]

        if state.expected_next == state.expected_end:
            state.expected_end = None

        if len(parents) == 2:
            if state.expected_end is not None:
                self._problem(
                    f"Merge commit {current} is invalid: merge segment ending at "
                    f"{state.expected_end} is still open"
                )
            else:
                state.expected_end = parents[0]

        state.settle()

    def finish(self) -> bool:
        state = self.state
        if self.seen == 0 or state.result is TopologyResult.UNDETERMINED:
            self._problem("Nothing to merge")
        elif state.expected_end is not None:
            self._problem(f"Merge segment ending at {state.expected_end} is never closed")
        return state.result is TopologyResult.VALID


def parse_rev_list(output: str) -> list[CommitParentRecord]:
    """Split ``git rev-list --parents`` output into commit/parent records."""
    return [tuple(line.split()) for line in output.splitlines() if line.strip()]


def validate_topology(records: Iterable[Sequence[str]]) -> bool:
    """Return True iff ``records`` form a valid preserved-merge history.

    Never raises on malformed input; malformed input is simply invalid.
    """
    validator = TopologyValidator()
    for record in records:
        validator.feed(record)
    return validator.finish()
