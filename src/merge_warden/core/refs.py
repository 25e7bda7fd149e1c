"""Branch reference normalization."""

from __future__ import annotations

import re

HEADS_PREFIX = "refs/heads/"

_COMMIT_ID_RE = re.compile(r"^[0-9a-fA-F]{40}$")


def normalize_branch_name(ref: str) -> str:
    """Strip the ``refs/heads/`` namespace from a branch reference.

    Example: refs/heads/feature/login -> feature/login
    """
    ref = ref.strip()
    if ref.startswith(HEADS_PREFIX):
        return ref[len(HEADS_PREFIX):]
    return ref


def is_commit_id(value: str) -> bool:
    """Return True when ``value`` is a full 40-character commit hash."""
    return bool(_COMMIT_ID_RE.match(value.strip()))


def branch_ref(name: str) -> str:
    return f"{HEADS_PREFIX}{normalize_branch_name(name)}"


__all__ = ["HEADS_PREFIX", "normalize_branch_name", "is_commit_id", "branch_ref"]
