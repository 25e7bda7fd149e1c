"""Merge subpackage: topology validation, lint rules, publish lock and pipeline.

Modules:
    topology: Single-pass validation of preserved-merge history
    lint: Commit subject and committer name rules
    mutex: Named cross-process publish lock
    pipeline: Fetch, rebase, validate, fast-forward and push
"""

from __future__ import annotations

from .pipeline import (
    PipelineState,
    PublishOptions,
    PublishOutcome,
    PublishPipeline,
    PublishResult,
)
from .topology import TopologyValidator, parse_rev_list, validate_topology

__all__ = [
    "PipelineState",
    "PublishOptions",
    "PublishOutcome",
    "PublishPipeline",
    "PublishResult",
    "TopologyValidator",
    "parse_rev_list",
    "validate_topology",
]
