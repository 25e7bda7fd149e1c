"""Mutex-guarded publish pipeline.

Publishing a source branch into a protected target runs, in order:

1. Preparing: check out the source (or reset to a pinned commit) and clean.
2. Linting (optional): reject known-bad commit subjects and committer names.
3. Inside the named publish lock:
   rebase onto the freshly fetched target with merges re-created, validate
   the merge topology of ``target..HEAD``, fast-forward the target to the
   rebased HEAD and optionally push it (and delete the source branch).

Every failure leaves the working copy clean and out of any rebase before the
original exception propagates. A credential embedded for remote access is
removed again on every exit path.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterator
from urllib.parse import quote, urlsplit, urlunsplit

from merge_warden.core.config import WardenConfig
from merge_warden.core.errors import CommandFailure, InvalidTopology, PolicyViolation
from merge_warden.core.git_runner import GitRunner
from merge_warden.core.refs import branch_ref, is_commit_id, normalize_branch_name
from merge_warden.merge.lint import HistoryLintRules
from merge_warden.merge.mutex import with_exclusive_lock
from merge_warden.merge.topology import TopologyValidator, parse_rev_list

logger = logging.getLogger(__name__)

__all__ = [
    "PipelineState",
    "PublishOutcome",
    "PublishOptions",
    "PublishResult",
    "PublishPipeline",
    "embed_credentials",
    "strip_credentials",
]


class PipelineState(str, Enum):
    IDLE = "idle"
    PREPARING = "preparing"
    LINTING = "linting"
    REBASING = "rebasing"
    VALIDATING = "validating"
    FAST_FORWARDING = "fast-forwarding"
    PUSHING = "pushing"
    DONE = "done"
    ABORTING = "aborting"
    FAILED = "failed"


class PublishOutcome(str, Enum):
    PUBLISHED = "published"
    QUEUE_TIMEOUT = "queue-timeout"


@dataclass
class PublishOptions:
    push_on_success: bool = False
    delete_source_on_success: bool = False
    verify_commit_descriptions: bool = False
    commit_id: str | None = None
    git_user_name: str | None = None
    git_access_token: str | None = None
    lock_timeout: float | None = None


@dataclass
class PublishResult:
    """Outcome of one publish attempt.

    ``ran`` is True only when the publish lock was acquired and the protected
    block ran to completion.
    """

    ran: bool
    outcome: PublishOutcome
    state: PipelineState
    source_branch: str
    target_branch: str
    head_commit: str | None = None


StageObserver = Callable[[PipelineState, str], None]


def strip_credentials(url: str) -> str:
    """Remove any ``user:password@`` part from an http(s) URL."""
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https") or "@" not in parts.netloc:
        return url
    host = parts.netloc.rsplit("@", 1)[1]
    return urlunsplit((parts.scheme, host, parts.path, parts.query, parts.fragment))


def embed_credentials(url: str, user_name: str, token: str) -> str | None:
    """Return ``url`` with ``user_name:token`` embedded, or None for non-http remotes."""
    parts = urlsplit(strip_credentials(url))
    if parts.scheme not in ("http", "https"):
        return None
    userinfo = f"{quote(user_name, safe='')}:{quote(token, safe='')}"
    return urlunsplit((parts.scheme, f"{userinfo}@{parts.netloc}", parts.path, parts.query, parts.fragment))


@dataclass
class PublishPipeline:
    """Publish source branches into a target branch of one working copy."""

    runner: GitRunner
    config: WardenConfig = field(default_factory=WardenConfig)
    on_stage: StageObserver | None = None
    state: PipelineState = PipelineState.IDLE
    history: list[PipelineState] = field(default_factory=list)
    _clean: bool = field(default=True, init=False, repr=False)

    @property
    def remote(self) -> str:
        return self.runner.remote

    def _transition(self, state: PipelineState, detail: str = "") -> None:
        self.state = state
        self.history.append(state)
        if detail:
            logger.info("[%s] %s", state.value, self.runner.secrets.redact(detail))
        else:
            logger.info("[%s]", state.value)
        if self.on_stage is not None:
            self.on_stage(state, detail)

    def lock_name(self, remote_url: str, target: str) -> str:
        if self.config.publish.lock_name:
            return self.config.publish.lock_name
        return f"{strip_credentials(remote_url)}:{target}"

    def publish(
        self,
        source_ref: str,
        target_branch: str,
        options: PublishOptions | None = None,
    ) -> PublishResult:
        """Publish ``source_ref`` into ``target_branch``.

        Raises:
            PolicyViolation: before any git command when the request is not allowed.
            LintViolation: when commit descriptions fail verification.
            CommandFailure: when a git command fails.
            InvalidTopology: when the rebased history has the wrong shape.
        """
        options = options or PublishOptions()
        source_ref = (source_ref or options.commit_id or "").strip()
        target = normalize_branch_name(target_branch or "")
        if not source_ref or not target:
            raise PolicyViolation("Both a source ref and a target branch are required")

        source = normalize_branch_name(source_ref)
        protected = self.config.publish.protected_branch
        if options.delete_source_on_success and source.lower() == protected.lower():
            raise PolicyViolation(f"Refusing to delete protected branch '{source}'")

        checkout_target = (options.commit_id or "").strip() or source
        timeout = options.lock_timeout
        if timeout is None:
            timeout = self.config.publish.lock_timeout_seconds

        self.state = PipelineState.IDLE
        self.history = [PipelineState.IDLE]
        self._clean = True
        result = PublishResult(
            ran=False,
            outcome=PublishOutcome.QUEUE_TIMEOUT,
            state=self.state,
            source_branch=source,
            target_branch=target,
        )

        try:
            self._configure_identity()
            remote_url = self.runner.get_remote_url()
            with self._authenticated_remote(remote_url, options):
                self._prepare(checkout_target)
                if options.verify_commit_descriptions:
                    self._lint(target)

                ran = with_exclusive_lock(
                    self.lock_name(remote_url, target),
                    self.config.lock_directory(),
                    timeout,
                    lambda: self._critical_section(source, target, options, result),
                )
        except Exception:
            self._fail()
            raise

        if not ran:
            logger.warning("Publish of %s into %s timed out waiting in the queue", source, target)
            self._transition(PipelineState.FAILED, "queue timeout")
            result.state = self.state
            return result

        self._transition(PipelineState.DONE, f"{target} at {result.head_commit}")
        result.ran = True
        result.outcome = PublishOutcome.PUBLISHED
        result.state = self.state
        return result

    # Stages

    def _configure_identity(self) -> None:
        git = self.config.git
        self.runner.config("user.name", git.user_name)
        self.runner.config("user.email", git.user_email)
        self.runner.config("push.default", git.push_default)

    @contextmanager
    def _authenticated_remote(self, remote_url: str, options: PublishOptions) -> Iterator[None]:
        token = options.git_access_token
        if not token:
            yield
            return

        secrets = self.runner.secrets
        secrets.add(token)
        secrets.add(quote(token, safe=""))
        authenticated = embed_credentials(remote_url, options.git_user_name or "git", token)
        if authenticated is None:
            logger.warning("Remote %s is not an http(s) URL; access token not applied", remote_url)
            yield
            return

        secrets.add(authenticated)
        self.runner.set_remote_url(authenticated)
        try:
            yield
        finally:
            try:
                self.runner.set_remote_url(remote_url)
            except CommandFailure as exc:
                logger.warning("Could not restore remote URL: %s", exc)
                self.runner.unset_config(f"remote.{self.remote}.url")

    def _prepare(self, ref: str) -> None:
        self._transition(PipelineState.PREPARING, ref)
        self._clean = False
        if is_commit_id(ref):
            self.runner.reset_hard(ref)
        else:
            self.runner.checkout(detach=True)
            self.runner.fetch(f"+{branch_ref(ref)}:{branch_ref(ref)}")
            self.runner.checkout(ref)
        self.runner.clean(ignored=True)

    def _fetch_target(self, target: str) -> str:
        self.runner.fetch(f"+{branch_ref(target)}:refs/remotes/{self.remote}/{target}")
        return f"{self.remote}/{target}"

    def _lint(self, target: str) -> None:
        self._transition(PipelineState.LINTING, target)
        upstream = self._fetch_target(target)
        rules = HistoryLintRules(
            target_branch=target,
            remote=self.remote,
            extra_patterns=self.config.lint.forbidden_subjects,
            exempt_committers=[self.config.git.user_name],
        )
        rules.verify_range(self.runner, f"{upstream}..HEAD")

    def _critical_section(
        self,
        source: str,
        target: str,
        options: PublishOptions,
        result: PublishResult,
    ) -> None:
        self._transition(PipelineState.REBASING, target)
        upstream = self._fetch_target(target)
        pre_rebase_head = self.runner.rev_parse("HEAD")
        try:
            self.runner.rebase(upstream)
        except CommandFailure:
            logger.error("Rebase onto %s failed, restoring a clean working copy", upstream)
            self._restore_working_copy()
            raise

        commit_range = f"{upstream}..HEAD"
        self._transition(PipelineState.VALIDATING, commit_range)
        validator = TopologyValidator()
        for record in parse_rev_list(self.runner.rev_list_parents(commit_range)):
            validator.feed(record)
        if not validator.finish():
            self._discard_rebase(pre_rebase_head)
            raise InvalidTopology(commit_range, validator.problems)

        head = self.runner.rev_parse("HEAD")
        self._transition(PipelineState.FAST_FORWARDING, f"{target} -> {head}")
        self.runner.checkout_reset(target, upstream)
        self.runner.merge_ff_only(head)
        result.head_commit = head

        if options.push_on_success:
            self._transition(PipelineState.PUSHING, target)
            self.runner.push(f"{branch_ref(target)}:{branch_ref(target)}")
            if options.delete_source_on_success:
                if is_commit_id(source):
                    logger.warning("Source %s is a pinned commit; nothing to delete", source)
                else:
                    self.runner.push(f":{branch_ref(source)}")
                    logger.info("Deleted source branch %s", source)

    # Recovery

    def _discard_rebase(self, pre_rebase_head: str) -> None:
        discarded = self.runner.reset_hard(pre_rebase_head, ignore_errors=True)
        if not discarded.ok:
            logger.warning("Could not reset working copy back to %s", pre_rebase_head)

    def _restore_working_copy(self) -> None:
        """Leave no rebase in progress and no stray files behind."""
        abort = self.runner.rebase_abort()
        if not abort.ok:
            logger.debug("rebase --abort exited %d", abort.returncode)
        cleaned = self.runner.clean(ignored=False, ignore_errors=True)
        if not cleaned.ok:
            logger.warning("Could not clean working copy at %s", self.runner.repo_root)
        self._clean = True

    def _fail(self) -> None:
        self._transition(PipelineState.ABORTING)
        if not self._clean:
            self._restore_working_copy()
        self._transition(PipelineState.FAILED)
