"""Active pull-request listing from the hosting service REST API."""

from __future__ import annotations

import base64
import logging
import ssl
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import quote

import httpx
import truststore

from merge_warden.core.config import ServiceSettings
from merge_warden.core.errors import PullRequestSourceError
from merge_warden.core.redaction import SecretSet
from merge_warden.core.refs import normalize_branch_name

logger = logging.getLogger(__name__)

API_VERSION = "6.0"

__all__ = ["PullRequest", "PullRequestSource", "basic_auth_header"]


@dataclass(frozen=True)
class PullRequest:
    pull_request_id: int
    title: str
    source_ref: str
    target_ref: str

    @property
    def source_branch(self) -> str:
        return normalize_branch_name(self.source_ref)

    @property
    def target_branch(self) -> str:
        return normalize_branch_name(self.target_ref)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PullRequest":
        try:
            source_ref = data["sourceRefName"]
            target_ref = data["targetRefName"]
        except KeyError as exc:
            raise PullRequestSourceError(f"Pull request is missing {exc.args[0]}") from exc
        try:
            pull_request_id = int(data.get("pullRequestId") or 0)
        except (TypeError, ValueError) as exc:
            raise PullRequestSourceError(f"Invalid pullRequestId: {data.get('pullRequestId')!r}") from exc
        return cls(
            pull_request_id=pull_request_id,
            title=str(data.get("title") or ""),
            source_ref=str(source_ref),
            target_ref=str(target_ref),
        )


def basic_auth_header(token: str) -> dict[str, str]:
    """Return an Authorization header for a personal access token."""
    encoded = base64.b64encode(f":{token}".encode("utf-8")).decode("ascii")
    return {"Authorization": f"Basic {encoded}"}


class PullRequestSource:
    """Poll the hosting service for active pull requests of one repository."""

    def __init__(
        self,
        settings: ServiceSettings,
        access_token: str,
        secrets: SecretSet | None = None,
    ) -> None:
        if not settings.is_configured:
            raise PullRequestSourceError(
                "Pull request source requires service.organization_url, service.project "
                "and service.repository to be configured"
            )
        self.settings = settings
        self.access_token = access_token
        self.secrets = secrets if secrets is not None else SecretSet()
        self.secrets.add(access_token)
        self._http_client: Optional[httpx.Client] = None

    @property
    def endpoint(self) -> str:
        base = self.settings.organization_url.rstrip("/")
        project = quote(self.settings.project, safe="")
        repository = quote(self.settings.repository, safe="")
        return f"{base}/{project}/_apis/git/repositories/{repository}/pullrequests"

    def _get_http_client(self) -> httpx.Client:
        if self._http_client is None:
            ssl_context = truststore.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
            self._http_client = httpx.Client(verify=ssl_context, timeout=30.0)
        return self._http_client

    def close(self) -> None:
        if self._http_client is not None:
            self._http_client.close()
            self._http_client = None

    def __enter__(self) -> "PullRequestSource":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False

    def active_pull_requests(self, target_branch: str | None = None) -> list[PullRequest]:
        """List active pull requests, optionally only those into ``target_branch``.

        Raises:
            PullRequestSourceError: If the service cannot be reached or answers
                with an error or an unexpected payload.
        """
        client = self._get_http_client()
        params = {"searchCriteria.status": "active", "api-version": API_VERSION}
        logger.debug("GET %s", self.endpoint)

        try:
            response = client.get(
                self.endpoint,
                params=params,
                headers=basic_auth_header(self.access_token),
            )
        except httpx.RequestError as exc:
            raise PullRequestSourceError(
                self.secrets.redact(f"Cannot reach {self.settings.organization_url}: {exc}")
            ) from exc

        if response.status_code in (401, 403):
            raise PullRequestSourceError("Access token was rejected by the hosting service")
        if response.status_code != 200:
            raise PullRequestSourceError(f"Server error: {response.status_code}")

        try:
            data = response.json()
        except ValueError as exc:
            raise PullRequestSourceError("Invalid server response") from exc

        items = data.get("value") if isinstance(data, dict) else None
        if not isinstance(items, list):
            raise PullRequestSourceError("Invalid server response")

        pull_requests = [PullRequest.from_dict(item) for item in items if isinstance(item, dict)]
        if target_branch:
            wanted = normalize_branch_name(target_branch).lower()
            pull_requests = [pr for pr in pull_requests if pr.target_branch.lower() == wanted]
        logger.info("Found %d active pull request(s)", len(pull_requests))
        return pull_requests
