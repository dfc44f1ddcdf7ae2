# =============================================================================
# lib/github_client.py - GitHub REST Client
# =============================================================================
# Thin httpx wrapper for the three GitHub calls the service makes:
# - POST /repos/{owner}/{repo}/dispatches          (start a build)
# - GET  /repos/{owner}/{repo}/actions/runs         (poll workflow runs)
# - GET  /repos/{owner}/{repo}/releases/tags/{tag}  (find the built APK)
#
# Usage:
#   from lib.github_client import GitHubClient
#   client = GitHubClient.from_settings()
#   status, body = client.dispatch("build-web2apk", {"request_id": "..."})
# =============================================================================

from __future__ import annotations

import logging
from typing import Any

import httpx

from app.config import settings
from lib.utils import ApplicationError

logger = logging.getLogger(__name__)

DISPATCH_TIMEOUT = 30.0
RUNS_TIMEOUT = 10.0
RELEASE_TIMEOUT = 8.0
API_VERSION = "2022-11-28"


class GitHubClientError(ApplicationError):
    """Error talking to the GitHub REST API."""

    def __init__(self, message: str, code: str = "GITHUB_ERROR", **kwargs):
        super().__init__(message, code=code, **kwargs)


class GitHubClient:
    """
    Client for one repository's dispatch, workflow-run and release APIs.

    Pass `http_client` to reuse a connection pool or to inject a mock
    transport in tests.
    """

    def __init__(
        self,
        token: str,
        owner: str,
        repo: str,
        api_url: str = "https://api.github.com",
        http_client: httpx.Client | None = None,
    ):
        self.owner = owner
        self.repo = repo
        self.base_url = f"{api_url.rstrip('/')}/repos/{owner}/{repo}"
        self.headers = {
            "Authorization": f"token {token}",
            "Accept": "application/vnd.github.v3+json",
            "X-GitHub-Api-Version": API_VERSION,
        }
        self._http = http_client or httpx.Client()

    @classmethod
    def from_settings(cls) -> "GitHubClient":
        return cls(
            token=settings.GITHUB_TOKEN,
            owner=settings.GITHUB_REPO_OWNER,
            repo=settings.GITHUB_REPO_NAME,
            api_url=settings.GITHUB_API_URL,
        )

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    def dispatch(self, event_type: str, client_payload: dict[str, Any]) -> tuple[int, str]:
        """
        Fire a repository_dispatch event.

        Returns:
            (status_code, response_text). GitHub answers 204 on success.

        Raises:
            GitHubClientError: On transport failure (no HTTP response)
        """
        try:
            response = self._http.post(
                f"{self.base_url}/dispatches",
                json={"event_type": event_type, "client_payload": client_payload},
                headers=self.headers,
                timeout=DISPATCH_TIMEOUT,
            )
        except httpx.HTTPError as e:
            raise GitHubClientError(
                message=f"Dispatch request failed: {e}",
                code="DISPATCH_TRANSPORT_ERROR",
                suggestion="Check network access to the GitHub API",
            )

        logger.debug(f"Dispatch {event_type} -> {response.status_code}")
        return response.status_code, response.text

    # -------------------------------------------------------------------------
    # Workflow runs
    # -------------------------------------------------------------------------

    def list_dispatch_runs(self, per_page: int = 20) -> list[dict[str, Any]]:
        """
        List the most recent repository_dispatch workflow runs, newest first.

        Raises:
            GitHubClientError: On transport failure or non-2xx status
        """
        try:
            response = self._http.get(
                f"{self.base_url}/actions/runs",
                params={"event": "repository_dispatch", "per_page": per_page},
                headers=self.headers,
                timeout=RUNS_TIMEOUT,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise GitHubClientError(
                message=f"Failed to list workflow runs: {e}",
                code="RUNS_FETCH_FAILED",
                suggestion="Check GITHUB_TOKEN has actions:read on the repository",
            )

        return response.json().get("workflow_runs") or []

    # -------------------------------------------------------------------------
    # Releases
    # -------------------------------------------------------------------------

    def get_release(self, tag: str) -> dict[str, Any] | None:
        """
        Fetch a release by tag.

        Returns:
            Release JSON, or None when the release does not exist (any non-200)

        Raises:
            GitHubClientError: On transport failure
        """
        try:
            response = self._http.get(
                f"{self.base_url}/releases/tags/{tag}",
                headers=self.headers,
                timeout=RELEASE_TIMEOUT,
            )
        except httpx.HTTPError as e:
            raise GitHubClientError(
                message=f"Failed to fetch release {tag}: {e}",
                code="RELEASE_FETCH_FAILED",
            )

        if response.status_code != 200:
            return None
        return response.json()

    def close(self) -> None:
        self._http.close()
