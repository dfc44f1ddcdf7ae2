# =============================================================================
# core/services/status_service.py - Build Status Resolution
# =============================================================================
# Answers GET /check-status/{build_id} by matching the build id against
# recent repository_dispatch workflow runs and, once a run succeeds, the
# release the workflow publishes under the tag build-<build id>.
# =============================================================================

from __future__ import annotations

import logging
from typing import Any

from app.exceptions import MissingBuildIdError, StatusCheckError
from core.models.build import StatusResponse
from lib.github_client import GitHubClient, GitHubClientError

logger = logging.getLogger(__name__)

RECENT_RUN_WINDOW = 5
RUNS_PER_PAGE = 20

PROGRESS_BY_STATUS = {
    "queued": 10,
    "in_progress": 50,
}
DEFAULT_PROGRESS = 5


def release_tag(build_id: str) -> str:
    return f"build-{build_id}"


def find_run(runs: list[dict[str, Any]], build_id: str) -> dict[str, Any] | None:
    """
    Pick the workflow run belonging to `build_id`.

    Matches on the run title or head commit message; failing that, falls
    back to one of the most recent runs whose commit message mentions
    client_payload.
    """
    for index, run in enumerate(runs):
        title = run.get("display_title") or ""
        message = (run.get("head_commit") or {}).get("message") or ""

        if build_id in title or build_id in message:
            return run
        if "client_payload" in message and index < RECENT_RUN_WINDOW:
            return run
    return None


def find_apk(release: dict[str, Any] | None) -> str | None:
    """Download URL of the first .apk asset of a release."""
    if not release:
        return None
    for asset in release.get("assets") or []:
        if (asset.get("name") or "").endswith(".apk"):
            return asset.get("browser_download_url")
    return None


class StatusService:
    """Resolves a build id to a StatusResponse."""

    def __init__(self, github: GitHubClient):
        self.github = github

    def check(self, build_id: str) -> StatusResponse:
        """
        Report the state of a build.

        Raises:
            MissingBuildIdError: blank build id
            StatusCheckError: workflow runs could not be listed
        """
        build_id = (build_id or "").strip()
        if not build_id:
            raise MissingBuildIdError()

        try:
            runs = self.github.list_dispatch_runs(per_page=RUNS_PER_PAGE)
        except GitHubClientError as e:
            logger.error(f"[{build_id}] Status check error: {e.message}")
            raise StatusCheckError(e.message)

        run = find_run(runs, build_id)

        if run is None:
            release = self._fetch_release(build_id)
            download_url = find_apk(release)
            if download_url:
                return StatusResponse(
                    build_id=build_id,
                    completed=True,
                    status="success",
                    download_url=download_url,
                    created_at=release.get("created_at"),
                )
            return StatusResponse(
                build_id=build_id,
                completed=False,
                status="pending",
                progress=DEFAULT_PROGRESS,
                message="Build queued, waiting for GitHub Actions...",
            )

        status = run.get("status") or "unknown"
        conclusion = run.get("conclusion")

        if status == "completed" and conclusion == "success":
            release = self._fetch_release(build_id)
            download_url = find_apk(release)
            if download_url:
                return StatusResponse(
                    build_id=build_id,
                    completed=True,
                    status="success",
                    download_url=download_url,
                    completed_at=run.get("updated_at"),
                    app_name=run.get("display_title"),
                    progress=100,
                )
            return StatusResponse(
                build_id=build_id,
                completed=False,
                status="publishing",
                progress=95,
                message="Build successful, creating release...",
            )

        if status == "completed" and conclusion == "failure":
            return StatusResponse(
                build_id=build_id,
                completed=True,
                status="failed",
                run_url=run.get("html_url"),
                error="Build failed in GitHub Actions",
                progress=0,
            )

        return StatusResponse(
            build_id=build_id,
            completed=False,
            status=status,
            progress=PROGRESS_BY_STATUS.get(status, DEFAULT_PROGRESS),
            run_url=run.get("html_url"),
            message=f"Build {status}...",
        )

    def _fetch_release(self, build_id: str) -> dict[str, Any] | None:
        # A missing or unreachable release only means "not published yet"
        try:
            return self.github.get_release(release_tag(build_id))
        except GitHubClientError as e:
            logger.info(f"[{build_id}] Release check error: {e.message}")
            return None
