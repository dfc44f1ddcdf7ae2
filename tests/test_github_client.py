# =============================================================================
# tests/test_github_client.py - GitHub REST Client Tests
# =============================================================================
# Requests are served by httpx.MockTransport; nothing leaves the process.
#
# Run with: pytest tests/test_github_client.py -v
# =============================================================================

import json

import httpx
import pytest

from lib.github_client import GitHubClient, GitHubClientError


def make_client(handler) -> GitHubClient:
    return GitHubClient(
        token="secret",
        owner="acme",
        repo="builds",
        http_client=httpx.Client(transport=httpx.MockTransport(handler)),
    )


class TestDispatch:
    """Tests for repository_dispatch."""

    def test_sends_event_with_headers(self):
        """
        Test that dispatch posts the event to the repository endpoint.
        """
        # Arrange
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["request"] = request
            return httpx.Response(204)

        client = make_client(handler)

        # Act
        status, body = client.dispatch("build-web2apk", {"request_id": "123-abc"})

        # Assert
        request = captured["request"]
        assert status == 204
        assert body == ""
        assert request.method == "POST"
        assert str(request.url) == "https://api.github.com/repos/acme/builds/dispatches"
        assert request.headers["Authorization"] == "token secret"
        assert request.headers["Accept"] == "application/vnd.github.v3+json"
        assert request.headers["X-GitHub-Api-Version"] == "2022-11-28"
        assert json.loads(request.content) == {
            "event_type": "build-web2apk",
            "client_payload": {"request_id": "123-abc"},
        }

    def test_returns_error_status(self):
        client = make_client(lambda request: httpx.Response(422, text="Invalid event"))

        assert client.dispatch("x", {}) == (422, "Invalid event")

    def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        with pytest.raises(GitHubClientError) as exc_info:
            make_client(handler).dispatch("x", {})

        assert exc_info.value.code == "DISPATCH_TRANSPORT_ERROR"


class TestWorkflowRuns:
    """Tests for listing workflow runs."""

    def test_lists_dispatch_runs(self):
        captured = {}

        def handler(request):
            captured["params"] = dict(request.url.params)
            return httpx.Response(200, json={"workflow_runs": [{"id": 1}]})

        runs = make_client(handler).list_dispatch_runs(per_page=20)

        assert runs == [{"id": 1}]
        assert captured["params"] == {"event": "repository_dispatch", "per_page": "20"}

    def test_missing_runs_key(self):
        client = make_client(lambda request: httpx.Response(200, json={}))

        assert client.list_dispatch_runs() == []

    def test_http_error_raises(self):
        client = make_client(lambda request: httpx.Response(401, json={"message": "Bad credentials"}))

        with pytest.raises(GitHubClientError) as exc_info:
            client.list_dispatch_runs()

        assert exc_info.value.code == "RUNS_FETCH_FAILED"


class TestReleases:
    """Tests for release lookup."""

    def test_found(self):
        def handler(request):
            assert request.url.path == "/repos/acme/builds/releases/tags/build-1-a"
            return httpx.Response(200, json={"tag_name": "build-1-a", "assets": []})

        release = make_client(handler).get_release("build-1-a")

        assert release["tag_name"] == "build-1-a"

    def test_not_found_returns_none(self):
        client = make_client(lambda request: httpx.Response(404, json={"message": "Not Found"}))

        assert client.get_release("build-1-a") is None

    def test_transport_error(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out")

        with pytest.raises(GitHubClientError) as exc_info:
            make_client(handler).get_release("build-1-a")

        assert exc_info.value.code == "RELEASE_FETCH_FAILED"


def test_from_settings_uses_configured_repo():
    client = GitHubClient.from_settings()

    assert client.base_url == "https://api.github.com/repos/test-owner/test-repo"
    client.close()
