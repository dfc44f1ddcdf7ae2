# =============================================================================
# tests/test_api.py - Endpoint Tests
# =============================================================================
# Exercises the HTTP contract through FastAPI's TestClient. Storage and
# GitHub are replaced via app.dependency_overrides (see conftest.py).
#
# Run with: pytest tests/test_api.py -v
# =============================================================================

import re

import pytest

from app.config import settings
from lib.github_client import GitHubClientError
from tests.conftest import make_corrupt_zip

FIELDS = {"appName": "My App", "packageName": "com.example.app", "uploadType": "folder"}
PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def build_files(icon_type="image/png", pages=None):
    pages = pages or [("index.html", b"<html>home</html>", "text/html"), ("app.js", b"1", "text/javascript")]
    return [("icon", ("icon.png", PNG, icon_type))] + [("projectFiles", page) for page in pages]


def assert_error(response, status_code, code):
    body = response.json()
    assert response.status_code == status_code
    assert body["success"] is False
    assert body["code"] == code
    assert body["error"]
    assert body["timestamp"].endswith("Z")
    return body


# =============================================================================
# Root and Health
# =============================================================================

class TestHealth:
    """Tests for service info endpoints."""

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["name"] == "BuildRelay API"

    def test_health(self, client):
        body = client.get("/health").json()

        assert body["success"] is True
        assert body["status"] == "healthy"
        assert body["version"] == "4.0.0"
        assert body["environment"] == "development"
        assert body["features"]["webToApk"] is True
        assert body["features"]["toolchainDetection"] is True

    def test_ready(self, client):
        body = client.get("/health/ready").json()

        assert body["status"] == "ready"
        assert body["checks"] == {"storage": "configured", "ci": "configured"}

    def test_ready_degraded_without_github(self, client, monkeypatch):
        monkeypatch.setattr(settings, "GITHUB_REPO_NAME", "")

        body = client.get("/health/ready").json()

        assert body["status"] == "degraded"
        assert body["checks"]["ci"] == "missing"

    def test_live(self, client):
        assert client.get("/health/live").json()["status"] == "alive"


# =============================================================================
# POST /build-web2apk
# =============================================================================

class TestBuild:
    """Tests for build submission."""

    def test_successful_build(self, client, mock_storage, mock_github):
        """
        Test that a valid request uploads inputs and dispatches the workflow.
        """
        # Act
        response = client.post("/build-web2apk", data=FIELDS, files=build_files())

        # Assert: response body
        body = response.json()
        assert response.status_code == 200
        assert body["success"] is True
        assert re.fullmatch(r"\d{13}-[0-9a-f]{8}", body["build_id"])
        assert body["safe_app_name"] == "my_app"
        assert body["icon_url"] == mock_storage.upload_icon.return_value
        assert body["zip_url"] == mock_storage.upload_archive.return_value
        assert body["upload_type"] == "folder"
        assert body["intelligent_build"] is True
        assert body["check_status_url"] == f"/check-status/{body['build_id']}"

        # Assert: upstream calls
        icon = mock_storage.upload_icon.call_args.args[0]
        assert icon.read_bytes() == PNG
        _, payload = mock_github.dispatch.call_args.args
        assert payload["request_id"] == body["build_id"]

    def test_missing_env(self, client, monkeypatch):
        monkeypatch.setattr(settings, "GITHUB_TOKEN", "")

        response = client.post("/build-web2apk", data=FIELDS, files=build_files())

        assert_error(response, 500, "MISSING_ENV")

    def test_missing_fields(self, client):
        response = client.post("/build-web2apk", data={"appName": "My App"}, files=build_files())

        assert_error(response, 400, "MISSING_FIELDS")

    def test_invalid_package(self, client):
        data = {**FIELDS, "packageName": "com.Example.App"}

        response = client.post("/build-web2apk", data=data, files=build_files())

        body = assert_error(response, 400, "INVALID_PACKAGE")
        assert "com.example.app" in body["error"]

    def test_missing_files(self, client):
        response = client.post("/build-web2apk", data=FIELDS)

        assert_error(response, 400, "MISSING_FILES")

    def test_invalid_icon(self, client):
        response = client.post("/build-web2apk", data=FIELDS, files=build_files(icon_type="text/plain"))

        assert_error(response, 400, "INVALID_ICON")

    def test_too_many_files(self, client, monkeypatch):
        monkeypatch.setattr(settings, "MAX_FILES", 1)

        response = client.post("/build-web2apk", data=FIELDS, files=build_files())

        assert_error(response, 413, "TOO_MANY_FILES")

    def test_more_than_a_thousand_files(self, client, mock_github):
        """
        Test that folder uploads up to MAX_FILES are accepted.
        """
        # Arrange: icon + index.html + 1100 assets
        pages = [("index.html", b"<html>home</html>", "text/html")]
        pages += [(f"asset-{i}.txt", b"x", "text/plain") for i in range(1100)]

        # Act
        response = client.post("/build-web2apk", data=FIELDS, files=build_files(pages=pages))

        # Assert
        assert response.status_code == 200
        mock_github.dispatch.assert_called_once()

    def test_form_above_file_limit(self, client, monkeypatch, mock_storage):
        monkeypatch.setattr(settings, "MAX_FILES", 5)
        pages = [(f"page-{i}.html", b"<html>", "text/html") for i in range(10)]

        response = client.post("/build-web2apk", data=FIELDS, files=build_files(pages=pages))

        body = assert_error(response, 413, "TOO_MANY_FILES")
        assert body["details"] == {"limit": 5}
        mock_storage.upload_icon.assert_not_called()

    def test_file_too_large(self, client, monkeypatch, mock_storage):
        monkeypatch.setattr(settings, "MAX_FILE_SIZE_MB", 1)
        pages = [("video.mp4", b"\x00" * (1024 * 1024 + 1), "video/mp4")]

        response = client.post("/build-web2apk", data=FIELDS, files=build_files(pages=pages))

        body = assert_error(response, 413, "FILE_TOO_LARGE")
        assert body["details"] == {"filename": "video.mp4"}
        mock_storage.upload_icon.assert_not_called()

    def test_no_entry_point(self, client, mock_github):
        pages = [("style.css", b"body {}", "text/css"), ("app.js", b"1", "text/javascript")]

        response = client.post("/build-web2apk", data=FIELDS, files=build_files(pages=pages))

        assert_error(response, 500, "ZIP_PROCESSING_FAIL")
        mock_github.dispatch.assert_not_called()

    def test_zip_with_damaged_manifest_is_built(self, client, mock_github):
        data = make_corrupt_zip("app/pubspec.yaml", "environment:\n  sdk: ^3.4.0\n", {"app/web/index.html": "<html>"})
        pages = [("app.zip", data, "application/zip")]

        response = client.post(
            "/build-web2apk",
            data={**FIELDS, "uploadType": "zip"},
            files=build_files(pages=pages),
        )

        assert response.status_code == 200
        assert response.json()["flutter_version"] is None
        mock_github.dispatch.assert_called_once()

    def test_dispatch_failure(self, client, mock_github):
        mock_github.dispatch.return_value = (401, '{"message": "Bad credentials"}')

        response = client.post("/build-web2apk", data=FIELDS, files=build_files())

        body = assert_error(response, 500, "GITHUB_DISPATCH_FAILED")
        assert body["details"] == {"status": 401, "body": '{"message": "Bad credentials"}'}

    def test_disk_strategy_cleans_up(self, client, monkeypatch, tmp_path, mock_storage):
        """
        Test that spooled uploads are readable during the build and removed after it.
        """
        # Arrange
        monkeypatch.setattr(settings, "UPLOAD_STRATEGY", "disk")
        monkeypatch.setattr(settings, "TEMP_DIR", str(tmp_path))
        seen = {}

        def capture_icon(icon, package_name, build_id):
            seen["path"] = icon.path
            seen["bytes"] = icon.read_bytes()
            return "https://cdn.test/icon.png"

        mock_storage.upload_icon.side_effect = capture_icon

        # Act
        response = client.post("/build-web2apk", data=FIELDS, files=build_files())

        # Assert
        assert response.status_code == 200
        assert seen["bytes"] == PNG
        assert seen["path"].is_relative_to(tmp_path)
        assert list(tmp_path.iterdir()) == []

    def test_work_dir_removed_on_failure(self, client, monkeypatch, tmp_path, mock_github):
        monkeypatch.setattr(settings, "UPLOAD_STRATEGY", "disk")
        monkeypatch.setattr(settings, "TEMP_DIR", str(tmp_path))
        mock_github.dispatch.return_value = (500, "boom")

        response = client.post("/build-web2apk", data=FIELDS, files=build_files())

        assert response.status_code == 500
        assert list(tmp_path.iterdir()) == []


class TestHttpErrors:
    """Tests for framework errors sharing the error envelope."""

    def test_unknown_route(self, client):
        response = client.get("/does-not-exist")

        body = assert_error(response, 404, "NOT_FOUND")
        assert body["error"] == "Not Found"

    def test_status_without_build_id(self, client):
        assert_error(client.get("/check-status/"), 404, "NOT_FOUND")

    def test_wrong_method(self, client):
        assert_error(client.get("/build-web2apk"), 405, "METHOD_NOT_ALLOWED")


# =============================================================================
# GET /check-status/{build_id}
# =============================================================================

class TestCheckStatus:
    """Tests for status polling."""

    def test_pending(self, client):
        response = client.get("/check-status/1700000000000-abcd1234")

        body = response.json()
        assert response.status_code == 200
        assert body["status"] == "pending"
        assert body["completed"] is False
        assert "download_url" not in body

    def test_success(self, client, mock_github):
        mock_github.list_dispatch_runs.return_value = [{
            "status": "completed",
            "conclusion": "success",
            "display_title": "Build 1700000000000-abcd1234",
            "head_commit": {"message": ""},
            "updated_at": "2024-01-01T00:09:00Z",
        }]
        mock_github.get_release.return_value = {
            "assets": [{"name": "app.apk", "browser_download_url": "https://dl.test/app.apk"}],
        }

        body = client.get("/check-status/1700000000000-abcd1234").json()

        assert body["completed"] is True
        assert body["download_url"] == "https://dl.test/app.apk"

    def test_blank_build_id(self, client):
        response = client.get("/check-status/%20")

        assert_error(response, 400, "MISSING_BUILD_ID")

    def test_missing_env(self, client, monkeypatch):
        monkeypatch.setattr(settings, "GITHUB_REPO_OWNER", "")

        response = client.get("/check-status/1700000000000-abcd1234")

        assert_error(response, 500, "MISSING_ENV")

    @pytest.mark.parametrize("message", ["401 Unauthorized", "timed out"])
    def test_runs_unavailable(self, client, mock_github, message):
        mock_github.list_dispatch_runs.side_effect = GitHubClientError(message)

        response = client.get("/check-status/1700000000000-abcd1234")

        body = assert_error(response, 500, "CHECK_FAILED")
        assert body["details"] == message
