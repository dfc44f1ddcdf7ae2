# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# This module provides pytest fixtures and configuration for all tests.
#
# Key features:
# - Sets up mock environment variables before any imports
# - Provides in-memory project files and ZIP archives
# - Provides a TestClient with storage and GitHub replaced by mocks
# =============================================================================

import io
import os
import struct
import zipfile

# =============================================================================
# Set up test environment BEFORE any imports
# =============================================================================
# This must happen before importing app.config which loads settings immediately

os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")
os.environ.setdefault("GITHUB_TOKEN", "test-github-token")
os.environ.setdefault("GITHUB_REPO_OWNER", "test-owner")
os.environ.setdefault("GITHUB_REPO_NAME", "test-repo")
os.environ.setdefault("REPAIR_API_KEY", "test-repair-key")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("TEMP_DIR", "/tmp/buildrelay-tests")

from unittest.mock import MagicMock

import pytest

from core.models.build import ProjectFile


# =============================================================================
# Helpers
# =============================================================================

def make_file(relative_path: str, content: bytes = b"<html></html>", content_type: str | None = None) -> ProjectFile:
    """In-memory ProjectFile."""
    return ProjectFile(relative_path, content_type, len(content), data=content)


def make_zip(entries: dict[str, bytes | str]) -> bytes:
    """ZIP archive bytes holding `entries`."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, content in entries.items():
            zf.writestr(name, content)
    return buffer.getvalue()


def make_corrupt_zip(name: str, content: str, extra: dict[str, str] | None = None) -> bytes:
    """
    ZIP whose central directory is intact but whose `name` entry holds an
    invalid deflate stream.
    """
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        zf.writestr(name, content)
        for other, other_content in (extra or {}).items():
            zf.writestr(other, other_content)
        info = zf.getinfo(name)

    data = bytearray(buffer.getvalue())
    # Local header: 30 fixed bytes, then file name and extra field
    name_length, extra_length = struct.unpack_from("<HH", data, info.header_offset + 26)
    start = info.header_offset + 30 + name_length + extra_length
    # BFINAL=1 with reserved BTYPE=11 is an invalid block type
    data[start] = 0xFF
    return bytes(data)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def icon_file():
    """A small PNG icon."""
    return make_file("icon.png", b"\x89PNG\r\n\x1a\n" + b"\x00" * 64, "image/png")


@pytest.fixture
def flat_project():
    """A flat site with index.html at the top level."""
    return [
        make_file("index.html", b"<html>home</html>", "text/html"),
        make_file("css/style.css", b"body {}", "text/css"),
        make_file("js/app.js", b"console.log(1)", "application/javascript"),
    ]


@pytest.fixture
def flutter_zip():
    """A ZIP holding a Flutter project that targets Dart 3.2."""
    return make_zip({
        "my_app/pubspec.yaml": (
            "name: my_app\n"
            "environment:\n"
            "  sdk: '>=3.2.0 <4.0.0'\n"
            "dependencies:\n"
            "  flutter:\n"
            "    sdk: flutter\n"
        ),
        "my_app/lib/main.dart": "void main() {}",
        "my_app/web/index.html": "<html></html>",
    })


@pytest.fixture
def mock_storage():
    """Storage service double returning fixed public URLs."""
    storage = MagicMock()
    storage.upload_icon.return_value = "https://cdn.test/icons/com_example_app_icon.png"
    storage.upload_archive.return_value = "https://cdn.test/projects/com_example_app_source.zip"
    return storage


@pytest.fixture
def mock_github():
    """GitHub client double that accepts dispatches."""
    github = MagicMock()
    github.dispatch.return_value = (204, "")
    github.list_dispatch_runs.return_value = []
    github.get_release.return_value = None
    return github


@pytest.fixture
def client(mock_storage, mock_github):
    """TestClient with storage and GitHub dependencies overridden."""
    from fastapi.testclient import TestClient

    from app.dependencies import get_github_client, get_storage_service
    from app.main import app

    app.dependency_overrides[get_storage_service] = lambda: mock_storage
    app.dependency_overrides[get_github_client] = lambda: mock_github
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
