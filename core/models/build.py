# =============================================================================
# core/models/build.py - Build Schemas
# =============================================================================
# These models define the contract for the build pipeline:
# - ProjectFile: one uploaded file (in memory or spooled to disk)
# - ProjectStructure: what the analyzer learned about a folder upload
# - BuildSubmission / DispatchPayload: what gets sent to the CI workflow
# - BuildResponse / StatusResponse: what clients receive
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

from lib.utils import utc_timestamp


class UploadType(str, Enum):
    """How the client packaged the project."""
    ZIP = "zip"
    FOLDER = "folder"
    HTML = "html"


class ProjectType(str, Enum):
    """
    Shape of a folder upload.

    - single_html: one HTML page, optionally with loose assets
    - flat: index page at the top level
    - nested: everything inside one wrapping folder
    - build_output: a www/dist/build/public/output folder holds the site
    """
    SINGLE_HTML = "single_html"
    FLAT = "flat"
    NESTED = "nested"
    BUILD_OUTPUT = "build_output"
    UNKNOWN = "unknown"


@dataclass
class ProjectFile:
    """
    One uploaded file.

    Exactly one of `data` (memory strategy) or `path` (disk strategy) is set.
    """
    relative_path: str
    content_type: str | None
    size: int
    data: bytes | None = None
    path: Path | None = None

    def read_bytes(self) -> bytes:
        if self.data is not None:
            return self.data
        if self.path is not None:
            return self.path.read_bytes()
        return b""

    @property
    def name(self) -> str:
        return self.relative_path.rsplit("/", 1)[-1]


class ProjectStructure(BaseModel):
    """Result of analyzing a folder upload."""

    file_count: int = 0
    html_files: list[str] = Field(default_factory=list)
    has_root_index: bool = False
    entry_point: str | None = None
    is_nested: bool = False
    root_folder: str | None = None
    build_folder: str | None = None
    type: ProjectType = ProjectType.UNKNOWN


class BuildSubmission(BaseModel):
    """Validated form fields of a build request."""

    app_name: str = Field(..., min_length=1)
    package_name: str = Field(..., min_length=1)
    upload_type: str | None = None


class DispatchPayload(BaseModel):
    """client_payload of the repository_dispatch event."""

    app_name: str
    safe_name: str
    display_name: str
    package_name: str
    icon_url: str
    zip_url: str
    upload_type: str = UploadType.FOLDER.value
    request_id: str
    timestamp: str = Field(default_factory=utc_timestamp)
    intelligent_build: bool = True
    flutter_version: str | None = None


class BuildResponse(BaseModel):
    """Returned by POST /build-web2apk once the workflow is dispatched."""

    success: bool = True
    timestamp: str = Field(default_factory=utc_timestamp)
    build_id: str
    safe_app_name: str
    app_name: str
    package_name: str
    icon_url: str
    zip_url: str
    upload_type: str | None = None
    intelligent_build: bool = True
    flutter_version: str | None = None
    message: str = "Build started with intelligent structure detection"
    check_status_url: str


class StatusResponse(BaseModel):
    """
    Returned by GET /check-status/{build_id}.

    `status` mirrors GitHub where possible ("queued", "in_progress", ...)
    plus the service's own "pending", "publishing", "success" and "failed".
    """

    success: bool = True
    timestamp: str = Field(default_factory=utc_timestamp)
    build_id: str
    completed: bool
    status: str
    progress: int | None = None
    message: str | None = None
    download_url: str | None = None
    run_url: str | None = None
    created_at: str | None = None
    completed_at: str | None = None
    app_name: str | None = None
    error: str | None = None
