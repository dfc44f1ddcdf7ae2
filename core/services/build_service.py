# =============================================================================
# core/services/build_service.py - Build Submission Pipeline
# =============================================================================
# Runs the three-step pipeline behind POST /build-web2apk:
#   1. validate the request
#   2. upload the icon and the project archive to the media host
#   3. dispatch the CI workflow through repository_dispatch
# =============================================================================

from __future__ import annotations

import logging
import shutil
import uuid
from pathlib import Path

from app.config import settings
from app.exceptions import (
    BuildRelayException,
    DispatchError,
    FileTooLargeError,
    IconTooLargeError,
    InvalidIconError,
    InvalidPackageNameError,
    MissingEnvironmentError,
    MissingFieldsError,
    MissingFilesError,
    ProjectProcessingError,
    TooManyFilesError,
)
from core.models.build import (
    BuildResponse,
    BuildSubmission,
    DispatchPayload,
    ProjectFile,
    UploadType,
)
from core.services.project_service import (
    ProjectAnalyzer,
    build_archive_bytes,
    inspect_archive,
    is_direct_zip,
    write_archive,
)
from core.services.storage_service import StorageService
from lib.github_client import GitHubClient, GitHubClientError
from lib.toolchain import ToolchainInfo, detect_toolchain
from lib.utils import format_file_size, is_valid_package_name, sanitize_filename

logger = logging.getLogger(__name__)


# =============================================================================
# Validation
# =============================================================================

def require_github_settings() -> None:
    """Raise MissingEnvironmentError unless GitHub settings are present."""
    if not settings.github_configured:
        raise MissingEnvironmentError()


def validate_fields(app_name: str | None, package_name: str | None) -> BuildSubmission:
    """
    Check the text fields of a build request.

    Raises:
        MissingFieldsError: appName or packageName blank
        InvalidPackageNameError: packageName is not an Android package id
    """
    app_name = (app_name or "").strip()
    package_name = (package_name or "").strip()

    if not app_name or not package_name:
        raise MissingFieldsError()

    if not is_valid_package_name(package_name):
        raise InvalidPackageNameError(package_name)

    return BuildSubmission(app_name=app_name, package_name=package_name)


def validate_file_parts(icon_content_type: str | None, icon_present: bool, project_count: int) -> None:
    """
    Check the file parts before their bodies are read.

    Raises:
        MissingFilesError: icon or project files absent
        InvalidIconError: icon is not image/*
        TooManyFilesError: more than MAX_FILES project files
    """
    if not icon_present or project_count == 0:
        raise MissingFilesError()

    if not (icon_content_type or "").startswith("image/"):
        raise InvalidIconError(icon_content_type)

    if project_count > settings.MAX_FILES:
        raise TooManyFilesError(project_count, settings.MAX_FILES)


def validate_sizes(icon: ProjectFile, project_files: list[ProjectFile]) -> None:
    """
    Check sizes once bodies are read.

    Raises:
        FileTooLargeError: any file above MAX_FILE_SIZE_MB
        IconTooLargeError: icon above MAX_ICON_SIZE_MB
    """
    for file in [icon, *project_files]:
        if file.size > settings.max_file_size_bytes:
            raise FileTooLargeError(file.relative_path, settings.max_file_size_bytes)

    if icon.size > settings.max_icon_size_bytes:
        raise IconTooLargeError(settings.max_icon_size_bytes)


# =============================================================================
# Scratch Space
# =============================================================================

def create_work_dir() -> Path:
    """Create a fresh per-request directory under TEMP_DIR."""
    path = Path(settings.TEMP_DIR) / uuid.uuid4().hex
    path.mkdir(parents=True, exist_ok=True)
    return path


def cleanup_work_dir(path: Path | None) -> None:
    """Remove a per-request directory. Failures are logged, not raised."""
    if path is None or not path.exists():
        return
    try:
        shutil.rmtree(path)
        logger.debug(f"[Cleanup] Removed: {path}")
    except OSError as e:
        logger.error(f"[Cleanup Error] {path}: {e}")


# =============================================================================
# Pipeline
# =============================================================================

class BuildService:
    """
    Uploads build inputs and dispatches the CI workflow.

    Example:
        service = BuildService(StorageService, GitHubClient.from_settings())
        response = service.submit(submission, icon, files, work_dir, build_id)
    """

    def __init__(self, storage: type[StorageService], github: GitHubClient):
        self.storage = storage
        self.github = github

    def submit(
        self,
        submission: BuildSubmission,
        icon: ProjectFile,
        project_files: list[ProjectFile],
        work_dir: Path,
        build_id: str,
    ) -> BuildResponse:
        """
        Run upload and dispatch for an already validated request.

        Raises:
            IconUploadError: icon could not be stored
            ProjectProcessingError: archive could not be built or stored
            DispatchError: GitHub rejected the dispatch
        """
        safe_app_name = sanitize_filename(submission.app_name)

        logger.info(f"[{build_id}] Upload summary:")
        logger.info(f"  - Icon: {icon.name} ({format_file_size(icon.size)})")
        logger.info(f"  - Upload Type: {submission.upload_type}")
        logger.info(f"  - Total Files: {len(project_files)}")

        logger.info(f"[{build_id}] Uploading icon...")
        icon_url = self.storage.upload_icon(icon, submission.package_name, build_id)
        logger.info(f"[{build_id}] Icon uploaded: {icon_url}")

        try:
            archive = self.prepare_archive(project_files, submission.upload_type, work_dir, build_id)
            toolchain: ToolchainInfo | None = detect_toolchain(archive)

            logger.info(f"[{build_id}] Uploading project ZIP...")
            zip_url = self.storage.upload_archive(archive, submission.package_name, build_id)
            logger.info(f"[{build_id}] ZIP uploaded: {zip_url}")
        except BuildRelayException:
            raise
        except Exception as e:
            logger.error(f"[{build_id}] Project processing failed: {e}")
            raise ProjectProcessingError(str(e))

        payload = DispatchPayload(
            app_name=submission.app_name,
            safe_name=safe_app_name,
            display_name=submission.app_name,
            package_name=submission.package_name,
            icon_url=icon_url,
            zip_url=zip_url,
            upload_type=submission.upload_type or UploadType.FOLDER.value,
            request_id=build_id,
            flutter_version=toolchain.flutter_version if toolchain else None,
        )
        self.dispatch(payload)

        return BuildResponse(
            build_id=build_id,
            safe_app_name=safe_app_name,
            app_name=submission.app_name,
            package_name=submission.package_name,
            icon_url=icon_url,
            zip_url=zip_url,
            upload_type=submission.upload_type,
            flutter_version=payload.flutter_version,
            check_status_url=f"/check-status/{build_id}",
        )

    def prepare_archive(
        self,
        project_files: list[ProjectFile],
        upload_type: str | None,
        work_dir: Path,
        build_id: str,
    ) -> bytes | Path:
        """
        Produce the project archive.

        Returns bytes, or a path inside `work_dir` when the archive is
        larger than LARGE_UPLOAD_THRESHOLD_MB or already lives on disk.
        """
        if is_direct_zip(project_files, upload_type):
            logger.info(f"[{build_id}] Using uploaded ZIP directly")
            upload = project_files[0]
            archive: bytes | Path = upload.path if upload.path is not None else upload.read_bytes()

            summary = inspect_archive(archive)
            if summary:
                entry_count, html_entries = summary
                logger.info(f"[{build_id}] ZIP contains {entry_count} entries, {len(html_entries)} HTML files")
                if html_entries:
                    logger.info(f"[{build_id}] HTML files: {', '.join(html_entries)}")

            if isinstance(archive, bytes) and len(archive) > settings.large_upload_threshold_bytes:
                archive_path = work_dir / "large-project.zip"
                archive_path.write_bytes(archive)
                return archive_path
            return archive

        logger.info(f"[{build_id}] Running structure analysis...")
        analyzer = ProjectAnalyzer(project_files)
        structure = analyzer.analyze()
        logger.info(
            f"[{build_id}] Analysis results: type={structure.type.value} "
            f"entry={structure.entry_point} nested={structure.is_nested}"
        )
        entries = analyzer.layout()

        total_size = sum(len(e) if isinstance(e, bytes) else e.size for e in entries.values())
        if total_size > settings.large_upload_threshold_bytes:
            archive_path = work_dir / "optimized-project.zip"
            write_archive(entries, archive_path)
            logger.info(f"[{build_id}] Optimized ZIP written to disk: {format_file_size(archive_path.stat().st_size)}")
            return archive_path

        archive_bytes = build_archive_bytes(entries)
        logger.info(f"[{build_id}] Optimized ZIP created: {format_file_size(len(archive_bytes))}")
        return archive_bytes

    def dispatch(self, payload: DispatchPayload) -> None:
        """
        Send the repository_dispatch event.

        Raises:
            DispatchError: non-2xx response or transport failure
        """
        build_id = payload.request_id
        logger.info(f"[{build_id}] Dispatching to GitHub Actions...")

        try:
            status, body = self.github.dispatch(
                settings.DISPATCH_EVENT_TYPE,
                payload.model_dump(exclude_none=True),
            )
        except GitHubClientError as e:
            logger.error(f"[{build_id}] Dispatch failed: {e}")
            raise DispatchError(None, e.message)

        logger.info(f"[{build_id}] GitHub response: {status}")
        if not 200 <= status < 300:
            raise DispatchError(status, body)
