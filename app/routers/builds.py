# =============================================================================
# app/routers/builds.py - Build Submission and Status Endpoints
# =============================================================================
# POST /build-web2apk           upload icon + project, dispatch the CI build
# GET  /check-status/{build_id}  poll the CI build and fetch the APK link
# =============================================================================

import logging
import secrets
from pathlib import Path
from typing import Annotated

from fastapi import APIRouter, Request
from fastapi import Path as PathParam
from fastapi.concurrency import run_in_threadpool
from starlette.datastructures import FormData, UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import settings
from app.dependencies import BuildServiceDep, StatusServiceDep
from app.exceptions import FileTooLargeError, MissingBuildIdError, TooManyFilesError
from core.models.build import BuildResponse, ProjectFile, StatusResponse
from core.services.build_service import (
    cleanup_work_dir,
    create_work_dir,
    require_github_settings,
    validate_fields,
    validate_file_parts,
    validate_sizes,
)
from lib.utils import generate_build_id

logger = logging.getLogger(__name__)

router = APIRouter()

CHUNK_SIZE = 1024 * 1024
MAX_FORM_FIELDS = 100


# =============================================================================
# Helper Functions
# =============================================================================

async def _receive_upload(upload: UploadFile, index: int, work_dir: Path) -> ProjectFile:
    """
    Read one multipart file into a ProjectFile.

    The body is kept in memory or spooled into `work_dir` depending on
    UPLOAD_STRATEGY. Reading stops as soon as MAX_FILE_SIZE_MB is exceeded.
    """
    relative_path = upload.filename or f"file-{index}"
    limit = settings.max_file_size_bytes
    size = 0

    if settings.UPLOAD_STRATEGY == "disk":
        basename = relative_path.replace("\\", "/").rsplit("/", 1)[-1]
        target = work_dir / "uploads" / f"{index}-{secrets.token_hex(4)}-{basename}"
        target.parent.mkdir(parents=True, exist_ok=True)
        with target.open("wb") as handle:
            while chunk := await upload.read(CHUNK_SIZE):
                size += len(chunk)
                if size > limit:
                    raise FileTooLargeError(relative_path, limit)
                handle.write(chunk)
        return ProjectFile(relative_path, upload.content_type, size, path=target)

    buffer = bytearray()
    while chunk := await upload.read(CHUNK_SIZE):
        size += len(chunk)
        if size > limit:
            raise FileTooLargeError(relative_path, limit)
        buffer.extend(chunk)
    return ProjectFile(relative_path, upload.content_type, size, data=bytes(buffer))


async def _read_form(request: Request) -> FormData:
    """
    Parse the multipart body with limits taken from settings.

    The icon counts as one file on top of MAX_FILES project files.
    """
    try:
        return await request.form(
            max_files=settings.MAX_FILES + 1,
            max_fields=MAX_FORM_FIELDS,
        )
    except StarletteHTTPException as e:
        # Starlette reports an exceeded file limit only through the message
        if "Too many files" in str(e.detail):
            raise TooManyFilesError(None, settings.MAX_FILES)
        raise


def _text_field(form: FormData, name: str) -> str | None:
    value = form.get(name)
    return value if isinstance(value, str) else None


def _file_field(form: FormData, name: str) -> UploadFile | None:
    value = form.get(name)
    return value if isinstance(value, UploadFile) else None


# =============================================================================
# Endpoints
# =============================================================================

BUILD_FORM_SCHEMA = {
    "requestBody": {
        "required": True,
        "content": {
            "multipart/form-data": {
                "schema": {
                    "type": "object",
                    "required": ["appName", "packageName", "icon", "projectFiles"],
                    "properties": {
                        "appName": {"type": "string"},
                        "packageName": {"type": "string", "example": "com.example.app"},
                        "uploadType": {"type": "string", "enum": ["zip", "folder", "html"]},
                        "icon": {"type": "string", "format": "binary"},
                        "projectFiles": {
                            "type": "array",
                            "items": {"type": "string", "format": "binary"},
                            "description": "ZIP archive, HTML file, or folder contents",
                        },
                    },
                },
            },
        },
    },
}


@router.post("/build-web2apk", response_model=BuildResponse, openapi_extra=BUILD_FORM_SCHEMA)
async def build_web2apk(request: Request, service: BuildServiceDep):
    """
    Start an APK build for a web project.

    This endpoint:
    1. Validates settings, form fields and files
    2. Uploads the icon to the media host
    3. Packages the project (direct ZIP, or analyzed folder upload)
    4. Uploads the archive to the media host
    5. Dispatches the CI workflow

    Poll `check_status_url` for progress.
    """
    require_github_settings()
    form = await _read_form(request)

    try:
        submission = validate_fields(
            _text_field(form, "appName"),
            _text_field(form, "packageName"),
        )
        submission.upload_type = _text_field(form, "uploadType") or None

        icon = _file_field(form, "icon")
        project_files = [f for f in form.getlist("projectFiles") if isinstance(f, UploadFile)]
        validate_file_parts(
            icon.content_type if icon else None,
            icon is not None,
            len(project_files),
        )

        build_id = generate_build_id()
        logger.info(f"[{build_id}] New build request")

        work_dir = create_work_dir()
        try:
            icon_file = await _receive_upload(icon, 0, work_dir)
            files = [
                await _receive_upload(upload, index, work_dir)
                for index, upload in enumerate(project_files, start=1)
            ]
            validate_sizes(icon_file, files)

            return await run_in_threadpool(
                service.submit, submission, icon_file, files, work_dir, build_id
            )
        finally:
            cleanup_work_dir(work_dir)
    finally:
        await form.close()


@router.get("/check-status/{build_id}", response_model=StatusResponse, response_model_exclude_none=True)
async def check_status(
    build_id: Annotated[str, PathParam(description="Build id returned by /build-web2apk")],
    service: StatusServiceDep,
):
    """
    Get the status of a build.

    - pending: no workflow run found yet
    - queued / in_progress: workflow running
    - publishing: workflow succeeded, release not yet visible
    - success: APK available at download_url
    - failed: workflow failed, see run_url
    """
    if not build_id.strip():
        raise MissingBuildIdError()
    require_github_settings()
    return await run_in_threadpool(service.check, build_id)
