# =============================================================================
# app/exceptions.py - Custom Exception Handlers
# =============================================================================
# Centralized exception handling for the API.
# Every error leaves the service in the same envelope:
#   {"success": false, "error": ..., "code": ..., "timestamp": ...}
# with optional "details" and "suggestion".
# =============================================================================

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from lib.utils import format_file_size, utc_timestamp


class BuildRelayException(Exception):
    """
    Base exception for the BuildRelay API.

    All custom exceptions inherit from this class.
    Provides structured error responses with actionable suggestions.
    """

    def __init__(
        self,
        message: str,
        code: str = "SERVER_ERROR",
        status_code: int = 500,
        suggestion: str | None = None,
        details: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.suggestion = suggestion
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response dict."""
        return error_body(self.code, self.message, self.details, self.suggestion)


def error_body(
    code: str,
    message: str,
    details: Any = None,
    suggestion: str | None = None,
) -> dict[str, Any]:
    """Build the error envelope shared by every failing endpoint."""
    result = {
        "success": False,
        "error": message,
        "code": code,
        "timestamp": utc_timestamp(),
    }
    if details:
        result["details"] = details
    if suggestion:
        result["suggestion"] = suggestion
    return result


# =============================================================================
# Configuration Exceptions
# =============================================================================

class MissingEnvironmentError(BuildRelayException):
    """Raised when GitHub settings are missing."""

    def __init__(self, message: str = "Server misconfigured: missing GitHub repo/token"):
        super().__init__(
            message=message,
            code="MISSING_ENV",
            status_code=500,
            suggestion="Set GITHUB_TOKEN, GITHUB_REPO_OWNER and GITHUB_REPO_NAME",
        )


# =============================================================================
# Request Validation Exceptions
# =============================================================================

class MissingFieldsError(BuildRelayException):
    """Raised when appName or packageName is absent."""

    def __init__(self):
        super().__init__(
            message="appName and packageName are required",
            code="MISSING_FIELDS",
            status_code=400,
        )


class InvalidPackageNameError(BuildRelayException):
    """Raised when packageName is not a valid Android package name."""

    def __init__(self, package_name: str):
        super().__init__(
            message=(
                "Invalid package name format. Must be like com.example.app "
                "(lowercase, starts with letter)"
            ),
            code="INVALID_PACKAGE",
            status_code=400,
            details={"package_name": package_name},
        )


class MissingFilesError(BuildRelayException):
    """Raised when the icon or project files are absent."""

    def __init__(self):
        super().__init__(
            message="Both icon and project files are required",
            code="MISSING_FILES",
            status_code=400,
        )


class InvalidIconError(BuildRelayException):
    """Raised when the icon is not an image."""

    def __init__(self, content_type: str | None):
        super().__init__(
            message="Icon must be an image file",
            code="INVALID_ICON",
            status_code=400,
            suggestion="Upload a PNG, JPEG or WebP icon",
            details={"content_type": content_type},
        )


class IconTooLargeError(BuildRelayException):
    """Raised when the icon exceeds MAX_ICON_SIZE_MB."""

    def __init__(self, max_bytes: int):
        super().__init__(
            message=f"Icon max size is {format_file_size(max_bytes)}",
            code="ICON_TOO_LARGE",
            status_code=400,
        )


class FileTooLargeError(BuildRelayException):
    """Raised when a single uploaded file exceeds MAX_FILE_SIZE_MB."""

    def __init__(self, filename: str, max_bytes: int):
        super().__init__(
            message=f"File too large. Max is {format_file_size(max_bytes)}",
            code="FILE_TOO_LARGE",
            status_code=413,
            details={"filename": filename},
        )


class TooManyFilesError(BuildRelayException):
    """Raised when more than MAX_FILES project files are uploaded."""

    def __init__(self, count: int | None, limit: int):
        details = {"limit": limit}
        if count is not None:
            details["count"] = count
        super().__init__(
            message="Too many files uploaded",
            code="TOO_MANY_FILES",
            status_code=413,
            suggestion=f"Upload at most {limit} files or send a ZIP archive instead",
            details=details,
        )


class MissingBuildIdError(BuildRelayException):
    """Raised when a status check has no build id."""

    def __init__(self):
        super().__init__(
            message="Build ID required",
            code="MISSING_BUILD_ID",
            status_code=400,
        )


# =============================================================================
# Upstream Exceptions
# =============================================================================

class IconUploadError(BuildRelayException):
    """Raised when the icon cannot be stored on the media host."""

    def __init__(self, error: str):
        super().__init__(
            message="Failed to upload icon",
            code="ICON_UPLOAD_FAIL",
            status_code=500,
            suggestion="Try again later or contact support if the issue persists",
            details=error,
        )


class ProjectProcessingError(BuildRelayException):
    """Raised when the project archive cannot be built or stored."""

    def __init__(self, error: str):
        super().__init__(
            message="Failed to process project files",
            code="ZIP_PROCESSING_FAIL",
            status_code=500,
            details=error,
        )


class DispatchError(BuildRelayException):
    """Raised when GitHub rejects the repository_dispatch call."""

    def __init__(self, status: int | None, body: str):
        super().__init__(
            message="Failed to dispatch build",
            code="GITHUB_DISPATCH_FAILED",
            status_code=500,
            details={"status": status, "body": body[:500]},
        )


class StatusCheckError(BuildRelayException):
    """Raised when workflow runs cannot be listed."""

    def __init__(self, error: str):
        super().__init__(
            message="Failed to check status",
            code="CHECK_FAILED",
            status_code=500,
            details=error,
        )


# =============================================================================
# Exception Handlers
# =============================================================================

async def buildrelay_exception_handler(
    request: Request,
    exc: BuildRelayException
) -> JSONResponse:
    """Convert BuildRelayException to JSON response."""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


async def validation_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """
    Handle request parsing errors (malformed multipart bodies, bad types).
    """
    return JSONResponse(
        status_code=400,
        content=error_body("UPLOAD_ERROR", "Invalid upload request", str(exc)),
    )


HTTP_ERROR_CODES = {
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException
) -> JSONResponse:
    """
    Wrap framework HTTP errors (unknown routes, multipart limits) in the
    error envelope.
    """
    if exc.status_code >= 500:
        code = "SERVER_ERROR"
    else:
        code = HTTP_ERROR_CODES.get(exc.status_code, "UPLOAD_ERROR")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(code, str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )
