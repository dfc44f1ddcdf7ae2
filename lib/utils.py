# =============================================================================
# lib/utils.py - Shared Utilities
# =============================================================================
# Common utilities used across the application:
# - Build identifiers and timestamps
# - Package name validation and filename sanitization
# - Human-readable file sizes
# - Retry wrapper for flaky upstream calls
# - Base error class for lib/ clients
# =============================================================================

import logging
import re
import secrets
import time
from datetime import datetime, timezone
from typing import Any, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

PACKAGE_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_]*(?:\.[a-z][a-z0-9_]*)+$")
PACKAGE_NAME_MAX_LENGTH = 100


# =============================================================================
# Identifiers
# =============================================================================

def generate_build_id() -> str:
    """
    Generate a build identifier: epoch milliseconds plus 8 random hex chars.

    Example:
        generate_build_id()  # "1718031234567-9f2c41ab"
    """
    return f"{int(time.time() * 1000)}-{secrets.token_hex(4)}"


def utc_timestamp() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


# =============================================================================
# Validation / Sanitization
# =============================================================================

def is_valid_package_name(package_name: str) -> bool:
    """
    Check an Android application id such as "com.example.app".

    Lowercase segments, each starting with a letter, at least two segments.
    """
    return (
        bool(PACKAGE_NAME_PATTERN.match(package_name))
        and len(package_name) <= PACKAGE_NAME_MAX_LENGTH
        and ".." not in package_name
        and not package_name.startswith(".")
        and not package_name.endswith(".")
    )


def sanitize_filename(name: str | None) -> str:
    """
    Reduce a display name to a safe identifier.

    Example:
        sanitize_filename("  My Cool App! ")  # "my_cool_app_"
    """
    cleaned = re.sub(r"[^a-z0-9]", "_", str(name or "").strip(), flags=re.IGNORECASE)
    return re.sub(r"_+", "_", cleaned).lower()


def format_file_size(size_bytes: int) -> str:
    """
    Format a byte count for logs and error messages.

    Example:
        format_file_size(10 * 1024 * 1024)  # "10.00 MB"
    """
    units = ["B", "KB", "MB", "GB"]
    if size_bytes <= 0:
        return "0 B"

    size = float(size_bytes)
    index = 0
    while size >= 1024 and index < len(units) - 1:
        size /= 1024
        index += 1
    return f"{size:.2f} {units[index]}"


# =============================================================================
# Retry
# =============================================================================

def with_retries(
    func: Callable[[], T],
    attempts: int = 1,
    base_delay: float = 1.0,
    label: str = "operation",
) -> T:
    """
    Call `func`, retrying on any exception with exponential backoff.

    Delays are base_delay * 1, 2, 4, ... between attempts. The last
    exception is re-raised once attempts are exhausted.
    """
    attempts = max(1, attempts)

    for attempt in range(attempts):
        try:
            return func()
        except Exception as e:
            if attempt >= attempts - 1:
                raise
            delay = base_delay * (2 ** attempt)
            logger.warning(
                f"{label} attempt {attempt + 1}/{attempts} failed: {e}; retrying in {delay:.1f}s"
            )
            time.sleep(delay)

    raise RuntimeError(f"{label} did not run")


# =============================================================================
# Base Error Class
# =============================================================================

class ApplicationError(Exception):
    """
    Base error class for lib/ clients.

    Attributes:
        code: Error code for categorization
        message: Human-readable error message
        suggestion: Actionable suggestion for fixing the error
        details: Additional context for debugging
    """

    def __init__(
        self,
        message: str,
        code: str = "APPLICATION_ERROR",
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.details = details or {}

    def __str__(self) -> str:
        result = f"[{self.code}] {self.message}"
        if self.suggestion:
            result += f"\n  Suggestion: {self.suggestion}"
        return result

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for API responses."""
        return {
            "code": self.code,
            "message": self.message,
            "suggestion": self.suggestion,
            "details": self.details,
        }
