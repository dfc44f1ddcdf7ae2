# =============================================================================
# core/models/ - Pydantic Data Models
# =============================================================================
# This package contains the schemas for the build pipeline:
# - build.py: uploads, project structure, dispatch payload, API responses
#
# These models define the "contract" between API and clients.
# =============================================================================

from .build import (
    BuildResponse,
    BuildSubmission,
    DispatchPayload,
    ProjectFile,
    ProjectStructure,
    ProjectType,
    StatusResponse,
    UploadType,
)

__all__ = [
    "BuildResponse",
    "BuildSubmission",
    "DispatchPayload",
    "ProjectFile",
    "ProjectStructure",
    "ProjectType",
    "StatusResponse",
    "UploadType",
]
