# =============================================================================
# core/services/__init__.py - Service Layer Exports
# =============================================================================

from .build_service import BuildService
from .project_service import NoEntryPointError, ProjectAnalyzer
from .repair_service import RepairError, RepairService
from .status_service import StatusService
from .storage_service import StorageService

__all__ = [
    "BuildService",
    "NoEntryPointError",
    "ProjectAnalyzer",
    "RepairError",
    "RepairService",
    "StatusService",
    "StorageService",
]
