# =============================================================================
# app/dependencies.py - Shared Dependencies
# =============================================================================
# FastAPI dependency injection for shared resources.
# These are injected into route handlers using Depends() and can be
# replaced in tests through app.dependency_overrides.
# =============================================================================

from typing import Annotated, Iterator

from fastapi import Depends

from core.services.build_service import BuildService
from core.services.status_service import StatusService
from core.services.storage_service import StorageService
from lib.github_client import GitHubClient


def get_storage_service() -> type[StorageService]:
    """
    Get the storage service.

    Returns the class; its methods are static.
    """
    return StorageService


def get_github_client() -> Iterator[GitHubClient]:
    """Yield a GitHub client for one request and close it afterwards."""
    client = GitHubClient.from_settings()
    try:
        yield client
    finally:
        client.close()


StorageDep = Annotated[type[StorageService], Depends(get_storage_service)]
GitHubDep = Annotated[GitHubClient, Depends(get_github_client)]


def get_build_service(storage: StorageDep, github: GitHubDep) -> BuildService:
    return BuildService(storage, github)


def get_status_service(github: GitHubDep) -> StatusService:
    return StatusService(github)


# Type aliases for dependency injection
BuildServiceDep = Annotated[BuildService, Depends(get_build_service)]
StatusServiceDep = Annotated[StatusService, Depends(get_status_service)]
