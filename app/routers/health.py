# =============================================================================
# app/routers/health.py - Health Check Endpoints
# =============================================================================
# Provides health check endpoints for monitoring and load balancers.
# =============================================================================

from fastapi import APIRouter
from pydantic import BaseModel, Field

from app.config import settings
from lib.utils import utc_timestamp

router = APIRouter()

SERVICE_VERSION = "4.0.0"


# =============================================================================
# Response Models
# =============================================================================

class HealthResponse(BaseModel):
    """Basic health check response."""
    success: bool = True
    timestamp: str = Field(default_factory=utc_timestamp)
    status: str
    version: str
    environment: str
    features: dict[str, bool]


class ChecksResponse(BaseModel):
    """Individual configuration checks."""
    storage: str
    ci: str


class ReadinessResponse(BaseModel):
    """Readiness check response."""
    status: str
    checks: ChecksResponse
    timestamp: str = Field(default_factory=utc_timestamp)


class LivenessResponse(BaseModel):
    """Liveness check response."""
    status: str
    timestamp: str = Field(default_factory=utc_timestamp)


# =============================================================================
# Endpoints
# =============================================================================

@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Health check endpoint.

    Returns service status and the feature set clients can rely on.
    """
    return HealthResponse(
        status="healthy",
        version=SERVICE_VERSION,
        environment=settings.ENVIRONMENT,
        features={
            "webToApk": True,
            "intelligentStructure": True,
            "htmlFile": True,
            "folderUpload": True,
            "zipUpload": True,
            "nestedProjects": True,
            "buildOutputDetection": True,
            "toolchainDetection": True,
            "aiRepair": settings.repair_configured,
        },
    )


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check():
    """
    Readiness check endpoint.

    Reports whether storage and CI settings are present. Makes no upstream calls.
    """
    checks = ChecksResponse(
        storage="configured" if settings.SUPABASE_URL and settings.SUPABASE_SERVICE_KEY else "missing",
        ci="configured" if settings.github_configured else "missing",
    )
    all_ready = checks.storage == "configured" and checks.ci == "configured"

    return ReadinessResponse(
        status="ready" if all_ready else "degraded",
        checks=checks,
    )


@router.get("/health/live", response_model=LivenessResponse)
async def liveness_check():
    """
    Liveness check endpoint.

    Returns whether the service process is alive.
    """
    return LivenessResponse(status="alive")
