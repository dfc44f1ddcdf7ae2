# =============================================================================
# app/routers/ - API Route Definitions
# =============================================================================
# This package contains FastAPI routers organized by feature:
# - health.py: Health check endpoints
# - builds.py: Build submission and status endpoints
#
# Each router is mounted in main.py.
# =============================================================================

from . import builds
from . import health

__all__ = [
    "builds",
    "health",
]
