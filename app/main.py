# =============================================================================
# app/main.py - FastAPI Application Entry Point
# =============================================================================
# This is the main entry point for the BuildRelay API.
# It configures the FastAPI application with middleware, routers, and handlers.
#
# Usage:
#   uvicorn app.main:app --reload --port 3000
# =============================================================================

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import settings
from app.exceptions import (
    BuildRelayException,
    buildrelay_exception_handler,
    error_body,
    http_exception_handler,
    validation_exception_handler,
)
from app.routers import builds, health
from lib.utils import format_file_size

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    - Startup: create the scratch directory and log the effective limits
    - Shutdown: log only; per-request scratch space is removed by handlers
    """
    Path(settings.TEMP_DIR).mkdir(parents=True, exist_ok=True)

    logger.info("=" * 60)
    logger.info(f"BuildRelay API starting in {settings.ENVIRONMENT} mode")
    logger.info(f"Temp: {settings.TEMP_DIR} ({settings.UPLOAD_STRATEGY} uploads)")
    logger.info(f"Max Size: {format_file_size(settings.max_file_size_bytes)}")
    logger.info(f"CORS origins: {settings.cors_origins_list}")
    if not settings.github_configured:
        logger.warning("GitHub settings missing: build requests will fail with MISSING_ENV")
    logger.info("=" * 60)

    yield

    logger.info("Shutting down BuildRelay API")


# Create FastAPI application
app = FastAPI(
    title="BuildRelay API",
    description="""
## Web Project to APK Build Relay

Upload a web project and an icon; BuildRelay stores them on the media host
and triggers the Android build workflow on GitHub Actions.

### Quick Start

```bash
# 1. Start a build
curl -X POST http://localhost:3000/build-web2apk \\
  -F "appName=My App" -F "packageName=com.example.myapp" \\
  -F "icon=@icon.png" -F "projectFiles=@site.zip"

# 2. Poll until completed
curl http://localhost:3000/check-status/{build_id}
```
""",
    version="4.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    openapi_tags=[
        {
            "name": "Builds",
            "description": "Submit builds and poll their status",
        },
        {
            "name": "Health",
            "description": "API health and readiness checks",
        },
    ],
)


# =============================================================================
# Middleware
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
)


# =============================================================================
# Exception Handlers
# =============================================================================

@app.exception_handler(BuildRelayException)
async def handle_buildrelay_exception(request: Request, exc: BuildRelayException):
    """Handle custom BuildRelay exceptions."""
    return await buildrelay_exception_handler(request, exc)


@app.exception_handler(StarletteHTTPException)
async def handle_http_exception(request: Request, exc: StarletteHTTPException):
    """Handle framework HTTP errors such as unknown routes."""
    return await http_exception_handler(request, exc)


@app.exception_handler(RequestValidationError)
async def handle_validation_exception(request: Request, exc: RequestValidationError):
    """Handle malformed requests."""
    return await validation_exception_handler(request, exc)


@app.exception_handler(Exception)
async def handle_general_exception(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content=error_body("SERVER_ERROR", "Unexpected server error", str(exc)),
    )


# =============================================================================
# Routers
# =============================================================================

app.include_router(health.router, tags=["Health"])
app.include_router(builds.router, tags=["Builds"])


# =============================================================================
# Root Endpoint
# =============================================================================

@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint - returns API info.
    """
    return {
        "name": "BuildRelay API",
        "version": health.SERVICE_VERSION,
        "docs": "/docs",
        "health": "/health",
    }
