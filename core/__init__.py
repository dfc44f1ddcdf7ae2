# =============================================================================
# core/ - Business Logic Package
# =============================================================================
# This package contains the build pipeline's business logic:
# - models/: Pydantic schemas and upload dataclasses
# - services/: storage uploads, project packaging, dispatch, status, repair
#
# Routers stay thin and delegate here.
# =============================================================================
