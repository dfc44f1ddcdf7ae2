# =============================================================================
# tests/ - Test Suite
# =============================================================================
# This package contains all tests for the BuildRelay API:
# - test_utils.py: Identifiers, validation and retry helpers
# - test_project_service.py: Folder analysis and archive packaging
# - test_toolchain.py: Flutter version detection
# - test_github_client.py: GitHub REST calls against a mock transport
# - test_build_service.py / test_status_service.py: Service orchestration
# - test_repair_service.py: Build repair with a mocked model
# - test_api.py: Endpoint contract through TestClient
#
# Run tests with: pytest
# =============================================================================
