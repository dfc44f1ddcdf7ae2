# =============================================================================
# lib/ - Standalone Utility Modules
# =============================================================================
# This package contains reusable clients and helpers:
# - supabase_client.py: Supabase Storage wrapper (media host)
# - github_client.py: GitHub dispatch / workflow-run / release client
# - toolchain.py: Flutter version detection from pubspec.yaml
# - utils.py: Shared utilities (ids, validation, retry, base error)
#
# These modules are self-contained and can be tested in isolation.
# =============================================================================

from lib.github_client import GitHubClient, GitHubClientError
from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.toolchain import ToolchainInfo, detect_toolchain
from lib.utils import (
    ApplicationError,
    format_file_size,
    generate_build_id,
    is_valid_package_name,
    sanitize_filename,
    with_retries,
)

__all__ = [
    # Clients
    "GitHubClient",
    "GitHubClientError",
    "SupabaseClient",
    "SupabaseClientError",
    # Toolchain
    "ToolchainInfo",
    "detect_toolchain",
    # Utils
    "ApplicationError",
    "format_file_size",
    "generate_build_id",
    "is_valid_package_name",
    "sanitize_filename",
    "with_retries",
]
