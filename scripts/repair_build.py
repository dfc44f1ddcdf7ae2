#!/usr/bin/env python3
# =============================================================================
# scripts/repair_build.py - Build Repair CLI
# =============================================================================
# Called by the CI workflow after a failed `flutter build apk`. Reads the
# build log, asks the repair model for a single-file fix and writes it into
# the checked-out project so the workflow can retry the build.
#
# Usage:
#   flutter build apk 2>&1 | tee build_log.txt || \
#       python scripts/repair_build.py --log build_log.txt --project-dir .
#
# Exit codes:
#   0 - fix applied
#   1 - no fix (missing log, API failure, unusable answer)
#
# Prerequisites:
#   - REPAIR_API_KEY must be set (environment or .env file)
# =============================================================================

import argparse
import logging
import os
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.config import settings
from core.services.repair_service import RepairError, RepairService


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Apply an AI-proposed fix to a failed Flutter build")
    parser.add_argument("--log", default="build_log.txt", help="Path to the captured build output")
    parser.add_argument("--project-dir", default=".", help="Root of the Flutter project to patch")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Run one repair attempt and return the process exit code."""
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    print("=" * 60)
    print("BuildRelay Build Repair")
    print("=" * 60)

    if not settings.repair_configured:
        print("REPAIR_API_KEY is not set, skipping repair")
        return 1

    service = RepairService(project_dir=Path(args.project_dir))
    try:
        patched = service.repair(Path(args.log))
    except RepairError as e:
        print(f"Repair failed [{e.code}]: {e.message}")
        if e.suggestion:
            print(f"  -> {e.suggestion}")
        return 1

    print(f"Applied fix to: {patched}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
