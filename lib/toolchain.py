# =============================================================================
# lib/toolchain.py - Build Toolchain Detection
# =============================================================================
# Guesses which Flutter release the CI workflow should install by reading the
# project's pubspec.yaml from the uploaded archive.
#
# Resolution order:
# 1. environment.flutter lower bound, taken verbatim
# 2. environment.sdk (Dart) lower bound, mapped through DART_TO_FLUTTER
# 3. nothing detected
#
# Usage:
#   from lib.toolchain import detect_toolchain
#   info = detect_toolchain(zip_bytes)
#   if info:
#       print(info.flutter_version)
# =============================================================================

from __future__ import annotations

import io
import logging
import re
import zipfile
import zlib
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

MANIFEST_NAME = "pubspec.yaml"

# First stable Flutter release bundling each Dart minor version
DART_TO_FLUTTER: dict[tuple[int, int], str] = {
    (2, 12): "2.0.0",
    (2, 13): "2.2.0",
    (2, 14): "2.5.0",
    (2, 15): "2.8.0",
    (2, 16): "2.10.0",
    (2, 17): "3.0.0",
    (2, 18): "3.3.0",
    (2, 19): "3.7.0",
    (3, 0): "3.10.0",
    (3, 1): "3.13.0",
    (3, 2): "3.16.0",
    (3, 3): "3.19.0",
    (3, 4): "3.22.0",
    (3, 5): "3.24.0",
    (3, 6): "3.27.0",
    (3, 7): "3.29.0",
    (3, 8): "3.32.0",
    (3, 9): "3.35.0",
}

_VERSION_RE = re.compile(r"^(\d+)\.(\d+)(?:\.(\d+))?")
_KEY_RE = re.compile(r"^\s+(sdk|flutter)\s*:\s*['\"]?([^'\"#\n]*)")


@dataclass
class ToolchainInfo:
    """Result of toolchain detection."""
    flutter_version: str
    source: str  # "flutter_constraint" or "dart_sdk"
    manifest_path: str
    constraint: str


# =============================================================================
# Constraint Parsing
# =============================================================================

def lower_bound(constraint: str) -> tuple[int, int, int] | None:
    """
    Extract the lower bound of a pub version constraint.

    Example:
        lower_bound(">=3.2.0 <4.0.0")  # (3, 2, 0)
        lower_bound("^2.19.6")         # (2, 19, 6)
        lower_bound("any")             # None
    """
    for token in constraint.split():
        if token.startswith("<"):
            continue
        match = _VERSION_RE.match(token.lstrip(">=^"))
        if match:
            major, minor, patch = match.groups()
            return int(major), int(minor), int(patch or 0)
    return None


def flutter_for_dart(major: int, minor: int) -> str | None:
    """
    Map a Dart SDK minor version to the first Flutter release shipping it.

    Versions newer than the table map to its newest entry; versions older
    than the table are not mapped.
    """
    key = (major, minor)
    if key in DART_TO_FLUTTER:
        return DART_TO_FLUTTER[key]

    newest = max(DART_TO_FLUTTER)
    if key > newest:
        return DART_TO_FLUTTER[newest]
    return None


def parse_environment(manifest: str) -> dict[str, str]:
    """
    Read the `environment:` block of a pubspec into {"sdk": ..., "flutter": ...}.

    Only keys directly under `environment:` are read, so the `flutter:`
    entry under `dependencies:` is ignored.
    """
    found: dict[str, str] = {}
    in_environment = False

    for line in manifest.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue

        if not line[0].isspace():
            in_environment = stripped.split("#", 1)[0].rstrip() == "environment:"
            continue

        if in_environment:
            match = _KEY_RE.match(line)
            if match:
                found[match.group(1)] = match.group(2).strip()

    return found


def detect_from_manifest(manifest: str, manifest_path: str = MANIFEST_NAME) -> ToolchainInfo | None:
    """Apply the resolution order to a pubspec.yaml text."""
    environment = parse_environment(manifest)

    flutter_constraint = environment.get("flutter")
    if flutter_constraint:
        bound = lower_bound(flutter_constraint)
        if bound:
            return ToolchainInfo(
                flutter_version="{}.{}.{}".format(*bound),
                source="flutter_constraint",
                manifest_path=manifest_path,
                constraint=flutter_constraint,
            )

    sdk_constraint = environment.get("sdk")
    if sdk_constraint:
        bound = lower_bound(sdk_constraint)
        version = flutter_for_dart(bound[0], bound[1]) if bound else None
        if version:
            return ToolchainInfo(
                flutter_version=version,
                source="dart_sdk",
                manifest_path=manifest_path,
                constraint=sdk_constraint,
            )

    return None


# =============================================================================
# Archive Scanning
# =============================================================================

def find_manifest(archive: zipfile.ZipFile) -> str | None:
    """Return the shallowest pubspec.yaml entry, ignoring macOS metadata."""
    candidates = [
        name for name in archive.namelist()
        if name.rsplit("/", 1)[-1] == MANIFEST_NAME and not name.startswith("__MACOSX/")
    ]
    if not candidates:
        return None
    return min(candidates, key=lambda name: (name.count("/"), name))


def detect_toolchain(archive: bytes | Path) -> ToolchainInfo | None:
    """
    Detect the Flutter version for an uploaded project archive.

    Never raises: unreadable archives and manifests yield None.
    """
    source = io.BytesIO(archive) if isinstance(archive, bytes) else archive

    # Corrupt, encrypted or Deflate64 entries surface from zf.read() as
    # zlib.error, RuntimeError or NotImplementedError
    try:
        with zipfile.ZipFile(source) as zf:
            manifest_path = find_manifest(zf)
            if manifest_path is None:
                return None
            manifest = zf.read(manifest_path).decode("utf-8")
    except (
        zipfile.BadZipFile,
        zlib.error,
        UnicodeDecodeError,
        OSError,
        KeyError,
        EOFError,
        RuntimeError,
        NotImplementedError,
        ValueError,
    ) as e:
        logger.debug(f"Toolchain detection skipped: {e}")
        return None

    info = detect_from_manifest(manifest, manifest_path)
    if info:
        logger.info(
            f"Detected Flutter {info.flutter_version} from {info.manifest_path} "
            f"({info.source}: {info.constraint})"
        )
    return info
