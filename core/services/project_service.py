# =============================================================================
# core/services/project_service.py - Project Analysis and Packaging
# =============================================================================
# Turns an uploaded web project into the archive the CI workflow expects:
# the site's files at the archive root with an index.html entry page.
#
# Folder uploads go through ProjectAnalyzer:
#   analyze()  -> ProjectStructure (type, entry point, wrapping folders)
#   layout()   -> {archive path: ProjectFile or bytes}
# and write_archive() zips the layout. Direct ZIP uploads bypass the
# analyzer and are only inspected for logging.
# =============================================================================

from __future__ import annotations

import io
import logging
import posixpath
import zipfile
from pathlib import Path
from typing import BinaryIO, Union

from core.models.build import ProjectFile, ProjectStructure, ProjectType, UploadType

logger = logging.getLogger(__name__)

BUILD_FOLDERS = ("www", "dist", "build", "public", "output")
INDEX_NAME = "index.html"

LayoutEntry = Union[ProjectFile, bytes]


class NoEntryPointError(Exception):
    """Raised when a project contains no HTML page to start from."""


# =============================================================================
# Path Helpers
# =============================================================================

def normalize_relative_path(path: str) -> str:
    """Use forward slashes and drop leading "./" segments."""
    path = path.replace("\\", "/")
    while path.startswith("./"):
        path = path[2:]
    return path


def safe_join(relative_path: str) -> str | None:
    """
    Normalize an archive path, returning None when it would escape the root.

    Example:
        safe_join("css/../app.js")     # "app.js"
        safe_join("../../etc/passwd")  # None
    """
    if not relative_path:
        return None
    normalized = posixpath.normpath(relative_path)
    if normalized.startswith("/") or normalized == ".." or normalized.startswith("../"):
        return None
    if normalized == ".":
        return None
    return normalized


def redirect_page(target: str) -> bytes:
    """HTML page that immediately redirects to `target`."""
    return (
        "<!DOCTYPE html>\n"
        "<html>\n"
        "<head>\n"
        f'  <meta http-equiv="refresh" content="0; url={target}">\n'
        "  <title>Redirecting...</title>\n"
        "</head>\n"
        "<body>\n"
        f'  <p>Redirecting to <a href="{target}">{target}</a>...</p>\n'
        "</body>\n"
        "</html>"
    ).encode("utf-8")


def _is_html(path: str) -> bool:
    lowered = path.lower()
    return lowered.endswith(".html") or lowered.endswith(".htm")


def _is_root_index(path: str) -> bool:
    # A top-level index page, or one directly inside a single wrapping folder
    parts = path.split("/")
    return parts[-1].lower().startswith("index") and len(parts) <= 2


# =============================================================================
# Analyzer
# =============================================================================

class ProjectAnalyzer:
    """
    Detects the layout of a folder upload and lays it out for the build.

    Example:
        analyzer = ProjectAnalyzer(files)
        structure = analyzer.analyze()
        layout = analyzer.layout()
        write_archive(layout, buffer)
    """

    def __init__(self, files: list[ProjectFile]):
        self.files = files
        self.paths = [normalize_relative_path(f.relative_path) for f in files]
        self.structure = ProjectStructure(file_count=len(files))

    def analyze(self) -> ProjectStructure:
        """Classify the upload and pick its entry point."""
        structure = self.structure
        paths = self.paths

        logger.info(f"[Analyzer] Total files: {len(paths)}")

        structure.html_files = [p for p in paths if _is_html(p)]
        structure.has_root_index = any(_is_root_index(p) for p in structure.html_files)

        logger.info(f"[Analyzer] HTML files found: {len(structure.html_files)}")

        # Everything inside one wrapping folder?
        first_parts = paths[0].split("/") if paths else []
        if len(first_parts) > 1 and len(paths) > 1:
            candidate = first_parts[0]
            if all(p.startswith(candidate + "/") for p in paths):
                structure.is_nested = True
                structure.root_folder = candidate
                logger.info(f"[Analyzer] Detected nested structure in: {candidate}")

        build_type = ProjectType.UNKNOWN
        for folder in BUILD_FOLDERS:
            prefix = folder + "/"
            has_folder = any(p.startswith(prefix) or p == folder for p in paths)
            has_index = any(p.startswith(prefix) and p.lower().endswith(INDEX_NAME) for p in paths)
            if has_folder and has_index:
                build_type = ProjectType.BUILD_OUTPUT
                structure.build_folder = folder
                logger.info(f"[Analyzer] Detected build output folder: {folder}")
                break

        structure.entry_point = self._find_entry_point()

        top_level_index = any(p.lower() == INDEX_NAME for p in paths)

        if structure.is_nested:
            structure.type = ProjectType.NESTED
        elif build_type == ProjectType.BUILD_OUTPUT and not top_level_index:
            structure.type = ProjectType.BUILD_OUTPUT
        elif len(structure.html_files) == 1:
            structure.type = ProjectType.SINGLE_HTML
        elif structure.has_root_index:
            structure.type = ProjectType.FLAT
        else:
            structure.type = ProjectType.UNKNOWN

        logger.info(f"[Analyzer] Project type: {structure.type.value}")
        logger.info(f"[Analyzer] Entry point: {structure.entry_point}")
        return structure

    def _find_entry_point(self) -> str | None:
        candidates = self.structure.html_files

        for path in candidates:
            if _is_root_index(path):
                return path

        for path in candidates:
            lowered = path.lower()
            if "index" in lowered or "home" in lowered:
                return path

        return candidates[0] if candidates else None

    # -------------------------------------------------------------------------
    # Layout
    # -------------------------------------------------------------------------

    def layout(self) -> dict[str, LayoutEntry]:
        """
        Map archive paths to file contents according to the detected type.

        Call analyze() first.

        Raises:
            NoEntryPointError: If there is no index.html and no HTML page
        """
        structure = self.structure

        if structure.type == ProjectType.SINGLE_HTML:
            entries = self._layout_single_html()
        elif structure.type == ProjectType.BUILD_OUTPUT:
            entries = self._layout_under(structure.build_folder)
        elif structure.type == ProjectType.NESTED:
            entries = self._layout_under(structure.root_folder)
        else:
            entries = self._layout_flat()

        self._ensure_index(entries)
        return entries

    def _add(self, entries: dict[str, LayoutEntry], path: str, file: LayoutEntry) -> None:
        safe = safe_join(path)
        if safe is None:
            logger.warning(f"[Analyzer] Skipping unsafe path: {path}")
            return
        entries[safe] = file

    def _layout_single_html(self) -> dict[str, LayoutEntry]:
        logger.info("[Analyzer] Preparing single HTML file...")
        entries = self._layout_flat()
        html_path = self.structure.html_files[0]
        for path, file in zip(self.paths, self.files):
            if path == html_path:
                entries[INDEX_NAME] = file
                break
        return entries

    def _layout_under(self, folder: str | None) -> dict[str, LayoutEntry]:
        logger.info(f"[Analyzer] Preparing files from {folder}/...")
        prefix = f"{folder}/"
        entries: dict[str, LayoutEntry] = {}
        for path, file in zip(self.paths, self.files):
            if path.startswith(prefix):
                self._add(entries, path[len(prefix):], file)
        return entries

    def _layout_flat(self) -> dict[str, LayoutEntry]:
        entries: dict[str, LayoutEntry] = {}
        for path, file in zip(self.paths, self.files):
            if path.startswith("../"):
                path = path[3:]
            self._add(entries, path.lstrip("/"), file)
        return entries

    def _ensure_index(self, entries: dict[str, LayoutEntry]) -> None:
        if INDEX_NAME in entries:
            return

        entry_point = self.structure.entry_point
        if not entry_point:
            raise NoEntryPointError("No HTML entry point found")

        entry_name = posixpath.basename(entry_point)
        lowered = entry_name.lower()

        if lowered != INDEX_NAME and entry_name in entries:
            entries[INDEX_NAME] = entries[entry_name]
            logger.info(f"[Analyzer] Copied {entry_name} to {INDEX_NAME}")
            return

        match = next((p for p in sorted(entries) if p.lower().endswith(lowered)), None)

        if match and lowered != INDEX_NAME:
            entries[INDEX_NAME] = entries[match]
            logger.info(f"[Analyzer] Copied {match} to {INDEX_NAME}")
            return

        # A nested index.html keeps its relative assets working only in place
        target = match or entry_name
        entries[INDEX_NAME] = redirect_page(target)
        logger.info(f"[Analyzer] Created redirect to {target}")


# =============================================================================
# Archives
# =============================================================================

def is_direct_zip(files: list[ProjectFile], upload_type: str | None) -> bool:
    """True when the upload is a single ready-made ZIP archive."""
    if len(files) != 1:
        return False
    first = files[0]
    return (
        upload_type == UploadType.ZIP.value
        or first.relative_path.lower().endswith(".zip")
        or first.content_type == "application/zip"
    )


def write_archive(entries: dict[str, LayoutEntry], target: BinaryIO | Path) -> None:
    """Write a layout to a deflated ZIP, entries in path order."""
    with zipfile.ZipFile(target, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for path in sorted(entries):
            entry = entries[path]
            if isinstance(entry, bytes):
                zf.writestr(path, entry)
            elif entry.path is not None:
                zf.write(entry.path, arcname=path)
            else:
                zf.writestr(path, entry.read_bytes())


def build_archive_bytes(entries: dict[str, LayoutEntry]) -> bytes:
    buffer = io.BytesIO()
    write_archive(entries, buffer)
    return buffer.getvalue()


def inspect_archive(archive: bytes | Path) -> tuple[int, list[str]] | None:
    """
    Count entries and list HTML pages of an uploaded ZIP.

    Returns None when the archive cannot be read.
    """
    source = io.BytesIO(archive) if isinstance(archive, bytes) else archive
    try:
        with zipfile.ZipFile(source) as zf:
            names = zf.namelist()
    except (zipfile.BadZipFile, OSError) as e:
        logger.warning(f"Could not analyze ZIP: {e}")
        return None

    html = [name for name in names if name.lower().endswith(".html")]
    return len(names), html
