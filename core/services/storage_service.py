# =============================================================================
# core/services/storage_service.py - Media Host Uploads
# =============================================================================
# Stores build inputs on Supabase Storage and returns their public URLs,
# which the CI workflow downloads from. Icons are normalized to a 512x512
# PNG launcher image before upload.
# =============================================================================

import io
import logging
from pathlib import Path

from PIL import Image, ImageOps, UnidentifiedImageError

from app.config import settings
from app.exceptions import IconUploadError, ProjectProcessingError
from core.models.build import ProjectFile
from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.utils import sanitize_filename, with_retries

logger = logging.getLogger(__name__)

ARCHIVE_CONTENT_TYPE = "application/zip"
ICON_CONTENT_TYPE = "image/png"
ICON_SIZE = (512, 512)


def normalize_icon(data: bytes) -> bytes:
    """
    Scale and center-crop an image to fill ICON_SIZE, encoded as PNG.

    Raises:
        IconUploadError: The bytes are not a readable image
    """
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.load()
            if image.mode not in ("RGB", "RGBA"):
                image = image.convert("RGBA")
            fitted = ImageOps.fit(image, ICON_SIZE, method=Image.LANCZOS)
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
        raise IconUploadError(f"Could not read icon image: {e}")

    buffer = io.BytesIO()
    fitted.save(buffer, format="PNG", optimize=True)
    return buffer.getvalue()


class StorageService:
    """
    Service for media host uploads.

    Object names follow <folder>/<sanitized package>_<kind>_<build id>.
    Uploads are retried UPLOAD_RETRIES times with exponential backoff.
    """

    @staticmethod
    def icon_path(package_name: str, build_id: str) -> str:
        return f"{settings.ICON_FOLDER}/{sanitize_filename(package_name)}_icon_{build_id}.png"

    @staticmethod
    def archive_path(package_name: str, build_id: str) -> str:
        return f"{settings.PROJECT_FOLDER}/{sanitize_filename(package_name)}_source_{build_id}.zip"

    @staticmethod
    def upload_icon(icon: ProjectFile, package_name: str, build_id: str) -> str:
        """
        Normalize and upload the app icon.

        Returns:
            Public URL of the icon

        Raises:
            IconUploadError: If the image is unreadable or the upload fails
                after all retries
        """
        path = StorageService.icon_path(package_name, build_id)
        content = normalize_icon(icon.read_bytes())

        try:
            url = with_retries(
                lambda: SupabaseClient.upload_object(path, content, ICON_CONTENT_TYPE),
                attempts=settings.UPLOAD_RETRIES,
                label="Icon upload",
            )
        except SupabaseClientError as e:
            logger.error(f"Icon upload failed: {e}")
            raise IconUploadError(e.message)

        logger.info(f"Uploaded icon to storage: {path}")
        return url

    @staticmethod
    def upload_archive(archive: bytes | Path, package_name: str, build_id: str) -> str:
        """
        Upload the project archive.

        `archive` is raw bytes, or a path for archives spooled to disk.

        Returns:
            Public URL of the archive

        Raises:
            ProjectProcessingError: If the upload fails after all retries
        """
        path = StorageService.archive_path(package_name, build_id)

        try:
            url = with_retries(
                lambda: SupabaseClient.upload_object(path, archive, ARCHIVE_CONTENT_TYPE),
                attempts=settings.UPLOAD_RETRIES,
                label="Archive upload",
            )
        except SupabaseClientError as e:
            logger.error(f"Archive upload failed: {e}")
            raise ProjectProcessingError(e.message)

        logger.info(f"Uploaded project archive to storage: {path}")
        return url
