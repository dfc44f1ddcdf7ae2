# =============================================================================
# lib/supabase_client.py - Supabase Storage Client Wrapper
# =============================================================================
# This module provides a typed wrapper around Supabase Storage, the media
# host for uploaded icons and project archives. It implements the singleton
# pattern to reuse a single client connection.
#
# Usage:
#   from lib.supabase_client import SupabaseClient
#   url = SupabaseClient.upload_object("icons/app_icon.png", data, "image/png")
# =============================================================================

from __future__ import annotations

import logging
from pathlib import Path
from typing import BinaryIO

from supabase import Client, ClientOptions, create_client

from app.config import settings
from lib.utils import ApplicationError

logger = logging.getLogger(__name__)


class SupabaseClientError(ApplicationError):
    """Error during Supabase Storage operations."""

    def __init__(self, message: str, code: str = "SUPABASE_ERROR", **kwargs):
        super().__init__(message, code=code, **kwargs)


class SupabaseClient:
    """
    Typed wrapper for Supabase Storage.

    Implements singleton pattern - one client instance is shared across
    the application. All methods are class methods for easy access without
    instantiation.
    """

    _instance: Client | None = None

    @classmethod
    def get_client(cls) -> Client:
        """
        Get or create the singleton Supabase client.

        Uses the service_role key so uploads bypass Row Level Security.

        Raises:
            SupabaseClientError: If client creation fails
        """
        if cls._instance is None:
            if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_KEY:
                raise SupabaseClientError(
                    message="Supabase storage is not configured",
                    code="CLIENT_INIT_FAILED",
                    suggestion="Set SUPABASE_URL and SUPABASE_SERVICE_KEY in your .env file"
                )
            try:
                cls._instance = create_client(
                    settings.SUPABASE_URL,
                    settings.SUPABASE_SERVICE_KEY,
                    options=ClientOptions(storage_client_timeout=settings.UPLOAD_TIMEOUT),
                )
                logger.info("Supabase client initialized successfully")
            except Exception as e:
                raise SupabaseClientError(
                    message=f"Failed to create Supabase client: {e}",
                    code="CLIENT_INIT_FAILED",
                    suggestion="Check SUPABASE_URL and SUPABASE_SERVICE_KEY in your .env file"
                )
        return cls._instance

    @classmethod
    def upload_object(
        cls,
        path: str,
        content: bytes | BinaryIO | Path,
        content_type: str,
        bucket: str | None = None,
    ) -> str:
        """
        Upload (upsert) an object and return its public URL.

        Args:
            path: Object path inside the bucket
            content: Raw bytes, an open binary file, or a path on disk
            content_type: MIME type stored with the object
            bucket: Bucket name (defaults to STORAGE_BUCKET)

        Returns:
            Public URL of the stored object

        Raises:
            SupabaseClientError: If the upload fails
        """
        bucket = bucket or settings.STORAGE_BUCKET
        client = cls.get_client()
        storage = client.storage.from_(bucket)

        try:
            if isinstance(content, Path):
                with content.open("rb") as handle:
                    storage.upload(
                        path=path,
                        file=handle,
                        file_options={"content-type": content_type, "upsert": "true"},
                    )
            else:
                storage.upload(
                    path=path,
                    file=content,
                    file_options={"content-type": content_type, "upsert": "true"},
                )
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to upload {path}: {e}",
                code="UPLOAD_FAILED",
                suggestion=f"Check that bucket '{bucket}' exists and is public",
                details={"bucket": bucket, "path": path},
            )

        url = storage.get_public_url(path)
        logger.debug(f"Stored {path} in bucket {bucket}")
        return url
