"""
Uploads editor images to object storage and returns their public URLs.
"""

from __future__ import annotations

import logging
import re
import uuid

from backend.storage import StorageClient
from shared.site_content import PendingUpload

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class ImageUploadError(Exception):
    """Raised when an image cannot be stored."""


def _safe_filename(filename: str) -> str:
    name = _UNSAFE_FILENAME_CHARS.sub("-", filename or "").strip("-.")
    return name or "image"


class ImageUploader:
    def __init__(self, storage: StorageClient, prefix: str = "images"):
        self.storage = storage
        self.prefix = prefix.strip("/")

    def upload(self, file: PendingUpload) -> str:
        if not file.content:
            raise ImageUploadError(f"Image {file.filename!r} is empty")

        path = f"{self.prefix}/{uuid.uuid4().hex}-{_safe_filename(file.filename)}"
        try:
            self.storage.upload_bytes(path, file.content, file.content_type)
        except Exception as e:
            raise ImageUploadError(f"Failed to upload {file.filename!r}: {e}") from e
        logger.info("Uploaded image %s (%d bytes)", path, len(file.content))
        return self.storage.public_url(path)
