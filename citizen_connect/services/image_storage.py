"""
Image attachment storage on the local filesystem.

Files are written under UPLOAD_DIR with generated names and referenced by
a relative path "<url_prefix>/<filename>", which is also the static route
the app serves them from. Absolute filesystem paths never leave this
module.
"""

import logging
import os
import uuid
from dataclasses import dataclass
from typing import Optional

from citizen_connect.core.errors import ValidationError

logger = logging.getLogger(__name__)

MIME_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/bmp": ".bmp",
    "image/heic": ".heic",
}


@dataclass
class ImageUpload:
    """Attachment as received from the client, already read into memory."""
    filename: Optional[str]
    content_type: Optional[str]
    data: bytes


class ImageStorage:

    def __init__(self, upload_dir: str, url_prefix: str = "uploads", max_bytes: int = 5 * 1024 * 1024):
        self.upload_dir = os.path.abspath(upload_dir)
        self.url_prefix = url_prefix.strip("/")
        self.max_bytes = max_bytes

    def ensure_directory(self) -> None:
        os.makedirs(self.upload_dir, exist_ok=True)

    def validate(self, upload: ImageUpload) -> None:
        """
        Raises:
            ValidationError: non-image MIME type, empty file or oversize file
        """
        content_type = (upload.content_type or "").lower()
        if not content_type.startswith("image/"):
            raise ValidationError("Only image files are allowed")
        if content_type not in MIME_EXTENSIONS:
            raise ValidationError(f"Unsupported image type '{content_type}'")
        if not upload.data:
            raise ValidationError("Uploaded image is empty")
        if len(upload.data) > self.max_bytes:
            limit_mb = self.max_bytes / (1024 * 1024)
            raise ValidationError(f"Image exceeds the {limit_mb:g}MB size limit")

    def save(self, upload: ImageUpload) -> str:
        """
        Validate and write the image.

        Returns:
            Relative reference, e.g. "uploads/3f2a...e1.jpg"
        """
        self.validate(upload)
        self.ensure_directory()
        filename = f"{uuid.uuid4().hex}{self._extension(upload)}"
        path = os.path.join(self.upload_dir, filename)
        with open(path, "wb") as f:
            f.write(upload.data)
        logger.info(f"Image saved: {filename} ({len(upload.data)} bytes)")
        return f"{self.url_prefix}/{filename}"

    def delete(self, reference: str) -> None:
        """Remove a previously saved image. Missing files are ignored."""
        path = self.resolve(reference)
        if path is None:
            return
        try:
            os.remove(path)
            logger.info(f"Image removed: {os.path.basename(path)}")
        except FileNotFoundError:
            pass

    def resolve(self, reference: str) -> Optional[str]:
        """Filesystem path for a reference produced by save(), or None."""
        prefix = f"{self.url_prefix}/"
        if not reference or not reference.startswith(prefix):
            return None
        filename = reference[len(prefix):]
        if not filename or "/" in filename or "\\" in filename or filename.startswith("."):
            return None
        return os.path.join(self.upload_dir, filename)

    def _extension(self, upload: ImageUpload) -> str:
        # From the validated MIME type only; the client filename never picks
        # the extension StaticFiles serves the file with.
        return MIME_EXTENSIONS[(upload.content_type or "").lower()]
