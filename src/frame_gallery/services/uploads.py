"""Server-side image upload handling."""

import logging
import re
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol

from frame_gallery.domain.errors import ValidationError

_logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


class BlobStore(Protocol):
    """Interface for public blob storage."""

    def put(self, path: str, content: bytes, content_type: str) -> str:
        """Store bytes at a path and return the public URL."""


@dataclass(frozen=True)
class UploadReceipt:
    """Details of a stored image."""

    url: str
    filename: str
    size: int
    uploaded_at: datetime


@dataclass
class ImageUploadService:
    """Stores uploaded images under a per-user namespace."""

    blob_store: BlobStore
    max_upload_bytes: int

    def upload(
        self,
        user_id: str,
        original_name: str | None,
        content: bytes,
        content_type: str | None,
    ) -> UploadReceipt:
        """Validate and store an image, returning where it landed."""
        if not content:
            raise ValidationError("No file provided")
        if len(content) > self.max_upload_bytes:
            max_mb = self.max_upload_bytes / (1024 * 1024)
            raise ValidationError(f"File too large. Maximum size is {max_mb:.0f}MB")
        uploaded_at = datetime.now(tz=UTC)
        filename = build_blob_path(user_id, original_name, uploaded_at)
        url = self.blob_store.put(
            filename, content, content_type or "application/octet-stream"
        )
        _logger.info(
            "Image uploaded",
            extra={"user_id": user_id, "blob_path": filename, "size": len(content)},
        )
        return UploadReceipt(
            url=url, filename=filename, size=len(content), uploaded_at=uploaded_at
        )


def build_blob_path(user_id: str, original_name: str | None, at: datetime) -> str:
    """Return `{userId}/{epochMillis}_{sanitizedName}`."""
    safe_name = _UNSAFE_FILENAME_CHARS.sub("_", original_name or "") or "image"
    timestamp = int(at.timestamp() * 1000)
    return f"{user_id}/{timestamp}_{safe_name}"
