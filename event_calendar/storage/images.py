from __future__ import annotations

import uuid
from dataclasses import dataclass
from pathlib import PurePosixPath

from event_calendar.core.config import settings


@dataclass(frozen=True)
class ImageUpload:
    filename: str
    content_type: str
    data: bytes

    @property
    def extension(self) -> str:
        return PurePosixPath(self.filename or "").suffix.lstrip(".").lower()

    @property
    def size(self) -> int:
        return len(self.data)


def _format_size(num_bytes: int) -> str:
    megabytes = num_bytes / (1024 * 1024)
    if megabytes.is_integer():
        return f"{int(megabytes)}MB"
    return f"{megabytes:.1f}MB"


def check_image(
    upload: ImageUpload,
    max_bytes: int | None = None,
    allowed_formats: list[str] | None = None,
) -> list[str]:
    """Return the reasons an upload is rejected; empty when it is acceptable."""
    max_bytes = max_bytes or settings.upload_max_bytes
    allowed = {f.lower() for f in (allowed_formats or settings.upload_allowed_formats)}

    errors: list[str] = []
    content_type = (upload.content_type or "").lower()
    if not content_type.startswith("image/") or upload.extension not in allowed:
        errors.append("Only image files are allowed!")
    if upload.size > max_bytes:
        errors.append(f"File too large. Maximum size is {_format_size(max_bytes)}.")
    if upload.size == 0:
        errors.append("Image file is empty")
    return errors


def image_key(upload: ImageUpload, folder: str | None = None) -> str:
    folder = (folder or settings.storage_folder).strip("/")
    return f"{folder}/{uuid.uuid4().hex}.{upload.extension}"
