from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from event_calendar.core.config import settings
from event_calendar.storage.base import ImageStore
from event_calendar.storage.local import LocalImageStore


def create_storage(
    backend: str | None = None,
    root: str | Path | None = None,
    public_base_url: str | None = None,
) -> ImageStore:
    backend = (backend or settings.storage_backend).strip().lower()
    if backend == "local":
        return LocalImageStore(
            Path(root or settings.storage_root),
            public_base_url or settings.storage_public_base_url,
        )
    raise ValueError(f"unsupported image storage backend: {backend}")


@lru_cache(maxsize=1)
def get_storage() -> ImageStore:
    return create_storage()
