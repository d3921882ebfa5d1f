from __future__ import annotations

from event_calendar.storage.base import ImageStore
from event_calendar.storage.images import ImageUpload, check_image, image_key
from event_calendar.storage.local import LocalImageStore


def create_storage(*args, **kwargs):
    from event_calendar.storage.factory import create_storage as _create_storage

    return _create_storage(*args, **kwargs)


def get_storage():
    from event_calendar.storage.factory import get_storage as _get_storage

    return _get_storage()


__all__ = [
    "ImageStore",
    "LocalImageStore",
    "ImageUpload",
    "check_image",
    "image_key",
    "create_storage",
    "get_storage",
]
