from __future__ import annotations

import os
import tempfile
from pathlib import Path, PurePosixPath

from event_calendar.storage.base import ImageStore


class LocalImageStore(ImageStore):
    """Posters on the local disk, served back through the ``/uploads`` static mount."""

    def __init__(self, root: Path, public_base_url: str) -> None:
        self._root = Path(root).resolve()
        self._root.mkdir(parents=True, exist_ok=True)
        self._public_base_url = public_base_url.rstrip("/")

    @property
    def root(self) -> Path:
        return self._root

    def _clean_key(self, key: str) -> PurePosixPath:
        cleaned = PurePosixPath(key.strip().lstrip("/"))
        if not cleaned.parts or ".." in cleaned.parts:
            raise ValueError(f"invalid image key: {key!r}")
        return cleaned

    def _path(self, key: str) -> Path:
        return self._root.joinpath(*self._clean_key(key).parts)

    def save(self, key: str, data: bytes) -> str:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        # Write beside the target and rename so readers never see a partial poster.
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".upload-")
        try:
            with os.fdopen(fd, "wb") as out:
                out.write(data)
            os.replace(tmp_name, path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        return self.public_url(key)

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    def exists(self, key: str) -> bool:
        return self._path(key).is_file()

    def public_url(self, key: str) -> str:
        return f"{self._public_base_url}/{self._clean_key(key)}"

    def key_for_url(self, url: str | None) -> str | None:
        prefix = f"{self._public_base_url}/"
        if not url or not url.startswith(prefix):
            return None
        key = url[len(prefix):]
        try:
            return str(self._clean_key(key))
        except ValueError:
            return None
