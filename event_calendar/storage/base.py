from __future__ import annotations

from abc import ABC, abstractmethod


class ImageStore(ABC):
    """Where event posters live. Keys are relative POSIX paths like ``event-posters/ab12.png``."""

    @abstractmethod
    def save(self, key: str, data: bytes) -> str:
        """Write the image under key and return the URL clients load it from."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove key; missing keys are ignored."""

    @abstractmethod
    def exists(self, key: str) -> bool: ...

    @abstractmethod
    def public_url(self, key: str) -> str: ...

    @abstractmethod
    def key_for_url(self, url: str | None) -> str | None:
        """The key behind a URL this store handed out, or None for any other URL."""
