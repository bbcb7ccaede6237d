"""Abstract asset store interface.

Uploaded images and other attachments are handed to an AssetStore by the
session server. The server depends on AssetStore, not on a concrete backend,
so where bytes end up (temp dir, shared volume, object storage) is swappable
without touching the HTTP layer.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path


class AssetNotFound(KeyError):
    """No asset is stored under the requested reference."""


class AssetStore(ABC):
    """Pluggable storage for session attachments.

    References returned by save() are opaque to the client: it only echoes
    them back to /session/asset or embeds them in a share token.
    """

    @abstractmethod
    def save(self, filename: str, data: bytes) -> str:
        """Persist an uploaded asset and return its reference.

        Raises UploadFailed when the bytes could not be stored.
        """

    @abstractmethod
    def resolve(self, ref: str) -> Path:
        """Return a readable path for a reference.

        Raises AssetNotFound if nothing is stored under ``ref``.
        """

    def close(self) -> None:
        """Release any resources held by the store.

        Optional. Default is a no-op so callers can always call close() safely.
        """
