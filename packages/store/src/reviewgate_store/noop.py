"""No-op store used when uploads are disabled in .reviewgate.yml.

Using a NoOpAssetStore rather than None lets the server always call
store.save() / store.resolve() without conditional checks.
"""

from __future__ import annotations

from pathlib import Path

from reviewgate_core.errors import UploadFailed
from reviewgate_store.base import AssetNotFound, AssetStore


class NoOpAssetStore(AssetStore):
    """Refuses every upload and resolves nothing."""

    def save(self, filename: str, data: bytes) -> str:
        raise UploadFailed("Uploads are disabled for this session")

    def resolve(self, ref: str) -> Path:
        raise AssetNotFound(ref)
