"""LocalAssetStore: uploads written to a directory on the reviewer's machine.

The reference handed back to the client is the absolute path of the written
file. With ``allow_external`` set, resolve() also accepts any other existing
local path, since plans and share links refer to attachments (screenshots,
diagrams) by path. That exposes every readable file to whoever can reach the
server, so remote sessions, which listen on all interfaces, turn it off.
"""

from __future__ import annotations

import logging
import tempfile
import uuid
from pathlib import Path

from reviewgate_core.errors import UploadFailed
from reviewgate_store.base import AssetNotFound, AssetStore
from reviewgate_store.models import StoredAsset

logger = logging.getLogger(__name__)

_DEFAULT_SUFFIX = ".png"


def default_upload_dir() -> Path:
    return Path(tempfile.gettempdir()) / "reviewgate"


class LocalAssetStore(AssetStore):
    def __init__(self, upload_dir: str | Path | None = None, allow_external: bool = True):
        self._upload_dir = Path(upload_dir) if upload_dir else default_upload_dir()
        self._allow_external = allow_external

    @property
    def upload_dir(self) -> Path:
        return self._upload_dir

    def put(self, filename: str, data: bytes) -> StoredAsset:
        suffix = Path(filename or "").suffix or _DEFAULT_SUFFIX
        target = self._upload_dir / f"{uuid.uuid4()}{suffix}"
        try:
            self._upload_dir.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            logger.warning("Could not store upload %r: %s", filename, e)
            raise UploadFailed(f"Could not store {filename or 'upload'}: {e}") from e
        return StoredAsset(ref=str(target.resolve()), filename=filename, size=len(data))

    def save(self, filename: str, data: bytes) -> str:
        return self.put(filename, data).ref

    def resolve(self, ref: str) -> Path:
        if not ref:
            raise AssetNotFound(ref)
        path = Path(ref).expanduser()
        if not path.is_file():
            raise AssetNotFound(ref)
        if not self._allow_external and not path.resolve().is_relative_to(self._upload_dir.resolve()):
            logger.warning("Refusing to serve %s: outside %s", ref, self._upload_dir)
            raise AssetNotFound(ref)
        return path
