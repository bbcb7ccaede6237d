"""Merge-import of a teammate's share link into the local annotation set."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from reviewgate_core.errors import DecodeError
from reviewgate_core.models import Annotation
from reviewgate_core.sharing.annotations import from_shareable
from reviewgate_core.sharing.payload import decode

logger = logging.getLogger(__name__)

_UNKNOWN_TITLE = "Unknown Plan"


@dataclass
class ImportResult:
    """Outcome of importing a share link.

    ``added`` holds only the annotations that were not already present
    locally, in the order they appeared in the incoming payload.
    ``attachments`` is the merged attachment list the caller should adopt.
    """

    success: bool
    count: int
    title: str
    added: list[Annotation] = field(default_factory=list)
    attachments: list[str] = field(default_factory=list)
    reason: str | None = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "count": self.count,
            "title": self.title,
            "added": [a.to_dict() for a in self.added],
            "attachments": list(self.attachments),
            "reason": self.reason,
        }


def extract_title(document: str) -> str:
    for line in document.strip().splitlines():
        if line.startswith("#"):
            title = line.lstrip("#").strip()
            if title:
                return title
    return _UNKNOWN_TITLE


def extract_token(url_or_token: str) -> str:
    """Return the share token from a full share URL or a bare token."""
    value = (url_or_token or "").strip()
    if not value:
        raise DecodeError("Invalid share URL: nothing to import")
    if "#" in value:
        token = value.split("#", 1)[1]
        if not token:
            raise DecodeError("Invalid share URL: empty hash")
        return token
    if "://" in value:
        raise DecodeError("Invalid share URL: no hash fragment found")
    return value


def merge_annotations(local: Sequence[Annotation], incoming: Sequence[Annotation]) -> list[Annotation]:
    """Return the incoming annotations with no local twin.

    Two annotations are twins when original text, kind and text all match.
    """
    existing = {a.dedup_key() for a in local}
    return [a for a in incoming if a.dedup_key() not in existing]


def import_share(
    url_or_token: str,
    local_annotations: Sequence[Annotation],
    local_attachments: Sequence[str] = (),
) -> ImportResult:
    """Decode a share link and merge it into the local session.

    Never raises: decode failures are reported through ``success=False`` and
    a readable ``reason`` so the importing UI can show it verbatim.
    """
    try:
        payload = decode(extract_token(url_or_token))
        incoming = from_shareable(payload.annotations)
    except DecodeError as e:
        logger.info("Share import rejected: %s", e)
        return ImportResult(success=False, count=0, title="", attachments=list(local_attachments), reason=str(e))

    title = extract_title(payload.document)

    if not incoming:
        return ImportResult(
            success=True,
            count=0,
            title=title,
            attachments=list(local_attachments),
            reason="No annotations found in share link",
        )

    added = merge_annotations(local_annotations, incoming)
    if not added:
        return ImportResult(
            success=True,
            count=0,
            title=title,
            attachments=list(local_attachments),
            reason="All annotations in share link already exist",
        )

    attachments = list(local_attachments)
    attachments.extend(p for p in payload.attachments if p not in attachments)

    logger.info("Imported %d of %d annotation(s) from %r", len(added), len(incoming), title)
    return ImportResult(success=True, count=len(added), title=title, added=added, attachments=attachments)
