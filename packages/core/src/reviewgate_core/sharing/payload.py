"""Share-token codec: a whole review session packed into a URL fragment.

Token layout, before base64url:

    +---------+------------------------------------------------+
    | version | raw DEFLATE of compact JSON {"p", "a", "g"}    |
    +---------+------------------------------------------------+

The base64 alphabet is the URL-safe one with padding stripped, so the token
can sit in a fragment without escaping. The leading version byte gives the
format a migration path; tokens with an unknown version are rejected rather
than guessed at.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import zlib
from collections.abc import Iterable

from reviewgate_core.errors import DecodeError
from reviewgate_core.models import Annotation, SessionPayload
from reviewgate_core.sharing.annotations import to_shareable

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1

# Negative wbits selects a raw DEFLATE stream with no zlib header/trailer.
_WBITS = -15


def _deflate(data: bytes) -> bytes:
    compressor = zlib.compressobj(zlib.Z_BEST_COMPRESSION, zlib.DEFLATED, _WBITS)
    return compressor.compress(data) + compressor.flush()


def _inflate(data: bytes) -> bytes:
    decompressor = zlib.decompressobj(_WBITS)
    out = decompressor.decompress(data) + decompressor.flush()
    if not decompressor.eof:
        raise DecodeError("Compressed stream is truncated")
    return out


def encode(payload: SessionPayload) -> str:
    body = {
        "p": payload.document,
        "a": [list(t) for t in payload.annotations],
        "g": list(payload.attachments),
    }
    raw = json.dumps(body, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    blob = bytes([FORMAT_VERSION]) + _deflate(raw)
    return base64.urlsafe_b64encode(blob).decode("ascii").rstrip("=")


def _b64decode(token: str) -> bytes:
    stripped = token.strip()
    if not stripped:
        raise DecodeError("Share token is empty")
    try:
        padded = stripped + "=" * (-len(stripped) % 4)
        return base64.b64decode(padded.encode("ascii"), altchars=b"-_", validate=True)
    except (binascii.Error, ValueError, UnicodeEncodeError) as e:
        raise DecodeError(f"Share token is not valid base64url: {e}") from e


def decode(token: str) -> SessionPayload:
    """Inverse of encode.

    Every failure mode (alphabet, version, compression, JSON, shape) raises
    DecodeError so callers can show one human-readable reason.
    """
    blob = _b64decode(token)
    if not blob:
        raise DecodeError("Share token is empty")

    version = blob[0]
    if version != FORMAT_VERSION:
        raise DecodeError(f"Unsupported share token version {version} (expected {FORMAT_VERSION})")

    try:
        raw = _inflate(blob[1:])
    except zlib.error as e:
        raise DecodeError(f"Share token could not be decompressed: {e}") from e

    try:
        body = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DecodeError(f"Share token does not contain a valid session: {e}") from e

    return _payload_from_body(body)


def _payload_from_body(body) -> SessionPayload:
    if not isinstance(body, dict):
        raise DecodeError("Share token does not contain a session object")

    document = body.get("p")
    if not isinstance(document, str):
        raise DecodeError("Share token is missing the document text")

    annotations = body.get("a", [])
    if not isinstance(annotations, list) or not all(isinstance(a, list) and a for a in annotations):
        raise DecodeError("Share token annotations must be a list of non-empty tuples")

    attachments = body.get("g") or []
    if not isinstance(attachments, list) or not all(isinstance(g, str) for g in attachments):
        raise DecodeError("Share token attachments must be a list of strings")

    return SessionPayload(
        document=document,
        annotations=[tuple(a) for a in annotations],
        attachments=list(attachments),
    )


def generate_share_url(
    document: str,
    annotations: Iterable[Annotation],
    attachments: Iterable[str] = (),
    base_url: str = "https://share.reviewgate.dev",
) -> str:
    payload = SessionPayload(
        document=document,
        annotations=to_shareable(annotations),
        attachments=list(attachments),
    )
    token = encode(payload)
    logger.debug("Generated share token of %d chars", len(token))
    return f"{base_url.rstrip('/')}/#{token}"


def format_url_size(url: str) -> str:
    size = len(url.encode("utf-8"))
    if size < 1024:
        return f"{size} B"
    return f"{size / 1024:.1f} KB"
