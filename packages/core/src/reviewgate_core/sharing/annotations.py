"""Compact positional tuples for annotations carried in a share token.

Every byte counts in a URL fragment, so each annotation is reduced to the
smallest tuple that still identifies it:

    Deletion                        (tag, original_text, author)
    Replacement / Comment / Insert  (tag, original_text, text, author)
    Global comment                  (tag, text, author)

Ids and timestamps are not transmitted. Decoding mints fresh ids and derives
``created_at`` from the tuple index so relative order survives the trip.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Iterable, Sequence

from reviewgate_core.errors import MalformedAnnotation
from reviewgate_core.models import Annotation, AnnotationKind

_TAG_BY_KIND = {
    AnnotationKind.DELETION: "D",
    AnnotationKind.REPLACEMENT: "R",
    AnnotationKind.COMMENT: "C",
    AnnotationKind.INSERTION: "I",
    AnnotationKind.GLOBAL_COMMENT: "G",
}
_KIND_BY_TAG = {tag: kind for kind, tag in _TAG_BY_KIND.items()}

# Tuple length per tag, tag included.
_ARITY = {"D": 3, "R": 4, "C": 4, "I": 4, "G": 3}


def to_tuple(annotation: Annotation) -> tuple:
    tag = _TAG_BY_KIND[annotation.kind]
    author = annotation.author or None
    if tag == "G":
        return (tag, annotation.text or "", author)
    if tag == "D":
        return (tag, annotation.original_text, author)
    return (tag, annotation.original_text, annotation.text or "", author)


def to_shareable(annotations: Iterable[Annotation]) -> list[tuple]:
    return [to_tuple(a) for a in annotations]


def _check_str(value, index: int, field_name: str, nullable: bool = False) -> None:
    if value is None and nullable:
        return
    if not isinstance(value, str):
        raise MalformedAnnotation(f"annotation #{index}: {field_name} must be a string, got {type(value).__name__}")


def from_tuple(item: Sequence, index: int, now: int) -> Annotation:
    """Rebuild one annotation from its tuple.

    Raises MalformedAnnotation for unknown tags, wrong arity, or fields of
    the wrong type. A token containing one bad tuple is rejected as a whole.
    """
    if not isinstance(item, (list, tuple)) or not item:
        raise MalformedAnnotation(f"annotation #{index} is not a non-empty tuple")

    tag = item[0]
    kind = _KIND_BY_TAG.get(tag) if isinstance(tag, str) else None
    if kind is None:
        raise MalformedAnnotation(f"annotation #{index} has unknown tag {tag!r}")
    if len(item) != _ARITY[tag]:
        raise MalformedAnnotation(f"annotation #{index} ({tag}) expects {_ARITY[tag]} fields, got {len(item)}")

    if tag == "G":
        original_text, text, author = "", item[1], item[2]
        _check_str(text, index, "text")
    elif tag == "D":
        original_text, text, author = item[1], None, item[2]
        _check_str(original_text, index, "originalText")
    else:
        original_text, text, author = item[1], item[2], item[3]
        _check_str(original_text, index, "originalText")
        _check_str(text, index, "text")
    _check_str(author, index, "author", nullable=True)

    return Annotation(
        id=f"shared-{index}-{uuid.uuid4().hex[:8]}",
        kind=kind,
        original_text=original_text,
        text=text,
        author=author or None,
        created_at=now + index,
    )


def from_shareable(items: Iterable[Sequence], now: int | None = None) -> list[Annotation]:
    base = int(time.time() * 1000) if now is None else now
    return [from_tuple(item, i, base) for i, item in enumerate(items)]
