"""Review session data models.

Annotations are created client-side and travel to the server as camelCase
JSON; the dataclasses here are the snake_case view used by the codecs, the
feedback export and the decision channel.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from reviewgate_core.errors import MalformedAnnotation


class AnnotationKind(str, Enum):
    DELETION = "DELETION"
    INSERTION = "INSERTION"
    REPLACEMENT = "REPLACEMENT"
    COMMENT = "COMMENT"
    GLOBAL_COMMENT = "GLOBAL_COMMENT"


class Side(str, Enum):
    OLD = "old"
    NEW = "new"


class DiffType(str, Enum):
    UNCOMMITTED = "uncommitted"
    STAGED = "staged"
    UNSTAGED = "unstaged"
    LAST_COMMIT = "last-commit"
    BRANCH = "branch"


@dataclass
class Annotation:
    """A single piece of reviewer feedback.

    ``original_text`` is the quoted source span (empty for global comments).
    ``created_at`` is only used for stable ordering; it is never compared
    across sessions. The code-review fields stay None for plan sessions.
    """

    id: str
    kind: AnnotationKind
    original_text: str = ""
    text: str | None = None
    author: str | None = None
    created_at: int = 0
    file_path: str | None = None
    line_start: int | None = None
    line_end: int | None = None
    side: Side | None = None

    def validate(self) -> Annotation:
        if self.kind != AnnotationKind.DELETION and self.text is None:
            raise MalformedAnnotation(f"{self.kind.value} annotation {self.id!r} requires text")
        if self.line_start is not None and self.line_end is not None and self.line_end < self.line_start:
            raise MalformedAnnotation(
                f"annotation {self.id!r} ends at line {self.line_end} before it starts at {self.line_start}"
            )
        return self

    def rename_author(self, author: str | None) -> None:
        self.author = author or None

    def dedup_key(self) -> tuple:
        return (self.original_text, self.kind, self.text or None)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "kind": self.kind.value,
            "originalText": self.original_text,
            "text": self.text,
            "author": self.author,
            "createdAt": self.created_at,
        }
        if self.file_path is not None:
            d["filePath"] = self.file_path
            d["lineStart"] = self.line_start
            d["lineEnd"] = self.line_end
            d["side"] = self.side.value if self.side else None
        return d

    @classmethod
    def from_dict(cls, d: Any) -> Annotation:
        if not isinstance(d, dict):
            raise MalformedAnnotation(f"annotation must be an object, got {type(d).__name__}")
        try:
            kind = AnnotationKind(d.get("kind") or d.get("type"))
        except (TypeError, ValueError):
            raise MalformedAnnotation(f"unknown annotation kind: {d.get('kind') or d.get('type')!r}")
        for key in ("originalText", "text", "author", "filePath"):
            _expect(d, key, str)
        for key in ("lineStart", "lineEnd"):
            _expect(d, key, int)
        side = d.get("side")
        text = d.get("text")
        if kind == AnnotationKind.DELETION:
            # Deletions carry no replacement text; share tokens drop it too.
            text = None
        try:
            annotation = cls(
                id=str(d.get("id") or ""),
                kind=kind,
                original_text=d.get("originalText") or "",
                text=text,
                author=d.get("author") or None,
                created_at=int(d.get("createdAt") or 0),
                file_path=d.get("filePath"),
                line_start=d.get("lineStart"),
                line_end=d.get("lineEnd"),
                side=Side(side) if side else None,
            )
            return annotation.validate()
        except (TypeError, ValueError) as e:
            raise MalformedAnnotation(f"invalid annotation field: {e}") from e


def _expect(d: dict, key: str, expected: type) -> None:
    value = d.get(key)
    if value is None:
        return
    # bool is an int subclass but never a valid line number.
    if not isinstance(value, expected) or isinstance(value, bool):
        raise MalformedAnnotation(f"{key} must be {expected.__name__} or null, got {type(value).__name__}")


@dataclass
class SessionPayload:
    """The unit carried by a share token.

    ``annotations`` holds the compact tuples produced by the annotation
    codec, in creation order.
    """

    document: str
    annotations: list[tuple] = field(default_factory=list)
    attachments: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class DiffView:
    diff_type: DiffType
    raw_patch: str
    label: str

    def to_dict(self) -> dict[str, str]:
        return {"diffType": self.diff_type.value, "rawPatch": self.raw_patch, "label": self.label}


@dataclass
class Decision:
    """Terminal outcome of a session, produced exactly once."""

    approved: bool
    feedback: str | None = None
    extra: dict[str, str] = field(default_factory=dict)
    annotations: list[Annotation] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "approved": self.approved,
            "feedback": self.feedback,
            "extra": dict(self.extra),
            "annotations": [a.to_dict() for a in self.annotations],
        }
