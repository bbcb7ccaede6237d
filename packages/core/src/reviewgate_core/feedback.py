"""Render collected annotations as markdown feedback for the agent."""

from __future__ import annotations

from collections.abc import Sequence

from reviewgate_core.models import Annotation, AnnotationKind

NO_PLAN_FEEDBACK = "No changes detected."
NO_REVIEW_FEEDBACK = "# Code Review\n\nNo feedback provided."


def _in_creation_order(annotations: Sequence[Annotation]) -> list[Annotation]:
    # sorted() is stable, so insertion order breaks created_at ties.
    return sorted(annotations, key=lambda a: a.created_at)


def export_plan_feedback(annotations: Sequence[Annotation]) -> str:
    if not annotations:
        return NO_PLAN_FEEDBACK

    count = len(annotations)
    lines = [
        "# Plan Feedback\n",
        f"I've reviewed this plan and have {count} piece{'s' if count > 1 else ''} of feedback:\n",
    ]

    for index, ann in enumerate(_in_creation_order(annotations), 1):
        if ann.kind == AnnotationKind.DELETION:
            lines.append(f"## {index}. Remove this")
            lines.append(f"```\n{ann.original_text}\n```")
            lines.append("> I don't want this in the plan.")
        elif ann.kind == AnnotationKind.INSERTION:
            lines.append(f"## {index}. Add this")
            lines.append(f"```\n{ann.text}\n```")
        elif ann.kind == AnnotationKind.REPLACEMENT:
            lines.append(f"## {index}. Change this")
            lines.append(f"**From:**\n```\n{ann.original_text}\n```")
            lines.append(f"**To:**\n```\n{ann.text}\n```")
        elif ann.kind == AnnotationKind.COMMENT:
            lines.append(f'## {index}. Feedback on: "{ann.original_text}"')
            lines.append(f"> {ann.text}")
        else:
            lines.append(f"## {index}. General feedback about the plan")
            lines.append(f"> {ann.text}")
        if ann.author:
            lines.append(f"_from {ann.author}_")
        lines.append("")

    lines.append("---\n")
    return "\n".join(lines)


def _line_range(ann: Annotation) -> str:
    start = ann.line_start
    end = ann.line_end if ann.line_end is not None else start
    side = ann.side.value if ann.side else "new"
    if start == end:
        return f"Line {start} ({side})"
    return f"Lines {start}-{end} ({side})"


def export_review_feedback(annotations: Sequence[Annotation]) -> str:
    """Group code-review annotations by file, then by starting line."""
    if not annotations:
        return NO_REVIEW_FEEDBACK

    grouped: dict[str, list[Annotation]] = {}
    for ann in _in_creation_order(annotations):
        grouped.setdefault(ann.file_path or "(general)", []).append(ann)

    lines = ["# Code Review Feedback\n"]
    for file_path, file_annotations in grouped.items():
        lines.append(f"## {file_path}\n")
        for ann in sorted(file_annotations, key=lambda a: a.line_start or 0):
            if ann.line_start is not None:
                lines.append(f"### {_line_range(ann)}")
            if ann.original_text and ann.kind == AnnotationKind.REPLACEMENT:
                lines.append(f"**Replace:**\n```\n{ann.original_text}\n```")
                lines.append(f"**Suggested code:**\n```\n{ann.text}\n```")
            elif ann.text:
                lines.append(ann.text)
            lines.append("")

    return "\n".join(lines)
