"""Git diff collaborator used by diff-review sessions.

Each supported DiffType maps to one ``git diff`` invocation. Any failure to
produce the patch is reported as DiffSwitchFailed so the session can keep
showing the previous view.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass, field

from reviewgate_core.errors import DiffSwitchFailed, InvalidDiffType
from reviewgate_core.models import DiffType, DiffView

logger = logging.getLogger(__name__)

_GIT_TIMEOUT = 30
_FALLBACK_DEFAULT_BRANCH = "main"

_LABELS = {
    DiffType.UNCOMMITTED: "Uncommitted changes",
    DiffType.STAGED: "Staged changes",
    DiffType.UNSTAGED: "Unstaged changes",
    DiffType.LAST_COMMIT: "Last commit",
}


@dataclass
class DiffOption:
    id: str
    label: str


@dataclass
class GitContext:
    """Branch information and the diff views the client may switch between."""

    current_branch: str | None
    default_branch: str
    diff_options: list[DiffOption] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "currentBranch": self.current_branch,
            "defaultBranch": self.default_branch,
            "diffOptions": [{"id": o.id, "label": o.label} for o in self.diff_options],
        }


def parse_diff_type(value) -> DiffType:
    if isinstance(value, DiffType):
        return value
    try:
        return DiffType(value)
    except ValueError:
        valid = ", ".join(t.value for t in DiffType)
        raise InvalidDiffType(f"Unknown diff type {value!r}. Choose one of: {valid}.")


def diff_args(diff_type: DiffType, default_branch: str) -> tuple[list[str], str]:
    """Return the git arguments and human label for a diff type."""
    if diff_type == DiffType.UNCOMMITTED:
        return ["diff", "HEAD"], _LABELS[diff_type]
    if diff_type == DiffType.STAGED:
        return ["diff", "--staged"], _LABELS[diff_type]
    if diff_type == DiffType.UNSTAGED:
        return ["diff"], _LABELS[diff_type]
    if diff_type == DiffType.LAST_COMMIT:
        return ["diff", "HEAD~1..HEAD"], _LABELS[diff_type]
    if diff_type == DiffType.BRANCH:
        return ["diff", f"{default_branch}..HEAD"], f"Changes vs {default_branch}"
    raise InvalidDiffType(f"Unsupported diff type: {diff_type!r}")


def _git(args: list[str], cwd: str | None = None) -> subprocess.CompletedProcess:
    return subprocess.run(
        ["git", *args],
        capture_output=True,
        text=True,
        timeout=_GIT_TIMEOUT,
        cwd=cwd,
    )


def run_git_diff(diff_type, default_branch: str, cwd: str | None = None) -> DiffView:
    diff_type = parse_diff_type(diff_type)
    args, label = diff_args(diff_type, default_branch)
    try:
        result = _git(args, cwd=cwd)
    except FileNotFoundError:
        raise DiffSwitchFailed("git is not installed or not on PATH")
    except subprocess.TimeoutExpired:
        raise DiffSwitchFailed(f"git {' '.join(args)} timed out after {_GIT_TIMEOUT}s")

    if result.returncode != 0:
        stderr = result.stderr.strip() or f"exit code {result.returncode}"
        raise DiffSwitchFailed(f"git {' '.join(args)} failed: {stderr}")

    logger.debug("git %s produced %d bytes of patch", " ".join(args), len(result.stdout))
    return DiffView(diff_type=diff_type, raw_patch=result.stdout, label=label)


def _output_or_none(args: list[str], cwd: str | None = None) -> str | None:
    try:
        result = _git(args, cwd=cwd)
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return None
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


def get_current_branch(cwd: str | None = None) -> str | None:
    branch = _output_or_none(["rev-parse", "--abbrev-ref", "HEAD"], cwd=cwd)
    # A detached HEAD reports the literal "HEAD".
    return branch if branch and branch != "HEAD" else None


def get_default_branch(cwd: str | None = None) -> str:
    ref = _output_or_none(["symbolic-ref", "refs/remotes/origin/HEAD"], cwd=cwd)
    if ref:
        return ref.removeprefix("refs/remotes/origin/")
    for candidate in ("main", "master"):
        if _output_or_none(["rev-parse", "--verify", "--quiet", f"refs/heads/{candidate}"], cwd=cwd):
            return candidate
    return _FALLBACK_DEFAULT_BRANCH


def get_git_context(cwd: str | None = None) -> GitContext:
    current = get_current_branch(cwd=cwd)
    default = get_default_branch(cwd=cwd)

    options = [DiffOption(id=t.value, label=_LABELS[t]) for t in _LABELS]
    if current and current != default:
        options.append(DiffOption(id=DiffType.BRANCH.value, label=f"Changes vs {default}"))

    return GitContext(current_branch=current, default_branch=default, diff_options=options)
