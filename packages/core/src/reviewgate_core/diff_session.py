"""The currently displayed diff of a review session.

Reads are lock-free: the current DiffView is an immutable object swapped by
a single reference assignment. Switches are serialized by a lock so two
concurrent switch requests can never interleave, and the swap only happens
after the collaborator has produced a complete view.

Annotations already collected are left alone on a switch, even
if they point at lines that no longer exist in the new view.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from reviewgate_core.errors import DiffSwitchFailed, InvalidDiffType
from reviewgate_core.git.diff import GitContext, parse_diff_type, run_git_diff
from reviewgate_core.models import DiffType, DiffView

logger = logging.getLogger(__name__)

Differ = Callable[[DiffType, str], DiffView]


class DiffSessionManager:
    def __init__(
        self,
        initial: DiffView,
        default_branch: str = "main",
        differ: Differ = run_git_diff,
        git_context: GitContext | None = None,
    ):
        self._view = initial
        self._default_branch = default_branch
        self._differ = differ
        self._lock = threading.Lock()
        self.git_context = git_context

    @property
    def default_branch(self) -> str:
        return self._default_branch

    def current(self) -> DiffView:
        return self._view

    def switch_to(self, diff_type) -> DiffView:
        """Replace the current view with a freshly computed one.

        Raises InvalidDiffType for unknown types and DiffSwitchFailed when
        the collaborator fails; in both cases the current view is unchanged.
        """
        diff_type = parse_diff_type(diff_type)

        with self._lock:
            if diff_type == self._view.diff_type:
                return self._view

            try:
                view = self._differ(diff_type, self._default_branch)
            except (DiffSwitchFailed, InvalidDiffType):
                logger.warning("Diff switch to %s failed; keeping %s", diff_type.value, self._view.diff_type.value)
                raise
            except Exception as e:
                logger.warning("Diff collaborator raised %s switching to %s", type(e).__name__, diff_type.value)
                raise DiffSwitchFailed(f"Failed to switch diff: {e}") from e

            self._view = view
            logger.info("Switched diff view to %s (%s)", view.diff_type.value, view.label)
            return view
