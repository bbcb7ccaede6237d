"""Single-resolution hand-off between HTTP handlers and the launching process.

The launcher calls wait() once and blocks on an Event; any number of request
handlers may call resolve() concurrently. A compare-and-set under a lock
picks exactly one winner, and later resolutions are reported as losers
without touching the stored Decision.
"""

from __future__ import annotations

import logging
import threading

from reviewgate_core.models import Decision

logger = logging.getLogger(__name__)


class DecisionChannel:
    def __init__(self):
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._decision: Decision | None = None
        self._waiting = False
        self._delivered = False

    @property
    def resolved(self) -> bool:
        return self._done.is_set()

    def resolve(self, decision: Decision) -> bool:
        """Offer a decision. Returns True only for the call that won."""
        with self._lock:
            if self._decision is not None:
                logger.debug("Ignoring duplicate decision (approved=%s)", decision.approved)
                return False
            self._decision = decision
        self._done.set()
        logger.info("Decision resolved: approved=%s", decision.approved)
        return True

    def wait(self, timeout: float | None = None) -> Decision | None:
        """Block until a decision arrives and return it.

        Returns None if ``timeout`` elapses first; the caller may wait again
        or give up and stop the server. Once a decision has been delivered,
        further calls raise RuntimeError.
        """
        with self._lock:
            if self._delivered:
                raise RuntimeError("Decision already delivered; wait() may only succeed once per session")
            if self._waiting:
                raise RuntimeError("Another caller is already waiting on this session")
            self._waiting = True

        try:
            if not self._done.wait(timeout):
                return None
            with self._lock:
                self._delivered = True
                return self._decision
        finally:
            with self._lock:
                self._waiting = False
