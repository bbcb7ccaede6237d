"""Error taxonomy for review sessions.

Only startup failures (PortExhausted, fatal bind errors) are allowed to
propagate out of a session. Everything else is raised inside a request
handler and converted to an HTTP error response at the boundary.
"""

from __future__ import annotations


class ReviewGateError(Exception):
    """Base class for all reviewgate errors."""


class PortExhausted(ReviewGateError):
    """The configured port stayed in use for every bind attempt."""

    def __init__(self, port: int, attempts: int, hint: str = ""):
        self.port = port
        self.attempts = attempts
        message = f"Port {port} in use after {attempts} attempt(s)"
        if hint:
            message += f" ({hint})"
        super().__init__(message)


class DiffSwitchFailed(ReviewGateError):
    """The diff collaborator could not produce the requested view."""


class InvalidDiffType(ReviewGateError, ValueError):
    """The client asked for a diff type outside the supported enumeration."""


class DecodeError(ReviewGateError):
    """A share token could not be turned back into a SessionPayload."""


class MalformedAnnotation(DecodeError):
    """An annotation tuple or dict does not describe a valid Annotation.

    Subclasses DecodeError so importers can report it as a readable reason
    alongside every other token failure.
    """


class UploadFailed(ReviewGateError):
    """The storage collaborator failed to persist an uploaded asset."""
