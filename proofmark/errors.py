"""Error kinds raised by the annotation engine."""

from __future__ import annotations


class AnnotationError(Exception):
    """Base class for annotation failures carrying a human-readable reason."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class ValidationError(AnnotationError):
    """An attempted action is invalid and is discarded without side effects."""


class StateConflict(AnnotationError):
    """The action conflicts with the current state (locked version, bad parent)."""


class PersistenceFailure(AnnotationError):
    """The external store reported a failure."""


NOT_AUTHENTICATED = "not authenticated"
LOCKED = "locked"
INVALID_PARENT = "invalid parent"
COMMENT_NOT_FOUND = "comment not found"
EMPTY_COMMENT = "empty comment"
INVALID_VISIBILITY = "invalid visibility"
