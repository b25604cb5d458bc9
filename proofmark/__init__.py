"""ProofMark review annotation engine built with PySide6.

Reviewers draw markup over a rendered asset and discuss it in threaded,
pinned comments. The list models here are meant to be bound from QML,
while the geometry, history and text helpers work without a Qt event loop.
"""

from .comments import CommentModel
from .composer import ComposerBuffer, plain_text, sanitize_html
from .errors import AnnotationError, PersistenceFailure, StateConflict, ValidationError
from .logging_config import LoggingConfig
from .model import ShapeModel
from .settings import AnnotationSettings
from .store import CommentStore, InMemoryCommentStore
from .types import (
    Comment,
    CommentStatus,
    CommentVisibility,
    DrawingPoint,
    Member,
    MentionToken,
    Shape,
    ShapeType,
    Tool,
)

__all__ = [
    "AnnotationError",
    "AnnotationSettings",
    "Comment",
    "CommentModel",
    "CommentStatus",
    "CommentStore",
    "CommentVisibility",
    "ComposerBuffer",
    "DrawingPoint",
    "InMemoryCommentStore",
    "LoggingConfig",
    "Member",
    "MentionToken",
    "PersistenceFailure",
    "Shape",
    "ShapeModel",
    "ShapeType",
    "StateConflict",
    "Tool",
    "ValidationError",
    "plain_text",
    "sanitize_html",
]
