"""Persistence contract for comments and an in-memory implementation."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone
from itertools import count
from typing import Callable, Dict, List, Optional, Protocol, Tuple

from .errors import COMMENT_NOT_FOUND
from .types import Comment, CommentStatus, CommentVisibility

logger = logging.getLogger(__name__)


class CommentStore(Protocol):
    """Interface for the database behind comments.

    Mutations return an opaque error message, or None on success. Deleting
    a root comment must also delete its replies.
    """

    def create_comment(
        self,
        version_id: str,
        author_id: str,
        content: str,
        pos_x: Optional[float] = None,
        pos_y: Optional[float] = None,
        video_timestamp: Optional[float] = None,
        parent_id: Optional[str] = None,
        visibility: CommentVisibility = CommentVisibility.EXTERNAL,
    ) -> Tuple[Optional[Comment], Optional[str]]:
        ...

    def resolve_comment(self, comment_id: str) -> Optional[str]:
        ...

    def reopen_comment(self, comment_id: str) -> Optional[str]:
        ...

    def delete_comment(self, comment_id: str) -> Optional[str]:
        ...

    def fetch_comments(self, version_id: str) -> Tuple[List[Comment], Optional[str]]:
        ...


class InMemoryCommentStore:
    """Comment store kept in process memory.

    Args:
        clock: Returns the creation time for new comments. Defaults to the
            current UTC time.
        members: Maps author ids to display names joined onto comments.
    """

    def __init__(
        self,
        clock: Optional[Callable[[], datetime]] = None,
        members: Optional[Dict[str, str]] = None,
    ) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._members = dict(members or {})
        self._comments: Dict[str, Comment] = {}
        self._id_source = count(1)
        # While set, every mutation fails with this message
        self.failure: Optional[str] = None
        self.fetch_failure: Optional[str] = None

    def _next_id(self) -> str:
        return f"comment_{next(self._id_source)}"

    def create_comment(
        self,
        version_id: str,
        author_id: str,
        content: str,
        pos_x: Optional[float] = None,
        pos_y: Optional[float] = None,
        video_timestamp: Optional[float] = None,
        parent_id: Optional[str] = None,
        visibility: CommentVisibility = CommentVisibility.EXTERNAL,
    ) -> Tuple[Optional[Comment], Optional[str]]:
        if self.failure:
            return None, self.failure
        comment = Comment(
            id=self._next_id(),
            version_id=version_id,
            author_id=author_id,
            content=content,
            created_at=self._clock(),
            author_name=self._members.get(author_id, ""),
            pos_x=pos_x,
            pos_y=pos_y,
            video_timestamp=video_timestamp,
            parent_id=parent_id,
            visibility=visibility,
        )
        self._comments[comment.id] = comment
        return replace(comment), None

    def _set_status(self, comment_id: str, status: CommentStatus) -> Optional[str]:
        if self.failure:
            return self.failure
        comment = self._comments.get(comment_id)
        if comment is None:
            return COMMENT_NOT_FOUND
        comment.status = status
        comment.updated_at = self._clock()
        return None

    def resolve_comment(self, comment_id: str) -> Optional[str]:
        return self._set_status(comment_id, CommentStatus.RESOLVED)

    def reopen_comment(self, comment_id: str) -> Optional[str]:
        return self._set_status(comment_id, CommentStatus.OPEN)

    def delete_comment(self, comment_id: str) -> Optional[str]:
        if self.failure:
            return self.failure
        if comment_id not in self._comments:
            return COMMENT_NOT_FOUND
        doomed = {comment_id}
        doomed.update(c.id for c in self._comments.values() if c.parent_id == comment_id)
        for doomed_id in doomed:
            del self._comments[doomed_id]
        logger.debug("Deleted %d comment(s) rooted at %s", len(doomed), comment_id)
        return None

    def fetch_comments(self, version_id: str) -> Tuple[List[Comment], Optional[str]]:
        if self.fetch_failure:
            return [], self.fetch_failure
        comments = [replace(c) for c in self._comments.values() if c.version_id == version_id]
        comments.sort(key=lambda c: c.created_at)
        return comments, None
