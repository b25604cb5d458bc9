"""Comment and pin model for ProofMark.

This module provides the Qt model for threaded review comments on one
asset version: pin numbering, threading, resolve/reopen, the filtered
panel view and the comment composer state.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar, Union

from PySide6.QtCore import (
    QAbstractListModel,
    QModelIndex,
    Property,
    Qt,
    Signal,
    Slot,
)

from .composer import plain_text, sanitize_html
from .constants import PIN_PREVIEW_LENGTH
from .errors import (
    COMMENT_NOT_FOUND,
    EMPTY_COMMENT,
    INVALID_PARENT,
    INVALID_VISIBILITY,
    LOCKED,
    NOT_AUTHENTICATED,
    AnnotationError,
    PersistenceFailure,
    StateConflict,
    ValidationError,
)
from .formatting import format_relative_time, format_timestamp, initials
from .geometry import to_percent
from .mentions import active_mention_query, filter_members
from .settings import SORT_OPTIONS, AnnotationSettings
from .store import CommentStore
from .temporal import is_pin_visible
from .types import Comment, CommentStatus, CommentVisibility, Member

logger = logging.getLogger(__name__)

T = TypeVar("T")

VIEW_OPTIONS = ("all", "open", "resolved")


def pin_numbers(comments: Sequence[Comment]) -> Dict[str, int]:
    """Number pinned root comments 1..N by creation time.

    Python's sort is stable, so comments created at the same instant keep
    their fetch order.
    """
    pinned = sorted((c for c in comments if c.is_pinned), key=lambda c: c.created_at)
    return {comment.id: number for number, comment in enumerate(pinned, start=1)}


def _matches(comment: Comment, query: str) -> bool:
    if not query:
        return True
    needle = query.casefold()
    return needle in plain_text(comment.content).casefold() or needle in comment.author_name.casefold()


def threaded_view(
    comments: Sequence[Comment],
    view: str = "all",
    query: str = "",
    sort_by: str = "date",
) -> List[Comment]:
    """Return the panel rows: filtered, sorted roots each followed by its replies.

    Replies whose root is missing are dropped.
    """
    roots = [c for c in comments if not c.is_reply]
    if view == "open":
        roots = [c for c in roots if c.status == CommentStatus.OPEN]
    elif view == "resolved":
        roots = [c for c in roots if c.status == CommentStatus.RESOLVED]
    roots = [c for c in roots if _matches(c, query.strip())]

    if sort_by == "status":
        roots.sort(key=lambda c: (c.status != CommentStatus.OPEN, c.created_at))
    elif sort_by == "author":
        roots.sort(key=lambda c: (c.author_name.casefold(), c.created_at))
    else:
        roots.sort(key=lambda c: c.created_at)

    replies: Dict[str, List[Comment]] = {}
    for comment in comments:
        if comment.parent_id is not None:
            replies.setdefault(comment.parent_id, []).append(comment)

    rows: List[Comment] = []
    for root in roots:
        rows.append(root)
        rows.extend(sorted(replies.get(root.id, []), key=lambda c: c.created_at))
    return rows


def _clamp_pct(value: float) -> float:
    return max(0.0, min(100.0, float(value)))


class CommentModel(QAbstractListModel):
    """Qt model exposing the threaded comments of one asset version to QML.

    Mutations check, in order, that a user is signed in, that the version
    is not locked and that the input is valid. Every store call is followed
    by a full re-fetch; nothing is merged locally.
    """

    IdRole = Qt.UserRole + 1
    ContentRole = Qt.UserRole + 2
    PlainTextRole = Qt.UserRole + 3
    AuthorIdRole = Qt.UserRole + 4
    AuthorNameRole = Qt.UserRole + 5
    InitialsRole = Qt.UserRole + 6
    CreatedAtRole = Qt.UserRole + 7
    RelativeTimeRole = Qt.UserRole + 8
    StatusRole = Qt.UserRole + 9
    ParentIdRole = Qt.UserRole + 10
    IsReplyRole = Qt.UserRole + 11
    PinNumberRole = Qt.UserRole + 12
    PosXRole = Qt.UserRole + 13
    PosYRole = Qt.UserRole + 14
    VideoTimestampRole = Qt.UserRole + 15
    TimestampLabelRole = Qt.UserRole + 16
    VisibilityRole = Qt.UserRole + 17
    ReplyCountRole = Qt.UserRole + 18

    commentsChanged = Signal()
    filterChanged = Signal()
    lockedChanged = Signal()
    userChanged = Signal()
    composerChanged = Signal()
    pendingChanged = Signal()
    lastErrorChanged = Signal()
    membersChanged = Signal()
    errorOccurred = Signal(str)  # Emitted with the reason of a surfaced failure

    def __init__(
        self,
        store: CommentStore,
        version_id: str,
        current_user_id: Optional[str] = None,
        viewer_is_internal: bool = True,
        locked: bool = False,
        settings: Optional[AnnotationSettings] = None,
        parent=None,
    ):
        super().__init__(parent)
        self._store = store
        self._version_id = version_id
        self._current_user_id = current_user_id
        self._viewer_is_internal = viewer_is_internal
        self._locked = locked
        self._settings = settings

        self._comments: List[Comment] = []
        self._rows: List[Comment] = []
        self._view = "all"
        self._query = ""
        self._sort_by = settings.comment_sort if settings is not None else "date"

        self._members: List[Member] = []
        self._surface_w = 0.0
        self._surface_h = 0.0
        self._playback_time: Optional[float] = None
        self._pending_pin: Optional[tuple] = None
        self._pending_timestamp: Optional[float] = None
        self._draft = ""

        self._pending = False
        self._last_error = ""

        self.refresh()

    # --- Qt model overrides -------------------------------------------------
    def rowCount(self, parent: QModelIndex | None = QModelIndex()) -> int:  # type: ignore[override]
        return len(self._rows)

    def data(self, index: QModelIndex, role: int = Qt.DisplayRole):  # type: ignore[override]
        if not index.isValid() or not (0 <= index.row() < len(self._rows)):
            return None

        comment = self._rows[index.row()]
        if role == self.IdRole:
            return comment.id
        if role == self.ContentRole:
            return comment.content
        if role == self.PlainTextRole:
            return plain_text(comment.content)
        if role == self.AuthorIdRole:
            return comment.author_id
        if role == self.AuthorNameRole:
            return comment.author_name
        if role == self.InitialsRole:
            return initials(comment.author_name)
        if role == self.CreatedAtRole:
            return comment.created_at.isoformat()
        if role == self.RelativeTimeRole:
            return format_relative_time(comment.created_at)
        if role == self.StatusRole:
            return comment.status.value
        if role == self.ParentIdRole:
            return comment.parent_id or ""
        if role == self.IsReplyRole:
            return comment.is_reply
        if role == self.PinNumberRole:
            return self.pinNumber(comment.id)
        if role == self.PosXRole:
            return comment.pos_x
        if role == self.PosYRole:
            return comment.pos_y
        if role == self.VideoTimestampRole:
            return comment.video_timestamp
        if role == self.TimestampLabelRole:
            if comment.video_timestamp is None:
                return ""
            return format_timestamp(comment.video_timestamp)
        if role == self.VisibilityRole:
            return comment.visibility.value
        if role == self.ReplyCountRole:
            return sum(1 for c in self._comments if c.parent_id == comment.id)
        return None

    def roleNames(self) -> Dict[int, bytes]:  # type: ignore[override]
        return {
            self.IdRole: b"commentId",
            self.ContentRole: b"content",
            self.PlainTextRole: b"plainText",
            self.AuthorIdRole: b"authorId",
            self.AuthorNameRole: b"authorName",
            self.InitialsRole: b"initials",
            self.CreatedAtRole: b"createdAt",
            self.RelativeTimeRole: b"relativeTime",
            self.StatusRole: b"status",
            self.ParentIdRole: b"parentId",
            self.IsReplyRole: b"isReply",
            self.PinNumberRole: b"pinNumber",
            self.PosXRole: b"posX",
            self.PosYRole: b"posY",
            self.VideoTimestampRole: b"videoTimestamp",
            self.TimestampLabelRole: b"timestampLabel",
            self.VisibilityRole: b"visibility",
            self.ReplyCountRole: b"replyCount",
        }

    # --- Fetching -----------------------------------------------------------
    def _audience_filter(self, comments: Sequence[Comment]) -> List[Comment]:
        if self._viewer_is_internal:
            return list(comments)
        return [c for c in comments if c.visibility == CommentVisibility.EXTERNAL]

    def _rebuild_rows(self) -> None:
        self.beginResetModel()
        self._rows = threaded_view(self._comments, self._view, self._query, self._sort_by)
        self.endResetModel()

    def _fetch(self) -> None:
        comments, error = self._store.fetch_comments(self._version_id)
        if error:
            raise PersistenceFailure(error)
        self._comments = self._audience_filter(comments)
        self._rebuild_rows()
        self.commentsChanged.emit()
        self.composerChanged.emit()

    @Slot(result=bool)
    def refresh(self) -> bool:
        """Re-fetch every comment of the version from the store."""
        return self._attempt(self._fetch) is not None

    @property
    def comments(self) -> List[Comment]:
        """The audience-visible comments from the last fetch."""
        return list(self._comments)

    @property
    def rows(self) -> List[Comment]:
        return list(self._rows)

    def getComment(self, comment_id: str) -> Optional[Comment]:
        for comment in self._comments:
            if comment.id == comment_id:
                return comment
        return None

    # --- Error boundary -----------------------------------------------------
    def _set_last_error(self, reason: str) -> None:
        if reason != self._last_error:
            self._last_error = reason
            self.lastErrorChanged.emit()

    def _fail(self, exc: AnnotationError) -> None:
        self._set_last_error(exc.reason)
        if isinstance(exc, ValidationError):
            logger.info("Discarded comment action: %s", exc.reason)
            return
        logger.warning("Comment action failed: %s", exc.reason)
        self.errorOccurred.emit(exc.reason)

    def _attempt(self, action: Callable[..., T], *args: Any) -> Optional[T]:
        """Run ``action`` and turn annotation errors into ``lastError``.

        Returns None on failure, otherwise the action result (True for
        actions that return nothing). A failure reported while the action
        still succeeds (a stale refresh) stays in ``lastError``.
        """
        self._set_last_error("")
        try:
            result = action(*args)
        except AnnotationError as exc:
            self._fail(exc)
            return None
        return result if result is not None else True  # type: ignore[return-value]

    def _set_pending(self, value: bool) -> None:
        if value != self._pending:
            self._pending = value
            self.pendingChanged.emit()

    def _call_store(self, call: Callable[[], Optional[str]]) -> None:
        """Run a store mutation, then re-fetch whatever the outcome.

        A mutation the store accepted counts as done even when the re-fetch
        fails; that failure is reported on its own and the rows stay stale.
        """
        refresh_error: Optional[PersistenceFailure] = None
        self._set_pending(True)
        try:
            error = call()
            try:
                self._fetch()
            except PersistenceFailure as exc:
                refresh_error = exc
        finally:
            self._set_pending(False)
        if error:
            if refresh_error is not None:
                logger.warning("Refresh after rejected mutation failed: %s", refresh_error.reason)
            raise PersistenceFailure(error)
        if refresh_error is not None:
            self._fail(refresh_error)

    def _check_can_mutate(self) -> None:
        if not self._current_user_id:
            raise StateConflict(NOT_AUTHENTICATED)
        if self._locked:
            raise StateConflict(LOCKED)

    def _require(self, comment_id: str) -> Comment:
        comment = self.getComment(comment_id)
        if comment is None:
            raise ValidationError(COMMENT_NOT_FOUND)
        return comment

    @staticmethod
    def _clean_content(content: str) -> str:
        clean = sanitize_html(content)
        if not plain_text(clean):
            raise ValidationError(EMPTY_COMMENT)
        return clean

    def _create(self, **fields: Any) -> Comment:
        created: List[Comment] = []

        def call() -> Optional[str]:
            comment, error = self._store.create_comment(
                version_id=self._version_id,
                author_id=self._current_user_id,
                **fields,
            )
            if comment is not None:
                created.append(comment)
            return error

        self._call_store(call)
        if not created:
            raise PersistenceFailure("comment was not created")
        return self.getComment(created[0].id) or created[0]

    # --- Python API (raises AnnotationError) --------------------------------
    def add_root_comment(
        self,
        content: str,
        pos_x: Optional[float] = None,
        pos_y: Optional[float] = None,
        video_timestamp: Optional[float] = None,
        visibility: Union[CommentVisibility, str] = CommentVisibility.EXTERNAL,
    ) -> Comment:
        """Create a top-level comment, pinned when both coordinates are given.

        Raises:
            StateConflict: Not signed in, or the version is locked.
            ValidationError: The content is empty after sanitizing or the
                visibility is unknown.
            PersistenceFailure: The store rejected the comment.
        """
        self._check_can_mutate()
        try:
            visibility = CommentVisibility(visibility)
        except ValueError:
            raise ValidationError(INVALID_VISIBILITY) from None
        clean = self._clean_content(content)
        if pos_x is None or pos_y is None:
            pos_x = pos_y = None
        else:
            pos_x, pos_y = _clamp_pct(pos_x), _clamp_pct(pos_y)
        if not self._viewer_is_internal:
            visibility = CommentVisibility.EXTERNAL
        comment = self._create(
            content=clean,
            pos_x=pos_x,
            pos_y=pos_y,
            video_timestamp=video_timestamp,
            parent_id=None,
            visibility=visibility,
        )
        logger.info("Added comment %s", comment.id)
        return comment

    def add_reply(
        self,
        parent_id: str,
        content: str,
        pos_x: Optional[float] = None,
        pos_y: Optional[float] = None,
    ) -> Comment:
        """Reply to a root comment. Replies never carry a pin position.

        Raises:
            StateConflict: Not signed in, locked, or the parent is a reply.
            ValidationError: Unknown parent or empty content.
            PersistenceFailure: The store rejected the reply.
        """
        self._check_can_mutate()
        parent = self.getComment(parent_id)
        if parent is None:
            raise ValidationError(INVALID_PARENT)
        if parent.is_reply:
            raise StateConflict(INVALID_PARENT)
        clean = self._clean_content(content)
        if pos_x is not None or pos_y is not None:
            logger.debug("Dropping position on reply to %s", parent_id)
        comment = self._create(
            content=clean,
            pos_x=None,
            pos_y=None,
            video_timestamp=None,
            parent_id=parent.id,
            visibility=parent.visibility,
        )
        logger.info("Added reply %s to %s", comment.id, parent_id)
        return comment

    def resolve_comment(self, comment_id: str) -> None:
        self._check_can_mutate()
        comment = self._require(comment_id)
        if comment.status == CommentStatus.RESOLVED:
            return
        self._call_store(lambda: self._store.resolve_comment(comment_id))

    def reopen_comment(self, comment_id: str) -> None:
        self._check_can_mutate()
        comment = self._require(comment_id)
        if comment.status == CommentStatus.OPEN:
            return
        self._call_store(lambda: self._store.reopen_comment(comment_id))

    def delete_comment(self, comment_id: str) -> None:
        """Delete a comment; deleting a root removes its replies."""
        self._check_can_mutate()
        self._require(comment_id)
        self._call_store(lambda: self._store.delete_comment(comment_id))
        logger.info("Deleted comment %s", comment_id)

    # --- Qt slots (errors become lastError) ---------------------------------
    @Slot(str, "QVariant", "QVariant", "QVariant", str, result=str)
    def addRootComment(
        self,
        content: str,
        pos_x: Optional[float] = None,
        pos_y: Optional[float] = None,
        video_timestamp: Optional[float] = None,
        visibility: str = "external",
    ) -> str:
        """Create a root comment. Returns its id, or an empty string on failure."""
        comment = self._attempt(self.add_root_comment, content, pos_x, pos_y, video_timestamp, visibility)
        return comment.id if isinstance(comment, Comment) else ""

    @Slot(str, str, "QVariant", "QVariant", result=str)
    def addReply(
        self,
        parent_id: str,
        content: str,
        pos_x: Optional[float] = None,
        pos_y: Optional[float] = None,
    ) -> str:
        comment = self._attempt(self.add_reply, parent_id, content, pos_x, pos_y)
        return comment.id if isinstance(comment, Comment) else ""

    @Slot(str, result=bool)
    def resolveComment(self, comment_id: str) -> bool:
        return self._attempt(self.resolve_comment, comment_id) is not None

    @Slot(str, result=bool)
    def reopenComment(self, comment_id: str) -> bool:
        return self._attempt(self.reopen_comment, comment_id) is not None

    @Slot(str, result=bool)
    def deleteComment(self, comment_id: str) -> bool:
        return self._attempt(self.delete_comment, comment_id) is not None

    # --- Pins ---------------------------------------------------------------
    @Slot(str, result=int)
    def pinNumber(self, comment_id: str) -> int:
        """Return the 1-based pin number, or 0 for replies and unpinned comments."""
        return pin_numbers(self._comments).get(comment_id, 0)

    @Slot("QVariant", result=list)
    def pins(self, current_time: Optional[float] = None) -> List[Dict[str, Any]]:
        """Pins to draw on the surface; video pins only near the playback clock."""
        numbers = pin_numbers(self._comments)
        result = []
        for comment in self._comments:
            number = numbers.get(comment.id)
            if number is None or not is_pin_visible(comment.video_timestamp, current_time):
                continue
            result.append({
                "id": comment.id,
                "number": number,
                "x": comment.pos_x,
                "y": comment.pos_y,
                "status": comment.status.value,
                "authorName": comment.author_name,
                "preview": plain_text(comment.content)[:PIN_PREVIEW_LENGTH],
                "videoTimestamp": comment.video_timestamp,
            })
        result.sort(key=lambda pin: pin["number"])
        return result

    @Slot(float, result=list)
    def bookmarks(self, video_duration: float) -> List[Dict[str, Any]]:
        """Timeline markers for root comments anchored to a video time."""
        if video_duration <= 0:
            return []
        numbers = pin_numbers(self._comments)
        return [
            {
                "id": c.id,
                "pct": _clamp_pct(c.video_timestamp / video_duration * 100),
                "status": c.status.value,
                "number": numbers.get(c.id, 0),
                "label": format_timestamp(c.video_timestamp),
            }
            for c in sorted(self._comments, key=lambda c: c.video_timestamp or 0.0)
            if not c.is_reply and c.video_timestamp is not None
        ]

    # --- Filtering ----------------------------------------------------------
    def filter(self, view: str = "all", query: str = "", sort_by: str = "date") -> List[Comment]:
        """Return the threaded rows for the given filter without changing state."""
        return threaded_view(self._comments, view, query, sort_by)

    @Slot(str, str, str)
    def setFilter(self, view: str, query: str, sort_by: str) -> None:
        if view not in VIEW_OPTIONS:
            view = "all"
        if sort_by not in SORT_OPTIONS:
            sort_by = "date"
        if (view, query, sort_by) == (self._view, self._query, self._sort_by):
            return
        if sort_by != self._sort_by and self._settings is not None:
            self._settings.comment_sort = sort_by
        self._view, self._query, self._sort_by = view, query, sort_by
        self._rebuild_rows()
        self.filterChanged.emit()

    @Property(str, notify=filterChanged)
    def view(self) -> str:
        return self._view

    @Property(str, notify=filterChanged)
    def searchQuery(self) -> str:
        return self._query

    @Property(str, notify=filterChanged)
    def sortBy(self) -> str:
        return self._sort_by

    @Property(int, notify=commentsChanged)
    def openCount(self) -> int:
        return sum(1 for c in self._comments if not c.is_reply and c.status == CommentStatus.OPEN)

    @Property(int, notify=commentsChanged)
    def resolvedCount(self) -> int:
        return sum(1 for c in self._comments if not c.is_reply and c.status == CommentStatus.RESOLVED)

    # --- Session state ------------------------------------------------------
    @Property(str, constant=True)
    def versionId(self) -> str:
        return self._version_id

    @Property(bool, notify=lockedChanged)
    def locked(self) -> bool:
        return self._locked

    @locked.setter
    def locked(self, value: bool) -> None:
        if value != self._locked:
            self._locked = value
            self.lockedChanged.emit()

    @Property(str, notify=userChanged)
    def currentUserId(self) -> str:
        return self._current_user_id or ""

    @currentUserId.setter
    def currentUserId(self, value: str) -> None:
        value = value or None
        if value != self._current_user_id:
            self._current_user_id = value
            self.userChanged.emit()

    @Property(bool, notify=userChanged)
    def viewerIsInternal(self) -> bool:
        return self._viewer_is_internal

    @Property(bool, notify=pendingChanged)
    def pending(self) -> bool:
        return self._pending

    @Property(str, notify=lastErrorChanged)
    def lastError(self) -> str:
        return self._last_error

    # --- Mentions -----------------------------------------------------------
    @Slot(list)
    def setMembers(self, members: List[Dict[str, str]]) -> None:
        """Replace the member directory used for mention suggestions."""
        self._members = [Member(str(m["id"]), str(m.get("displayName", ""))) for m in members]
        self.membersChanged.emit()

    @Slot(str, int, result=list)
    def mentionCandidates(self, text: str, cursor: int) -> List[Dict[str, str]]:
        query = active_mention_query(text, cursor)
        if query is None:
            return []
        return [{"id": m.id, "displayName": m.display_name} for m in filter_members(self._members, query)]

    # --- Composer -----------------------------------------------------------
    @Slot(float, float)
    def setSurfaceSize(self, width: float, height: float) -> None:
        self._surface_w = float(width)
        self._surface_h = float(height)

    @Slot("QVariant")
    def setPlaybackTime(self, seconds: Optional[float]) -> None:
        value = float(seconds) if seconds is not None else None
        if value != self._playback_time:
            self._playback_time = value
            if self._pending_pin is None:
                self.composerChanged.emit()

    @Slot(float, float, result=bool)
    def placePin(self, x: float, y: float) -> bool:
        """Drop the pending pin at a surface pixel position."""
        if not self._current_user_id or self._locked:
            return False
        position = to_percent(x, y, self._surface_w, self._surface_h)
        if position is None:
            return False
        self._pending_pin = (_clamp_pct(position[0]), _clamp_pct(position[1]))
        self._pending_timestamp = self._playback_time
        self.composerChanged.emit()
        return True

    @Slot()
    def cancelPin(self) -> None:
        if self._pending_pin is not None:
            self._pending_pin = None
            self._pending_timestamp = None
            self.composerChanged.emit()

    @Property("QVariant", notify=composerChanged)
    def pendingPin(self) -> Optional[Dict[str, float]]:
        """The pin being composed, numbered after the existing pins."""
        if self._pending_pin is None:
            return None
        return {
            "x": self._pending_pin[0],
            "y": self._pending_pin[1],
            "number": len(pin_numbers(self._comments)) + 1,
        }

    @Property("QVariant", notify=composerChanged)
    def pendingTimestamp(self) -> Optional[float]:
        """The video time the next submitted comment is anchored to."""
        if self._pending_pin is not None:
            return self._pending_timestamp
        return self._playback_time

    @Property(str, notify=composerChanged)
    def draft(self) -> str:
        return self._draft

    @draft.setter
    def draft(self, value: str) -> None:
        if value != self._draft:
            self._draft = value
            self.composerChanged.emit()

    @Slot(result=bool)
    def submitComposer(self) -> bool:
        """Post the draft at the pending pin, or unpinned without one.

        The comment is anchored to the time the pin was placed, or to the
        current playback time when there is no pin. The pin and draft are
        cleared only on success so a failed attempt can be retried without
        retyping.
        """
        if self._pending_pin is not None:
            (pos_x, pos_y), timestamp = self._pending_pin, self._pending_timestamp
        else:
            pos_x = pos_y = None
            timestamp = self._playback_time
        comment = self._attempt(self.add_root_comment, self._draft, pos_x, pos_y, timestamp)
        if comment is None:
            return False
        self._pending_pin = None
        self._pending_timestamp = None
        self._draft = ""
        self.composerChanged.emit()
        return True
