"""Bounded undo/redo history of full shape-list snapshots."""

from __future__ import annotations

import copy
import logging
from collections import deque
from typing import Deque, List, Optional, Sequence, Tuple

from .constants import HISTORY_LIMIT
from .types import Shape

logger = logging.getLogger(__name__)

Snapshot = Tuple[Shape, ...]


def take_snapshot(shapes: Sequence[Shape]) -> Snapshot:
    """Return an immutable deep copy of the ordered shape list."""
    return tuple(copy.deepcopy(list(shapes)))


def restore_snapshot(snapshot: Snapshot) -> List[Shape]:
    """Return a fresh mutable copy of a snapshot."""
    return copy.deepcopy(list(snapshot))


class ShapeHistory:
    """Undo and redo stacks of shape snapshots.

    Both stacks hold at most ``limit`` snapshots; pushing onto a full stack
    drops the oldest one. Any new checkpoint clears the redo stack, so there
    is no branching history.
    """

    def __init__(self, limit: int = HISTORY_LIMIT) -> None:
        self._limit = limit
        self._undo: Deque[Snapshot] = deque(maxlen=limit)
        self._redo: Deque[Snapshot] = deque(maxlen=limit)

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    @property
    def undo_depth(self) -> int:
        return len(self._undo)

    @property
    def redo_depth(self) -> int:
        return len(self._redo)

    def checkpoint(self, shapes: Sequence[Shape]) -> None:
        """Record the state before a mutation."""
        self._undo.append(take_snapshot(shapes))
        self._redo.clear()

    def undo(self, current: Sequence[Shape]) -> Optional[List[Shape]]:
        """Return the previous state, or None if there is nothing to undo."""
        if not self._undo:
            return None
        previous = self._undo.pop()
        self._redo.append(take_snapshot(current))
        logger.debug("Undo: %d undo / %d redo left", len(self._undo), len(self._redo))
        return restore_snapshot(previous)

    def redo(self, current: Sequence[Shape]) -> Optional[List[Shape]]:
        """Return the next state, or None if there is nothing to redo."""
        if not self._redo:
            return None
        following = self._redo.pop()
        self._undo.append(take_snapshot(current))
        logger.debug("Redo: %d undo / %d redo left", len(self._undo), len(self._redo))
        return restore_snapshot(following)

    def clear(self) -> None:
        self._undo.clear()
        self._redo.clear()
