"""Gesture controller mixin for ShapeModel.

This module turns pointer and keyboard events into shape store mutations
and history checkpoints for the active tool.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Tuple, TYPE_CHECKING

from PySide6.QtCore import Signal, Slot

from .constants import MIN_DRAG_EXTENT, MIN_PEN_POINTS, TOOL_SHORTCUTS
from .geometry import shape_at, translate_shape
from .types import DrawingPoint, Shape, ShapeType, Tool

if TYPE_CHECKING:
    from .model import ShapeModel

logger = logging.getLogger(__name__)


def is_valid_shape(shape: Shape) -> bool:
    """Return True if a finished drag is large enough to keep."""
    if shape.shape_type == ShapeType.PEN:
        return len(shape.points) >= MIN_PEN_POINTS
    if shape.shape_type in (ShapeType.LINE, ShapeType.ARROW):
        return abs(shape.x2 - shape.x) + abs(shape.y2 - shape.y) > MIN_DRAG_EXTENT
    if shape.shape_type in (ShapeType.RECT, ShapeType.CIRCLE):
        return abs(shape.width) + abs(shape.height) > MIN_DRAG_EXTENT
    return bool(shape.text.strip())


class GestureMixin:
    """Mixin providing pointer gestures, inline text entry and shortcuts.

    Note: Signals and the tool/brush properties are defined in ShapeModel
    since they need to live on the QObject subclass.
    """

    # Signals (will be defined in ShapeModel)
    currentShapeChanged: Signal
    selectionChanged: Signal
    textEntryChanged: Signal

    # Attributes expected from ShapeModel
    _shapes: List[Shape]
    _tool: Tool
    _current_shape: Optional[Shape]
    _selected_id: Optional[str]
    _drag_last: Optional[Tuple[float, float]]
    _text_entry: Optional[DrawingPoint]
    _build_shape: Callable[..., Shape]
    _checkpoint: Callable[[], None]
    _commit_shape: Callable[[Shape], None]
    _notify_shape_changed: Callable[[str], None]
    getShape: Callable[[str], Optional[Shape]]
    removeShape: Callable[[str], bool]
    undo: Callable[[], None]
    redo: Callable[[], None]
    setTool: Callable[[str], None]

    def _init_gestures(self) -> None:
        """Initialize gesture state. Call from ShapeModel.__init__."""
        self._current_shape = None
        self._selected_id = None
        self._drag_last = None
        self._text_entry = None

    def _set_selection(self, shape_id: Optional[str]) -> None:
        if self._selected_id != shape_id:
            self._selected_id = shape_id
            self.selectionChanged.emit()

    @Slot(float, float)
    def pointerDown(self, x: float, y: float) -> None:
        """Start a gesture at the given surface position.

        The select tool hit-tests every shape, including ones hidden at the
        current playback time, so markup can be picked up while paused
        between its windows. Use :meth:`shapeIdAt` for what is drawn.
        """
        tool = self._tool
        if tool in (Tool.NONE, Tool.PIN):
            return

        if tool == Tool.SELECT:
            hit = shape_at(self._shapes, x, y)
            self._set_selection(hit.id if hit else None)
            if hit is not None:
                # One checkpoint per drag gesture, not per move
                self._checkpoint()
                self._drag_last = (x, y)
            return

        if tool == Tool.TEXT:
            self._text_entry = DrawingPoint(x, y)
            self.textEntryChanged.emit()
            return

        shape_type = tool.shape_type
        points = [DrawingPoint(x, y)] if shape_type == ShapeType.PEN else []
        self._current_shape = self._build_shape(shape_type, x=x, y=y, x2=x, y2=y, points=points)
        self.currentShapeChanged.emit()

    @Slot(float, float)
    def pointerMove(self, x: float, y: float) -> None:
        """Continue the active gesture."""
        if self._drag_last is not None and self._selected_id is not None:
            shape = self.getShape(self._selected_id)
            if shape is None:
                return
            last_x, last_y = self._drag_last
            translate_shape(shape, x - last_x, y - last_y)
            self._drag_last = (x, y)
            self._notify_shape_changed(shape.id)
            return

        shape = self._current_shape
        if shape is None:
            return
        if shape.shape_type in (ShapeType.RECT, ShapeType.CIRCLE):
            shape.width = x - shape.x
            shape.height = y - shape.y
        elif shape.shape_type in (ShapeType.LINE, ShapeType.ARROW):
            shape.x2 = x
            shape.y2 = y
        elif shape.shape_type == ShapeType.PEN:
            shape.points.append(DrawingPoint(x, y))
        self.currentShapeChanged.emit()

    @Slot()
    def pointerUp(self) -> None:
        """Finish the active gesture, committing the shape if it is big enough."""
        if self._drag_last is not None:
            self._drag_last = None
            return

        shape = self._current_shape
        if shape is None:
            return
        self._current_shape = None
        if is_valid_shape(shape):
            self._commit_shape(shape)
        else:
            logger.debug("Discarded %s below minimum size", shape.shape_type.value)
        self.currentShapeChanged.emit()

    @Slot()
    def pointerLeave(self) -> None:
        """Leaving the drawable region ends the gesture like a pointer-up."""
        self.pointerUp()

    @Slot()
    def cancelGesture(self) -> None:
        """Abandon the gesture (Escape or lost pointer capture).

        The transient shape and any open text entry are discarded with no
        history entry.
        """
        self._drag_last = None
        if self._current_shape is not None:
            self._current_shape = None
            self.currentShapeChanged.emit()
        self.cancelText()

    # --- Inline text entry --------------------------------------------------
    @Slot(str, result=str)
    def submitText(self, text: str) -> str:
        """Commit the open text entry. Empty text discards it."""
        origin = self._text_entry
        if origin is None:
            return ""
        self._text_entry = None
        self.textEntryChanged.emit()
        if not text.strip():
            return ""
        shape = self._build_shape(ShapeType.TEXT, x=origin.x, y=origin.y, text=text)
        self._commit_shape(shape)
        return shape.id

    @Slot()
    def cancelText(self) -> None:
        if self._text_entry is not None:
            self._text_entry = None
            self.textEntryChanged.emit()

    # --- Keyboard -----------------------------------------------------------
    @Slot(result=bool)
    def deleteSelected(self) -> bool:
        """Remove the selected shape (select tool only)."""
        if self._tool != Tool.SELECT or self._selected_id is None:
            return False
        removed = self.removeShape(self._selected_id)
        self._set_selection(None)
        return removed

    @Slot(str, bool, bool, bool, result=bool)
    def handleKey(self, key: str, ctrl: bool = False, shift: bool = False, in_text_input: bool = False) -> bool:
        """Handle a key press. Returns True if the key was consumed.

        Undo/redo shortcuts work everywhere. Escape cancels an open text
        entry or drawing gesture even from inside a text input; the other
        keys are ignored while the focus is in one.
        """
        lowered = key.lower()
        if ctrl and lowered == "z":
            if shift:
                self.redo()
            else:
                self.undo()
            return True
        if ctrl and lowered == "y":
            self.redo()
            return True

        if key == "Escape" and (self._text_entry is not None or self._current_shape is not None):
            self.cancelGesture()
            return True
        if in_text_input:
            return False

        if key == "Escape":
            self.cancelGesture()
            return True
        if key in ("Delete", "Backspace"):
            return self.deleteSelected()
        if not ctrl and lowered in TOOL_SHORTCUTS:
            self.setTool(TOOL_SHORTCUTS[lowered].value)
            return True
        return False
