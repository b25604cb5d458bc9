"""Core ShapeModel class for ProofMark.

This module provides the Qt model holding the markup shapes drawn over one
rendered surface, together with its undo/redo history.
"""

from __future__ import annotations

import logging
from itertools import count
from typing import Any, Dict, List, Optional

from PySide6.QtCore import (
    QAbstractListModel,
    QModelIndex,
    Property,
    Qt,
    Signal,
    Slot,
)

from .constants import (
    DEFAULT_COLOR,
    DEFAULT_DURATION,
    DEFAULT_FONT_SIZE,
    DEFAULT_LINE_WIDTH,
    MAX_DURATION,
    MAX_FONT_SIZE,
    MAX_LINE_WIDTH,
    MIN_DURATION,
    MIN_FONT_SIZE,
    MIN_LINE_WIDTH,
)
from .geometry import scale_shape, shape_at, to_percent
from .gestures import GestureMixin
from .history import ShapeHistory
from .settings import AnnotationSettings
from .temporal import is_visible, visible_shapes
from .timeline import TimelineMixin
from .types import DrawingPoint, Shape, ShapeType, Tool

logger = logging.getLogger(__name__)

# updateShape() keys and the Shape fields they write
_UPDATABLE_FIELDS = {
    "color": "color",
    "lineWidth": "line_width",
    "x": "x",
    "y": "y",
    "width": "width",
    "height": "height",
    "x2": "x2",
    "y2": "y2",
    "text": "text",
    "fontSize": "font_size",
    "timestamp": "timestamp",
    "duration": "duration",
}


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def shape_to_dict(shape: Shape) -> Dict[str, Any]:
    """Serialize a shape to plain JSON-compatible values."""
    return {
        "id": shape.id,
        "shape_type": shape.shape_type.value,
        "color": shape.color,
        "line_width": shape.line_width,
        "x": shape.x,
        "y": shape.y,
        "width": shape.width,
        "height": shape.height,
        "x2": shape.x2,
        "y2": shape.y2,
        "points": [{"x": pt.x, "y": pt.y} for pt in shape.points],
        "text": shape.text,
        "font_size": shape.font_size,
        "timestamp": shape.timestamp,
        "duration": shape.duration,
    }


def shape_from_dict(data: Dict[str, Any]) -> Shape:
    timestamp = data.get("timestamp")
    return Shape(
        id=str(data.get("id", "")),
        shape_type=ShapeType(data.get("shape_type", "rect")),
        color=str(data.get("color", DEFAULT_COLOR)),
        line_width=float(data.get("line_width", DEFAULT_LINE_WIDTH)),
        x=float(data.get("x", 0.0)),
        y=float(data.get("y", 0.0)),
        width=float(data.get("width", 0.0)),
        height=float(data.get("height", 0.0)),
        x2=float(data.get("x2", 0.0)),
        y2=float(data.get("y2", 0.0)),
        points=[DrawingPoint(float(pt["x"]), float(pt["y"])) for pt in data.get("points", [])],
        text=str(data.get("text", "")),
        font_size=float(data.get("font_size", DEFAULT_FONT_SIZE)),
        timestamp=float(timestamp) if timestamp is not None else None,
        duration=float(data.get("duration", DEFAULT_DURATION)),
    )


class ShapeModel(
    GestureMixin,
    TimelineMixin,
    QAbstractListModel,
):
    """Qt model exposing the markup shapes of one surface to QML.

    Each instance owns its own selection, transient shape and history, so
    several surfaces (compare mode) can be annotated side by side.
    """

    IdRole = Qt.UserRole + 1
    TypeRole = Qt.UserRole + 2
    ColorRole = Qt.UserRole + 3
    LineWidthRole = Qt.UserRole + 4
    XRole = Qt.UserRole + 5
    YRole = Qt.UserRole + 6
    WidthRole = Qt.UserRole + 7
    HeightRole = Qt.UserRole + 8
    X2Role = Qt.UserRole + 9
    Y2Role = Qt.UserRole + 10
    PointsRole = Qt.UserRole + 11
    TextRole = Qt.UserRole + 12
    FontSizeRole = Qt.UserRole + 13
    TimestampRole = Qt.UserRole + 14
    DurationRole = Qt.UserRole + 15
    SelectedRole = Qt.UserRole + 16
    VisibleRole = Qt.UserRole + 17

    shapesChanged = Signal()
    currentShapeChanged = Signal()
    selectionChanged = Signal()
    toolChanged = Signal()
    historyChanged = Signal()
    playbackTimeChanged = Signal()
    textEntryChanged = Signal()
    colorChanged = Signal()
    lineWidthChanged = Signal()
    fontSizeChanged = Signal()
    durationChanged = Signal()
    surfaceSizeChanged = Signal()

    def __init__(self, settings: Optional[AnnotationSettings] = None, parent=None):
        super().__init__(parent)
        self._settings = settings
        self._shapes: List[Shape] = []
        self._history = ShapeHistory()
        self._id_source = count()
        self._tool = Tool.SELECT
        self._playback_time: Optional[float] = None
        self._surface_w = 0.0
        self._surface_h = 0.0

        if settings is not None:
            self._color = settings.color
            self._line_width = settings.line_width
            self._font_size = settings.font_size
            self._duration = settings.duration
        else:
            self._color = DEFAULT_COLOR
            self._line_width = DEFAULT_LINE_WIDTH
            self._font_size = DEFAULT_FONT_SIZE
            self._duration = DEFAULT_DURATION

        # Initialize mixins
        self._init_gestures()
        self._init_timeline()

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}_{next(self._id_source)}"

    def _build_shape(self, shape_type: ShapeType, **geometry: Any) -> Shape:
        """Create a shape with the current brush, anchored at the playback time."""
        return Shape(
            id=self._next_id("shape"),
            shape_type=shape_type,
            color=self._color,
            line_width=self._line_width,
            font_size=self._font_size,
            timestamp=self._playback_time,
            duration=self._duration,
            **geometry,
        )

    def _checkpoint(self) -> None:
        self._history.checkpoint(self._shapes)
        self.historyChanged.emit()

    def _commit_shape(self, shape: Shape) -> None:
        self._checkpoint()
        self.beginInsertRows(QModelIndex(), len(self._shapes), len(self._shapes))
        self._shapes.append(shape)
        self.endInsertRows()
        self.shapesChanged.emit()
        logger.debug("Added %s %s", shape.shape_type.value, shape.id)

    def _replace_shapes(self, shapes: List[Shape]) -> None:
        self.beginResetModel()
        self._shapes = shapes
        self.endResetModel()
        if self._selected_id is not None and self.getShape(self._selected_id) is None:
            self._set_selection(None)
        self.shapesChanged.emit()

    def _row_of(self, shape_id: str) -> int:
        for row, shape in enumerate(self._shapes):
            if shape.id == shape_id:
                return row
        return -1

    def _notify_shape_changed(self, shape_id: str) -> None:
        row = self._row_of(shape_id)
        if row < 0:
            return
        idx = self.index(row, 0)
        self.dataChanged.emit(idx, idx)
        self.shapesChanged.emit()

    # --- Qt model overrides -------------------------------------------------
    def rowCount(self, parent: QModelIndex | None = QModelIndex()) -> int:  # type: ignore[override]
        return len(self._shapes)

    def data(self, index: QModelIndex, role: int = Qt.DisplayRole):  # type: ignore[override]
        if not index.isValid() or not (0 <= index.row() < len(self._shapes)):
            return None

        shape = self._shapes[index.row()]
        if role == self.IdRole:
            return shape.id
        if role == self.TypeRole:
            return shape.shape_type.value
        if role == self.ColorRole:
            return shape.color
        if role == self.LineWidthRole:
            return shape.line_width
        if role == self.XRole:
            return shape.x
        if role == self.YRole:
            return shape.y
        if role == self.WidthRole:
            return shape.width
        if role == self.HeightRole:
            return shape.height
        if role == self.X2Role:
            return shape.x2
        if role == self.Y2Role:
            return shape.y2
        if role == self.PointsRole:
            return [{"x": pt.x, "y": pt.y} for pt in shape.points]
        if role == self.TextRole:
            return shape.text
        if role == self.FontSizeRole:
            return shape.font_size
        if role == self.TimestampRole:
            return shape.timestamp
        if role == self.DurationRole:
            return shape.duration
        if role == self.SelectedRole:
            return shape.id == self._selected_id
        if role == self.VisibleRole:
            return is_visible(shape, self._playback_time)
        return None

    def roleNames(self) -> Dict[int, bytes]:  # type: ignore[override]
        return {
            self.IdRole: b"shapeId",
            self.TypeRole: b"shapeType",
            self.ColorRole: b"color",
            self.LineWidthRole: b"lineWidth",
            self.XRole: b"x",
            self.YRole: b"y",
            self.WidthRole: b"shapeWidth",
            self.HeightRole: b"shapeHeight",
            self.X2Role: b"x2",
            self.Y2Role: b"y2",
            self.PointsRole: b"points",
            self.TextRole: b"text",
            self.FontSizeRole: b"fontSize",
            self.TimestampRole: b"timestamp",
            self.DurationRole: b"duration",
            self.SelectedRole: b"selected",
            self.VisibleRole: b"shapeVisible",
        }

    # --- Properties ---------------------------------------------------------
    @Property(int, notify=shapesChanged)
    def count(self) -> int:
        return len(self._shapes)

    @Property(list, notify=shapesChanged)
    def visibleShapes(self) -> List[Dict[str, Any]]:
        """Shapes drawn at the current playback time, in draw order."""
        return [shape_to_dict(shape) for shape in visible_shapes(self._shapes, self._playback_time)]

    @Property("QVariant", notify=currentShapeChanged)
    def currentShape(self) -> Optional[Dict[str, Any]]:
        if self._current_shape is None:
            return None
        return shape_to_dict(self._current_shape)

    @Property(str, notify=selectionChanged)
    def selectedId(self) -> str:
        return self._selected_id or ""

    @Property(bool, notify=historyChanged)
    def canUndo(self) -> bool:
        return self._history.can_undo

    @Property(bool, notify=historyChanged)
    def canRedo(self) -> bool:
        return self._history.can_redo

    @Property(bool, notify=textEntryChanged)
    def textEntryActive(self) -> bool:
        return self._text_entry is not None

    @Property(float, notify=textEntryChanged)
    def textEntryX(self) -> float:
        return self._text_entry.x if self._text_entry else 0.0

    @Property(float, notify=textEntryChanged)
    def textEntryY(self) -> float:
        return self._text_entry.y if self._text_entry else 0.0

    @Property(str, notify=toolChanged)
    def tool(self) -> str:
        return self._tool.value

    @tool.setter
    def tool(self, value: str) -> None:
        self.setTool(value)

    @Property(str, notify=colorChanged)
    def color(self) -> str:
        return self._color

    @color.setter
    def color(self, value: str) -> None:
        if value and value != self._color:
            self._color = value
            if self._settings is not None:
                self._settings.color = value
            self.colorChanged.emit()

    @Property(float, notify=lineWidthChanged)
    def lineWidth(self) -> float:
        return self._line_width

    @lineWidth.setter
    def lineWidth(self, value: float) -> None:
        value = _clamp(float(value), MIN_LINE_WIDTH, MAX_LINE_WIDTH)
        if value != self._line_width:
            self._line_width = value
            if self._settings is not None:
                self._settings.line_width = value
            self.lineWidthChanged.emit()

    @Property(float, notify=fontSizeChanged)
    def fontSize(self) -> float:
        return self._font_size

    @fontSize.setter
    def fontSize(self, value: float) -> None:
        value = _clamp(float(value), MIN_FONT_SIZE, MAX_FONT_SIZE)
        if value != self._font_size:
            self._font_size = value
            if self._settings is not None:
                self._settings.font_size = value
            self.fontSizeChanged.emit()

    @Property(float, notify=durationChanged)
    def duration(self) -> float:
        """Visibility window given to new shapes drawn on video."""
        return self._duration

    @duration.setter
    def duration(self, value: float) -> None:
        value = _clamp(float(value), MIN_DURATION, MAX_DURATION)
        if value != self._duration:
            self._duration = value
            if self._settings is not None:
                self._settings.duration = value
            self.durationChanged.emit()

    @Property("QVariant", notify=playbackTimeChanged)
    def playbackTime(self) -> Optional[float]:
        return self._playback_time

    @Property(float, notify=surfaceSizeChanged)
    def surfaceWidth(self) -> float:
        return self._surface_w

    @Property(float, notify=surfaceSizeChanged)
    def surfaceHeight(self) -> float:
        return self._surface_h

    # --- Tool and clock -----------------------------------------------------
    @Slot(str)
    def setTool(self, value: str) -> None:
        try:
            tool = Tool(value)
        except ValueError:
            logger.warning("Ignoring unknown tool %r", value)
            return
        if tool == self._tool:
            return
        self.cancelGesture()
        if tool != Tool.SELECT:
            self._set_selection(None)
        self._tool = tool
        self.toolChanged.emit()

    @Slot(float)
    def setPlaybackTime(self, seconds: float) -> None:
        """Move the playback clock; shape visibility is re-evaluated on read."""
        self._playback_time = float(seconds)
        self._emit_visibility_changed()

    @Slot()
    def clearPlaybackTime(self) -> None:
        """Drop the playback clock (static asset): every shape is visible."""
        if self._playback_time is None:
            return
        self._playback_time = None
        self._emit_visibility_changed()

    def _emit_visibility_changed(self) -> None:
        self.playbackTimeChanged.emit()
        if self._shapes:
            self.dataChanged.emit(self.index(0, 0), self.index(len(self._shapes) - 1, 0), [self.VisibleRole])
        self.shapesChanged.emit()

    @Slot(float, float)
    def setSurfaceSize(self, width: float, height: float) -> None:
        if (width, height) != (self._surface_w, self._surface_h):
            self._surface_w = float(width)
            self._surface_h = float(height)
            self.surfaceSizeChanged.emit()

    @Slot(float, float, result="QVariant")
    def toPercent(self, x: float, y: float) -> Optional[List[float]]:
        """Convert a surface pixel position to percentages, or None without a size."""
        result = to_percent(x, y, self._surface_w, self._surface_h)
        return list(result) if result is not None else None

    # --- Shape access -------------------------------------------------------
    def getShape(self, shape_id: str) -> Optional[Shape]:
        for shape in self._shapes:
            if shape.id == shape_id:
                return shape
        return None

    @property
    def shapes(self) -> List[Shape]:
        return list(self._shapes)

    @Slot(float, float, result=str)
    def shapeIdAt(self, x: float, y: float) -> str:
        """Return the id of the top-most shape drawn at the current playback time.

        Unlike select-tool clicks, hidden shapes never match.
        """
        hit = shape_at(visible_shapes(self._shapes, self._playback_time), x, y)
        return hit.id if hit else ""

    @Slot(str, result="QVariant")
    def getShapeSnapshot(self, shape_id: str) -> Optional[Dict[str, Any]]:
        shape = self.getShape(shape_id)
        return shape_to_dict(shape) if shape else None

    # --- Mutations ----------------------------------------------------------
    @Slot(str, result=bool)
    def removeShape(self, shape_id: str) -> bool:
        row = self._row_of(shape_id)
        if row < 0:
            return False
        self._checkpoint()
        self.beginRemoveRows(QModelIndex(), row, row)
        del self._shapes[row]
        self.endRemoveRows()
        if self._selected_id == shape_id:
            self._set_selection(None)
        self.shapesChanged.emit()
        logger.debug("Removed shape %s", shape_id)
        return True

    @Slot(str, "QVariantMap", result=bool)
    def updateShape(self, shape_id: str, updates: Dict[str, Any]) -> bool:
        """Apply property updates to a shape as one undoable step."""
        shape = self.getShape(shape_id)
        if shape is None:
            return False
        changes = {_UPDATABLE_FIELDS[key]: value for key, value in updates.items() if key in _UPDATABLE_FIELDS}
        if not changes:
            return False
        self._checkpoint()
        for field_name, value in changes.items():
            if field_name in ("color", "text"):
                setattr(shape, field_name, str(value))
            elif field_name == "timestamp":
                shape.timestamp = float(value) if value is not None else None
            else:
                setattr(shape, field_name, float(value))
        self._notify_shape_changed(shape_id)
        return True

    @Slot()
    def clearAll(self) -> None:
        if not self._shapes:
            return
        self._checkpoint()
        self._replace_shapes([])
        logger.debug("Cleared all shapes")

    @Slot()
    def undo(self) -> None:
        restored = self._history.undo(self._shapes)
        if restored is None:
            return
        self._drag_last = None
        self._replace_shapes(restored)
        self.historyChanged.emit()

    @Slot()
    def redo(self) -> None:
        restored = self._history.redo(self._shapes)
        if restored is None:
            return
        self._drag_last = None
        self._replace_shapes(restored)
        self.historyChanged.emit()

    # --- Serialization ------------------------------------------------------
    def to_dict(self) -> Dict[str, Any]:
        """Serialize the shapes for saving.

        Returns:
            Dictionary with the shape list and the surface size the
            coordinates refer to.
        """
        return {
            "shapes": [shape_to_dict(shape) for shape in self._shapes],
            "surface": {"width": self._surface_w, "height": self._surface_h},
        }

    def from_dict(self, data: Dict[str, Any]) -> None:
        """Load shapes from a dictionary produced by :meth:`to_dict`.

        History, selection and transient gesture state are reset. When both
        the stored and the current surface size are known, coordinates are
        rescaled to the current surface.
        """
        shapes = [shape_from_dict(item) for item in data.get("shapes", [])]

        surface = data.get("surface") or {}
        stored_w = float(surface.get("width", 0.0))
        stored_h = float(surface.get("height", 0.0))
        if stored_w > 0 and stored_h > 0 and self._surface_w > 0 and self._surface_h > 0:
            scale_x = self._surface_w / stored_w
            scale_y = self._surface_h / stored_h
            for shape in shapes:
                scale_shape(shape, scale_x, scale_y)

        # Track highest ID number to resume ID generation
        max_id = 0
        for shape in shapes:
            try:
                id_parts = shape.id.rsplit("_", 1)
                if len(id_parts) == 2:
                    max_id = max(max_id, int(id_parts[1]) + 1)
            except ValueError:
                continue
        self._id_source = count(max_id)

        self.cancelGesture()
        self._retime_origin = None
        self._history.clear()
        self._replace_shapes(shapes)
        self._set_selection(None)
        self.historyChanged.emit()
        logger.info("Loaded %d shapes", len(shapes))
