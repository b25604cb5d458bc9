"""Annotation timeline mixin for ShapeModel.

Time-anchored shapes are shown as bars on a track under the video. This
module lays the bars out in rows and lets the user drag a bar to move its
timestamp or drag its edges to change its duration.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, TYPE_CHECKING

from PySide6.QtCore import Slot

from .constants import MAX_DURATION, MIN_DURATION, TIMELINE_BAR_GAP_PCT, TIMELINE_MIN_BAR_PCT
from .types import Shape

if TYPE_CHECKING:
    from .model import ShapeModel

logger = logging.getLogger(__name__)


@dataclass
class TimelineBar:
    """Placement of one timed shape on the annotation track."""

    shape_id: str
    row: int
    start_pct: float
    width_pct: float


def layout_timeline(shapes: Sequence[Shape], video_duration: float) -> List[TimelineBar]:
    """Stack timed shapes into rows so overlapping bars never collide.

    Bars are placed in order of their start time into the first row whose
    previous bar ends at or before the new bar's start.
    """
    span = max(video_duration, 1.0)
    timed = [shape for shape in shapes if shape.timestamp is not None]
    timed.sort(key=lambda s: s.timestamp - s.duration / 2)

    bars: List[TimelineBar] = []
    row_ends: List[float] = []
    for shape in timed:
        half = shape.duration / 2
        start_pct = max(0.0, (shape.timestamp - half) / span * 100)
        end_pct = min(100.0, (shape.timestamp + half) / span * 100)
        width_pct = max(end_pct - start_pct, TIMELINE_MIN_BAR_PCT)

        row = len(row_ends)
        for idx, row_end in enumerate(row_ends):
            if start_pct >= row_end:
                row = idx
                break
        if row == len(row_ends):
            row_ends.append(0.0)
        row_ends[row] = start_pct + width_pct + TIMELINE_BAR_GAP_PCT
        bars.append(TimelineBar(shape.id, row, start_pct, width_pct))
    return bars


def shift_window(origin_ts: float, duration: float, delta: float, video_duration: float) -> float:
    """Return the timestamp after moving a bar by ``delta`` seconds."""
    half = duration / 2
    return max(half, min(video_duration - half, origin_ts + delta))


def resize_window(origin_ts: float, origin_duration: float, delta: float, edge: str) -> Tuple[float, float]:
    """Return ``(timestamp, duration)`` after dragging a bar edge by ``delta``.

    ``edge`` is ``"left"`` or ``"right"``.
    """
    if edge == "left":
        duration = origin_duration - delta
    elif edge == "right":
        duration = origin_duration + delta
    else:
        raise ValueError(f"Unknown timeline edge: {edge}")
    duration = max(MIN_DURATION, min(MAX_DURATION, duration))
    timestamp = max(duration / 2, origin_ts + delta / 2)
    return timestamp, duration


class TimelineMixin:
    """Mixin providing timeline track operations."""

    # Attributes expected from ShapeModel
    _shapes: List[Shape]
    _retime_origin: Optional[Tuple[str, float, float]]
    getShape: Callable[[str], Optional[Shape]]
    _checkpoint: Callable[[], None]
    _notify_shape_changed: Callable[[str], None]

    def _init_timeline(self) -> None:
        """Initialize retime state. Call from ShapeModel.__init__."""
        self._retime_origin = None

    @Slot(float, result=list)
    def timelineLayout(self, video_duration: float) -> List[Dict[str, Any]]:
        return [
            {"id": bar.shape_id, "row": bar.row, "startPct": bar.start_pct, "widthPct": bar.width_pct}
            for bar in layout_timeline(self._shapes, video_duration)
        ]

    @Slot(str, result=bool)
    def beginRetime(self, shape_id: str) -> bool:
        """Start dragging a timeline bar. One history entry covers the drag."""
        shape = self.getShape(shape_id)
        if shape is None or shape.timestamp is None:
            return False
        self._checkpoint()
        self._retime_origin = (shape_id, shape.timestamp, shape.duration)
        return True

    @Slot(float, float)
    def shiftRetime(self, delta: float, video_duration: float) -> None:
        """Move the bar by ``delta`` seconds from where the drag started."""
        if self._retime_origin is None:
            return
        shape_id, origin_ts, origin_duration = self._retime_origin
        shape = self.getShape(shape_id)
        if shape is None:
            return
        shape.timestamp = shift_window(origin_ts, origin_duration, delta, video_duration)
        self._notify_shape_changed(shape_id)

    @Slot(str, float)
    def resizeRetime(self, edge: str, delta: float) -> None:
        """Drag the ``left`` or ``right`` edge by ``delta`` seconds."""
        if self._retime_origin is None or edge not in ("left", "right"):
            return
        shape_id, origin_ts, origin_duration = self._retime_origin
        shape = self.getShape(shape_id)
        if shape is None:
            return
        shape.timestamp, shape.duration = resize_window(origin_ts, origin_duration, delta, edge)
        self._notify_shape_changed(shape_id)

    @Slot()
    def endRetime(self) -> None:
        if self._retime_origin is not None:
            logger.debug("Retimed shape %s", self._retime_origin[0])
        self._retime_origin = None
