"""Temporal visibility of time-anchored markup.

Visibility is evaluated on every read and never stored per shape, so
seeking the playback clock changes what is drawn with no bookkeeping.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from .constants import PIN_TIME_WINDOW
from .types import Shape


def is_visible(shape: Shape, current_time: Optional[float]) -> bool:
    """Return True if the shape should be drawn at ``current_time``.

    Shapes without a timestamp (static assets) and reads without an active
    playback clock are always visible. Otherwise the shape is visible
    strictly within half its duration of its timestamp.
    """
    if shape.timestamp is None or current_time is None:
        return True
    return abs(shape.timestamp - current_time) < shape.duration / 2


def visible_shapes(shapes: Sequence[Shape], current_time: Optional[float]) -> List[Shape]:
    """Filter shapes by temporal visibility, keeping draw order."""
    return [shape for shape in shapes if is_visible(shape, current_time)]


def is_pin_visible(
    video_timestamp: Optional[float],
    current_time: Optional[float],
    window: float = PIN_TIME_WINDOW,
) -> bool:
    """Return True if a comment pin anchored at ``video_timestamp`` is shown."""
    if video_timestamp is None or current_time is None:
        return True
    return abs(video_timestamp - current_time) < window
