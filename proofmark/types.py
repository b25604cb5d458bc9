"""Data types for ProofMark annotations.

This module contains the core data structures shared by the shape store,
the gesture controller and the comment model.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class ShapeType(Enum):
    """Supported markup shape types."""

    RECT = "rect"
    CIRCLE = "circle"
    LINE = "line"
    ARROW = "arrow"
    PEN = "pen"
    TEXT = "text"


class Tool(Enum):
    """Tools selectable on the annotation toolbar."""

    NONE = "none"
    SELECT = "select"
    PIN = "pin"
    RECT = "rect"
    CIRCLE = "circle"
    LINE = "line"
    ARROW = "arrow"
    PEN = "pen"
    TEXT = "text"

    @property
    def shape_type(self) -> Optional[ShapeType]:
        """Return the shape type drawn by this tool, if any."""
        try:
            return ShapeType(self.value)
        except ValueError:
            return None


class CommentStatus(Enum):
    OPEN = "open"
    RESOLVED = "resolved"


class CommentVisibility(Enum):
    INTERNAL = "internal"
    EXTERNAL = "external"


@dataclass
class DrawingPoint:
    """A single point in a pen stroke."""

    x: float
    y: float


@dataclass
class BoundingBox:
    """Axis-aligned box with non-negative extent."""

    x: float
    y: float
    w: float
    h: float


@dataclass
class Shape:
    """One piece of freeform or geometric markup on the surface.

    Only the geometry fields relevant to ``shape_type`` are meaningful:
    rect/circle use ``x, y, width, height`` (extent may be negative when the
    drag was reversed), line/arrow use ``x, y, x2, y2``, pen uses ``points``
    and text uses ``x, y`` (baseline origin) plus ``text``.
    """

    id: str
    shape_type: ShapeType
    color: str = "#ef4444"
    line_width: float = 2.0
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0
    x2: float = 0.0
    y2: float = 0.0
    points: List[DrawingPoint] = field(default_factory=list)
    text: str = ""
    font_size: float = 16.0
    timestamp: Optional[float] = None  # None = always visible (static asset)
    duration: float = 4.0


@dataclass
class Comment:
    """One piece of threaded feedback on a specific asset version."""

    id: str
    version_id: str
    author_id: str
    content: str
    created_at: datetime
    author_name: str = ""
    pos_x: Optional[float] = None  # percentage 0-100
    pos_y: Optional[float] = None  # percentage 0-100
    video_timestamp: Optional[float] = None
    status: CommentStatus = CommentStatus.OPEN
    parent_id: Optional[str] = None
    visibility: CommentVisibility = CommentVisibility.EXTERNAL
    updated_at: Optional[datetime] = None

    @property
    def is_reply(self) -> bool:
        return self.parent_id is not None

    @property
    def is_pinned(self) -> bool:
        return self.parent_id is None and self.pos_x is not None and self.pos_y is not None


@dataclass
class Member:
    """A member directory entry used to resolve mention candidates."""

    id: str
    display_name: str


@dataclass(frozen=True)
class MentionToken:
    """An atomic mention span inside composer text."""

    start: int
    end: int
    member_id: str
    display_name: str
