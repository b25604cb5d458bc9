"""Geometry kernel for markup shapes.

Pure functions over :class:`~proofmark.types.Shape` records: bounding boxes,
point/segment distance, hit testing and arrow heads. Nothing here keeps
state, so the same functions serve every canvas instance.
"""

from __future__ import annotations

import math
from typing import List, Optional, Sequence, Tuple

from .constants import (
    ARROW_HEAD_LENGTH,
    HIT_MARGIN,
    SEGMENT_TOLERANCE,
    SELECTION_PADDING,
    TEXT_WIDTH_FACTOR,
)
from .types import BoundingBox, DrawingPoint, Shape, ShapeType

Point = Tuple[float, float]
Segment = Tuple[Point, Point]


def text_width(shape: Shape) -> float:
    """Estimate rendered text width without glyph metrics."""
    return len(shape.text) * shape.font_size * TEXT_WIDTH_FACTOR


def bounding_box(shape: Shape) -> BoundingBox:
    """Return the normalized bounding box derived from a shape's geometry."""
    kind = shape.shape_type
    if kind in (ShapeType.RECT, ShapeType.CIRCLE):
        return BoundingBox(
            min(shape.x, shape.x + shape.width),
            min(shape.y, shape.y + shape.height),
            abs(shape.width),
            abs(shape.height),
        )
    if kind in (ShapeType.LINE, ShapeType.ARROW):
        return BoundingBox(
            min(shape.x, shape.x2),
            min(shape.y, shape.y2),
            abs(shape.x2 - shape.x),
            abs(shape.y2 - shape.y),
        )
    if kind == ShapeType.PEN:
        if not shape.points:
            return BoundingBox(shape.x, shape.y, 0.0, 0.0)
        xs = [pt.x for pt in shape.points]
        ys = [pt.y for pt in shape.points]
        return BoundingBox(min(xs), min(ys), max(xs) - min(xs), max(ys) - min(ys))
    # Text origin is the baseline, so the box extends upwards by one font size
    return BoundingBox(shape.x, shape.y - shape.font_size, text_width(shape), shape.font_size)


def distance_to_segment(px: float, py: float, x1: float, y1: float, x2: float, y2: float) -> float:
    """Return the distance from a point to the closest point of a segment."""
    dx = x2 - x1
    dy = y2 - y1
    length_sq = dx * dx + dy * dy
    if length_sq == 0:
        return math.hypot(px - x1, py - y1)
    t = ((px - x1) * dx + (py - y1) * dy) / length_sq
    t = max(0.0, min(1.0, t))
    return math.hypot(px - (x1 + t * dx), py - (y1 + t * dy))


def _inside_box(box: BoundingBox, x: float, y: float, margin: float) -> bool:
    return (box.x - margin <= x <= box.x + box.w + margin and
            box.y - margin <= y <= box.y + box.h + margin)


def hit_test(shape: Shape, x: float, y: float, margin: float = HIT_MARGIN) -> bool:
    """Return True if the point touches the shape within ``margin`` pixels."""
    kind = shape.shape_type
    if kind in (ShapeType.RECT, ShapeType.TEXT):
        return _inside_box(bounding_box(shape), x, y, margin)

    if kind == ShapeType.CIRCLE:
        cx = shape.x + shape.width / 2
        cy = shape.y + shape.height / 2
        rx = abs(shape.width) / 2 + margin
        ry = abs(shape.height) / 2 + margin
        if rx <= 0 or ry <= 0:
            return False
        return ((x - cx) / rx) ** 2 + ((y - cy) / ry) ** 2 <= 1

    tolerance = margin + SEGMENT_TOLERANCE
    if kind in (ShapeType.LINE, ShapeType.ARROW):
        return distance_to_segment(x, y, shape.x, shape.y, shape.x2, shape.y2) <= tolerance

    if kind == ShapeType.PEN:
        points = shape.points
        for prev, cur in zip(points, points[1:]):
            if distance_to_segment(x, y, prev.x, prev.y, cur.x, cur.y) <= tolerance:
                return True
    return False


def shape_at(
    shapes: Sequence[Shape],
    x: float,
    y: float,
    margin: float = HIT_MARGIN,
) -> Optional[Shape]:
    """Return the top-most shape under the point.

    Shapes are drawn in list order, so the search runs from the most
    recently drawn shape backwards and the first hit wins.
    """
    for shape in reversed(shapes):
        if hit_test(shape, x, y, margin):
            return shape
    return None


def arrow_head(
    x1: float,
    y1: float,
    x2: float,
    y2: float,
    head_len: float = ARROW_HEAD_LENGTH,
) -> Tuple[Segment, Segment]:
    """Return the two arrow-head segments drawn at the ``(x2, y2)`` tip.

    Each side is rotated 30 degrees off the reversed shaft direction.
    """
    angle = math.atan2(y2 - y1, x2 - x1)
    tip = (x2, y2)
    left = (
        x2 - head_len * math.cos(angle - math.pi / 6),
        y2 - head_len * math.sin(angle - math.pi / 6),
    )
    right = (
        x2 - head_len * math.cos(angle + math.pi / 6),
        y2 - head_len * math.sin(angle + math.pi / 6),
    )
    return (tip, left), (tip, right)


def translate_shape(shape: Shape, dx: float, dy: float) -> None:
    """Shift every point-like field of the shape in place."""
    shape.x += dx
    shape.y += dy
    shape.x2 += dx
    shape.y2 += dy
    shape.points = [DrawingPoint(pt.x + dx, pt.y + dy) for pt in shape.points]


def selection_handles(shape: Shape, padding: float = SELECTION_PADDING) -> Tuple[BoundingBox, List[Point]]:
    """Return the selection frame around a shape and its corner handle centres."""
    box = bounding_box(shape)
    frame = BoundingBox(box.x - padding, box.y - padding, box.w + 2 * padding, box.h + 2 * padding)
    corners = [
        (frame.x, frame.y),
        (frame.x + frame.w, frame.y),
        (frame.x, frame.y + frame.h),
        (frame.x + frame.w, frame.y + frame.h),
    ]
    return frame, corners


def scale_shape(shape: Shape, scale_x: float, scale_y: float) -> None:
    """Rescale a shape in place after the rendered surface changed size.

    Stroke width and font size follow the smaller of the two factors so
    markup keeps its proportions on non-uniform resizes.
    """
    if scale_x == 1.0 and scale_y == 1.0:
        return
    shape.x *= scale_x
    shape.y *= scale_y
    shape.width *= scale_x
    shape.height *= scale_y
    shape.x2 *= scale_x
    shape.y2 *= scale_y
    shape.points = [DrawingPoint(pt.x * scale_x, pt.y * scale_y) for pt in shape.points]
    factor = min(scale_x, scale_y)
    shape.line_width *= factor
    shape.font_size *= factor


def to_percent(x: float, y: float, width: float, height: float) -> Optional[Point]:
    """Convert a pixel position on the surface to 0-100 percentages."""
    if width <= 0 or height <= 0:
        return None
    return x / width * 100, y / height * 100
