"""Persistent annotation preferences backed by QSettings."""

from __future__ import annotations

from typing import Any, Optional

from PySide6.QtCore import QSettings

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

SORT_OPTIONS = ("date", "status", "author")


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class AnnotationSettings:
    """Brush and comment-panel defaults remembered between sessions.

    QSettings may hand values back as strings (ini backend) or None, so every
    getter coerces and falls back to the default.
    """

    def __init__(self, settings: Optional[QSettings] = None) -> None:
        self._settings = settings if settings is not None else QSettings("ProofMark", "ProofMark")

    def _float(self, key: str, default: float) -> float:
        stored: Any = self._settings.value(key, default)
        try:
            return float(stored)
        except (TypeError, ValueError):
            return default

    def _set(self, key: str, value: Any) -> None:
        self._settings.setValue(key, value)
        self._settings.sync()

    @property
    def color(self) -> str:
        stored = self._settings.value("drawing/color", DEFAULT_COLOR)
        return stored if isinstance(stored, str) and stored else DEFAULT_COLOR

    @color.setter
    def color(self, value: str) -> None:
        self._set("drawing/color", value)

    @property
    def line_width(self) -> float:
        return _clamp(self._float("drawing/lineWidth", DEFAULT_LINE_WIDTH), MIN_LINE_WIDTH, MAX_LINE_WIDTH)

    @line_width.setter
    def line_width(self, value: float) -> None:
        self._set("drawing/lineWidth", _clamp(value, MIN_LINE_WIDTH, MAX_LINE_WIDTH))

    @property
    def font_size(self) -> float:
        return _clamp(self._float("drawing/fontSize", DEFAULT_FONT_SIZE), MIN_FONT_SIZE, MAX_FONT_SIZE)

    @font_size.setter
    def font_size(self, value: float) -> None:
        self._set("drawing/fontSize", _clamp(value, MIN_FONT_SIZE, MAX_FONT_SIZE))

    @property
    def duration(self) -> float:
        return _clamp(self._float("drawing/duration", DEFAULT_DURATION), MIN_DURATION, MAX_DURATION)

    @duration.setter
    def duration(self, value: float) -> None:
        self._set("drawing/duration", _clamp(value, MIN_DURATION, MAX_DURATION))

    @property
    def comment_sort(self) -> str:
        stored = self._settings.value("comments/sortBy", "date")
        return stored if stored in SORT_OPTIONS else "date"

    @comment_sort.setter
    def comment_sort(self, value: str) -> None:
        if value in SORT_OPTIONS:
            self._set("comments/sortBy", value)
