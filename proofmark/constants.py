"""Constants and presets for ProofMark annotations."""

from typing import Dict, List

from .types import Tool


PRESET_COLORS: List[str] = [
    "#ef4444",  # red
    "#f97316",  # orange
    "#eab308",  # yellow
    "#22c55e",  # green
    "#06b6d4",  # cyan
    "#3b82f6",  # blue
    "#8b5cf6",  # violet
    "#ec4899",  # pink
    "#ffffff",
    "#000000",
]

DEFAULT_COLOR = PRESET_COLORS[0]
DEFAULT_LINE_WIDTH = 2.0
DEFAULT_FONT_SIZE = 16.0
DEFAULT_DURATION = 4.0

MIN_LINE_WIDTH = 1.0
MAX_LINE_WIDTH = 50.0
MIN_FONT_SIZE = 8.0
MAX_FONT_SIZE = 96.0
MIN_DURATION = 0.5
MAX_DURATION = 60.0

# Hit testing
HIT_MARGIN = 8.0
SEGMENT_TOLERANCE = 4.0
TEXT_WIDTH_FACTOR = 0.6

ARROW_HEAD_LENGTH = 12.0
SELECTION_PADDING = 4.0

# Gesture validation
MIN_DRAG_EXTENT = 3.0
MIN_PEN_POINTS = 3

HISTORY_LIMIT = 30

# Comment pins on video are shown within this many seconds of the clock
PIN_TIME_WINDOW = 1.0
PIN_PREVIEW_LENGTH = 80

# Timeline track layout (percent of the track width)
TIMELINE_MIN_BAR_PCT = 1.5
TIMELINE_BAR_GAP_PCT = 0.3

TOOL_SHORTCUTS: Dict[str, Tool] = {
    "r": Tool.RECT,
    "o": Tool.CIRCLE,
    "a": Tool.ARROW,
    "p": Tool.PEN,
}
