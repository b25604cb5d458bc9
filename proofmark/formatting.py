"""Display helpers for timestamps and authors."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def format_timestamp(seconds: float) -> str:
    """Format playback seconds as ``mm:ss.mmm``."""
    seconds = max(0.0, seconds)
    minutes = int(seconds // 60)
    secs = int(seconds % 60)
    millis = int(round((seconds % 1) * 1000, 6))
    if millis >= 1000:
        millis = 999
    return f"{minutes:02d}:{secs:02d}.{millis:03d}"


def format_relative_time(created_at: datetime, now: Optional[datetime] = None) -> str:
    """Return a compact age label: ``now``, ``5m``, ``3h`` or a short date."""
    if now is None:
        now = datetime.now(timezone.utc) if created_at.tzinfo else datetime.now()
    diff_min = int((now - created_at).total_seconds() // 60)
    if diff_min < 1:
        return "now"
    if diff_min < 60:
        return f"{diff_min}m"
    diff_hr = diff_min // 60
    if diff_hr < 24:
        return f"{diff_hr}h"
    return created_at.strftime("%d %b")


def initials(name: Optional[str], email: str = "") -> str:
    """Return up to two uppercase initials for an avatar badge."""
    if name and name.strip():
        return "".join(word[0] for word in name.split()).upper()[:2]
    if email:
        return email[0].upper()
    return "?"
