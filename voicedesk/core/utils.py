"""Shared utility functions for VoiceDesk."""

import math
import re
import time


def format_time(seconds: float | None) -> str:
    """Format seconds as ``M:SS`` (``0:00`` for missing or invalid values)."""
    if seconds is None or math.isnan(seconds) or seconds < 0:
        return "0:00"
    mins = int(seconds // 60)
    secs = int(seconds % 60)
    return f"{mins}:{secs:02d}"


def format_megabytes(size: int | None) -> str:
    """Format a byte count as megabytes with two decimals."""
    return f"{(size or 0) / (1024 * 1024):.2f} MB"


def clamp(value: float, lower: float = 0.0, upper: float = 1.0) -> float:
    """Clamp ``value`` into ``[lower, upper]``; NaN maps to ``lower``."""
    if math.isnan(value):
        return lower
    return max(lower, min(upper, value))


def unique_file_name(owner_id: str, extension: str = "wav") -> str:
    """Build a collision-resistant upload name from the owner and a ns timestamp."""
    return f"{owner_id}-{time.time_ns()}.{extension.lstrip('.')}"


_UNSAFE_CHARS = re.compile(r"[^\w\- .]+")


def safe_file_stem(title: str | None, fallback: str = "recording") -> str:
    """Turn a display title into a file-system safe stem."""
    stem = _UNSAFE_CHARS.sub("_", (title or "").strip()).strip(" .")
    return stem or fallback
