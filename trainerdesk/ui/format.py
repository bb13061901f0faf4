"""Display formatting for durations and live values."""

from __future__ import annotations

import math
from typing import Optional

NO_DATA = "NO DATA"


def format_duration(seconds: float) -> str:
    total = max(0, math.floor(seconds))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours > 0:
        return f"{hours}h {minutes}m {secs}s"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def format_number(value: float) -> str:
    if isinstance(value, int) or float(value).is_integer():
        return f"{int(value)}"
    return f"{value:.1f}"


def format_value(value: Optional[float], unit: Optional[str] = None) -> str:
    """Absent values render as ``NO DATA``, never as zero."""
    if value is None:
        return NO_DATA
    text = format_number(value)
    return f"{text} {unit}" if unit else text
