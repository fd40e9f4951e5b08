"""Time formatting utilities.

Provides `format_time` (seconds -> hh:mm:ss) and `parse_time` (hh:mm:ss, mm:ss
or ss -> seconds). Both are pure so UI fields and the timeline model can share
them.
"""

from __future__ import annotations

import math
from typing import Optional

__all__ = ["format_time", "parse_time"]


def format_time(seconds) -> str:
    """Return a zero padded hh:mm:ss label, flooring to whole seconds.

    Anything that is not a finite positive number renders as 00:00:00.
    Hours widen past two digits for very long values.
    """
    try:
        value = float(seconds)
    except (TypeError, ValueError):
        return "00:00:00"
    if not math.isfinite(value) or value <= 0:
        return "00:00:00"
    total = int(math.floor(value))
    h, rem = divmod(total, 3600)
    m, s = divmod(rem, 60)
    return f"{h:02d}:{m:02d}:{s:02d}"


def _to_number(part: str) -> Optional[float]:
    try:
        number = float(part)
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return number


def parse_time(text: str) -> Optional[float]:
    """Parse ``ss``, ``mm:ss`` or ``hh:mm:ss`` into seconds.

    Returns None for empty text, more than three parts, empty or non-numeric
    parts, negative components, or minutes/seconds outside [0, 60).
    Fractional seconds are kept as given.
    """
    if text is None:
        return None
    trimmed = text.strip()
    if not trimmed:
        return None
    parts = [p.strip() for p in trimmed.split(":")]
    if len(parts) > 3 or any(p == "" for p in parts):
        return None
    numbers = [_to_number(p) for p in parts]
    if any(n is None for n in numbers):
        return None
    if len(numbers) == 3:
        hours, minutes, secs = numbers
    elif len(numbers) == 2:
        hours, minutes, secs = 0.0, numbers[0], numbers[1]
    else:
        hours, minutes, secs = 0.0, 0.0, numbers[0]
    if hours < 0 or minutes < 0 or secs < 0 or minutes >= 60 or secs >= 60:
        return None
    return hours * 3600 + minutes * 60 + secs
