"""Clock-time arithmetic over zero-padded ``HH:MM`` strings.

Every interval handled here is half-open, ``[start, end)``, measured in
minutes since midnight of a single day.
"""

from __future__ import annotations

import re


MINUTES_PER_HOUR = 60
MINUTES_PER_DAY = 24 * MINUTES_PER_HOUR

_TIME_PATTERN = re.compile(r"^(?:([01]\d|2[0-3]):([0-5]\d)|24:00)$")


class InvalidTimeFormatError(ValueError):
    """Raised when a time string does not parse as ``HH:MM``."""


def to_minutes(time_value: str) -> int:
    """Convert ``HH:MM`` to minutes since midnight.

    ``24:00`` is accepted as the end-of-day marker and maps to 1440.
    """
    if not isinstance(time_value, str):
        raise InvalidTimeFormatError(f"time must be a string, got {type(time_value).__name__}")
    match = _TIME_PATTERN.fullmatch(time_value)
    if match is None:
        raise InvalidTimeFormatError(f"time '{time_value}' must follow HH:MM format")
    if match.group(1) is None:
        return MINUTES_PER_DAY
    return int(match.group(1)) * MINUTES_PER_HOUR + int(match.group(2))


def format_minutes(minutes: int) -> str:
    if not 0 <= minutes <= MINUTES_PER_DAY:
        raise InvalidTimeFormatError(f"{minutes} minutes is outside a single day")
    hours, remainder = divmod(int(minutes), MINUTES_PER_HOUR)
    return f"{hours:02d}:{remainder:02d}"


def overlaps(start1: str, end1: str, start2: str, end2: str) -> bool:
    """Return True when both intervals share a positive amount of time.

    Touching endpoints (``10:00-11:00`` vs ``11:00-12:00``) do not overlap.
    """
    return to_minutes(start1) < to_minutes(end2) and to_minutes(end1) > to_minutes(start2)


def overlap_minutes(start1: str, end1: str, start2: str, end2: str) -> int:
    shared = min(to_minutes(end1), to_minutes(end2)) - max(to_minutes(start1), to_minutes(start2))
    return max(0, shared)


def contains(slot_start: str, slot_end: str, range_start: str, range_end: str) -> bool:
    """Return True when the slot lies fully inside the range (bounds inclusive)."""
    return to_minutes(slot_start) >= to_minutes(range_start) and to_minutes(slot_end) <= to_minutes(
        range_end
    )


def duration_minutes(start: str, end: str) -> int:
    return to_minutes(end) - to_minutes(start)
