"""
Slot grid generation.

Pure functions only: the grid depends on work hours and interval, never on
a specific date or on stored bookings.
"""

import re
from typing import List, Optional

_HHMM_RE = re.compile(r'^([01]\d|2[0-3]):([0-5]\d)$')


def parse_hhmm(value) -> Optional[int]:
    """Return minutes since midnight for an ``HH:MM`` string, or None."""
    if not isinstance(value, str):
        return None
    match = _HHMM_RE.match(value.strip())
    if not match:
        return None
    return int(match.group(1)) * 60 + int(match.group(2))


def format_hhmm(minutes: int) -> str:
    return f'{minutes // 60:02d}:{minutes % 60:02d}'


def build_time_slots(work_start, work_end, interval_minutes) -> List[str]:
    """
    Build the ordered slot grid inside ``[work_start, work_end)``.

    Args:
        work_start: Opening time as ``HH:MM``
        work_end: Closing time as ``HH:MM``
        interval_minutes: Slot length, must be a positive integer

    Returns:
        Ascending list of ``HH:MM`` strings. A trailing slot that would
        end after ``work_end`` is dropped. Empty when the inputs are
        malformed or ``work_start >= work_end``.
    """
    start = parse_hhmm(work_start)
    end = parse_hhmm(work_end)
    if start is None or end is None or start >= end:
        return []

    if isinstance(interval_minutes, bool) or not isinstance(interval_minutes, int):
        return []
    if interval_minutes <= 0:
        return []

    slots = []
    current = start
    while current + interval_minutes <= end:
        slots.append(format_hhmm(current))
        current += interval_minutes
    return slots
