"""
Booking configuration parsing.

``parse_booking_config`` is a pure function from raw setting values to a
validated ``BookingConfig``. Malformed values fall back to defaults and
are logged; they never reach the caller as errors.
"""

import logging
import re
from datetime import date
from typing import FrozenSet, Mapping, Optional

from .exceptions import ConfigParseError
from .settings_store import get_settings
from .slots import parse_hhmm
from .types import (
    BOOKING_BLOCKED_DATES_KEY,
    BOOKING_ENABLED_WEEKDAYS_KEY,
    BOOKING_HORIZON_DAYS_KEY,
    BOOKING_MAX_PER_SLOT_KEY,
    BOOKING_SETTING_KEYS,
    BOOKING_SLOT_INTERVAL_KEY,
    BOOKING_WORK_END_KEY,
    BOOKING_WORK_START_KEY,
    DEFAULT_ENABLED_WEEKDAYS,
    DEFAULT_HORIZON_DAYS,
    DEFAULT_MAX_PER_SLOT,
    DEFAULT_SLOT_INTERVAL_MINUTES,
    DEFAULT_WORK_END,
    DEFAULT_WORK_START,
    HORIZON_DAYS_BOUNDS,
    MAX_PER_SLOT_BOUNDS,
    SLOT_INTERVAL_BOUNDS,
    BookingConfig,
)

logger = logging.getLogger(__name__)

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$", re.ASCII)


def load_booking_config() -> BookingConfig:
    """Read the booking keys from the settings store and parse them."""
    return parse_booking_config(get_settings(BOOKING_SETTING_KEYS))


def parse_booking_config(raw: Mapping[str, Optional[str]]) -> BookingConfig:
    """
    Build a BookingConfig from raw setting values.

    Args:
        raw: Mapping of setting key to stored text (missing keys allowed)

    Returns:
        BookingConfig with every field valid. Integers are clamped to
        their bounds; malformed values use the defaults.
    """
    work_start = _parsed_or_default(raw, BOOKING_WORK_START_KEY, _parse_time, DEFAULT_WORK_START)
    work_end = _parsed_or_default(raw, BOOKING_WORK_END_KEY, _parse_time, DEFAULT_WORK_END)
    if parse_hhmm(work_start) >= parse_hhmm(work_end):
        logger.warning(
            "Booking work hours %s-%s are not increasing, using %s-%s",
            work_start, work_end, DEFAULT_WORK_START, DEFAULT_WORK_END
        )
        work_start, work_end = DEFAULT_WORK_START, DEFAULT_WORK_END

    return BookingConfig(
        work_start=work_start,
        work_end=work_end,
        slot_interval_minutes=_clamp(
            _parsed_or_default(raw, BOOKING_SLOT_INTERVAL_KEY, _parse_int, DEFAULT_SLOT_INTERVAL_MINUTES),
            SLOT_INTERVAL_BOUNDS
        ),
        max_per_slot=_clamp(
            _parsed_or_default(raw, BOOKING_MAX_PER_SLOT_KEY, _parse_int, DEFAULT_MAX_PER_SLOT),
            MAX_PER_SLOT_BOUNDS
        ),
        horizon_days=_clamp(
            _parsed_or_default(raw, BOOKING_HORIZON_DAYS_KEY, _parse_int, DEFAULT_HORIZON_DAYS),
            HORIZON_DAYS_BOUNDS
        ),
        enabled_weekdays=_parsed_or_default(
            raw, BOOKING_ENABLED_WEEKDAYS_KEY, _parse_weekdays, DEFAULT_ENABLED_WEEKDAYS
        ),
        blocked_dates=_parsed_or_default(
            raw, BOOKING_BLOCKED_DATES_KEY, _parse_blocked_dates, frozenset()
        ),
    )


def parse_iso_date(value) -> Optional[date]:
    """Parse ``YYYY-MM-DD``; return None when malformed."""
    if isinstance(value, date):
        return value
    text = str(value or '').strip()
    if not _ISO_DATE_RE.match(text):
        return None
    try:
        return date.fromisoformat(text)
    except ValueError:
        return None


def _parsed_or_default(raw, key, parser, default):
    value = raw.get(key)
    if value is None or str(value).strip() == '':
        return default
    try:
        return parser(key, value)
    except ConfigParseError as exc:
        logger.warning("%s, using default %r", exc.message, default)
        return default


def _clamp(value: int, bounds) -> int:
    low, high = bounds
    return max(low, min(high, value))


def _parse_time(key, value) -> str:
    minutes = parse_hhmm(str(value))
    if minutes is None:
        raise ConfigParseError(key, value)
    return str(value).strip()


def _parse_int(key, value) -> int:
    try:
        return int(str(value).strip())
    except ValueError:
        raise ConfigParseError(key, value)


def _parse_weekdays(key, value) -> FrozenSet[int]:
    weekdays = set()
    for part in str(value).split(','):
        part = part.strip()
        if part.isascii() and part.isdigit() and 0 <= int(part) <= 6:
            weekdays.add(int(part))
    if not weekdays:
        raise ConfigParseError(key, value)
    return frozenset(weekdays)


def _parse_blocked_dates(key, value) -> FrozenSet[date]:
    blocked = set()
    for part in str(value).split(','):
        if not part.strip():
            continue
        parsed = parse_iso_date(part)
        if parsed is None:
            logger.warning("Ignoring malformed blocked date %r in %s", part.strip(), key)
            continue
        blocked.add(parsed)
    return frozenset(blocked)
