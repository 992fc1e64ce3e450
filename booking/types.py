"""
Data types and constants for the booking engine.

This module contains:
- Setting keys and defaults for the booking configuration
- DTOs (Data Transfer Objects) for service layer operations
- Value objects returned by the availability composer
"""

from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional
from datetime import date

from .slots import build_time_slots


BOOKING_WORK_START_KEY = 'booking_work_start'
BOOKING_WORK_END_KEY = 'booking_work_end'
BOOKING_SLOT_INTERVAL_KEY = 'booking_slot_interval_minutes'
BOOKING_MAX_PER_SLOT_KEY = 'booking_max_per_slot'
BOOKING_HORIZON_DAYS_KEY = 'booking_horizon_days'
BOOKING_ENABLED_WEEKDAYS_KEY = 'booking_enabled_weekdays'
BOOKING_BLOCKED_DATES_KEY = 'booking_blocked_dates'
EMAIL_NOTIFICATIONS_KEY = 'email_notifications_enabled'

BOOKING_SETTING_KEYS = (
    BOOKING_WORK_START_KEY,
    BOOKING_WORK_END_KEY,
    BOOKING_SLOT_INTERVAL_KEY,
    BOOKING_MAX_PER_SLOT_KEY,
    BOOKING_HORIZON_DAYS_KEY,
    BOOKING_ENABLED_WEEKDAYS_KEY,
    BOOKING_BLOCKED_DATES_KEY,
)

DEFAULT_WORK_START = '08:00'
DEFAULT_WORK_END = '18:00'
DEFAULT_SLOT_INTERVAL_MINUTES = 60
DEFAULT_MAX_PER_SLOT = 1
DEFAULT_HORIZON_DAYS = 90
DEFAULT_ENABLED_WEEKDAYS = frozenset({1, 2, 3, 4, 5})

SLOT_INTERVAL_BOUNDS = (15, 180)
MAX_PER_SLOT_BOUNDS = (1, 20)
HORIZON_DAYS_BOUNDS = (7, 180)


@dataclass(frozen=True)
class BookingConfig:
    """Validated scheduling rules, derived from site settings per request."""
    work_start: str = DEFAULT_WORK_START
    work_end: str = DEFAULT_WORK_END
    slot_interval_minutes: int = DEFAULT_SLOT_INTERVAL_MINUTES
    max_per_slot: int = DEFAULT_MAX_PER_SLOT
    horizon_days: int = DEFAULT_HORIZON_DAYS
    enabled_weekdays: FrozenSet[int] = DEFAULT_ENABLED_WEEKDAYS
    blocked_dates: FrozenSet[date] = frozenset()

    def time_slots(self) -> List[str]:
        """Return the slot grid for these work hours."""
        return build_time_slots(self.work_start, self.work_end, self.slot_interval_minutes)

    def is_date_allowed(self, day: date) -> bool:
        """Weekday enabled (0=Sunday) and date not blocked."""
        return day.isoweekday() % 7 in self.enabled_weekdays and day not in self.blocked_dates

    def as_dict(self) -> dict:
        """Wire representation used by the public availability endpoint."""
        return {
            'workStart': self.work_start,
            'workEnd': self.work_end,
            'slotIntervalMinutes': self.slot_interval_minutes,
            'maxPerSlot': self.max_per_slot,
            'horizonDays': self.horizon_days,
            'enabledWeekdays': sorted(self.enabled_weekdays),
            'blockedDates': [d.isoformat() for d in sorted(self.blocked_dates)],
        }


@dataclass(frozen=True)
class DateAvailability:
    date: date
    available: bool
    total_slots: int
    available_slots: int


@dataclass(frozen=True)
class SlotAvailability:
    time: str
    available: bool
    booked: int
    remaining: int


@dataclass
class AvailabilitySnapshot:
    """Per-date and per-slot availability computed from one aggregator read."""
    dates: List[DateAvailability] = field(default_factory=list)
    selected_date: Optional[date] = None
    slots: List[SlotAvailability] = field(default_factory=list)


@dataclass
class BookingRequestData:
    """DTO for booking admission."""
    name: str = ''
    email: str = ''
    phone: str = ''
    preferred_date: str = ''
    preferred_time: str = ''
    service_type: str = ''
    notes: str = ''
    ip_address: Optional[str] = None


@dataclass(frozen=True)
class AppointmentCreated:
    """Emitted once a booking request has been admitted."""
    booking_id: int
    name: str
    email: str
    phone: str
    service_type: str
    preferred_date: date
    preferred_time: str
    notes: str = ''
