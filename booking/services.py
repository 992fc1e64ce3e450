"""
Service layer for booking business logic.
Services are framework-agnostic and handle all business operations.
"""

import logging
import re
from typing import Dict, List, Mapping, Optional, Tuple
from datetime import date, timedelta

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from .config import load_booking_config, parse_iso_date
from .exceptions import CapacityError, ValidationError
from .models import BookingRequest, Service, SlotLock
from .notifications import dispatch_appointment_created
from .types import (
    AppointmentCreated,
    AvailabilitySnapshot,
    BookingConfig,
    BookingRequestData,
    DateAvailability,
    SlotAvailability,
)

logger = logging.getLogger(__name__)

SlotKey = Tuple[date, str]

BOOKING_FIELD_LIMITS = {
    'name': 100,
    'email': 120,
    'phone': 25,
    'service_type': 120,
    'preferred_date': 10,
    'preferred_time': 5,
    'notes': 1000,
}

_INLINE_WHITESPACE_RE = re.compile(r'[^\S\r\n]+')
_CONTROL_CHARS_RE = re.compile(r'[\x00-\x1f\x7f]')


def get_today() -> date:
    """Current local date in the site time zone."""
    return timezone.localdate()


def list_active_service_titles() -> List[str]:
    """Titles of active services in display order."""
    return Service.objects.active_titles()


def booking_window(config: BookingConfig, today: date) -> List[date]:
    """Every date from ``today`` through ``today + horizon_days`` inclusive."""
    return [today + timedelta(days=offset) for offset in range(config.horizon_days + 1)]


def booked_counts(from_date: date, to_date: date) -> Dict[SlotKey, int]:
    """
    Count capacity-consuming bookings per slot in a date range.

    Args:
        from_date: First date (inclusive)
        to_date: Last date (inclusive)

    Returns:
        Mapping of (date, "HH:MM") to number of pending/confirmed bookings.
        Bookings without a date or time are not counted.
    """
    rows = (
        BookingRequest.objects
        .capacity_consuming()
        .scheduled()
        .in_date_range(from_date, to_date)
        .slot_counts()
    )
    return {(row['preferred_date'], row['preferred_time']): row['booked'] for row in rows}


def compose_availability(
    config: BookingConfig,
    selected_date: Optional[date] = None,
    today: Optional[date] = None
) -> AvailabilitySnapshot:
    """
    Compute per-date and per-slot availability for the booking window.

    Args:
        config: Booking rules to apply
        selected_date: Date the caller wants slots for (optional)
        today: First date of the window, defaults to the local date

    Returns:
        AvailabilitySnapshot whose dates and slots come from the same
        booking counts
    """
    today = today or get_today()
    window = booking_window(config, today)
    if not window:
        return AvailabilitySnapshot()

    grid = config.time_slots()
    counts = booked_counts(window[0], window[-1])

    dates = [_date_availability(config, grid, counts, day) for day in window]
    selected = _resolve_selected_date(dates, selected_date)

    slots = []
    if selected is not None and config.is_date_allowed(selected):
        slots = _slot_availability(config, grid, counts, selected)

    return AvailabilitySnapshot(dates=dates, selected_date=selected, slots=slots)


def normalize_booking_payload(payload: Mapping, ip_address: Optional[str] = None) -> BookingRequestData:
    """
    Clean raw form values into a BookingRequestData.

    Inline whitespace is collapsed, control characters removed, and each
    value trimmed to its column length.
    """
    values = {
        field_name: _sanitize(payload.get(field_name), max_len)
        for field_name, max_len in BOOKING_FIELD_LIMITS.items()
    }
    return BookingRequestData(ip_address=ip_address, **values)


def admit_booking_request(
    data: BookingRequestData,
    today: Optional[date] = None
) -> BookingRequest:
    """
    Validate a booking request against current rules and persist it.

    Args:
        data: BookingRequestData from the public form
        today: Reference date for the booking window, defaults to local date

    Returns:
        Created BookingRequest in pending status

    Raises:
        ValidationError: If a field is missing, the service is not active,
            or the time/date is outside the bookable window
        CapacityError: If the slot has no remaining capacity
    """
    today = today or get_today()
    config = load_booking_config()

    if not (data.preferred_date.strip() and data.preferred_time.strip() and data.service_type.strip()):
        raise ValidationError("missing fields")

    if data.service_type not in list_active_service_titles():
        raise ValidationError("invalid service")

    if data.preferred_time not in config.time_slots():
        raise ValidationError("time outside window")

    preferred_date = parse_iso_date(data.preferred_date)
    if preferred_date is None or not today <= preferred_date <= today + timedelta(days=config.horizon_days):
        raise ValidationError("date outside window")

    if not config.is_date_allowed(preferred_date):
        raise ValidationError("date not available")

    booking = _reserve_slot(config, data, preferred_date)
    logger.info(
        "Booking request %s admitted for %s %s (%s)",
        booking.pk, preferred_date, booking.preferred_time, booking.service_type
    )
    return booking


@transaction.atomic
def update_booking_status(booking: BookingRequest, status: str) -> BookingRequest:
    """
    Move a booking to another status.

    Raises:
        ValidationError: If status is not a known booking status
    """
    valid_statuses = [choice for choice, _ in BookingRequest.STATUS_CHOICES]
    if status not in valid_statuses:
        raise ValidationError("invalid status")

    booking.status = status
    booking.save(update_fields=['status'])
    return booking


@transaction.atomic
def _reserve_slot(
    config: BookingConfig,
    data: BookingRequestData,
    preferred_date: date
) -> BookingRequest:
    """Check capacity and insert under the slot lock, in one transaction."""
    _lock_slot(preferred_date, data.preferred_time)

    booked = booked_counts(preferred_date, preferred_date).get((preferred_date, data.preferred_time), 0)
    if booked >= config.max_per_slot:
        logger.info("Slot %s %s is full (%s booked)", preferred_date, data.preferred_time, booked)
        raise CapacityError("slot full")

    booking = BookingRequest.objects.create(
        name=data.name,
        email=data.email,
        phone=data.phone,
        preferred_date=preferred_date,
        preferred_time=data.preferred_time,
        service_type=data.service_type,
        notes=data.notes,
        status=BookingRequest.STATUS_PENDING,
        ip_address=data.ip_address or None,
    )

    event = AppointmentCreated(
        booking_id=booking.pk,
        name=booking.name,
        email=booking.email,
        phone=booking.phone,
        service_type=booking.service_type,
        preferred_date=preferred_date,
        preferred_time=booking.preferred_time,
        notes=booking.notes,
    )
    transaction.on_commit(lambda: dispatch_appointment_created(event))
    return booking


def _lock_slot(slot_date: date, slot_time: str) -> None:
    """Take the per-slot write lock for the current transaction."""
    lock, _ = SlotLock.objects.get_or_create(slot_date=slot_date, slot_time=slot_time)
    SlotLock.objects.filter(pk=lock.pk).update(acquisitions=F('acquisitions') + 1)


def _date_availability(
    config: BookingConfig,
    grid: List[str],
    counts: Dict[SlotKey, int],
    day: date
) -> DateAvailability:
    if not config.is_date_allowed(day):
        return DateAvailability(date=day, available=False, total_slots=0, available_slots=0)

    available_slots = sum(
        1 for slot in grid if counts.get((day, slot), 0) < config.max_per_slot
    )
    return DateAvailability(
        date=day,
        available=available_slots > 0,
        total_slots=len(grid),
        available_slots=available_slots,
    )


def _slot_availability(
    config: BookingConfig,
    grid: List[str],
    counts: Dict[SlotKey, int],
    day: date
) -> List[SlotAvailability]:
    slots = []
    for slot in grid:
        booked = counts.get((day, slot), 0)
        remaining = max(0, config.max_per_slot - booked)
        slots.append(SlotAvailability(
            time=slot,
            available=remaining > 0,
            booked=booked,
            remaining=remaining,
        ))
    return slots


def _resolve_selected_date(
    dates: List[DateAvailability],
    requested: Optional[date]
) -> Optional[date]:
    """Requested date if in the window, else first available, else first."""
    if not dates:
        return None

    if requested is not None and any(entry.date == requested for entry in dates):
        return requested

    for entry in dates:
        if entry.available:
            return entry.date

    return dates[0].date


def _sanitize(value, max_len: int) -> str:
    text = '' if value is None else str(value)
    text = _INLINE_WHITESPACE_RE.sub(' ', text)
    text = _CONTROL_CHARS_RE.sub('', text)
    return text.strip()[:max_len]
