"""
Tests for the booking engine and API.

Tests cover:
- Slot grid generation and booking config parsing
- Settings store
- Availability aggregation and composition
- Booking admission (validation order, capacity, notifications)
- API endpoints (public booking, staff bookings and settings)
- Management commands
"""

from io import StringIO
from datetime import date, timedelta
from unittest import mock

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core import mail
from django.core.management import call_command
from django.db import DatabaseError
from django.test import SimpleTestCase, TestCase, override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from .config import load_booking_config, parse_booking_config, parse_iso_date
from .exceptions import CapacityError, ValidationError
from .models import BookingRequest, Service, SiteSetting, SlotLock, is_capacity_consuming
from .notifications import dispatch_appointment_created, send_appointment_notification
from .services import (
    admit_booking_request,
    booked_counts,
    compose_availability,
    normalize_booking_payload,
    update_booking_status,
)
from .settings_store import (
    get_setting,
    is_email_notifications_enabled,
    set_setting,
    set_settings,
)
from .slots import build_time_slots, parse_hhmm
from .types import AppointmentCreated, BookingConfig, BookingRequestData


MONDAY = date(2026, 3, 2)

SMALL_CLINIC_SETTINGS = {
    'booking_work_start': '08:00',
    'booking_work_end': '10:00',
    'booking_slot_interval_minutes': '60',
    'booking_max_per_slot': '1',
    'booking_horizon_days': '7',
    'booking_enabled_weekdays': '1,2,3,4,5',
    'booking_blocked_dates': '',
}

SMALL_CLINIC_CONFIG = BookingConfig(
    work_start='08:00',
    work_end='10:00',
    slot_interval_minutes=60,
    max_per_slot=1,
    horizon_days=7,
)


def next_monday(today):
    """First Monday strictly after ``today``."""
    return today + timedelta(days=(0 - today.weekday()) % 7 or 7)


def make_booking(day, time_of_day, status='pending', **extra):
    values = {
        'name': 'Maria Silva',
        'email': 'maria@example.com',
        'phone': '(11) 99999-9999',
        'service_type': 'Fisioterapia Ortopedica',
        'preferred_date': day,
        'preferred_time': time_of_day,
        'status': status,
    }
    values.update(extra)
    return BookingRequest.objects.create(**values)


def store_settings(values):
    for key, value in values.items():
        SiteSetting.objects.update_or_create(key=key, defaults={'value': value})


class SlotGridTests(SimpleTestCase):
    """Test slot grid generation."""

    def test_hourly_grid(self):
        """Test the small clinic grid."""
        self.assertEqual(build_time_slots('08:00', '10:00', 60), ['08:00', '09:00'])

    def test_trailing_partial_slot_is_dropped(self):
        """Test a slot that would end after closing is not offered."""
        self.assertEqual(
            build_time_slots('08:00', '09:45', 30),
            ['08:00', '08:30', '09:00']
        )

    def test_length_and_ordering(self):
        """Test grid length is floor((end - start) / interval) and ascending."""
        cases = [
            ('08:00', '18:00', 60),
            ('07:30', '12:10', 45),
            ('00:00', '23:59', 15),
            ('13:05', '13:50', 20),
        ]
        for start, end, interval in cases:
            slots = build_time_slots(start, end, interval)
            expected_len = (parse_hhmm(end) - parse_hhmm(start)) // interval
            self.assertEqual(len(slots), expected_len)
            minutes = [parse_hhmm(slot) for slot in slots]
            self.assertEqual(minutes, sorted(set(minutes)))
            self.assertTrue(all(parse_hhmm(start) <= m < parse_hhmm(end) for m in minutes))
            self.assertTrue(all(m + interval <= parse_hhmm(end) for m in minutes))

    def test_empty_when_start_not_before_end(self):
        self.assertEqual(build_time_slots('10:00', '10:00', 30), [])
        self.assertEqual(build_time_slots('11:00', '10:00', 30), [])

    def test_empty_for_non_positive_interval(self):
        self.assertEqual(build_time_slots('08:00', '10:00', 0), [])
        self.assertEqual(build_time_slots('08:00', '10:00', -30), [])
        self.assertEqual(build_time_slots('08:00', '10:00', '30'), [])

    def test_empty_for_malformed_times(self):
        """Test out-of-range and badly formatted times."""
        self.assertEqual(build_time_slots('25:00', '26:00', 30), [])
        self.assertEqual(build_time_slots('08:00', '10:60', 30), [])
        self.assertEqual(build_time_slots('8h', '10:00', 30), [])
        self.assertEqual(build_time_slots(None, '10:00', 30), [])

    def test_deterministic(self):
        self.assertEqual(
            build_time_slots('08:00', '18:00', 50),
            build_time_slots('08:00', '18:00', 50)
        )


class BookingConfigParsingTests(SimpleTestCase):
    """Test parsing raw setting values into a BookingConfig."""

    def test_defaults_when_missing(self):
        config = parse_booking_config({})
        self.assertEqual(config, BookingConfig())
        self.assertEqual(config.enabled_weekdays, frozenset({1, 2, 3, 4, 5}))
        self.assertEqual(config.blocked_dates, frozenset())

    def test_integers_are_clamped(self):
        """Test interval, capacity and horizon bounds."""
        low = parse_booking_config({
            'booking_slot_interval_minutes': '5',
            'booking_max_per_slot': '0',
            'booking_horizon_days': '1',
        })
        self.assertEqual(low.slot_interval_minutes, 15)
        self.assertEqual(low.max_per_slot, 1)
        self.assertEqual(low.horizon_days, 7)

        high = parse_booking_config({
            'booking_slot_interval_minutes': '500',
            'booking_max_per_slot': '50',
            'booking_horizon_days': '365',
        })
        self.assertEqual(high.slot_interval_minutes, 180)
        self.assertEqual(high.max_per_slot, 20)
        self.assertEqual(high.horizon_days, 180)

    def test_unparseable_values_use_defaults(self):
        config = parse_booking_config({
            'booking_slot_interval_minutes': 'abc',
            'booking_max_per_slot': '2.5',
            'booking_horizon_days': '',
            'booking_work_start': '8h',
        })
        self.assertEqual(config.slot_interval_minutes, 60)
        self.assertEqual(config.max_per_slot, 1)
        self.assertEqual(config.horizon_days, 90)
        self.assertEqual(config.work_start, '08:00')

    def test_inverted_work_hours_fall_back(self):
        config = parse_booking_config({
            'booking_work_start': '18:00',
            'booking_work_end': '09:00',
        })
        self.assertEqual((config.work_start, config.work_end), ('08:00', '18:00'))
        self.assertTrue(config.time_slots())

    def test_weekdays(self):
        """Test weekday CSV parsing and fallback when nothing is valid."""
        self.assertEqual(
            parse_booking_config({'booking_enabled_weekdays': '0, 6,9,x'}).enabled_weekdays,
            frozenset({0, 6})
        )
        self.assertEqual(
            parse_booking_config({'booking_enabled_weekdays': '9,x'}).enabled_weekdays,
            frozenset({1, 2, 3, 4, 5})
        )
        self.assertEqual(
            parse_booking_config({'booking_enabled_weekdays': ','}).enabled_weekdays,
            frozenset({1, 2, 3, 4, 5})
        )
        self.assertEqual(
            parse_booking_config({'booking_enabled_weekdays': '1,\u00b2'}).enabled_weekdays,
            frozenset({1})
        )
        self.assertEqual(
            parse_booking_config({'booking_enabled_weekdays': '\u00b2,\u0663'}).enabled_weekdays,
            frozenset({1, 2, 3, 4, 5})
        )

    def test_blocked_dates_skip_malformed_entries(self):
        config = parse_booking_config({
            'booking_blocked_dates': '2026-03-02, bad ,2026-03-03,2026-02-30,2026-W10-2',
        })
        self.assertEqual(config.blocked_dates, frozenset({date(2026, 3, 2), date(2026, 3, 3)}))

    def test_iso_date_requires_calendar_form(self):
        self.assertEqual(parse_iso_date(' 2026-03-02 '), MONDAY)
        self.assertIsNone(parse_iso_date('2026-W10-1'))
        self.assertIsNone(parse_iso_date('20260302'))
        self.assertIsNone(parse_iso_date('2026-3-2'))
        self.assertIsNone(parse_iso_date('\u0662\u0660\u0662\u0666-03-02'))
        self.assertIsNone(parse_iso_date(None))

    def test_date_allowed_uses_sunday_zero(self):
        config = BookingConfig(enabled_weekdays=frozenset({0}))
        self.assertTrue(config.is_date_allowed(date(2026, 3, 1)))  # Sunday
        self.assertFalse(config.is_date_allowed(MONDAY))

    def test_wire_representation(self):
        config = parse_booking_config(dict(SMALL_CLINIC_SETTINGS, booking_blocked_dates='2026-03-03'))
        self.assertEqual(config.as_dict(), {
            'workStart': '08:00',
            'workEnd': '10:00',
            'slotIntervalMinutes': 60,
            'maxPerSlot': 1,
            'horizonDays': 7,
            'enabledWeekdays': [1, 2, 3, 4, 5],
            'blockedDates': ['2026-03-03'],
        })


class SettingsStoreTests(TestCase):
    """Test the key/value settings store."""

    def test_get_missing_returns_default(self):
        self.assertIsNone(get_setting('missing'))
        self.assertEqual(get_setting('missing', 'x'), 'x')

    def test_set_normalizes_and_upserts(self):
        self.assertEqual(set_setting('flag', True), 'true')
        self.assertEqual(set_setting('flag', False), 'false')
        self.assertEqual(set_setting('name', '  Clinic  '), 'Clinic')
        self.assertEqual(set_setting('empty', None), '')
        self.assertEqual(set_setting('days', [1, 2, 3]), '1,2,3')

        self.assertEqual(get_setting('flag'), 'false')
        self.assertEqual(SiteSetting.objects.filter(key='flag').count(), 1)

    def test_set_many(self):
        stored = set_settings({'booking_max_per_slot': 3, 'booking_work_start': '09:00'})
        self.assertEqual(stored, {'booking_max_per_slot': '3', 'booking_work_start': '09:00'})
        self.assertEqual(load_booking_config().max_per_slot, 3)

    def test_email_notifications_flag(self):
        self.assertTrue(is_email_notifications_enabled())
        set_setting('email_notifications_enabled', 'false')
        self.assertFalse(is_email_notifications_enabled())
        set_setting('email_notifications_enabled', '1')
        self.assertTrue(is_email_notifications_enabled())

    def test_load_booking_config_reads_fresh_values(self):
        store_settings(SMALL_CLINIC_SETTINGS)
        self.assertEqual(load_booking_config(), SMALL_CLINIC_CONFIG)

        set_setting('booking_max_per_slot', '4')
        self.assertEqual(load_booking_config().max_per_slot, 4)


class BookedCountsTests(TestCase):
    """Test aggregation of capacity-consuming bookings."""

    def test_counts_pending_and_confirmed_only(self):
        make_booking(MONDAY, '08:00', status='pending')
        make_booking(MONDAY, '08:00', status='confirmed')
        make_booking(MONDAY, '08:00', status='cancelled')
        make_booking(MONDAY, '08:00', status='completed')
        make_booking(MONDAY, '09:00')

        counts = booked_counts(MONDAY, MONDAY)
        self.assertEqual(counts, {(MONDAY, '08:00'): 2, (MONDAY, '09:00'): 1})

    def test_range_is_inclusive(self):
        make_booking(MONDAY, '08:00')
        make_booking(MONDAY + timedelta(days=2), '08:00')
        make_booking(MONDAY + timedelta(days=3), '08:00')

        counts = booked_counts(MONDAY, MONDAY + timedelta(days=2))
        self.assertEqual(len(counts), 2)
        self.assertNotIn((MONDAY + timedelta(days=3), '08:00'), counts)

    def test_unscheduled_rows_excluded(self):
        make_booking(MONDAY, None)
        make_booking(None, '08:00')
        self.assertEqual(booked_counts(MONDAY - timedelta(days=30), MONDAY + timedelta(days=30)), {})

    def test_capacity_consuming_predicate(self):
        self.assertTrue(is_capacity_consuming('pending'))
        self.assertTrue(is_capacity_consuming('confirmed'))
        self.assertFalse(is_capacity_consuming('cancelled'))
        self.assertFalse(is_capacity_consuming('completed'))


class ComposeAvailabilityTests(TestCase):
    """Test per-date and per-slot availability composition."""

    def test_window_covers_horizon_inclusive(self):
        snapshot = compose_availability(SMALL_CLINIC_CONFIG, today=MONDAY)
        self.assertEqual(len(snapshot.dates), 8)
        self.assertEqual(snapshot.dates[0].date, MONDAY)
        self.assertEqual(snapshot.dates[-1].date, MONDAY + timedelta(days=7))

    def test_disabled_weekdays_have_no_slots(self):
        snapshot = compose_availability(SMALL_CLINIC_CONFIG, today=MONDAY)
        by_date = {entry.date: entry for entry in snapshot.dates}

        saturday = by_date[MONDAY + timedelta(days=5)]
        self.assertFalse(saturday.available)
        self.assertEqual((saturday.total_slots, saturday.available_slots), (0, 0))

        monday = by_date[MONDAY]
        self.assertTrue(monday.available)
        self.assertEqual((monday.total_slots, monday.available_slots), (2, 2))

    def test_bookings_reduce_available_slots(self):
        make_booking(MONDAY, '08:00')
        snapshot = compose_availability(SMALL_CLINIC_CONFIG, selected_date=MONDAY, today=MONDAY)

        self.assertEqual(snapshot.dates[0].available_slots, 1)
        self.assertEqual(snapshot.selected_date, MONDAY)
        self.assertEqual(
            [(s.time, s.available, s.booked, s.remaining) for s in snapshot.slots],
            [('08:00', False, 1, 0), ('09:00', True, 0, 1)]
        )

    def test_overbooked_slot_reports_zero_remaining(self):
        make_booking(MONDAY, '08:00')
        make_booking(MONDAY, '08:00', status='confirmed')
        snapshot = compose_availability(SMALL_CLINIC_CONFIG, selected_date=MONDAY, today=MONDAY)
        self.assertEqual(snapshot.slots[0].booked, 2)
        self.assertEqual(snapshot.slots[0].remaining, 0)

    def test_cancelled_bookings_free_capacity(self):
        make_booking(MONDAY, '08:00', status='cancelled')
        snapshot = compose_availability(SMALL_CLINIC_CONFIG, selected_date=MONDAY, today=MONDAY)
        self.assertEqual(snapshot.dates[0].available_slots, 2)

    def test_blocked_date(self):
        """Test a blocked Monday is unavailable and has no slots."""
        config = BookingConfig(
            work_start='08:00', work_end='10:00', slot_interval_minutes=60,
            max_per_slot=1, horizon_days=7, blocked_dates=frozenset({MONDAY})
        )
        snapshot = compose_availability(config, selected_date=MONDAY, today=MONDAY)

        self.assertFalse(snapshot.dates[0].available)
        self.assertEqual(snapshot.dates[0].total_slots, 0)
        self.assertEqual(snapshot.selected_date, MONDAY)
        self.assertEqual(snapshot.slots, [])

    def test_selected_date_falls_back_to_first_available(self):
        make_booking(MONDAY, '08:00')
        make_booking(MONDAY, '09:00')

        snapshot = compose_availability(
            SMALL_CLINIC_CONFIG,
            selected_date=MONDAY + timedelta(days=200),
            today=MONDAY
        )
        self.assertFalse(snapshot.dates[0].available)
        self.assertEqual(snapshot.selected_date, MONDAY + timedelta(days=1))
        self.assertEqual(len(snapshot.slots), 2)

    def test_selected_date_falls_back_to_window_start(self):
        window = [MONDAY + timedelta(days=offset) for offset in range(8)]
        config = BookingConfig(horizon_days=7, blocked_dates=frozenset(window))

        snapshot = compose_availability(config, today=MONDAY)
        self.assertEqual(snapshot.selected_date, MONDAY)
        self.assertEqual(snapshot.slots, [])
        self.assertFalse(any(entry.available for entry in snapshot.dates))

    def test_date_and_slot_views_agree(self):
        make_booking(MONDAY + timedelta(days=1), '09:00')
        tuesday = MONDAY + timedelta(days=1)
        snapshot = compose_availability(SMALL_CLINIC_CONFIG, selected_date=tuesday, today=MONDAY)

        entry = next(e for e in snapshot.dates if e.date == tuesday)
        self.assertEqual(entry.total_slots, len(snapshot.slots))
        self.assertEqual(entry.available_slots, sum(1 for s in snapshot.slots if s.available))

    def test_invariants_hold_for_every_date(self):
        make_booking(MONDAY, '08:00')
        make_booking(MONDAY + timedelta(days=2), '09:00')
        snapshot = compose_availability(SMALL_CLINIC_CONFIG, today=MONDAY)

        for entry in snapshot.dates:
            allowed = SMALL_CLINIC_CONFIG.is_date_allowed(entry.date)
            self.assertLessEqual(entry.available_slots, entry.total_slots)
            self.assertEqual(entry.available, allowed and entry.available_slots > 0)
            if not allowed:
                self.assertEqual(entry.total_slots, 0)

    def test_idempotent(self):
        make_booking(MONDAY, '08:00')
        first = compose_availability(SMALL_CLINIC_CONFIG, selected_date=MONDAY, today=MONDAY)
        second = compose_availability(SMALL_CLINIC_CONFIG, selected_date=MONDAY, today=MONDAY)
        self.assertEqual(first, second)


class AdmitBookingRequestTests(TestCase):
    """Test booking admission."""

    def setUp(self):
        store_settings(SMALL_CLINIC_SETTINGS)
        self.service = Service.objects.create(title='Fisioterapia Ortopedica', order_index=1)
        Service.objects.create(title='Pilates Clinico', order_index=2, is_active=False)

    def request_data(self, **overrides):
        values = {
            'name': 'Maria Silva',
            'email': 'maria@example.com',
            'phone': '(11) 99999-9999',
            'preferred_date': MONDAY.isoformat(),
            'preferred_time': '08:00',
            'service_type': 'Fisioterapia Ortopedica',
            'notes': '',
            'ip_address': '203.0.113.7',
        }
        values.update(overrides)
        return BookingRequestData(**values)

    def assertRejected(self, data, message):
        with self.assertRaises(ValidationError) as ctx:
            admit_booking_request(data, today=MONDAY)
        self.assertEqual(ctx.exception.message, message)
        self.assertEqual(BookingRequest.objects.count(), 0)

    def test_admits_pending_booking(self):
        booking = admit_booking_request(self.request_data(), today=MONDAY)

        self.assertIsNotNone(booking.pk)
        self.assertEqual(booking.status, 'pending')
        self.assertEqual(booking.preferred_date, MONDAY)
        self.assertEqual(booking.preferred_time, '08:00')
        self.assertEqual(booking.ip_address, '203.0.113.7')

    def test_missing_fields_checked_first(self):
        """Test missing fields win over other failures."""
        self.assertRejected(self.request_data(preferred_date='  ', service_type='Unknown'), 'missing fields')
        self.assertRejected(self.request_data(preferred_time=''), 'missing fields')
        self.assertRejected(self.request_data(service_type=''), 'missing fields')

    def test_inactive_service_rejected(self):
        self.assertRejected(self.request_data(service_type='Pilates Clinico'), 'invalid service')
        self.assertRejected(self.request_data(service_type='Unknown'), 'invalid service')

    def test_service_deactivated_after_listing(self):
        """Test only the current catalog is honoured."""
        self.service.is_active = False
        self.service.save()
        self.assertRejected(self.request_data(), 'invalid service')

    def test_time_outside_grid(self):
        self.assertRejected(self.request_data(preferred_time='10:00'), 'time outside window')
        self.assertRejected(self.request_data(preferred_time='08:30'), 'time outside window')
        self.assertRejected(
            self.request_data(preferred_time='10:00', preferred_date='2000-01-01'),
            'time outside window'
        )

    def test_date_outside_window(self):
        self.assertRejected(
            self.request_data(preferred_date=(MONDAY - timedelta(days=1)).isoformat()),
            'date outside window'
        )
        self.assertRejected(
            self.request_data(preferred_date=(MONDAY + timedelta(days=8)).isoformat()),
            'date outside window'
        )
        self.assertRejected(self.request_data(preferred_date='not-a-date'), 'date outside window')
        self.assertRejected(self.request_data(preferred_date='2026-W10-1'), 'date outside window')

    def test_last_day_of_window_accepted(self):
        last_day = MONDAY + timedelta(days=7)
        booking = admit_booking_request(self.request_data(preferred_date=last_day.isoformat()), today=MONDAY)
        self.assertEqual(booking.preferred_date, last_day)

    def test_disabled_or_blocked_date_rejected(self):
        saturday = MONDAY + timedelta(days=5)
        self.assertRejected(self.request_data(preferred_date=saturday.isoformat()), 'date not available')

        set_setting('booking_blocked_dates', MONDAY.isoformat())
        self.assertRejected(self.request_data(), 'date not available')

    def test_capacity_enforced_per_slot(self):
        admit_booking_request(self.request_data(), today=MONDAY)

        with self.assertRaises(CapacityError) as ctx:
            admit_booking_request(self.request_data(), today=MONDAY)
        self.assertEqual(ctx.exception.message, 'slot full')

        other = admit_booking_request(self.request_data(preferred_time='09:00'), today=MONDAY)
        self.assertEqual(other.preferred_time, '09:00')
        self.assertEqual(BookingRequest.objects.count(), 2)

    def test_capacity_uses_fresh_counts(self):
        """Test a snapshot showing free capacity does not admit a full slot."""
        snapshot = compose_availability(load_booking_config(), selected_date=MONDAY, today=MONDAY)
        self.assertEqual(snapshot.slots[0].remaining, 1)

        make_booking(MONDAY, '08:00', status='confirmed')

        with self.assertRaises(CapacityError):
            admit_booking_request(self.request_data(), today=MONDAY)

    def test_cancelled_booking_frees_slot(self):
        booking = admit_booking_request(self.request_data(), today=MONDAY)
        update_booking_status(booking, 'cancelled')

        again = admit_booking_request(self.request_data(), today=MONDAY)
        self.assertEqual(again.status, 'pending')

    def test_max_per_slot_respected(self):
        set_setting('booking_max_per_slot', '2')
        admit_booking_request(self.request_data(), today=MONDAY)
        admit_booking_request(self.request_data(), today=MONDAY)

        with self.assertRaises(CapacityError):
            admit_booking_request(self.request_data(), today=MONDAY)

    def test_slot_lock_taken_on_admission(self):
        set_setting('booking_max_per_slot', '2')
        admit_booking_request(self.request_data(), today=MONDAY)
        admit_booking_request(self.request_data(), today=MONDAY)

        lock = SlotLock.objects.get(slot_date=MONDAY, slot_time='08:00')
        self.assertEqual(lock.acquisitions, 2)

    def test_rejected_admission_rolls_back_lock_update(self):
        admit_booking_request(self.request_data(), today=MONDAY)
        with self.assertRaises(CapacityError):
            admit_booking_request(self.request_data(), today=MONDAY)

        lock = SlotLock.objects.get(slot_date=MONDAY, slot_time='08:00')
        self.assertEqual(lock.acquisitions, 1)
        self.assertEqual(BookingRequest.objects.count(), 1)

    def test_sqlite_transactions_take_write_lock_at_begin(self):
        """Test concurrent SQLite admissions wait on BEGIN instead of failing on UPDATE."""
        database = settings.DATABASES['default']
        if database['ENGINE'] != 'django.db.backends.sqlite3':
            self.skipTest('SQLite only')
        self.assertEqual(database['OPTIONS']['transaction_mode'], 'IMMEDIATE')
        self.assertGreater(database['OPTIONS']['timeout'], 0)

    def test_notification_dispatched_after_commit(self):
        with mock.patch('booking.services.dispatch_appointment_created') as dispatch:
            with self.captureOnCommitCallbacks(execute=True):
                booking = admit_booking_request(self.request_data(notes='Dor no joelho'), today=MONDAY)

        dispatch.assert_called_once()
        event = dispatch.call_args[0][0]
        self.assertIsInstance(event, AppointmentCreated)
        self.assertEqual(event.booking_id, booking.pk)
        self.assertEqual(event.preferred_date, MONDAY)
        self.assertEqual(event.notes, 'Dor no joelho')

    def test_no_notification_on_rejection(self):
        with mock.patch('booking.services.dispatch_appointment_created') as dispatch:
            with self.captureOnCommitCallbacks(execute=True):
                with self.assertRaises(ValidationError):
                    admit_booking_request(self.request_data(preferred_time='07:00'), today=MONDAY)

        dispatch.assert_not_called()

    def test_update_status_rejects_unknown_status(self):
        booking = admit_booking_request(self.request_data(), today=MONDAY)
        with self.assertRaises(ValidationError):
            update_booking_status(booking, 'archived')

        booking.refresh_from_db()
        self.assertEqual(booking.status, 'pending')


class NormalizeBookingPayloadTests(SimpleTestCase):
    """Test form value cleanup."""

    def test_collapses_whitespace_and_strips_control_characters(self):
        data = normalize_booking_payload({
            'name': '  Maria \t  Silva ',
            'notes': 'linha 1\nlinha\x07 2',
            'preferred_time': ' 08:00 ',
        }, ip_address='127.0.0.1')

        self.assertEqual(data.name, 'Maria Silva')
        self.assertEqual(data.notes, 'linha 1linha 2')
        self.assertEqual(data.preferred_time, '08:00')
        self.assertEqual(data.email, '')
        self.assertEqual(data.ip_address, '127.0.0.1')

    def test_truncates_to_column_length(self):
        data = normalize_booking_payload({'name': 'a' * 300, 'preferred_date': '2026-03-02T10:00'})
        self.assertEqual(len(data.name), 100)
        self.assertEqual(data.preferred_date, '2026-03-02')


class NotificationTests(TestCase):
    """Test staff notifications for admitted bookings."""

    def setUp(self):
        self.event = AppointmentCreated(
            booking_id=7,
            name='Maria Silva',
            email='',
            phone='(11) 99999-9999',
            service_type='Pilates Clinico',
            preferred_date=MONDAY,
            preferred_time='09:00',
        )

    def test_send_builds_plain_text_email(self):
        send_appointment_notification(self.event, 'staff@example.com')

        self.assertEqual(len(mail.outbox), 1)
        message = mail.outbox[0]
        self.assertEqual(message.to, ['staff@example.com'])
        self.assertIn('Pilates Clinico', message.subject)
        self.assertIn('Data: 2026-03-02', message.body)
        self.assertIn('(nao informado)', message.body)

    def test_send_failure_is_swallowed(self):
        with mock.patch('booking.notifications.send_mail', side_effect=OSError('smtp down')):
            send_appointment_notification(self.event, 'staff@example.com')

    @override_settings(BOOKING_NOTIFICATION_EMAIL='staff@example.com')
    def test_dispatch_starts_background_delivery(self):
        with mock.patch('booking.notifications.threading.Thread') as thread_cls:
            self.assertTrue(dispatch_appointment_created(self.event))

        thread_cls.return_value.start.assert_called_once()
        self.assertEqual(thread_cls.call_args.kwargs['args'], (self.event, 'staff@example.com'))

    @override_settings(BOOKING_NOTIFICATION_EMAIL='staff@example.com')
    def test_dispatch_skipped_when_disabled(self):
        set_setting('email_notifications_enabled', 'false')
        self.assertFalse(dispatch_appointment_created(self.event))

    @override_settings(BOOKING_NOTIFICATION_EMAIL='')
    def test_dispatch_skipped_without_recipient(self):
        self.assertFalse(dispatch_appointment_created(self.event))


class BookingAPITests(APITestCase):
    """Test public booking endpoints."""

    def setUp(self):
        self.client = APIClient()
        store_settings(SMALL_CLINIC_SETTINGS)
        Service.objects.create(title='Fisioterapia Ortopedica', order_index=1)
        Service.objects.create(title='Pilates Clinico', order_index=2)
        Service.objects.create(title='Hidroterapia', order_index=3, is_active=False)
        self.today = timezone.localdate()
        self.monday = next_monday(self.today)

    def booking_payload(self, **overrides):
        payload = {
            'name': 'Maria Silva',
            'email': 'maria@example.com',
            'phone': '(11) 99999-9999',
            'preferredDate': self.monday.isoformat(),
            'preferredTime': '08:00',
            'serviceType': 'Fisioterapia Ortopedica',
            'notes': 'Primeira consulta',
        }
        payload.update(overrides)
        return payload

    def test_booking_end_to_end(self):
        """Test first booking wins the slot, second gets 409, other slot still free."""
        response = self.client.post('/api/booking/request', self.booking_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['success'])
        booking_id = response.data['data']['id']
        self.assertEqual(BookingRequest.objects.get(pk=booking_id).status, 'pending')

        response = self.client.post('/api/booking/request', self.booking_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertFalse(response.data['success'])
        self.assertEqual(response.data['error'], 'slot full')

        response = self.client.post(
            '/api/booking/request',
            self.booking_payload(preferredTime='09:00'),
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_appointments_alias(self):
        response = self.client.post('/api/appointments', self.booking_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_appointments_short_field_names(self):
        """Test service/date/time are accepted in place of the camelCase names."""
        payload = {
            'name': 'Joao Souza',
            'phone': '(11) 98888-7777',
            'service': 'Pilates Clinico',
            'date': self.monday.isoformat(),
            'time': '09:00',
        }
        response = self.client.post('/api/appointments', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        booking = BookingRequest.objects.get(pk=response.data['data']['id'])
        self.assertEqual(booking.service_type, 'Pilates Clinico')
        self.assertEqual(booking.preferred_date, self.monday)
        self.assertEqual(booking.preferred_time, '09:00')

    def test_short_field_names_take_precedence(self):
        payload = self.booking_payload(time='09:00')
        response = self.client.post('/api/appointments', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(BookingRequest.objects.get().preferred_time, '09:00')

    def test_week_date_form_rejected(self):
        year, week, weekday = self.monday.isocalendar()
        week_date = f'{year}-W{week:02d}-{weekday}'
        response = self.client.post(
            '/api/booking/request',
            self.booking_payload(preferredDate=week_date),
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data, {'success': False, 'message': 'date outside window'})
        self.assertEqual(BookingRequest.objects.count(), 0)

    def test_non_ascii_weekday_setting_falls_back(self):
        """Test a stored weekday list with non-ASCII digits keeps the API up."""
        set_setting('booking_enabled_weekdays', '1,²')

        response = self.client.get('/api/booking/availability')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['config']['enabledWeekdays'], [1])

        response = self.client.post('/api/booking/request', self.booking_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_availability_payload(self):
        response = self.client.get('/api/booking/availability')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        data = response.data['data']
        self.assertEqual(data['services'], ['Fisioterapia Ortopedica', 'Pilates Clinico'])
        self.assertEqual(data['config']['workStart'], '08:00')
        self.assertEqual(data['config']['enabledWeekdays'], [1, 2, 3, 4, 5])
        self.assertEqual(len(data['dates']), 8)
        self.assertEqual(data['dates'][0]['date'], self.today.isoformat())
        self.assertEqual(
            set(data['dates'][0]),
            {'date', 'available', 'totalSlots', 'availableSlots'}
        )
        first_available = next(entry['date'] for entry in data['dates'] if entry['available'])
        self.assertEqual(data['selectedDate'], first_available)
        self.assertEqual([slot['time'] for slot in data['slots']], ['08:00', '09:00'])

    def test_availability_reflects_booking(self):
        self.client.post('/api/booking/request', self.booking_payload(), format='json')

        response = self.client.get('/api/booking/availability', {'date': self.monday.isoformat()})
        data = response.data['data']
        self.assertEqual(data['selectedDate'], self.monday.isoformat())
        self.assertEqual(data['slots'][0], {'time': '08:00', 'available': False, 'booked': 1, 'remaining': 0})
        self.assertEqual(data['slots'][1], {'time': '09:00', 'available': True, 'booked': 0, 'remaining': 1})

        entry = next(e for e in data['dates'] if e['date'] == self.monday.isoformat())
        self.assertEqual((entry['totalSlots'], entry['availableSlots']), (2, 1))

    def test_blocked_monday(self):
        set_setting('booking_blocked_dates', self.monday.isoformat())

        response = self.client.get('/api/booking/availability', {'date': self.monday.isoformat()})
        data = response.data['data']
        entry = next(e for e in data['dates'] if e['date'] == self.monday.isoformat())
        self.assertFalse(entry['available'])
        self.assertEqual(data['selectedDate'], self.monday.isoformat())
        self.assertEqual(data['slots'], [])
        self.assertEqual(data['config']['blockedDates'], [self.monday.isoformat()])

    def test_far_future_date_falls_back(self):
        set_setting('booking_horizon_days', '90')
        far = self.today + timedelta(days=200)

        response = self.client.get('/api/booking/availability', {'date': far.isoformat()})
        data = response.data['data']
        self.assertEqual(len(data['dates']), 91)
        first_available = next(entry['date'] for entry in data['dates'] if entry['available'])
        self.assertEqual(data['selectedDate'], first_available)
        self.assertNotEqual(data['selectedDate'], far.isoformat())

    def test_malformed_date_parameter_ignored(self):
        response = self.client.get('/api/booking/availability', {'date': 'tomorrow'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNotNone(response.data['data']['selectedDate'])

    def test_rule_violations_return_400(self):
        cases = [
            ({'serviceType': ''}, 'missing fields'),
            ({'serviceType': 'Hidroterapia'}, 'invalid service'),
            ({'preferredTime': '12:00'}, 'time outside window'),
            ({'preferredDate': (self.today - timedelta(days=1)).isoformat()}, 'date outside window'),
        ]
        for overrides, message in cases:
            response = self.client.post('/api/booking/request', self.booking_payload(**overrides), format='json')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
            self.assertEqual(response.data, {'success': False, 'message': message})

        self.assertEqual(BookingRequest.objects.count(), 0)

    def test_malformed_contact_fields_return_400(self):
        response = self.client.post(
            '/api/booking/request',
            self.booking_payload(name='R2-D2', phone='call me'),
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['success'])
        self.assertIn('name', response.data['errors'])
        self.assertIn('phone', response.data['errors'])

    def test_storage_failure_returns_generic_500(self):
        with mock.patch('booking.services.admit_booking_request', side_effect=DatabaseError('disk I/O error at /var/db')):
            response = self.client.post('/api/booking/request', self.booking_payload(), format='json')

        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertFalse(response.data['success'])
        self.assertNotIn('disk', response.data['message'])

    def test_public_services(self):
        response = self.client.get('/api/services')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(
            [service['title'] for service in response.data['data']],
            ['Fisioterapia Ortopedica', 'Pilates Clinico']
        )


class StaffAPITests(APITestCase):
    """Test staff endpoints for bookings and booking settings."""

    def setUp(self):
        self.client = APIClient()
        self.staff = get_user_model().objects.create_user(
            username='admin', password='secret-pass', is_staff=True
        )
        self.pending = make_booking(MONDAY, '08:00')
        self.confirmed = make_booking(MONDAY, '09:00', status='confirmed')

    def test_requires_staff(self):
        for url in ['/api/admin/bookings', '/api/admin/settings/booking']:
            response = self.client.get(url)
            self.assertIn(response.status_code, (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN))
            self.assertFalse(response.data['success'])

    def test_list_bookings(self):
        self.client.force_authenticate(user=self.staff)

        response = self.client.get('/api/admin/bookings')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pagination']['total'], 2)
        self.assertEqual(response.data['data'][0]['id'], self.confirmed.id)

        response = self.client.get('/api/admin/bookings', {'status': 'pending'})
        self.assertEqual([b['id'] for b in response.data['data']], [self.pending.id])

    def test_list_rejects_unknown_status_filter(self):
        self.client.force_authenticate(user=self.staff)
        response = self.client.get('/api/admin/bookings', {'status': 'archived'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_status(self):
        self.client.force_authenticate(user=self.staff)

        response = self.client.put(
            f'/api/admin/bookings/{self.pending.id}/status',
            {'status': 'cancelled'},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['data']['is_capacity_consuming'])

        self.pending.refresh_from_db()
        self.assertEqual(self.pending.status, 'cancelled')

    def test_update_status_validation(self):
        self.client.force_authenticate(user=self.staff)

        response = self.client.put(
            f'/api/admin/bookings/{self.pending.id}/status',
            {'status': 'archived'},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.put('/api/admin/bookings/9999/status', {'status': 'confirmed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_update_booking_settings(self):
        self.client.force_authenticate(user=self.staff)

        response = self.client.put('/api/admin/settings/booking', {
            'bookingWorkStart': '09:00',
            'booking_max_per_slot': 3,
            'bookingEnabledWeekdays': [1, 2],
            'emailNotificationsEnabled': False,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        config = response.data['data']['config']
        self.assertEqual(config['workStart'], '09:00')
        self.assertEqual(config['maxPerSlot'], 3)
        self.assertEqual(config['enabledWeekdays'], [1, 2])
        self.assertEqual(get_setting('booking_enabled_weekdays'), '1,2')
        self.assertFalse(is_email_notifications_enabled())

        response = self.client.get('/api/admin/settings/booking')
        self.assertEqual(response.data['data']['stored']['booking_work_start'], '09:00')

    def test_unknown_setting_key_rejected(self):
        self.client.force_authenticate(user=self.staff)

        response = self.client.put('/api/admin/settings/booking', {
            'bookingWorkStart': '09:00',
            'heroTitle': 'Hello',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIsNone(get_setting('booking_work_start'))


class ManagementCommandTests(TestCase):
    """Test management commands."""

    def test_seed_clinic_command(self):
        """Test seeding is idempotent and yields a usable config."""
        out = StringIO()
        call_command('seed_clinic', stdout=out)
        self.assertIn('Seeded 6 service(s)', out.getvalue())

        call_command('seed_clinic', stdout=StringIO())
        self.assertEqual(Service.objects.count(), 6)
        self.assertEqual(Service.objects.active_titles()[0], 'Fisioterapia Ortopedica')
        self.assertEqual(load_booking_config(), BookingConfig())

    def test_seed_settings_only(self):
        call_command('seed_clinic', '--skip-services', stdout=StringIO())
        self.assertEqual(Service.objects.count(), 0)
        self.assertEqual(get_setting('booking_horizon_days'), '90')
