"""
Models for the clinic booking system.

- SiteSetting is the key/value store the booking rules are read from
- Service is the catalog a booking must reference by title
- BookingRequest is a public booking submission
- SlotLock serializes admissions for the same (date, time) slot
"""

from django.db import models

from .managers import (
    CAPACITY_CONSUMING_STATUSES,
    BookingRequestManager,
    ServiceManager,
)


def is_capacity_consuming(status):
    """Whether a booking in ``status`` still occupies slot capacity."""
    return status in CAPACITY_CONSUMING_STATUSES


class SiteSetting(models.Model):
    """Arbitrary site configuration stored as text."""

    key = models.CharField(max_length=100, unique=True)
    value = models.TextField(blank=True, default='')
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['key']

    def __str__(self):
        return f"{self.key}={self.value}"


class Service(models.Model):
    """A service offered by the clinic."""

    title = models.CharField(max_length=120)
    description = models.TextField(blank=True, default='')
    icon = models.CharField(max_length=50, blank=True, default='')
    order_index = models.IntegerField(default=0)
    is_active = models.BooleanField(
        default=True,
        help_text="Only active services are offered for booking"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    objects = ServiceManager()

    class Meta:
        ordering = ['order_index', 'id']
        indexes = [
            models.Index(fields=['is_active', 'order_index'], name='booking_ser_is_acti_5c1f0e_idx'),
        ]

    def __str__(self):
        return self.title


class BookingRequest(models.Model):
    """
    A booking submitted through the public form.

    Created as pending; staff move it to confirmed, completed or cancelled.
    """

    STATUS_PENDING = 'pending'
    STATUS_CONFIRMED = 'confirmed'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_CONFIRMED, 'Confirmed'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    name = models.CharField(max_length=100)
    email = models.CharField(max_length=120, blank=True, default='')
    phone = models.CharField(max_length=25)
    preferred_date = models.DateField(null=True, blank=True)
    preferred_time = models.CharField(
        max_length=5,
        null=True,
        blank=True,
        help_text="Slot start as HH:MM"
    )
    service_type = models.CharField(max_length=120, blank=True, default='')
    notes = models.TextField(blank=True, default='')
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_PENDING
    )
    created_at = models.DateTimeField(auto_now_add=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)

    objects = BookingRequestManager()

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['preferred_date', 'preferred_time', 'status'], name='booking_boo_preferr_8a3d2b_idx'),
            models.Index(fields=['status'], name='booking_boo_status_4e7c91_idx'),
        ]

    def __str__(self):
        when = f"{self.preferred_date} {self.preferred_time}" if self.preferred_date else "unscheduled"
        return f"{self.name} - {when} [{self.status}]"

    @property
    def is_capacity_consuming(self):
        return is_capacity_consuming(self.status)


class SlotLock(models.Model):
    """
    One row per (date, time) slot that has ever been requested.

    Admission updates this row before counting bookings, which serializes
    concurrent admissions for the same slot.
    """

    slot_date = models.DateField()
    slot_time = models.CharField(max_length=5)
    acquisitions = models.PositiveIntegerField(default=0)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['slot_date', 'slot_time'], name='unique_slot_lock'),
        ]

    def __str__(self):
        return f"{self.slot_date} {self.slot_time}"
