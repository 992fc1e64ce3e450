"""
Custom managers and querysets for booking models.

QuerySets define chainable query methods.
Managers use QuerySets to enable method chaining.
No business logic should be here - only query operations.
"""

from django.db import models
from django.db.models import Count


CAPACITY_CONSUMING_STATUSES = ('pending', 'confirmed')


class ServiceQuerySet(models.QuerySet):
    """Custom queryset for Service model with chainable methods."""

    def active(self):
        """Get active services in display order."""
        return self.filter(is_active=True).order_by('order_index', 'id')


class ServiceManager(models.Manager):
    """Custom manager for Service model."""

    def get_queryset(self):
        """Return custom queryset for method chaining."""
        return ServiceQuerySet(self.model, using=self._db)

    def active(self):
        """Get active services in display order."""
        return self.get_queryset().active()

    def active_titles(self):
        """Get titles of active services in display order."""
        return list(self.get_queryset().active().values_list('title', flat=True))


class BookingRequestQuerySet(models.QuerySet):
    """Custom queryset for BookingRequest model with chainable methods."""

    def with_status(self, status):
        return self.filter(status=status)

    def capacity_consuming(self):
        """Get bookings that still occupy a slot (pending or confirmed)."""
        return self.filter(status__in=CAPACITY_CONSUMING_STATUSES)

    def scheduled(self):
        """Get bookings that carry both a date and a time."""
        return self.filter(preferred_date__isnull=False, preferred_time__isnull=False)

    def in_date_range(self, from_date, to_date):
        """
        Get bookings whose preferred date lies within a range (inclusive).

        Args:
            from_date: date object
            to_date: date object
        """
        return self.filter(preferred_date__gte=from_date, preferred_date__lte=to_date)

    def slot_counts(self):
        """Group by (preferred_date, preferred_time) and count rows."""
        return (
            self.values('preferred_date', 'preferred_time')
            .annotate(booked=Count('id'))
            .order_by()
        )

    def newest_first(self):
        return self.order_by('-created_at', '-id')


class BookingRequestManager(models.Manager):
    """Custom manager for BookingRequest model."""

    def get_queryset(self):
        """Return custom queryset for method chaining."""
        return BookingRequestQuerySet(self.model, using=self._db)

    def capacity_consuming(self):
        """Get bookings that still occupy a slot (pending or confirmed)."""
        return self.get_queryset().capacity_consuming()

    def newest_first(self):
        return self.get_queryset().newest_first()
