"""
URL routing for the booking API.
"""

from django.urls import path
from .views import (
    BookingAvailabilityView,
    BookingListView,
    BookingRequestCreateView,
    BookingSettingsView,
    BookingStatusView,
    ServiceListView,
)

urlpatterns = [
    path('booking/availability', BookingAvailabilityView.as_view(), name='booking-availability'),
    path('booking/request', BookingRequestCreateView.as_view(), name='booking-request'),
    path('appointments', BookingRequestCreateView.as_view(), name='appointment-create'),
    path('services', ServiceListView.as_view(), name='service-list'),
    path('admin/bookings', BookingListView.as_view(), name='admin-booking-list'),
    path('admin/bookings/<int:pk>/status', BookingStatusView.as_view(), name='admin-booking-status'),
    path('admin/settings/booking', BookingSettingsView.as_view(), name='admin-booking-settings'),
]
