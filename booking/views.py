"""Views for the booking API."""

import logging

from django.shortcuts import get_object_or_404

from rest_framework import status
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response
from rest_framework.views import APIView

from .config import load_booking_config, parse_iso_date
from .exceptions import CapacityError, ValidationError
from .models import BookingRequest, Service
from .serializers import (
    AvailabilityQuerySerializer,
    BookingListQuerySerializer,
    BookingRequestCreateSerializer,
    BookingRequestReadSerializer,
    BookingSettingsUpdateSerializer,
    BookingStatusUpdateSerializer,
    DateAvailabilitySerializer,
    ServiceReadSerializer,
    SlotAvailabilitySerializer,
)
from . import services
from .settings_store import get_settings, set_settings
from .types import BOOKING_SETTING_KEYS, EMAIL_NOTIFICATIONS_KEY

logger = logging.getLogger(__name__)

BOOKING_CREATED_MESSAGE = 'Booking request received. We will contact you to confirm.'
SLOT_FULL_MESSAGE = 'This time is no longer available. Please choose another time.'


class BookingAvailabilityView(APIView):
    """
    Bookable dates and slots.

    GET /api/booking/availability?date=YYYY-MM-DD
    """

    def get(self, request):
        """Return services, effective config, per-date and per-slot availability."""
        query_serializer = AvailabilityQuerySerializer(data=request.query_params)
        query_serializer.is_valid(raise_exception=True)
        requested_date = parse_iso_date(query_serializer.validated_data.get('date'))

        config = load_booking_config()
        snapshot = services.compose_availability(config, selected_date=requested_date)

        return Response({
            'success': True,
            'data': {
                'services': services.list_active_service_titles(),
                'config': config.as_dict(),
                'dates': DateAvailabilitySerializer(snapshot.dates, many=True).data,
                'selectedDate': snapshot.selected_date.isoformat() if snapshot.selected_date else None,
                'slots': SlotAvailabilitySerializer(snapshot.slots, many=True).data,
            }
        })


class BookingRequestCreateView(APIView):
    """
    Submit a booking request.

    POST /api/booking/request
    POST /api/appointments
    """

    def post(self, request):
        """Admit a booking if the slot still has capacity."""
        serializer = BookingRequestCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        data = services.normalize_booking_payload(
            serializer.to_service_payload(),
            ip_address=request.META.get('REMOTE_ADDR')
        )

        try:
            booking = services.admit_booking_request(data)
        except ValidationError as exc:
            logger.info("Booking request rejected: %s", exc.message)
            return Response(
                {'success': False, 'message': exc.message},
                status=status.HTTP_400_BAD_REQUEST
            )
        except CapacityError as exc:
            logger.info("Booking request rejected: %s", exc.message)
            return Response(
                {'success': False, 'message': SLOT_FULL_MESSAGE, 'error': exc.message},
                status=status.HTTP_409_CONFLICT
            )

        return Response({
            'success': True,
            'message': BOOKING_CREATED_MESSAGE,
            'data': {'id': booking.pk}
        }, status=status.HTTP_201_CREATED)


class ServiceListView(APIView):
    """
    Active services for public display.

    GET /api/services
    """

    def get(self, request):
        serializer = ServiceReadSerializer(Service.objects.active(), many=True)
        return Response({'success': True, 'data': serializer.data})


class BookingListView(APIView):
    """
    Paginated booking requests for staff.

    GET /api/admin/bookings?status=all|pending|confirmed|completed|cancelled&page=N
    """

    permission_classes = [IsAdminUser]

    def get(self, request):
        query_serializer = BookingListQuerySerializer(data=request.query_params)
        query_serializer.is_valid(raise_exception=True)
        status_filter = query_serializer.validated_data['status']

        bookings = BookingRequest.objects.newest_first()
        if status_filter != 'all':
            bookings = bookings.with_status(status_filter)

        paginator = PageNumberPagination()
        page = paginator.paginate_queryset(bookings, request, view=self)
        serializer = BookingRequestReadSerializer(page, many=True)

        return Response({
            'success': True,
            'data': serializer.data,
            'pagination': {
                'page': paginator.page.number,
                'limit': paginator.page.paginator.per_page,
                'total': paginator.page.paginator.count,
                'totalPages': paginator.page.paginator.num_pages,
            }
        })


class BookingStatusView(APIView):
    """
    Change a booking's status.

    PUT /api/admin/bookings/{id}/status
    """

    permission_classes = [IsAdminUser]

    def put(self, request, pk):
        booking = get_object_or_404(BookingRequest, pk=pk)
        serializer = BookingStatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        services.update_booking_status(booking, serializer.validated_data['status'])
        logger.info("Booking request %s moved to %s by %s", booking.pk, booking.status, request.user)

        return Response({
            'success': True,
            'message': 'Status updated.',
            'data': BookingRequestReadSerializer(booking).data
        })


class BookingSettingsView(APIView):
    """
    Read or update the booking rules.

    GET /api/admin/settings/booking - Effective config and stored values
    PUT /api/admin/settings/booking - Update any subset of the booking keys
    """

    permission_classes = [IsAdminUser]

    def get(self, request):
        return Response({'success': True, 'data': self._settings_payload()})

    def put(self, request):
        serializer = BookingSettingsUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        stored = set_settings(serializer.validated_data)
        logger.info("Booking settings %s updated by %s", sorted(stored), request.user)

        return Response({'success': True, 'data': self._settings_payload()})

    def _settings_payload(self):
        return {
            'config': load_booking_config().as_dict(),
            'stored': get_settings(BOOKING_SETTING_KEYS + (EMAIL_NOTIFICATIONS_KEY,)),
        }
