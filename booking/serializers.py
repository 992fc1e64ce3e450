"""
Serializers for the booking API.

Public payloads use camelCase keys; staff endpoints use model field names.
"""

import re
from collections.abc import Mapping

from rest_framework import serializers

from .models import BookingRequest, Service
from .types import BOOKING_SETTING_KEYS, EMAIL_NOTIFICATIONS_KEY

_NAME_RE = re.compile(r"^[^\W\d_]+(?:[\s'-]+[^\W\d_]+)*$")
_PHONE_RE = re.compile(r'^[\d\s()+-]{8,20}$')


class AvailabilityQuerySerializer(serializers.Serializer):
    """Query parameters for the availability endpoint."""

    date = serializers.CharField(required=False, allow_blank=True)


class DateAvailabilitySerializer(serializers.Serializer):
    date = serializers.DateField()
    available = serializers.BooleanField()
    totalSlots = serializers.IntegerField(source='total_slots')
    availableSlots = serializers.IntegerField(source='available_slots')


class SlotAvailabilitySerializer(serializers.Serializer):
    time = serializers.CharField()
    available = serializers.BooleanField()
    booked = serializers.IntegerField()
    remaining = serializers.IntegerField()


class BookingRequestCreateSerializer(serializers.Serializer):
    """
    Public booking form.

    Date, time and service are accepted as plain strings; the admission
    service decides whether they are bookable.
    """

    name = serializers.CharField(max_length=100)
    email = serializers.EmailField(max_length=120, required=False, allow_blank=True, default='')
    phone = serializers.CharField(max_length=25)
    preferredDate = serializers.CharField(required=False, allow_blank=True, allow_null=True, default='')
    preferredTime = serializers.CharField(required=False, allow_blank=True, allow_null=True, default='')
    serviceType = serializers.CharField(required=False, allow_blank=True, allow_null=True, default='')
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True, default='')

    # Short names sent by the appointments form; they win over the camelCase keys.
    FIELD_ALIASES = {
        'service': 'serviceType',
        'date': 'preferredDate',
        'time': 'preferredTime',
    }

    def to_internal_value(self, data):
        if not isinstance(data, Mapping):
            return super().to_internal_value(data)
        data = data.dict() if hasattr(data, 'dict') else dict(data)
        for alias, field_name in self.FIELD_ALIASES.items():
            if data.get(alias) is not None:
                data[field_name] = data.pop(alias)
        return super().to_internal_value(data)

    def validate_name(self, value):
        if len(value.strip()) < 2 or not _NAME_RE.match(value.strip()):
            raise serializers.ValidationError('Name contains invalid characters.')
        return value

    def validate_phone(self, value):
        if not _PHONE_RE.match(value.strip()):
            raise serializers.ValidationError('Invalid phone number.')
        return value

    def to_service_payload(self):
        """Map validated camelCase fields to service field names."""
        data = self.validated_data
        return {
            'name': data.get('name'),
            'email': data.get('email'),
            'phone': data.get('phone'),
            'preferred_date': data.get('preferredDate'),
            'preferred_time': data.get('preferredTime'),
            'service_type': data.get('serviceType'),
            'notes': data.get('notes'),
        }


class BookingRequestReadSerializer(serializers.ModelSerializer):
    """Serializer for reading/displaying BookingRequest (output)."""

    is_capacity_consuming = serializers.ReadOnlyField()

    class Meta:
        model = BookingRequest
        fields = [
            'id',
            'name',
            'email',
            'phone',
            'preferred_date',
            'preferred_time',
            'service_type',
            'notes',
            'status',
            'is_capacity_consuming',
            'created_at',
        ]


class BookingStatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[choice for choice, _ in BookingRequest.STATUS_CHOICES])


class BookingListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(
        choices=['all'] + [choice for choice, _ in BookingRequest.STATUS_CHOICES],
        required=False,
        default='all'
    )


class ServiceReadSerializer(serializers.ModelSerializer):
    class Meta:
        model = Service
        fields = ['id', 'title', 'description', 'icon']


class BookingSettingsUpdateSerializer(serializers.Serializer):
    """
    Accepts any subset of the booking setting keys, snake_case or camelCase.

    Unknown keys are rejected. Values are stored as text; parsing and
    clamping happen when the configuration is read.
    """

    allowed_keys = BOOKING_SETTING_KEYS + (EMAIL_NOTIFICATIONS_KEY,)

    def to_internal_value(self, data):
        if not isinstance(data, dict) or not data:
            raise serializers.ValidationError({'settings': 'No valid settings to update.'})

        updates = {}
        unknown = []
        for raw_key, value in data.items():
            key = _to_snake_case(raw_key)
            if key in self.allowed_keys:
                updates[key] = value
            else:
                unknown.append(raw_key)

        if unknown:
            raise serializers.ValidationError({key: 'Setting key not allowed.' for key in unknown})
        return updates


def _to_snake_case(key):
    return re.sub(r'[A-Z]', lambda match: '_' + match.group(0).lower(), str(key))
