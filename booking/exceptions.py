"""
Domain exceptions raised by the booking service layer.

Services raise these without any knowledge of HTTP; views translate them
into status codes.
"""


class BookingError(Exception):
    """Base class for booking errors. ``message`` is safe to show to clients."""

    default_message = 'Booking error'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(BookingError):
    """The request breaks a booking rule (missing field, service, time or date)."""

    default_message = 'invalid booking request'


class CapacityError(BookingError):
    """The requested slot has no remaining capacity."""

    default_message = 'slot full'


class ConfigParseError(BookingError):
    """A stored setting could not be parsed. Never surfaced to clients."""

    default_message = 'invalid setting value'

    def __init__(self, key, value):
        self.key = key
        self.value = value
        super().__init__(f'Invalid value for {key}: {value!r}')
