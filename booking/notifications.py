"""
Staff notification for admitted bookings.

Delivery runs in a background thread after the admission transaction has
committed. Failures are logged and never reach the booking response.
"""

import logging
import threading

from django.conf import settings
from django.core.mail import send_mail

from .settings_store import is_email_notifications_enabled
from .types import EMAIL_NOTIFICATIONS_KEY, AppointmentCreated

logger = logging.getLogger(__name__)


def dispatch_appointment_created(event: AppointmentCreated) -> bool:
    """
    Start delivery of the staff email for ``event``.

    Returns:
        True if a delivery thread was started
    """
    try:
        enabled = is_email_notifications_enabled()
    except Exception:
        logger.exception("Could not read %s, skipping notification", EMAIL_NOTIFICATIONS_KEY)
        return False

    recipient = getattr(settings, 'BOOKING_NOTIFICATION_EMAIL', '')
    if not enabled or not recipient:
        return False

    thread = threading.Thread(
        target=send_appointment_notification,
        args=(event, recipient),
        name=f'booking-notify-{event.booking_id}',
        daemon=True,
    )
    thread.start()
    return True


def send_appointment_notification(event: AppointmentCreated, recipient: str) -> None:
    """Send the email synchronously; errors are logged, not raised."""
    try:
        send_mail(
            subject=f'Novo agendamento - {event.service_type}',
            message=format_appointment_message(event),
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[recipient],
        )
        logger.info("Notification sent for booking request %s", event.booking_id)
    except Exception:
        logger.exception("Failed to send notification for booking request %s", event.booking_id)


def format_appointment_message(event: AppointmentCreated) -> str:
    lines = [
        'Nova solicitacao de agendamento recebida',
        '',
        f'Nome: {event.name}',
        f'Telefone: {event.phone}',
        f'Email: {event.email or "(nao informado)"}',
        f'Servico: {event.service_type}',
        f'Data: {event.preferred_date.isoformat()}',
        f'Horario: {event.preferred_time}',
    ]
    if event.notes:
        lines.append(f'Observacoes: {event.notes}')
    return '\n'.join(lines)
