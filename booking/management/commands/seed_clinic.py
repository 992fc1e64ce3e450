"""
Management command to seed the default services and booking settings.

Safe to run repeatedly: existing services and settings are left untouched.
"""

from django.core.management.base import BaseCommand
from django.db import transaction

from booking.models import Service, SiteSetting
from booking.types import (
    BOOKING_BLOCKED_DATES_KEY,
    BOOKING_ENABLED_WEEKDAYS_KEY,
    BOOKING_HORIZON_DAYS_KEY,
    BOOKING_MAX_PER_SLOT_KEY,
    BOOKING_SLOT_INTERVAL_KEY,
    BOOKING_WORK_END_KEY,
    BOOKING_WORK_START_KEY,
    DEFAULT_ENABLED_WEEKDAYS,
    DEFAULT_HORIZON_DAYS,
    DEFAULT_MAX_PER_SLOT,
    DEFAULT_SLOT_INTERVAL_MINUTES,
    DEFAULT_WORK_END,
    DEFAULT_WORK_START,
    EMAIL_NOTIFICATIONS_KEY,
)

DEFAULT_SERVICES = [
    ('Fisioterapia Ortopedica', 'Tratamento de lesoes musculares, articulares e osseas.', 'bone'),
    ('Fisioterapia Esportiva', 'Prevencao e reabilitacao de lesoes esportivas.', 'activity'),
    ('Pilates Clinico', 'Fortalecimento, postura e consciencia corporal.', 'user'),
    ('Liberacao Miofascial', 'Alivio de tensoes e dores musculares.', 'hand'),
    ('Reeducacao Postural', 'Correcao de desequilibrios posturais.', 'align-center'),
    ('Fisioterapia Geriatrica', 'Mobilidade e autonomia para a terceira idade.', 'heart'),
]

DEFAULT_SETTINGS = {
    BOOKING_WORK_START_KEY: DEFAULT_WORK_START,
    BOOKING_WORK_END_KEY: DEFAULT_WORK_END,
    BOOKING_SLOT_INTERVAL_KEY: str(DEFAULT_SLOT_INTERVAL_MINUTES),
    BOOKING_MAX_PER_SLOT_KEY: str(DEFAULT_MAX_PER_SLOT),
    BOOKING_HORIZON_DAYS_KEY: str(DEFAULT_HORIZON_DAYS),
    BOOKING_ENABLED_WEEKDAYS_KEY: ','.join(str(day) for day in sorted(DEFAULT_ENABLED_WEEKDAYS)),
    BOOKING_BLOCKED_DATES_KEY: '',
    EMAIL_NOTIFICATIONS_KEY: 'true',
}


class Command(BaseCommand):
    help = 'Seed default clinic services and booking settings'

    def add_arguments(self, parser):
        parser.add_argument(
            '--skip-services',
            action='store_true',
            help='Only seed settings'
        )

    @transaction.atomic
    def handle(self, *args, **options):
        services_created = 0
        if not options['skip_services']:
            for order_index, (title, description, icon) in enumerate(DEFAULT_SERVICES, start=1):
                _, created = Service.objects.get_or_create(
                    title=title,
                    defaults={
                        'description': description,
                        'icon': icon,
                        'order_index': order_index,
                    }
                )
                services_created += int(created)

        settings_created = 0
        for key, value in DEFAULT_SETTINGS.items():
            _, created = SiteSetting.objects.get_or_create(key=key, defaults={'value': value})
            settings_created += int(created)

        self.stdout.write(
            self.style.SUCCESS(
                f'Seeded {services_created} service(s) and {settings_created} setting(s)'
            )
        )
