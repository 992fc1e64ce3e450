"""
Read/write access to the site_settings key/value table.

Values are always stored as text; callers parse them.
"""

from typing import Dict, Iterable, Mapping, Optional

from django.db import transaction

from .models import SiteSetting
from .types import EMAIL_NOTIFICATIONS_KEY


def normalize_setting_value(value) -> str:
    """Convert a value to its stored text form."""
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (list, tuple, set, frozenset)):
        return ','.join(str(item).strip() for item in value)
    return str(value).strip()


def get_setting(key: str, default: Optional[str] = None) -> Optional[str]:
    """Return the stored value for ``key`` or ``default`` when absent."""
    value = SiteSetting.objects.filter(key=key).values_list('value', flat=True).first()
    if value is None:
        return default
    return value


def get_settings(keys: Iterable[str]) -> Dict[str, str]:
    """Return stored values for ``keys``; missing keys are omitted."""
    rows = SiteSetting.objects.filter(key__in=list(keys)).values_list('key', 'value')
    return dict(rows)


def set_setting(key: str, value) -> str:
    """Insert or update a setting and return the normalized value."""
    normalized = normalize_setting_value(value)
    SiteSetting.objects.update_or_create(key=key, defaults={'value': normalized})
    return normalized


@transaction.atomic
def set_settings(values: Mapping[str, object]) -> Dict[str, str]:
    """Upsert several settings in one transaction."""
    return {key: set_setting(key, value) for key, value in values.items()}


def is_email_notifications_enabled() -> bool:
    value = get_setting(EMAIL_NOTIFICATIONS_KEY, 'true')
    return str(value).strip().lower() in ('true', '1')
