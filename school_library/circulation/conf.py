from django.conf import settings

DEFAULTS = {
    'DAILY_FINE_RATE': 5000,
    'MAX_RENEWAL_DAYS': 14,
    'DUE_SOON_DAYS': 3,
    'RESERVATION_HOLD_DAYS': 3,
    'EXPIRING_SOON_DAYS': 1,
}


def circulation_setting(name):
    """Read one option of the ``CIRCULATION`` settings block, falling back to the default."""
    if name not in DEFAULTS:
        raise KeyError(f'Unknown circulation setting: {name}')
    return getattr(settings, 'CIRCULATION', {}).get(name, DEFAULTS[name])
