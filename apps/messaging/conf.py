"""
Access to the GRAFTCARE settings dict with per-key defaults.
"""

from django.conf import settings

DEFAULTS = {
    'TELEGRAM_BOT_TOKEN': '',
    'TELEGRAM_API_BASE_URL': 'https://api.telegram.org',
    'TELEGRAM_WEBHOOK_URL': '',
    'TELEGRAM_WEBHOOK_SECRET': '',
    'TELEGRAM_REQUEST_TIMEOUT': 15,
    'DEFAULT_COUNTRY_CODE': '998',
    'NATIONAL_NUMBER_LENGTH': 9,
    'OTP_TTL_SECONDS': 300,
    'OTP_LENGTH': 6,
    'DEFAULT_DOCTOR_CONTACT': 'https://t.me/graft_admin',
    'ALLOWED_CHAT_IDS': [],
    'ENFORCE_ALLOWED_CHAT_IDS': False,
    'DEFAULT_LANGUAGE': 'uz',
    'DEFAULT_INJECTION_TIME': '09:00',
    'FANOUT_WORKERS': 8,
}


def get_setting(name: str):
    overrides = getattr(settings, 'GRAFTCARE', {})
    if name in overrides:
        return overrides[name]
    return DEFAULTS[name]
