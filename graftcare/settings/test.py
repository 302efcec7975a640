"""
GraftCare Django Settings - Test Environment
"""

from .base import *


DEBUG = False

ALLOWED_HOSTS = ['testserver', 'localhost']

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'graftcare-test-cache',
    }
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'

REST_FRAMEWORK['DEFAULT_THROTTLE_RATES'] = {
    'anon': None,
    'user': None,
    'otp': None,
}

GRAFTCARE.update({
    'TELEGRAM_BOT_TOKEN': 'test-token',
    'TELEGRAM_WEBHOOK_SECRET': '',
    'ALLOWED_CHAT_IDS': [],
    'ENFORCE_ALLOWED_CHAT_IDS': False,
    'FANOUT_WORKERS': 1,
})

LOGGING['loggers']['apps']['level'] = 'DEBUG'
# Let pytest's caplog see application records
LOGGING['loggers']['apps']['propagate'] = True
