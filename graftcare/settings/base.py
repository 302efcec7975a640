"""
GraftCare Django Settings - Base
Shared by every environment; environment modules override what they need.
"""

import os
from datetime import timedelta
from pathlib import Path

import environ
from celery.schedules import crontab

BASE_DIR = Path(__file__).resolve().parent.parent.parent

env = environ.Env(
    DEBUG=(bool, False),
)
environ.Env.read_env(os.path.join(BASE_DIR, '.env'))

SECRET_KEY = env('SECRET_KEY', default='django-insecure-graftcare-change-me')

DEBUG = env('DEBUG')

ALLOWED_HOSTS = env.list('ALLOWED_HOSTS', default=[])

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',

    # Third party
    'rest_framework',
    'django_filters',
    'drf_spectacular',

    # Local
    'apps.core',
    'apps.patients',
    'apps.messaging',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'graftcare.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'graftcare.wsgi.application'

DATABASES = {
    'default': env.db('DATABASE_URL', default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}"),
}

CACHES = {
    'default': env.cache('CACHE_URL', default='locmemcache://graftcare'),
}

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

LANGUAGE_CODE = 'en-us'
TIME_ZONE = env('TIME_ZONE', default='Asia/Tashkent')
USE_I18N = True
USE_TZ = True

STATIC_URL = 'static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

# REST Framework
REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': (
        'rest_framework_simplejwt.authentication.JWTAuthentication',
    ),
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.IsAuthenticated',
    ],
    'DEFAULT_FILTER_BACKENDS': [
        'django_filters.rest_framework.DjangoFilterBackend',
    ],
    'DEFAULT_PAGINATION_CLASS': 'rest_framework.pagination.PageNumberPagination',
    'PAGE_SIZE': 50,
    'DEFAULT_SCHEMA_CLASS': 'drf_spectacular.openapi.AutoSchema',
    'DEFAULT_THROTTLE_RATES': {
        'anon': '100/hour',
        'user': '1000/hour',
        'otp': '10/minute',
    },
}

SPECTACULAR_SETTINGS = {
    'TITLE': 'GraftCare Messaging API',
    'DESCRIPTION': 'Telegram onboarding, OTP login and outbound notification queue',
    'VERSION': '1.0.0',
}

SIMPLE_JWT = {
    'ACCESS_TOKEN_LIFETIME': timedelta(seconds=env.int('JWT_ACCESS_LIFETIME', default=60 * 60 * 24)),
    'USER_ID_CLAIM': 'user_id',
}

# Celery
CELERY_BROKER_URL = env('CELERY_BROKER_URL', default='redis://localhost:6379/1')
CELERY_RESULT_BACKEND = env('CELERY_RESULT_BACKEND', default='redis://localhost:6379/1')
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_ALWAYS_EAGER = env.bool('CELERY_TASK_ALWAYS_EAGER', default=False)

# GraftCare
GRAFTCARE = {
    'TELEGRAM_BOT_TOKEN': env('TELEGRAM_BOT_TOKEN', default=''),
    'TELEGRAM_API_BASE_URL': env('TELEGRAM_API_BASE_URL', default='https://api.telegram.org'),
    'TELEGRAM_WEBHOOK_URL': env('TELEGRAM_WEBHOOK_URL', default=''),
    'TELEGRAM_WEBHOOK_SECRET': env('TELEGRAM_WEBHOOK_SECRET', default=''),
    'TELEGRAM_REQUEST_TIMEOUT': 15,
    'DEFAULT_COUNTRY_CODE': '998',
    'NATIONAL_NUMBER_LENGTH': 9,
    'OTP_TTL_SECONDS': 5 * 60,
    'OTP_LENGTH': 6,
    'DEFAULT_DOCTOR_CONTACT': env('DEFAULT_DOCTOR_CONTACT', default='https://t.me/graft_admin'),
    'ALLOWED_CHAT_IDS': env.list('ALLOWED_CHAT_IDS', default=[]),
    # Allow-list is wired in but everyone passes until this is switched on
    'ENFORCE_ALLOWED_CHAT_IDS': env.bool('ENFORCE_ALLOWED_CHAT_IDS', default=False),
    'DEFAULT_LANGUAGE': 'uz',
    'DEFAULT_INJECTION_TIME': '09:00',
    'REMINDER_HOUR': 9,
    'REMINDER_MINUTE': 0,
    'DRAIN_INTERVAL_SECONDS': 60.0,
    'FANOUT_WORKERS': 8,
}

CELERY_BEAT_SCHEDULE = {
    'daily-injection-reminders': {
        'task': 'apps.messaging.tasks.send_daily_reminders',
        'schedule': crontab(hour=GRAFTCARE['REMINDER_HOUR'], minute=GRAFTCARE['REMINDER_MINUTE']),
    },
    'drain-scheduled-messages': {
        'task': 'apps.messaging.tasks.drain_scheduled_messages',
        'schedule': GRAFTCARE['DRAIN_INTERVAL_SECONDS'],
    },
}

# Logging
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {name} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'WARNING',
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
        'apps': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
        'celery': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
    },
}
