"""
Celery application for GraftCare.
Beat drives the daily reminder producer and the scheduled-message drain.
"""

import os

from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'graftcare.settings.development')

app = Celery('graftcare')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()
