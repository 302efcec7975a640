"""
Celery tasks for the outbound queue.

Beat schedule (graftcare.settings.base.CELERY_BEAT_SCHEDULE):
    send_daily_reminders      daily at REMINDER_HOUR:REMINDER_MINUTE
    drain_scheduled_messages  every DRAIN_INTERVAL_SECONDS
"""

import logging

from celery import shared_task

from apps.messaging.outbound import deliver_pending, drain_due_messages
from apps.messaging.reminders import enqueue_daily_reminders
from apps.messaging.telegram.client import get_telegram_client

logger = logging.getLogger(__name__)


@shared_task
def deliver_outbound_message(message_id):
    """Immediate delivery of a freshly created, unscheduled message."""
    message = deliver_pending(message_id, get_telegram_client())
    return message.status if message is not None else None


@shared_task
def drain_scheduled_messages():
    return drain_due_messages(get_telegram_client())


@shared_task
def send_daily_reminders():
    return enqueue_daily_reminders()
