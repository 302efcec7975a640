"""
Daily injection reminder producer.

Runs once a day (Celery beat, 09:00 clinic time) and enqueues one immediate
OutboundMessage per linked patient who has a scheduled injection tomorrow.
Delivery itself happens through the outbound queue.
"""

import logging
from datetime import date, timedelta
from typing import Optional

from django.utils import timezone

from apps.messaging.models import OutboundMessage
from apps.messaging.schedule import injection_due_on, render_reminder
from apps.messaging.telegram.texts import texts_for
from apps.messaging.utils import fan_out
from apps.patients.models import Patient

logger = logging.getLogger(__name__)


def enqueue_reminder(patient: Patient, day: date) -> Optional[OutboundMessage]:
    injection = injection_due_on(patient, day)
    if injection is None:
        return None

    texts = texts_for(patient.bot_language)
    message = OutboundMessage.objects.create(
        chat_id=patient.telegram_chat_id,
        patient=patient,
        patient_name=patient.display_name,
        text=render_reminder(texts, patient, injection),
        action=OutboundMessage.Action.SEND,
    )
    logger.info(f"Reminder {message.pk} queued for {patient.display_name} ({patient.telegram_chat_id})")
    return message


def enqueue_daily_reminders(today: Optional[date] = None) -> int:
    """Create tomorrow's reminders. Returns how many were enqueued."""
    tomorrow = (today or timezone.localdate()) + timedelta(days=1)
    logger.info(f"Running daily reminder job for {tomorrow.isoformat()}")

    patients = (
        Patient.objects
        .exclude(telegram_chat_id__isnull=True)
        .exclude(telegram_chat_id='')
    )
    results = fan_out(lambda patient: enqueue_reminder(patient, tomorrow), patients)
    count = sum(1 for result in results if result is not None)

    logger.info(f"Reminder job complete. Sent {count} reminders.")
    return count
