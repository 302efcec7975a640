"""
Daily reminder producer tests
"""

from datetime import date, timedelta

import pytest

from apps.messaging import reminders
from apps.messaging.models import Language, OutboundMessage
from apps.messaging.reminders import enqueue_daily_reminders, enqueue_reminder
from apps.messaging.telegram.handler import TelegramBotHandler
from apps.messaging.telegram.texts import BUNDLES
from apps.patients.models import Patient

TODAY = date(2025, 3, 1)
TOMORROW = TODAY + timedelta(days=1)


def linked_patient(name, chat_id, injections, language='uz', phone=''):
    return Patient.objects.create(
        full_name=name,
        phone=phone,
        telegram_chat_id=chat_id,
        bot_language=language,
        injections=injections,
    )


@pytest.mark.django_db
class TestDailyReminders:

    def test_onboarded_patient_gets_exactly_one_reminder(
            self, telegram, updates, patient, use_fake_telegram, django_capture_on_commit_callbacks):
        """Stored spaced phone, raw shared contact, one injection tomorrow."""
        handler = TelegramBotHandler(client=telegram)
        handler.handle_update(updates.callback(7001, 'lang_en'))
        handler.handle_update(updates.contact(7001, '998937489141'))

        patient.refresh_from_db()
        assert patient.telegram_chat_id == '7001'
        patient.injections = [
            {'id': '1', 'date': f"{TOMORROW.isoformat()}T10:15", 'status': 'Scheduled'},
            {'id': '2', 'date': (TOMORROW + timedelta(days=7)).isoformat(), 'status': 'Scheduled'},
        ]
        patient.save()
        telegram.calls.clear()

        with django_capture_on_commit_callbacks(execute=True):
            count = enqueue_daily_reminders(today=TODAY)

        assert count == 1
        reminder = OutboundMessage.objects.get()
        assert reminder.chat_id == '7001'
        assert reminder.patient_name == 'Aziza Karimova'
        assert reminder.status == OutboundMessage.Status.DELIVERED

        texts = BUNDLES[Language.ENGLISH]
        body = texts.injection_msg.format(name='Aziza Karimova', date='02.03.2025', time='10:15')
        assert telegram.sent_texts() == [f"{texts.reminder_title}\n\n{body}"]

    def test_only_linked_patients_with_a_scheduled_injection_tomorrow(self):
        tomorrow = TOMORROW.isoformat()
        linked_patient('Due', '1', [{'date': tomorrow, 'status': 'Scheduled'}])
        linked_patient('Done', '2', [{'date': tomorrow, 'status': 'Completed'}])
        linked_patient('Next week', '3', [{'date': (TOMORROW + timedelta(days=6)).isoformat(), 'status': 'Scheduled'}])
        linked_patient('Unlinked', None, [{'date': tomorrow, 'status': 'Scheduled'}])
        linked_patient('Blank chat', '', [{'date': tomorrow, 'status': 'Scheduled'}])

        assert enqueue_daily_reminders(today=TODAY) == 1
        assert list(OutboundMessage.objects.values_list('patient_name', flat=True)) == ['Due']

    def test_reminder_uses_patient_language_and_default_time(self):
        patient = linked_patient('Olga', '9', [{'date': TOMORROW.isoformat(), 'status': 'Scheduled'}], language='ru')

        message = enqueue_reminder(patient, TOMORROW)

        texts = BUNDLES[Language.RUSSIAN]
        assert message.text.startswith(texts.reminder_title)
        assert '02.03.2025' in message.text
        assert '09:00' in message.text
        assert message.action == OutboundMessage.Action.SEND
        assert message.scheduled_for is None

    def test_failing_patient_does_not_stop_the_job(self, monkeypatch, caplog):
        for name, chat_id in (('First', '1'), ('Broken', '2'), ('Third', '3')):
            linked_patient(name, chat_id, [{'date': TOMORROW.isoformat(), 'status': 'Scheduled'}])

        original = reminders.render_reminder

        def render(texts, patient, injection):
            if patient.full_name == 'Broken':
                raise ValueError('bad injection record')
            return original(texts, patient, injection)

        monkeypatch.setattr(reminders, 'render_reminder', render)

        with caplog.at_level('INFO', logger='apps.messaging'):
            assert enqueue_daily_reminders(today=TODAY) == 2
        assert 'Reminder job complete. Sent 2 reminders.' in caplog.text
