"""
Outbound queue, delivery executor and drain consumer tests
"""

from datetime import timedelta

import pytest
from django.utils import timezone

from apps.messaging.models import OutboundMessage
from apps.messaging.outbound import (
    DeliveryExecutor,
    claim,
    deliver_pending,
    drain_due_messages,
    due_messages,
)
from apps.messaging.tasks import drain_scheduled_messages
from apps.patients.models import ChatMessage

Status = OutboundMessage.Status
Action = OutboundMessage.Action


def make_message(**fields):
    """Rows created inside the test transaction never fire their on_commit delivery."""
    fields.setdefault('chat_id', '5550001')
    return OutboundMessage.objects.create(**fields)


@pytest.mark.django_db
class TestMessageCreateTrigger:

    def test_scheduled_message_is_queued(self, telegram):
        past = timezone.now() - timedelta(minutes=5)
        message = make_message(text='Hello', scheduled_for=past)

        message.refresh_from_db()
        assert message.status == Status.QUEUED
        assert telegram.calls == []

    def test_immediate_message_is_delivered_after_commit(
            self, use_fake_telegram, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            message = make_message(text='Your results are ready')

        assert len(callbacks) == 1
        message.refresh_from_db()
        assert message.status == Status.DELIVERED
        assert message.sent_message_id == 5001
        assert use_fake_telegram.last('send_message')['text'] == 'Your results are ready'

    def test_scheduled_message_registers_no_delivery(self, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks() as callbacks:
            make_message(text='Later', scheduled_for=timezone.now() + timedelta(hours=1))
        assert callbacks == []


@pytest.mark.django_db
class TestDeliveryExecutor:

    def test_send_text_and_image_keeps_last_message_id(self, telegram):
        message = make_message(text='Photo of your graft area', image_url='https://cdn.example.com/a.jpg')

        DeliveryExecutor(telegram).execute(message)

        message.refresh_from_db()
        assert telegram.methods() == ['send_message', 'send_photo']
        assert message.status == Status.DELIVERED
        assert message.sent_message_id == 5002
        assert message.sent_at is not None

    def test_send_voice_only(self, telegram):
        message = make_message(voice_url='https://cdn.example.com/a.ogg')
        DeliveryExecutor(telegram).execute(message)
        assert telegram.methods() == ['send_voice']
        assert message.status == Status.DELIVERED

    def test_send_without_payload_fails(self, telegram):
        message = make_message()
        DeliveryExecutor(telegram).execute(message)

        message.refresh_from_db()
        assert message.status == Status.FAILED
        assert 'Nothing to send' in message.error_message
        assert telegram.calls == []

    def test_edit_without_message_id_fails(self, telegram):
        message = make_message(action=Action.EDIT, text='Corrected time: 10:00')

        DeliveryExecutor(telegram).execute(message)

        message.refresh_from_db()
        assert message.status == Status.FAILED
        assert 'telegram_message_id' in message.error_message

    def test_edit(self, telegram):
        message = make_message(action=Action.EDIT, text='Corrected', telegram_message_id=42)
        DeliveryExecutor(telegram).execute(message)

        assert telegram.last('edit_message_text') == {'chat_id': '5550001', 'message_id': 42, 'text': 'Corrected'}
        assert message.status == Status.DELIVERED
        assert message.sent_message_id == 42

    def test_delete_of_missing_message_counts_as_delivered(self, telegram, telegram_error):
        telegram.errors['delete_message'] = telegram_error('Bad Request: message to delete not found')
        message = make_message(action=Action.DELETE, telegram_message_id=42)

        DeliveryExecutor(telegram).execute(message)

        message.refresh_from_db()
        assert message.status == Status.DELIVERED
        assert message.note == 'Message already deleted'

    def test_other_delete_errors_fail(self, telegram, telegram_error):
        telegram.errors['delete_message'] = telegram_error('Forbidden: bot was kicked', 403)
        message = make_message(action=Action.DELETE, telegram_message_id=42)

        DeliveryExecutor(telegram).execute(message)

        assert message.status == Status.FAILED
        assert message.error_message == 'Forbidden: bot was kicked'

    def test_unexpected_error_does_not_leave_row_sending(self, telegram, patient):
        entry = ChatMessage.objects.create(patient=patient, sender=ChatMessage.Sender.DOCTOR, text='Hi')
        message = make_message(text='Hi', patient=patient, chat_message=entry)
        telegram.errors['send_message'] = RuntimeError('connection pool exhausted')

        deliver_pending(message.pk, telegram)

        message.refresh_from_db()
        assert message.status == Status.FAILED
        assert message.error_message == 'RuntimeError: connection pool exhausted'
        entry.refresh_from_db()
        assert entry.delivery_status == ChatMessage.DeliveryStatus.FAILED
        assert claim(message.pk, Status.PENDING) is None

    def test_successful_send_syncs_chat_log(self, telegram, patient):
        entry = ChatMessage.objects.create(patient=patient, sender=ChatMessage.Sender.DOCTOR, text='See you tomorrow')
        message = make_message(text=entry.text, patient=patient, chat_message=entry)

        DeliveryExecutor(telegram).execute(message)

        entry.refresh_from_db()
        assert entry.delivery_status == ChatMessage.DeliveryStatus.DELIVERED
        assert entry.telegram_message_id == 5001

    def test_failed_send_flags_chat_log(self, telegram, telegram_error, patient):
        telegram.errors['send_message'] = telegram_error('Bad Request: chat not found')
        entry = ChatMessage.objects.create(patient=patient, sender=ChatMessage.Sender.DOCTOR, text='Hi')
        message = make_message(text='Hi', patient=patient, chat_message=entry)

        DeliveryExecutor(telegram).execute(message)

        entry.refresh_from_db()
        assert entry.delivery_status == ChatMessage.DeliveryStatus.FAILED
        assert message.status == Status.FAILED


@pytest.mark.django_db
class TestClaimAndDrain:

    def test_claim_is_exclusive(self):
        message = make_message(text='Once')

        assert claim(message.pk, Status.PENDING) is not None
        assert claim(message.pk, Status.PENDING) is None
        message.refresh_from_db()
        assert message.status == Status.SENDING

    def test_deliver_pending_skips_delivered_rows(self, telegram):
        message = make_message(text='Once')
        deliver_pending(message.pk, telegram)
        deliver_pending(message.pk, telegram)

        assert telegram.methods() == ['send_message']

    def test_due_messages(self):
        now = timezone.now()
        due = make_message(text='due', scheduled_for=now - timedelta(minutes=1))
        make_message(text='later', scheduled_for=now + timedelta(hours=2))

        assert [m.pk for m in due_messages(now)] == [due.pk]

    def test_drain_delivers_only_due_messages(self, telegram):
        now = timezone.now()
        due = make_message(text='due', scheduled_for=now - timedelta(minutes=1))
        later = make_message(text='later', scheduled_for=now + timedelta(hours=2))

        assert drain_due_messages(telegram, now=now) == 1

        due.refresh_from_db()
        later.refresh_from_db()
        assert due.status == Status.DELIVERED
        assert later.status == Status.QUEUED
        assert telegram.sent_texts() == ['due']

    def test_drain_never_dispatches_twice(self, telegram):
        make_message(text='due', scheduled_for=timezone.now() - timedelta(minutes=1))

        assert drain_due_messages(telegram) == 1
        assert drain_due_messages(telegram) == 0
        assert telegram.sent_texts() == ['due']

    def test_drain_task_uses_configured_client(self, use_fake_telegram):
        make_message(text='due', scheduled_for=timezone.now() - timedelta(seconds=1))

        assert drain_scheduled_messages() == 1
        assert use_fake_telegram.sent_texts() == ['due']
