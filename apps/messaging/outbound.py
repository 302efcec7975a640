"""
Outbound notification queue and delivery executor.

Status transitions (all conditional UPDATEs, so two workers never both
dispatch the same row):

    PENDING  → QUEUED     message has scheduled_for (even if already due)
    PENDING  → SENDING    immediate delivery claims the row
    QUEUED   → SENDING    drain consumer claims a due row
    SENDING  → delivered | FAILED
"""

import logging
from datetime import datetime
from typing import List, Optional, Tuple

from django.db import DatabaseError
from django.utils import timezone

from apps.messaging.models import OutboundMessage
from apps.messaging.telegram.client import TelegramAPIError, TelegramClient
from apps.messaging.utils import fan_out
from apps.patients.models import ChatMessage

logger = logging.getLogger(__name__)

Status = OutboundMessage.Status
Action = OutboundMessage.Action


class DeliveryError(Exception):
    """The message record itself cannot be delivered as written."""


# ── Queue transitions ─────────────────────────────────────────────────────────

def route_new_message(message: OutboundMessage) -> bool:
    """
    Decide what happens to a freshly created message.

    Returns True when it should be delivered right away. Anything with a
    `scheduled_for` goes to QUEUED and is left to the drain consumer.
    """
    if message.status != Status.PENDING:
        return False

    if message.scheduled_for is None:
        return True

    updated = (
        OutboundMessage.objects
        .filter(pk=message.pk, status=Status.PENDING)
        .update(status=Status.QUEUED, updated_at=timezone.now())
    )
    if updated:
        message.status = Status.QUEUED
        logger.info(f"Outbound {message.pk} queued for {message.scheduled_for.isoformat()}")
    return False


def claim(message_id, from_status: str) -> Optional[OutboundMessage]:
    """Move a row from `from_status` to SENDING; None if someone else got it first."""
    updated = (
        OutboundMessage.objects
        .filter(pk=message_id, status=from_status)
        .update(status=Status.SENDING, updated_at=timezone.now())
    )
    if not updated:
        logger.info(f"Outbound {message_id} no longer {from_status}, skipping")
        return None
    return OutboundMessage.objects.select_related('chat_message').get(pk=message_id)


def due_messages(now: Optional[datetime] = None) -> List[OutboundMessage]:
    """
    QUEUED messages whose time has come. Filtering on status alone and
    checking the time in memory avoids needing a compound index.
    """
    now = now or timezone.now()
    queued = OutboundMessage.objects.filter(status=Status.QUEUED)
    return [
        msg for msg in queued
        if msg.scheduled_for is None or msg.scheduled_for <= now
    ]


def deliver_pending(message_id, client: TelegramClient) -> Optional[OutboundMessage]:
    message = claim(message_id, Status.PENDING)
    if message is None:
        return None
    return DeliveryExecutor(client).execute(message)


def drain_due_messages(client: TelegramClient, now: Optional[datetime] = None) -> int:
    """Deliver every due QUEUED message. Returns how many were dispatched."""
    due = due_messages(now)
    if not due:
        return 0

    executor = DeliveryExecutor(client)

    def process(msg: OutboundMessage):
        claimed = claim(msg.pk, Status.QUEUED)
        if claimed is None:
            return None
        return executor.execute(claimed)

    results = fan_out(process, due)
    dispatched = sum(1 for result in results if result is not None)
    logger.info(f"Drain: {len(due)} due, {dispatched} dispatched")
    return dispatched


# ── Delivery executor ─────────────────────────────────────────────────────────

class DeliveryExecutor:
    """Performs one outbound message on Telegram and records the outcome."""

    def __init__(self, client: TelegramClient):
        self.client = client

    def execute(self, message: OutboundMessage) -> OutboundMessage:
        try:
            if message.action == Action.EDIT:
                result_id, note = self._edit(message), ''
            elif message.action == Action.DELETE:
                result_id, note = self._delete(message)
            else:
                result_id, note = self._send(message), ''
        except (TelegramAPIError, DeliveryError) as exc:
            self._mark_failed(message, str(exc))
            return message
        except Exception as exc:
            # A claimed row must never stay SENDING
            logger.error(f"Unexpected error delivering outbound {message.pk}", exc_info=True)
            self._mark_failed(message, f"{type(exc).__name__}: {exc}")
            return message

        self._mark_delivered(message, result_id, note)
        if message.action == Action.SEND and message.chat_message_id:
            self._sync_chat_message(message)
        return message

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def _send(self, message: OutboundMessage) -> int:
        if not (message.text or message.image_url or message.voice_url):
            raise DeliveryError('Nothing to send: text, image_url and voice_url are empty')

        last_id = None
        if message.text:
            last_id = self.client.send_message(message.chat_id, message.text)['message_id']
        if message.image_url:
            last_id = self.client.send_photo(message.chat_id, message.image_url)['message_id']
        if message.voice_url:
            last_id = self.client.send_voice(message.chat_id, message.voice_url)['message_id']
        return last_id

    def _edit(self, message: OutboundMessage) -> int:
        if not message.telegram_message_id or not message.text:
            raise DeliveryError('EDIT needs telegram_message_id and text')
        self.client.edit_message_text(message.chat_id, message.telegram_message_id, message.text)
        return message.telegram_message_id

    def _delete(self, message: OutboundMessage) -> Tuple[int, str]:
        if not message.telegram_message_id:
            raise DeliveryError('DELETE needs telegram_message_id')
        try:
            self.client.delete_message(message.chat_id, message.telegram_message_id)
        except TelegramAPIError as exc:
            if not exc.is_message_missing:
                raise
            logger.info(f"Outbound {message.pk}: message {message.telegram_message_id} already gone")
            return message.telegram_message_id, 'Message already deleted'
        return message.telegram_message_id, ''

    # ------------------------------------------------------------------
    # Outcome
    # ------------------------------------------------------------------

    def _mark_delivered(self, message: OutboundMessage, result_id: Optional[int], note: str) -> None:
        message.status = Status.DELIVERED
        message.sent_message_id = result_id
        message.sent_at = timezone.now()
        message.note = note
        message.error_message = ''
        message.save(update_fields=['status', 'sent_message_id', 'sent_at', 'note', 'error_message', 'updated_at'])
        logger.info(f"✅ Outbound {message.pk} {message.action} delivered to {message.chat_id}")

    def _mark_failed(self, message: OutboundMessage, error: str) -> None:
        message.status = Status.FAILED
        message.error_message = error
        message.save(update_fields=['status', 'error_message', 'updated_at'])
        logger.error(f"❌ Outbound {message.pk} {message.action} to {message.chat_id} failed: {error}")

        if message.action == Action.SEND and message.chat_message_id:
            try:
                ChatMessage.objects.filter(pk=message.chat_message_id).update(
                    delivery_status=ChatMessage.DeliveryStatus.FAILED,
                )
            except DatabaseError as exc:
                logger.warning(f"Could not flag chat message {message.chat_message_id} as failed: {exc}")

    def _sync_chat_message(self, message: OutboundMessage) -> None:
        try:
            ChatMessage.objects.filter(pk=message.chat_message_id).update(
                delivery_status=ChatMessage.DeliveryStatus.DELIVERED,
                telegram_message_id=message.sent_message_id,
            )
        except DatabaseError as exc:
            logger.warning(f"Could not sync chat message {message.chat_message_id}: {exc}")
