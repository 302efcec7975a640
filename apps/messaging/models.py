from django.db import models

from apps.core.models import TimeStampedModel


class Language(models.TextChoices):
    UZBEK = 'uz', "O'zbekcha"
    RUSSIAN = 'ru', 'Русский'
    ENGLISH = 'en', 'English'


class ChatSession(models.Model):
    """
    Onboarding progress for one Telegram chat identity.

    Every transition is a compare-and-swap on `version` (see
    apps.messaging.telegram.session.SessionStore).
    """

    class Step(models.TextChoices):
        AWAITING_CONTACT = 'awaiting_contact', 'Awaiting contact'
        READY = 'ready', 'Ready'

    # Forward-only ordering of steps
    STEP_RANK = {
        'awaiting_contact': 1,
        'ready': 2,
    }

    chat_id = models.CharField(max_length=32, primary_key=True)
    language = models.CharField(max_length=5, choices=Language.choices, default=Language.UZBEK)
    step = models.CharField(max_length=20, choices=Step.choices, default=Step.AWAITING_CONTACT)
    doctor_chat = models.BooleanField(
        default=False,
        help_text='Free-text mode: messages are forwarded to the doctor chat log'
    )
    version = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'chat session'
        verbose_name_plural = 'chat sessions'

    def __str__(self):
        return f"{self.chat_id} - {self.step}"


class OtpChallenge(models.Model):
    """
    One live one-time passcode per owner.

    `owner` is "<record kind>:<pk>" of the profile or patient the code was
    issued for; issuing a new code overwrites the row.
    """

    owner = models.CharField(max_length=64, unique=True)
    code = models.CharField(max_length=12)
    expires_at = models.DateTimeField()
    created_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"OTP for {self.owner} (expires {self.expires_at:%H:%M:%S})"


class OutboundMessage(TimeStampedModel):
    """
    A unit of work for the Telegram channel: send, edit or delete a message.

    Lifecycle:
        PENDING ─┬─ scheduled_for set ──► QUEUED ──(drain, when due)──┐
                 └─ immediate ────────────────────────────────────────┤
                                                                      ▼
                                                   SENDING (claimed) ──► delivered | FAILED
    """

    class Action(models.TextChoices):
        SEND = 'SEND', 'Send'
        EDIT = 'EDIT', 'Edit'
        DELETE = 'DELETE', 'Delete'

    class Status(models.TextChoices):
        PENDING = 'PENDING', 'Pending'
        QUEUED = 'QUEUED', 'Queued'
        SENDING = 'SENDING', 'Sending'
        DELIVERED = 'delivered', 'Delivered'
        FAILED = 'FAILED', 'Failed'

    TERMINAL_STATUSES = (Status.DELIVERED, Status.FAILED)

    chat_id = models.CharField(max_length=32, db_index=True)
    patient = models.ForeignKey(
        'patients.Patient',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='outbound_messages'
    )
    patient_name = models.CharField(max_length=200, blank=True)

    # Payload
    text = models.TextField(blank=True)
    image_url = models.URLField(max_length=500, blank=True)
    voice_url = models.URLField(max_length=500, blank=True)

    action = models.CharField(max_length=10, choices=Action.choices, default=Action.SEND)
    telegram_message_id = models.BigIntegerField(
        null=True,
        blank=True,
        help_text='Previously sent Telegram message to edit or delete'
    )
    scheduled_for = models.DateTimeField(null=True, blank=True)

    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True
    )
    sent_message_id = models.BigIntegerField(null=True, blank=True)
    sent_at = models.DateTimeField(null=True, blank=True)
    error_message = models.TextField(blank=True)
    note = models.CharField(max_length=200, blank=True)

    # Chat-log entry this message mirrors, kept in sync for the web inbox
    chat_message = models.ForeignKey(
        'patients.ChatMessage',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='outbound_messages'
    )

    class Meta:
        verbose_name = 'outbound message'
        verbose_name_plural = 'outbound messages'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.action} → {self.chat_id} [{self.status}]"

    @property
    def is_terminal(self) -> bool:
        return self.status in self.TERMINAL_STATUSES
