"""
Patient, chat-log and clinician profile records.

These are owned by the clinic web app. The messaging backend only reads phones,
injections and account scope, and writes the Telegram link, language and
chat-log counters.
"""

import re

from django.db import models

from apps.core.models import TimeStampedModel


class InjectionStatus:
    SCHEDULED = 'Scheduled'
    COMPLETED = 'Completed'
    MISSED = 'Missed'
    CANCELLED = 'Cancelled'


class Patient(TimeStampedModel):
    """
    A clinic patient.

    `injections` is kept as the web app writes it: a list of
    {"id", "date", "status", "notes", "dose"} dicts where `date` is an ISO
    date, optionally with a time part ("2025-03-01" or "2025-03-01T14:30").
    """

    full_name = models.CharField(max_length=200, blank=True)
    phone = models.CharField(max_length=32, blank=True, db_index=True)
    alternate_phone = models.CharField(max_length=32, blank=True, db_index=True)

    account_id = models.CharField(
        max_length=64,
        blank=True,
        db_index=True,
        help_text='Clinic/tenant scope used to route the patient to a doctor'
    )

    # Telegram link
    telegram_chat_id = models.CharField(max_length=32, null=True, blank=True, db_index=True)
    bot_language = models.CharField(max_length=5, blank=True)

    injections = models.JSONField(default=list, blank=True)

    # Chat inbox state shown in the web app
    unread_count = models.PositiveIntegerField(default=0)
    last_message = models.TextField(blank=True)
    last_message_time = models.CharField(max_length=8, blank=True)
    user_is_typing = models.BooleanField(default=False)

    class Meta:
        verbose_name = 'patient'
        verbose_name_plural = 'patients'
        ordering = ['-created_at']

    def __str__(self):
        return self.display_name

    @property
    def display_name(self) -> str:
        return self.full_name or 'Patient'

    def scheduled_injections(self):
        return [
            inj for inj in (self.injections or [])
            if isinstance(inj, dict)
            and inj.get('status') == InjectionStatus.SCHEDULED
            and inj.get('date')
        ]


class ChatMessage(TimeStampedModel):
    """One entry of a patient's chat log (patient ↔ doctor)."""

    class Sender(models.TextChoices):
        USER = 'user', 'Patient'
        DOCTOR = 'doctor', 'Doctor'

    class DeliveryStatus(models.TextChoices):
        PENDING = 'pending', 'Pending'
        DELIVERED = 'delivered', 'Delivered'
        FAILED = 'failed', 'Failed'

    patient = models.ForeignKey(
        Patient,
        on_delete=models.CASCADE,
        related_name='messages'
    )
    sender = models.CharField(max_length=10, choices=Sender.choices)
    text = models.TextField(blank=True)
    image = models.URLField(max_length=500, blank=True)
    voice = models.URLField(max_length=500, blank=True)

    telegram_message_id = models.BigIntegerField(null=True, blank=True)
    delivery_status = models.CharField(
        max_length=10,
        choices=DeliveryStatus.choices,
        default=DeliveryStatus.PENDING
    )
    seen = models.BooleanField(default=False)
    time = models.CharField(max_length=8, blank=True, help_text='HH:MM display time')

    class Meta:
        ordering = ['created_at']

    def __str__(self):
        return f"{self.sender}: {self.text[:40]}"


class Profile(TimeStampedModel):
    """Clinician or admin account as seen by the messaging backend."""

    class Role(models.TextChoices):
        ADMIN = 'admin', 'Admin'
        DOCTOR = 'doctor', 'Doctor'
        STAFF = 'staff', 'Staff'

    class Status(models.TextChoices):
        ACTIVE = 'active', 'Active'
        FROZEN = 'frozen', 'Frozen'
        BANNED = 'banned', 'Banned'

    full_name = models.CharField(max_length=200, blank=True)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=32, blank=True, db_index=True)
    role = models.CharField(max_length=10, choices=Role.choices, default=Role.STAFF)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.ACTIVE)
    account_id = models.CharField(max_length=64, blank=True, db_index=True)

    telegram_username = models.CharField(max_length=64, blank=True)
    telegram_chat_id = models.CharField(max_length=32, null=True, blank=True)

    class Meta:
        verbose_name = 'profile'
        verbose_name_plural = 'profiles'
        ordering = ['created_at']
        indexes = [
            models.Index(fields=['account_id', 'role']),
        ]

    def __str__(self):
        return f"{self.full_name or self.email} ({self.role})"

    @property
    def contact_phone(self) -> str:
        """
        Phone to reach this profile on.

        Accounts created from a phone login carry the number as the email
        local part ("998901234567@clinic.uz"), so fall back to that.
        """
        if self.phone:
            return self.phone
        local_part = self.email.split('@', 1)[0] if self.email else ''
        if re.fullmatch(r'\+?\d{7,15}', local_part):
            return local_part
        return ''
