"""
Identity resolution for the messaging backend.

PatientResolver maps a Telegram chat identity or a phone number to a Patient.
DoctorRouter picks the clinician a patient should be sent to.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from django.db.models import Q

from apps.messaging.conf import get_setting
from apps.messaging.phone import clean_digits, phone_variants
from apps.patients.models import Patient, Profile

logger = logging.getLogger(__name__)


def chat_id_candidates(chat_id) -> list:
    """
    Stored chat ids were written both as strings and as numbers by different
    code paths ("123", 123, "123.0"), so match every textual form.
    """
    raw = str(chat_id).strip()
    candidates = [raw]
    try:
        as_int = str(int(float(raw)))
    except (TypeError, ValueError):
        return candidates
    if as_int not in candidates:
        candidates.append(as_int)
    float_form = f"{as_int}.0"
    if float_form not in candidates:
        candidates.append(float_form)
    return candidates


class PatientResolver:
    """Looks patients up by chat identity or phone, and binds chat identities."""

    def by_chat_id(self, chat_id) -> Optional[Patient]:
        if chat_id in (None, ''):
            return None
        return (
            Patient.objects
            .filter(telegram_chat_id__in=chat_id_candidates(chat_id))
            .order_by('-updated_at')
            .first()
        )

    def by_phone(self, raw_phone: str) -> Optional[Patient]:
        variants = phone_variants(raw_phone)
        if not variants:
            logger.info(f"Phone {raw_phone!r} has no digits, skipping lookup")
            return None

        patient = (
            Patient.objects
            .filter(Q(phone__in=variants) | Q(alternate_phone__in=variants))
            .order_by('created_at')
            .first()
        )
        if patient is None:
            logger.info(f"No patient for variants {variants}")
        return patient

    def bind_chat(self, patient: Patient, chat_id, language: str) -> Patient:
        """
        Link a chat identity and bot language to the patient.

        Only the two fields are written. Any other patient holding the same
        chat id is unlinked so one chat maps to one patient.
        """
        chat_id = str(chat_id)
        (
            Patient.objects
            .filter(telegram_chat_id__in=chat_id_candidates(chat_id))
            .exclude(pk=patient.pk)
            .update(telegram_chat_id=None)
        )
        patient.telegram_chat_id = chat_id
        patient.bot_language = language
        patient.save(update_fields=['telegram_chat_id', 'bot_language', 'updated_at'])
        logger.info(f"Patient {patient.pk} linked to chat {chat_id} ({language})")
        return patient


@dataclass(frozen=True)
class DoctorContact:
    """Where to send a patient who wants to reach their doctor."""
    url: str
    profile_id: Optional[int] = None
    is_fallback: bool = False


class DoctorRouter:
    """
    Resolve the responsible clinician for a patient.

    Order: the account's admin, then the account's doctor, then any admin
    (legacy patients without an account), then the configured default contact.
    """

    def resolve(self, patient: Patient) -> DoctorContact:
        profile = None
        account_id = patient.account_id

        if account_id:
            profile = self._first(role=Profile.Role.ADMIN, account_id=account_id)
            if profile is None:
                profile = self._first(role=Profile.Role.DOCTOR, account_id=account_id)

        if profile is None:
            profile = self._first(role=Profile.Role.ADMIN)
            if profile is not None:
                logger.warning(
                    f"No clinician in account {account_id!r} for patient {patient.pk}, "
                    f"falling back to global admin {profile.pk}"
                )

        if profile is None:
            logger.warning(f"No admin profile found at all, using default contact for patient {patient.pk}")
            return DoctorContact(url=get_setting('DEFAULT_DOCTOR_CONTACT'), is_fallback=True)

        url = self.contact_url(profile)
        if not url:
            logger.warning(f"Profile {profile.pk} has no handle or phone, using default contact")
            return DoctorContact(url=get_setting('DEFAULT_DOCTOR_CONTACT'), profile_id=profile.pk, is_fallback=True)

        return DoctorContact(url=url, profile_id=profile.pk)

    @staticmethod
    def contact_url(profile: Profile) -> str:
        handle = (profile.telegram_username or '').strip().lstrip('@')
        if handle:
            return f"https://t.me/{handle}"

        digits = clean_digits(profile.contact_phone)
        if digits:
            return f"https://t.me/+{digits}"
        return ''

    @staticmethod
    def _first(**filters) -> Optional[Profile]:
        return Profile.objects.filter(**filters).order_by('created_at').first()
