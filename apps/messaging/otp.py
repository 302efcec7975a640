"""
OTP login bridge.

Lets a person whose phone is linked to a Telegram chat sign in to the web app:
`request_otp` sends a short numeric code over Telegram, `verify_otp` checks it
and mints a JWT for the matched profile (or patient).
"""

import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional, Union

from django.core.cache import cache
from django.db import DatabaseError
from django.db.models import Q
from django.utils import timezone
from django.utils.dateparse import parse_datetime
from rest_framework_simplejwt.tokens import AccessToken

from apps.messaging.conf import get_setting
from apps.messaging.models import OtpChallenge
from apps.messaging.phone import normalize_phone, phone_variants
from apps.messaging.resolvers import PatientResolver
from apps.messaging.telegram.client import TelegramAPIError, TelegramClient
from apps.messaging.telegram.texts import texts_for
from apps.patients.models import Patient, Profile

logger = logging.getLogger(__name__)

_CACHE_PREFIX = 'otp:'


class OtpError(Exception):
    """Error surfaced to the caller with a callable-style code."""

    HTTP_STATUS = {
        'invalid-argument': 400,
        'failed-precondition': 400,
        'not-found': 404,
        'deadline-exceeded': 504,
        'internal': 500,
    }

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message

    @property
    def status_code(self) -> int:
        return self.HTTP_STATUS[self.code]


@dataclass
class OtpSubject:
    """The record a code is issued for."""
    kind: str
    record: Union[Profile, Patient]

    @property
    def owner(self) -> str:
        return f"{self.kind}:{self.record.pk}"

    @property
    def chat_id(self) -> Optional[str]:
        return self.record.telegram_chat_id or None

    @property
    def language(self) -> Optional[str]:
        return getattr(self.record, 'bot_language', None)


@dataclass
class _Challenge:
    code: str
    expires_at: datetime


class OtpService:

    def __init__(self, client: TelegramClient, resolver: Optional[PatientResolver] = None):
        self.client = client
        self.resolver = resolver or PatientResolver()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def request_otp(self, phone: str, now: Optional[datetime] = None) -> Dict[str, object]:
        now = now or timezone.now()
        subject = self._require_subject(phone)

        if not subject.chat_id:
            raise OtpError('failed-precondition', 'This phone is not connected to the Telegram bot yet')

        ttl = get_setting('OTP_TTL_SECONDS')
        code = self._generate_code()
        expires_at = now + timedelta(seconds=ttl)

        text = texts_for(subject.language).otp_message.format(code=code, minutes=ttl // 60)
        try:
            self.client.send_message(subject.chat_id, text)
        except TelegramAPIError as exc:
            logger.error(f"Could not deliver OTP to {subject.owner}: {exc}")
            raise OtpError('internal', 'Failed to send the code via Telegram') from exc

        # One live code per owner: a delivered code replaces the previous one.
        # An undelivered code is never stored.
        OtpChallenge.objects.update_or_create(
            owner=subject.owner,
            defaults={'code': code, 'expires_at': expires_at},
        )
        cache.set(_CACHE_PREFIX + subject.owner, {'code': code, 'expires_at': expires_at.isoformat()}, ttl)

        logger.info(f"OTP issued for {subject.owner}")
        return {'success': True, 'message': 'Code sent to Telegram'}

    def verify_otp(self, phone: str, code: str, now: Optional[datetime] = None) -> Dict[str, str]:
        now = now or timezone.now()
        subject = self._require_subject(phone)

        challenge = self._load_challenge(subject.owner)
        if challenge is None:
            raise OtpError('invalid-argument', 'No code was requested for this phone')

        if now > challenge.expires_at:
            logger.info(f"Expired OTP presented for {subject.owner}")
            raise OtpError('deadline-exceeded', 'The code has expired, request a new one')

        if not hmac.compare_digest(str(code).strip(), challenge.code):
            logger.info(f"Wrong OTP presented for {subject.owner}")
            raise OtpError('invalid-argument', 'Invalid code')

        self._discard_challenge(subject.owner)
        logger.info(f"OTP verified for {subject.owner}")
        return {'token': mint_auth_token(subject)}

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(self, phone: str) -> Optional[OtpSubject]:
        """Profiles first, then patients."""
        variants = phone_variants(phone)
        if not variants:
            raise OtpError('invalid-argument', 'A valid phone number is required')

        query = Q(phone__in=variants)
        for variant in variants[:2]:
            # Phone-login accounts carry the number as the email local part
            query |= Q(email__istartswith=f"{variant}@")

        profile = Profile.objects.filter(query).order_by('created_at').first()
        if profile is not None:
            return OtpSubject(kind='profile', record=profile)

        patient = self.resolver.by_phone(phone)
        if patient is not None:
            return OtpSubject(kind='patient', record=patient)
        return None

    def _require_subject(self, phone: str) -> OtpSubject:
        if not phone or not str(phone).strip():
            raise OtpError('invalid-argument', 'phoneNumber is required')

        subject = self.resolve(phone)
        if subject is None:
            logger.info(f"OTP lookup miss for {normalize_phone(phone)}")
            raise OtpError('not-found', 'No account found for this phone number')
        return subject

    # ------------------------------------------------------------------
    # Challenge storage: cache first, table as the durable copy
    # ------------------------------------------------------------------

    @staticmethod
    def _generate_code() -> str:
        length = get_setting('OTP_LENGTH')
        low = 10 ** (length - 1)
        return str(low + secrets.randbelow(9 * low))

    @staticmethod
    def _load_challenge(owner: str) -> Optional[_Challenge]:
        cached = cache.get(_CACHE_PREFIX + owner)
        if cached:
            expires_at = parse_datetime(cached['expires_at'])
            if expires_at is not None:
                return _Challenge(code=cached['code'], expires_at=expires_at)

        row = OtpChallenge.objects.filter(owner=owner).first()
        if row is None:
            return None
        return _Challenge(code=row.code, expires_at=row.expires_at)

    @staticmethod
    def _discard_challenge(owner: str) -> None:
        try:
            OtpChallenge.objects.filter(owner=owner).delete()
        except DatabaseError as exc:
            logger.warning(f"Could not delete OTP row for {owner}: {exc}")
        try:
            cache.delete(_CACHE_PREFIX + owner)
        except Exception as exc:
            logger.debug(f"Could not delete cached OTP for {owner}: {exc}")


def mint_auth_token(subject: OtpSubject) -> str:
    """
    Signed access token carrying the record id the web app signs in as.

    The record id goes in `record_id`, never in the USER_ID_CLAIM: patients
    and profiles are not auth users, and JWTAuthentication must not resolve
    this token to whichever User shares the pk.
    """
    token = AccessToken()
    token['record_id'] = str(subject.record.pk)
    token['record_type'] = subject.kind
    token['phone'] = normalize_phone(subject.record.phone)
    return str(token)
