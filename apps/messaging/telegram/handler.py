"""
apps/messaging/telegram/handler.py

Telegram ↔ GraftCare bridge: patient onboarding state machine.

Flow per incoming update:
  1. AccessMiddleware filters (allow-list, forwarded, scam, malware)
  2. Callback buttons: language selection  (start → awaiting_contact)
  3. Contact share: phone lookup + chat binding  (awaiting_contact → ready)
  4. Commands / menu buttons: /start, /cancel, check schedule, write to doctor
  5. Free text in doctor-chat mode → patient chat log
  6. Media from linked patients → rejected with a doctor contact link
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, Optional

from django.db.models import F
from django.utils import timezone

from apps.messaging.models import ChatSession, Language
from apps.messaging.resolvers import DoctorRouter, PatientResolver
from apps.messaging.schedule import render_schedule, upcoming_injections
from apps.messaging.telegram.client import TelegramAPIError, TelegramClient
from apps.messaging.telegram.middleware import AccessMiddleware
from apps.messaging.telegram.session import SessionConflict, SessionStore
from apps.messaging.telegram.texts import (
    BUNDLES,
    BotTexts,
    menu_button_labels,
    parse_language,
    texts_for,
)
from apps.patients.models import ChatMessage, Patient

logger = logging.getLogger(__name__)

_LANGUAGE_CALLBACK_PREFIX = 'lang_'
_MEDIA_TYPES = ('photo', 'video', 'voice', 'audio', 'video_note', 'document', 'sticker', 'animation')
_LANGUAGE_LABELS = {
    Language.UZBEK: "🇺🇿 O'zbekcha",
    Language.RUSSIAN: '🇷🇺 Русский',
    Language.ENGLISH: '🇬🇧 English',
}


# ── Keyboards ─────────────────────────────────────────────────────────────────

def language_keyboard() -> Dict[str, Any]:
    return {
        'inline_keyboard': [
            [{'text': _LANGUAGE_LABELS[lang], 'callback_data': f"{_LANGUAGE_CALLBACK_PREFIX}{lang.value}"}]
            for lang in Language
        ]
    }


def contact_keyboard(texts: BotTexts) -> Dict[str, Any]:
    return {
        'keyboard': [[{'text': texts.share_contact_btn, 'request_contact': True}]],
        'resize_keyboard': True,
        'one_time_keyboard': True,
    }


def menu_keyboard(texts: BotTexts) -> Dict[str, Any]:
    return {
        'keyboard': [
            [{'text': texts.check_btn}],
            [{'text': texts.write_doctor_btn}],
        ],
        'resize_keyboard': True,
    }


REMOVE_KEYBOARD = {'remove_keyboard': True}


# ── Handler ───────────────────────────────────────────────────────────────────

class TelegramBotHandler:
    """
    Handles one Telegram update at a time. Holds no per-chat state: sessions
    and patient links live in the database.
    """

    def __init__(
        self,
        client: TelegramClient,
        sessions: Optional[SessionStore] = None,
        resolver: Optional[PatientResolver] = None,
        router: Optional[DoctorRouter] = None,
    ):
        self.client = client
        self.sessions = sessions or SessionStore()
        self.resolver = resolver or PatientResolver()
        self.router = router or DoctorRouter()
        self.middleware = AccessMiddleware(client)

    # ── Entry point ────────────────────────────────────────────────────────────

    def handle_update(self, update: Dict[str, Any]) -> None:
        logger.info(f"TG | update={update.get('update_id')} keys={sorted(k for k in update if k != 'update_id')}")

        if not self.middleware.allows(update):
            return

        try:
            if update.get('callback_query'):
                self._handle_callback(update['callback_query'])
                return

            message = update.get('message')
            if not message or not message.get('from'):
                return
            self._handle_message(message)
        except SessionConflict as exc:
            logger.warning(f"Dropped update {update.get('update_id')}: {exc}")

    def _handle_message(self, message: Dict[str, Any]) -> None:
        if message.get('contact'):
            return self._handle_contact(message)

        text = (message.get('text') or '').strip()
        if text:
            if text.startswith('/start'):
                return self._cmd_start(message)
            if text.startswith('/cancel'):
                return self._cmd_cancel(message)

            command = menu_button_labels().get(text)
            if command == 'check_schedule':
                return self._cmd_check_schedule(message)
            if command == 'write_doctor':
                return self._cmd_write_doctor(message)
            return self._handle_text(message, text)

        if any(message.get(kind) for kind in _MEDIA_TYPES):
            return self._handle_media(message)

    # ── Onboarding ─────────────────────────────────────────────────────────────

    def _cmd_start(self, message: Dict[str, Any]) -> None:
        self._send(message['chat']['id'], BUNDLES[Language.UZBEK].welcome, reply_markup=language_keyboard())

    def _handle_callback(self, callback: Dict[str, Any]) -> None:
        try:
            self.client.answer_callback_query(callback['id'])
        except TelegramAPIError as exc:
            logger.warning(f"Could not answer callback {callback.get('id')}: {exc}")

        data = callback.get('data') or ''
        if not data.startswith(_LANGUAGE_CALLBACK_PREFIX):
            logger.info(f"Ignoring callback data {data!r}")
            return

        try:
            language = Language(data[len(_LANGUAGE_CALLBACK_PREFIX):])
        except ValueError:
            logger.info(f"Unknown language callback {data!r}")
            return

        user_id = callback['from']['id']
        chat_id = (callback.get('message') or {}).get('chat', {}).get('id', user_id)

        self.sessions.choose_language(user_id, language)
        texts = texts_for(language)
        self._send(chat_id, texts.ask_contact, reply_markup=contact_keyboard(texts))

    def _handle_contact(self, message: Dict[str, Any]) -> None:
        user_id = message['from']['id']
        chat_id = message['chat']['id']
        contact = message['contact']

        session = self.sessions.get(user_id)
        if session is None:
            # No language chosen yet
            logger.info(f"Contact from {user_id} without a session, restarting onboarding")
            return self._cmd_start(message)

        texts = texts_for(session.language)

        if str(contact.get('user_id')) != str(user_id):
            logger.info(f"Rejected foreign contact from {user_id}")
            return self._send(chat_id, texts.own_contact_only)

        self._send(chat_id, texts.searching, reply_markup=REMOVE_KEYBOARD)

        try:
            patient = self.resolver.by_phone(contact.get('phone_number'))
            if patient is None:
                return self._send(chat_id, texts.not_found)

            self.resolver.bind_chat(patient, user_id, session.language)
            self.sessions.mark_linked(session)
        except SessionConflict:
            raise
        except Exception as exc:
            logger.error(f"Verification error for {user_id}: {exc}", exc_info=True)
            return self._send(chat_id, texts.system_error)

        self._send(chat_id, texts.success.format(name=patient.display_name))
        self._send(chat_id, texts.menu_hint, reply_markup=menu_keyboard(texts))

    # ── Linked-patient commands ────────────────────────────────────────────────

    def _cmd_check_schedule(self, message: Dict[str, Any]) -> None:
        chat_id = message['chat']['id']
        patient = self._linked_patient(message)
        if patient is None:
            return

        texts = texts_for(patient.bot_language)
        session = self.sessions.get(message['from']['id'])
        if session is not None:
            self.sessions.set_doctor_chat(session, False)

        tomorrow = timezone.localdate() + timedelta(days=1)
        injections = upcoming_injections(patient, tomorrow)
        self._send(chat_id, render_schedule(texts, patient, injections))

    def _cmd_write_doctor(self, message: Dict[str, Any]) -> None:
        chat_id = message['chat']['id']
        patient = self._linked_patient(message)
        if patient is None:
            return

        language = parse_language(patient.bot_language)
        session = self._ensure_linked_session(message['from']['id'], language)
        self.sessions.set_doctor_chat(session, True)
        self._send(chat_id, texts_for(language).doctor_chat_on)

    def _cmd_cancel(self, message: Dict[str, Any]) -> None:
        session = self.sessions.get(message['from']['id'])
        if session is None:
            return self._cmd_start(message)

        texts = texts_for(session.language)
        self.sessions.set_doctor_chat(session, False)
        reply_markup = menu_keyboard(texts) if session.step == ChatSession.Step.READY else None
        self._send(message['chat']['id'], texts.doctor_chat_off, reply_markup=reply_markup)

    def _handle_text(self, message: Dict[str, Any], text: str) -> None:
        user_id = message['from']['id']
        chat_id = message['chat']['id']
        session = self.sessions.get(user_id)
        patient = self.resolver.by_chat_id(user_id)

        if patient is None:
            if session is not None and session.step == ChatSession.Step.AWAITING_CONTACT:
                texts = texts_for(session.language)
                return self._send(chat_id, texts.ask_contact, reply_markup=contact_keyboard(texts))
            return self._cmd_start(message)

        texts = texts_for(patient.bot_language)
        if session is None or not session.doctor_chat:
            return self._send(chat_id, texts.menu_hint, reply_markup=menu_keyboard(texts))

        self._store_inbound_text(patient, text, message.get('message_id'))

    def _handle_media(self, message: Dict[str, Any]) -> None:
        user_id = message['from']['id']
        patient = self.resolver.by_chat_id(user_id)
        if patient is None:
            logger.info(f"Ignoring media from unlinked chat {user_id}")
            return

        texts = texts_for(patient.bot_language)
        contact = self.router.resolve(patient)
        logger.info(f"Rejected media from patient {patient.pk}, pointing to {contact.url}")
        self._send(
            message['chat']['id'],
            texts.media_rejected,
            reply_markup={'inline_keyboard': [[{'text': texts.contact_doctor_btn, 'url': contact.url}]]},
        )

    # ── Helpers ────────────────────────────────────────────────────────────────

    def _linked_patient(self, message: Dict[str, Any]) -> Optional[Patient]:
        user_id = message['from']['id']
        patient = self.resolver.by_chat_id(user_id)
        if patient is None:
            session = self.sessions.get(user_id)
            texts = texts_for(session.language if session else None)
            self._send(message['chat']['id'], texts.profile_not_found)
        return patient

    def _ensure_linked_session(self, user_id, language: Language) -> ChatSession:
        session = self.sessions.get(user_id)
        if session is None:
            session = self.sessions.choose_language(user_id, language)
        if session.step != ChatSession.Step.READY:
            session = self.sessions.mark_linked(session)
        return session

    def _store_inbound_text(self, patient: Patient, text: str, telegram_message_id: Optional[int]) -> ChatMessage:
        now = timezone.localtime()
        entry = ChatMessage.objects.create(
            patient=patient,
            sender=ChatMessage.Sender.USER,
            text=text,
            telegram_message_id=telegram_message_id,
            delivery_status=ChatMessage.DeliveryStatus.DELIVERED,
            time=now.strftime('%H:%M'),
        )
        Patient.objects.filter(pk=patient.pk).update(
            last_message=text,
            last_message_time=entry.time,
            unread_count=F('unread_count') + 1,
            user_is_typing=False,
            updated_at=timezone.now(),
        )
        logger.info(f"Stored message {entry.pk} from patient {patient.pk}")
        return entry

    def _send(self, chat_id, text: str, reply_markup: Optional[Dict[str, Any]] = None) -> None:
        try:
            self.client.send_message(chat_id, text, reply_markup=reply_markup)
        except TelegramAPIError as exc:
            logger.error(f"Failed to reply to {chat_id}: {exc}")
