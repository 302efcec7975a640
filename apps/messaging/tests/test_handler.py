"""
Onboarding state machine tests (TelegramBotHandler)
"""

import logging
from datetime import timedelta

import pytest
from django.utils import timezone

from apps.messaging.models import ChatSession, Language
from apps.messaging.telegram.handler import TelegramBotHandler
from apps.messaging.telegram.session import SessionConflict, SessionStore
from apps.messaging.telegram.texts import BUNDLES
from apps.patients.models import ChatMessage, Patient, Profile

EN = BUNDLES[Language.ENGLISH]
RU = BUNDLES[Language.RUSSIAN]
USER_ID = 5550001


@pytest.fixture
def handler(telegram):
    return TelegramBotHandler(client=telegram)


@pytest.fixture
def linked_patient(patient):
    patient.telegram_chat_id = str(USER_ID)
    patient.bot_language = 'en'
    patient.save()
    SessionStore().mark_linked(SessionStore().choose_language(USER_ID, Language.ENGLISH))
    return patient


@pytest.mark.django_db
class TestOnboarding:

    def test_start_offers_languages(self, handler, telegram, updates):
        handler.handle_update(updates.message(USER_ID, text='/start'))

        sent = telegram.last('send_message')
        callbacks = [row[0]['callback_data'] for row in sent['reply_markup']['inline_keyboard']]
        assert callbacks == ['lang_uz', 'lang_ru', 'lang_en']

    def test_language_choice_creates_session(self, handler, telegram, updates):
        """start → awaiting_contact on language selection"""
        handler.handle_update(updates.callback(USER_ID, 'lang_ru'))

        session = ChatSession.objects.get(chat_id=str(USER_ID))
        assert session.step == ChatSession.Step.AWAITING_CONTACT
        assert session.language == 'ru'
        assert telegram.methods() == ['answer_callback_query', 'send_message']
        reply = telegram.last('send_message')
        assert reply['text'] == RU.ask_contact
        assert reply['reply_markup']['keyboard'][0][0]['request_contact'] is True

    def test_stale_callback_is_logged_and_still_handled(self, handler, telegram, telegram_error, updates, caplog):
        telegram.errors['answer_callback_query'] = telegram_error('Bad Request: query is too old')

        with caplog.at_level(logging.WARNING, logger='apps.messaging.telegram.handler'):
            handler.handle_update(updates.callback(USER_ID, 'lang_ru'))

        assert any('query is too old' in r.getMessage() for r in caplog.records)
        assert ChatSession.objects.get(chat_id=str(USER_ID)).step == ChatSession.Step.AWAITING_CONTACT
        assert telegram.last('send_message')['text'] == RU.ask_contact

    def test_foreign_contact_is_rejected(self, handler, telegram, updates, patient):
        handler.handle_update(updates.callback(USER_ID, 'lang_en'))
        before = ChatSession.objects.get(chat_id=str(USER_ID))

        handler.handle_update(updates.contact(USER_ID, '+998937489141', contact_user_id=999))

        after = ChatSession.objects.get(chat_id=str(USER_ID))
        assert telegram.sent_texts()[-1] == EN.own_contact_only
        assert (after.step, after.version) == (before.step, before.version)
        patient.refresh_from_db()
        assert patient.telegram_chat_id is None

    def test_contact_links_patient(self, handler, telegram, updates, patient):
        handler.handle_update(updates.callback(USER_ID, 'lang_en'))
        handler.handle_update(updates.contact(USER_ID, '+998937489141'))

        patient.refresh_from_db()
        assert patient.telegram_chat_id == str(USER_ID)
        assert patient.bot_language == 'en'
        assert ChatSession.objects.get(chat_id=str(USER_ID)).step == ChatSession.Step.READY

        texts = telegram.sent_texts()
        assert texts[-3] == EN.searching
        assert texts[-2] == EN.success.format(name='Aziza Karimova')
        menu = telegram.last('send_message')['reply_markup']['keyboard']
        assert [row[0]['text'] for row in menu] == [EN.check_btn, EN.write_doctor_btn]

    def test_unknown_phone_keeps_session_waiting(self, handler, telegram, updates, patient):
        handler.handle_update(updates.callback(USER_ID, 'lang_en'))
        handler.handle_update(updates.contact(USER_ID, '+998901112233'))

        assert telegram.sent_texts()[-1] == EN.not_found
        assert ChatSession.objects.get(chat_id=str(USER_ID)).step == ChatSession.Step.AWAITING_CONTACT

    def test_contact_before_language_restarts(self, handler, telegram, updates, patient):
        handler.handle_update(updates.contact(USER_ID, '+998937489141'))

        assert not ChatSession.objects.filter(chat_id=str(USER_ID)).exists()
        assert telegram.sent_texts() == [BUNDLES[Language.UZBEK].welcome]
        patient.refresh_from_db()
        assert patient.telegram_chat_id is None

    def test_language_change_does_not_regress_linked_session(self, handler, linked_patient, updates):
        handler.handle_update(updates.callback(USER_ID, 'lang_ru'))

        session = ChatSession.objects.get(chat_id=str(USER_ID))
        assert session.step == ChatSession.Step.READY
        assert session.language == 'ru'


@pytest.mark.django_db
class TestLinkedCommands:

    def test_check_schedule_lists_upcoming(self, handler, telegram, updates, linked_patient):
        tomorrow = timezone.localdate() + timedelta(days=1)
        later = tomorrow + timedelta(days=10)
        linked_patient.injections = [
            {'id': '3', 'date': f"{later.isoformat()}T14:30", 'status': 'Scheduled'},
            {'id': '1', 'date': tomorrow.isoformat(), 'status': 'Scheduled'},
            {'id': '2', 'date': tomorrow.isoformat(), 'status': 'Completed'},
            {'id': '0', 'date': (tomorrow - timedelta(days=5)).isoformat(), 'status': 'Scheduled'},
        ]
        linked_patient.save()

        handler.handle_update(updates.message(USER_ID, text=EN.check_btn))

        reply = telegram.sent_texts()[-1]
        assert reply.startswith(EN.schedule_header.format(name='Aziza Karimova'))
        first = EN.schedule_item.format(date=tomorrow.strftime('%d.%m.%Y'), time='09:00')
        second = EN.schedule_item.format(date=later.strftime('%d.%m.%Y'), time='14:30')
        assert reply.index(first) < reply.index(second)
        assert reply.count('🗓') == 2
        assert reply.endswith(EN.schedule_footer)

    def test_check_schedule_without_injections(self, handler, telegram, updates, linked_patient):
        handler.handle_update(updates.message(USER_ID, text=EN.check_btn))
        assert telegram.sent_texts()[-1] == EN.no_injection_found.format(name='Aziza Karimova')

    def test_unlinked_user_cannot_check_schedule(self, handler, telegram, updates, patient):
        handler.handle_update(updates.message(USER_ID, text=EN.check_btn))
        assert telegram.sent_texts()[-1] == BUNDLES[Language.UZBEK].profile_not_found

    def test_write_to_doctor_stores_following_texts(self, handler, telegram, updates, linked_patient):
        handler.handle_update(updates.message(USER_ID, text=EN.write_doctor_btn))
        assert ChatSession.objects.get(chat_id=str(USER_ID)).doctor_chat is True
        assert telegram.sent_texts()[-1] == EN.doctor_chat_on

        handler.handle_update(updates.message(USER_ID, text='My scalp itches'))
        handler.handle_update(updates.message(USER_ID, text='Is that normal?'))

        entries = list(ChatMessage.objects.filter(patient=linked_patient).order_by('pk'))
        assert [e.text for e in entries] == ['My scalp itches', 'Is that normal?']
        assert all(e.sender == ChatMessage.Sender.USER for e in entries)

        linked_patient.refresh_from_db()
        assert linked_patient.unread_count == 2
        assert linked_patient.last_message == 'Is that normal?'

    def test_text_outside_doctor_chat_is_not_stored(self, handler, telegram, updates, linked_patient):
        handler.handle_update(updates.message(USER_ID, text='hello'))

        assert not ChatMessage.objects.exists()
        assert telegram.sent_texts()[-1] == EN.menu_hint

    def test_cancel_leaves_doctor_chat(self, handler, telegram, updates, linked_patient):
        handler.handle_update(updates.message(USER_ID, text=EN.write_doctor_btn))
        handler.handle_update(updates.message(USER_ID, text='/cancel'))

        assert ChatSession.objects.get(chat_id=str(USER_ID)).doctor_chat is False
        assert telegram.sent_texts()[-1] == EN.doctor_chat_off

    def test_media_is_rejected_with_doctor_link(self, handler, telegram, updates, linked_patient):
        Profile.objects.create(full_name='Dr. Admin', role=Profile.Role.ADMIN, account_id='clinic-1', telegram_username='dr_admin')
        handler.handle_update(updates.message(USER_ID, text=EN.write_doctor_btn))

        handler.handle_update(updates.message(USER_ID, photo=[{'file_id': 'p1', 'width': 90, 'height': 90}]))

        assert not ChatMessage.objects.exists()
        reply = telegram.last('send_message')
        assert reply['text'] == EN.media_rejected
        button = reply['reply_markup']['inline_keyboard'][0][0]
        assert button['url'] == 'https://t.me/dr_admin'

    def test_scam_message_never_reaches_chat_log(self, handler, telegram, updates, linked_patient):
        handler.handle_update(updates.message(USER_ID, text=EN.write_doctor_btn))
        handler.handle_update(updates.message(USER_ID, text='click here for bitcoin'))

        assert not ChatMessage.objects.exists()
        assert telegram.methods()[-1] == 'delete_message'


@pytest.mark.django_db
class TestSessionStore:

    def test_stale_version_conflicts(self):
        store = SessionStore()
        session = store.choose_language(1, Language.UZBEK)
        stale = ChatSession.objects.get(chat_id='1')

        store.mark_linked(session)

        with pytest.raises(SessionConflict):
            store.set_doctor_chat(stale, True)

    def test_steps_only_move_forward(self):
        store = SessionStore()
        session = store.mark_linked(store.choose_language(1, Language.UZBEK))
        session = store.choose_language(1, Language.ENGLISH)
        assert session.step == ChatSession.Step.READY
        assert Patient.objects.count() == 0
