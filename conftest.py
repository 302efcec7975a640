"""
Shared pytest fixtures: a recording Telegram client and update builders.
"""

import itertools

import pytest
from django.core.cache import cache

from apps.messaging.telegram.client import TelegramAPIError
from apps.patients.models import Patient


class FakeTelegramClient:
    """
    Stands in for TelegramClient. Records every call; `errors[method]` makes
    that method raise the given exception.
    """

    def __init__(self):
        self.calls = []
        self.errors = {}
        self._ids = itertools.count(5001)

    def _record(self, method, **kwargs):
        self.calls.append((method, kwargs))
        error = self.errors.get(method)
        if error is not None:
            raise error

    def _sent(self, chat_id):
        return {'message_id': next(self._ids), 'chat': {'id': chat_id}}

    def send_message(self, chat_id, text, reply_markup=None, parse_mode='Markdown'):
        self._record('send_message', chat_id=chat_id, text=text, reply_markup=reply_markup)
        return self._sent(chat_id)

    def send_photo(self, chat_id, photo, caption=None):
        self._record('send_photo', chat_id=chat_id, photo=photo)
        return self._sent(chat_id)

    def send_voice(self, chat_id, voice):
        self._record('send_voice', chat_id=chat_id, voice=voice)
        return self._sent(chat_id)

    def edit_message_text(self, chat_id, message_id, text):
        self._record('edit_message_text', chat_id=chat_id, message_id=message_id, text=text)
        return True

    def delete_message(self, chat_id, message_id):
        self._record('delete_message', chat_id=chat_id, message_id=message_id)
        return True

    def answer_callback_query(self, callback_query_id):
        self._record('answer_callback_query', callback_query_id=callback_query_id)
        return True

    def ban_chat_member(self, chat_id, user_id):
        self._record('ban_chat_member', chat_id=chat_id, user_id=user_id)
        return True

    def set_webhook(self, url, secret_token=None, allowed_updates=None):
        self._record('set_webhook', url=url, secret_token=secret_token)
        return True

    # helpers

    def methods(self):
        return [method for method, _ in self.calls]

    def sent_texts(self):
        return [kwargs['text'] for method, kwargs in self.calls if method == 'send_message']

    def last(self, method):
        matching = [kwargs for name, kwargs in self.calls if name == method]
        return matching[-1] if matching else None


@pytest.fixture
def telegram():
    return FakeTelegramClient()


@pytest.fixture
def use_fake_telegram(monkeypatch, telegram):
    """Route every get_telegram_client() call site to the fake client."""
    for target in (
        'apps.messaging.tasks.get_telegram_client',
        'apps.messaging.views.get_telegram_client',
        'apps.messaging.telegram.views.get_telegram_client',
    ):
        monkeypatch.setattr(target, lambda: telegram)
    return telegram


@pytest.fixture
def telegram_error():
    def build(description, error_code=400):
        return TelegramAPIError(description, error_code)
    return build


@pytest.fixture
def patient(db):
    return Patient.objects.create(
        full_name='Aziza Karimova',
        phone='+998 93 748 91 41',
        account_id='clinic-1',
    )


_update_ids = itertools.count(1)


def message_update(user_id, text=None, chat_type='private', chat_id=None, **fields):
    message = {
        'message_id': next(_update_ids) + 100,
        'from': {'id': user_id, 'first_name': 'Test', 'language_code': 'en'},
        'chat': {'id': chat_id or user_id, 'type': chat_type},
        'date': 1700000000,
    }
    if text is not None:
        message['text'] = text
    message.update(fields)
    return {'update_id': next(_update_ids), 'message': message}


def contact_update(user_id, phone_number, contact_user_id=None):
    return message_update(
        user_id,
        contact={
            'phone_number': phone_number,
            'first_name': 'Test',
            'user_id': user_id if contact_user_id is None else contact_user_id,
        },
    )


def callback_update(user_id, data):
    return {
        'update_id': next(_update_ids),
        'callback_query': {
            'id': f"cb-{user_id}",
            'from': {'id': user_id, 'first_name': 'Test'},
            'message': {'message_id': 1, 'chat': {'id': user_id, 'type': 'private'}},
            'data': data,
        },
    }


@pytest.fixture
def updates():
    class Builders:
        message = staticmethod(message_update)
        contact = staticmethod(contact_update)
        callback = staticmethod(callback_update)
    return Builders


@pytest.fixture(autouse=True)
def _clear_cache():
    """OTP challenges live in the cache; keep tests from seeing each other's codes."""
    cache.clear()
    yield
    cache.clear()
