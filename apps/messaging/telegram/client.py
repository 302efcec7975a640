"""
Telegram Bot API Client
Handles all outbound calls to the Telegram Bot API.
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from apps.messaging.conf import get_setting

logger = logging.getLogger(__name__)

# Descriptions Telegram returns when the target message is already gone
_MISSING_MESSAGE_MARKERS = (
    'message to delete not found',
    'message to edit not found',
    "message can't be deleted",
    'message_id_invalid',
)


class TelegramAPIError(Exception):
    """Raised when the Bot API call fails or returns ok=false."""

    def __init__(self, description: str, error_code: Optional[int] = None):
        super().__init__(description)
        self.description = description
        self.error_code = error_code

    @property
    def is_message_missing(self) -> bool:
        lowered = self.description.lower()
        return any(marker in lowered for marker in _MISSING_MESSAGE_MARKERS)


class TelegramClient:
    """
    Thin wrapper around the Telegram Bot API.

    Every method returns the `result` field of the API response on success,
    or raises TelegramAPIError. A single attempt is made per call.
    """

    def __init__(
        self,
        token: str,
        base_url: str = 'https://api.telegram.org',
        timeout: int = 15,
        session: Optional[requests.Session] = None,
    ):
        if not token:
            raise ValueError(
                "Telegram bot token is not set. "
                "Add TELEGRAM_BOT_TOKEN to GRAFTCARE settings."
            )
        self.token = token
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()

    # ------------------------------------------------------------------
    # Core call
    # ------------------------------------------------------------------

    def call(self, method: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}/bot{self.token}/{method}"
        try:
            resp = self.session.post(url, json=payload or {}, timeout=self.timeout)
        except requests.exceptions.RequestException as exc:
            logger.error(f"Telegram {method} request failed: {exc}")
            raise TelegramAPIError(str(exc)) from exc

        try:
            data = resp.json()
        except ValueError as exc:
            raise TelegramAPIError(f"HTTP {resp.status_code}: non-JSON response", resp.status_code) from exc

        if not data.get('ok'):
            description = data.get('description') or f"HTTP {resp.status_code}"
            logger.warning(f"Telegram {method} failed: {description}")
            raise TelegramAPIError(description, data.get('error_code'))

        logger.debug(f"Telegram {method} ok")
        return data.get('result')

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def send_message(
        self,
        chat_id,
        text: str,
        reply_markup: Optional[Dict[str, Any]] = None,
        parse_mode: Optional[str] = 'Markdown',
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {'chat_id': chat_id, 'text': text}
        if parse_mode:
            payload['parse_mode'] = parse_mode
        if reply_markup is not None:
            payload['reply_markup'] = reply_markup
        return self.call('sendMessage', payload)

    def send_photo(self, chat_id, photo: str, caption: Optional[str] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {'chat_id': chat_id, 'photo': photo}
        if caption:
            payload['caption'] = caption
        return self.call('sendPhoto', payload)

    def send_voice(self, chat_id, voice: str) -> Dict[str, Any]:
        return self.call('sendVoice', {'chat_id': chat_id, 'voice': voice})

    def edit_message_text(self, chat_id, message_id: int, text: str) -> Any:
        return self.call('editMessageText', {
            'chat_id': chat_id,
            'message_id': message_id,
            'text': text,
            'parse_mode': 'Markdown',
        })

    def delete_message(self, chat_id, message_id: int) -> Any:
        return self.call('deleteMessage', {'chat_id': chat_id, 'message_id': message_id})

    # ------------------------------------------------------------------
    # Chat / update helpers
    # ------------------------------------------------------------------

    def answer_callback_query(self, callback_query_id: str) -> Any:
        return self.call('answerCallbackQuery', {'callback_query_id': callback_query_id})

    def ban_chat_member(self, chat_id, user_id) -> Any:
        return self.call('banChatMember', {'chat_id': chat_id, 'user_id': user_id})

    def set_webhook(self, url: str, secret_token: Optional[str] = None,
                    allowed_updates: Optional[List[str]] = None) -> Any:
        payload: Dict[str, Any] = {'url': url}
        if secret_token:
            payload['secret_token'] = secret_token
        if allowed_updates is not None:
            payload['allowed_updates'] = allowed_updates
        return self.call('setWebhook', payload)


def get_telegram_client() -> TelegramClient:
    """Build a client from settings. Handlers receive it explicitly."""
    return TelegramClient(
        token=get_setting('TELEGRAM_BOT_TOKEN'),
        base_url=get_setting('TELEGRAM_API_BASE_URL'),
        timeout=get_setting('TELEGRAM_REQUEST_TIMEOUT'),
    )
