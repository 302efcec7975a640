"""
Access filters run on every inbound Telegram update before any handler.

Each filter returns True to let the update through. The first filter that
returns False stops processing of the update.
"""

import logging
import re
from typing import Any, Callable, Dict, List, Optional

from apps.messaging.conf import get_setting
from apps.messaging.telegram.client import TelegramAPIError, TelegramClient
from apps.messaging.telegram.texts import texts_for

logger = logging.getLogger(__name__)

SCAM_PATTERN = re.compile(
    r'(tonplay|free\s*spin|bonus\s*\d+|crypto\s*giveaway|bitcoin|usdt|invest|airdrop'
    r'|http.*telegram\.me|http.*t\.me|http.*whatsapp|click\s*here|virus)',
    re.IGNORECASE,
)

DANGEROUS_EXTENSIONS = re.compile(
    r'\.(exe|bat|cmd|vbs|vbe|js|jse|wsf|wsh|msc|scr|reg|pif|apk|dll|msi)$',
    re.IGNORECASE,
)


def update_message(update: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    return update.get('message') or update.get('edited_message')


def update_sender(update: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    message = update_message(update)
    if message and message.get('from'):
        return message['from']
    callback = update.get('callback_query')
    if callback:
        return callback.get('from')
    return None


class AccessMiddleware:
    """Identity allow-list and content filters for inbound updates."""

    def __init__(self, client: TelegramClient):
        self.client = client
        self.filters: List[Callable[[Dict[str, Any]], bool]] = [
            self.check_allow_list,
            self.block_forwarded_from_chats,
            self.block_scam,
            self.block_dangerous_documents,
        ]

    def allows(self, update: Dict[str, Any]) -> bool:
        for check in self.filters:
            if not check(update):
                return False
        return True

    # ------------------------------------------------------------------
    # Filters
    # ------------------------------------------------------------------

    def check_allow_list(self, update: Dict[str, Any]) -> bool:
        sender = update_sender(update)
        if not sender:
            return True

        user_id = str(sender.get('id'))
        allowed_ids = {str(i) for i in get_setting('ALLOWED_CHAT_IDS')}
        listed = user_id in allowed_ids

        if not get_setting('ENFORCE_ALLOWED_CHAT_IDS'):
            logger.debug(f"Allow-list not enforced, passing {user_id} (listed={listed})")
            return True

        if listed:
            logger.debug(f"Allow-list pass for {user_id}")
            return True

        logger.info(f"Allow-list rejected {user_id}")
        return False

    def block_forwarded_from_chats(self, update: Dict[str, Any]) -> bool:
        message = update_message(update)
        if not message or not message.get('forward_from_chat'):
            return True

        logger.info(f"Dropping message forwarded from chat {message['forward_from_chat'].get('id')}")
        self._delete(message)
        return False

    def block_scam(self, update: Dict[str, Any]) -> bool:
        message = update_message(update)
        if not message:
            return True

        content = (message.get('text') or '') + (message.get('caption') or '')
        if not SCAM_PATTERN.search(content):
            return True

        sender = message.get('from') or {}
        chat = message.get('chat') or {}
        logger.info(f"🛡️ Scam blocked from {sender.get('first_name')} ({sender.get('id')})")

        try:
            self.client.delete_message(chat.get('id'), message.get('message_id'))
            if chat.get('type') != 'private' and sender.get('id'):
                self.client.ban_chat_member(chat.get('id'), sender['id'])
        except TelegramAPIError as exc:
            logger.error(f"Scam cleanup failed in chat {chat.get('id')}: {exc}")
        return False

    def block_dangerous_documents(self, update: Dict[str, Any]) -> bool:
        message = update_message(update)
        document = (message or {}).get('document')
        if not document:
            return True

        file_name = document.get('file_name') or ''
        if not DANGEROUS_EXTENSIONS.search(file_name):
            return True

        chat_id = (message.get('chat') or {}).get('id')
        language = ((message.get('from') or {}).get('language_code'))
        logger.warning(f"☢️ Blocked dangerous upload {file_name!r} in chat {chat_id}")

        try:
            self.client.delete_message(chat_id, message.get('message_id'))
            self.client.send_message(chat_id, texts_for(language).malware_blocked, parse_mode=None)
        except TelegramAPIError as exc:
            logger.error(f"Malware cleanup failed in chat {chat_id}: {exc}")
        return False

    # ------------------------------------------------------------------

    def _delete(self, message: Dict[str, Any]) -> None:
        chat_id = (message.get('chat') or {}).get('id')
        try:
            self.client.delete_message(chat_id, message.get('message_id'))
        except TelegramAPIError as exc:
            logger.error(f"Could not delete message in chat {chat_id}: {exc}")
