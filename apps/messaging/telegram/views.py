"""
Telegram Webhook View
Receives inbound updates from the Bot API and routes them to the bot handler.
"""

from __future__ import annotations

import hmac
import json
import logging

from django.http import HttpResponse
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt

from apps.messaging.conf import get_setting
from apps.messaging.telegram.client import get_telegram_client
from apps.messaging.telegram.handler import TelegramBotHandler

logger = logging.getLogger(__name__)


def _verify_secret(request) -> bool:
    """
    Check the X-Telegram-Bot-Api-Secret-Token header Telegram echoes back.
    Passes when no secret is configured (development mode).
    """
    secret = get_setting('TELEGRAM_WEBHOOK_SECRET')
    if not secret:
        return True

    received = request.headers.get('X-Telegram-Bot-Api-Secret-Token', '')
    return hmac.compare_digest(secret, received)


def build_handler() -> TelegramBotHandler:
    return TelegramBotHandler(client=get_telegram_client())


@method_decorator(csrf_exempt, name='dispatch')
class TelegramWebhookView(View):
    """
    POST: inbound Telegram update.

    Telegram redelivers anything that does not get a 2xx, so the view answers
    200 once the update is handled and 500 only if the handler itself blew up.
    """

    def post(self, request):
        if not _verify_secret(request):
            logger.warning("Webhook call with a bad secret token")
            return HttpResponse('Forbidden', status=403)

        try:
            update = json.loads(request.body)
        except json.JSONDecodeError:
            logger.error("Webhook body is not valid JSON")
            return HttpResponse('Bad Request', status=400)
        if not isinstance(update, dict):
            return HttpResponse('Bad Request', status=400)

        try:
            build_handler().handle_update(update)
        except Exception as exc:
            logger.error(f"Bot error on update {update.get('update_id')}: {exc}", exc_info=True)
            return HttpResponse('Error', status=500)

        return HttpResponse('OK', status=200)

    def get(self, request):
        return HttpResponse("Telegram webhook is running. Use POST method.", content_type='text/plain')
