"""
apps/messaging/telegram/urls.py
URL routing for the Telegram bot webhook.
"""

from django.urls import path
from apps.messaging.telegram.views import TelegramWebhookView

app_name = 'telegram'

urlpatterns = [
    path('webhook/', TelegramWebhookView.as_view(), name='webhook'),
]
