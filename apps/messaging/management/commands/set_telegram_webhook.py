from django.core.management.base import BaseCommand, CommandError

from apps.messaging.conf import get_setting
from apps.messaging.telegram.client import TelegramAPIError, get_telegram_client


class Command(BaseCommand):
    help = 'Register the bot webhook URL with Telegram'

    def add_arguments(self, parser):
        parser.add_argument(
            '--url',
            type=str,
            help='Public webhook URL (defaults to GRAFTCARE["TELEGRAM_WEBHOOK_URL"])',
        )

    def handle(self, *args, **options):
        url = options.get('url') or get_setting('TELEGRAM_WEBHOOK_URL')
        if not url:
            raise CommandError('No webhook URL given and TELEGRAM_WEBHOOK_URL is not set')

        self.stdout.write(f'🔗 Setting webhook to: {url}')
        try:
            get_telegram_client().set_webhook(
                url,
                secret_token=get_setting('TELEGRAM_WEBHOOK_SECRET') or None,
                allowed_updates=['message', 'edited_message', 'callback_query'],
            )
        except TelegramAPIError as exc:
            raise CommandError(f'Failed to set webhook: {exc}') from exc

        self.stdout.write(self.style.SUCCESS('✅ Webhook successfully set!'))
