import logging

from django.db import transaction
from django.db.models.signals import post_save
from django.dispatch import receiver

from apps.messaging.models import OutboundMessage
from apps.messaging.outbound import route_new_message

logger = logging.getLogger(__name__)


@receiver(post_save, sender=OutboundMessage)
def on_outbound_message_created(sender, instance, created, **kwargs):
    """Message-create trigger: queue scheduled messages, deliver the rest."""
    if not created:
        return

    if route_new_message(instance):
        from apps.messaging.tasks import deliver_outbound_message

        message_id = instance.pk
        transaction.on_commit(lambda: deliver_outbound_message.delay(message_id))
