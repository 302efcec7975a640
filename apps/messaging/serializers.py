from rest_framework import serializers

from apps.messaging.models import OutboundMessage
from apps.messaging.phone import clean_digits


class RequestOtpSerializer(serializers.Serializer):
    phoneNumber = serializers.CharField(max_length=32)

    def validate_phoneNumber(self, value):
        if not clean_digits(value):
            raise serializers.ValidationError("Phone number must contain digits.")
        return value.strip()


class VerifyOtpSerializer(RequestOtpSerializer):
    code = serializers.RegexField(r'^\d{4,8}$', max_length=8)


class OutboundMessageSerializer(serializers.ModelSerializer):
    """
    Outbound messages as created by the web app.

    Only the request fields are writable; status and delivery results are
    owned by the queue.
    """

    class Meta:
        model = OutboundMessage
        fields = [
            'id', 'chat_id', 'patient', 'patient_name',
            'text', 'image_url', 'voice_url',
            'action', 'telegram_message_id', 'scheduled_for', 'chat_message',
            'status', 'sent_message_id', 'sent_at', 'error_message', 'note',
            'created_at', 'updated_at',
        ]
        read_only_fields = [
            'id', 'status', 'sent_message_id', 'sent_at', 'error_message', 'note',
            'created_at', 'updated_at',
        ]
        extra_kwargs = {
            'chat_id': {'required': False},
        }

    def validate(self, data):
        action = data.get('action', OutboundMessage.Action.SEND)

        if action == OutboundMessage.Action.SEND:
            if not (data.get('text') or data.get('image_url') or data.get('voice_url')):
                raise serializers.ValidationError("SEND needs text, image_url or voice_url.")
        else:
            if not data.get('telegram_message_id'):
                raise serializers.ValidationError(f"{action} needs telegram_message_id.")
            if action == OutboundMessage.Action.EDIT and not data.get('text'):
                raise serializers.ValidationError("EDIT needs the new text.")

        if not data.get('chat_id') and data.get('patient') is not None:
            data['chat_id'] = data['patient'].telegram_chat_id or ''
        if not data.get('chat_id'):
            raise serializers.ValidationError({'chat_id': "Target chat is required."})

        if data.get('patient') is not None and not data.get('patient_name'):
            data['patient_name'] = data['patient'].display_name
        return data
