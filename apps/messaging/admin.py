from django.contrib import admin

from .models import ChatSession, OtpChallenge, OutboundMessage


@admin.register(ChatSession)
class ChatSessionAdmin(admin.ModelAdmin):
    list_display = ('chat_id', 'language', 'step', 'doctor_chat', 'version', 'updated_at')
    list_filter = ('step', 'language', 'doctor_chat')
    search_fields = ('chat_id',)


@admin.register(OtpChallenge)
class OtpChallengeAdmin(admin.ModelAdmin):
    list_display = ('owner', 'expires_at', 'created_at')
    search_fields = ('owner',)
    exclude = ('code',)


@admin.register(OutboundMessage)
class OutboundMessageAdmin(admin.ModelAdmin):
    list_display = ('id', 'action', 'chat_id', 'patient_name', 'status', 'scheduled_for', 'sent_at', 'created_at')
    list_filter = ('status', 'action')
    search_fields = ('chat_id', 'patient_name', 'text')
    readonly_fields = ('sent_message_id', 'sent_at', 'error_message', 'note', 'created_at', 'updated_at')
