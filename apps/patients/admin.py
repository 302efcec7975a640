from django.contrib import admin

from .models import ChatMessage, Patient, Profile


class ChatMessageInline(admin.TabularInline):
    model = ChatMessage
    extra = 0
    fields = ('sender', 'text', 'delivery_status', 'seen', 'created_at')
    readonly_fields = ('created_at',)


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ('full_name', 'phone', 'telegram_chat_id', 'bot_language', 'unread_count', 'account_id')
    list_filter = ('bot_language', 'account_id')
    search_fields = ('full_name', 'phone', 'alternate_phone', 'telegram_chat_id')
    readonly_fields = ('created_at', 'updated_at')
    inlines = [ChatMessageInline]


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_display = ('full_name', 'email', 'role', 'account_id', 'telegram_username', 'status')
    list_filter = ('role', 'status')
    search_fields = ('full_name', 'email', 'phone', 'telegram_username')
