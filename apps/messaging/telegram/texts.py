"""
Bot reply texts.

One `BotTexts` bundle per `Language`. Bundles are checked when the module is
imported: every language must be present and every template must accept
exactly the placeholders the handlers pass in.
"""

import string
from dataclasses import dataclass, fields
from typing import Dict, Optional

from django.core.exceptions import ImproperlyConfigured

from apps.messaging.conf import get_setting
from apps.messaging.models import Language


@dataclass(frozen=True)
class BotTexts:
    welcome: str
    ask_contact: str
    share_contact_btn: str
    own_contact_only: str
    searching: str
    not_found: str
    success: str                 # {name}
    menu_hint: str
    check_btn: str
    write_doctor_btn: str
    doctor_chat_on: str
    doctor_chat_off: str
    schedule_header: str         # {name}
    schedule_item: str           # {date} {time}
    schedule_footer: str
    no_injection_found: str      # {name}
    profile_not_found: str
    reminder_title: str
    injection_msg: str           # {name} {date} {time}
    media_rejected: str
    contact_doctor_btn: str
    malware_blocked: str
    system_error: str
    otp_message: str             # {code} {minutes}


# Placeholders each template must use; anything unlisted takes none.
PLACEHOLDERS = {
    'success': {'name'},
    'schedule_header': {'name'},
    'schedule_item': {'date', 'time'},
    'no_injection_found': {'name'},
    'injection_msg': {'name', 'date', 'time'},
    'otp_message': {'code', 'minutes'},
}


BUNDLES: Dict[Language, BotTexts] = {
    Language.UZBEK: BotTexts(
        welcome="👋 Assalomu alaykum! Muloqot tilini tanlang:",
        ask_contact="⬇️ Telefon raqamingizni yuborish uchun pastdagi tugmani bosing:",
        share_contact_btn="📱 Raqamni yuborish",
        own_contact_only="❌ Iltimos, o'zingizning raqamingizni yuboring.",
        searching="🔎 Tekshirilmoqda...",
        not_found="❌ Kechirasiz, raqamingiz tizimda topilmadi. Administratorga murojaat qiling.",
        success="✅ Assalomu alaykum, **{name}**! Graft dasturiga xush kelibsiz! 🚀\n\nSizning muolajalaringiz nazorat ostida.",
        menu_hint="👇 Quyidagi menyudan foydalaning.",
        check_btn="📅 Jadvalni ko'rish",
        write_doctor_btn="✍️ Shifokorga yozish",
        doctor_chat_on="✍️ Xabaringizni yozing, shifokor tez orada javob beradi.\nChiqish uchun /cancel yuboring.",
        doctor_chat_off="✅ Shifokor bilan yozishma yopildi.",
        schedule_header="👤 **Bemor:** {name}\n\n📋 **Sizning Inyeksiya Jadvalingiz:**\n\n",
        schedule_item="🗓 **Sana:** {date}\n⏰ **Vaqt:** {time}\n",
        schedule_footer="\nKlinikamizga kech qolmasdan kelishingizni so'raymiz. O'zingizni asrang! 😊",
        no_injection_found="👤 **{name}**\n\nSizda rejalashtirilgan inyeksiyalar yo'q. 😊",
        profile_not_found="❌ Profil topilmadi. /start buyrug'ini yuboring.",
        reminder_title="🔔 Eslatma!",
        injection_msg="Hurmatli **{name}**!\n\nErtaga inyeksiya olishingiz kerak:\n🗓 Sana: **{date}**\n⏰ Vaqt: **{time}**\n\nKechikmasdan kelishingizni so'raymiz! 🏥",
        media_rejected="📷 Rasm va fayllar bot orqali qabul qilinmaydi. Iltimos, ularni shifokoringizga to'g'ridan-to'g'ri yuboring.",
        contact_doctor_btn="👨‍⚕️ Shifokor bilan bog'lanish",
        malware_blocked="❌ Xavfsizlik qoidalari: Zararli fayllar yuborish qat'iyan man etiladi!",
        system_error="⚠️ Tizim xatosi. Keyinroq urinib ko'ring.",
        otp_message="🔐 Kirish kodingiz: `{code}`\n\nKod {minutes} daqiqa amal qiladi. Uni hech kimga bermang.",
    ),
    Language.RUSSIAN: BotTexts(
        welcome="👋 Здравствуйте! Выберите язык:",
        ask_contact="⬇️ Нажмите кнопку ниже, чтобы отправить номер:",
        share_contact_btn="📱 Отправить номер",
        own_contact_only="❌ Пожалуйста, отправьте свой собственный номер.",
        searching="🔎 Проверка...",
        not_found="❌ Номер не найден. Обратитесь к администратору.",
        success="✅ Здравствуйте, **{name}**! Добро пожаловать в Graft! 🚀\n\nВаши процедуры под контролем.",
        menu_hint="👇 Воспользуйтесь меню ниже.",
        check_btn="📅 Проверить график",
        write_doctor_btn="✍️ Написать врачу",
        doctor_chat_on="✍️ Напишите сообщение, врач скоро ответит.\nДля выхода отправьте /cancel.",
        doctor_chat_off="✅ Переписка с врачом закрыта.",
        schedule_header="👤 **Пациент:** {name}\n\n📋 **Ваш График Инъекций:**\n\n",
        schedule_item="🗓 **Дата:** {date}\n⏰ **Время:** {time}\n",
        schedule_footer="\nПожалуйста, приходите в клинику вовремя. Берегите себя! 😊",
        no_injection_found="👤 **{name}**\n\nУ вас нет запланированных инъекций. 😊",
        profile_not_found="❌ Профиль не найден. Отправьте /start.",
        reminder_title="🔔 Напоминание!",
        injection_msg="Уважаемый(ая) **{name}**!\n\nЗавтра у вас инъекция:\n🗓 Дата: **{date}**\n⏰ Время: **{time}**\n\nПожалуйста, не опаздывайте! 🏥",
        media_rejected="📷 Фото и файлы через бот не принимаются. Пожалуйста, отправьте их напрямую вашему врачу.",
        contact_doctor_btn="👨‍⚕️ Связаться с врачом",
        malware_blocked="❌ Правила безопасности: отправка вредоносных файлов запрещена!",
        system_error="⚠️ Системная ошибка. Попробуйте позже.",
        otp_message="🔐 Ваш код входа: `{code}`\n\nКод действует {minutes} минут. Никому его не сообщайте.",
    ),
    Language.ENGLISH: BotTexts(
        welcome="👋 Hello! Select language:",
        ask_contact="⬇️ Press the button below to share your number:",
        share_contact_btn="📱 Share Number",
        own_contact_only="❌ Please send your own contact.",
        searching="🔎 Checking...",
        not_found="❌ Number not found. Contact admin.",
        success="✅ Hello, **{name}**! Welcome to Graft! 🚀\n\nYour treatments are under control.",
        menu_hint="👇 Please use the menu below.",
        check_btn="📅 Check Schedule",
        write_doctor_btn="✍️ Write to Doctor",
        doctor_chat_on="✍️ Type your message, the doctor will reply soon.\nSend /cancel to leave.",
        doctor_chat_off="✅ Doctor chat closed.",
        schedule_header="👤 **Patient:** {name}\n\n📋 **Your Injection Schedule:**\n\n",
        schedule_item="🗓 **Date:** {date}\n⏰ **Time:** {time}\n",
        schedule_footer="\nPlease arrive on time. Take care of yourself! 😊",
        no_injection_found="👤 **{name}**\n\nYou have no scheduled injections. 😊",
        profile_not_found="❌ Profile not found. Send /start.",
        reminder_title="🔔 Reminder!",
        injection_msg="Dear **{name}**!\n\nYou have an injection scheduled for tomorrow:\n🗓 Date: **{date}**\n⏰ Time: **{time}**\n\nPlease don't be late! 🏥",
        media_rejected="📷 Photos and files are not accepted through the bot. Please send them to your doctor directly.",
        contact_doctor_btn="👨‍⚕️ Contact Doctor",
        malware_blocked="❌ Security Alert: Malicious file types are strictly blocked.",
        system_error="⚠️ System error. Please try again later.",
        otp_message="🔐 Your login code: `{code}`\n\nThe code is valid for {minutes} minutes. Do not share it with anyone.",
    ),
}


def _validate_bundles() -> None:
    missing = set(Language) - set(BUNDLES)
    if missing:
        raise ImproperlyConfigured(f"Missing bot texts for languages: {sorted(missing)}")

    formatter = string.Formatter()
    for language, bundle in BUNDLES.items():
        for field in fields(BotTexts):
            template = getattr(bundle, field.name)
            used = {name for _, name, _, _ in formatter.parse(template) if name}
            expected = PLACEHOLDERS.get(field.name, set())
            if used != expected:
                raise ImproperlyConfigured(
                    f"Bot text {language.value}.{field.name} uses {sorted(used)}, "
                    f"expected {sorted(expected)}"
                )


_validate_bundles()


def parse_language(value: Optional[str]) -> Language:
    """Map a stored language code to a Language, falling back to the default."""
    try:
        return Language(value)
    except ValueError:
        return Language(get_setting('DEFAULT_LANGUAGE'))


def texts_for(language) -> BotTexts:
    if not isinstance(language, Language):
        language = parse_language(language)
    return BUNDLES[language]


def menu_button_labels() -> Dict[str, str]:
    """Every localized menu label mapped to the command it triggers."""
    labels = {}
    for bundle in BUNDLES.values():
        labels[bundle.check_btn] = 'check_schedule'
        labels[bundle.write_doctor_btn] = 'write_doctor'
    return labels
