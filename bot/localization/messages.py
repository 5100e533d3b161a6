"""Localized messages and button labels for the bot."""

from __future__ import annotations

from typing import Dict

DEFAULT_LANGUAGE = "en"

# Group language tags as stored in ``telegram_groups.language``.
GROUP_LANGUAGES: tuple[str, ...] = ("Arabic", "English")

LANGUAGE_CODES = {
    "Arabic": "ar",
    "English": "en",
}

MESSAGES: Dict[str, Dict[str, str]] = {
    "onboarding_welcome": {
        "en": "Welcome! Please enter your website username to link your account.",
        "ar": "أهلاً بك! يرجى إدخال اسم المستخدم الخاص بك في الموقع لربط حسابك.",
    },
    "account_not_found": {
        "en": (
            "⚠️ No matching account found. This username is not registered. "
            "Please create an account on our website."
        ),
        "ar": "⚠️ لم يتم العثور على حساب مطابق. اسم المستخدم هذا غير مسجل. يرجى إنشاء حساب على موقعنا.",
    },
    "account_linked_elsewhere": {
        "en": "⚠️ This username is already linked to another Telegram account. Please use the correct account.",
        "ar": "⚠️ اسم المستخدم هذا مرتبط بالفعل بحساب تيليجرام آخر. يرجى استخدام الحساب الصحيح.",
    },
    "link_failed": {
        "en": "❌ Error linking your Telegram account.",
        "ar": "❌ حدث خطأ أثناء ربط حساب تيليجرام الخاص بك.",
    },
    "link_success": {
        "en": "✅ Your Telegram account has been linked successfully.",
        "ar": "✅ تم ربط حساب تيليجرام الخاص بك بنجاح.",
    },
    "language_prompt": {
        "en": "Please choose your language:",
        "ar": "يرجى اختيار لغتك:",
    },
    "language_invalid": {
        "en": "❌ Invalid choice. Please restart with /start.",
        "ar": "❌ اختيار غير صالح. يرجى البدء من جديد باستخدام /start.",
    },
    "no_groups": {
        "en": "❌ No available groups for {language}.",
        "ar": "❌ لا توجد مجموعات متاحة للغة {language}.",
    },
    "join_groups_prompt": {
        "en": "Click the button to join the groups:",
        "ar": "اضغط على الزر للانضمام إلى المجموعات:",
    },
    "onboarding_cancelled": {
        "en": "Linking cancelled. Send /start to begin again.",
        "ar": "تم إلغاء الربط. أرسل /start للبدء من جديد.",
    },
    "onboarding_expired": {
        "en": "⏳ This session has expired. Please send /start to begin again.",
        "ar": "⏳ انتهت صلاحية هذه الجلسة. يرجى إرسال /start للبدء من جديد.",
    },
    "service_unavailable": {
        "en": "⚠️ The service is temporarily unavailable. Please try again later.",
        "ar": "⚠️ الخدمة غير متاحة مؤقتاً. يرجى المحاولة لاحقاً.",
    },
    "expiry_notice": {
        "en": "⏳ Your subscription has expired. Please renew.",
        "ar": "⏳ انتهى اشتراكك. يرجى التجديد.",
    },
    "expiry_reminder": {
        "en": "🔔 Your subscription ends on {date}. Renew it to keep access to your groups.",
        "ar": "🔔 ينتهي اشتراكك بتاريخ {date}. قم بالتجديد للحفاظ على وصولك إلى مجموعاتك.",
    },
}

BUTTONS: Dict[str, Dict[str, str]] = {
    "join_group": {
        "en": "Join {name}",
        "ar": "انضم إلى {name}",
    },
}


def resolve_language_code(value: str | None) -> str:
    """Map a group language tag or a Telegram ``language_code`` to a message language."""
    if not value:
        return DEFAULT_LANGUAGE
    if value in LANGUAGE_CODES:
        return LANGUAGE_CODES[value]
    code = value.split("-")[0].lower()
    return code if code in LANGUAGE_CODES.values() else DEFAULT_LANGUAGE


def get_text(key: str, language: str | None, /, **format_kwargs: str) -> str:
    """Return localized text for the given key and language."""
    lang = (language or DEFAULT_LANGUAGE).lower()
    if key in MESSAGES:
        template = MESSAGES[key].get(lang) or MESSAGES[key][DEFAULT_LANGUAGE]
    else:
        template = key
    return template.format(**format_kwargs)


def get_bilingual_text(key: str, /, **format_kwargs: str) -> str:
    """Both language variants, used when no language preference is on record."""
    return "\n".join(get_text(key, code, **format_kwargs) for code in ("en", "ar"))


def get_label(key: str, language: str | None, /, **format_kwargs: str) -> str:
    """Return a localized button label with graceful fallback."""
    lang = (language or DEFAULT_LANGUAGE).lower()
    variants = BUTTONS.get(key, {})
    template = variants.get(lang) or variants.get(DEFAULT_LANGUAGE) or key
    return template.format(**format_kwargs)
