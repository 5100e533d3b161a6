"""Localization utilities and message dictionaries for the bot."""

from .messages import (
    DEFAULT_LANGUAGE,
    GROUP_LANGUAGES,
    LANGUAGE_CODES,
    MESSAGES,
    BUTTONS,
    get_bilingual_text,
    get_label,
    get_text,
    resolve_language_code,
)

__all__ = [
    "DEFAULT_LANGUAGE",
    "GROUP_LANGUAGES",
    "LANGUAGE_CODES",
    "MESSAGES",
    "BUTTONS",
    "get_bilingual_text",
    "get_label",
    "get_text",
    "resolve_language_code",
]
