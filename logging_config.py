"""Console logging for the bot, with log lines translatable to Arabic."""

from __future__ import annotations

import logging
import os
from typing import Mapping

from rich.console import Console
from rich.logging import RichHandler

_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_DEFAULT_LANGUAGE = "en"

# English template -> {language: translated template}
_TRANSLATIONS: dict[str, dict[str, str]] = {}
_LANGUAGES: set[str] = {_DEFAULT_LANGUAGE, "ar"}
_active_language = _DEFAULT_LANGUAGE

# Library loggers and the env var that overrides each one's level.
_LIBRARY_LEVELS = {
    "aiosqlite": ("SQL_LOG_LEVEL", "INFO"),
    "sqlalchemy.engine": ("SQL_LOG_LEVEL", "WARNING"),
    "aiogram.event": ("AIOGRAM_EVENT_LOG_LEVEL", "INFO"),
    "aiogram.dispatcher": ("AIOGRAM_DISPATCHER_LOG_LEVEL", "INFO"),
    "aiohttp.access": ("AIOHTTP_ACCESS_LOG_LEVEL", "WARNING"),
    "asyncio": ("ASYNCIO_LOG_LEVEL", "WARNING"),
}


class _LocalizationFilter(logging.Filter):
    """Swap a record's template for its translation in the active language."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            translated = _TRANSLATIONS.get(record.msg, {}).get(_active_language)
            if translated:
                record.msg = translated
        return True


def _to_level(value: str | int | None, fallback: int) -> int:
    if value is None:
        return fallback
    if isinstance(value, int):
        return value
    name = value.strip().upper()
    if name.isdigit():
        return int(name)
    return getattr(logging, name, fallback)


def set_log_language(language: str | None) -> None:
    """Switch the log language; unknown or empty values select English."""

    global _active_language
    normalized = (language or "").strip().lower()
    _active_language = normalized if normalized in _LANGUAGES else _DEFAULT_LANGUAGE


def get_log_language() -> str:
    return _active_language


def register_log_translations(translations: Mapping[str, Mapping[str, str]]) -> None:
    """Add translations keyed by the English ``%``-style template passed to the logger.

    Placeholders must survive translation unchanged, since interpolation
    happens after the filter has replaced the template.
    """

    for template, by_language in translations.items():
        bucket = _TRANSLATIONS.setdefault(template, {})
        for language, message in by_language.items():
            code = language.strip().lower()
            if code:
                bucket[code] = message
                _LANGUAGES.add(code)


def available_log_languages() -> tuple[str, ...]:
    return tuple(sorted(_LANGUAGES))


def get_default_log_language() -> str:
    return _DEFAULT_LANGUAGE


def setup_logging(*, level: str | int | None = None, language: str | None = None) -> None:
    """Install a rich console handler on the root logger.

    ``level`` falls back to ``LOG_LEVEL`` and then INFO; ``language`` falls
    back to ``LOG_LANGUAGE`` and then English. Chatty libraries get their own
    levels, each overridable through the environment.
    """

    set_log_language(language or os.getenv("LOG_LANGUAGE"))

    handler = RichHandler(
        console=Console(stderr=True, soft_wrap=False),
        markup=False,
        rich_tracebacks=True,
        show_path=False,
        log_time_format=_DATE_FORMAT,
    )
    handler.addFilter(_LocalizationFilter())

    logging.basicConfig(
        level=_to_level(level or os.getenv("LOG_LEVEL"), logging.INFO),
        format="%(name)s | %(message)s",
        datefmt=_DATE_FORMAT,
        handlers=[handler],
        force=True,
    )
    logging.captureWarnings(True)

    for name, (env_var, default) in _LIBRARY_LEVELS.items():
        logging.getLogger(name).setLevel(_to_level(os.getenv(env_var, default), logging.INFO))


__all__ = [
    "setup_logging",
    "set_log_language",
    "get_log_language",
    "register_log_translations",
    "available_log_languages",
    "get_default_log_language",
]
