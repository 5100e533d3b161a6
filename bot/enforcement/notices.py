"""Expiry notices and renewal reminders sent to subscribers' private chats."""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import Optional

from aiogram.exceptions import TelegramAPIError

from bot.access.platform import ChatPlatform
from bot.localization import get_bilingual_text, get_text, resolve_language_code
from logging_config import register_log_translations

logger = logging.getLogger(__name__)

register_log_translations(
    {
        "Expiry message sent to %s": {
            "ar": "تم إرسال رسالة انتهاء الاشتراك إلى %s",
        },
        "User %s was already notified, not scheduling another notice": {
            "ar": "تم إشعار المستخدم %s مسبقاً، لن تتم جدولة إشعار آخر",
        },
        "Failed to send expiry message to %s: %s": {
            "ar": "فشل إرسال رسالة انتهاء الاشتراك إلى %s: %s",
        },
        "Reminder sent to %s (expires %s)": {
            "ar": "تم إرسال تذكير إلى %s (ينتهي في %s)",
        },
        "Failed to send reminder to %s: %s": {
            "ar": "فشل إرسال التذكير إلى %s: %s",
        },
    }
)


def _render(key: str, language: Optional[str], **kwargs: str) -> str:
    if not language:
        return get_bilingual_text(key, **kwargs)
    return get_text(key, resolve_language_code(language), **kwargs)


class ExpiryNotifier:
    """Sends each identity at most one expiry notice per process lifetime."""

    def __init__(self, platform: ChatPlatform, delay: float = 5.0) -> None:
        self._platform = platform
        self._delay = delay
        self._notified: set[int] = set()
        self._reminded: set[int] = set()
        self._pending: set[asyncio.Task] = set()

    @property
    def notified(self) -> frozenset[int]:
        return frozenset(self._notified)

    @property
    def pending(self) -> int:
        return len(self._pending)

    def schedule_expiry_notice(self, telegram_id: int, language: Optional[str] = None) -> bool:
        """Queue a delayed notice; returns False when this identity was already notified."""
        if telegram_id in self._notified:
            logger.debug("User %s was already notified, not scheduling another notice", telegram_id)
            return False
        # Claimed at scheduling time so two passes cannot both queue a notice.
        self._notified.add(telegram_id)
        task = asyncio.create_task(self._deliver_notice(telegram_id, language))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return True

    async def _deliver_notice(self, telegram_id: int, language: Optional[str]) -> None:
        await asyncio.sleep(self._delay)
        try:
            await self._platform.send_message(telegram_id, _render("expiry_notice", language))
        except TelegramAPIError as exc:
            logger.warning("Failed to send expiry message to %s: %s", telegram_id, exc)
            return
        except Exception as exc:
            logger.exception("Failed to send expiry message to %s: %s", telegram_id, exc)
            return
        logger.info("Expiry message sent to %s", telegram_id)

    async def send_reminder(self, telegram_id: int, language: Optional[str], expires_on: date) -> bool:
        if telegram_id in self._reminded:
            return False
        text = _render("expiry_reminder", language, date=expires_on.isoformat())
        try:
            await self._platform.send_message(telegram_id, text)
        except TelegramAPIError as exc:
            logger.warning("Failed to send reminder to %s: %s", telegram_id, exc)
            return False
        self._reminded.add(telegram_id)
        logger.info("Reminder sent to %s (expires %s)", telegram_id, expires_on)
        return True

    async def drain(self) -> None:
        """Wait for every queued notice to be delivered (or to fail)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
