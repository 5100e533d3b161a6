from __future__ import annotations

import logging
import time
from typing import Any, Awaitable, Callable, Dict

from aiogram import BaseMiddleware
from aiogram.exceptions import TelegramRetryAfter
from aiogram.fsm.context import FSMContext
from aiogram.types import Message

from bot.localization import get_text, resolve_language_code
from logging_config import register_log_translations

logger = logging.getLogger(__name__)

register_log_translations(
    {
        "Onboarding session for chat %s expired after %ss": {
            "ar": "انتهت جلسة الربط للمحادثة %s بعد %s ثانية",
        },
        "Failed to send %s to user %s": {
            "ar": "فشل إرسال %s إلى المستخدم %s",
        },
        "Flood control while sending %s to user %s. Retry after %ss": {
            "ar": "تحكم في الإغراق أثناء إرسال %s إلى المستخدم %s. إعادة المحاولة بعد %s ثانية",
        },
    }
)

# Commands that restart or abort the dialogue are never blocked by an expired session.
_ALWAYS_ALLOWED_COMMANDS = {"start", "cancel"}
TOUCHED_AT_KEY = "touched_at"


def _extract_command(message: Message) -> str | None:
    text = message.text or message.caption
    if not text or not text.startswith('/'):
        return None
    command = text.split()[0].split('@')[0]
    return command[1:].lower()


async def _safe_send(coro, user_id: int, description: str) -> None:
    try:
        await coro
    except TelegramRetryAfter as exc:
        logger.warning(
            "Flood control while sending %s to user %s. Retry after %ss",
            description,
            user_id,
            exc.retry_after,
        )
    except Exception:
        logger.exception("Failed to send %s to user %s", description, user_id)


class OnboardingMiddleware(BaseMiddleware):
    """Resolve the reply language and expire idle onboarding conversations.

    Each accepted step refreshes ``touched_at`` in the FSM data; a message
    arriving more than ``timeout`` seconds after the last step clears the
    conversation instead of reaching the handler.
    """

    def __init__(self, timeout: float, clock: Callable[[], float] = time.time) -> None:
        self._timeout = timeout
        self._clock = clock

    async def __call__(
        self,
        handler: Callable[[Any, Dict[str, Any]], Awaitable[Any]],
        event: Message,
        data: Dict[str, Any],
    ) -> Any:
        state: FSMContext | None = data.get("state")
        from_user = getattr(event, "from_user", None)
        language = resolve_language_code(getattr(from_user, "language_code", None))
        data["language"] = language

        if state is None:
            return await handler(event, data)

        if await state.get_state() is None or _extract_command(event) in _ALWAYS_ALLOWED_COMMANDS:
            return await handler(event, data)

        payload = await state.get_data()
        now = self._clock()
        touched_at = payload.get(TOUCHED_AT_KEY)
        if self._timeout > 0 and touched_at is not None and now - touched_at > self._timeout:
            logger.info("Onboarding session for chat %s expired after %ss", event.chat.id, self._timeout)
            await state.clear()
            await _safe_send(
                event.answer(get_text("onboarding_expired", language)),
                event.chat.id,
                "expiry notice",
            )
            return None

        await state.update_data({TOUCHED_AT_KEY: now})
        return await handler(event, data)
