from __future__ import annotations

import logging

from aiogram.enums import ChatMemberStatus
from aiogram.exceptions import TelegramAPIError

from bot.access.platform import ChatPlatform
from logging_config import register_log_translations

logger = logging.getLogger(__name__)

register_log_translations(
    {
        "User %s is in group %s": {
            "ar": "المستخدم %s موجود في المجموعة %s",
        },
        "User %s is NOT in group %s (status: %s)": {
            "ar": "المستخدم %s ليس في المجموعة %s (الحالة: %s)",
        },
        "Error checking if user %s is in group %s: %s": {
            "ar": "خطأ أثناء التحقق من وجود المستخدم %s في المجموعة %s: %s",
        },
    }
)

_ACTIVE_STATUSES = frozenset({ChatMemberStatus.MEMBER.value, ChatMemberStatus.ADMINISTRATOR.value})


class MembershipVerifier:
    """Answers whether a user currently participates in a group.

    Any platform error is treated as "not a member". ``errors`` counts those
    failures so the caller can report a verification outage.
    """

    def __init__(self, platform: ChatPlatform) -> None:
        self._platform = platform
        self.errors = 0

    def reset_errors(self) -> int:
        count, self.errors = self.errors, 0
        return count

    async def is_member(self, group_id: int, user_id: int) -> bool:
        try:
            status = await self._platform.get_member_status(group_id, user_id)
        except TelegramAPIError as exc:
            self.errors += 1
            logger.warning("Error checking if user %s is in group %s: %s", user_id, group_id, exc)
            return False

        if status in _ACTIVE_STATUSES:
            logger.debug("User %s is in group %s", user_id, group_id)
            return True
        logger.debug("User %s is NOT in group %s (status: %s)", user_id, group_id, status)
        return False
