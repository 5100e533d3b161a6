"""Invite-link issuing for a subscriber's plan and language."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from aiogram.exceptions import TelegramAPIError

from bot.access.platform import ChatPlatform
from bot.access.store import SubscriberStore
from logging_config import register_log_translations

logger = logging.getLogger(__name__)

register_log_translations(
    {
        "Unbanned user %s from group %s": {
            "ar": "تم رفع الحظر عن المستخدم %s في المجموعة %s",
        },
        "Failed to unban user %s from %s: %s": {
            "ar": "فشل رفع الحظر عن المستخدم %s في %s: %s",
        },
    }
)


@dataclass(frozen=True)
class GroupAccess:
    group_id: int
    name: str
    invite_link: str


class AccessGranter:
    def __init__(self, store: SubscriberStore, platform: ChatPlatform) -> None:
        self._store = store
        self._platform = platform

    async def grant(self, plan: str, language: str, user_id: int) -> list[GroupAccess]:
        """Return invite links for every group of ``(plan, language)``.

        A stale ban from an earlier removal would block the invite link, so
        each group gets a lift-ban-if-present first. Unban failures are
        logged and the link is still returned.
        """
        groups = await self._store.get_groups(plan, language)
        access: list[GroupAccess] = []
        for group in groups:
            try:
                await self._platform.lift_ban(group.group_id, user_id)
                logger.info("Unbanned user %s from group %s", user_id, group.name)
            except TelegramAPIError as exc:
                logger.warning("Failed to unban user %s from %s: %s", user_id, group.name, exc)
            access.append(
                GroupAccess(group_id=group.group_id, name=group.name, invite_link=group.invite_link)
            )
        return access
