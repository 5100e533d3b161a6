"""Telegram operations used for group access control."""

from __future__ import annotations

import logging
from typing import Any

from aiogram import Bot

logger = logging.getLogger(__name__)


class ChatPlatform:
    """Thin wrapper over :class:`aiogram.Bot` exposing only the calls we need.

    aiogram's ``TelegramAPIError`` hierarchy propagates from every method;
    callers decide whether a failure is fatal.
    """

    def __init__(self, bot: Bot) -> None:
        self._bot = bot

    async def send_message(self, chat_id: int, text: str, **kwargs: Any) -> None:
        await self._bot.send_message(chat_id, text, **kwargs)

    async def get_member_status(self, group_id: int, user_id: int) -> str:
        member = await self._bot.get_chat_member(chat_id=group_id, user_id=user_id)
        # aiogram hands back a ChatMemberStatus enum
        return getattr(member.status, "value", member.status)

    async def lift_ban(self, group_id: int, user_id: int) -> None:
        await self._bot.unban_chat_member(chat_id=group_id, user_id=user_id, only_if_banned=True)

    async def kick_without_ban(self, group_id: int, user_id: int) -> None:
        """Remove a member while leaving them free to re-join later.

        The Bot API has no plain kick: ban, then unban. The unban is attempted
        even when the ban raised so a partial failure never leaves a
        permanent block behind.
        """
        try:
            await self._bot.ban_chat_member(chat_id=group_id, user_id=user_id)
        finally:
            await self._bot.unban_chat_member(chat_id=group_id, user_id=user_id, only_if_banned=True)
