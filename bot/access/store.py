"""Typed accessor over the subscriber and group tables."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date
from typing import AsyncIterator, Optional

from sqlalchemy import exists, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bot.errors import StoreQueryError
from db import Subscriber, SubscriberLanguage, TelegramGroup
from logging_config import register_log_translations

logger = logging.getLogger(__name__)

register_log_translations(
    {
        "Store operation %s failed: %s": {
            "ar": "فشلت عملية قاعدة البيانات %s: %s",
        },
        "No user found for username: %s": {
            "ar": "لم يتم العثور على مستخدم باسم: %s",
        },
        "User %s has renewed, resetting removed flag": {
            "ar": "قام المستخدم %s بالتجديد، تتم إعادة تعيين علامة الإزالة",
        },
        "Telegram ID updated for user: %s (ID: %s)": {
            "ar": "تم تحديث معرف تيليجرام للمستخدم: %s (المعرف: %s)",
        },
        "No groups found for plan %s, language %s": {
            "ar": "لا توجد مجموعات للباقة %s واللغة %s",
        },
        "User %s was not updated. Already marked?": {
            "ar": "لم يتم تحديث المستخدم %s. هل تم تعليمه مسبقاً؟",
        },
    }
)


@dataclass(frozen=True)
class SubscriberRecord:
    username: str
    telegram_id: Optional[int]
    plan: str
    expiration_date: date
    removed: bool
    language: Optional[str]


@dataclass(frozen=True)
class GroupRecord:
    group_id: int
    name: str
    invite_link: str
    plan: str
    language: str


@dataclass(frozen=True)
class ExpiredSubscriber:
    telegram_id: int
    plan: str
    language: Optional[str]
    expiration_date: date


def _to_subscriber(row: Subscriber, language: Optional[str]) -> SubscriberRecord:
    return SubscriberRecord(
        username=row.username,
        telegram_id=row.telegram_id,
        plan=row.payment_plan,
        expiration_date=row.expiration_date,
        removed=bool(row.removed_from_groups),
        language=language,
    )


def _to_group(row: TelegramGroup) -> GroupRecord:
    return GroupRecord(
        group_id=row.group_id,
        name=row.group_name,
        invite_link=row.invite_link,
        plan=row.package,
        language=row.language,
    )


def _to_expired(row: Subscriber, language: Optional[str]) -> ExpiredSubscriber:
    return ExpiredSubscriber(
        telegram_id=row.telegram_id,
        plan=row.payment_plan,
        language=language,
        expiration_date=row.expiration_date,
    )


def _with_language():
    return select(Subscriber, SubscriberLanguage.language).outerjoin(
        SubscriberLanguage, SubscriberLanguage.username == Subscriber.username
    )


class SubscriberStore:
    """Each call runs in its own session and commits immediately."""

    def __init__(self, sessionmaker: async_sessionmaker) -> None:
        self._sessionmaker = sessionmaker

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._sessionmaker() as session:
                yield session
        except SQLAlchemyError as exc:
            logger.error("Store operation %s failed: %s", operation, exc)
            raise StoreQueryError(operation, exc) from exc

    async def get_user_by_username(self, username: str) -> Optional[SubscriberRecord]:
        async with self._session("get_user_by_username") as session:
            result = await session.execute(_with_language().where(Subscriber.username == username))
            found = result.first()
        if found is None:
            logger.info("No user found for username: %s", username)
            return None
        return _to_subscriber(*found)

    async def get_groups(self, plan: str, language: str) -> list[GroupRecord]:
        async with self._session("get_groups") as session:
            rows = await session.scalars(
                select(TelegramGroup)
                .where(TelegramGroup.package == plan, TelegramGroup.language == language)
                .order_by(TelegramGroup.group_id)
            )
            groups = [_to_group(row) for row in rows]
        if not groups:
            logger.info("No groups found for plan %s, language %s", plan, language)
        return groups

    async def get_expired(self, today: date) -> list[ExpiredSubscriber]:
        """Linked, not-yet-removed subscribers whose expiration date is before ``today``."""
        async with self._session("get_expired") as session:
            result = await session.execute(
                _with_language()
                .where(
                    Subscriber.expiration_date < today,
                    Subscriber.telegram_id.is_not(None),
                    Subscriber.removed_from_groups == 0,
                )
                .order_by(Subscriber.expiration_date)
            )
            return [_to_expired(row, language) for row, language in result]

    async def get_expiring_on(self, day: date) -> list[ExpiredSubscriber]:
        async with self._session("get_expiring_on") as session:
            result = await session.execute(
                _with_language().where(
                    Subscriber.expiration_date == day,
                    Subscriber.telegram_id.is_not(None),
                    Subscriber.removed_from_groups == 0,
                )
            )
            return [_to_expired(row, language) for row, language in result]

    async def link_telegram_id(self, username: str, telegram_id: int, today: date) -> bool:
        """Store the Telegram identity, clearing the removed flag only after a renewal."""
        async with self._session("link_telegram_id") as session:
            row = await session.scalar(
                select(Subscriber).where(Subscriber.username == username)
            )
            if row is None:
                logger.info("No user found for username: %s", username)
                return False

            values: dict[str, object] = {"telegram_id": telegram_id}
            if row.expiration_date >= today and row.removed_from_groups == 1:
                logger.info("User %s has renewed, resetting removed flag", username)
                values["removed_from_groups"] = 0

            await session.execute(
                update(Subscriber).where(Subscriber.username == username).values(**values)
            )
            await session.commit()
        logger.info("Telegram ID updated for user: %s (ID: %s)", username, telegram_id)
        return True

    async def set_language(self, username: str, language: str) -> None:
        """Remember the group language chosen during onboarding."""
        async with self._session("set_language") as session:
            row = await session.get(SubscriberLanguage, username)
            if row is None:
                session.add(SubscriberLanguage(username=username, language=language))
            else:
                row.language = language
            await session.commit()

    async def mark_removed(self, telegram_id: int) -> int:
        """Set the removed flag; returns the number of rows that changed."""
        async with self._session("mark_removed") as session:
            result = await session.execute(
                update(Subscriber)
                .where(
                    Subscriber.telegram_id == telegram_id,
                    Subscriber.removed_from_groups == 0,
                )
                .values(removed_from_groups=1)
            )
            await session.commit()
        if result.rowcount == 0:
            logger.warning("User %s was not updated. Already marked?", telegram_id)
        return result.rowcount

    async def has_been_removed(self, telegram_id: int) -> bool:
        async with self._session("has_been_removed") as session:
            flagged = await session.scalar(
                select(
                    exists().where(
                        Subscriber.telegram_id == telegram_id,
                        Subscriber.removed_from_groups == 1,
                    )
                )
            )
        return bool(flagged)
