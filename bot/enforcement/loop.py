"""Periodic removal of expired subscribers from their private groups."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional

from aiogram.exceptions import TelegramAPIError

from bot.access.membership import MembershipVerifier
from bot.access.platform import ChatPlatform
from bot.access.store import ExpiredSubscriber, GroupRecord, SubscriberStore
from bot.enforcement.notices import ExpiryNotifier
from bot.errors import InvariantViolation, StoreQueryError
from bot.localization import GROUP_LANGUAGES
from logging_config import register_log_translations

logger = logging.getLogger(__name__)

register_log_translations(
    {
        "Enforcement pass already running. Skipping duplicate trigger.": {
            "ar": "عملية التحقق قيد التشغيل بالفعل. تم تجاهل التشغيل المكرر.",
        },
        "Running enforcement pass...": {
            "ar": "بدء عملية التحقق من الاشتراكات المنتهية...",
        },
        "Found %s expired users.": {
            "ar": "تم العثور على %s مستخدمين منتهية اشتراكاتهم.",
        },
        "User %s has already been removed. Skipping.": {
            "ar": "تمت إزالة المستخدم %s مسبقاً. تم التخطي.",
        },
        "Waiting %ss before acting on user %s": {
            "ar": "الانتظار %s ثانية قبل معالجة المستخدم %s",
        },
        "Removing %s from %s (ID: %s)": {
            "ar": "إزالة %s من %s (المعرف: %s)",
        },
        "Successfully removed %s from %s": {
            "ar": "تمت إزالة %s من %s بنجاح",
        },
        "User %s is not in %s, skipping removal.": {
            "ar": "المستخدم %s ليس في %s، تم تخطي الإزالة.",
        },
        "Failed to remove %s from %s: %s": {
            "ar": "فشلت إزالة %s من %s: %s",
        },
        "Marked %s as removed from all groups.": {
            "ar": "تم تعليم %s كمُزال من جميع المجموعات.",
        },
        "User %s was not removed from any group; will retry next pass.": {
            "ar": "لم تتم إزالة المستخدم %s من أي مجموعة؛ ستتم إعادة المحاولة في العملية التالية.",
        },
        "Failed to process expired user %s: %s": {
            "ar": "فشلت معالجة المستخدم المنتهي %s: %s",
        },
        "Enforcement pass aborted: %s": {
            "ar": "تم إيقاف عملية التحقق: %s",
        },
        "Membership checks failed %s times during this pass; affected groups were not cleaned up.": {
            "ar": "فشل التحقق من العضوية %s مرات خلال هذه العملية؛ لم يتم تنظيف المجموعات المتأثرة.",
        },
        "Enforcement pass finished: %s candidates, %s removed, %s unresolved, %s skipped, %s failed.": {
            "ar": "انتهت عملية التحقق: %s مرشحين، %s تمت إزالتهم، %s دون حل، %s تم تخطيهم، %s فشلوا.",
        },
        "Stop requested, leaving remaining users for the next pass.": {
            "ar": "تم طلب الإيقاف، سيتم ترك المستخدمين المتبقين للعملية التالية.",
        },
    }
)


class RunState(Enum):
    IDLE = "idle"
    RUNNING = "running"


class RemovalOutcome(Enum):
    REMOVED = "removed"
    ABSENT = "absent"
    FAILED = "failed"


@dataclass(frozen=True)
class EnforcementSettings:
    interval: float = 300.0
    settle_delay: float = 120.0
    notice_delay: float = 5.0
    reminder_days: int = 5
    # Mark subscribers removed when they are absent everywhere and every check succeeded.
    mark_absent: bool = False


@dataclass
class RunReport:
    started_at: datetime
    candidates: int = 0
    removed: list[int] = field(default_factory=list)
    unresolved: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)
    verification_errors: int = 0
    reminders: int = 0
    aborted: bool = False
    interrupted: bool = False


class EnforcementLoop:
    """Owns the run guard, the notified-set and the fixed-delay schedule.

    One pass: fetch expired subscribers, re-check the removed flag, wait the
    settle delay, then for every group of the subscriber's plan (both
    languages) remove them if they are still a member. Subscribers are
    handled one at a time. The next pass is scheduled ``interval`` seconds
    after the previous one finished, whatever its outcome.
    """

    def __init__(
        self,
        store: SubscriberStore,
        platform: ChatPlatform,
        *,
        settings: EnforcementSettings | None = None,
        verifier: MembershipVerifier | None = None,
        notifier: ExpiryNotifier | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._store = store
        self._platform = platform
        self._settings = settings or EnforcementSettings()
        self._verifier = verifier or MembershipVerifier(platform)
        self._notifier = notifier or ExpiryNotifier(platform, delay=self._settings.notice_delay)
        self._today = today
        self._state = RunState.IDLE
        self._stopping = asyncio.Event()
        self._worker: Optional[asyncio.Task] = None
        self.last_report: Optional[RunReport] = None

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def notifier(self) -> ExpiryNotifier:
        return self._notifier

    def start(self) -> asyncio.Task:
        if self._worker is not None and not self._worker.done():
            return self._worker
        self._stopping.clear()
        self._worker = asyncio.create_task(self._run_forever(), name="subscription-enforcement")
        return self._worker

    async def stop(self) -> None:
        """Ask the worker to exit at the next safe point and wait for it."""
        self._stopping.set()
        if self._worker is not None:
            await self._worker
            self._worker = None
        await self._notifier.drain()

    async def _run_forever(self) -> None:
        while not self._stopping.is_set():
            await self.run_once()
            if await self._wait_or_stop(self._settings.interval):
                break

    async def _wait_or_stop(self, delay: float) -> bool:
        """Sleep for ``delay`` seconds; True if a stop was requested meanwhile."""
        if delay <= 0:
            return self._stopping.is_set()
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return False
        return True

    async def run_once(self) -> Optional[RunReport]:
        """Execute one pass. Returns None if a pass is already in progress."""
        if self._state is RunState.RUNNING:
            logger.warning("Enforcement pass already running. Skipping duplicate trigger.")
            return None

        self._state = RunState.RUNNING
        report = RunReport(started_at=datetime.now(timezone.utc))
        self._verifier.reset_errors()
        logger.info("Running enforcement pass...")
        try:
            today = self._today()
            expired = await self._store.get_expired(today)
            report.candidates = len(expired)
            logger.info("Found %s expired users.", len(expired))

            for subscriber in expired:
                if self._stopping.is_set():
                    logger.info("Stop requested, leaving remaining users for the next pass.")
                    report.interrupted = True
                    break
                await self._process_subscriber(subscriber, report)

            await self._send_reminders(today, report)
        except Exception as exc:
            logger.exception("Enforcement pass aborted: %s", exc)
            report.aborted = True
        finally:
            report.verification_errors = self._verifier.reset_errors()
            if report.verification_errors:
                logger.warning(
                    "Membership checks failed %s times during this pass; affected groups were not cleaned up.",
                    report.verification_errors,
                )
            self._state = RunState.IDLE

        logger.info(
            "Enforcement pass finished: %s candidates, %s removed, %s unresolved, %s skipped, %s failed.",
            report.candidates,
            len(report.removed),
            len(report.unresolved),
            len(report.skipped),
            len(report.failed),
        )
        self.last_report = report
        return report

    async def _candidate_groups(self, plan: str) -> list[GroupRecord]:
        # The stored language may not cover an earlier onboarding in the other language.
        groups: dict[int, GroupRecord] = {}
        for language in GROUP_LANGUAGES:
            for group in await self._store.get_groups(plan, language):
                groups.setdefault(group.group_id, group)
        return list(groups.values())

    async def _process_subscriber(self, subscriber: ExpiredSubscriber, report: RunReport) -> None:
        telegram_id = subscriber.telegram_id
        try:
            if telegram_id is None:
                raise InvariantViolation(f"expired subscriber on plan {subscriber.plan!r} has no Telegram ID")

            if await self._store.has_been_removed(telegram_id):
                logger.info("User %s has already been removed. Skipping.", telegram_id)
                report.skipped.append(telegram_id)
                return

            logger.info("Waiting %ss before acting on user %s", self._settings.settle_delay, telegram_id)
            if await self._wait_or_stop(self._settings.settle_delay):
                report.interrupted = True
                report.unresolved.append(telegram_id)
                return

            errors_before = self._verifier.errors
            outcomes = [
                await self._remove_from_group(group, telegram_id)
                for group in await self._candidate_groups(subscriber.plan)
            ]
            removed_any = RemovalOutcome.REMOVED in outcomes

            # Only confirmed absence counts: no lookup errors and no failed removal.
            absent_everywhere = (
                self._settings.mark_absent
                and RemovalOutcome.FAILED not in outcomes
                and self._verifier.errors == errors_before
            )
            if removed_any or absent_everywhere:
                await self._store.mark_removed(telegram_id)
                logger.info("Marked %s as removed from all groups.", telegram_id)
                report.removed.append(telegram_id)
                self._notifier.schedule_expiry_notice(telegram_id, subscriber.language)
            else:
                logger.info("User %s was not removed from any group; will retry next pass.", telegram_id)
                report.unresolved.append(telegram_id)
        except InvariantViolation as exc:
            logger.error("Failed to process expired user %s: %s", telegram_id, exc)
            report.skipped.append(telegram_id)
        except Exception as exc:
            logger.exception("Failed to process expired user %s: %s", telegram_id, exc)
            report.failed.append(telegram_id)

    async def _remove_from_group(self, group: GroupRecord, telegram_id: int) -> RemovalOutcome:
        if not await self._verifier.is_member(group.group_id, telegram_id):
            logger.info("User %s is not in %s, skipping removal.", telegram_id, group.name)
            return RemovalOutcome.ABSENT
        try:
            logger.info("Removing %s from %s (ID: %s)", telegram_id, group.name, group.group_id)
            await self._platform.kick_without_ban(group.group_id, telegram_id)
        except TelegramAPIError as exc:
            logger.error("Failed to remove %s from %s: %s", telegram_id, group.name, exc)
            return RemovalOutcome.FAILED
        except Exception as exc:
            logger.exception("Failed to remove %s from %s: %s", telegram_id, group.name, exc)
            return RemovalOutcome.FAILED
        logger.info("Successfully removed %s from %s", telegram_id, group.name)
        return RemovalOutcome.REMOVED

    async def _send_reminders(self, today: date, report: RunReport) -> None:
        if self._settings.reminder_days <= 0:
            return
        try:
            expiring = await self._store.get_expiring_on(today + timedelta(days=self._settings.reminder_days))
        except StoreQueryError:
            # already logged by the store; reminders wait for the next pass
            return
        for subscriber in expiring:
            if await self._notifier.send_reminder(
                subscriber.telegram_id, subscriber.language, subscriber.expiration_date
            ):
                report.reminders += 1
