"""
Group access bot: links website subscribers to Telegram and removes them
from the private groups once their subscription expires.
"""

import argparse
import asyncio
import logging
import sys

from aiohttp import web
from aiogram.client.session.aiohttp import AiohttpSession
from aiogram.fsm.storage.memory import MemoryStorage

from logging_config import (
    available_log_languages,
    get_default_log_language,
    register_log_translations,
    setup_logging,
)

from config import (
    TOKEN,
    DATABASE_URL,
    RUN_VIA_POLLING,
    BASE_URL,
    MAIN_BOT_PATH,
    WEB_SERVER_HOST,
    WEB_SERVER_PORT,
    LOG_LANGUAGE,
    ENFORCEMENT_ENABLED,
    ENFORCEMENT_INTERVAL_SECONDS,
    ENFORCEMENT_SETTLE_SECONDS,
    EXPIRY_NOTICE_DELAY_SECONDS,
    EXPIRY_REMINDER_DAYS,
    ENFORCEMENT_MARK_ABSENT,
    ONBOARDING_TIMEOUT_SECONDS,
)

register_log_translations(
    {
        "Bot starting up in POLLING mode...": {
            "ar": "بدء تشغيل البوت في وضع الاستطلاع...",
        },
        "Bot authorized as @%s (ID: %s)": {
            "ar": "تم تفويض البوت باسم @%s (المعرف: %s)",
        },
        "Database tables created/ensured.": {
            "ar": "تم إنشاء جداول قاعدة البيانات أو التحقق منها.",
        },
        "Enforcement loop started (every %ss, settle delay %ss).": {
            "ar": "بدأت حلقة التحقق (كل %s ثانية، مهلة الانتظار %s ثانية).",
        },
        "Enforcement loop disabled by configuration.": {
            "ar": "حلقة التحقق معطلة عبر الإعدادات.",
        },
        "Stopping enforcement loop...": {
            "ar": "إيقاف حلقة التحقق...",
        },
        "Shutting down, closing database connections...": {
            "ar": "إيقاف التشغيل، إغلاق اتصالات قاعدة البيانات...",
        },
        "Database connections closed.": {
            "ar": "تم إغلاق اتصالات قاعدة البيانات.",
        },
        "Bot starting up in WEBHOOK mode...": {
            "ar": "بدء تشغيل البوت في وضع webhook...",
        },
        "Setting webhook to: %s": {
            "ar": "تعيين webhook إلى: %s",
        },
        "Webhook deleted": {
            "ar": "تم حذف webhook",
        },
        "Starting polling...": {
            "ar": "بدء الاستطلاع...",
        },
        "Polling finished or interrupted. Closing bot session.": {
            "ar": "انتهى الاستطلاع أو توقف. إغلاق جلسة البوت.",
        },
        "Starting web server on %s:%s": {
            "ar": "بدء خادم الويب على %s:%s",
        },
        "Running a single enforcement pass.": {
            "ar": "تشغيل عملية تحقق واحدة.",
        },
    }
)

logger = logging.getLogger(__name__)


def _normalize_log_language(candidate: str | None) -> str:
    """Validate and normalize a log language candidate."""

    available = {lang.lower() for lang in available_log_languages()}
    if candidate:
        normalized = candidate.strip().lower()
        if normalized in available:
            return normalized
    return get_default_log_language()


def configure_logging(*, language: str | None = None, level: str | int | None = logging.INFO) -> str:
    """Set up logging once per process and return the active language."""

    effective_language = _normalize_log_language(language or LOG_LANGUAGE)
    setup_logging(level=level, language=effective_language)
    return effective_language


def parse_cli_args(argv: list[str] | None = None) -> tuple[argparse.Namespace, list[str]]:
    """Parse and return known CLI arguments plus unhandled extras."""

    parser = argparse.ArgumentParser(description="Run the subscription group access bot")
    parser.add_argument(
        "--log-language",
        dest="log_language",
        choices=available_log_languages(),
        metavar="LANG",
        help="Override log language (default from .env)",
    )
    parser.add_argument(
        "--log-level",
        dest="log_level",
        metavar="LEVEL",
        help="Override base log level (name or number)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run one enforcement pass and exit instead of starting the bot",
    )
    return parser.parse_known_args(argv)


# Configure logging immediately for library consumers; main block may override later.
configure_logging(language=LOG_LANGUAGE, level=logging.INFO)

from aiogram import Bot, Dispatcher
from aiogram.types import Update

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from bot.access import AccessGranter, ChatPlatform, SubscriberStore
from bot.enforcement import EnforcementLoop, EnforcementSettings
from bot.handlers import setup_routers
from bot.middlewares import OnboardingMiddleware

from db import Base

_USING_SQLITE = DATABASE_URL.startswith("sqlite+aiosqlite")

_engine_kwargs: dict[str, object] = {}
if _USING_SQLITE:
    _engine_kwargs["connect_args"] = {"timeout": 30}
    _engine_kwargs["poolclass"] = NullPool
else:
    _engine_kwargs["pool_size"] = 10
    _engine_kwargs["pool_pre_ping"] = True

_engine = create_async_engine(DATABASE_URL, **_engine_kwargs)
_sessionmaker = async_sessionmaker(_engine, expire_on_commit=False, class_=AsyncSession)
_store = SubscriberStore(_sessionmaker)


def _apply_sqlite_pragmas(sync_conn) -> None:
    """Enable WAL mode and generous timeouts for concurrent SQLite access."""
    sync_conn.exec_driver_sql("PRAGMA journal_mode=WAL")
    sync_conn.exec_driver_sql("PRAGMA synchronous=NORMAL")
    sync_conn.exec_driver_sql("PRAGMA busy_timeout=30000")


def _enforcement_settings() -> EnforcementSettings:
    return EnforcementSettings(
        interval=ENFORCEMENT_INTERVAL_SECONDS,
        settle_delay=ENFORCEMENT_SETTLE_SECONDS,
        notice_delay=EXPIRY_NOTICE_DELAY_SECONDS,
        reminder_days=EXPIRY_REMINDER_DAYS,
        mark_absent=ENFORCEMENT_MARK_ABSENT,
    )


async def _ensure_schema() -> None:
    async with _engine.begin() as conn:
        if _USING_SQLITE:
            await conn.run_sync(_apply_sqlite_pragmas)
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created/ensured.")


async def on_startup(bot: Bot, dispatcher: Dispatcher) -> None:
    bot_info = await bot.get_me()
    logger.info("Bot authorized as @%s (ID: %s)", bot_info.username, bot_info.id)
    await _ensure_schema()

    if not ENFORCEMENT_ENABLED:
        logger.info("Enforcement loop disabled by configuration.")
        return
    enforcement = EnforcementLoop(_store, dispatcher["platform"], settings=_enforcement_settings())
    dispatcher["enforcement"] = enforcement
    enforcement.start()
    logger.info(
        "Enforcement loop started (every %ss, settle delay %ss).",
        ENFORCEMENT_INTERVAL_SECONDS,
        ENFORCEMENT_SETTLE_SECONDS,
    )


async def on_shutdown(dispatcher: Dispatcher) -> None:
    enforcement: EnforcementLoop | None = dispatcher.workflow_data.get("enforcement")
    if enforcement is not None:
        logger.info("Stopping enforcement loop...")
        await enforcement.stop()
    logger.info("Shutting down, closing database connections...")
    await _engine.dispose()
    logger.info("Database connections closed.")


async def on_startup_webhook(bot: Bot, dispatcher: Dispatcher) -> None:
    logger.info("Bot starting up in WEBHOOK mode...")
    webhook_url = f"{BASE_URL}{MAIN_BOT_PATH}"
    logger.info("Setting webhook to: %s", webhook_url)
    await bot.delete_webhook(drop_pending_updates=True)
    await bot.set_webhook(webhook_url, allowed_updates=list(Update.model_fields.keys()))
    await on_startup(bot, dispatcher)


async def on_shutdown_webhook(bot: Bot, dispatcher: Dispatcher) -> None:
    await bot.delete_webhook(drop_pending_updates=True)
    logger.info("Webhook deleted")
    await on_shutdown(dispatcher)


def build_dispatcher(bot: Bot) -> Dispatcher:
    platform = ChatPlatform(bot)
    dp = Dispatcher(storage=MemoryStorage())
    dp["store"] = _store
    dp["platform"] = platform
    dp["granter"] = AccessGranter(_store, platform)

    dp.message.middleware(OnboardingMiddleware(ONBOARDING_TIMEOUT_SECONDS))
    dp.include_router(setup_routers())
    return dp


async def main_polling():
    logger.info("Bot starting up in POLLING mode...")
    local_bot = Bot(token=TOKEN, session=AiohttpSession())
    dp = build_dispatcher(local_bot)
    dp.startup.register(on_startup)
    dp.shutdown.register(on_shutdown)

    try:
        logger.info("Starting polling...")
        await dp.start_polling(local_bot, allowed_updates=dp.resolve_used_update_types())
    finally:
        logger.info("Polling finished or interrupted. Closing bot session.")
        await local_bot.session.close()


def main_webhook():
    from aiogram.webhook.aiohttp_server import SimpleRequestHandler, setup_application

    local_bot = Bot(token=TOKEN, session=AiohttpSession())
    dp = build_dispatcher(local_bot)
    dp.startup.register(on_startup_webhook)
    dp.shutdown.register(on_shutdown_webhook)

    app = web.Application()
    SimpleRequestHandler(dispatcher=dp, bot=local_bot).register(app, path=MAIN_BOT_PATH)
    # Emits the dispatcher startup/shutdown hooks and closes the bot session on cleanup.
    setup_application(app, dp, bot=local_bot)

    logger.info("Starting web server on %s:%s", WEB_SERVER_HOST, WEB_SERVER_PORT)
    web.run_app(app, host=WEB_SERVER_HOST, port=WEB_SERVER_PORT)


async def run_single_pass() -> None:
    logger.info("Running a single enforcement pass.")
    local_bot = Bot(token=TOKEN, session=AiohttpSession())
    try:
        await _ensure_schema()
        enforcement = EnforcementLoop(_store, ChatPlatform(local_bot), settings=_enforcement_settings())
        await enforcement.run_once()
        await enforcement.notifier.drain()
    finally:
        await local_bot.session.close()
        await _engine.dispose()


if __name__ == "__main__":
    args, remaining_argv = parse_cli_args()
    sys.argv = [sys.argv[0], *remaining_argv]

    configure_logging(language=args.log_language, level=args.log_level or logging.INFO)

    if args.once:
        asyncio.run(run_single_pass())
    elif RUN_VIA_POLLING:
        asyncio.run(main_polling())
    else:
        if not BASE_URL or BASE_URL == "https://example.com":
            logger.error("BASE_URL is not configured correctly for webhook mode. Please set it in .env. Exiting.")
            sys.exit(1)
        if not MAIN_BOT_PATH:
            logger.error("MAIN_BOT_PATH is not configured. Please set it in .env. Exiting.")
            sys.exit(1)
        main_webhook()
