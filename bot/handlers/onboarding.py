import logging
from datetime import date
from typing import Any

from aiogram import F, Router
from aiogram.filters import Command, CommandStart
from aiogram.fsm.context import FSMContext
from aiogram.types import Message, ReplyKeyboardRemove

from bot.access import AccessGranter, SubscriberStore
from bot.errors import StoreQueryError
from bot.localization import GROUP_LANGUAGES, get_text, resolve_language_code
from bot.markups.client import join_groups_keyboard, language_keyboard
from bot.middlewares.onboarding import TOUCHED_AT_KEY
from bot.states import Onboarding
from logging_config import register_log_translations

logger = logging.getLogger(__name__)

register_log_translations(
    {
        "User entered username: %s": {
            "ar": "أدخل المستخدم اسم المستخدم: %s",
        },
        "Username %s is linked to %s, refusing chat %s": {
            "ar": "اسم المستخدم %s مرتبط بـ %s، تم رفض المحادثة %s",
        },
        "User %s selected language: %s": {
            "ar": "اختار المستخدم %s اللغة: %s",
        },
        "Sent %s invite links to %s": {
            "ar": "تم إرسال %s روابط دعوة إلى %s",
        },
    }
)


def onboarding_router() -> Router:
    router = Router(name="onboarding")
    router.message.filter(F.chat.type == "private")

    @router.message(CommandStart())
    async def start(message: Message, state: FSMContext, language: str) -> None:
        await state.clear()
        await state.set_state(Onboarding.waiting_for_username)
        await state.update_data({TOUCHED_AT_KEY: message.date.timestamp()})
        await message.answer(get_text("onboarding_welcome", language))

    @router.message(Command("cancel"))
    async def cancel(message: Message, state: FSMContext, language: str) -> None:
        await state.clear()
        await message.answer(get_text("onboarding_cancelled", language), reply_markup=ReplyKeyboardRemove())

    @router.message(Onboarding.waiting_for_username, F.text)
    async def receive_username(
        message: Message,
        state: FSMContext,
        store: SubscriberStore,
        language: str,
    ) -> Any:
        username = message.text.strip()
        chat_id = message.chat.id
        logger.info("User entered username: %s", username)

        try:
            user = await store.get_user_by_username(username)
            if user is None:
                await state.clear()
                return await message.answer(get_text("account_not_found", language))

            if user.telegram_id and user.telegram_id != chat_id:
                logger.warning("Username %s is linked to %s, refusing chat %s", username, user.telegram_id, chat_id)
                await state.clear()
                return await message.answer(get_text("account_linked_elsewhere", language))

            linked = await store.link_telegram_id(username, chat_id, date.today())
        except StoreQueryError:
            await state.clear()
            return await message.answer(get_text("service_unavailable", language))

        if not linked:
            await state.clear()
            return await message.answer(get_text("link_failed", language))

        await state.update_data(username=username, plan=user.plan)
        await state.set_state(Onboarding.waiting_for_language)
        await message.answer(get_text("link_success", language))
        return await message.answer(get_text("language_prompt", language), reply_markup=language_keyboard())

    @router.message(Onboarding.waiting_for_language, F.text)
    async def receive_language(
        message: Message,
        state: FSMContext,
        store: SubscriberStore,
        granter: AccessGranter,
        language: str,
    ) -> Any:
        choice = message.text.strip()
        payload = await state.get_data()
        await state.clear()

        if choice not in GROUP_LANGUAGES:
            return await message.answer(get_text("language_invalid", language), reply_markup=ReplyKeyboardRemove())

        logger.info("User %s selected language: %s", message.chat.id, choice)
        reply_language = resolve_language_code(choice)
        try:
            await store.set_language(payload["username"], choice)
            groups = await granter.grant(payload["plan"], choice, message.chat.id)
        except StoreQueryError:
            return await message.answer(get_text("service_unavailable", reply_language), reply_markup=ReplyKeyboardRemove())

        if not groups:
            return await message.answer(
                get_text("no_groups", reply_language, language=choice),
                reply_markup=ReplyKeyboardRemove(),
            )

        logger.info("Sent %s invite links to %s", len(groups), message.chat.id)
        return await message.answer(
            get_text("join_groups_prompt", reply_language),
            reply_markup=join_groups_keyboard(groups, reply_language),
        )

    return router
