from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from aiogram.fsm.context import FSMContext
from aiogram.fsm.storage.base import StorageKey
from aiogram.fsm.storage.memory import MemoryStorage
from aiogram.types import InlineKeyboardMarkup, ReplyKeyboardMarkup

from bot.access import AccessGranter
from bot.handlers.onboarding import onboarding_router
from bot.localization import get_text
from bot.middlewares import OnboardingMiddleware
from bot.middlewares.onboarding import TOUCHED_AT_KEY
from bot.states import Onboarding
from db import Subscriber
from tests.conftest import TODAY, make_groups

CHAT_ID = 777


def _message(text, *, chat_id=CHAT_ID, language_code="en"):
    return SimpleNamespace(
        text=text,
        caption=None,
        chat=SimpleNamespace(id=chat_id, type="private"),
        from_user=SimpleNamespace(id=chat_id, language_code=language_code),
        date=datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc),
        answer=AsyncMock(),
    )


def _handler(name):
    router = onboarding_router()
    for handler in router.message.handlers:
        if handler.callback.__name__ == name:
            return handler.callback
    raise LookupError(name)


def _answers(message):
    return [call.args[0] for call in message.answer.await_args_list]


@pytest.fixture
def state():
    return FSMContext(storage=MemoryStorage(), key=StorageKey(bot_id=1, chat_id=CHAT_ID, user_id=CHAT_ID))


@pytest.fixture
async def alice(seed):
    await seed(
        Subscriber(
            username="alice",
            telegram_id=None,
            payment_plan="P1",
            expiration_date=TODAY + timedelta(days=30),
            removed_from_groups=0,
        ),
        *make_groups("P1"),
    )


async def test_start_asks_for_username(state):
    message = _message("/start")

    await _handler("start")(message, state=state, language="en")

    assert await state.get_state() == Onboarding.waiting_for_username.state
    assert _answers(message) == [get_text("onboarding_welcome", "en")]


async def test_unknown_username_ends_dialogue(state, store):
    await state.set_state(Onboarding.waiting_for_username)
    message = _message("ghost")

    await _handler("receive_username")(message, state=state, store=store, language="en")

    assert await state.get_state() is None
    assert _answers(message) == [get_text("account_not_found", "en")]


async def test_username_linked_to_another_account_is_refused(state, store, seed):
    await seed(
        Subscriber(username="bob", telegram_id=1, payment_plan="P1", expiration_date=TODAY, removed_from_groups=0)
    )
    await state.set_state(Onboarding.waiting_for_username)
    message = _message("bob")

    await _handler("receive_username")(message, state=state, store=store, language="en")

    assert _answers(message) == [get_text("account_linked_elsewhere", "en")]
    assert (await store.get_user_by_username("bob")).telegram_id == 1


async def test_full_dialogue_links_account_and_sends_invites(state, store, alice, fake_bot, platform):
    granter = AccessGranter(store, platform)
    await state.set_state(Onboarding.waiting_for_username)

    username_message = _message("  alice ")
    await _handler("receive_username")(username_message, state=state, store=store, language="en")

    assert await state.get_state() == Onboarding.waiting_for_language.state
    assert (await store.get_user_by_username("alice")).telegram_id == CHAT_ID
    prompt_call = username_message.answer.await_args_list[-1]
    assert isinstance(prompt_call.kwargs["reply_markup"], ReplyKeyboardMarkup)

    language_message = _message("Arabic")
    await _handler("receive_language")(
        language_message, state=state, store=store, granter=granter, language="en"
    )

    assert await state.get_state() is None
    user = await store.get_user_by_username("alice")
    assert user.language == "Arabic"
    reply = language_message.answer.await_args_list[-1]
    assert reply.args[0] == get_text("join_groups_prompt", "ar")
    markup = reply.kwargs["reply_markup"]
    assert isinstance(markup, InlineKeyboardMarkup)
    assert [row[0].url for row in markup.inline_keyboard] == ["https://t.me/+g1"]
    assert fake_bot.calls_named("unban_chat_member") == [("unban_chat_member", -1001, CHAT_ID, True)]


async def test_invalid_language_asks_to_restart(state, store, alice, platform):
    await state.set_state(Onboarding.waiting_for_language)
    await state.update_data(username="alice", plan="P1")
    message = _message("French")

    await _handler("receive_language")(
        message, state=state, store=store, granter=AccessGranter(store, platform), language="en"
    )

    assert await state.get_state() is None
    assert _answers(message) == [get_text("language_invalid", "en")]


async def test_no_groups_for_language(state, store, seed, platform):
    await seed(
        Subscriber(username="hank", payment_plan="P2", expiration_date=TODAY, removed_from_groups=0)
    )
    await state.set_state(Onboarding.waiting_for_language)
    await state.update_data(username="hank", plan="P2")
    message = _message("English")

    await _handler("receive_language")(
        message, state=state, store=store, granter=AccessGranter(store, platform), language="en"
    )

    assert _answers(message) == [get_text("no_groups", "en", language="English")]


async def test_middleware_expires_idle_conversation(state):
    middleware = OnboardingMiddleware(timeout=600, clock=lambda: 10_000.0)
    await state.set_state(Onboarding.waiting_for_language)
    await state.update_data({TOUCHED_AT_KEY: 10_000.0 - 601})
    handler = AsyncMock()
    message = _message("Arabic")

    result = await middleware(handler, message, {"state": state})

    assert result is None
    handler.assert_not_awaited()
    assert await state.get_state() is None
    assert _answers(message) == [get_text("onboarding_expired", "en")]


async def test_middleware_refreshes_active_conversation(state):
    middleware = OnboardingMiddleware(timeout=600, clock=lambda: 10_000.0)
    await state.set_state(Onboarding.waiting_for_username)
    await state.update_data({TOUCHED_AT_KEY: 10_000.0 - 30})
    handler = AsyncMock(return_value="handled")
    data = {"state": state}

    result = await middleware(handler, _message("alice", language_code="ar"), data)

    assert result == "handled"
    assert data["language"] == "ar"
    assert (await state.get_data())[TOUCHED_AT_KEY] == 10_000.0


async def test_middleware_lets_start_through_expired_session(state):
    middleware = OnboardingMiddleware(timeout=600, clock=lambda: 10_000.0)
    await state.set_state(Onboarding.waiting_for_language)
    await state.update_data({TOUCHED_AT_KEY: 0.0})
    handler = AsyncMock(return_value="restarted")

    assert await middleware(handler, _message("/start"), {"state": state}) == "restarted"
