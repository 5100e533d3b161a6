from typing import Iterable

from aiogram.types import (
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    KeyboardButton,
    ReplyKeyboardMarkup,
)

from bot.access import GroupAccess
from bot.localization import GROUP_LANGUAGES, get_label


def language_keyboard() -> ReplyKeyboardMarkup:
    rows = [[KeyboardButton(text=language)] for language in GROUP_LANGUAGES]
    return ReplyKeyboardMarkup(keyboard=rows, one_time_keyboard=True, resize_keyboard=True)


def join_groups_keyboard(groups: Iterable[GroupAccess], language: str | None) -> InlineKeyboardMarkup:
    rows = [
        [InlineKeyboardButton(text=get_label("join_group", language, name=group.name), url=group.invite_link)]
        for group in groups
    ]
    return InlineKeyboardMarkup(inline_keyboard=rows)
