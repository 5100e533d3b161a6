"""
Pytest configuration for the group access bot tests.

Puts the project root on the path and provides a throwaway SQLite store plus
an in-memory stand-in for the aiogram ``Bot``.
"""

import sys
from datetime import date
from pathlib import Path
from types import SimpleNamespace

import pytest
from aiogram.enums import ChatMemberStatus
from aiogram.exceptions import TelegramNetworkError

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402

from bot.access import ChatPlatform, SubscriberStore  # noqa: E402
from db import Base, Subscriber, TelegramGroup  # noqa: E402

TODAY = date(2026, 10, 19)


def network_error(message: str = "connection reset") -> TelegramNetworkError:
    return TelegramNetworkError(method=None, message=message)


class FakeBot:
    """Records Bot API calls; membership comes from ``members``."""

    def __init__(self):
        self.members: dict[tuple[int, int], ChatMemberStatus] = {}
        self.fail_member_lookup: set[int] = set()
        self.fail_ban: set[int] = set()
        self.fail_unban: set[int] = set()
        self.fail_send: set[int] = set()
        self.calls: list[tuple] = []
        self.sent: list[tuple[int, str]] = []

    async def get_chat_member(self, chat_id, user_id):
        self.calls.append(("get_chat_member", chat_id, user_id))
        if chat_id in self.fail_member_lookup:
            raise network_error()
        status = self.members.get((chat_id, user_id), ChatMemberStatus.LEFT)
        return SimpleNamespace(status=status)

    async def ban_chat_member(self, chat_id, user_id):
        self.calls.append(("ban_chat_member", chat_id, user_id))
        if chat_id in self.fail_ban:
            raise network_error("ban failed")
        self.members[(chat_id, user_id)] = ChatMemberStatus.KICKED

    async def unban_chat_member(self, chat_id, user_id, only_if_banned=None):
        self.calls.append(("unban_chat_member", chat_id, user_id, only_if_banned))
        if chat_id in self.fail_unban:
            raise network_error("unban failed")
        if self.members.get((chat_id, user_id)) == ChatMemberStatus.KICKED:
            self.members[(chat_id, user_id)] = ChatMemberStatus.LEFT

    async def send_message(self, chat_id, text, **kwargs):
        if chat_id in self.fail_send:
            raise network_error("send failed")
        self.sent.append((chat_id, text))

    def calls_named(self, name):
        return [call for call in self.calls if call[0] == name]


@pytest.fixture
def fake_bot():
    return FakeBot()


@pytest.fixture
def platform(fake_bot):
    return ChatPlatform(fake_bot)


@pytest.fixture
async def sessionmaker(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'access.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def store(sessionmaker):
    return SubscriberStore(sessionmaker)


@pytest.fixture
def seed(sessionmaker):
    """Insert model rows: ``await seed(Subscriber(...), TelegramGroup(...))``."""

    async def _seed(*rows):
        async with sessionmaker() as session:
            session.add_all(rows)
            await session.commit()

    return _seed


@pytest.fixture
def load_subscriber(sessionmaker):
    async def _load(username: str) -> Subscriber:
        async with sessionmaker() as session:
            return await session.get(Subscriber, username)

    return _load


def make_groups(plan: str = "P1") -> list[TelegramGroup]:
    return [
        TelegramGroup(group_id=-1001, group_name="G1", invite_link="https://t.me/+g1", package=plan, language="Arabic"),
        TelegramGroup(group_id=-1002, group_name="G2", invite_link="https://t.me/+g2", package=plan, language="English"),
    ]
