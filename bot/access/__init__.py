"""Group access: store gateway, Telegram wrapper, membership checks and invites."""

from .granter import AccessGranter, GroupAccess
from .membership import MembershipVerifier
from .platform import ChatPlatform
from .store import ExpiredSubscriber, GroupRecord, SubscriberRecord, SubscriberStore

__all__ = [
    "AccessGranter",
    "ChatPlatform",
    "ExpiredSubscriber",
    "GroupAccess",
    "GroupRecord",
    "MembershipVerifier",
    "SubscriberRecord",
    "SubscriberStore",
]
