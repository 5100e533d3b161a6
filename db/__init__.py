from .base import Base
from .model import Subscriber, SubscriberLanguage, TelegramGroup

__all__ = ["Base", "Subscriber", "SubscriberLanguage", "TelegramGroup"]
