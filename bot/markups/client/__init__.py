from .main import join_groups_keyboard, language_keyboard

__all__ = ["join_groups_keyboard", "language_keyboard"]
