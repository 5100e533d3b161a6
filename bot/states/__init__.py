from .bot_states import Onboarding

__all__ = ["Onboarding"]
