from aiogram.fsm.state import State, StatesGroup


class Onboarding(StatesGroup):
    waiting_for_username = State()
    waiting_for_language = State()
