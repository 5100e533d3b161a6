from aiogram import Router

from .onboarding import onboarding_router


def setup_routers() -> Router:
    """Configure all routers."""
    router = Router()
    router.include_router(onboarding_router())
    return router
