from .onboarding import OnboardingMiddleware

__all__ = ["OnboardingMiddleware"]
