"""Subscription enforcement: the periodic expired-member cleanup."""

from .loop import EnforcementLoop, EnforcementSettings, RemovalOutcome, RunReport, RunState
from .notices import ExpiryNotifier

__all__ = [
    "EnforcementLoop",
    "EnforcementSettings",
    "ExpiryNotifier",
    "RemovalOutcome",
    "RunReport",
    "RunState",
]
