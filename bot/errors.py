"""Error types shared by the access-control services."""

from __future__ import annotations


class AccessError(Exception):
    """Base class for group access failures."""


class StoreQueryError(AccessError):
    """A store statement failed; carries the gateway operation name."""

    def __init__(self, operation: str, original: BaseException | None = None) -> None:
        self.operation = operation
        self.original = original
        detail = f": {original}" if original is not None else ""
        super().__init__(f"Store operation '{operation}' failed{detail}")


class InvariantViolation(AccessError):
    """Data reached a code path that assumes it cannot exist."""
