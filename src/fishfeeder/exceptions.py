"""Custom exception hierarchy for fishfeeder.

Guard rejections (fasting day, cooldown, full queue, ...) are *not*
exceptions; they are reported as structured outcomes.  The classes here
cover configuration, infrastructure and dispatch failures only.
"""

from __future__ import annotations


class FeederError(Exception):
    """Base exception for all fishfeeder errors."""


class FeederConfigError(FeederError):
    """Invalid or missing configuration (e.g. store credentials)."""


class StoreError(FeederError):
    """Store-level failure (network, non-200, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        path: str = "",
        status_code: int | None = None,
    ) -> None:
        self.path = path
        self.status_code = status_code
        super().__init__(message)


class StoreTimeoutError(StoreError):
    """A store read or write did not complete within its time bound."""

    def __init__(self, message: str, *, path: str = "", operation: str = "") -> None:
        self.operation = operation
        super().__init__(message, path=path)


class DispatchError(FeederError):
    """The critical ``lastFeedTime`` write failed; no actuation was requested."""


class DispatchConflictError(DispatchError):
    """Another invocation recorded a feed between our read and our write.

    Raised when the conditional write on ``lastFeedTime`` loses the
    compare-and-swap.  Callers treat it like an in-progress feed.
    """


class NotificationError(FeederError):
    """Chat notification could not be delivered."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)
