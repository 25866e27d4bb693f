"""Notification sink interface."""

from __future__ import annotations

import logging
from typing import Protocol

from fishfeeder.exceptions import NotificationError

_logger = logging.getLogger(__name__)


class Notifier(Protocol):
    async def send(self, text: str, *, track: bool = True) -> int | None:
        """Deliver *text*; return the provider's message id when known.

        Untracked messages (bot command replies) are left out of chat
        housekeeping.
        """
        ...

    async def clear_messages(self) -> int:
        """Delete tracked messages; return how many were removed."""
        ...


class NullNotifier:
    """Used when no chat is configured: messages are only logged."""

    async def send(self, text: str, *, track: bool = True) -> int | None:
        _logger.info("Notification (not sent): %s", text.splitlines()[0] if text else "")
        return None

    async def clear_messages(self) -> int:
        return 0


async def announce(notifier: Notifier, text: str) -> None:
    """Best-effort send.  Delivery failures are logged, never raised."""
    try:
        await notifier.send(text)
    except NotificationError as exc:
        _logger.warning("Notification dropped: %s", exc)
