"""Outbound chat notifications."""

from fishfeeder.notify.base import Notifier, NullNotifier, announce
from fishfeeder.notify.telegram import MessageLog, TelegramNotifier

__all__ = [
    "MessageLog",
    "Notifier",
    "NullNotifier",
    "TelegramNotifier",
    "announce",
]
