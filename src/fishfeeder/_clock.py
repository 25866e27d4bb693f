"""Time source helpers.

All scheduling logic works on epoch milliseconds taken from an injected
clock so tests can pin "now".
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, tzinfo

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(UTC)


def to_epoch_ms(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return int(moment.timestamp() * 1000)


def from_epoch_ms(value: int, tz: tzinfo = UTC) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz=tz)
