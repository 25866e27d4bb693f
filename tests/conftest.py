from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta, tzinfo
from typing import Any
from zoneinfo import ZoneInfo

import pytest

from fishfeeder._clock import to_epoch_ms
from fishfeeder._effects import DetachedEffects
from fishfeeder.exceptions import NotificationError
from fishfeeder.state.store import MemoryStateStore

# Wednesday 2026-01-07, 15:00 in Baghdad.
BASE_TIME = datetime(2026, 1, 7, 12, 0, tzinfo=UTC)


@dataclass
class FakeClock:
    now: datetime = BASE_TIME

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now += timedelta(**delta)

    @property
    def ms(self) -> int:
        return to_epoch_ms(self.now)


@dataclass
class RecordingNotifier:
    fail: bool = False
    sent: list[tuple[str, bool]] = field(default_factory=list)
    clear_calls: int = 0

    async def send(self, text: str, *, track: bool = True) -> int | None:
        if self.fail:
            raise NotificationError("chat unavailable", status_code=503)
        self.sent.append((text, track))
        return len(self.sent)

    async def clear_messages(self) -> int:
        self.clear_calls += 1
        return 3

    @property
    def texts(self) -> list[str]:
        return [text for text, _ in self.sent]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def tz() -> tzinfo:
    return ZoneInfo("Asia/Baghdad")


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def effects() -> DetachedEffects:
    return DetachedEffects()


@pytest.fixture
def make_store(clock: FakeClock) -> Callable[..., MemoryStateStore]:
    """Build a store holding a healthy, idle feeder seen five seconds ago."""

    def _make(
        *,
        last_feed_time: Any = None,
        status: int = 0,
        timer: dict[str, Any] | None = None,
        priority: dict[str, Any] | None = None,
        reservations: list[dict[str, Any]] | None = None,
        history: list[dict[str, Any]] | None = None,
        device: dict[str, Any] | None = None,
        sensors: dict[str, Any] | None = None,
        alerts: dict[str, Any] | None = None,
    ) -> MemoryStateStore:
        feeder: dict[str, Any] = {
            "status": status,
            "timer": timer if timer is not None else {"hour": 0, "minute": 30},
            "priority": priority
            if priority is not None
            else {"reservationDelayMinutes": 0, "autoFeedDelayMinutes": 0},
        }
        if last_feed_time is not None:
            feeder["lastFeedTime"] = last_feed_time
        if reservations is not None:
            feeder["reservations"] = reservations
        if history is not None:
            feeder["history"] = history
        system: dict[str, Any] = {
            "feeder": feeder,
            "device": device
            if device is not None
            else {"lastSeen": clock.ms // 1000 - 5, "wifi": "connected", "uptime": 3600, "servo": "idle"},
        }
        if sensors is not None:
            system["sensors"] = sensors
        if alerts is not None:
            system["alerts"] = alerts
        return MemoryStateStore({"system": system})

    return _make
