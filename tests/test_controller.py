from __future__ import annotations

import asyncio
from typing import Any

import pytest

from fishfeeder._constants import DEVICE_PATH, PRIORITY_PATH, TIMER_PATH
from fishfeeder.config import FeederConfig
from fishfeeder.controller import FeederController
from fishfeeder.exceptions import FeederConfigError, FeederError
from fishfeeder.models.feeder import FeederStatus
from fishfeeder.models.outcomes import OutcomeType, Rejection
from fishfeeder.models.requests import FeedRequest, PriorityUpdateRequest, TimerUpdateRequest
from fishfeeder.state.store import MemoryStateStore

MINUTE = 60_000


class StalledDeviceStore(MemoryStateStore):
    async def get(self, path: str) -> Any:
        if path == DEVICE_PATH:
            await asyncio.sleep(1)
        return await super().get(path)


def _controller(store, notifier, clock) -> FeederController:
    return FeederController(FeederConfig(), store=store, notifier=notifier, clock=clock)


@pytest.mark.asyncio
async def test_requires_context_manager(make_store, notifier, clock) -> None:
    with pytest.raises(FeederError, match="async context manager"):
        await _controller(make_store(), notifier, clock).get_status()


@pytest.mark.asyncio
async def test_missing_database_is_a_configuration_error(notifier, clock) -> None:
    async with FeederController(FeederConfig(), notifier=notifier, clock=clock) as feeder:
        with pytest.raises(FeederConfigError):
            await feeder.run_scheduler()


@pytest.mark.asyncio
async def test_timer_update_keeps_fasting_day_when_omitted(make_store, notifier, clock) -> None:
    store = make_store(timer={"hour": 0, "minute": 30, "noFeedDay": 5})

    async with _controller(store, notifier, clock) as feeder:
        result = await feeder.update_timer(TimerUpdateRequest(hour=1, minute=15))

    assert result.success
    assert result.timer.no_feed_day == 5
    assert await store.get(TIMER_PATH) == {"hour": 1, "minute": 15, "noFeedDay": 5}
    assert "Interval: 1:15" in notifier.texts[0]
    assert "Fasting Day: Friday" in notifier.texts[0]


@pytest.mark.asyncio
async def test_timer_update_can_clear_fasting_day(make_store, notifier, clock) -> None:
    store = make_store(timer={"hour": 0, "minute": 30, "noFeedDay": 5})
    request = TimerUpdateRequest.model_validate({"hour": 0, "minute": 30, "noFeedDay": None})

    async with _controller(store, notifier, clock) as feeder:
        await feeder.update_timer(request)

    assert await store.get(TIMER_PATH) == {"hour": 0, "minute": 30}


@pytest.mark.asyncio
async def test_unchanged_timer_is_not_announced(make_store, notifier, clock) -> None:
    async with _controller(make_store(), notifier, clock) as feeder:
        result = await feeder.update_timer(TimerUpdateRequest(hour=0, minute=30))

    assert result.success
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_timer_update_reschedules_queue(make_store, notifier, clock) -> None:
    queued = [{"user": "Ana", "scheduledTime": clock.ms + 20 * MINUTE, "createdAt": clock.ms - MINUTE}]
    store = make_store(last_feed_time=clock.ms - 10 * MINUTE, reservations=queued)

    async with _controller(store, notifier, clock) as feeder:
        result = await feeder.update_timer(TimerUpdateRequest(hour=1, minute=0))

    assert result.rescheduled == 1
    reservations = await store.get("system/feeder/reservations")
    assert reservations[0]["scheduledTime"] == clock.ms + 50 * MINUTE


@pytest.mark.asyncio
async def test_priority_update_is_always_announced(make_store, notifier, clock) -> None:
    store = make_store()
    request = PriorityUpdateRequest(reservation_delay_minutes=0, auto_feed_delay_minutes=0)

    async with _controller(store, notifier, clock) as feeder:
        result = await feeder.update_priority(request)

    assert result.priority.auto_feed_delay_minutes == 0
    assert await store.get(PRIORITY_PATH) == {"reservationDelayMinutes": 0, "autoFeedDelayMinutes": 0}
    assert "Priority Settings Updated" in notifier.texts[0]


@pytest.mark.asyncio
async def test_status_when_ready(make_store, notifier, clock) -> None:
    store = make_store(last_feed_time=clock.ms - 40 * MINUTE, sensors={"tds": 300, "temperature": 25})

    async with _controller(store, notifier, clock) as feeder:
        report = await feeder.get_status()

    assert report.can_feed
    assert report.device.online
    assert not report.fasting_day
    assert report.cooldown_ends_at == clock.ms - 10 * MINUTE
    assert report.next_feed_type is OutcomeType.TIMER
    assert report.sensors.tds == 300
    body = report.to_response()
    assert body["canFeed"] is True
    assert body["nextFeedType"] == "timer"


@pytest.mark.asyncio
async def test_status_blocks_feeding(make_store, notifier, clock) -> None:
    queued = [{"user": "Ana", "scheduledTime": clock.ms + 5 * MINUTE, "createdAt": clock.ms}]
    store = make_store(status=1, reservations=queued, timer={"hour": 0, "minute": 30, "noFeedDay": 3})

    async with _controller(store, notifier, clock) as feeder:
        report = await feeder.get_status()

    assert report.status is FeederStatus.DISPENSING
    assert report.fasting_day
    assert not report.can_feed
    assert report.next_feed_at == clock.ms + 5 * MINUTE
    assert report.next_feed_type is OutcomeType.RESERVATION


@pytest.mark.asyncio
async def test_manual_feed_through_controller(make_store, notifier, clock) -> None:
    store = make_store()

    async with _controller(store, notifier, clock) as feeder:
        result = await feeder.manual_feed(FeedRequest(user="Ana"))

    assert result.success
    assert await store.get("system/feeder/lastFeedTime") == clock.ms
    assert any("Manual Feed" in text for text in notifier.texts)


@pytest.mark.asyncio
async def test_device_check_timeout_is_reported(notifier, clock) -> None:
    config = FeederConfig(store_read_timeout=0.01)

    async with FeederController(config, store=StalledDeviceStore(), notifier=notifier, clock=clock) as feeder:
        summary = await feeder.check_device()

    assert summary.reason is Rejection.TIMEOUT
    assert summary.http_status == 504
