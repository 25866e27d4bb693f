from __future__ import annotations

from datetime import UTC, datetime
from zoneinfo import ZoneInfo

import pytest

from fishfeeder._clock import to_epoch_ms
from fishfeeder.models.device import DeviceTelemetry
from fishfeeder.scheduling.presence import (
    is_device_online,
    is_device_online_strict,
    is_fasting_day,
    weekday_index,
)

NOW = to_epoch_ms(datetime(2026, 1, 7, 12, 0, tzinfo=UTC))
NOW_S = NOW // 1000
BAGHDAD = ZoneInfo("Asia/Baghdad")


def _device(**raw: object) -> DeviceTelemetry:
    return DeviceTelemetry.from_store(raw)


def test_recent_heartbeat_is_online() -> None:
    device = _device(lastSeen=NOW_S - 30, wifi="connected", uptime=100)
    assert is_device_online(device, NOW)
    assert is_device_online_strict(device, NOW)


def test_ninety_second_gap_is_offline_for_scheduling_only() -> None:
    device = _device(lastSeen=NOW_S - 90, wifi="connected", uptime=100)
    assert not is_device_online(device, NOW)
    assert is_device_online_strict(device, NOW)


def test_window_boundary_is_exclusive() -> None:
    assert not is_device_online(_device(lastSeen=NOW_S - 60), NOW)
    assert not is_device_online_strict(_device(lastSeen=NOW_S - 120), NOW)


def test_millisecond_heartbeat_is_normalized() -> None:
    device = _device(lastSeen=NOW - 10_000)
    assert device.last_seen_seconds == pytest.approx(NOW_S - 10)
    assert is_device_online(device, NOW)


def test_missing_heartbeat_falls_back_to_uptime_and_wifi() -> None:
    device = _device(wifi="Connected", uptime=12)
    assert is_device_online(device, NOW)
    # Operator actions never get the benefit of the doubt.
    assert not is_device_online_strict(device, NOW)


@pytest.mark.parametrize(
    "raw",
    [
        {"wifi": "disconnected", "uptime": 12},
        {"wifi": "connected", "uptime": 0},
        {},
    ],
)
def test_fallback_requires_uptime_and_wifi(raw: dict[str, object]) -> None:
    assert not is_device_online(_device(**raw), NOW)


def test_weekday_uses_sunday_zero_in_local_time() -> None:
    assert weekday_index(NOW, BAGHDAD) == 3  # Wednesday
    late = to_epoch_ms(datetime(2026, 1, 7, 22, 0, tzinfo=UTC))
    assert weekday_index(late, UTC) == 3
    assert weekday_index(late, BAGHDAD) == 4  # already Thursday in Baghdad
    sunday = to_epoch_ms(datetime(2026, 1, 4, 12, 0, tzinfo=UTC))
    assert weekday_index(sunday, BAGHDAD) == 0


def test_fasting_day() -> None:
    assert is_fasting_day(3, NOW, BAGHDAD)
    assert not is_fasting_day(4, NOW, BAGHDAD)
    assert not is_fasting_day(None, NOW, BAGHDAD)
    assert not is_fasting_day(9, NOW, BAGHDAD)
