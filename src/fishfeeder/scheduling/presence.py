"""Device presence and calendar guards."""

from __future__ import annotations

import logging
from datetime import tzinfo

from fishfeeder._clock import from_epoch_ms
from fishfeeder._constants import STRICT_ONLINE_WINDOW_S, TOLERANT_ONLINE_WINDOW_S
from fishfeeder.models.device import DeviceTelemetry

_logger = logging.getLogger(__name__)


def is_device_online(
    telemetry: DeviceTelemetry,
    now: int,
    *,
    window_s: float = TOLERANT_ONLINE_WINDOW_S,
    allow_fallback: bool = True,
) -> bool:
    """Whether the feeder has reported in within *window_s* seconds of *now*.

    When ``lastSeen`` has never been written, ``allow_fallback`` accepts a
    device that reports positive uptime on a connected network.
    """
    last_seen = telemetry.last_seen_seconds
    if last_seen is None:
        if allow_fallback and telemetry.uptime > 0 and telemetry.wifi_connected:
            _logger.debug("lastSeen missing; uptime and wifi suggest the device is online")
            return True
        return False

    age_s = now / 1000.0 - last_seen
    online = age_s < window_s
    if not online:
        _logger.warning("Device appears offline: last seen %.1fs ago (window %.0fs)", age_s, window_s)
    return online


def is_device_online_strict(telemetry: DeviceTelemetry, now: int) -> bool:
    """Presence check for operator actions: longer window, no fallback."""
    return is_device_online(telemetry, now, window_s=STRICT_ONLINE_WINDOW_S, allow_fallback=False)


def weekday_index(now: int, tz: tzinfo) -> int:
    """Day of week at *now* in *tz*, numbered 0=Sunday .. 6=Saturday."""
    return (from_epoch_ms(now, tz).weekday() + 1) % 7


def is_fasting_day(no_feed_day: int | None, now: int, tz: tzinfo) -> bool:
    if no_feed_day is None or not 0 <= no_feed_day <= 6:
        return False
    return weekday_index(now, tz) == no_feed_day
