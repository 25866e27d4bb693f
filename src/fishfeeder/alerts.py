"""Throttled water-quality and connectivity alerts.

Each alert kind remembers when it last fired under ``system/alerts`` and
stays quiet until its interval has passed.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import tzinfo

from fishfeeder._clock import Clock, to_epoch_ms
from fishfeeder._constants import (
    ALERTS_PATH,
    DEVICE_ALERT_INTERVAL_MS,
    DEVICE_PATH,
    SENSOR_ALERT_INTERVAL_MS,
    SENSORS_PATH,
    TDS_ALERT_THRESHOLD_PPM,
    TEMPERATURE_SAFE_MAX_C,
    TEMPERATURE_SAFE_MIN_C,
)
from fishfeeder.models.device import AlertState, DeviceTelemetry, SensorReadings
from fishfeeder.models.outcomes import DeviceSummary
from fishfeeder.notify import messages
from fishfeeder.notify.base import Notifier, announce
from fishfeeder.scheduling.presence import is_device_online
from fishfeeder.state.store import StateStore

_logger = logging.getLogger(__name__)


def _due(last_fired: int, interval_ms: int, now: int) -> bool:
    return last_fired < now - interval_ms


def temperature_out_of_range(temperature: float) -> bool:
    return temperature < TEMPERATURE_SAFE_MIN_C or temperature > TEMPERATURE_SAFE_MAX_C


class AlertMonitor:
    def __init__(self, store: StateStore, notifier: Notifier, *, clock: Clock, tz: tzinfo) -> None:
        self._store = store
        self._notifier = notifier
        self._clock = clock
        self._tz = tz

    def _now(self) -> int:
        return to_epoch_ms(self._clock())

    async def _fire(self, text: str, field: str, now: int) -> None:
        await announce(self._notifier, text)
        await self._store.set(f"{ALERTS_PATH}/{field}", now)

    async def check_sensor_alerts(self) -> list[str]:
        """Warn about high TDS or unsafe temperature; return the fields that fired."""
        now = self._now()
        sensors_raw, alerts_raw = await asyncio.gather(self._store.get(SENSORS_PATH), self._store.get(ALERTS_PATH))
        sensors = SensorReadings.from_store(sensors_raw)
        alerts = AlertState.from_store(alerts_raw)
        fired: list[str] = []

        if sensors.tds is not None and sensors.tds > TDS_ALERT_THRESHOLD_PPM:
            if _due(alerts.last_tds_alert, SENSOR_ALERT_INTERVAL_MS, now):
                _logger.warning("TDS high: %.0f ppm", sensors.tds)
                await self._fire(messages.tds_warning(sensors.tds, now, self._tz), "lastTdsAlert", now)
                fired.append("lastTdsAlert")

        if sensors.temperature is not None and temperature_out_of_range(sensors.temperature):
            if _due(alerts.last_temp_alert, SENSOR_ALERT_INTERVAL_MS, now):
                _logger.warning("Temperature out of range: %.1f°C", sensors.temperature)
                await self._fire(
                    messages.temperature_warning(sensors.temperature, now, self._tz),
                    "lastTempAlert",
                    now,
                )
                fired.append("lastTempAlert")

        return fired

    async def check_device_alerts(self) -> DeviceSummary:
        """Announce online/offline transitions and remember the last state."""
        now = self._now()
        device_raw, alerts_raw = await asyncio.gather(self._store.get(DEVICE_PATH), self._store.get(ALERTS_PATH))
        device = DeviceTelemetry.from_store(device_raw)
        alerts = AlertState.from_store(alerts_raw)
        online = is_device_online(device, now)
        was_online = alerts.last_known_online

        if was_online and not online:
            if _due(alerts.last_offline_alert, DEVICE_ALERT_INTERVAL_MS, now):
                await self._fire(messages.device_offline(device.last_seen_seconds, self._tz), "lastOfflineAlert", now)
        elif online and not was_online:
            if _due(alerts.last_online_alert, DEVICE_ALERT_INTERVAL_MS, now):
                await self._fire(
                    messages.device_online(device.wifi, device.uptime, now, self._tz),
                    "lastOnlineAlert",
                    now,
                )

        if online != was_online:
            _logger.info("Device is now %s", "online" if online else "offline")
            await self._store.set(f"{ALERTS_PATH}/lastKnownOnline", online)

        return DeviceSummary(
            online=online,
            last_seen=device.last_seen,
            wifi=device.wifi,
            uptime=device.uptime,
            servo=device.servo,
        )
