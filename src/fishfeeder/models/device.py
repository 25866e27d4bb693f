"""Device telemetry and water-quality sensor models.

Both documents are written by the feeder firmware; the controller only
reads them.
"""

from __future__ import annotations

from typing import Any

from pydantic import field_validator

from fishfeeder._constants import LAST_SEEN_MS_THRESHOLD, WIFI_CONNECTED
from fishfeeder.models._base import FeederBaseModel


def _number_or_none(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class DeviceTelemetry(FeederBaseModel):
    """Snapshot of ``system/device``."""

    last_seen: float | None = None
    wifi: str = "disconnected"
    uptime: float = 0.0
    servo: str | None = None

    @field_validator("last_seen", mode="before")
    @classmethod
    def _coerce_last_seen(cls, value: Any) -> float | None:
        number = _number_or_none(value)
        if number is None or number <= 0:
            return None
        return number

    @field_validator("uptime", mode="before")
    @classmethod
    def _coerce_uptime(cls, value: Any) -> float:
        return _number_or_none(value) or 0.0

    @field_validator("wifi", mode="before")
    @classmethod
    def _coerce_wifi(cls, value: Any) -> str:
        return str(value).strip().lower()

    @property
    def last_seen_seconds(self) -> float | None:
        """``last_seen`` in epoch seconds.

        Current firmware reports seconds; older builds reported milliseconds.
        """
        if self.last_seen is None:
            return None
        if self.last_seen > LAST_SEEN_MS_THRESHOLD:
            return self.last_seen / 1000.0
        return self.last_seen

    @property
    def wifi_connected(self) -> bool:
        return self.wifi == WIFI_CONNECTED

    @classmethod
    def from_store(cls, raw: Any) -> DeviceTelemetry:
        return cls.model_validate(raw if isinstance(raw, dict) else {})


class SensorReadings(FeederBaseModel):
    """Snapshot of ``system/sensors``."""

    tds: float | None = None
    temperature: float | None = None

    @field_validator("tds", "temperature", mode="before")
    @classmethod
    def _coerce(cls, value: Any) -> float | None:
        return _number_or_none(value)

    @classmethod
    def from_store(cls, raw: Any) -> SensorReadings:
        return cls.model_validate(raw if isinstance(raw, dict) else {})


class AlertState(FeederBaseModel):
    """Snapshot of ``system/alerts`` (throttle timestamps in epoch ms)."""

    last_tds_alert: int = 0
    last_temp_alert: int = 0
    last_offline_alert: int = 0
    last_online_alert: int = 0
    last_known_online: bool = False

    @field_validator("last_tds_alert", "last_temp_alert", "last_offline_alert", "last_online_alert", mode="before")
    @classmethod
    def _coerce_ts(cls, value: Any) -> int:
        number = _number_or_none(value)
        return int(number) if number and number > 0 else 0

    @field_validator("last_known_online", mode="before")
    @classmethod
    def _coerce_flag(cls, value: Any) -> bool:
        return value is True or value in (1, "1", "true")

    @classmethod
    def from_store(cls, raw: Any) -> AlertState:
        return cls.model_validate(raw if isinstance(raw, dict) else {})
