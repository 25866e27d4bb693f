"""Feeder state models: configuration, reservations and feed history."""

from __future__ import annotations

import enum
import logging
from typing import Any

from pydantic import ConfigDict, Field, ValidationError, field_validator, model_validator

from fishfeeder._constants import (
    DEFAULT_AUTO_FEED_DELAY_MINUTES,
    DEFAULT_RESERVATION_DELAY_MINUTES,
    MAX_CONTACT_LENGTH,
    MAX_DEVICE_ID_LENGTH,
    MAX_HISTORY,
    MAX_REQUESTER_LENGTH,
    MS_PER_HOUR,
    MS_PER_MINUTE,
    UNATTENDED_REQUESTER,
)
from fishfeeder.models._base import EpochMs, FeederBaseModel, FeederEnum, coerce_epoch_ms, sparse_list

_logger = logging.getLogger(__name__)


def truncate(value: Any, limit: int) -> str | None:
    """Stringify and bound *value*; blank input becomes ``None``."""
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    return text[:limit]


def _non_negative_int(value: Any) -> int:
    try:
        number = int(float(value))
    except (TypeError, ValueError):
        return 0
    return max(0, number)


# ------------------------------------------------------------------
# Enums
# ------------------------------------------------------------------


class FeederStatus(FeederEnum):
    """Actuator request flag (``system/feeder/status``)."""

    UNKNOWN = -1
    IDLE = 0
    DISPENSING = 1


class FeedOrigin(enum.StrEnum):
    """Why a feed was dispatched.  Values are the stored history ``type``."""

    OPERATOR = "manual"
    RESERVATION = "reservation"
    UNATTENDED = "timer"


# ------------------------------------------------------------------
# Configuration documents
# ------------------------------------------------------------------


class CooldownConfig(FeederBaseModel):
    """Feed interval and fasting day (``system/feeder/timer``)."""

    hour: int = 0
    minute: int = 0
    no_feed_day: int | None = None

    @field_validator("hour", "minute", mode="before")
    @classmethod
    def _non_negative(cls, value: Any) -> int:
        return _non_negative_int(value)

    @field_validator("no_feed_day", mode="before")
    @classmethod
    def _weekday_or_none(cls, value: Any) -> int | None:
        try:
            day = int(value)
        except (TypeError, ValueError):
            return None
        return day if 0 <= day <= 6 else None

    @property
    def duration_ms(self) -> int:
        return self.hour * MS_PER_HOUR + self.minute * MS_PER_MINUTE


class PriorityConfig(FeederBaseModel):
    """Delay settings (``system/feeder/priority``)."""

    reservation_delay_minutes: int = DEFAULT_RESERVATION_DELAY_MINUTES
    auto_feed_delay_minutes: int = DEFAULT_AUTO_FEED_DELAY_MINUTES

    @field_validator("reservation_delay_minutes", "auto_feed_delay_minutes", mode="before")
    @classmethod
    def _non_negative(cls, value: Any) -> int:
        return _non_negative_int(value)

    @property
    def auto_feed_delay_ms(self) -> int:
        return self.auto_feed_delay_minutes * MS_PER_MINUTE


# ------------------------------------------------------------------
# Queue and history entries
# ------------------------------------------------------------------


class Reservation(FeederBaseModel):
    """A queued request to feed once ``scheduled_time`` has passed."""

    model_config = ConfigDict(frozen=True)

    user: str
    user_email: str | None = None
    device_id: str | None = None
    scheduled_time: int
    created_at: int

    @model_validator(mode="before")
    @classmethod
    def _fill_created_at(cls, values: Any) -> Any:
        # Entries written before createdAt existed sort by their schedule.
        if isinstance(values, dict):
            created = values.get("createdAt", values.get("created_at"))
            if coerce_epoch_ms(created) is None:
                scheduled = values.get("scheduledTime", values.get("scheduled_time"))
                values = {**values, "createdAt": scheduled}
        return values

    @field_validator("scheduled_time", "created_at", mode="before")
    @classmethod
    def _epoch(cls, value: Any) -> int:
        coerced = coerce_epoch_ms(value)
        if coerced is None:
            raise ValueError("must be a positive epoch-ms instant")
        return coerced

    @field_validator("user", mode="before")
    @classmethod
    def _bound_user(cls, value: Any) -> str:
        return truncate(value, MAX_REQUESTER_LENGTH) or "unknown"

    @field_validator("user_email", mode="before")
    @classmethod
    def _bound_email(cls, value: Any) -> str | None:
        return truncate(value, MAX_CONTACT_LENGTH)

    @field_validator("device_id", mode="before")
    @classmethod
    def _bound_device(cls, value: Any) -> str | None:
        return truncate(value, MAX_DEVICE_ID_LENGTH)

    @property
    def key(self) -> tuple[int, str, str | None, str | None]:
        """Identifies the request independently of its current schedule."""
        return (self.created_at, self.user, self.user_email, self.device_id)


class FeedRecord(FeederBaseModel):
    """One entry of the bounded feed history."""

    model_config = ConfigDict(frozen=True)

    timestamp: int
    type: FeedOrigin
    user: str = UNATTENDED_REQUESTER

    @field_validator("timestamp", mode="before")
    @classmethod
    def _epoch(cls, value: Any) -> int:
        coerced = coerce_epoch_ms(value)
        if coerced is None:
            raise ValueError("must be a positive epoch-ms instant")
        return coerced

    @field_validator("user", mode="before")
    @classmethod
    def _bound_user(cls, value: Any) -> str:
        return truncate(value, MAX_REQUESTER_LENGTH) or UNATTENDED_REQUESTER


class LastFeedDetail(FeederBaseModel):
    """Denormalized display copy of the last feed instant."""

    timestamp: int
    hour: int
    minute: int
    second: int


# ------------------------------------------------------------------
# Aggregate document
# ------------------------------------------------------------------


def _parse_entries(model: type[FeederBaseModel], raw: Any, label: str) -> list[Any]:
    parsed: list[Any] = []
    for entry in sparse_list(raw):
        if isinstance(entry, model):
            parsed.append(entry)
            continue
        if not isinstance(entry, dict):
            _logger.warning("Dropping malformed %s entry: %r", label, entry)
            continue
        try:
            parsed.append(model.model_validate(entry))
        except ValidationError as exc:
            _logger.warning("Dropping invalid %s entry: %s", label, exc.errors(include_url=False))
    return parsed


class FeederState(FeederBaseModel):
    """Snapshot of ``system/feeder``.

    This is the validated boundary between the store and the scheduling
    logic.  Malformed queue and history entries are dropped here once, the
    queue is ordered by ``created_at`` and everything downstream can rely
    on clean typed values.
    """

    status: FeederStatus = FeederStatus.IDLE
    last_feed_time: EpochMs = None
    last_feed: LastFeedDetail | None = None
    timer: CooldownConfig = Field(default_factory=CooldownConfig)
    priority: PriorityConfig = Field(default_factory=PriorityConfig)
    reservations: list[Reservation] = Field(default_factory=list)
    history: list[FeedRecord] = Field(default_factory=list)

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> FeederStatus:
        try:
            return FeederStatus(int(value))
        except (TypeError, ValueError):
            return FeederStatus.UNKNOWN

    @field_validator("last_feed", mode="before")
    @classmethod
    def _detail_or_none(cls, value: Any) -> Any:
        # Older firmware stored a preformatted string here.
        if isinstance(value, dict) and coerce_epoch_ms(value.get("timestamp")) is not None:
            return value
        return None

    @field_validator("timer", "priority", mode="before")
    @classmethod
    def _mapping_or_default(cls, value: Any) -> Any:
        return value if isinstance(value, (dict, CooldownConfig, PriorityConfig)) else {}

    @field_validator("reservations", mode="before")
    @classmethod
    def _parse_reservations(cls, value: Any) -> list[Reservation]:
        entries: list[Reservation] = _parse_entries(Reservation, value, "reservation")
        # Stable: equal creation times keep their stored order.
        return sorted(entries, key=lambda r: r.created_at)

    @field_validator("history", mode="before")
    @classmethod
    def _parse_history(cls, value: Any) -> list[FeedRecord]:
        entries: list[FeedRecord] = _parse_entries(FeedRecord, value, "history")
        return entries[:MAX_HISTORY]

    @classmethod
    def from_store(cls, raw: Any) -> FeederState:
        return cls.model_validate(raw if isinstance(raw, dict) else {})
