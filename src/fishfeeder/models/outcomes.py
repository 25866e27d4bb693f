"""Structured results returned by the scheduling operations.

Guard rejections are expected outcomes, not failures, so they travel back
to the caller as a :class:`Rejection` inside one of these models instead
of being raised.
"""

from __future__ import annotations

import enum
from http import HTTPStatus
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from fishfeeder.models.device import SensorReadings
from fishfeeder.models.feeder import (
    CooldownConfig,
    FeederStatus,
    FeedRecord,
    LastFeedDetail,
    PriorityConfig,
    Reservation,
)

# ------------------------------------------------------------------
# Enums
# ------------------------------------------------------------------


class OutcomeType(enum.StrEnum):
    """What a periodic check did."""

    RESERVATION = "reservation"
    TIMER = "timer"
    NONE = "none"


class Rejection(enum.StrEnum):
    """Reason an operation declined to act."""

    FASTING_DAY = "fasting_day"
    DEVICE_OFFLINE = "device_offline"
    ALREADY_FEEDING = "already_feeding"
    COOLDOWN_ACTIVE = "cooldown_active"
    RESERVATIONS_EXIST = "reservations_exist"
    QUEUE_FULL = "queue_full"
    RESERVATION_NOT_FOUND = "reservation_not_found"
    INVALID_SCHEDULE = "invalid_schedule"
    TIMEOUT = "timeout"
    NO_FEED_NEEDED = "no_feed_needed"

    @property
    def http_status(self) -> int:
        return int(_HTTP_STATUS[self])


_HTTP_STATUS: dict[Rejection, HTTPStatus] = {
    Rejection.FASTING_DAY: HTTPStatus.FORBIDDEN,
    Rejection.DEVICE_OFFLINE: HTTPStatus.SERVICE_UNAVAILABLE,
    Rejection.ALREADY_FEEDING: HTTPStatus.CONFLICT,
    Rejection.COOLDOWN_ACTIVE: HTTPStatus.TOO_MANY_REQUESTS,
    Rejection.RESERVATIONS_EXIST: HTTPStatus.CONFLICT,
    Rejection.QUEUE_FULL: HTTPStatus.TOO_MANY_REQUESTS,
    Rejection.RESERVATION_NOT_FOUND: HTTPStatus.NOT_FOUND,
    Rejection.INVALID_SCHEDULE: HTTPStatus.BAD_REQUEST,
    Rejection.TIMEOUT: HTTPStatus.GATEWAY_TIMEOUT,
    Rejection.NO_FEED_NEEDED: HTTPStatus.OK,
}


# ------------------------------------------------------------------
# Result models
# ------------------------------------------------------------------


class _Outcome(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    reason: Rejection | None = None

    @property
    def http_status(self) -> int:
        return self.reason.http_status if self.reason is not None else int(HTTPStatus.OK)

    def to_response(self) -> dict[str, Any]:
        """camelCase JSON body for the HTTP surface."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


class Diagnostics(_Outcome):
    """Counters attached to a ``no_feed_needed`` periodic check."""

    queue_length: int = 0
    ready_count: int = 0
    cooldown_remaining_ms: int = 0
    auto_feed_remaining_ms: int | None = None


class SchedulerOutcome(_Outcome):
    """Result of one periodic check."""

    outcome: OutcomeType = OutcomeType.NONE
    user: str | None = None
    feed_time: int | None = None
    diagnostics: Diagnostics | None = None

    @property
    def fed(self) -> bool:
        return self.outcome is not OutcomeType.NONE

    @property
    def http_status(self) -> int:
        # A declined periodic check is routine for the cron caller.
        if self.reason is Rejection.TIMEOUT:
            return self.reason.http_status
        return int(HTTPStatus.OK)


class FeedResult(_Outcome):
    """Result of an operator-initiated feed."""

    success: bool = False
    user: str | None = None
    feed_time: int | None = None


class ReservationResult(_Outcome):
    """Result of an enqueue request.

    ``existing`` is true when the requester already held a reservation and
    that one was returned unchanged.
    """

    success: bool = False
    reservation: Reservation | None = None
    position: int | None = None
    queue_length: int = 0
    existing: bool = False

    @property
    def http_status(self) -> int:
        if self.success and not self.existing:
            return int(HTTPStatus.CREATED)
        return super().http_status


class CancelResult(_Outcome):
    success: bool = False
    reservation: Reservation | None = None
    queue_length: int = 0


class SettingsResult(_Outcome):
    """Result of a timer or priority update."""

    success: bool = True
    timer: CooldownConfig | None = None
    priority: PriorityConfig | None = None
    rescheduled: int = 0


class DeviceSummary(_Outcome):
    online: bool = False
    last_seen: float | None = None
    wifi: str = "disconnected"
    uptime: float = 0.0
    servo: str | None = None


class StatusReport(_Outcome):
    """Dashboard snapshot of feeder, device and sensors."""

    status: FeederStatus = FeederStatus.IDLE
    last_feed_time: int | None = None
    last_feed: LastFeedDetail | None = None
    timer: CooldownConfig = Field(default_factory=CooldownConfig)
    priority: PriorityConfig = Field(default_factory=PriorityConfig)
    device: DeviceSummary = Field(default_factory=DeviceSummary)
    sensors: SensorReadings = Field(default_factory=SensorReadings)
    reservations: list[Reservation] = Field(default_factory=list)
    history: list[FeedRecord] = Field(default_factory=list)
    fasting_day: bool = False
    can_feed: bool = False
    cooldown_ends_at: int | None = None
    auto_feed_at: int | None = None
    next_feed_at: int | None = None
    next_feed_type: OutcomeType = OutcomeType.NONE
