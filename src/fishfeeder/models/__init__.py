"""Data models for store documents, requests and results."""

from fishfeeder.models._base import EpochMs, FeederBaseModel, FeederEnum, coerce_epoch_ms, sparse_list
from fishfeeder.models.device import AlertState, DeviceTelemetry, SensorReadings
from fishfeeder.models.feeder import (
    CooldownConfig,
    FeederState,
    FeederStatus,
    FeedOrigin,
    FeedRecord,
    LastFeedDetail,
    PriorityConfig,
    Reservation,
)
from fishfeeder.models.outcomes import (
    CancelResult,
    DeviceSummary,
    Diagnostics,
    FeedResult,
    OutcomeType,
    Rejection,
    ReservationResult,
    SchedulerOutcome,
    SettingsResult,
    StatusReport,
)
from fishfeeder.models.requests import (
    CancelRequest,
    FeedRequest,
    PriorityUpdateRequest,
    RequesterIdentity,
    TimerUpdateRequest,
)

__all__ = [
    "AlertState",
    "CancelRequest",
    "CancelResult",
    "CooldownConfig",
    "DeviceSummary",
    "DeviceTelemetry",
    "Diagnostics",
    "EpochMs",
    "FeedOrigin",
    "FeedRecord",
    "FeedRequest",
    "FeedResult",
    "FeederBaseModel",
    "FeederEnum",
    "FeederState",
    "FeederStatus",
    "LastFeedDetail",
    "OutcomeType",
    "PriorityConfig",
    "PriorityUpdateRequest",
    "Rejection",
    "RequesterIdentity",
    "Reservation",
    "ReservationResult",
    "SchedulerOutcome",
    "SensorReadings",
    "SettingsResult",
    "StatusReport",
    "TimerUpdateRequest",
    "coerce_epoch_ms",
    "sparse_list",
]
