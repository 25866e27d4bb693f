"""fishfeeder - Async feed scheduling backend for an IoT fish feeder."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("fishfeeder")
except PackageNotFoundError:
    __version__ = "0+local"
from fishfeeder.config import FeederConfig
from fishfeeder.controller import FeederController
from fishfeeder.exceptions import (
    DispatchConflictError,
    DispatchError,
    FeederConfigError,
    FeederError,
    NotificationError,
    StoreError,
    StoreTimeoutError,
)
from fishfeeder.models import (
    CancelRequest,
    CancelResult,
    CooldownConfig,
    DeviceSummary,
    DeviceTelemetry,
    FeederState,
    FeederStatus,
    FeedOrigin,
    FeedRecord,
    FeedRequest,
    FeedResult,
    OutcomeType,
    PriorityConfig,
    PriorityUpdateRequest,
    Rejection,
    Reservation,
    ReservationResult,
    SchedulerOutcome,
    SettingsResult,
    StatusReport,
    TimerUpdateRequest,
)
from fishfeeder.state import MemoryStateStore, StateStore

__all__ = [
    "__version__",
    "CancelRequest",
    "CancelResult",
    "CooldownConfig",
    "DeviceSummary",
    "DeviceTelemetry",
    "DispatchConflictError",
    "DispatchError",
    "FeedOrigin",
    "FeedRecord",
    "FeedRequest",
    "FeedResult",
    "FeederConfig",
    "FeederConfigError",
    "FeederController",
    "FeederError",
    "FeederState",
    "FeederStatus",
    "MemoryStateStore",
    "NotificationError",
    "OutcomeType",
    "PriorityConfig",
    "PriorityUpdateRequest",
    "Rejection",
    "Reservation",
    "ReservationResult",
    "SchedulerOutcome",
    "SettingsResult",
    "StateStore",
    "StatusReport",
    "StoreError",
    "StoreTimeoutError",
    "TimerUpdateRequest",
]
