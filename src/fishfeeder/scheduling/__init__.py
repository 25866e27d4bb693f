"""Feed scheduling: cooldown, presence, reservation queue, dispatch and decisions."""

from fishfeeder.scheduling.cooldown import (
    auto_feed_at,
    can_dispatch,
    cooldown_duration_ms,
    cooldown_end,
    cooldown_remaining_ms,
    effective_last_feed,
    first_slot,
    is_corrupt,
)
from fishfeeder.scheduling.dispatcher import FeedDispatcher
from fishfeeder.scheduling.engine import DecisionEngine, Snapshot, load_snapshot, predict_next_feed
from fishfeeder.scheduling.presence import is_device_online, is_device_online_strict, is_fasting_day, weekday_index
from fishfeeder.scheduling.queue import ReservationQueue
from fishfeeder.scheduling.reservations import ReservationService, parse_queue

__all__ = [
    "DecisionEngine",
    "FeedDispatcher",
    "ReservationQueue",
    "ReservationService",
    "Snapshot",
    "auto_feed_at",
    "can_dispatch",
    "cooldown_duration_ms",
    "cooldown_end",
    "cooldown_remaining_ms",
    "effective_last_feed",
    "first_slot",
    "is_corrupt",
    "is_device_online",
    "is_device_online_strict",
    "is_fasting_day",
    "load_snapshot",
    "parse_queue",
    "predict_next_feed",
    "weekday_index",
]
