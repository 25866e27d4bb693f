"""Feed decision engine.

Each invocation reads a fresh snapshot, evaluates its guards in a fixed
order and performs at most one dispatch.  Nothing is carried between
invocations except what is persisted in the store.

Periodic check guards, in order::

    fasting day      -> none / fasting_day
    device offline   -> none / device_offline
    status == 1      -> none / already_feeding
    cooldown running -> none / cooldown_active
    ready reservation (oldest createdAt) -> reservation
    empty queue and auto-feed due        -> timer
    otherwise        -> none / no_feed_needed (+ diagnostics)

An operator feed runs the first four guards (with the stricter presence
check), refuses while any reservation is queued, then dispatches.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from datetime import tzinfo

from fishfeeder._clock import Clock, to_epoch_ms
from fishfeeder._constants import DEVICE_PATH, FEEDER_PATH, LAST_FEED_TIME_PATH, UNATTENDED_REQUESTER
from fishfeeder._effects import DetachedEffects
from fishfeeder.exceptions import DispatchConflictError, StoreTimeoutError
from fishfeeder.models._base import coerce_epoch_ms
from fishfeeder.models.device import DeviceTelemetry
from fishfeeder.models.feeder import FeederState, FeederStatus, FeedOrigin, FeedRecord
from fishfeeder.models.outcomes import Diagnostics, FeedResult, OutcomeType, Rejection, SchedulerOutcome
from fishfeeder.models.requests import FeedRequest
from fishfeeder.scheduling.cooldown import auto_feed_at, can_dispatch, cooldown_remaining_ms
from fishfeeder.scheduling.dispatcher import FeedDispatcher
from fishfeeder.scheduling.presence import is_device_online, is_device_online_strict, is_fasting_day
from fishfeeder.scheduling.queue import ReservationQueue
from fishfeeder.scheduling.reservations import ReservationService
from fishfeeder.state.store import StateStore

_logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class Snapshot:
    """Everything one decision needs, read together."""

    state: FeederState
    device: DeviceTelemetry
    last_feed_time: int | None
    last_feed_etag: str

    @property
    def queue(self) -> ReservationQueue:
        return ReservationQueue.of(self.state.reservations)


async def load_snapshot(store: StateStore) -> Snapshot:
    feeder_raw, device_raw, (last_raw, etag) = await asyncio.gather(
        store.get(FEEDER_PATH),
        store.get(DEVICE_PATH),
        store.get_with_etag(LAST_FEED_TIME_PATH),
    )
    return Snapshot(
        state=FeederState.from_store(feeder_raw),
        device=DeviceTelemetry.from_store(device_raw),
        last_feed_time=coerce_epoch_ms(last_raw),
        last_feed_etag=etag,
    )


def predict_next_feed(snap: Snapshot, now: int) -> tuple[int, OutcomeType, str | None]:
    """Earliest queued reservation, otherwise the instant auto-feed becomes due."""
    state = snap.state
    if state.reservations:
        upcoming = min(state.reservations, key=lambda r: r.scheduled_time)
        return upcoming.scheduled_time, OutcomeType.RESERVATION, upcoming.user
    due = auto_feed_at(snap.last_feed_time, state.timer.duration_ms, state.priority.auto_feed_delay_ms, now)
    return due, OutcomeType.TIMER, None


class DecisionEngine:
    """Decide whether to feed now, and which kind of feed."""

    def __init__(
        self,
        store: StateStore,
        dispatcher: FeedDispatcher,
        reservations: ReservationService,
        effects: DetachedEffects,
        *,
        clock: Clock,
        tz: tzinfo,
    ) -> None:
        self._store = store
        self._dispatcher = dispatcher
        self._reservations = reservations
        self._effects = effects
        self._clock = clock
        self._tz = tz

    def _now(self) -> int:
        return to_epoch_ms(self._clock())

    def _guard(self, snap: Snapshot, now: int, *, strict: bool) -> Rejection | None:
        state = snap.state
        if is_fasting_day(state.timer.no_feed_day, now, self._tz):
            return Rejection.FASTING_DAY
        online = is_device_online_strict(snap.device, now) if strict else is_device_online(snap.device, now)
        if not online:
            return Rejection.DEVICE_OFFLINE
        if state.status is FeederStatus.DISPENSING:
            return Rejection.ALREADY_FEEDING
        if not can_dispatch(snap.last_feed_time, state.timer.duration_ms, now):
            return Rejection.COOLDOWN_ACTIVE
        return None

    async def _dispatch(self, origin: FeedOrigin, user: str, now: int, snap: Snapshot) -> FeedRecord | Rejection:
        try:
            return await self._dispatcher.dispatch(origin, user, now, expected_etag=snap.last_feed_etag)
        except DispatchConflictError:
            return Rejection.ALREADY_FEEDING
        except StoreTimeoutError:
            return Rejection.TIMEOUT

    # ------------------------------------------------------------------
    # Periodic check
    # ------------------------------------------------------------------

    async def run_scheduled_check(self) -> SchedulerOutcome:
        now = self._now()
        try:
            snap = await load_snapshot(self._store)
        except StoreTimeoutError:
            return SchedulerOutcome(reason=Rejection.TIMEOUT)

        rejection = self._guard(snap, now, strict=False)
        if rejection is not None:
            _logger.debug("Periodic check declined: %s", rejection.value)
            return SchedulerOutcome(reason=rejection)

        state = snap.state
        cooldown_ms = state.timer.duration_ms
        queue = snap.queue

        chosen, _ = queue.take_ready(now)
        if chosen is not None:
            outcome = await self._dispatch(FeedOrigin.RESERVATION, chosen.user, now, snap)
            if isinstance(outcome, Rejection):
                return SchedulerOutcome(reason=outcome)
            self._effects.spawn(
                self._reservations.remove_dispatched(chosen, outcome.timestamp, cooldown_ms),
                name="persist-queue-after-dispatch",
            )
            return SchedulerOutcome(outcome=OutcomeType.RESERVATION, user=outcome.user, feed_time=outcome.timestamp)

        auto_remaining: int | None = None
        if not queue:
            due = auto_feed_at(snap.last_feed_time, cooldown_ms, state.priority.auto_feed_delay_ms, now)
            if now >= due:
                outcome = await self._dispatch(FeedOrigin.UNATTENDED, UNATTENDED_REQUESTER, now, snap)
                if isinstance(outcome, Rejection):
                    return SchedulerOutcome(reason=outcome)
                return SchedulerOutcome(outcome=OutcomeType.TIMER, user=outcome.user, feed_time=outcome.timestamp)
            auto_remaining = due - now

        diagnostics = Diagnostics(
            queue_length=len(queue),
            ready_count=len(queue.ready(now)),
            cooldown_remaining_ms=cooldown_remaining_ms(snap.last_feed_time, cooldown_ms, now),
            auto_feed_remaining_ms=auto_remaining,
        )
        _logger.debug("No feed needed: %s", diagnostics)
        return SchedulerOutcome(reason=Rejection.NO_FEED_NEEDED, diagnostics=diagnostics)

    # ------------------------------------------------------------------
    # Operator feed
    # ------------------------------------------------------------------

    async def request_manual_feed(self, request: FeedRequest) -> FeedResult:
        now = self._now()
        try:
            snap = await load_snapshot(self._store)
        except StoreTimeoutError:
            return FeedResult(reason=Rejection.TIMEOUT)

        rejection = self._guard(snap, now, strict=True)
        if rejection is None and snap.state.reservations:
            rejection = Rejection.RESERVATIONS_EXIST
        if rejection is not None:
            _logger.info("Manual feed rejected: %s", rejection.value)
            return FeedResult(reason=rejection)

        outcome = await self._dispatch(FeedOrigin.OPERATOR, request.display_name, now, snap)
        if isinstance(outcome, Rejection):
            return FeedResult(reason=outcome)
        return FeedResult(success=True, user=outcome.user, feed_time=outcome.timestamp)
