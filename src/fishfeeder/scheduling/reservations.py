"""Store-backed reservation queue management.

Queue writes are conditional on the entity tag read alongside the queue,
so two requests racing on the same identity cannot both append: the loser
re-reads, finds the winner's entry and returns it.
"""

from __future__ import annotations

import logging
from datetime import tzinfo
from typing import Any

from fishfeeder._clock import Clock, to_epoch_ms
from fishfeeder._constants import FEEDER_PATH, MAX_RESERVATIONS, RESERVATIONS_PATH
from fishfeeder._effects import DetachedEffects
from fishfeeder.exceptions import StoreError, StoreTimeoutError
from fishfeeder.models.feeder import CooldownConfig, FeederState, Reservation
from fishfeeder.models.outcomes import CancelResult, Rejection, ReservationResult
from fishfeeder.models.requests import CancelRequest, FeedRequest
from fishfeeder.notify import messages
from fishfeeder.notify.base import Notifier, announce
from fishfeeder.scheduling.presence import is_fasting_day
from fishfeeder.scheduling.queue import ReservationQueue
from fishfeeder.state.store import StateStore

_logger = logging.getLogger(__name__)

_CAS_ATTEMPTS = 3


def parse_queue(raw: Any) -> ReservationQueue:
    """Validate a stored ``reservations`` array into a queue."""
    return ReservationQueue.of(FeederState.model_validate({"reservations": raw}).reservations)


class ReservationService:
    """Enqueue, cancel and reschedule reservations."""

    def __init__(
        self,
        store: StateStore,
        notifier: Notifier,
        effects: DetachedEffects,
        *,
        clock: Clock,
        tz: tzinfo,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._effects = effects
        self._clock = clock
        self._tz = tz

    def _now(self) -> int:
        return to_epoch_ms(self._clock())

    async def _load(self) -> tuple[FeederState, ReservationQueue, str]:
        state = FeederState.from_store(await self._store.get(FEEDER_PATH))
        raw, etag = await self._store.get_with_etag(RESERVATIONS_PATH)
        return state, parse_queue(raw), etag

    async def _commit(self, queue: ReservationQueue, etag: str) -> bool:
        return await self._store.set_if_match(RESERVATIONS_PATH, queue.to_store(), etag)

    def _notify(self, text: str, *, name: str) -> None:
        self._effects.spawn(announce(self._notifier, text), name=name)

    # ------------------------------------------------------------------
    # Enqueue
    # ------------------------------------------------------------------

    async def enqueue(self, request: FeedRequest) -> ReservationResult:
        """Add the requester to the queue, or return their existing entry."""
        try:
            return await self._enqueue(request)
        except StoreTimeoutError:
            return ReservationResult(reason=Rejection.TIMEOUT)

    async def _enqueue(self, request: FeedRequest) -> ReservationResult:
        for attempt in range(_CAS_ATTEMPTS):
            now = self._now()
            state, queue, etag = await self._load()

            if is_fasting_day(state.timer.no_feed_day, now, self._tz):
                return ReservationResult(reason=Rejection.FASTING_DAY, queue_length=len(queue))

            found = queue.find(request.identity)
            if found is not None:
                position, existing = found
                _logger.debug("Reservation already exists at position %d", position)
                return ReservationResult(
                    success=True,
                    reservation=existing,
                    position=position,
                    queue_length=len(queue),
                    existing=True,
                )

            if len(queue) >= MAX_RESERVATIONS:
                return ReservationResult(reason=Rejection.QUEUE_FULL, queue_length=len(queue))

            scheduled = queue.next_scheduled_time(state.last_feed_time, state.timer.duration_ms, now)
            if scheduled < now:
                _logger.warning("Computed reservation time %d is before now (%d)", scheduled, now)
                return ReservationResult(reason=Rejection.INVALID_SCHEDULE, queue_length=len(queue))

            reservation = Reservation(
                user=request.display_name,
                user_email=request.user_email,
                device_id=request.device_id,
                scheduled_time=scheduled,
                created_at=now,
            )
            updated = queue.append(reservation)
            if not await self._commit(updated, etag):
                _logger.debug("Queue changed during enqueue; retrying (attempt %d)", attempt + 1)
                continue

            position = len(updated)
            _logger.info("Reservation for %s queued at position %d", reservation.user, position)
            self._notify(
                messages.reservation_created(reservation.user, scheduled, position, self._tz),
                name="notify-reservation-created",
            )
            return ReservationResult(
                success=True,
                reservation=reservation,
                position=position,
                queue_length=position,
            )
        raise StoreError(f"Gave up enqueueing after {_CAS_ATTEMPTS} conflicting writes", path=RESERVATIONS_PATH)

    # ------------------------------------------------------------------
    # Cancel
    # ------------------------------------------------------------------

    async def cancel(self, request: CancelRequest) -> CancelResult:
        """Remove the requester's reservation and close the gap it leaves."""
        try:
            return await self._cancel(request)
        except StoreTimeoutError:
            return CancelResult(reason=Rejection.TIMEOUT)

    async def _cancel(self, request: CancelRequest) -> CancelResult:
        for attempt in range(_CAS_ATTEMPTS):
            now = self._now()
            state, queue, etag = await self._load()

            found = queue.find(request)
            if found is None:
                return CancelResult(reason=Rejection.RESERVATION_NOT_FOUND, queue_length=len(queue))

            _, removed = found
            updated = queue.without(removed).rescheduled(state.last_feed_time, state.timer.duration_ms, now)
            if not await self._commit(updated, etag):
                _logger.debug("Queue changed during cancel; retrying (attempt %d)", attempt + 1)
                continue

            _logger.info("Reservation for %s cancelled; %d remain", removed.user, len(updated))
            self._notify(messages.reservation_cancelled(removed.user), name="notify-reservation-cancelled")
            return CancelResult(success=True, reservation=removed, queue_length=len(updated))
        raise StoreError(f"Gave up cancelling after {_CAS_ATTEMPTS} conflicting writes", path=RESERVATIONS_PATH)

    # ------------------------------------------------------------------
    # Rescheduling
    # ------------------------------------------------------------------

    async def recompute_on_config_change(self, timer: CooldownConfig | None = None) -> int:
        """Re-anchor the queue from the last feed using *timer*'s interval.

        Returns the number of entries whose scheduled time moved.
        """
        for attempt in range(_CAS_ATTEMPTS):
            now = self._now()
            state, queue, etag = await self._load()
            cooldown_ms = (timer if timer is not None else state.timer).duration_ms
            updated = queue.rescheduled(state.last_feed_time, cooldown_ms, now)
            moved = sum(1 for old, new in zip(queue, updated, strict=True) if old.scheduled_time != new.scheduled_time)
            if not moved:
                return 0
            if await self._commit(updated, etag):
                _logger.info("Rescheduled %d reservation(s) after settings change", moved)
                return moved
            _logger.debug("Queue changed during reschedule; retrying (attempt %d)", attempt + 1)
        raise StoreError(f"Gave up rescheduling after {_CAS_ATTEMPTS} conflicting writes", path=RESERVATIONS_PATH)

    async def remove_dispatched(self, dispatched: Reservation, feed_time: int, cooldown_ms: int) -> None:
        """Drop a reservation that was just fed and lay out the rest after it.

        Runs detached after a dispatch; entries added meanwhile are kept.
        """
        for attempt in range(_CAS_ATTEMPTS):
            now = self._now()
            _, queue, etag = await self._load()
            updated = queue.without(dispatched).rescheduled(feed_time, cooldown_ms, now)
            if await self._commit(updated, etag):
                _logger.debug("Persisted queue after dispatch: %d remaining", len(updated))
                return
            _logger.debug("Queue changed after dispatch; retrying (attempt %d)", attempt + 1)
        raise StoreError(f"Gave up persisting queue after {_CAS_ATTEMPTS} conflicting writes", path=RESERVATIONS_PATH)
