"""Feed dispatch: record the feed, then ask the actuator to dispense.

Write order matters.  ``lastFeedTime`` is persisted before ``status`` is
raised because the device clears ``status`` on its own once it has
dispensed, and the next cooldown check must already see the new instant.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import tzinfo

from fishfeeder._clock import from_epoch_ms
from fishfeeder._constants import (
    HISTORY_PATH,
    LAST_FEED_PATH,
    LAST_FEED_TIME_PATH,
    MAX_HISTORY,
    MAX_REQUESTER_LENGTH,
    STATUS_PATH,
    UNATTENDED_REQUESTER,
)
from fishfeeder._effects import DetachedEffects
from fishfeeder.exceptions import DispatchConflictError, DispatchError, StoreError, StoreTimeoutError
from fishfeeder.models.feeder import FeederState, FeederStatus, FeedOrigin, FeedRecord, LastFeedDetail, truncate
from fishfeeder.notify import messages
from fishfeeder.notify.base import Notifier, announce
from fishfeeder.state.store import StateStore

_logger = logging.getLogger(__name__)


class FeedDispatcher:
    """Side-effecting half of a feed decision."""

    def __init__(
        self,
        store: StateStore,
        notifier: Notifier,
        effects: DetachedEffects,
        *,
        tz: tzinfo,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._effects = effects
        self._tz = tz

    async def dispatch(
        self,
        origin: FeedOrigin,
        requester: str | None,
        now: int,
        *,
        expected_etag: str | None = None,
    ) -> FeedRecord:
        """Record and request a feed at *now*.

        When *expected_etag* is given, the ``lastFeedTime`` write only
        succeeds if nobody else wrote it since the caller read it.

        Raises
        ------
        DispatchConflictError
            Another invocation recorded a feed first.
        StoreTimeoutError
            The ``lastFeedTime`` write timed out; nothing was actuated.
        DispatchError
            The ``lastFeedTime`` write failed; nothing was actuated.
        """
        user = truncate(requester, MAX_REQUESTER_LENGTH) or UNATTENDED_REQUESTER
        record = FeedRecord(timestamp=now, type=origin, user=user)
        _logger.info("Dispatching %s feed for %s", origin.value, user)

        await self._record_feed_time(now, expected_etag)

        local = from_epoch_ms(now, self._tz)
        detail = LastFeedDetail(timestamp=now, hour=local.hour, minute=local.minute, second=local.second)
        results = await asyncio.gather(
            self._store.set(LAST_FEED_PATH, detail.to_store()),
            self._store.set(STATUS_PATH, int(FeederStatus.DISPENSING)),
            return_exceptions=True,
        )
        for path, result in zip((LAST_FEED_PATH, STATUS_PATH), results, strict=True):
            if isinstance(result, BaseException):
                _logger.error("Feed recorded but write to %s failed: %s", path, result)

        self._effects.spawn(self.append_history(record), name="feed-history")
        self._effects.spawn(
            announce(self._notifier, messages.feed_executed(origin, user, now, self._tz)),
            name="notify-feed",
        )
        return record

    async def _record_feed_time(self, now: int, expected_etag: str | None) -> None:
        try:
            if expected_etag is None:
                await self._store.set(LAST_FEED_TIME_PATH, now)
                return
            if not await self._store.set_if_match(LAST_FEED_TIME_PATH, now, expected_etag):
                _logger.warning("Another feed was recorded concurrently; aborting dispatch")
                raise DispatchConflictError("lastFeedTime changed since it was read")
        except StoreTimeoutError:
            _logger.error("Timed out writing lastFeedTime; feed not requested")
            raise
        except StoreError as exc:
            _logger.error("Failed to write lastFeedTime; feed not requested: %s", exc)
            raise DispatchError(f"Could not record feed time: {exc}") from exc

    async def append_history(self, record: FeedRecord) -> None:
        """Prepend *record* to the bounded history (newest first)."""
        raw = await self._store.get(HISTORY_PATH)
        history = FeederState.model_validate({"history": raw}).history
        updated = [record, *history][:MAX_HISTORY]
        await self._store.set(HISTORY_PATH, [entry.to_store() for entry in updated])
