"""Cooldown arithmetic.

Every check of ``lastFeedTime`` goes through this module.  The device
clock has written uptime-based values in the past, so anything below the
year-2000 floor is treated as if no feed had been recorded.
"""

from __future__ import annotations

import logging

from fishfeeder._constants import EPOCH_FLOOR_MS, MS_PER_HOUR, MS_PER_MINUTE

_logger = logging.getLogger(__name__)


def cooldown_duration_ms(hours: int, minutes: int) -> int:
    return hours * MS_PER_HOUR + minutes * MS_PER_MINUTE


def is_corrupt(instant: int | None) -> bool:
    return instant is not None and instant < EPOCH_FLOOR_MS


def effective_last_feed(instant: int | None) -> int | None:
    """The last feed instant usable for cooldown math, or ``None``."""
    if is_corrupt(instant):
        _logger.warning("Ignoring corrupt lastFeedTime %s (below epoch floor)", instant)
        return None
    return instant


def cooldown_end(last_feed: int | None, cooldown_ms: int) -> int | None:
    """Instant the cooldown expires; ``None`` when there is no usable anchor."""
    anchor = effective_last_feed(last_feed)
    if anchor is None:
        return None
    return anchor + cooldown_ms


def can_dispatch(last_feed: int | None, cooldown_ms: int, now: int) -> bool:
    end = cooldown_end(last_feed, cooldown_ms)
    return end is None or now >= end


def cooldown_remaining_ms(last_feed: int | None, cooldown_ms: int, now: int) -> int:
    end = cooldown_end(last_feed, cooldown_ms)
    if end is None:
        return 0
    return max(0, end - now)


def first_slot(last_feed: int | None, cooldown_ms: int, now: int) -> int:
    """Earliest instant a feed may be scheduled, never before *now*."""
    end = cooldown_end(last_feed, cooldown_ms)
    return now if end is None else max(now, end)


def auto_feed_at(last_feed: int | None, cooldown_ms: int, delay_ms: int, now: int) -> int:
    """When an unattended feed becomes due.

    Without a usable anchor the cooldown counts as ending at *now*, so only
    the configured delay remains.
    """
    end = cooldown_end(last_feed, cooldown_ms)
    if end is None:
        end = now
    return end + delay_ms
