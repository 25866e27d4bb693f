from __future__ import annotations

import logging

import pytest

from fishfeeder.scheduling.cooldown import (
    auto_feed_at,
    can_dispatch,
    cooldown_duration_ms,
    cooldown_end,
    cooldown_remaining_ms,
    first_slot,
    is_corrupt,
)

MINUTE = 60_000
T = 1_767_787_200_000  # 2026-01-07T12:00:00Z


def test_duration_combines_hours_and_minutes() -> None:
    assert cooldown_duration_ms(1, 30) == 5_400_000
    assert cooldown_duration_ms(0, 0) == 0


def test_cooldown_blocks_until_it_has_fully_elapsed() -> None:
    cooldown = 30 * MINUTE

    assert not can_dispatch(T, cooldown, T + 1)
    assert not can_dispatch(T, cooldown, T + cooldown - 1)
    assert can_dispatch(T, cooldown, T + cooldown)
    assert can_dispatch(T, cooldown, T + cooldown + 1)


def test_never_fed_can_dispatch() -> None:
    assert can_dispatch(None, 30 * MINUTE, T)
    assert cooldown_end(None, 30 * MINUTE) is None
    assert cooldown_remaining_ms(None, 30 * MINUTE, T) == 0


@pytest.mark.parametrize("value", [1, 123_456, 946_684_799_999])
def test_pre_2000_timestamp_is_ignored(value: int, caplog: pytest.LogCaptureFixture) -> None:
    assert is_corrupt(value)
    with caplog.at_level(logging.WARNING, logger="fishfeeder.scheduling.cooldown"):
        assert can_dispatch(value, 24 * 60 * MINUTE, T)
    assert "corrupt lastFeedTime" in caplog.text


def test_epoch_floor_itself_is_valid() -> None:
    assert not is_corrupt(946_684_800_000)
    assert not is_corrupt(None)


def test_remaining_counts_down_to_zero() -> None:
    cooldown = 10 * MINUTE
    assert cooldown_remaining_ms(T, cooldown, T + 4 * MINUTE) == 6 * MINUTE
    assert cooldown_remaining_ms(T, cooldown, T + 20 * MINUTE) == 0


def test_first_slot_is_never_before_now() -> None:
    cooldown = 10 * MINUTE
    assert first_slot(None, cooldown, T) == T
    assert first_slot(T - 60 * MINUTE, cooldown, T) == T
    assert first_slot(T - 4 * MINUTE, cooldown, T) == T + 6 * MINUTE


def test_auto_feed_waits_for_cooldown_plus_delay() -> None:
    assert auto_feed_at(T, 30 * MINUTE, 15 * MINUTE, T) == T + 45 * MINUTE
    assert auto_feed_at(None, 30 * MINUTE, 15 * MINUTE, T) == T + 15 * MINUTE
    assert auto_feed_at(42, 30 * MINUTE, 15 * MINUTE, T) == T + 15 * MINUTE
    assert auto_feed_at(None, 30 * MINUTE, 0, T) == T
