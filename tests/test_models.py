"""Tests for Pydantic model parsing with FeederBaseModel + FeederEnum."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from fishfeeder.models.device import AlertState, DeviceTelemetry, SensorReadings
from fishfeeder.models.feeder import (
    CooldownConfig,
    FeederState,
    FeederStatus,
    FeedOrigin,
    PriorityConfig,
    Reservation,
)
from fishfeeder.models.outcomes import (
    Diagnostics,
    OutcomeType,
    Rejection,
    ReservationResult,
    SchedulerOutcome,
    SettingsResult,
)
from fishfeeder.models.requests import CancelRequest, FeedRequest, PriorityUpdateRequest, TimerUpdateRequest

NOW = 1_767_787_200_000

# ------------------------------------------------------------------
# FeederEnum
# ------------------------------------------------------------------


class TestFeederStatus:
    def test_unknown_value_falls_back(self) -> None:
        assert FeederStatus(7) == FeederStatus.UNKNOWN

    def test_stored_strings_are_coerced(self) -> None:
        assert FeederState.from_store({"status": "1"}).status is FeederStatus.DISPENSING
        assert FeederState.from_store({"status": "busy"}).status is FeederStatus.UNKNOWN

    def test_missing_status_is_idle(self) -> None:
        assert FeederState.from_store({}).status is FeederStatus.IDLE


# ------------------------------------------------------------------
# FeederState
# ------------------------------------------------------------------


class TestFeederState:
    def test_non_mapping_document_uses_defaults(self) -> None:
        state = FeederState.from_store(None)
        assert state.last_feed_time is None
        assert state.reservations == []
        assert state.timer == CooldownConfig()
        assert state.priority.auto_feed_delay_minutes == 30

    def test_explicit_zero_delay_is_kept(self) -> None:
        state = FeederState.from_store({"priority": {"autoFeedDelayMinutes": 0}})
        assert state.priority.auto_feed_delay_minutes == 0
        assert state.priority.auto_feed_delay_ms == 0

    def test_numeric_strings_are_coerced(self) -> None:
        state = FeederState.from_store(
            {
                "lastFeedTime": str(NOW),
                "timer": {"hour": "2", "minute": "15", "noFeedDay": "5"},
                "priority": {"autoFeedDelayMinutes": "-4"},
            }
        )
        assert state.last_feed_time == NOW
        assert state.timer.duration_ms == 2 * 3_600_000 + 15 * 60_000
        assert state.timer.no_feed_day == 5
        assert state.priority.auto_feed_delay_minutes == 0

    @pytest.mark.parametrize("value", ["", "null", "NaN", None, -5, "garbage"])
    def test_unusable_feed_time_is_absent(self, value: object) -> None:
        assert FeederState.from_store({"lastFeedTime": value}).last_feed_time is None

    def test_out_of_range_fasting_day_is_ignored(self) -> None:
        assert FeederState.from_store({"timer": {"noFeedDay": 9}}).timer.no_feed_day is None

    def test_legacy_last_feed_string_is_dropped(self) -> None:
        assert FeederState.from_store({"lastFeed": "12:30:00"}).last_feed is None
        detail = FeederState.from_store({"lastFeed": {"timestamp": NOW, "hour": 15, "minute": 0, "second": 0}})
        assert detail.last_feed.hour == 15

    def test_malformed_reservations_are_dropped_and_sorted(self, caplog: pytest.LogCaptureFixture) -> None:
        raw = [
            {"user": "b", "scheduledTime": NOW + 2, "createdAt": NOW + 2},
            None,
            "junk",
            {"user": "no-time"},
            {"user": "a", "scheduledTime": str(NOW + 1)},
        ]

        state = FeederState.from_store({"reservations": raw})

        assert [r.user for r in state.reservations] == ["a", "b"]
        # Missing createdAt falls back to the schedule.
        assert state.reservations[0].created_at == NOW + 1
        assert "Dropping" in caplog.text

    def test_history_is_bounded(self) -> None:
        raw = [{"timestamp": NOW - i, "type": "manual", "user": f"u{i}"} for i in range(30)]
        state = FeederState.from_store({"history": raw})
        assert len(state.history) == 20
        assert state.history[0].type is FeedOrigin.OPERATOR

    def test_reservation_round_trips_camel_case(self) -> None:
        reservation = Reservation.model_validate(
            {"user": " Ana ", "deviceId": "dev", "scheduledTime": NOW, "createdAt": NOW - 1}
        )
        assert reservation.user == "Ana"
        assert reservation.to_store() == {"user": "Ana", "deviceId": "dev", "scheduledTime": NOW, "createdAt": NOW - 1}

    def test_long_requester_is_truncated(self) -> None:
        reservation = Reservation(user="x" * 500, scheduled_time=NOW, created_at=NOW)
        assert len(reservation.user) == 100


class TestDeviceModels:
    def test_telemetry_defaults(self) -> None:
        device = DeviceTelemetry.from_store("offline")
        assert device.last_seen is None
        assert not device.wifi_connected

    def test_sensor_readings(self) -> None:
        sensors = SensorReadings.from_store({"tds": "812.5", "temperature": None})
        assert sensors.tds == 812.5
        assert sensors.temperature is None

    def test_alert_state(self) -> None:
        alerts = AlertState.from_store({"lastTdsAlert": NOW, "lastKnownOnline": True, "lastTempAlert": "x"})
        assert alerts.last_tds_alert == NOW
        assert alerts.last_temp_alert == 0
        assert alerts.last_known_online is True


# ------------------------------------------------------------------
# Requests
# ------------------------------------------------------------------


class TestRequests:
    def test_feed_request_accepts_camel_case(self) -> None:
        request = FeedRequest.model_validate({"user": "Ana", "userEmail": "ana@example.com", "deviceId": "dev-1"})
        assert request.identity.device_id == "dev-1"
        assert request.display_name == "Ana"

    def test_display_name_fallbacks(self) -> None:
        assert FeedRequest(user_email="ana@example.com").display_name == "ana@example.com"
        assert FeedRequest(user="   ").display_name == "Visitor"

    def test_cancel_requires_identity(self) -> None:
        with pytest.raises(ValidationError):
            CancelRequest.model_validate({})
        assert CancelRequest.model_validate({"deviceId": "dev"}).device_id == "dev"

    @pytest.mark.parametrize(
        "payload",
        [
            {"hour": 24, "minute": 0},
            {"hour": 1, "minute": 60},
            {"hour": 1, "minute": 0, "noFeedDay": 7},
            {"minute": 5},
        ],
    )
    def test_timer_bounds(self, payload: dict[str, int]) -> None:
        with pytest.raises(ValidationError):
            TimerUpdateRequest.model_validate(payload)

    def test_timer_tracks_whether_fasting_day_was_sent(self) -> None:
        assert not TimerUpdateRequest.model_validate({"hour": 1, "minute": 0}).updates_fasting_day
        cleared = TimerUpdateRequest.model_validate({"hour": 1, "minute": 0, "noFeedDay": None})
        assert cleared.updates_fasting_day
        assert cleared.no_feed_day is None

    def test_priority_bounds(self) -> None:
        with pytest.raises(ValidationError):
            PriorityUpdateRequest.model_validate({"reservationDelayMinutes": 61, "autoFeedDelayMinutes": 0})
        ok = PriorityUpdateRequest.model_validate({"reservationDelayMinutes": 5, "autoFeedDelayMinutes": 120})
        assert ok.auto_feed_delay_minutes == 120


# ------------------------------------------------------------------
# Outcomes
# ------------------------------------------------------------------


class TestOutcomes:
    @pytest.mark.parametrize(
        ("reason", "status"),
        [
            (Rejection.FASTING_DAY, 403),
            (Rejection.DEVICE_OFFLINE, 503),
            (Rejection.ALREADY_FEEDING, 409),
            (Rejection.COOLDOWN_ACTIVE, 429),
            (Rejection.RESERVATIONS_EXIST, 409),
            (Rejection.QUEUE_FULL, 429),
            (Rejection.RESERVATION_NOT_FOUND, 404),
            (Rejection.INVALID_SCHEDULE, 400),
            (Rejection.TIMEOUT, 504),
        ],
    )
    def test_rejection_status(self, reason: Rejection, status: int) -> None:
        assert reason.http_status == status

    def test_declined_periodic_check_is_not_an_http_error(self) -> None:
        assert SchedulerOutcome(reason=Rejection.DEVICE_OFFLINE).http_status == 200
        assert SchedulerOutcome(reason=Rejection.TIMEOUT).http_status == 504

    def test_scheduler_response_is_camel_case(self) -> None:
        outcome = SchedulerOutcome(
            reason=Rejection.NO_FEED_NEEDED,
            diagnostics=Diagnostics(queue_length=2, ready_count=0, cooldown_remaining_ms=5),
        )
        assert outcome.to_response() == {
            "reason": "no_feed_needed",
            "outcome": "none",
            "diagnostics": {"queueLength": 2, "readyCount": 0, "cooldownRemainingMs": 5},
        }
        assert not outcome.fed
        assert SchedulerOutcome(outcome=OutcomeType.TIMER).fed

    def test_new_reservation_is_created(self) -> None:
        reservation = Reservation(user="Ana", scheduled_time=NOW, created_at=NOW)
        assert ReservationResult(success=True, reservation=reservation, position=1).http_status == 201
        assert ReservationResult(success=True, reservation=reservation, existing=True).http_status == 200

    def test_settings_result_serializes_nested_config(self) -> None:
        result = SettingsResult(priority=PriorityConfig(auto_feed_delay_minutes=5), rescheduled=2)
        assert result.to_response() == {
            "success": True,
            "priority": {"reservationDelayMinutes": 0, "autoFeedDelayMinutes": 5},
            "rescheduled": 2,
        }
