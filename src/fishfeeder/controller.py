"""High-level async controller for the fish feeder backend."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any
from zoneinfo import ZoneInfo

import aiohttp

from fishfeeder._clock import Clock, to_epoch_ms, utcnow
from fishfeeder._constants import PRIORITY_PATH, SENSORS_PATH, TIMER_PATH
from fishfeeder._effects import DetachedEffects
from fishfeeder.alerts import AlertMonitor
from fishfeeder.bot import FeederBot
from fishfeeder.config import FeederConfig
from fishfeeder.exceptions import FeederError, StoreTimeoutError
from fishfeeder.models.device import SensorReadings
from fishfeeder.models.feeder import CooldownConfig, FeederStatus, PriorityConfig
from fishfeeder.models.outcomes import (
    CancelResult,
    DeviceSummary,
    FeedResult,
    Rejection,
    ReservationResult,
    SchedulerOutcome,
    SettingsResult,
    StatusReport,
)
from fishfeeder.models.requests import CancelRequest, FeedRequest, PriorityUpdateRequest, TimerUpdateRequest
from fishfeeder.notify import messages
from fishfeeder.notify.base import Notifier, NullNotifier, announce
from fishfeeder.notify.telegram import TelegramNotifier
from fishfeeder.scheduling.cooldown import auto_feed_at, can_dispatch, cooldown_end
from fishfeeder.scheduling.dispatcher import FeedDispatcher
from fishfeeder.scheduling.engine import DecisionEngine, load_snapshot, predict_next_feed
from fishfeeder.scheduling.presence import is_device_online_strict, is_fasting_day
from fishfeeder.scheduling.reservations import ReservationService
from fishfeeder.state.firebase import StoreProvider
from fishfeeder.state.store import StateStore

_logger = logging.getLogger(__name__)

_DRAIN_TIMEOUT_S = 15.0


class FeederController:
    """Async entry point wiring store, scheduling and notifications.

    Usage::

        async with FeederController(FeederConfig.from_env()) as feeder:
            outcome = await feeder.run_scheduler()

    Pass ``store`` to run against an in-process store (tests, local
    experiments); it is still wrapped with the configured timeouts.
    """

    def __init__(
        self,
        config: FeederConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        store: StateStore | None = None,
        notifier: Notifier | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._injected_store = store
        self._injected_notifier = notifier
        self._clock = clock
        self._tz = ZoneInfo(config.time_zone)
        self._effects = DetachedEffects()
        self._provider: StoreProvider | None = None
        self._notifier: Notifier | None = None
        self._engine: DecisionEngine | None = None
        self._reservations: ReservationService | None = None
        self._alerts: AlertMonitor | None = None
        self._bot: FeederBot | None = None

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> FeederController:
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()
        if self._injected_store is not None:
            injected = self._injected_store
            self._provider = StoreProvider(self._config, factory=lambda _cfg: injected)
        else:
            self._provider = StoreProvider(self._config, http_session=self._http_session)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self._effects.drain(timeout=_DRAIN_TIMEOUT_S)
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        self._provider = None
        self._engine = None

    @property
    def effects(self) -> DetachedEffects:
        return self._effects

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    def _store(self) -> StateStore:
        if self._provider is None:
            raise FeederError("FeederController must be used as an async context manager")
        return self._provider.get()

    def _build_notifier(self, store: StateStore) -> Notifier:
        if self._injected_notifier is not None:
            return self._injected_notifier
        if self._config.notifications_enabled and self._http_session is not None:
            return TelegramNotifier(self._config, self._http_session, store=store, effects=self._effects)
        _logger.info("Telegram credentials missing; notifications will only be logged")
        return NullNotifier()

    def _ensure_wired(self) -> DecisionEngine:
        if self._engine is not None:
            return self._engine
        store = self._store()
        notifier = self._build_notifier(store)
        self._notifier = notifier
        self._reservations = ReservationService(store, notifier, self._effects, clock=self._clock, tz=self._tz)
        dispatcher = FeedDispatcher(store, notifier, self._effects, tz=self._tz)
        self._alerts = AlertMonitor(store, notifier, clock=self._clock, tz=self._tz)
        self._bot = FeederBot(
            store,
            notifier,
            chat_id=self._config.telegram_chat_id,
            clock=self._clock,
            tz=self._tz,
        )
        self._engine = DecisionEngine(
            store,
            dispatcher,
            self._reservations,
            self._effects,
            clock=self._clock,
            tz=self._tz,
        )
        return self._engine

    def _now(self) -> int:
        return to_epoch_ms(self._clock())

    def _notify(self, text: str, *, name: str) -> None:
        assert self._notifier is not None
        self._effects.spawn(announce(self._notifier, text), name=name)

    # ------------------------------------------------------------------
    # Feeding
    # ------------------------------------------------------------------

    async def run_scheduler(self, *, with_alerts: bool = True) -> SchedulerOutcome:
        """Run one periodic check; alerts are evaluated afterwards, detached."""
        outcome = await self._ensure_wired().run_scheduled_check()
        _logger.info("Scheduler outcome: %s", outcome.outcome.value if outcome.fed else outcome.reason)
        if with_alerts:
            self._effects.spawn(self._run_alerts(), name="alerts")
        return outcome

    async def _run_alerts(self) -> None:
        assert self._alerts is not None
        await self._alerts.check_device_alerts()
        await self._alerts.check_sensor_alerts()

    async def manual_feed(self, request: FeedRequest) -> FeedResult:
        return await self._ensure_wired().request_manual_feed(request)

    # ------------------------------------------------------------------
    # Reservations
    # ------------------------------------------------------------------

    async def create_reservation(self, request: FeedRequest) -> ReservationResult:
        self._ensure_wired()
        assert self._reservations is not None
        return await self._reservations.enqueue(request)

    async def cancel_reservation(self, request: CancelRequest) -> CancelResult:
        self._ensure_wired()
        assert self._reservations is not None
        return await self._reservations.cancel(request)

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    async def update_timer(self, request: TimerUpdateRequest) -> SettingsResult:
        """Persist a new feed interval and re-anchor the queue to it."""
        self._ensure_wired()
        assert self._reservations is not None
        store = self._store()
        try:
            current = CooldownConfig.model_validate(await store.get(TIMER_PATH) or {})
            timer = CooldownConfig(
                hour=request.hour,
                minute=request.minute,
                no_feed_day=request.no_feed_day if request.updates_fasting_day else current.no_feed_day,
            )
            await store.set(TIMER_PATH, timer.to_store())
            moved = await self._reservations.recompute_on_config_change(timer)
        except StoreTimeoutError:
            return SettingsResult(success=False, reason=Rejection.TIMEOUT)

        if timer != current:
            self._notify(messages.timer_updated(timer.hour, timer.minute, timer.no_feed_day), name="notify-timer")
        return SettingsResult(timer=timer, rescheduled=moved)

    async def update_priority(self, request: PriorityUpdateRequest) -> SettingsResult:
        self._ensure_wired()
        assert self._reservations is not None
        store = self._store()
        priority = PriorityConfig(
            reservation_delay_minutes=request.reservation_delay_minutes,
            auto_feed_delay_minutes=request.auto_feed_delay_minutes,
        )
        try:
            await store.set(PRIORITY_PATH, priority.to_store())
            moved = await self._reservations.recompute_on_config_change()
        except StoreTimeoutError:
            return SettingsResult(success=False, reason=Rejection.TIMEOUT)

        self._notify(
            messages.priority_updated(priority.reservation_delay_minutes, priority.auto_feed_delay_minutes),
            name="notify-priority",
        )
        return SettingsResult(priority=priority, rescheduled=moved)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    async def get_status(self) -> StatusReport:
        self._ensure_wired()
        store = self._store()
        now = self._now()
        try:
            snap, sensors_raw = await asyncio.gather(load_snapshot(store), store.get(SENSORS_PATH))
        except StoreTimeoutError:
            return StatusReport(reason=Rejection.TIMEOUT)

        state = snap.state
        cooldown_ms = state.timer.duration_ms
        online = is_device_online_strict(snap.device, now)
        fasting = is_fasting_day(state.timer.no_feed_day, now, self._tz)
        next_at, next_kind, _ = predict_next_feed(snap, now)
        can_feed = (
            not fasting
            and online
            and state.status is not FeederStatus.DISPENSING
            and can_dispatch(snap.last_feed_time, cooldown_ms, now)
            and not state.reservations
        )
        return StatusReport(
            status=state.status,
            last_feed_time=snap.last_feed_time,
            last_feed=state.last_feed,
            timer=state.timer,
            priority=state.priority,
            device=DeviceSummary(
                online=online,
                last_seen=snap.device.last_seen,
                wifi=snap.device.wifi,
                uptime=snap.device.uptime,
                servo=snap.device.servo,
            ),
            sensors=SensorReadings.from_store(sensors_raw),
            reservations=state.reservations,
            history=state.history,
            fasting_day=fasting,
            can_feed=can_feed,
            cooldown_ends_at=cooldown_end(snap.last_feed_time, cooldown_ms),
            auto_feed_at=auto_feed_at(snap.last_feed_time, cooldown_ms, state.priority.auto_feed_delay_ms, now),
            next_feed_at=next_at,
            next_feed_type=next_kind,
        )

    async def check_device(self) -> DeviceSummary:
        self._ensure_wired()
        assert self._alerts is not None
        try:
            return await self._alerts.check_device_alerts()
        except StoreTimeoutError:
            return DeviceSummary(reason=Rejection.TIMEOUT)

    # ------------------------------------------------------------------
    # Chat bot
    # ------------------------------------------------------------------

    async def handle_bot_update(self, update: Mapping[str, Any]) -> str | None:
        self._ensure_wired()
        assert self._bot is not None
        return await self._bot.handle_update(update)
