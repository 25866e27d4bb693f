"""Chat bot commands.

Replies are rendered from a fresh store snapshot and sent untracked, so
they do not count towards chat housekeeping.
"""

from __future__ import annotations

import asyncio
import html
import logging
from collections.abc import Awaitable, Callable, Mapping
from datetime import tzinfo
from typing import Any

from fishfeeder._clock import Clock, to_epoch_ms
from fishfeeder._constants import MS_PER_HOUR, MS_PER_MINUTE, SENSORS_PATH
from fishfeeder.exceptions import NotificationError, StoreError
from fishfeeder.models.device import SensorReadings
from fishfeeder.models.outcomes import OutcomeType
from fishfeeder.notify.base import Notifier
from fishfeeder.notify.messages import format_datetime, format_interval, format_remaining
from fishfeeder.scheduling.cooldown import cooldown_end, cooldown_remaining_ms
from fishfeeder.scheduling.engine import Snapshot, load_snapshot, predict_next_feed
from fishfeeder.scheduling.presence import is_device_online_strict
from fishfeeder.state.store import StateStore

_logger = logging.getLogger(__name__)

_HISTORY_LINES = 5

HELP_TEXT = "\n".join(
    [
        "🤖 <b>FishFeeder Bot Commands</b>",
        "",
        "📊 <b>Information:</b>",
        "  /status – Full system status",
        "  /nextfeed – When next feed will happen",
        "  /cooldown – Cooldown status and time remaining",
        "  /reservations – Active reservation queue with time left",
        "  /history – Last 5 feed events",
        "",
        "🔧 <b>Actions:</b>",
        "  /clear – Clear all bot messages",
        "  /help – Show this help message",
    ]
)

UNKNOWN_COMMAND = "❓ Unknown command. Use /help to see available commands."


def _cooldown_label(snap: Snapshot) -> str:
    duration = snap.state.timer.duration_ms
    return format_interval(duration // MS_PER_HOUR, (duration % MS_PER_HOUR) // MS_PER_MINUTE)


def _next_feed_label(kind: OutcomeType, user: str | None) -> str:
    if kind is OutcomeType.RESERVATION:
        return f"Reservation ({html.escape(user or 'Unknown', quote=False)})"
    return "Auto Feed"


def _uptime_label(uptime_s: float) -> str:
    hours, rest = divmod(int(uptime_s), 3600)
    minutes = rest // 60
    return f"{hours}h {minutes}m" if hours else f"{minutes}m"


def _reading(value: float | None) -> str:
    return "N/A" if value is None else f"{value:g}"


def render_status(snap: Snapshot, sensors: SensorReadings, now: int, tz: tzinfo) -> str:
    device = snap.device
    online = is_device_online_strict(device, now)
    next_at, kind, user = predict_next_feed(snap, now)
    remaining = next_at - now
    return "\n".join(
        [
            "📊 <b>SYSTEM STATUS</b>",
            "",
            "<b>🔌 Device Status:</b>",
            f"   {'🟢' if online else '🔴'} <b>Status:</b> <code>{'ONLINE' if online else 'OFFLINE'}</code>",
            f"   📶 <b>WiFi:</b> <code>{html.escape(device.wifi, quote=False)}</code>",
            f"   ⚙️ <b>Servo:</b> <code>{html.escape(device.servo or 'off', quote=False)}</code>",
            f"   ⏱️ <b>Uptime:</b> <code>{_uptime_label(device.uptime)}</code>",
            "",
            "<b>🍽️ Feed Status:</b>",
            f"   🕐 <b>Last Feed:</b> <code>{format_datetime(snap.last_feed_time, tz)}</code>",
            f"   ⏰ <b>Next Feed:</b> <code>{format_datetime(next_at, tz)}</code>",
            f"   🔧 <b>Type:</b> <code>{_next_feed_label(kind, user)}</code>",
            f"   ⏳ <b>Time Remaining:</b> <code>{format_remaining(remaining) if remaining > 0 else 'Ready now'}</code>",
            f"   ⏱️ <b>Cooldown:</b> <code>{_cooldown_label(snap)}</code>",
            "",
            "<b>🌡️ Sensors:</b>",
            f"   🌡️ <b>Temperature:</b> <code>{_reading(sensors.temperature)}°C</code>",
            f"   💧 <b>TDS:</b> <code>{_reading(sensors.tds)} ppm</code>",
            "",
            "<b>📌 Reservations:</b>",
            f"   📋 <b>Count:</b> <code>{len(snap.state.reservations)}</code>",
        ]
    )


def render_history(snap: Snapshot, tz: tzinfo) -> str:
    history = snap.state.history
    if not history:
        return "📜 <b>FEED HISTORY</b>\n\nNo feed history available."
    lines = [f"📜 <b>LAST {_HISTORY_LINES} FEEDS</b>", ""]
    for index, record in enumerate(history[:_HISTORY_LINES], start=1):
        user = html.escape(record.user, quote=False)
        lines.append(f"{index}. [{record.type.value}] {user} – {format_datetime(record.timestamp, tz)}")
    return "\n".join(lines)


def render_reservations(snap: Snapshot, now: int, tz: tzinfo) -> str:
    reservations = snap.state.reservations
    if not reservations:
        return "\n".join(
            [
                "📌 <b>ACTIVE RESERVATIONS</b>",
                "",
                "No active reservations in queue.",
                "",
                "💡 Use the frontend to create a reservation.",
            ]
        )
    lines = [
        "📌 <b>ACTIVE RESERVATIONS</b>",
        "",
        f"Total: <code>{len(reservations)}</code> reservation(s)",
        "",
    ]
    for index, reservation in enumerate(reservations, start=1):
        remaining = reservation.scheduled_time - now
        left = f"⏳ {format_remaining(remaining)}" if remaining > 0 else "⏰ Ready now"
        lines.extend(
            [
                f"{index}. <b>{html.escape(reservation.user, quote=False)}</b>",
                f"   🕐 {format_datetime(reservation.scheduled_time, tz)}",
                f"   {left}",
                "",
            ]
        )
    return "\n".join(lines)


def render_next_feed(snap: Snapshot, now: int, tz: tzinfo) -> str:
    next_at, kind, user = predict_next_feed(snap, now)
    remaining = next_at - now
    count = len(snap.state.reservations)
    return "\n".join(
        [
            "⏰ <b>NEXT FEED</b>",
            "",
            f"🔧 <b>Type:</b> <code>{_next_feed_label(kind, user)}</code>",
            f"🕐 <b>Scheduled:</b> <code>{format_datetime(next_at, tz)}</code>",
            f"⏳ <b>Time Remaining:</b> <code>"
            f"{format_remaining(remaining, seconds=True) if remaining > 0 else 'Ready now'}</code>",
            "",
            f"📌 <b>Reservations:</b> <code>{count}</code> in queue"
            if count
            else "🤖 Auto feed will trigger after cooldown + delay",
        ]
    )


def render_cooldown(snap: Snapshot, now: int, tz: tzinfo) -> str:
    duration = snap.state.timer.duration_ms
    ends = cooldown_end(snap.last_feed_time, duration)
    remaining = cooldown_remaining_ms(snap.last_feed_time, duration, now)
    status = (
        f"⏳ <b>Time Remaining:</b> <code>{format_remaining(remaining, seconds=True)}</code>"
        if remaining > 0
        else "✅ <b>Status:</b> <code>✅ Cooldown finished</code>"
    )
    return "\n".join(
        [
            "⏳ <b>COOLDOWN STATUS</b>",
            "",
            f"⏱️ <b>Cooldown Period:</b> <code>{_cooldown_label(snap)}</code>",
            f"⏰ <b>Last Feed:</b> <code>{format_datetime(snap.last_feed_time, tz)}</code>",
            f"🕐 <b>Cooldown Ends:</b> <code>{format_datetime(ends, tz)}</code>",
            "",
            status,
        ]
    )


def parse_command(text: str) -> str:
    """``/status@FishFeederBot extra`` -> ``/status``."""
    head = text.strip().split(maxsplit=1)[0] if text.strip() else ""
    return head.split("@", 1)[0].lower()


class FeederBot:
    """Answer commands posted to the configured chat."""

    def __init__(
        self,
        store: StateStore,
        notifier: Notifier,
        *,
        chat_id: str | None,
        clock: Clock,
        tz: tzinfo,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._chat_id = chat_id
        self._clock = clock
        self._tz = tz
        self._commands: dict[str, Callable[[], Awaitable[str]]] = {
            "/status": self._status,
            "/nextfeed": self._next_feed,
            "/next": self._next_feed,
            "/cooldown": self._cooldown,
            "/history": self._history,
            "/reservations": self._reservations,
            "/res": self._reservations,
            "/help": self._help,
            "/start": self._help,
            "/clear": self._clear,
        }

    def _now(self) -> int:
        return to_epoch_ms(self._clock())

    async def _status(self) -> str:
        snap, sensors_raw = await asyncio.gather(load_snapshot(self._store), self._store.get(SENSORS_PATH))
        return render_status(snap, SensorReadings.from_store(sensors_raw), self._now(), self._tz)

    async def _next_feed(self) -> str:
        return render_next_feed(await load_snapshot(self._store), self._now(), self._tz)

    async def _cooldown(self) -> str:
        return render_cooldown(await load_snapshot(self._store), self._now(), self._tz)

    async def _history(self) -> str:
        return render_history(await load_snapshot(self._store), self._tz)

    async def _reservations(self) -> str:
        return render_reservations(await load_snapshot(self._store), self._now(), self._tz)

    async def _help(self) -> str:
        return HELP_TEXT

    async def _clear(self) -> str:
        deleted = await self._notifier.clear_messages()
        return f"✅ <b>Chat Cleared</b>\n🗑️ Deleted <code>{deleted}</code> message(s)."

    async def reply_to(self, text: str) -> str:
        """Render the reply for one command."""
        handler = self._commands.get(parse_command(text))
        if handler is None:
            return UNKNOWN_COMMAND
        try:
            return await handler()
        except StoreError as exc:
            _logger.warning("Bot command %r failed: %s", text, exc)
            return "❌ Error: Failed to read feeder state."

    async def handle_update(self, update: Mapping[str, Any]) -> str | None:
        """Process one webhook update; return the reply that was sent, if any."""
        message = update.get("message")
        if not isinstance(message, Mapping) or not isinstance(message.get("text"), str):
            return None
        chat = message.get("chat")
        chat_id = chat.get("id") if isinstance(chat, Mapping) else None
        if self._chat_id is None or str(chat_id) != str(self._chat_id):
            _logger.warning("Ignoring message from unauthorized chat %s", chat_id)
            return None

        reply = await self.reply_to(message["text"])
        try:
            await self._notifier.send(reply, track=False)
        except NotificationError as exc:
            _logger.warning("Could not deliver bot reply: %s", exc)
        return reply
