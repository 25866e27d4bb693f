"""Human-readable chat message formatting.

Messages are sent with ``parse_mode=HTML``, so any requester-supplied text
is escaped here.
"""

from __future__ import annotations

import html
from datetime import tzinfo

from fishfeeder._clock import from_epoch_ms
from fishfeeder._constants import (
    DAY_NAMES,
    DEFAULT_REQUESTER,
    MS_PER_HOUR,
    MS_PER_MINUTE,
    MS_PER_SECOND,
    TEMPERATURE_SAFE_MAX_C,
    TEMPERATURE_SAFE_MIN_C,
    UNATTENDED_REQUESTER,
)
from fishfeeder.models.feeder import FeedOrigin

_HEADER = "🐟 <b>FISH FEEDER ALERT</b>"


def _safe(text: str | None, fallback: str) -> str:
    return html.escape(text or fallback, quote=False)


def format_time(instant: int, tz: tzinfo) -> str:
    return from_epoch_ms(instant, tz).strftime("%H:%M:%S")


def format_datetime(instant: int | None, tz: tzinfo) -> str:
    if instant is None:
        return "N/A"
    return from_epoch_ms(instant, tz).strftime("%m/%d/%Y, %H:%M:%S")


def format_interval(hours: int, minutes: int) -> str:
    return f"{hours}:{minutes:02d}"


def format_remaining(remaining_ms: int, *, seconds: bool = False) -> str:
    """``2h 5m`` / ``5m 10s`` / ``10s`` style countdown."""
    hours, rest = divmod(max(0, remaining_ms), MS_PER_HOUR)
    mins, rest = divmod(rest, MS_PER_MINUTE)
    secs = rest // MS_PER_SECOND
    if hours:
        return f"{hours}h {mins}m {secs}s" if seconds else f"{hours}h {mins}m"
    if not seconds:
        return f"{mins}m"
    if mins:
        return f"{mins}m {secs}s"
    return f"{secs}s"


def day_name(day: int | None) -> str:
    if day is None or not 0 <= day < len(DAY_NAMES):
        return "None"
    return DAY_NAMES[day]


# ------------------------------------------------------------------
# Feed lifecycle
# ------------------------------------------------------------------


def feed_executed(origin: FeedOrigin, user: str | None, instant: int, tz: tzinfo) -> str:
    when = format_time(instant, tz)
    if origin is FeedOrigin.UNATTENDED:
        return f"🤖 Auto Feed\n🕐 {when}"
    if origin is FeedOrigin.RESERVATION:
        return f"🎉 Reservation\n👤 {_safe(user, 'Unknown')}\n🕐 {when}"
    return f"✅ Manual Feed\n👤 {_safe(user, UNATTENDED_REQUESTER)}\n🕐 {when}"


def reservation_created(user: str | None, scheduled_time: int, position: int, tz: tzinfo) -> str:
    return (
        "📝 New Reservation\n"
        f"👤 {_safe(user, DEFAULT_REQUESTER)}\n"
        f"🕐 {format_time(scheduled_time, tz)}\n"
        f"📊 Position #{max(1, min(999, position))}"
    )


def reservation_cancelled(user: str | None) -> str:
    return f"❌ Reservation Cancelled\n👤 User: {_safe(user, 'Unknown')}\n\nReservation removed from queue."


# ------------------------------------------------------------------
# Settings
# ------------------------------------------------------------------


def timer_updated(hours: int, minutes: int, no_feed_day: int | None) -> str:
    return (
        f"{_HEADER}\n\n⚙️ Timer Settings Updated\n"
        f"⏰ Interval: {format_interval(hours, minutes)}\n"
        f"🚫 Fasting Day: {day_name(no_feed_day)}\n\n"
        "Settings saved successfully."
    )


def priority_updated(reservation_delay_minutes: int, auto_feed_delay_minutes: int) -> str:
    return (
        f"{_HEADER}\n\n⚙️ Priority Settings Updated\n"
        f"📅 Reservation Delay: {reservation_delay_minutes} min\n"
        f"⏰ Auto Feed Delay: {auto_feed_delay_minutes} min\n\n"
        "Settings saved successfully."
    )


# ------------------------------------------------------------------
# Alerts
# ------------------------------------------------------------------


def tds_warning(tds: float, instant: int, tz: tzinfo) -> str:
    return "\n".join(
        [
            "⚠️ <b>WATER WARNING</b>",
            f"TDS is high: <code>{tds:g} ppm</code>",
            "Normal: 200–600 ppm",
            f"⏰ {format_datetime(instant, tz)}",
        ]
    )


def temperature_warning(temperature: float, instant: int, tz: tzinfo) -> str:
    return "\n".join(
        [
            "⚠️ <b>TEMPERATURE WARNING</b>",
            f"Current: <code>{temperature:g}°C</code>",
            f"Safe Range: {TEMPERATURE_SAFE_MIN_C:g}–{TEMPERATURE_SAFE_MAX_C:g}°C",
            f"⏰ {format_datetime(instant, tz)}",
        ]
    )


def device_offline(last_seen_s: float | None, tz: tzinfo) -> str:
    seen = "unknown" if last_seen_s is None else format_time(int(last_seen_s * 1000), tz)
    return f"⚠️ Device Offline\n🕐 Last seen: {seen}"


def device_online(wifi: str, uptime: float, instant: int, tz: tzinfo) -> str:
    return "\n".join(
        [
            "🟢 <b>DEVICE ONLINE</b>",
            "Connection restored.",
            "",
            f"WiFi: <code>{html.escape(wifi or 'unknown', quote=False)}</code>",
            f"Uptime: <code>{int(uptime)} seconds</code>",
            f"Last Sync: <code>{format_datetime(instant, tz)}</code>",
        ]
    )
