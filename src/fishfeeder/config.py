"""Controller configuration for fishfeeder."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from fishfeeder.exceptions import FeederConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class FeederConfig:
    """Controller configuration.

    Parameters
    ----------
    database_url : str
        Firebase Realtime Database root URL
        (e.g. ``"https://my-feeder-default-rtdb.firebaseio.com"``).
    database_auth : str or None
        Database secret or ID token appended as ``?auth=`` to every
        request.  ``None`` for databases with open rules.
    telegram_bot_token : str or None
        Bot token for chat notifications.  Notifications are disabled
        (logged only) when this or ``telegram_chat_id`` is missing.
    telegram_chat_id : str or None
        Chat that receives notifications.
    cron_secret : str or None
        Shared secret required by the periodic trigger endpoints.
        ``None`` disables the check.
    time_zone : str
        IANA time zone used for fasting-day evaluation and display.
    store_read_timeout : float
        Seconds before a store read is abandoned.
    store_write_timeout : float
        Seconds before a store write is abandoned.
    notification_timeout : float
        Seconds before a single chat API call is abandoned.
    notification_retries : int
        Extra attempts after a failed or rate-limited chat send.
    telegram_message_limit : int
        Number of tracked bot messages after which the chat is purged.
    scheduler_interval : float
        Seconds between in-process periodic checks when running the
        HTTP server.  ``0`` leaves scheduling to an external cron.
    http_host : str
        Bind address for the HTTP server.
    http_port : int
        Bind port for the HTTP server.
    debug_payloads : bool
        Emit redacted store/chat payloads at DEBUG level.
    """

    database_url: str = ""
    database_auth: str | None = None
    telegram_bot_token: str | None = None
    telegram_chat_id: str | None = None
    cron_secret: str | None = None
    time_zone: str = "Asia/Baghdad"
    store_read_timeout: float = 8.0
    store_write_timeout: float = 8.0
    notification_timeout: float = 5.0
    notification_retries: int = 2
    telegram_message_limit: int = 10
    scheduler_interval: float = 0.0
    http_host: str = "0.0.0.0"
    http_port: int = 8080
    debug_payloads: bool = False

    @property
    def notifications_enabled(self) -> bool:
        return bool(self.telegram_bot_token and self.telegram_chat_id)

    def validate_store(self) -> None:
        """Raise :class:`FeederConfigError` when store settings are unusable."""
        url = self.database_url.strip()
        if not url:
            raise FeederConfigError("database_url is not configured")
        if not url.startswith("https://"):
            raise FeederConfigError(f"database_url must be an https:// URL, got {url!r}")
        if self.database_auth is not None and not self.database_auth.strip():
            raise FeederConfigError("database_auth is set but blank")

    @classmethod
    def from_env(cls, **overrides: Any) -> FeederConfig:
        """Create configuration from environment variables.

        Reads ``FEEDER_DATABASE_URL``, ``FEEDER_DATABASE_AUTH``,
        ``TELEGRAM_BOT_TOKEN``, ``TELEGRAM_CHAT_ID``, ``CRON_SECRET`` and
        the optional ``FEEDER_*`` tuning variables.  Explicit keyword
        arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        FeederConfig
            Populated configuration.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "FEEDER_DATABASE_URL": "database_url",
            "FEEDER_DATABASE_AUTH": "database_auth",
            "TELEGRAM_BOT_TOKEN": "telegram_bot_token",
            "TELEGRAM_CHAT_ID": "telegram_chat_id",
            "CRON_SECRET": "cron_secret",
            "FEEDER_TIME_ZONE": "time_zone",
            "FEEDER_HTTP_HOST": "http_host",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        # Numeric settings, handled separately
        _ENV_FLOAT_MAP = {
            "FEEDER_STORE_READ_TIMEOUT": "store_read_timeout",
            "FEEDER_STORE_WRITE_TIMEOUT": "store_write_timeout",
            "FEEDER_NOTIFICATION_TIMEOUT": "notification_timeout",
            "FEEDER_SCHEDULER_INTERVAL": "scheduler_interval",
        }
        for env_key, field_name in _ENV_FLOAT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = float(val)

        _ENV_INT_MAP = {
            "FEEDER_NOTIFICATION_RETRIES": "notification_retries",
            "FEEDER_TELEGRAM_MESSAGE_LIMIT": "telegram_message_limit",
            "PORT": "http_port",
        }
        for env_key, field_name in _ENV_INT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = int(val)

        if "debug_payloads" not in overrides:
            config_kwargs["debug_payloads"] = _env_bool(env.get("FEEDER_DEBUG_PAYLOADS"), False)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
