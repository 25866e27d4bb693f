"""Telegram Bot API notifier with retry and chat housekeeping."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import aiohttp
from pydantic import Field, field_validator

from fishfeeder._constants import TELEGRAM_API_BASE, TELEGRAM_PATH
from fishfeeder._effects import DetachedEffects
from fishfeeder._redact import redact_for_log, redact_url
from fishfeeder.config import FeederConfig
from fishfeeder.exceptions import NotificationError, StoreError
from fishfeeder.models._base import FeederBaseModel, sparse_list
from fishfeeder.state.store import StateStore

_logger = logging.getLogger(__name__)

_DELETE_TIMEOUT_S = 3.0
_TRACK_ATTEMPTS = 3
_MAX_BACKOFF_S = 5.0


def _retryable(status: int) -> bool:
    return status == 429 or status >= 500


def backoff_delay(attempt: int) -> float:
    """Linear backoff: 1s, 2s, ... capped at 5s."""
    return min(1.0 * (attempt + 1), _MAX_BACKOFF_S)


class MessageLog(FeederBaseModel):
    """Snapshot of ``system/telegram``: ids of messages the bot has sent."""

    message_ids: list[int] = Field(default_factory=list)
    count: int = 0

    @field_validator("message_ids", mode="before")
    @classmethod
    def _ids(cls, value: Any) -> list[int]:
        ids: list[int] = []
        for item in sparse_list(value):
            try:
                ids.append(int(item))
            except (TypeError, ValueError):
                continue
        return ids

    @classmethod
    def from_store(cls, raw: Any) -> MessageLog:
        return cls.model_validate(raw if isinstance(raw, dict) else {})


class TelegramNotifier:
    """Send chat messages and keep the chat from growing unbounded.

    Every delivered message id is recorded under ``system/telegram``; once
    ``telegram_message_limit`` messages are tracked they are all deleted
    and the log starts over.
    """

    def __init__(
        self,
        config: FeederConfig,
        http_session: aiohttp.ClientSession,
        *,
        store: StateStore | None = None,
        effects: DetachedEffects | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if not config.notifications_enabled:
            raise ValueError("telegram_bot_token and telegram_chat_id are required")
        self._config = config
        self._http = http_session
        self._store = store
        self._effects = effects
        self._sleep = sleep
        self._chat_id = str(config.telegram_chat_id)

    def _url(self, method: str) -> str:
        return f"{TELEGRAM_API_BASE}/bot{self._config.telegram_bot_token}/{method}"

    async def _call(self, method: str, payload: dict[str, Any], *, timeout: float) -> tuple[int, Any]:
        url = self._url(method)
        _logger.debug("POST %s", redact_url(url))
        if self._config.debug_payloads:
            _logger.debug("%s payload=%s", method, redact_for_log(payload))
        async with self._http.post(
            url,
            json=payload,
            timeout=aiohttp.ClientTimeout(total=timeout),
        ) as resp:
            if resp.status != 200:
                body = await resp.text()
                return resp.status, body[:200]
            return resp.status, await resp.json(content_type=None)

    async def send(self, text: str, *, track: bool = True) -> int | None:
        if not text:
            raise NotificationError("Refusing to send an empty message")

        retries = self._config.notification_retries
        payload = {"chat_id": self._chat_id, "text": text, "parse_mode": "HTML"}
        last_error = "no attempt made"

        for attempt in range(retries + 1):
            try:
                status, body = await self._call("sendMessage", payload, timeout=self._config.notification_timeout)
            except TimeoutError:
                last_error = f"timed out after {self._config.notification_timeout:.0f}s"
                _logger.warning("Telegram send %s (attempt %d/%d)", last_error, attempt + 1, retries + 1)
            except aiohttp.ClientError as exc:
                last_error = str(exc)
                _logger.warning("Telegram send failed (attempt %d/%d): %s", attempt + 1, retries + 1, exc)
            else:
                if status == 200:
                    return self._delivered(body, track=track)
                last_error = f"HTTP {status}: {body}"
                _logger.error("Telegram send failed with HTTP %d: %s", status, body)
                if not _retryable(status):
                    raise NotificationError(f"Telegram rejected message: {last_error}", status_code=status)

            if attempt < retries:
                await self._sleep(backoff_delay(attempt))

        raise NotificationError(f"Telegram send failed after {retries + 1} attempts: {last_error}")

    def _delivered(self, body: Any, *, track: bool) -> int:
        result = body.get("result") if isinstance(body, dict) else None
        message_id = result.get("message_id") if isinstance(result, dict) else None
        if not isinstance(body, dict) or not body.get("ok") or not isinstance(message_id, int):
            raise NotificationError("Telegram response carried no message id")

        if track and self._store is not None and self._effects is not None:
            self._effects.spawn(self._track(message_id), name=f"telegram-track-{message_id}")
        return message_id

    async def _track(self, message_id: int) -> None:
        """Record *message_id*; purge the chat once the limit is reached.

        The log is written with a conditional write so concurrent sends do
        not drop each other's ids.  A purge first claims the ids by resetting
        the log, then deletes them.
        """
        assert self._store is not None
        for attempt in range(_TRACK_ATTEMPTS):
            raw, etag = await self._store.get_with_etag(TELEGRAM_PATH)
            log = MessageLog.from_store(raw)
            ids = [*log.message_ids, message_id]
            count = log.count + 1
            purge = count >= self._config.telegram_message_limit
            updated = MessageLog() if purge else MessageLog(message_ids=ids, count=count)
            if not await self._store.set_if_match(TELEGRAM_PATH, updated.to_store(), etag):
                _logger.debug("Message log changed while tracking %d; retrying (attempt %d)", message_id, attempt + 1)
                continue
            if purge:
                await self._delete_all(ids)
                _logger.info("Reached %d tracked messages; cleared chat", count)
            return
        raise StoreError(
            f"Gave up tracking message {message_id} after {_TRACK_ATTEMPTS} conflicting writes",
            path=TELEGRAM_PATH,
        )

    async def _delete_one(self, message_id: int) -> bool:
        try:
            status, body = await self._call(
                "deleteMessage",
                {"chat_id": self._chat_id, "message_id": message_id},
                timeout=_DELETE_TIMEOUT_S,
            )
        except (TimeoutError, aiohttp.ClientError) as exc:
            _logger.warning("Error deleting Telegram message %d: %s", message_id, exc)
            return False
        if status != 200:
            _logger.warning("Telegram refused to delete message %d: HTTP %d %s", message_id, status, body)
            return False
        return True

    async def _delete_all(self, message_ids: list[int]) -> int:
        if not message_ids:
            return 0
        results = await asyncio.gather(*(self._delete_one(mid) for mid in message_ids))
        return sum(1 for ok in results if ok)

    async def clear_messages(self) -> int:
        """Delete every tracked message and reset the log."""
        if self._store is None:
            return 0
        log = MessageLog.from_store(await self._store.get(TELEGRAM_PATH))
        if not log.message_ids:
            return 0
        await self._delete_all(log.message_ids)
        await self._store.set(TELEGRAM_PATH, MessageLog().to_store())
        return len(log.message_ids)
