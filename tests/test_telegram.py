from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any

import pytest

from fishfeeder._constants import TELEGRAM_PATH
from fishfeeder.config import FeederConfig
from fishfeeder.exceptions import NotificationError
from fishfeeder.notify.telegram import MessageLog, TelegramNotifier, backoff_delay
from fishfeeder.state.store import MemoryStateStore


@dataclass
class FakeResponse:
    status: int
    payload: Any = None

    async def text(self) -> str:
        return json.dumps(self.payload)

    async def json(self, content_type: str | None = None) -> Any:
        return self.payload

    async def __aenter__(self) -> FakeResponse:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None


@dataclass
class FakeTelegramApi:
    """Answers sendMessage with increasing ids; scripted statuses go first."""

    scripted: list[int | Exception] = field(default_factory=list)
    posts: list[tuple[str, dict[str, Any]]] = field(default_factory=list)
    next_id: int = 100

    def post(self, url: str, *, json: dict[str, Any], timeout: Any) -> FakeResponse:
        method = url.rsplit("/", 1)[-1]
        self.posts.append((method, json))
        if method == "sendMessage" and self.scripted:
            item = self.scripted.pop(0)
            if isinstance(item, Exception):
                raise item
            if item != 200:
                return FakeResponse(item, {"ok": False, "description": "nope"})
        if method == "deleteMessage":
            return FakeResponse(200, {"ok": True, "result": True})
        self.next_id += 1
        return FakeResponse(200, {"ok": True, "result": {"message_id": self.next_id}})

    def methods(self) -> list[str]:
        return [method for method, _ in self.posts]


@dataclass
class SleepRecorder:
    delays: list[float] = field(default_factory=list)

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _config(**overrides: Any) -> FeederConfig:
    return FeederConfig(telegram_bot_token="123:abc", telegram_chat_id="-42", **overrides)


def test_backoff_is_linear_and_capped() -> None:
    assert [backoff_delay(i) for i in range(7)] == [1.0, 2.0, 3.0, 4.0, 5.0, 5.0, 5.0]


def test_requires_credentials() -> None:
    with pytest.raises(ValueError):
        TelegramNotifier(FeederConfig(telegram_bot_token="123:abc"), FakeTelegramApi())  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_send_uses_html_and_returns_id() -> None:
    api = FakeTelegramApi()
    notifier = TelegramNotifier(_config(), api)  # type: ignore[arg-type]

    message_id = await notifier.send("<b>hi</b>")

    assert message_id == 101
    method, payload = api.posts[0]
    assert method == "sendMessage"
    assert payload == {"chat_id": "-42", "text": "<b>hi</b>", "parse_mode": "HTML"}


@pytest.mark.asyncio
async def test_rate_limit_is_retried_with_backoff() -> None:
    api = FakeTelegramApi(scripted=[429, TimeoutError()])
    sleep = SleepRecorder()
    notifier = TelegramNotifier(_config(), api, sleep=sleep)  # type: ignore[arg-type]

    assert await notifier.send("hello") == 101
    assert sleep.delays == [1.0, 2.0]
    assert api.methods() == ["sendMessage"] * 3


@pytest.mark.asyncio
async def test_client_errors_fail_fast() -> None:
    api = FakeTelegramApi(scripted=[400])
    sleep = SleepRecorder()
    notifier = TelegramNotifier(_config(), api, sleep=sleep)  # type: ignore[arg-type]

    with pytest.raises(NotificationError) as excinfo:
        await notifier.send("hello")

    assert excinfo.value.status_code == 400
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_gives_up_after_retries() -> None:
    api = FakeTelegramApi(scripted=[500, 502, 503])
    sleep = SleepRecorder()
    notifier = TelegramNotifier(_config(notification_retries=2), api, sleep=sleep)  # type: ignore[arg-type]

    with pytest.raises(NotificationError, match="after 3 attempts"):
        await notifier.send("hello")
    assert sleep.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_empty_message_is_refused() -> None:
    notifier = TelegramNotifier(_config(), FakeTelegramApi())  # type: ignore[arg-type]
    with pytest.raises(NotificationError):
        await notifier.send("")


@pytest.mark.asyncio
async def test_chat_is_purged_when_limit_is_reached(effects) -> None:
    api = FakeTelegramApi()
    store = MemoryStateStore()
    notifier = TelegramNotifier(_config(telegram_message_limit=3), api, store=store, effects=effects)  # type: ignore[arg-type]

    await notifier.send("one")
    await effects.drain()
    await notifier.send("two")
    await effects.drain()
    assert MessageLog.from_store(await store.get(TELEGRAM_PATH)) == MessageLog(message_ids=[101, 102], count=2)

    await notifier.send("three")
    await effects.drain()

    deleted = [payload["message_id"] for method, payload in api.posts if method == "deleteMessage"]
    assert sorted(deleted) == [101, 102, 103]
    assert await store.get(TELEGRAM_PATH) == {"messageIds": [], "count": 0}


@pytest.mark.asyncio
async def test_untracked_replies_are_not_recorded(effects) -> None:
    store = MemoryStateStore()
    notifier = TelegramNotifier(_config(), FakeTelegramApi(), store=store, effects=effects)  # type: ignore[arg-type]

    await notifier.send("reply", track=False)
    await effects.drain()

    assert await store.get(TELEGRAM_PATH) is None


@pytest.mark.asyncio
async def test_clear_messages() -> None:
    api = FakeTelegramApi()
    store = MemoryStateStore({"system": {"telegram": {"messageIds": [7, 8], "count": 2}}})
    notifier = TelegramNotifier(_config(), api, store=store)  # type: ignore[arg-type]

    assert await notifier.clear_messages() == 2
    assert api.methods() == ["deleteMessage", "deleteMessage"]
    assert await store.get(TELEGRAM_PATH) == {"messageIds": [], "count": 0}
    assert await notifier.clear_messages() == 0


class YieldingStore(MemoryStateStore):
    """Lets another task run between reading the log and writing it back."""

    async def get_with_etag(self, path: str) -> tuple[Any, str]:
        result = await super().get_with_etag(path)
        await asyncio.sleep(0)
        return result


@pytest.mark.asyncio
async def test_concurrent_sends_keep_every_message_id(effects) -> None:
    store = YieldingStore()
    notifier = TelegramNotifier(_config(), FakeTelegramApi(), store=store, effects=effects)  # type: ignore[arg-type]

    await asyncio.gather(notifier.send("one"), notifier.send("two"))
    await effects.drain()

    log = MessageLog.from_store(await store.get(TELEGRAM_PATH))
    assert sorted(log.message_ids) == [101, 102]
    assert log.count == 2
