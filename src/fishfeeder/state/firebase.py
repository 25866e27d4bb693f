"""Firebase Realtime Database backed store."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import aiohttp

from fishfeeder._transport import RestTransport, Transport
from fishfeeder.config import FeederConfig
from fishfeeder.exceptions import FeederConfigError, StoreError
from fishfeeder.state.store import BoundedStore, StateStore

_logger = logging.getLogger(__name__)

_PRECONDITION_FAILED = 412


class FirebaseStateStore:
    """:class:`StateStore` over the database REST API."""

    def __init__(self, transport: Transport) -> None:
        self._transport = transport

    async def get(self, path: str) -> Any:
        response = await self._transport.get(path)
        return response.data

    async def set(self, path: str, value: Any) -> None:
        await self._transport.put(path, value)

    async def get_with_etag(self, path: str) -> tuple[Any, str]:
        response = await self._transport.get(path, with_etag=True)
        if response.etag is None:
            raise StoreError(f"No ETag returned for {path}", path=path)
        return response.data, response.etag

    async def set_if_match(self, path: str, value: Any, etag: str) -> bool:
        try:
            await self._transport.put(path, value, if_match=etag)
        except StoreError as exc:
            if exc.status_code == _PRECONDITION_FAILED:
                _logger.debug("Conditional write to %s lost the race", path)
                return False
            raise
        return True


class StoreProvider:
    """Build the store once per process.

    A configuration failure is remembered and re-raised on every later
    call, so a misconfigured deployment fails fast instead of retrying
    initialization on each trigger.
    """

    def __init__(
        self,
        config: FeederConfig,
        *,
        factory: Callable[[FeederConfig], StateStore] | None = None,
        http_session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._config = config
        self._factory = factory
        self._http_session = http_session
        self._store: StateStore | None = None
        self._init_error: FeederConfigError | None = None

    @property
    def init_error(self) -> FeederConfigError | None:
        return self._init_error

    def _build(self) -> StateStore:
        if self._factory is not None:
            inner = self._factory(self._config)
        else:
            self._config.validate_store()
            if self._http_session is None:
                raise FeederConfigError("An HTTP session is required for the remote store")
            inner = FirebaseStateStore(RestTransport(self._config, self._http_session))
        return BoundedStore(
            inner,
            read_timeout=self._config.store_read_timeout,
            write_timeout=self._config.store_write_timeout,
        )

    def get(self) -> StateStore:
        if self._init_error is not None:
            raise self._init_error
        if self._store is None:
            try:
                self._store = self._build()
            except FeederConfigError as exc:
                _logger.error("Store initialization failed: %s", exc)
                self._init_error = exc
                raise
            _logger.debug("Store initialized")
        return self._store
